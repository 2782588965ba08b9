r"""
Innovation sources for path simulation.

This module provides:

Classes
    :class:`StandardNormal` — i.i.d. :math:`\mathcal{N}(0, 1)` draws, scalar or vector
    :class:`MultivariateNormal` — correlated draws :math:`\mu + L z`

Functions
    :func:`sample` — The pure correlating transform :math:`\mu + L z`

Protocol
    :class:`Sampler` — Anything the simulator can draw a path from

Every method that draws takes an explicit :class:`numpy.random.Generator`.
Nothing in this module touches NumPy's global random state.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np

from .exceptions import ConfigurationError

__all__ = [
    "Sampler",
    "StandardNormal",
    "MultivariateNormal",
    "sample",
]


def _frozen(values: Any) -> np.ndarray:
    """Return a read-only float64 copy of ``values``."""
    arr = np.array(values, dtype=float)
    arr.flags.writeable = False
    return arr


def as_vector(values: Any, name: str) -> np.ndarray:
    """Coerce ``values`` to a read-only 1-D array or raise :class:`ConfigurationError`."""
    arr = _frozen(values)
    if arr.ndim != 1:
        raise ConfigurationError(f"{name} must be one-dimensional, got shape {arr.shape}")
    return arr


def as_square_matrix(values: Any, dim: int, name: str = "cholesky_factor") -> np.ndarray:
    """Coerce ``values`` to a read-only ``dim x dim`` array or raise :class:`ConfigurationError`."""
    arr = _frozen(values)
    if arr.shape != (dim, dim):
        raise ConfigurationError(f"{name} must have shape ({dim}, {dim}), got {arr.shape}")
    return arr


def sample(mu: Any, cholesky_factor: Any, z: Any) -> np.ndarray:
    r"""
    Correlate a vector of independent standard normals.

    .. math::
       X = \mu + L z, \qquad z \sim \mathcal{N}(0, I_d)

    so that :math:`\operatorname{Cov}(X) = L L^\top`.

    Parameters
    ----------
    mu : array_like, shape ``(d,)``
        Mean vector.
    cholesky_factor : array_like, shape ``(d, d)``
        Factor :math:`L` of the target covariance. Not checked for triangularity.
    z : array_like, shape ``(d,)``
        Independent standard-normal draws.

    Returns
    -------
    numpy.ndarray
        Correlated draw of shape ``(d,)``.

    Examples
    --------
    >>> sample([0.0, 1.0], [[1.0, 0.0], [0.5, 2.0]], [1.0, 1.0]).tolist()
    [1.0, 3.5]
    """
    return np.asarray(mu, dtype=float) + np.asarray(cholesky_factor, dtype=float) @ np.asarray(z, dtype=float)


@runtime_checkable
class Sampler(Protocol):
    r"""
    Protocol for innovation sources driven by :class:`~mcpaths.simulation.MonteCarloPathSimulator`.

    A sampler draws ``nr_steps`` innovations from an explicit generator either
    into a fresh array (:meth:`sample_path`) or into a caller-owned buffer
    (:meth:`fill_path`). Both must consume the generator identically.
    """

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of a single innovation: ``()`` or ``(d,)``."""

    def sample_path(self, rng: np.random.Generator, nr_steps: int) -> np.ndarray:
        """Draw ``nr_steps`` innovations into a new array."""

    def fill_path(self, rng: np.random.Generator, out: np.ndarray) -> None:
        """Draw ``len(out)`` innovations into ``out``."""


class StandardNormal:
    r"""
    Independent standard-normal innovations.

    Parameters
    ----------
    dim : int, optional
        Vector dimension. ``None`` draws scalars.

    Examples
    --------
    >>> rng = np.random.default_rng(0)
    >>> StandardNormal(dim=3).sample_path(rng, 4).shape
    (4, 3)
    """

    def __init__(self, dim: int | None = None):
        if dim is not None and dim < 1:
            raise ConfigurationError(f"dim must be positive, got {dim}")
        self.dim = dim

    def __repr__(self) -> str:
        return f"StandardNormal(dim={self.dim})"

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of a single draw."""
        return () if self.dim is None else (self.dim,)

    def sample(self, rng: np.random.Generator) -> float | np.ndarray:
        """Draw one innovation."""
        if self.dim is None:
            return float(rng.standard_normal())
        return rng.standard_normal(self.dim)

    def sample_path(self, rng: np.random.Generator, nr_steps: int) -> np.ndarray:
        """Draw ``nr_steps`` innovations in step-major order."""
        return rng.standard_normal((nr_steps, *self.shape))

    def fill_path(self, rng: np.random.Generator, out: np.ndarray) -> None:
        """Overwrite the C-contiguous float64 buffer ``out`` with fresh draws."""
        rng.standard_normal(out=out)


class MultivariateNormal:
    r"""
    Correlated normal innovations via a Cholesky factor.

    Draws :math:`X = \mu + L z` with :math:`z \sim \mathcal{N}(0, I_d)`.

    Parameters
    ----------
    mu : array_like, shape ``(d,)``
        Mean vector.
    cholesky_factor : array_like, shape ``(d, d)``
        Factor :math:`L` with :math:`L L^\top` the target covariance. Only the
        shape is validated.

    Raises
    ------
    ConfigurationError
        If ``mu`` is not one-dimensional or the factor is not ``d x d``.
    """

    def __init__(self, mu: Any, cholesky_factor: Any):
        self.mu = as_vector(mu, "mu")
        self.cholesky_factor = as_square_matrix(cholesky_factor, self.mu.shape[0])

    def __repr__(self) -> str:
        return f"MultivariateNormal(dim={self.dim})"

    @property
    def dim(self) -> int:
        """Number of correlated components."""
        return int(self.mu.shape[0])

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of a single draw."""
        return (self.dim,)

    def transform(self, z: np.ndarray) -> np.ndarray:
        """Map independent draws ``z`` of shape ``(d,)`` or ``(n, d)`` to correlated ones."""
        return self.mu + np.asarray(z, dtype=float) @ self.cholesky_factor.T

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        """Draw one correlated vector."""
        return self.transform(rng.standard_normal(self.dim))

    def sample_path(self, rng: np.random.Generator, nr_steps: int) -> np.ndarray:
        """Draw ``nr_steps`` correlated vectors, shape ``(nr_steps, d)``."""
        return self.transform(rng.standard_normal((nr_steps, self.dim)))

    def fill_path(self, rng: np.random.Generator, out: np.ndarray) -> None:
        """Overwrite ``out`` of shape ``(n, d)`` with correlated draws."""
        rng.standard_normal(out=out)
        out[...] = self.transform(out)
