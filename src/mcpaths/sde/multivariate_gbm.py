r"""
Correlated geometric Brownian motion for a basket of assets.

For :math:`d` assets with drifts :math:`\mu`, Cholesky factor :math:`L` and
independent draws :math:`Z_k \sim \mathcal{N}(0, I_d)`, one Euler step is

.. math::
   \Delta_k = \mu\,\Delta t + \sqrt{\Delta t}\,L Z_k, \qquad
   S_{k+1} = S_k + \Delta_k \odot S_k .
"""

from __future__ import annotations

from typing import Any

import numpy as np

from ..distributions import StandardNormal, as_square_matrix, as_vector
from ..exceptions import ConfigurationError

__all__ = ["MultivariateGeometricBrownianMotion"]


class MultivariateGeometricBrownianMotion:
    r"""
    Vector GBM dynamics.

    Parameters
    ----------
    initial_values : array_like, shape ``(d,)``
        Asset levels at index 0 of every path.
    drifts : array_like, shape ``(d,)``
        Per-asset drift.
    cholesky_factor : array_like, shape ``(d, d)``
        Factor :math:`L` of the instantaneous covariance. Its indices must be
        aligned with ``initial_values`` and ``drifts``. Triangularity is not
        checked.
    dt : float
        Time step :math:`\Delta t`.

    Raises
    ------
    ConfigurationError
        On any shape mismatch between the three arrays.

    Examples
    --------
    >>> mv_gbm = MultivariateGeometricBrownianMotion(
    ...     [1.0, 2.0, 3.0],
    ...     [0.1, 0.2, 0.3],
    ...     [[1.0, 0.5, 0.1], [0.0, 0.6, 0.7], [0.0, 0.0, 0.8]],
    ...     dt=4.0,
    ... )
    >>> np.round(mv_gbm.step(mv_gbm.initial_values, np.array([0.1, -0.1, 0.05])), 10).tolist()
    [1.51, 3.5, 6.84]
    """

    def __init__(self, initial_values: Any, drifts: Any, cholesky_factor: Any, dt: float):
        self.initial_values = as_vector(initial_values, "initial_values")
        self.drifts = as_vector(drifts, "drifts")
        if self.drifts.shape != self.initial_values.shape:
            raise ConfigurationError(
                f"drifts has shape {self.drifts.shape} but initial_values has shape {self.initial_values.shape}"
            )
        self.cholesky_factor = as_square_matrix(cholesky_factor, self.drifts.shape[0])
        self.dt = float(dt)
        with np.errstate(invalid="ignore"):
            self._sqrt_dt = float(np.sqrt(self.dt))

    @classmethod
    def from_correlation(
        cls,
        initial_values: Any,
        drifts: Any,
        volatilities: Any,
        correlation: Any,
        dt: float,
    ) -> "MultivariateGeometricBrownianMotion":
        r"""
        Build the model from volatilities and a correlation matrix.

        The covariance :math:`\Sigma = D C D` with :math:`D = \operatorname{diag}(\sigma)`
        is factorized with :func:`numpy.linalg.cholesky`.

        Raises
        ------
        ConfigurationError
            If shapes disagree or :math:`\Sigma` is not positive definite.
        """
        vols = as_vector(volatilities, "volatilities")
        corr = as_square_matrix(correlation, vols.shape[0], "correlation")
        cov = np.outer(vols, vols) * corr
        try:
            factor = np.linalg.cholesky(cov)
        except np.linalg.LinAlgError as e:
            raise ConfigurationError(f"covariance is not positive definite: {e}") from e
        return cls(initial_values, drifts, factor, dt)

    def __repr__(self) -> str:
        return f"MultivariateGeometricBrownianMotion(dim={self.dim}, dt={self.dt})"

    @property
    def dim(self) -> int:
        return int(self.initial_values.shape[0])

    @property
    def initial_state(self) -> np.ndarray:
        return self.initial_values

    def base_distribution(self) -> StandardNormal:
        return StandardNormal(dim=self.dim)

    def step(self, st: np.ndarray, z: np.ndarray) -> np.ndarray:
        """One Euler step for all assets."""
        d_st_s0 = self.dt * self.drifts + self._sqrt_dt * (self.cholesky_factor @ z)
        return st + d_st_s0 * st

    def generate_path(self, initial_values: Any, standard_normals: np.ndarray) -> np.ndarray:
        r"""
        Expand a ``(n, d)`` block of innovations into a ``(n + 1, d)`` path.
        """
        standard_normals = np.asarray(standard_normals, dtype=float).reshape(-1, self.dim)
        path = np.empty((standard_normals.shape[0] + 1, self.dim), dtype=float)
        curr = np.asarray(initial_values, dtype=float)
        path[0] = curr
        for i in range(standard_normals.shape[0]):
            curr = self.step(curr, standard_normals[i])
            path[i + 1] = curr
        return path

    def generate_in_place(self, standard_normals: np.ndarray) -> None:
        """Overwrite each ``(d,)`` row of innovations with the state it produces."""
        curr = self.initial_values
        for i in range(standard_normals.shape[0]):
            curr = self.step(curr, standard_normals[i])
            standard_normals[i] = curr

    def sample_path(self, rng: np.random.Generator, nr_steps: int) -> np.ndarray:
        """Draw ``(nr_steps, d)`` standard normals from ``rng`` and return the path."""
        if nr_steps == 0:
            return self.generate_path(self.initial_values, np.empty((0, self.dim)))
        return self.generate_path(self.initial_values, rng.standard_normal((nr_steps, self.dim)))
