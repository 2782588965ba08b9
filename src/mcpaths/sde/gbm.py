r"""
Geometric Brownian motion for a single asset.

The model is

.. math::
   \frac{dS_t}{S_t} = \mu\,dt + \sigma\,dW_t,

discretized on a uniform grid of spacing :math:`\Delta t` either with the
Euler–Maruyama scheme

.. math::
   S_{k+1} = S_k + S_k\left(\mu\,\Delta t + \sigma\sqrt{\Delta t}\,Z_k\right)

or with the exact log-normal transition

.. math::
   S_{k+1} = S_k \exp\!\left((\mu - \tfrac{1}{2}\sigma^2)\Delta t + \sigma\sqrt{\Delta t}\,Z_k\right).

The two schemes differ by the Euler discretization bias; pick one with the
``scheme`` argument.
"""

from __future__ import annotations

import numpy as np

from ..distributions import StandardNormal
from ..exceptions import ConfigurationError

__all__ = ["GeometricBrownianMotion"]

_SCHEMES = ("euler", "exact")


class GeometricBrownianMotion:
    r"""
    Scalar GBM dynamics.

    Parameters
    ----------
    initial_value : float
        Level :math:`S_0` at index 0 of every path.
    drift : float
        Drift :math:`\mu` per unit of time.
    vola : float
        Volatility :math:`\sigma`.
    dt : float
        Time step :math:`\Delta t`. A negative value is not rejected; it yields
        NaN states.
    scheme : {"euler", "exact"}, default ``"euler"``
        Transition rule used by :meth:`generate_path`, :meth:`generate_in_place`
        and :meth:`sample_path`.

    Examples
    --------
    >>> gbm = GeometricBrownianMotion(300.0, drift=0.01, vola=50 / 365, dt=0.1)
    >>> round(gbm.step(300.0, 0.0), 10)
    300.3
    """

    def __init__(
        self,
        initial_value: float,
        drift: float,
        vola: float,
        dt: float,
        scheme: str = "euler",
    ):
        if scheme not in _SCHEMES:
            raise ConfigurationError(f"scheme must be one of {_SCHEMES}, got '{scheme}'")
        self.initial_value = float(initial_value)
        self.mu = float(drift)
        self.sigma = float(vola)
        self.dt = float(dt)
        self.scheme = scheme
        with np.errstate(invalid="ignore"):
            self._sqrt_dt = float(np.sqrt(self.dt))

    def __repr__(self) -> str:
        return (
            f"GeometricBrownianMotion(initial_value={self.initial_value}, drift={self.mu}, "
            f"vola={self.sigma}, dt={self.dt}, scheme='{self.scheme}')"
        )

    @property
    def initial_state(self) -> float:
        return self.initial_value

    def base_distribution(self) -> StandardNormal:
        return StandardNormal()

    def step(self, st: float, z: float) -> float:
        r"""Euler–Maruyama transition: :math:`S + S(\mu\Delta t + \sigma\sqrt{\Delta t} z)`."""
        d_st = st * (self.mu * self.dt + self.sigma * self._sqrt_dt * z)
        return st + d_st

    def step_exact(self, st: float, z: float) -> float:
        """Exact log-normal transition over one step."""
        ret = self.dt * (self.mu - self.sigma**2 / 2.0) + self._sqrt_dt * self.sigma * z
        return st * np.exp(ret)

    def _stepper(self):
        return self.step_exact if self.scheme == "exact" else self.step

    def generate_path(self, initial_value: float, standard_normals: np.ndarray) -> np.ndarray:
        r"""
        Expand innovations into a path.

        Parameters
        ----------
        initial_value : float
            State written at index 0.
        standard_normals : array_like, shape ``(n,)``
            One innovation per step.

        Returns
        -------
        numpy.ndarray
            Path of shape ``(n + 1,)``.
        """
        step = self._stepper()
        path = np.empty(len(standard_normals) + 1, dtype=float)
        curr = float(initial_value)
        path[0] = curr
        for i, z in enumerate(standard_normals, start=1):
            curr = step(curr, z)
            path[i] = curr
        return path

    def generate_in_place(self, standard_normals: np.ndarray) -> None:
        """
        Overwrite innovations with the states they lead to, starting from
        :attr:`initial_value`. The initial value itself is not written.
        """
        step = self._stepper()
        curr = self.initial_value
        for i in range(len(standard_normals)):
            curr = step(curr, standard_normals[i])
            standard_normals[i] = curr

    def sample_path(self, rng: np.random.Generator, nr_steps: int) -> np.ndarray:
        """Draw ``nr_steps`` standard normals from ``rng`` and return the path."""
        if nr_steps == 0:
            return self.generate_path(self.initial_value, ())
        return self.generate_path(self.initial_value, rng.standard_normal(nr_steps))

    def sample(self, rng: np.random.Generator) -> float:
        """One exact step from :attr:`initial_value` using ``rng``."""
        return float(self.step_exact(self.initial_value, rng.standard_normal()))
