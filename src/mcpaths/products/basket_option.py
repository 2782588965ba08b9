r"""
European basket options priced by Monte Carlo.

The basket value at expiry is :math:`B_T = \sum_i w_i S_T^{(i)}` with weights
summing to one. Assets follow
:class:`~mcpaths.sde.MultivariateGeometricBrownianMotion` with their
risk-free rates as drifts, and the payoff is discounted with the
weight-averaged rate

.. math::
   DF(t) = \exp\!\left(-t \sum_i w_i r_i\right).

Call and put prices are

.. math::
   C = \mathbb{E}\big[\max(B_T - K, 0)\big]\,DF(T), \qquad
   P = \mathbb{E}\big[\max(K - B_T, 0)\big]\,DF(T).
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable

import numpy as np

from ..distributions import as_vector
from ..evaluation import PathEvaluator, PathStatistics
from ..exceptions import ConfigurationError
from ..sde import MultivariateGeometricBrownianMotion
from ..simulation import MonteCarloPathSimulator

logger = logging.getLogger(__name__)

__all__ = ["EuropeanBasketOption"]

_WEIGHT_TOLERANCE = 1e-12


class EuropeanBasketOption:
    r"""
    Monte Carlo pricer for a European option on a weighted basket.

    Indices of the Cholesky factor must be aligned with the indices of
    ``weights``, ``asset_prices`` and ``rf_rates``.

    Parameters
    ----------
    weights : array_like, shape ``(d,)``
        Basket weights. Must sum to 1.
    asset_prices : array_like, shape ``(d,)``
        Spot prices.
    rf_rates : array_like, shape ``(d,)``
        Risk-free rates, used as drifts.
    cholesky_factor : array_like, shape ``(d, d)``
        Factor of the asset covariance.
    strike : float
        Strike :math:`K` of the basket.
    time_to_expiration : float
        :math:`T - t` in years.
    nr_paths : int
        Ensemble size.
    nr_steps : int
        Time steps per path. Must be positive.
    seed : int
        Master seed of the simulation.
    bit_generator : str or type, default ``"philox"``
        Random source, see :data:`mcpaths.simulation.BIT_GENERATORS`.

    Raises
    ------
    ConfigurationError
        If the weights do not sum to one, the arrays disagree in shape, or
        ``nr_steps`` is not positive.

    Examples
    --------
    >>> option = EuropeanBasketOption(
    ...     weights=[0.5, 0.5],
    ...     asset_prices=[102.0, 102.0],
    ...     rf_rates=[0.02, 0.02],
    ...     cholesky_factor=[[0.2, 0.0], [0.0, 0.2]],
    ...     strike=100.0,
    ...     time_to_expiration=0.5,
    ...     nr_paths=10_000,
    ...     nr_steps=100,
    ...     seed=42,
    ... )
    >>> price = option.call()  # doctest: +SKIP
    """

    def __init__(
        self,
        weights: Any,
        asset_prices: Any,
        rf_rates: Any,
        cholesky_factor: Any,
        strike: float,
        time_to_expiration: float,
        nr_paths: int,
        nr_steps: int,
        seed: int,
        *,
        bit_generator: str | type = "philox",
    ):
        self.weights = as_vector(weights, "weights")
        weight_sum = float(np.sum(self.weights))
        if not math.isclose(weight_sum, 1.0, rel_tol=0.0, abs_tol=_WEIGHT_TOLERANCE):
            raise ConfigurationError(f"weights must sum to 1.0, got {weight_sum}")
        self.asset_prices = as_vector(asset_prices, "asset_prices")
        self.rf_rates = as_vector(rf_rates, "rf_rates")
        if not (self.weights.shape == self.asset_prices.shape == self.rf_rates.shape):
            raise ConfigurationError(
                f"weights, asset_prices and rf_rates must share a shape, got "
                f"{self.weights.shape}, {self.asset_prices.shape}, {self.rf_rates.shape}"
            )
        if nr_steps <= 0:
            raise ConfigurationError("nr_steps must be positive")
        if nr_paths < 0:
            raise ConfigurationError("nr_paths must be non-negative")

        self.strike = float(strike)
        self.time_to_expiration = float(time_to_expiration)
        self.nr_paths = nr_paths
        self.nr_steps = nr_steps
        self.seed = seed
        self.bit_generator = bit_generator
        # Validates the Cholesky factor against the asset dimension
        self.dynamics = MultivariateGeometricBrownianMotion(
            self.asset_prices, self.rf_rates, cholesky_factor, self.dt
        )

    @property
    def cholesky_factor(self) -> np.ndarray:
        return self.dynamics.cholesky_factor

    @property
    def dt(self) -> float:
        return self.time_to_expiration / self.nr_steps

    def discount_factor(self, t: float) -> float:
        """Discount factor at the weight-averaged risk-free rate."""
        return math.exp(-t * float(self.rf_rates @ self.weights))

    def _payoff(self, sign: float) -> Callable[[np.ndarray], float]:
        strike = self.strike
        weights = self.weights
        disc_factor = self.discount_factor(self.time_to_expiration)

        def payoff(path: np.ndarray) -> float:
            basket = float(path[-1] @ weights)
            return max(sign * (basket - strike), 0.0) * disc_factor

        return payoff

    def _evaluator(self) -> PathEvaluator:
        simulator = MonteCarloPathSimulator(self.dynamics, self.seed, bit_generator=self.bit_generator)
        paths = simulator.simulate_paths(self.nr_paths, self.nr_steps, backend="sequential")
        return PathEvaluator(paths)

    def call(self) -> float | None:
        """The price (theoretical value) of the European basket call."""
        price = self._evaluator().evaluate_average(self._payoff(1.0))
        logger.debug("Basket call price: %s", price)
        return price

    def put(self) -> float | None:
        """The price (theoretical value) of the European basket put."""
        price = self._evaluator().evaluate_average(self._payoff(-1.0))
        logger.debug("Basket put price: %s", price)
        return price

    def call_statistics(self, confidence: float = 0.95) -> PathStatistics | None:
        """Call price with standard error and confidence interval."""
        return self._evaluator().evaluate_statistics(self._payoff(1.0), confidence=confidence)

    def put_statistics(self, confidence: float = 0.95) -> PathStatistics | None:
        """Put price with standard error and confidence interval."""
        return self._evaluator().evaluate_statistics(self._payoff(-1.0), confidence=confidence)
