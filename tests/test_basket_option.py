import math

import numpy as np
import pytest

from mcpaths import ConfigurationError, EuropeanBasketOption, MonteCarloPathSimulator, PathStatistics


def make_option(**overrides):
    params = dict(
        weights=[0.5, 0.5],
        asset_prices=[102.0, 98.0],
        rf_rates=[0.02, 0.03],
        cholesky_factor=[[0.2, 0.0], [0.1, 0.25]],
        strike=100.0,
        time_to_expiration=0.5,
        nr_paths=2_000,
        nr_steps=10,
        seed=42,
    )
    params.update(overrides)
    return EuropeanBasketOption(**params)


class TestConstruction:
    """Test configuration is validated up front"""

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ConfigurationError, match="weights must sum to 1.0"):
            make_option(weights=[0.5, 0.6])

    def test_weights_within_tolerance(self):
        """Test rounding noise in the weights is accepted"""
        option = make_option(weights=[0.1 + 0.2, 0.7])
        assert option.weights.sum() == pytest.approx(1.0)

    def test_shape_mismatch(self):
        with pytest.raises(ConfigurationError, match="must share a shape"):
            make_option(asset_prices=[100.0, 100.0, 100.0])

    def test_rate_shape_mismatch(self):
        with pytest.raises(ConfigurationError, match="must share a shape"):
            make_option(rf_rates=[0.02])

    def test_factor_shape_mismatch(self):
        with pytest.raises(ConfigurationError, match="cholesky_factor"):
            make_option(cholesky_factor=np.eye(3))

    def test_steps_must_be_positive(self):
        with pytest.raises(ConfigurationError, match="nr_steps must be positive"):
            make_option(nr_steps=0)

    def test_negative_paths(self):
        with pytest.raises(ConfigurationError, match="nr_paths must be non-negative"):
            make_option(nr_paths=-5)

    def test_dt_and_discount(self):
        option = make_option()
        assert option.dt == pytest.approx(0.05)
        assert option.discount_factor(0.5) == pytest.approx(math.exp(-0.5 * 0.025))


class TestPricing:
    """Test Monte Carlo prices"""

    def test_reproducible(self):
        """Test a fixed seed gives a fixed price"""
        assert make_option().call() == make_option().call()
        assert make_option().put() == make_option().put()

    def test_prices_non_negative(self):
        option = make_option()
        assert option.call() >= 0.0
        assert option.put() >= 0.0

    def test_put_call_parity_on_same_paths(self):
        """Test C - P equals the discounted mean basket minus strike"""
        option = make_option()
        paths = MonteCarloPathSimulator(option.dynamics, seed=42).simulate_paths(2_000, 10, backend="sequential")
        basket = paths.terminal_values() @ option.weights
        expected = option.discount_factor(0.5) * (basket.mean() - option.strike)
        assert option.call() - option.put() == pytest.approx(expected, abs=1e-8)

    def test_forward_within_error(self):
        """Test the simulated mean basket matches the Euler forward"""
        option = make_option(nr_paths=5_000)
        paths = MonteCarloPathSimulator(option.dynamics, seed=42).simulate_paths(5_000, 10, backend="sequential")
        basket = paths.terminal_values() @ option.weights
        growth = (1.0 + option.dt * option.rf_rates) ** option.nr_steps
        forward = float(option.weights @ (option.asset_prices * growth))
        se = basket.std(ddof=1) / np.sqrt(basket.size)
        assert abs(basket.mean() - forward) < 5 * se

    def test_zero_volatility(self):
        """Test a deterministic basket prices to its discounted intrinsic value"""
        option = make_option(cholesky_factor=np.zeros((2, 2)), nr_paths=3)
        growth = (1.0 + option.dt * option.rf_rates) ** option.nr_steps
        forward = float(option.weights @ (option.asset_prices * growth))
        df = option.discount_factor(0.5)
        assert option.call() == pytest.approx(df * max(forward - 100.0, 0.0), rel=1e-10)
        assert option.put() == pytest.approx(df * max(100.0 - forward, 0.0), abs=1e-10)

    def test_no_paths(self):
        """Test an empty ensemble has no price"""
        option = make_option(nr_paths=0)
        assert option.call() is None
        assert option.call_statistics() is None

    def test_statistics(self):
        """Test the interval brackets the price"""
        option = make_option()
        stats = option.call_statistics()
        assert isinstance(stats, PathStatistics)
        assert stats.mean == pytest.approx(option.call())
        assert stats.ci_low <= stats.mean <= stats.ci_high
        assert stats.n_evaluated == 2_000
        assert option.put_statistics(confidence=0.99).confidence == 0.99

    def test_bit_generator_option(self):
        """Test the random source can be swapped"""
        assert make_option(bit_generator="pcg64").call() != make_option().call()
