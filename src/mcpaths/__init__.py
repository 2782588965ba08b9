"""mcpaths package public API."""

from .core import Ensemble, make_blocks
from .distributions import MultivariateNormal, StandardNormal
from .evaluation import PathEvaluator, PathStatistics
from .exceptions import ConfigurationError, McPathsError
from .products import EuropeanBasketOption
from .sde import GeometricBrownianMotion, MultivariateGeometricBrownianMotion
from .simulation import MonteCarloPathSimulator
from .utils import autocrit, t_crit, z_crit

__all__ = [
    "Ensemble",
    "MonteCarloPathSimulator",
    "StandardNormal",
    "MultivariateNormal",
    "GeometricBrownianMotion",
    "MultivariateGeometricBrownianMotion",
    "PathEvaluator",
    "PathStatistics",
    "EuropeanBasketOption",
    "ConfigurationError",
    "McPathsError",
    "make_blocks",
    "z_crit",
    "t_crit",
    "autocrit",
]

__version__ = "0.1.0"
