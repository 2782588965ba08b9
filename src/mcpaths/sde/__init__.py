"""Stochastic dynamics models for :mod:`mcpaths`."""

from __future__ import annotations

from .base import Dynamics, is_dynamics
from .gbm import GeometricBrownianMotion
from .multivariate_gbm import MultivariateGeometricBrownianMotion

__all__ = [
    "Dynamics",
    "is_dynamics",
    "GeometricBrownianMotion",
    "MultivariateGeometricBrownianMotion",
]
