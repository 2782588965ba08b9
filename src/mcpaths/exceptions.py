"""Exception types raised by :mod:`mcpaths`."""

__all__ = ["McPathsError", "ConfigurationError"]


class McPathsError(Exception):
    """Base exception for the path simulation engine"""


class ConfigurationError(McPathsError, ValueError):
    """Raised when a model or pricer is constructed with inconsistent inputs"""
