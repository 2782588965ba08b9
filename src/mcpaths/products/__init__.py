"""Derivative products priced on top of the path simulator."""

from __future__ import annotations

from .basket_option import EuropeanBasketOption

__all__ = ["EuropeanBasketOption"]
