r"""
Base protocol for stochastic dynamics.

This module provides:

Protocol
    :class:`Dynamics` — State-transition interface shared by the SDE models

Helpers
    :func:`is_dynamics` — Tell a dynamics model from a bare innovation source
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np

from ..distributions import StandardNormal

__all__ = ["Dynamics", "is_dynamics"]


@runtime_checkable
class Dynamics(Protocol):
    r"""
    Protocol for discretized SDE models.

    A dynamics model maps a state and one innovation to the next state and can
    expand a whole sequence of innovations into a path. The three generation
    routes must agree bit for bit:

    * ``generate_path(initial_state, z)``
    * ``initial_state`` followed by ``generate_in_place(z.copy())``
    * ``sample_path(rng, len(z))`` when ``rng`` yields ``z``
    """

    @property
    def initial_state(self) -> Any:
        """State at index 0 of every generated path."""

    def base_distribution(self) -> StandardNormal:
        """Innovation source consumed by :meth:`step`."""

    def step(self, state: Any, innovation: Any) -> Any:
        """Advance ``state`` by one time step."""

    def generate_path(self, initial_state: Any, innovations: np.ndarray) -> np.ndarray:
        """Return a new path of length ``len(innovations) + 1``."""

    def generate_in_place(self, buffer: np.ndarray) -> None:
        """Replace raw innovations in ``buffer`` by the states they produce."""

    def sample_path(self, rng: np.random.Generator, nr_steps: int) -> np.ndarray:
        """Draw innovations from ``rng`` and return the resulting path."""


def is_dynamics(obj: Any) -> bool:
    """Return True when ``obj`` carries an initial state and can step it."""
    return isinstance(obj, Dynamics)
