r"""

mcpaths.core
============

Containers shared by the simulator and the evaluators.

This module provides:

* :class:`~mcpaths.core.Ensemble` – the ordered collection of paths returned by
  :class:`~mcpaths.simulation.MonteCarloPathSimulator`.
* :func:`~mcpaths.backends.make_blocks` – re-exported chunking helper.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Iterator, overload

import numpy as np

from .backends import make_blocks

__all__ = ["Ensemble", "make_blocks"]


@dataclass(eq=False)
class Ensemble(Sequence):
    r"""
    Ordered collection of simulated paths.

    Paths are stored in generation order (path index) and are read-only
    arrays. An ensemble behaves like a sequence: ``len``, indexing and
    iteration work as for a list of arrays.

    Attributes
    ----------
    paths : list of ndarray
        One array per path, shape ``(nr_steps + 1,)`` or ``(nr_steps + 1, d)``
        for dynamics; ``(nr_steps,)`` or ``(nr_steps, d)`` for raw innovations.
    nr_steps : int
        Number of time steps requested.
    execution_time : float
        Wall-clock time in seconds.
    metadata : dict
        Freeform metadata. Includes ``"strategy"``, ``"backend"``,
        ``"bit_generator"``, ``"seed"``, ``"seed_entropy"`` and ``"timestamp"``.
    """

    paths: list[np.ndarray]
    nr_steps: int
    execution_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.paths)

    @overload
    def __getitem__(self, index: int) -> np.ndarray: ...

    @overload
    def __getitem__(self, index: slice) -> list[np.ndarray]: ...

    def __getitem__(self, index):
        return self.paths[index]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.paths)

    @property
    def nr_paths(self) -> int:
        return len(self.paths)

    def to_array(self) -> np.ndarray:
        """Stack all paths into one array with the path index on axis 0."""
        if not self.paths:
            return np.empty((0,), dtype=float)
        return np.stack(self.paths)

    def terminal_values(self) -> np.ndarray:
        """Last state of every path, shape ``(nr_paths,)`` or ``(nr_paths, d)``."""
        if not self.paths:
            return np.empty((0,), dtype=float)
        return np.stack([p[-1] for p in self.paths])

    def result_to_string(self) -> str:
        """Short human-readable description of the ensemble."""
        lines = [
            "=" * 20 + " ENSEMBLE " + "=" * 20,
            f"  Number of paths: {self.nr_paths}",
            f"  Number of steps: {self.nr_steps}",
            f"  Execution time: {self.execution_time:.2f} seconds",
        ]
        if self.metadata:
            lines.append("Metadata:")
        for k, v in self.metadata.items():
            lines.append(f"    {k}: {v}")
        lines.append("=" * 20 + " END " + "=" * 20)
        return "\n".join(lines)
