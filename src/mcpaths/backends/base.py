r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for path generation strategies

Functions
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`worker_run_chunk` — Top-level worker for process-based parallelism

Helpers
    :func:`is_windows_platform` — Platform detection for backend selection
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Callable, Protocol

import numpy as np

if TYPE_CHECKING:
    from ..simulation import PathTask

__all__ = [
    "ExecutionBackend",
    "make_blocks",
    "worker_run_chunk",
    "is_windows_platform",
]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def worker_run_chunk(task: "PathTask", start: int, stop: int) -> list[np.ndarray]:
    r"""
    Generate paths ``start, ..., stop - 1`` in a **separate worker**.

    Parameters
    ----------
    task : PathTask
        Picklable path generator. Must be pickleable when used with a process backend.
    start, stop : int
        Half-open range of path indices.

    Returns
    -------
    list[numpy.ndarray]
        The generated paths in index order.

    Notes
    -----
    Each path draws from its own sub-stream keyed by the path index, so the
    block layout has no influence on the values.
    """
    return [task(i) for i in range(start, stop)]


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends decide where paths are generated (main thread, thread pool,
    process pool) and report progress. They never decide *what* a path
    contains: that is fixed by the task and the path index.
    """

    def run(
        self,
        task: "PathTask",
        nr_paths: int,
        progress_callback: Callable[[int, int], None] | None,
    ) -> list[np.ndarray]:
        r"""
        Generate ``nr_paths`` paths and return them in index order.

        Parameters
        ----------
        task : PathTask
            Callable mapping a path index to a path.
        nr_paths : int
            Number of paths to generate.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        list[numpy.ndarray]
            ``nr_paths`` arrays.
        """
