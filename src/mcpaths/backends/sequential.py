r"""
Sequential execution backend for path simulation.

This module provides a single-threaded execution strategy that generates
paths in index order with optional progress reporting. It is the baseline
every other backend must reproduce.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np

if TYPE_CHECKING:
    from ..simulation import PathTask

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Generates paths one at a time on the calling thread.
    Suitable for small ensembles or debugging.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> paths = backend.run(task, nr_paths=1000, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        task: "PathTask",
        nr_paths: int,
        progress_callback: Callable[[int, int], None] | None,
    ) -> list[np.ndarray]:
        r"""
        Generate paths sequentially on a single thread.

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
            Paths in index order.
        """
        paths = []
        # Report progress every 1% of paths
        step = max(1, nr_paths // 100)

        for i in range(nr_paths):
            paths.append(task(i))
            if progress_callback and (((i + 1) % step == 0) or (i + 1 == nr_paths)):
                progress_callback(i + 1, nr_paths)

        return paths
