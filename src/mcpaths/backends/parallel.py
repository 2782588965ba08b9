r"""
Parallel execution backends for path simulation.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` — Process-based parallelism using ProcessPoolExecutor

Both split ``[0, nr_paths)`` into blocks and reassemble the paths in index
order, so the ensemble equals the one produced by
:class:`~mcpaths.backends.SequentialBackend`.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable

import numpy as np

from .base import make_blocks, worker_run_chunk

if TYPE_CHECKING:
    from ..simulation import PathTask

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Default configuration constants
_CHUNKS_PER_WORKER = 8  # Number of chunks per worker for load balancing


class _BlockBackend:
    """Shared worker-count and block-layout handling."""

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def _prepare_blocks(self, nr_paths: int) -> list[tuple[int, int]]:
        """Split the path indices into roughly ``n_workers * chunks_per_worker`` blocks."""
        block_size = max(1, nr_paths // (self.n_workers * self.chunks_per_worker))
        return make_blocks(nr_paths, block_size)


class ThreadBackend(_BlockBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor` for parallel execution.
    Effective when NumPy releases the GIL (bulk normal draws, matrix products).

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.
    chunks_per_worker : int, default 8
        Number of work chunks per worker for load balancing.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> paths = backend.run(task, nr_paths=100_000, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        task: "PathTask",
        nr_paths: int,
        progress_callback: Callable[[int, int], None] | None,
    ) -> list[np.ndarray]:
        r"""
        Generate paths in parallel using threads.

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
        blocks = self._prepare_blocks(nr_paths)
        paths: list[np.ndarray | None] = [None] * nr_paths
        if not blocks:
            return []
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        def _work(blk):
            a, b = blk
            return (a, b), worker_run_chunk(task, a, b)

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(_work, blk) for blk in blocks]
            for f in as_completed(futs):
                (i, j), chunk = f.result()
                paths[i:j] = chunk
                completed += j - i
                if progress_callback:
                    progress_callback(completed, nr_paths)

        return paths  # type: ignore[return-value]


class ProcessBackend(_BlockBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context
    for parallel execution. Required on Windows for true parallelism.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.
    chunks_per_worker : int, default 8
        Number of work chunks per worker for load balancing.

    Notes
    -----
    The task, and therefore the sampler and any step function, must be
    pickleable. Lambdas and closures are not; use module-level functions or
    :func:`functools.partial` over bound methods.

    Examples
    --------
    >>> backend = ProcessBackend(n_workers=4)
    >>> paths = backend.run(task, nr_paths=100_000, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        task: "PathTask",
        nr_paths: int,
        progress_callback: Callable[[int, int], None] | None,
    ) -> list[np.ndarray]:
        r"""
        Generate paths in parallel using processes.

        Parameters
        ----------
        task : PathTask
            Callable mapping a path index to a path. Must be pickleable.
        nr_paths : int
            Number of paths to generate.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        list[numpy.ndarray]
            Paths in index order.
        """
        blocks = self._prepare_blocks(nr_paths)
        paths: list[np.ndarray | None] = [None] * nr_paths
        if not blocks:
            return []
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = []
            for i, j in blocks:
                f = ex.submit(worker_run_chunk, task, i, j)
                f.blk = (i, j)  # type: ignore[attr-defined]
                futs.append(f)
            try:
                for f in as_completed(futs):
                    i, j = f.blk  # type: ignore[attr-defined]
                    paths[i:j] = f.result()
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, nr_paths)
            except KeyboardInterrupt:  # pragma: no cover
                for f in futs:
                    f.cancel()
                raise

        logger.debug("Process backend collected %d paths from %d blocks", nr_paths, len(blocks))
        return paths  # type: ignore[return-value]
