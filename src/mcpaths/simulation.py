r"""
Monte Carlo path simulator and orchestration logic.

This module provides:

Classes
    :class:`MonteCarloPathSimulator` — Couples a random source to a sampler or dynamics model
    :class:`PathTask` — Picklable unit of work mapping a path index to a path

The simulator handles:

- Reproducible seeding via :class:`numpy.random.SeedSequence`
- Three allocation strategies: direct sampling, a caller-supplied step
  function, and in-place transformation of a reused buffer
- Sequential and parallel execution (delegated to backends)

Random streams
--------------

Path :math:`i` draws from its own generator seeded with
``SeedSequence(entropy=root.entropy, spawn_key=(i,))``. Draws are therefore
consumed path-major and step-minor, and the ensemble is identical whichever
allocation strategy or backend produced it.

Example
-------
>>> from mcpaths import GeometricBrownianMotion, MonteCarloPathSimulator
>>> gbm = GeometricBrownianMotion(300.0, drift=0.01, vola=50 / 365, dt=0.1)
>>> sim = MonteCarloPathSimulator(gbm, seed=42)
>>> paths = sim.simulate_paths(1_000, 200)
>>> len(paths), paths[0].shape
(1000, (201,))

See Also
--------
mcpaths.backends
    Execution backends for sequential and parallel execution.
mcpaths.evaluation
    Reduction of an ensemble to statistics.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np

from .backends import ProcessBackend, SequentialBackend, ThreadBackend, is_windows_platform
from .core import Ensemble
from .distributions import Sampler
from .exceptions import ConfigurationError
from .sde.base import is_dynamics

logger = logging.getLogger(__name__)  # pragma: no cover
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = ["MonteCarloPathSimulator", "PathTask", "BIT_GENERATORS", "resolve_bit_generator"]

BIT_GENERATORS: dict[str, type[np.random.BitGenerator]] = {
    "philox": np.random.Philox,
    "pcg64": np.random.PCG64,
    "pcg64dxsm": np.random.PCG64DXSM,
    "sfc64": np.random.SFC64,
    "mt19937": np.random.MT19937,
}

_STRATEGIES = ("sample", "with", "in_place")


def resolve_bit_generator(bit_generator: str | type[np.random.BitGenerator]) -> type[np.random.BitGenerator]:
    r"""
    Map a bit-generator name or class to the class.

    Parameters
    ----------
    bit_generator : str or type
        One of the keys of :data:`BIT_GENERATORS` (case-insensitive) or a
        :class:`numpy.random.BitGenerator` subclass.

    Raises
    ------
    ValueError
        For unknown names or classes that are not bit generators.
    """
    if isinstance(bit_generator, str):
        try:
            return BIT_GENERATORS[bit_generator.lower()]
        except KeyError:
            raise ValueError(
                f"bit_generator must be one of {tuple(BIT_GENERATORS)}, got '{bit_generator}'"
            ) from None
    if isinstance(bit_generator, type) and issubclass(bit_generator, np.random.BitGenerator):
        return bit_generator
    raise ValueError(f"bit_generator must be a name or a numpy BitGenerator subclass, got {bit_generator!r}")


@dataclass(frozen=True)
class PathTask:
    r"""
    Everything needed to generate path ``i`` of one simulation call.

    Instances are immutable and, as long as ``sampler`` and ``step_fn`` are,
    pickleable, which lets :class:`~mcpaths.backends.ProcessBackend` ship them
    to worker processes.

    Attributes
    ----------
    sampler : Sampler or Dynamics
        Source used by the ``"sample"`` strategy.
    innovations : Sampler
        Raw innovation source used by the ``"with"`` and ``"in_place"`` strategies.
    nr_steps : int
        Steps per path.
    entropy : int or sequence of int
        Root entropy of the call.
    spawn_key : tuple of int
        Spawn key of the root :class:`~numpy.random.SeedSequence`.
    bit_generator : type
        :class:`numpy.random.BitGenerator` subclass.
    strategy : {"sample", "with", "in_place"}
        Allocation strategy.
    step_fn : callable, optional
        Caller-supplied transformation for ``"with"`` and ``"in_place"``.
    initial_state : float or ndarray, optional
        State written at index 0 of in-place buffers.
    """

    sampler: Any
    innovations: Any
    nr_steps: int
    entropy: Any
    spawn_key: tuple[int, ...]
    bit_generator: type
    strategy: str = "sample"
    step_fn: Callable[..., Any] | None = None
    initial_state: Any = None

    def rng(self, index: int) -> np.random.Generator:
        """Independent generator for path ``index``."""
        seed_seq = np.random.SeedSequence(entropy=self.entropy, spawn_key=(*self.spawn_key, index))
        return np.random.Generator(self.bit_generator(seed_seq))

    def __call__(self, index: int) -> np.ndarray:
        rng = self.rng(index)
        if self.strategy == "sample":
            return np.asarray(self.sampler.sample_path(rng, self.nr_steps), dtype=float)
        if self.strategy == "with":
            innovations = self.innovations.sample_path(rng, self.nr_steps)
            return np.asarray(self.step_fn(innovations), dtype=float)
        # Draw straight into the buffer and let step_fn overwrite the innovations
        buffer = np.empty((self.nr_steps + 1, *self.innovations.shape), dtype=float)
        buffer[0] = self.initial_state
        if self.nr_steps:
            self.innovations.fill_path(rng, buffer[1:])
        self.step_fn(buffer[1:])
        return buffer


class MonteCarloPathSimulator:
    r"""
    Generate ensembles of paths from a sampler or a dynamics model.

    Parameters
    ----------
    sampler : Sampler or Dynamics
        Innovation source (:class:`~mcpaths.distributions.StandardNormal`,
        :class:`~mcpaths.distributions.MultivariateNormal`) or dynamics model
        (:class:`~mcpaths.sde.GeometricBrownianMotion`, ...).
    seed : int, optional
        Master seed. ``None`` draws fresh OS entropy on every call, which opts
        out of reproducibility; the entropy used is stored in
        ``Ensemble.metadata["seed_entropy"]``.
    bit_generator : str or type, default ``"philox"``
        Random source algorithm, see :data:`BIT_GENERATORS`.

    Notes
    -----
    **Backends.**
    Every ``simulate_*`` method accepts ``backend`` in
    ``{"auto", "sequential", "thread", "process"}``. ``"auto"`` stays
    sequential for fewer than :attr:`_PARALLEL_THRESHOLD` paths and otherwise
    picks threads on POSIX and processes on Windows. All backends return the
    same ensemble.

    **Process backend.**
    Sampler and step function must be pickleable.
    """

    # Minimum number of paths for "auto" to go parallel
    _PARALLEL_THRESHOLD = 20_000
    # Number of chunks per worker for load balancing
    _CHUNKS_PER_WORKER = 8
    _VALID_BACKENDS = ("auto", "sequential", "thread", "process")

    def __init__(
        self,
        sampler: Any,
        seed: int | None = None,
        *,
        bit_generator: str | type[np.random.BitGenerator] = "philox",
    ):
        if not (is_dynamics(sampler) or isinstance(sampler, Sampler)):
            raise ConfigurationError(
                f"sampler must be a dynamics model or an innovation source, got {type(sampler).__name__}"
            )
        self.sampler = sampler
        self.seed = seed
        self.bit_generator = resolve_bit_generator(bit_generator)

    def __repr__(self) -> str:
        return (
            f"MonteCarloPathSimulator(sampler={self.sampler!r}, seed={self.seed}, "
            f"bit_generator={self.bit_generator.__name__})"
        )

    @property
    def innovations(self) -> Sampler:
        """Raw innovation source: the sampler, or the base distribution of a dynamics model."""
        if is_dynamics(self.sampler):
            return self.sampler.base_distribution()
        return self.sampler

    def simulate_paths(
        self,
        nr_paths: int,
        nr_steps: int,
        *,
        backend: str = "auto",
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Ensemble:
        r"""
        Draw every path directly from the sampler.

        Parameters
        ----------
        nr_paths : int
            Number of paths. ``0`` returns an empty ensemble.
        nr_steps : int
            Steps per path. With a dynamics model each path has
            ``nr_steps + 1`` states; with an innovation source each path
            holds ``nr_steps`` draws.
        backend : {"auto", "sequential", "thread", "process"}, default ``"auto"``
            Execution backend.
        n_workers : int, optional
            Worker count for parallel backends. Defaults to CPU count.
        progress_callback : callable, optional
            A function ``f(completed: int, total: int)`` called periodically.

        Returns
        -------
        Ensemble
        """
        return self._simulate(
            "sample", nr_paths, nr_steps, backend, n_workers, progress_callback
        )

    def simulate_paths_with(
        self,
        nr_paths: int,
        nr_steps: int,
        step_fn: Callable[[np.ndarray], np.ndarray],
        *,
        backend: str = "auto",
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Ensemble:
        r"""
        Draw raw innovations and let ``step_fn`` turn them into a path.

        Parameters
        ----------
        nr_paths, nr_steps : int
            Ensemble size and steps per path.
        step_fn : callable
            ``step_fn(innovations) -> path``. Receives a fresh array of shape
            ``(nr_steps,)`` or ``(nr_steps, d)``, e.g.
            ``functools.partial(gbm.generate_path, s0)``.
        backend, n_workers, progress_callback :
            See :meth:`simulate_paths`.

        Returns
        -------
        Ensemble
        """
        return self._simulate(
            "with", nr_paths, nr_steps, backend, n_workers, progress_callback, step_fn=step_fn
        )

    def simulate_paths_apply_in_place(
        self,
        nr_paths: int,
        nr_steps: int,
        step_fn: Callable[[np.ndarray], None],
        initial_state: Any = None,
        *,
        backend: str = "auto",
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Ensemble:
        r"""
        Draw innovations into a per-path buffer and transform it in place.

        Each path owns one buffer of ``nr_steps + 1`` rows. Row 0 receives
        ``initial_state``, rows ``1..`` receive the raw innovations, and
        ``step_fn(buffer[1:])`` must overwrite that view with the realized
        states, e.g. ``gbm.generate_in_place``.

        Parameters
        ----------
        nr_paths, nr_steps : int
            Ensemble size and steps per path.
        step_fn : callable
            ``step_fn(view) -> None``; mutates ``view`` in place.
        initial_state : float or array_like, optional
            State at index 0. Required for innovation sources. For a dynamics
            model it defaults to, and must equal, the model's ``initial_state``.
        backend, n_workers, progress_callback :
            See :meth:`simulate_paths`.

        Returns
        -------
        Ensemble

        Raises
        ------
        ConfigurationError
            If no initial state is available, it differs from the dynamics
            model's own, or its shape does not match one innovation.
        """
        if is_dynamics(self.sampler):
            # generate_in_place always steps from the model's own initial state
            if initial_state is not None and not np.array_equal(initial_state, self.sampler.initial_state):
                raise ConfigurationError(
                    f"initial_state {initial_state!r} differs from the dynamics model's "
                    f"initial state {self.sampler.initial_state!r}"
                )
            initial_state = self.sampler.initial_state
        elif initial_state is None:
            raise ConfigurationError("initial_state is required when the sampler is not a dynamics model")
        if np.shape(initial_state) != tuple(self.innovations.shape):
            raise ConfigurationError(
                f"initial_state has shape {np.shape(initial_state)} "
                f"but innovations have shape {tuple(self.innovations.shape)}"
            )
        return self._simulate(
            "in_place",
            nr_paths,
            nr_steps,
            backend,
            n_workers,
            progress_callback,
            step_fn=step_fn,
            initial_state=initial_state,
        )

    def _validate_run_params(
        self,
        nr_paths: int,
        nr_steps: int,
        n_workers: int | None,
        backend: str,
    ) -> None:
        """Validate parameters shared by the ``simulate_*`` methods."""
        if nr_paths < 0:
            raise ValueError("nr_paths must be non-negative")
        if nr_steps < 0:
            raise ValueError("nr_steps must be non-negative")
        if n_workers is not None and n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if backend not in self._VALID_BACKENDS:
            raise ValueError(f"backend must be one of {self._VALID_BACKENDS}, got '{backend}'")

    def _resolve_backend_type(self, backend: str, nr_paths: int, n_workers: int) -> str:
        """
        Resolve ``"auto"`` to a concrete backend.

        Small jobs or a single worker stay sequential. Otherwise threads on
        POSIX-like platforms and processes on Windows.
        """
        if backend != "auto":
            return backend
        if n_workers <= 1 or nr_paths < self._PARALLEL_THRESHOLD:
            return "sequential"
        if is_windows_platform():
            logger.info("Parallel backend 'auto' resolved to 'process' on Windows platform.")
            return "process"
        return "thread"

    def _create_backend(
        self, backend: str, n_workers: int
    ) -> SequentialBackend | ThreadBackend | ProcessBackend:
        """Instantiate the execution backend for a resolved backend name."""
        if backend == "sequential":
            return SequentialBackend()
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers, chunks_per_worker=self._CHUNKS_PER_WORKER)
        return ProcessBackend(n_workers=n_workers, chunks_per_worker=self._CHUNKS_PER_WORKER)

    def _simulate(
        self,
        strategy: str,
        nr_paths: int,
        nr_steps: int,
        backend: str,
        n_workers: int | None,
        progress_callback: Callable[[int, int], None] | None,
        *,
        step_fn: Callable[..., Any] | None = None,
        initial_state: Any = None,
    ) -> Ensemble:
        """Run one simulation call with the given strategy and assemble the ensemble."""
        if strategy not in _STRATEGIES:
            raise ValueError(f"strategy must be one of {_STRATEGIES}, got '{strategy}'")
        self._validate_run_params(nr_paths, nr_steps, n_workers, backend)
        if n_workers is None:
            n_workers = mp.cpu_count()  # pragma: no cover

        root = np.random.SeedSequence(self.seed)
        task = PathTask(
            sampler=self.sampler,
            innovations=self.innovations,
            nr_steps=nr_steps,
            entropy=root.entropy,
            spawn_key=tuple(root.spawn_key),
            bit_generator=self.bit_generator,
            strategy=strategy,
            step_fn=step_fn,
            initial_state=initial_state,
        )

        resolved = self._resolve_backend_type(backend, nr_paths, n_workers)
        if resolved == "sequential":
            logger.info("Simulating %d paths of %d steps sequentially...", nr_paths, nr_steps)
        else:
            logger.info(
                "Simulating %d paths of %d steps in parallel using %s backend with %d workers...",
                nr_paths, nr_steps, resolved, n_workers,
            )

        t0 = time.time()
        paths = self._create_backend(resolved, n_workers).run(task, nr_paths, progress_callback)
        for path in paths:
            path.flags.writeable = False
        exec_time = time.time() - t0
        logger.debug("Simulated %d paths in %.3f seconds", nr_paths, exec_time)

        meta = {
            "strategy": strategy,
            "backend": resolved,
            "bit_generator": self.bit_generator.__name__,
            "seed": self.seed,
            "seed_entropy": root.entropy,
            "timestamp": time.time(),
        }
        return Ensemble(paths=paths, nr_steps=nr_steps, execution_time=exec_time, metadata=meta)
