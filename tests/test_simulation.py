import functools
import logging

import numpy as np
import pytest

from mcpaths import (
    ConfigurationError,
    Ensemble,
    GeometricBrownianMotion,
    MonteCarloPathSimulator,
    StandardNormal,
)
from mcpaths.simulation import BIT_GENERATORS, PathTask, resolve_bit_generator


class TestConstruction:
    """Test simulator construction"""

    def test_accepts_dynamics_and_samplers(self, gbm, mv_gbm, standard_normal, mv_normal):
        """Test every supported source type"""
        for source in (gbm, mv_gbm, standard_normal, mv_normal):
            sim = MonteCarloPathSimulator(source, seed=1)
            assert sim.sampler is source

    def test_rejects_unknown_source(self):
        """Test an object that is neither dynamics nor sampler"""
        with pytest.raises(ConfigurationError, match="sampler must be"):
            MonteCarloPathSimulator(object(), seed=1)

    def test_innovations_of_dynamics(self, mv_gbm):
        """Test the raw innovation source of a dynamics model"""
        sim = MonteCarloPathSimulator(mv_gbm, seed=1)
        assert sim.innovations.shape == (3,)

    def test_unknown_bit_generator(self, gbm):
        """Test bit-generator names are validated"""
        with pytest.raises(ValueError, match="bit_generator must be one of"):
            MonteCarloPathSimulator(gbm, seed=1, bit_generator="xorshift")

    def test_repr(self, gbm):
        """Test repr names the bit generator"""
        assert "Philox" in repr(MonteCarloPathSimulator(gbm, seed=3))


class TestEnsembleShape:
    """Test the shape and content of simulated ensembles"""

    def test_scalar_dynamics(self, gbm):
        """Test nr_paths paths of nr_steps + 1 states"""
        paths = MonteCarloPathSimulator(gbm, seed=42).simulate_paths(20, 15)
        assert isinstance(paths, Ensemble)
        assert len(paths) == 20
        assert all(p.shape == (16,) for p in paths)

    def test_initial_state_first(self, gbm, mv_gbm):
        """Test index 0 of every path is the initial state"""
        for model in (gbm, mv_gbm):
            paths = MonteCarloPathSimulator(model, seed=42).simulate_paths(5, 3)
            for p in paths:
                np.testing.assert_array_equal(p[0], model.initial_state)

    def test_vector_dynamics(self, mv_gbm):
        """Test (nr_steps + 1, d) paths for vector dynamics"""
        paths = MonteCarloPathSimulator(mv_gbm, seed=42).simulate_paths(4, 10)
        assert paths.to_array().shape == (4, 11, 3)
        assert paths.terminal_values().shape == (4, 3)

    def test_raw_innovations(self, standard_normal, mv_normal):
        """Test raw samplers return nr_steps draws per path"""
        assert MonteCarloPathSimulator(standard_normal, seed=1).simulate_paths(3, 7)[0].shape == (7,)
        assert MonteCarloPathSimulator(mv_normal, seed=1).simulate_paths(3, 7)[0].shape == (7, 2)

    def test_zero_steps(self, gbm):
        """Test zero steps gives paths holding only the initial state"""
        paths = MonteCarloPathSimulator(gbm, seed=42).simulate_paths(3, 0)
        assert len(paths) == 3
        for p in paths:
            np.testing.assert_array_equal(p, [300.0])

    def test_zero_paths(self, gbm):
        """Test an empty ensemble"""
        paths = MonteCarloPathSimulator(gbm, seed=42).simulate_paths(0, 10)
        assert len(paths) == 0
        assert paths.nr_steps == 10

    def test_paths_are_read_only(self, gbm):
        """Test returned paths cannot be mutated"""
        paths = MonteCarloPathSimulator(gbm, seed=42).simulate_paths(2, 5)
        with pytest.raises(ValueError):
            paths[0][1] = 0.0


class TestRandomStreams:
    """Test seeding and stream layout"""

    def test_path_draws_from_its_own_substream(self, standard_normal, path_rng):
        """Test path i equals the draws of sub-stream i of the seed"""
        paths = MonteCarloPathSimulator(standard_normal, seed=42).simulate_paths(5, 8)
        for i, p in enumerate(paths):
            np.testing.assert_array_equal(p, path_rng(42, i).standard_normal(8))

    def test_same_seed_same_ensemble(self, gbm):
        """Test repeated calls reproduce the ensemble"""
        sim = MonteCarloPathSimulator(gbm, seed=7)
        a = sim.simulate_paths(10, 20).to_array()
        b = sim.simulate_paths(10, 20).to_array()
        np.testing.assert_array_equal(a, b)

    def test_different_seeds_differ(self, gbm):
        """Test distinct seeds give distinct ensembles"""
        a = MonteCarloPathSimulator(gbm, seed=1).simulate_paths(5, 5).to_array()
        b = MonteCarloPathSimulator(gbm, seed=2).simulate_paths(5, 5).to_array()
        assert not np.array_equal(a, b)

    def test_prefix_stability(self, gbm):
        """Test the first paths do not depend on how many are requested"""
        sim = MonteCarloPathSimulator(gbm, seed=3)
        small = sim.simulate_paths(5, 10).to_array()
        large = sim.simulate_paths(50, 10).to_array()
        np.testing.assert_array_equal(small, large[:5])

    def test_paths_are_distinct(self, gbm):
        """Test different paths get different innovations"""
        paths = MonteCarloPathSimulator(gbm, seed=3).simulate_paths(2, 10)
        assert not np.array_equal(paths[0], paths[1])

    def test_no_seed_differs_between_calls(self, gbm):
        """Test seed=None draws fresh entropy on every call"""
        sim = MonteCarloPathSimulator(gbm)
        a = sim.simulate_paths(3, 10)
        b = sim.simulate_paths(3, 10)
        assert not np.array_equal(a.to_array(), b.to_array())
        assert a.metadata["seed_entropy"] != b.metadata["seed_entropy"]

    @pytest.mark.parametrize("name", sorted(BIT_GENERATORS))
    def test_bit_generators(self, standard_normal, name):
        """Test every registered bit generator is reproducible"""
        sim = MonteCarloPathSimulator(standard_normal, seed=5, bit_generator=name)
        a = sim.simulate_paths(3, 4).to_array()
        np.testing.assert_array_equal(a, sim.simulate_paths(3, 4).to_array())
        assert sim.simulate_paths(1, 1).metadata["bit_generator"] == BIT_GENERATORS[name].__name__

    def test_bit_generator_changes_draws(self, standard_normal):
        """Test the algorithm choice changes the ensemble"""
        a = MonteCarloPathSimulator(standard_normal, seed=5).simulate_paths(2, 4).to_array()
        b = MonteCarloPathSimulator(standard_normal, seed=5, bit_generator="pcg64").simulate_paths(2, 4).to_array()
        assert not np.array_equal(a, b)

    def test_resolve_bit_generator(self):
        """Test names are case-insensitive and classes pass through"""
        assert resolve_bit_generator("PCG64") is np.random.PCG64
        assert resolve_bit_generator(np.random.SFC64) is np.random.SFC64
        with pytest.raises(ValueError):
            resolve_bit_generator(int)


class TestAllocationStrategies:
    """Test the three strategies produce the same ensemble"""

    @pytest.mark.parametrize("scheme", ["euler", "exact"])
    def test_scalar_gbm(self, scheme):
        """Test sample, with and in-place agree for scalar GBM"""
        model = GeometricBrownianMotion(300.0, 0.01, 50 / 365, 0.1, scheme=scheme)
        sim = MonteCarloPathSimulator(model, seed=42)
        direct = sim.simulate_paths(25, 30).to_array()
        with_fn = sim.simulate_paths_with(25, 30, functools.partial(model.generate_path, model.initial_value))
        in_place = sim.simulate_paths_apply_in_place(25, 30, model.generate_in_place)
        np.testing.assert_array_equal(direct, with_fn.to_array())
        np.testing.assert_array_equal(direct, in_place.to_array())

    def test_multivariate_gbm(self, mv_gbm):
        """Test sample, with and in-place agree for vector GBM"""
        sim = MonteCarloPathSimulator(mv_gbm, seed=42)
        direct = sim.simulate_paths(10, 12).to_array()
        with_fn = sim.simulate_paths_with(10, 12, functools.partial(mv_gbm.generate_path, mv_gbm.initial_values))
        in_place = sim.simulate_paths_apply_in_place(10, 12, mv_gbm.generate_in_place)
        np.testing.assert_array_equal(direct, with_fn.to_array())
        np.testing.assert_array_equal(direct, in_place.to_array())

    def test_with_receives_raw_innovations(self, standard_normal, path_rng):
        """Test step_fn sees the raw draws of its sub-stream"""
        seen = []

        def record(z):
            seen.append(z.copy())
            return np.cumsum(z)

        paths = MonteCarloPathSimulator(standard_normal, seed=9).simulate_paths_with(3, 5, record, backend="sequential")
        for i, z in enumerate(seen):
            np.testing.assert_array_equal(z, path_rng(9, i).standard_normal(5))
            np.testing.assert_array_equal(paths[i], np.cumsum(z))

    def test_in_place_buffer_layout(self, standard_normal, path_rng):
        """Test the in-place view holds the raw draws and row 0 the initial state"""
        seen = []

        def record(view):
            seen.append(view.copy())
            view *= 2.0

        paths = MonteCarloPathSimulator(standard_normal, seed=9).simulate_paths_apply_in_place(
            2, 4, record, initial_state=1.5, backend="sequential"
        )
        for i, p in enumerate(paths):
            draws = path_rng(9, i).standard_normal(4)
            np.testing.assert_array_equal(seen[i], draws)
            assert p[0] == 1.5
            np.testing.assert_array_equal(p[1:], 2.0 * draws)

    def test_in_place_zero_steps_still_calls_step_fn(self, gbm):
        """Test step_fn is invoked on an empty view"""
        calls = []

        def record(view):
            calls.append(view.shape)

        paths = MonteCarloPathSimulator(gbm, seed=1).simulate_paths_apply_in_place(2, 0, record, backend="sequential")
        assert calls == [(0,), (0,)]
        np.testing.assert_array_equal(paths[0], [300.0])

    def test_in_place_requires_initial_state(self, standard_normal):
        """Test raw samplers need an explicit initial state"""
        sim = MonteCarloPathSimulator(standard_normal, seed=1)
        with pytest.raises(ConfigurationError, match="initial_state is required"):
            sim.simulate_paths_apply_in_place(2, 3, lambda view: None)

    def test_in_place_initial_state_shape(self, mv_normal):
        """Test the initial state must match one innovation"""
        sim = MonteCarloPathSimulator(mv_normal, seed=1)
        with pytest.raises(ConfigurationError, match="initial_state has shape"):
            sim.simulate_paths_apply_in_place(2, 3, lambda view: None, initial_state=1.0)

    @pytest.mark.parametrize("initial_state", [100.0, 300.0001])
    def test_in_place_rejects_foreign_initial_state(self, gbm, initial_state):
        """Test a dynamics model only accepts its own initial state"""
        sim = MonteCarloPathSimulator(gbm, seed=1)
        with pytest.raises(ConfigurationError, match="differs from the dynamics model"):
            sim.simulate_paths_apply_in_place(1, 3, gbm.generate_in_place, initial_state=initial_state)

    def test_in_place_rejects_foreign_vector_initial_state(self, mv_gbm):
        """Test the vector model compares the whole initial state"""
        sim = MonteCarloPathSimulator(mv_gbm, seed=1)
        with pytest.raises(ConfigurationError, match="differs from the dynamics model"):
            sim.simulate_paths_apply_in_place(1, 3, mv_gbm.generate_in_place, initial_state=[1.0, 2.0, 4.0])
        with pytest.raises(ConfigurationError, match="differs from the dynamics model"):
            sim.simulate_paths_apply_in_place(1, 3, mv_gbm.generate_in_place, initial_state=1.0)

    def test_in_place_explicit_matching_initial_state(self, gbm):
        """Test passing the model's own initial state matches the other strategies"""
        sim = MonteCarloPathSimulator(gbm, seed=1)
        in_place = sim.simulate_paths_apply_in_place(2, 3, gbm.generate_in_place, initial_state=300.0)
        with_fn = sim.simulate_paths_with(2, 3, functools.partial(gbm.generate_path, 300.0))
        np.testing.assert_array_equal(in_place.to_array(), with_fn.to_array())
        assert in_place[0][0] == 300.0

    def test_strategy_recorded(self, gbm):
        """Test metadata names the strategy"""
        sim = MonteCarloPathSimulator(gbm, seed=1)
        assert sim.simulate_paths(1, 1).metadata["strategy"] == "sample"
        assert sim.simulate_paths_apply_in_place(1, 1, gbm.generate_in_place).metadata["strategy"] == "in_place"


class TestRunValidation:
    """Test run parameters are checked before any work"""

    def test_negative_paths(self, gbm):
        with pytest.raises(ValueError, match="nr_paths must be non-negative"):
            MonteCarloPathSimulator(gbm, seed=1).simulate_paths(-1, 10)

    def test_negative_steps(self, gbm):
        with pytest.raises(ValueError, match="nr_steps must be non-negative"):
            MonteCarloPathSimulator(gbm, seed=1).simulate_paths(10, -1)

    def test_invalid_backend(self, gbm):
        with pytest.raises(ValueError, match="backend must be one of"):
            MonteCarloPathSimulator(gbm, seed=1).simulate_paths(10, 10, backend="gpu")

    def test_invalid_workers(self, gbm):
        with pytest.raises(ValueError, match="n_workers must be positive"):
            MonteCarloPathSimulator(gbm, seed=1).simulate_paths(10, 10, n_workers=0)


class TestAutoBackend:
    """Test resolution of the 'auto' backend"""

    def test_small_job_is_sequential(self, gbm):
        """Test fewer paths than the threshold stay sequential"""
        paths = MonteCarloPathSimulator(gbm, seed=1).simulate_paths(10, 2, n_workers=4)
        assert paths.metadata["backend"] == "sequential"

    def test_single_worker_is_sequential(self, gbm):
        """Test one worker never goes parallel"""
        sim = MonteCarloPathSimulator(gbm, seed=1)
        assert sim._resolve_backend_type("auto", 10**6, 1) == "sequential"

    def test_large_job_goes_parallel(self, gbm, monkeypatch):
        """Test threads on POSIX and processes on Windows"""
        sim = MonteCarloPathSimulator(gbm, seed=1)
        monkeypatch.setattr("mcpaths.simulation.is_windows_platform", lambda: False)
        assert sim._resolve_backend_type("auto", sim._PARALLEL_THRESHOLD, 4) == "thread"
        monkeypatch.setattr("mcpaths.simulation.is_windows_platform", lambda: True)
        assert sim._resolve_backend_type("auto", sim._PARALLEL_THRESHOLD, 4) == "process"

    def test_explicit_backend_kept(self, gbm):
        sim = MonteCarloPathSimulator(gbm, seed=1)
        assert sim._resolve_backend_type("thread", 1, 4) == "thread"


class TestPathTask:
    """Test the picklable unit of work"""

    def test_task_is_deterministic(self, standard_normal):
        """Test calling a task twice yields the same path"""
        root = np.random.SeedSequence(11)
        task = PathTask(
            sampler=standard_normal,
            innovations=standard_normal,
            nr_steps=4,
            entropy=root.entropy,
            spawn_key=tuple(root.spawn_key),
            bit_generator=np.random.Philox,
        )
        np.testing.assert_array_equal(task(3), task(3))
        assert not np.array_equal(task(3), task(4))


class TestLoggingAndMetadata:
    """Test ambient reporting"""

    def test_logs_simulation(self, gbm, caplog):
        """Test an info record is emitted per call"""
        with caplog.at_level(logging.INFO, logger="mcpaths.simulation"):
            MonteCarloPathSimulator(gbm, seed=1).simulate_paths(3, 2)
        assert "Simulating 3 paths of 2 steps sequentially" in caplog.text

    def test_metadata(self, gbm):
        """Test seed and timing are recorded"""
        paths = MonteCarloPathSimulator(gbm, seed=42).simulate_paths(3, 2)
        assert paths.metadata["seed"] == 42
        assert paths.metadata["seed_entropy"] == 42
        assert paths.execution_time >= 0.0
        assert "Number of paths: 3" in paths.result_to_string()

    def test_progress_callback(self, standard_normal):
        """Test sequential progress ends at the total"""
        calls = []
        MonteCarloPathSimulator(standard_normal, seed=1).simulate_paths(
            250, 1, backend="sequential", progress_callback=lambda done, total: calls.append((done, total))
        )
        assert calls[-1] == (250, 250)
        assert [c[0] for c in calls] == sorted(c[0] for c in calls)


def test_standard_normal_vector_simulation():
    """Test raw vector innovations through the simulator"""
    paths = MonteCarloPathSimulator(StandardNormal(dim=4), seed=0).simulate_paths(2, 3)
    assert paths.to_array().shape == (2, 3, 4)
