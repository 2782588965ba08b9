import multiprocessing as mp

import numpy as np
import pytest

from mcpaths import (
    GeometricBrownianMotion,
    MultivariateGeometricBrownianMotion,
    MultivariateNormal,
    StandardNormal,
)


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def gbm():
    """Scalar GBM with the textbook parameters used throughout the tests."""
    return GeometricBrownianMotion(300.0, drift=0.01, vola=50 / 365, dt=0.1)


@pytest.fixture
def gbm_exact():
    """Scalar GBM stepping with the exact log-normal transition."""
    return GeometricBrownianMotion(300.0, drift=0.01, vola=50 / 365, dt=0.1, scheme="exact")


@pytest.fixture
def cholesky_3d():
    return np.array(
        [
            [1.0, 0.5, 0.1],
            [0.0, 0.6, 0.7],
            [0.0, 0.0, 0.8],
        ]
    )


@pytest.fixture
def mv_gbm(cholesky_3d):
    """Three correlated assets."""
    return MultivariateGeometricBrownianMotion(
        [1.0, 2.0, 3.0],
        [0.1, 0.2, 0.3],
        cholesky_3d * 0.1,
        dt=0.01,
    )


@pytest.fixture
def standard_normal():
    return StandardNormal()


@pytest.fixture
def mv_normal():
    """Correlated 2-d normal with covariance [[1, 0.5], [0.5, 4.25]]."""
    return MultivariateNormal([0.0, 1.0], [[1.0, 0.0], [0.5, 2.0]])


@pytest.fixture
def path_rng():
    """Factory for the generator of path ``index`` of a simulation seeded with ``seed``."""

    def _make(seed, index):
        seed_seq = np.random.SeedSequence(entropy=seed, spawn_key=(index,))
        return np.random.Generator(np.random.Philox(seed_seq))

    return _make
