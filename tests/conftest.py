import numpy as np
import pytest

from embedding_flame.core.flame_types import derive_params
from embedding_flame.io.config import ConfigManager, EnvironmentConfig


@pytest.fixture
def sample_vector():
    """A fixed 64-dimensional embedding-like vector."""
    return np.random.default_rng(0).uniform(-1.0, 1.0, 64).tolist()


@pytest.fixture
def sample_params(sample_vector):
    return derive_params(sample_vector)


@pytest.fixture
def zero_params():
    # Every affine map sends points to the origin, so only the variations'
    # images of (0, 0) are ever recorded.
    return derive_params([0.0] * 8)


@pytest.fixture
def config_manager():
    """ConfigManager isolated from the process environment."""
    return ConfigManager(EnvironmentConfig(environ={}))
