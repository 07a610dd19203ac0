import numpy as np
import pytest

from corridormc.config import SimulationConfig
from corridormc.layouts import ContiguousLayout, StridedLayout
from corridormc.random_source import NumpyRandomSource


@pytest.fixture
def small_config():
    """Small run: a ragged last strided group (1000 = 15 * 64 + 40)."""
    return SimulationConfig(num_steps=20, num_paths=1000)


@pytest.fixture
def tiny_config():
    """Fixture small enough for exhaustive index checks."""
    return SimulationConfig(num_steps=3, num_paths=10)


@pytest.fixture
def small_buffer(small_config):
    """Seeded shock buffer sized for ``small_config``."""
    return NumpyRandomSource(small_config.dtype).generate(small_config.buffer_size, seed=1234)


@pytest.fixture
def strided_layout(small_config):
    return StridedLayout(small_config.num_steps, small_config.num_paths, group_width=64)


@pytest.fixture
def contiguous_layout(small_config):
    return ContiguousLayout(small_config.num_steps, small_config.num_paths)


@pytest.fixture
def sample_payoffs():
    """Digital payoffs of 1000 paths, roughly 70% inside the corridor."""
    rng = np.random.default_rng(42)
    inside = rng.random(1000) < 0.7
    return np.where(inside, np.float32(0.95122942), np.float32(0.0)).astype(np.float32)


@pytest.fixture
def logical_shocks(small_config):
    """Logical ``(P, N, 2)`` shocks, independent of any layout."""
    rng = np.random.default_rng(7)
    return rng.standard_normal((small_config.num_paths, small_config.num_steps, 2), dtype=np.float32)
