"""corridormc package public API."""

from .aggregation import AggregateResult, MomentAccumulator, aggregate
from .config import SimulationConfig
from .exceptions import (
    ConfigurationError,
    CorridorError,
    ExecutionError,
    GenerationError,
    TransferError,
)
from .kernel import corridor_payoff, evolve_levels, simulate_path, simulate_paths
from .layouts import ContiguousLayout, LayoutStrategy, StridedLayout, make_layout
from .random_source import NumpyRandomSource, TorchRandomSource
from .simulation import CorridorResult, CorridorSimulation
from .utils import autocrit, t_crit, z_crit

__all__ = [
    "SimulationConfig",
    "CorridorSimulation",
    "CorridorResult",
    "AggregateResult",
    "MomentAccumulator",
    "aggregate",
    "LayoutStrategy",
    "StridedLayout",
    "ContiguousLayout",
    "make_layout",
    "NumpyRandomSource",
    "TorchRandomSource",
    "simulate_path",
    "simulate_paths",
    "evolve_levels",
    "corridor_payoff",
    "CorridorError",
    "ConfigurationError",
    "GenerationError",
    "ExecutionError",
    "TransferError",
    "z_crit",
    "t_crit",
    "autocrit",
]

__version__ = "0.1.0"
