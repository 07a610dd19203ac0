r"""
Error hierarchy for corridor simulations.

Every error is terminal for the run that raised it and records the
``phase`` that failed so callers can decide on their own recovery policy
(for example, retrying with fewer paths).

Classes
    :class:`CorridorError` — Base class, carries :attr:`CorridorError.phase`
    :class:`ConfigurationError` — Invalid parameters or memory budget exceeded
    :class:`GenerationError` — Random stream could not be produced
    :class:`ExecutionError` — Simulation or aggregation pass could not complete
    :class:`TransferError` — Copy between device and host memory failed
"""

from __future__ import annotations

__all__ = [
    "CorridorError",
    "ConfigurationError",
    "GenerationError",
    "ExecutionError",
    "TransferError",
]


class CorridorError(Exception):
    """Base exception for corridor Monte Carlo runs."""

    default_phase = "run"

    def __init__(self, message: str, *, phase: str | None = None):
        super().__init__(message)
        self.phase = phase or self.default_phase


class ConfigurationError(CorridorError, ValueError):
    """Raised before generation when a parameter or the memory budget is invalid."""

    default_phase = "configuration"


class GenerationError(CorridorError, RuntimeError):
    """Raised when the random source cannot produce the requested stream."""

    default_phase = "generation"


class ExecutionError(CorridorError, RuntimeError):
    """Raised when the simulation or aggregation pass cannot complete."""

    default_phase = "simulation"


class TransferError(ExecutionError):
    """Raised when payoffs or shocks cannot be moved between memory spaces."""

    default_phase = "transfer"
