"""
Execution backends for corridor simulations.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend` — Single-threaded, block-vectorised execution
    :class:`ThreadBackend` — Thread-based parallelism

Torch Backend (device-accelerated)
    :class:`TorchBackend` — Whole-run execution on ``cpu``, ``cuda`` or ``mps``

Utilities
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`transfer_to_host` — Explicit device-to-host copy of payoffs

Torch Utilities
    :func:`validate_torch_device` — Check Torch device availability
    :func:`make_torch_generator` — Create explicit Torch RNG generators
    :func:`is_mps_available` — Check Apple MPS availability
    :func:`is_cuda_available` — Check NVIDIA CUDA availability
    :data:`VALID_TORCH_DEVICES` — Supported Torch device types

Protocol
    :class:`ExecutionBackend` — Interface for custom backends
"""

from .base import ExecutionBackend, make_blocks, transfer_to_host
from .parallel import ThreadBackend
from .sequential import SequentialBackend

# Torch-related names for lazy import
_TORCH_NAMES = ("TorchBackend",)
_TORCH_BASE_NAMES = (
    "validate_torch_device",
    "is_mps_available",
    "is_cuda_available",
    "make_torch_generator",
    "VALID_TORCH_DEVICES",
)


def __getattr__(name: str):
    """Lazy import Torch backends and utilities to avoid hard torch dependency."""
    if name in _TORCH_NAMES:
        from . import torch as torch_backend  # pylint: disable=import-outside-toplevel
        return getattr(torch_backend, name)
    if name in _TORCH_BASE_NAMES:
        from . import torch_base  # pylint: disable=import-outside-toplevel
        return getattr(torch_base, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# pylint: disable=undefined-all-variable
__all__ = [
    # Protocol
    "ExecutionBackend",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    # Torch Backend (lazily imported via __getattr__)
    "TorchBackend",
    # Utility Functions
    "make_blocks",
    "transfer_to_host",
    # Torch Utilities (lazily imported via __getattr__)
    "validate_torch_device",
    "make_torch_generator",
    "is_mps_available",
    "is_cuda_available",
    "VALID_TORCH_DEVICES",
]
# pylint: enable=undefined-all-variable
