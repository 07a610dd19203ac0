r"""
Base Torch utilities for device-accelerated corridor simulations.

This module provides shared utilities for the Torch backend and random source:

Functions
    :func:`import_torch` — Import PyTorch with an actionable error
    :func:`make_torch_generator` — Create explicit Torch RNG generators
    :func:`is_cuda_available` — Check NVIDIA CUDA availability
    :func:`is_mps_available` — Check Apple MPS availability
    :func:`validate_torch_device` — Check Torch device availability

Constants
    :data:`VALID_TORCH_DEVICES` — Supported Torch device types

Notes
-----
**RNG discipline.** All random sampling uses explicit ``torch.Generator``
objects seeded from :class:`numpy.random.SeedSequence`. Never uses global
Torch RNG (``torch.manual_seed``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    import torch

logger = logging.getLogger(__name__)

__all__ = [
    "VALID_TORCH_DEVICES",
    "import_torch",
    "make_torch_generator",
    "is_cuda_available",
    "is_mps_available",
    "validate_torch_device",
]

# Valid Torch device types
VALID_TORCH_DEVICES = ("cpu", "mps", "cuda")


def import_torch():
    """
    Import and return the torch module.

    Returns
    -------
    module
        The torch module.

    Raises
    ------
    ImportError
        If PyTorch is not installed.
    """
    try:
        import torch as th  # pylint: disable=import-outside-toplevel
        return th
    except ImportError as e:
        raise ImportError(
            "Torch backend requires PyTorch. Install with: pip install corridormc[gpu]"
        ) from e


def is_cuda_available() -> bool:
    """Return True if PyTorch is installed and a CUDA device is usable."""
    try:
        th = import_torch()
    except ImportError:
        return False
    return bool(th.cuda.is_available())


def is_mps_available() -> bool:
    """Return True if PyTorch is installed and Apple MPS is usable."""
    try:
        th = import_torch()
    except ImportError:
        return False
    mps = getattr(th.backends, "mps", None)
    return bool(mps is not None and mps.is_available())


def validate_torch_device(device_type: str, device_index: int = 0) -> None:
    r"""
    Validate that the requested Torch device is available.

    Parameters
    ----------
    device_type : str
        Device type to validate (``"cpu"``, ``"mps"``, ``"cuda"``).
    device_index : int, default 0
        CUDA device index; ignored for other devices.

    Raises
    ------
    ConfigurationError
        If the device type is not recognized or not available on this system.
    ImportError
        If PyTorch is not installed.
    """
    if device_type not in VALID_TORCH_DEVICES:
        raise ConfigurationError(
            f"torch_device must be one of {VALID_TORCH_DEVICES}, got '{device_type}'"
        )

    th = import_torch()

    if device_type == "mps" and not is_mps_available():
        raise ConfigurationError("MPS device requested but not available on this system.")

    if device_type == "cuda":
        if not th.cuda.is_available():
            raise ConfigurationError(
                "CUDA device requested but not available. "
                "Ensure NVIDIA drivers and CUDA toolkit are installed."
            )
        device_count = th.cuda.device_count()
        if device_index >= device_count:
            raise ConfigurationError(
                f"CUDA device {device_index} requested but only {device_count} device(s) available."
            )


def make_torch_generator(
    device: "torch.device",
    seed_seq: np.random.SeedSequence | None,
) -> "torch.Generator":
    r"""
    Create an explicit Torch generator seeded from a SeedSequence.

    Parameters
    ----------
    device : torch.device
        Device for the generator (``"cpu"``, ``"mps"``, or ``"cuda"``).
    seed_seq : SeedSequence or None
        NumPy seed sequence to derive the Torch seed from.

    Returns
    -------
    torch.Generator
        Explicitly seeded generator for reproducible sampling.

    Notes
    -----
    **Seed derivation:**

    .. code-block:: python

        child_seed = seed_seq.spawn(1)[0]
        seed_int = child_seed.generate_state(1, dtype="uint64")[0]
        generator.manual_seed(seed_int)

    ``spawn`` advances the parent's child counter, so the child is derived
    from a copy of ``seed_seq``; repeated calls with equal sequences return
    generators in the same state.
    """
    th = import_torch()

    generator = th.Generator(device=device)

    if seed_seq is not None:
        parent = np.random.SeedSequence(seed_seq.entropy, spawn_key=seed_seq.spawn_key)
        child_seed = parent.spawn(1)[0]
        # Torch seeds are signed 64-bit on some devices
        seed_int = int(child_seed.generate_state(1, dtype=np.uint64)[0]) & 0x7FFF_FFFF_FFFF_FFFF
        generator.manual_seed(seed_int)
    else:
        logger.warning(
            "No seed set for Torch backend; results will not be reproducible. "
            "Call set_seed() before run() for deterministic simulations."
        )

    return generator
