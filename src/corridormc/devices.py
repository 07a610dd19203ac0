r"""
Device capability query and pre-flight memory sizing.

A run holds the full shock buffer (:math:`2NP` values) and the payoff
collection (:math:`P` values) in the memory of the device that evaluates the
paths. :func:`check_memory_budget` refuses to start a run that would not fit,
before any random number is generated.

Classes
    :class:`DeviceInfo` — Read-only description of a compute device

Functions
    :func:`query_device` — Describe the CPU or a Torch device
    :func:`required_bytes` — Working memory of a run
    :func:`check_memory_budget` — Raise if a run does not fit
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass
from typing import Optional

from .config import SimulationConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "DeviceInfo",
    "query_device",
    "required_bytes",
    "check_memory_budget",
    "DEFAULT_MEMORY_FRACTION",
]

# Share of free device memory a run may claim
DEFAULT_MEMORY_FRACTION = 0.75

# Linux kernel memory report, source of MemAvailable
_MEMINFO_PATH = "/proc/meminfo"


@dataclass(frozen=True)
class DeviceInfo:
    """
    Capabilities of a compute device.

    Attributes
    ----------
    device_type : str
        ``"cpu"``, ``"cuda"`` or ``"mps"``.
    name : str
        Human-readable device name.
    total_memory : int or None
        Total memory in bytes, ``None`` when unknown.
    free_memory : int or None
        Currently available memory in bytes, ``None`` when unknown.
    index : int
        Device index (CUDA only; 0 elsewhere).
    """

    device_type: str
    name: str
    total_memory: Optional[int] = None
    free_memory: Optional[int] = None
    index: int = 0


def _meminfo_available() -> Optional[int]:
    """``MemAvailable`` of ``/proc/meminfo`` in bytes, ``None`` where absent."""
    try:
        with open(_MEMINFO_PATH, encoding="ascii") as fh:
            for line in fh:
                if line.startswith("MemAvailable:"):
                    return int(line.split()[1]) * 1024
    except (OSError, ValueError, IndexError):
        logger.debug("Cannot read %s", _MEMINFO_PATH)
    return None


def _cpu_info() -> DeviceInfo:
    total = free = None
    try:
        page = os.sysconf("SC_PAGE_SIZE")
        total = page * os.sysconf("SC_PHYS_PAGES")
        free = page * os.sysconf("SC_AVPHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        # Windows and some BSDs lack these sysconf names
        logger.debug("Host memory size unavailable on %s", platform.system())
    # SC_AVPHYS_PAGES is MemFree; MemAvailable also counts reclaimable page cache
    available = _meminfo_available()
    if available is not None:
        free = available if total is None else min(available, total)
    return DeviceInfo(
        device_type="cpu",
        name=platform.processor() or platform.machine() or "cpu",
        total_memory=total,
        free_memory=free,
    )


def query_device(device_type: str = "cpu", device_index: int = 0) -> DeviceInfo:
    r"""
    Describe a compute device.

    Parameters
    ----------
    device_type : {"cpu", "cuda", "mps"}, default "cpu"
        Device to describe. ``"cpu"`` reports host memory via :func:`os.sysconf`,
        with free memory taken from ``MemAvailable`` in ``/proc/meminfo`` where
        the kernel provides it.
    device_index : int, default 0
        CUDA device index.

    Returns
    -------
    DeviceInfo

    Raises
    ------
    ConfigurationError
        If the device type is unknown or unavailable.
    ImportError
        If a Torch device is requested and PyTorch is not installed.

    Examples
    --------
    >>> info = query_device("cpu")
    >>> info.device_type
    'cpu'
    """
    if device_type == "cpu":
        return _cpu_info()

    # pylint: disable-next=import-outside-toplevel
    from .backends.torch_base import import_torch, validate_torch_device

    validate_torch_device(device_type, device_index)
    th = import_torch()

    if device_type == "cuda":
        free, total = th.cuda.mem_get_info(device_index)
        info = DeviceInfo(
            device_type="cuda",
            name=th.cuda.get_device_name(device_index),
            total_memory=int(total),
            free_memory=int(free),
            index=device_index,
        )
    else:
        total = free = None
        mps = getattr(th, "mps", None)
        if mps is not None and hasattr(mps, "recommended_max_memory"):
            total = int(mps.recommended_max_memory())
            free = total - int(mps.current_allocated_memory())
        info = DeviceInfo(device_type="mps", name="Apple MPS", total_memory=total, free_memory=free)

    logger.debug(
        "Device %s (%s): %s bytes free / %s bytes total",
        info.device_type, info.name, info.free_memory, info.total_memory,
    )
    return info


def required_bytes(config: SimulationConfig) -> int:
    r"""
    Working memory of a run: :math:`(2NP + P)` values of the config dtype.
    """
    return (config.buffer_size + int(config.num_paths)) * config.dtype.itemsize


def check_memory_budget(
    config: SimulationConfig,
    device: DeviceInfo | None = None,
    budget: int | None = None,
    fraction: float = DEFAULT_MEMORY_FRACTION,
) -> int:
    r"""
    Verify that a run fits before anything is allocated.

    Parameters
    ----------
    config : SimulationConfig
        Run to size.
    device : DeviceInfo, optional
        Device whose free memory bounds the run.
    budget : int, optional
        Explicit budget in bytes. Takes precedence over ``device``.
    fraction : float, default 0.75
        Share of the device's free memory the run may use.

    Returns
    -------
    int
        Required bytes.

    Raises
    ------
    ConfigurationError
        If the run needs more than the budget.
    """
    need = required_bytes(config)
    if budget is not None:
        limit, source = int(budget), "memory budget"
    elif device is not None and device.free_memory is not None:
        limit, source = int(device.free_memory * fraction), f"{fraction:.0%} of free {device.device_type} memory"
    else:
        logger.debug("No memory limit known; skipping pre-flight sizing check")
        return need

    if need > limit:
        raise ConfigurationError(
            f"run needs {need / 1e9:.3f} GB ({config.buffer_size} shocks + {config.num_paths} payoffs) "
            f"but only {limit / 1e9:.3f} GB is available ({source}); reduce num_paths or num_steps"
        )
    logger.debug("Run needs %d bytes of %d available (%s)", need, limit, source)
    return need
