r"""
Torch execution backend for device-accelerated corridor simulations.

This module provides:

Classes
    :class:`TorchBackend` — Evaluate every path of a run on a Torch device

Device Support
    - ``cpu`` — Safe default, works everywhere
    - ``mps`` — Apple Metal Performance Shaders (float32 only)
    - ``cuda`` — NVIDIA GPU acceleration

Notes
-----
The payoffs returned by :meth:`TorchBackend.run` stay in device memory. The
orchestrator moves them with :func:`~corridormc.backends.base.transfer_to_host`
as a separate step, so a failed copy is reported as a transfer failure rather
than a simulation failure.

Example
-------
>>> from corridormc.backends import TorchBackend
>>> backend = TorchBackend(device="cuda")
>>> payoffs = backend.run(config, buffer, layout)  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import warnings
from typing import TYPE_CHECKING, Any, Callable

import numpy as np

from ..exceptions import ConfigurationError, TransferError
from .base import make_blocks
from .torch_base import import_torch, validate_torch_device

if TYPE_CHECKING:
    import torch

    from ..config import SimulationConfig
    from ..layouts import LayoutStrategy

logger = logging.getLogger(__name__)

__all__ = ["TorchBackend"]


class TorchBackend:
    r"""
    Torch batch execution backend.

    Runs the same recurrence as :func:`corridormc.kernel.evolve_levels` with
    tensor operations: one pass per step, all paths of a batch in lock-step.

    Parameters
    ----------
    device : {"cpu", "cuda", "mps"}, default "cpu"
        Torch device type.
    device_index : int, default 0
        CUDA device index for multi-GPU systems.
    batch_size : int or None, default None
        Paths evaluated per pass. ``None`` evaluates all paths at once.

    Raises
    ------
    ConfigurationError
        If the device is unknown or not available.
    ImportError
        If PyTorch is not installed.
    """

    def __init__(self, device: str = "cpu", device_index: int = 0, batch_size: int | None = None):
        validate_torch_device(device, device_index)
        th = import_torch()
        if batch_size is not None and batch_size <= 0:
            raise ConfigurationError("batch_size must be positive")
        self.device_type = device
        self.device_index = device_index
        self.device = th.device(f"cuda:{device_index}") if device == "cuda" else th.device(device)
        self.batch_size = batch_size

    def __repr__(self) -> str:
        return f"TorchBackend(device='{self.device}')"

    def _to_device(self, buffer: Any, dtype: "torch.dtype") -> "torch.Tensor":
        """Host-to-device copy of the shock buffer.

        Host arrays are wrapped without a host-side copy; on the CPU device the
        tensor shares memory with ``buffer``.
        """
        th = import_torch()
        if isinstance(buffer, th.Tensor):
            if buffer.dtype != dtype:
                raise ValueError(f"buffer dtype {buffer.dtype} does not match config precision {dtype}")
            if buffer.device == self.device:
                return buffer
        try:
            if isinstance(buffer, np.ndarray):
                with warnings.catch_warnings():
                    # the kernel never writes to the buffer
                    warnings.filterwarnings("ignore", message=".*not writable.*", category=UserWarning)
                    buffer = th.from_numpy(buffer)
                if buffer.dtype != dtype:
                    raise ValueError(f"buffer dtype {buffer.dtype} does not match config precision {dtype}")
            return buffer.to(self.device)
        except (MemoryError, RuntimeError) as e:
            raise TransferError(f"host-to-device transfer to {self.device} failed: {e}") from e

    def run(
        self,
        config: "SimulationConfig",
        buffer: Any,
        layout: "LayoutStrategy",
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> "torch.Tensor":
        r"""
        Evaluate all paths on the device.

        Parameters
        ----------
        config : SimulationConfig
            Model parameters.
        buffer : ndarray or torch.Tensor
            Complete shock buffer; host arrays are copied to the device first.
        layout : LayoutStrategy
            Index mapping into ``buffer``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)``, called after each batch.

        Returns
        -------
        torch.Tensor
            Device-resident payoffs with shape ``(num_paths,)``.
        """
        th = import_torch()
        if self.device_type == "mps" and config.precision == "float64":
            raise ConfigurationError("MPS does not support float64; use precision='float32'")

        dtype = getattr(th, config.precision)
        z = self._to_device(buffer, dtype)
        if z.numel() != layout.size:
            raise ValueError(f"buffer has {z.numel()} values, layout expects {layout.size}")

        def scalar(value: float) -> "torch.Tensor":
            return th.tensor(value, dtype=dtype, device=self.device)

        rho = scalar(config.correlation)
        alpha = scalar(config.cross_vol_factor)
        con1 = scalar(config.growth_factor)
        con2 = scalar(config.shock_scale)
        one = scalar(1.0)
        half_width = scalar(config.corridor_half_width)
        discount = scalar(config.discount_factor)
        zero = scalar(0.0)

        n_paths = config.num_paths
        payoffs = th.empty(n_paths, dtype=dtype, device=self.device)
        logger.info("Evaluating %d paths on %s...", n_paths, self.device)

        with th.no_grad():
            for i, j in make_blocks(n_paths, self.batch_size or n_paths):
                ids = th.arange(i, j, dtype=th.int64, device=self.device)
                base = layout.path_base(ids)
                stride = layout.path_stride(ids)
                s1 = th.ones(j - i, dtype=dtype, device=self.device)
                s2 = th.ones(j - i, dtype=dtype, device=self.device)
                for n in range(config.num_steps):
                    y1 = z[base + (2 * n) * stride]
                    y2 = rho * y1 + alpha * z[base + (2 * n + 1) * stride]
                    s1 *= con1 + con2 * y1
                    s2 *= con1 + con2 * y2
                inside = (th.abs(s1 - one) < half_width) & (th.abs(s2 - one) < half_width)
                payoffs[i:j] = th.where(inside, discount, zero)
                if progress_callback:
                    progress_callback(j, n_paths)

        return payoffs
