r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for path-evaluation strategies

Functions
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`transfer_to_host` — Explicit device-to-host copy of the payoffs
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Protocol

import numpy as np

from ..exceptions import TransferError

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..layouts import LayoutStrategy

logger = logging.getLogger(__name__)

__all__ = [
    "ExecutionBackend",
    "make_blocks",
    "transfer_to_host",
]


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def transfer_to_host(payoffs: Any) -> np.ndarray:
    r"""
    Copy a payoff collection into host memory.

    NumPy arrays already live on the host and are returned unchanged; torch
    tensors are detached, synchronised and copied to the CPU.

    Parameters
    ----------
    payoffs : ndarray or torch.Tensor
        Complete payoff collection produced by a backend.

    Returns
    -------
    np.ndarray
        Host-resident payoffs, same dtype as produced.

    Raises
    ------
    TransferError
        If the copy fails (device lost, out of host memory, unknown type).
    """
    if isinstance(payoffs, np.ndarray):
        return payoffs
    if not hasattr(payoffs, "detach"):
        raise TransferError(f"cannot transfer payoffs of type {type(payoffs).__name__} to host")
    try:
        host = payoffs.detach().cpu().numpy()
    except (MemoryError, RuntimeError) as e:
        raise TransferError(f"device-to-host transfer of {payoffs.numel()} payoffs failed: {e}") from e
    logger.debug("Transferred %d payoffs from %s to host", host.size, payoffs.device)
    return host


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends evaluate every path of a run against a fully generated shock
    buffer and return the complete payoff collection. They decide how paths
    are split across threads or devices; the kernel itself is fixed.
    """

    def run(
        self,
        config: "SimulationConfig",
        buffer: Any,
        layout: "LayoutStrategy",
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Any:
        r"""
        Evaluate all paths and return their payoffs.

        Parameters
        ----------
        config : SimulationConfig
            Model parameters, shared read-only by every path.
        buffer : ndarray or torch.Tensor
            Complete shock buffer of length ``layout.size``.
        layout : LayoutStrategy
            Index mapping into ``buffer``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        ndarray or torch.Tensor
            Payoffs with shape ``(config.num_paths,)``. Device backends return
            device memory; use :func:`transfer_to_host` before aggregating.
        """
