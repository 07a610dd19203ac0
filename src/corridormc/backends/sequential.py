r"""
Sequential execution backend for corridor simulations.

This module provides a single-threaded execution strategy that evaluates
blocks of paths one after another with optional progress reporting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np

from ..kernel import simulate_paths
from .base import make_blocks

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..layouts import LayoutStrategy

__all__ = ["SequentialBackend"]

_BLOCK_SIZE = 16_384


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Evaluates paths in blocks on the main thread; within a block the kernel
    is vectorised across paths. Suitable for small runs or debugging.

    Parameters
    ----------
    block_size : int, default 16_384
        Paths evaluated per kernel call.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> payoffs = backend.run(config, buffer, layout)  # doctest: +SKIP
    """

    def __init__(self, block_size: int = _BLOCK_SIZE):
        self.block_size = block_size

    def run(
        self,
        config: "SimulationConfig",
        buffer: np.ndarray,
        layout: "LayoutStrategy",
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> np.ndarray:
        r"""
        Evaluate all paths sequentially on a single thread.

        Parameters
        ----------
        config : SimulationConfig
            Model parameters.
        buffer : ndarray
            Complete shock buffer.
        layout : LayoutStrategy
            Index mapping into ``buffer``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` called after each block.

        Returns
        -------
        np.ndarray
            Payoffs with shape ``(num_paths,)``.
        """
        n_paths = config.num_paths
        payoffs = np.empty(n_paths, dtype=config.dtype)

        for i, j in make_blocks(n_paths, self.block_size):
            payoffs[i:j] = simulate_paths(config, buffer, layout, np.arange(i, j, dtype=np.int64))
            if progress_callback:
                progress_callback(j, n_paths)

        return payoffs
