r"""
Thread-parallel execution backend for corridor simulations.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable

import numpy as np

from ..kernel import simulate_paths
from .base import make_blocks

if TYPE_CHECKING:
    from ..config import SimulationConfig
    from ..layouts import LayoutStrategy

logger = logging.getLogger(__name__)

__all__ = ["ThreadBackend"]

# Default configuration constants
_CHUNKS_PER_WORKER = 8  # Number of chunks per worker for load balancing


class ThreadBackend:
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor` for parallel execution.
    The kernel is made of NumPy elementwise operations, which release the GIL,
    so threads run concurrently without pickling the shock buffer.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.
    chunks_per_worker : int, default 8
        Number of work chunks per worker for load balancing.

    Notes
    -----
    Every block writes its own slice of the shared payoff array and reads the
    shared buffer without modifying it, so no locking is needed. Results do not
    depend on ``n_workers``: the buffer is generated before the pool starts.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> payoffs = backend.run(config, buffer, layout)  # doctest: +SKIP
    """

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def run(
        self,
        config: "SimulationConfig",
        buffer: np.ndarray,
        layout: "LayoutStrategy",
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> np.ndarray:
        r"""
        Evaluate all paths in parallel using threads.

        Parameters
        ----------
        config : SimulationConfig
            Model parameters.
        buffer : ndarray
            Complete shock buffer.
        layout : LayoutStrategy
            Index mapping into ``buffer``.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Payoffs with shape ``(num_paths,)``.
        """
        n_paths = config.num_paths
        blocks = self._prepare_blocks(n_paths)
        payoffs = np.empty(n_paths, dtype=config.dtype)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))
        logger.debug("Dispatching %d blocks to %d threads", len(blocks), max_workers)

        def _work(blk):
            a, b = blk
            return blk, simulate_paths(config, buffer, layout, np.arange(a, b, dtype=np.int64))

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(_work, blk) for blk in blocks]
            for f in as_completed(futs):
                (i, j), arr = f.result()
                payoffs[i:j] = arr
                completed += j - i
                if progress_callback:
                    progress_callback(completed, n_paths)

        return payoffs

    def _prepare_blocks(self, n_paths: int) -> list[tuple[int, int]]:
        """Prepare work blocks for load balancing across workers."""
        block_size = max(1, n_paths // (self.n_workers * self.chunks_per_worker))
        return make_blocks(n_paths, block_size)
