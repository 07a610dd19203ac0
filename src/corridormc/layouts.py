r"""
Memory layouts of the random-shock buffer.

A run consumes :math:`2N` standard normals per path: at step :math:`n` the
shock of leg 0 and the raw shock of leg 1. A :class:`LayoutStrategy` decides
where in the flat buffer of length :math:`2NP` each of those values lives.
Both strategies implemented here share one shape,

.. math::

   \operatorname{offset}(p, n, \ell) = \operatorname{base}(p) + (2n + \ell)\,\operatorname{stride}(p),

so the kernel only needs two integer arrays per block of paths.

Classes
    :class:`LayoutStrategy` — Abstract index mapping
    :class:`ContiguousLayout` — One uninterrupted block of :math:`2N` values per path
    :class:`StridedLayout` — Interleaved blocks per execution group

Functions
    :func:`make_layout` — Build a layout by name

Notes
-----
The choice of layout changes memory-access locality only. For the same logical
shocks (see :meth:`LayoutStrategy.scatter`) both layouts produce identical
payoffs.

The array-valued methods (:meth:`~LayoutStrategy.path_base`,
:meth:`~LayoutStrategy.path_stride`, :meth:`~LayoutStrategy.offsets`) only use
integer arithmetic operators and ``.clip``, so they accept NumPy arrays as well
as torch integer tensors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import numpy as np

from .exceptions import ConfigurationError

__all__ = [
    "LayoutStrategy",
    "ContiguousLayout",
    "StridedLayout",
    "make_layout",
    "VALID_LAYOUTS",
    "DEFAULT_GROUP_WIDTH",
]

VALID_LAYOUTS = ("strided", "contiguous")

# Paths per execution group (one GPU thread block)
DEFAULT_GROUP_WIDTH = 64


class LayoutStrategy(ABC):
    r"""
    Bijective mapping from ``(path_id, step, leg)`` to a buffer position.

    Parameters
    ----------
    num_steps : int
        Steps per path :math:`N`.
    num_paths : int
        Number of paths :math:`P`.

    Notes
    -----
    Subclasses implement :meth:`path_base` and :meth:`path_stride`; every other
    method derives from them.
    """

    name: str = "abstract"

    def __init__(self, num_steps: int, num_paths: int):
        if num_steps <= 0 or num_paths <= 0:
            raise ConfigurationError("layout dimensions must be positive")
        self.num_steps = int(num_steps)
        self.num_paths = int(num_paths)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(num_steps={self.num_steps}, num_paths={self.num_paths})"

    @property
    def size(self) -> int:
        """Length :math:`2NP` of the buffer addressed by this layout."""
        return 2 * self.num_steps * self.num_paths

    @abstractmethod
    def path_base(self, path_ids: Any) -> Any:
        """Position of ``(path_id, step=0, leg=0)`` for every id in ``path_ids``."""

    @abstractmethod
    def path_stride(self, path_ids: Any) -> Any:
        """Distance between consecutive shocks of the same path."""

    def offsets(self, path_ids: Any, step: int, leg: int) -> Any:
        """Vectorised :meth:`offset` for a fixed ``step`` and ``leg``."""
        return self.path_base(path_ids) + (2 * step + leg) * self.path_stride(path_ids)

    def offset(self, path_id: int, step: int, leg: int) -> int:
        r"""
        Buffer position of one shock.

        Parameters
        ----------
        path_id : int
            Path index in :math:`[0, P)`.
        step : int
            Step index in :math:`[0, N)`.
        leg : {0, 1}
            Underlying whose raw shock is requested.

        Returns
        -------
        int
            Position in :math:`[0, 2NP)`.

        Raises
        ------
        IndexError
            If any coordinate is outside the layout's domain.
        """
        if not 0 <= path_id < self.num_paths:
            raise IndexError(f"path_id {path_id} out of range [0, {self.num_paths})")
        if not 0 <= step < self.num_steps:
            raise IndexError(f"step {step} out of range [0, {self.num_steps})")
        if leg not in (0, 1):
            raise IndexError(f"leg must be 0 or 1, got {leg}")
        ids = np.asarray([path_id], dtype=np.int64)
        return int(self.offsets(ids, step, leg)[0])

    def index_table(self, path_ids: np.ndarray | None = None) -> np.ndarray:
        r"""
        Offsets of every shock of ``path_ids`` as an array of shape ``(len, N, 2)``.

        The table for all paths holds :math:`2NP` integers; use it for
        inspection and testing rather than inside the kernel.
        """
        if path_ids is None:
            path_ids = np.arange(self.num_paths, dtype=np.int64)
        path_ids = np.asarray(path_ids, dtype=np.int64)
        k = np.arange(2 * self.num_steps, dtype=np.int64)
        table = self.path_base(path_ids)[:, None] + k[None, :] * self.path_stride(path_ids)[:, None]
        return table.reshape(path_ids.size, self.num_steps, 2)

    def gather(self, buffer: np.ndarray) -> np.ndarray:
        """Read a flat buffer into logical shocks of shape ``(P, N, 2)``."""
        buffer = np.asarray(buffer)
        if buffer.size != self.size:
            raise ValueError(f"buffer has {buffer.size} values, layout expects {self.size}")
        return buffer[self.index_table()]

    def scatter(self, logical: np.ndarray) -> np.ndarray:
        r"""
        Arrange logical shocks of shape ``(P, N, 2)`` into a flat buffer.

        Inverse of :meth:`gather`. Scattering the same logical shocks with two
        different layouts yields two buffers on which the kernel computes the
        same payoffs.
        """
        logical = np.asarray(logical)
        expected = (self.num_paths, self.num_steps, 2)
        if logical.shape != expected:
            raise ValueError(f"logical shocks must have shape {expected}, got {logical.shape}")
        buffer = np.empty(self.size, dtype=logical.dtype)
        buffer[self.index_table()] = logical
        return buffer


class ContiguousLayout(LayoutStrategy):
    r"""
    Each path owns one uninterrupted block of :math:`2N` values.

    .. math::

       \operatorname{offset}(p, n, \ell) = 2Np + 2n + \ell

    Addressing is trivial per path, but paths evaluated side by side read
    positions :math:`2N` apart at the same step.
    """

    name = "contiguous"

    def path_base(self, path_ids):
        return path_ids * (2 * self.num_steps)

    def path_stride(self, path_ids):
        return path_ids * 0 + 1


class StridedLayout(LayoutStrategy):
    r"""
    Shocks grouped by execution group and advanced by the group's width.

    Paths are split into groups of ``group_width`` consecutive ids. With
    :math:`g = \lfloor p / W \rfloor`, :math:`l = p \bmod W` and the effective
    width :math:`w_g = \min(W, P - gW)` of the (possibly ragged, last) group:

    .. math::

       \operatorname{offset}(p, n, \ell) = 2NWg + l + (2n + \ell)\,w_g

    All paths of a group read adjacent positions at the same step, which is
    what wide parallel hardware coalesces into a single memory transaction.

    Parameters
    ----------
    num_steps : int
        Steps per path.
    num_paths : int
        Number of paths; need not be a multiple of ``group_width``.
    group_width : int, default 64
        Parallel width :math:`W` of one execution group.
    """

    name = "strided"

    def __init__(self, num_steps: int, num_paths: int, group_width: int = DEFAULT_GROUP_WIDTH):
        super().__init__(num_steps, num_paths)
        if group_width <= 0:
            raise ConfigurationError(f"group_width must be positive, got {group_width}")
        self.group_width = int(group_width)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(num_steps={self.num_steps}, num_paths={self.num_paths}, "
            f"group_width={self.group_width})"
        )

    def path_base(self, path_ids):
        width = self.group_width
        group = path_ids // width
        return group * (2 * self.num_steps * width) + path_ids % width

    def path_stride(self, path_ids):
        width = self.group_width
        group = path_ids // width
        return (self.num_paths - group * width).clip(max=width)


def make_layout(
    name: str,
    num_steps: int,
    num_paths: int,
    group_width: int = DEFAULT_GROUP_WIDTH,
) -> LayoutStrategy:
    r"""
    Build a layout by name.

    Parameters
    ----------
    name : {"strided", "contiguous"}
        Layout to build.
    num_steps, num_paths : int
        Buffer dimensions.
    group_width : int, default 64
        Group width for ``"strided"``; ignored otherwise.

    Raises
    ------
    ConfigurationError
        If ``name`` is not a known layout.
    """
    if name == "strided":
        return StridedLayout(num_steps, num_paths, group_width=group_width)
    if name == "contiguous":
        return ContiguousLayout(num_steps, num_paths)
    raise ConfigurationError(f"layout must be one of {VALID_LAYOUTS}, got '{name}'")
