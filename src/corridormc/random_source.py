r"""
Bulk generators of independent standard-normal shocks.

This module provides:

Protocol
    :class:`RandomSource` — ``generate(count, seed)`` interface

Classes
    :class:`NumpyRandomSource` — Host buffer from :class:`numpy.random.Philox`
    :class:`TorchRandomSource` — Device buffer from an explicit ``torch.Generator``

Notes
-----
**Determinism.** Both sources derive their stream from a
:class:`numpy.random.SeedSequence`, so the same ``seed`` and ``count`` always
produce the same buffer. The buffer is generated in one pass, before any path
is evaluated, and does not depend on how paths are later split across workers.

**No retries.** Any failure raises :class:`~corridormc.exceptions.GenerationError`.
Substituting another stream would silently bias the estimate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol, Union

import numpy as np

from .exceptions import GenerationError

if TYPE_CHECKING:
    import torch

logger = logging.getLogger(__name__)

__all__ = [
    "RandomSource",
    "NumpyRandomSource",
    "TorchRandomSource",
    "as_seed_sequence",
]

SeedLike = Union[int, np.random.SeedSequence, None]


def as_seed_sequence(seed: SeedLike) -> np.random.SeedSequence:
    """Return ``seed`` as a :class:`numpy.random.SeedSequence`."""
    if isinstance(seed, np.random.SeedSequence):
        return seed
    return np.random.SeedSequence(seed)


def _check_count(count: int) -> int:
    if isinstance(count, bool) or not isinstance(count, (int, np.integer)) or count <= 0:
        raise GenerationError(f"count must be a positive integer, got {count!r}")
    return int(count)


class RandomSource(Protocol):
    r"""
    Protocol for random-shock generators.

    Implementations must return ``count`` i.i.d. :math:`\mathcal{N}(0, 1)`
    values and be deterministic for a fixed ``seed``.
    """

    def generate(self, count: int, seed: SeedLike) -> Any:
        r"""
        Generate a flat buffer of standard normals.

        Parameters
        ----------
        count : int
            Number of values, :math:`2NP` for a full run.
        seed : int, SeedSequence or None
            Seed of the stream. ``None`` draws entropy from the OS.

        Returns
        -------
        array-like
            One-dimensional buffer of length ``count``.

        Raises
        ------
        GenerationError
            If the buffer cannot be allocated or the generator fails.
        """


class NumpyRandomSource:
    r"""
    Host-memory generator backed by :class:`numpy.random.Philox`.

    Parameters
    ----------
    dtype : str or numpy.dtype, default "float32"
        Output precision. NumPy generates float32 normals natively, so no
        down-cast of a float64 stream takes place.

    Examples
    --------
    >>> src = NumpyRandomSource()
    >>> a = src.generate(4, seed=1234)
    >>> b = src.generate(4, seed=1234)
    >>> bool((a == b).all())
    True
    """

    def __init__(self, dtype: Any = "float32"):
        self.dtype = np.dtype(dtype)
        if self.dtype not in (np.dtype(np.float32), np.dtype(np.float64)):
            raise GenerationError(f"unsupported dtype {self.dtype}")

    def generate(self, count: int, seed: SeedLike) -> np.ndarray:
        count = _check_count(count)
        try:
            rng = np.random.Generator(np.random.Philox(as_seed_sequence(seed)))
            buffer = rng.standard_normal(count, dtype=self.dtype)
        except MemoryError as e:
            raise GenerationError(
                f"cannot allocate {count} {self.dtype} normals ({count * self.dtype.itemsize / 1e9:.2f} GB)"
            ) from e
        except (TypeError, ValueError) as e:
            raise GenerationError(f"random generator could not be initialized: {e}") from e

        buffer.flags.writeable = False
        logger.debug("Generated %d %s normals on host", count, self.dtype)
        return buffer


class TorchRandomSource:
    r"""
    Device-memory generator backed by an explicit ``torch.Generator``.

    Parameters
    ----------
    device : str or torch.device, default "cpu"
        Device that will hold the buffer (``"cpu"``, ``"cuda:0"``, ``"mps"``).
    dtype : {"float32", "float64"}, default "float32"
        Output precision.

    Notes
    -----
    **RNG discipline.** The generator is seeded from a child of the
    :class:`numpy.random.SeedSequence`; the global torch RNG
    (``torch.manual_seed``) is never touched. The stream differs from
    :class:`NumpyRandomSource` for the same seed.
    """

    def __init__(self, device: Any = "cpu", dtype: str = "float32"):
        if dtype not in ("float32", "float64"):
            raise GenerationError(f"unsupported dtype {dtype}")
        self.device = device
        self.dtype = dtype

    def generate(self, count: int, seed: SeedLike) -> "torch.Tensor":
        # pylint: disable-next=import-outside-toplevel
        from .backends.torch_base import import_torch, make_torch_generator

        count = _check_count(count)
        try:
            th = import_torch()
            device = th.device(self.device)
            seed_seq = as_seed_sequence(seed) if seed is not None else None
            generator = make_torch_generator(device, seed_seq)
            buffer = th.randn(count, generator=generator, device=device, dtype=getattr(th, self.dtype))
        except ImportError as e:
            raise GenerationError(str(e)) from e
        except (MemoryError, RuntimeError) as e:
            # torch.cuda.OutOfMemoryError is a RuntimeError
            raise GenerationError(f"cannot generate {count} normals on {self.device}: {e}") from e

        logger.debug("Generated %d %s normals on %s", count, self.dtype, device)
        return buffer
