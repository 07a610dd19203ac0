r"""
Reduction of the payoff collection into a mean and its standard error.

With :math:`P` payoffs :math:`X_i`,

.. math::

   \bar X = \frac{1}{P}\sum_i X_i, \qquad
   \hat\sigma^2 = \frac{1}{P}\sum_i X_i^2 - \bar X^2, \qquad
   SE = \sqrt{\hat\sigma^2 / P}.

:math:`\hat\sigma^2` is the population (biased) variance of the payoff
distribution and :math:`SE` the standard error of the mean estimator.

Classes
    :class:`MomentAccumulator` — Float64 running sums of values and squares
    :class:`AggregateResult` — Final mean and standard error

Functions
    :func:`aggregate` — Reduce a complete payoff collection
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from .backends.base import make_blocks
from .exceptions import ExecutionError
from .utils import autocrit

logger = logging.getLogger(__name__)

__all__ = ["MomentAccumulator", "AggregateResult", "aggregate"]

_AGGREGATION_BLOCK = 1_000_000


@dataclass(frozen=True)
class AggregateResult:
    r"""
    Final statistic of a run.

    Attributes
    ----------
    mean : float
        Sample mean :math:`\bar X`.
    std_error : float
        Standard error of the mean, :math:`\sqrt{\hat\sigma^2/P}`.
    variance : float
        Population variance :math:`\hat\sigma^2` (clamped at zero).
    n_paths : int
        Number of payoffs :math:`P`.
    """

    mean: float
    std_error: float
    variance: float
    n_paths: int

    def confidence_interval(self, confidence: float = 0.95, method: str = "auto") -> dict[str, float | str]:
        r"""
        Interval :math:`\bar X \pm c \cdot SE` for the expected payoff.

        Parameters
        ----------
        confidence : float, default 0.95
            Confidence level in :math:`(0, 1)`.
        method : {"auto", "z", "t"}, default "auto"
            Critical value family, see :func:`corridormc.utils.autocrit`.

        Returns
        -------
        dict
            Keys ``confidence``, ``method``, ``crit``, ``low``, ``high``.
        """
        crit, kind = autocrit(confidence, self.n_paths, method)
        return {
            "confidence": confidence,
            "method": kind,
            "crit": crit,
            "low": self.mean - crit * self.std_error,
            "high": self.mean + crit * self.std_error,
        }


class MomentAccumulator:
    r"""
    Running count, sum and sum of squares in float64.

    Payoffs are stored in the simulation precision (float32 by default), but a
    float32 running sum over :math:`10^6` terms loses several significant
    digits, so every update is widened to float64 before summation.

    Examples
    --------
    >>> acc = MomentAccumulator()
    >>> acc.update(np.array([1.0, 0.0], dtype=np.float32))
    >>> acc.result().mean
    0.5
    """

    def __init__(self):
        self.count = 0
        self.total = 0.0
        self.total_sq = 0.0

    def update(self, values: np.ndarray) -> None:
        """Add a block of values."""
        block = np.asarray(values, dtype=np.float64).ravel()
        self.count += block.size
        self.total += float(np.sum(block))
        self.total_sq += float(np.dot(block, block))

    def merge(self, other: "MomentAccumulator") -> "MomentAccumulator":
        """Combine with the sums of another accumulator, in place."""
        self.count += other.count
        self.total += other.total
        self.total_sq += other.total_sq
        return self

    def result(self) -> AggregateResult:
        r"""
        Mean and standard error of everything accumulated so far.

        Raises
        ------
        ExecutionError
            If no value was accumulated.
        """
        if self.count == 0:
            raise ExecutionError("cannot aggregate an empty payoff collection", phase="aggregation")
        n = self.count
        mean = self.total / n
        variance = self.total_sq / n - mean * mean
        if variance < 0.0:
            # cancellation when all payoffs are (nearly) equal
            logger.debug("Clamping negative variance %.3e to zero", variance)
            variance = 0.0
        return AggregateResult(
            mean=mean,
            std_error=math.sqrt(variance / n),
            variance=variance,
            n_paths=n,
        )


def aggregate(payoffs: np.ndarray, block_size: int = _AGGREGATION_BLOCK) -> AggregateResult:
    r"""
    Reduce a complete, host-resident payoff collection.

    Parameters
    ----------
    payoffs : ndarray
        One payoff per path, any floating dtype.
    block_size : int, default 1_000_000
        Values widened to float64 at a time; bounds the temporary memory.

    Returns
    -------
    AggregateResult

    Raises
    ------
    ExecutionError
        If ``payoffs`` is empty.
    """
    arr = np.asarray(payoffs).ravel()
    acc = MomentAccumulator()
    for i, j in make_blocks(arr.size, block_size):
        acc.update(arr[i:j])
    return acc.result()
