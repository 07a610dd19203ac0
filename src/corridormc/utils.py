r"""
Critical values for confidence intervals on the Monte Carlo mean.

Functions
    :func:`z_crit` — Two-sided normal critical value
    :func:`t_crit` — Two-sided Student-t critical value
    :func:`autocrit` — Pick z or t from the method and sample size
"""

from __future__ import annotations

from scipy.stats import norm, t

__all__ = ["z_crit", "t_crit", "autocrit"]

_T_THRESHOLD = 30


def _check_confidence(confidence: float) -> None:
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in the interval (0, 1)")


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Examples
    --------
    >>> round(z_crit(0.95), 4)
    1.96
    """
    _check_confidence(confidence)
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""
    Two-sided Student-t critical value :math:`t_{1-\alpha/2,\,df}`.
    """
    _check_confidence(confidence)
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(t.ppf(0.5 + confidence / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for an interval :math:`\bar X \pm c \cdot SE`.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Sample size; the t variant uses :math:`n - 1` degrees of freedom.
    method : {"auto", "z", "t"}, default "auto"
        ``"auto"`` uses t when :math:`n < 30` and z otherwise.

    Returns
    -------
    tuple of (float, str)
        ``(crit, kind)`` where ``kind`` is ``"z"`` or ``"t"``.
    """
    if method not in ("auto", "z", "t"):
        raise ValueError(f"method must be one of 'auto', 'z', 't', got '{method}'")
    use_t = method == "t" or (method == "auto" and n < _T_THRESHOLD)
    if use_t and n >= 2:
        return t_crit(confidence, n - 1), "t"
    return z_crit(confidence), "z"
