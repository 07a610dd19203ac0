r"""
Immutable model parameters for the double corridor simulation.

:class:`SimulationConfig` holds the base parameters of a run together with the
constants derived from them. The derived constants are broadcast, read-only,
to every path evaluation:

.. math::

   \alpha = \sqrt{1 - \rho^2}, \qquad
   \Delta t = T / N, \qquad
   c_1 = 1 + r\,\Delta t, \qquad
   c_2 = \sqrt{\Delta t}\,\sigma.

Examples
--------
>>> cfg = SimulationConfig(num_steps=50, num_paths=10_000)
>>> round(cfg.step_size, 4)
0.02
>>> cfg.with_overrides(correlation=1.0).cross_vol_factor
0.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace

import numpy as np

from .exceptions import ConfigurationError

__all__ = ["SimulationConfig", "VALID_PRECISIONS"]

VALID_PRECISIONS = ("float32", "float64")


def _is_positive_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool) and value > 0


@dataclass(frozen=True)
class SimulationConfig:
    r"""
    Base and derived parameters of a corridor simulation.

    Attributes
    ----------
    num_steps : int, default 100
        Number of time steps :math:`N` per path.
    num_paths : int, default 960_000
        Number of independent paths :math:`P`.
    horizon : float, default 1.0
        Maturity :math:`T` in years.
    risk_free_rate : float, default 0.05
        Continuously compounded rate :math:`r`.
    volatility : float, default 0.1
        Volatility :math:`\sigma` shared by both legs.
    correlation : float, default 0.5
        Correlation :math:`\rho \in [-1, 1]` between the two legs' shocks.
    corridor_half_width : float, default 0.1
        Absolute half-width of the band around 1.0 that both terminal levels
        must stay inside. A fixed contract term, not calibrated to
        :attr:`volatility`.
    precision : {"float32", "float64"}, default "float32"
        Storage type of the random buffer and of the per-path recurrence.
    cross_vol_factor : float
        Derived :math:`\alpha = \sqrt{1-\rho^2}`.
    step_size : float
        Derived :math:`\Delta t = T/N`.
    growth_factor : float
        Derived :math:`c_1 = 1 + r\Delta t`.
    shock_scale : float
        Derived :math:`c_2 = \sqrt{\Delta t}\,\sigma`.
    discount_factor : float
        Derived :math:`e^{-rT}`, the payoff of a path that stays in the corridor.

    Notes
    -----
    The dataclass is frozen. Use :meth:`with_overrides` to obtain a modified
    copy; derived fields are recomputed on every construction, so they can
    never go stale.

    Raises
    ------
    ConfigurationError
        If any base field is out of range.
    """

    num_steps: int = 100
    num_paths: int = 960_000
    horizon: float = 1.0
    risk_free_rate: float = 0.05
    volatility: float = 0.1
    correlation: float = 0.5
    corridor_half_width: float = 0.1
    precision: str = "float32"

    cross_vol_factor: float = field(init=False, repr=False)
    step_size: float = field(init=False, repr=False)
    growth_factor: float = field(init=False, repr=False)
    shock_scale: float = field(init=False, repr=False)
    discount_factor: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._validate()
        dt = self.horizon / self.num_steps
        # max() guards rho**2 landing a hair above 1.0 for |rho| == 1
        object.__setattr__(self, "cross_vol_factor", math.sqrt(max(0.0, 1.0 - self.correlation**2)))
        object.__setattr__(self, "step_size", dt)
        object.__setattr__(self, "growth_factor", 1.0 + self.risk_free_rate * dt)
        object.__setattr__(self, "shock_scale", math.sqrt(dt) * self.volatility)
        object.__setattr__(self, "discount_factor", math.exp(-self.risk_free_rate * self.horizon))

    def _validate(self) -> None:
        if not _is_positive_int(self.num_steps):
            raise ConfigurationError(f"num_steps must be a positive integer, got {self.num_steps!r}")
        if not _is_positive_int(self.num_paths):
            raise ConfigurationError(f"num_paths must be a positive integer, got {self.num_paths!r}")
        for name in ("horizon", "risk_free_rate", "volatility", "correlation", "corridor_half_width"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.floating, np.integer)):
                raise ConfigurationError(f"{name} must be a real number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"{name} must be finite, got {value!r}")
        if self.horizon <= 0:
            raise ConfigurationError("horizon must be positive")
        if self.volatility < 0:
            raise ConfigurationError("volatility must be non-negative")
        if not -1.0 <= self.correlation <= 1.0:
            raise ConfigurationError(f"correlation must be in [-1, 1], got {self.correlation}")
        if self.corridor_half_width <= 0:
            raise ConfigurationError("corridor_half_width must be positive")
        if self.precision not in VALID_PRECISIONS:
            raise ConfigurationError(f"precision must be one of {VALID_PRECISIONS}, got '{self.precision}'")

    def with_overrides(self, **changes) -> "SimulationConfig":
        r"""
        Return a copy with selected base fields replaced.

        Parameters
        ----------
        **changes :
            Base field overrides passed to :func:`dataclasses.replace`.

        Returns
        -------
        SimulationConfig
            New, validated config with recomputed derived fields.
        """
        return replace(self, **changes)

    @property
    def dtype(self) -> np.dtype:
        """NumPy dtype matching :attr:`precision`."""
        return np.dtype(self.precision)

    @property
    def buffer_size(self) -> int:
        """Number of standard normals a run consumes, :math:`2NP`."""
        return 2 * int(self.num_steps) * int(self.num_paths)
