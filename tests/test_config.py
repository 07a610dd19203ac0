import dataclasses
import math

import numpy as np
import pytest

from corridormc.config import SimulationConfig
from corridormc.exceptions import ConfigurationError


class TestDerivedFields:
    """Derived constants are pure functions of the base fields"""

    def test_defaults(self):
        cfg = SimulationConfig()
        assert cfg.num_steps == 100
        assert cfg.num_paths == 960_000
        assert cfg.horizon == 1.0
        assert cfg.risk_free_rate == 0.05
        assert cfg.volatility == 0.1
        assert cfg.correlation == 0.5
        assert cfg.corridor_half_width == 0.1
        assert cfg.precision == "float32"

    def test_derived_values(self):
        cfg = SimulationConfig(num_steps=50, horizon=2.0, risk_free_rate=0.04, volatility=0.2, correlation=0.6)
        assert cfg.step_size == pytest.approx(0.04)
        assert cfg.cross_vol_factor == pytest.approx(0.8)
        assert cfg.growth_factor == pytest.approx(1.0 + 0.04 * 0.04)
        assert cfg.shock_scale == pytest.approx(math.sqrt(0.04) * 0.2)
        assert cfg.discount_factor == pytest.approx(math.exp(-0.08))

    def test_buffer_size(self):
        cfg = SimulationConfig(num_steps=7, num_paths=11)
        assert cfg.buffer_size == 2 * 7 * 11

    @pytest.mark.parametrize("rho", [1.0, -1.0])
    def test_full_correlation_has_zero_cross_factor(self, rho):
        assert SimulationConfig(correlation=rho).cross_vol_factor == 0.0

    def test_zero_correlation_has_unit_cross_factor(self):
        assert SimulationConfig(correlation=0.0).cross_vol_factor == 1.0

    def test_with_overrides_recomputes(self):
        cfg = SimulationConfig(num_steps=100)
        cfg2 = cfg.with_overrides(num_steps=10, volatility=0.3)
        assert cfg2.step_size == pytest.approx(0.1)
        assert cfg2.shock_scale == pytest.approx(math.sqrt(0.1) * 0.3)
        # original untouched
        assert cfg.step_size == pytest.approx(0.01)

    def test_frozen(self):
        cfg = SimulationConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.volatility = 0.2  # type: ignore[misc]

    def test_derived_fields_not_in_init(self):
        with pytest.raises(TypeError):
            SimulationConfig(step_size=0.5)  # type: ignore[call-arg]

    def test_dtype(self):
        assert SimulationConfig().dtype == np.float32
        assert SimulationConfig(precision="float64").dtype == np.float64


class TestValidation:
    """Invalid parameters are rejected before any run starts"""

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"num_steps": 0}, "num_steps"),
            ({"num_steps": 2.5}, "num_steps"),
            ({"num_steps": True}, "num_steps"),
            ({"num_paths": -3}, "num_paths"),
            ({"horizon": 0.0}, "horizon"),
            ({"horizon": float("inf")}, "horizon"),
            ({"volatility": -0.1}, "volatility"),
            ({"risk_free_rate": float("nan")}, "risk_free_rate"),
            ({"correlation": 1.01}, "correlation"),
            ({"correlation": -1.5}, "correlation"),
            ({"corridor_half_width": 0.0}, "corridor_half_width"),
            ({"precision": "float16"}, "precision"),
        ],
    )
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ConfigurationError, match=message):
            SimulationConfig(**kwargs)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            SimulationConfig(num_paths=0)

    def test_configuration_error_phase(self):
        with pytest.raises(ConfigurationError) as exc:
            SimulationConfig(correlation=2.0)
        assert exc.value.phase == "configuration"

    def test_overrides_are_validated(self):
        with pytest.raises(ConfigurationError):
            SimulationConfig().with_overrides(correlation=3.0)

    def test_numpy_integers_accepted(self):
        cfg = SimulationConfig(num_steps=np.int64(5), num_paths=np.int32(8))
        assert cfg.buffer_size == 80
