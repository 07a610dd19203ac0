import pytest

from corridormc import devices
from corridormc.config import SimulationConfig
from corridormc.devices import (
    DEFAULT_MEMORY_FRACTION,
    DeviceInfo,
    check_memory_budget,
    query_device,
    required_bytes,
)
from corridormc.exceptions import ConfigurationError


class TestRequiredBytes:
    def test_float32(self):
        cfg = SimulationConfig(num_steps=100, num_paths=960_000)
        assert required_bytes(cfg) == (2 * 100 * 960_000 + 960_000) * 4

    def test_float64_doubles(self):
        cfg = SimulationConfig(num_steps=10, num_paths=100)
        assert required_bytes(cfg.with_overrides(precision="float64")) == 2 * required_bytes(cfg)


class TestCheckMemoryBudget:
    @pytest.fixture
    def cfg(self):
        return SimulationConfig(num_steps=10, num_paths=1000)

    def test_explicit_budget_ok(self, cfg):
        assert check_memory_budget(cfg, budget=10**9) == required_bytes(cfg)

    def test_explicit_budget_exceeded(self, cfg):
        with pytest.raises(ConfigurationError, match="reduce num_paths"):
            check_memory_budget(cfg, budget=required_bytes(cfg) - 1)

    def test_budget_takes_precedence_over_device(self, cfg):
        device = DeviceInfo(device_type="cpu", name="test", total_memory=10, free_memory=10)
        assert check_memory_budget(cfg, device, budget=10**9) == required_bytes(cfg)

    def test_device_fraction(self, cfg):
        need = required_bytes(cfg)
        roomy = DeviceInfo(device_type="cuda", name="gpu", total_memory=2 * need, free_memory=2 * need)
        assert check_memory_budget(cfg, roomy) == need
        tight = DeviceInfo(device_type="cuda", name="gpu", total_memory=need, free_memory=need)
        with pytest.raises(ConfigurationError, match="free cuda memory"):
            check_memory_budget(cfg, tight, fraction=DEFAULT_MEMORY_FRACTION)

    def test_unknown_memory_skips_check(self, cfg):
        device = DeviceInfo(device_type="mps", name="Apple MPS")
        assert check_memory_budget(cfg, device) == required_bytes(cfg)

    def test_paper_scale_run_against_small_device(self):
        cfg = SimulationConfig()
        device = DeviceInfo(device_type="cuda", name="gpu", total_memory=512 * 2**20, free_memory=512 * 2**20)
        with pytest.raises(ConfigurationError):
            check_memory_budget(cfg, device)


class TestQueryDevice:
    def test_cpu(self):
        info = query_device("cpu")
        assert info.device_type == "cpu"
        assert info.index == 0
        if info.free_memory is not None:
            assert 0 < info.free_memory <= info.total_memory

    def test_unknown_device(self):
        with pytest.raises(ConfigurationError, match="torch_device"):
            query_device("tpu")


class TestHostMemory:
    """Free host memory counts reclaimable page cache"""

    _SYSCONF = {"SC_PAGE_SIZE": 4096, "SC_PHYS_PAGES": 4_000_000, "SC_AVPHYS_PAGES": 10_000}

    @pytest.fixture
    def low_memfree(self, monkeypatch):
        monkeypatch.setattr(devices.os, "sysconf", lambda name: self._SYSCONF[name])

    def test_uses_mem_available(self, low_memfree, tmp_path, monkeypatch):
        meminfo = tmp_path / "meminfo"
        meminfo.write_text(
            "MemTotal:       16000000 kB\n"
            "MemFree:           40000 kB\n"
            "MemAvailable:   12000000 kB\n"
        )
        monkeypatch.setattr(devices, "_MEMINFO_PATH", str(meminfo))
        info = query_device("cpu")
        assert info.total_memory == 4096 * 4_000_000
        assert info.free_memory == 12_000_000 * 1024

    def test_run_fits_in_page_cache(self, low_memfree, tmp_path, monkeypatch):
        meminfo = tmp_path / "meminfo"
        meminfo.write_text("MemFree: 40000 kB\nMemAvailable: 12000000 kB\n")
        monkeypatch.setattr(devices, "_MEMINFO_PATH", str(meminfo))
        # 324 MB: above 75% of MemFree, well below 75% of MemAvailable
        cfg = SimulationConfig(num_steps=40, num_paths=1_000_000)
        assert check_memory_budget(cfg, query_device("cpu")) == required_bytes(cfg)

    def test_falls_back_to_sysconf(self, low_memfree, tmp_path, monkeypatch):
        monkeypatch.setattr(devices, "_MEMINFO_PATH", str(tmp_path / "missing"))
        assert query_device("cpu").free_memory == 4096 * 10_000

    def test_mem_available_capped_by_total(self, low_memfree, tmp_path, monkeypatch):
        meminfo = tmp_path / "meminfo"
        meminfo.write_text("MemAvailable: 99999999 kB\n")
        monkeypatch.setattr(devices, "_MEMINFO_PATH", str(meminfo))
        info = query_device("cpu")
        assert info.free_memory == info.total_memory
