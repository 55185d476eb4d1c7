"""Tests for request validation and settings."""

import pytest
from pydantic import ValidationError

from knock_on_gpus.config import NoDevicePolicy, Settings
from knock_on_gpus.models.gpu import AvailabilityVerdict, GPUStatus
from knock_on_gpus.models.request import KnockOutcome, KnockRequest


class TestKnockRequest:
    """Test request validation."""

    def test_defaults(self):
        """An empty request should use the defaults."""
        request = KnockRequest()

        assert request.devices is None
        assert request.min_gpus == 0
        assert request.max_gpus == 1024
        assert request.auto_select is None
        assert request.command == []

    def test_parses_device_string(self):
        """A device string should be parsed into indices."""
        assert KnockRequest(devices="2,0,,1").devices == [2, 0, 1]

    def test_accepts_device_list(self):
        """A list of indices should be accepted as is."""
        assert KnockRequest(devices=[0, 2]).devices == [0, 2]

    def test_invalid_device_string(self):
        """A bad device string should fail validation."""
        with pytest.raises(ValidationError, match="Invalid device number: x"):
            KnockRequest(devices="0,x")

    def test_min_above_max_conflicts(self):
        """min_gpus above max_gpus should be rejected."""
        with pytest.raises(ValidationError, match="min_gpus"):
            KnockRequest(min_gpus=3, max_gpus=2)

    def test_auto_select_above_max_conflicts(self):
        """auto_select above max_gpus should be rejected."""
        with pytest.raises(ValidationError, match="auto_select"):
            KnockRequest(auto_select=3, max_gpus=2)

    @pytest.mark.parametrize(
        "field, value",
        [("min_gpus", -1), ("max_gpus", 0), ("auto_select", 0), ("memory_border_mib", 0)],
    )
    def test_rejects_out_of_range_values(self, field, value):
        """Out-of-range numbers should be rejected."""
        with pytest.raises(ValidationError):
            KnockRequest(**{field: value})

    @pytest.mark.parametrize("value", [float("inf"), float("nan"), 1e308])
    def test_rejects_non_finite_memory_border(self, value):
        """A memory border that cannot be converted to bytes should be rejected."""
        with pytest.raises(ValidationError, match="memory_border_mib"):
            KnockRequest(memory_border_mib=value)


class TestKnockOutcome:
    """Test the knock outcome."""

    def test_exposes_selected_devices(self):
        """The outcome should expose the selected device ids."""
        status = GPUStatus(
            gpu_id=3,
            used_memory_bytes=0,
            gpu_utilization_percent=0,
            memory_utilization_percent=0,
            is_vacant=True,
        )

        outcome = KnockOutcome(verdict=AvailabilityVerdict.vacant([status]))

        assert outcome.is_vacant
        assert outcome.devices == [3]


class TestSettings:
    """Test application settings."""

    def test_defaults(self, monkeypatch):
        """Settings should have sensible defaults."""
        for name in ("KNOCK_MEMORY_BORDER_MIB", "KNOCK_NO_DEVICE_POLICY", "KNOCK_STRICT_GPU"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.memory_border_mib == 300.0
        assert settings.visible_devices_env == "CUDA_VISIBLE_DEVICES"
        assert settings.no_device_policy == NoDevicePolicy.CPU_FALLBACK
        assert settings.strict_gpu is False

    def test_reads_prefixed_environment(self, monkeypatch):
        """Settings should be read from KNOCK_ variables."""
        monkeypatch.setenv("KNOCK_MEMORY_BORDER_MIB", "512")
        monkeypatch.setenv("KNOCK_NO_DEVICE_POLICY", "fail")

        settings = Settings()

        assert settings.memory_border_mib == 512.0
        assert settings.no_device_policy == NoDevicePolicy.FAIL

    def test_rejects_infinite_memory_border(self, monkeypatch):
        """An infinite memory border from the environment should be rejected."""
        monkeypatch.setenv("KNOCK_MEMORY_BORDER_MIB", "inf")

        with pytest.raises(ValidationError, match="memory_border_mib"):
            Settings()

    def test_normalizes_log_level(self, monkeypatch):
        """Log levels should be accepted in any case."""
        monkeypatch.setenv("KNOCK_LOG_LEVEL", "warning")

        assert Settings().log_level == "WARNING"

    def test_rejects_unknown_log_level(self, monkeypatch):
        """An unknown log level should be a settings error."""
        monkeypatch.setenv("KNOCK_LOG_LEVEL", "loud")

        with pytest.raises(ValidationError, match="log_level"):
            Settings()
