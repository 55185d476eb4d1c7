"""Shared fixtures: an in-memory telemetry source."""

from typing import Dict, Optional, Set

import pytest

from knock_on_gpus.errors import TelemetryQueryError, TelemetrySourceError
from knock_on_gpus.models.gpu import MIB, GPUTelemetry

IDLE = (50_000_000, 0, 0)
BUSY = (8000 * MIB, 95, 60)


class FakeTelemetrySource:
    """Telemetry source serving fixed readings.

    ``readings`` maps device id to ``(used_memory_bytes, gpu%, memory%)``.
    """

    def __init__(
        self,
        readings: Dict[int, tuple],
        device_count: Optional[int] = None,
        fail_init: bool = False,
        failing: Optional[Set[int]] = None,
    ):
        self.readings = readings
        self._device_count = len(readings) if device_count is None else device_count
        self.fail_init = fail_init
        self.failing = failing or set()
        self.reads = []
        self.entered = False
        self.exited = False

    def __enter__(self):
        if self.fail_init:
            raise TelemetrySourceError("Failed to initialize NVML")
        self.entered = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exited = True

    def device_count(self) -> int:
        return self._device_count

    def read(self, device_id: int) -> GPUTelemetry:
        self.reads.append(device_id)
        if device_id in self.failing:
            raise TelemetryQueryError(device_id, "GPU is lost")
        used, gpu, memory = self.readings[device_id]
        return GPUTelemetry(
            gpu_id=device_id,
            used_memory_bytes=used,
            gpu_utilization_percent=gpu,
            memory_utilization_percent=memory,
        )


@pytest.fixture
def make_telemetry():
    """Factory for FakeTelemetrySource instances."""
    return FakeTelemetrySource


@pytest.fixture
def idle():
    return IDLE


@pytest.fixture
def busy():
    return BUSY
