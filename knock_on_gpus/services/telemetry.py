import logging
from typing import Protocol

import pynvml

from knock_on_gpus.errors import TelemetryQueryError, TelemetrySourceError
from knock_on_gpus.models.gpu import GPUTelemetry

logger = logging.getLogger(__name__)


class TelemetrySource(Protocol):
    """Live per-device memory and utilization readings.

    Used as a context manager: entering initializes the source, exiting
    releases it.
    """

    def __enter__(self) -> "TelemetrySource": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def device_count(self) -> int: ...

    def read(self, device_id: int) -> GPUTelemetry: ...


class NvmlTelemetrySource:
    """Telemetry source backed by NVML through pynvml."""

    def __init__(self):
        self._initialized = False

    def __enter__(self) -> "NvmlTelemetrySource":
        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as e:
            raise TelemetrySourceError(
                f"Failed to initialize NVML. Probably no NVIDIA GPU is installed. ({e})"
            ) from e
        self._initialized = True
        logger.debug("NVML initialized")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._initialized:
            return
        self._initialized = False
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as e:
            logger.debug("NVML shutdown failed: %s", e)

    def device_count(self) -> int:
        try:
            return pynvml.nvmlDeviceGetCount()
        except pynvml.NVMLError as e:
            raise TelemetrySourceError(f"Failed to count GPU devices: {e}") from e

    def read(self, device_id: int) -> GPUTelemetry:
        try:
            handle = pynvml.nvmlDeviceGetHandleByIndex(device_id)
            memory = pynvml.nvmlDeviceGetMemoryInfo(handle)
            utilization = pynvml.nvmlDeviceGetUtilizationRates(handle)
        except pynvml.NVMLError as e:
            raise TelemetryQueryError(device_id, e) from e

        return GPUTelemetry(
            gpu_id=device_id,
            used_memory_bytes=int(memory.used),
            gpu_utilization_percent=int(utilization.gpu),
            memory_utilization_percent=int(utilization.memory),
        )
