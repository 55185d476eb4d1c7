import logging
from typing import List, Optional

from knock_on_gpus.errors import ConfigurationError
from knock_on_gpus.models.gpu import MIB, AvailabilityVerdict, GPUStatus, GPUTelemetry
from knock_on_gpus.services.telemetry import TelemetrySource

logger = logging.getLogger(__name__)

GPU_UTILIZATION_CEILING = 20
MEMORY_UTILIZATION_CEILING = 20


def memory_border_bytes(memory_border_mib: float) -> int:
    return int(memory_border_mib * MIB)


def classify(telemetry: GPUTelemetry, memory_border: int) -> GPUStatus:
    """Classify one reading. ``memory_border`` is in bytes."""
    is_vacant = (
        telemetry.used_memory_bytes < memory_border
        and telemetry.gpu_utilization_percent < GPU_UTILIZATION_CEILING
        and telemetry.memory_utilization_percent < MEMORY_UTILIZATION_CEILING
    )
    return GPUStatus(
        gpu_id=telemetry.gpu_id,
        used_memory_bytes=telemetry.used_memory_bytes,
        gpu_utilization_percent=telemetry.gpu_utilization_percent,
        memory_utilization_percent=telemetry.memory_utilization_percent,
        is_vacant=is_vacant,
    )


class AvailabilityEngine:
    """Turns live telemetry into an availability verdict.

    Two policies are supported: every device must be vacant (``check_all``),
    or the first ``n`` vacant devices by ascending id are selected
    (``check_n``). Devices are read sequentially and the verdict is only
    computed once every device has been read.
    """

    def __init__(self, telemetry: TelemetrySource):
        self._telemetry = telemetry

    def read_statuses(self, devices: List[int], memory_border: int) -> List[GPUStatus]:
        """Read and classify every device, in ascending id order.

        A failing read raises TelemetryQueryError and aborts the whole check.
        """
        statuses = []
        for device_id in sorted(devices):
            status = classify(self._telemetry.read(device_id), memory_border)
            logger.debug(
                "GPU %d: %s (%s)",
                device_id,
                status.describe(),
                "vacant" if status.is_vacant else "occupied",
            )
            statuses.append(status)
        return statuses

    def check_all(self, devices: List[int], memory_border: int) -> AvailabilityVerdict:
        """Vacant only if every device is vacant."""
        statuses = self.read_statuses(devices, memory_border)
        if all(status.is_vacant for status in statuses):
            return AvailabilityVerdict.vacant(statuses)
        return AvailabilityVerdict.occupied(statuses)

    def check_n(self, devices: List[int], memory_border: int, n: int) -> AvailabilityVerdict:
        """Select the ``n`` lowest-id vacant devices.

        Raises ConfigurationError before any telemetry read when ``n`` cannot
        be satisfied by the devices being checked.
        """
        if n < 1:
            raise ConfigurationError(f"Cannot auto-select {n} GPU(s)", token=str(n))
        if n > len(devices):
            raise ConfigurationError(
                f"Cannot auto-select {n} GPU(s) out of {len(devices)} device(s)",
                token=str(n),
            )

        statuses = self.read_statuses(devices, memory_border)
        vacant = [status for status in statuses if status.is_vacant]
        if len(vacant) < n:
            return AvailabilityVerdict.occupied(statuses)
        return AvailabilityVerdict.vacant(vacant[:n])

    def check(
        self,
        devices: List[int],
        memory_border: int,
        auto_select: Optional[int] = None,
    ) -> AvailabilityVerdict:
        if auto_select is None:
            return self.check_all(devices, memory_border)
        return self.check_n(devices, memory_border, auto_select)
