from enum import Enum
from dataclasses import dataclass
from typing import List, Tuple

MIB = 1024 * 1024
# 1 TiB
MAX_MEMORY_BORDER_MIB = 1024 * 1024


class Availability(Enum):
    """Availability of a device or a set of devices."""

    VACANT = "vacant"
    OCCUPIED = "occupied"


@dataclass(frozen=True)
class GPUTelemetry:
    """Raw reading of one device as reported by a telemetry source."""

    gpu_id: int
    used_memory_bytes: int
    gpu_utilization_percent: int
    memory_utilization_percent: int


@dataclass(frozen=True)
class GPUStatus:
    """Classified snapshot of a single GPU."""

    gpu_id: int
    used_memory_bytes: int
    gpu_utilization_percent: int
    memory_utilization_percent: int
    is_vacant: bool

    @property
    def used_memory_mib(self) -> float:
        return self.used_memory_bytes / MIB

    def describe(self) -> str:
        return (
            f"{self.used_memory_mib:.0f} MiB used, "
            f"gpu {self.gpu_utilization_percent}%, "
            f"memory {self.memory_utilization_percent}%"
        )


@dataclass(frozen=True)
class AvailabilityVerdict:
    """Result of an availability check.

    A vacant verdict carries only the selected devices, an occupied verdict
    always carries every checked device.
    """

    availability: Availability
    statuses: Tuple[GPUStatus, ...]

    @classmethod
    def vacant(cls, selected: List[GPUStatus]) -> "AvailabilityVerdict":
        return cls(Availability.VACANT, tuple(selected))

    @classmethod
    def occupied(cls, checked: List[GPUStatus]) -> "AvailabilityVerdict":
        return cls(Availability.OCCUPIED, tuple(checked))

    @property
    def is_vacant(self) -> bool:
        return self.availability == Availability.VACANT

    @property
    def device_ids(self) -> List[int]:
        return [status.gpu_id for status in self.statuses]

    @property
    def occupied_statuses(self) -> List[GPUStatus]:
        return [status for status in self.statuses if not status.is_vacant]
