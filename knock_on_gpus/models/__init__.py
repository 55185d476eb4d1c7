from .devices import format_device_list, parse_device_list
from .gpu import Availability, AvailabilityVerdict, GPUStatus, GPUTelemetry
from .request import KnockOutcome, KnockRequest

__all__ = [
    "Availability",
    "AvailabilityVerdict",
    "GPUStatus",
    "GPUTelemetry",
    "KnockOutcome",
    "KnockRequest",
    "format_device_list",
    "parse_device_list",
]
