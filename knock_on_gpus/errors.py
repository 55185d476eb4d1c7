from typing import Optional


class KnockError(Exception):
    """Base class for all knock-on-gpus errors."""

    pass


class ConfigurationError(KnockError, ValueError):
    """Raised for malformed device lists, out-of-range ids and impossible requests.

    Always reported before any telemetry is read.
    """

    def __init__(self, message: str, token: Optional[str] = None):
        super().__init__(message)
        self.token = token


class UnderProvisionedError(ConfigurationError):
    """Raised when fewer devices are available than the minimum required."""

    def __init__(self, available: int, required: int):
        super().__init__(
            f"You are trying to use {available} GPU(s), "
            f"but at least {required} GPU(s) are required."
        )
        self.available = available
        self.required = required


class TelemetrySourceError(KnockError):
    """Raised when the telemetry source itself cannot be used (no driver or hardware)."""

    pass


class TelemetryQueryError(KnockError):
    """Raised when a single device fails to report its status."""

    def __init__(self, device_id: int, reason: object = None):
        message = f"Failed to query GPU {device_id}"
        if reason is not None:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.device_id = device_id


class LaunchError(KnockError):
    """Raised when the child command cannot be started."""

    pass
