"""Resolution of the device ids a single knock is allowed to check.

Combines the externally declared visible devices (``CUDA_VISIBLE_DEVICES``
style strings), an optional user selection of indices into that list and the
min/max count bounds. Everything here is pure: inputs are passed in explicitly
and nothing reads or writes the process environment.
"""

import logging
from typing import List, NamedTuple, Optional

from knock_on_gpus.errors import ConfigurationError, UnderProvisionedError
from knock_on_gpus.models.devices import parse_device_list

logger = logging.getLogger(__name__)


class BoundedDevices(NamedTuple):
    """Devices kept after clamping, plus the ids dropped by truncation."""

    devices: List[int]
    dropped: List[int]

    @property
    def truncated(self) -> bool:
        return len(self.dropped) > 0


def resolve_visible_devices(env_value: Optional[str], total_device_count: int) -> List[int]:
    """Return the sorted, de-duplicated device ids this process may use.

    ``None`` means the variable is unset and every device is visible.
    """
    if env_value is None:
        return list(range(total_device_count))

    devices = []
    for raw in env_value.split(","):
        token = raw.strip()
        if not token:
            continue
        # Validate token by token so an earlier bad token is never masked
        # by a later one.
        device = parse_device_list(token)[0]
        if device >= total_device_count:
            raise ConfigurationError(f"Device number {device} is out of range", token=token)
        devices.append(device)

    visible = sorted(set(devices))
    logger.debug("Visible devices %s (of %d)", visible, total_device_count)
    return visible


def resolve_selection(request: List[int], visible: List[int]) -> List[int]:
    """Map 0-based indices into ``visible`` to device ids."""
    selected = []
    for index in request:
        if index < 0 or index >= len(visible):
            raise ConfigurationError(f"Index {index} is out of range", token=str(index))
        selected.append(visible[index])
    return sorted(set(selected))


def clamp_to_bounds(devices: List[int], min_required: int, max_allowed: int) -> BoundedDevices:
    """Enforce the device count bounds.

    Too few devices is an error. Too many keeps the ``max_allowed`` lowest ids
    and reports the rest as dropped.
    """
    if len(devices) < min_required:
        raise UnderProvisionedError(available=len(devices), required=min_required)

    ordered = sorted(devices)
    if len(ordered) > max_allowed:
        return BoundedDevices(ordered[:max_allowed], ordered[max_allowed:])
    return BoundedDevices(ordered, [])
