import logging
import os
from typing import Callable, List, Mapping, Optional

from knock_on_gpus.config import NoDevicePolicy, Settings
from knock_on_gpus.errors import ConfigurationError, TelemetrySourceError
from knock_on_gpus.models.devices import format_device_list
from knock_on_gpus.models.gpu import AvailabilityVerdict
from knock_on_gpus.models.request import KnockOutcome, KnockRequest
from knock_on_gpus.services.availability import AvailabilityEngine, memory_border_bytes
from knock_on_gpus.services.device_resolver import (
    clamp_to_bounds,
    resolve_selection,
    resolve_visible_devices,
)
from knock_on_gpus.services.telemetry import NvmlTelemetrySource, TelemetrySource

logger = logging.getLogger(__name__)


class Gatekeeper:
    """Coordinates device resolution and the availability check for one knock."""

    def __init__(
        self,
        settings: Settings,
        telemetry_factory: Callable[[], TelemetrySource] = NvmlTelemetrySource,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._settings = settings
        self._telemetry_factory = telemetry_factory
        self._environ = os.environ if environ is None else environ

    def knock(self, request: KnockRequest) -> KnockOutcome:
        """Resolve the devices for ``request`` and check whether they are vacant.

        Configuration and telemetry errors propagate. Occupancy is returned
        as an outcome, not raised.
        """
        strict = request.strict_gpu or self._settings.strict_gpu
        telemetry = self._telemetry_factory()

        try:
            with telemetry:
                devices = self._resolve_devices(request, telemetry.device_count())
                if not devices:
                    return self._no_devices(strict)
                return self._check(request, telemetry, devices)
        except TelemetrySourceError as e:
            if strict:
                raise
            logger.warning("%s", e)

        # Without a telemetry source no device is visible.
        clamp_to_bounds([], request.min_gpus, request.max_gpus)
        return self._no_devices(strict)

    def _check(
        self,
        request: KnockRequest,
        telemetry: TelemetrySource,
        devices: List[int],
    ) -> KnockOutcome:
        border_mib = request.memory_border_mib or self._settings.memory_border_mib
        engine = AvailabilityEngine(telemetry)
        verdict = engine.check(devices, memory_border_bytes(border_mib), request.auto_select)

        if not verdict.is_vacant:
            return KnockOutcome(verdict=verdict)
        return KnockOutcome(
            verdict=verdict,
            environment={self._settings.visible_devices_env: format_device_list(verdict.device_ids)},
        )

    def _resolve_devices(self, request: KnockRequest, device_count: int) -> List[int]:
        env_name = self._settings.visible_devices_env
        devices = resolve_visible_devices(self._environ.get(env_name), device_count)

        if request.devices is not None:
            devices = resolve_selection(request.devices, devices)

        bounded = clamp_to_bounds(devices, request.min_gpus, request.max_gpus)
        if bounded.truncated:
            logger.warning(
                "You are trying to use %d GPU(s), but at most %d GPU(s) are allowed. "
                "Only GPU %s will be used.",
                len(devices),
                request.max_gpus,
                format_device_list(bounded.devices),
            )
        return bounded.devices

    def _no_devices(self, strict: bool) -> KnockOutcome:
        if strict:
            raise ConfigurationError("No GPU devices to check and a GPU is required")
        if self._settings.no_device_policy == NoDevicePolicy.FAIL:
            raise ConfigurationError("No GPU devices to check")

        # Empty list hides every GPU from the child.
        return KnockOutcome(
            verdict=AvailabilityVerdict.vacant([]),
            cpu_fallback=True,
            environment={self._settings.visible_devices_env: ""},
        )
