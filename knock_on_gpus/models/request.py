from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from knock_on_gpus.models.devices import parse_device_list
from knock_on_gpus.models.gpu import MAX_MEMORY_BORDER_MIB, AvailabilityVerdict


class KnockRequest(BaseModel):
    """One invocation of the gatekeeper."""

    devices: Optional[List[int]] = Field(
        default=None, description="0-based indices into the visible devices"
    )
    min_gpus: int = Field(default=0, ge=0, description="Minimum number of GPUs required")
    max_gpus: int = Field(default=1024, ge=1, description="Maximum number of GPUs to use")
    memory_border_mib: Optional[float] = Field(
        default=None,
        gt=0,
        le=MAX_MEMORY_BORDER_MIB,
        allow_inf_nan=False,
        description="Used-memory threshold override in MiB",
    )
    auto_select: Optional[int] = Field(
        default=None, ge=1, description="Pick the first N vacant GPUs"
    )
    strict_gpu: bool = Field(default=False, description="Fail instead of falling back to CPU")
    command: List[str] = Field(default_factory=list, description="Command to run on success")

    @field_validator("devices", mode="before")
    @classmethod
    def parse_devices(cls, v):
        if isinstance(v, str):
            return parse_device_list(v)
        return v

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min_gpus > self.max_gpus:
            raise ValueError(
                f"min_gpus ({self.min_gpus}) must not exceed max_gpus ({self.max_gpus})"
            )
        if self.auto_select is not None and self.auto_select > self.max_gpus:
            raise ValueError(
                f"auto_select ({self.auto_select}) must not exceed max_gpus ({self.max_gpus})"
            )
        return self


@dataclass(frozen=True)
class KnockOutcome:
    """Result of a knock: the verdict plus what to export to the child."""

    verdict: AvailabilityVerdict
    cpu_fallback: bool = False
    environment: Dict[str, str] = field(default_factory=dict)

    @property
    def is_vacant(self) -> bool:
        return self.verdict.is_vacant

    @property
    def devices(self) -> List[int]:
        return self.verdict.device_ids
