from enum import Enum
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knock_on_gpus.models.gpu import MAX_MEMORY_BORDER_MIB


class NoDevicePolicy(str, Enum):
    """What to do when there are no GPU devices to check."""

    CPU_FALLBACK = "cpu_fallback"
    FAIL = "fail"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="KNOCK_")

    memory_border_mib: float = Field(
        default=300.0, gt=0, le=MAX_MEMORY_BORDER_MIB, allow_inf_nan=False
    )
    visible_devices_env: str = "CUDA_VISIBLE_DEVICES"
    no_device_policy: NoDevicePolicy = NoDevicePolicy.CPU_FALLBACK
    strict_gpu: bool = False
    max_gpus: int = Field(default=1024, ge=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


settings = Settings()
