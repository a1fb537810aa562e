"""Device classes and the immutable description of an acquired device."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


__all__ = ["DeviceKind", "DeviceInfo"]


class DeviceKind(str, Enum):
    """Class of compute device requested on the command line (``-c``)."""

    GPU = "gpu"
    CPU = "cpu"


class DeviceInfo(BaseModel):
    """What a backend reports about the device it acquired."""

    name: str
    kind: DeviceKind
    max_lane_group: int = Field(..., gt=0)
    compute_units: int = Field(1, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")
