"""Compute backends and the device-class -> backend mapping."""

from __future__ import annotations

from hestonmc.backends.base import ComputeBackend
from hestonmc.backends.cuda import CudaBackend
from hestonmc.backends.host import HostBackend
from hestonmc.models.device import DeviceKind


__all__ = ["ComputeBackend", "CudaBackend", "HostBackend", "select_backend"]


def select_backend(kind: DeviceKind) -> ComputeBackend:
    """``-c`` (CPU) runs on the host backend, the default GPU class on CUDA."""
    match kind:
        case DeviceKind.CPU:
            return HostBackend()
        case DeviceKind.GPU:
            return CudaBackend()
