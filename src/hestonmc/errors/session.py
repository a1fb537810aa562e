"""Error ADTs for the device session (discovery through read-back)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from hestonmc.models.device import DeviceKind


@dataclass(frozen=True)
class DeviceError:
    """No compute device of the requested class is available."""

    requested: DeviceKind
    message: str
    kind: Literal["DeviceError"] = "DeviceError"


@dataclass(frozen=True)
class ResourceError:
    """Context, queue or buffer allocation failed."""

    resource: Literal["context", "queue", "buffer"]
    message: str
    kind: Literal["ResourceError"] = "ResourceError"


@dataclass(frozen=True)
class BuildError:
    """The kernel program failed to compile; ``build_log`` is the compiler output."""

    message: str
    kernel_name: str = ""
    build_log: str = ""
    kind: Literal["BuildError"] = "BuildError"


@dataclass(frozen=True)
class BindError:
    """An argument could not be bound to a kernel entry point."""

    kernel_name: str
    message: str
    position: int | None = None
    kind: Literal["BindError"] = "BindError"


@dataclass(frozen=True)
class ExecutionError:
    """A pipeline stage failed while being dispatched or run."""

    stage: str
    message: str
    kind: Literal["ExecutionError"] = "ExecutionError"


@dataclass(frozen=True)
class ReadbackError:
    """Transferring a device buffer back to the host failed."""

    buffer: str
    message: str
    kind: Literal["ReadbackError"] = "ReadbackError"
