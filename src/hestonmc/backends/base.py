"""
Backend-neutral interface to a data-parallel compute device.

A backend hands out a small set of resources, each of which owns something
on the device and is given back with ``release()``:

``DeviceHandle`` -> ``ComputeContext`` -> ``CommandQueue`` -> ``Program`` ->
``Kernel`` objects and ``DeviceBuffer`` objects.

:class:`hestonmc.session.ComputeSession` acquires them in that order and
releases them in reverse. Every fallible call returns a ``Result``; nothing
here raises for a device-side failure.

Argument binding is backend-neutral and lives in :func:`bind_arguments`: it
checks a call against :data:`hestonmc.kernels.KERNEL_SIGNATURES` before a
kernel is ever enqueued.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, assert_never, runtime_checkable

import numpy as np

from hestonmc.errors import (
    BindError,
    BuildError,
    DeviceError,
    ExecutionError,
    ReadbackError,
    ResourceError,
)
from hestonmc.kernels import INT32_MAX, INT32_MIN, KERNEL_SIGNATURES, ArgKind, KernelName
from hestonmc.models.device import DeviceInfo, DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.result import Failure, Result, Success


__all__ = [
    "BoundKernel",
    "CommandQueue",
    "ComputeBackend",
    "ComputeContext",
    "DeviceBuffer",
    "DeviceHandle",
    "Kernel",
    "Program",
    "bind_arguments",
]


class DeviceHandle(Protocol):
    info: DeviceInfo

    def release(self) -> None: ...


class ComputeContext(Protocol):
    device: DeviceInfo

    def release(self) -> None: ...


@runtime_checkable
class DeviceBuffer(Protocol):
    """A device allocation of ``count`` elements of ``dtype``."""

    label: str
    count: int
    dtype: np.dtype

    def release(self) -> None: ...


class Kernel(Protocol):
    name: KernelName

    def max_lane_group(self) -> int:
        """Largest lane group this compiled kernel can be launched with."""
        ...

    def release(self) -> None: ...


class Program(Protocol):
    build_log: str

    def create_kernel(self, name: KernelName) -> Result[Kernel, BuildError]: ...

    def release(self) -> None: ...


@dataclass(frozen=True)
class BoundKernel:
    """A kernel together with a checked, normalised argument tuple."""

    kernel: Kernel
    args: tuple[object, ...]

    @property
    def name(self) -> KernelName:
        return self.kernel.name


class CommandQueue(Protocol):
    """In-order command queue.

    ``enqueue_*`` may return before the command has run; ``finish`` blocks
    until every enqueued command has completed. ``read_buffer`` is a blocking
    read that observes every command enqueued before it.
    """

    def enqueue_task(self, bound: BoundKernel) -> Result[None, ExecutionError]: ...

    def enqueue_range(
        self, bound: BoundKernel, global_size: int, lane_group: int
    ) -> Result[None, ExecutionError]: ...

    def enqueue_barrier(self) -> Result[None, ExecutionError]: ...

    def finish(self) -> Result[None, ExecutionError]: ...

    def read_buffer(self, buffer: DeviceBuffer) -> Result[np.ndarray, ReadbackError]: ...

    def release(self) -> None: ...


class ComputeBackend(Protocol):
    name: str
    device_kind: DeviceKind

    def find_device(self, kind: DeviceKind) -> Result[DeviceHandle, DeviceError]: ...

    def create_context(self, device: DeviceHandle) -> Result[ComputeContext, ResourceError]: ...

    def create_queue(self, context: ComputeContext) -> Result[CommandQueue, ResourceError]: ...

    def build_program(
        self, context: ComputeContext, precision: Precision
    ) -> Result[Program, BuildError]: ...

    def allocate(
        self, context: ComputeContext, label: str, dtype: np.dtype, count: int
    ) -> Result[DeviceBuffer, ResourceError]: ...


def _check_argument(kind: ArgKind, value: object, precision: Precision) -> Result[object, str]:
    match kind:
        case "int32":
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                return Failure(f"expected an int32, got {type(value).__name__}")
            if not INT32_MIN <= int(value) <= INT32_MAX:
                return Failure(f"{int(value)} does not fit in an int32")
            return Success(int(value))
        case "float":
            if isinstance(value, bool) or not isinstance(
                value, (int, float, np.integer, np.floating)
            ):
                return Failure(f"expected a float, got {type(value).__name__}")
            # rounded to the format of the buffers
            return Success(float(precision.to_numpy().type(value)))
        case "buffer":
            if not isinstance(value, DeviceBuffer):
                return Failure(f"expected a device buffer, got {type(value).__name__}")
            return Success(value)
        case _:
            assert_never(kind)


def bind_arguments(
    kernel: Kernel, args: Sequence[object], precision: Precision = Precision.float32
) -> Result[BoundKernel, BindError]:
    """Check ``args`` against the kernel's declared signature.

    Fails on an arity mismatch, on an argument of the wrong kind and on an
    integer outside the signed 32-bit range. Scalar ``float`` arguments are
    rounded to ``precision``, the format of the buffers they are combined with.
    """
    signature = KERNEL_SIGNATURES[kernel.name]
    if len(args) != len(signature):
        return Failure(
            BindError(
                kernel_name=kernel.name,
                message=f"expected {len(signature)} arguments, got {len(args)}",
            )
        )
    bound: list[object] = []
    for position, (kind, value) in enumerate(zip(signature, args)):
        match _check_argument(kind, value, precision):
            case Failure(reason):
                return Failure(
                    BindError(kernel_name=kernel.name, message=reason, position=position)
                )
            case Success(checked):
                bound.append(checked)
    return Success(BoundKernel(kernel=kernel, args=tuple(bound)))
