"""
CPU backend built on ``numba.njit(parallel=True)``.

The host has no asynchronous device, so the command queue records what it
is given and runs it on :meth:`HostQueue.finish`. Barriers split the record
into segments; segments run strictly one after another and every ND-range
call joins its worker threads before returning, so no command observes a
later one.
"""

from __future__ import annotations

import logging
import platform
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final

import numba
import numpy as np
from numba.core.errors import NumbaError
from numba.cuda.random import init_xoroshiro128p_states_cpu

from hestonmc.backends.base import (
    BoundKernel,
    CommandQueue,
    ComputeContext,
    DeviceBuffer,
    DeviceHandle,
    Kernel,
    Program,
)
from hestonmc.errors import (
    BuildError,
    DeviceError,
    ExecutionError,
    ReadbackError,
    ResourceError,
)
from hestonmc.kernels import KERNEL_SIGNATURES, KernelName
from hestonmc.kernels.host import HOST_ENTRY_POINTS
from hestonmc.models.device import DeviceInfo, DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.result import Failure, Result, Success
from hestonmc.seeds import allocate_states


__all__ = ["HOST_MAX_LANE_GROUP", "HostBackend"]

logger = logging.getLogger(__name__)

# lanes of one group run sequentially on one worker thread
HOST_MAX_LANE_GROUP: Final[int] = 64

_EXECUTION_ERRORS = (NumbaError, ValueError, TypeError, IndexError, MemoryError)


# ─────────────────────────────── resources ──────────────────────────────────


@dataclass
class HostDevice:
    info: DeviceInfo

    def release(self) -> None:
        pass


@dataclass
class HostContext:
    device: DeviceInfo

    def release(self) -> None:
        pass


@dataclass
class HostBuffer:
    label: str
    count: int
    dtype: np.dtype
    array: np.ndarray | None

    def release(self) -> None:
        self.array = None


@dataclass
class HostKernel:
    name: KernelName
    entry: Callable[..., object]
    lane_limit: int

    def max_lane_group(self) -> int:
        return self.lane_limit

    def release(self) -> None:
        pass


@dataclass
class HostProgram:
    entries: dict[KernelName, Callable[..., object]]
    lane_limit: int
    build_log: str = ""

    def create_kernel(self, name: KernelName) -> Result[Kernel, BuildError]:
        entry = self.entries.get(name)
        if entry is None:
            return Failure(
                BuildError(
                    message=f"program has no entry point {name!r}",
                    kernel_name=name,
                    build_log=self.build_log,
                )
            )
        return Success(HostKernel(name=name, entry=entry, lane_limit=self.lane_limit))

    def release(self) -> None:
        self.entries = {}


@dataclass(frozen=True)
class _Command:
    bound: BoundKernel
    geometry: tuple[int, int] | None


@dataclass
class HostQueue:
    """Deferred in-order queue; see the module docstring."""

    segments: list[list[_Command]] = field(default_factory=lambda: [[]])

    def enqueue_task(self, bound: BoundKernel) -> Result[None, ExecutionError]:
        self.segments[-1].append(_Command(bound=bound, geometry=None))
        return Success(None)

    def enqueue_range(
        self, bound: BoundKernel, global_size: int, lane_group: int
    ) -> Result[None, ExecutionError]:
        if global_size < 1 or lane_group < 1:
            return Failure(
                ExecutionError(
                    stage=bound.name,
                    message=f"invalid launch geometry {global_size}/{lane_group}",
                )
            )
        self.segments[-1].append(_Command(bound=bound, geometry=(global_size, lane_group)))
        return Success(None)

    def enqueue_barrier(self) -> Result[None, ExecutionError]:
        self.segments.append([])
        return Success(None)

    def finish(self) -> Result[None, ExecutionError]:
        pending, self.segments = self.segments, [[]]
        for segment in pending:
            for command in segment:
                match _run(command):
                    case Failure(error):
                        return Failure(error)
                    case Success(_):
                        pass
        return Success(None)

    def read_buffer(self, buffer: DeviceBuffer) -> Result[np.ndarray, ReadbackError]:
        match self.finish():
            case Failure(error):
                return Failure(
                    ReadbackError(buffer=buffer.label, message=f"{error.stage}: {error.message}")
                )
            case Success(_):
                pass
        array = _host_array(buffer)
        if array is None:
            return Failure(ReadbackError(buffer=buffer.label, message="buffer was released"))
        return Success(array[: buffer.count].copy())

    def release(self) -> None:
        self.segments = [[]]


def _host_array(buffer: object) -> np.ndarray | None:
    assert isinstance(buffer, HostBuffer), f"foreign buffer {buffer!r} on the host queue"
    return buffer.array


def _kernel_argument(value: object) -> object:
    return _host_array(value) if isinstance(value, DeviceBuffer) else value


def _run(command: _Command) -> Result[None, ExecutionError]:
    kernel = command.bound.kernel
    assert isinstance(kernel, HostKernel), f"foreign kernel {kernel!r} on the host queue"
    args = tuple(_kernel_argument(value) for value in command.bound.args)
    if any(value is None for value in args):
        return Failure(ExecutionError(stage=kernel.name, message="argument buffer was released"))
    try:
        match command.geometry:
            case None:
                kernel.entry(*args)
            case (global_size, lane_group):
                kernel.entry(global_size, lane_group, *args)
    except _EXECUTION_ERRORS as exc:
        return Failure(ExecutionError(stage=kernel.name, message=str(exc)))
    return Success(None)


# ─────────────────────────────── build ──────────────────────────────────────


def _prototype_arguments(name: KernelName, precision: Precision) -> tuple[object, ...]:
    """Sample arguments with the exact types the queue will pass at launch."""
    states = allocate_states(1)
    prices = np.zeros(1, dtype=precision.to_numpy())
    result = np.zeros(2, dtype=precision.to_numpy())
    match name:
        case "uniformSeeds":
            # numba's CPU state initializer: (states, seed, subsequence start)
            return (states, 0, 0)
        case "hestonSimulation":
            return (1, 1, states, prices, 1.0, 1.0, 1.0, 1.0, 1.0, 1)
        case "straightPrice" | "vanillaCall" | "vanillaPut":
            return (1, 1, prices, 1.0)
        case "meanAndStandardDeviation":
            return (1, prices, result)
        case _:
            raise AssertionError(f"unknown kernel {name!r}")


def _compiled_dispatcher(name: KernelName) -> object:
    return init_xoroshiro128p_states_cpu if name == "uniformSeeds" else HOST_ENTRY_POINTS[name]


def _compile(precision: Precision) -> Result[str, BuildError]:
    log: list[str] = []
    for name in KERNEL_SIGNATURES:
        dispatcher = _compiled_dispatcher(name)
        signature = tuple(numba.typeof(sample) for sample in _prototype_arguments(name, precision))
        try:
            dispatcher.compile(signature)  # type: ignore[attr-defined]
        except NumbaError as exc:
            return Failure(
                BuildError(
                    message=f"failed to compile {name}",
                    kernel_name=name,
                    build_log="\n".join([*log, str(exc)]),
                )
            )
        log.append(f"{name}{signature}")
    return Success("\n".join(log))


# ─────────────────────────────── backend ────────────────────────────────────


class HostBackend:
    """Runs the pipeline on the host CPU."""

    name = "host"
    device_kind = DeviceKind.CPU

    def find_device(self, kind: DeviceKind) -> Result[DeviceHandle, DeviceError]:
        if kind is not DeviceKind.CPU:
            return Failure(
                DeviceError(requested=kind, message="the host backend only provides CPU devices")
            )
        info = DeviceInfo(
            name=platform.processor() or platform.machine() or "host CPU",
            kind=DeviceKind.CPU,
            max_lane_group=HOST_MAX_LANE_GROUP,
            compute_units=numba.get_num_threads(),
        )
        return Success(HostDevice(info=info))

    def create_context(self, device: DeviceHandle) -> Result[ComputeContext, ResourceError]:
        return Success(HostContext(device=device.info))

    def create_queue(self, context: ComputeContext) -> Result[CommandQueue, ResourceError]:
        return Success(HostQueue())

    def build_program(
        self, context: ComputeContext, precision: Precision
    ) -> Result[Program, BuildError]:
        logger.debug("compiling host kernels for %s", precision.value)
        return _compile(precision).map(
            lambda log: HostProgram(
                entries=dict(HOST_ENTRY_POINTS),
                lane_limit=context.device.max_lane_group,
                build_log=log,
            )
        )

    def allocate(
        self, context: ComputeContext, label: str, dtype: np.dtype, count: int
    ) -> Result[DeviceBuffer, ResourceError]:
        try:
            array = np.empty(count, dtype=dtype)
        except (MemoryError, ValueError) as exc:
            return Failure(
                ResourceError(resource="buffer", message=f"cannot allocate {label}: {exc}")
            )
        return Success(HostBuffer(label=label, count=count, dtype=np.dtype(dtype), array=array))
