"""
GPU backend built on ``numba.cuda``.

* One in-order ``cuda.stream()`` is the command queue.
* ND-range stages launch ``ceil(N / L)`` blocks of ``L`` threads.
* A barrier records an event on the stream and makes the stream wait on it.
* ``finish`` synchronises the stream; reads are stream-ordered
  ``copy_to_host`` calls followed by a synchronise.
* ``uniformSeeds`` expands the generator states on the host into pinned
  memory and copies them to the device on the stream, so it is ordered
  before every later launch.

Releasing the context closes every CUDA context of the calling thread;
buffers are released before that, so device memory is freed first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final

import numba
import numpy as np
from numba import cuda
from numba.core.errors import NumbaError
from numba.cuda.cudadrv.devicearray import DeviceNDArray
from numba.cuda.cudadrv.driver import CudaAPIError, Stream
from numba.cuda.cudadrv.error import CudaDriverError, CudaSupportError, NvvmError
from numba.cuda.dispatcher import CUDADispatcher

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
from hestonmc.kernels.cuda import CUDA_ENTRY_POINTS
from hestonmc.models.device import DeviceInfo, DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.result import Failure, Result, Success
from hestonmc.seeds import RNG_STATE_DTYPE, uniform_seeds


__all__ = ["CudaBackend"]

logger = logging.getLogger(__name__)

_DRIVER_ERRORS: Final = (CudaSupportError, CudaDriverError)
_BUILD_ERRORS: Final = (NumbaError, NvvmError, CudaSupportError, CudaDriverError)
_LAUNCH_ERRORS: Final = (NumbaError, CudaDriverError, CudaAPIError, ValueError, TypeError)


def _device_name(raw: object) -> str:
    return raw.decode() if isinstance(raw, bytes) else str(raw)


# ─────────────────────────────── resources ──────────────────────────────────


@dataclass
class CudaDevice:
    info: DeviceInfo
    device_id: int

    def release(self) -> None:
        pass


@dataclass
class CudaContext:
    device: DeviceInfo
    device_id: int
    closed: bool = False

    def release(self) -> None:
        if not self.closed:
            self.closed = True
            cuda.close()


@dataclass
class CudaBuffer:
    label: str
    count: int
    dtype: np.dtype
    device_array: DeviceNDArray | None

    def release(self) -> None:
        self.device_array = None


@dataclass
class CudaKernel:
    name: KernelName
    dispatcher: CUDADispatcher | None
    lane_limit: int

    def max_lane_group(self) -> int:
        return self.lane_limit

    def release(self) -> None:
        self.dispatcher = None


@dataclass
class CudaProgram:
    # name -> (dispatcher, max threads per block of the compiled overload)
    compiled: dict[KernelName, tuple[CUDADispatcher | None, int]]
    build_log: str = ""

    def create_kernel(self, name: KernelName) -> Result[Kernel, BuildError]:
        if name not in self.compiled:
            return Failure(
                BuildError(
                    message=f"program has no entry point {name!r}",
                    kernel_name=name,
                    build_log=self.build_log,
                )
            )
        dispatcher, lane_limit = self.compiled[name]
        return Success(CudaKernel(name=name, dispatcher=dispatcher, lane_limit=lane_limit))

    def release(self) -> None:
        self.compiled = {}


def _device_array(buffer: object) -> DeviceNDArray:
    assert isinstance(buffer, CudaBuffer), f"foreign buffer {buffer!r} on the CUDA queue"
    assert buffer.device_array is not None, f"buffer {buffer.label} was released"
    return buffer.device_array


def _kernel_argument(value: object) -> object:
    return _device_array(value) if isinstance(value, DeviceBuffer) else value


@dataclass
class CudaQueue:
    stream: Stream
    # pinned host copies that must outlive their asynchronous transfer
    staging: list[np.ndarray] = field(default_factory=list)

    def enqueue_task(self, bound: BoundKernel) -> Result[None, ExecutionError]:
        if bound.name == "uniformSeeds":
            return self._seed_states(bound)
        return self._launch(bound, blocks=1, lane_group=1)

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
        blocks = (global_size + lane_group - 1) // lane_group
        return self._launch(bound, blocks=blocks, lane_group=lane_group)

    def enqueue_barrier(self) -> Result[None, ExecutionError]:
        try:
            event = cuda.event(timing=False)
            event.record(self.stream)
            event.wait(self.stream)
        except _DRIVER_ERRORS as exc:
            return Failure(ExecutionError(stage="barrier", message=str(exc)))
        return Success(None)

    def finish(self) -> Result[None, ExecutionError]:
        try:
            self.stream.synchronize()
        except _DRIVER_ERRORS as exc:
            return Failure(ExecutionError(stage="finish", message=str(exc)))
        self.staging.clear()
        return Success(None)

    def read_buffer(self, buffer: DeviceBuffer) -> Result[np.ndarray, ReadbackError]:
        try:
            host = _device_array(buffer).copy_to_host(stream=self.stream)
            self.stream.synchronize()
        except _DRIVER_ERRORS as exc:
            return Failure(ReadbackError(buffer=buffer.label, message=str(exc)))
        return Success(np.asarray(host)[: buffer.count])

    def release(self) -> None:
        self.staging.clear()

    def _launch(
        self, bound: BoundKernel, *, blocks: int, lane_group: int
    ) -> Result[None, ExecutionError]:
        kernel = bound.kernel
        assert isinstance(kernel, CudaKernel), f"foreign kernel {kernel!r} on the CUDA queue"
        assert kernel.dispatcher is not None, f"kernel {kernel.name} was released"
        args = tuple(_kernel_argument(value) for value in bound.args)
        try:
            kernel.dispatcher[blocks, lane_group, self.stream](*args)
        except _LAUNCH_ERRORS as exc:
            return Failure(ExecutionError(stage=kernel.name, message=str(exc)))
        return Success(None)

    def _seed_states(self, bound: BoundKernel) -> Result[None, ExecutionError]:
        seed, count, buffer = bound.args
        assert isinstance(seed, int) and isinstance(count, int)
        target = _device_array(buffer)
        if count > target.shape[0]:
            return Failure(
                ExecutionError(
                    stage="uniformSeeds",
                    message=f"state buffer holds {target.shape[0]} states, {count} requested",
                )
            )
        try:
            host = cuda.pinned_array(count, dtype=RNG_STATE_DTYPE)
            uniform_seeds(seed, count, host)
            destination = target if count == target.shape[0] else target[:count]
            destination.copy_to_device(host, stream=self.stream)
        except (*_DRIVER_ERRORS, ValueError, TypeError) as exc:
            return Failure(ExecutionError(stage="uniformSeeds", message=str(exc)))
        self.staging.append(host)
        return Success(None)


# ─────────────────────────────── build ──────────────────────────────────────


def _prototype_arguments(name: KernelName, precision: Precision) -> tuple[object, ...]:
    """Sample arguments with the types the queue passes at launch."""
    states = np.empty(1, dtype=RNG_STATE_DTYPE)
    prices = np.zeros(1, dtype=precision.to_numpy())
    result = np.zeros(2, dtype=precision.to_numpy())
    match name:
        case "hestonSimulation":
            return (states, prices, 1.0, 1.0, 1.0, 1.0, 1.0, 1)
        case "straightPrice" | "vanillaCall" | "vanillaPut":
            return (prices, 1.0)
        case "meanAndStandardDeviation":
            return (1, prices, result)
        case _:
            raise AssertionError(f"kernel {name!r} has no device code")


def _compile(precision: Precision) -> Result[CudaProgram, BuildError]:
    compiled: dict[KernelName, tuple[CUDADispatcher | None, int]] = {}
    log: list[str] = []
    for name in KERNEL_SIGNATURES:
        dispatcher = CUDA_ENTRY_POINTS.get(name)
        if dispatcher is None:
            compiled[name] = (None, 1)
            continue
        signature = tuple(numba.typeof(sample) for sample in _prototype_arguments(name, precision))
        try:
            overload = dispatcher.compile(signature)
        except _BUILD_ERRORS as exc:
            return Failure(
                BuildError(
                    message=f"failed to compile {name}",
                    kernel_name=name,
                    build_log="\n".join([*log, str(exc)]),
                )
            )
        compiled[name] = (dispatcher, int(overload.max_threads_per_block))
        log.append(f"{name}{signature}: max {overload.max_threads_per_block} threads per block")
    return Success(CudaProgram(compiled=compiled, build_log="\n".join(log)))


# ─────────────────────────────── backend ────────────────────────────────────


class CudaBackend:
    """Runs the pipeline on the first CUDA device."""

    name = "cuda"
    device_kind = DeviceKind.GPU

    def find_device(self, kind: DeviceKind) -> Result[DeviceHandle, DeviceError]:
        if kind is not DeviceKind.GPU:
            return Failure(
                DeviceError(requested=kind, message="the CUDA backend only provides GPU devices")
            )
        if not cuda.is_available():
            return Failure(DeviceError(requested=kind, message="Could not find a GPU device"))
        try:
            gpu = cuda.list_devices()[0]
            info = DeviceInfo(
                name=_device_name(gpu.name),
                kind=DeviceKind.GPU,
                max_lane_group=int(gpu.MAX_THREADS_PER_BLOCK),
                compute_units=int(gpu.MULTIPROCESSOR_COUNT),
            )
        except (*_DRIVER_ERRORS, IndexError) as exc:
            return Failure(
                DeviceError(requested=kind, message=f"Could not find a GPU device: {exc}")
            )
        return Success(CudaDevice(info=info, device_id=int(gpu.id)))

    def create_context(self, device: DeviceHandle) -> Result[ComputeContext, ResourceError]:
        assert isinstance(device, CudaDevice)
        try:
            cuda.select_device(device.device_id)
        except _DRIVER_ERRORS as exc:
            return Failure(ResourceError(resource="context", message=str(exc)))
        return Success(CudaContext(device=device.info, device_id=device.device_id))

    def create_queue(self, context: ComputeContext) -> Result[CommandQueue, ResourceError]:
        try:
            stream = cuda.stream()
        except _DRIVER_ERRORS as exc:
            return Failure(ResourceError(resource="queue", message=str(exc)))
        return Success(CudaQueue(stream=stream))

    def build_program(
        self, context: ComputeContext, precision: Precision
    ) -> Result[Program, BuildError]:
        logger.debug("compiling CUDA kernels for %s", precision.value)
        return _compile(precision)

    def allocate(
        self, context: ComputeContext, label: str, dtype: np.dtype, count: int
    ) -> Result[DeviceBuffer, ResourceError]:
        try:
            array = cuda.device_array(count, dtype=dtype)
        except (*_DRIVER_ERRORS, MemoryError, ValueError) as exc:
            return Failure(
                ResourceError(resource="buffer", message=f"cannot allocate {label}: {exc}")
            )
        return Success(
            CudaBuffer(label=label, count=count, dtype=np.dtype(dtype), device_array=array)
        )
