"""
Device session: the only place where device side effects happen.

:class:`ComputeSession` walks one pricing run through

    Init -> DeviceAcquired -> ContextReady -> QueueReady -> ProgramBuilt
    -> KernelsBound -> BuffersBound -> ArgsBound -> Executing -> ReadBack
    -> Done

with an absorbing ``Failed`` state reachable from every step. A step that
fails moves the session to ``Failed`` and releases everything acquired so
far before its ``Failure`` is returned; calling a step out of order is a
programming error and raises ``AssertionError``.

Every acquired resource registers its ``release`` on an
:class:`contextlib.ExitStack`, so leaving the session (normally, after a
failure, or through an exception) releases each resource exactly once and
in reverse order of acquisition: buffers, kernels, program, queue, context,
device.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from enum import Enum
from types import TracebackType
from typing import Final, TypeVar, assert_never

import numpy as np

from hestonmc.backends.base import (
    BoundKernel,
    CommandQueue,
    ComputeBackend,
    ComputeContext,
    DeviceBuffer,
    DeviceHandle,
    Kernel,
    Program,
    bind_arguments,
)
from hestonmc.effects.composition import EffectSequence
from hestonmc.effects.logging import LogMessage
from hestonmc.effects.pipeline import (
    Barrier,
    BufferLabel,
    Finish,
    LaunchRange,
    LaunchTask,
    ReadBuffer,
)
from hestonmc.effects.types import Effect
from hestonmc.errors import BindError, PipelineError
from hestonmc.kernels import KernelName, payoff_kernel_name
from hestonmc.models.device import DeviceInfo, DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.parameters import SimulationParameters
from hestonmc.result import Failure, Result, Success, collect_results
from hestonmc.seeds import RNG_STATE_DTYPE
from hestonmc.timing import StageTimer


__all__ = ["ComputeSession", "SessionState"]

T = TypeVar("T")

DEFAULT_LOGGER_NAME: Final[str] = "hestonmc"


class SessionState(str, Enum):
    INIT = "Init"
    DEVICE_ACQUIRED = "DeviceAcquired"
    CONTEXT_READY = "ContextReady"
    QUEUE_READY = "QueueReady"
    PROGRAM_BUILT = "ProgramBuilt"
    KERNELS_BOUND = "KernelsBound"
    BUFFERS_BOUND = "BuffersBound"
    ARGS_BOUND = "ArgsBound"
    EXECUTING = "Executing"
    READ_BACK = "ReadBack"
    DONE = "Done"
    FAILED = "Failed"


_SUCCESSOR: Final[dict[SessionState, SessionState]] = {
    SessionState.INIT: SessionState.DEVICE_ACQUIRED,
    SessionState.DEVICE_ACQUIRED: SessionState.CONTEXT_READY,
    SessionState.CONTEXT_READY: SessionState.QUEUE_READY,
    SessionState.QUEUE_READY: SessionState.PROGRAM_BUILT,
    SessionState.PROGRAM_BUILT: SessionState.KERNELS_BOUND,
    SessionState.KERNELS_BOUND: SessionState.BUFFERS_BOUND,
    SessionState.BUFFERS_BOUND: SessionState.ARGS_BOUND,
    SessionState.ARGS_BOUND: SessionState.EXECUTING,
    SessionState.EXECUTING: SessionState.READ_BACK,
    SessionState.READ_BACK: SessionState.DONE,
}

# time spent reaching a state, as reported in verbose mode
_STAGE_LABELS: Final[dict[SessionState, str]] = {
    SessionState.DEVICE_ACQUIRED: "find devices",
    SessionState.CONTEXT_READY: "create context",
    SessionState.QUEUE_READY: "create command queue",
    SessionState.PROGRAM_BUILT: "build program",
    SessionState.KERNELS_BOUND: "construct kernels",
    SessionState.BUFFERS_BOUND: "allocate device buffers",
    SessionState.ARGS_BOUND: "populate input queues",
    SessionState.EXECUTING: "start execution",
    SessionState.READ_BACK: "execute program",
    SessionState.DONE: "read output queues",
}


class ComputeSession:
    """Owns every device resource of one pricing run.

    Use as a context manager::

        with ComputeSession(HostBackend()) as session:
            session.acquire_device(DeviceKind.CPU)
            ...
    """

    def __init__(self, backend: ComputeBackend, *, logger_name: str = DEFAULT_LOGGER_NAME) -> None:
        self._backend = backend
        self._logger_name = logger_name
        self._state = SessionState.INIT
        self._resources = ExitStack()
        self._closed = False
        self._timer = StageTimer()

        self._device: DeviceHandle | None = None
        self._context: ComputeContext | None = None
        self._queue: CommandQueue | None = None
        self._program: Program | None = None
        self._build_log = ""
        self._kernels: dict[KernelName, Kernel] = {}
        self._buffers: dict[BufferLabel, DeviceBuffer] = {}
        self._bound: dict[KernelName, BoundKernel] = {}

    # ------------------------------------------------------------ lifecycle
    def __enter__(self) -> ComputeSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release every acquired resource, newest first. Idempotent."""
        if not self._closed:
            self._closed = True
            self._resources.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def timings(self) -> tuple[tuple[str, float], ...]:
        return self._timer.stages

    @property
    def build_log(self) -> str:
        return self._build_log

    @property
    def device_info(self) -> DeviceInfo:
        assert self._device is not None, "no device acquired"
        return self._device.info

    # ------------------------------------------------------------ internals
    def _advance(self, target: SessionState) -> None:
        if _SUCCESSOR.get(self._state) is not target:
            raise AssertionError(
                f"illegal session transition {self._state.value} -> {target.value}"
            )
        self._state = target
        self._timer.mark(_STAGE_LABELS[target])

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            expected = " or ".join(state.value for state in states)
            raise AssertionError(f"session is {self._state.value}, expected {expected}")

    def fail(self, error: PipelineError) -> Failure[PipelineError]:
        """Move to ``Failed``, release every resource and wrap ``error``."""
        self._state = SessionState.FAILED
        self.close()
        return Failure(error)

    def _own(
        self,
        resource: DeviceHandle | ComputeContext | CommandQueue | Program | Kernel | DeviceBuffer,
    ) -> None:
        self._resources.callback(resource.release)

    # ---------------------------------------------------------- acquisition
    def acquire_device(self, kind: DeviceKind) -> Result[DeviceInfo, PipelineError]:
        self._require(SessionState.INIT)
        match self._backend.find_device(kind):
            case Failure(error):
                return self.fail(error)
            case Success(device):
                self._device = device
                self._own(device)
                self._advance(SessionState.DEVICE_ACQUIRED)
                return Success(device.info)

    def create_context(self) -> Result[None, PipelineError]:
        self._require(SessionState.DEVICE_ACQUIRED)
        assert self._device is not None
        match self._backend.create_context(self._device):
            case Failure(error):
                return self.fail(error)
            case Success(context):
                self._context = context
                self._own(context)
                self._advance(SessionState.CONTEXT_READY)
                return Success(None)

    def create_queue(self) -> Result[None, PipelineError]:
        self._require(SessionState.CONTEXT_READY)
        assert self._context is not None
        match self._backend.create_queue(self._context):
            case Failure(error):
                return self.fail(error)
            case Success(queue):
                self._queue = queue
                self._own(queue)
                self._advance(SessionState.QUEUE_READY)
                return Success(None)

    def build_program(self, precision: Precision) -> Result[str, PipelineError]:
        """Compile every entry point; the build log is returned on success."""
        self._require(SessionState.QUEUE_READY)
        assert self._context is not None
        match self._backend.build_program(self._context, precision):
            case Failure(error):
                return self.fail(error)
            case Success(program):
                self._program = program
                self._build_log = program.build_log
                self._own(program)
                self._advance(SessionState.PROGRAM_BUILT)
                return Success(program.build_log)

    def create_kernels(self, names: tuple[KernelName, ...]) -> Result[None, PipelineError]:
        self._require(SessionState.PROGRAM_BUILT)
        assert self._program is not None
        results = [self._program.create_kernel(name) for name in names]
        for result in results:
            match result:
                case Success(kernel):
                    self._kernels[kernel.name] = kernel
                    self._own(kernel)
                case Failure(_):
                    pass
        match collect_results(results):
            case Failure(error):
                return self.fail(error)
            case Success(_):
                self._advance(SessionState.KERNELS_BOUND)
                return Success(None)

    def allocate_buffers(
        self, path_count: int, precision: Precision
    ) -> Result[None, PipelineError]:
        """Generator states and prices/payoffs (one per path) plus the 2-entry result."""
        self._require(SessionState.KERNELS_BOUND)
        assert self._context is not None
        layout: tuple[tuple[BufferLabel, np.dtype, int], ...] = (
            ("states", RNG_STATE_DTYPE, path_count),
            ("prices", precision.to_numpy(), path_count),
            ("result", precision.to_numpy(), 2),
        )
        for label, dtype, count in layout:
            match self._backend.allocate(self._context, label, dtype, count):
                case Failure(error):
                    return self.fail(error)
                case Success(buffer):
                    self._buffers[label] = buffer
                    self._own(buffer)
        self._advance(SessionState.BUFFERS_BOUND)
        return Success(None)

    def bind_arguments(self, params: SimulationParameters) -> Result[None, PipelineError]:
        self._require(SessionState.BUFFERS_BOUND)
        states, prices, result = (
            self._buffers["states"],
            self._buffers["prices"],
            self._buffers["result"],
        )
        calls: tuple[tuple[KernelName, tuple[object, ...]], ...] = (
            ("uniformSeeds", (params.seed, params.path_count, states)),
            (
                "hestonSimulation",
                (
                    states,
                    prices,
                    params.initial_price,
                    params.r,
                    params.mu,
                    params.lambda_,
                    params.sigma,
                    params.divisions,
                ),
            ),
            (payoff_kernel_name(params.payoff), (prices, params.strike)),
            ("meanAndStandardDeviation", (params.path_count, prices, result)),
        )
        for name, args in calls:
            kernel = self._kernels.get(name)
            if kernel is None:
                return self.fail(BindError(kernel_name=name, message="kernel was not created"))
            match bind_arguments(kernel, args, params.precision):
                case Failure(error):
                    return self.fail(error)
                case Success(bound):
                    self._bound[name] = bound
        self._advance(SessionState.ARGS_BOUND)
        return Success(None)

    def lane_group_limit(self) -> int:
        """Largest lane group every bound ND-range kernel and the device accept."""
        self._require(SessionState.ARGS_BOUND)
        limits = [self.device_info.max_lane_group]
        limits.extend(
            self._kernels[name].max_lane_group()
            for name in self._bound
            if name not in ("uniformSeeds", "meanAndStandardDeviation")
        )
        return min(limits)

    # ---------------------------------------------------------- execution
    def _bound_kernel(self, name: KernelName) -> Result[BoundKernel, PipelineError]:
        bound = self._bound.get(name)
        if bound is None:
            return Failure(BindError(kernel_name=name, message="kernel has no bound arguments"))
        return Success(bound)

    def _begin_execution(self) -> None:
        if self._state is SessionState.ARGS_BOUND:
            self._advance(SessionState.EXECUTING)
        self._require(SessionState.EXECUTING)

    def _log(self, effect: LogMessage) -> Result[object, PipelineError]:
        logger = logging.getLogger(effect.logger_name or self._logger_name)
        match effect.level:
            case "debug":
                logger.debug(effect.message)
            case "info":
                logger.info(effect.message)
            case "warning":
                logger.warning(effect.message)
            case "error":
                logger.error(effect.message)
            case _ as unreachable:
                assert_never(unreachable)
        return Success(None)

    def interpret(self, effect: Effect) -> Result[object, PipelineError]:
        """Execute one effect against the session's resources."""
        match effect:
            case LogMessage():
                return self._log(effect)
            case LaunchTask(kernel_name=name):
                self._begin_execution()
                assert self._queue is not None
                queue = self._queue
                outcome: Result[object, PipelineError] = self._bound_kernel(name).and_then(
                    queue.enqueue_task
                )
            case LaunchRange(kernel_name=name, global_size=global_size, lane_group=lane_group):
                self._begin_execution()
                assert self._queue is not None
                queue = self._queue
                outcome = self._bound_kernel(name).and_then(
                    lambda bound: queue.enqueue_range(bound, global_size, lane_group)
                )
            case Barrier():
                self._require(SessionState.EXECUTING)
                assert self._queue is not None
                outcome = self._queue.enqueue_barrier()
            case Finish():
                self._require(SessionState.EXECUTING)
                assert self._queue is not None
                outcome = self._queue.finish()
                if isinstance(outcome, Success):
                    self._advance(SessionState.READ_BACK)
            case ReadBuffer(buffer=label):
                self._require(SessionState.READ_BACK)
                assert self._queue is not None
                outcome = self._queue.read_buffer(self._buffers[label])
            case _:
                assert_never(effect)
        match outcome:
            case Failure(error):
                return self.fail(error)
            case Success(_):
                return outcome

    def interpret_sequence(self, sequence: EffectSequence[T]) -> Result[T, PipelineError]:
        """Execute effects in order, stopping at the first failure.

        On success the continuation is applied to the per-effect results.
        """
        results: list[object] = []
        for effect in sequence.effects:
            match self.interpret(effect):
                case Failure(error):
                    return Failure(error)
                case Success(value):
                    results.append(value)
        return Success(sequence.continuation(results))

    def complete(self) -> None:
        """Mark the run as done once every read has returned."""
        self._advance(SessionState.DONE)
