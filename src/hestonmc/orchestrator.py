"""
Host-side orchestration of one pricing run.

:func:`price_option` acquires a device session, sizes the launch, runs the
four-stage pipeline described by :func:`build_pipeline_effects`, and turns
the read-back ``[mean, stddev]`` into a 95% confidence band.

Stage order is fixed and separated by barriers::

    uniformSeeds | hestonSimulation | <payoff> | meanAndStandardDeviation

so every stage sees the complete output of the one before it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from pydantic import BaseModel, ConfigDict

from hestonmc.backends.base import ComputeBackend
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
from hestonmc.errors import PipelineError, ReadbackError
from hestonmc.kernels import KernelName, payoff_kernel_name
from hestonmc.models.device import DeviceInfo
from hestonmc.parameters import SimulationParameters, parameter_summary
from hestonmc.result import Failure, Result, Success
from hestonmc.session import ComputeSession
from hestonmc.statistics import ConfidenceBand, confidence_band


__all__ = [
    "PipelineReadings",
    "PricingRun",
    "build_pipeline_effects",
    "choose_lane_group",
    "price_option",
]

_ENTRY_POINTS_FOR_RUN: tuple[KernelName, ...] = (
    "uniformSeeds",
    "hestonSimulation",
    "meanAndStandardDeviation",
)


class PricingRun(BaseModel):
    """Everything a finished run reports."""

    band: ConfidenceBand
    device: DeviceInfo
    max_lane_group: int
    lane_group: int
    build_log: str = ""
    timings: tuple[tuple[str, float], ...] = ()
    payoffs: np.ndarray | None = None

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)


@dataclass(frozen=True)
class PipelineReadings:
    """Host copies of the buffers read back at the end of the pipeline."""

    result: np.ndarray
    payoffs: np.ndarray | None = None


def choose_lane_group(device_max: int, requested: int) -> int:
    """Lanes per group: ``requested`` if ``0 < requested < device_max``, else ``device_max``."""
    return requested if 0 < requested < device_max else device_max


def _collect_readings(effects: tuple[Effect, ...]) -> Callable[[list[object]], PipelineReadings]:
    positions: dict[BufferLabel, int] = {
        effect.buffer: index
        for index, effect in enumerate(effects)
        if isinstance(effect, ReadBuffer)
    }

    def collect(results: list[object]) -> PipelineReadings:
        result = results[positions["result"]]
        payoffs = results[positions["prices"]] if "prices" in positions else None
        assert isinstance(result, np.ndarray)
        assert payoffs is None or isinstance(payoffs, np.ndarray)
        return PipelineReadings(result=result, payoffs=payoffs)

    return collect


def build_pipeline_effects(
    params: SimulationParameters,
    *,
    lane_group: int,
    device_max: int | None = None,
    dump_payoffs: bool = False,
) -> EffectSequence[PipelineReadings]:
    """Describe the dispatch of one run without executing anything.

    Args:
        params: Run configuration; fixes the path count and payoff kernel.
        lane_group: Lanes per group for both ND-range stages.
        device_max: Largest lane group the device accepts, logged when given.
        dump_payoffs: Also read the payoff buffer back after the reduction.
    """
    n = params.path_count
    groups = -(-n // lane_group)
    notes: list[Effect] = []
    if device_max is not None:
        notes.append(LogMessage(message=f"Maximum lane group for device: {device_max}"))
    notes.append(LogMessage(message=f"Using: {groups} lane groups of {lane_group} lanes"))

    effects: tuple[Effect, ...] = (
        *notes,
        LaunchTask(kernel_name="uniformSeeds"),
        Barrier(),
        LaunchRange(kernel_name="hestonSimulation", global_size=n, lane_group=lane_group),
        Barrier(),
        LaunchRange(
            kernel_name=payoff_kernel_name(params.payoff), global_size=n, lane_group=lane_group
        ),
        Barrier(),
        LaunchTask(kernel_name="meanAndStandardDeviation"),
        Finish(),
        ReadBuffer(buffer="result"),
        *((ReadBuffer(buffer="prices"),) if dump_payoffs else ()),
    )
    return EffectSequence(effects=effects, continuation=_collect_readings(effects))


def _prepare(
    session: ComputeSession, backend: ComputeBackend, params: SimulationParameters
) -> Result[object, PipelineError]:
    steps: tuple[Callable[[], Result[object, PipelineError]], ...] = (
        lambda: session.acquire_device(backend.device_kind),
        lambda: session.interpret(LogMessage(message=f"Using device: {session.device_info.name}")),
        session.create_context,
        session.create_queue,
        lambda: session.build_program(params.precision),
        lambda: session.interpret(
            LogMessage(level="debug", message=f"Build log:\n{session.build_log}")
        ),
        lambda: session.create_kernels(
            (*_ENTRY_POINTS_FOR_RUN, payoff_kernel_name(params.payoff))
        ),
        lambda: session.allocate_buffers(params.path_count, params.precision),
        lambda: session.bind_arguments(params),
    )
    for step in steps:
        match step():
            case Failure(error):
                return Failure(error)
            case Success(_):
                pass
    return Success(None)


def _run(
    session: ComputeSession,
    backend: ComputeBackend,
    params: SimulationParameters,
    lane_group: int,
    dump_payoffs: bool,
) -> Result[PricingRun, PipelineError]:
    for line in parameter_summary(params):
        session.interpret(LogMessage(message=line))

    match _prepare(session, backend, params):
        case Failure(error):
            return Failure(error)
        case Success(_):
            pass

    device_max = session.lane_group_limit()
    chosen = choose_lane_group(device_max, lane_group)
    effects = build_pipeline_effects(
        params, lane_group=chosen, device_max=device_max, dump_payoffs=dump_payoffs
    )
    match session.interpret_sequence(effects):
        case Failure(error):
            return Failure(error)
        case Success(readings):
            pass

    if readings.result.shape != (2,):
        return session.fail(
            ReadbackError(
                buffer="result",
                message=f"expected [mean, stddev], got shape {readings.result.shape}",
            )
        )
    session.complete()

    mean, stddev = (float(value) for value in readings.result)
    band = confidence_band(mean, stddev, params.path_count)
    session.interpret(LogMessage(message=f"Payoff Standard Deviation: {stddev:f}"))
    return Success(
        PricingRun(
            band=band,
            device=session.device_info,
            max_lane_group=device_max,
            lane_group=chosen,
            build_log=session.build_log,
            timings=session.timings,
            payoffs=readings.payoffs,
        )
    )


def price_option(
    params: SimulationParameters,
    *,
    backend: ComputeBackend,
    lane_group: int = 0,
    dump_payoffs: bool = False,
) -> Result[PricingRun, PipelineError]:
    """Run the whole pipeline on ``backend`` and derive the confidence band.

    ``lane_group`` overrides the lane-group size when it is positive and
    below the device maximum (see :func:`choose_lane_group`). Every device
    resource is released before this returns, whatever the outcome.
    """
    with ComputeSession(backend) as session:
        return _run(session, backend, params, lane_group, dump_payoffs)
