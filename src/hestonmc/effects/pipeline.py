"""
Device pipeline effect ADTs.

One pricing run is the fixed sequence

    LaunchTask(uniformSeeds)  Barrier
    LaunchRange(hestonSimulation)  Barrier
    LaunchRange(<payoff>)  Barrier
    LaunchTask(meanAndStandardDeviation)
    Finish  ReadBuffer(result)  [ReadBuffer(prices)]

built by :func:`hestonmc.orchestrator.build_pipeline_effects`. Kernels and
buffers are referred to by name; the session resolves the names to the
resources it owns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from hestonmc.kernels import KernelName


BufferLabel = Literal["states", "prices", "result"]


@dataclass(frozen=True)
class LaunchTask:
    """Enqueue a single-instance (non-parallel) kernel invocation.

    Attributes:
        kind: Discriminator for pattern matching. Always "LaunchTask".
        kernel_name: Entry point to launch with its bound arguments.
    """

    kind: Literal["LaunchTask"] = "LaunchTask"
    kernel_name: KernelName = "uniformSeeds"


@dataclass(frozen=True)
class LaunchRange:
    """Enqueue an ND-range launch of ``global_size`` lanes.

    Attributes:
        kind: Discriminator for pattern matching. Always "LaunchRange".
        kernel_name: Entry point to launch with its bound arguments.
        global_size: Total number of lanes (one per path).
        lane_group: Lanes per group; groups are ``ceil(global_size / lane_group)``.
    """

    kind: Literal["LaunchRange"] = "LaunchRange"
    kernel_name: KernelName = "hestonSimulation"
    global_size: int = 1
    lane_group: int = 1

    def __post_init__(self) -> None:
        if self.global_size < 1 or self.lane_group < 1:
            raise ValueError(
                f"LaunchRange needs positive sizes, got {self.global_size}/{self.lane_group}"
            )

    @property
    def group_count(self) -> int:
        return -(-self.global_size // self.lane_group)


@dataclass(frozen=True)
class Barrier:
    """Every earlier command completes, with memory visible, before any later one starts."""

    kind: Literal["Barrier"] = "Barrier"


@dataclass(frozen=True)
class Finish:
    """Block the host until the queue has drained."""

    kind: Literal["Finish"] = "Finish"


@dataclass(frozen=True)
class ReadBuffer:
    """Blocking copy of a device buffer to the host.

    Attributes:
        kind: Discriminator for pattern matching. Always "ReadBuffer".
        buffer: Which buffer to read.
    """

    kind: Literal["ReadBuffer"] = "ReadBuffer"
    buffer: BufferLabel = "result"


__all__ = [
    "Barrier",
    "BufferLabel",
    "Finish",
    "LaunchRange",
    "LaunchTask",
    "ReadBuffer",
]
