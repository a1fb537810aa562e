"""
Tests for the numba CPU backend: device discovery, buffers and the deferred
in-order command queue.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pytest

from hestonmc.backends import select_backend
from hestonmc.backends.base import (
    BoundKernel,
    CommandQueue,
    DeviceBuffer,
    Program,
    bind_arguments,
)
from hestonmc.backends.cuda import CudaBackend
from hestonmc.backends.host import HOST_MAX_LANE_GROUP, HostBackend
from hestonmc.errors import DeviceError, ReadbackError
from hestonmc.kernels import KernelName
from hestonmc.models.device import DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.seeds import RNG_STATE_DTYPE

from tests.helpers import DEFAULT_SEED, expect_failure, expect_success


class TestSelectBackend:
    def test_cpu_selects_host(self) -> None:
        assert isinstance(select_backend(DeviceKind.CPU), HostBackend)

    def test_gpu_selects_cuda(self) -> None:
        assert isinstance(select_backend(DeviceKind.GPU), CudaBackend)


class TestHostDevice:
    """Discovery and resource creation."""

    def test_find_cpu_device(self, host_backend: HostBackend) -> None:
        device = expect_success(host_backend.find_device(DeviceKind.CPU))

        assert device.info.kind is DeviceKind.CPU
        assert device.info.max_lane_group == HOST_MAX_LANE_GROUP
        assert device.info.compute_units >= 1

    def test_rejects_gpu_request(self, host_backend: HostBackend) -> None:
        error = expect_failure(host_backend.find_device(DeviceKind.GPU))

        assert isinstance(error, DeviceError)
        assert error.requested is DeviceKind.GPU

    def test_allocate(self, host_backend: HostBackend) -> None:
        device = expect_success(host_backend.find_device(DeviceKind.CPU))
        context = expect_success(host_backend.create_context(device))

        buffer = expect_success(host_backend.allocate(context, "states", RNG_STATE_DTYPE, 16))

        assert buffer.label == "states"
        assert buffer.count == 16
        assert buffer.dtype == RNG_STATE_DTYPE

    def test_allocate_rejects_negative_count(self, host_backend: HostBackend) -> None:
        device = expect_success(host_backend.find_device(DeviceKind.CPU))
        context = expect_success(host_backend.create_context(device))

        error = expect_failure(host_backend.allocate(context, "prices", np.dtype(np.float32), -1))

        assert error.resource == "buffer"


class TestHostProgram:
    """Compilation of every entry point."""

    @pytest.mark.parametrize("precision", list(Precision))
    def test_build_lists_every_entry_point(
        self, host_backend: HostBackend, precision: Precision
    ) -> None:
        device = expect_success(host_backend.find_device(DeviceKind.CPU))
        context = expect_success(host_backend.create_context(device))

        program = expect_success(host_backend.build_program(context, precision))

        for name in ("uniformSeeds", "hestonSimulation", "meanAndStandardDeviation"):
            assert name in program.build_log
            kernel = expect_success(program.create_kernel(name))
            assert kernel.max_lane_group() == HOST_MAX_LANE_GROUP


@dataclass
class _Rig:
    queue: CommandQueue
    program: Program
    states: DeviceBuffer
    prices: DeviceBuffer
    result: DeviceBuffer

    def bind(self, name: KernelName, *args: object) -> BoundKernel:
        kernel = expect_success(self.program.create_kernel(name))
        return expect_success(bind_arguments(kernel, args, Precision.float64))


class TestHostQueue:
    """Deferred execution and blocking reads."""

    @pytest.fixture
    def rig(self, host_backend: HostBackend) -> _Rig:
        device = expect_success(host_backend.find_device(DeviceKind.CPU))
        context = expect_success(host_backend.create_context(device))
        float64 = np.dtype(np.float64)
        return _Rig(
            queue=expect_success(host_backend.create_queue(context)),
            program=expect_success(host_backend.build_program(context, Precision.float64)),
            states=expect_success(host_backend.allocate(context, "states", RNG_STATE_DTYPE, 8)),
            prices=expect_success(host_backend.allocate(context, "prices", float64, 8)),
            result=expect_success(host_backend.allocate(context, "result", float64, 2)),
        )

    def test_read_observes_every_enqueued_command(self, rig: _Rig) -> None:
        seeds = rig.bind("uniformSeeds", DEFAULT_SEED, 8, rig.states)
        simulate = rig.bind(
            "hestonSimulation", rig.states, rig.prices, 10.0, 0.0, 0.0, 0.0, 0.0, 4
        )
        reduce = rig.bind("meanAndStandardDeviation", 8, rig.prices, rig.result)

        expect_success(rig.queue.enqueue_task(seeds))
        expect_success(rig.queue.enqueue_barrier())
        expect_success(rig.queue.enqueue_range(simulate, 8, 3))
        expect_success(rig.queue.enqueue_barrier())
        expect_success(rig.queue.enqueue_task(reduce))

        result = expect_success(rig.queue.read_buffer(rig.result))

        assert result.tolist() == [10.0, 0.0]

    def test_rejects_bad_geometry(self, rig: _Rig) -> None:
        call = rig.bind("vanillaCall", rig.prices, 10.0)

        error = expect_failure(rig.queue.enqueue_range(call, 8, 0))

        assert error.stage == "vanillaCall"

    def test_read_of_released_buffer_fails(self, rig: _Rig) -> None:
        rig.prices.release()

        error = expect_failure(rig.queue.read_buffer(rig.prices))

        assert isinstance(error, ReadbackError)
        assert error.buffer == "prices"
