"""
End-to-end pricing runs on the numba host backend.

Checks the statistical and determinism properties of the whole pipeline:
degenerate dynamics, reproducibility per seed, confidence-band scaling and
agreement between the device reduction and a NumPy reference.
"""

from __future__ import annotations

import numpy as np
import pytest

from hestonmc.backends.host import HOST_MAX_LANE_GROUP, HostBackend
from hestonmc.models.device import DeviceKind
from hestonmc.models.numerical import Precision
from hestonmc.orchestrator import PricingRun, choose_lane_group, price_option
from hestonmc.parameters import PayoffKind, SimulationParameters
from hestonmc.statistics import host_mean_and_stddev

from tests.helpers import (
    DEGENERATE_PRICE,
    HALF_WIDTH_RATIO_BOUNDS,
    assert_arrays_close,
    assert_no_nan_inf,
    expect_success,
    make_degenerate_params,
    make_params,
)


def _run(
    params: SimulationParameters, *, lane_group: int = 0, dump_payoffs: bool = False
) -> PricingRun:
    return expect_success(
        price_option(
            params, backend=HostBackend(), lane_group=lane_group, dump_payoffs=dump_payoffs
        )
    )


class TestChooseLaneGroup:
    """Override rule for the ``-g`` flag."""

    @pytest.mark.parametrize(
        ("device_max", "requested", "expected"),
        [
            (256, 0, 256),
            (256, 64, 64),
            (256, 1, 1),
            (256, 255, 255),
            (256, 256, 256),
            (256, 4096, 256),
            (256, -8, 256),
        ],
    )
    def test_override_only_below_device_max(
        self, device_max: int, requested: int, expected: int
    ) -> None:
        assert choose_lane_group(device_max, requested) == expected


class TestDegenerateDynamics:
    """With no drift and no variance every path stays at the initial price."""

    @pytest.mark.parametrize("precision", list(Precision))
    def test_band_collapses_to_initial_price(self, precision: Precision) -> None:
        run = _run(make_degenerate_params(precision=precision, divisions=10))

        assert run.band.mean == DEGENERATE_PRICE
        assert run.band.stddev == 0.0
        assert run.band.lower == DEGENERATE_PRICE
        assert run.band.upper == DEGENERATE_PRICE

    def test_single_step_band_is_exact(self) -> None:
        run = _run(make_degenerate_params(divisions=1, path_count=1024))

        assert run.band.mean == DEGENERATE_PRICE
        assert (run.band.lower, run.band.upper) == (DEGENERATE_PRICE, DEGENERATE_PRICE)

    def test_call_at_the_money_is_worthless(self) -> None:
        run = _run(make_degenerate_params(payoff=PayoffKind.CALL, strike=DEGENERATE_PRICE))
        assert run.band.mean == 0.0


class TestReproducibility:
    """Identical configuration and seed give identical output."""

    def test_same_seed_same_result(self) -> None:
        params = make_params(payoff=PayoffKind.CALL, seed=1234)

        first = _run(params, dump_payoffs=True)
        second = _run(params, dump_payoffs=True)

        assert first.band == second.band
        assert first.payoffs is not None and second.payoffs is not None
        assert np.array_equal(first.payoffs, second.payoffs)

    def test_different_seed_different_result(self) -> None:
        first = _run(make_params(seed=1))
        second = _run(make_params(seed=2))
        assert first.band.mean != second.band.mean

    def test_lane_group_does_not_change_result(self) -> None:
        params = make_params(seed=99)

        narrow = _run(params, lane_group=48, dump_payoffs=True)
        wide = _run(params, dump_payoffs=True)

        assert narrow.lane_group == 48
        assert wide.lane_group == HOST_MAX_LANE_GROUP
        assert narrow.payoffs is not None and wide.payoffs is not None
        assert np.array_equal(narrow.payoffs, wide.payoffs)


class TestStatistics:
    """Properties of the estimate."""

    def test_half_width_shrinks_with_sqrt_paths(self) -> None:
        small = _run(make_params(payoff=PayoffKind.CALL, path_count=2**10))
        large = _run(make_params(payoff=PayoffKind.CALL, path_count=2**12))

        low, high = HALF_WIDTH_RATIO_BOUNDS
        assert low < large.band.half_width / small.band.half_width < high

    def test_band_contains_mean(self) -> None:
        run = _run(make_params())
        assert run.band.lower < run.band.mean < run.band.upper

    @pytest.mark.parametrize("precision", list(Precision))
    def test_device_reduction_matches_host(self, precision: Precision) -> None:
        run = _run(
            make_params(payoff=PayoffKind.CALL, path_count=2**12, precision=precision),
            dump_payoffs=True,
        )

        assert run.payoffs is not None
        assert run.payoffs.dtype == precision.to_numpy()
        assert_arrays_close(
            (run.band.mean, run.band.stddev),
            host_mean_and_stddev(run.payoffs),
            rtol=precision.tolerance(),
        )

    @pytest.mark.parametrize("payoff", [PayoffKind.CALL, PayoffKind.PUT])
    def test_option_payoffs_non_negative(self, payoff: PayoffKind) -> None:
        run = _run(make_params(payoff=payoff), dump_payoffs=True)

        assert run.payoffs is not None
        assert_no_nan_inf(run.payoffs, "payoffs")
        assert (run.payoffs >= 0.0).all()

    @pytest.mark.parametrize("precision", list(Precision))
    def test_put_call_parity_per_path(self, precision: Precision) -> None:
        # 10.1 has no exact float32 representation
        common = {"seed": 7, "strike": 10.1, "precision": precision}
        prices = _run(make_params(**common), dump_payoffs=True).payoffs
        calls = _run(make_params(payoff=PayoffKind.CALL, **common), dump_payoffs=True).payoffs
        puts = _run(make_params(payoff=PayoffKind.PUT, **common), dump_payoffs=True).payoffs

        assert prices is not None and calls is not None and puts is not None
        strike = precision.to_numpy().type(10.1)
        assert calls.dtype == prices.dtype == precision.to_numpy()
        assert np.array_equal(calls - puts, prices - strike)


class TestRunReport:
    """Metadata attached to a finished run."""

    def test_device_and_lane_groups(self) -> None:
        run = _run(make_params(), lane_group=10_000)

        assert run.device.kind is DeviceKind.CPU
        assert run.max_lane_group == HOST_MAX_LANE_GROUP
        assert run.lane_group == HOST_MAX_LANE_GROUP
        assert "hestonSimulation" in run.build_log
        assert [label for label, _ in run.timings][-1] == "read output queues"
