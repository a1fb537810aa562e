"""
Host (CPU) kernels.

An ND-range stage receives its launch geometry as two leading arguments,
``global_size`` and ``lane_group``. The ``ceil(global_size / lane_group)``
lane groups are spread over worker threads with ``numba.prange``; the lanes
of one group run sequentially on one worker. Lanes at or beyond the buffer
length are skipped. The parallel region joins before the call returns.

Single-task stages take only their contract arguments.
"""

from __future__ import annotations

from collections.abc import Callable

from numba import njit, prange

from hestonmc.kernels import KernelName
from hestonmc.kernels.numerics import (
    heston_terminal_price,
    mean_and_standard_deviation,
    straight_price,
    vanilla_call,
    vanilla_put,
)
from hestonmc.seeds import uniform_seeds


__all__ = [
    "HOST_ENTRY_POINTS",
    "heston_simulation",
    "mean_and_standard_deviation_task",
    "straight_price_range",
    "vanilla_call_range",
    "vanilla_put_range",
]


@njit(parallel=True)
def heston_simulation(  # type: ignore[no-untyped-def]
    global_size, lane_group, states, out_prices, initial_price, r, mu, lam, sigma, divisions
):
    n = min(global_size, out_prices.shape[0])
    groups = (global_size + lane_group - 1) // lane_group
    for group in prange(groups):
        start = group * lane_group
        stop = min(start + lane_group, n)
        for index in range(start, stop):
            out_prices[index] = heston_terminal_price(
                states, index, initial_price, r, mu, lam, sigma, divisions
            )


@njit(parallel=True)
def straight_price_range(global_size, lane_group, prices, strike):  # type: ignore[no-untyped-def]
    n = min(global_size, prices.shape[0])
    groups = (global_size + lane_group - 1) // lane_group
    for group in prange(groups):
        start = group * lane_group
        for index in range(start, min(start + lane_group, n)):
            prices[index] = straight_price(prices[index], strike)


@njit(parallel=True)
def vanilla_call_range(global_size, lane_group, prices, strike):  # type: ignore[no-untyped-def]
    n = min(global_size, prices.shape[0])
    groups = (global_size + lane_group - 1) // lane_group
    for group in prange(groups):
        start = group * lane_group
        for index in range(start, min(start + lane_group, n)):
            prices[index] = vanilla_call(prices[index], strike)


@njit(parallel=True)
def vanilla_put_range(global_size, lane_group, prices, strike):  # type: ignore[no-untyped-def]
    n = min(global_size, prices.shape[0])
    groups = (global_size + lane_group - 1) // lane_group
    for group in prange(groups):
        start = group * lane_group
        for index in range(start, min(start + lane_group, n)):
            prices[index] = vanilla_put(prices[index], strike)


@njit
def mean_and_standard_deviation_task(count, prices, out_result):  # type: ignore[no-untyped-def]
    mean_and_standard_deviation(count, prices, out_result)


# contract name -> host callable
HOST_ENTRY_POINTS: dict[KernelName, Callable[..., object]] = {
    "uniformSeeds": uniform_seeds,
    "hestonSimulation": heston_simulation,
    "straightPrice": straight_price_range,
    "vanillaCall": vanilla_call_range,
    "vanillaPut": vanilla_put_range,
    "meanAndStandardDeviation": mean_and_standard_deviation_task,
}
