"""
CUDA kernels.

One thread per lane; ND-range stages are launched on ``ceil(N / L)`` blocks
of ``L`` threads and every thread at or beyond the buffer length returns
without touching memory. The reduction is launched on a single thread.

Compilation is deferred until :class:`hestonmc.backends.cuda.CudaBackend`
builds the program, so importing this module needs no GPU.
"""

from __future__ import annotations

from numba import cuda
from numba.cuda.dispatcher import CUDADispatcher
from numba.cuda.cudadrv.devicearray import DeviceNDArray

from hestonmc.kernels import KernelName
from hestonmc.kernels.numerics import (
    heston_terminal_price,
    mean_and_standard_deviation,
    straight_price,
    vanilla_call,
    vanilla_put,
)


__all__ = ["CUDA_ENTRY_POINTS"]


@cuda.jit
def hestonSimulation(
    states: DeviceNDArray,
    out_prices: DeviceNDArray,
    initial_price: float,
    r: float,
    mu: float,
    lam: float,
    sigma: float,
    divisions: int,
) -> None:
    """Terminal price of one path per thread."""
    idx = cuda.grid(1)
    if idx < out_prices.shape[0]:
        out_prices[idx] = heston_terminal_price(
            states, idx, initial_price, r, mu, lam, sigma, divisions
        )


@cuda.jit
def straightPrice(prices: DeviceNDArray, strike: float) -> None:
    idx = cuda.grid(1)
    if idx < prices.shape[0]:
        prices[idx] = straight_price(prices[idx], strike)


@cuda.jit
def vanillaCall(prices: DeviceNDArray, strike: float) -> None:
    idx = cuda.grid(1)
    if idx < prices.shape[0]:
        prices[idx] = vanilla_call(prices[idx], strike)


@cuda.jit
def vanillaPut(prices: DeviceNDArray, strike: float) -> None:
    idx = cuda.grid(1)
    if idx < prices.shape[0]:
        prices[idx] = vanilla_put(prices[idx], strike)


@cuda.jit
def meanAndStandardDeviation(count: int, prices: DeviceNDArray, out_result: DeviceNDArray) -> None:
    """Sequential two-pass reduction; only thread 0 does any work."""
    if cuda.grid(1) == 0:
        mean_and_standard_deviation(count, prices, out_result)


# uniformSeeds has no device kernel: the states are expanded on the host and
# copied to the device in stream order (see the CUDA backend).
CUDA_ENTRY_POINTS: dict[KernelName, CUDADispatcher] = {
    "hestonSimulation": hestonSimulation,
    "straightPrice": straightPrice,
    "vanillaCall": vanillaCall,
    "vanillaPut": vanillaPut,
    "meanAndStandardDeviation": meanAndStandardDeviation,
}
