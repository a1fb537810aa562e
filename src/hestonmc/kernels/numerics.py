"""
Per-lane numerics of the four pipeline stages.

Everything here is a plain ``numba.njit`` function, so the same code is
inlined into the host kernels (``njit(parallel=True)``) and into the CUDA
kernels (``numba.cuda`` compiles CPU ``jit`` functions as device functions,
exactly as ``numba.cuda.random`` does for the xoroshiro128+ generator).

Heston dynamics over the unit horizon with ``dt = 1 / divisions``::

    v+ = max(v, 0)
    S <- S * exp((r - v+ / 2) dt + sqrt(v+ dt) Zs)
    v <- v + lambda (mu - v+) dt + sigma sqrt(v+ dt) Zv

with ``v0 = mu`` and ``Zs``, ``Zv`` independent standard normals.
"""

from __future__ import annotations

import math

import numpy as np
from numba import njit
from numba.cuda.random import xoroshiro128p_uniform_float64


__all__ = [
    "heston_terminal_price",
    "mean_and_standard_deviation",
    "normal_pair",
    "straight_price",
    "vanilla_call",
    "vanilla_put",
]

TWO_PI = np.float64(2.0 * math.pi)


@njit
def normal_pair(states, index):  # type: ignore[no-untyped-def]
    """Two independent standard normals from one Box-Muller draw.

    ``u1`` is taken from ``(0, 1]`` so the logarithm is always finite.
    """
    u1 = 1.0 - xoroshiro128p_uniform_float64(states, index)
    u2 = xoroshiro128p_uniform_float64(states, index)
    radius = math.sqrt(-2.0 * math.log(u1))
    angle = TWO_PI * u2
    return radius * math.cos(angle), radius * math.sin(angle)


@njit
def heston_terminal_price(  # type: ignore[no-untyped-def]
    states, index, initial_price, r, mu, lam, sigma, divisions
):
    """Simulate path ``index`` to the horizon and return its terminal price."""
    dt = 1.0 / divisions
    price = float(initial_price)
    variance = float(mu)
    for _ in range(divisions):
        v_pos = max(variance, 0.0)
        diffusion = math.sqrt(v_pos * dt)
        z_price, z_variance = normal_pair(states, index)
        price *= math.exp((r - 0.5 * v_pos) * dt + diffusion * z_price)
        variance += lam * (mu - v_pos) * dt + sigma * diffusion * z_variance
    return price


@njit
def straight_price(price, strike):  # type: ignore[no-untyped-def]
    return price


@njit
def vanilla_call(price, strike):  # type: ignore[no-untyped-def]
    return max(price - strike, 0.0)


@njit
def vanilla_put(price, strike):  # type: ignore[no-untyped-def]
    return max(strike - price, 0.0)


@njit
def mean_and_standard_deviation(count, prices, out):  # type: ignore[no-untyped-def]
    """Write ``[mean, sample stddev]`` of ``prices[:count]`` into ``out``.

    Two passes, accumulated in float64 whatever the buffer precision. The
    standard deviation uses the ``N - 1`` divisor and is 0 for ``N < 2``.
    """
    total = 0.0
    for i in range(count):
        total += prices[i]
    mean = total / count if count > 0 else 0.0

    squares = 0.0
    for i in range(count):
        deviation = prices[i] - mean
        squares += deviation * deviation

    out[0] = mean
    out[1] = math.sqrt(squares / (count - 1)) if count > 1 else 0.0
