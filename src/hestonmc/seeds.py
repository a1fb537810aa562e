"""
Per-path random generator states derived from a single scalar seed.

Each path owns one xoroshiro128+ state (``numba.cuda.random``'s record
layout, which both the host and the CUDA kernels consume). State 0 is
expanded from the seed with SplitMix64; state ``i`` is state ``i - 1``
jumped ahead by 2**64 draws, so no two paths share a subsequence as long as
a path draws fewer than 2**64 numbers.

The expansion is inherently sequential and runs as one host task that must
complete before any path is simulated.
"""

from __future__ import annotations

import time
from typing import Final

import numpy as np
from numba.cuda.random import init_xoroshiro128p_states_cpu, xoroshiro128p_dtype


__all__: list[str] = [
    "RNG_STATE_DTYPE",
    "SEED_LIMIT",
    "allocate_states",
    "clock_seed",
    "uniform_seeds",
]

RNG_STATE_DTYPE: Final[np.dtype] = xoroshiro128p_dtype

# exclusive upper bound; seeds are bound as non-negative int32 kernel arguments
SEED_LIMIT: Final[int] = 2**31


def clock_seed() -> int:
    """Seed taken from the wall clock, used when no ``--seed`` is given."""
    return time.time_ns() % SEED_LIMIT


def allocate_states(count: int) -> np.ndarray:
    """Uninitialised host buffer for ``count`` generator states."""
    return np.empty(count, dtype=RNG_STATE_DTYPE)


def uniform_seeds(seed: int, count: int, out_states: np.ndarray) -> None:
    """Populate the first ``count`` entries of ``out_states`` from ``seed``.

    Deterministic: the same ``(seed, count)`` always produces the same
    states, independent of the backend that later consumes them.
    """
    if out_states.dtype != RNG_STATE_DTYPE:
        raise TypeError(f"state buffer has dtype {out_states.dtype}, expected xoroshiro128p")
    if count > out_states.shape[0]:
        raise ValueError(f"state buffer holds {out_states.shape[0]} states, {count} requested")
    init_xoroshiro128p_states_cpu(out_states[:count], seed, 0)
