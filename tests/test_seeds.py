"""Tests for per-path generator state initialisation."""

from __future__ import annotations

import numpy as np
import pytest

from hestonmc.seeds import (
    RNG_STATE_DTYPE,
    SEED_LIMIT,
    allocate_states,
    clock_seed,
    uniform_seeds,
)


class TestUniformSeeds:
    """Expansion of one scalar seed into per-path states."""

    def test_deterministic(self) -> None:
        first, second = allocate_states(64), allocate_states(64)

        uniform_seeds(42, 64, first)
        uniform_seeds(42, 64, second)

        assert np.array_equal(first, second)

    def test_seed_changes_states(self) -> None:
        first, second = allocate_states(16), allocate_states(16)

        uniform_seeds(1, 16, first)
        uniform_seeds(2, 16, second)

        assert not np.array_equal(first, second)

    def test_states_are_distinct_per_path(self) -> None:
        states = allocate_states(256)
        uniform_seeds(7, 256, states)

        pairs = {(int(s["s0"]), int(s["s1"])) for s in states}

        assert len(pairs) == 256

    def test_prefix_independent_of_count(self) -> None:
        short, long = allocate_states(8), allocate_states(32)

        uniform_seeds(5, 8, short)
        uniform_seeds(5, 32, long)

        assert np.array_equal(short, long[:8])

    def test_rejects_wrong_dtype(self) -> None:
        with pytest.raises(TypeError, match="dtype"):
            uniform_seeds(1, 4, np.zeros(4, dtype=np.float64))

    def test_rejects_short_buffer(self) -> None:
        with pytest.raises(ValueError, match="4 states, 8 requested"):
            uniform_seeds(1, 8, allocate_states(4))


class TestHelpers:
    def test_allocate_states_layout(self) -> None:
        states = allocate_states(3)
        assert states.shape == (3,)
        assert states.dtype == RNG_STATE_DTYPE

    def test_clock_seed_range(self) -> None:
        assert 0 <= clock_seed() < SEED_LIMIT
