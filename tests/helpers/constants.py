# tests/helpers/constants.py
"""Shared test constants for the hestonmc test suite.

Tests override these when a scenario needs specific values.
"""

from __future__ import annotations

# ============================================================================
# Simulation Parameters
# ============================================================================

DEFAULT_SEED = 42
"""Fixed seed so every pricing test is reproducible."""

SMALL_PATH_COUNT = 2**10
"""Paths for fast end-to-end runs on the host backend."""

SMALL_DIVISIONS = 50
"""Time steps per path for fast end-to-end runs."""

DEGENERATE_PRICE = 10.0
"""Terminal price when drift, variance and vol-of-vol are all zero."""

# ============================================================================
# Numerical Tolerances (Precision-Specific)
# ============================================================================

RTOL_FLOAT32 = 1e-4
"""Relative tolerance for float32 buffers."""

RTOL_FLOAT64 = 1e-10
"""Relative tolerance for float64 buffers."""

# 1 / sqrt(4), with room for sampling noise in the stddev estimate
HALF_WIDTH_RATIO_BOUNDS = (0.4, 0.6)
"""Accepted ratio of half-widths between N and 4N paths."""
