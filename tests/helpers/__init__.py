# tests/helpers/__init__.py
"""Shared test utilities for the hestonmc test suite.

Usage:
    >>> from tests.helpers import expect_success, make_params
    >>> from tests.helpers import DEFAULT_SEED, RTOL_FLOAT32
    >>>
    >>> params = make_params(payoff=PayoffKind.CALL)
    >>> run = expect_success(price_option(params, backend=HostBackend()))
"""

from __future__ import annotations

from tests.helpers.assertions import assert_arrays_close, assert_no_nan_inf
from tests.helpers.constants import (
    DEFAULT_SEED,
    DEGENERATE_PRICE,
    HALF_WIDTH_RATIO_BOUNDS,
    RTOL_FLOAT32,
    RTOL_FLOAT64,
    SMALL_DIVISIONS,
    SMALL_PATH_COUNT,
)
from tests.helpers.factories import make_degenerate_params, make_params
from tests.helpers.fakes import FAKE_BUILD_LOG, Ledger, RecordingBackend
from tests.helpers.result_utils import E, T, expect_failure, expect_success

__all__ = [
    # Result unwrapping
    "expect_success",
    "expect_failure",
    "T",
    "E",
    # Factories and fakes
    "make_params",
    "make_degenerate_params",
    "RecordingBackend",
    "Ledger",
    "FAKE_BUILD_LOG",
    # Assertions
    "assert_arrays_close",
    "assert_no_nan_inf",
    # Simulation constants
    "DEFAULT_SEED",
    "DEGENERATE_PRICE",
    "SMALL_PATH_COUNT",
    "SMALL_DIVISIONS",
    "HALF_WIDTH_RATIO_BOUNDS",
    # Tolerance constants
    "RTOL_FLOAT32",
    "RTOL_FLOAT64",
]
