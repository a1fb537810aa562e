"""Tests for the confidence band, the host reference reduction and reporting."""

from __future__ import annotations

import math
import re

import numpy as np
import pytest
from pydantic import ValidationError

from hestonmc.statistics import (
    CONFIDENCE_Z,
    ConfidenceBand,
    confidence_band,
    format_report,
    host_mean_and_stddev,
)
from hestonmc.timing import StageTimer, format_timing


class TestConfidenceBand:
    def test_half_width(self) -> None:
        band = confidence_band(mean=5.0, stddev=2.0, path_count=1024)

        assert band.half_width == pytest.approx(CONFIDENCE_Z * 2.0 / 32.0)
        assert band.lower == pytest.approx(5.0 - band.half_width)
        assert band.upper == pytest.approx(5.0 + band.half_width)

    def test_quadrupling_paths_halves_width(self) -> None:
        small = confidence_band(mean=1.0, stddev=3.0, path_count=256)
        large = confidence_band(mean=1.0, stddev=3.0, path_count=1024)
        assert large.half_width == pytest.approx(small.half_width / 2.0)

    def test_zero_stddev_collapses(self) -> None:
        band = confidence_band(mean=10.0, stddev=0.0, path_count=8)
        assert band.lower == band.mean == band.upper == 10.0

    def test_requires_a_path(self) -> None:
        with pytest.raises(ValidationError):
            ConfidenceBand(mean=1.0, stddev=0.0, half_width=0.0, lower=1.0, upper=1.0, path_count=0)


class TestHostMeanAndStddev:
    def test_sample_stddev(self) -> None:
        mean, stddev = host_mean_and_stddev([1.0, 2.0, 3.0, 4.0])
        assert mean == 2.5
        assert stddev == pytest.approx(math.sqrt(5.0 / 3.0))

    def test_single_value(self) -> None:
        assert host_mean_and_stddev([3.0]) == (3.0, 0.0)

    def test_empty(self) -> None:
        assert host_mean_and_stddev([]) == (0.0, 0.0)

    def test_accumulates_in_float64(self) -> None:
        values = np.full(2**20, 0.1, dtype=np.float32)
        mean, _ = host_mean_and_stddev(values)
        assert mean == pytest.approx(float(np.float32(0.1)), rel=1e-12)


class TestReport:
    def test_format(self) -> None:
        report = format_report(confidence_band(mean=10.0, stddev=0.0, path_count=4))
        assert report == "Expected Payoff: 10.000000\n95% Confidence band: [10.000000,10.000000]\n"

    def test_six_decimals(self) -> None:
        report = format_report(confidence_band(mean=1.2345678, stddev=1.0, path_count=1024))
        assert re.fullmatch(
            r"Expected Payoff: 1\.234568\n95% Confidence band: \[\d+\.\d{6},\d+\.\d{6}\]\n", report
        )


class TestTiming:
    def test_format_timing(self) -> None:
        assert format_timing("build program", 0.5) == " 0.50000\tseconds to build program"

    def test_stage_timer_records_marks_in_order(self) -> None:
        timer = StageTimer()

        first = timer.mark("find devices")
        timer.mark("create context")

        assert [label for label, _ in timer.stages] == ["find devices", "create context"]
        assert first >= 0.0
        assert format_timing(*timer.stages[0]).endswith("\tseconds to find devices")
