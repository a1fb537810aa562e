"""
Confidence band of a Monte-Carlo estimate and the host reference reduction.

The band is the normal-approximation 95% interval
``mean +/- 1.96 * stddev / sqrt(path_count)``; its half-width shrinks like
``1 / sqrt(path_count)``.
"""

from __future__ import annotations

import math
from typing import Final

import numpy as np
from numpy.typing import ArrayLike
from pydantic import BaseModel, ConfigDict, Field


__all__ = [
    "CONFIDENCE_Z",
    "ConfidenceBand",
    "confidence_band",
    "format_report",
    "host_mean_and_stddev",
]

# two-sided 95% quantile of the standard normal
CONFIDENCE_Z: Final[float] = 1.96


class ConfidenceBand(BaseModel):
    """Point estimate and 95% interval of the expected payoff."""

    mean: float
    stddev: float
    half_width: float
    lower: float
    upper: float
    path_count: int = Field(..., ge=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


def confidence_band(mean: float, stddev: float, path_count: int) -> ConfidenceBand:
    half_width = CONFIDENCE_Z * stddev / math.sqrt(path_count)
    return ConfidenceBand(
        mean=mean,
        stddev=stddev,
        half_width=half_width,
        lower=mean - half_width,
        upper=mean + half_width,
        path_count=path_count,
    )


def host_mean_and_stddev(payoffs: ArrayLike) -> tuple[float, float]:
    """Reference ``(mean, sample stddev)`` computed with NumPy in float64.

    Mirrors the device reduction: divisor ``N - 1`` and a standard deviation
    of 0 for fewer than two samples.
    """
    values = np.asarray(payoffs, dtype=np.float64)
    if values.size == 0:
        return 0.0, 0.0
    mean = float(values.mean())
    stddev = float(values.std(ddof=1)) if values.size > 1 else 0.0
    return mean, stddev


def format_report(band: ConfidenceBand) -> str:
    """The two summary lines printed on stdout."""
    return (
        "Expected Payoff: %f\n95%% Confidence band: [%f,%f]\n"
        % (band.mean, band.lower, band.upper)
    )
