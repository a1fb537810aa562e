# src/hestonmc/parameters.py
"""
Immutable configuration of one Heston Monte-Carlo pricing run.

:class:`SimulationParameters` is built once, from values that usually arrive
as command-line text, and is never mutated afterwards. Construction goes
through :func:`build_simulation_parameters`, which turns every pydantic
validation failure into a :class:`~hestonmc.errors.ConfigurationError`.

Validation covers parsing and the data-model invariants (positive initial
price, non-negative vol-of-vol, at least one division, power-of-two path
count addressable with a signed 32-bit index, 32-bit seed). Whether the
buffers for a given path count fit in device memory is *not* checked here;
an oversized run fails later with a ``ResourceError``.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hestonmc.errors import ConfigurationError
from hestonmc.models.numerical import Precision
from hestonmc.result import Failure, Result, Success
from hestonmc.seeds import SEED_LIMIT, clock_seed
from hestonmc.validation import validate_model


__all__: tuple[str, ...] = (
    "DEFAULT_DIVISIONS",
    "DEFAULT_INITIAL_PRICE",
    "DEFAULT_LAMBDA",
    "DEFAULT_LOG2_PATHS",
    "DEFAULT_MU",
    "DEFAULT_R",
    "DEFAULT_SIGMA",
    "DEFAULT_STRIKE",
    "MAX_LOG2_PATHS",
    "PayoffKind",
    "SimulationParameters",
    "build_simulation_parameters",
    "parameter_summary",
    "path_count_from_log2",
)

# ──────────────────────────────── defaults ──────────────────────────────────
DEFAULT_INITIAL_PRICE: Final[float] = 10.0
DEFAULT_R: Final[float] = 0.05
DEFAULT_MU: Final[float] = 0.2
DEFAULT_LAMBDA: Final[float] = 1.2
DEFAULT_SIGMA: Final[float] = 0.1
DEFAULT_STRIKE: Final[float] = 10.0
DEFAULT_DIVISIONS: Final[int] = 500
DEFAULT_LOG2_PATHS: Final[int] = 10

# largest power of two that is a positive signed 32-bit integer
MAX_LOG2_PATHS: Final[int] = 30

PosFloat = Annotated[float, Field(gt=0)]
NonNegFloat = Annotated[float, Field(ge=0)]
Seed32 = Annotated[int, Field(ge=0, lt=SEED_LIMIT)]


class PayoffKind(str, Enum):
    """Which payoff the transform stage applies to each terminal price."""

    PRICE = "price"
    CALL = "call"
    PUT = "put"


class SimulationParameters(BaseModel):
    """Every input of one run; frozen for the run's lifetime."""

    initial_price: PosFloat = DEFAULT_INITIAL_PRICE
    r: float = DEFAULT_R
    mu: float = DEFAULT_MU
    lambda_: float = DEFAULT_LAMBDA
    sigma: NonNegFloat = DEFAULT_SIGMA
    divisions: int = Field(DEFAULT_DIVISIONS, ge=1)
    strike: float = DEFAULT_STRIKE
    payoff: PayoffKind = PayoffKind.PRICE
    path_count: int = Field(2**DEFAULT_LOG2_PATHS, ge=1, le=2**MAX_LOG2_PATHS)
    seed: Seed32 = Field(default_factory=clock_seed)
    precision: Precision = Precision.float32

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    @field_validator("path_count")
    @classmethod
    def _power_of_two(cls, value: int) -> int:
        if value & (value - 1):
            raise ValueError(f"path_count must be a power of two, got {value}")
        return value

    def dt(self) -> float:
        """Length of one discretisation step over the unit horizon."""
        return 1.0 / self.divisions


class _PathExponent(BaseModel):
    log2_paths: int = Field(..., ge=0, le=MAX_LOG2_PATHS)

    model_config = ConfigDict(frozen=True, extra="forbid")


def path_count_from_log2(log2_paths: object) -> Result[int, ConfigurationError]:
    """Translate the ``-p`` exponent into a path count (``2 ** log2_paths``)."""
    match validate_model(_PathExponent, log2_paths=log2_paths):
        case Failure(error):
            return Failure(
                ConfigurationError(
                    message=f"invalid log2 path count: {log2_paths!r}",
                    error=error,
                )
            )
        case Success(exponent):
            return Success(2**exponent.log2_paths)


def build_simulation_parameters(**raw: object) -> Result[SimulationParameters, ConfigurationError]:
    """Create SimulationParameters via pure validation.

    Keyword arguments left as ``None`` fall back to the documented defaults,
    so the command line can pass every flag through unchanged.
    """
    supplied = {name: value for name, value in raw.items() if value is not None}
    match validate_model(SimulationParameters, **supplied):
        case Failure(error):
            fields = ", ".join(
                ".".join(str(part) for part in detail["loc"]) for detail in error.errors()
            )
            return Failure(
                ConfigurationError(
                    message=f"invalid simulation parameter(s): {fields}", error=error
                )
            )
        case Success(params):
            return Success(params)


def parameter_summary(params: SimulationParameters) -> list[str]:
    """Human-readable description of a run, one line per setting."""
    lines = [
        f"Using initial price: {params.initial_price:f}",
        f"Using drift: {params.r:f}",
        f"Using mean reversion level: {params.mu:f}",
        f"Using mean reversion rate: {params.lambda_:f}",
        f"Using volatility of volatility: {params.sigma:f}",
        f"Simulating {params.path_count} paths with {params.divisions} increments each",
        f"Using seed: {params.seed} ({params.precision.value})",
    ]
    match params.payoff:
        case PayoffKind.CALL:
            lines.append(f"Calculating Call Option payoffs with strike: {params.strike:f}")
        case PayoffKind.PUT:
            lines.append(f"Calculating Put Option payoffs with strike: {params.strike:f}")
        case PayoffKind.PRICE:
            lines.append("Calculating ending prices")
    return lines
