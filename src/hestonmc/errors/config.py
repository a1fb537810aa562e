"""Error ADTs for run configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import ValidationError


@dataclass(frozen=True)
class ConfigurationError:
    """A run parameter could not be parsed or violates a domain constraint."""

    message: str
    error: ValidationError | None = None
    kind: Literal["ConfigurationError"] = "ConfigurationError"
