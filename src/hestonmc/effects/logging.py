"""
Logging effect ADT.

Log output is requested with :class:`LogMessage` values and emitted by the
session through the standard :mod:`logging` module, so pipeline builders
stay free of side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class LogMessage:
    """Request to emit a log message.

    Attributes:
        kind: Discriminator for pattern matching. Always "LogMessage".
        level: Log level to emit.
        message: Log message payload.
        logger_name: Logger name to use; the session's default when empty.
    """

    kind: Literal["LogMessage"] = "LogMessage"
    level: Literal["debug", "info", "warning", "error"] = "info"
    message: str = ""
    logger_name: str = ""


__all__ = ["LogMessage"]
