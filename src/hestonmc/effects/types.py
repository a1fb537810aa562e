"""The closed union of every effect a pricing run can request."""

from __future__ import annotations

from hestonmc.effects.logging import LogMessage
from hestonmc.effects.pipeline import Barrier, Finish, LaunchRange, LaunchTask, ReadBuffer


Effect = LaunchTask | LaunchRange | Barrier | Finish | ReadBuffer | LogMessage

__all__ = ["Effect"]
