"""
Effect ADTs describing the device pipeline.

Pipeline code builds immutable effect values; only
:class:`hestonmc.session.ComputeSession` executes them.
"""

from hestonmc.effects.composition import EffectSequence, sequence_effects
from hestonmc.effects.logging import LogMessage
from hestonmc.effects.mock import MockInterpreter
from hestonmc.effects.pipeline import Barrier, Finish, LaunchRange, LaunchTask, ReadBuffer
from hestonmc.effects.types import Effect


__all__ = [
    "Barrier",
    "Effect",
    "EffectSequence",
    "Finish",
    "LaunchRange",
    "LaunchTask",
    "LogMessage",
    "MockInterpreter",
    "ReadBuffer",
    "sequence_effects",
]
