"""
Sequencing of effects.

Composition is purely structural; nothing runs until the session interprets
the sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from hestonmc.effects.types import Effect


T = TypeVar("T")


@dataclass(frozen=True)
class EffectSequence(Generic[T]):
    """Sequence of effects to execute in order.

    Attributes:
        effects: Tuple of effects to execute sequentially.
        continuation: Function to combine the per-effect results into the final value.
    """

    effects: tuple[Effect, ...]
    continuation: Callable[[list[object]], T]


def sequence_effects(*effects: Effect) -> EffectSequence[list[object]]:
    """Compose effects to execute sequentially, returning every result."""
    return EffectSequence(effects=effects, continuation=lambda x: x)


__all__ = ["EffectSequence", "sequence_effects"]
