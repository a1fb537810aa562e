"""Wall-clock timing of the session's stages, reported in verbose mode."""

from __future__ import annotations

import time


__all__ = ["StageTimer", "format_timing"]


def format_timing(label: str, seconds: float) -> str:
    return "%8.5f\tseconds to %s" % (seconds, label)


class StageTimer:
    """Records the time elapsed between consecutive marks.

    ``mark(label)`` closes the stage that started at the previous mark (or
    at construction) and names it ``label``.
    """

    def __init__(self) -> None:
        self._last = time.perf_counter()
        self._stages: list[tuple[str, float]] = []

    def mark(self, label: str) -> float:
        now = time.perf_counter()
        elapsed = now - self._last
        self._last = now
        self._stages.append((label, elapsed))
        return elapsed

    @property
    def stages(self) -> tuple[tuple[str, float], ...]:
        return tuple(self._stages)
