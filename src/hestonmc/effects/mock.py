"""
Mock interpreter for testing effect-producing code without a device.

Example:
    >>> mock = MockInterpreter()
    >>> mock.mock_results[ReadBuffer] = Success(np.array([10.0, 0.0]))
    >>> mock.interpret_sequence(build_pipeline_effects(params, lane_group=64))
    >>> mock.assert_effect_sequence([LaunchTask, Barrier, LaunchRange, ...])
"""

from __future__ import annotations

from typing import TypeVar

from hestonmc.effects.composition import EffectSequence
from hestonmc.effects.types import Effect
from hestonmc.errors import PipelineError
from hestonmc.result import Failure, Result, Success


T = TypeVar("T")


class MockInterpreter:
    """Test interpreter that records effects without execution.

    Attributes:
        recorded_effects: List of all effects that were interpreted.
        mock_results: Dict mapping effect types to predetermined results.
    """

    def __init__(self) -> None:
        self.recorded_effects: list[Effect] = []
        self.mock_results: dict[type[Effect], Result[object, PipelineError]] = {}

    def interpret(self, effect: Effect) -> Result[object, PipelineError]:
        """Record ``effect`` and return its mock result, ``Success(None)`` by default."""
        self.recorded_effects.append(effect)
        return self.mock_results.get(type(effect), Success(None))

    def interpret_sequence(self, sequence: EffectSequence[T]) -> Result[T, PipelineError]:
        """Same contract as :meth:`hestonmc.session.ComputeSession.interpret_sequence`."""
        results: list[object] = []
        for effect in sequence.effects:
            match self.interpret(effect):
                case Failure(error):
                    return Failure(error)
                case Success(value):
                    results.append(value)
        return Success(sequence.continuation(results))

    def assert_effect_sequence(self, expected: list[type[Effect]]) -> None:
        """Assert that recorded effect types match ``expected`` in order.

        Raises:
            AssertionError: If recorded effects don't match expected.
        """
        actual = [type(e) for e in self.recorded_effects]
        match actual == expected:
            case True:
                return
            case False:
                raise AssertionError(f"Expected effect sequence {expected}, got {actual}")

    def get_effects_of_type(self, effect_type: type[Effect]) -> list[Effect]:
        """Get all recorded effects of a specific type."""
        return [e for e in self.recorded_effects if isinstance(e, effect_type)]

    def clear(self) -> None:
        """Clear all recorded effects and mock results."""
        self.recorded_effects.clear()
        self.mock_results.clear()


__all__ = ["MockInterpreter"]
