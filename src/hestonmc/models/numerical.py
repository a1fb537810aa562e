"""
`hestonmc.models.numerical`
---------------------------
The floating-point formats a pricing run may use for its device buffers.

Buffers default to ``float32``; ``float64`` is offered for runs where the
reduction of a large payoff buffer must be compared against a host reference
at tight tolerance.

Public helpers
--------------
* ``Precision.to_numpy()        -> numpy.dtype``
* ``Precision.tolerance()       -> float``
"""

from __future__ import annotations

from enum import Enum
from typing import TypeAlias, Union

import numpy as np


__all__ = ["Precision"]

_NPDTypeF32: TypeAlias = np.dtype[np.float32]
_NPDTypeF64: TypeAlias = np.dtype[np.float64]
_NPDTypeRet: TypeAlias = Union[_NPDTypeF32, _NPDTypeF64]

_PRECISION_NAMES: tuple[str, ...] = ("float32", "float64")

# str -> numpy.dtype
_PRECISION_STR_TO_NP: dict[str, _NPDTypeRet] = {
    name: np.dtype(getattr(np, name)) for name in _PRECISION_NAMES
}

# relative tolerance for comparing device and host reductions
_PRECISION_RTOL: dict[str, float] = {
    "float32": 1e-4,
    "float64": 1e-10,
}


class Precision(str, Enum):
    """Element type of the price/payoff and reduction buffers."""

    float32 = "float32"
    float64 = "float64"

    def to_numpy(self) -> _NPDTypeRet:
        """Return the corresponding ``numpy.dtype``."""
        return _PRECISION_STR_TO_NP[self.value]

    def tolerance(self) -> float:
        """Relative tolerance appropriate for reductions in this format."""
        return _PRECISION_RTOL[self.value]
