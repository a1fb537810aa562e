"""
Kernel entry-point contract shared by every backend.

A program exposes exactly six entry points. Their names and positional
argument kinds are fixed here so that a backend's kernels can be bound and
checked without knowing how they were compiled:

=========================  ==============================================
entry point                arguments
=========================  ==============================================
uniformSeeds               seed:int32, count:int32, out_states:buffer
hestonSimulation           states:buffer, out_prices:buffer,
                           initial_price, r, mu, lambda, sigma: float,
                           divisions:int32
straightPrice              prices:buffer, strike:float
vanillaCall                prices:buffer, strike:float
vanillaPut                 prices:buffer, strike:float
meanAndStandardDeviation   count:int32, prices:buffer, out_result:buffer
=========================  ==============================================

The numerics live in :mod:`hestonmc.kernels.numerics`; the launchable
wrappers in :mod:`hestonmc.kernels.host` and :mod:`hestonmc.kernels.cuda`.
"""

from __future__ import annotations

from typing import Final, Literal

from hestonmc.parameters import PayoffKind


__all__ = [
    "ArgKind",
    "INT32_MAX",
    "INT32_MIN",
    "KERNEL_SIGNATURES",
    "KernelName",
    "PAYOFF_KERNELS",
    "payoff_kernel_name",
]

KernelName = Literal[
    "uniformSeeds",
    "hestonSimulation",
    "straightPrice",
    "vanillaCall",
    "vanillaPut",
    "meanAndStandardDeviation",
]

ArgKind = Literal["int32", "float", "buffer"]

INT32_MIN: Final[int] = -(2**31)
INT32_MAX: Final[int] = 2**31 - 1

KERNEL_SIGNATURES: Final[dict[KernelName, tuple[ArgKind, ...]]] = {
    "uniformSeeds": ("int32", "int32", "buffer"),
    "hestonSimulation": (
        "buffer",
        "buffer",
        "float",
        "float",
        "float",
        "float",
        "float",
        "int32",
    ),
    "straightPrice": ("buffer", "float"),
    "vanillaCall": ("buffer", "float"),
    "vanillaPut": ("buffer", "float"),
    "meanAndStandardDeviation": ("int32", "buffer", "buffer"),
}

PAYOFF_KERNELS: Final[dict[PayoffKind, KernelName]] = {
    PayoffKind.PRICE: "straightPrice",
    PayoffKind.CALL: "vanillaCall",
    PayoffKind.PUT: "vanillaPut",
}


def payoff_kernel_name(payoff: PayoffKind) -> KernelName:
    """Entry point implementing ``payoff``."""
    return PAYOFF_KERNELS[payoff]
