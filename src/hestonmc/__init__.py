"""
hestonmc
========

Monte-Carlo pricing of European options under the Heston stochastic
volatility model on a data-parallel device (CUDA GPU via ``numba.cuda`` or
the host CPU via ``numba``'s parallel JIT).

The public entry point is :func:`hestonmc.orchestrator.price_option`; the
``monte-heston-sim`` console script wraps it.
"""
