# tests/conftest.py
"""Global PyTest fixtures for the test-suite.

Tests marked ``gpu`` need a CUDA device and are skipped when numba cannot
find one; everything else runs on the host backend.
"""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
from numba import cuda

from hestonmc.backends.host import HostBackend


CUDA_AVAILABLE: bool = cuda.is_available()


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if CUDA_AVAILABLE:
        return
    skip_gpu = pytest.mark.skip(reason="no CUDA device available")
    for item in items:
        if "gpu" in item.keywords:
            item.add_marker(skip_gpu)


@pytest.fixture
def host_backend() -> HostBackend:
    return HostBackend()


@pytest.fixture(autouse=True)
def reset_hestonmc_logger() -> Generator[None, None, None]:
    """Undo handlers and levels installed by ``configure_logging``."""
    logger = logging.getLogger("hestonmc")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
