"""hestonmc error ADTs.

Every failure of a pricing run is one of the variants of
:data:`PipelineError`. All of them are fatal: the session releases its
resources and the command line exits with status 1.
"""

from hestonmc.errors.config import ConfigurationError
from hestonmc.errors.session import (
    BindError,
    BuildError,
    DeviceError,
    ExecutionError,
    ReadbackError,
    ResourceError,
)

PipelineError = (
    ConfigurationError
    | DeviceError
    | ResourceError
    | BuildError
    | BindError
    | ExecutionError
    | ReadbackError
)

__all__ = [
    "BindError",
    "BuildError",
    "ConfigurationError",
    "DeviceError",
    "ExecutionError",
    "PipelineError",
    "ReadbackError",
    "ResourceError",
]
