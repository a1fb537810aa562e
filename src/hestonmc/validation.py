"""Result-based construction of pydantic models."""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ValidationError

from hestonmc.result import Failure, Result, Success


TModel = TypeVar("TModel", bound=BaseModel)

__all__: list[str] = ["validate_model"]


def validate_model(model_cls: type[TModel], **data: object) -> Result[TModel, ValidationError]:
    """
    Construct a pydantic model and surface validation issues as a Result.

    Pydantic raises on invalid input; the exception is caught here, at the
    boundary, so that callers such as
    :func:`hestonmc.parameters.build_simulation_parameters` can turn it into a
    ``ConfigurationError`` without a ``try`` block of their own.
    """
    try:
        return Success(model_cls(**data))
    except ValidationError as exc:
        return Failure(exc)
