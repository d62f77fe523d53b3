"""Shared response envelope and base model.

Wire format is camelCase; request bodies accept either camelCase or the
snake_case field names.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorBody(ApiModel):
    code: str
    details: dict[str, Any] = Field(default_factory=dict)


class Envelope(ApiModel, Generic[T]):
    """Uniform response: {success, data?, error?, message?, degraded}."""

    success: bool
    data: Optional[T] = None
    error: Optional[ErrorBody] = None
    message: Optional[str] = None
    degraded: bool = False


def ok(data: Any = None, *, message: Optional[str] = None, degraded: bool = False) -> Envelope[Any]:
    return Envelope[Any](success=True, data=data, message=message, degraded=degraded)


def failure(code: str, message: str, *, details: Optional[dict[str, Any]] = None, degraded: bool = False) -> dict[str, Any]:
    """Error envelope as a plain dict, ready for JSONResponse."""
    return Envelope[Any](
        success=False,
        error=ErrorBody(code=code, details=details or {}),
        message=message,
        degraded=degraded,
    ).model_dump(mode="json", by_alias=True)
