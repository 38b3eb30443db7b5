"""Response envelope shared by every endpoint: {status, message, data?}."""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Success or error wrapper around endpoint payloads."""

    status: Literal["success", "error"] = Field(default="success")
    message: str = Field(default="", description="Human-readable outcome")
    data: T | None = Field(default=None, description="Endpoint payload, omitted on errors")


class ErrorEnvelope(BaseModel):
    """Error body; errors lists field-level problems for validation failures."""

    status: Literal["error"] = "error"
    message: str
    code: str
    errors: list[dict[str, Any]] | None = None
