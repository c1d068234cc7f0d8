"""Response envelope shared by every draft API endpoint."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper.

    Attributes:
        success: Whether the request was handled.
        data: Payload, present on success.
        message: Human-readable summary of the outcome.
        error: Error details with correlation id, present on failure.
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Envelope produced by the global exception handler."""

    success: bool = False
    message: str = "An error occurred"
