"""Error taxonomy for the draft lifecycle.

Every error carries a stable `error_code` used on the slot's `ErrorInfo` and
in log records. Recovery always happens at the slot boundary:

* TransportError         - network/status failure; buffer retained, retriable
* DecodeError            - malformed byte stream; fatal to the in-flight stream
* PersistError           - accept failed; slot stays preview_ready, retriable
* StaleResultDiscarded   - a superseded call tried to deliver; internal only
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class DraftLifecycleError(Exception):
    """Base class for draft lifecycle errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class TransportError(DraftLifecycleError):
    def __init__(
        self,
        message: str = "Generation request failed",
        *,
        reason: str = "network_error",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, error_code="transport_failed")
        self.reason = reason
        self.status_code = status_code


class DecodeError(DraftLifecycleError):
    def __init__(self, message: str = "Generation stream could not be decoded") -> None:
        super().__init__(message=message, error_code="decode_failed")


class PersistError(DraftLifecycleError):
    def __init__(
        self,
        message: str = "Failed to save accepted draft",
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, error_code="persist_failed")
        self.status_code = status_code


class StaleResultDiscarded(DraftLifecycleError):
    def __init__(self, message: str = "Result from a superseded call dropped") -> None:
        super().__init__(message=message, error_code="stale_result")
