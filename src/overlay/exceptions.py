"""Failure taxonomy for the overlay controller.

Every failure ends in a bounded UI state; none of these escape the
controller. Each exception carries a stable ``error_code`` for log tagging.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False, slots=True)
class EnhancementError(Exception):
    """Base class for controller failures."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class LocatorNotFound(EnhancementError):
    def __init__(
        self, message: str = "No editable prompt surface found on the page"
    ) -> None:
        super().__init__(message=message, error_code="locator_not_found")


class InputTooShort(EnhancementError):
    def __init__(self, length: int, minimum: int) -> None:
        super().__init__(
            message=f"Text has {length} characters; at least {minimum} are needed",
            error_code="input_too_short",
        )
        self.length = length
        self.minimum = minimum


class Superseded(EnhancementError):
    def __init__(self, message: str = "A newer edit replaced this request") -> None:
        super().__init__(message=message, error_code="superseded")


class TransientFailure(EnhancementError):
    """Timeout, connection failure, upstream 5xx/429 or an unusable reply."""

    def __init__(
        self, message: str = "Temporary enhancement failure", status: int | None = None
    ) -> None:
        super().__init__(message=message, error_code="transient")
        self.status = status


class TerminalFailure(EnhancementError):
    """The service rejected the request outright (validation or auth)."""

    def __init__(
        self, message: str = "Enhancement request rejected", status: int | None = None
    ) -> None:
        super().__init__(message=message, error_code="terminal")
        self.status = status


class ExhaustedRetries(EnhancementError):
    def __init__(
        self, attempts: int, last_error: EnhancementError | None = None
    ) -> None:
        super().__init__(
            message=f"Enhancement failed after {attempts} attempts",
            error_code="exhausted_retries",
        )
        self.attempts = attempts
        self.last_error = last_error
