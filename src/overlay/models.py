"""Value objects shared by the overlay controller components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class SurfaceKind(str, Enum):
    """Shape of the editable element the controller is bound to."""

    PLAIN_FIELD = "plain-field"  # textarea / input, text lives in ``value``
    RICH_REGION = "rich-region"  # contenteditable, text lives in inner text


class UIState(Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Usage:
    """Provider token accounting for one enhancement."""

    input_units: int = 0
    output_units: int = 0
    total_units: int = 0


@dataclass(frozen=True, slots=True)
class EnhancementRequest:
    """One dispatch of settled text.

    ``generation`` is the controller's edit generation at dispatch time; the
    request is stale as soon as the generation moves on.
    """

    source_text: str
    requested_at: float
    generation: int


@dataclass(frozen=True, slots=True)
class EnhancementResult:
    source_text: str
    enhanced_text: str
    usage: Usage = field(default_factory=Usage)
    latency_ms: int = 0


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry configuration for the relay client.

    The wait after attempt ``n`` is ``base_delay_ms * backoff_multiplier ** (n - 1)``.
    """

    max_attempts: int = 3
    base_delay_ms: int = 500
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
