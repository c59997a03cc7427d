"""Single-slot memo of the last successful enhancement."""

from __future__ import annotations

from overlay.models import EnhancementResult


class EnhancementCache:
    """Holds at most one result, keyed by its exact (trimmed) source text.

    The owner invalidates the slot on every user edit, even one that later
    reverts to the cached text.
    """

    def __init__(self) -> None:
        self._slot: EnhancementResult | None = None

    @property
    def result(self) -> EnhancementResult | None:
        return self._slot

    @property
    def source_text(self) -> str | None:
        return self._slot.source_text if self._slot is not None else None

    def lookup(self, source_text: str) -> EnhancementResult | None:
        if self._slot is not None and self._slot.source_text == source_text:
            return self._slot
        return None

    def store(self, result: EnhancementResult) -> None:
        self._slot = result

    def invalidate(self) -> None:
        self._slot = None


class SuppressionFlag:
    """Single-use guard for the change notification caused by our own write.

    Armed right before a programmatic write; the next notification consumes
    it and is ignored. Only that one.
    """

    def __init__(self) -> None:
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    def arm(self) -> None:
        self._armed = True

    def disarm(self) -> None:
        self._armed = False

    def consume(self) -> bool:
        """Return True (and disarm) when this notification must be ignored."""
        if not self._armed:
            return False
        self._armed = False
        return True
