"""Uniform read/write/observe access to the bound text surface."""

from __future__ import annotations

import logging
from collections.abc import Callable

from overlay.models import SurfaceKind
from overlay.page import Element, Event


logger = logging.getLogger(__name__)


class SurfaceAdapter:
    """Wraps a plain field (``value``) or a rich region (inner text).

    The adapter holds a reference only; the page owns the element and may
    detach it at any time, which ``is_attached`` reports.
    """

    def __init__(self, element: Element) -> None:
        self.element = element
        if element.is_plain_field:
            self.kind = SurfaceKind.PLAIN_FIELD
        else:
            self.kind = SurfaceKind.RICH_REGION

    def __repr__(self) -> str:
        return f"SurfaceAdapter({self.element!r}, kind={self.kind.value})"

    @property
    def identity(self) -> Element:
        return self.element

    def is_attached(self) -> bool:
        return self.element.is_connected

    def get_text(self) -> str:
        if self.kind is SurfaceKind.PLAIN_FIELD:
            return self.element.value
        return self.element.inner_text

    def set_text(self, value: str) -> None:
        """Write ``value`` and emit a synthetic ``input`` event for listeners."""
        if self.kind is SurfaceKind.PLAIN_FIELD:
            self.element.value = value
        else:
            self.element.inner_text = value
        self.element.dispatch("input")

    def observe(self, on_change: Callable[[], None]) -> Callable[[], None]:
        """Call ``on_change`` on every input event; returns an unsubscribe."""

        def listener(_event: Event) -> None:
            on_change()

        self.element.add_event_listener("input", listener)

        def unsubscribe() -> None:
            self.element.remove_event_listener("input", listener)

        return unsubscribe
