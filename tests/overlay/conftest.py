"""Shared fixtures for the overlay controller tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from overlay.client import RetryingClient
from overlay.models import RetryPolicy
from overlay.page import Element, Page, Rect
from overlay.state import UIStateController
from overlay.surface import SurfaceAdapter
from overlay.view import OverlayView
from schemas.enhance import EnhancePromptMessage, RelayReply, TokenUsage


QUIET_PERIOD = 0.01  # seconds

COMPOSER_RECT = Rect(left=100, top=600, width=600, height=80)


def enhanced_reply(text: str) -> RelayReply:
    return RelayReply(
        enhanced_prompt=text,
        status=200,
        usage=TokenUsage(input_tokens=5, output_tokens=7, total_tokens=12),
        latency_ms=42,
    )


class FakeRelay:
    """Relay double answering from a queue of replies or exceptions.

    With an empty queue every message is answered with ``Enhanced: <text>``.
    Setting ``gate`` holds every reply until the event is set.
    """

    def __init__(self, *replies: RelayReply | BaseException) -> None:
        self.replies = list(replies)
        self.sent: list[str] = []
        self.gate: asyncio.Event | None = None

    async def send(self, message: EnhancePromptMessage) -> RelayReply:
        self.sent.append(message.original_prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.replies:
            reply = self.replies.pop(0)
        else:
            reply = enhanced_reply(f"Enhanced: {message.original_prompt}")
        if isinstance(reply, BaseException):
            raise reply
        return reply


class RecordingSleep:
    """Stands in for ``asyncio.sleep`` in the retry loop; records each wait."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def reply() -> Callable[[str], RelayReply]:
    return enhanced_reply


@pytest.fixture
def make_relay() -> type[FakeRelay]:
    return FakeRelay


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def page() -> Page:
    return Page()


@pytest.fixture
def make_textarea(page: Page) -> Callable[..., Element]:
    def make(name: str = "prompt-textarea") -> Element:
        element = page.create_element("textarea", {"name": name}, rect=COMPOSER_RECT)
        return page.body.append_child(element)

    return make


@pytest.fixture
def textarea(make_textarea: Callable[..., Element]) -> Element:
    return make_textarea()


@pytest.fixture
def view(page: Page) -> OverlayView:
    return OverlayView(page)


@pytest.fixture
def controller(
    relay: FakeRelay, view: OverlayView, sleep: RecordingSleep
) -> UIStateController:
    client = RetryingClient(relay, RetryPolicy(), sleep=sleep)
    return UIStateController(client, view, quiet_period=QUIET_PERIOD)


@pytest.fixture
def bound(controller: UIStateController, textarea: Element) -> UIStateController:
    controller.bind(SurfaceAdapter(textarea))
    return controller
