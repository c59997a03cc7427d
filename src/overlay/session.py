"""Assemble and tear down the whole controller graph for one page."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from core.config import OverlaySettings, get_overlay_settings
from overlay.client import RetryingClient
from overlay.models import RetryPolicy
from overlay.page import Page
from overlay.relay import HttpRelay, RelayChannel
from overlay.state import UIStateController
from overlay.view import OverlayView
from overlay.watcher import MutationWatcher


logger = logging.getLogger(__name__)


class EnhancerSession:
    """Relay, client, view, controller and watcher wired from settings.

    Usage:
        async with EnhancerSession(page) as session:
            ...  # the controller follows the page until the block exits

    A relay passed in is left open on close; one built here is closed.
    """

    def __init__(
        self,
        page: Page,
        *,
        settings: OverlaySettings | None = None,
        relay: RelayChannel | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_overlay_settings()
        self.page = page
        self._owned_relay: HttpRelay | None = None
        if relay is None:
            self._owned_relay = HttpRelay(
                self.settings.SERVICE_URL,
                timeout=self.settings.RELAY_TIMEOUT_SECONDS,
            )
            relay = self._owned_relay
        self.relay = relay

        policy = RetryPolicy(
            max_attempts=self.settings.MAX_ATTEMPTS,
            base_delay_ms=self.settings.BASE_DELAY_MS,
            backoff_multiplier=self.settings.BACKOFF_MULTIPLIER,
        )
        self.client = RetryingClient(relay, policy, sleep=sleep)
        self.view = OverlayView(page)
        self.controller = UIStateController(
            self.client,
            self.view,
            quiet_period=self.settings.QUIET_PERIOD_MS / 1000,
            min_text_length=self.settings.MIN_TEXT_LENGTH,
        )
        self.watcher = MutationWatcher(page, self.controller)
        self._started = False

    async def __aenter__(self) -> EnhancerSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        logger.info(
            "Prompt enhancer starting (service=%s, quiet_period_ms=%d)",
            self.settings.SERVICE_URL,
            self.settings.QUIET_PERIOD_MS,
        )
        self.watcher.start()

    async def close(self) -> None:
        self.watcher.close()
        await self.controller.close()
        self.view.destroy()
        if self._owned_relay is not None:
            await self._owned_relay.aclose()
            self._owned_relay = None
        self._started = False
