"""Enhancement lifecycle state machine.

``UIStateController`` owns the bound surface, the cache slot, the suppression
flag and the current ``UIState``, and keeps the overlay visuals in step with
them:

* Idle / Debouncing: icon dimmed, no decoration
* Loading: icon busy, no decoration
* Ready: icon highlighted, wavy underline, suggestion panel on click
* Error: icon flags attention, panel shows a short diagnostic

Every raw user edit bumps an edit generation. A request is authoritative only
while the generation it was issued under is still current; anything that lands
later is discarded without touching the cache or the UI.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from overlay.cache import EnhancementCache, SuppressionFlag
from overlay.client import RetryingClient
from overlay.debounce import Debouncer
from overlay.exceptions import EnhancementError, InputTooShort, Superseded
from overlay.models import EnhancementRequest, EnhancementResult, UIState
from overlay.surface import SurfaceAdapter
from overlay.view import (
    ERROR_MESSAGE,
    LOADING_MESSAGE,
    IconMode,
    OverlayView,
    format_suggestion,
)


logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD = 0.7  # seconds
DEFAULT_MIN_TEXT_LENGTH = 3

_ICON_MODES: dict[UIState, IconMode] = {
    UIState.IDLE: IconMode.DIM,
    UIState.DEBOUNCING: IconMode.DIM,
    UIState.LOADING: IconMode.BUSY,
    UIState.READY: IconMode.HIGHLIGHT,
    UIState.ERROR: IconMode.ATTENTION,
}

TransitionListener = Callable[[UIState, UIState], None]


def check_length(text: str, minimum: int) -> None:
    """Raise ``InputTooShort`` when trimmed ``text`` is below ``minimum``."""
    if len(text) < minimum:
        raise InputTooShort(length=len(text), minimum=minimum)


class UIStateController:
    """Drives one bound surface through Idle/Debouncing/Loading/Ready/Error."""

    def __init__(
        self,
        client: RetryingClient,
        view: OverlayView,
        *,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
        min_text_length: int = DEFAULT_MIN_TEXT_LENGTH,
        cache: EnhancementCache | None = None,
    ) -> None:
        self.client = client
        self.view = view
        self.min_text_length = min_text_length
        self.cache = cache or EnhancementCache()
        self.suppression = SuppressionFlag()
        self.debouncer = Debouncer(quiet_period, self._on_settled)
        self.surface: SurfaceAdapter | None = None
        self.error_message: str | None = None

        self._state = UIState.IDLE
        self._generation = 0
        self._unsubscribe: Callable[[], None] | None = None
        self._task: asyncio.Task[None] | None = None
        self._in_flight: EnhancementRequest | None = None
        self._superseded: asyncio.Event | None = None
        self._queued_text: str | None = None
        self._reveal = False
        self._listeners: list[TransitionListener] = []

        view.bind_actions(
            on_icon_click=self.on_icon_click,
            on_panel_click=self.on_panel_click,
        )

    @property
    def state(self) -> UIState:
        return self._state

    @property
    def in_flight(self) -> EnhancementRequest | None:
        """The request currently awaiting the relay, stale or not."""
        return self._in_flight if self._request_running() else None

    def add_listener(self, listener: TransitionListener) -> None:
        """Call ``listener(old, new)`` on every state transition."""
        self._listeners.append(listener)

    # -- binding ----------------------------------------------------------

    def bind(self, surface: SurfaceAdapter) -> bool:
        """Bind to ``surface``; a no-op returning False if it is already bound."""
        if self.surface is not None and self.surface.identity is surface.identity:
            return False
        self._release()
        self.surface = surface
        self._unsubscribe = surface.observe(self.on_change)
        self.view.attach(surface.element)
        logger.info("Bound to %s surface %r", surface.kind.value, surface.element)
        return True

    def unbind(self) -> None:
        if self.surface is None:
            return
        self._release()
        self.view.detach()
        logger.info("Surface released; waiting for the page to offer a new one")

    def reposition(self) -> None:
        self.view.position()

    def _release(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.debouncer.cancel()
        # Anything still in flight belongs to the old surface
        self._supersede()
        self._queued_text = None
        self._reveal = False
        self.suppression.disarm()
        self.cache.invalidate()
        self.view.clear_underline()
        self.view.hide_panel()
        self.error_message = None
        self.surface = None
        self._set_state(UIState.IDLE)

    # -- change capture ---------------------------------------------------

    def on_change(self) -> None:
        """Handle one raw change notification from the bound surface."""
        if self.suppression.consume():
            logger.debug("Ignoring the change caused by applying an enhancement")
            return

        self._supersede()
        self._queued_text = None
        self._reveal = False
        self.cache.invalidate()
        self.view.clear_underline()
        self.view.hide_panel()
        self.error_message = None
        self._set_state(UIState.DEBOUNCING)
        self.debouncer.notify()

    def _on_settled(self) -> None:
        if self.surface is None:
            return
        self._settle(self.surface.get_text().strip(), reveal=False)

    def enhance_now(self) -> None:
        """Enhance the current text immediately, skipping any pending debounce.

        Ignored with busy feedback while a request is already loading.
        """
        if self.surface is None:
            return
        if self._state is UIState.LOADING:
            logger.debug("Already enhancing; ignoring request")
            self.view.show_panel(LOADING_MESSAGE)
            return
        self.debouncer.cancel()
        self._settle(self.surface.get_text().strip(), reveal=True)

    def _settle(self, text: str, *, reveal: bool) -> None:
        try:
            check_length(text, self.min_text_length)
        except InputTooShort as exc:
            logger.debug("Nothing to enhance: %s", exc.message)
            self.cache.invalidate()
            self.view.clear_underline()
            self.view.hide_panel()
            self._set_state(UIState.IDLE)
            return

        cached = self.cache.lookup(text)
        if cached is not None:
            logger.info("Reusing cached enhancement; no new request")
            self._show_ready(cached, reveal=reveal)
            return

        if self._request_running():
            # Only a superseded request can still be running here; its backoff
            # is already cut short, and the latest text goes out once it lands.
            self._queued_text = text
            self._reveal = self._reveal or reveal
            self._set_state(UIState.LOADING)
            if reveal:
                self.view.show_panel(LOADING_MESSAGE)
            return

        self._dispatch(text, reveal=reveal)

    # -- requests ---------------------------------------------------------

    def _request_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _is_current(self, request: EnhancementRequest) -> bool:
        return self.surface is not None and request.generation == self._generation

    def _supersede(self) -> None:
        self._generation += 1
        if self._superseded is not None:
            self._superseded.set()

    def _dispatch(self, text: str, *, reveal: bool) -> None:
        self.cache.invalidate()
        request = EnhancementRequest(
            source_text=text,
            requested_at=time.time(),
            generation=self._generation,
        )
        self._in_flight = request
        superseded = self._superseded = asyncio.Event()
        self._reveal = reveal
        self._set_state(UIState.LOADING)
        if reveal:
            self.view.show_panel(LOADING_MESSAGE)
        logger.info("Requesting enhancement (length=%d)", len(text))
        self._task = asyncio.get_running_loop().create_task(
            self._run(request, superseded)
        )

    async def _run(
        self, request: EnhancementRequest, superseded: asyncio.Event
    ) -> None:
        result: EnhancementResult | None = None
        failure: EnhancementError | None = None
        try:
            result = await self.client.enhance(
                request.source_text,
                is_current=lambda: self._is_current(request),
                superseded=superseded,
            )
        except Superseded:
            logger.debug("Stopped retrying a superseded request")
        except EnhancementError as exc:
            failure = exc
        except Exception as exc:
            logger.exception("Unexpected failure while enhancing")
            failure = EnhancementError(
                message=f"{type(exc).__name__}: {exc}", error_code="unexpected"
            )

        self._task = None
        self._in_flight = None
        self._superseded = None

        if not self._is_current(request):
            logger.debug("Discarding the result of a superseded request")
            self._dispatch_queued()
            return
        if result is not None:
            self.cache.store(result)
            self._show_ready(result, reveal=self._reveal)
        elif failure is not None:
            self._show_error(failure, reveal=self._reveal)

    def _dispatch_queued(self) -> None:
        text, self._queued_text = self._queued_text, None
        if text is None or self.surface is None:
            return
        self._dispatch(text, reveal=self._reveal)

    async def join(self) -> None:
        """Wait until no request (including a queued follow-up) is running."""
        while (task := self._task) is not None:
            await task

    # -- rendering --------------------------------------------------------

    def _show_ready(self, result: EnhancementResult, *, reveal: bool) -> None:
        self._reveal = False
        self.error_message = None
        self._set_state(UIState.READY)
        self.view.apply_underline()
        self.view.set_panel_text(format_suggestion(result.enhanced_text))
        if reveal:
            self.view.show_panel()
        logger.info(
            "Enhancement ready (latency_ms=%d, total_units=%d)",
            result.latency_ms,
            result.usage.total_units,
        )

    def _show_error(self, failure: EnhancementError, *, reveal: bool) -> None:
        logger.warning("Enhancement failed: %s", failure)
        self._reveal = False
        self.error_message = ERROR_MESSAGE
        self._set_state(UIState.ERROR)
        self.view.clear_underline()
        self.view.set_panel_text(ERROR_MESSAGE)
        if reveal:
            self.view.show_panel()

    def _set_state(self, new: UIState) -> None:
        old = self._state
        self._state = new
        self.view.set_mode(_ICON_MODES[new])
        if old is new:
            return
        logger.debug("State %s -> %s", old.value, new.value)
        for listener in list(self._listeners):
            listener(old, new)

    # -- user actions -----------------------------------------------------

    def on_icon_click(self) -> None:
        if self.surface is None:
            return
        if self._state in (UIState.IDLE, UIState.DEBOUNCING, UIState.LOADING):
            self.enhance_now()
        else:
            self.view.toggle_panel()

    def on_panel_click(self) -> None:
        if self._state is UIState.READY:
            self.apply()

    def apply(self) -> bool:
        """Write the cached enhancement into the surface and return to Idle."""
        result = self.cache.result
        if self._state is not UIState.READY or result is None or self.surface is None:
            return False

        logger.info("Applying enhanced prompt (length=%d)", len(result.enhanced_text))
        self.suppression.arm()
        self.surface.set_text(result.enhanced_text)
        if self.suppression.armed:
            logger.debug("Surface did not echo the write; disarming suppression")
            self.suppression.disarm()

        self.view.hide_panel()
        self.view.clear_underline()
        self.cache.invalidate()
        self._set_state(UIState.IDLE)
        return True

    async def close(self) -> None:
        task = self._task
        self.unbind()
        self.debouncer.cancel()
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        self._in_flight = None
        self._superseded = None
