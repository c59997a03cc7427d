"""Re-bind the controller as the host page rebuilds its composer."""

from __future__ import annotations

import logging
from collections.abc import Callable

from overlay.exceptions import LocatorNotFound
from overlay.locator import require_surface
from overlay.page import Element, Page
from overlay.state import UIStateController
from overlay.surface import SurfaceAdapter


logger = logging.getLogger(__name__)


class MutationWatcher:
    """Runs the locator on every structural change of the page.

    A rebind happens when the bound surface has been detached or the locator
    now prefers a different element; finding the already-bound element again
    is a no-op. Notifications raised while a pass is running (for example by
    the overlay appending its own elements) are coalesced into one more pass.
    """

    def __init__(
        self,
        page: Page,
        controller: UIStateController,
        *,
        locate_surface: Callable[[Element], Element] = require_surface,
    ) -> None:
        self.page = page
        self.controller = controller
        self.rebinds = 0
        self.passes = 0
        self._locate_surface = locate_surface
        self._unsubscribe: Callable[[], None] | None = None
        self._running = False
        self._dirty = False

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.page.subscribe(self.on_mutation)
        self.on_mutation()

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_mutation(self) -> None:
        if self._running:
            self._dirty = True
            return
        self._running = True
        try:
            self._dirty = True
            while self._dirty:
                self._dirty = False
                self._reconcile()
        finally:
            self._running = False

    def _reconcile(self) -> None:
        self.passes += 1
        bound = self.controller.surface
        try:
            found = self._locate_surface(self.page.root)
        except LocatorNotFound as exc:
            if bound is not None and not bound.is_attached():
                logger.info("Bound surface left the page (%s)", exc.error_code)
                self.controller.unbind()
            elif bound is None:
                logger.debug("Waiting for a prompt surface to appear")
            return

        if bound is None or bound.identity is not found:
            if self.controller.bind(SurfaceAdapter(found)):
                self.rebinds += 1
        self.controller.reposition()
