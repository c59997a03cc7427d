"""Icon, suggestion panel and underline drawn over the host page."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from overlay.page import Element, Event, Page, Rect


LOADING_MESSAGE = "Enhancing your prompt…"
ERROR_MESSAGE = "Could not enhance prompt. Try again."
APPLY_HINT = "\n\n(click to replace prompt)"

UNDERLINE_STYLE = "underline wavy red"
UNDERLINE_THICKNESS = "1.5px"

ICON_SIZE = 30
ICON_OFFSET_RIGHT = 36
ICON_OFFSET_BOTTOM = 40
PANEL_MAX_WIDTH = 320
PANEL_MARGIN = 8


class IconMode(str, Enum):
    DIM = "dim"
    BUSY = "busy"
    HIGHLIGHT = "highlight"
    ATTENTION = "attention"


_BORDER = "1px solid rgba(0,0,0,0.15)"
_PULSE = "pulse 1s infinite"
_GREEN = "2px solid #10a37f"
_RED = "2px solid #d93025"

_ICON_MODE_STYLES: dict[IconMode, dict[str, str]] = {
    IconMode.DIM: {"opacity": "0.6", "animation": "", "border": _BORDER},
    IconMode.BUSY: {"opacity": "1", "animation": _PULSE, "border": _BORDER},
    IconMode.HIGHLIGHT: {"opacity": "1", "animation": "", "border": _GREEN},
    IconMode.ATTENTION: {"opacity": "1", "animation": "", "border": _RED},
}


def format_suggestion(enhanced_text: str) -> str:
    """Panel text offering ``enhanced_text`` as a replacement."""
    return f"{enhanced_text}{APPLY_HINT}"


class OverlayView:
    """Owns the overlay elements and the decoration on the bound surface.

    The icon and panel are created once, appended to the page body, and
    re-positioned from the target's rect on every page mutation.
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self.mode = IconMode.DIM
        self.icon: Element | None = None
        self.panel: Element | None = None
        self.target: Element | None = None
        self._on_icon_click: Callable[[], None] | None = None
        self._on_panel_click: Callable[[], None] | None = None

    def bind_actions(
        self,
        *,
        on_icon_click: Callable[[], None],
        on_panel_click: Callable[[], None],
    ) -> None:
        self._on_icon_click = on_icon_click
        self._on_panel_click = on_panel_click

    # -- lifecycle --------------------------------------------------------

    def attach(self, target: Element) -> None:
        """Point the overlay at ``target`` with a hidden panel and no underline."""
        if self.target is not None and self.target is not target:
            self.clear_underline()
        self.target = target
        self._create_if_needed()
        assert self.icon is not None
        self.icon.style["display"] = "flex"
        self.hide_panel()
        self.clear_underline()
        self.position()

    def detach(self) -> None:
        """Hide everything and drop the target; the elements stay for reuse."""
        self.clear_underline()
        self.hide_panel()
        if self.icon is not None:
            self.icon.style["display"] = "none"
        self.target = None

    def destroy(self) -> None:
        self.detach()
        for element in (self.icon, self.panel):
            if element is not None:
                element.remove()
        self.icon = None
        self.panel = None

    def _create_if_needed(self) -> None:
        if self.panel is None:
            panel = self.page.create_element("div", {"data-prompt-enhancer": "panel"})
            panel.style.update(
                {
                    "position": "fixed",
                    "max-width": f"{PANEL_MAX_WIDTH}px",
                    "padding": "8px 10px",
                    "border-radius": "8px",
                    "background": "#ffffff",
                    "color": "#000000",
                    "white-space": "pre-wrap",
                    "cursor": "pointer",
                    "z-index": "999999999",
                    "display": "none",
                }
            )
            panel.add_event_listener("click", self._handle_panel_click)
            self.panel = panel
            self.page.body.append_child(panel)

        if self.icon is None:
            icon = self.page.create_element(
                "button",
                {
                    "type": "button",
                    "aria-label": "Enhance prompt",
                    "data-prompt-enhancer": "icon",
                },
            )
            icon.append_child(
                self.page.create_element("img", {"alt": "Prompt Enhancer"})
            )
            icon.style.update(
                {
                    "position": "fixed",
                    "width": f"{ICON_SIZE}px",
                    "height": f"{ICON_SIZE}px",
                    "border-radius": "50%",
                    "cursor": "pointer",
                    "z-index": "999999999",
                }
            )
            icon.add_event_listener("click", self._handle_icon_click)
            self.icon = icon
            self.set_mode(self.mode)
            self.page.body.append_child(icon)

    # -- visuals ----------------------------------------------------------

    def set_mode(self, mode: IconMode) -> None:
        self.mode = mode
        if self.icon is not None:
            self.icon.style.update(_ICON_MODE_STYLES[mode])
            self.icon.attributes["data-mode"] = mode.value

    def apply_underline(self) -> None:
        if self.target is None:
            return
        self.target.style["text-decoration"] = UNDERLINE_STYLE
        self.target.style["text-decoration-thickness"] = UNDERLINE_THICKNESS

    def clear_underline(self) -> None:
        if self.target is None:
            return
        self.target.style.pop("text-decoration", None)
        self.target.style.pop("text-decoration-thickness", None)

    @property
    def underlined(self) -> bool:
        return (
            self.target is not None
            and self.target.style.get("text-decoration") == UNDERLINE_STYLE
        )

    @property
    def panel_text(self) -> str:
        return self.panel.inner_text if self.panel is not None else ""

    @property
    def panel_visible(self) -> bool:
        return self.panel is not None and self.panel.style.get("display") == "block"

    def set_panel_text(self, text: str) -> None:
        self._create_if_needed()
        assert self.panel is not None
        self.panel.inner_text = text

    def show_panel(self, text: str | None = None) -> None:
        if text is not None:
            self.set_panel_text(text)
        self._create_if_needed()
        assert self.panel is not None
        self.panel.style["display"] = "block"
        self.position()

    def hide_panel(self) -> None:
        if self.panel is not None:
            self.panel.style["display"] = "none"

    def toggle_panel(self) -> None:
        if self.panel_visible:
            self.hide_panel()
        else:
            self.show_panel()

    def position(self) -> None:
        """Pin the icon to the target's bottom-right and the panel above it."""
        if self.target is None or self.icon is None:
            return
        rect = self.target.rect
        left = rect.right - ICON_OFFSET_RIGHT
        top = rect.bottom - ICON_OFFSET_BOTTOM
        self.icon.rect = Rect(left=left, top=top, width=ICON_SIZE, height=ICON_SIZE)
        self.icon.style["left"] = f"{left:g}px"
        self.icon.style["top"] = f"{top:g}px"

        if self.panel is None or self.icon.style.get("display") == "none":
            return
        icon_rect = self.icon.rect
        panel_left = max(
            icon_rect.left - PANEL_MAX_WIDTH + icon_rect.width, PANEL_MARGIN
        )
        panel_bottom = self.page.viewport_height - icon_rect.top + PANEL_MARGIN
        self.panel.style["left"] = f"{panel_left:g}px"
        self.panel.style["bottom"] = f"{panel_bottom:g}px"

    # -- events -----------------------------------------------------------

    def _handle_icon_click(self, _event: Event) -> None:
        if self._on_icon_click is not None:
            self._on_icon_click()

    def _handle_panel_click(self, _event: Event) -> None:
        if self._on_panel_click is not None:
            self._on_panel_click()
