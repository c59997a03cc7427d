"""Find the prompt composer on a page whose structure keeps changing.

Heuristics run in priority order and the first visible match wins:

1. an editable region inside the host composer (``data-message-editor="true"``)
2. any element exposing the accessible ``textbox`` role
3. any rich editable region, preferring one whose name or label mentions
   prompt, message or chat
4. a plain text field: ``textarea[name="prompt-textarea"]``, then any
   textarea, then a text ``input``
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from overlay.exceptions import LocatorNotFound
from overlay.page import Element, is_visible


logger = logging.getLogger(__name__)

COMPOSER_HINTS = ("prompt", "message", "chat")
TEXT_INPUT_TYPES = frozenset({"text", "search"})


def _is_rich_editable(element: Element) -> bool:
    return element.get_attribute("contenteditable") in ("true", "")


def _mentions_composer(element: Element) -> bool:
    label = " ".join(
        element.get_attribute(name) or ""
        for name in ("name", "aria-label", "placeholder", "data-placeholder")
    ).lower()
    return any(hint in label for hint in COMPOSER_HINTS)


def _first(candidates: Iterable[Element]) -> Element | None:
    return next((el for el in candidates if is_visible(el)), None)


def _in_message_editor(root: Element) -> Element | None:
    for container in root.iter_descendants():
        if container.get_attribute("data-message-editor") != "true":
            continue
        found = _first(
            el for el in container.iter_descendants() if _is_rich_editable(el)
        )
        if found is not None:
            return found
    return None


def _textbox_role(root: Element) -> Element | None:
    return _first(
        el for el in root.iter_descendants() if el.get_attribute("role") == "textbox"
    )


def _rich_region(root: Element) -> Element | None:
    editables = [el for el in root.iter_descendants() if _is_rich_editable(el)]
    return _first(el for el in editables if _mentions_composer(el)) or _first(editables)


def _plain_field(root: Element) -> Element | None:
    textareas = [el for el in root.iter_descendants() if el.tag == "textarea"]
    return (
        _first(el for el in textareas if el.get_attribute("name") == "prompt-textarea")
        or _first(textareas)
        or _first(
            el
            for el in root.iter_descendants()
            if el.tag == "input"
            and (el.get_attribute("type") or "text").lower() in TEXT_INPUT_TYPES
        )
    )


HEURISTICS: tuple[Callable[[Element], Element | None], ...] = (
    _in_message_editor,
    _textbox_role,
    _rich_region,
    _plain_field,
)


def locate(root: Element) -> Element | None:
    """Return the best candidate text surface under ``root``, or None."""
    if not root.is_connected:
        return None
    for heuristic in HEURISTICS:
        found = heuristic(root)
        if found is not None:
            logger.debug("Located %r via %s", found, heuristic.__name__)
            return found
    return None


def require_surface(root: Element) -> Element:
    """Like :func:`locate` but raises ``LocatorNotFound`` when nothing matches."""
    found = locate(root)
    if found is None:
        raise LocatorNotFound()
    return found
