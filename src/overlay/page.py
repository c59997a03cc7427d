"""Headless model of the host page the overlay attaches to.

The controller never owns the page. It only needs a tree of elements with
attributes, inline style, a rendered rect, input listeners and a way to hear
about structural changes. ``Page`` provides exactly that, and any real host
binding (browser bridge, automation driver) can expose the same surface.

Structural notifications fire when children are added or removed and when an
attribute changes through ``set_attribute``/``remove_attribute``. A viewport
change through ``Page.resize`` notifies too. Inline style, ``value`` and text
writes do not notify, matching a child-list mutation observer.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass


PLAIN_FIELD_TAGS = frozenset({"textarea", "input"})

Listener = Callable[["Event"], None]


@dataclass(frozen=True, slots=True)
class Rect:
    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(slots=True)
class Event:
    type: str
    target: Element
    bubbles: bool = True


class Element:
    """A node in the page tree."""

    def __init__(
        self,
        tag: str,
        attributes: dict[str, str] | None = None,
        *,
        text: str = "",
        value: str = "",
        rect: Rect | None = None,
    ) -> None:
        self.tag = tag.lower()
        self.attributes: dict[str, str] = dict(attributes or {})
        self.style: dict[str, str] = {}
        self.children: list[Element] = []
        self.parent: Element | None = None
        self.rect = rect or Rect()
        self.value = value
        self._text = text
        self._page: Page | None = None
        self._listeners: dict[str, list[Listener]] = {}

    def __repr__(self) -> str:
        attrs = " ".join(f'{k}="{v}"' for k, v in self.attributes.items())
        return f"<{self.tag}{' ' + attrs if attrs else ''}>"

    # -- tree -------------------------------------------------------------

    @property
    def page(self) -> Page | None:
        node: Element = self
        while node.parent is not None:
            node = node.parent
        return node._page

    @property
    def is_connected(self) -> bool:
        return self.page is not None

    def append_child(self, child: Element) -> Element:
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        self._notify()
        return child

    def remove_child(self, child: Element) -> None:
        # Notify through the page we were attached to before detaching
        page = self.page
        self.children.remove(child)
        child.parent = None
        if page is not None:
            page.notify()

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)

    def iter_descendants(self) -> Iterator[Element]:
        """Depth-first, document-order walk of everything below this node."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def ancestors(self) -> Iterator[Element]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    # -- attributes -------------------------------------------------------

    def get_attribute(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = value
        self._notify()

    def remove_attribute(self, name: str) -> None:
        if self.attributes.pop(name, None) is not None:
            self._notify()

    # -- text -------------------------------------------------------------

    @property
    def is_plain_field(self) -> bool:
        return self.tag in PLAIN_FIELD_TAGS

    @property
    def inner_text(self) -> str:
        return self._text + "".join(child.inner_text for child in self.children)

    @inner_text.setter
    def inner_text(self, text: str) -> None:
        self._text = text
        if self.children:
            for child in list(self.children):
                child.parent = None
            self.children.clear()
            self._notify()

    def type_text(self, text: str) -> None:
        """Replace the content the way a user would and fire ``input``."""
        if self.is_plain_field:
            self.value = text
        else:
            self.inner_text = text
        self.dispatch("input")

    # -- events -----------------------------------------------------------

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self._listeners.setdefault(event_type, []).append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def dispatch(self, event_type: str, *, bubbles: bool = True) -> Event:
        event = Event(type=event_type, target=self, bubbles=bubbles)
        nodes = [self, *self.ancestors()] if bubbles else [self]
        for node in nodes:
            for listener in list(node._listeners.get(event_type, [])):
                listener(event)
        return event

    def click(self) -> Event:
        return self.dispatch("click")

    def _notify(self) -> None:
        page = self.page
        if page is not None:
            page.notify()


class Page:
    """Root of the element tree plus the structural-change subscription."""

    def __init__(
        self, viewport_width: float = 1280, viewport_height: float = 800
    ) -> None:
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self._subscribers: list[Callable[[], None]] = []
        self.root = Element("html")
        self.root._page = self
        self.body = self.root.append_child(Element("body"))

    def create_element(
        self,
        tag: str,
        attributes: dict[str, str] | None = None,
        *,
        text: str = "",
        value: str = "",
        rect: Rect | None = None,
    ) -> Element:
        """Create a detached element; append it somewhere to connect it."""
        return Element(tag, attributes, text=text, value=value, rect=rect)

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` for structural changes; returns an unsubscribe."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def resize(self, width: float, height: float) -> None:
        """Change the viewport size; subscribers hear about it like a mutation."""
        self.viewport_width = width
        self.viewport_height = height
        self.notify()

    def notify(self) -> None:
        for callback in list(self._subscribers):
            callback()


def is_hidden(element: Element) -> bool:
    """True when the element itself is hidden or collapsed."""
    if element.has_attribute("hidden"):
        return True
    if element.get_attribute("aria-hidden") == "true":
        return True
    if element.style.get("display") == "none":
        return True
    return element.style.get("visibility") in {"hidden", "collapse"}


def is_visible(element: Element) -> bool:
    """Connected, rendered with a non-zero size, and no hidden ancestor."""
    if not element.is_connected:
        return False
    if element.rect.width <= 0 or element.rect.height <= 0:
        return False
    return not any(is_hidden(node) for node in (element, *element.ancestors()))
