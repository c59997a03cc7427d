"""Tests for prompt surface discovery."""

import pytest

from overlay.exceptions import LocatorNotFound
from overlay.locator import locate, require_surface
from overlay.page import Page, Rect


VISIBLE = Rect(left=0, top=0, width=400, height=60)


def add(page: Page, parent, tag: str, attributes=None, rect=VISIBLE):
    return parent.append_child(page.create_element(tag, attributes, rect=rect))


class TestLocate:
    def test_finds_plain_textarea(self) -> None:
        page = Page()
        field = add(page, page.body, "textarea")

        assert locate(page.root) is field

    def test_prefers_named_prompt_textarea(self) -> None:
        page = Page()
        add(page, page.body, "textarea", {"name": "notes"})
        prompt = add(page, page.body, "textarea", {"name": "prompt-textarea"})

        assert locate(page.root) is prompt

    def test_message_editor_beats_everything(self) -> None:
        page = Page()
        add(page, page.body, "textarea", {"name": "prompt-textarea"})
        add(page, page.body, "div", {"role": "textbox"})
        composer = add(page, page.body, "div", {"data-message-editor": "true"})
        editable = add(page, composer, "div", {"contenteditable": "true"})

        assert locate(page.root) is editable

    def test_textbox_role_beats_rich_region(self) -> None:
        page = Page()
        add(page, page.body, "div", {"contenteditable": "true"})
        textbox = add(page, page.body, "div", {"role": "textbox"})

        assert locate(page.root) is textbox

    def test_rich_region_prefers_composer_label(self) -> None:
        page = Page()
        add(page, page.body, "div", {"contenteditable": "true"})
        labelled = add(
            page, page.body, "div", {"contenteditable": "", "aria-label": "Chat input"}
        )

        assert locate(page.root) is labelled

    def test_rich_region_beats_plain_field(self) -> None:
        page = Page()
        add(page, page.body, "textarea")
        editable = add(page, page.body, "div", {"contenteditable": "true"})

        assert locate(page.root) is editable

    def test_text_input_is_last_resort(self) -> None:
        page = Page()
        add(page, page.body, "input", {"type": "checkbox"})
        text_input = add(page, page.body, "input", {"type": "search"})

        assert locate(page.root) is text_input

    @pytest.mark.parametrize(
        "hide",
        [
            lambda el: el.set_attribute("hidden", ""),
            lambda el: el.style.update({"visibility": "hidden"}),
            lambda el: setattr(el, "rect", Rect()),
        ],
    )
    def test_skips_invisible_candidates(self, hide) -> None:
        page = Page()
        hidden = add(page, page.body, "textarea", {"name": "prompt-textarea"})
        fallback = add(page, page.body, "textarea")
        hide(hidden)

        assert locate(page.root) is fallback

    def test_contenteditable_false_is_ignored(self) -> None:
        page = Page()
        add(page, page.body, "div", {"contenteditable": "false"})

        assert locate(page.root) is None

    def test_detached_root_finds_nothing(self) -> None:
        page = Page()
        orphan = page.create_element("div")
        add(page, orphan, "textarea")

        assert locate(orphan) is None


def test_require_surface_raises_when_missing() -> None:
    page = Page()

    with pytest.raises(LocatorNotFound) as exc_info:
        require_surface(page.root)

    assert exc_info.value.error_code == "locator_not_found"
