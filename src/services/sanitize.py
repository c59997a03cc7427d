"""Input sanitization and output cleanup for prompt text.

``sanitize_input`` runs on what users send us; ``markdown_to_plain_text``
runs on what the provider sends back, since the replacement prompt is written
straight into a plain text box.
"""

from __future__ import annotations

import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning


_SCRIPT_LIKE_TAGS = ("script", "style", "iframe", "object", "embed")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_ALNUM = re.compile(r"[a-zA-Z0-9]")


def _strip_markup(text: str) -> str:
    if "<" not in text:
        return text
    with warnings.catch_warnings():
        # Plain prompts that look like a URL or filename trip this warning
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        soup = BeautifulSoup(text, "html.parser")
    for tag in soup(_SCRIPT_LIKE_TAGS):
        tag.decompose()
    return soup.get_text()


def sanitize_input(text: object) -> str:
    """Remove markup, script-like fragments and control noise from user input.

    Whitespace runs (including newlines) are collapsed to single spaces.
    Non-string input sanitizes to an empty string.
    """
    if not isinstance(text, str):
        return ""

    sanitized = _strip_markup(text)
    sanitized = _JS_SCHEME.sub("", sanitized)
    sanitized = _INLINE_HANDLER.sub("", sanitized)
    sanitized = sanitized.replace("\0", "")
    return re.sub(r"\s+", " ", sanitized).strip()


def validate_prompt(prompt: object, *, max_length: int = 100_000) -> None:
    """Raise ValueError describing why ``prompt`` cannot be enhanced."""
    if not isinstance(prompt, str):
        raise ValueError("originalPrompt must be a string")
    trimmed = prompt.strip()
    if not trimmed:
        raise ValueError("originalPrompt must be a non-empty string")
    if len(trimmed) > max_length:
        raise ValueError(f"originalPrompt must be at most {max_length} characters")
    if not _ALNUM.search(trimmed):
        raise ValueError("originalPrompt must contain letters or digits")


def markdown_to_plain_text(text: object) -> str:
    """Convert markdown-formatted provider output to clean plain text."""
    if not isinstance(text, str):
        return ""

    result = text.replace("\r\n", "\n")
    # Fenced code blocks go first so their backticks don't look like inline code
    result = re.sub(r"```[\s\S]*?```", "", result)
    result = re.sub(r"\*\*(.*?)\*\*", r"\1", result)
    result = re.sub(r"(?<!\*)\*(?!\s)([^*\n]+?)\*", r"\1", result)
    result = re.sub(r"`([^`]+)`", r"\1", result)
    result = re.sub(r"^#+[ \t]+", "", result, flags=re.MULTILINE)
    # [text](url) -> text
    result = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", result)
    # Horizontal rules before bullets, or "---" would become "- --"
    result = re.sub(r"^[ \t]*[-*_]{3,}[ \t]*$", "", result, flags=re.MULTILINE)
    result = re.sub(r"^[ \t]*[-*+][ \t]+", "- ", result, flags=re.MULTILINE)
    result = re.sub(r"^[ \t]*\d+\.[ \t]+", "", result, flags=re.MULTILINE)
    result = re.sub(r"^>\s?", "", result, flags=re.MULTILINE)
    # Collapse multiple blank lines to max 2
    result = re.sub(r"\n{3,}", "\n\n", result)
    result = re.sub(r"[ \t]{2,}", " ", result)
    return result.strip()
