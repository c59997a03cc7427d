"""Request/response channel between the overlay and the enhancement service.

The UI layer sends ``{"type": "enhancePrompt", "originalPrompt": ...}`` and
the relay resolves with a ``RelayReply`` whose ``enhanced_prompt`` is None on
any failure. ``HttpRelay`` also reports the HTTP status it received so the
retrying client can tell rejections from outages.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from schemas.enhance import EnhancePromptMessage, RelayReply


logger = logging.getLogger(__name__)

ENHANCE_PATH = "/enhance"


class RelayChannel(Protocol):
    """Anything that can carry an enhancement message and await the reply."""

    async def send(self, message: EnhancePromptMessage) -> RelayReply:
        """Deliver ``message`` and return the reply; never raises for HTTP failures."""
        ...


class HttpRelay:
    """Posts enhancement messages to the service's ``POST /enhance``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 45.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> HttpRelay:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, message: EnhancePromptMessage) -> RelayReply:
        payload = message.model_dump(by_alias=True, include={"original_prompt"})
        try:
            response = await self._client.post(ENHANCE_PATH, json=payload)
        except httpx.TimeoutException:
            logger.warning("Enhancement service timed out (url=%s)", self.base_url)
            return RelayReply()
        except httpx.HTTPError as exc:
            logger.warning(
                "Enhancement service unreachable: %s (url=%s)",
                type(exc).__name__,
                self.base_url,
            )
            return RelayReply()

        if response.is_error:
            logger.warning(
                "Enhancement service returned HTTP %d: %s",
                response.status_code,
                _error_message(response),
            )
            return RelayReply(status=response.status_code)

        try:
            reply = RelayReply.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.warning("Enhancement service sent an unreadable body")
            return RelayReply(status=response.status_code)
        return reply.model_copy(update={"status": response.status_code})


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return response.reason_phrase
