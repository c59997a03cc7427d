"""Bounded-retry client for the enhancement relay."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import partial

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from overlay.exceptions import (
    EnhancementError,
    ExhaustedRetries,
    Superseded,
    TerminalFailure,
    TransientFailure,
)
from overlay.models import EnhancementResult, RetryPolicy, Usage
from overlay.relay import RelayChannel
from schemas.enhance import EnhancePromptMessage, RelayReply


logger = logging.getLogger(__name__)

# Service statuses worth another attempt; every other 4xx is a rejection
RETRYABLE_STATUSES = frozenset({408, 429})


def _always_current() -> bool:
    return True


def classify_reply(reply: RelayReply) -> str:
    """Return the enhanced text or raise the matching failure.

    Raises:
        TransientFailure: no status (timeout, connection failure), 408, 429,
            5xx, or a success status with an empty or malformed body.
        TerminalFailure: any other 4xx, e.g. validation (400/415) or
            authentication (401/403) rejections.
    """
    enhanced = reply.enhanced_prompt
    if isinstance(enhanced, str) and enhanced.strip():
        return enhanced

    status = reply.status
    if status is None:
        raise TransientFailure("No reply from the enhancement service")
    if status < 400:
        raise TransientFailure("Empty or malformed reply", status=status)
    if status >= 500 or status in RETRYABLE_STATUSES:
        raise TransientFailure(f"Enhancement service answered {status}", status=status)
    raise TerminalFailure(
        f"Enhancement service rejected the request ({status})", status=status
    )


class RetryingClient:
    """Calls the relay, retrying transient failures with exponential backoff.

    One relay message is sent per attempt. ``attempts`` counts the attempts
    made by the most recent ``enhance`` call.
    """

    def __init__(
        self,
        relay: RelayChannel,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.relay = relay
        self.policy = policy or RetryPolicy()
        self.attempts = 0
        self._sleep = sleep

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.info(
            "Enhancement attempt %d/%d failed (%s); retrying in %.2fs",
            retry_state.attempt_number,
            self.policy.max_attempts,
            getattr(error, "error_code", type(error).__name__),
            delay,
        )

    async def _backoff(self, seconds: float, superseded: asyncio.Event) -> None:
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        waiter = asyncio.ensure_future(superseded.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()
        if superseded.is_set():
            logger.debug("Backoff cut short by a newer request")
            raise Superseded()

    async def enhance(
        self,
        text: str,
        *,
        is_current: Callable[[], bool] = _always_current,
        superseded: asyncio.Event | None = None,
    ) -> EnhancementResult:
        """Enhance ``text``.

        ``is_current`` is consulted before every retry; once it returns False
        the call stops with ``Superseded`` instead of spending more attempts.
        Setting ``superseded`` ends a pending backoff wait the same way. A
        relay call already under way is left to finish.

        Raises:
            Superseded: the caller no longer wants this result.
            TerminalFailure: the service rejected the request.
            ExhaustedRetries: every attempt failed transiently.
        """
        self.attempts = 0

        def before_sleep(retry_state: RetryCallState) -> None:
            if not is_current():
                raise Superseded()
            self._log_retry(retry_state)

        sleep = self._sleep
        if superseded is not None:
            sleep = partial(self._backoff, superseded=superseded)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_exponential(
                multiplier=self.policy.base_delay_ms / 1000,
                exp_base=self.policy.backoff_multiplier,
                min=0,
            ),
            retry=retry_if_exception_type(TransientFailure),
            before_sleep=before_sleep,
            sleep=sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if self.attempts and not is_current():
                        raise Superseded()
                    return await self._attempt(text)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            logger.warning("Enhancement failed after %d attempts", self.attempts)
            raise ExhaustedRetries(
                attempts=self.attempts,
                last_error=last if isinstance(last, EnhancementError) else None,
            ) from last
        raise AssertionError("unreachable")  # pragma: no cover

    async def _attempt(self, text: str) -> EnhancementResult:
        self.attempts += 1
        started = time.perf_counter()
        try:
            reply = await self.relay.send(EnhancePromptMessage(original_prompt=text))
        except (OSError, TimeoutError) as exc:
            raise TransientFailure(f"Relay failed: {type(exc).__name__}") from exc

        enhanced = classify_reply(reply)
        latency_ms = reply.latency_ms
        if latency_ms is None:
            latency_ms = int((time.perf_counter() - started) * 1000)
        usage = Usage()
        if reply.usage is not None:
            usage = Usage(
                input_units=reply.usage.input_tokens,
                output_units=reply.usage.output_tokens,
                total_units=reply.usage.total_tokens,
            )
        return EnhancementResult(
            source_text=text,
            enhanced_text=enhanced,
            usage=usage,
            latency_ms=latency_ms,
        )
