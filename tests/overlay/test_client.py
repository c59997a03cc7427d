"""Tests for reply classification and the bounded retry loop."""

from __future__ import annotations

import asyncio

import pytest

from overlay.client import RetryingClient, classify_reply
from overlay.exceptions import (
    ExhaustedRetries,
    Superseded,
    TerminalFailure,
    TransientFailure,
)
from overlay.models import RetryPolicy, Usage
from schemas.enhance import RelayReply


class TestClassifyReply:
    def test_returns_enhanced_text(self) -> None:
        assert classify_reply(RelayReply(enhanced_prompt="Better")) == "Better"

    @pytest.mark.parametrize("status", [None, 200, 408, 429, 500, 503, 504])
    def test_transient(self, status) -> None:
        with pytest.raises(TransientFailure):
            classify_reply(RelayReply(status=status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 413, 415])
    def test_terminal(self, status) -> None:
        with pytest.raises(TerminalFailure) as exc_info:
            classify_reply(RelayReply(status=status))

        assert exc_info.value.status == status

    def test_blank_text_is_not_a_result(self) -> None:
        with pytest.raises(TransientFailure):
            classify_reply(RelayReply(enhanced_prompt="   ", status=200))


class TestRetryPolicy:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay_ms": -1},
            {"backoff_multiplier": 0.5},
        ],
    )
    def test_rejects_nonsense(self, kwargs) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


@pytest.mark.asyncio
class TestRetryingClient:
    async def test_success_maps_usage_and_latency(self, make_relay, reply, sleep):
        client = RetryingClient(make_relay(reply("Fix the bug.")), sleep=sleep)

        result = await client.enhance("fix my code")

        assert result.source_text == "fix my code"
        assert result.enhanced_text == "Fix the bug."
        assert result.usage == Usage(input_units=5, output_units=7, total_units=12)
        assert result.latency_ms == 42
        assert client.attempts == 1
        assert sleep.delays == []

    async def test_measures_latency_when_reply_has_none(self, make_relay, sleep):
        relay = make_relay(RelayReply(enhanced_prompt="Better", status=200))
        client = RetryingClient(relay, sleep=sleep)

        result = await client.enhance("fix my code")

        assert result.latency_ms >= 0
        assert result.usage == Usage()

    async def test_gives_up_after_max_attempts(self, make_relay, sleep) -> None:
        relay = make_relay(*(RelayReply(status=503) for _ in range(5)))
        client = RetryingClient(relay, RetryPolicy(max_attempts=3), sleep=sleep)

        with pytest.raises(ExhaustedRetries) as exc_info:
            await client.enhance("fix my code")

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, TransientFailure)
        assert exc_info.value.last_error.status == 503
        assert len(relay.sent) == 3
        assert sleep.delays == [0.5, 1.0]

    async def test_recovers_on_third_attempt(self, make_relay, reply, sleep):
        relay = make_relay(
            RelayReply(status=503), RelayReply(status=429), reply("Fix the bug.")
        )
        client = RetryingClient(relay, sleep=sleep)

        result = await client.enhance("fix my code")

        assert result.enhanced_text == "Fix the bug."
        assert client.attempts == 3

    async def test_custom_backoff(self, make_relay, sleep) -> None:
        relay = make_relay(*(RelayReply() for _ in range(4)))
        policy = RetryPolicy(max_attempts=4, base_delay_ms=100, backoff_multiplier=3)
        client = RetryingClient(relay, policy, sleep=sleep)

        with pytest.raises(ExhaustedRetries):
            await client.enhance("fix my code")

        assert sleep.delays == pytest.approx([0.1, 0.3, 0.9])

    async def test_terminal_failure_is_not_retried(self, make_relay, sleep) -> None:
        relay = make_relay(RelayReply(status=400), RelayReply(status=400))
        client = RetryingClient(relay, sleep=sleep)

        with pytest.raises(TerminalFailure):
            await client.enhance("fix my code")

        assert client.attempts == 1
        assert sleep.delays == []

    async def test_relay_exceptions_are_transient(self, make_relay, reply, sleep):
        relay = make_relay(ConnectionResetError(), TimeoutError(), reply("Better"))
        client = RetryingClient(relay, sleep=sleep)

        result = await client.enhance("fix my code")

        assert result.enhanced_text == "Better"
        assert client.attempts == 3

    async def test_stops_when_no_longer_current(self, make_relay, sleep) -> None:
        relay = make_relay(RelayReply(status=503), RelayReply(status=503))
        client = RetryingClient(relay, sleep=sleep)

        with pytest.raises(Superseded):
            await client.enhance("fix my code", is_current=lambda: False)

        assert client.attempts == 1
        assert sleep.delays == []

    async def test_single_attempt_policy(self, make_relay, sleep) -> None:
        relay = make_relay(RelayReply(status=502))
        client = RetryingClient(relay, RetryPolicy(max_attempts=1), sleep=sleep)

        with pytest.raises(ExhaustedRetries) as exc_info:
            await client.enhance("fix my code")

        assert exc_info.value.attempts == 1

    async def test_superseded_event_ends_backoff_wait(self, make_relay) -> None:
        relay = make_relay(RelayReply(status=503), RelayReply(status=503))
        client = RetryingClient(relay, RetryPolicy(base_delay_ms=60_000))
        superseded = asyncio.Event()
        task = asyncio.create_task(
            client.enhance("fix my code", superseded=superseded)
        )
        await asyncio.sleep(0.01)
        assert client.attempts == 1

        superseded.set()

        with pytest.raises(Superseded):
            await asyncio.wait_for(task, timeout=1)
        assert relay.sent == ["fix my code"]

    async def test_unset_event_leaves_backoff_alone(self, make_relay, reply, sleep):
        relay = make_relay(RelayReply(status=503), reply("Better"))
        client = RetryingClient(relay, sleep=sleep)

        result = await client.enhance("fix my code", superseded=asyncio.Event())

        assert result.enhanced_text == "Better"
        assert sleep.delays == [0.5]
