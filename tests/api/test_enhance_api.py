"""Tests for POST /enhance."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from core.config import get_settings
from core.exceptions import AppError
from schemas.enhance import TokenUsage
from services.enhancement import EnhancementOutcome, get_enhancement_service


@pytest.fixture
def fake_service(client: TestClient) -> AsyncMock:
    """Replace the provider-backed service with an AsyncMock."""
    service = AsyncMock()
    service.enhance_prompt.return_value = EnhancementOutcome(
        enhanced_prompt="Fix the bug in the following code and explain the cause.",
        usage=TokenUsage(input_tokens=12, output_tokens=20, total_tokens=32),
    )
    client.app.dependency_overrides[get_enhancement_service] = lambda: service
    return service


def post_prompt(client: TestClient, payload: object, **kwargs):
    return client.post("/enhance", json=payload, **kwargs)


class TestEnhanceSuccess:
    def test_returns_enhanced_prompt_with_usage(self, client, fake_service) -> None:
        response = post_prompt(client, {"originalPrompt": "fix my code"})

        assert response.status_code == 200
        data = response.json()
        assert data["enhancedPrompt"].startswith("Fix the bug")
        assert data["usage"] == {
            "inputTokens": 12,
            "outputTokens": 20,
            "totalTokens": 32,
        }
        assert isinstance(data["latencyMs"], int)
        assert data["latencyMs"] >= 0
        fake_service.enhance_prompt.assert_awaited_once_with("fix my code")

    def test_accepts_json_content_type_with_charset(self, client, fake_service) -> None:
        response = client.post(
            "/enhance",
            content=b'{"originalPrompt": "fix my code"}',
            headers={"Content-Type": "application/json; charset=utf-8"},
        )

        assert response.status_code == 200


class TestEnhanceValidation:
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"originalPrompt": ""},
            {"originalPrompt": "   "},
            {"originalPrompt": 123},
            {"originalPrompt": None},
            {"originalPrompt": "!!! ??? ..."},
        ],
    )
    def test_rejects_unusable_prompts(self, client, fake_service, payload) -> None:
        response = post_prompt(client, payload)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] is True
        assert "originalPrompt" in body["message"]
        fake_service.enhance_prompt.assert_not_awaited()

    def test_missing_prompt_message(self, client, fake_service) -> None:
        response = post_prompt(client, {})

        assert response.json()["message"] == "originalPrompt is required"

    def test_rejects_prompt_over_max_length(self, client, fake_service) -> None:
        limited = get_settings().model_copy(update={"MAX_PROMPT_LENGTH": 10})

        with patch("schemas.enhance.get_settings", return_value=limited):
            response = post_prompt(client, {"originalPrompt": "a" * 11})

        assert response.status_code == 400
        assert "at most 10 characters" in response.json()["message"]

    def test_rejects_invalid_json(self, client, fake_service) -> None:
        response = client.post(
            "/enhance",
            content=b'{"originalPrompt": ',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Request body must be valid JSON"

    def test_rejects_non_json_content_type(self, client, fake_service) -> None:
        response = client.post(
            "/enhance",
            content=b"originalPrompt=fix+my+code",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 415
        assert response.json() == {
            "error": True,
            "message": "Content-Type must be application/json",
        }
        fake_service.enhance_prompt.assert_not_awaited()


class TestEnhanceFailures:
    @pytest.mark.parametrize("status_code", [400, 401, 429, 502, 503, 504])
    def test_service_errors_keep_their_status(
        self, client, fake_service, status_code
    ) -> None:
        fake_service.enhance_prompt.side_effect = AppError(
            "provider trouble", status_code
        )

        response = post_prompt(client, {"originalPrompt": "fix my code"})

        assert response.status_code == status_code
        assert response.json() == {"error": True, "message": "provider trouble"}

    def test_unexpected_error_is_500(self, client, fake_service) -> None:
        fake_service.enhance_prompt.side_effect = RuntimeError("boom")

        response = post_prompt(client, {"originalPrompt": "fix my code"})

        assert response.status_code == 500
        assert response.json()["error"] is True


class TestEnhanceRateLimit:
    def test_returns_429_with_retry_after(self, client, fake_service) -> None:
        limit = get_settings().RATE_LIMIT_REQUESTS

        for _ in range(limit):
            response = post_prompt(client, {"originalPrompt": "fix my code"})
            assert response.status_code == 200

        response = post_prompt(client, {"originalPrompt": "fix my code"})

        assert response.status_code == 429
        assert response.json() == {
            "error": True,
            "message": "Too many requests. Please try again later.",
        }
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Limit"] == str(limit)
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_clients_are_limited_separately(self, client, fake_service) -> None:
        limit = get_settings().RATE_LIMIT_REQUESTS
        for _ in range(limit):
            post_prompt(client, {"originalPrompt": "fix my code"})

        response = post_prompt(
            client,
            {"originalPrompt": "fix my code"},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )

        assert response.status_code == 200
