"""Tests for the prompt enhancement service."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest
from pydantic_ai import models
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from core.config import Settings
from core.exceptions import AppError
from services.enhancement import (
    PromptEnhancementService,
    _error_for_status,
    get_enhancement_service,
)


# Block any real model requests in tests
models.ALLOW_MODEL_REQUESTS = False


def reply_with(text: str) -> FunctionModel:
    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return ModelResponse(parts=[TextPart(text)])

    return FunctionModel(respond)


def failing_with(exc: Exception) -> FunctionModel:
    def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise exc

    return FunctionModel(respond)


def make_service(model) -> PromptEnhancementService:
    return PromptEnhancementService(model=model, settings=Settings())


@pytest.mark.asyncio
class TestEnhancePrompt:
    async def test_returns_enhanced_text_and_usage(self) -> None:
        service = make_service(TestModel(custom_output_text="Fix the bug in my code."))

        outcome = await service.enhance_prompt("fix my code")

        assert outcome.enhanced_prompt == "Fix the bug in my code."
        assert outcome.usage.total_tokens == (
            outcome.usage.input_tokens + outcome.usage.output_tokens
        )
        assert outcome.usage.total_tokens > 0

    async def test_strips_markdown_from_reply(self) -> None:
        service = make_service(reply_with("## Task\n**Fix** the `parser` bug."))

        outcome = await service.enhance_prompt("fix parser")

        assert outcome.enhanced_prompt == "Task\nFix the parser bug."

    async def test_sends_sanitized_prompt(self) -> None:
        seen: list[str] = []

        def respond(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
            seen.append(str(messages[-1].parts[-1].content))
            return ModelResponse(parts=[TextPart("Clean prompt")])

        service = make_service(FunctionModel(respond))

        await service.enhance_prompt("<b>fix</b>\n\n my   code")

        assert seen == ["User prompt to enhance:\nfix my code"]

    async def test_empty_after_sanitization_is_400(self) -> None:
        service = make_service(reply_with("unused"))

        with pytest.raises(AppError) as exc_info:
            await service.enhance_prompt("<script>alert(1)</script>")

        assert exc_info.value.status_code == 400

    async def test_reply_that_is_only_markup_is_502(self) -> None:
        service = make_service(reply_with("```\n```"))

        with pytest.raises(AppError) as exc_info:
            await service.enhance_prompt("fix my code")

        assert exc_info.value.status_code == 502

    @pytest.mark.parametrize(
        ("provider_status", "expected"),
        [(400, 400), (401, 401), (403, 401), (429, 429), (503, 503), (404, 502)],
    )
    async def test_provider_status_mapping(self, provider_status, expected) -> None:
        service = make_service(
            failing_with(ModelHTTPError(status_code=provider_status, model_name="t"))
        )

        with pytest.raises(AppError) as exc_info:
            await service.enhance_prompt("fix my code")

        assert exc_info.value.status_code == expected

    async def test_timeout_is_504(self) -> None:
        service = make_service(failing_with(httpx.ReadTimeout("slow")))

        with pytest.raises(AppError) as exc_info:
            await service.enhance_prompt("fix my code")

        assert exc_info.value.status_code == 504

    async def test_connection_failure_is_503(self) -> None:
        service = make_service(failing_with(httpx.ConnectError("refused")))

        with pytest.raises(AppError) as exc_info:
            await service.enhance_prompt("fix my code")

        assert exc_info.value.status_code == 503

    async def test_unexpected_failure_is_500(self) -> None:
        service = make_service(failing_with(KeyError("boom")))

        with pytest.raises(AppError) as exc_info:
            await service.enhance_prompt("fix my code")

        assert exc_info.value.status_code == 500


class TestAgentConstruction:
    @patch("services.enhancement.get_text_model")
    def test_agent_is_built_once_from_factory(self, mock_get_model: MagicMock):
        mock_get_model.return_value = TestModel()
        service = PromptEnhancementService(settings=Settings())

        first = service._get_agent()
        second = service._get_agent()

        assert first is second
        mock_get_model.assert_called_once()
        assert "http_client" in mock_get_model.call_args.kwargs

    def test_construction_needs_no_credentials(self) -> None:
        get_enhancement_service.cache_clear()

        service = get_enhancement_service()

        assert service is get_enhancement_service()
        assert service.model_name == Settings().MODEL
        get_enhancement_service.cache_clear()


def test_error_for_status_defaults_to_bad_gateway() -> None:
    assert _error_for_status(418).status_code == 502
