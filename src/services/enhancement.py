"""Prompt enhancement service backed by a pydantic-ai agent.

Sanitizes the incoming prompt, asks the configured provider for a rewritten
version, strips markdown from the reply, and reports token usage. Provider
failures are translated into ``AppError`` instances whose status codes the
in-page controller uses to decide whether a retry is worthwhile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from httpx import (
    AsyncClient,
    ConnectError,
    HTTPStatusError,
    TimeoutException,
    TransportError,
)
from openai import APIConnectionError, APITimeoutError
from pydantic_ai import Agent, ModelRetry
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior
from pydantic_ai.models import Model
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import Settings, get_settings
from core.exceptions import AppError
from schemas.enhance import TokenUsage
from services.ai.model_factory import get_text_model
from services.sanitize import markdown_to_plain_text, sanitize_input


logger = logging.getLogger(__name__)

# Statuses the provider transport retries on its own before giving up
RETRYABLE_PROVIDER_STATUSES = (429, 500, 502, 503, 504)

# Output validation retries (empty reply after markdown stripping)
_OUTPUT_RETRIES = 2

ENHANCEMENT_SYSTEM_PROMPT = """You are a world-class prompt engineer. Take the
user's raw prompt and produce one final, enhanced prompt that is clearer, better
structured and more effective for a language model to execute.

Rules:
1. Output only the enhanced prompt as plain text. No explanations, commentary,
   headings, JSON wrappers or code fences. Do not use Markdown syntax.
2. Preserve the user's intent exactly. Do not add goals, features or scope.
3. Improve clarity, specificity and constraints. Add a role ("You are an
   expert ...") when it helps, and state the expected output format, length
   and style.
4. If essential information is missing, make the least intrusive explicit
   assumption as a short parenthetical note, or instruct the model to ask for
   it, whichever keeps the intent intact.
5. If the request is unsafe, rewrite it into a safe version that keeps any
   legitimate intent.
6. Keep the user's language. Be as short as possible while complete.
"""


@dataclass(frozen=True)
class EnhancementOutcome:
    """Result of a single enhancement call."""

    enhanced_prompt: str
    usage: TokenUsage


def _create_resilient_http_client(settings: Settings) -> AsyncClient:
    """Create an HTTP client with exponential backoff retries for transient errors.

    Handles provider overload (503), rate limits (429), gateway errors, timeouts
    and refused connections. Waits start at RETRY_DELAY_MS and double on each
    attempt; a Retry-After header from the provider takes precedence.
    """

    def should_retry_status(response: Any) -> None:
        """Raise exceptions for retryable HTTP status codes."""
        if response.status_code in RETRYABLE_PROVIDER_STATUSES:
            response.raise_for_status()

    transport = AsyncTenacityTransport(
        config=RetryConfig(
            retry=retry_if_exception_type(
                (HTTPStatusError, TimeoutException, ConnectError)
            ),
            wait=wait_retry_after(
                fallback_strategy=wait_exponential(
                    multiplier=settings.RETRY_DELAY_MS / 1000, min=0, max=30
                ),
                max_wait=60,
            ),
            stop=stop_after_attempt(settings.MAX_RETRIES),
            reraise=True,
        ),
        validate_response=should_retry_status,
    )
    return AsyncClient(transport=transport, timeout=settings.REQUEST_TIMEOUT_MS / 1000)


def _error_for_status(status_code: int) -> AppError:
    """Translate a provider HTTP status into the status we report upstream."""
    if status_code == 400:
        return AppError("Invalid request to the enhancement provider", 400)
    if status_code in (401, 403):
        return AppError("Invalid or missing enhancement provider API key", 401)
    if status_code == 429:
        return AppError(
            "Enhancement provider rate limit exceeded. Please try again later.", 429
        )
    if status_code >= 500:
        return AppError("Enhancement provider is temporarily unavailable", 503)
    return AppError(f"Enhancement provider error (status {status_code})", 502)


class PromptEnhancementService:
    """Rewrites prompts through the configured LLM provider.

    The agent is built lazily so importing this module (and constructing the
    service for dependency injection) never requires provider credentials.
    """

    def __init__(self, model: Model | None = None, settings: Settings | None = None):
        self._settings = settings or get_settings()
        self._model = model
        self._agent: Agent[None, str] | None = None

    @property
    def model_name(self) -> str:
        return self._settings.MODEL

    def _get_agent(self) -> Agent[None, str]:
        """Get or create the enhancement agent (lazy initialization)."""
        if self._agent is None:
            model = self._model or get_text_model(
                http_client=_create_resilient_http_client(self._settings)
            )
            agent: Agent[None, str] = Agent(
                model,
                output_type=str,
                instructions=ENHANCEMENT_SYSTEM_PROMPT,
                name="prompt_enhancer",
                retries=_OUTPUT_RETRIES,
            )

            @agent.output_validator
            def strip_markdown(output: str) -> str:
                """Return plain text; ask again when nothing is left."""
                cleaned = markdown_to_plain_text(output)
                if not cleaned:
                    raise ModelRetry(
                        "The enhanced prompt was empty. Reply with the enhanced "
                        "prompt text only."
                    )
                return cleaned

            self._agent = agent
        return self._agent

    async def enhance_prompt(self, original_prompt: str) -> EnhancementOutcome:
        """Enhance ``original_prompt`` and return the plain-text rewrite.

        Raises:
            AppError: With a 4xx status for unusable input or provider
                rejections, 5xx for provider outages and invalid replies.
        """
        sanitized = sanitize_input(original_prompt)
        if not sanitized:
            raise AppError("Invalid or empty prompt after sanitization", 400)

        logger.info(
            "Enhancing prompt (original_length=%d, sanitized_length=%d)",
            len(original_prompt),
            len(sanitized),
        )

        agent = self._get_agent()
        try:
            result = await agent.run(f"User prompt to enhance:\n{sanitized}")
        except ModelHTTPError as exc:
            logger.error("Provider returned HTTP %s", exc.status_code)
            raise _error_for_status(exc.status_code) from exc
        except HTTPStatusError as exc:
            logger.error("Provider returned HTTP %s", exc.response.status_code)
            raise _error_for_status(exc.response.status_code) from exc
        except (TimeoutException, APITimeoutError) as exc:
            logger.error("Provider request timed out")
            raise AppError(
                "Request to the enhancement provider timed out", 504
            ) from exc
        except (TransportError, APIConnectionError) as exc:
            logger.error("No response from provider: %s", type(exc).__name__)
            raise AppError(
                "No response from the enhancement provider. "
                "Please check the connection.",
                503,
            ) from exc
        except UnexpectedModelBehavior as exc:
            logger.error("Invalid response from provider: %s", exc.message)
            raise AppError(
                "Invalid response from the enhancement provider", 502
            ) from exc
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Unexpected provider failure")
            raise AppError(
                "Failed to communicate with the enhancement provider", 500
            ) from exc

        run_usage = result.usage()
        usage = TokenUsage(
            input_tokens=run_usage.input_tokens or 0,
            output_tokens=run_usage.output_tokens or 0,
            total_tokens=run_usage.total_tokens or 0,
        )
        logger.info("Provider call successful (total_tokens=%d)", usage.total_tokens)
        return EnhancementOutcome(enhanced_prompt=result.output, usage=usage)


@lru_cache
def get_enhancement_service() -> PromptEnhancementService:
    """FastAPI dependency returning the process-wide enhancement service."""
    return PromptEnhancementService()
