"""Pick the pydantic-ai model that rewrites prompts.

Gemini is the default provider. ``LLM_PROVIDER=azure_openai`` switches to an
Azure OpenAI deployment when its endpoint, key and API version are all set,
and falls back to Gemini otherwise.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider

from core.config import Settings, get_settings
from core.exceptions import ProviderNotConfiguredError


if TYPE_CHECKING:
    from httpx import AsyncClient

logger = logging.getLogger(__name__)


def _normalize_azure_endpoint(endpoint: str) -> str:
    """Drop trailing slashes; Azure answers 404 for ``//openai/...`` paths."""
    return endpoint.rstrip("/")


def _azure_configured(settings: Settings) -> bool:
    return settings.LLM_PROVIDER == "azure_openai" and all(
        (
            settings.AZURE_OPENAI_ENDPOINT,
            settings.AZURE_OPENAI_API_KEY,
            settings.AZURE_OPENAI_API_VERSION,
        )
    )


def is_provider_configured() -> bool:
    """Return True when some provider has usable credentials."""
    settings = get_settings()
    return _azure_configured(settings) or bool(settings.GEMINI_API_KEY)


def get_text_model(http_client: AsyncClient | None = None) -> Model:
    """Get the text model used to rewrite prompts.

    Args:
        http_client: Optional HTTP client carrying the retry transport.

    Raises:
        ProviderNotConfiguredError: If neither provider has credentials.
    """
    settings = get_settings()

    if _azure_configured(settings):
        from openai import AsyncAzureOpenAI

        logger.info(f"Using Azure OpenAI text model: {settings.MODEL}")
        azure_client = AsyncAzureOpenAI(
            azure_endpoint=_normalize_azure_endpoint(
                settings.AZURE_OPENAI_ENDPOINT or ""
            ),
            api_key=settings.AZURE_OPENAI_API_KEY,
            api_version=settings.AZURE_OPENAI_API_VERSION,
            http_client=http_client,
        )
        return OpenAIChatModel(
            settings.MODEL, provider=OpenAIProvider(openai_client=azure_client)
        )

    if settings.LLM_PROVIDER == "azure_openai":
        logger.warning(
            "LLM_PROVIDER=azure_openai but credentials missing, falling back to Gemini"
        )

    if not settings.GEMINI_API_KEY:
        raise ProviderNotConfiguredError(
            "No valid LLM provider configured. Either set Azure OpenAI "
            "credentials (AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY) "
            "or Gemini credentials (GEMINI_API_KEY)."
        )

    logger.info(f"Using Gemini text model: {settings.MODEL}")
    provider = GoogleProvider(api_key=settings.GEMINI_API_KEY, http_client=http_client)
    return cast(Model, GoogleModel(settings.MODEL, provider=provider))
