"""Schemas for prompt enhancement.

Covers both hops of a request: the message the in-page controller hands to
its relay (``EnhancePromptMessage`` / ``RelayReply``) and the HTTP contract
between the relay and the service (``EnhanceRequest`` / ``EnhanceResponse``).
Field names are camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from core.config import get_settings
from services.sanitize import validate_prompt


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenUsage(_WireModel):
    """Token accounting reported by the provider for one enhancement."""

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class EnhanceRequest(_WireModel):
    """Body of ``POST /enhance``."""

    original_prompt: StrictStr = Field(
        description="Raw prompt text as typed by the user",
    )

    @field_validator("original_prompt")
    @classmethod
    def _check_prompt(cls, value: str) -> str:
        validate_prompt(value, max_length=get_settings().MAX_PROMPT_LENGTH)
        return value


class EnhanceResponse(_WireModel):
    """Successful ``POST /enhance`` response."""

    enhanced_prompt: str
    usage: TokenUsage
    latency_ms: int = Field(ge=0)


class EnhancePromptMessage(_WireModel):
    """Message sent from the UI layer to the relay."""

    type: Literal["enhancePrompt"] = "enhancePrompt"
    original_prompt: str


class RelayReply(_WireModel):
    """What the relay resolves with.

    ``enhanced_prompt`` is None for any failure. When the failure came back
    from the service as an HTTP error, ``status`` carries its status code so
    the caller can tell terminal rejections from transient ones.
    """

    enhanced_prompt: str | None = None
    status: int | None = None
    usage: TokenUsage | None = None
    latency_ms: int | None = None
