"""Prompt enhancement endpoint."""

from __future__ import annotations

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from core.exceptions import AppError
from core.ratelimit import check_rate_limit
from schemas.enhance import EnhanceRequest, EnhanceResponse
from services.enhancement import PromptEnhancementService, get_enhancement_service


router = APIRouter(tags=["enhance"])

logger = logging.getLogger(__name__)


async def require_json_content_type(request: Request) -> None:
    """Reject bodies that are not declared as JSON with a 415."""
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type != "application/json" and not media_type.endswith("+json"):
        raise AppError(
            "Content-Type must be application/json",
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        )


@router.post(
    "/enhance",
    response_model=EnhanceResponse,
    response_model_by_alias=True,
    dependencies=[Depends(check_rate_limit), Depends(require_json_content_type)],
)
async def enhance_prompt(
    payload: EnhanceRequest,
    service: Annotated[PromptEnhancementService, Depends(get_enhancement_service)],
) -> EnhanceResponse:
    """Rewrite ``originalPrompt`` into a clearer, more effective prompt.

    Only prompt lengths are logged; the prompt text itself never is.
    """
    started = time.perf_counter()
    logger.info(
        "Enhancement requested (prompt_length=%d)", len(payload.original_prompt)
    )

    outcome = await service.enhance_prompt(payload.original_prompt)

    latency_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        "Enhancement completed (latency_ms=%d, enhanced_length=%d, total_tokens=%d)",
        latency_ms,
        len(outcome.enhanced_prompt),
        outcome.usage.total_tokens,
    )
    return EnhanceResponse(
        enhanced_prompt=outcome.enhanced_prompt,
        usage=outcome.usage,
        latency_ms=latency_ms,
    )
