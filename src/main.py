import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.api import api_router
from core.config import get_settings
from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.middleware import (
    BodySizeLimitMiddleware,
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
)
from core.ratelimit import check_global_rate_limit
from schemas.api import ServiceInfo
from services.ai import is_provider_configured


setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

# Browser extensions always qualify; local tooling only while developing
EXTENSION_ORIGIN_REGEX = r"chrome-extension://[A-Za-z0-9_-]+"
LOCALHOST_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"


def build_origin_regex(environment: str) -> str:
    """Return the CORS origin pattern for ``environment``."""
    if environment == "development":
        return f"({EXTENSION_ORIGIN_REGEX})|({LOCALHOST_ORIGIN_REGEX})"
    return EXTENSION_ORIGIN_REGEX


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "%s v%s starting (environment=%s, model=%s)",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.ENVIRONMENT,
        settings.MODEL,
    )
    if not is_provider_configured():
        logger.warning(
            "No LLM provider credentials configured; POST /enhance will answer 503"
        )
    yield
    logger.info("%s shutting down", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Rewrites user prompts into clearer, more effective ones",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    dependencies=[Depends(check_global_rate_limit)],
)

# Middleware runs in reverse order of registration: CORS is outermost so even
# error responses carry the CORS headers.
app.add_middleware(ExceptionNormalizationMiddleware)
app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.MAX_BODY_SIZE)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_origin_regex=build_origin_regex(settings.ENVIRONMENT),
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=86400,
)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)

app.include_router(api_router)


@app.get("/", response_model=ServiceInfo)
def read_root() -> ServiceInfo:
    return ServiceInfo(
        name=settings.APP_NAME,
        version=settings.APP_VERSION,
        status="running",
        endpoints={"enhance": "POST /enhance", "health": "GET /health"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.PORT)
