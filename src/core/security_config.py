"""Security configuration constants for the enhancement service.

This module centralizes security-related configuration including:
- Sensitive keys that should be sanitized from logs
- Prompt content keys that must never reach the logs verbatim
- Generic error messages used in production responses
"""

# Keys matched as substrings (case-insensitive) and redacted from structured logs
SENSITIVE_KEYS: set[str] = {
    # Authentication & Authorization
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "apikey",
    "jwt",
    "session_id",
    "bearer",
    "cookie",
    "x-api-key",
    # Personal Identifiable Information
    "email",
    "phone",
}

# Keys matched exactly (case-insensitive). These carry user prompt text; the
# lengths are useful in logs, the content is not.
SENSITIVE_CONTENT_KEYS: set[str] = {
    "prompt",
    "text",
    "originalprompt",
    "original_prompt",
    "enhancedprompt",
    "enhanced_prompt",
    "source_text",
    "enhanced_text",
}

# Messages used for error responses in production, keyed by status code.
# Outside production the underlying error detail is returned instead.
GENERIC_ERROR_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    404: "Not found",
    413: "Request body too large",
    415: "Content-Type must be application/json",
    429: "Too many requests. Please try again later.",
    500: "Internal server error",
    502: "Upstream service returned an invalid response",
    503: "Upstream service is temporarily unavailable",
    504: "Upstream service timed out",
}


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted.

    Args:
        key: The key name to check

    Returns:
        True if the key should be redacted, False otherwise
    """
    key_lower = key.lower()
    if key_lower in SENSITIVE_CONTENT_KEYS:
        return True
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def generic_error_message(status_code: int) -> str:
    """Return the production-safe message for an HTTP status code."""
    if status_code in GENERIC_ERROR_MESSAGES:
        return GENERIC_ERROR_MESSAGES[status_code]
    if status_code >= 500:
        return GENERIC_ERROR_MESSAGES[500]
    return "Request could not be processed"
