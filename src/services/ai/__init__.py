"""Init file for AI services."""

from .model_factory import get_text_model, is_provider_configured


__all__ = [
    "get_text_model",
    "is_provider_configured",
]
