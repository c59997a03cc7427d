class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class AppError(DomainError):
    """Operational error carrying the HTTP status it should be reported with."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProviderNotConfiguredError(AppError):
    """Raised when no LLM provider credentials are available."""

    def __init__(self, message: str = "Enhancement provider is not configured") -> None:
        super().__init__(message, status_code=503)
