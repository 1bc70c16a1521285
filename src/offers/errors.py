"""Exception taxonomy for the personalization and generation pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base error; ``message`` is safe to show to end users."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ConfigurationError(PipelineError):
    """Unknown offer type or missing/inactive tenant configuration. Never retried."""


class ValidationError(PipelineError):
    """Input failed requirements, or output failed the offer's schema check."""

    def __init__(
        self,
        message: str,
        errors: Optional[list[str]] = None,
        available_offers: Optional[list[str]] = None,
        missing: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.errors = errors or []
        self.available_offers = available_offers
        self.missing = missing or []

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.errors:
            body["details"] = self.errors
        if self.missing:
            body["missing"] = self.missing
        if self.available_offers is not None:
            body["availableOffers"] = self.available_offers
        return body


class RetrievalError(PipelineError):
    """Vector or document store unreachable. Callers degrade instead of failing."""


class GenerationError(PipelineError):
    """LLM call failed, timed out or returned nothing usable."""


class RateLimitError(PipelineError):
    """Admission rejected; carries the window reset time."""

    def __init__(self, message: str, reset_at: float, retry_after: int, limit: int = 0):
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after = retry_after
        self.limit = limit

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "limit": self.limit,
            "remaining": 0,
            "resetAt": self.reset_at,
            "retryAfter": self.retry_after,
        }
