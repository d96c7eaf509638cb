"""Custom exception hierarchy."""

from typing import Any


class AppError(Exception):
    """Base application exception."""

    status_code: int = 500

    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class AdmissionError(AppError):
    """Request rejected before any upstream call."""

    status_code = 400


class RateLimitedError(AdmissionError):
    """Client exceeded a rate-limit window."""

    status_code = 429

    def __init__(self, reason: str, retry_after_ms: int, endpoint: str):
        self.reason = reason
        self.retry_after_ms = retry_after_ms
        self.endpoint = endpoint
        super().__init__(f"Rate limit exceeded ({reason})", code="RATE_LIMITED")

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds for the Retry-After header, never zero."""
        return max(1, -(-self.retry_after_ms // 1000))

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error"]["reason"] = self.reason
        result["error"]["retry_after_ms"] = self.retry_after_ms
        return result


class ContentBlockedError(AdmissionError):
    """User input rejected by the content filter."""

    def __init__(self, reason: str, category: str):
        self.category = category
        super().__init__(reason, code="CONTENT_BLOCKED")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error"]["category"] = self.category
        return result


class UpstreamError(AppError):
    """Completion/retrieval service communication error."""

    status_code = 502

    def __init__(self, message: str, provider: str):
        self.provider = provider
        super().__init__(message, code="UPSTREAM_ERROR")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["error"]["details"] = {"provider": self.provider}
        return result


class ConfigurationError(AppError):
    """Configuration error."""

    def __init__(self, message: str):
        super().__init__(message, code="CONFIG_ERROR")
