"""
Custom exceptions for better error handling.
"""
from typing import Any, Optional


class NotetakerException(Exception):
    """Base exception for notetaker errors."""
    pass


class APIError(NotetakerException):
    """Base class for API errors."""
    def __init__(self, message: str, status_code: int = None, platform: str = None):
        self.status_code = status_code
        self.platform = platform
        super().__init__(message)


class RateLimitError(APIError):
    """API rate limit exceeded."""
    def __init__(self, message: str, retry_after: int = None, platform: str = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=429, platform=platform)


class NylasAPIError(APIError):
    """Nylas Notetaker API errors."""
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message, status_code=status_code, platform="nylas")


class NylasAuthError(NylasAPIError):
    """Nylas rejected the API key."""
    def __init__(self, message: str):
        super().__init__(message, status_code=401)


class NylasBadRequestError(NylasAPIError):
    """Nylas rejected the request body or parameters."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class NylasNotFoundError(NylasAPIError):
    """Requested Nylas resource does not exist."""
    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AIProcessingError(NotetakerException):
    """Failure inside an AI agent call, tagged with a machine-readable code."""
    def __init__(self, message: str, service: str, code: str = None, context: Optional[dict] = None):
        self.service = service
        self.code = code
        self.context = context or {}
        super().__init__(message)

    def to_log_dict(self) -> dict[str, Any]:
        return {"service": self.service, "code": self.code, "error": str(self), **self.context}


class ConfigurationError(NotetakerException):
    """Configuration or environment variable errors."""
    pass
