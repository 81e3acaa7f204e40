"""
Rate limiting configuration for API calls.
"""
from aiolimiter import AsyncLimiter

from notetaker.config import settings


class RateLimiters:
    """Centralized rate limiters for different APIs."""

    def __init__(self, nylas_per_minute: int = None, openai_per_minute: int = None):
        """Initialize rate limiters for different services."""
        # Nylas: notetaker management plus artifact downloads share one budget
        self.nylas_limiter = AsyncLimiter(
            max_rate=nylas_per_minute or settings.nylas_rate_limit, time_period=60
        )

        # OpenAI: adjust based on your tier
        self.openai_limiter = AsyncLimiter(
            max_rate=openai_per_minute or settings.openai_rate_limit, time_period=60
        )


# Global rate limiters instance
rate_limiters = RateLimiters()
