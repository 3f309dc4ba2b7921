"""
Rate limiting configuration for the learning endpoint.
Supports both in-memory (development) and Redis (production) storage.
"""

import os
from typing import Optional


class RateLimitConfig:
    """Rate limiting configuration."""

    # Storage backend
    REDIS_URL: Optional[str] = os.getenv('REDIS_URL')
    USE_REDIS: bool = REDIS_URL is not None

    # Global defaults (applied by Flask-Limiter)
    DEFAULT_LIMITS = ["5000 per day", "1000 per hour"]

    # The learning endpoint is called server-to-server by the chat agent
    # after every decision, so it gets a generous per-minute budget.
    LEARNING_LIMIT = "120 per minute"

    @classmethod
    def get_storage_uri(cls) -> str:
        """
        Get storage URI for Flask-Limiter.

        Returns:
            Redis URL if configured, otherwise in-memory storage.
        """
        if cls.USE_REDIS:
            return cls.REDIS_URL
        else:
            return "memory://"

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production mode (using Redis)."""
        return cls.USE_REDIS
