"""Python API client package."""

from .api_client import AimateClient, ApiError
from .cache import ResponseCache, cache_key

__all__ = ["AimateClient", "ApiError", "ResponseCache", "cache_key"]
