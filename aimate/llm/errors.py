"""Errors raised by the AI adapter."""
from __future__ import annotations


class AdapterError(RuntimeError):
    """Base error for AI adapter failures."""


class AdapterUnavailable(AdapterError):
    """Raised when the AI provider is not configured or rejects the API key."""


class AdapterMalformedResponse(AdapterError):
    """Raised when a completion cannot be decoded into the expected structure."""


class AdapterFailure(AdapterError):
    """Raised when the provider call fails (network, timeout, rate limit, 5xx)."""
