"""Shared dependencies for API routers.

Usage in routers:
    from api.dependencies import Services, get_current_user, get_services
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from aimate.api.auth import AuthError, resolve_user_id
from aimate.config import Settings, load_settings
from aimate.email.sync import MessageFetcher, gmail_fetcher
from aimate.llm import AIAssistant
from aimate.mailer import GmailOAuthConfig, oauth_config_from_settings, require_config
from aimate.speech import Transcriber
from aimate.users import User, get_user

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    os.getenv("AIMATE_ALLOWED_FRONTEND", "").strip(),
]


# =============================================================================
# Service Container
# =============================================================================

@dataclass
class Services:
    """External adapters, constructed once per process."""

    settings: Settings
    assistant: AIAssistant
    transcriber: Transcriber
    gmail: Optional[GmailOAuthConfig] = None
    fetch_messages: Optional[MessageFetcher] = None

    def require_gmail(self) -> GmailOAuthConfig:
        return require_config(self.gmail)

    def require_fetcher(self) -> MessageFetcher:
        if self.fetch_messages is None:
            return gmail_fetcher(self.require_gmail())
        return self.fetch_messages


def build_services(settings: Optional[Settings] = None) -> Services:
    """Build every adapter from configuration.

    Unconfigured adapters are still built; their calls raise a "not configured"
    error. With AIMATE_STRICT_CONFIG=1 ``load_settings`` refuses to start instead.
    """
    settings = settings or load_settings()
    gmail = oauth_config_from_settings(settings)

    missing = settings.missing_credentials()
    if missing:
        logger.warning(f"[Startup] Services not configured: {', '.join(missing)}")

    return Services(
        settings=settings,
        assistant=AIAssistant.from_settings(settings),
        transcriber=Transcriber.from_settings(settings),
        gmail=gmail,
        fetch_messages=gmail_fetcher(gmail) if gmail else None,
    )


@lru_cache
def get_services() -> Services:
    """Get the process-wide service container (cached)."""
    return build_services()


# =============================================================================
# Authentication
# =============================================================================

def get_current_user(
    authorization: str | None = Header(default=None, alias="Authorization"),
    dev_user: str | None = Header(default=None, alias="X-User-Id"),
    services: Services = Depends(get_services),
) -> str:
    """Return the authenticated user's id."""
    return resolve_user_id(authorization, dev_user, secret=services.settings.jwt_secret)


def get_current_account(user_id: str = Depends(get_current_user)) -> User:
    """Return the authenticated user's record; a deleted account is unauthorized."""
    user = get_user(user_id)
    if user is None:
        raise AuthError("Not authorized, user not found.")
    return user
