"""Auth Router - registration, login and Gmail connection."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from aimate.api.auth import AuthError, issue_token
from aimate.email import delete_all_emails
from aimate.mailer import build_consent_url, exchange_code
from aimate.store.validation import ValidationError
from aimate.users import (
    User,
    authenticate,
    clear_gmail_connection,
    register_user,
    set_gmail_tokens,
)
from api.dependencies import Services, get_current_account, get_services
from api.models import GmailCallbackRequest, LoginRequest, RegisterRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def _session(user: User, services: Services) -> dict:
    token = issue_token(
        user.id,
        services.settings.jwt_secret,
        expire_days=services.settings.jwt_expire_days,
    )
    return {"success": True, "token": token, "user": user.to_api_dict()}


@router.post("/register", status_code=201)
def register(
    request: RegisterRequest,
    services: Services = Depends(get_services),
) -> dict:
    if not (request.name and request.email and request.password):
        raise ValidationError("Please provide name, email, and password")
    user = register_user(request.name, request.email, request.password)
    logger.info(f"[Auth] Registered user {user.id}")
    return _session(user, services)


@router.post("/login")
def login(
    request: LoginRequest,
    services: Services = Depends(get_services),
) -> dict:
    if not (request.email and request.password):
        raise ValidationError("Please provide email and password")
    user = authenticate(request.email, request.password)
    if user is None:
        raise AuthError("Invalid credentials")
    return _session(user, services)


@router.get("/me")
def me(user: User = Depends(get_current_account)) -> dict:
    return {"success": True, "user": user.to_api_dict()}


# =============================================================================
# Gmail Connection
# =============================================================================

@router.get("/gmail/url")
def gmail_auth_url(
    user: User = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> dict:
    return {"success": True, "authUrl": build_consent_url(services.require_gmail())}


@router.post("/gmail/callback")
def gmail_callback(
    request: GmailCallbackRequest,
    user: User = Depends(get_current_account),
    services: Services = Depends(get_services),
) -> dict:
    if not request.code:
        raise ValidationError("Authorization code is required")

    tokens = exchange_code(services.require_gmail(), request.code)
    if not tokens.refresh_token and not user.gmail_refresh_token:
        raise HTTPException(
            status_code=400,
            detail="Google did not return a refresh token. Remove app access and reconnect.",
        )

    set_gmail_tokens(user, access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    logger.info(f"[Auth] Gmail connected for user {user.id}")
    return {"success": True, "message": "Gmail connected successfully"}


@router.post("/gmail/disconnect")
def gmail_disconnect(user: User = Depends(get_current_account)) -> dict:
    clear_gmail_connection(user)
    deleted = delete_all_emails(user.id)
    logger.info(f"[Auth] Gmail disconnected for user {user.id} ({deleted} emails removed)")
    return {"success": True, "message": "Gmail disconnected successfully"}
