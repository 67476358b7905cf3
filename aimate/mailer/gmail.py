"""Gmail OAuth and sending helpers.

One OAuth client (client id/secret/redirect URI) serves every user; each user
brings their own refresh token obtained through the consent flow.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass
import http.client
import json
import logging
from typing import Any, Dict, Optional
from urllib import error as urlerror
from urllib import parse as urlparse
from urllib import request as urlrequest
from email.message import EmailMessage

from ..config import Settings

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
]


class GmailError(RuntimeError):
    """Raised when a Gmail API call fails."""


class GmailAuthError(GmailError):
    """Raised when Google rejects the stored credentials."""


class GmailNotConfigured(GmailError):
    """Raised when the OAuth client id/secret/redirect URI are missing."""


@dataclass(slots=True)
class GmailOAuthConfig:
    """Gmail OAuth client configuration."""

    client_id: str
    client_secret: str
    redirect_uri: str
    timeout: float = 30.0


@dataclass(slots=True)
class GmailTokens:
    """A user's Gmail credential pair."""

    refresh_token: str
    access_token: Optional[str] = None


def oauth_config_from_settings(settings: Settings) -> Optional[GmailOAuthConfig]:
    """Build the OAuth config, or None when Gmail is not configured."""
    if not settings.gmail_configured:
        return None
    return GmailOAuthConfig(
        client_id=settings.gmail_client_id,
        client_secret=settings.gmail_client_secret,
        redirect_uri=settings.gmail_redirect_uri,
        timeout=settings.http_timeout,
    )


def require_config(config: Optional[GmailOAuthConfig]) -> GmailOAuthConfig:
    if config is None:
        raise GmailNotConfigured(
            "Gmail integration is not configured. Set GMAIL_CLIENT_ID, "
            "GMAIL_CLIENT_SECRET and GMAIL_REDIRECT_URI."
        )
    return config


# =============================================================================
# OAuth
# =============================================================================

def build_consent_url(config: GmailOAuthConfig, *, state: Optional[str] = None) -> str:
    """Return the Google consent URL requesting offline Gmail access."""
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(GMAIL_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    }
    if state:
        params["state"] = state
    return f"{AUTH_URL}?{urlparse.urlencode(params)}"


def exchange_code(config: GmailOAuthConfig, code: str) -> GmailTokens:
    """Exchange an authorization code for tokens."""
    data = _post_form(
        config,
        {
            "code": code,
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "redirect_uri": config.redirect_uri,
            "grant_type": "authorization_code",
        },
        action="token exchange",
    )
    access_token = data.get("access_token")
    if not access_token:
        raise GmailError("Gmail token response missing access_token.")
    return GmailTokens(
        refresh_token=data.get("refresh_token") or "",
        access_token=str(access_token),
    )


def refresh_access_token(config: GmailOAuthConfig, refresh_token: str) -> str:
    """Mint a fresh access token from a refresh token."""
    data = _post_form(
        config,
        {
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        action="token refresh",
    )
    token = data.get("access_token")
    if not token:
        raise GmailError("Gmail token response missing access_token.")
    return str(token)


# =============================================================================
# Sending
# =============================================================================

def reply_subject(subject: str) -> str:
    subject = subject or ""
    return subject if subject.lower().startswith("re:") else f"Re: {subject}"


def send_reply(
    config: GmailOAuthConfig,
    tokens: GmailTokens,
    *,
    to_address: str,
    subject: str,
    body: str,
    thread_id: Optional[str] = None,
    from_address: Optional[str] = None,
    in_reply_to: Optional[str] = None,
    references: Optional[str] = None,
) -> str:
    """Send a reply through the Gmail API and return the new message ID.

    Args:
        in_reply_to: Message-ID header of the email being replied to.
        references: References header of that email; the reply appends
            ``in_reply_to`` to it so Gmail keeps the conversation threaded.
    """

    if not to_address:
        raise GmailError("No recipient email available for Gmail send.")

    access_token = refresh_access_token(config, tokens.refresh_token)
    raw_message = _build_raw_message(
        from_address=from_address,
        to_address=to_address,
        subject=reply_subject(subject),
        body=body,
        in_reply_to=in_reply_to,
        references=" ".join(part for part in (references, in_reply_to) if part) or None,
    )

    payload_data: Dict[str, Any] = {"raw": raw_message}
    if thread_id:
        payload_data["threadId"] = thread_id

    req = urlrequest.Request(
        SEND_URL,
        data=json.dumps(payload_data).encode("utf-8"),
        headers={
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        },
        method="POST",
    )
    response = open_json(req, config.timeout, action="send")
    return response.get("id", "")


def _build_raw_message(
    *,
    from_address: Optional[str],
    to_address: str,
    subject: str,
    body: str,
    in_reply_to: Optional[str] = None,
    references: Optional[str] = None,
) -> str:
    message = EmailMessage()
    message["To"] = to_address
    if from_address:
        message["From"] = from_address
    message["Subject"] = subject
    if in_reply_to:
        message["In-Reply-To"] = in_reply_to
    if references:
        message["References"] = references
    message.set_content(body)
    return base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")


# =============================================================================
# HTTP Helpers
# =============================================================================

def _post_form(config: GmailOAuthConfig, fields: Dict[str, str], *, action: str) -> Dict[str, Any]:
    req = urlrequest.Request(
        TOKEN_URL,
        data=urlparse.urlencode(fields).encode("utf-8"),
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    return open_json(req, config.timeout, action=action)


def open_json(req: urlrequest.Request, timeout: float, *, action: str) -> Dict[str, Any]:
    """Execute a request and decode its JSON body, translating failures to GmailError."""
    try:
        with urlrequest.urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode("utf-8"))
    except urlerror.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore")
        if exc.code in (400, 401, 403) and ("invalid_grant" in detail or exc.code != 400):
            raise GmailAuthError(
                "Gmail authentication failed. Please reconnect your Gmail account."
            ) from exc
        if exc.code == 429:
            raise GmailError("Gmail rate limit reached. Try again shortly.") from exc
        raise GmailError(f"Gmail {action} failed ({exc.code}): {detail[:300]}") from exc
    except (urlerror.URLError, http.client.HTTPException, OSError) as exc:
        # Dropped connections surface from getresponse/read without a URLError wrapper.
        raise GmailError(f"Gmail network error during {action}: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise GmailError(f"Gmail {action} returned invalid JSON") from exc
