"""Mail helper package."""

from .gmail import (
    GMAIL_SCOPES,
    GmailAuthError,
    GmailError,
    GmailNotConfigured,
    GmailOAuthConfig,
    GmailTokens,
    build_consent_url,
    exchange_code,
    oauth_config_from_settings,
    refresh_access_token,
    reply_subject,
    require_config,
    send_reply,
)

from .inbox import (
    RemoteMessage,
    extract_plain_body,
    fetch_recent_messages,
    parse_message,
)

__all__ = [
    # OAuth and sending
    "GMAIL_SCOPES",
    "GmailAuthError",
    "GmailError",
    "GmailNotConfigured",
    "GmailOAuthConfig",
    "GmailTokens",
    "build_consent_url",
    "exchange_code",
    "oauth_config_from_settings",
    "refresh_access_token",
    "reply_subject",
    "require_config",
    "send_reply",
    # Inbox reading
    "RemoteMessage",
    "extract_plain_body",
    "fetch_recent_messages",
    "parse_message",
]
