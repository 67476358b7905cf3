"""Gmail inbox reading.

Fetches the newest messages of the connected account with their plain-text
bodies. A failure on any single message aborts the whole fetch: a partially
fetched list would make the caller prune messages that still exist.
"""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
import logging
from typing import List, Optional
from urllib import parse as urlparse
from urllib import request as urlrequest

from .gmail import GmailError, GmailOAuthConfig, GmailTokens, open_json, refresh_access_token

logger = logging.getLogger(__name__)

MESSAGES_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages"


@dataclass(slots=True)
class RemoteMessage:
    """A message as fetched from Gmail."""

    id: str
    thread_id: str
    from_address: str
    to_address: str
    subject: str
    body: str
    received_at: Optional[datetime] = None
    message_id_header: str = ""
    references: str = ""


def fetch_recent_messages(
    config: GmailOAuthConfig,
    tokens: GmailTokens,
    *,
    max_results: int = 20,
) -> List[RemoteMessage]:
    """Return up to ``max_results`` of the newest messages, newest first.

    Raises:
        GmailError: if listing or fetching any message fails.
    """
    access_token = refresh_access_token(config, tokens.refresh_token)

    refs = list_message_ids(config, access_token, max_results=max_results)
    messages = [get_message(config, access_token, ref["id"]) for ref in refs]

    oldest = datetime.min.replace(tzinfo=timezone.utc)
    messages.sort(key=lambda m: m.received_at or oldest, reverse=True)
    return messages[:max_results]


def list_message_ids(
    config: GmailOAuthConfig,
    access_token: str,
    *,
    max_results: int = 20,
) -> List[dict]:
    """List message references (``id``/``threadId``)."""
    url = f"{MESSAGES_URL}?{urlparse.urlencode({'maxResults': max_results})}"
    req = urlrequest.Request(
        url, headers={"Authorization": f"Bearer {access_token}"}, method="GET"
    )
    data = open_json(req, config.timeout, action="list")
    return data.get("messages", []) or []


def get_message(config: GmailOAuthConfig, access_token: str, message_id: str) -> RemoteMessage:
    """Fetch one message in full format."""
    url = f"{MESSAGES_URL}/{urlparse.quote(message_id)}?format=full"
    req = urlrequest.Request(
        url, headers={"Authorization": f"Bearer {access_token}"}, method="GET"
    )
    data = open_json(req, config.timeout, action=f"get message {message_id}")
    return parse_message(data)


def parse_message(data: dict) -> RemoteMessage:
    """Parse a Gmail API ``format=full`` message resource."""
    payload = data.get("payload", {}) or {}
    headers = payload.get("headers", []) or []

    def get_header(name: str) -> str:
        return next(
            (h.get("value", "") for h in headers if h.get("name", "").lower() == name.lower()),
            "",
        )

    message_id = data.get("id")
    if not message_id:
        raise GmailError("Gmail returned a message without an id.")

    return RemoteMessage(
        id=message_id,
        thread_id=data.get("threadId") or message_id,
        from_address=get_header("From"),
        to_address=get_header("To"),
        subject=get_header("Subject"),
        body=extract_plain_body(payload),
        received_at=_received_at(data.get("internalDate"), get_header("Date")),
        message_id_header=get_header("Message-ID"),
        references=get_header("References"),
    )


def extract_plain_body(payload: dict) -> str:
    """Return the first text/plain body found in a (possibly nested) payload."""
    body_data = (payload.get("body") or {}).get("data")
    if body_data and payload.get("mimeType", "text/plain").startswith("text/plain"):
        return _decode_body(body_data)

    for part in payload.get("parts", []) or []:
        if part.get("mimeType") == "text/plain" and (part.get("body") or {}).get("data"):
            return _decode_body(part["body"]["data"])
    for part in payload.get("parts", []) or []:
        if part.get("parts"):
            nested = extract_plain_body(part)
            if nested:
                return nested

    # Single-part non-plain bodies (e.g. text/html only) are returned raw.
    if body_data:
        return _decode_body(body_data)
    return ""


def _decode_body(data: str) -> str:
    """Decode Gmail's base64url body data (padding is often stripped)."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        logger.warning("[Gmail] Could not decode message body")
        return ""


def _received_at(internal_date: Optional[str], date_header: str) -> Optional[datetime]:
    if internal_date:
        try:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
        except (TypeError, ValueError):
            pass
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None
