import base64
import http.client
import io
import json
from unittest.mock import MagicMock, patch
from urllib import error as urlerror
from urllib import parse as urlparse

import pytest

from aimate.config import Settings
from aimate.mailer import (
    GmailAuthError,
    GmailError,
    GmailNotConfigured,
    GmailOAuthConfig,
    GmailTokens,
    build_consent_url,
    fetch_recent_messages,
    oauth_config_from_settings,
    parse_message,
    reply_subject,
    require_config,
    send_reply,
)
from aimate.mailer.gmail import _build_raw_message, open_json
from aimate.mailer.inbox import extract_plain_body

CONFIG = GmailOAuthConfig(
    client_id="client-id",
    client_secret="client-secret",
    redirect_uri="http://localhost:5173/gmail/callback",
)


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _http_error(code: int, body: str) -> urlerror.HTTPError:
    return urlerror.HTTPError("https://example.test", code, "error", {}, io.BytesIO(body.encode("utf-8")))


def _response(payload: dict) -> MagicMock:
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    return resp


# =============================================================================
# Configuration and OAuth
# =============================================================================

def test_oauth_config_requires_all_three_values():
    partial = Settings(jwt_secret="x", gmail_client_id="id", gmail_client_secret="secret")
    assert oauth_config_from_settings(partial) is None

    full = Settings(
        jwt_secret="x",
        gmail_client_id="id",
        gmail_client_secret="secret",
        gmail_redirect_uri="http://localhost/cb",
        http_timeout=12.0,
    )
    config = oauth_config_from_settings(full)
    assert config.client_id == "id"
    assert config.timeout == 12.0


def test_require_config_raises_when_missing():
    with pytest.raises(GmailNotConfigured):
        require_config(None)


def test_consent_url_requests_offline_access():
    url = build_consent_url(CONFIG, state="user-1")
    query = urlparse.parse_qs(urlparse.urlparse(url).query)
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["state"] == ["user-1"]
    assert "https://www.googleapis.com/auth/gmail.send" in query["scope"][0].split()


# =============================================================================
# Sending
# =============================================================================

def test_build_raw_message_encodes_email_headers():
    raw = _build_raw_message(
        from_address="from@example.com",
        to_address="to@example.com",
        subject="Re: Test Subject",
        body="Hello world",
    )
    text = base64.urlsafe_b64decode(raw.encode("utf-8")).decode("utf-8")
    assert "Subject: Re: Test Subject" in text
    assert "To: to@example.com" in text
    assert "Hello world" in text


def test_reply_subject_prefixes_once():
    assert reply_subject("Lunch") == "Re: Lunch"
    assert reply_subject("RE: Lunch") == "RE: Lunch"
    assert reply_subject("") == "Re: "


def test_send_reply_requires_recipient():
    with pytest.raises(GmailError):
        send_reply(CONFIG, GmailTokens(refresh_token="r"), to_address="", subject="s", body="b")


def test_send_reply_posts_thread_id():
    with patch("aimate.mailer.gmail.refresh_access_token", return_value="access"), patch(
        "aimate.mailer.gmail.open_json", return_value={"id": "sent-1"}
    ) as mock_open:
        message_id = send_reply(
            CONFIG,
            GmailTokens(refresh_token="r"),
            to_address="Sender <sender@example.org>",
            subject="Question",
            body="Answer",
            thread_id="thread-9",
        )

    assert message_id == "sent-1"
    request = mock_open.call_args.args[0]
    payload = json.loads(request.data.decode("utf-8"))
    assert payload["threadId"] == "thread-9"
    assert request.headers["Authorization"] == "Bearer access"


def test_send_reply_sets_threading_headers():
    with patch("aimate.mailer.gmail.refresh_access_token", return_value="access"), patch(
        "aimate.mailer.gmail.open_json", return_value={"id": "sent-2"}
    ) as mock_open:
        send_reply(
            CONFIG,
            GmailTokens(refresh_token="r"),
            to_address="sender@example.org",
            subject="Question",
            body="Answer",
            thread_id="thread-9",
            in_reply_to="<m2@mail.example.org>",
            references="<m1@mail.example.org>",
        )

    payload = json.loads(mock_open.call_args.args[0].data.decode("utf-8"))
    text = base64.urlsafe_b64decode(payload["raw"].encode("utf-8")).decode("utf-8")
    assert "In-Reply-To: <m2@mail.example.org>" in text
    assert "References: <m1@mail.example.org> <m2@mail.example.org>" in text


# =============================================================================
# HTTP Error Mapping
# =============================================================================

def test_open_json_maps_unauthorized_to_auth_error():
    with patch("aimate.mailer.gmail.urlrequest.urlopen", side_effect=_http_error(401, "{}")):
        with pytest.raises(GmailAuthError):
            open_json(MagicMock(), 5, action="list")


def test_open_json_maps_invalid_grant_to_auth_error():
    body = '{"error": "invalid_grant"}'
    with patch("aimate.mailer.gmail.urlrequest.urlopen", side_effect=_http_error(400, body)):
        with pytest.raises(GmailAuthError):
            open_json(MagicMock(), 5, action="token refresh")


def test_open_json_other_bad_request_is_plain_error():
    with patch("aimate.mailer.gmail.urlrequest.urlopen", side_effect=_http_error(400, "bad")):
        with pytest.raises(GmailError) as excinfo:
            open_json(MagicMock(), 5, action="send")
    assert not isinstance(excinfo.value, GmailAuthError)


def test_open_json_network_error():
    with patch("aimate.mailer.gmail.urlrequest.urlopen", side_effect=urlerror.URLError("down")):
        with pytest.raises(GmailError, match="network error"):
            open_json(MagicMock(), 5, action="list")


@pytest.mark.parametrize(
    "error",
    [
        http.client.RemoteDisconnected("Remote end closed connection without response"),
        http.client.IncompleteRead(b"{\"mess"),
        ConnectionResetError(104, "Connection reset by peer"),
    ],
)
def test_open_json_dropped_connection(error):
    with patch("aimate.mailer.gmail.urlrequest.urlopen", side_effect=error):
        with pytest.raises(GmailError, match="network error during list"):
            open_json(MagicMock(), 5, action="list")


def test_open_json_non_utf8_body():
    resp = MagicMock()
    resp.read.return_value = b"\xff\xfe{\x00}"
    resp.__enter__.return_value = resp
    with patch("aimate.mailer.gmail.urlrequest.urlopen", return_value=resp):
        with pytest.raises(GmailError, match="invalid JSON"):
            open_json(MagicMock(), 5, action="get message m1")


def test_open_json_decodes_response():
    with patch("aimate.mailer.gmail.urlrequest.urlopen", return_value=_response({"id": "x"})):
        assert open_json(MagicMock(), 5, action="get") == {"id": "x"}


# =============================================================================
# Message Parsing
# =============================================================================

def test_parse_message_reads_headers_and_body():
    data = {
        "id": "m1",
        "threadId": "t1",
        "internalDate": "1767225600000",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "From", "value": "Sender <sender@example.org>"},
                {"name": "to", "value": "Me <me@example.com>"},
                {"name": "Subject", "value": "Hello"},
                {"name": "Message-ID", "value": "<m1@mail.example.org>"},
                {"name": "References", "value": "<m0@mail.example.org>"},
            ],
            "parts": [
                {"mimeType": "text/html", "body": {"data": _b64("<p>Hi</p>")}},
                {"mimeType": "text/plain", "body": {"data": _b64("Hi there")}},
            ],
        },
    }

    message = parse_message(data)

    assert message.id == "m1"
    assert message.thread_id == "t1"
    assert message.to_address == "Me <me@example.com>"
    assert message.subject == "Hello"
    assert message.body == "Hi there"
    assert message.received_at.year == 2026
    assert message.message_id_header == "<m1@mail.example.org>"
    assert message.references == "<m0@mail.example.org>"


def test_parse_message_without_id():
    with pytest.raises(GmailError, match="without an id"):
        parse_message({"threadId": "t1", "payload": {"headers": []}})


def test_parse_message_falls_back_to_date_header():
    data = {
        "id": "m2",
        "payload": {
            "headers": [{"name": "Date", "value": "Mon, 02 Mar 2026 10:00:00 +0000"}],
            "body": {"data": _b64("plain")},
        },
    }

    message = parse_message(data)

    assert message.thread_id == "m2"
    assert message.received_at.month == 3
    assert message.body == "plain"


def test_extract_plain_body_searches_nested_parts():
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "parts": [{"mimeType": "text/plain", "body": {"data": _b64("nested text")}}],
            },
            {"mimeType": "application/pdf", "body": {"attachmentId": "a1"}},
        ],
    }
    assert extract_plain_body(payload) == "nested text"


def test_extract_plain_body_empty_payload():
    assert extract_plain_body({}) == ""


# =============================================================================
# Fetching
# =============================================================================

def test_fetch_recent_messages_sorts_newest_first():
    listing = {"messages": [{"id": "old"}, {"id": "new"}]}
    old = {"id": "old", "internalDate": "1000", "payload": {"headers": []}}
    new = {"id": "new", "internalDate": "2000", "payload": {"headers": []}}

    with patch("aimate.mailer.inbox.refresh_access_token", return_value="access"), patch(
        "aimate.mailer.inbox.open_json", side_effect=[listing, old, new]
    ):
        messages = fetch_recent_messages(CONFIG, GmailTokens(refresh_token="r"), max_results=2)

    assert [m.id for m in messages] == ["new", "old"]


def test_fetch_recent_messages_aborts_on_any_failure():
    listing = {"messages": [{"id": "a"}, {"id": "b"}]}
    good = {"id": "a", "payload": {"headers": []}}

    with patch("aimate.mailer.inbox.refresh_access_token", return_value="access"), patch(
        "aimate.mailer.inbox.open_json", side_effect=[listing, good, GmailError("failed")]
    ):
        with pytest.raises(GmailError):
            fetch_recent_messages(CONFIG, GmailTokens(refresh_token="r"))
