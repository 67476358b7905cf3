"""Python client for the AIMate REST API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

import requests

from .cache import ResponseCache, cache_key

logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """Raised for non-2xx responses; carries the server's error message."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class AimateClient:
    """Authenticated API calls with cached GETs.

    Every mutation drops the cached reads of the resources it touched.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        session: Optional[requests.Session] = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.cache = cache if cache is not None else ResponseCache()
        self._session = session or requests.Session()
        self.timeout = timeout

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = self._session.request(
                method,
                f"{self.base_url}/api{path}",
                params=params,
                json=json,
                files=files,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise ApiError("Request timeout. Please check your internet connection.", 0) from exc
        except requests.ConnectionError as exc:
            raise ApiError("Unable to connect to server. Please check your connection.", 0) from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.ok:
            message = body.get("error") if isinstance(body, dict) else None
            logger.warning(f"[Client] {method} {path} -> {response.status_code}")
            raise ApiError(message or f"HTTP {response.status_code}", response.status_code)
        return body

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        key = cache_key(path, params)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        body = self._request("GET", path, params=params or None)
        self.cache.set(key, body)
        return body

    def _mutate(
        self,
        method: str,
        path: str,
        *,
        invalidates: Iterable[str],
        json: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            return self._request(method, path, json=json, files=files)
        finally:
            for prefix in invalidates:
                self.cache.invalidate_prefix(prefix)

    # -------------------------------------------------------------------------
    # Auth
    # -------------------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        body = self._request(
            "POST", "/auth/register", json={"name": name, "email": email, "password": password}
        )
        self._start_session(body["token"])
        return body

    def login(self, email: str, password: str) -> Dict[str, Any]:
        body = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self._start_session(body["token"])
        return body

    def logout(self) -> None:
        self.token = None
        self.cache.clear()

    def _start_session(self, token: str) -> None:
        self.token = token
        self.cache.clear()

    def me(self) -> Dict[str, Any]:
        return self._get("/auth/me")

    def gmail_auth_url(self) -> str:
        return self._request("GET", "/auth/gmail/url")["authUrl"]

    def connect_gmail(self, code: str) -> Dict[str, Any]:
        return self._mutate(
            "POST", "/auth/gmail/callback", json={"code": code}, invalidates=("/auth", "/emails")
        )

    def disconnect_gmail(self) -> Dict[str, Any]:
        return self._mutate("POST", "/auth/gmail/disconnect", invalidates=("/auth", "/emails"))

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def list_tasks(self, **filters: Any) -> Dict[str, Any]:
        return self._get("/tasks", filters)

    def get_task(self, task_id: str) -> Dict[str, Any]:
        return self._get(f"/tasks/{task_id}")

    def create_task(self, **fields: Any) -> Dict[str, Any]:
        return self._mutate("POST", "/tasks", json=fields, invalidates=("/tasks",))

    def generate_tasks(self, goal: str) -> Dict[str, Any]:
        return self._mutate("POST", "/tasks/generate", json={"goal": goal}, invalidates=("/tasks",))

    def update_task(self, task_id: str, **fields: Any) -> Dict[str, Any]:
        return self._mutate("PUT", f"/tasks/{task_id}", json=fields, invalidates=("/tasks",))

    def delete_task(self, task_id: str) -> Dict[str, Any]:
        return self._mutate("DELETE", f"/tasks/{task_id}", invalidates=("/tasks",))

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    def list_expenses(self, **filters: Any) -> Dict[str, Any]:
        return self._get("/expenses", filters)

    def create_expense(self, **fields: Any) -> Dict[str, Any]:
        return self._mutate("POST", "/expenses", json=fields, invalidates=("/expenses",))

    def expense_insights(self, **filters: Any) -> Dict[str, Any]:
        return self._get("/expenses/insights", filters)

    def update_expense(self, expense_id: str, **fields: Any) -> Dict[str, Any]:
        return self._mutate("PUT", f"/expenses/{expense_id}", json=fields, invalidates=("/expenses",))

    def delete_expense(self, expense_id: str) -> Dict[str, Any]:
        return self._mutate("DELETE", f"/expenses/{expense_id}", invalidates=("/expenses",))

    # -------------------------------------------------------------------------
    # Meetings
    # -------------------------------------------------------------------------

    def list_meetings(self) -> Dict[str, Any]:
        return self._get("/meetings")

    def get_meeting(self, meeting_id: str) -> Dict[str, Any]:
        return self._get(f"/meetings/{meeting_id}")

    def create_meeting(self, **fields: Any) -> Dict[str, Any]:
        return self._mutate("POST", "/meetings", json=fields, invalidates=("/meetings",))

    def create_meeting_with_ai(self, title: str, participants: Optional[list] = None) -> Dict[str, Any]:
        return self._mutate(
            "POST",
            "/meetings/create-with-ai",
            json={"title": title, "participants": participants or []},
            invalidates=("/meetings",),
        )

    def upload_audio(
        self,
        meeting_id: str,
        filename: str,
        data: bytes,
        content_type: str = "audio/mpeg",
    ) -> Dict[str, Any]:
        return self._mutate(
            "POST",
            f"/meetings/{meeting_id}/upload-audio",
            files={"audio": (filename, data, content_type)},
            invalidates=("/meetings",),
        )

    def convert_action_item(self, meeting_id: str, item_id: str) -> Dict[str, Any]:
        return self._mutate(
            "POST",
            f"/meetings/{meeting_id}/action-items/{item_id}/convert",
            invalidates=("/meetings", "/tasks"),
        )

    def update_meeting(self, meeting_id: str, **fields: Any) -> Dict[str, Any]:
        return self._mutate("PUT", f"/meetings/{meeting_id}", json=fields, invalidates=("/meetings",))

    def delete_meeting(self, meeting_id: str) -> Dict[str, Any]:
        return self._mutate("DELETE", f"/meetings/{meeting_id}", invalidates=("/meetings",))

    # -------------------------------------------------------------------------
    # Emails
    # -------------------------------------------------------------------------

    def list_emails(
        self,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._get("/emails", {"status": status, "limit": limit, "skip": skip})

    def sync_emails(self) -> Dict[str, Any]:
        # A sync mutates the mailbox even though it is a GET.
        return self._mutate("GET", "/emails/sync", invalidates=("/emails", "/auth"))

    def generate_reply(self, email_id: str, context: str = "") -> Dict[str, Any]:
        return self._mutate(
            "POST", f"/emails/{email_id}/generate-reply", json={"context": context}, invalidates=("/emails",)
        )

    def generate_reply_manual(self, original_body: str, subject: str, sender: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/emails/generate-reply-manual",
            json={"originalBody": original_body, "subject": subject, "from": sender},
        )

    def send_reply(self, email_id: str, reply_text: str) -> Dict[str, Any]:
        return self._mutate(
            "POST", f"/emails/{email_id}/send", json={"replyText": reply_text}, invalidates=("/emails",)
        )

    def update_email(self, email_id: str, **fields: Any) -> Dict[str, Any]:
        return self._mutate("PUT", f"/emails/{email_id}", json=fields, invalidates=("/emails",))

    def delete_email(self, email_id: str) -> Dict[str, Any]:
        return self._mutate("DELETE", f"/emails/{email_id}", invalidates=("/emails",))
