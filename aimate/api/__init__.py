"""HTTP-facing helpers shared by the API application."""

from .auth import AuthError, decode_token, issue_token, resolve_user_id

__all__ = ["AuthError", "decode_token", "issue_token", "resolve_user_id"]
