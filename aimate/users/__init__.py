"""User accounts package."""
from __future__ import annotations

from .store import (
    User,
    authenticate,
    clear_gmail_connection,
    get_user,
    get_user_by_email,
    hash_password,
    register_user,
    save_user,
    set_gmail_address,
    set_gmail_tokens,
    verify_password,
)

__all__ = [
    "User",
    "authenticate",
    "clear_gmail_connection",
    "get_user",
    "get_user_by_email",
    "hash_password",
    "register_user",
    "save_user",
    "set_gmail_address",
    "set_gmail_tokens",
    "verify_password",
]
