"""User accounts: registration, credential checks and Gmail connection state.

Firestore path: users/{user_id}
File fallback: {store_dir}/users.jsonl

Passwords are stored as salted PBKDF2-SHA256 hashes. Neither the hash nor the
Gmail tokens ever appear in ``User.to_api_dict()``.
"""
from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..store import documents
from ..store.validation import ValidationError, now_utc, parse_datetime, require_text

PBKDF2_ITERATIONS = 260_000


@dataclass(slots=True)
class User:
    id: str
    name: str
    email: str
    password_hash: str
    created_at: datetime
    preferences: Dict[str, Any] = field(default_factory=dict)
    gmail_access_token: Optional[str] = None
    gmail_refresh_token: Optional[str] = None
    gmail_email: Optional[str] = None

    @property
    def gmail_connected(self) -> bool:
        return bool(self.gmail_refresh_token)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "password_hash": self.password_hash,
            "created_at": self.created_at.isoformat(),
            "preferences": self.preferences,
            "gmail_access_token": self.gmail_access_token,
            "gmail_refresh_token": self.gmail_refresh_token,
            "gmail_email": self.gmail_email,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            email=data["email"],
            password_hash=data.get("password_hash", ""),
            created_at=parse_datetime(data.get("created_at")) or now_utc(),
            preferences=data.get("preferences") or {},
            gmail_access_token=data.get("gmail_access_token"),
            gmail_refresh_token=data.get("gmail_refresh_token"),
            gmail_email=data.get("gmail_email"),
        )

    def to_api_dict(self) -> Dict[str, Any]:
        """Public representation; credentials are never included."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "preferences": self.preferences,
            "gmailConnected": self.gmail_connected,
            "gmailEmail": self.gmail_email,
        }


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str, *, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
    )
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), int(iterations)
    )
    return hmac.compare_digest(digest.hex(), expected)


# =============================================================================
# CRUD Operations
# =============================================================================

def _normalize_login(email: str) -> str:
    return email.strip().lower()


def register_user(name: str, email: str, password: str) -> User:
    """Create a new user.

    Raises:
        ValidationError: if a field is missing or the email is already registered.
    """
    if not name or not email or not password:
        raise ValidationError("Please provide name, email, and password")
    name = require_text(name, "name")
    login = _normalize_login(email)
    if "@" not in login:
        raise ValidationError("Please provide a valid email")
    if get_user_by_email(login):
        raise ValidationError("User already exists")

    user = User(
        id=uuid.uuid4().hex,
        name=name,
        email=login,
        password_hash=hash_password(password),
        created_at=now_utc(),
    )
    documents.save_user_document(user.id, user.to_dict())
    return user


def authenticate(email: str, password: str) -> Optional[User]:
    """Return the user when the credentials match, otherwise None."""
    user = get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def get_user(user_id: str) -> Optional[User]:
    data = documents.get_user_document(user_id)
    return User.from_dict(data) if data else None


def get_user_by_email(email: str) -> Optional[User]:
    data = documents.find_user_document("email", _normalize_login(email))
    return User.from_dict(data) if data else None


def save_user(user: User) -> User:
    documents.save_user_document(user.id, user.to_dict())
    return user


# =============================================================================
# Gmail Connection State
# =============================================================================

def set_gmail_tokens(
    user: User,
    *,
    access_token: Optional[str],
    refresh_token: Optional[str],
) -> User:
    """Store OAuth tokens after a consent exchange.

    Google omits the refresh token on repeat consents; the stored one is kept then.
    The connected address is cleared and re-derived by the next sync, since the
    consent may have been granted for a different account.
    """
    user.gmail_access_token = access_token
    if refresh_token:
        user.gmail_refresh_token = refresh_token
    user.gmail_email = None
    return save_user(user)


def set_gmail_address(user: User, address: Optional[str]) -> User:
    user.gmail_email = address
    return save_user(user)


def clear_gmail_connection(user: User) -> User:
    user.gmail_access_token = None
    user.gmail_refresh_token = None
    user.gmail_email = None
    return save_user(user)
