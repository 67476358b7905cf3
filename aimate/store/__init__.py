"""Document storage package - Firestore with file fallback."""
from __future__ import annotations

from .documents import (
    create_document,
    delete_document,
    delete_documents_where,
    find_user_document,
    get_document,
    get_user_document,
    list_documents,
    save_document,
    save_user_document,
)
from .validation import ValidationError

__all__ = [
    "ValidationError",
    "create_document",
    "delete_document",
    "delete_documents_where",
    "find_user_document",
    "get_document",
    "get_user_document",
    "list_documents",
    "save_document",
    "save_user_document",
]
