"""Document storage for AIMate.

Every domain collection is owned by exactly one user and is stored under that
user's document, so a lookup can never cross into another user's data.

Firestore Structure:
    users/{user_id}                          -> User profile document
    users/{user_id}/{collection}/{doc_id}    -> owned documents (tasks, expenses, ...)

File Fallback Structure:
    {store_dir}/users.jsonl
    {store_dir}/{safe_user_id}/{collection}.jsonl

Environment Variables:
    AIMATE_STORE_FORCE_FILE: Set to "1" to use local file storage (dev/test mode)
    AIMATE_STORE_DIR: Directory for file-based storage (default: store_data/)
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

_firestore_client = None
_file_lock = threading.RLock()


def _use_file_storage() -> bool:
    """Check if we should use file-based storage."""
    return os.getenv("AIMATE_STORE_FORCE_FILE", "").strip() == "1"


def _get_store_dir() -> Path:
    """Get the storage directory for the file fallback."""
    env_dir = os.getenv("AIMATE_STORE_DIR", "").strip()
    if env_dir:
        return Path(env_dir)
    return Path(__file__).resolve().parents[2] / "store_data"


def _get_firestore_client():
    """Return a cached Firestore client, or None when file storage is active."""

    global _firestore_client
    if _use_file_storage():
        return None
    if _firestore_client is not None:
        return _firestore_client

    import firebase_admin
    from firebase_admin import firestore
    from google.auth.exceptions import DefaultCredentialsError

    try:
        if not firebase_admin._apps:
            firebase_admin.initialize_app()
        _firestore_client = firestore.client()
    except (ValueError, DefaultCredentialsError) as exc:
        # No application default credentials available.
        logger.warning(f"[Store] Firestore unavailable, using file storage: {exc}")
        return None
    return _firestore_client


def _sanitize_user_id(user_id: str) -> str:
    """Sanitize user ID for use as a directory name."""
    return user_id.replace("@", "_at_").replace(".", "_").replace("/", "_")


# =============================================================================
# Owned Documents
# =============================================================================

def save_document(user_id: str, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
    """Insert or replace a document owned by ``user_id``."""
    payload = {**data, "id": doc_id}
    db = _get_firestore_client()
    if db is not None:
        _collection_ref(db, user_id, collection).document(doc_id).set(payload)
        return

    with _file_lock:
        docs = _read_file(_collection_file(user_id, collection))
        docs[doc_id] = payload
        _write_file(_collection_file(user_id, collection), docs)


def create_document(user_id: str, collection: str, doc_id: str, data: Dict[str, Any]) -> bool:
    """Insert a document only if ``doc_id`` is not already taken.

    Returns:
        True if the document was created, False if it already existed.
    """
    payload = {**data, "id": doc_id}
    db = _get_firestore_client()
    if db is not None:
        from google.api_core.exceptions import AlreadyExists

        try:
            _collection_ref(db, user_id, collection).document(doc_id).create(payload)
        except AlreadyExists:
            return False
        return True

    with _file_lock:
        path = _collection_file(user_id, collection)
        docs = _read_file(path)
        if doc_id in docs:
            return False
        docs[doc_id] = payload
        _write_file(path, docs)
    return True


def get_document(user_id: str, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    """Return a document owned by ``user_id``, or None."""
    db = _get_firestore_client()
    if db is not None:
        doc = _collection_ref(db, user_id, collection).document(doc_id).get()
        return doc.to_dict() if doc.exists else None

    with _file_lock:
        return _read_file(_collection_file(user_id, collection)).get(doc_id)


def list_documents(user_id: str, collection: str) -> List[Dict[str, Any]]:
    """Return every document in one of the user's collections (unordered)."""
    db = _get_firestore_client()
    if db is not None:
        return [doc.to_dict() for doc in _collection_ref(db, user_id, collection).stream()]

    with _file_lock:
        return list(_read_file(_collection_file(user_id, collection)).values())


def delete_document(user_id: str, collection: str, doc_id: str) -> bool:
    """Delete one document. Returns False if it did not exist."""
    db = _get_firestore_client()
    if db is not None:
        doc_ref = _collection_ref(db, user_id, collection).document(doc_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    with _file_lock:
        path = _collection_file(user_id, collection)
        docs = _read_file(path)
        if doc_id not in docs:
            return False
        del docs[doc_id]
        _write_file(path, docs)
    return True


def delete_documents_where(
    user_id: str,
    collection: str,
    predicate: Callable[[Dict[str, Any]], bool],
) -> int:
    """Delete every document in the collection matching ``predicate``.

    Returns:
        Number of documents deleted.
    """
    db = _get_firestore_client()
    if db is not None:
        deleted = 0
        for doc in _collection_ref(db, user_id, collection).stream():
            if predicate(doc.to_dict()):
                doc.reference.delete()
                deleted += 1
        return deleted

    with _file_lock:
        path = _collection_file(user_id, collection)
        docs = _read_file(path)
        keep = {doc_id: data for doc_id, data in docs.items() if not predicate(data)}
        deleted = len(docs) - len(keep)
        if deleted:
            _write_file(path, keep)
    return deleted


# =============================================================================
# User Documents
# =============================================================================

def save_user_document(user_id: str, data: Dict[str, Any]) -> None:
    """Insert or replace the top-level user profile document."""
    payload = {**data, "id": user_id}
    db = _get_firestore_client()
    if db is not None:
        db.collection(USERS_COLLECTION).document(user_id).set(payload)
        return

    with _file_lock:
        users = _read_file(_users_file())
        users[user_id] = payload
        _write_file(_users_file(), users)


def get_user_document(user_id: str) -> Optional[Dict[str, Any]]:
    """Return the user profile document, or None."""
    db = _get_firestore_client()
    if db is not None:
        doc = db.collection(USERS_COLLECTION).document(user_id).get()
        return doc.to_dict() if doc.exists else None

    with _file_lock:
        return _read_file(_users_file()).get(user_id)


def find_user_document(field: str, value: Any) -> Optional[Dict[str, Any]]:
    """Return the first user profile whose ``field`` equals ``value``."""
    db = _get_firestore_client()
    if db is not None:
        query = db.collection(USERS_COLLECTION).where(field, "==", value).limit(1)
        for doc in query.stream():
            return doc.to_dict()
        return None

    with _file_lock:
        for data in _read_file(_users_file()).values():
            if data.get(field) == value:
                return data
    return None


# =============================================================================
# Firestore / File Helpers
# =============================================================================

def _collection_ref(db, user_id: str, collection: str):
    return db.collection(USERS_COLLECTION).document(user_id).collection(collection)


def _users_file() -> Path:
    return _get_store_dir() / f"{USERS_COLLECTION}.jsonl"


def _collection_file(user_id: str, collection: str) -> Path:
    return _get_store_dir() / _sanitize_user_id(user_id) / f"{collection}.jsonl"


def _read_file(path: Path) -> Dict[str, Dict[str, Any]]:
    """Read a JSONL file into an ordered id -> document mapping."""
    docs: Dict[str, Dict[str, Any]] = {}
    if not path.exists():
        return docs
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"[Store] Skipping corrupt line in {path}")
                continue
            docs[data["id"]] = data
    return docs


def _write_file(path: Path, docs: Dict[str, Dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(".jsonl.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        for data in docs.values():
            handle.write(json.dumps(data) + "\n")
    os.replace(tmp_path, path)
