"""Shared fixtures: every test runs against an empty file-backed store."""
from __future__ import annotations

import os

import pytest

# File storage must be selected before any store module is used.
os.environ["AIMATE_STORE_FORCE_FILE"] = "1"


@pytest.fixture(autouse=True)
def store_dir(tmp_path, monkeypatch):
    """Point the document store at a fresh temporary directory."""
    path = tmp_path / "store"
    path.mkdir()
    monkeypatch.setenv("AIMATE_STORE_FORCE_FILE", "1")
    monkeypatch.setenv("AIMATE_STORE_DIR", str(path))
    return path


@pytest.fixture
def user():
    from aimate.users import register_user

    return register_user("Test User", "tester@example.com", "s3cret-pass")
