import os

os.environ.setdefault("LOG_TO_STDOUT", "false")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from core import storage


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "DB_PATH", str(tmp_path / "gusto_ko.sqlite3"))
    storage.ensure_db()
    return storage


@pytest.fixture
def owner(db):
    return db.create_user("ana@example.com", name="Ana")


@pytest.fixture
def share_id(db, owner):
    return db.list_user_wishlists(owner.id)[0].share_id
