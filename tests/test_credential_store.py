from __future__ import annotations

import sqlite3

import pytest

from _fakes import MemoryBackend, make_record
from app.clients.sqlite_store import SQLiteStore
from app.core.errors import (
    CredentialStoreError,
    CredentialStoreWriteError,
    UserNotFoundError,
)
from app.services.credential_store import CredentialStore
from app.services.token_cipher import TokenCipherService


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secrets=["store-secret"])


def test_put_then_get_returns_full_record(memory_backend: MemoryBackend, cipher) -> None:
    store = CredentialStore(memory_backend, cipher)
    record = make_record("user-1", characters=["c1", "c2", "c3"])

    store.put(record)
    loaded = store.get("user-1")

    assert loaded.credential == record.credential
    assert loaded.characters == ["c1", "c2", "c3"]
    assert loaded.membership_type == 3
    assert loaded.membership_id == "m-user-1"
    assert loaded.display_name == "Guardian"


def test_tokens_are_encrypted_at_rest(memory_backend: MemoryBackend, cipher) -> None:
    store = CredentialStore(memory_backend, cipher)
    store.put(make_record("user-1"))

    item = memory_backend.items[("user#user-1", "oauth#bungie")]
    assert "access_token" not in item
    assert "refresh_token" not in item
    assert item["access_token_encrypted"] != "access-1"
    assert cipher.decrypt(item["refresh_token_encrypted"]) == "refresh-1"


def test_get_missing_user_raises_not_found(memory_backend, cipher) -> None:
    store = CredentialStore(memory_backend, cipher)

    with pytest.raises(UserNotFoundError):
        store.get("nobody")
    assert store.exists("nobody") is False


def test_list_and_delete(memory_backend, cipher) -> None:
    store = CredentialStore(memory_backend, cipher)
    store.put(make_record("a"))
    store.put(make_record("b"))
    memory_backend.put_item({"pk": "user#a", "sk": "something-else"})

    assert sorted(store.list()) == ["a", "b"]

    store.delete("a")
    store.delete("a")
    assert store.list() == ["b"]


def test_put_overwrites_whole_record(memory_backend, cipher) -> None:
    store = CredentialStore(memory_backend, cipher)
    store.put(make_record("a", characters=["c1"]))
    store.put(make_record("a", characters=[], refresh_token=None))

    loaded = store.get("a")
    assert loaded.characters == []
    assert loaded.credential.refresh_token is None
    assert loaded.needs_reauthorization


def test_unreadable_record_is_reported(memory_backend, cipher) -> None:
    store = CredentialStore(memory_backend, cipher)
    store.put(make_record("a"))

    other = CredentialStore(memory_backend, TokenCipherService(secrets=["other"]))
    with pytest.raises(CredentialStoreError):
        other.get("a")


def test_backend_write_failure_is_wrapped(cipher) -> None:
    class BrokenBackend(MemoryBackend):
        def put_item(self, item: dict) -> None:
            raise sqlite3.OperationalError("disk I/O error")

    store = CredentialStore(BrokenBackend(), cipher)
    with pytest.raises(CredentialStoreWriteError):
        store.put(make_record("a"))


def test_sqlite_backend_persists_across_instances(tmp_path, cipher) -> None:
    db_path = tmp_path / "nested" / "records.db"
    CredentialStore(SQLiteStore(str(db_path)), cipher).put(make_record("persisted"))

    reopened = CredentialStore(SQLiteStore(str(db_path)), cipher)
    assert reopened.list() == ["persisted"]
    assert reopened.get("persisted").credential.access_token == "access-1"

    reopened.delete("persisted")
    assert reopened.list() == []
