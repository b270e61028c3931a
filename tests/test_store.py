"""Tests for the SQLite subscriber store."""

from pathlib import Path

import pytest

from hn_watcher.core.types import DeliveryDescriptor
from hn_watcher.errors import StoreUnavailable
from hn_watcher.store.subscribers import SubscriberStore, derive_key


def _descriptor(endpoint: str, auth: str = "auth-secret") -> DeliveryDescriptor:
    return DeliveryDescriptor(endpoint=endpoint, p256dh="client-public-key", auth=auth)


def test_derive_key_is_deterministic_and_fixed_length():
    endpoint = "https://fcm.googleapis.com/fcm/send/abc123"
    assert derive_key(endpoint) == derive_key(endpoint)
    assert len(derive_key(endpoint)) == 64
    assert len(derive_key("x")) == 64


def test_derive_key_has_no_collisions_on_sample_endpoints():
    endpoints = [f"https://push.example.com/sub/{i}" for i in range(2000)]
    endpoints += [
        "https://fcm.googleapis.com/fcm/send/abc",
        "https://updates.push.services.mozilla.com/wpush/v2/abc",
        "https://web.push.apple.com/abc",
    ]
    keys = {derive_key(endpoint) for endpoint in endpoints}
    assert len(keys) == len(endpoints)


def test_upsert_same_endpoint_twice_keeps_one_record(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.db")

    first = store.upsert(_descriptor("https://push.example.com/1", auth="old"))
    second = store.upsert(_descriptor("https://push.example.com/1", auth="new"))

    records = store.list_all()
    assert first == second == derive_key("https://push.example.com/1")
    assert len(records) == 1
    assert records[0].descriptor.auth == "new"
    store.close()


def test_upsert_keeps_created_at(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.db")
    key = store.upsert(_descriptor("https://push.example.com/1"))
    created = store.get(key).created_at

    store.upsert(_descriptor("https://push.example.com/1"))

    record = store.get(key)
    assert record.created_at == created
    assert record.last_verified is not None
    store.close()


def test_key_always_matches_stored_endpoint(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.db")
    for i in range(5):
        store.upsert(_descriptor(f"https://push.example.com/{i}"))

    for record in store.list_all():
        assert record.key == derive_key(record.descriptor.endpoint)
    store.close()


def test_delete_removes_record_and_absent_key_is_noop(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.db")
    key = store.upsert(_descriptor("https://push.example.com/1"))

    assert store.delete(key) is True
    assert store.get(key) is None
    assert store.delete(key) is False
    assert store.delete(derive_key("https://never-registered.example.com")) is False
    assert store.count() == 0
    store.close()


def test_records_survive_reopen(tmp_path: Path):
    path = tmp_path / "subscribers.db"
    store = SubscriberStore(path)
    store.upsert(_descriptor("https://push.example.com/1"))
    store.close()

    reopened = SubscriberStore(path)
    assert reopened.count() == 1
    reopened.close()


def test_closed_store_raises_store_unavailable(tmp_path: Path):
    store = SubscriberStore(tmp_path / "subscribers.db")
    store.close()

    with pytest.raises(StoreUnavailable):
        store.list_all()
    with pytest.raises(StoreUnavailable):
        store.delete("anything")
