"""Tests for the registration HTTP API."""

from pathlib import Path

from fastapi.testclient import TestClient
import pytest

from hn_watcher.api import create_app
from hn_watcher.config import AppConfig
from hn_watcher.errors import StoreUnavailable
from hn_watcher.store.subscribers import SubscriberStore, derive_key

SUBSCRIPTION = {
    "endpoint": "https://updates.push.services.mozilla.com/wpush/v2/abc",
    "keys": {"p256dh": "client-public-key", "auth": "client-auth"},
}


def _config(vapid: bool = True) -> AppConfig:
    cfg = AppConfig()
    if vapid:
        cfg.vapid.public_key = "B" * 87
        cfg.vapid.private_key = "p" * 43
    else:
        cfg.vapid.public_key_env = "HN_WATCHER_TEST_UNSET_PUBLIC"
        cfg.vapid.private_key_env = "HN_WATCHER_TEST_UNSET_PRIVATE"
    return cfg


@pytest.fixture
def store(tmp_path: Path):
    db = SubscriberStore(tmp_path / "subscribers.db")
    yield db
    db.close()


@pytest.fixture
def client(store):
    return TestClient(create_app(_config(), store=store))


def test_subscribe_stores_subscription(client, store):
    response = client.post("/subscribe", json=SUBSCRIPTION)

    assert response.status_code == 200
    body = response.json()
    assert body == {"success": True, "id": derive_key(SUBSCRIPTION["endpoint"])}
    assert store.count() == 1


def test_subscribe_twice_is_idempotent(client, store):
    client.post("/subscribe", json=SUBSCRIPTION)
    client.post("/subscribe", json=SUBSCRIPTION)

    assert store.count() == 1


def test_subscribe_rejects_missing_endpoint(client, store):
    response = client.post("/subscribe", json={"keys": {}})

    assert response.status_code == 400
    assert "endpoint" in response.json()["error"]
    assert store.count() == 0


def test_subscribe_rejects_non_json_body(client):
    response = client.post("/subscribe", content=b"not json", headers={"content-type": "application/json"})

    assert response.status_code == 400


def test_subscribe_requires_vapid_keys(store, monkeypatch):
    monkeypatch.delenv("HN_WATCHER_TEST_UNSET_PUBLIC", raising=False)
    monkeypatch.delenv("HN_WATCHER_TEST_UNSET_PRIVATE", raising=False)
    client = TestClient(create_app(_config(vapid=False), store=store))

    response = client.post("/subscribe", json=SUBSCRIPTION)

    assert response.status_code == 500
    assert "VAPID" in response.json()["error"]
    assert store.count() == 0


def test_subscribe_reports_store_failure(store):
    class BrokenStore:
        def upsert(self, descriptor):
            raise StoreUnavailable("disk full")

    client = TestClient(create_app(_config(), store=BrokenStore()))

    response = client.post("/subscribe", json=SUBSCRIPTION)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to store subscription"}


def test_unsubscribe_removes_subscription(client, store):
    client.post("/subscribe", json=SUBSCRIPTION)

    response = client.post("/unsubscribe", json={"endpoint": SUBSCRIPTION["endpoint"]})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert store.count() == 0


def test_unsubscribe_unknown_endpoint_succeeds(client):
    response = client.post("/unsubscribe", json={"endpoint": "https://push.example.com/never"})

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_unsubscribe_rejects_missing_endpoint(client):
    response = client.post("/unsubscribe", json={})

    assert response.status_code == 400


def test_health_reports_subscriber_count(client):
    client.post("/subscribe", json=SUBSCRIPTION)

    response = client.get("/health")

    assert response.json() == {"status": "ok", "subscribers": 1}


def test_cors_preflight_is_allowed(client):
    response = client.options(
        "/subscribe",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in ("*", "http://localhost:3000")
