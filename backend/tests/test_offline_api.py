"""Tests for the offline queue HTTP API."""
import math

import httpx
import pytest
from fastapi.testclient import TestClient

from farmsync.api.offline import banner_text, get_notification_center, get_offline_sync_service
from farmsync.main import app
from farmsync.services.offline_sync import OfflineStatus


@pytest.fixture()
def client(service, notifier):
    app.dependency_overrides[get_offline_sync_service] = lambda: service
    app.dependency_overrides[get_notification_center] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


class TestStatusEndpoint:
    def test_online_and_empty_has_no_banner(self, client):
        body = client.get("/api/v1/offline/status").json()
        assert body == {"is_online": True, "pending_count": 0, "is_syncing": False, "banner": None}

    def test_offline_banner_shows_pending(self, client):
        client.post("/api/v1/offline/connectivity", json={"online": False})
        client.post("/api/v1/offline/submit", json={"endpoint": "/api/x", "data": {"a": 1}})
        body = client.get("/api/v1/offline/status").json()
        assert body["is_online"] is False
        assert body["pending_count"] == 1
        assert body["banner"] == "Offline — data saved locally (1 pending)"


class TestBannerText:
    def test_pending_online(self):
        assert banner_text(OfflineStatus(is_online=True, pending_count=1, is_syncing=False)) == "1 pending entry to sync"
        assert banner_text(OfflineStatus(is_online=True, pending_count=4, is_syncing=False)) == "4 pending entries to sync"

    def test_syncing(self):
        assert banner_text(OfflineStatus(is_online=True, pending_count=2, is_syncing=True)) == "Syncing (2 remaining)..."

    def test_offline_without_backlog(self):
        assert banner_text(OfflineStatus(is_online=False, pending_count=0, is_syncing=False)) == "Offline — data saved locally"


class TestSubmitEndpoint:
    def test_online_submit(self, client, remote, store):
        resp = client.post("/api/v1/offline/submit", json={"endpoint": "/api/x", "data": {"a": 1}})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "offline": False}
        assert store.count() == 0
        assert remote.requests == [("/api/x", {"a": 1})]

    def test_remote_down_is_still_success(self, client, remote, store):
        remote.responder = lambda request: httpx.Response(500)
        resp = client.post("/api/v1/offline/submit", json={"endpoint": "/api/x", "data": {"a": 1}})
        assert resp.json() == {"success": True, "offline": True}
        assert store.count() == 1

    def test_missing_endpoint_is_rejected(self, client):
        resp = client.post("/api/v1/offline/submit", json={"data": {"a": 1}})
        assert resp.status_code == 422

    @pytest.mark.parametrize("endpoint", ["http://other.host/x", "//other.host/x", "https://farm.test/api/x"])
    def test_endpoint_must_be_a_path(self, client, remote, store, endpoint):
        resp = client.post("/api/v1/offline/submit", json={"endpoint": endpoint, "data": {"a": 1}})
        assert resp.status_code == 422
        assert remote.requests == []
        assert store.count() == 0

    def test_non_finite_data_is_rejected(self, client, remote, store):
        resp = client.post(
            "/api/v1/offline/submit",
            content='{"endpoint": "/api/x", "data": {"q": {"values": [1, Infinity]}}}',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        assert remote.requests == []
        assert store.count() == 0


class TestSyncEndpoint:
    def test_manual_sync_drains_queue(self, client, store, remote, notifier):
        store.save("/api/x", {"a": 1})
        store.save("/api/y", {"b": 2})
        body = client.post("/api/v1/offline/sync").json()
        assert body == {"synced": 2, "remaining": 0, "halted": False, "skipped": None}
        assert store.count() == 0
        assert notifier.recent()[-1].message == "Synced 2 pending entries"

    def test_sync_while_offline_is_skipped(self, client, monitor, store):
        store.save("/api/x", {"a": 1})
        monitor.set_online(False)
        body = client.post("/api/v1/offline/sync").json()
        assert body["skipped"] == "offline"
        assert body["remaining"] == 1

    def test_unsendable_item_halts_sync(self, client, store, remote, put_record):
        put_record(store, "farm_pending_1_a", "/api/x", {"q": math.nan}, "2026-05-01T08:00:00.000Z")
        resp = client.post("/api/v1/offline/sync")
        assert resp.status_code == 200
        assert resp.json() == {"synced": 0, "remaining": 1, "halted": True, "skipped": None}
        assert remote.requests == []

    def test_sync_with_empty_queue_is_skipped(self, client):
        assert client.post("/api/v1/offline/sync").json()["skipped"] == "empty"


class TestPendingEndpoints:
    def test_list_remove_and_clear(self, client, monitor):
        monitor.set_online(False)
        client.post("/api/v1/offline/submit", json={"endpoint": "/api/x", "data": {"a": 1}})
        client.post("/api/v1/offline/submit", json={"endpoint": "/api/y", "data": {"b": 2}})

        items = client.get("/api/v1/offline/pending").json()
        assert len(items) == 2
        assert {item["endpoint"] for item in items} == {"/api/x", "/api/y"}
        assert all(item["id"].startswith("farm_pending_") for item in items)

        resp = client.delete(f"/api/v1/offline/pending/{items[0]['id']}")
        assert resp.status_code == 204
        resp = client.delete(f"/api/v1/offline/pending/{items[0]['id']}")
        assert resp.status_code == 204
        assert len(client.get("/api/v1/offline/pending").json()) == 1

        assert client.delete("/api/v1/offline/pending").json() == {"cleared": 1}
        assert client.get("/api/v1/offline/status").json()["pending_count"] == 0


class TestConnectivityAndNotifications:
    def test_connectivity_signal_updates_status_and_feed(self, client):
        body = client.post("/api/v1/offline/connectivity", json={"online": False}).json()
        assert body["is_online"] is False
        feed = client.get("/api/v1/offline/notifications").json()
        assert [n["level"] for n in feed] == ["warning"]
        assert feed[0]["message"].startswith("You are offline")

        client.post("/api/v1/offline/connectivity", json={"online": True})
        feed = client.get("/api/v1/offline/notifications").json()
        assert feed[-1]["level"] == "success"
        assert feed[-1]["message"] == "Back online"

    def test_dismiss_notifications(self, client, notifier):
        notifier.success("Back online")
        assert client.delete("/api/v1/offline/notifications").status_code == 204
        assert client.get("/api/v1/offline/notifications").json() == []
