"""Shared fixtures: in-memory pending store, scripted remote farm API, wired sync service."""
import asyncio
import json
import os
import tempfile

# Point the module-level engine at a throwaway database before farmsync is imported
os.environ.setdefault(
    "DATABASE_URL", "sqlite:///" + os.path.join(tempfile.gettempdir(), "farmsync-test.db")
)

import httpx  # noqa: E402
import pytest  # noqa: E402

from farmsync.core.notifications import NotificationCenter  # noqa: E402
from farmsync.services.connectivity import ConnectivityMonitor  # noqa: E402
from farmsync.services.farm_api import FarmAPIClient  # noqa: E402
from farmsync.services.offline_sync import OfflineSyncService  # noqa: E402
from farmsync.services.pending_store import InMemoryPendingStore  # noqa: E402


class FakeFarmAPI:
    """Records every POST and answers with ``responder(request)`` (201 by default)."""

    def __init__(self):
        self.requests = []
        self.responder = lambda request: httpx.Response(201)
        self.latency = 0.0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.url.path, json.loads(request.content)))
        if self.latency:
            await asyncio.sleep(self.latency)
        return self.responder(request)

    def client(self, **kwargs) -> FarmAPIClient:
        return FarmAPIClient(
            base_url="http://farm.test",
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )

    @property
    def paths(self):
        return [path for path, _ in self.requests]


@pytest.fixture()
def remote():
    return FakeFarmAPI()


@pytest.fixture()
def store():
    return InMemoryPendingStore()


@pytest.fixture()
def notifier():
    return NotificationCenter(history=20)


@pytest.fixture()
def monitor(notifier):
    return ConnectivityMonitor(initial_online=True, notifier=notifier)


@pytest.fixture()
def service(store, remote, monitor, notifier):
    return OfflineSyncService(store=store, api_client=remote.client(), monitor=monitor, notifier=notifier)


@pytest.fixture()
def put_record():
    """Write a raw pending record with an explicit creation time."""

    def _put(store, key, endpoint, data, created_at):
        store.records[key] = json.dumps(
            {"id": key, "endpoint": endpoint, "data": data, "createdAt": created_at}
        )

    return _put
