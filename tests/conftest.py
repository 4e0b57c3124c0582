"""Shared fixtures: an in-memory fake of the REST backend behind httpx.MockTransport."""

import asyncio
import json
from typing import Any, Optional

import httpx
import pytest

from finsync.audit import SyncAuditLogger
from finsync.services.backend import BackendClient, HealthProbe
from finsync.services.storage import InMemoryLocalStore

BASE_URL = "http://testserver/api"


class FakeBackend:
    """
    Implements the per-resource REST contract in memory.

    Flip `healthy`, set `fail_status[method]`, `network_error` or
    `timeout` to simulate a flaky server. Health checks are counted
    separately from data requests.
    """

    def __init__(self):
        self.healthy = True
        self.network_error = False
        self.timeout = False
        self.fail_status: dict[str, int] = {}
        self.fail_body: dict[str, Any] = {}
        self.collections: dict[str, Any] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.health_checks: list[str] = []
        self.create_gate: Optional[asyncio.Event] = None
        self._next_id = 0

    def calls(self, method: Optional[str] = None) -> list[tuple[str, str, Any]]:
        return [call for call in self.requests if method is None or call[0] == method]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        assert path.startswith("/api/"), path
        parts = path[len("/api/"):].split("/")

        if self.network_error:
            raise httpx.ConnectError("connection refused", request=request)
        if self.timeout:
            raise httpx.ReadTimeout("timed out", request=request)

        if parts[-1] == "health":
            self.health_checks.append(path)
            return httpx.Response(200 if self.healthy else 503, json={"status": "ok"})

        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        if request.method in self.fail_status:
            return httpx.Response(
                self.fail_status[request.method],
                json=self.fail_body.get(request.method, {"message": "Server exploded"}),
            )

        resource = parts[0]
        collection = self.collections.setdefault(resource, [])

        if request.method == "GET" and len(parts) == 1:
            return httpx.Response(200, json=collection)

        if request.method == "POST" and len(parts) == 1:
            self.collections[resource] = body
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and parts[1:] == ["item"]:
            if self.create_gate is not None:
                await self.create_gate.wait()
            self._next_id += 1
            created = {**body, "_id": f"srv-{self._next_id}"}
            collection.append(created)
            return httpx.Response(201, json={"data": created})

        record_id = parts[1]
        index = next(
            (i for i, row in enumerate(collection) if row.get("_id") == record_id or row.get("id") == record_id),
            None,
        )
        if request.method == "PUT":
            if index is None:
                collection.append(body)
            else:
                collection[index] = body
            return httpx.Response(200, json=body)
        if index is None:
            return httpx.Response(404, json={"message": "Not found"})
        if request.method == "DELETE":
            collection.pop(index)
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def http_client(fake_backend) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_backend.handler))


@pytest.fixture
def backend_client(http_client) -> BackendClient:
    return BackendClient(base_url=BASE_URL, http_client=http_client)


@pytest.fixture
def probe(backend_client) -> HealthProbe:
    return HealthProbe(backend_client)


@pytest.fixture
def audit() -> SyncAuditLogger:
    return SyncAuditLogger()


@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()
