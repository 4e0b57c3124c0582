"""Tests for debounced per-record sync."""

import asyncio

import pytest

from finsync.models import get_kind
from finsync.models.audit import SyncEventType
from finsync.models.records import SyncOperation
from finsync.store import OptimisticStateStore
from finsync.sync import SyncScheduler

RESOURCE_PATH = "/api/budget-section-items"


@pytest.fixture
def scheduler(backend_client, probe, audit):
    return SyncScheduler(get_kind("budget"), backend_client, probe, audit=audit, delay=0.02)


@pytest.fixture
def store(scheduler, audit):
    store = OptimisticStateStore("budget", scheduler=scheduler, audit=audit)
    store.replace_all([{"id": "b1", "section": "Office", "category": "Rent", "monthlyCost": 100}], persist=False)
    return store


def event_types(audit):
    return [event.event_type for event in audit.recent()]


class TestCoalescing:
    """A burst of edits becomes one request with the last state."""

    @pytest.mark.asyncio
    async def test_three_edits_one_put(self, store, scheduler, fake_backend):
        """Test that three quick edits send one PUT with the last values."""
        for value in (100, 200, 300):
            store.mutate_field(0, "monthlyCost", value)
        assert scheduler.pending_count == 1

        await asyncio.sleep(0.08)
        await scheduler.drain()

        puts = fake_backend.calls("PUT")
        assert len(puts) == 1
        method, path, body = puts[0]
        assert path == f"{RESOURCE_PATH}/b1"
        assert body["id"] == "b1"
        assert body["monthlyCost"] == 300.0
        assert body["annualCost"] == 3600.0

    @pytest.mark.asyncio
    async def test_delete_cancels_pending_update(self, store, scheduler, fake_backend):
        """Test that a delete replaces a pending update."""
        fake_backend.collections["budget-section-items"] = [{"_id": "b1"}]
        store.mutate_field(0, "monthlyCost", 500)
        store.remove_record(0)
        await scheduler.flush()
        assert fake_backend.requests == [("DELETE", f"{RESOURCE_PATH}/b1", None)]


class TestTemporaryIds:
    @pytest.mark.asyncio
    async def test_create_reconciles_id(self, store, scheduler, fake_backend, audit):
        """Test that a create posts without the temporary id and adopts the backend's."""
        record = store.add_record({"monthlyCost": 50, "category": "Laptop"}, section="Office")
        assert record.is_temporary
        assert scheduler.pending(record.id, SyncOperation.CREATE) is not None

        await scheduler.flush()

        posts = fake_backend.calls("POST")
        assert len(posts) == 1
        assert posts[0][1] == f"{RESOURCE_PATH}/item"
        assert "id" not in posts[0][2]
        assert posts[0][2]["annualCost"] == 600.0
        assert store[1].id == "srv-1"
        assert store.index_of(record.id) is None
        assert SyncEventType.ID_RECONCILED in event_types(audit)

    @pytest.mark.asyncio
    async def test_update_folds_into_pending_create(self, store, scheduler, fake_backend):
        """Test that an update to an unsent record travels in its create."""
        store.add_record({"category": "Laptop"}, section="Office")
        store.mutate_field(1, "monthlyCost", 75)
        assert scheduler.pending_count == 1

        await scheduler.flush()

        assert len(fake_backend.calls("POST")) == 1
        assert fake_backend.calls("POST")[0][2]["monthlyCost"] == 75.0
        assert fake_backend.calls("PUT") == []

    @pytest.mark.asyncio
    async def test_delete_of_unsent_record_sends_nothing(self, store, scheduler, fake_backend, audit):
        """Test that deleting an unsent record cancels its create."""
        store.add_record({"category": "Laptop"}, section="Office")
        store.remove_record(1)
        await scheduler.flush()

        assert fake_backend.requests == []
        assert fake_backend.health_checks == []
        assert SyncEventType.SYNC_SKIPPED in event_types(audit)

    @pytest.mark.asyncio
    async def test_update_waits_for_in_flight_create(self, store, scheduler, fake_backend):
        """Test that an update waits for the canonical id of an in-flight create."""
        fake_backend.create_gate = asyncio.Event()
        record = store.add_record({"category": "Laptop"}, section="Office")
        await asyncio.sleep(0.06)
        assert len(fake_backend.calls("POST")) == 1

        store.mutate_field(1, "monthlyCost", 99)
        await asyncio.sleep(0.06)
        assert fake_backend.calls("PUT") == []

        fake_backend.create_gate.set()
        await scheduler.drain()

        assert store.index_of(record.id) is None
        puts = fake_backend.calls("PUT")
        assert len(puts) == 1
        assert puts[0][1] == f"{RESOURCE_PATH}/srv-1"
        assert puts[0][2]["id"] == "srv-1"
        assert puts[0][2]["monthlyCost"] == 99.0

    @pytest.mark.asyncio
    async def test_delete_waits_for_in_flight_create(self, store, scheduler, fake_backend):
        """Test that a delete of an in-flight create is sent to the canonical id."""
        fake_backend.create_gate = asyncio.Event()
        store.add_record({"category": "Laptop"}, section="Office")
        await asyncio.sleep(0.06)
        assert len(fake_backend.calls("POST")) == 1

        store.remove_record(1)
        await asyncio.sleep(0.06)
        assert fake_backend.calls("DELETE") == []

        fake_backend.create_gate.set()
        await scheduler.drain()

        assert [call[1] for call in fake_backend.calls("DELETE")] == [f"{RESOURCE_PATH}/srv-1"]
        assert fake_backend.collections["budget-section-items"] == []
        assert [r.id for r in store.records] == ["b1"]
        assert scheduler.last_error is None

    @pytest.mark.asyncio
    async def test_pending_update_rekeyed_after_create(self, backend_client, probe, audit, fake_backend):
        """Test that a pending update moves to the canonical id."""
        scheduler = SyncScheduler(get_kind("budget"), backend_client, probe, audit=audit, delay=0.05)
        store = OptimisticStateStore("budget", scheduler=scheduler, audit=audit)
        fake_backend.create_gate = asyncio.Event()

        store.add_record({"category": "Laptop"})
        await asyncio.sleep(0.1)
        store.mutate_field(0, "monthlyCost", 10)
        fake_backend.create_gate.set()
        await asyncio.sleep(0.02)

        assert store[0].id == "srv-1"
        assert scheduler.pending("srv-1", SyncOperation.UPDATE)["monthlyCost"] == 10.0

        await scheduler.flush()
        assert [call[1] for call in fake_backend.calls("PUT")] == [f"{RESOURCE_PATH}/srv-1"]

    @pytest.mark.asyncio
    async def test_failed_create_skips_later_work(self, store, scheduler, fake_backend, audit):
        """Test that work for a record whose create failed is skipped."""
        fake_backend.fail_status["POST"] = 500
        record = store.add_record({"category": "Laptop"}, section="Office")
        await scheduler.flush()

        assert store[1].id == record.id
        assert scheduler.last_error.operation == SyncOperation.CREATE

        store.mutate_field(1, "monthlyCost", 5)
        await scheduler.flush()
        assert fake_backend.calls("PUT") == []
        skipped = [e for e in audit.recent() if e.event_type == SyncEventType.SYNC_SKIPPED]
        assert "no backend id" in skipped[0].description


class TestFailures:
    """Remote failures never undo local state."""

    @pytest.mark.asyncio
    async def test_unavailable_backend_skips_request(self, store, scheduler, fake_backend, audit):
        """Test that an unhealthy backend drops the request."""
        fake_backend.healthy = False
        store.mutate_field(0, "monthlyCost", 250)
        await scheduler.flush()

        assert fake_backend.requests == []
        assert len(fake_backend.health_checks) == 1
        assert store[0].monthly_cost == 250.0
        assert SyncEventType.SYNC_SKIPPED in event_types(audit)

    @pytest.mark.asyncio
    async def test_failed_update_is_logged_not_rolled_back(self, store, scheduler, fake_backend, audit):
        """Test that a failed update is audited and the edit kept."""
        fake_backend.fail_status["PUT"] = 500
        store.mutate_field(0, "monthlyCost", 250)
        await scheduler.flush()

        assert store[0].monthly_cost == 250.0
        assert store[0].annual_cost == 3000.0
        assert scheduler.last_error.record_id == "b1"
        assert str(scheduler.last_error) == "Server exploded"
        failures = audit.failures()
        assert len(failures) == 1
        assert failures[0].operation == "update"

    @pytest.mark.asyncio
    async def test_delete_of_missing_record_is_logged(self, store, scheduler, fake_backend, audit):
        """Test that a 404 on delete is audited as a failure and nothing else changes."""
        store.remove_record(0)
        await scheduler.flush()

        assert fake_backend.requests == [("DELETE", f"{RESOURCE_PATH}/b1", None)]
        assert len(store) == 0
        assert scheduler.last_error.operation == SyncOperation.DELETE
        assert scheduler.last_error.record_id == "b1"
        assert str(scheduler.last_error) == "Not found"
        failures = audit.failures()
        assert len(failures) == 1
        assert failures[0].operation == "delete"

    @pytest.mark.asyncio
    async def test_network_error_is_logged(self, store, scheduler, fake_backend, audit):
        """Test that a network error stops the request at the health check."""
        fake_backend.network_error = True
        store.mutate_field(0, "monthlyCost", 250)
        await scheduler.flush()

        # The probe itself fails, so nothing is attempted
        assert fake_backend.requests == []
        assert store[0].monthly_cost == 250.0

    @pytest.mark.asyncio
    async def test_aclose_drops_pending_work(self, store, scheduler, fake_backend):
        """Test that closing cancels work that has not been sent."""
        store.mutate_field(0, "monthlyCost", 250)
        await scheduler.aclose()
        await asyncio.sleep(0.05)
        assert fake_backend.requests == []
