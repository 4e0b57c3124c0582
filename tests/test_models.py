"""
Tests for finsync

Test strategy:
1. Unit tests for individual components (models, engine, validator)
2. Integration tests for the store and sync flows against a fake backend
3. No real network calls in tests (httpx.MockTransport)
"""

import pytest

from finsync.models import (
    BudgetItem,
    FinancialSummaryItem,
    ProjectItem,
    ProjectTrackingItem,
    RecordKindName,
    SubscriptionModelItem,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
    get_kind,
    is_temp_id,
)
from finsync.models.kinds import FieldRole, initial_rows


class TestRecordModels:
    """Tests for the table row models."""

    def test_wire_form_is_camel_case(self):
        """Test that rows serialize with the backend's field names."""
        item = BudgetItem(id="b1", sr_no=1, monthly_cost=1000)
        wire = item.to_wire()
        assert wire["srNo"] == 1
        assert wire["monthlyCost"] == 1000.0
        assert "halfYearlyCost" in wire
        assert "monthly_cost" not in wire

    def test_accepts_camel_case_input(self):
        """Test that wire dicts validate directly."""
        item = ProjectTrackingItem.model_validate({"id": "p1", "devName": "Asha", "startDate": "01/04/2025"})
        assert item.dev_name == "Asha"
        assert item.start_date == "01/04/2025"

    def test_backend_id_is_adopted(self):
        """Test that a document-store `_id` becomes `id`."""
        item = ProjectItem.model_validate({"_id": "64f0c0ffee", "projectName": "CRM"})
        assert item.id == "64f0c0ffee"
        assert "_id" not in item.to_wire()

    def test_lenient_numbers_on_ingest(self):
        """Test that garbage numbers from storage become 0 instead of failing."""
        item = ProjectItem.model_validate({"id": "p1", "dev": "n/a", "extra": None, "invest": "250"})
        assert item.dev == 0.0
        assert item.extra == 0.0
        assert item.invest == 250.0

    def test_unknown_columns_are_preserved(self):
        """Test that dynamic budget columns survive a round trip."""
        item = BudgetItem.model_validate({"id": "b1", "Q1": 12.5})
        assert item.to_wire()["Q1"] == 12.5

    def test_resources_kept_as_text(self):
        """Test that head count is stored as entered."""
        item = ProjectTrackingItem.model_validate({"id": "p1", "resources": 2.0})
        assert item.resources == "2"

    def test_id_required(self):
        """Test that an empty id is rejected."""
        with pytest.raises(ValueError):
            ProjectItem(id="")

    def test_subscription_date_defaults_to_now(self):
        """Test that new subscription plans get an epoch-millisecond date."""
        item = SubscriptionModelItem(id="s1")
        assert item.get_subscription_date > 1_600_000_000_000

    def test_financial_summary_item(self):
        """Test that a summary line is just a category and an amount."""
        item = FinancialSummaryItem.model_validate({"_id": "f1", "category": "Tax", "amount": "12.5"})
        assert item.to_wire() == {"id": "f1", "category": "Tax", "amount": 12.5}

    def test_temp_ids(self):
        """Test temporary id detection."""
        assert is_temp_id("temp_abc")
        assert not is_temp_id("64f0c0ffee")
        assert not is_temp_id(None)
        assert ProjectItem(id="temp_1").is_temporary


class TestRecordKinds:
    """Tests for the kind registry."""

    def test_every_kind_registered(self):
        """Test that every kind name has a descriptor."""
        for name in RecordKindName:
            assert get_kind(name).name == name

    def test_lookup_by_string(self):
        """Test lookup by the kind's string value."""
        kind = get_kind("project-tracking")
        assert kind.resource == "project-tracking"
        assert kind.storage_key == "projectTrackingData"
        assert kind.sequence_field == "slNo"

    def test_unknown_kind(self):
        """Test that an unknown kind raises ValueError."""
        with pytest.raises(ValueError):
            get_kind("invoices")

    def test_financial_summary_kind(self):
        """Test the financial summary's storage names, columns and starting rows."""
        kind = get_kind("financial-summary")
        assert kind.resource == "financial-summary"
        assert kind.storage_key == "financialSummaryData"
        assert kind.sequence_field is None
        assert kind.role_of("amount") == FieldRole.NUMERIC
        assert kind.derives_profit_rows
        rows = initial_rows(kind)
        assert len(rows) == 6
        assert rows[-1]["category"] == "Total Profit 2025"
        assert initial_rows(get_kind("projects")) == []

    def test_field_resolution(self):
        """Test that both attribute and wire names resolve."""
        kind = get_kind("budget")
        assert kind.resolve_field("monthly_cost") == "monthlyCost"
        assert kind.resolve_field("monthlyCost") == "monthlyCost"
        assert kind.resolve_field("nope") is None

    def test_field_roles(self):
        """Test the role of each kind of column."""
        kind = get_kind("project-tracking")
        assert kind.role_of("id") == FieldRole.IDENTITY
        assert kind.role_of("slNo") == FieldRole.SEQUENCE
        assert kind.role_of("startDate") == FieldRole.DATE
        assert kind.role_of("salary") == FieldRole.NUMERIC
        assert kind.role_of("devName") == FieldRole.TEXT
        assert kind.role_of("hoursDays") == FieldRole.DERIVED

    def test_subscription_derivation_trigger(self):
        """Test that only monthly revenue re-derives subscription rows."""
        kind = get_kind("subscription-revenue")
        assert kind.triggers_derivation("projectedMonthlyRevenue")
        assert not kind.triggers_derivation("profit")
        assert get_kind("projects").triggers_derivation("status")


class TestSyncEvents:
    """Tests for audit event models."""

    def test_sync_failed_event(self):
        """Test the sync failure event."""
        event = SyncEventBuilder.sync_failed("projects", "abc", "update", "HTTP 500")
        assert event.event_type == SyncEventType.SYNC_FAILED
        assert event.severity == SyncSeverity.ERROR
        assert event.error_message == "HTTP 500"

    def test_bootstrap_event_type_follows_source(self):
        """Test that the bootstrap event type follows where data came from."""
        assert SyncEventBuilder.bootstrapped("projects", "remote", 3).event_type == SyncEventType.BOOTSTRAP_REMOTE
        assert SyncEventBuilder.bootstrapped("projects", "local", 3).event_type == SyncEventType.BOOTSTRAP_LOCAL
        event = SyncEventBuilder.bootstrapped("projects", "empty", 0, "offline")
        assert event.event_type == SyncEventType.BOOTSTRAP_EMPTY
        assert event.severity == SyncSeverity.WARNING

    def test_to_log_dict(self):
        """Test conversion to a log dictionary."""
        event = SyncEventBuilder.id_reconciled("projects", "temp_1", "srv-1")
        data = event.to_log_dict()
        assert data["event_type"] == "id_reconciled"
        assert data["details"] == {"temp_id": "temp_1", "canonical_id": "srv-1"}
        assert isinstance(data["event_id"], str)
