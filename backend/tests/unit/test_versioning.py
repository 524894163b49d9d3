"""Unit tests for revisions and version snapshots"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from quoteflow.domain.documents.errors import PersistenceFailure, StaleRecord
from quoteflow.domain.documents.models import (
    ClientSnapshot,
    DocumentKind,
    DocumentQuery,
    DocumentRecord,
    EntityType,
    LineItem,
)
from quoteflow.domain.documents.totals import price_items
from quoteflow.domain.documents.versioning import (
    VersionManager,
    apply_patch,
    check_version_invariant,
    make_snapshot,
)
from quoteflow.infrastructure.repositories import InMemoryDocumentStore

EDITED_AT = datetime(2025, 4, 1, 12, 0, tzinfo=timezone.utc)


def stored_document(store) -> DocumentRecord:
    items, totals = price_items([LineItem(description="Design", quantity=Decimal("2"), unit_price=Decimal("100"))], "SAR")
    return store.put(DocumentRecord(
        owner_id=uuid4(),
        kind=DocumentKind.QUOTATION,
        document_number="QUO-2025-001",
        client=ClientSnapshot(name="Sara Al-Harbi"),
        items=items,
        totals=totals,
    ))


class TestApplyPatch:
    """Test field patches"""

    def test_items_are_repriced(self):
        document = DocumentRecord(owner_id=uuid4(), kind=DocumentKind.QUOTATION)

        apply_patch(document, {"items": [{"description": "Audit", "quantity": "3", "unit_price": "40"}]}, EDITED_AT)

        assert document.items[0].total == Decimal("120.00")
        assert document.totals.total == Decimal("120.00")
        assert document.updated_at == EDITED_AT

    def test_nested_parts_are_coerced(self):
        document = DocumentRecord(owner_id=uuid4(), kind=DocumentKind.QUOTATION)

        apply_patch(document, {"client": {"name": "Omar"}, "valid_until": "2025-05-01T00:00:00Z"})

        assert isinstance(document.client, ClientSnapshot)
        assert document.client.name == "Omar"
        assert document.valid_until == datetime(2025, 5, 1, tzinfo=timezone.utc)

    def test_engine_fields_cannot_be_patched(self):
        """Test status, number and version are not revisable"""
        document = DocumentRecord(owner_id=uuid4(), kind=DocumentKind.QUOTATION)

        with pytest.raises(ValueError, match="status"):
            apply_patch(document, {"status": "approved"})

    @pytest.mark.parametrize("currency", [None, "", "RIYAL"])
    def test_currency_must_stay_a_code(self, currency):
        """Test a bad currency rejects the whole patch before anything changes"""
        document = DocumentRecord(owner_id=uuid4(), kind=DocumentKind.QUOTATION, currency="SAR")

        with pytest.raises(ValueError, match="currency"):
            apply_patch(document, {"notes": "changed", "currency": currency})

        assert document.currency == "SAR"
        assert document.notes is None


class TestSnapshots:

    def test_snapshot_copies_state(self):
        store = InMemoryDocumentStore()
        document = stored_document(store)

        snapshot = make_snapshot(document)

        assert snapshot.id != document.id
        assert snapshot.snapshot_of == document.id
        assert snapshot.previous_versions == []
        assert snapshot.items == document.items
        assert snapshot.items is not document.items

    def test_version_invariant(self):
        document = DocumentRecord(owner_id=uuid4(), kind=DocumentKind.QUOTATION, version=2)

        with pytest.raises(PersistenceFailure):
            check_version_invariant(document)


class TestVersionManager:
    """Test VersionManager.apply_update"""

    def setup_method(self):
        self.store = InMemoryDocumentStore()
        self.manager = VersionManager(self.store)

    def test_update_without_versioning(self):
        current = stored_document(self.store)

        updated, snapshot = self.manager.apply_update(current, {"notes": "Updated"}, False, EDITED_AT)

        assert snapshot is None
        assert updated.version == 1
        assert updated.previous_versions == []
        assert self.store.get(EntityType.DOCUMENT, current.id).notes == "Updated"

    def test_versioned_update_from_version_two(self):
        """Test version 2 → 3 keeps two snapshots, the newest equal to the pre-update state"""
        current = stored_document(self.store)
        current, _ = self.manager.apply_update(current, {"notes": "v2"}, True, EDITED_AT)
        assert current.version == 2

        updated, snapshot = self.manager.apply_update(
            current,
            {"items": [{"description": "Design", "quantity": "5", "unit_price": "100"}]},
            True,
            EDITED_AT,
        )

        assert updated.version == 3
        assert len(updated.previous_versions) == 2
        assert updated.previous_versions[-1] == snapshot.id
        assert updated.totals.total == Decimal("500.00")

        stored_snapshot = self.store.get(EntityType.DOCUMENT, snapshot.id)
        assert stored_snapshot.version == 2
        assert stored_snapshot.notes == "v2"
        assert stored_snapshot.items == current.items
        assert stored_snapshot.totals == current.totals
        assert stored_snapshot.snapshot_of == current.id

    def test_current_is_not_modified(self):
        current = stored_document(self.store)

        self.manager.apply_update(current, {"notes": "changed"}, True, EDITED_AT)

        assert current.notes is None
        assert current.version == 1

    def test_stale_write_persists_nothing(self):
        """Test a concurrent write aborts both snapshot and update"""
        current = stored_document(self.store)
        concurrent = self.store.get(EntityType.DOCUMENT, current.id)
        concurrent.notes = "someone else"
        self.store.put(concurrent, expected_lock_version=concurrent.lock_version)

        with pytest.raises(StaleRecord):
            self.manager.apply_update(current, {"notes": "mine"}, True, EDITED_AT)

        stored = self.store.get(EntityType.DOCUMENT, current.id)
        assert stored.notes == "someone else"
        assert stored.version == 1
        assert stored.previous_versions == []
        assert self.store.count_matching(DocumentQuery(include_snapshots=True)) == 1

    def test_snapshot_cannot_be_revised(self):
        current = stored_document(self.store)
        _, snapshot = self.manager.apply_update(current, {}, True, EDITED_AT)

        with pytest.raises(PersistenceFailure):
            self.manager.apply_update(snapshot, {"notes": "rewrite history"}, False, EDITED_AT)

    def test_stored_snapshot_is_immutable(self):
        current = stored_document(self.store)
        _, snapshot = self.manager.apply_update(current, {}, True, EDITED_AT)
        snapshot.notes = "tampered"

        with pytest.raises(PersistenceFailure):
            self.store.put(snapshot)
