"""Unit tests for document number allocation"""

import threading
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from quoteflow.domain.documents.errors import DuplicateDocumentNumber, NumberingConflict
from quoteflow.domain.documents.models import DocumentKind, DocumentRecord, EntityType, OwnerProfile
from quoteflow.domain.documents.numbering import NumberingAllocator, counter_key, format_document_number
from quoteflow.infrastructure.repositories import InMemoryDocumentStore

MARCH_2025 = datetime(2025, 3, 15, tzinfo=timezone.utc)


class TestFormatDocumentNumber:
    """Test number formatting"""

    def test_pads_to_three_digits(self):
        assert format_document_number("QUO", 2025, 1) == "QUO-2025-001"
        assert format_document_number("INV", 2025, 42) == "INV-2025-042"

    def test_grows_beyond_three_digits(self):
        """Test sequences above 999 are not truncated"""
        assert format_document_number("QUO", 2025, 1000) == "QUO-2025-1000"

    def test_counter_key(self):
        owner = uuid4()
        assert counter_key(owner, DocumentKind.INVOICE, 2025) == f"numbering:{owner}:invoice:2025"


class TestNumberingAllocator:
    """Test NumberingAllocator against the in-memory store"""

    def setup_method(self):
        self.store = InMemoryDocumentStore()
        self.allocator = NumberingAllocator(self.store)
        self.owner_id = uuid4()

    def test_sequential_numbers(self):
        """Test consecutive allocations for one owner, kind and year"""
        first = self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, MARCH_2025)
        second = self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, MARCH_2025)

        assert first == "QUO-2025-001"
        assert second == "QUO-2025-002"

    def test_default_prefixes_per_kind(self):
        """Test each kind has its own prefix and sequence"""
        assert self.allocator.allocate(self.owner_id, DocumentKind.INVOICE, MARCH_2025) == "INV-2025-001"
        assert self.allocator.allocate(self.owner_id, DocumentKind.PROPOSAL, MARCH_2025) == "PRO-2025-001"
        assert self.allocator.allocate(self.owner_id, DocumentKind.CONTRACT, MARCH_2025) == "DOC-2025-001"
        assert self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, MARCH_2025) == "QUO-2025-001"

    def test_sequence_restarts_each_year(self):
        """Test the year is part of the sequence key"""
        self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, MARCH_2025)
        next_year = datetime(2026, 1, 2, tzinfo=timezone.utc)

        assert self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, next_year) == "QUO-2026-001"

    def test_owners_have_separate_sequences(self):
        """Test two owners both start at 001"""
        other_owner = uuid4()
        self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, MARCH_2025)

        assert self.allocator.allocate(other_owner, DocumentKind.QUOTATION, MARCH_2025) == "QUO-2025-001"

    def test_owner_prefix_from_preferences(self):
        """Test numbering_prefixes in the owner profile override the default"""
        profile = OwnerProfile.default(self.owner_id)
        profile.preferences.numbering_prefixes = {"quotation": "Q"}
        self.store.put(profile)

        assert self.allocator.allocate(self.owner_id, DocumentKind.QUOTATION, MARCH_2025) == "Q-2025-001"
        assert self.allocator.allocate(self.owner_id, DocumentKind.INVOICE, MARCH_2025) == "INV-2025-001"

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            NumberingAllocator(self.store, max_attempts=0)


class TestAssign:
    """Test assign(): allocate and persist with retry"""

    def setup_method(self):
        self.store = InMemoryDocumentStore()
        self.allocator = NumberingAllocator(self.store, max_attempts=3)
        self.owner_id = uuid4()

    def _persist_for(self, document: DocumentRecord):
        def persist(number: str) -> DocumentRecord:
            document.document_number = number
            return self.store.put(document)
        return persist

    def test_assign_persists_document(self):
        """Test the returned document carries the allocated number"""
        document = DocumentRecord(owner_id=self.owner_id, kind=DocumentKind.QUOTATION)

        saved = self.allocator.assign(self.owner_id, DocumentKind.QUOTATION, MARCH_2025, self._persist_for(document))

        assert saved.document_number == "QUO-2025-001"
        assert self.store.get(EntityType.DOCUMENT, saved.id).document_number == "QUO-2025-001"

    def test_retries_past_taken_number(self):
        """Test a number the owner already holds on another live document is skipped"""
        # Imported document that already uses the first number of the sequence
        self.store.put(DocumentRecord(
            owner_id=self.owner_id, kind=DocumentKind.QUOTATION, document_number="QUO-2025-001",
        ))
        document = DocumentRecord(owner_id=self.owner_id, kind=DocumentKind.QUOTATION)

        saved = self.allocator.assign(self.owner_id, DocumentKind.QUOTATION, MARCH_2025, self._persist_for(document))

        assert saved.document_number == "QUO-2025-002"
        assert self.store.counter_value(counter_key(self.owner_id, DocumentKind.QUOTATION, 2025)) == 2

    def test_conflict_after_budget_rolls_back_counter(self):
        """Test exhausting the attempts raises and leaves no trace"""
        attempted = []

        def always_taken(number: str):
            attempted.append(number)
            raise DuplicateDocumentNumber(number)

        with pytest.raises(NumberingConflict) as exc_info:
            self.allocator.assign(self.owner_id, DocumentKind.INVOICE, MARCH_2025, always_taken)

        assert attempted == ["INV-2025-001", "INV-2025-002", "INV-2025-003"]
        assert exc_info.value.attempts == 3
        assert self.store.counter_value(counter_key(self.owner_id, DocumentKind.INVOICE, 2025)) == 0

    def test_other_errors_propagate(self):
        """Test only duplicate numbers are retried"""
        calls = []

        def broken(number: str):
            calls.append(number)
            raise RuntimeError("disk full")

        with pytest.raises(RuntimeError):
            self.allocator.assign(self.owner_id, DocumentKind.QUOTATION, MARCH_2025, broken)

        assert calls == ["QUO-2025-001"]
        assert self.store.counter_value(counter_key(self.owner_id, DocumentKind.QUOTATION, 2025)) == 0


class TestConcurrentAllocation:
    """Test concurrent callers never share a number"""

    def test_parallel_assign_is_gap_free(self):
        store = InMemoryDocumentStore()
        allocator = NumberingAllocator(store)
        owner_id = uuid4()
        numbers = []
        errors = []
        lock = threading.Lock()

        def worker():
            try:
                for _ in range(5):
                    document = DocumentRecord(owner_id=owner_id, kind=DocumentKind.QUOTATION)

                    def persist(number, document=document):
                        document.document_number = number
                        return store.put(document)

                    saved = allocator.assign(owner_id, DocumentKind.QUOTATION, MARCH_2025, persist)
                    with lock:
                        numbers.append(saved.document_number)
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(numbers) == [format_document_number("QUO", 2025, i) for i in range(1, 41)]
