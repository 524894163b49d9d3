"""In-memory implementation of DocumentStorePort.

Thread-safe and transactional: a thread holding an atomic() scope has
exclusive access to the store until the outermost scope exits, and every
scope (outer or nested) restores the state it started from if it exits with
an exception. Used by the unit tests and for local runs without a database.
"""

import copy
import threading
from contextlib import contextmanager
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple
from uuid import UUID

from ...domain.documents.errors import DuplicateDocumentNumber, PersistenceFailure, StaleRecord
from ...domain.documents.models import DocumentKind, DocumentQuery, DocumentRecord, EntityType, OwnerProfile, utcnow
from ...domain.documents.ports import DocumentStorePort, Entity
from ...domain.templates.models import TemplateRecord


class InMemoryDocumentStore(DocumentStorePort):
    """Dict-backed store; entities are deep-copied on the way in and out."""

    def __init__(self):
        self._lock = threading.RLock()
        self._documents: Dict[UUID, DocumentRecord] = {}
        self._templates: Dict[UUID, TemplateRecord] = {}
        self._profiles: Dict[UUID, OwnerProfile] = {}
        self._counters: Dict[str, int] = {}

    def _tables(self, entity_type: EntityType) -> dict:
        return {
            EntityType.DOCUMENT: self._documents,
            EntityType.TEMPLATE: self._templates,
            EntityType.OWNER_PROFILE: self._profiles,
        }[entity_type]

    def _state(self) -> Tuple[dict, ...]:
        return tuple(copy.deepcopy(t) for t in (self._documents, self._templates, self._profiles, self._counters))

    def _restore(self, state: Tuple[dict, ...]) -> None:
        self._documents, self._templates, self._profiles, self._counters = state

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            saved = self._state()
            try:
                yield
            except BaseException:
                self._restore(saved)
                raise

    def get(self, entity_type: EntityType, entity_id: UUID) -> Optional[Entity]:
        with self._lock:
            entity = self._tables(entity_type).get(entity_id)
            return copy.deepcopy(entity)

    def put(self, entity: Entity, expected_lock_version: Optional[int] = None) -> Entity:
        with self._lock:
            if isinstance(entity, DocumentRecord):
                self._put_document(entity, expected_lock_version)
            elif isinstance(entity, TemplateRecord):
                entity.updated_at = utcnow()
                self._templates[entity.id] = copy.deepcopy(entity)
            elif isinstance(entity, OwnerProfile):
                self._profiles[entity.owner_id] = copy.deepcopy(entity)
            else:
                raise PersistenceFailure(f"Unsupported entity type: {type(entity).__name__}")
            return entity

    def _put_document(self, document: DocumentRecord, expected_lock_version: Optional[int]) -> None:
        stored = self._documents.get(document.id)

        if stored is not None and stored.is_snapshot:
            raise PersistenceFailure(f"Snapshot {document.id} is immutable")

        if stored is not None and expected_lock_version is not None and stored.lock_version != expected_lock_version:
            raise StaleRecord(document.id, expected_lock_version, stored.lock_version)

        if not document.is_snapshot and document.document_number:
            for other in self._documents.values():
                if (
                    other.id != document.id
                    and not other.is_snapshot
                    and other.owner_id == document.owner_id
                    and other.document_number == document.document_number
                ):
                    raise DuplicateDocumentNumber(document.document_number)

        if document.is_snapshot and document.snapshot_of not in self._documents:
            raise PersistenceFailure(f"Snapshot {document.id} refers to unknown document {document.snapshot_of}")

        document.lock_version = (stored.lock_version + 1) if stored is not None else 0
        self._documents[document.id] = copy.deepcopy(document)

    def delete_document(self, document_id: UUID) -> bool:
        with self._lock:
            stored = self._documents.get(document_id)
            if stored is None or stored.is_snapshot:
                return False
            del self._documents[document_id]
            for snapshot_id in [d.id for d in self._documents.values() if d.snapshot_of == document_id]:
                del self._documents[snapshot_id]
            return True

    def count_matching(self, query: DocumentQuery) -> int:
        with self._lock:
            return sum(1 for d in self._documents.values() if query.matches(d))

    def list_documents(self, query: DocumentQuery, limit: Optional[int] = None) -> List[DocumentRecord]:
        with self._lock:
            found = sorted(
                (d for d in self._documents.values() if query.matches(d)),
                key=lambda d: d.created_at,
                reverse=True,
            )
            return copy.deepcopy(found[:limit] if limit is not None else found)

    def sum_totals(self, query: DocumentQuery) -> Dict[str, Decimal]:
        sums: Dict[str, Decimal] = defaultdict(Decimal)
        with self._lock:
            for document in self._documents.values():
                if query.matches(document):
                    sums[document.currency] += document.totals.total
        return dict(sums)

    def list_templates(self, requester_id: UUID, kind: Optional[DocumentKind] = None) -> List[TemplateRecord]:
        with self._lock:
            found = [
                t for t in self._templates.values()
                if (t.owner_id == requester_id or t.is_public) and (kind is None or t.kind == kind)
            ]
            return copy.deepcopy(sorted(found, key=lambda t: t.created_at, reverse=True))

    def delete_template(self, template_id: UUID) -> bool:
        with self._lock:
            return self._templates.pop(template_id, None) is not None

    def atomic_increment(self, counter_key: str) -> int:
        with self._lock:
            value = self._counters.get(counter_key, 0) + 1
            self._counters[counter_key] = value
            return value

    def counter_value(self, counter_key: str) -> int:
        with self._lock:
            return self._counters.get(counter_key, 0)
