"""Persistence Port - Domain interface for document, template and counter storage.

Adapters must implement this interface; the lifecycle engine never talks to a
database directly.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Dict, List, Optional, Union
from uuid import UUID

from ..models import DocumentKind, DocumentQuery, DocumentRecord, EntityType, OwnerProfile
from ...templates.models import TemplateRecord

Entity = Union[DocumentRecord, TemplateRecord, OwnerProfile]


class DocumentStorePort(ABC):
    """Port interface for lifecycle persistence.

    Key Design Principles:
    - get() returns detached copies; mutating them never changes stored state
    - put() inserts or updates; updates can be guarded by expected_lock_version
    - Live document numbers are unique per owner; snapshots are insert-only
    - atomic_increment() is the only way numbering sequences are produced
    - atomic() scopes several calls into one all-or-nothing transaction and may
      be nested (inner scopes roll back independently, like savepoints)

    Example Usage:
        with store.atomic():
            snapshot_id = store.put(snapshot).id
            store.put(live, expected_lock_version=live_lock)
    """

    @abstractmethod
    def get(self, entity_type: EntityType, entity_id: UUID) -> Optional[Entity]:
        """Load an entity by id.

        Args:
            entity_type: Entity family (document, template, owner_profile)
            entity_id: Entity id (owner id for owner profiles)

        Returns:
            Detached copy of the entity, or None if it does not exist
        """
        pass

    @abstractmethod
    def put(self, entity: Entity, expected_lock_version: Optional[int] = None) -> Entity:
        """Insert or update an entity.

        For documents the store bumps entity.lock_version on success.

        Args:
            entity: Entity to persist
            expected_lock_version: For document updates, the lock_version the
                writer read; None skips the check

        Returns:
            The persisted entity (same object, lock_version updated)

        Raises:
            DuplicateDocumentNumber: Another live document of the same owner has this number
            StaleRecord: expected_lock_version does not match the stored row
            PersistenceFailure: Backend failure, or an attempt to modify a snapshot
        """
        pass

    @abstractmethod
    def delete_document(self, document_id: UUID) -> bool:
        """Delete a live document and, by cascade, its snapshots.

        Returns:
            True if a document was deleted
        """
        pass

    @abstractmethod
    def count_matching(self, query: DocumentQuery) -> int:
        """Count documents matching a predicate."""
        pass

    @abstractmethod
    def list_documents(self, query: DocumentQuery, limit: Optional[int] = None) -> List[DocumentRecord]:
        """Documents matching a predicate, newest (created_at) first."""
        pass

    @abstractmethod
    def sum_totals(self, query: DocumentQuery) -> Dict[str, Decimal]:
        """Sum totals.total of matching documents, grouped by currency code."""
        pass

    @abstractmethod
    def list_templates(self, requester_id: UUID, kind: Optional[DocumentKind] = None) -> List[TemplateRecord]:
        """Templates owned by requester_id or public, newest first."""
        pass

    @abstractmethod
    def delete_template(self, template_id: UUID) -> bool:
        """Delete a template. Documents keep their weak template_id.

        Returns:
            True if a template was deleted
        """
        pass

    @abstractmethod
    def atomic_increment(self, counter_key: str) -> int:
        """Atomically increment a named counter and return the new value.

        The first increment of an unknown key returns 1. Two concurrent callers
        never observe the same value.
        """
        pass

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """Transaction scope: every write inside commits together or not at all."""
        pass
