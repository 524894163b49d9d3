"""SQLAlchemy implementation of DocumentStorePort.

Works on PostgreSQL and SQLite. The store wraps one Session: the outermost
atomic() scope commits or rolls the session back, nested scopes are
savepoints. Writes issued outside any scope run in their own transaction.

Numbering counters live in document_counters and are incremented with a
single UPDATE ... RETURNING, so the row lock taken by the increment is what
serializes concurrent allocations for the same sequence.
"""

import logging
from collections import defaultdict
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...domain.documents.errors import DuplicateDocumentNumber, PersistenceFailure, StaleRecord
from ...domain.documents.models import (
    DocumentKind,
    DocumentQuery,
    DocumentRecord,
    EntityType,
    OwnerProfile,
    Totals,
    utcnow,
)
from ...domain.documents.ports import DocumentStorePort, Entity
from ...domain.templates.models import TemplateRecord
from ...models import Document, DocumentCounter, OwnerProfileRow, Template

logger = logging.getLogger(__name__)

documents = Document.__table__
templates = Template.__table__
owner_profiles = OwnerProfileRow.__table__
counters = DocumentCounter.__table__

DOCUMENT_JSON_FIELDS = (
    "client",
    "project",
    "items",
    "totals",
    "payment",
    "signature",
    "email_history",
    "view_history",
    "attachments",
    "previous_versions",
)


def document_to_row(document: DocumentRecord) -> Dict[str, Any]:
    data = document.to_dict()
    row = {name: data[name] for name in DOCUMENT_JSON_FIELDS}
    row.update(
        id=document.id,
        owner_id=document.owner_id,
        kind=document.kind.value,
        document_number=document.document_number,
        template_id=document.template_id,
        status=document.status.value,
        currency=document.currency,
        notes=document.notes,
        valid_until=document.valid_until,
        version=document.version,
        snapshot_of_id=document.snapshot_of,
        lock_version=document.lock_version,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )
    return row


def row_to_document(row) -> DocumentRecord:
    data = dict(row)
    data["snapshot_of"] = data.pop("snapshot_of_id")
    return DocumentRecord.from_dict(data)


def template_to_row(template: TemplateRecord) -> Dict[str, Any]:
    data = template.to_dict()
    return {
        "id": template.id,
        "owner_id": template.owner_id,
        "name": template.name,
        "description": template.description,
        "kind": template.kind.value,
        "is_public": template.is_public,
        "sections": data["sections"],
        "settings": data["settings"],
        "usage_count": template.usage_count,
        "tags": data["tags"],
        "created_at": template.created_at,
        "updated_at": template.updated_at,
    }


class SqlAlchemyDocumentStore(DocumentStorePort):
    """Persistence adapter over a SQLAlchemy Session."""

    def __init__(self, session: Session):
        self.session = session
        self._depth = 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                with self.session.begin_nested():
                    yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database transaction failed: {e}", exc_info=True)
            raise PersistenceFailure(f"Database error: {e}") from e
        except BaseException:
            self.session.rollback()
            raise
        finally:
            self._depth = 0

    def get(self, entity_type: EntityType, entity_id: UUID) -> Optional[Entity]:
        try:
            if entity_type == EntityType.DOCUMENT:
                row = self.session.execute(
                    select(documents).where(documents.c.id == entity_id)
                ).mappings().first()
                return row_to_document(row) if row else None

            if entity_type == EntityType.TEMPLATE:
                row = self.session.execute(
                    select(templates).where(templates.c.id == entity_id)
                ).mappings().first()
                return TemplateRecord.from_dict(dict(row)) if row else None

            row = self.session.execute(
                select(owner_profiles).where(owner_profiles.c.owner_id == entity_id)
            ).mappings().first()
            return OwnerProfile.from_dict(dict(row)) if row else None
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error: {e}") from e

    def put(self, entity: Entity, expected_lock_version: Optional[int] = None) -> Entity:
        with self.atomic():
            if isinstance(entity, DocumentRecord):
                self._put_document(entity, expected_lock_version)
            elif isinstance(entity, TemplateRecord):
                self._put_template(entity)
            elif isinstance(entity, OwnerProfile):
                self._put_profile(entity)
            else:
                raise PersistenceFailure(f"Unsupported entity type: {type(entity).__name__}")
        return entity

    def _put_document(self, document: DocumentRecord, expected_lock_version: Optional[int]) -> None:
        stored = self.session.execute(
            select(documents.c.lock_version, documents.c.snapshot_of_id).where(documents.c.id == document.id)
        ).first()

        if stored is None:
            document.lock_version = 0
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(documents).values(**document_to_row(document)))
            except IntegrityError as e:
                raise self._integrity_error(document, e) from e
            return

        if stored.snapshot_of_id is not None:
            raise PersistenceFailure(f"Snapshot {document.id} is immutable")

        condition = documents.c.id == document.id
        if expected_lock_version is not None:
            condition = condition & (documents.c.lock_version == expected_lock_version)

        new_lock_version = stored.lock_version + 1 if expected_lock_version is None else expected_lock_version + 1
        row = document_to_row(document)
        row["lock_version"] = new_lock_version
        del row["id"]

        try:
            with self.session.begin_nested():
                result = self.session.execute(update(documents).where(condition).values(**row))
        except IntegrityError as e:
            raise self._integrity_error(document, e) from e

        if result.rowcount == 0:
            actual = self.session.execute(
                select(documents.c.lock_version).where(documents.c.id == document.id)
            ).scalar_one_or_none()
            raise StaleRecord(document.id, expected_lock_version, actual)

        document.lock_version = new_lock_version

    def _integrity_error(self, document: DocumentRecord, error: IntegrityError) -> Exception:
        """Classify a failed document write after its savepoint rolled back.

        Only a live row of the same owner holding the same number is a
        numbering conflict; NOT NULL, CHECK and foreign key violations are
        persistence failures.
        """
        if not document.is_snapshot:
            holder = self.session.execute(
                select(documents.c.id).where(
                    documents.c.owner_id == document.owner_id,
                    documents.c.document_number == document.document_number,
                    documents.c.snapshot_of_id.is_(None),
                    documents.c.id != document.id,
                )
            ).first()
            if holder is not None:
                return DuplicateDocumentNumber(document.document_number)
        return PersistenceFailure(f"Could not store document {document.id}: {error.orig}")

    def _put_template(self, template: TemplateRecord) -> None:
        template.updated_at = utcnow()
        row = template_to_row(template)
        exists = self.session.execute(
            select(templates.c.id).where(templates.c.id == template.id)
        ).first()
        if exists:
            del row["id"]
            self.session.execute(update(templates).where(templates.c.id == template.id).values(**row))
        else:
            self.session.execute(insert(templates).values(**row))

    def _put_profile(self, profile: OwnerProfile) -> None:
        data = profile.to_dict()
        row = {
            "company": data["company"],
            "branding": data["branding"],
            "preferences": data["preferences"],
        }
        exists = self.session.execute(
            select(owner_profiles.c.owner_id).where(owner_profiles.c.owner_id == profile.owner_id)
        ).first()
        if exists:
            self.session.execute(
                update(owner_profiles).where(owner_profiles.c.owner_id == profile.owner_id).values(**row)
            )
        else:
            self.session.execute(insert(owner_profiles).values(owner_id=profile.owner_id, **row))

    def delete_document(self, document_id: UUID) -> bool:
        with self.atomic():
            # Snapshots first; SQLite only enforces ON DELETE CASCADE with foreign_keys=ON
            self.session.execute(delete(documents).where(documents.c.snapshot_of_id == document_id))
            result = self.session.execute(
                delete(documents).where(
                    documents.c.id == document_id,
                    documents.c.snapshot_of_id.is_(None),
                )
            )
            return result.rowcount > 0

    def _filtered(self, statement, query: DocumentQuery):
        if not query.include_snapshots:
            statement = statement.where(documents.c.snapshot_of_id.is_(None))
        if query.owner_id is not None:
            statement = statement.where(documents.c.owner_id == query.owner_id)
        if query.kind is not None:
            statement = statement.where(documents.c.kind == query.kind.value)
        if query.statuses is not None:
            statement = statement.where(documents.c.status.in_([s.value for s in query.statuses]))
        if query.created_from is not None:
            statement = statement.where(documents.c.created_at >= query.created_from)
        if query.created_before is not None:
            statement = statement.where(documents.c.created_at < query.created_before)
        return statement

    def count_matching(self, query: DocumentQuery) -> int:
        statement = self._filtered(select(func.count()).select_from(documents), query)
        try:
            return self.session.execute(statement).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error: {e}") from e

    def list_documents(self, query: DocumentQuery, limit: Optional[int] = None) -> List[DocumentRecord]:
        statement = self._filtered(select(documents), query).order_by(documents.c.created_at.desc())
        if limit is not None:
            statement = statement.limit(limit)
        try:
            return [row_to_document(row) for row in self.session.execute(statement).mappings()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error: {e}") from e

    def sum_totals(self, query: DocumentQuery) -> Dict[str, Decimal]:
        # totals is JSON with decimal strings; summed here to stay exact on both dialects
        statement = self._filtered(select(documents.c.currency, documents.c.totals), query)
        sums: Dict[str, Decimal] = defaultdict(Decimal)
        try:
            for currency, totals in self.session.execute(statement):
                sums[currency] += Totals.from_dict(totals).total
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error: {e}") from e
        return dict(sums)

    def list_templates(self, requester_id: UUID, kind: Optional[DocumentKind] = None) -> List[TemplateRecord]:
        statement = select(templates).where(
            or_(templates.c.owner_id == requester_id, templates.c.is_public.is_(True))
        )
        if kind is not None:
            statement = statement.where(templates.c.kind == kind.value)
        statement = statement.order_by(templates.c.created_at.desc())
        try:
            return [TemplateRecord.from_dict(dict(row)) for row in self.session.execute(statement).mappings()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Database error: {e}") from e

    def delete_template(self, template_id: UUID) -> bool:
        with self.atomic():
            result = self.session.execute(delete(templates).where(templates.c.id == template_id))
            return result.rowcount > 0

    def atomic_increment(self, counter_key: str) -> int:
        with self.atomic():
            value = self._increment(counter_key)
            if value is not None:
                return value
            try:
                with self.atomic():
                    self.session.execute(insert(counters).values(key=counter_key, value=1))
                return 1
            except IntegrityError:
                # Another transaction created the counter first
                value = self._increment(counter_key)
                if value is None:
                    raise PersistenceFailure(f"Counter {counter_key} could not be incremented")
                return value

    def _increment(self, counter_key: str) -> Optional[int]:
        return self.session.execute(
            update(counters)
            .where(counters.c.key == counter_key)
            .values(value=counters.c.value + 1)
            .returning(counters.c.value)
        ).scalar_one_or_none()
