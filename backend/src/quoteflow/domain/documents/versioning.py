"""Document revisions and immutable version snapshots.

A versioned revision copies the document as it was before the edit into a new
snapshot record, links it from previous_versions and bumps version. Snapshot
and live update are written in one persistence transaction.
"""

import copy
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ...observability.metrics import snapshots_total
from .errors import PersistenceFailure
from .models import (
    ClientSnapshot,
    DocumentRecord,
    LineItem,
    PaymentTerms,
    ProjectInfo,
    Signature,
    to_datetime,
    to_uuid,
    utcnow,
)
from .ports import DocumentStorePort
from .totals import price_items

logger = logging.getLogger(__name__)

# Fields a revision may change. Identity, number, status, history and
# version bookkeeping are owned by the engine.
PATCHABLE_FIELDS = frozenset({
    "template_id",
    "client",
    "project",
    "items",
    "currency",
    "payment",
    "valid_until",
    "notes",
    "attachments",
    "signature",
})


def _coerce_items(value: Any) -> List[LineItem]:
    return [i if isinstance(i, LineItem) else LineItem.from_dict(i) for i in value or []]


def _coerce_currency(value: Any) -> str:
    if not isinstance(value, str) or len(value) != 3:
        raise ValueError(f"currency must be a 3-letter code, got {value!r}")
    return value


_COERCERS = {
    "template_id": to_uuid,
    "client": lambda v: v if isinstance(v, ClientSnapshot) else ClientSnapshot.from_dict(v),
    "project": lambda v: v if isinstance(v, ProjectInfo) else ProjectInfo.from_dict(v),
    "items": _coerce_items,
    "currency": _coerce_currency,
    "payment": lambda v: v if isinstance(v, PaymentTerms) else PaymentTerms.from_dict(v),
    "valid_until": to_datetime,
    "attachments": lambda v: list(v or []),
    "signature": lambda v: v if isinstance(v, Signature) else Signature.from_dict(v),
}


def make_snapshot(document: DocumentRecord) -> DocumentRecord:
    """Deep copy of a live document as a new, unlinked snapshot record."""
    snapshot = copy.deepcopy(document)
    return replace(
        snapshot,
        id=uuid4(),
        previous_versions=[],
        snapshot_of=document.id,
        lock_version=0,
    )


def apply_patch(document: DocumentRecord, patch: Dict[str, Any], now: Optional[datetime] = None) -> DocumentRecord:
    """Apply a field patch in place and return the document.

    Totals are recomputed when items or currency change.

    Raises:
        ValueError: If the patch names a field that cannot be revised, or
            sets currency to something other than a 3-letter code
    """
    unknown = set(patch) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be revised: {sorted(unknown)}")

    coerced = {
        name: _COERCERS[name](value) if name in _COERCERS else value
        for name, value in patch.items()
    }
    for name, value in coerced.items():
        setattr(document, name, value)

    if "items" in patch or "currency" in patch:
        document.items, document.totals = price_items(document.items, document.currency)
    document.updated_at = now or utcnow()
    return document


def check_version_invariant(document: DocumentRecord) -> None:
    if document.version != len(document.previous_versions) + 1:
        raise PersistenceFailure(
            f"Document {document.id} has version {document.version} but "
            f"{len(document.previous_versions)} previous versions"
        )


class VersionManager:
    """Applies revisions, snapshotting the prior state on request."""

    def __init__(self, store: DocumentStorePort):
        self.store = store

    def apply_update(
        self,
        current: DocumentRecord,
        patch: Dict[str, Any],
        requests_versioning: bool,
        now: Optional[datetime] = None
    ) -> Tuple[DocumentRecord, Optional[DocumentRecord]]:
        """Persist a revision of a live document.

        Args:
            current: Live document as read (not modified)
            patch: Field values to change (see PATCHABLE_FIELDS)
            requests_versioning: Snapshot the pre-update state first
            now: Revision time (defaults to the current time)

        Returns:
            Tuple of (updated document, snapshot or None)

        Raises:
            StaleRecord: The stored document changed since current was read
            PersistenceFailure: A write failed; nothing was persisted
        """
        if current.is_snapshot:
            raise PersistenceFailure(f"Snapshot {current.id} cannot be revised")

        updated = copy.deepcopy(current)
        snapshot = None

        with self.store.atomic():
            if requests_versioning:
                snapshot = self.store.put(make_snapshot(current))
                updated.previous_versions.append(snapshot.id)
                updated.version += 1

            apply_patch(updated, patch, now)
            check_version_invariant(updated)
            updated = self.store.put(updated, expected_lock_version=current.lock_version)

        if snapshot is not None:
            snapshots_total.inc()
            logger.info(
                f"Document {updated.document_number} revised to version {updated.version}",
                extra={"document_id": updated.id},
            )
        return updated, snapshot
