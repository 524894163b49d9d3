"""Document number allocation.

Numbers have the form {prefix}-{year}-{sequence}, e.g. QUO-2025-001. The
sequence comes from an atomic counter per (owner, kind, year) held by the
persistence port; it is never derived by counting existing rows.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, TypeVar
from uuid import UUID

from ...observability.metrics import numbering_conflicts_total, numbering_retries_total
from .errors import DuplicateDocumentNumber, NumberingConflict
from .models import DEFAULT_NUMBERING_PREFIXES, DocumentKind, EntityType, OwnerProfile
from .ports import DocumentStorePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEQUENCE_MIN_DIGITS = 3
DEFAULT_MAX_ATTEMPTS = 5


def counter_key(owner_id: UUID, kind: DocumentKind, year: int) -> str:
    return f"numbering:{owner_id}:{kind.value}:{year}"


def format_document_number(prefix: str, year: int, sequence: int) -> str:
    """Build a document number.

    Example:
        >>> format_document_number("QUO", 2025, 7)
        'QUO-2025-007'
        >>> format_document_number("INV", 2025, 1234)
        'INV-2025-1234'
    """
    return f"{prefix}-{year}-{str(sequence).zfill(SEQUENCE_MIN_DIGITS)}"


class NumberingAllocator:
    """Allocates collision-free document numbers per owner, kind and year."""

    def __init__(self, store: DocumentStorePort, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts

    def prefix_for(self, owner_id: UUID, kind: DocumentKind) -> str:
        """Numbering prefix from the owner's preferences, else the default for the kind."""
        profile = self.store.get(EntityType.OWNER_PROFILE, owner_id)
        if isinstance(profile, OwnerProfile):
            return profile.preferences.prefix_for(kind)
        return DEFAULT_NUMBERING_PREFIXES[kind]

    def allocate(self, owner_id: UUID, kind: DocumentKind, reference_time: datetime) -> str:
        """Consume the next sequence value and return the formatted number.

        The counter increment is the only source of uniqueness; callers that
        also persist a document should use assign() so a failed write does
        not leave a gap.
        """
        year = reference_time.year
        sequence = self.store.atomic_increment(counter_key(owner_id, kind, year))
        return format_document_number(self.prefix_for(owner_id, kind), year, sequence)

    def assign(
        self,
        owner_id: UUID,
        kind: DocumentKind,
        reference_time: datetime,
        persist: Callable[[str], T],
        max_attempts: Optional[int] = None
    ) -> T:
        """Allocate a number and persist with it, retrying on uniqueness conflicts.

        Each write runs in its own nested transaction. A conflicting write is
        rolled back while its counter increment is kept, since that number is
        already in use, and the next sequence value is tried. All attempts
        share one outer transaction, so exhausting the budget rolls every
        counter increment back and nothing is persisted.

        Args:
            owner_id: Document owner
            kind: Document kind
            reference_time: Creation time; its year selects the sequence
            persist: Callback writing the document with the given number
            max_attempts: Override for the retry budget

        Returns:
            Whatever persist returned for the successful attempt

        Raises:
            NumberingConflict: No attempt could persist a unique number
            PersistenceFailure: The store failed for another reason
        """
        attempts = max_attempts or self.max_attempts
        key = counter_key(owner_id, kind, reference_time.year)

        with self.store.atomic():
            for attempt in range(1, attempts + 1):
                number = self.allocate(owner_id, kind, reference_time)
                try:
                    with self.store.atomic():
                        return persist(number)
                except DuplicateDocumentNumber as e:
                    numbering_retries_total.labels(kind=kind.value).inc()
                    logger.warning(
                        f"Document number {e.document_number} already taken, retrying",
                        extra={"owner_id": owner_id, "attempt": attempt},
                    )

            numbering_conflicts_total.labels(kind=kind.value).inc()
            raise NumberingConflict(key, attempts)
