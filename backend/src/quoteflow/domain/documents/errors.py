"""Error taxonomy for the document lifecycle engine.

Every failure raised by the lifecycle components derives from LifecycleError so
callers (HTTP layer, workers) can map them in one place. TotalsMismatch is not
an exception: rendering still succeeds and the mismatch travels back to the
caller as a warning.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


class LifecycleError(Exception):
    """Base class for all lifecycle engine errors."""

    retryable = False


class NotFound(LifecycleError):
    """Raised when a document, template or snapshot does not exist."""

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class AccessDenied(LifecycleError):
    """Raised when the requester does not own the entity (and it is not public)."""

    def __init__(self, entity_type: str, entity_id, requester_id=None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.requester_id = requester_id
        super().__init__(f"Access denied to {entity_type} {entity_id}")


class InvalidTransition(LifecycleError):
    """Raised when a trigger is not legal for the document's current state."""

    def __init__(self, message: str, current_status=None, trigger=None):
        self.current_status = current_status
        self.trigger = trigger
        super().__init__(message)


class InvalidTemplate(LifecycleError):
    """Raised when a template section cannot be parsed into a known variant."""


class NumberingConflict(LifecycleError):
    """Raised when no unique document number could be persisted within the retry budget."""

    retryable = True

    def __init__(self, counter_key: str, attempts: int):
        self.counter_key = counter_key
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique document number for {counter_key} "
            f"after {attempts} attempts"
        )


class RevisionConflict(LifecycleError):
    """Raised when concurrent writers kept invalidating a revision or transition."""

    retryable = True

    def __init__(self, document_id, attempts: int):
        self.document_id = document_id
        self.attempts = attempts
        super().__init__(
            f"Document {document_id} was modified concurrently; gave up after {attempts} attempts"
        )


class PersistenceFailure(LifecycleError):
    """Raised when the persistence port fails. Surfaced verbatim, never retried here."""


class DeliveryFailure(LifecycleError):
    """Raised when the delivery collaborator reports a failed send."""

    def __init__(self, document_id, recipient: str, reason: Optional[str] = None):
        self.document_id = document_id
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Delivery of document {document_id} to {recipient} failed: {reason}")


# Store-level signals. Adapters raise these; lifecycle components translate them.

class DuplicateDocumentNumber(LifecycleError):
    """A live document of the same owner already holds this number."""

    def __init__(self, document_number: str):
        self.document_number = document_number
        super().__init__(f"Document number {document_number} already exists")


class StaleRecord(LifecycleError):
    """The stored lock_version no longer matches the one the writer read."""

    def __init__(self, entity_id, expected: int, actual: Optional[int]):
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Record {entity_id} changed concurrently (expected lock_version {expected}, found {actual})"
        )


@dataclass(frozen=True)
class TotalsMismatch:
    """Persisted totals diverge from the totals computed from the line items."""
    field: str
    computed: Decimal
    persisted: Optional[Decimal]

    @property
    def message(self) -> str:
        return f"{self.field}: computed {self.computed} but persisted {self.persisted}"

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "computed": str(self.computed),
            "persisted": str(self.persisted) if self.persisted is not None else None,
            "message": self.message,
        }
