"""Documents domain module - document model, numbering, revisions and status management."""

from .document_status import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    StatusStateMachine,
    TransitionContext,
    TransitionTrigger,
    can_transition,
    get_allowed_triggers,
)
from .models import DocumentKind, DocumentRecord, DocumentStatus

__all__ = [
    "DocumentKind",
    "DocumentRecord",
    "DocumentStatus",
    "StatusStateMachine",
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "TransitionContext",
    "TransitionTrigger",
    "can_transition",
    "get_allowed_triggers",
]
