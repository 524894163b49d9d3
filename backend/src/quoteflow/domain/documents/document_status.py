"""Document status state machine.

The state machine is the single authority on whether a trigger is legal for a
document. It never mutates the document: apply() returns the resulting status
and the follow-up effects (history entries, signatures) that the orchestration
layer must execute.

Transition table:
    manual_edit        draft                   → draft
    send               draft, sent             → sent
    recipient_view     sent                    → viewed
    recipient_approve  sent, viewed            → approved
    recipient_reject   sent, viewed            → rejected
    expiry_sweep       sent, viewed            → expired   (only once valid_until has passed)
    payment_recorded   approved, sent, viewed  → paid      (invoices only)

Terminal States: REJECTED, EXPIRED, PAID
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

from .errors import InvalidTransition
from .models import (
    ClientSignature,
    DocumentKind,
    DocumentRecord,
    DocumentStatus,
    EmailHistoryEntry,
    ViewHistoryEntry,
    utcnow,
)


class TransitionTrigger(str, Enum):
    """Actions that can move a document through its lifecycle."""
    MANUAL_EDIT = "manual_edit"
    SEND = "send"
    RECIPIENT_VIEW = "recipient_view"
    RECIPIENT_APPROVE = "recipient_approve"
    RECIPIENT_REJECT = "recipient_reject"
    EXPIRY_SWEEP = "expiry_sweep"
    PAYMENT_RECORDED = "payment_recorded"


@dataclass(frozen=True)
class TransitionRule:
    allowed_from: FrozenSet[DocumentStatus]
    result: DocumentStatus
    kinds: Optional[FrozenSet[DocumentKind]] = None  # None = every kind


TRANSITIONS: Dict[TransitionTrigger, TransitionRule] = {
    TransitionTrigger.MANUAL_EDIT: TransitionRule(
        frozenset({DocumentStatus.DRAFT}), DocumentStatus.DRAFT
    ),
    TransitionTrigger.SEND: TransitionRule(
        frozenset({DocumentStatus.DRAFT, DocumentStatus.SENT}), DocumentStatus.SENT
    ),
    TransitionTrigger.RECIPIENT_VIEW: TransitionRule(
        frozenset({DocumentStatus.SENT}), DocumentStatus.VIEWED
    ),
    TransitionTrigger.RECIPIENT_APPROVE: TransitionRule(
        frozenset({DocumentStatus.SENT, DocumentStatus.VIEWED}), DocumentStatus.APPROVED
    ),
    TransitionTrigger.RECIPIENT_REJECT: TransitionRule(
        frozenset({DocumentStatus.SENT, DocumentStatus.VIEWED}), DocumentStatus.REJECTED
    ),
    TransitionTrigger.EXPIRY_SWEEP: TransitionRule(
        frozenset({DocumentStatus.SENT, DocumentStatus.VIEWED}), DocumentStatus.EXPIRED
    ),
    TransitionTrigger.PAYMENT_RECORDED: TransitionRule(
        frozenset({DocumentStatus.APPROVED, DocumentStatus.SENT, DocumentStatus.VIEWED}),
        DocumentStatus.PAID,
        kinds=frozenset({DocumentKind.INVOICE}),
    ),
}

TERMINAL_STATUSES: FrozenSet[DocumentStatus] = frozenset({
    DocumentStatus.REJECTED,
    DocumentStatus.EXPIRED,
    DocumentStatus.PAID,
})

# Triggers raised by the document recipient rather than the owner
RECIPIENT_TRIGGERS: FrozenSet[TransitionTrigger] = frozenset({
    TransitionTrigger.RECIPIENT_VIEW,
    TransitionTrigger.RECIPIENT_APPROVE,
    TransitionTrigger.RECIPIENT_REJECT,
})


@dataclass(frozen=True)
class TransitionContext:
    """Facts about the triggering event, used to build follow-up effects."""
    occurred_at: datetime
    recipient: Optional[str] = None
    subject: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    signer_name: Optional[str] = None

    @classmethod
    def now(cls, **kwargs) -> "TransitionContext":
        return cls(occurred_at=utcnow(), **kwargs)


@dataclass(frozen=True)
class AppendEmailHistory:
    entry: EmailHistoryEntry


@dataclass(frozen=True)
class AppendViewHistory:
    entry: ViewHistoryEntry


@dataclass(frozen=True)
class RecordClientSignature:
    signature: ClientSignature


FollowUpEffect = Union[AppendEmailHistory, AppendViewHistory, RecordClientSignature]


@dataclass(frozen=True)
class TransitionResult:
    trigger: TransitionTrigger
    from_status: DocumentStatus
    to_status: DocumentStatus
    effects: Tuple[FollowUpEffect, ...] = ()


def can_transition(
    current_status: DocumentStatus,
    trigger: TransitionTrigger,
    kind: Optional[DocumentKind] = None
) -> bool:
    """Check if a trigger is allowed from a status without raising.

    Time guards (expiry) are not evaluated here.

    Example:
        >>> can_transition(DocumentStatus.DRAFT, TransitionTrigger.SEND)
        True
        >>> can_transition(DocumentStatus.APPROVED, TransitionTrigger.SEND)
        False
    """
    rule = TRANSITIONS.get(trigger)
    if rule is None or current_status not in rule.allowed_from:
        return False
    if rule.kinds is not None and kind is not None and kind not in rule.kinds:
        return False
    return True


def get_allowed_triggers(
    current_status: DocumentStatus,
    kind: Optional[DocumentKind] = None
) -> List[TransitionTrigger]:
    """Get the triggers that are legal from a status, in declaration order."""
    return [t for t in TransitionTrigger if can_transition(current_status, t, kind)]


class StatusStateMachine:
    """Validates lifecycle transitions and enumerates their side effects."""

    def apply(
        self,
        document: DocumentRecord,
        trigger: TransitionTrigger,
        context: TransitionContext
    ) -> TransitionResult:
        """Validate a trigger against the document's current state.

        Args:
            document: Document in its current state (not modified)
            trigger: Triggering action
            context: Event facts (time, recipient, ip, ...)

        Returns:
            TransitionResult with resulting status and follow-up effects

        Raises:
            InvalidTransition: If the trigger is not legal for this document
        """
        rule = TRANSITIONS[trigger]
        current = document.status

        if current not in rule.allowed_from:
            raise InvalidTransition(
                f"Invalid transition: {trigger.value} is not allowed from {current.value}. "
                f"Allowed triggers from {current.value}: "
                f"{[t.value for t in get_allowed_triggers(current, document.kind)]}",
                current_status=current,
                trigger=trigger,
            )

        if rule.kinds is not None and document.kind not in rule.kinds:
            raise InvalidTransition(
                f"Invalid transition: {trigger.value} only applies to "
                f"{sorted(k.value for k in rule.kinds)}, not {document.kind.value}",
                current_status=current,
                trigger=trigger,
            )

        if trigger == TransitionTrigger.EXPIRY_SWEEP:
            if document.valid_until is None:
                raise InvalidTransition(
                    "Invalid transition: document has no valid_until date",
                    current_status=current,
                    trigger=trigger,
                )
            if context.occurred_at <= document.valid_until:
                raise InvalidTransition(
                    f"Invalid transition: document is valid until {document.valid_until.isoformat()}",
                    current_status=current,
                    trigger=trigger,
                )

        return TransitionResult(
            trigger=trigger,
            from_status=current,
            to_status=rule.result,
            effects=self._effects_for(trigger, context),
        )

    def _effects_for(self, trigger: TransitionTrigger, context: TransitionContext) -> Tuple[FollowUpEffect, ...]:
        if trigger == TransitionTrigger.SEND:
            return (AppendEmailHistory(EmailHistoryEntry(
                sent_at=context.occurred_at,
                recipient=context.recipient,
                subject=context.subject,
                status="sent",
            )),)
        if trigger == TransitionTrigger.RECIPIENT_VIEW:
            return (AppendViewHistory(ViewHistoryEntry(
                viewed_at=context.occurred_at,
                ip=context.ip,
                user_agent=context.user_agent,
            )),)
        if trigger == TransitionTrigger.RECIPIENT_APPROVE:
            return (RecordClientSignature(ClientSignature(
                name=context.signer_name,
                signed_at=context.occurred_at,
                ip=context.ip,
            )),)
        return ()
