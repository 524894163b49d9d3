"""Unit tests for the document status state machine"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from quoteflow.domain.documents import (
    TERMINAL_STATUSES,
    DocumentKind,
    DocumentRecord,
    DocumentStatus,
    StatusStateMachine,
    TransitionContext,
    TransitionTrigger,
    can_transition,
    get_allowed_triggers,
)
from quoteflow.domain.documents.document_status import (
    AppendEmailHistory,
    AppendViewHistory,
    RecordClientSignature,
)
from quoteflow.domain.documents.errors import InvalidTransition

NOW = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)


def make_document(status=DocumentStatus.DRAFT, kind=DocumentKind.QUOTATION, valid_until=None) -> DocumentRecord:
    return DocumentRecord(
        owner_id=uuid4(),
        kind=kind,
        document_number="QUO-2025-001",
        status=status,
        valid_until=valid_until,
    )


class TestTransitionTable:
    """Test can_transition against the lifecycle table"""

    def test_status_enum_values(self):
        """Test DocumentStatus enum has all lifecycle values"""
        assert [s.value for s in DocumentStatus] == [
            "draft", "sent", "viewed", "approved", "rejected", "expired", "paid",
        ]

    def test_draft_can_be_edited_and_sent(self):
        """Test draft allows manual_edit and send only"""
        assert get_allowed_triggers(DocumentStatus.DRAFT) == [
            TransitionTrigger.MANUAL_EDIT,
            TransitionTrigger.SEND,
        ]

    def test_resend_allowed(self):
        """Test a sent document can be sent again"""
        assert can_transition(DocumentStatus.SENT, TransitionTrigger.SEND) is True

    def test_view_only_from_sent(self):
        """Test recipient_view only applies to sent documents"""
        assert can_transition(DocumentStatus.SENT, TransitionTrigger.RECIPIENT_VIEW) is True
        assert can_transition(DocumentStatus.VIEWED, TransitionTrigger.RECIPIENT_VIEW) is False
        assert can_transition(DocumentStatus.DRAFT, TransitionTrigger.RECIPIENT_VIEW) is False

    def test_approve_and_reject_from_sent_or_viewed(self):
        """Test recipient decisions from sent and viewed"""
        for status in (DocumentStatus.SENT, DocumentStatus.VIEWED):
            assert can_transition(status, TransitionTrigger.RECIPIENT_APPROVE) is True
            assert can_transition(status, TransitionTrigger.RECIPIENT_REJECT) is True
        assert can_transition(DocumentStatus.DRAFT, TransitionTrigger.RECIPIENT_APPROVE) is False

    def test_payment_only_for_invoices(self):
        """Test payment_recorded is restricted to invoices"""
        assert can_transition(DocumentStatus.APPROVED, TransitionTrigger.PAYMENT_RECORDED, DocumentKind.INVOICE) is True
        assert can_transition(
            DocumentStatus.APPROVED, TransitionTrigger.PAYMENT_RECORDED, DocumentKind.QUOTATION
        ) is False

    def test_manual_edit_only_in_draft(self):
        """Test non-draft documents cannot be edited"""
        for status in DocumentStatus:
            expected = status == DocumentStatus.DRAFT
            assert can_transition(status, TransitionTrigger.MANUAL_EDIT) is expected

    def test_terminal_states_have_no_triggers(self):
        """Test rejected, expired and paid accept no trigger"""
        assert TERMINAL_STATUSES == {DocumentStatus.REJECTED, DocumentStatus.EXPIRED, DocumentStatus.PAID}
        for status in TERMINAL_STATUSES:
            assert get_allowed_triggers(status, DocumentKind.INVOICE) == []


class TestStatusStateMachine:
    """Test StatusStateMachine.apply results and follow-up effects"""

    def setup_method(self):
        self.machine = StatusStateMachine()

    def test_send_from_draft(self):
        """Test draft → sent appends an email history entry"""
        document = make_document()
        context = TransitionContext(occurred_at=NOW, recipient="client@example.com", subject="Quotation")

        result = self.machine.apply(document, TransitionTrigger.SEND, context)

        assert result.from_status == DocumentStatus.DRAFT
        assert result.to_status == DocumentStatus.SENT
        assert len(result.effects) == 1
        effect = result.effects[0]
        assert isinstance(effect, AppendEmailHistory)
        assert effect.entry.recipient == "client@example.com"
        assert effect.entry.sent_at == NOW
        assert effect.entry.status == "sent"

    def test_apply_does_not_mutate_document(self):
        """Test the machine only reports the transition"""
        document = make_document()
        self.machine.apply(document, TransitionTrigger.SEND, TransitionContext(occurred_at=NOW))

        assert document.status == DocumentStatus.DRAFT
        assert document.email_history == []

    def test_view_records_view_history(self):
        """Test sent → viewed carries ip and user agent"""
        document = make_document(DocumentStatus.SENT)
        context = TransitionContext(occurred_at=NOW, ip="10.0.0.7", user_agent="Mozilla/5.0")

        result = self.machine.apply(document, TransitionTrigger.RECIPIENT_VIEW, context)

        assert result.to_status == DocumentStatus.VIEWED
        effect = result.effects[0]
        assert isinstance(effect, AppendViewHistory)
        assert effect.entry.ip == "10.0.0.7"
        assert effect.entry.user_agent == "Mozilla/5.0"

    def test_approve_records_client_signature(self):
        """Test viewed → approved records the signer"""
        document = make_document(DocumentStatus.VIEWED)
        context = TransitionContext(occurred_at=NOW, ip="10.0.0.7", signer_name="Sara Al-Harbi")

        result = self.machine.apply(document, TransitionTrigger.RECIPIENT_APPROVE, context)

        assert result.to_status == DocumentStatus.APPROVED
        effect = result.effects[0]
        assert isinstance(effect, RecordClientSignature)
        assert effect.signature.name == "Sara Al-Harbi"
        assert effect.signature.signed_at == NOW

    def test_reject_has_no_effects(self):
        """Test rejection only changes the status"""
        result = self.machine.apply(
            make_document(DocumentStatus.SENT), TransitionTrigger.RECIPIENT_REJECT, TransitionContext(occurred_at=NOW)
        )
        assert result.to_status == DocumentStatus.REJECTED
        assert result.effects == ()

    def test_approve_draft_rejected(self):
        """Test recipient_approve on a draft raises and leaves it a draft"""
        document = make_document(DocumentStatus.DRAFT)

        with pytest.raises(InvalidTransition) as exc_info:
            self.machine.apply(document, TransitionTrigger.RECIPIENT_APPROVE, TransitionContext(occurred_at=NOW))

        assert exc_info.value.current_status == DocumentStatus.DRAFT
        assert exc_info.value.trigger == TransitionTrigger.RECIPIENT_APPROVE
        assert "recipient_approve" in str(exc_info.value)
        assert document.status == DocumentStatus.DRAFT

    def test_payment_on_quotation_rejected(self):
        """Test payment_recorded fails for non-invoice kinds"""
        document = make_document(DocumentStatus.APPROVED, kind=DocumentKind.QUOTATION)

        with pytest.raises(InvalidTransition, match="invoice"):
            self.machine.apply(document, TransitionTrigger.PAYMENT_RECORDED, TransitionContext(occurred_at=NOW))

    def test_payment_on_invoice(self):
        """Test approved invoice → paid"""
        document = make_document(DocumentStatus.APPROVED, kind=DocumentKind.INVOICE)

        result = self.machine.apply(document, TransitionTrigger.PAYMENT_RECORDED, TransitionContext(occurred_at=NOW))

        assert result.to_status == DocumentStatus.PAID

    def test_terminal_state_rejects_every_trigger(self):
        """Test no trigger leaves a terminal state"""
        for status in TERMINAL_STATUSES:
            document = make_document(status, kind=DocumentKind.INVOICE)
            for trigger in TransitionTrigger:
                with pytest.raises(InvalidTransition):
                    self.machine.apply(document, trigger, TransitionContext(occurred_at=NOW))


class TestExpirySweep:
    """Test the time guard on expiry_sweep"""

    def setup_method(self):
        self.machine = StatusStateMachine()

    def test_expires_after_valid_until(self):
        """Test a sent document expires once valid_until has passed"""
        document = make_document(DocumentStatus.SENT, valid_until=NOW - timedelta(days=1))

        result = self.machine.apply(document, TransitionTrigger.EXPIRY_SWEEP, TransitionContext(occurred_at=NOW))

        assert result.to_status == DocumentStatus.EXPIRED

    def test_not_expired_before_valid_until(self):
        """Test expiry is refused while the document is still valid"""
        document = make_document(DocumentStatus.VIEWED, valid_until=NOW + timedelta(days=1))

        with pytest.raises(InvalidTransition, match="valid until"):
            self.machine.apply(document, TransitionTrigger.EXPIRY_SWEEP, TransitionContext(occurred_at=NOW))

    def test_boundary_is_not_expired(self):
        """Test occurred_at equal to valid_until does not expire"""
        document = make_document(DocumentStatus.SENT, valid_until=NOW)

        with pytest.raises(InvalidTransition):
            self.machine.apply(document, TransitionTrigger.EXPIRY_SWEEP, TransitionContext(occurred_at=NOW))

    def test_without_valid_until(self):
        """Test documents without valid_until never expire"""
        document = make_document(DocumentStatus.SENT)

        with pytest.raises(InvalidTransition, match="valid_until"):
            self.machine.apply(document, TransitionTrigger.EXPIRY_SWEEP, TransitionContext(occurred_at=NOW))

    def test_draft_cannot_expire(self):
        """Test drafts are not swept"""
        document = make_document(DocumentStatus.DRAFT, valid_until=NOW - timedelta(days=30))

        with pytest.raises(InvalidTransition):
            self.machine.apply(document, TransitionTrigger.EXPIRY_SWEEP, TransitionContext(occurred_at=NOW))
