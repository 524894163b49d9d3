"""Document lifecycle service - orchestration of numbering, revisions, status and rendering.

The service only sequences the domain components; every rule lives in them:
    create     → NumberingAllocator assigns the number inside the persist
    revise     → StatusStateMachine(manual_edit) → VersionManager
    transition → StatusStateMachine → follow-up effects → store
    render     → TemplateResolver → RenderPipeline
    send       → StatusStateMachine(send) check → render → DeliveryPort → transition

Writes to an existing document are guarded by its lock_version and retried a
bounded number of times when a concurrent writer got there first.
"""

import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import UUID

from ..config import Settings, get_settings
from ..domain.documents.document_status import (
    RECIPIENT_TRIGGERS,
    AppendEmailHistory,
    AppendViewHistory,
    RecordClientSignature,
    StatusStateMachine,
    TransitionContext,
    TransitionResult,
    TransitionTrigger,
)
from ..domain.documents.errors import (
    AccessDenied,
    DeliveryFailure,
    InvalidTransition,
    NotFound,
    RevisionConflict,
    StaleRecord,
)
from ..domain.documents.models import (
    DocumentKind,
    DocumentQuery,
    DocumentRecord,
    DocumentStatus,
    EmailHistoryEntry,
    EntityType,
    OwnerProfile,
    utcnow,
)
from ..domain.documents.numbering import NumberingAllocator
from ..domain.documents.ports import DeliveryPort, DocumentStorePort, ExportedFile, OutboundMessage
from ..domain.documents.totals import price_items
from ..domain.documents.versioning import PATCHABLE_FIELDS, VersionManager, apply_patch
from ..domain.rendering.pipeline import RenderPipeline, RenderResult
from ..domain.templates.models import ResolvedTemplate, TemplateRecord
from ..domain.templates.resolver import TemplateResolver, default_template
from ..observability.metrics import (
    deliveries_total,
    documents_created_total,
    revision_retries_total,
    status_transitions_total,
)

logger = logging.getLogger(__name__)

# Statuses counted as awaiting the recipient's decision
PENDING_APPROVAL_STATUSES = frozenset({DocumentStatus.SENT, DocumentStatus.VIEWED})
RECENT_DOCUMENTS_LIMIT = 5


class DocumentLifecycleService:
    """Service for document lifecycle operations."""

    def __init__(
        self,
        store: DocumentStorePort,
        delivery: Optional[DeliveryPort] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        settings = settings or get_settings()
        self.store = store
        self.delivery = delivery
        self.clock = clock or utcnow
        self.revision_max_attempts = settings.REVISION_MAX_ATTEMPTS
        self.default_currency = settings.DEFAULT_CURRENCY

        self.numbering = NumberingAllocator(store, max_attempts=settings.NUMBERING_MAX_ATTEMPTS)
        self.versions = VersionManager(store)
        self.state_machine = StatusStateMachine()
        self.resolver = TemplateResolver(store)
        self.pipeline = RenderPipeline()

    # ------------------------------------------------------------------
    # Loading

    def _load(self, document_id: UUID) -> DocumentRecord:
        document = self.store.get(EntityType.DOCUMENT, document_id)
        if document is None:
            raise NotFound("Document", document_id)
        return document

    def _load_owned(self, document_id: UUID, requester_id: UUID) -> DocumentRecord:
        document = self._load(document_id)
        if document.owner_id != requester_id:
            raise AccessDenied("Document", document_id, requester_id)
        return document

    def _profile(self, owner_id: UUID) -> OwnerProfile:
        profile = self.store.get(EntityType.OWNER_PROFILE, owner_id)
        return profile or OwnerProfile.default(owner_id, self.default_currency)

    def get_document(self, document_id: UUID, requester_id: UUID) -> DocumentRecord:
        """Get a live document or snapshot owned by the requester.

        Raises:
            NotFound: Document does not exist
            AccessDenied: Requester does not own the document
        """
        return self._load_owned(document_id, requester_id)

    def list_versions(self, document_id: UUID, requester_id: UUID) -> List[DocumentRecord]:
        """Snapshots of a document, oldest first.

        Snapshot ids are weak references; ids whose record no longer exists
        are skipped.
        """
        document = self._load_owned(document_id, requester_id)
        snapshots = []
        for snapshot_id in document.previous_versions:
            snapshot = self.store.get(EntityType.DOCUMENT, snapshot_id)
            if snapshot is None:
                logger.warning(
                    f"Snapshot {snapshot_id} of document {document.document_number} is missing",
                    extra={"document_id": document.id},
                )
                continue
            snapshots.append(snapshot)
        return snapshots

    # ------------------------------------------------------------------
    # Create / revise / delete

    def create(self, owner_id: UUID, kind: DocumentKind, data: Dict[str, Any]) -> DocumentRecord:
        """Create a draft document with a freshly allocated number.

        Args:
            owner_id: Owner of the new document
            kind: Document kind (selects the numbering sequence)
            data: Initial content; keys as in PATCHABLE_FIELDS

        Returns:
            Persisted DocumentRecord in draft status at version 1

        Raises:
            NotFound / AccessDenied: template_id is unknown or not usable by the owner
            InvalidTemplate: The template cannot be resolved
            NumberingConflict: No unique number could be persisted
        """
        now = self.clock()
        profile = self._profile(owner_id)
        template_id = data.get("template_id")
        if template_id is not None:
            self.resolver.resolve(template_id, owner_id)

        document = DocumentRecord(
            owner_id=owner_id,
            kind=kind,
            currency=profile.preferences.currency,
            created_at=now,
            updated_at=now,
        )
        apply_patch(document, {k: v for k, v in data.items() if k in PATCHABLE_FIELDS and v is not None}, now)
        document.items, document.totals = price_items(document.items, document.currency)

        def persist(number: str) -> DocumentRecord:
            document.document_number = number
            return self.store.put(document)

        with self.store.atomic():
            created = self.numbering.assign(owner_id, kind, now, persist)
            if template_id is not None:
                self._bump_template_usage(template_id)

        documents_created_total.labels(kind=kind.value).inc()
        logger.info(
            f"Created {kind.value} {created.document_number}",
            extra={"document_id": created.id, "owner_id": owner_id},
        )
        return created

    def _bump_template_usage(self, template_id: UUID) -> None:
        template = self.store.get(EntityType.TEMPLATE, template_id)
        if isinstance(template, TemplateRecord):
            template.usage_count += 1
            self.store.put(template)

    def revise(
        self,
        document_id: UUID,
        requester_id: UUID,
        patch: Dict[str, Any],
        create_version: bool = False
    ) -> DocumentRecord:
        """Edit a draft document, optionally snapshotting the current version first.

        Raises:
            NotFound / AccessDenied: Unknown document or not the owner
            InvalidTransition: Document is not a draft (or is a snapshot)
            RevisionConflict: Concurrent writers kept winning the race
            PersistenceFailure: The store failed; nothing was persisted
        """
        template_id = patch.get("template_id")
        if template_id is not None:
            self.resolver.resolve(template_id, requester_id)

        for attempt in range(1, self.revision_max_attempts + 1):
            current = self._load_owned(document_id, requester_id)
            if current.is_snapshot:
                raise InvalidTransition("Snapshots cannot be revised", current_status=current.status)
            now = self.clock()
            self.state_machine.apply(current, TransitionTrigger.MANUAL_EDIT, TransitionContext(occurred_at=now))

            try:
                updated, _ = self.versions.apply_update(current, patch, create_version, now)
            except StaleRecord:
                revision_retries_total.labels(operation="revise").inc()
                logger.info(
                    f"Document {current.document_number} changed during revision, retrying",
                    extra={"document_id": document_id, "attempt": attempt},
                )
                continue
            return updated

        raise RevisionConflict(document_id, self.revision_max_attempts)

    def delete(self, document_id: UUID, requester_id: UUID) -> None:
        """Delete a live document together with its snapshots.

        Raises:
            NotFound: No live document with this id (snapshots cannot be deleted alone)
            AccessDenied: Requester does not own the document
        """
        document = self._load_owned(document_id, requester_id)
        if document.is_snapshot or not self.store.delete_document(document_id):
            raise NotFound("Document", document_id)
        logger.info(
            f"Deleted document {document.document_number} and {len(document.previous_versions)} snapshots",
            extra={"document_id": document_id},
        )

    # ------------------------------------------------------------------
    # Status transitions

    def _write_with_retry(
        self,
        document_id: UUID,
        operation: str,
        build: Callable[[DocumentRecord], DocumentRecord]
    ) -> DocumentRecord:
        """Read, rebuild and write a document under its lock_version, retrying conflicts."""
        for attempt in range(1, self.revision_max_attempts + 1):
            current = self._load(document_id)
            updated = build(current)
            try:
                return self.store.put(updated, expected_lock_version=current.lock_version)
            except StaleRecord:
                revision_retries_total.labels(operation=operation).inc()
                logger.info(
                    f"Document {current.document_number} changed during {operation}, retrying",
                    extra={"document_id": document_id, "attempt": attempt},
                )
        raise RevisionConflict(document_id, self.revision_max_attempts)

    @staticmethod
    def execute_effects(document: DocumentRecord, result: TransitionResult, at: datetime) -> DocumentRecord:
        """Return a copy of the document with the transition and its effects applied."""
        updated = copy.deepcopy(document)
        updated.status = result.to_status
        for effect in result.effects:
            if isinstance(effect, AppendEmailHistory):
                updated.email_history.append(effect.entry)
            elif isinstance(effect, AppendViewHistory):
                updated.view_history.append(effect.entry)
            elif isinstance(effect, RecordClientSignature):
                updated.signature.client = effect.signature
        updated.updated_at = at
        return updated

    def transition(
        self,
        document_id: UUID,
        trigger: TransitionTrigger,
        requester_id: Optional[UUID] = None,
        context: Optional[TransitionContext] = None
    ) -> DocumentRecord:
        """Apply a lifecycle trigger to a document.

        Recipient triggers (view, approve, reject) and the expiry sweep may be
        applied without a requester; every other trigger needs the owner.

        Raises:
            NotFound / AccessDenied: Unknown document or wrong requester
            InvalidTransition: Trigger not legal; document unchanged
            RevisionConflict: Concurrent writers kept winning the race
        """
        context = context or TransitionContext(occurred_at=self.clock())
        anonymous_allowed = trigger in RECIPIENT_TRIGGERS or trigger == TransitionTrigger.EXPIRY_SWEEP

        def build(current: DocumentRecord) -> DocumentRecord:
            if requester_id is not None and current.owner_id != requester_id:
                raise AccessDenied("Document", document_id, requester_id)
            if requester_id is None and not anonymous_allowed:
                raise AccessDenied("Document", document_id)
            if current.is_snapshot:
                raise InvalidTransition(
                    "Snapshots are immutable", current_status=current.status, trigger=trigger
                )
            try:
                result = self.state_machine.apply(current, trigger, context)
            except InvalidTransition:
                status_transitions_total.labels(trigger=trigger.value, result="rejected").inc()
                raise
            return self.execute_effects(current, result, context.occurred_at)

        updated = self._write_with_retry(document_id, "transition", build)
        status_transitions_total.labels(trigger=trigger.value, result="applied").inc()
        logger.info(
            f"Document {updated.document_number} {trigger.value} → {updated.status.value}",
            extra={"document_id": document_id, "trigger": trigger.value},
        )
        return updated

    # ------------------------------------------------------------------
    # Rendering and delivery

    def _resolve_for(self, document: DocumentRecord, requester_id: UUID) -> ResolvedTemplate:
        if document.template_id is None:
            return default_template(document.kind)
        try:
            return self.resolver.resolve(document.template_id, requester_id)
        except NotFound:
            logger.warning(
                f"Template {document.template_id} of document {document.document_number} no longer exists, "
                f"using the default layout",
                extra={"document_id": document.id},
            )
            return default_template(document.kind)

    def _render(self, document: DocumentRecord, requester_id: UUID) -> RenderResult:
        resolved = self._resolve_for(document, requester_id)
        return self.pipeline.render(document, resolved, self._profile(document.owner_id))

    def render_for_output(self, document_id: UUID, requester_id: UUID) -> RenderResult:
        """Render a document (live or snapshot) into its presentation artifact.

        Returns:
            RenderResult with artifact and totals warnings
        """
        return self._render(self._load_owned(document_id, requester_id), requester_id)

    def _require_delivery(self, document_id: UUID, recipient: str = "") -> DeliveryPort:
        if self.delivery is None:
            raise DeliveryFailure(document_id, recipient, "No delivery adapter configured")
        return self.delivery

    def export_document(self, document_id: UUID, requester_id: UUID) -> Tuple[ExportedFile, RenderResult]:
        """Render a document and convert it into a downloadable file."""
        delivery = self._require_delivery(document_id)
        document = self._load_owned(document_id, requester_id)
        rendered = self._render(document, requester_id)
        exported = delivery.export(rendered.artifact, document.document_number)
        deliveries_total.labels(channel="export", status="success").inc()
        return exported, rendered

    def send_document(
        self,
        document_id: UUID,
        requester_id: UUID,
        recipient: str,
        subject: Optional[str] = None,
        body: Optional[str] = None
    ) -> DocumentRecord:
        """Email a document to a recipient and mark it sent.

        The send trigger is validated before anything is rendered or sent. A
        failed delivery is recorded in the email history with status
        "failed" and leaves the document status unchanged.

        Raises:
            InvalidTransition: Document cannot be sent in its current status
            DeliveryFailure: The delivery adapter reported a failure
        """
        delivery = self._require_delivery(document_id, recipient)
        document = self._load_owned(document_id, requester_id)
        if document.is_snapshot:
            raise InvalidTransition("Snapshots are immutable", current_status=document.status)

        subject = subject or f"{document.kind.value.capitalize()} - {document.document_number}"
        body = body or f"Please find attached the {document.kind.value} document."
        self.state_machine.apply(
            document,
            TransitionTrigger.SEND,
            TransitionContext(occurred_at=self.clock(), recipient=recipient, subject=subject),
        )

        rendered = self._render(document, requester_id)
        receipt = delivery.send(
            rendered.artifact,
            OutboundMessage(
                recipient=recipient,
                subject=subject,
                body=body,
                attachment_stem=document.document_number,
            ),
        )
        context = TransitionContext(occurred_at=self.clock(), recipient=recipient, subject=subject)

        if receipt.success:
            deliveries_total.labels(channel="email", status="success").inc()
            return self.transition(document_id, TransitionTrigger.SEND, requester_id, context)

        deliveries_total.labels(channel="email", status="error").inc()
        logger.warning(
            f"Delivery of {document.document_number} to {recipient} failed: {receipt.error}",
            extra={"document_id": document_id},
        )

        def record_failure(current: DocumentRecord) -> DocumentRecord:
            updated = copy.deepcopy(current)
            updated.email_history.append(EmailHistoryEntry(
                sent_at=context.occurred_at,
                recipient=recipient,
                subject=subject,
                status="failed",
            ))
            updated.updated_at = context.occurred_at
            return updated

        self._write_with_retry(document_id, "send", record_failure)
        raise DeliveryFailure(document_id, recipient, receipt.error)

    # ------------------------------------------------------------------
    # Analytics

    def dashboard_stats(self, owner_id: UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Document counts, revenue and latest documents for an owner's dashboard.

        Returns:
            Dict with total_documents, monthly_documents, pending_approvals,
            a per-status breakdown, total_revenue (sum of document totals per
            currency) and recent_documents (the newest live documents)
        """
        now = now or self.clock()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        return {
            "total_documents": self.store.count_matching(DocumentQuery(owner_id=owner_id)),
            "monthly_documents": self.store.count_matching(
                DocumentQuery(owner_id=owner_id, created_from=start_of_month)
            ),
            "pending_approvals": self.store.count_matching(
                DocumentQuery(owner_id=owner_id, statuses=PENDING_APPROVAL_STATUSES)
            ),
            "by_status": {
                status.value: self.store.count_matching(
                    DocumentQuery(owner_id=owner_id, statuses=frozenset({status}))
                )
                for status in DocumentStatus
            },
            "total_revenue": self.store.sum_totals(DocumentQuery(owner_id=owner_id)),
            "recent_documents": self.store.list_documents(
                DocumentQuery(owner_id=owner_id), limit=RECENT_DOCUMENTS_LIMIT
            ),
        }
