"""Documents API Router - create, revise, transition, render, export and send.

Owner endpoints identify the caller by the X-User-ID header. Recipient
endpoints (view, approve, reject) are addressed by document id only and carry
no credential of their own: the gateway in front of the API must only let
through requests to /public/documents/{id}/{action} that come from the
recipient link it issued (e.g. a signed, expiring URL). Exposed directly,
anyone who learns a document id could approve or reject it.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..dependencies import get_document_service, get_owner_id
from ..domain.documents.document_status import TransitionContext, TransitionTrigger
from .schemas import (
    DashboardResponse,
    DocumentCreate,
    DocumentResponse,
    DocumentRevise,
    DocumentSummary,
    DocumentVersionsResponse,
    RecipientActionRequest,
    RenderResponse,
    SendRequest,
    TotalsWarning,
    TransitionRequest,
)
from .service import DocumentLifecycleService

router = APIRouter(prefix="/documents", tags=["documents"])
recipient_router = APIRouter(prefix="/public/documents", tags=["recipient"])
analytics_router = APIRouter(prefix="/analytics", tags=["analytics"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create document",
    description="""
    Create a draft document. The document number is allocated from the
    owner's per-kind, per-year sequence (e.g. QUO-2025-001); totals are
    computed from the line items.
    """
)
def create_document(
    payload: DocumentCreate,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentResponse:
    document = service.create(owner_id, payload.kind, payload.to_patch())
    return DocumentResponse.from_record(document)


@router.get(
    "/{document_id}",
    response_model=DocumentResponse,
    summary="Get document or snapshot",
)
def get_document(
    document_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentResponse:
    return DocumentResponse.from_record(service.get_document(document_id, owner_id))


@router.put(
    "/{document_id}",
    response_model=DocumentResponse,
    summary="Revise draft document",
    description="""
    Edit a draft document. With create_version=true the current state is
    stored as an immutable snapshot first and the version number increases.
    Only drafts can be edited.
    """
)
def revise_document(
    document_id: UUID,
    payload: DocumentRevise,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentResponse:
    document = service.revise(document_id, owner_id, payload.to_patch(), create_version=payload.create_version)
    return DocumentResponse.from_record(document)


@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete document and its snapshots",
)
def delete_document(
    document_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> Response:
    service.delete(document_id, owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{document_id}/versions",
    response_model=DocumentVersionsResponse,
    summary="List version snapshots",
)
def list_versions(
    document_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentVersionsResponse:
    document = service.get_document(document_id, owner_id)
    snapshots = service.list_versions(document_id, owner_id)
    return DocumentVersionsResponse(
        document_id=document.id,
        current_version=document.version,
        versions=[DocumentResponse.from_record(s) for s in snapshots],
    )


@router.post(
    "/{document_id}/transitions",
    response_model=DocumentResponse,
    summary="Apply lifecycle trigger",
    description="""
    Apply a status trigger as the document owner (e.g. payment_recorded,
    expiry_sweep). Illegal transitions return 409 and leave the document
    unchanged.
    """
)
def transition_document(
    document_id: UUID,
    payload: TransitionRequest,
    request: Request,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentResponse:
    context = TransitionContext.now(
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        signer_name=payload.signer_name,
    )
    document = service.transition(document_id, payload.trigger, requester_id=owner_id, context=context)
    return DocumentResponse.from_record(document)


@router.get(
    "/{document_id}/render",
    response_model=RenderResponse,
    summary="Render document artifact",
)
def render_document(
    document_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> RenderResponse:
    result = service.render_for_output(document_id, owner_id)
    return RenderResponse(
        document_id=document_id,
        artifact=result.artifact.to_dict(),
        warnings=[TotalsWarning(**w.to_dict()) for w in result.warnings],
    )


@router.get(
    "/{document_id}/export",
    summary="Export document file",
    response_class=Response,
)
def export_document(
    document_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> Response:
    exported, rendered = service.export_document(document_id, owner_id)
    headers = {"Content-Disposition": f'attachment; filename="{exported.filename}"'}
    if rendered.warnings:
        headers["X-Totals-Warnings"] = str(len(rendered.warnings))
    return Response(content=exported.content, media_type=exported.content_type, headers=headers)


@router.post(
    "/{document_id}/send",
    response_model=DocumentResponse,
    summary="Email document",
    description="""
    Render the document, email it to the recipient and mark it sent. A
    failed delivery is recorded in the email history and returns 502.
    """
)
def send_document(
    document_id: UUID,
    payload: SendRequest,
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentResponse:
    document = service.send_document(
        document_id,
        owner_id,
        recipient=payload.recipient_email,
        subject=payload.subject,
        body=payload.message,
    )
    return DocumentResponse.from_record(document)


@recipient_router.post(
    "/{document_id}/{action}",
    response_model=DocumentResponse,
    summary="Recipient view / approve / reject",
)
def recipient_action(
    document_id: UUID,
    action: str,
    request: Request,
    payload: Optional[RecipientActionRequest] = None,
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DocumentResponse:
    """Apply a recipient trigger.

    Not authenticated here; see the module docstring for the gateway contract.
    """
    try:
        trigger = TransitionTrigger(f"recipient_{action}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown recipient action: {action}")

    context = TransitionContext.now(
        ip=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        signer_name=payload.signer_name if payload else None,
    )
    return DocumentResponse.from_record(service.transition(document_id, trigger, context=context))


@analytics_router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard counts, revenue and recent documents",
)
def dashboard(
    owner_id: UUID = Depends(get_owner_id),
    service: DocumentLifecycleService = Depends(get_document_service)
) -> DashboardResponse:
    stats = service.dashboard_stats(owner_id)
    stats["recent_documents"] = [DocumentSummary.from_record(d) for d in stats["recent_documents"]]
    return DashboardResponse(**stats)
