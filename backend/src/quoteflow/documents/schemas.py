"""Pydantic schemas for the Documents API

Request/response models for document, rendering and analytics endpoints.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..domain.documents.document_status import TransitionTrigger
from ..domain.documents.models import DocumentKind, DocumentStatus


# ============================================================================
# Document part schemas
# ============================================================================

class LineItemSchema(BaseModel):
    """Single priced line. discount is a fraction (0.1 = 10%), tax an absolute amount."""
    description: str = ""
    quantity: Decimal = Field(Decimal("0"), ge=0)
    unit: Optional[str] = None
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0, le=1)
    tax: Decimal = Field(Decimal("0"), ge=0)
    total: Optional[Decimal] = None  # ignored on input, always recomputed


class ClientSchema(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    vat_number: Optional[str] = None


class ProjectSchema(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None


class PaymentMilestoneSchema(BaseModel):
    milestone: Optional[str] = None
    percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    status: str = Field("pending", pattern="^(pending|paid|overdue)$")


class PaymentTermsSchema(BaseModel):
    terms: Optional[str] = None
    method: Optional[str] = None
    schedule: List[PaymentMilestoneSchema] = Field(default_factory=list)


class TotalsSchema(BaseModel):
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


# ============================================================================
# Requests
# ============================================================================

class DocumentContent(BaseModel):
    """Fields shared by create and revise requests"""
    template_id: Optional[UUID] = None
    client: Optional[ClientSchema] = None
    project: Optional[ProjectSchema] = None
    items: Optional[List[LineItemSchema]] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3, description="ISO 4217 code (SAR, USD, EUR)")
    payment: Optional[PaymentTermsSchema] = None
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    attachments: Optional[List[str]] = None

    model_config = ConfigDict(extra='forbid')

    def to_patch(self) -> Dict[str, Any]:
        """Only the fields the client actually sent."""
        fields = self.model_fields_set - {"kind", "create_version"}
        return self.model_dump(include=fields)


class DocumentCreate(DocumentContent):
    """Schema for creating a document (POST /documents)"""
    kind: DocumentKind


class DocumentRevise(DocumentContent):
    """Schema for revising a draft document (PUT /documents/{id})"""
    create_version: bool = Field(False, description="Snapshot the current version before applying the edit")


class TransitionRequest(BaseModel):
    """Schema for applying a lifecycle trigger (POST /documents/{id}/transitions)"""
    trigger: TransitionTrigger
    signer_name: Optional[str] = None

    model_config = ConfigDict(extra='forbid')


class RecipientActionRequest(BaseModel):
    """Schema for recipient actions (POST /public/documents/{id}/{action})"""
    signer_name: Optional[str] = None

    model_config = ConfigDict(extra='forbid')


class SendRequest(BaseModel):
    """Schema for emailing a document (POST /documents/{id}/send)"""
    recipient_email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    subject: Optional[str] = None
    message: Optional[str] = None

    model_config = ConfigDict(extra='forbid')


# ============================================================================
# Responses
# ============================================================================

class DocumentResponse(BaseModel):
    """Response schema for a live document or snapshot"""
    id: UUID
    document_number: str
    kind: DocumentKind
    owner_id: UUID
    template_id: Optional[UUID] = None
    status: DocumentStatus
    currency: str
    client: ClientSchema
    project: ProjectSchema
    items: List[LineItemSchema]
    totals: TotalsSchema
    payment: PaymentTermsSchema
    signature: Dict[str, Any] = Field(default_factory=dict)
    email_history: List[Dict[str, Any]] = Field(default_factory=list)
    view_history: List[Dict[str, Any]] = Field(default_factory=list)
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    version: int
    previous_versions: List[UUID] = Field(default_factory=list)
    snapshot_of: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, document) -> "DocumentResponse":
        return cls.model_validate(document.to_dict())


class DocumentVersionsResponse(BaseModel):
    document_id: UUID
    current_version: int
    versions: List[DocumentResponse]


class TotalsWarning(BaseModel):
    field: str
    computed: str
    persisted: Optional[str] = None
    message: str


class RenderResponse(BaseModel):
    """Rendered artifact tree plus non-fatal totals warnings"""
    document_id: UUID
    artifact: Dict[str, Any]
    warnings: List[TotalsWarning] = Field(default_factory=list)


class DocumentSummary(BaseModel):
    """Dashboard entry for one of the owner's latest documents"""
    id: UUID
    document_number: str
    kind: DocumentKind
    status: DocumentStatus
    client_name: Optional[str] = None
    currency: str
    total: Decimal
    created_at: datetime

    @classmethod
    def from_record(cls, document) -> "DocumentSummary":
        return cls(
            id=document.id,
            document_number=document.document_number,
            kind=document.kind,
            status=document.status,
            client_name=document.client.company or document.client.name,
            currency=document.currency,
            total=document.totals.total,
            created_at=document.created_at,
        )


class DashboardResponse(BaseModel):
    total_documents: int
    monthly_documents: int
    pending_approvals: int
    by_status: Dict[str, int]
    total_revenue: Dict[str, Decimal] = Field(
        default_factory=dict, description="Sum of document totals per currency code"
    )
    recent_documents: List[DocumentSummary] = Field(default_factory=list)
