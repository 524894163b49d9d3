"""Domain models for business documents.

These are plain dataclasses (not the SQLAlchemy rows). Persistence adapters map
them to and from storage with to_dict()/from_dict(); money values are Decimal
and serialize as strings so no precision is lost in JSON columns.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4


class DocumentKind(str, Enum):
    """Kinds of business document."""
    QUOTATION = "quotation"
    INVOICE = "invoice"
    PROPOSAL = "proposal"
    CONTRACT = "contract"


class DocumentStatus(str, Enum):
    """Document lifecycle status.

    State flow:
    draft → sent → viewed → approved | rejected | expired
    sent | viewed | approved → paid (invoices only)
    """
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    PAID = "paid"


class EntityType(str, Enum):
    """Entity families addressed through the persistence port."""
    DOCUMENT = "document"
    TEMPLATE = "template"
    OWNER_PROFILE = "owner_profile"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime) and value.tzinfo is None:
        # SQLite drops tzinfo; everything is stored as UTC
        value = value.replace(tzinfo=timezone.utc)
    return value


def to_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def to_uuid(value: Any) -> Optional[UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def encode(value: Any) -> Any:
    """Convert a domain value into JSON-compatible primitives."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: encode(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [encode(v) for v in value]
    if isinstance(value, dict):
        return {str(k): encode(v) for k, v in value.items()}
    return value


@dataclass
class LineItem:
    """Single priced line. discount is a fraction (0.1 = 10%), tax an absolute amount."""
    description: str = ""
    quantity: Decimal = Decimal("0")
    unit_price: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    unit: Optional[str] = None
    total: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            description=data.get("description") or "",
            quantity=to_decimal(data.get("quantity")),
            unit_price=to_decimal(data.get("unit_price")),
            discount=to_decimal(data.get("discount")),
            tax=to_decimal(data.get("tax")),
            unit=data.get("unit"),
            total=to_decimal(data.get("total"), default=None),
        )


@dataclass
class Totals:
    subtotal: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Totals":
        data = data or {}
        return cls(
            subtotal=to_decimal(data.get("subtotal")),
            discount=to_decimal(data.get("discount")),
            tax=to_decimal(data.get("tax")),
            total=to_decimal(data.get("total")),
        )


@dataclass
class ClientSnapshot:
    """Denormalized copy of the client taken when the document was created."""
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

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClientSnapshot":
        data = data or {}
        return cls(**{f.name: data.get(f.name) for f in fields(cls)})


@dataclass
class ProjectInfo:
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProjectInfo":
        data = data or {}
        return cls(
            name=data.get("name"),
            description=data.get("description"),
            start_date=to_date(data.get("start_date")),
            end_date=to_date(data.get("end_date")),
            location=data.get("location"),
        )


@dataclass
class PaymentMilestone:
    milestone: Optional[str] = None
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    due_date: Optional[date] = None
    status: str = "pending"  # pending | paid | overdue

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentMilestone":
        return cls(
            milestone=data.get("milestone"),
            percentage=to_decimal(data.get("percentage"), default=None),
            amount=to_decimal(data.get("amount"), default=None),
            due_date=to_date(data.get("due_date")),
            status=data.get("status") or "pending",
        )


@dataclass
class PaymentTerms:
    terms: Optional[str] = None
    method: Optional[str] = None
    schedule: List[PaymentMilestone] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PaymentTerms":
        data = data or {}
        return cls(
            terms=data.get("terms"),
            method=data.get("method"),
            schedule=[PaymentMilestone.from_dict(m) for m in data.get("schedule") or []],
        )


@dataclass
class ClientSignature:
    name: Optional[str] = None
    signed_at: Optional[datetime] = None
    ip: Optional[str] = None


@dataclass
class CompanySignature:
    name: Optional[str] = None
    signed_at: Optional[datetime] = None


@dataclass
class Signature:
    client: Optional[ClientSignature] = None
    company: Optional[CompanySignature] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Signature":
        data = data or {}
        client = data.get("client")
        company = data.get("company")
        return cls(
            client=ClientSignature(
                name=client.get("name"),
                signed_at=to_datetime(client.get("signed_at")),
                ip=client.get("ip"),
            ) if client else None,
            company=CompanySignature(
                name=company.get("name"),
                signed_at=to_datetime(company.get("signed_at")),
            ) if company else None,
        )


@dataclass(frozen=True)
class EmailHistoryEntry:
    sent_at: datetime
    recipient: Optional[str]
    subject: Optional[str]
    status: str  # sent | failed

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailHistoryEntry":
        return cls(
            sent_at=to_datetime(data.get("sent_at")),
            recipient=data.get("recipient"),
            subject=data.get("subject"),
            status=data.get("status") or "sent",
        )


@dataclass(frozen=True)
class ViewHistoryEntry:
    viewed_at: datetime
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ViewHistoryEntry":
        return cls(
            viewed_at=to_datetime(data.get("viewed_at")),
            ip=data.get("ip"),
            user_agent=data.get("user_agent"),
        )


@dataclass
class DocumentRecord:
    """A business document, live or snapshot.

    Snapshots have snapshot_of set to the live document's id and an empty
    previous_versions list. previous_versions holds snapshot ids only (weak
    references); the live document never embeds its snapshots.
    lock_version is the optimistic concurrency token and is bumped by the
    store on every write; version is the user-facing revision counter.
    """
    owner_id: UUID
    kind: DocumentKind
    document_number: str = ""
    id: UUID = field(default_factory=uuid4)
    template_id: Optional[UUID] = None
    client: ClientSnapshot = field(default_factory=ClientSnapshot)
    project: ProjectInfo = field(default_factory=ProjectInfo)
    items: List[LineItem] = field(default_factory=list)
    totals: Totals = field(default_factory=Totals)
    currency: str = "SAR"
    payment: PaymentTerms = field(default_factory=PaymentTerms)
    status: DocumentStatus = DocumentStatus.DRAFT
    valid_until: Optional[datetime] = None
    notes: Optional[str] = None
    attachments: List[str] = field(default_factory=list)
    signature: Signature = field(default_factory=Signature)
    email_history: List[EmailHistoryEntry] = field(default_factory=list)
    view_history: List[ViewHistoryEntry] = field(default_factory=list)
    version: int = 1
    previous_versions: List[UUID] = field(default_factory=list)
    snapshot_of: Optional[UUID] = None
    lock_version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_snapshot(self) -> bool:
        return self.snapshot_of is not None

    def to_dict(self) -> Dict[str, Any]:
        return encode(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            id=to_uuid(data["id"]),
            owner_id=to_uuid(data["owner_id"]),
            kind=DocumentKind(data["kind"]),
            document_number=data.get("document_number") or "",
            template_id=to_uuid(data.get("template_id")),
            client=ClientSnapshot.from_dict(data.get("client")),
            project=ProjectInfo.from_dict(data.get("project")),
            items=[LineItem.from_dict(i) for i in data.get("items") or []],
            totals=Totals.from_dict(data.get("totals")),
            currency=data.get("currency") or "SAR",
            payment=PaymentTerms.from_dict(data.get("payment")),
            status=DocumentStatus(data.get("status") or DocumentStatus.DRAFT.value),
            valid_until=to_datetime(data.get("valid_until")),
            notes=data.get("notes"),
            attachments=list(data.get("attachments") or []),
            signature=Signature.from_dict(data.get("signature")),
            email_history=[EmailHistoryEntry.from_dict(e) for e in data.get("email_history") or []],
            view_history=[ViewHistoryEntry.from_dict(v) for v in data.get("view_history") or []],
            version=int(data.get("version") or 1),
            previous_versions=[to_uuid(v) for v in data.get("previous_versions") or []],
            snapshot_of=to_uuid(data.get("snapshot_of")),
            lock_version=int(data.get("lock_version") or 0),
            created_at=to_datetime(data.get("created_at")) or utcnow(),
            updated_at=to_datetime(data.get("updated_at")) or utcnow(),
        )


DEFAULT_NUMBERING_PREFIXES: Dict[DocumentKind, str] = {
    DocumentKind.QUOTATION: "QUO",
    DocumentKind.INVOICE: "INV",
    DocumentKind.PROPOSAL: "PRO",
    DocumentKind.CONTRACT: "DOC",
}


@dataclass
class CompanyIdentity:
    name: Optional[str] = None
    logo: Optional[str] = None
    cr_number: Optional[str] = None
    vat_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CompanyIdentity":
        data = data or {}
        return cls(**{f.name: data.get(f.name) for f in fields(cls)})


@dataclass
class Branding:
    primary_color: str = "#4F46E5"
    secondary_color: str = "#06B6D4"
    font_family: str = "Inter"
    logo_position: str = "left"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Branding":
        data = data or {}
        defaults = cls()
        return cls(**{f.name: data.get(f.name) or getattr(defaults, f.name) for f in fields(cls)})


@dataclass
class Preferences:
    currency: str = "SAR"
    vat_rate: Decimal = Decimal("15")
    numbering_prefixes: Dict[str, str] = field(default_factory=dict)

    def prefix_for(self, kind: DocumentKind) -> str:
        return self.numbering_prefixes.get(kind.value) or DEFAULT_NUMBERING_PREFIXES[kind]

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Preferences":
        data = data or {}
        return cls(
            currency=data.get("currency") or "SAR",
            vat_rate=to_decimal(data.get("vat_rate"), default=Decimal("15")),
            numbering_prefixes=dict(data.get("numbering_prefixes") or {}),
        )


@dataclass
class OwnerProfile:
    """Company identity, branding and preferences of a document owner."""
    owner_id: UUID
    company: CompanyIdentity = field(default_factory=CompanyIdentity)
    branding: Branding = field(default_factory=Branding)
    preferences: Preferences = field(default_factory=Preferences)

    @classmethod
    def default(cls, owner_id: UUID, currency: Optional[str] = None) -> "OwnerProfile":
        profile = cls(owner_id=owner_id)
        if currency:
            profile.preferences.currency = currency
        return profile

    def to_dict(self) -> Dict[str, Any]:
        return encode(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OwnerProfile":
        return cls(
            owner_id=to_uuid(data["owner_id"]),
            company=CompanyIdentity.from_dict(data.get("company")),
            branding=Branding.from_dict(data.get("branding")),
            preferences=Preferences.from_dict(data.get("preferences")),
        )


@dataclass(frozen=True)
class DocumentQuery:
    """Predicate for count_matching. None fields do not filter."""
    owner_id: Optional[UUID] = None
    kind: Optional[DocumentKind] = None
    statuses: Optional[frozenset] = None
    created_from: Optional[datetime] = None
    created_before: Optional[datetime] = None
    include_snapshots: bool = False

    def matches(self, document: DocumentRecord) -> bool:
        if not self.include_snapshots and document.is_snapshot:
            return False
        if self.owner_id is not None and document.owner_id != self.owner_id:
            return False
        if self.kind is not None and document.kind != self.kind:
            return False
        if self.statuses is not None and document.status not in self.statuses:
            return False
        if self.created_from is not None and document.created_at < self.created_from:
            return False
        if self.created_before is not None and document.created_at >= self.created_before:
            return False
        return True
