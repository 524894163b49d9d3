"""Typed template section variants.

Template sections are authored as free-form content/settings payloads. Each
section type has its own schema here; parse_section() merges the two payloads
and validates them against the variant selected by the type tag. The render
pipeline dispatches on the same tag.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from ..documents.errors import InvalidTemplate


class SectionBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    title: Optional[str] = None


class HeaderSection(SectionBase):
    type: Literal["header"] = "header"
    show_logo: bool = True
    show_company_details: bool = True
    alignment: Literal["left", "center", "right"] = "left"


class ClientInfoSection(SectionBase):
    type: Literal["client_info"] = "client_info"
    title: Optional[str] = "Client Information"
    show_vat_number: bool = True


class ProjectInfoSection(SectionBase):
    type: Literal["project_info"] = "project_info"
    title: Optional[str] = "Project"


ItemColumn = Literal["index", "description", "quantity", "unit", "unit_price", "discount", "tax", "total"]


class ItemsTableSection(SectionBase):
    type: Literal["items_table"] = "items_table"
    title: Optional[str] = "Items"
    columns: List[ItemColumn] = Field(
        default_factory=lambda: ["description", "quantity", "unit_price", "total"]
    )


class TotalsSection(SectionBase):
    type: Literal["totals"] = "totals"
    show_subtotal: bool = True
    show_discount: bool = True
    show_tax: bool = True


class PaymentTermsSection(SectionBase):
    type: Literal["payment_terms"] = "payment_terms"
    title: Optional[str] = "Payment Terms"
    show_schedule: bool = True


class NotesSection(SectionBase):
    type: Literal["notes"] = "notes"
    title: Optional[str] = "Notes"


class SignatureSection(SectionBase):
    type: Literal["signature"] = "signature"
    title: Optional[str] = "Signatures"
    show_client: bool = True
    show_company: bool = True


class TextSection(SectionBase):
    type: Literal["text"] = "text"
    body: str = ""


class PageBreakSection(SectionBase):
    type: Literal["page_break"] = "page_break"


SectionVariant = Annotated[
    Union[
        HeaderSection,
        ClientInfoSection,
        ProjectInfoSection,
        ItemsTableSection,
        TotalsSection,
        PaymentTermsSection,
        NotesSection,
        SignatureSection,
        TextSection,
        PageBreakSection,
    ],
    Field(discriminator="type"),
]

_section_adapter: TypeAdapter = TypeAdapter(SectionVariant)

SECTION_TYPES = frozenset(
    ["header", "client_info", "project_info", "items_table", "totals",
     "payment_terms", "notes", "signature", "text", "page_break"]
)


def parse_section(section_type: str, content: Any = None, settings: Optional[Dict[str, Any]] = None):
    """Validate a raw section payload into its typed variant.

    Content keys override settings keys. A bare string content is treated as
    the section body (text sections).

    Raises:
        InvalidTemplate: Unknown type tag or payload not matching the schema
    """
    if section_type not in SECTION_TYPES:
        raise InvalidTemplate(f"Unknown template section type: {section_type!r}")

    if isinstance(content, str):
        content = {"body": content}
    if content is not None and not isinstance(content, dict):
        raise InvalidTemplate(f"Section {section_type!r} content must be an object or text")
    payload: Dict[str, Any] = {}
    payload.update(settings or {})
    payload.update(content or {})
    payload["type"] = section_type

    try:
        return _section_adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidTemplate(f"Invalid {section_type} section: {e.errors()}") from e
