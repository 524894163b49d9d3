"""Render pipeline - document + resolved template + owner profile → artifact.

Rendering is pure: the same inputs always produce an identical artifact, no
clock or randomness is consulted, and nothing is written. Layout (page size,
margins, colors, fonts) comes from the template, with the owner's branding
filling colors and fonts the template leaves unset. Content always comes from
the document.

Totals shown are recomputed from the line items; where the persisted totals
disagree, the artifact still renders and a TotalsMismatch warning is returned.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from ...observability.metrics import totals_mismatch_total
from ..documents.errors import TotalsMismatch
from ..documents.models import DocumentRecord, OwnerProfile
from ..documents.totals import compare_totals, compute_line_total, compute_totals, format_amount, round_money
from ..templates.models import PageSettings, ResolvedTemplate
from ..templates.sections import (
    ClientInfoSection,
    HeaderSection,
    ItemsTableSection,
    NotesSection,
    PageBreakSection,
    PaymentTermsSection,
    ProjectInfoSection,
    SignatureSection,
    TextSection,
    TotalsSection,
)
from .artifact import ArtifactNode, node

logger = logging.getLogger(__name__)

COLUMN_LABELS = {
    "index": "#",
    "description": "Description",
    "quantity": "Qty",
    "unit": "Unit",
    "unit_price": "Unit Price",
    "discount": "Discount",
    "tax": "Tax",
    "total": "Total",
}


@dataclass(frozen=True)
class RenderResult:
    artifact: ArtifactNode
    warnings: Tuple[TotalsMismatch, ...] = ()


@dataclass(frozen=True)
class _RenderContext:
    document: DocumentRecord
    profile: OwnerProfile
    line_totals: Tuple[Decimal, ...]
    computed: Any  # Totals

    @property
    def currency(self) -> str:
        return self.document.currency


def text_of(value: Any) -> str:
    """Display text for a field; missing values render as ''."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def field_node(name: str, label: str, value: Any) -> ArtifactNode:
    return node("field", node("label", label), node("value", text_of(value)), name=name)


def _title(section) -> List[ArtifactNode]:
    return [node("heading", section.title)] if section.title else []


def _render_header(section: HeaderSection, ctx: _RenderContext) -> ArtifactNode:
    company = ctx.profile.company
    document = ctx.document
    children = []
    if section.show_logo and company.logo:
        children.append(node("image", src=company.logo, role="logo"))
    children.append(field_node("company.name", "Company", company.name))
    if section.show_company_details:
        children.extend([
            field_node("company.address", "Address", company.address),
            field_node("company.city", "City", company.city),
            field_node("company.country", "Country", company.country),
            field_node("company.phone", "Phone", company.phone),
            field_node("company.email", "Email", company.email),
            field_node("company.website", "Website", company.website),
            field_node("company.vat_number", "VAT Number", company.vat_number),
            field_node("company.cr_number", "CR Number", company.cr_number),
        ])
    children.extend([
        node("heading", document.kind.value.capitalize(), level="1"),
        field_node("document_number", "Number", document.document_number),
        field_node("date", "Date", document.created_at),
        field_node("valid_until", "Valid Until", document.valid_until),
    ])
    return node("section", *_title(section), *children, type="header", align=section.alignment)


def _render_client_info(section: ClientInfoSection, ctx: _RenderContext) -> ArtifactNode:
    client = ctx.document.client
    fields = [
        field_node("client.name", "Name", client.name),
        field_node("client.company", "Company", client.company),
        field_node("client.email", "Email", client.email),
        field_node("client.phone", "Phone", client.phone),
        field_node("client.address", "Address", client.address),
        field_node("client.city", "City", client.city),
        field_node("client.country", "Country", client.country),
    ]
    if section.show_vat_number:
        fields.append(field_node("client.vat_number", "VAT Number", client.vat_number))
    return node("section", *_title(section), *fields, type="client_info")


def _render_project_info(section: ProjectInfoSection, ctx: _RenderContext) -> ArtifactNode:
    project = ctx.document.project
    return node(
        "section",
        *_title(section),
        field_node("project.name", "Project", project.name),
        field_node("project.description", "Description", project.description),
        field_node("project.location", "Location", project.location),
        field_node("project.start_date", "Start Date", project.start_date),
        field_node("project.end_date", "End Date", project.end_date),
        type="project_info",
    )


def _cell(column: str, index: int, item, line_total: Decimal, currency: str) -> str:
    if column == "index":
        return str(index + 1)
    if column == "description":
        return item.description or ""
    if column == "quantity":
        return text_of(item.quantity)
    if column == "unit":
        return text_of(item.unit)
    if column == "unit_price":
        return format_amount(item.unit_price, currency)
    if column == "discount":
        return f"{(item.discount * 100).normalize():f}%"
    if column == "tax":
        return format_amount(item.tax, currency)
    return format_amount(line_total, currency)


def _render_items_table(section: ItemsTableSection, ctx: _RenderContext) -> ArtifactNode:
    header = node("row", *[node("cell", COLUMN_LABELS[c], column=c) for c in section.columns], role="header")
    rows = [
        node(
            "row",
            *[node("cell", _cell(c, i, item, ctx.line_totals[i], ctx.currency), column=c) for c in section.columns],
            index=i,
        )
        for i, item in enumerate(ctx.document.items)
    ]
    return node("section", *_title(section), node("table", header, *rows), type="items_table")


def _render_totals(section: TotalsSection, ctx: _RenderContext) -> ArtifactNode:
    totals = ctx.computed
    rows = []
    if section.show_subtotal:
        rows.append(field_node("totals.subtotal", "Subtotal", format_amount(totals.subtotal, ctx.currency)))
    if section.show_discount:
        rows.append(field_node("totals.discount", "Discount", format_amount(totals.discount, ctx.currency)))
    if section.show_tax:
        rows.append(field_node("totals.tax", "Tax", format_amount(totals.tax, ctx.currency)))
    rows.append(field_node("totals.total", "Total", format_amount(totals.total, ctx.currency)))
    return node("section", *_title(section), *rows, type="totals", currency=ctx.currency)


def _render_payment_terms(section: PaymentTermsSection, ctx: _RenderContext) -> ArtifactNode:
    payment = ctx.document.payment
    children = [
        field_node("payment.terms", "Terms", payment.terms),
        field_node("payment.method", "Method", payment.method),
    ]
    if section.show_schedule and payment.schedule:
        header = node(
            "row",
            node("cell", "Milestone"), node("cell", "Percentage"), node("cell", "Amount"),
            node("cell", "Due Date"), node("cell", "Status"),
            role="header",
        )
        rows = [
            node(
                "row",
                node("cell", text_of(m.milestone)),
                node("cell", f"{m.percentage.normalize():f}%" if m.percentage is not None else ""),
                node("cell", format_amount(m.amount, ctx.currency)),
                node("cell", text_of(m.due_date)),
                node("cell", m.status),
                index=i,
            )
            for i, m in enumerate(payment.schedule)
        ]
        children.append(node("table", header, *rows, role="schedule"))
    return node("section", *_title(section), *children, type="payment_terms")


def _render_notes(section: NotesSection, ctx: _RenderContext) -> ArtifactNode:
    return node("section", *_title(section), node("paragraph", text_of(ctx.document.notes)), type="notes")


def _render_signature(section: SignatureSection, ctx: _RenderContext) -> ArtifactNode:
    signature = ctx.document.signature
    blocks = []
    if section.show_client:
        client = signature.client
        blocks.append(node(
            "signature",
            field_node("signature.client.name", "Client", client.name if client else None),
            field_node("signature.client.signed_at", "Signed", client.signed_at if client else None),
            party="client",
        ))
    if section.show_company:
        company = signature.company
        blocks.append(node(
            "signature",
            field_node("signature.company.name", "Company", company.name if company else ctx.profile.company.name),
            field_node("signature.company.signed_at", "Signed", company.signed_at if company else None),
            party="company",
        ))
    return node("section", *_title(section), *blocks, type="signature")


def _render_text(section: TextSection, ctx: _RenderContext) -> ArtifactNode:
    return node("section", *_title(section), node("paragraph", section.body), type="text")


def _render_page_break(section: PageBreakSection, ctx: _RenderContext) -> ArtifactNode:
    return node("page-break")


_RENDERERS: Dict[str, Callable[[Any, _RenderContext], ArtifactNode]] = {
    "header": _render_header,
    "client_info": _render_client_info,
    "project_info": _render_project_info,
    "items_table": _render_items_table,
    "totals": _render_totals,
    "payment_terms": _render_payment_terms,
    "notes": _render_notes,
    "signature": _render_signature,
    "text": _render_text,
    "page_break": _render_page_break,
}


def layout_node(page: PageSettings, profile: OwnerProfile) -> ArtifactNode:
    """Page layout; template values win, branding fills unset colors and fonts."""
    branding = profile.branding
    return node(
        "layout",
        page_size=page.page_size,
        orientation=page.orientation,
        margin_top=page.margins.top,
        margin_right=page.margins.right,
        margin_bottom=page.margins.bottom,
        margin_left=page.margins.left,
        color_primary=page.colors.primary or branding.primary_color,
        color_secondary=page.colors.secondary or branding.secondary_color,
        color_text=page.colors.text,
        color_background=page.colors.background,
        font_heading=page.fonts.heading or branding.font_family,
        font_body=page.fonts.body or branding.font_family,
        font_size=page.fonts.size,
        logo_position=branding.logo_position,
    )


def line_item_mismatches(document: DocumentRecord, line_totals: Tuple[Decimal, ...]) -> List[TotalsMismatch]:
    mismatches = []
    for i, (item, computed) in enumerate(zip(document.items, line_totals)):
        if item.total is not None and round_money(item.total, document.currency) != computed:
            mismatches.append(TotalsMismatch(field=f"items[{i}].total", computed=computed, persisted=item.total))
    return mismatches


class RenderPipeline:
    """Combines a document, a resolved template and an owner profile into an artifact."""

    def render(
        self,
        document: DocumentRecord,
        template: ResolvedTemplate,
        profile: Optional[OwnerProfile] = None
    ) -> RenderResult:
        """Render a document.

        Args:
            document: Document to render (live or snapshot)
            template: Resolved template (see TemplateResolver / default_template)
            profile: Owner profile for company identity and branding; defaults if None

        Returns:
            RenderResult with the artifact and any totals warnings
        """
        profile = profile or OwnerProfile.default(document.owner_id)
        line_totals = tuple(compute_line_total(item, document.currency) for item in document.items)
        computed = compute_totals(document.items, document.currency)

        warnings = compare_totals(computed, document.totals, document.currency)
        warnings.extend(line_item_mismatches(document, line_totals))
        for warning in warnings:
            totals_mismatch_total.labels(field=warning.field.split("[")[0]).inc()
        if warnings:
            logger.warning(
                f"Document {document.document_number} has totals that disagree with its line items: "
                f"{[w.field for w in warnings]}",
                extra={"document_id": document.id},
            )

        ctx = _RenderContext(
            document=document,
            profile=profile,
            line_totals=line_totals,
            computed=computed,
        )
        sections = [_RENDERERS[resolved.section.type](resolved.section, ctx) for resolved in template.sections]

        artifact = node(
            "document",
            layout_node(template.page, profile),
            *sections,
            kind=document.kind.value,
            number=document.document_number,
            version=document.version,
            status=document.status.value,
            currency=document.currency,
            template=template.template_id,
        )
        return RenderResult(artifact=artifact, warnings=tuple(warnings))
