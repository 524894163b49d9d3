"""Unit tests for artifact → PDF conversion (reportlab)"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

import pytest
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.platypus import PageBreak, Paragraph, Table

from quoteflow.domain.documents.models import ClientSnapshot, DocumentKind, DocumentRecord, LineItem
from quoteflow.domain.documents.ports import OutboundMessage
from quoteflow.domain.documents.totals import price_items
from quoteflow.domain.rendering.artifact import node
from quoteflow.domain.rendering.pipeline import RenderPipeline
from quoteflow.domain.templates.models import PageSettings, ResolvedSection, ResolvedTemplate
from quoteflow.domain.templates.resolver import default_template
from quoteflow.domain.templates.sections import parse_section
from quoteflow.infrastructure.delivery import PdfArtifactRenderer, SmtpDeliveryAdapter, artifact_to_flowables
from quoteflow.infrastructure.delivery.pdf_renderer import page_size_for

CREATED = datetime(2025, 3, 15, 9, 0, tzinfo=timezone.utc)


def rendered_artifact(notes=None, template=None):
    items, totals = price_items([
        LineItem(description="Design", quantity=Decimal("2"), unit_price=Decimal("100")),
        LineItem(description="Site visit", quantity=Decimal("1"), unit_price=Decimal("50")),
    ], "SAR")
    document = DocumentRecord(
        owner_id=uuid4(),
        kind=DocumentKind.QUOTATION,
        document_number="QUO-2025-001",
        client=ClientSnapshot(name="Sara Al-Harbi", company="Nakheel Trading"),
        items=items,
        totals=totals,
        notes=notes,
        created_at=CREATED,
        updated_at=CREATED,
    )
    return RenderPipeline().render(document, template or default_template()).artifact


def flowable_texts(flowables) -> list:
    """Text of every Paragraph, including those inside tables."""
    texts = []
    for flowable in flowables:
        if isinstance(flowable, Paragraph):
            texts.append(flowable.text)
        elif isinstance(flowable, Table):
            for row in flowable._cellvalues:
                texts.extend(flowable_texts(row))
    return texts


class TestPageSize:

    @pytest.mark.parametrize("attrs,expected", [
        ({}, A4),
        ({"page_size": "Letter"}, LETTER),
        ({"page_size": "Tabloid"}, A4),
    ])
    def test_portrait_sizes(self, attrs, expected):
        assert page_size_for(attrs) == expected

    def test_landscape_swaps_dimensions(self):
        width, height = page_size_for({"page_size": "A4", "orientation": "landscape"})

        assert width > height
        assert (height, width) == A4


class TestFlowables:
    """Test the artifact tree is mapped onto reportlab flowables"""

    def test_document_content_present(self):
        texts = flowable_texts(artifact_to_flowables(rendered_artifact()))

        assert "Quotation" in texts
        assert "QUO-2025-001" in texts
        assert "Nakheel Trading" in texts
        assert "Site visit" in texts
        assert "250.00" in texts

    def test_items_table_has_header_row(self):
        tables = [f for f in artifact_to_flowables(rendered_artifact()) if isinstance(f, Table)]

        header = ["Description", "Qty", "Unit Price", "Total"]
        header_rows = [t for t in tables if flowable_texts(t._cellvalues[0]) == header]
        assert len(header_rows) == 1
        assert header_rows[0].repeatRows == 1

    def test_markup_is_escaped(self):
        texts = flowable_texts(artifact_to_flowables(rendered_artifact(notes="Steel & glass <b>only</b>")))

        assert "Steel &amp; glass &lt;b&gt;only&lt;/b&gt;" in texts

    def test_page_break_section(self):
        template = ResolvedTemplate(
            template_id=None,
            name="Two pages",
            kind=None,
            sections=(
                ResolvedSection(order=0, position=1, section=parse_section("header")),
                ResolvedSection(order=1, position=2, section=parse_section("page_break")),
                ResolvedSection(order=2, position=3, section=parse_section("totals")),
            ),
            page=PageSettings(),
        )

        flowables = artifact_to_flowables(rendered_artifact(template=template))

        assert sum(isinstance(f, PageBreak) for f in flowables) == 1

    def test_invalid_layout_color_falls_back(self):
        artifact = node(
            "document",
            node("layout", color_primary="teal", font_size="11"),
            node("section", node("table", node("row", node("cell", "A"), role="header")), type="text"),
        )

        (table,) = [f for f in artifact_to_flowables(artifact) if isinstance(f, Table)]

        assert flowable_texts(table._cellvalues[0]) == ["A"]


class TestPdfExport:

    def test_export_file(self):
        exported = PdfArtifactRenderer().export(rendered_artifact(), "QUO-2025-001")

        assert exported.filename == "QUO-2025-001.pdf"
        assert exported.content_type == "application/pdf"
        assert exported.content.startswith(b"%PDF")
        assert exported.content.rstrip().endswith(b"%%EOF")

    def test_send_not_supported(self):
        receipt = PdfArtifactRenderer().send(
            rendered_artifact(), OutboundMessage(recipient="a@b.example", subject="s", body="b", attachment_stem="x")
        )

        assert receipt.success is False

    def test_smtp_attachment_is_pdf(self):
        """Test the mail adapter attaches the PDF export by default"""
        adapter = SmtpDeliveryAdapter(host="smtp.example", use_tls=False)
        message = OutboundMessage(
            recipient="sara@nakheel.example", subject="Quotation - QUO-2025-001",
            body="Please find attached", attachment_stem="QUO-2025-001",
        )

        with patch("quoteflow.infrastructure.delivery.smtp_mailer.smtplib.SMTP") as smtp:
            receipt = adapter.send(rendered_artifact(), message)

        assert receipt.success is True
        sent = smtp.return_value.__enter__.return_value.send_message.call_args.args[0]
        (attachment,) = [p for p in sent.walk() if p.get_filename()]
        assert attachment.get_filename() == "QUO-2025-001.pdf"
        assert attachment.get_content_type() == "application/pdf"
        assert attachment.get_payload(decode=True).startswith(b"%PDF")
