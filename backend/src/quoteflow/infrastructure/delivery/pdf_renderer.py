"""Artifact → PDF conversion using reportlab.

Layout attributes (page size, orientation, margins, colors, font size) are
honored; typefaces are always the built-in Helvetica family since branding
fonts are not embedded. Images are not fetched: a logo is referenced by URL
and appears only in the HTML export.
"""

import io
import logging
from typing import Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A3, A4, A5, LEGAL, LETTER, landscape, portrait
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Flowable, PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ...domain.documents.ports import DeliveryPort, DeliveryReceipt, ExportedFile, OutboundMessage
from ...domain.rendering.artifact import ArtifactNode

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

PAGE_SIZES = {
    "A3": A3,
    "A4": A4,
    "A5": A5,
    "LETTER": LETTER,
    "LEGAL": LEGAL,
}

DEFAULT_PRIMARY = "#4F46E5"
DEFAULT_TEXT = "#0f172a"
GRID_COLOR = "#e2e8f0"
DEFAULT_FONT_SIZE = 10


def page_size_for(layout: Dict[str, str]) -> Tuple[float, float]:
    """Page size in points; unknown sizes fall back to A4."""
    size = PAGE_SIZES.get(layout.get("page_size", "A4").upper(), A4)
    if layout.get("orientation") == "landscape":
        return landscape(size)
    return portrait(size)


def _color(value: Optional[str], default: str):
    try:
        return colors.HexColor(value or default)
    except (ValueError, TypeError):
        logger.warning(f"Invalid color {value!r} in document layout, using {default}")
        return colors.HexColor(default)


def _margin(layout: Dict[str, str], side: str) -> float:
    try:
        return float(layout.get(f"margin_{side}", 60))
    except ValueError:
        return 60.0


def _text(value: str) -> str:
    return escape(value).replace("\n", "<br/>")


class _PdfBuilder:
    """Turns artifact nodes into reportlab flowables for one document."""

    def __init__(self, layout: Dict[str, str], width: float):
        self.width = width
        self.primary = _color(layout.get("color_primary"), DEFAULT_PRIMARY)
        try:
            font_size = int(layout.get("font_size") or DEFAULT_FONT_SIZE)
        except ValueError:
            font_size = DEFAULT_FONT_SIZE

        base = getSampleStyleSheet()
        text_color = _color(layout.get("color_text"), DEFAULT_TEXT)
        self.body = ParagraphStyle(
            "DocumentBody", parent=base["Normal"], fontName="Helvetica",
            fontSize=font_size, leading=font_size * 1.3, textColor=text_color,
        )
        self.label = ParagraphStyle("DocumentLabel", parent=self.body, fontName="Helvetica-Bold")
        self.title = ParagraphStyle(
            "DocumentTitle", parent=base["Heading1"], fontName="Helvetica-Bold", textColor=self.primary,
        )
        self.heading = ParagraphStyle(
            "DocumentHeading", parent=base["Heading2"], fontName="Helvetica-Bold", textColor=self.primary,
        )
        self.header_cell = ParagraphStyle(
            "DocumentHeaderCell", parent=self.label, textColor=colors.white,
        )

    def document(self, artifact: ArtifactNode) -> List[Flowable]:
        elements: List[Flowable] = []
        for child in artifact.children:
            if not isinstance(child, ArtifactNode) or child.tag == "layout":
                continue
            if child.tag == "page-break":
                elements.append(PageBreak())
            else:
                elements.extend(self.block(child))
                elements.append(Spacer(1, 12))
        return elements

    def block(self, node: ArtifactNode) -> List[Flowable]:
        """Flowables for a section or signature block; runs of fields become one table."""
        elements: List[Flowable] = []
        fields: List[ArtifactNode] = []

        def flush():
            if fields:
                elements.append(self.field_table(fields))
                fields.clear()

        for child in node.children:
            if not isinstance(child, ArtifactNode):
                if child.strip():
                    flush()
                    elements.append(Paragraph(_text(child), self.body))
                continue
            if child.tag == "field":
                fields.append(child)
                continue
            flush()
            if child.tag == "heading":
                style = self.title if child.attrs.get("level") == "1" else self.heading
                elements.append(Paragraph(_text(child.text()), style))
            elif child.tag == "paragraph":
                elements.append(Paragraph(_text(child.text()), self.body))
            elif child.tag == "table":
                elements.append(self.table(child))
            elif child.tag == "page-break":
                elements.append(PageBreak())
            elif child.tag == "image":
                continue
            else:
                elements.extend(self.block(child))
                elements.append(Spacer(1, 6))
        flush()
        return elements

    def field_table(self, fields: List[ArtifactNode]) -> Table:
        rows = []
        for field_node in fields:
            label = field_node.find_all("label")
            value = field_node.find_all("value")
            rows.append([
                Paragraph(_text(label[0].text() if label else ""), self.label),
                Paragraph(_text(value[0].text() if value else ""), self.body),
            ])
        table = Table(rows, colWidths=[self.width * 0.3, self.width * 0.7], hAlign="LEFT")
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ]))
        return table

    def table(self, node: ArtifactNode) -> Table:
        rows = [r for r in node.children if isinstance(r, ArtifactNode) and r.tag == "row"]
        columns = max((len(r.children) for r in rows), default=1) or 1
        has_header = bool(rows) and rows[0].attrs.get("role") == "header"

        data = []
        for i, row in enumerate(rows):
            style = self.header_cell if has_header and i == 0 else self.body
            cells = [
                Paragraph(_text(c.text() if isinstance(c, ArtifactNode) else c), style)
                for c in row.children
            ]
            cells.extend(Paragraph("", style) for _ in range(columns - len(cells)))
            data.append(cells)
        if not data:
            data = [[Paragraph("", self.body)]]

        table = Table(data, colWidths=[self.width / columns] * columns, repeatRows=1 if has_header else 0)
        commands = [
            ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor(GRID_COLOR)),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]
        if has_header:
            commands.append(("BACKGROUND", (0, 0), (-1, 0), self.primary))
        table.setStyle(TableStyle(commands))
        return table


def artifact_to_flowables(artifact: ArtifactNode) -> List[Flowable]:
    """reportlab flowables for a rendered document artifact."""
    layouts = artifact.find_all("layout")
    layout = layouts[0].attrs if layouts else {}
    page_width, _ = page_size_for(layout)
    width = page_width - _margin(layout, "left") - _margin(layout, "right")
    return _PdfBuilder(layout, width).document(artifact)


def artifact_to_pdf(artifact: ArtifactNode) -> bytes:
    """Serialize a rendered document artifact as a PDF file."""
    layouts = artifact.find_all("layout")
    layout = layouts[0].attrs if layouts else {}
    title = f"{artifact.attrs.get('kind', 'document').capitalize()} {artifact.attrs.get('number', '')}".strip()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=page_size_for(layout),
        topMargin=_margin(layout, "top"),
        rightMargin=_margin(layout, "right"),
        bottomMargin=_margin(layout, "bottom"),
        leftMargin=_margin(layout, "left"),
        title=title,
    )
    doc.build(artifact_to_flowables(artifact))
    return buffer.getvalue()


class PdfArtifactRenderer(DeliveryPort):
    """Export-only delivery adapter producing PDF files.

    send() is not supported by this adapter and always reports a failed
    receipt; pair it with SmtpDeliveryAdapter for email delivery.
    """

    def export(self, artifact: ArtifactNode, filename_stem: str) -> ExportedFile:
        return ExportedFile(
            filename=f"{filename_stem}.pdf",
            content_type=PDF_CONTENT_TYPE,
            content=artifact_to_pdf(artifact),
        )

    def send(self, artifact: ArtifactNode, message: OutboundMessage) -> DeliveryReceipt:
        return DeliveryReceipt(success=False, error="Email delivery is not configured")
