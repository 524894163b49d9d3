"""Artifact → HTML conversion.

The HTML document is self-contained (inline CSS only) so it can be attached
to an email or printed to PDF by an external converter. All text and
attribute values are escaped.
"""

import html
from typing import List

from ...domain.documents.ports import DeliveryPort, DeliveryReceipt, ExportedFile, OutboundMessage
from ...domain.rendering.artifact import ArtifactNode

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# Artifact tags that map straight onto an HTML element
_ELEMENTS = {
    "section": "section",
    "paragraph": "p",
    "label": "span",
    "value": "span",
    "field": "div",
    "signature": "div",
    "table": "table",
    "row": "tr",
}


def _attrs(attrs: dict) -> str:
    return "".join(f' data-{html.escape(k)}="{html.escape(v, quote=True)}"' for k, v in sorted(attrs.items()))


def _stylesheet(layout: ArtifactNode) -> str:
    a = layout.attrs
    margins = " ".join(f"{a.get(side, '60')}px" for side in ("margin_top", "margin_right", "margin_bottom", "margin_left"))
    rules = [
        f"@page {{ size: {a.get('page_size', 'A4')} {a.get('orientation', 'portrait')}; margin: {margins}; }}",
        f"body {{ font-family: '{a.get('font_body', 'Inter')}', sans-serif;"
        + (f" color: {a['color_text']};" if "color_text" in a else "")
        + (f" background: {a['color_background']};" if "color_background" in a else "")
        + (f" font-size: {a['font_size']}px;" if "font_size" in a else "")
        + " }",
        f"h1, h2 {{ font-family: '{a.get('font_heading', 'Inter')}', sans-serif; color: {a.get('color_primary', '#4F46E5')}; }}",
        f"th {{ background: {a.get('color_primary', '#4F46E5')}; color: #fff; text-align: left; }}",
        f"tr:nth-child(even) td {{ background: {a.get('color_secondary', '#06B6D4')}1A; }}",
        "table { width: 100%; border-collapse: collapse; } td, th { padding: 6px; }",
        ".field label, .field .label { font-weight: 600; margin-right: 8px; }",
        ".page-break { page-break-after: always; }",
    ]
    return "\n".join(html.escape(rule, quote=False) for rule in rules)


def render_node(node: ArtifactNode, out: List[str], header: bool = False) -> None:
    tag = node.tag
    if tag == "layout":
        return
    if tag == "page-break":
        out.append('<div class="page-break"></div>')
        return
    if tag == "image":
        out.append(f'<img src="{html.escape(node.attrs.get("src", ""), quote=True)}" alt="logo">')
        return
    if tag == "heading":
        element = "h1" if node.attrs.get("level") == "1" else "h2"
    elif tag == "cell":
        element = "th" if header else "td"
    else:
        element = _ELEMENTS.get(tag, "div")

    css_class = f' class="{html.escape(tag)}"'
    out.append(f"<{element}{css_class}{_attrs(node.attrs)}>")
    header_row = tag == "row" and node.attrs.get("role") == "header"
    for child in node.children:
        if isinstance(child, ArtifactNode):
            render_node(child, out, header=header_row)
        else:
            out.append(html.escape(child))
    out.append(f"</{element}>")


def artifact_to_html(artifact: ArtifactNode) -> str:
    """Serialize a rendered document artifact as a standalone HTML page."""
    layouts = artifact.find_all("layout")
    style = _stylesheet(layouts[0]) if layouts else ""
    title = f"{artifact.attrs.get('kind', 'document').capitalize()} {artifact.attrs.get('number', '')}".strip()

    body: List[str] = []
    for child in artifact.children:
        if isinstance(child, ArtifactNode):
            render_node(child, body)

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        f"<style>\n{style}\n</style>\n</head>\n"
        f"<body{_attrs(artifact.attrs)}>\n" + "".join(body) + "\n</body>\n</html>\n"
    )


class HtmlArtifactRenderer(DeliveryPort):
    """Export-only delivery adapter producing HTML files.

    send() is not supported by this adapter and always reports a failed
    receipt; pair it with SmtpDeliveryAdapter for email delivery.
    """

    def export(self, artifact: ArtifactNode, filename_stem: str) -> ExportedFile:
        return ExportedFile(
            filename=f"{filename_stem}.html",
            content_type=HTML_CONTENT_TYPE,
            content=artifact_to_html(artifact).encode("utf-8"),
        )

    def send(self, artifact: ArtifactNode, message: OutboundMessage) -> DeliveryReceipt:
        return DeliveryReceipt(success=False, error="Email delivery is not configured")
