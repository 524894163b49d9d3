"""Delivery adapters: artifact export and email transport."""

from .html_renderer import HtmlArtifactRenderer, artifact_to_html
from .pdf_renderer import PdfArtifactRenderer, artifact_to_flowables, artifact_to_pdf
from .smtp_mailer import SmtpDeliveryAdapter

__all__ = [
    "HtmlArtifactRenderer",
    "PdfArtifactRenderer",
    "SmtpDeliveryAdapter",
    "artifact_to_flowables",
    "artifact_to_html",
    "artifact_to_pdf",
]
