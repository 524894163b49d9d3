"""SMTP delivery adapter.

Sends the rendered document as an attachment, PDF unless another exporter
is given. Transport errors are reported through the DeliveryReceipt; the
lifecycle service decides what a failed send means for the document.
"""

import logging
import smtplib
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional

from ...domain.documents.ports import DeliveryPort, DeliveryReceipt, ExportedFile, OutboundMessage
from ...domain.rendering.artifact import ArtifactNode
from .pdf_renderer import PdfArtifactRenderer

logger = logging.getLogger(__name__)


class SmtpDeliveryAdapter(DeliveryPort):
    """Delivery adapter exporting the document and mailing it over SMTP."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "noreply@quoteflow.local",
        use_tls: bool = True,
        timeout: float = 30.0,
        exporter: Optional[DeliveryPort] = None
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout
        self.exporter = exporter or PdfArtifactRenderer()

    def export(self, artifact: ArtifactNode, filename_stem: str) -> ExportedFile:
        return self.exporter.export(artifact, filename_stem)

    def build_message(self, attachment: ExportedFile, message: OutboundMessage) -> MIMEMultipart:
        msg = MIMEMultipart()
        msg["From"] = self.sender
        msg["To"] = message.recipient
        msg["Subject"] = message.subject
        msg["Message-ID"] = make_msgid(domain=self.sender.split("@")[-1])
        msg.attach(MIMEText(message.body, "html", "utf-8"))

        maintype, subtype = attachment.content_type.split(";")[0].split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(attachment.content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        msg.attach(part)
        return msg

    def send(self, artifact: ArtifactNode, message: OutboundMessage) -> DeliveryReceipt:
        msg = self.build_message(self.export(artifact, message.attachment_stem), message)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP delivery to {message.recipient} failed: {e}")
            return DeliveryReceipt(success=False, error=str(e))

        return DeliveryReceipt(success=True, message_id=msg["Message-ID"])
