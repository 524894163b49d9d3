"""Delivery Port - Domain interface for exporting and emailing rendered documents.

The render pipeline produces a structured artifact; converting it into a
fixed-layout byte stream and transporting it by email are the adapter's job.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ...rendering.artifact import ArtifactNode


@dataclass(frozen=True)
class ExportedFile:
    """A rendered document converted to bytes for download.

    Attributes:
        filename: Download filename (e.g. QUO-2025-001.html)
        content_type: MIME type of content
        content: File bytes
    """
    filename: str
    content_type: str
    content: bytes


@dataclass(frozen=True)
class OutboundMessage:
    recipient: str
    subject: str
    body: str
    attachment_stem: str


@dataclass(frozen=True)
class DeliveryReceipt:
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


class DeliveryPort(ABC):
    """Port interface for export/delivery collaborators."""

    @abstractmethod
    def export(self, artifact: ArtifactNode, filename_stem: str) -> ExportedFile:
        """Convert an artifact into a downloadable file.

        Args:
            artifact: Rendered artifact tree
            filename_stem: Filename without extension (usually the document number)

        Returns:
            ExportedFile with bytes and content type
        """
        pass

    @abstractmethod
    def send(self, artifact: ArtifactNode, message: OutboundMessage) -> DeliveryReceipt:
        """Send the artifact as an email attachment.

        Transport errors must be reported through the receipt, not raised, so
        the orchestrator can record the failed attempt.
        """
        pass
