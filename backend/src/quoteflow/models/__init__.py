"""SQLAlchemy models for QuoteFlow"""

from .base import Base, PortableJSONB
from .document import Document
from .document_counter import DocumentCounter
from .owner_profile import OwnerProfileRow
from .template import Template

__all__ = [
    "Base",
    "PortableJSONB",
    "Document",
    "DocumentCounter",
    "OwnerProfileRow",
    "Template",
]
