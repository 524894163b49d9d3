"""Document SQLAlchemy model

A row is either a live document or an immutable version snapshot of one
(snapshot_of_id set). Document numbers are unique among live rows only;
snapshots carry the number of the document they were taken from.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.sql import text

from .base import Base, PortableJSONB, UTCDateTime


class Document(Base):
    """Document model for quotations, invoices, proposals and contracts.

    Nested document parts (client snapshot, items, totals, payment terms,
    signature, histories) are stored as JSON; money values inside them are
    decimal strings.
    """
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_owner_id", "owner_id"),
        Index("ix_documents_owner_status", "owner_id", "status"),
        Index("ix_documents_snapshot_of_id", "snapshot_of_id"),
        Index(
            "uq_documents_live_number",
            "owner_id",
            "document_number",
            unique=True,
            postgresql_where=text("snapshot_of_id IS NULL"),
            sqlite_where=text("snapshot_of_id IS NULL"),
        ),
    )

    id = Column(Uuid, primary_key=True)
    owner_id = Column(Uuid, nullable=False)
    kind = Column(String(32), nullable=False)
    document_number = Column(Text, nullable=False)
    template_id = Column(Uuid, nullable=True)  # weak reference, template may be deleted
    status = Column(String(32), nullable=False, default="draft")
    currency = Column(String(3), nullable=False)
    client = Column(PortableJSONB, nullable=False, default=dict)
    project = Column(PortableJSONB, nullable=False, default=dict)
    items = Column(PortableJSONB, nullable=False, default=list)
    totals = Column(PortableJSONB, nullable=False, default=dict)
    payment = Column(PortableJSONB, nullable=False, default=dict)
    signature = Column(PortableJSONB, nullable=False, default=dict)
    email_history = Column(PortableJSONB, nullable=False, default=list)
    view_history = Column(PortableJSONB, nullable=False, default=list)
    attachments = Column(PortableJSONB, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    valid_until = Column(UTCDateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    previous_versions = Column(PortableJSONB, nullable=False, default=list)  # snapshot ids
    snapshot_of_id = Column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=True
    )
    lock_version = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)

    def __repr__(self):
        return f"<Document(id={self.id}, number={self.document_number}, status={self.status})>"
