"""Template SQLAlchemy model"""

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, Uuid

from .base import Base, PortableJSONB, UTCDateTime


class Template(Base):
    """Reusable document layout owned by a user, optionally public.

    sections holds the authored section payloads (type, position, content,
    settings) unparsed; settings holds page size, orientation, margins,
    colors and fonts.
    """
    __tablename__ = "templates"
    __table_args__ = (
        Index("ix_templates_owner_id", "owner_id"),
    )

    id = Column(Uuid, primary_key=True)
    owner_id = Column(Uuid, nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    kind = Column(String(32), nullable=False)
    is_public = Column(Boolean, nullable=False, default=False)
    sections = Column(PortableJSONB, nullable=False, default=list)
    settings = Column(PortableJSONB, nullable=False, default=dict)
    usage_count = Column(Integer, nullable=False, default=0)
    tags = Column(PortableJSONB, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)

    def __repr__(self):
        return f"<Template(id={self.id}, name={self.name!r}, kind={self.kind})>"
