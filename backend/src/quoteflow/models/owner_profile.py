"""OwnerProfile SQLAlchemy model"""

from sqlalchemy import Column, Uuid

from .base import Base, PortableJSONB


class OwnerProfileRow(Base):
    """Company identity, branding and preferences of a document owner."""
    __tablename__ = "owner_profiles"

    owner_id = Column(Uuid, primary_key=True)
    company = Column(PortableJSONB, nullable=False, default=dict)
    branding = Column(PortableJSONB, nullable=False, default=dict)
    preferences = Column(PortableJSONB, nullable=False, default=dict)

    def __repr__(self):
        return f"<OwnerProfileRow(owner_id={self.owner_id})>"
