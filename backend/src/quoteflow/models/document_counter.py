"""DocumentCounter SQLAlchemy model

One row per numbering sequence, keyed "numbering:{owner_id}:{kind}:{year}".
value is the last number handed out.
"""

from sqlalchemy import BigInteger, Column, Text

from .base import Base


class DocumentCounter(Base):
    __tablename__ = "document_counters"

    key = Column(Text, primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<DocumentCounter(key={self.key}, value={self.value})>"
