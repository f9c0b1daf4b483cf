from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, String

from firegrid.database import Base


class DocumentRecord(Base):
    """One persisted document (dashboard or saved table) keyed by its path."""

    __tablename__ = "documents"

    path = Column(String(512), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("document_updated_idx", "updated_at"),
    )
