"""
Documentation Models
Documentation corpus entries and per-job usage attribution.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Float, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from forgecraft.core.database import Base


class DocEntry(Base):
    """A documentation snippet for one platform."""

    __tablename__ = "doc_entries"

    id = Column(String, primary_key=True, default=lambda: f"doc_{uuid.uuid4().hex[:12]}")
    title = Column(String, nullable=False)
    platform = Column(String, nullable=False, index=True)
    version = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    source = Column(String, nullable=True)
    is_official = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    usages = relationship("DocUsage", back_populates="doc")


class DocUsage(Base):
    """Analytics record: a job drew context from a doc entry. Never mutated."""

    __tablename__ = "doc_usages"
    __table_args__ = (
        UniqueConstraint("job_id", "doc_id", name="uq_doc_usages_job_doc"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String, ForeignKey("generation_jobs.id"), nullable=False, index=True)
    doc_id = Column(String, ForeignKey("doc_entries.id"), nullable=False, index=True)
    relevance = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=datetime.utcnow)

    job = relationship("GenerationJob", back_populates="docs_used")
    doc = relationship("DocEntry", back_populates="usages")
