"""
Generation Job Model
Database model for code generation jobs.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey, JSON
from sqlalchemy.orm import relationship

from forgecraft.core.database import Base


class GenerationJobStatus:
    """
    Generation job status constants.

    PENDING -> PROCESSING -> COMPLETED | FAILED. Terminal states are final;
    a retry is always a new job.
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    TERMINAL = (COMPLETED, FAILED)


class GenerationJob(Base):
    """One request to turn a prompt into project files."""

    __tablename__ = "generation_jobs"

    id = Column(String, primary_key=True)  # gen_xxxx format
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.id"), nullable=False, index=True)

    # Request
    prompt = Column(Text, nullable=False)
    model = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    context = Column(JSON, default=dict)

    status = Column(String, default=GenerationJobStatus.PENDING, index=True)

    # Set only on COMPLETED
    output = Column(JSON, nullable=True)  # {"files": [...], "summary": "..."}
    tokens_used = Column(Integer, nullable=True)

    # Set only on FAILED
    error = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Relationships
    project = relationship("Project", back_populates="jobs")
    docs_used = relationship("DocUsage", back_populates="job", cascade="all, delete-orphan")
