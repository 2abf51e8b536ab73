"""
Job Schemas
Pydantic models for generation job status responses.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel


class JobStatus(str, Enum):
    """Generation job status enum."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class DocUsageResponse(BaseModel):
    """A documentation entry used by a job."""
    doc_id: str
    title: str
    platform: str
    version: Optional[str] = None
    relevance: float


class GenerationJobResponse(BaseModel):
    """Schema for a generation job, as polled by the client."""
    id: str
    project_id: str
    prompt: str
    model: str
    provider: str
    status: JobStatus
    output: Optional[Dict[str, Any]] = None
    tokens_used: Optional[int] = None
    error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    docs_used: List[DocUsageResponse] = []

    class Config:
        from_attributes = True


class GenerationJobSummary(BaseModel):
    """Job row in a project's job list."""
    id: str
    model: str
    status: JobStatus
    tokens_used: Optional[int] = None
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
