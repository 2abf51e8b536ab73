"""
Project File Schemas
Pydantic models for the IDE file-read API.
"""

from datetime import datetime
from typing import List
from pydantic import BaseModel


class ProjectFileResponse(BaseModel):
    id: str
    path: str
    content: str
    is_directory: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectFileListResponse(BaseModel):
    project_id: str
    files: List[ProjectFileResponse]
    total: int
