"""
Project Files API Routes
Read-only file tree for the IDE.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from forgecraft.api.deps import get_db, get_current_user_id
from forgecraft.models.project import Project
from forgecraft.schemas.files import ProjectFileListResponse
from forgecraft.services.project_files import ProjectFileStore

router = APIRouter()


@router.get("/projects/{project_id}/files", response_model=ProjectFileListResponse)
async def list_project_files(
    project_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """All files and directories of a project, ordered by path."""
    project = db.query(Project).filter(Project.id == project_id).first()

    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )

    if project.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this project"
        )

    files = ProjectFileStore(db).list_files(project_id)
    return ProjectFileListResponse(project_id=project_id, files=files, total=len(files))
