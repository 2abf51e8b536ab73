"""
Jobs API Routes
Generation job status for the client's polling loop.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from forgecraft.api.deps import get_db, get_current_user_id
from forgecraft.models.job import GenerationJob
from forgecraft.schemas.job import DocUsageResponse, GenerationJobResponse, GenerationJobSummary
from forgecraft.services.generation import (
    ForbiddenError,
    GenerationOrchestrator,
    JobNotFoundError,
    ProjectNotFoundError,
)

router = APIRouter()


def _job_response(job: GenerationJob) -> GenerationJobResponse:
    docs_used = [
        DocUsageResponse(
            doc_id=usage.doc_id,
            title=usage.doc.title,
            platform=usage.doc.platform,
            version=usage.doc.version,
            relevance=usage.relevance,
        )
        for usage in job.docs_used
    ]
    return GenerationJobResponse(
        id=job.id,
        project_id=job.project_id,
        prompt=job.prompt,
        model=job.model,
        provider=job.provider,
        status=job.status,
        output=job.output,
        tokens_used=job.tokens_used,
        error=job.error,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
        docs_used=docs_used,
    )


@router.get("/projects/{project_id}/jobs/{job_id}", response_model=GenerationJobResponse)
async def get_generation_job(
    project_id: str,
    job_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Get job status, output and the documentation it used."""
    try:
        job = GenerationOrchestrator(db).get_job(user_id, project_id, job_id)
    except JobNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found"
        )
    except ForbiddenError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )

    return _job_response(job)


@router.get("/projects/{project_id}/jobs", response_model=List[GenerationJobSummary])
async def list_generation_jobs(
    project_id: str,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Recent generation jobs for a project, newest first."""
    try:
        return GenerationOrchestrator(db).list_jobs(user_id, project_id, limit=limit)
    except ProjectNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found"
        )
    except ForbiddenError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e)
        )
