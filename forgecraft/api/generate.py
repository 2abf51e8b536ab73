"""
Generation API Routes
Accepts code generation requests and queues them for the workers.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from forgecraft.api.deps import get_db, get_current_user_id
from forgecraft.schemas.generate import GenerateRequest, GenerateResponse
from forgecraft.services.generation import (
    ForbiddenError,
    GenerationOrchestrator,
    ProjectNotFoundError,
    QueueUnavailableError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/projects/{project_id}/generate",
    response_model=GenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def generate_code(
    project_id: str,
    request: GenerateRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """
    Queue a code generation job for a project.
    Returns immediately; poll the job endpoint for the result.
    """
    context = request.context.model_dump() if request.context else {}
    orchestrator = GenerationOrchestrator(db)

    try:
        job = orchestrator.submit(
            user_id=user_id,
            project_id=project_id,
            prompt=request.prompt,
            model=request.model.value,
            context=context,
        )
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
    except QueueUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{e} (job {e.job_id})"
        )

    return GenerateResponse(
        job_id=job.id,
        status="queued",
        message="Generation job queued",
    )
