"""
RQ Task Definitions
Entry points executed by RQ workers.
"""

import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)


def run_generation_task(job_id: str) -> Dict[str, Any]:
    """
    RQ task for the code generation pipeline.

    Opens its own database session; the orchestrator records every failure
    on the job row, so this task only raises if the database itself is gone.

    Args:
        job_id: GenerationJob id

    Returns:
        Dict with the job's terminal status
    """
    from forgecraft.core.database import SessionLocal
    from forgecraft.services.generation import GenerationOrchestrator
    from forgecraft.workers.base import GenerationWorker

    logger.info(f"[Task] Starting code generation: {job_id}")

    db = SessionLocal()
    try:
        worker = GenerationWorker(GenerationOrchestrator(db))
        return worker.execute(job_id)
    finally:
        db.close()


def recover_stalled_jobs_task(max_age_minutes: int) -> int:
    """Mark generation jobs stuck in PENDING/PROCESSING as FAILED."""
    from forgecraft.core.database import SessionLocal
    from forgecraft.services.generation import GenerationOrchestrator

    db = SessionLocal()
    try:
        return GenerationOrchestrator(db).recover_stalled_jobs(max_age_minutes)
    finally:
        db.close()
