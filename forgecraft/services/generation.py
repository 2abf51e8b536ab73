"""
Generation Job Orchestrator
Owns the lifecycle of a GenerationJob: submission, queued processing and
stalled-job recovery.

State machine: PENDING -> PROCESSING -> COMPLETED | FAILED.
Terminal states are final. A retry is always a brand-new job.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from forgecraft.core.config import settings
from forgecraft.models.job import GenerationJob, GenerationJobStatus
from forgecraft.models.project import Project
from forgecraft.models.token_transaction import TransactionType
from forgecraft.services.docs_search import DocumentationService
from forgecraft.services.model_gateway import ModelGatewayService
from forgecraft.services.pricing import compute_generation_cost, provider_for_model
from forgecraft.services.project_files import ProjectFileStore
from forgecraft.services.prompt_builder import GenerationContext, build_prompt
from forgecraft.services.token_ledger import InsufficientBalanceError, TokenLedgerService

logger = logging.getLogger(__name__)


QUEUE_UNAVAILABLE_MESSAGE = "Generation queue unavailable"
STALLED_JOB_MESSAGE = "Generation timed out before completion"


class ProjectNotFoundError(Exception):
    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ForbiddenError(Exception):
    """Caller does not own the target project."""

    def __init__(self, message: str = "You do not have access to this project"):
        super().__init__(message)


class JobNotFoundError(Exception):
    def __init__(self, job_id: str):
        super().__init__(f"Generation job not found: {job_id}")
        self.job_id = job_id


class QueueUnavailableError(Exception):
    """The job row was created but could not be handed to the queue."""

    def __init__(self, job_id: str):
        super().__init__(QUEUE_UNAVAILABLE_MESSAGE)
        self.job_id = job_id


class JobStateConflictError(Exception):
    """The job left PROCESSING while this worker was still running it."""

    def __init__(self, job_id: str):
        super().__init__(f"Generation job {job_id} is no longer processing")
        self.job_id = job_id


class GenerationOrchestrator:
    """
    Coordinates docs retrieval, prompt building, the model call, billing
    and file persistence for generation jobs.

    Collaborators default to the real services bound to `db`; tests pass
    their own.
    """

    def __init__(
        self,
        db: Session,
        gateway: Optional[ModelGatewayService] = None,
        docs: Optional[DocumentationService] = None,
        ledger: Optional[TokenLedgerService] = None,
        files: Optional[ProjectFileStore] = None,
        enqueue: Optional[Callable[[str], Any]] = None,
        is_queued: Optional[Callable[[str], bool]] = None,
    ):
        self.db = db
        self.gateway = gateway or ModelGatewayService()
        self.docs = docs or DocumentationService(db)
        self.ledger = ledger or TokenLedgerService(db)
        self.files = files or ProjectFileStore(db)
        self._enqueue = enqueue
        self._is_queued = is_queued

    # ------------------------------------------------------------------
    # Submission (API side)
    # ------------------------------------------------------------------

    def submit(
        self,
        user_id: str,
        project_id: str,
        prompt: str,
        model: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> GenerationJob:
        """
        Create a PENDING job and hand it to the queue. Never waits on generation.

        Raises:
            ProjectNotFoundError: project does not exist
            ForbiddenError: project belongs to another user (no job is created)
            QueueUnavailableError: enqueue failed; the job is recorded as FAILED
        """
        project = self.db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise ProjectNotFoundError(project_id)
        if project.user_id != user_id:
            raise ForbiddenError()

        job = GenerationJob(
            id=f"gen_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            project_id=project_id,
            prompt=prompt,
            model=model,
            provider=provider_for_model(model),
            context=context or {},
            status=GenerationJobStatus.PENDING,
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)

        try:
            self._dispatch(job.id)
        except Exception as e:
            logger.error(f"Failed to enqueue generation job {job.id}: {e}")
            self._mark_failed(job.id, QUEUE_UNAVAILABLE_MESSAGE, from_status=GenerationJobStatus.PENDING)
            self.db.refresh(job)
            raise QueueUnavailableError(job.id) from e

        logger.info(f"Queued generation job {job.id} for project {project_id} ({model})")
        return job

    def get_job(self, user_id: str, project_id: str, job_id: str) -> GenerationJob:
        """Job row for the status endpoint, scoped to its project and owner."""
        job = (
            self.db.query(GenerationJob)
            .filter(GenerationJob.id == job_id, GenerationJob.project_id == project_id)
            .first()
        )
        if not job:
            raise JobNotFoundError(job_id)
        if job.user_id != user_id:
            raise ForbiddenError("You do not have access to this job")
        return job

    def list_jobs(self, user_id: str, project_id: str, limit: int = 20) -> List[GenerationJob]:
        """Most recent jobs for a project the caller owns."""
        project = self.db.query(Project).filter(Project.id == project_id).first()
        if not project:
            raise ProjectNotFoundError(project_id)
        if project.user_id != user_id:
            raise ForbiddenError()
        return (
            self.db.query(GenerationJob)
            .filter(GenerationJob.project_id == project_id)
            .order_by(GenerationJob.created_at.desc())
            .limit(limit)
            .all()
        )

    def _dispatch(self, job_id: str) -> None:
        if self._enqueue is not None:
            self._enqueue(job_id)
            return
        from forgecraft.workers.queue import enqueue_generation
        enqueue_generation(job_id)

    # ------------------------------------------------------------------
    # Processing (worker side)
    # ------------------------------------------------------------------

    def process(self, job_id: str) -> Dict[str, Any]:
        """
        Run one job to a terminal state.

        Never raises: every failure after the claim is written to the job
        row as FAILED with the error message. A failed claim leaves the job
        PENDING for stalled-job recovery.
        """
        try:
            claimed = self._claim(job_id)
        except Exception as e:
            logger.error(f"Could not claim generation job {job_id}: {e}")
            self.db.rollback()
            return {"job_id": job_id, "status": "skipped", "error": str(e)}

        if not claimed:
            logger.warning(f"Generation job {job_id} is not pending, skipping redelivery")
            return {"job_id": job_id, "status": "skipped"}

        try:
            return self._run(job_id)
        except Exception as e:
            message = str(e) or "Unknown error"
            logger.error(f"Generation job {job_id} failed: {message}")
            try:
                self.db.rollback()
                self._mark_failed(job_id, message)
            except Exception as mark_error:
                # Left in PROCESSING; recover_stalled_jobs picks it up later
                logger.error(f"Could not record failure for job {job_id}: {mark_error}")
            return {"job_id": job_id, "status": GenerationJobStatus.FAILED, "error": message}

    def _claim(self, job_id: str) -> bool:
        claimed = (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.id == job_id,
                GenerationJob.status == GenerationJobStatus.PENDING,
            )
            .update(
                {
                    GenerationJob.status: GenerationJobStatus.PROCESSING,
                    GenerationJob.started_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return bool(claimed)

    def _run(self, job_id: str) -> Dict[str, Any]:
        job = self.db.query(GenerationJob).filter(GenerationJob.id == job_id).first()
        if not job:
            raise JobNotFoundError(job_id)
        project = self.db.query(Project).filter(Project.id == job.project_id).first()
        if not project:
            raise ProjectNotFoundError(job.project_id)

        submitted = job.context or {}
        logger.info(f"Processing generation job {job_id} ({job.model}, {project.platform})")

        existing_files = self.files.read_all(project.id)
        requested_paths = submitted.get("files") or []
        if requested_paths:
            wanted = set(requested_paths)
            existing_files = {path: content for path, content in existing_files.items() if path in wanted}

        docs = self._retrieve_docs(job_id, job.prompt, project.platform)
        docs.extend(str(snippet) for snippet in submitted.get("docs") or [])

        context = GenerationContext(
            existing_files=existing_files,
            docs=docs,
            api_version=project.api_version or None,
            package_name=project.package_name or None,
            command_prefix=project.command_prefix or None,
        )
        system_prompt, user_prompt = build_prompt(project.platform, project.language, job.prompt, context)

        result = self.gateway.generate(job.model, system_prompt, user_prompt)

        cost = compute_generation_cost(job.model, result.tokens_used)
        balance = self.ledger.get_balance(job.user_id)
        if balance < cost:
            raise InsufficientBalanceError(required=cost, available=balance)

        self._finalize(job, project, result, cost)

        logger.info(
            f"Generation job {job_id} completed: {len(result.files)} files, "
            f"{result.tokens_used} LLM tokens, cost {cost}"
        )
        return {
            "job_id": job_id,
            "status": GenerationJobStatus.COMPLETED,
            "files": list(result.files.keys()),
            "tokens_used": result.tokens_used,
            "cost": cost,
        }

    def _retrieve_docs(self, job_id: str, prompt: str, platform: str) -> List[str]:
        """Best-effort docs lookup. Failures are logged and yield no docs."""
        try:
            results = self.docs.search_for_generation(prompt, platform)
            self.docs.record_usage(job_id, results)
        except Exception as e:
            logger.warning(f"Failed to retrieve docs for job {job_id}: {e}")
            self.db.rollback()
            return []
        return [result.content for result in results]

    def _finalize(self, job: GenerationJob, project: Project, result, cost: int) -> None:
        """
        Debit, file writes, project touch and COMPLETED in one transaction.

        The COMPLETED write only applies to a job still in PROCESSING; if
        stalled-job recovery failed it meanwhile, nothing is committed.
        """
        now = datetime.utcnow()

        completed = (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.id == job.id,
                GenerationJob.status == GenerationJobStatus.PROCESSING,
            )
            .update(
                {
                    GenerationJob.status: GenerationJobStatus.COMPLETED,
                    GenerationJob.output: {"files": list(result.files.keys()), "summary": result.summary},
                    GenerationJob.tokens_used: result.tokens_used,
                    GenerationJob.completed_at: now,
                },
                synchronize_session=False,
            )
        )
        if not completed:
            raise JobStateConflictError(job.id)

        self.ledger.debit(
            job.user_id,
            cost,
            TransactionType.GENERATION_COST,
            f"AI generation ({job.model})",
            reference=job.id,
            commit=False,
        )

        for path, content in result.files.items():
            self.files.upsert(project.id, path, content, commit=False)

        project.updated_at = now

        self.db.commit()

    def _mark_failed(
        self,
        job_id: str,
        message: str,
        from_status: str = GenerationJobStatus.PROCESSING,
    ) -> bool:
        """FAILED + error + completed_at, only if the job is still in `from_status`."""
        updated = (
            self.db.query(GenerationJob)
            .filter(GenerationJob.id == job_id, GenerationJob.status == from_status)
            .update(
                {
                    GenerationJob.status: GenerationJobStatus.FAILED,
                    GenerationJob.error: message,
                    GenerationJob.completed_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return bool(updated)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def recover_stalled_jobs(self, max_age_minutes: int) -> int:
        """
        Fail generation jobs that no worker will ever finish.

        PROCESSING jobs count as stalled once they started longer ago than
        both `max_age_minutes` and the RQ job timeout. PENDING jobs older
        than `max_age_minutes` are only failed when their RQ job is gone or
        dead; a job waiting in a long backlog is left alone.

        Returns the number of jobs marked FAILED.
        """
        now = datetime.utcnow()
        processing_minutes = max(max_age_minutes, settings.JOB_TIMEOUT_GENERATION // 60 + 1)

        recovered = (
            self.db.query(GenerationJob)
            .filter(
                GenerationJob.status == GenerationJobStatus.PROCESSING,
                GenerationJob.started_at < now - timedelta(minutes=processing_minutes),
            )
            .update(
                {
                    GenerationJob.status: GenerationJobStatus.FAILED,
                    GenerationJob.error: STALLED_JOB_MESSAGE,
                    GenerationJob.completed_at: now,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()

        pending_ids = [
            row.id
            for row in self.db.query(GenerationJob.id).filter(
                GenerationJob.status == GenerationJobStatus.PENDING,
                GenerationJob.created_at < now - timedelta(minutes=max_age_minutes),
            )
        ]
        for job_id in pending_ids:
            try:
                queued = self._queued(job_id)
            except Exception as e:
                logger.warning(f"Cannot inspect the generation queue, leaving pending jobs alone: {e}")
                break
            if not queued and self._mark_failed(job_id, STALLED_JOB_MESSAGE, from_status=GenerationJobStatus.PENDING):
                recovered += 1

        if recovered:
            logger.warning(f"Marked {recovered} stalled generation jobs as failed")
        return recovered

    def _queued(self, job_id: str) -> bool:
        if self._is_queued is not None:
            return self._is_queued(job_id)
        from forgecraft.workers.queue import is_generation_queued
        return is_generation_queued(job_id)
