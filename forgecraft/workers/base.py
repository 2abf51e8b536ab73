"""
Base Worker Classes
Provides base classes for RQ workers with progress tracking and structured logging.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from rq import get_current_job
from rq.job import Job

from forgecraft.models.job import GenerationJobStatus

logger = logging.getLogger(__name__)


class WorkerStatus(str, Enum):
    """Worker-side status recorded in RQ job meta."""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class BaseWorker(ABC):
    """
    Abstract base class for RQ workers.

    Features:
    - Job progress tracking in RQ meta
    - [START]/[COMPLETE]/[ERROR] task logs with timing
    """

    def __init__(self):
        self.start_time: Optional[datetime] = None

    def _get_current_job(self) -> Optional[Job]:
        """Current RQ job, or None when called outside a worker."""
        return get_current_job()

    def _update_progress(self, progress: float, message: str = ""):
        """
        Update job progress (0.0 to 1.0).

        Args:
            progress: Progress value between 0 and 1
            message: Optional status message
        """
        job = self._get_current_job()
        if job:
            job.meta["progress"] = min(max(progress, 0), 1)
            job.meta["progress_message"] = message
            job.meta["updated_at"] = datetime.utcnow().isoformat()
            job.save_meta()

        logger.debug(f"Progress: {progress:.0%} - {message}")

    def _set_status(self, status: WorkerStatus, details: Optional[dict] = None):
        job = self._get_current_job()
        if job:
            job.meta["worker_status"] = status.value
            job.meta["status_details"] = details or {}
            job.meta["updated_at"] = datetime.utcnow().isoformat()
            job.save_meta()

    def _elapsed(self) -> float:
        return (datetime.utcnow() - self.start_time).total_seconds() if self.start_time else 0

    def _log_start(self, task_name: str, **context):
        self.start_time = datetime.utcnow()
        self._set_status(WorkerStatus.RUNNING)
        logger.info(f"[START] {task_name} | Context: {context}")

    def _log_complete(self, task_name: str, result_summary: str = ""):
        self._set_status(WorkerStatus.SUCCESS)
        self._update_progress(1.0, "Complete")
        logger.info(f"[COMPLETE] {task_name} | Duration: {self._elapsed():.2f}s | {result_summary}")

    def _log_error(self, task_name: str, error: Any):
        self._set_status(WorkerStatus.FAILED, {"error": str(error)})
        logger.error(f"[ERROR] {task_name} | Duration: {self._elapsed():.2f}s | Error: {error}")

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Execute the worker task. Must be implemented by subclasses.

        Returns:
            Task result
        """


class GenerationWorker(BaseWorker):
    """Runs one generation job through the orchestrator inside an RQ worker."""

    TASK_NAME = "code_generation"

    def __init__(self, orchestrator):
        super().__init__()
        self.orchestrator = orchestrator

    def execute(self, job_id: str) -> Dict[str, Any]:
        self._log_start(self.TASK_NAME, job_id=job_id)
        self._update_progress(0.1, "Claiming job...")

        result = self.orchestrator.process(job_id)
        status = result.get("status")

        if status == GenerationJobStatus.COMPLETED:
            self._log_complete(
                self.TASK_NAME,
                f"Job {job_id}: {len(result.get('files', []))} files, cost {result.get('cost')}",
            )
        elif status == GenerationJobStatus.FAILED:
            self._log_error(self.TASK_NAME, result.get("error"))
        else:
            self._set_status(WorkerStatus.SKIPPED)
            logger.info(f"[SKIP] {self.TASK_NAME} | Job {job_id} was not pending")

        return result


__all__ = [
    "WorkerStatus",
    "BaseWorker",
    "GenerationWorker",
]
