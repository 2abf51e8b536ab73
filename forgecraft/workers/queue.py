"""
Queue Management Utilities
RQ queue wrapper for handing generation jobs to workers.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from rq import Queue
from rq.exceptions import NoSuchJobError
from rq.job import Job, JobStatus as RQJobStatus

from forgecraft.core.config import settings
from forgecraft.core.redis import Queues, get_redis

logger = logging.getLogger(__name__)

_LIVE_STATUSES = (
    RQJobStatus.QUEUED,
    RQJobStatus.DEFERRED,
    RQJobStatus.SCHEDULED,
    RQJobStatus.STARTED,
)


def rq_job_id(job_id: str) -> str:
    """RQ job id for a generation job; one RQ job per generation job."""
    return f"generation:{job_id}"


class QueueManager:
    """
    Manages RQ queues.

    No retry policy is attached to generation jobs: a failed generation is
    final and the user resubmits, which creates a new job.
    """

    def __init__(self, connection=None):
        self._queues: Dict[str, Queue] = {}
        self._redis = connection

    @property
    def redis(self):
        """Lazy Redis connection."""
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def get_queue(self, queue_name: str = Queues.DEFAULT) -> Queue:
        """
        Get or create a queue by name.

        Args:
            queue_name: Name of the queue

        Returns:
            RQ Queue instance
        """
        if queue_name not in self._queues:
            self._queues[queue_name] = Queue(
                name=queue_name,
                connection=self.redis,
                default_timeout=settings.JOB_TIMEOUT_GENERATION,
            )
            logger.debug(f"Created queue: {queue_name}")

        return self._queues[queue_name]

    def enqueue_generation(self, job_id: str) -> Job:
        """
        Enqueue a code generation job.

        Args:
            job_id: GenerationJob id (gen_xxx)

        Returns:
            RQ Job instance
        """
        from forgecraft.workers.tasks import run_generation_task

        queue = self.get_queue(Queues.GENERATION)
        job = queue.enqueue(
            run_generation_task,
            job_id,
            job_id=rq_job_id(job_id),
            job_timeout=settings.JOB_TIMEOUT_GENERATION,
            result_ttl=settings.JOB_RESULT_TTL,
            meta={
                "type": "code_generation",
                "generation_job_id": job_id,
                "created_at": datetime.utcnow().isoformat(),
            },
        )

        logger.info(f"Enqueued generation job: {job_id}")
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """
        RQ job for a generation job, or None if Redis no longer holds it.

        Redis connection errors propagate; callers must not read them as
        "job gone".
        """
        try:
            return Job.fetch(rq_job_id(job_id), connection=self.redis)
        except NoSuchJobError:
            logger.debug(f"RQ job not found for generation job {job_id}")
            return None

    def is_generation_queued(self, job_id: str) -> bool:
        """True while RQ still intends to run the job (waiting, scheduled or running)."""
        job = self.get_job(job_id)
        if job is None:
            return False
        return job.get_status() in _LIVE_STATUSES

    def get_queue_stats(self) -> Dict[str, Dict[str, int]]:
        """Queue depth and registry counts per queue."""
        stats = {}
        for name in (Queues.GENERATION, Queues.DEFAULT):
            queue = self.get_queue(name)
            stats[name] = {
                "queued": len(queue),
                "started": queue.started_job_registry.count,
                "finished": queue.finished_job_registry.count,
                "failed": queue.failed_job_registry.count,
            }
        return stats


# Singleton instance
_queue_manager: Optional[QueueManager] = None


def get_queue_manager() -> QueueManager:
    """Get singleton QueueManager instance."""
    global _queue_manager
    if _queue_manager is None:
        _queue_manager = QueueManager()
    return _queue_manager


def enqueue_generation(job_id: str) -> Job:
    """Enqueue a code generation job (convenience function)."""
    return get_queue_manager().enqueue_generation(job_id)


def is_generation_queued(job_id: str) -> bool:
    """Whether RQ still holds a live job for this generation job (convenience function)."""
    return get_queue_manager().is_generation_queued(job_id)


__all__ = [
    "QueueManager",
    "get_queue_manager",
    "enqueue_generation",
    "is_generation_queued",
    "rq_job_id",
]
