# Workers package - async job processing with RQ

from forgecraft.workers.base import (
    WorkerStatus,
    BaseWorker,
    GenerationWorker,
)
from forgecraft.workers.queue import (
    QueueManager,
    get_queue_manager,
    enqueue_generation,
    is_generation_queued,
    rq_job_id,
)
from forgecraft.workers.tasks import (
    run_generation_task,
    recover_stalled_jobs_task,
)

__all__ = [
    # Base
    "WorkerStatus",
    "BaseWorker",
    "GenerationWorker",
    # Queue
    "QueueManager",
    "get_queue_manager",
    "enqueue_generation",
    "is_generation_queued",
    "rq_job_id",
    # Tasks
    "run_generation_task",
    "recover_stalled_jobs_task",
]
