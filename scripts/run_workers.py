#!/usr/bin/env python3
"""
Generation worker launcher.

    python scripts/run_workers.py                     # one worker, all queues
    python scripts/run_workers.py -w 4 --burst        # four workers, exit when drained
    python scripts/run_workers.py --check             # Redis reachable?
    python scripts/run_workers.py --recover-stalled   # fail abandoned jobs and exit
"""

import argparse
import logging
import os
import socket
import sys
from multiprocessing import Process

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rq import Queue, Worker

from forgecraft.core.config import settings
from forgecraft.core.database import init_db
from forgecraft.core.redis import Queues, get_redis, redis_health_check
from forgecraft.workers.tasks import recover_stalled_jobs_task

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("forgecraft.workers")


def work(queue_names, burst=False):
    """Run one RQ worker in this process until stopped (or drained, with burst)."""
    name = f"forgecraft-{socket.gethostname()}-{os.getpid()}"
    connection = get_redis()
    worker = Worker(
        [Queue(queue_name, connection=connection) for queue_name in queue_names],
        connection=connection,
        name=name,
    )
    logger.info(f"{name} listening on {', '.join(queue_names)}")
    worker.work(burst=burst)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="ForgeCraft generation workers")
    parser.add_argument("-q", "--queues", nargs="+", default=[Queues.GENERATION, Queues.DEFAULT],
                        help="queues to consume, highest priority first")
    parser.add_argument("-w", "--workers", type=int, default=1, help="worker processes to start")
    parser.add_argument("-b", "--burst", action="store_true", help="exit once the queues are empty")
    parser.add_argument("--check", action="store_true", help="report Redis status and exit")
    parser.add_argument("--recover-stalled", action="store_true",
                        help="fail generation jobs no worker will finish, then exit")
    parser.add_argument("--max-age", type=int, default=settings.STALLED_JOB_MAX_AGE_MINUTES,
                        help="minutes before an open job is considered for recovery")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.recover_stalled:
        init_db()
        logger.info(f"Recovered {recover_stalled_jobs_task(args.max_age)} stalled job(s)")
        return 0

    health = redis_health_check()
    if not health.get("connected"):
        logger.error(f"Redis unavailable at {health.get('url')}: {health.get('error')}")
        return 1
    logger.info(f"Redis {health.get('redis_version')} at {health.get('url')}")
    if args.check:
        return 0

    if args.workers <= 1:
        work(args.queues, args.burst)
        return 0

    processes = [
        Process(target=work, args=(args.queues, args.burst), name=f"worker-{n}")
        for n in range(1, args.workers + 1)
    ]
    for process in processes:
        process.start()
    try:
        for process in processes:
            process.join()
    except KeyboardInterrupt:
        logger.info("Stopping workers")
        for process in processes:
            process.terminate()
    return 0


if __name__ == "__main__":
    sys.exit(main())
