#!/usr/bin/env python3
"""
Scheduler loop — advances due workflow enrollments every SCHEDULER_INTERVAL
seconds.

Usage:
    python scripts/run_scheduler.py            # loop forever
    python scripts/run_scheduler.py --once     # single tick, then exit
    python scripts/run_scheduler.py --enqueue  # push one tick onto the RQ queue

Requires: DATABASE_URL set (or defaults to sqlite:///local.db); Redis for --enqueue.
"""
import sys
import os
import argparse
import logging
import time

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadflow import import_models
from leadflow.config import SCHEDULER_BATCH_SIZE, SCHEDULER_INTERVAL
from leadflow.database import get_session
from leadflow.exceptions import SchedulerBusyError
from leadflow.logging_config import configure_logging
from leadflow.services.locks import scheduler_lock
from leadflow.workflow.scheduler import advance_due_enrollments, enqueue_scheduler_tick
from leadflow.workflow.settings import build_engine_settings

logger = logging.getLogger('scripts.run_scheduler')


def tick(settings, limit):
    session = get_session()
    try:
        with scheduler_lock():
            return advance_due_enrollments(session, settings=settings, limit=limit)
    finally:
        session.close()


def main():
    parser = argparse.ArgumentParser(description='Advance due workflow enrollments')
    parser.add_argument('--once', action='store_true', help='Run a single tick and exit')
    parser.add_argument('--enqueue', action='store_true', help='Enqueue a tick on RQ and exit')
    parser.add_argument('--limit', type=int, default=SCHEDULER_BATCH_SIZE, help='Max enrollments per tick')
    parser.add_argument('--interval', type=int, default=SCHEDULER_INTERVAL, help='Seconds between ticks')
    args = parser.parse_args()

    configure_logging()
    import_models()

    if args.enqueue:
        job_id = enqueue_scheduler_tick(args.limit)
        print(f'Enqueued scheduler tick: {job_id}')
        return

    settings = build_engine_settings()
    while True:
        try:
            result = tick(settings, args.limit)
            if args.once:
                print(result.to_dict())
                return
        except SchedulerBusyError as e:
            logger.info("Skipping tick: %s", e)
            if args.once:
                return
        except Exception:
            if args.once:
                raise
            logger.error("Scheduler tick failed", exc_info=True)
        time.sleep(args.interval)


if __name__ == '__main__':
    main()
