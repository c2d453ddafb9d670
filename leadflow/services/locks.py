"""
Run locks: one per workflow, one for the scheduler tick.

Two invocations of the same workflow would both pass the dedup check for the
same lead and double-enroll it. Two overlapping scheduler ticks would both see
the same due enrollment and run its step twice. The locks serialize them
across processes. If Redis is down the block proceeds unlocked; a cache outage
should not stop enrollments.
"""
import logging
from contextlib import contextmanager

from redis.exceptions import RedisError

from leadflow.config import RUN_LOCK_TIMEOUT, RUN_LOCK_WAIT
from leadflow.exceptions import WorkflowBusyError, SchedulerBusyError

logger = logging.getLogger('services.locks')

SCHEDULER_LOCK_KEY = 'scheduler-tick'


@contextmanager
def run_lock(key, busy_error, redis_client=None, timeout=RUN_LOCK_TIMEOUT, wait=RUN_LOCK_WAIT):
    """Hold `key` for the duration of the block; raise busy_error() if taken."""
    if redis_client is None:
        from leadflow.extensions import redis_client

    lock = redis_client.lock(key, timeout=timeout, blocking_timeout=wait)
    try:
        acquired = lock.acquire()
    except RedisError as e:
        logger.warning("Lock %s unavailable, continuing unlocked: %s", key, e)
        yield
        return

    if not acquired:
        raise busy_error()

    try:
        yield
    finally:
        try:
            lock.release()
        except RedisError as e:
            # Expired mid-run or Redis went away; nothing left to release
            logger.warning("Could not release lock %s: %s", key, e)


def workflow_lock(workflow_id, redis_client=None, timeout=RUN_LOCK_TIMEOUT, wait=RUN_LOCK_WAIT):
    """Hold `workflow-run:{id}`; WorkflowBusyError if taken."""
    return run_lock(f'workflow-run:{workflow_id}', lambda: WorkflowBusyError(workflow_id),
                    redis_client=redis_client, timeout=timeout, wait=wait)


def scheduler_lock(redis_client=None, timeout=RUN_LOCK_TIMEOUT, wait=RUN_LOCK_WAIT):
    """Hold the scheduler tick lock; SchedulerBusyError if another tick runs."""
    return run_lock(SCHEDULER_LOCK_KEY, SchedulerBusyError,
                    redis_client=redis_client, timeout=timeout, wait=wait)
