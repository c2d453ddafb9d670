"""
Scheduler tick — resumes enrollments after their first step.

The runner only ever runs the first actionable step. Everything after that is
driven from here: each tick picks active enrollments that are due
(next_step_scheduled_at unset or in the past), runs exactly one step for each,
and completes enrollments that have run out of steps.

Driven by scripts/run_scheduler.py (interval loop), the RQ job
run_scheduler_tick, or POST /api/workflows/advance. All three hold the
scheduler lock so overlapping ticks cannot run the same step twice.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import case, or_

from leadflow.config import SCHEDULER_BATCH_SIZE, SCHEDULER_RETRY_DELAY
from leadflow.exceptions import WorkflowDefinitionError, ProviderNotConfiguredError, SchedulerBusyError
from leadflow.models.enrollment import WorkflowEnrollment
from leadflow.models.lead import Lead
from leadflow.models.workflow import Workflow
from leadflow.services.locks import scheduler_lock
from leadflow.workflow.definition import WorkflowDefinition
from leadflow.workflow.enrollment import advance_enrollment, complete_enrollment, utcnow
from leadflow.workflow.runner import merge_execution_stats

logger = logging.getLogger('workflow.scheduler')


@dataclass
class AdvanceResult:
    processed: int = 0
    advanced: int = 0
    completed: int = 0
    failed: int = 0
    details: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self):
        return {
            'processed': self.processed,
            'advanced': self.advanced,
            'completed': self.completed,
            'failed': self.failed,
            'details': list(self.details),
        }


def due_enrollments(session, now, limit):
    """Active enrollments that are due, longest-waiting first."""
    return (
        session.query(WorkflowEnrollment)
        .join(Workflow, Workflow.id == WorkflowEnrollment.workflow_id)
        .filter(WorkflowEnrollment.status == 'active')
        .filter(Workflow.is_active.is_(True))
        .filter(or_(
            WorkflowEnrollment.next_step_scheduled_at.is_(None),
            WorkflowEnrollment.next_step_scheduled_at <= now,
        ))
        .order_by(
            case((WorkflowEnrollment.next_step_scheduled_at.is_(None), 0), else_=1),
            WorkflowEnrollment.next_step_scheduled_at.asc(),
            WorkflowEnrollment.created_at.asc(),
        )
        .limit(limit)
        .all()
    )


def _defer(session, enrollment_id, now):
    """Push a failed enrollment out of the due set until the retry delay passes."""
    try:
        enrollment = session.get(WorkflowEnrollment, enrollment_id)
        if enrollment is not None:
            enrollment.next_step_scheduled_at = now + timedelta(seconds=SCHEDULER_RETRY_DELAY)
            session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Could not defer enrollment %s: %s", enrollment_id, e,
                     extra={'enrollment_id': enrollment_id})


def advance_due_enrollments(session, settings=None, now=None, limit=SCHEDULER_BATCH_SIZE) -> AdvanceResult:
    """Run one step for every due enrollment. Commits per enrollment.

    Enrollments whose step raises are deferred by SCHEDULER_RETRY_DELAY so
    they do not occupy the head of the next batch.
    """
    now = now or utcnow()
    result = AdvanceResult()
    definitions = {}
    # workflow_id → definition error, for the rest of this tick
    broken = {}
    # workflow_id → {'completed': n, 'exited': n}
    terminations = {}

    for enrollment in due_enrollments(session, now, limit):
        enrollment_id = enrollment.id
        workflow_id = enrollment.workflow_id
        result.processed += 1

        if workflow_id in broken:
            _defer(session, enrollment_id, now)
            result.failed += 1
            result.details.append({'enrollmentId': enrollment_id, 'status': 'failed',
                                   'error': broken[workflow_id]})
            continue

        try:
            definition = definitions.get(workflow_id)
            if definition is None:
                definition = WorkflowDefinition.from_workflow(session.get(Workflow, workflow_id))
                definitions[workflow_id] = definition

            lead = session.get(Lead, enrollment.lead_id) if enrollment.lead_id else None
            if lead is None:
                complete_enrollment(enrollment, 'lead_deleted', now)
                step_result = None
            else:
                step_result = advance_enrollment(session, enrollment, definition, lead,
                                                 settings=settings, now=now)
                if step_result is not None and not step_result.success:
                    enrollment.next_step_scheduled_at = now + timedelta(seconds=SCHEDULER_RETRY_DELAY)

            status = enrollment.status
            exit_reason = enrollment.exit_reason
            step_index = enrollment.current_step_index
            session.commit()

            if status == 'completed':
                counts = terminations.setdefault(workflow_id, {'completed': 0, 'exited': 0})
                counts['completed' if exit_reason == 'completed' else 'exited'] += 1
                result.completed += 1
            if step_result is not None and not step_result.success:
                result.failed += 1
                result.details.append({'enrollmentId': enrollment_id, 'status': 'failed',
                                       'error': step_result.error})
            elif step_result is not None:
                result.advanced += 1
                result.details.append({'enrollmentId': enrollment_id, 'status': status,
                                       'stepIndex': step_index})
            else:
                result.details.append({'enrollmentId': enrollment_id, 'status': status,
                                       'reason': exit_reason})

        except WorkflowDefinitionError as e:
            session.rollback()
            logger.error("Workflow %s has an invalid definition: %s", workflow_id, e,
                         extra={'workflow_id': workflow_id})
            broken[workflow_id] = str(e)
            _defer(session, enrollment_id, now)
            result.failed += 1
            result.details.append({'enrollmentId': enrollment_id, 'status': 'failed', 'error': str(e)})
        except ProviderNotConfiguredError as e:
            # Retried after the delay, once credentials may exist
            session.rollback()
            logger.error("Enrollment %s blocked: %s", enrollment_id, e,
                         extra={'enrollment_id': enrollment_id})
            _defer(session, enrollment_id, now)
            result.failed += 1
            result.details.append({'enrollmentId': enrollment_id, 'status': 'failed', 'error': str(e)})
        except Exception as e:
            session.rollback()
            logger.error("Error advancing enrollment %s: %s", enrollment_id, e,
                         extra={'enrollment_id': enrollment_id}, exc_info=True)
            _defer(session, enrollment_id, now)
            result.failed += 1
            result.details.append({'enrollmentId': enrollment_id, 'status': 'failed', 'error': str(e)})

    for workflow_id, counts in terminations.items():
        merge_execution_stats(session, workflow_id, completed=counts['completed'],
                              exited=counts['exited'], now=now)

    if result.processed:
        logger.info("Scheduler tick: processed=%d advanced=%d completed=%d failed=%d",
                    result.processed, result.advanced, result.completed, result.failed)
    return result


# ── RQ job ────────────────────────────────────────────────────────────────────

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from leadflow.extensions import redis_client
        from rq import Queue
        _queue = Queue(connection=redis_client)
    return _queue


def run_scheduler_tick(limit=SCHEDULER_BATCH_SIZE):
    """RQ entry point: one tick with a fresh session and settings from config.

    Skipped when another tick holds the scheduler lock.
    """
    from leadflow.database import get_session
    from leadflow.workflow.settings import build_engine_settings

    session = get_session()
    try:
        with scheduler_lock():
            return advance_due_enrollments(session, settings=build_engine_settings(), limit=limit).to_dict()
    except SchedulerBusyError as e:
        logger.info("Skipping scheduler tick: %s", e)
        return {'skipped': True, 'reason': str(e)}
    finally:
        session.close()


def enqueue_scheduler_tick(limit=SCHEDULER_BATCH_SIZE):
    job = _get_queue().enqueue(run_scheduler_tick, limit, job_timeout=900)
    return job.id
