"""
Enrollment manager — lifecycle of one lead inside one workflow.

    none ──create──> active ──end-workflow / condition exit / steps exhausted──> completed

Every attempted step leaves exactly one StepExecution row. A successful step
appends to step_history and moves current_step_index past the step; a failed
step leaves both untouched so the next tick retries it.
"""
import logging
from datetime import datetime, timezone

from leadflow.exceptions import ProviderNotConfiguredError
from leadflow.models.enrollment import WorkflowEnrollment
from leadflow.models.step_execution import StepExecution
from leadflow.workflow.base import StepContext, StepResult
from leadflow.workflow.registry import get_executor
from leadflow.workflow.settings import EngineSettings

logger = logging.getLogger('workflow.enrollment')


def utcnow():
    return datetime.now(timezone.utc)


def find_enrollment(session, workflow_id, lead_id):
    """Any enrollment (active or completed) for the pair, or None."""
    return (
        session.query(WorkflowEnrollment)
        .filter_by(workflow_id=workflow_id, lead_id=lead_id)
        .first()
    )


def create_enrollment(session, workflow_id, lead_id, user_id, test_mode=False):
    enrollment = WorkflowEnrollment(
        workflow_id=workflow_id,
        lead_id=lead_id,
        user_id=user_id,
        current_step_index=0,
        status='active',
        step_history=[],
        enrollment_metadata={'enrolled_via': 'test' if test_mode else 'execution'},
    )
    session.add(enrollment)
    session.flush()
    return enrollment


def complete_enrollment(enrollment, reason, now=None):
    enrollment.status = 'completed'
    enrollment.completed_at = now or utcnow()
    enrollment.exit_reason = reason or 'completed'
    enrollment.next_step_scheduled_at = None


def execute_step(session, enrollment, step, lead, user_id=None, settings=None,
                 test_mode=False, now=None) -> StepResult:
    """
    Run one step for an enrollment and record it.

    Executor exceptions become a failed StepResult, except
    ProviderNotConfiguredError which aborts the caller.
    """
    now = now or utcnow()
    ctx = StepContext(
        session=session,
        enrollment=enrollment,
        lead=lead,
        user_id=user_id or enrollment.user_id,
        now=now,
        test_mode=test_mode,
        settings=settings or EngineSettings(),
    )
    log_extra = {
        'workflow_id': enrollment.workflow_id,
        'lead_id': lead.id,
        'enrollment_id': enrollment.id,
        'step_type': step.type,
    }
    logger.info("Executing step %d (%s) for lead %s, test_mode=%s",
                step.index, step.type, lead.id, test_mode, extra=log_extra)

    # A step being run is no longer waiting
    enrollment.next_step_scheduled_at = None

    try:
        result = get_executor(step.type).run(step.config, ctx)
    except ProviderNotConfiguredError:
        raise
    except Exception as e:
        logger.warning("Step %d (%s) raised for lead %s: %s",
                       step.index, step.type, lead.id, e, extra=log_extra, exc_info=True)
        result = StepResult.fail(str(e))

    session.add(StepExecution(
        enrollment_id=enrollment.id,
        step_index=step.index,
        step_type=step.type,
        step_config=step.raw_config,
        status='completed' if result.success else 'failed',
        started_at=now,
        completed_at=utcnow(),
        result=result.result or {},
        error_message=result.error,
    ))

    if result.success:
        # New list so the JSON column registers the change
        enrollment.step_history = list(enrollment.step_history or []) + [{
            'step_index': step.index,
            'step_type': step.type,
            'completed_at': now.isoformat(),
            'result': result.result,
        }]
        enrollment.current_step_index = step.index + 1
        if result.resume_at is not None:
            enrollment.next_step_scheduled_at = result.resume_at
        if result.exit_reason:
            complete_enrollment(enrollment, result.exit_reason, now)
    else:
        logger.info("Step %d (%s) failed for lead %s: %s",
                    step.index, step.type, lead.id, result.error, extra=log_extra)

    session.flush()
    return result


def advance_enrollment(session, enrollment, definition, lead, settings=None, now=None):
    """
    Move an active enrollment forward by one actionable step.

    Returns the StepResult, or None when the workflow had no steps left and
    the enrollment was completed instead.
    """
    now = now or utcnow()
    step = definition.next_actionable(enrollment.current_step_index or 0)
    if step is None:
        complete_enrollment(enrollment, 'completed', now)
        session.flush()
        return None
    test_mode = (enrollment.enrollment_metadata or {}).get('enrolled_via') == 'test'
    return execute_step(session, enrollment, step, lead, user_id=enrollment.user_id,
                        settings=settings, test_mode=test_mode, now=now)
