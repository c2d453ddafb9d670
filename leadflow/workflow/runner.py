"""
Workflow runner — enroll a batch of leads and run each one's first step.

Flow per invocation:
  load workflow → parse definition → resolve leads → per lead:
  dedup → enroll → first actionable step → commit → merge execution_stats

Each lead is its own transaction. A failure on one lead rolls back only that
lead's work and is reported in the result; the batch continues. A provider with
no credentials is the one per-lead condition that aborts the whole run, since
every remaining lead would fail the same way.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from leadflow.exceptions import WorkflowNotFoundError, ProviderNotConfiguredError
from leadflow.models.lead import Lead
from leadflow.models.workflow import Workflow
from leadflow.services.notifications import notify_execution_complete
from leadflow.workflow.definition import WorkflowDefinition
from leadflow.workflow.enrollment import (
    find_enrollment, create_enrollment, execute_step, utcnow,
)
from leadflow.workflow.settings import EngineSettings

logger = logging.getLogger('workflow.runner')


@dataclass
class ExecutionResult:
    total: int = 0
    enrolled: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[Dict[str, Any]] = field(default_factory=list)

    # Enrollments that ended during this run; feeds execution_stats only
    completed: int = 0
    exited: int = 0

    def to_dict(self):
        return {
            'total': self.total,
            'enrolled': self.enrolled,
            'skipped': self.skipped,
            'failed': self.failed,
            'details': list(self.details),
        }


# ── Lead resolution ───────────────────────────────────────────────────────────

def resolve_leads(session, definition, user_id, lead_ids=None, limit=1000):
    """
    Explicit lead ids win. Otherwise the invoking user's leads matching the
    audience filters, capped at limit. Tag overlap is checked while streaming
    so it works on any backend's JSON column.
    """
    if lead_ids:
        return session.query(Lead).filter(Lead.id.in_(list(lead_ids))).all()

    filters = definition.audience_filters
    query = session.query(Lead).filter(Lead.user_id == user_id)
    if filters.status:
        query = query.filter(Lead.status == filters.status)
    if filters.source:
        query = query.filter(Lead.source == filters.source)

    if not filters.tags:
        return query.limit(limit).all()

    wanted = set(filters.tags)
    leads = []
    for lead in query.yield_per(200):
        if wanted.intersection(lead.tags or []):
            leads.append(lead)
            if len(leads) >= limit:
                break
    return leads


# ── Stats ─────────────────────────────────────────────────────────────────────

def merge_execution_stats(session, workflow_id, enrolled=0, completed=0, exited=0, now=None):
    """
    Fold run counts into workflow.execution_stats, keeping unknown keys.

    The row is re-read FOR UPDATE so concurrent merges serialize on databases
    that support it.
    """
    workflow = (
        session.query(Workflow)
        .filter(Workflow.id == workflow_id)
        .with_for_update()
        .one_or_none()
    )
    if workflow is None:
        return None

    stats = dict(workflow.execution_stats or {})
    stats['total_enrolled'] = (stats.get('total_enrolled') or 0) + enrolled
    stats['active'] = max(0, (stats.get('active') or 0) + enrolled - completed - exited)
    stats['completed'] = (stats.get('completed') or 0) + completed
    stats['exited'] = (stats.get('exited') or 0) + exited
    stats['last_executed_at'] = (now or utcnow()).isoformat()
    workflow.execution_stats = stats
    session.commit()
    return stats


def count_termination(result, enrollment):
    if enrollment.status != 'completed':
        return
    if (enrollment.exit_reason or 'completed') == 'completed':
        result.completed += 1
    else:
        result.exited += 1


# ── Public API ────────────────────────────────────────────────────────────────

def execute_workflow(session, workflow_id, user_id, lead_ids=None, test_mode=False,
                     settings=None) -> ExecutionResult:
    """
    Enroll leads into a workflow and run their first step.

    Raises WorkflowNotFoundError, WorkflowDefinitionError and
    ProviderNotConfiguredError; everything else is per-lead.
    """
    settings = settings or EngineSettings()
    now = utcnow()

    workflow = session.get(Workflow, workflow_id)
    if workflow is None:
        raise WorkflowNotFoundError(workflow_id)

    definition = WorkflowDefinition.from_workflow(workflow)
    leads = resolve_leads(session, definition, user_id, lead_ids=lead_ids,
                          limit=settings.max_leads_per_run)

    logger.info("Executing workflow %s for %d leads, test_mode=%s",
                workflow_id, len(leads), test_mode, extra={'workflow_id': workflow_id})

    result = ExecutionResult(total=len(leads))
    start = definition.first_step

    for lead in leads:
        lead_id = lead.id
        try:
            if not definition.re_enrollment_allowed and find_enrollment(session, workflow_id, lead_id):
                result.skipped += 1
                result.details.append({'leadId': lead_id, 'status': 'skipped', 'reason': 'Already enrolled'})
                continue

            enrollment = create_enrollment(session, workflow_id, lead_id, user_id, test_mode=test_mode)
            if start is not None:
                execute_step(session, enrollment, start, lead, user_id=user_id,
                             settings=settings, test_mode=test_mode, now=now)
            enrollment_id = enrollment.id
            count_termination(result, enrollment)
            session.commit()

            result.enrolled += 1
            result.details.append({'leadId': lead_id, 'status': 'enrolled', 'enrollmentId': enrollment_id})

        except ProviderNotConfiguredError:
            session.rollback()
            logger.error("Aborting workflow %s: provider not configured",
                         workflow_id, extra={'workflow_id': workflow_id})
            merge_execution_stats(session, workflow_id, result.enrolled,
                                  result.completed, result.exited, now)
            raise
        except Exception as e:
            session.rollback()
            logger.error("Error processing lead %s: %s", lead_id, e,
                         extra={'workflow_id': workflow_id, 'lead_id': lead_id}, exc_info=True)
            result.failed += 1
            result.details.append({'leadId': lead_id, 'status': 'failed', 'error': str(e)})

    merge_execution_stats(session, workflow_id, result.enrolled, result.completed, result.exited, now)

    logger.info("Workflow %s complete: total=%d enrolled=%d skipped=%d failed=%d",
                workflow_id, result.total, result.enrolled, result.skipped, result.failed,
                extra={'workflow_id': workflow_id})

    notify_execution_complete(workflow, result, test_mode=test_mode)
    return result
