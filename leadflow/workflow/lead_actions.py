"""
Steps that mutate the lead itself: update-lead and assign-advisor.
"""
import logging

from leadflow.models.advisor import AdvisorPerformance
from leadflow.models.notification import Notification
from leadflow.workflow.base import StepExecutor, StepResult, StepContext
from leadflow.workflow.definition import UpdateLeadConfig, AssignAdvisorConfig

logger = logging.getLogger('workflow.lead_actions')


def merge_tags(current, tags, action):
    """
    Combine a lead's tags with a step's tag list.

    add     → union, existing order first, no duplicates
    remove  → current minus tags
    other   → tags replace current
    """
    current = list(current or [])
    if action == 'add':
        merged = []
        for tag in current + list(tags):
            if tag not in merged:
                merged.append(tag)
        return merged
    if action == 'remove':
        return [tag for tag in current if tag not in tags]
    return list(tags)


def compute_updates(config, lead):
    """Return the column → value dict an update-lead step would apply."""
    updates = {}
    if config.update_type == 'status':
        updates['status'] = config.new_status
    elif config.update_type == 'tags':
        updates['tags'] = merge_tags(lead.tags, config.tags, config.tags_action)
    elif config.update_type == 'score':
        updates['lead_score'] = (lead.lead_score or 0) + config.score_change
    elif config.update_type == 'priority':
        updates['priority'] = config.priority
    elif config.update_type == 'program':
        updates['program_interest'] = config.program_interest
    return updates


class UpdateLeadStep(StepExecutor):
    step_type = 'update-lead'
    description = 'Set status, tags, score, priority or program interest'

    def run(self, config: UpdateLeadConfig, ctx: StepContext) -> StepResult:
        updates = compute_updates(config, ctx.lead)

        if ctx.test_mode:
            logger.info("[TEST MODE] Would update lead %s: %s", ctx.lead.id, updates)
            return StepResult.ok({'test_mode': True, 'updates': updates})

        for column, value in updates.items():
            setattr(ctx.lead, column, value)
        ctx.session.flush()
        return StepResult.ok(dict(updates))


def pick_advisor(session):
    """Least-loaded advisor with routing enabled, or None."""
    return (
        session.query(AdvisorPerformance)
        .filter(AdvisorPerformance.routing_enabled.is_(True))
        .order_by(AdvisorPerformance.current_weekly_assignments.asc())
        .first()
    )


class AssignAdvisorStep(StepExecutor):
    step_type = 'assign-advisor'
    description = 'Assign a specific or least-loaded advisor'

    def run(self, config: AssignAdvisorConfig, ctx: StepContext) -> StepResult:
        advisor = None
        if config.method == 'specific':
            advisor_id = config.specific_advisor_id
        else:
            advisor = pick_advisor(ctx.session)
            advisor_id = advisor.advisor_id if advisor else None

        if not advisor_id:
            return StepResult.fail('No available advisor found')

        if ctx.test_mode:
            logger.info("[TEST MODE] Would assign lead %s to advisor %s", ctx.lead.id, advisor_id)
            return StepResult.ok({'test_mode': True, 'advisor_id': advisor_id})

        ctx.lead.assigned_to = advisor_id
        ctx.lead.assigned_at = ctx.now

        if advisor is None:
            advisor = ctx.session.get(AdvisorPerformance, advisor_id)
        if advisor is not None:
            advisor.current_weekly_assignments = (advisor.current_weekly_assignments or 0) + 1

        if config.notify_advisor:
            ctx.session.add(Notification(
                user_id=advisor_id,
                type='lead_assigned',
                title='New Lead Assigned',
                message=f"You have been assigned a new lead: {ctx.lead.first_name} {ctx.lead.last_name}",
                data={'lead_id': ctx.lead.id},
            ))

        ctx.session.flush()
        logger.info("Lead %s assigned to advisor %s", ctx.lead.id, advisor_id)
        return StepResult.ok({'assigned_to': advisor_id})


EXECUTORS = {
    'update-lead': UpdateLeadStep,
    'assign-advisor': AssignAdvisorStep,
}
