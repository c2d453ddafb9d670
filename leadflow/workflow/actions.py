"""
Steps that create CRM work for staff: create-task and internal-notification.
"""
import logging
from datetime import timedelta

from leadflow.models.notification import Notification
from leadflow.models.task import LeadTask
from leadflow.workflow.base import StepExecutor, StepResult, StepContext
from leadflow.workflow.definition import CreateTaskConfig, NotificationConfig
from leadflow.workflow.personalize import personalize

logger = logging.getLogger('workflow.actions')


def resolve_assignee(config, lead, user_id):
    if config.assign_to == 'lead_advisor' and lead.assigned_to:
        return lead.assigned_to
    if config.assign_to == 'specific' and config.specific_assignee:
        return config.specific_assignee
    return user_id


def resolve_recipients(config, lead):
    if config.recipient_type == 'lead_advisor':
        return [lead.assigned_to] if lead.assigned_to else []
    if config.recipient_type == 'specific':
        return list(config.specific_recipients)
    return []


class CreateTaskStep(StepExecutor):
    step_type = 'create-task'
    description = 'Create a follow-up task for the advisor or a specific user'

    def run(self, config: CreateTaskConfig, ctx: StepContext) -> StepResult:
        title = personalize(config.title, ctx.lead)
        description = personalize(config.description, ctx.lead)
        assignee = resolve_assignee(config, ctx.lead, ctx.user_id)
        due_date = ctx.now + timedelta(days=config.due_in_days)

        if ctx.test_mode:
            logger.info("[TEST MODE] Would create task: %s", title)
            return StepResult.ok({'test_mode': True, 'title': title, 'assignee': assignee})

        task = LeadTask(
            lead_id=ctx.lead.id,
            user_id=ctx.user_id,
            title=title,
            description=description,
            task_type=config.task_type,
            priority=config.priority,
            due_date=due_date,
            assigned_to=assignee,
            status='pending',
        )
        ctx.session.add(task)
        ctx.session.flush()

        return StepResult.ok({
            'id': task.id,
            'lead_id': task.lead_id,
            'title': task.title,
            'description': task.description,
            'task_type': task.task_type,
            'priority': task.priority,
            'due_date': due_date.isoformat(),
            'assigned_to': task.assigned_to,
            'status': task.status,
        })


class InternalNotificationStep(StepExecutor):
    step_type = 'internal-notification'
    description = 'In-app notification to the advisor or listed users'

    def run(self, config: NotificationConfig, ctx: StepContext) -> StepResult:
        message = personalize(config.message, ctx.lead)
        recipients = resolve_recipients(config, ctx.lead)

        if ctx.test_mode:
            logger.info("[TEST MODE] Would notify %d recipients", len(recipients))
            return StepResult.ok({'test_mode': True, 'recipients': len(recipients)})

        for recipient_id in recipients:
            ctx.session.add(Notification(
                user_id=recipient_id,
                type='workflow_notification',
                title=config.subject,
                message=message,
                data={
                    'lead_id': ctx.lead.id,
                    'priority': config.priority,
                    'action_url': config.action_url,
                },
            ))
        ctx.session.flush()
        return StepResult.ok({'notified': len(recipients)})


EXECUTORS = {
    'create-task': CreateTaskStep,
    'internal-notification': InternalNotificationStep,
}
