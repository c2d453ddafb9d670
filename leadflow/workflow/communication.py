"""
Outbound communication steps: email (Resend) and SMS (Twilio).

Both personalize their content, short-circuit in test mode, and log a
LeadCommunication row after a successful live send.
"""
import logging

from leadflow.exceptions import ProviderNotConfiguredError
from leadflow.models.communication import LeadCommunication
from leadflow.workflow.base import StepExecutor, StepResult, StepContext
from leadflow.workflow.definition import EmailConfig, SmsConfig
from leadflow.workflow.personalize import personalize

logger = logging.getLogger('workflow.communication')


def _log_communication(ctx, channel, content, subject=None):
    ctx.session.add(LeadCommunication(
        lead_id=ctx.lead.id,
        user_id=ctx.lead.user_id,
        type=channel,
        direction='outbound',
        subject=subject,
        content=content,
        status='sent',
    ))


class EmailStep(StepExecutor):
    step_type = 'email'
    description = 'Resend API: personalized HTML email'

    def run(self, config: EmailConfig, ctx: StepContext) -> StepResult:
        subject = personalize(config.subject, ctx.lead)
        content = personalize(config.content, ctx.lead)

        if ctx.test_mode:
            logger.info("[TEST MODE] Would send email to %s: %s", ctx.lead.email, subject)
            return StepResult.ok({'test_mode': True, 'to': ctx.lead.email, 'subject': subject})

        sender = ctx.settings.email_sender
        if sender is None:
            raise ProviderNotConfiguredError('RESEND_API_KEY not configured')

        response = sender.send_email(
            from_name=config.from_name or ctx.settings.default_from_name,
            from_email=config.from_email or ctx.settings.default_from_email,
            to=ctx.lead.email,
            subject=subject,
            html=content,
            reply_to=config.reply_to,
        )
        _log_communication(ctx, 'email', content, subject=subject)
        return StepResult.ok(response)


class SmsStep(StepExecutor):
    step_type = 'sms'
    description = 'Twilio Messages API: text message with optional opt-out footer'

    def run(self, config: SmsConfig, ctx: StepContext) -> StepResult:
        if not ctx.lead.phone:
            return StepResult.fail('Lead has no phone number')

        content = personalize(config.content, ctx.lead)
        if config.include_opt_out:
            content += '\n\n' + (config.opt_out_message or ctx.settings.default_opt_out_message)

        if ctx.test_mode:
            logger.info("[TEST MODE] Would send SMS to %s: %s", ctx.lead.phone, content)
            return StepResult.ok({'test_mode': True, 'to': ctx.lead.phone, 'content': content})

        sender = ctx.settings.sms_sender
        if sender is None:
            raise ProviderNotConfiguredError('Twilio credentials not configured')

        response = sender.send_sms(ctx.lead.phone, content)
        _log_communication(ctx, 'sms', content)
        return StepResult.ok(response)


EXECUTORS = {
    'email': EmailStep,
    'sms': SmsStep,
}
