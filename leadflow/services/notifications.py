"""
Slack webhook summary posted after each workflow execution.

Posting is best-effort: a Slack failure is logged and never reaches the runner.
"""
import logging
import requests

from leadflow.config import SLACK_WEBHOOK_URL

logger = logging.getLogger('services.notifications')


def build_summary_blocks(workflow, result, test_mode=False):
    """Slack Block Kit payload for one ExecutionResult."""
    title = f"Workflow executed: {workflow.name or workflow.id}"
    if test_mode:
        title += " (test mode)"

    counts = (('Leads', result.total), ('Enrolled', result.enrolled),
              ('Skipped', result.skipped), ('Failed', result.failed))
    blocks = [
        {"type": "header", "text": {"type": "plain_text", "text": title}},
        {
            "type": "section",
            "fields": [{"type": "mrkdwn", "text": f"*{label}:* {value}"} for label, value in counts],
        },
    ]

    first_error = next((d.get('error') for d in result.details if d.get('status') == 'failed'), None)
    if first_error:
        blocks.append({
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*First error:* ```{str(first_error)[:500]}```"},
        })
    return blocks


def notify_execution_complete(workflow, result, test_mode=False):
    if not SLACK_WEBHOOK_URL:
        return

    try:
        from leadflow.services.circuit_breaker import get_breaker
        blocks = build_summary_blocks(workflow, result, test_mode=test_mode)
        get_breaker('slack').call(requests.post, SLACK_WEBHOOK_URL, json={"blocks": blocks}, timeout=10)
        logger.info("Execution summary sent for workflow %s", workflow.id,
                    extra={'workflow_id': workflow.id})
    except Exception:
        logger.error("Failed to send execution summary for workflow %s", workflow.id, exc_info=True)
