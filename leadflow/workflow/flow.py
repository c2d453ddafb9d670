"""
Flow-control steps: wait, condition, end-workflow, plus the fallback for step
types this engine does not know.
"""
import logging
from datetime import timedelta

from leadflow.workflow.base import StepExecutor, StepResult, StepContext
from leadflow.workflow.definition import (
    WaitConfig, ConditionConfig, EndWorkflowConfig, UnsupportedConfig, split_list,
)

logger = logging.getLogger('workflow.flow')


# ── Wait ──────────────────────────────────────────────────────────────────────

def wait_delta(value, unit):
    if unit == 'minutes':
        return timedelta(minutes=value)
    if unit == 'hours':
        return timedelta(hours=value)
    if unit == 'weeks':
        return timedelta(weeks=value)
    return timedelta(days=value)


class WaitStep(StepExecutor):
    step_type = 'wait'
    description = 'Pause the enrollment for a fixed duration'

    def run(self, config: WaitConfig, ctx: StepContext) -> StepResult:
        # Scheduling is enrollment state, so it applies in test mode as well
        resume_at = ctx.now + wait_delta(config.value, config.unit)
        return StepResult.ok({'scheduled_for': resume_at.isoformat()}, resume_at=resume_at)


# ── Condition ─────────────────────────────────────────────────────────────────

def _lead_value(lead, name):
    if isinstance(lead, dict):
        return lead.get(name)
    return getattr(lead, name, None)


def _as_number(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _is_empty(value):
    return value is None or value == '' or value == [] or value == {}


def _equals(actual, expected):
    a, b = _as_number(actual), _as_number(expected)
    if a is not None and b is not None:
        return a == b
    return str(actual if actual is not None else '').lower() == str(expected if expected is not None else '').lower()


def evaluate_condition(condition, lead):
    actual = _lead_value(lead, condition.field)
    expected = condition.value
    op = condition.operator

    if op == 'is_empty':
        return _is_empty(actual)
    if op == 'is_not_empty':
        return not _is_empty(actual)
    if op == 'equals':
        return _equals(actual, expected)
    if op == 'not_equals':
        return not _equals(actual, expected)
    if op == 'contains':
        if isinstance(actual, list):
            return any(_equals(item, expected) for item in actual)
        return str(expected or '').lower() in str(actual or '').lower()
    if op in ('greater_than', 'less_than'):
        a, b = _as_number(actual), _as_number(expected)
        if a is None or b is None:
            return False
        return a > b if op == 'greater_than' else a < b
    if op in ('in', 'not_in'):
        options = split_list(expected)
        values = actual if isinstance(actual, list) else [actual]
        hit = any(_equals(v, o) for v in values for o in options)
        return hit if op == 'in' else not hit
    return False


def _combine(operator, results):
    return any(results) if operator == 'OR' else all(results)


def evaluate_group(group, lead):
    return _combine(group.operator, (evaluate_condition(c, lead) for c in group.conditions))


def evaluate_conditions(config, lead):
    """Each group by its own operator, then the groups by evaluation_mode."""
    if not config.groups:
        return True
    return _combine(config.evaluation_mode, (evaluate_group(g, lead) for g in config.groups))


class ConditionStep(StepExecutor):
    step_type = 'condition'
    description = 'Branch on lead fields; optionally exit when not matched'

    def run(self, config: ConditionConfig, ctx: StepContext) -> StepResult:
        matched = evaluate_conditions(config, ctx.lead)
        result = {'matched': matched, 'branch': 'true' if matched else 'false'}
        if not matched and config.on_false == 'exit':
            logger.info("Condition not met for lead %s, exiting workflow", ctx.lead.id)
            return StepResult.ok(result, exit_reason='condition_not_met')
        return StepResult.ok(result)


# ── End workflow ──────────────────────────────────────────────────────────────

class EndWorkflowStep(StepExecutor):
    step_type = 'end-workflow'
    description = 'Complete the enrollment'

    def run(self, config: EndWorkflowConfig, ctx: StepContext) -> StepResult:
        return StepResult.ok({'status': 'completed'}, exit_reason=config.reason)


# ── Unknown ───────────────────────────────────────────────────────────────────

class UnsupportedStep(StepExecutor):
    """No-op for step types authored in a newer builder."""
    step_type = ''
    description = 'Skipped: not implemented by this engine'

    def __init__(self, step_type=''):
        self.step_type = step_type

    def run(self, config: UnsupportedConfig, ctx: StepContext) -> StepResult:
        return StepResult.ok({'skipped': True, 'reason': f'Step type {self.step_type} not implemented'})


EXECUTORS = {
    'wait': WaitStep,
    'condition': ConditionStep,
    'end-workflow': EndWorkflowStep,
}
