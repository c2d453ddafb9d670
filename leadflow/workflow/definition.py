"""
Workflow definitions — typed, validated view of a workflow's trigger_config.

The builder UI stores steps as loosely-shaped JSON. WorkflowDefinition parses
that once per run into one dataclass per step variant, so authoring mistakes
(unknown update type, missing advisor id, bad condition operator) surface as a
WorkflowDefinitionError before any lead is touched.

Unknown step types are not an error: they parse to UnsupportedConfig and the
engine skips them, so older engines tolerate newer builders.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from leadflow.exceptions import WorkflowDefinitionError


# ── Helpers ───────────────────────────────────────────────────────────────────

def split_list(value):
    """Accept a comma-separated string or a list; return trimmed, non-empty strings."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(',')
    else:
        items = value
    return [str(item).strip() for item in items if str(item).strip()]


def _number(raw, key, default, index, integer=False):
    value = raw.get(key)
    if value is None or value == '':
        return default
    try:
        return int(value) if integer else float(value)
    except (TypeError, ValueError):
        raise WorkflowDefinitionError(f"{key} must be a number, got {value!r}", step_index=index)


# ── Step configs ──────────────────────────────────────────────────────────────

@dataclass
class TriggerConfig:
    trigger_event: str = 'manual'

    @classmethod
    def parse(cls, raw, index):
        return cls(trigger_event=raw.get('triggerEvent') or 'manual')


@dataclass
class EmailConfig:
    subject: str = ''
    content: str = ''
    from_name: Optional[str] = None
    from_email: Optional[str] = None
    reply_to: Optional[str] = None

    @classmethod
    def parse(cls, raw, index):
        return cls(
            subject=raw.get('subject') or '',
            content=raw.get('content') or '',
            from_name=raw.get('fromName') or None,
            from_email=raw.get('fromEmail') or None,
            reply_to=raw.get('replyTo') or None,
        )


@dataclass
class SmsConfig:
    content: str = ''
    include_opt_out: bool = False
    opt_out_message: Optional[str] = None

    @classmethod
    def parse(cls, raw, index):
        return cls(
            content=raw.get('content') or '',
            include_opt_out=bool(raw.get('includeOptOut')),
            opt_out_message=raw.get('optOutMessage') or None,
        )


WAIT_UNITS = ('minutes', 'hours', 'days', 'weeks')


@dataclass
class WaitConfig:
    value: float = 1
    unit: str = 'days'

    @classmethod
    def parse(cls, raw, index):
        wait_time = raw.get('waitTime') or {'value': 1, 'unit': 'days'}
        if not isinstance(wait_time, dict):
            raise WorkflowDefinitionError("waitTime must be an object", step_index=index)
        value = _number(wait_time, 'value', 1, index)
        if value < 0:
            raise WorkflowDefinitionError("waitTime.value cannot be negative", step_index=index)
        unit = wait_time.get('unit')
        # Anything unrecognised waits in days
        if unit not in WAIT_UNITS:
            unit = 'days'
        return cls(value=value, unit=unit)


CONDITION_OPERATORS = (
    'equals', 'not_equals', 'contains', 'greater_than', 'less_than',
    'in', 'not_in', 'is_empty', 'is_not_empty',
)


@dataclass
class Condition:
    field: str
    operator: str
    value: Any = None


def _logic_operator(value, key, index):
    operator = str(value or 'AND').upper()
    if operator not in ('AND', 'OR'):
        raise WorkflowDefinitionError(f"{key} must be AND or OR, got '{operator}'", step_index=index)
    return operator


def _parse_conditions(items, index):
    conditions = []
    for item in items:
        if not isinstance(item, dict) or not item.get('field'):
            raise WorkflowDefinitionError("condition needs a field", step_index=index)
        operator = item.get('operator') or 'equals'
        if operator not in CONDITION_OPERATORS:
            raise WorkflowDefinitionError(f"unknown condition operator '{operator}'", step_index=index)
        conditions.append(Condition(field=item['field'], operator=operator, value=item.get('value')))
    return conditions


@dataclass
class ConditionGroup:
    """Conditions joined by the group's own operator."""
    conditions: List[Condition] = field(default_factory=list)
    operator: str = 'AND'


@dataclass
class ConditionConfig:
    """Groups joined by evaluation_mode. No groups always matches.

    Builder shape: {conditionGroups: [{operator, conditions}], evaluationMode}.
    A flat `conditions` list is read as one group joined by evaluationMode.
    """
    groups: List[ConditionGroup] = field(default_factory=list)
    evaluation_mode: str = 'AND'
    on_false: str = 'continue'

    @classmethod
    def parse(cls, raw, index):
        mode = _logic_operator(raw.get('evaluationMode'), 'evaluationMode', index)

        for branch in ('trueBranch', 'falseBranch'):
            if raw.get(branch):
                raise WorkflowDefinitionError(
                    f"{branch} steps are not supported; place follow-up steps after the condition",
                    step_index=index)

        groups = []
        flat = _parse_conditions(raw.get('conditions') or [], index)
        if flat:
            groups.append(ConditionGroup(conditions=flat, operator=mode))
        for group in raw.get('conditionGroups') or []:
            if not isinstance(group, dict):
                raise WorkflowDefinitionError("condition group must be an object", step_index=index)
            conditions = _parse_conditions(group.get('conditions') or [], index)
            operator = _logic_operator(group.get('operator'), 'group operator', index)
            # Empty groups are builder placeholders
            if conditions:
                groups.append(ConditionGroup(conditions=conditions, operator=operator))

        on_false = raw.get('onFalse') or 'continue'
        if on_false not in ('continue', 'exit'):
            raise WorkflowDefinitionError(f"onFalse must be continue or exit, got '{on_false}'", step_index=index)
        return cls(groups=groups, evaluation_mode=mode, on_false=on_false)


UPDATE_TYPES = ('status', 'tags', 'score', 'priority', 'program')


@dataclass
class UpdateLeadConfig:
    update_type: Optional[str] = None
    new_status: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    tags_action: str = 'replace'
    score_change: int = 0
    priority: Optional[str] = None
    program_interest: Optional[str] = None

    @classmethod
    def parse(cls, raw, index):
        update_type = raw.get('updateType') or None
        if update_type is not None and update_type not in UPDATE_TYPES:
            raise WorkflowDefinitionError(f"unknown updateType '{update_type}'", step_index=index)
        if update_type == 'status' and not raw.get('newStatus'):
            raise WorkflowDefinitionError("updateType 'status' needs newStatus", step_index=index)
        return cls(
            update_type=update_type,
            new_status=raw.get('newStatus') or None,
            tags=split_list(raw.get('tags')),
            tags_action=raw.get('tagsAction') or 'replace',
            score_change=_number(raw, 'scoreChange', 0, index, integer=True),
            priority=raw.get('priority') or None,
            program_interest=raw.get('programInterest') or None,
        )


@dataclass
class CreateTaskConfig:
    title: str = ''
    description: str = ''
    task_type: str = 'follow_up'
    priority: str = 'medium'
    due_in_days: float = 1
    assign_to: Optional[str] = None
    specific_assignee: Optional[str] = None

    @classmethod
    def parse(cls, raw, index):
        due_in_days = _number(raw, 'dueInDays', 1, index)
        return cls(
            title=raw.get('taskTitle') or '',
            description=raw.get('taskDescription') or '',
            task_type=raw.get('taskType') or 'follow_up',
            priority=raw.get('priority') or 'medium',
            # 0 means "unset" in the builder, same as missing
            due_in_days=due_in_days or 1,
            assign_to=raw.get('assignTo') or None,
            specific_assignee=raw.get('specificAssignee') or None,
        )


@dataclass
class AssignAdvisorConfig:
    method: str = 'load_balanced'
    specific_advisor_id: Optional[str] = None
    notify_advisor: bool = False

    @classmethod
    def parse(cls, raw, index):
        method = raw.get('assignmentMethod') or 'load_balanced'
        advisor_id = raw.get('specificAdvisorId') or None
        if method == 'specific' and not advisor_id:
            raise WorkflowDefinitionError("assignmentMethod 'specific' needs specificAdvisorId", step_index=index)
        return cls(method=method, specific_advisor_id=advisor_id, notify_advisor=bool(raw.get('notifyAdvisor')))


@dataclass
class NotificationConfig:
    recipient_type: Optional[str] = None
    specific_recipients: List[str] = field(default_factory=list)
    subject: Optional[str] = None
    message: str = ''
    priority: Optional[str] = None
    action_url: Optional[str] = None

    @classmethod
    def parse(cls, raw, index):
        return cls(
            recipient_type=raw.get('recipientType') or None,
            specific_recipients=split_list(raw.get('specificRecipients')),
            subject=raw.get('subject'),
            message=raw.get('message') or '',
            priority=raw.get('priority'),
            action_url=raw.get('actionUrl'),
        )


@dataclass
class EndWorkflowConfig:
    reason: str = 'completed'

    @classmethod
    def parse(cls, raw, index):
        return cls(reason=raw.get('reason') or 'completed')


@dataclass
class UnsupportedConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, raw, index):
        return cls(raw=dict(raw))


# step type → config class
CONFIG_TYPES = {
    'trigger': TriggerConfig,
    'email': EmailConfig,
    'sms': SmsConfig,
    'wait': WaitConfig,
    'condition': ConditionConfig,
    'update-lead': UpdateLeadConfig,
    'create-task': CreateTaskConfig,
    'assign-advisor': AssignAdvisorConfig,
    'internal-notification': NotificationConfig,
    'end-workflow': EndWorkflowConfig,
}


# ── Definition ────────────────────────────────────────────────────────────────

@dataclass
class Step:
    index: int
    type: str
    config: Any
    raw_config: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None

    @property
    def is_trigger(self):
        return self.type == 'trigger'


@dataclass
class AudienceFilters:
    status: Optional[str] = None
    source: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, raw):
        raw = raw or {}
        return cls(
            status=raw.get('status') or None,
            source=raw.get('source') or None,
            tags=split_list(raw.get('tags')),
        )


@dataclass
class WorkflowDefinition:
    workflow_id: str
    steps: List[Step] = field(default_factory=list)
    re_enrollment_allowed: bool = False
    audience_filters: AudienceFilters = field(default_factory=AudienceFilters)

    @classmethod
    def from_workflow(cls, workflow):
        """Parse a Workflow row. Raises WorkflowDefinitionError on authoring errors."""
        trigger_config = workflow.trigger_config or {}
        enrollment_settings = workflow.enrollment_settings or {}
        if not isinstance(trigger_config, dict):
            raise WorkflowDefinitionError("trigger_config must be an object")

        elements = trigger_config.get('elements') or []
        if not isinstance(elements, list):
            raise WorkflowDefinitionError("trigger_config.elements must be a list")

        steps = [parse_step(index, element) for index, element in enumerate(elements)]

        settings = trigger_config.get('settings') or {}
        if 'reEnrollmentAllowed' in settings:
            re_enroll = bool(settings['reEnrollmentAllowed'])
        else:
            re_enroll = bool(enrollment_settings.get('reEnrollmentAllowed'))

        return cls(
            workflow_id=workflow.id,
            steps=steps,
            re_enrollment_allowed=re_enroll,
            audience_filters=AudienceFilters.parse(enrollment_settings.get('audienceFilters')),
        )

    @property
    def first_step(self):
        """Step run at enrollment: the first one that is not a trigger."""
        return self.next_actionable(0)

    def next_actionable(self, index):
        """First non-trigger step at or after index, or None when exhausted."""
        while index < len(self.steps):
            step = self.steps[index]
            if not step.is_trigger:
                return step
            index += 1
        return None


def parse_step(index, element):
    if not isinstance(element, dict) or not element.get('type'):
        raise WorkflowDefinitionError("element needs a type", step_index=index)
    raw_config = element.get('config') or {}
    if not isinstance(raw_config, dict):
        raise WorkflowDefinitionError("config must be an object", step_index=index)
    step_type = element['type']
    # Some builder versions keep condition groups on the element itself
    if step_type == 'condition' and not raw_config.get('conditionGroups') and element.get('conditionGroups'):
        raw_config = dict(raw_config, conditionGroups=element['conditionGroups'])
    config_cls = CONFIG_TYPES.get(step_type, UnsupportedConfig)
    return Step(
        index=index,
        type=step_type,
        config=config_cls.parse(raw_config, index),
        raw_config=raw_config,
        id=element.get('id'),
    )
