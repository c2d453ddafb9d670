"""Tests for leadflow.workflow.enrollment — enrollment lifecycle and step recording."""
from datetime import timedelta
import pytest

from leadflow.exceptions import ProviderNotConfiguredError
from leadflow.models.lead import Lead
from leadflow.models.step_execution import StepExecution
from leadflow.workflow.definition import WorkflowDefinition, parse_step
from leadflow.workflow.enrollment import (
    find_enrollment, create_enrollment, complete_enrollment, execute_step, advance_enrollment,
)
from leadflow.workflow.settings import EngineSettings


@pytest.fixture
def enrollment(db_session, make_lead, make_workflow):
    workflow = make_workflow()
    lead = make_lead()
    return create_enrollment(db_session, workflow.id, lead.id, 'user-1')


class TestCreateAndFind:

    def test_new_enrollment_defaults(self, enrollment):
        assert enrollment.id
        assert enrollment.current_step_index == 0
        assert enrollment.status == 'active'
        assert enrollment.step_history == []
        assert enrollment.enrollment_metadata == {'enrolled_via': 'execution'}

    def test_test_mode_metadata(self, db_session, make_lead, make_workflow):
        enrollment = create_enrollment(db_session, make_workflow().id, make_lead().id, 'user-1', test_mode=True)
        assert enrollment.enrollment_metadata == {'enrolled_via': 'test'}

    def test_find_returns_existing(self, db_session, enrollment):
        assert find_enrollment(db_session, enrollment.workflow_id, enrollment.lead_id).id == enrollment.id

    def test_find_includes_completed(self, db_session, enrollment, now):
        complete_enrollment(enrollment, 'completed', now)
        db_session.flush()
        assert find_enrollment(db_session, enrollment.workflow_id, enrollment.lead_id) is not None

    def test_find_returns_none(self, db_session):
        assert find_enrollment(db_session, 'wf-x', 'lead-x') is None


class TestCompleteEnrollment:

    def test_sets_terminal_fields(self, enrollment, now):
        enrollment.next_step_scheduled_at = now
        complete_enrollment(enrollment, None, now)
        assert enrollment.status == 'completed'
        assert enrollment.completed_at == now
        assert enrollment.exit_reason == 'completed'
        assert enrollment.next_step_scheduled_at is None


class TestExecuteStep:
    """One StepExecution per attempt; history and index only on success."""

    def test_success_records_and_advances(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        step = parse_step(1, {'type': 'update-lead', 'config': {'updateType': 'priority', 'priority': 'high'}})

        result = execute_step(db_session, enrollment, step, lead, now=now)

        assert result.success
        assert enrollment.current_step_index == 2
        assert enrollment.step_history == [{
            'step_index': 1,
            'step_type': 'update-lead',
            'completed_at': now.isoformat(),
            'result': {'priority': 'high'},
        }]
        execution = db_session.query(StepExecution).one()
        assert execution.enrollment_id == enrollment.id
        assert execution.step_index == 1
        assert execution.step_type == 'update-lead'
        assert execution.status == 'completed'
        assert execution.step_config == {'updateType': 'priority', 'priority': 'high'}
        assert execution.error_message is None

    def test_history_is_appended(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        execute_step(db_session, enrollment, parse_step(0, {'type': 'wait', 'config': {}}), lead, now=now)
        execute_step(db_session, enrollment, parse_step(1, {'type': 'end-workflow', 'config': {}}), lead, now=now)
        assert [h['step_index'] for h in enrollment.step_history] == [0, 1]

    def test_soft_failure_leaves_enrollment(self, db_session, enrollment, make_lead, now):
        lead = make_lead(phone=None)
        step = parse_step(1, {'type': 'sms', 'config': {'content': 'hi'}})

        result = execute_step(db_session, enrollment, step, lead,
                              settings=EngineSettings(sms_sender=object()), now=now)

        assert not result.success
        assert enrollment.current_step_index == 0
        assert enrollment.step_history == []
        execution = db_session.query(StepExecution).one()
        assert execution.status == 'failed'
        assert execution.error_message == 'Lead has no phone number'

    def test_executor_exception_becomes_failed_step(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        step = parse_step(0, {'type': 'email', 'config': {'subject': 's'}})

        class ExplodingSender:
            def send_email(self, **kwargs):
                raise RuntimeError('smtp on fire')

        result = execute_step(db_session, enrollment, step, lead,
                              settings=EngineSettings(email_sender=ExplodingSender()), now=now)
        assert not result.success
        assert result.error == 'smtp on fire'
        assert db_session.query(StepExecution).one().status == 'failed'

    def test_missing_provider_propagates(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        step = parse_step(0, {'type': 'email', 'config': {}})
        with pytest.raises(ProviderNotConfiguredError):
            execute_step(db_session, enrollment, step, lead, settings=EngineSettings(), now=now)

    def test_wait_sets_schedule(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        step = parse_step(0, {'type': 'wait', 'config': {'waitTime': {'value': 3, 'unit': 'days'}}})
        execute_step(db_session, enrollment, step, lead, now=now)
        assert enrollment.next_step_scheduled_at == now + timedelta(days=3)
        assert enrollment.status == 'active'

    def test_end_workflow_completes(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        step = parse_step(2, {'type': 'end-workflow', 'config': {'reason': 'goal_reached'}})
        result = execute_step(db_session, enrollment, step, lead, now=now)
        assert result.result == {'status': 'completed'}
        assert enrollment.status == 'completed'
        assert enrollment.completed_at == now
        assert enrollment.exit_reason == 'goal_reached'

    def test_running_a_step_clears_old_schedule(self, db_session, enrollment, now):
        lead = db_session.get(Lead, enrollment.lead_id)
        enrollment.next_step_scheduled_at = now - timedelta(hours=1)
        execute_step(db_session, enrollment, parse_step(0, {'type': 'update-lead', 'config': {}}), lead, now=now)
        assert enrollment.next_step_scheduled_at is None


class TestAdvanceEnrollment:

    def _definition(self, workflow):
        return WorkflowDefinition.from_workflow(workflow)

    def test_runs_next_actionable_step(self, db_session, make_lead, make_workflow, now):
        workflow = make_workflow(elements=[
            {'type': 'trigger', 'config': {}},
            {'type': 'wait', 'config': {}},
            {'type': 'update-lead', 'config': {'updateType': 'priority', 'priority': 'low'}},
        ])
        lead = make_lead()
        enrollment = create_enrollment(db_session, workflow.id, lead.id, 'user-1')
        enrollment.current_step_index = 2

        result = advance_enrollment(db_session, enrollment, self._definition(workflow), lead, now=now)

        assert result.success
        assert lead.priority == 'low'
        assert enrollment.current_step_index == 3

    def test_exhausted_steps_complete(self, db_session, make_lead, make_workflow, now):
        workflow = make_workflow(elements=[{'type': 'trigger', 'config': {}}, {'type': 'wait', 'config': {}}])
        lead = make_lead()
        enrollment = create_enrollment(db_session, workflow.id, lead.id, 'user-1')
        enrollment.current_step_index = 2

        assert advance_enrollment(db_session, enrollment, self._definition(workflow), lead, now=now) is None
        assert enrollment.status == 'completed'
        assert enrollment.exit_reason == 'completed'

    def test_test_enrollments_stay_in_test_mode(self, db_session, make_lead, make_workflow, now):
        workflow = make_workflow(elements=[{'type': 'update-lead', 'config': {'updateType': 'priority', 'priority': 'x'}}])
        lead = make_lead(priority=None)
        enrollment = create_enrollment(db_session, workflow.id, lead.id, 'user-1', test_mode=True)

        result = advance_enrollment(db_session, enrollment, self._definition(workflow), lead, now=now)

        assert result.result['test_mode'] is True
        assert lead.priority is None
