"""Tests for the workflow execution, scheduler tick and step-type routes."""
from unittest.mock import patch

import pytest

from leadflow.exceptions import WorkflowBusyError
from leadflow.models.enrollment import WorkflowEnrollment

UPDATE_PRIORITY = {'type': 'update-lead', 'config': {'updateType': 'priority', 'priority': 'high'}}


@pytest.fixture(autouse=True)
def quiet_slack():
    with patch('leadflow.workflow.runner.notify_execution_complete'):
        yield


class TestExecute:

    def test_options_preflight(self, client):
        resp = client.open('/api/workflows/execute', method='OPTIONS')
        assert resp.status_code == 200
        assert resp.headers['Access-Control-Allow-Origin'] == '*'
        assert 'content-type' in resp.headers['Access-Control-Allow-Headers']

    @pytest.mark.parametrize('body', [
        {},
        {'workflowId': 'wf-1'},
        {'userId': 'user-1'},
    ])
    def test_requires_ids(self, client, body):
        resp = client.post('/api/workflows/execute', json=body)
        assert resp.status_code == 400
        assert 'required' in resp.get_json()['error']

    def test_lead_ids_must_be_list(self, client):
        resp = client.post('/api/workflows/execute',
                           json={'workflowId': 'wf-1', 'userId': 'user-1', 'leadIds': 'lead-1'})
        assert resp.status_code == 400

    def test_unknown_workflow_is_500(self, client):
        resp = client.post('/api/workflows/execute', json={'workflowId': 'missing', 'userId': 'user-1'})
        assert resp.status_code == 500
        assert 'missing' in resp.get_json()['error']
        assert resp.headers['Access-Control-Allow-Origin'] == '*'

    def test_executes(self, client, db_session, make_workflow, make_lead):
        workflow = make_workflow(elements=[{'type': 'trigger', 'config': {}}, UPDATE_PRIORITY])
        lead = make_lead()

        resp = client.post('/api/workflows/execute', json={
            'workflowId': workflow.id, 'userId': 'user-1', 'leadIds': [lead.id],
        })

        assert resp.status_code == 200
        data = resp.get_json()
        assert data['total'] == 1
        assert data['enrolled'] == 1
        assert data['details'][0]['status'] == 'enrolled'
        enrollment = db_session.query(WorkflowEnrollment).one()
        assert enrollment.current_step_index == 2

    def test_audience_run_and_repeat(self, client, make_workflow, make_lead):
        workflow = make_workflow(elements=[UPDATE_PRIORITY])
        make_lead()
        make_lead()
        body = {'workflowId': workflow.id, 'userId': 'user-1'}

        first = client.post('/api/workflows/execute', json=body).get_json()
        second = client.post('/api/workflows/execute', json=body).get_json()

        assert first['enrolled'] == 2
        assert second['skipped'] == 2
        assert second['enrolled'] == 0

    def test_test_mode_flag(self, client, make_workflow, make_lead):
        workflow = make_workflow(elements=[UPDATE_PRIORITY])
        lead = make_lead()

        with patch('leadflow.routes.workflows.execute_workflow') as run:
            run.return_value.to_dict.return_value = {'total': 1}
            client.post('/api/workflows/execute', json={
                'workflowId': workflow.id, 'userId': 'user-1', 'leadIds': [lead.id], 'testMode': True,
            })
        assert run.call_args.kwargs['test_mode'] is True
        assert run.call_args.kwargs['lead_ids'] == [lead.id]

    def test_missing_provider_is_500(self, client, make_workflow, make_lead):
        workflow = make_workflow(elements=[{'type': 'email', 'config': {}}])
        make_lead()
        resp = client.post('/api/workflows/execute', json={'workflowId': workflow.id, 'userId': 'user-1'})
        assert resp.status_code == 500
        assert 'RESEND_API_KEY' in resp.get_json()['error']

    def test_busy_is_409(self, client, mock_redis):
        mock_redis.lock.return_value.acquire.return_value = False
        resp = client.post('/api/workflows/execute', json={'workflowId': 'wf-1', 'userId': 'user-1'})
        assert resp.status_code == 409
        assert 'already executing' in resp.get_json()['error']

    @pytest.mark.parametrize('test_mode', ['false', 'true', 0, None])
    def test_test_mode_must_be_boolean(self, client, test_mode):
        with patch('leadflow.routes.workflows.execute_workflow') as run:
            resp = client.post('/api/workflows/execute', json={
                'workflowId': 'wf-1', 'userId': 'user-1', 'testMode': test_mode,
            })
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'testMode must be a boolean'}
        run.assert_not_called()


class TestAdvance:

    def test_inline_tick(self, client, db_session, make_workflow, make_lead):
        from leadflow.workflow.enrollment import create_enrollment
        workflow = make_workflow(elements=[UPDATE_PRIORITY])
        lead = make_lead()
        create_enrollment(db_session, workflow.id, lead.id, 'user-1')
        db_session.commit()

        resp = client.post('/api/workflows/advance', json={})

        assert resp.status_code == 200
        data = resp.get_json()
        assert data['processed'] == 1
        assert data['advanced'] == 1

    def test_async_enqueues(self, client):
        with patch('leadflow.routes.workflows.enqueue_scheduler_tick', return_value='job-9') as enqueue:
            resp = client.post('/api/workflows/advance', json={'async': True, 'limit': 20})
        assert resp.status_code == 202
        assert resp.get_json() == {'job_id': 'job-9'}
        enqueue.assert_called_once_with(20)

    @pytest.mark.parametrize('limit', ['many', -1])
    def test_bad_limit(self, client, limit):
        resp = client.post('/api/workflows/advance', json={'limit': limit})
        assert resp.status_code == 400

    def test_enqueue_failure(self, client):
        with patch('leadflow.routes.workflows.enqueue_scheduler_tick', side_effect=RuntimeError('redis down')):
            resp = client.post('/api/workflows/advance', json={'async': True})
        assert resp.status_code == 500

    def test_overlapping_tick_is_409(self, client, mock_redis):
        mock_redis.lock.return_value.acquire.return_value = False
        with patch('leadflow.routes.workflows.advance_due_enrollments') as advance:
            resp = client.post('/api/workflows/advance', json={})
        assert resp.status_code == 409
        assert 'already running' in resp.get_json()['error']
        advance.assert_not_called()
        assert mock_redis.lock.call_args.args[0] == 'scheduler-tick'

    def test_inline_tick_releases_lock(self, client, mock_redis):
        client.post('/api/workflows/advance', json={})
        mock_redis.lock.return_value.release.assert_called_once()


class TestStepTypes:

    def test_lists_catalogue(self, client):
        resp = client.get('/api/workflows/step-types')
        assert resp.status_code == 200
        catalogue = resp.get_json()
        assert {'email', 'sms', 'wait', 'condition', 'end-workflow'} <= set(catalogue)
        assert 'trigger' not in catalogue
        assert catalogue['wait']['description']
