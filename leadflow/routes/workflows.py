"""
Workflow routes — execution endpoint called by the CRM frontend, scheduler tick,
and the step-type catalogue used by the builder.
"""
import logging
from flask import Blueprint, current_app, jsonify, request

from leadflow.config import SCHEDULER_BATCH_SIZE
from leadflow.exceptions import WorkflowBusyError, SchedulerBusyError
from leadflow.services.locks import workflow_lock, scheduler_lock
from leadflow.workflow.registry import get_step_types_info
from leadflow.workflow.runner import execute_workflow
from leadflow.workflow.scheduler import advance_due_enrollments, enqueue_scheduler_tick

logger = logging.getLogger('routes.workflows')

bp = Blueprint('workflows', __name__)

# The builder calls this service straight from the browser
CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}


@bp.after_request
def add_cors_headers(response):
    response.headers.update(CORS_HEADERS)
    return response


# ── Execution ────────────────────────────────────────────────────────────────

@bp.route('/api/workflows/execute', methods=['POST', 'OPTIONS'])
def execute():
    """Enroll leads into a workflow and run their first step."""
    if request.method == 'OPTIONS':
        return '', 200

    data = request.get_json(silent=True) or {}
    workflow_id = data.get('workflowId')
    user_id = data.get('userId')
    lead_ids = data.get('leadIds')
    test_mode = data.get('testMode', False)

    if not workflow_id or not user_id:
        return jsonify({'error': 'workflowId and userId are required'}), 400
    # "false" is truthy; only a JSON boolean is accepted
    if not isinstance(test_mode, bool):
        return jsonify({'error': 'testMode must be a boolean'}), 400
    if lead_ids is not None and not isinstance(lead_ids, list):
        return jsonify({'error': 'leadIds must be a list'}), 400

    from leadflow.database import get_session
    session = get_session()
    try:
        with workflow_lock(workflow_id):
            result = execute_workflow(
                session, workflow_id, user_id,
                lead_ids=lead_ids,
                test_mode=test_mode,
                settings=current_app.config['ENGINE_SETTINGS'],
            )
        return jsonify(result.to_dict()), 200

    except WorkflowBusyError as e:
        return jsonify({'error': str(e)}), 409
    except Exception as e:
        logger.error("Error executing workflow %s: %s", workflow_id, e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


# ── Scheduler tick ───────────────────────────────────────────────────────────

@bp.route('/api/workflows/advance', methods=['POST'])
def advance():
    """Run one scheduler tick, inline or as an RQ job."""
    data = request.get_json(silent=True) or {}
    try:
        limit = int(data.get('limit') or SCHEDULER_BATCH_SIZE)
    except (TypeError, ValueError):
        return jsonify({'error': 'limit must be an integer'}), 400
    if limit < 1:
        return jsonify({'error': 'limit must be positive'}), 400

    if data.get('async'):
        try:
            job_id = enqueue_scheduler_tick(limit)
        except Exception as e:
            logger.error("Failed to enqueue scheduler tick: %s", e)
            return jsonify({'error': str(e)}), 500
        return jsonify({'job_id': job_id}), 202

    from leadflow.database import get_session
    session = get_session()
    try:
        with scheduler_lock():
            result = advance_due_enrollments(
                session, settings=current_app.config['ENGINE_SETTINGS'], limit=limit,
            )
        return jsonify(result.to_dict()), 200
    except SchedulerBusyError as e:
        return jsonify({'error': str(e)}), 409
    except Exception as e:
        logger.error("Scheduler tick failed: %s", e, exc_info=True)
        return jsonify({'error': str(e)}), 500
    finally:
        session.close()


@bp.route('/api/workflows/step-types')
def step_types():
    return jsonify(get_step_types_info())
