"""
Executor registry — maps step type → executor class.

Each executor module exports its own EXECUTORS dict; they are merged here.
Every known step type except the trigger marker must have an executor; this is
checked at import.
"""
from typing import Dict, Type

from leadflow.config import STEP_TYPES
from leadflow.workflow.base import StepExecutor
from leadflow.workflow import actions, communication, flow, lead_actions

# trigger is a structural marker; it is never executed
NOT_EXECUTED = {'trigger'}

EXECUTORS: Dict[str, Type[StepExecutor]] = {
    **communication.EXECUTORS,
    **lead_actions.EXECUTORS,
    **actions.EXECUTORS,
    **flow.EXECUTORS,
}

_missing = [t for t in STEP_TYPES if t not in NOT_EXECUTED and t not in EXECUTORS]
if _missing:
    raise RuntimeError(f"No executor registered for step types: {', '.join(_missing)}")


def get_executor(step_type: str) -> StepExecutor:
    """Instantiate the executor for a step type; unknown types get UnsupportedStep."""
    executor_cls = EXECUTORS.get(step_type)
    if executor_cls is None:
        return flow.UnsupportedStep(step_type)
    return executor_cls()


def get_step_types_info():
    """Serialize the registry for the builder: {type: {description}}."""
    return {
        step_type: {'description': cls.description or ''}
        for step_type, cls in EXECUTORS.items()
    }
