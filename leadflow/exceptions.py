"""
Engine exception hierarchy.

Fatal errors (workflow missing, bad definition, provider not configured)
abort an invocation. ProviderError is a per-step failure: the caller turns it
into a failed step result.
"""


class WorkflowEngineError(Exception):
    """Base class for all engine errors."""


class WorkflowNotFoundError(WorkflowEngineError):
    def __init__(self, workflow_id):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class WorkflowDefinitionError(WorkflowEngineError):
    """Raised when a workflow definition fails validation at load time."""

    def __init__(self, message, step_index=None):
        self.step_index = step_index
        if step_index is not None:
            message = f"Step {step_index}: {message}"
        super().__init__(message)


class ProviderNotConfiguredError(WorkflowEngineError):
    """A live send was requested but the provider has no credentials."""


class ProviderError(WorkflowEngineError):
    """The email/SMS provider rejected or failed a request."""

    def __init__(self, provider, message, status_code=None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class WorkflowBusyError(WorkflowEngineError):
    """Another invocation of the same workflow holds the run lock."""

    def __init__(self, workflow_id):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} is already executing")


class SchedulerBusyError(WorkflowEngineError):
    """Another scheduler tick holds the tick lock."""

    def __init__(self):
        super().__init__("A scheduler tick is already running")
