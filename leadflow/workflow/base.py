"""
Step executor contracts.

Every step type implements StepExecutor.run() and returns a StepResult.
Executors may write to the CRM tables through ctx.session, but never touch the
enrollment row: lifecycle changes (scheduling, exiting) are reported on the
StepResult and applied by the enrollment manager.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from leadflow.workflow.settings import EngineSettings


@dataclass
class StepResult:
    """Uniform output from every step executor."""
    success: bool
    result: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    resume_at: Optional[datetime] = None      # set → enrollment waits until then
    exit_reason: Optional[str] = None         # set → enrollment is completed

    @classmethod
    def ok(cls, result=None, **kwargs):
        return cls(success=True, result=result or {}, **kwargs)

    @classmethod
    def fail(cls, error):
        return cls(success=False, error=error)


@dataclass
class StepContext:
    """Everything an executor may look at besides its own config."""
    session: Any
    enrollment: Any
    lead: Any
    user_id: str
    now: datetime
    test_mode: bool = False
    settings: EngineSettings = field(default_factory=EngineSettings)


class StepExecutor(ABC):
    """
    Base class for all step executors.

    One executor per step type. Soft failures (lead has no phone, nobody to
    assign) are returned as StepResult.fail(); anything raised is turned into a
    failed step by the caller, except ProviderNotConfiguredError.
    """
    step_type: str = ''
    description: str = ''

    @abstractmethod
    def run(self, config: Any, ctx: StepContext) -> StepResult:
        ...
