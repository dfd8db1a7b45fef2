"""Client interface for the task orchestration API."""

from __future__ import annotations

from typing import Protocol

from ecs_run_task.runner.models import (
    SubmissionOutcome,
    TaskHandle,
    TaskResult,
    TaskSubmissionRequest,
    WaitOutcome,
)


class OrchestrationError(RuntimeError):
    """Orchestration API error with retryability hint."""

    def __init__(self, message: str, *, transient: bool) -> None:
        super().__init__(message)
        self.transient = transient


class OrchestrationTransportError(OrchestrationError):
    """Network, endpoint or credential failure talking to the API."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message, transient=False)
        self.code = code


class OrchestrationClient(Protocol):
    """Protocol implemented by orchestration API clients.

    Implementations call straight through to the API and never retry.
    """

    def submit(self, request: TaskSubmissionRequest) -> SubmissionOutcome:
        """Submit one task and return the API's verdict."""

    def await_terminal(self, handle: TaskHandle, per_call_timeout_seconds: float) -> WaitOutcome:
        """Block until the task stops or the per-call timeout elapses."""

    def describe(self, handle: TaskHandle) -> TaskResult:
        """Return the recorded state of the task."""
