"""Bounded retry loop around task submission."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ecs_run_task.runner.backend.base import OrchestrationClient, OrchestrationTransportError
from ecs_run_task.runner.failure_classifier import (
    DEFAULT_RETRYABLE_REASONS,
    classify_submission_failures,
)
from ecs_run_task.runner.models import (
    FATAL_EXIT_CODE,
    RETRIES_EXHAUSTED_EXIT_CODE,
    SUCCESS_EXIT_CODE,
    RetryState,
    SubmissionStatus,
    Submitted,
    TaskHandle,
    TaskSubmissionRequest,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SubmissionReport:
    """Outcome of the submission loop for CLI reporting."""

    status: SubmissionStatus
    handle: TaskHandle | None
    attempts: int
    retryable_failures: int
    reason: str | None = None
    detail: str | None = None
    responses: list[dict[str, Any]] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        if self.status is SubmissionStatus.SUBMITTED:
            return SUCCESS_EXIT_CODE
        if self.status is SubmissionStatus.RETRIES_EXHAUSTED:
            return RETRIES_EXHAUSTED_EXIT_CODE
        return FATAL_EXIT_CODE

    @property
    def message(self) -> str:
        if self.status is SubmissionStatus.SUBMITTED and self.handle is not None:
            return f"Task submitted: {self.handle.task_arn}"
        if self.status is SubmissionStatus.RETRIES_EXHAUSTED:
            return (
                f"Submission retries exhausted after {self.retryable_failures} "
                f"attempt(s): {self.reason}"
            )
        if self.status is SubmissionStatus.TRANSPORT_ERROR:
            return f"Submission transport error: {self.reason}"
        return f"Fatal submission failure: {self.reason}" + (
            f" ({self.detail})" if self.detail else ""
        )


class SubmissionRetryController:
    """Submits a task, retrying only on classified-retryable rejections.

    Only the first failure entry of a rejection drives the decision. Backoff
    is a fixed delay between attempts.
    """

    def __init__(
        self,
        *,
        client: OrchestrationClient,
        max_attempts: int = 5,
        backoff_seconds: float = 60.0,
        retryable_reasons: tuple[str, ...] = DEFAULT_RETRYABLE_REASONS,
        sleep: Callable[[float], None] = time.sleep,
        on_response: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1.")
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0.")
        self.client = client
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.retryable_reasons = retryable_reasons
        self._sleep = sleep
        self._on_response = on_response

    def run(self, request: TaskSubmissionRequest) -> SubmissionReport:
        state = RetryState(max_attempts=self.max_attempts, backoff_seconds=self.backoff_seconds)
        responses: list[dict[str, Any]] = []
        attempts = 0

        while True:
            attempts += 1
            try:
                outcome = self.client.submit(request)
            except OrchestrationTransportError as error:
                logger.error("Submission transport error: %s", error)
                return SubmissionReport(
                    status=SubmissionStatus.TRANSPORT_ERROR,
                    handle=None,
                    attempts=attempts,
                    retryable_failures=state.attempts_used,
                    reason=str(error),
                    responses=responses,
                )
            responses.append(outcome.raw_response)
            if self._on_response is not None:
                self._on_response(outcome.raw_response)

            if isinstance(outcome, Submitted):
                return SubmissionReport(
                    status=SubmissionStatus.SUBMITTED,
                    handle=TaskHandle(task_arn=outcome.task_arn, cluster=request.cluster),
                    attempts=attempts,
                    retryable_failures=state.attempts_used,
                    responses=responses,
                )

            classified = classify_submission_failures(
                outcome.failures,
                retryable_reasons=self.retryable_reasons,
            )
            if not classified.retryable:
                logger.error("Fatal submission failure: %s", classified.reason)
                return SubmissionReport(
                    status=SubmissionStatus.FATAL,
                    handle=None,
                    attempts=attempts,
                    retryable_failures=state.attempts_used,
                    reason=classified.reason,
                    detail=classified.detail,
                    responses=responses,
                )

            state.record_retryable_failure()
            if state.exhausted:
                logger.error(
                    "Submission retries exhausted (%d/%d): %s",
                    state.attempts_used,
                    state.max_attempts,
                    classified.reason,
                )
                return SubmissionReport(
                    status=SubmissionStatus.RETRIES_EXHAUSTED,
                    handle=None,
                    attempts=attempts,
                    retryable_failures=state.attempts_used,
                    reason=classified.reason,
                    detail=classified.detail,
                    responses=responses,
                )

            logger.warning(
                "Retryable submission failure %s (%d/%d), retrying in %ss",
                classified.reason,
                state.attempts_used,
                state.max_attempts,
                state.backoff_seconds,
            )
            self._sleep(state.backoff_seconds)
