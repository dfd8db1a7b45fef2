"""Bounded polling loop that waits for a submitted task to stop."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ecs_run_task.runner.backend.base import OrchestrationClient, OrchestrationTransportError
from ecs_run_task.runner.models import (
    FATAL_EXIT_CODE,
    SUCCESS_EXIT_CODE,
    WAITER_EXHAUSTED_EXIT_CODE,
    PollStatus,
    TaskHandle,
    TaskResult,
    WaitOutcomeKind,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PollReport:
    """Outcome of the completion poller."""

    status: PollStatus
    handle: TaskHandle
    waiter_retries: int
    task_result: TaskResult | None = None
    code: str | None = None
    responses: list[dict[str, Any]] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        if self.status is PollStatus.COMPLETED:
            return SUCCESS_EXIT_CODE
        if self.status is PollStatus.WAITER_EXHAUSTED:
            return WAITER_EXHAUSTED_EXIT_CODE
        return FATAL_EXIT_CODE

    @property
    def message(self) -> str:
        if self.status is PollStatus.COMPLETED:
            return f"Task stopped: {self.handle.task_arn}"
        if self.status is PollStatus.WAITER_EXHAUSTED:
            return (
                f"Task did not stop after {self.waiter_retries} wait period(s): "
                f"{self.handle.task_arn}"
            )
        if self.status is PollStatus.DESCRIBE_FAILED:
            return f"Could not describe task {self.handle.task_arn}: {self.code}"
        return f"Waiting for task {self.handle.task_arn} failed: {self.code}"


class CompletionPoller:
    """Re-issues a bounded wait call until the task stops.

    A wait call that times out while the task is still running consumes one
    unit of ``max_waiter_retries``; any other wait error ends polling at once.
    Total wait budget is ``max_waiter_retries * per_call_timeout_seconds``.
    """

    def __init__(
        self,
        *,
        client: OrchestrationClient,
        max_waiter_retries: int = 12,
        per_call_timeout_seconds: float = 600.0,
        on_response: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        if max_waiter_retries < 1:
            raise ValueError("max_waiter_retries must be >= 1.")
        if per_call_timeout_seconds <= 0:
            raise ValueError("per_call_timeout_seconds must be > 0.")
        self.client = client
        self.max_waiter_retries = max_waiter_retries
        self.per_call_timeout_seconds = per_call_timeout_seconds
        self._on_response = on_response

    def run(self, handle: TaskHandle) -> PollReport:
        waiter_retries = 0
        responses: list[dict[str, Any]] = []

        while True:
            outcome = self.client.await_terminal(handle, self.per_call_timeout_seconds)
            if outcome.raw_response:
                self._record(responses, outcome.raw_response)

            if outcome.kind is WaitOutcomeKind.TERMINAL:
                break

            if outcome.kind is WaitOutcomeKind.WAIT_ERROR:
                logger.error("Wait for %s failed: %s", handle.task_arn, outcome.code)
                return PollReport(
                    status=PollStatus.WAIT_FAILED,
                    handle=handle,
                    waiter_retries=waiter_retries,
                    code=outcome.code,
                    responses=responses,
                )

            waiter_retries += 1
            if waiter_retries >= self.max_waiter_retries:
                logger.error(
                    "Wait budget exhausted for %s (%d/%d)",
                    handle.task_arn,
                    waiter_retries,
                    self.max_waiter_retries,
                )
                return PollReport(
                    status=PollStatus.WAITER_EXHAUSTED,
                    handle=handle,
                    waiter_retries=waiter_retries,
                    responses=responses,
                )
            logger.info(
                "Task %s still running after wait period %d/%d",
                handle.task_arn,
                waiter_retries,
                self.max_waiter_retries,
            )

        try:
            result = self.client.describe(handle)
        except OrchestrationTransportError as error:
            logger.error("Describe for %s failed: %s", handle.task_arn, error)
            return PollReport(
                status=PollStatus.DESCRIBE_FAILED,
                handle=handle,
                waiter_retries=waiter_retries,
                code=error.code or str(error),
                responses=responses,
            )
        self._record(responses, result.raw_description)
        return PollReport(
            status=PollStatus.COMPLETED,
            handle=handle,
            waiter_retries=waiter_retries,
            task_result=result,
            responses=responses,
        )

    def _record(self, responses: list[dict[str, Any]], response: dict[str, Any]) -> None:
        responses.append(response)
        if self._on_response is not None:
            self._on_response(response)
