"""boto3-backed client for the ECS task API."""

from __future__ import annotations

import logging
import math
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from ecs_run_task.runner.backend.base import OrchestrationTransportError
from ecs_run_task.runner.models import (
    Rejected,
    SubmissionFailure,
    SubmissionOutcome,
    Submitted,
    TaskHandle,
    TaskResult,
    TaskSubmissionRequest,
    WaitOutcome,
)

logger = logging.getLogger(__name__)

TASKS_STOPPED_WAITER = "tasks_stopped"
_MAX_ATTEMPTS_REASON = "Max attempts exceeded"


class EcsOrchestrationClient:
    """Call-through facade over ``run_task``, the ``tasks_stopped`` waiter and
    ``describe_tasks``."""

    def __init__(
        self,
        *,
        client: Any,
        container_name: str | None = None,
        poll_delay_seconds: int = 6,
    ) -> None:
        if poll_delay_seconds <= 0:
            raise ValueError("poll_delay_seconds must be > 0.")
        self.client = client
        self.container_name = container_name
        self.poll_delay_seconds = poll_delay_seconds

    @classmethod
    def from_session(
        cls,
        *,
        region: str | None = None,
        profile: str | None = None,
        container_name: str | None = None,
        poll_delay_seconds: int = 6,
    ) -> EcsOrchestrationClient:
        """Build a client; unset profile and region fall back to the default chain."""

        try:
            session = boto3.Session(profile_name=profile, region_name=region)
            client = session.client("ecs")
        except BotoCoreError as error:
            raise OrchestrationTransportError(
                f"Could not create ECS client: {error}",
                code=type(error).__name__,
            ) from error
        return cls(
            client=client,
            container_name=container_name,
            poll_delay_seconds=poll_delay_seconds,
        )

    @property
    def region_name(self) -> str | None:
        return getattr(getattr(self.client, "meta", None), "region_name", None)

    def submit(self, request: TaskSubmissionRequest) -> SubmissionOutcome:
        kwargs = request.to_run_task_kwargs()
        logger.debug("run_task %s", kwargs)
        try:
            response = self.client.run_task(**kwargs)
        except ClientError as error:
            raise OrchestrationTransportError(
                f"run_task failed: {error}",
                code=_client_error_code(error),
            ) from error
        except BotoCoreError as error:
            raise OrchestrationTransportError(
                f"run_task failed: {error}",
                code=type(error).__name__,
            ) from error

        tasks = response.get("tasks") or []
        if tasks and tasks[0].get("taskArn"):
            return Submitted(task_arn=tasks[0]["taskArn"], raw_response=response)
        return Rejected(
            failures=tuple(_parse_failure(entry) for entry in response.get("failures") or []),
            raw_response=response,
        )

    def await_terminal(self, handle: TaskHandle, per_call_timeout_seconds: float) -> WaitOutcome:
        max_attempts = max(1, math.ceil(per_call_timeout_seconds / self.poll_delay_seconds))
        logger.debug(
            "Waiting for %s: delay=%ss max_attempts=%d",
            handle.task_arn,
            self.poll_delay_seconds,
            max_attempts,
        )
        waiter = self.client.get_waiter(TASKS_STOPPED_WAITER)
        try:
            waiter.wait(
                cluster=handle.cluster,
                tasks=[handle.task_arn],
                WaiterConfig={"Delay": self.poll_delay_seconds, "MaxAttempts": max_attempts},
            )
        except WaiterError as error:
            last_response = error.last_response or {}
            reason = str(error.kwargs.get("reason", ""))
            missing = _missing_task_reason(last_response)
            if missing is not None:
                return WaitOutcome.wait_error(missing, raw_response=last_response)
            if reason.startswith(_MAX_ATTEMPTS_REASON):
                return WaitOutcome.timed_out(raw_response=last_response)
            code = (last_response.get("Error") or {}).get("Code") or reason or "WaiterError"
            return WaitOutcome.wait_error(code, raw_response=last_response)
        except ClientError as error:
            return WaitOutcome.wait_error(_client_error_code(error), raw_response=error.response)
        except BotoCoreError as error:
            return WaitOutcome.wait_error(type(error).__name__)
        return WaitOutcome.terminal()

    def describe(self, handle: TaskHandle) -> TaskResult:
        logger.debug("describe_tasks %s", handle.task_arn)
        try:
            response = self.client.describe_tasks(cluster=handle.cluster, tasks=[handle.task_arn])
        except ClientError as error:
            raise OrchestrationTransportError(
                f"describe_tasks failed: {error}",
                code=_client_error_code(error),
            ) from error
        except BotoCoreError as error:
            raise OrchestrationTransportError(
                f"describe_tasks failed: {error}",
                code=type(error).__name__,
            ) from error

        tasks = response.get("tasks") or []
        if not tasks:
            return TaskResult(
                task_arn=handle.task_arn,
                container_exit_code=None,
                raw_description=response,
            )
        task = tasks[0]
        container = _select_container(task.get("containers") or [], self.container_name)
        exit_code = container.get("exitCode") if container is not None else None
        return TaskResult(
            task_arn=task.get("taskArn", handle.task_arn),
            container_exit_code=exit_code if isinstance(exit_code, int) else None,
            raw_description=task,
            stopped_reason=task.get("stoppedReason"),
        )


def _parse_failure(entry: dict[str, Any]) -> SubmissionFailure:
    return SubmissionFailure(
        reason=str(entry.get("reason") or ""),
        detail=entry.get("detail"),
        arn=entry.get("arn"),
    )


def _select_container(
    containers: list[dict[str, Any]],
    name: str | None,
) -> dict[str, Any] | None:
    if not containers:
        return None
    if name is None:
        return containers[0]
    for container in containers:
        if container.get("name") == name:
            return container
    return None


def _missing_task_reason(response: dict[str, Any]) -> str | None:
    if response.get("tasks"):
        return None
    for failure in response.get("failures") or []:
        reason = failure.get("reason")
        if reason:
            return str(reason)
    return None


def _client_error_code(error: ClientError) -> str:
    return str((error.response.get("Error") or {}).get("Code") or "ClientError")
