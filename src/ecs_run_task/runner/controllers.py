"""Controller for the ``run`` CLI command."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from ecs_run_task.config import Settings, normalize_ids
from ecs_run_task.runner.backend import (
    EcsOrchestrationClient,
    OrchestrationClient,
    OrchestrationTransportError,
)
from ecs_run_task.runner.formatting import build_log_url, default_log_group, format_response
from ecs_run_task.runner.models import (
    FATAL_EXIT_CODE,
    ContainerOverride,
    NetworkConfiguration,
    PollStatus,
    SubmissionStatus,
    TaskHandle,
    TaskSubmissionRequest,
)
from ecs_run_task.runner.poller import CompletionPoller
from ecs_run_task.runner.result_mapper import map_task_result
from ecs_run_task.runner.submission import SubmissionRetryController

logger = logging.getLogger(__name__)

INTERRUPTED_EXIT_CODE = 130


@dataclass(slots=True)
class RunTaskCommand:
    """CLI input for one task run; ``None`` falls back to environment settings."""

    cluster: str | None = None
    task_definition: str | None = None
    container: str | None = None
    command: tuple[str, ...] | None = None
    count: int = 1
    submit_retries: int | None = None
    submit_backoff_seconds: float | None = None
    wait_retries: int | None = None
    wait_timeout_seconds: float | None = None
    launch_type: str | None = None
    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()
    assign_public_ip: bool | None = None
    region: str | None = None
    profile: str | None = None
    log_group: str | None = None
    log_stream_prefix: str | None = None
    verbose: bool = False


@dataclass(slots=True)
class RunTaskResult:
    """Exit code and every line emitted during the run."""

    exit_code: int
    lines: list[str] = field(default_factory=list)
    task_arn: str | None = None


ClientFactory = Callable[[Settings], OrchestrationClient]


def ecs_client_factory(settings: Settings) -> OrchestrationClient:
    return EcsOrchestrationClient.from_session(
        region=settings.aws.region,
        profile=settings.aws.profile,
        container_name=settings.task.container,
        poll_delay_seconds=settings.wait.poll_delay_seconds,
    )


class TaskRunCliController:
    """Submits one task, waits for it to stop and maps its exit code.

    There is no cancellation: interrupting the process abandons the wait but
    leaves the task running on the cluster.
    """

    def __init__(
        self,
        *,
        client_factory: ClientFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
        emit: Callable[[str], None] | None = None,
    ) -> None:
        self.client_factory = client_factory
        self.sleep = sleep
        self.emit = emit

    def run(self, command: RunTaskCommand) -> RunTaskResult:
        settings = resolve_settings(command)
        settings.validate()
        logger.debug("Resolved settings: %s", settings)
        result = RunTaskResult(exit_code=FATAL_EXIT_CODE)

        def _emit(line: str) -> None:
            result.lines.append(line)
            if self.emit is not None:
                self.emit(line)

        def _echo_response(response: dict[str, Any]) -> None:
            if command.verbose:
                _emit(format_response(response))

        try:
            client = (self.client_factory or ecs_client_factory)(settings)
        except OrchestrationTransportError as error:
            _emit(f"Could not connect to the orchestration API: {error}")
            return result

        request = build_request(settings, command_tokens=command.command, count=command.count)
        submitter = SubmissionRetryController(
            client=client,
            max_attempts=settings.submission.max_attempts,
            backoff_seconds=settings.submission.backoff_seconds,
            retryable_reasons=settings.submission.retryable_reasons,
            sleep=self.sleep,
            on_response=_echo_response,
        )
        try:
            submission = submitter.run(request)
        except KeyboardInterrupt:
            _emit(
                "Interrupted during submission; no task was confirmed. "
                f"Check cluster {request.cluster} for tasks started by {request.started_by}.",
            )
            result.exit_code = INTERRUPTED_EXIT_CODE
            return result
        _emit(submission.message)
        if submission.status is not SubmissionStatus.SUBMITTED or submission.handle is None:
            result.exit_code = submission.exit_code
            return result

        handle = submission.handle
        result.task_arn = handle.task_arn
        log_url = _log_url(settings, client=client, handle=handle)
        _emit(
            "Waiting for task to stop: "
            f"max_waiter_retries={settings.wait.max_waiter_retries} "
            f"per_call_timeout_seconds={settings.wait.per_call_timeout_seconds:g} "
            f"budget_seconds={settings.total_wait_budget_seconds:g}",
        )

        poller = CompletionPoller(
            client=client,
            max_waiter_retries=settings.wait.max_waiter_retries,
            per_call_timeout_seconds=settings.wait.per_call_timeout_seconds,
            on_response=_echo_response,
        )
        try:
            poll = poller.run(handle)
        except KeyboardInterrupt:
            _emit(
                f"Interrupted; task {handle.task_arn} may still be running. Logs: {log_url}",
            )
            result.exit_code = INTERRUPTED_EXIT_CODE
            return result

        if poll.status is not PollStatus.COMPLETED or poll.task_result is None:
            _emit(f"{poll.message}\nLogs: {log_url}")
            result.exit_code = poll.exit_code
            return result

        outcome = map_task_result(poll.task_result, log_url=log_url)
        _emit(outcome.message)
        result.exit_code = outcome.exit_code
        return result


def resolve_settings(command: RunTaskCommand) -> Settings:
    """Overlay CLI options on environment settings."""

    settings = Settings.from_env()
    task = replace(
        settings.task,
        cluster=command.cluster or settings.task.cluster,
        task_definition=command.task_definition or settings.task.task_definition,
        container=command.container or settings.task.container,
        launch_type=(command.launch_type or settings.task.launch_type).upper(),
    )
    submission = replace(
        settings.submission,
        max_attempts=_pick(command.submit_retries, settings.submission.max_attempts),
        backoff_seconds=_pick(command.submit_backoff_seconds, settings.submission.backoff_seconds),
    )
    wait = replace(
        settings.wait,
        max_waiter_retries=_pick(command.wait_retries, settings.wait.max_waiter_retries),
        per_call_timeout_seconds=_pick(
            command.wait_timeout_seconds,
            settings.wait.per_call_timeout_seconds,
        ),
    )
    network = replace(
        settings.network,
        subnets=normalize_ids(command.subnets) or settings.network.subnets,
        security_groups=(
            normalize_ids(command.security_groups) or settings.network.security_groups
        ),
        assign_public_ip=_pick(command.assign_public_ip, settings.network.assign_public_ip),
    )
    aws = replace(
        settings.aws,
        region=command.region or settings.aws.region,
        profile=command.profile or settings.aws.profile,
    )
    logs = replace(
        settings.logs,
        log_group=command.log_group or settings.logs.log_group,
        stream_prefix=command.log_stream_prefix or settings.logs.stream_prefix,
    )
    return replace(
        settings,
        task=task,
        submission=submission,
        wait=wait,
        network=network,
        aws=aws,
        logs=logs,
    )


def build_request(
    settings: Settings,
    *,
    command_tokens: tuple[str, ...] | None,
    count: int = 1,
) -> TaskSubmissionRequest:
    task = settings.task
    if not task.cluster or not task.task_definition or not task.container:
        raise ValueError("cluster, task definition and container are required.")
    return TaskSubmissionRequest(
        cluster=task.cluster,
        task_definition=task.task_definition,
        desired_count=count,
        container_overrides=(
            ContainerOverride(name=task.container, command=command_tokens),
        ),
        network_configuration=NetworkConfiguration(
            subnets=settings.network.subnets,
            security_groups=settings.network.security_groups,
            assign_public_ip=settings.network.assign_public_ip,
        ),
        launch_type=task.launch_type,
        started_by="ecs-run-task",
    )


def _log_url(settings: Settings, *, client: OrchestrationClient, handle: TaskHandle) -> str:
    region = settings.aws.region or getattr(client, "region_name", None)
    task_definition = settings.task.task_definition or ""
    return build_log_url(
        region=region,
        log_group=settings.logs.log_group or default_log_group(task_definition),
        stream_prefix=settings.logs.stream_prefix,
        container_name=settings.task.container or "",
        task_id=handle.task_id,
    )


def _pick(value, default):
    return default if value is None else value
