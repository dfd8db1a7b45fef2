"""Domain models for one-off task submission and observation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

SUCCESS_EXIT_CODE = 0
FATAL_EXIT_CODE = 1
RETRIES_EXHAUSTED_EXIT_CODE = 253
MALFORMED_RESULT_EXIT_CODE = 254
WAITER_EXHAUSTED_EXIT_CODE = 255
MAX_PROCESS_EXIT_CODE = 255


class FailureReason(str, Enum):
    """Retry class of a submission failure reason."""

    RETRYABLE = "retryable"
    FATAL = "fatal"


class SubmissionStatus(str, Enum):
    """Terminal states of the submission retry loop."""

    SUBMITTED = "submitted"
    FATAL = "fatal"
    RETRIES_EXHAUSTED = "retries_exhausted"
    TRANSPORT_ERROR = "transport_error"


class WaitOutcomeKind(str, Enum):
    """Result of one blocking wait call."""

    TERMINAL = "terminal"
    TIMED_OUT = "timed_out"
    WAIT_ERROR = "wait_error"


class PollStatus(str, Enum):
    """Terminal states of the completion poller."""

    COMPLETED = "completed"
    WAITER_EXHAUSTED = "waiter_exhausted"
    WAIT_FAILED = "wait_failed"
    DESCRIBE_FAILED = "describe_failed"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class ContainerOverride:
    """Per-run replacement of a container's command."""

    name: str
    command: tuple[str, ...] | None = None

    def to_api(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.command is not None:
            payload["command"] = list(self.command)
        return payload


@dataclass(frozen=True, slots=True)
class NetworkConfiguration:
    """awsvpc network settings passed through unmodified."""

    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()
    assign_public_ip: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.subnets and not self.security_groups

    def to_api(self) -> dict[str, Any]:
        vpc: dict[str, Any] = {
            "subnets": list(self.subnets),
            "assignPublicIp": "ENABLED" if self.assign_public_ip else "DISABLED",
        }
        if self.security_groups:
            vpc["securityGroups"] = list(self.security_groups)
        return {"awsvpcConfiguration": vpc}


@dataclass(frozen=True, slots=True)
class TaskSubmissionRequest:
    """Immutable run_task input built once per invocation."""

    cluster: str
    task_definition: str
    desired_count: int = 1
    container_overrides: tuple[ContainerOverride, ...] = ()
    network_configuration: NetworkConfiguration = field(default_factory=NetworkConfiguration)
    launch_type: str | None = "FARGATE"
    started_by: str | None = None

    def to_run_task_kwargs(self) -> dict[str, Any]:
        """Serialize into ECS ``run_task`` keyword arguments."""

        kwargs: dict[str, Any] = {
            "cluster": self.cluster,
            "taskDefinition": self.task_definition,
            "count": self.desired_count,
        }
        if self.container_overrides:
            kwargs["overrides"] = {
                "containerOverrides": [
                    override.to_api() for override in self.container_overrides
                ],
            }
        if not self.network_configuration.is_empty:
            kwargs["networkConfiguration"] = self.network_configuration.to_api()
        if self.launch_type:
            kwargs["launchType"] = self.launch_type
        if self.started_by:
            kwargs["startedBy"] = self.started_by
        return kwargs


@dataclass(frozen=True, slots=True)
class SubmissionFailure:
    """One entry from the ``failures`` list of a run_task response."""

    reason: str
    detail: str | None = None
    arn: str | None = None


@dataclass(frozen=True, slots=True)
class Submitted:
    task_arn: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Rejected:
    failures: tuple[SubmissionFailure, ...]
    raw_response: dict[str, Any] = field(default_factory=dict)


SubmissionOutcome = Submitted | Rejected


@dataclass(frozen=True, slots=True)
class TaskHandle:
    """Identifies a submitted task for polling and inspection."""

    task_arn: str
    cluster: str

    @property
    def task_id(self) -> str:
        return self.task_arn.rsplit("/", 1)[-1]


@dataclass(frozen=True, slots=True)
class WaitOutcome:
    kind: WaitOutcomeKind
    code: str | None = None
    raw_response: dict[str, Any] | None = None

    @classmethod
    def terminal(cls, raw_response: dict[str, Any] | None = None) -> WaitOutcome:
        return cls(kind=WaitOutcomeKind.TERMINAL, raw_response=raw_response)

    @classmethod
    def timed_out(cls, raw_response: dict[str, Any] | None = None) -> WaitOutcome:
        return cls(kind=WaitOutcomeKind.TIMED_OUT, raw_response=raw_response)

    @classmethod
    def wait_error(
        cls,
        code: str,
        raw_response: dict[str, Any] | None = None,
    ) -> WaitOutcome:
        return cls(kind=WaitOutcomeKind.WAIT_ERROR, code=code, raw_response=raw_response)


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Recorded state of a stopped task.

    ``container_exit_code`` is ``None`` when the description lacks an exit
    code; callers must treat that as an anomaly rather than success.
    """

    task_arn: str
    container_exit_code: int | None
    raw_description: dict[str, Any] = field(default_factory=dict)
    stopped_reason: str | None = None


@dataclass(frozen=True, slots=True)
class ProcessOutcome:
    """Final exit status and message of one invocation."""

    status: OutcomeStatus
    exit_code: int
    message: str


@dataclass(slots=True)
class RetryState:
    """Mutable attempt counter owned by one submission loop."""

    max_attempts: int
    backoff_seconds: float
    attempts_used: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts_used >= self.max_attempts

    def record_retryable_failure(self) -> None:
        if self.exhausted:
            raise RuntimeError("Retry budget already exhausted.")
        self.attempts_used += 1
