"""Runtime configuration for task submission and completion polling."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from ecs_run_task.runner.failure_classifier import DEFAULT_RETRYABLE_REASONS

SUPPORTED_LAUNCH_TYPES: tuple[str, ...] = ("FARGATE", "EC2", "EXTERNAL")


@dataclass(slots=True)
class TaskSettings:
    """What to run and where."""

    cluster: str | None = None
    task_definition: str | None = None
    container: str | None = None
    launch_type: str = "FARGATE"


@dataclass(slots=True)
class SubmissionSettings:
    """Submission retry policy."""

    max_attempts: int = 5
    backoff_seconds: float = 60.0
    retryable_reasons: tuple[str, ...] = DEFAULT_RETRYABLE_REASONS


@dataclass(slots=True)
class WaitSettings:
    """Completion polling budget.

    The total budget is ``max_waiter_retries * per_call_timeout_seconds``;
    both factors are configured independently.
    """

    max_waiter_retries: int = 12
    per_call_timeout_seconds: float = 600.0
    poll_delay_seconds: int = 6


@dataclass(slots=True)
class NetworkSettings:
    """awsvpc network configuration."""

    subnets: tuple[str, ...] = ()
    security_groups: tuple[str, ...] = ()
    assign_public_ip: bool = False


@dataclass(slots=True)
class AwsSettings:
    """Region and credential profile; unset values use the boto3 default chain."""

    region: str | None = None
    profile: str | None = None


@dataclass(slots=True)
class LogSettings:
    log_group: str | None = None
    stream_prefix: str = "ecs"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    task: TaskSettings = field(default_factory=TaskSettings)
    submission: SubmissionSettings = field(default_factory=SubmissionSettings)
    wait: WaitSettings = field(default_factory=WaitSettings)
    network: NetworkSettings = field(default_factory=NetworkSettings)
    aws: AwsSettings = field(default_factory=AwsSettings)
    logs: LogSettings = field(default_factory=LogSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching the CLI."""

        return cls(
            task=TaskSettings(
                cluster=_env_str("ECS_RUN_TASK_CLUSTER"),
                task_definition=_env_str("ECS_RUN_TASK_TASK_DEFINITION"),
                container=_env_str("ECS_RUN_TASK_CONTAINER"),
                launch_type=os.getenv("ECS_RUN_TASK_LAUNCH_TYPE", "FARGATE").strip().upper(),
            ),
            submission=SubmissionSettings(
                max_attempts=int(os.getenv("ECS_RUN_TASK_SUBMIT_RETRIES", "5")),
                backoff_seconds=float(os.getenv("ECS_RUN_TASK_SUBMIT_BACKOFF_SECONDS", "60")),
                retryable_reasons=(
                    _env_csv("ECS_RUN_TASK_RETRYABLE_REASONS") or DEFAULT_RETRYABLE_REASONS
                ),
            ),
            wait=WaitSettings(
                max_waiter_retries=int(os.getenv("ECS_RUN_TASK_WAIT_RETRIES", "12")),
                per_call_timeout_seconds=float(
                    os.getenv("ECS_RUN_TASK_WAIT_TIMEOUT_SECONDS", "600"),
                ),
                poll_delay_seconds=int(os.getenv("ECS_RUN_TASK_WAIT_POLL_DELAY_SECONDS", "6")),
            ),
            network=NetworkSettings(
                subnets=_env_csv("ECS_RUN_TASK_SUBNETS"),
                security_groups=_env_csv("ECS_RUN_TASK_SECURITY_GROUPS"),
                assign_public_ip=_env_bool("ECS_RUN_TASK_ASSIGN_PUBLIC_IP", default=False),
            ),
            aws=AwsSettings(
                region=_env_str("AWS_REGION") or _env_str("AWS_DEFAULT_REGION"),
                profile=_env_str("AWS_PROFILE"),
            ),
            logs=LogSettings(
                log_group=_env_str("ECS_RUN_TASK_LOG_GROUP"),
                stream_prefix=os.getenv("ECS_RUN_TASK_LOG_STREAM_PREFIX", "ecs").strip() or "ecs",
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for missing or out-of-range values."""

        if not self.task.cluster:
            raise ValueError("A cluster is required. Set ECS_RUN_TASK_CLUSTER or pass --cluster.")
        if not self.task.task_definition:
            raise ValueError(
                "A task definition is required. "
                "Set ECS_RUN_TASK_TASK_DEFINITION or pass --task-definition.",
            )
        if not self.task.container:
            raise ValueError(
                "A container name is required. Set ECS_RUN_TASK_CONTAINER or pass --container.",
            )
        if self.task.launch_type not in SUPPORTED_LAUNCH_TYPES:
            raise ValueError(
                f"Unsupported launch type: {self.task.launch_type!r}. "
                f"Expected one of {', '.join(SUPPORTED_LAUNCH_TYPES)}.",
            )
        if self.submission.max_attempts < 1:
            raise ValueError("ECS_RUN_TASK_SUBMIT_RETRIES must be >= 1.")
        if self.submission.backoff_seconds < 0:
            raise ValueError("ECS_RUN_TASK_SUBMIT_BACKOFF_SECONDS must be >= 0.")
        if not self.submission.retryable_reasons:
            raise ValueError("ECS_RUN_TASK_RETRYABLE_REASONS must not be empty.")
        if self.wait.max_waiter_retries < 1:
            raise ValueError("ECS_RUN_TASK_WAIT_RETRIES must be >= 1.")
        if self.wait.per_call_timeout_seconds <= 0:
            raise ValueError("ECS_RUN_TASK_WAIT_TIMEOUT_SECONDS must be > 0.")
        if self.wait.poll_delay_seconds <= 0:
            raise ValueError("ECS_RUN_TASK_WAIT_POLL_DELAY_SECONDS must be > 0.")

    @property
    def total_wait_budget_seconds(self) -> float:
        return self.wait.max_waiter_retries * self.wait.per_call_timeout_seconds


def _env_str(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None

def _env_csv(name: str) -> tuple[str, ...]:
    return normalize_ids(os.getenv(name, "").split(","))


def normalize_ids(ids: Iterable[str]) -> tuple[str, ...]:
    """Clean a list of subnet, security group or failure-reason ids.

    Repeated ``--subnet``/``--security-group`` flags and CSV env values may
    carry blanks and repeats; ECS rejects duplicate ids in awsvpc settings.
    """

    stripped = (item.strip() for item in ids)
    return tuple(dict.fromkeys(item for item in stripped if item))


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    flag = raw.strip().lower()
    if flag not in _TRUE_VALUES | _FALSE_VALUES:
        raise ValueError(f"Invalid boolean value for {name}: {raw!r}")
    return flag in _TRUE_VALUES
