from __future__ import annotations

from collections.abc import Iterator

import allure
import boto3
import pytest
from botocore.exceptions import EndpointConnectionError, WaiterError
from botocore.stub import Stubber

from ecs_run_task.runner.backend import EcsOrchestrationClient, OrchestrationTransportError
from ecs_run_task.runner.models import (
    ContainerOverride,
    NetworkConfiguration,
    Rejected,
    Submitted,
    TaskHandle,
    TaskSubmissionRequest,
    WaitOutcomeKind,
)

pytestmark = [
    allure.epic("Orchestration API"),
    allure.feature("ECS Client"),
]

TASK_ARN = "arn:aws:ecs:us-east-1:123456789012:task/main/0123456789abcdef"
HANDLE = TaskHandle(task_arn=TASK_ARN, cluster="main")
REQUEST = TaskSubmissionRequest(
    cluster="main",
    task_definition="app:3",
    container_overrides=(ContainerOverride(name="web", command=("./manage.py", "migrate")),),
    network_configuration=NetworkConfiguration(subnets=("subnet-a",), security_groups=("sg-1",)),
)


@pytest.fixture()
def ecs_client():
    return boto3.client("ecs", region_name="us-east-1")


@pytest.fixture()
def stubber(ecs_client) -> Iterator[Stubber]:
    with Stubber(ecs_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


def _stopped_task(containers: list[dict]) -> dict:
    return {
        "tasks": [
            {
                "taskArn": TASK_ARN,
                "lastStatus": "STOPPED",
                "stoppedReason": "Essential container in task exited",
                "containers": containers,
            },
        ],
        "failures": [],
    }


class _FakeWaiter:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict] = []

    def wait(self, **kwargs) -> None:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error


class _FakeWaiterClient:
    def __init__(self, waiter: _FakeWaiter) -> None:
        self.waiter = waiter
        self.requested: list[str] = []

    def get_waiter(self, name: str) -> _FakeWaiter:
        self.requested.append(name)
        return self.waiter


def test_request_serializes_to_run_task_kwargs() -> None:
    assert REQUEST.to_run_task_kwargs() == {
        "cluster": "main",
        "taskDefinition": "app:3",
        "count": 1,
        "overrides": {
            "containerOverrides": [{"name": "web", "command": ["./manage.py", "migrate"]}],
        },
        "networkConfiguration": {
            "awsvpcConfiguration": {
                "subnets": ["subnet-a"],
                "assignPublicIp": "DISABLED",
                "securityGroups": ["sg-1"],
            },
        },
        "launchType": "FARGATE",
    }


def test_request_without_overrides_or_network_omits_them() -> None:
    kwargs = TaskSubmissionRequest(
        cluster="main",
        task_definition="app",
        container_overrides=(ContainerOverride(name="web"),),
        launch_type=None,
    ).to_run_task_kwargs()
    assert kwargs["overrides"] == {"containerOverrides": [{"name": "web"}]}
    assert "networkConfiguration" not in kwargs
    assert "launchType" not in kwargs


def test_submit_returns_submitted_handle(ecs_client, stubber: Stubber) -> None:
    stubber.add_response(
        "run_task",
        {"tasks": [{"taskArn": TASK_ARN}], "failures": []},
        REQUEST.to_run_task_kwargs(),
    )

    outcome = EcsOrchestrationClient(client=ecs_client).submit(REQUEST)

    assert isinstance(outcome, Submitted)
    assert outcome.task_arn == TASK_ARN


def test_submit_returns_rejection_failures_in_order(ecs_client, stubber: Stubber) -> None:
    stubber.add_response(
        "run_task",
        {
            "tasks": [],
            "failures": [
                {"arn": "arn:aws:ecs:container-instance/1", "reason": "RESOURCE:CPU"},
                {"reason": "RESOURCE:MEMORY", "detail": "not enough memory"},
            ],
        },
    )

    outcome = EcsOrchestrationClient(client=ecs_client).submit(REQUEST)

    assert isinstance(outcome, Rejected)
    assert [failure.reason for failure in outcome.failures] == ["RESOURCE:CPU", "RESOURCE:MEMORY"]
    assert outcome.failures[1].detail == "not enough memory"


def test_submit_client_error_is_transport_error(ecs_client, stubber: Stubber) -> None:
    stubber.add_client_error(
        "run_task",
        service_error_code="AccessDeniedException",
        service_message="not authorized",
    )

    with pytest.raises(OrchestrationTransportError) as excinfo:
        EcsOrchestrationClient(client=ecs_client).submit(REQUEST)

    assert excinfo.value.code == "AccessDeniedException"
    assert excinfo.value.transient is False


def test_describe_reads_named_container_exit_code(ecs_client, stubber: Stubber) -> None:
    stubber.add_response(
        "describe_tasks",
        _stopped_task([{"name": "sidecar", "exitCode": 0}, {"name": "web", "exitCode": 42}]),
        {"cluster": "main", "tasks": [TASK_ARN]},
    )

    result = EcsOrchestrationClient(client=ecs_client, container_name="web").describe(HANDLE)

    assert result.container_exit_code == 42
    assert result.stopped_reason == "Essential container in task exited"
    assert result.raw_description["lastStatus"] == "STOPPED"


def test_describe_without_exit_code_is_absent(ecs_client, stubber: Stubber) -> None:
    stubber.add_response("describe_tasks", _stopped_task([{"name": "web"}]))

    result = EcsOrchestrationClient(client=ecs_client, container_name="web").describe(HANDLE)

    assert result.container_exit_code is None


def test_describe_unknown_container_is_absent(ecs_client, stubber: Stubber) -> None:
    stubber.add_response("describe_tasks", _stopped_task([{"name": "sidecar", "exitCode": 0}]))

    result = EcsOrchestrationClient(client=ecs_client, container_name="web").describe(HANDLE)

    assert result.container_exit_code is None


def test_describe_missing_task_is_absent(ecs_client, stubber: Stubber) -> None:
    stubber.add_response(
        "describe_tasks",
        {"tasks": [], "failures": [{"arn": TASK_ARN, "reason": "MISSING"}]},
    )

    result = EcsOrchestrationClient(client=ecs_client).describe(HANDLE)

    assert result.container_exit_code is None
    assert result.task_arn == TASK_ARN


def test_await_terminal_with_stopped_task_is_terminal(ecs_client, stubber: Stubber) -> None:
    stubber.add_response(
        "describe_tasks",
        _stopped_task([{"name": "web", "exitCode": 0}]),
        {"cluster": "main", "tasks": [TASK_ARN]},
    )

    outcome = EcsOrchestrationClient(client=ecs_client).await_terminal(HANDLE, 60)

    assert outcome.kind is WaitOutcomeKind.TERMINAL


def test_await_terminal_vanished_task_is_wait_error(ecs_client, stubber: Stubber) -> None:
    stubber.add_response(
        "describe_tasks",
        {"tasks": [], "failures": [{"arn": TASK_ARN, "reason": "MISSING"}]},
    )

    outcome = EcsOrchestrationClient(client=ecs_client, poll_delay_seconds=6).await_terminal(
        HANDLE,
        1,
    )

    assert outcome.kind is WaitOutcomeKind.WAIT_ERROR
    assert outcome.code == "MISSING"


def test_await_terminal_api_error_is_wait_error(ecs_client, stubber: Stubber) -> None:
    stubber.add_client_error(
        "describe_tasks",
        service_error_code="AccessDeniedException",
        service_message="not authorized",
    )

    outcome = EcsOrchestrationClient(client=ecs_client).await_terminal(HANDLE, 60)

    assert outcome.kind is WaitOutcomeKind.WAIT_ERROR
    assert outcome.code == "AccessDeniedException"


def test_await_terminal_waiter_config_follows_per_call_timeout() -> None:
    waiter = _FakeWaiter()
    client = _FakeWaiterClient(waiter)

    outcome = EcsOrchestrationClient(client=client, poll_delay_seconds=6).await_terminal(
        HANDLE,
        600,
    )

    assert outcome.kind is WaitOutcomeKind.TERMINAL
    assert client.requested == ["tasks_stopped"]
    assert waiter.calls == [
        {
            "cluster": "main",
            "tasks": [TASK_ARN],
            "WaiterConfig": {"Delay": 6, "MaxAttempts": 100},
        },
    ]


def test_await_terminal_max_attempts_is_timed_out() -> None:
    running = {"tasks": [{"taskArn": TASK_ARN, "lastStatus": "RUNNING"}], "failures": []}
    waiter = _FakeWaiter(
        WaiterError(name="TasksStopped", reason="Max attempts exceeded", last_response=running),
    )

    outcome = EcsOrchestrationClient(client=_FakeWaiterClient(waiter)).await_terminal(HANDLE, 60)

    assert outcome.kind is WaitOutcomeKind.TIMED_OUT
    assert outcome.raw_response == running


def test_await_terminal_connection_failure_is_wait_error() -> None:
    waiter = _FakeWaiter(EndpointConnectionError(endpoint_url="https://ecs.example"))

    outcome = EcsOrchestrationClient(client=_FakeWaiterClient(waiter)).await_terminal(HANDLE, 60)

    assert outcome.kind is WaitOutcomeKind.WAIT_ERROR
    assert outcome.code == "EndpointConnectionError"


def test_poll_delay_must_be_positive(ecs_client) -> None:
    with pytest.raises(ValueError, match="poll_delay_seconds"):
        EcsOrchestrationClient(client=ecs_client, poll_delay_seconds=0)


def test_from_session_uses_region() -> None:
    client = EcsOrchestrationClient.from_session(region="eu-west-1", container_name="web")
    assert client.region_name == "eu-west-1"
    assert client.container_name == "web"


def test_from_session_unknown_profile_is_transport_error() -> None:
    with pytest.raises(OrchestrationTransportError) as excinfo:
        EcsOrchestrationClient.from_session(profile="does-not-exist", region="us-east-1")
    assert excinfo.value.code == "ProfileNotFound"
