from __future__ import annotations

import json
from datetime import UTC, datetime

import allure

from ecs_run_task.runner.formatting import (
    build_log_stream_name,
    build_log_url,
    default_log_group,
    format_response,
)

pytestmark = [
    allure.epic("Task Observation"),
    allure.feature("Operator Output"),
]


def test_log_stream_name_follows_awslogs_layout() -> None:
    assert (
        build_log_stream_name(stream_prefix="ecs", container_name="web", task_id="abc123")
        == "ecs/web/abc123"
    )


def test_log_url_escapes_group_and_stream_for_console() -> None:
    url = build_log_url(
        region="eu-west-1",
        log_group="/ecs/app",
        stream_prefix="ecs",
        container_name="web",
        task_id="abc123",
    )
    assert url == (
        "https://eu-west-1.console.aws.amazon.com/cloudwatch/home?region=eu-west-1"
        "#logsV2:log-groups/log-group/$252Fecs$252Fapp/log-events/ecs$252Fweb$252Fabc123"
    )


def test_log_url_defaults_region() -> None:
    url = build_log_url(
        region=None,
        log_group="g",
        stream_prefix="ecs",
        container_name="web",
        task_id="t",
    )
    assert url.startswith("https://us-east-1.console.aws.amazon.com/")


def test_default_log_group_uses_family() -> None:
    assert default_log_group("app") == "/ecs/app"
    assert default_log_group("app:12") == "/ecs/app"
    assert (
        default_log_group("arn:aws:ecs:us-east-1:123456789012:task-definition/app:12")
        == "/ecs/app"
    )


def test_format_response_serializes_datetimes() -> None:
    rendered = format_response({"createdAt": datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)})
    assert json.loads(rendered) == {"createdAt": "2026-01-02T03:04:05+00:00"}
    assert "\n  " in rendered
