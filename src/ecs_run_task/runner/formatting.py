"""Operator-facing formatting: log-viewer links and raw API responses."""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any
from urllib.parse import quote


def build_log_stream_name(*, stream_prefix: str, container_name: str, task_id: str) -> str:
    """awslogs driver stream name: ``<prefix>/<container>/<task id>``."""

    return f"{stream_prefix}/{container_name}/{task_id}"


def build_log_url(
    *,
    region: str | None,
    log_group: str,
    stream_prefix: str,
    container_name: str,
    task_id: str,
) -> str:
    """CloudWatch console URL for one container's log stream."""

    stream = build_log_stream_name(
        stream_prefix=stream_prefix,
        container_name=container_name,
        task_id=task_id,
    )
    region_name = region or "us-east-1"
    return (
        f"https://{region_name}.console.aws.amazon.com/cloudwatch/home"
        f"?region={region_name}#logsV2:log-groups/log-group/{_console_escape(log_group)}"
        f"/log-events/{_console_escape(stream)}"
    )


def default_log_group(task_definition: str) -> str:
    """``/ecs/<family>`` for a task definition name, family:revision, or ARN."""

    family = task_definition.rsplit("/", 1)[-1].split(":", 1)[0]
    return f"/ecs/{family}"


def format_response(response: dict[str, Any]) -> str:
    return json.dumps(response, indent=2, ensure_ascii=False, default=_json_default)


def _console_escape(value: str) -> str:
    # The console fragment double-encodes: "/" becomes "%2F", then "%" becomes "$25".
    return quote(value, safe="").replace("%", "$25")


def _json_default(value: object) -> str:
    if isinstance(value, datetime | date):
        return value.isoformat()
    return str(value)
