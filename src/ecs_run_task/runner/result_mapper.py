"""Map a stopped task's container exit code to the process outcome."""

from __future__ import annotations

from ecs_run_task.runner.formatting import format_response
from ecs_run_task.runner.models import (
    FATAL_EXIT_CODE,
    MALFORMED_RESULT_EXIT_CODE,
    MAX_PROCESS_EXIT_CODE,
    SUCCESS_EXIT_CODE,
    OutcomeStatus,
    ProcessOutcome,
    TaskResult,
)


def map_task_result(result: TaskResult, *, log_url: str | None = None) -> ProcessOutcome:
    """Translate a task result without side effects.

    A missing exit code is reported with ``MALFORMED_RESULT_EXIT_CODE``. A
    nonzero exit code is propagated as is, even when it collides with a
    reserved code. Codes that do not fit a process exit status map to
    ``FATAL_EXIT_CODE``.
    """

    exit_code = result.container_exit_code
    log_line = f"\nLogs: {log_url}" if log_url else ""

    if exit_code is None:
        return ProcessOutcome(
            status=OutcomeStatus.FAILURE,
            exit_code=MALFORMED_RESULT_EXIT_CODE,
            message=(
                f"Task {result.task_arn} stopped without a container exit code "
                f"(stopped reason: {result.stopped_reason or '-'}); "
                "task completion data is malformed.\n"
                f"{format_response(result.raw_description)}{log_line}"
            ),
        )

    if exit_code == SUCCESS_EXIT_CODE:
        return ProcessOutcome(
            status=OutcomeStatus.SUCCESS,
            exit_code=SUCCESS_EXIT_CODE,
            message=f"Task {result.task_arn} succeeded.{log_line}",
        )

    if not 0 < exit_code <= MAX_PROCESS_EXIT_CODE:
        # Process exit status is one byte; 256 would otherwise read as success.
        return ProcessOutcome(
            status=OutcomeStatus.FAILURE,
            exit_code=FATAL_EXIT_CODE,
            message=(
                f"Task {result.task_arn} failed with exit code {exit_code}, "
                f"outside 0-{MAX_PROCESS_EXIT_CODE}; exiting with {FATAL_EXIT_CODE}.\n"
                f"{format_response(result.raw_description)}{log_line}"
            ),
        )

    return ProcessOutcome(
        status=OutcomeStatus.FAILURE,
        exit_code=exit_code,
        message=(
            f"Task {result.task_arn} failed with exit code {exit_code}.\n"
            f"{format_response(result.raw_description)}{log_line}"
        ),
    )
