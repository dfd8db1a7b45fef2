"""CLI entrypoint for ecs-run-task."""

import logging

import rich_click as click

from ecs_run_task import __version__
from ecs_run_task.config import SUPPORTED_LAUNCH_TYPES
from ecs_run_task.runner.controllers import RunTaskCommand, TaskRunCliController

click.rich_click.USE_MARKDOWN = True

PACKAGE_LOGGER = "ecs_run_task"


@click.group()
@click.version_option(version=__version__, prog_name="ecs-run-task")
def ecs_run_task() -> None:
    """Run one-off ECS tasks and exit with the container's exit code."""


@ecs_run_task.command("run")
@click.option("--cluster", default=None, help="Cluster name or ARN. Env: ECS_RUN_TASK_CLUSTER.")
@click.option(
    "--task-definition",
    default=None,
    help="Task definition family, family:revision or ARN. Env: ECS_RUN_TASK_TASK_DEFINITION.",
)
@click.option(
    "--container",
    default=None,
    help="Container to override and read the exit code from. Env: ECS_RUN_TASK_CONTAINER.",
)
@click.option(
    "--count",
    type=click.IntRange(min=1, max=10),
    default=1,
    show_default=True,
    help="Number of task copies to start.",
)
@click.option(
    "--submit-retries",
    type=click.IntRange(min=1),
    default=None,
    help="Max submission attempts on resource-exhaustion failures (default 5).",
)
@click.option(
    "--submit-backoff-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Fixed delay between submission attempts (default 60).",
)
@click.option(
    "--wait-retries",
    type=click.IntRange(min=1),
    default=None,
    help="Max wait periods before giving up on the task (default 12).",
)
@click.option(
    "--wait-timeout-seconds",
    type=click.FloatRange(min=1),
    default=None,
    help="Length of one wait period (default 600).",
)
@click.option(
    "--launch-type",
    type=click.Choice(list(SUPPORTED_LAUNCH_TYPES), case_sensitive=False),
    default=None,
    help="Launch type (default FARGATE). Env: ECS_RUN_TASK_LAUNCH_TYPE.",
)
@click.option(
    "--subnet",
    "subnets",
    multiple=True,
    help="awsvpc subnet id. Can be repeated. Env: ECS_RUN_TASK_SUBNETS.",
)
@click.option(
    "--security-group",
    "security_groups",
    multiple=True,
    help="awsvpc security group id. Can be repeated. Env: ECS_RUN_TASK_SECURITY_GROUPS.",
)
@click.option(
    "--assign-public-ip/--no-assign-public-ip",
    default=None,
    help="Assign a public IP to the task ENI.",
)
@click.option("--region", default=None, help="AWS region. Env: AWS_REGION.")
@click.option("--profile", default=None, help="AWS credential profile. Env: AWS_PROFILE.")
@click.option(
    "--log-group",
    default=None,
    help="CloudWatch log group for the log link (default /ecs/<family>).",
)
@click.option(
    "--log-stream-prefix",
    default=None,
    help="awslogs stream prefix for the log link (default ecs).",
)
@click.option("--verbose", is_flag=True, default=False, help="Echo raw API responses.")
@click.argument("command_tokens", nargs=-1, type=click.UNPROCESSED)
def run(  # noqa: PLR0913
    cluster: str | None,
    task_definition: str | None,
    container: str | None,
    count: int,
    submit_retries: int | None,
    submit_backoff_seconds: float | None,
    wait_retries: int | None,
    wait_timeout_seconds: float | None,
    launch_type: str | None,
    subnets: tuple[str, ...],
    security_groups: tuple[str, ...],
    assign_public_ip: bool | None,
    region: str | None,
    profile: str | None,
    log_group: str | None,
    log_stream_prefix: str | None,
    verbose: bool,
    command_tokens: tuple[str, ...],
) -> None:
    """Run a task, wait for it to stop and exit with its container exit code.

    Pass the command override after `--`, for example
    `ecs-run-task run --cluster main --task-definition app --container web -- ./manage.py migrate`.

    Exit codes: container exit code, 1 for fatal errors, 253 when submission
    retries are exhausted, 254 for malformed task data, 255 when the wait budget
    is exhausted. Container codes outside 1-255 exit with 1. Interrupting the
    command does not stop the task.
    """

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    # botocore logs signed request headers at DEBUG; only our own loggers go verbose.
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
    controller = TaskRunCliController(emit=click.echo)
    try:
        result = controller.run(
            RunTaskCommand(
                cluster=cluster,
                task_definition=task_definition,
                container=container,
                command=command_tokens or None,
                count=count,
                submit_retries=submit_retries,
                submit_backoff_seconds=submit_backoff_seconds,
                wait_retries=wait_retries,
                wait_timeout_seconds=wait_timeout_seconds,
                launch_type=launch_type.upper() if launch_type is not None else None,
                subnets=subnets,
                security_groups=security_groups,
                assign_public_ip=assign_public_ip,
                region=region,
                profile=profile,
                log_group=log_group,
                log_stream_prefix=log_stream_prefix,
                verbose=verbose,
            ),
        )
    except ValueError as error:
        raise click.UsageError(str(error)) from error
    raise SystemExit(result.exit_code)


if __name__ == "__main__":  # pragma: no cover
    ecs_run_task()
