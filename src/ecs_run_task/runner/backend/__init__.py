"""Orchestration client implementations."""

from ecs_run_task.runner.backend.base import (
    OrchestrationClient,
    OrchestrationError,
    OrchestrationTransportError,
)
from ecs_run_task.runner.backend.ecs_backend import EcsOrchestrationClient

__all__ = [
    "EcsOrchestrationClient",
    "OrchestrationClient",
    "OrchestrationError",
    "OrchestrationTransportError",
]
