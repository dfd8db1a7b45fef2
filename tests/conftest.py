"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host AWS and tool settings out of tests."""
    for name in list(os.environ):
        if name.startswith(("ECS_RUN_TASK_", "AWS_")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
