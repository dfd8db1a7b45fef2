"""Deterministic submission failure classification for the retry policy."""

from __future__ import annotations

from dataclasses import dataclass

from ecs_run_task.runner.models import FailureReason, SubmissionFailure

DEFAULT_RETRYABLE_REASONS: tuple[str, ...] = (
    "RESOURCE:CPU",
    "RESOURCE:MEMORY",
    "RESOURCE:GPU",
    "RESOURCE:PORTS",
    "RESOURCE:PORTS_TCP",
    "RESOURCE:PORTS_UDP",
    "RESOURCE:ENI",
)


@dataclass(frozen=True, slots=True)
class SubmissionFailureClassification:
    """Normalized classification of the failure that drives the retry decision."""

    failure_reason: FailureReason
    reason: str
    detail: str | None

    @property
    def retryable(self) -> bool:
        return self.failure_reason is FailureReason.RETRYABLE


def classify_reason(
    reason: str,
    *,
    retryable_reasons: tuple[str, ...] = DEFAULT_RETRYABLE_REASONS,
) -> FailureReason:
    """Return RETRYABLE only for exact members of the allow-set."""

    if reason.strip() in retryable_reasons:
        return FailureReason.RETRYABLE
    return FailureReason.FATAL


def classify_submission_failures(
    failures: tuple[SubmissionFailure, ...],
    *,
    retryable_reasons: tuple[str, ...] = DEFAULT_RETRYABLE_REASONS,
) -> SubmissionFailureClassification:
    """Classify a rejection by its first failure entry.

    Later entries never influence the decision. A rejection with no failure
    entries is fatal.
    """

    if not failures:
        return SubmissionFailureClassification(
            failure_reason=FailureReason.FATAL,
            reason="rejected without failure detail",
            detail=None,
        )

    first = failures[0]
    return SubmissionFailureClassification(
        failure_reason=classify_reason(first.reason, retryable_reasons=retryable_reasons),
        reason=first.reason,
        detail=first.detail,
    )
