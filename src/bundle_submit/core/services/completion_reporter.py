"""Drain the outcome stream and record one line per submitted unit."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass, field

from bundle_submit.core.domain.submission import Outcome, SubmissionFailure, SubmissionSuccess

logger = logging.getLogger(__name__)


@dataclass
class SubmissionReport:
    """What happened to every unit of one bundle, in completion order."""

    succeeded: list[SubmissionSuccess] = field(default_factory=list)
    failed: list[SubmissionFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def success_types(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for outcome in self.succeeded:
            counts[outcome.resource_type] = counts.get(outcome.resource_type, 0) + 1
        return counts


def format_outcome(outcome: Outcome) -> str:
    if isinstance(outcome, SubmissionSuccess):
        return f"Finished uploading: {outcome.resource_type}"
    return f"Error uploading {outcome.unit.label}: {outcome.detail}"


class CompletionReporter:
    """Consumes outcomes as they arrive; never alters them."""

    def __init__(self, emit: Callable[[Outcome, str], None] | None = None) -> None:
        self._emit = emit

    def record(self, report: SubmissionReport, outcome: Outcome) -> None:
        line = format_outcome(outcome)
        if isinstance(outcome, SubmissionSuccess):
            report.succeeded.append(outcome)
        else:
            report.failed.append(outcome)
        logger.debug(line)
        if self._emit:
            self._emit(outcome, line)

    async def drain(self, outcomes: AsyncIterable[Outcome]) -> SubmissionReport:
        report = SubmissionReport()
        async for outcome in outcomes:
            self.record(report, outcome)
        return report
