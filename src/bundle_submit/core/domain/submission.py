"""Submission units and outcomes.

Outcomes are plain values: a submission task always returns one and never
lets an exception escape to its siblings or to the drain loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from bundle_submit.core.domain.enums import SubmissionMode

MAX_ATTEMPTS = 2


@dataclass
class SubmissionUnit:
    """One thing to send: a resolved resource (split) or the bundle (whole)."""

    label: str
    mode: SubmissionMode
    payload: dict[str, Any]
    method: str | None = None
    attempts: int = 0

    @property
    def resource_type(self) -> str:
        return str(self.payload.get("resourceType", "unknown"))


@dataclass
class SubmissionSuccess:
    unit: SubmissionUnit
    resource: dict[str, Any] = field(default_factory=dict)
    attempts: int = 1

    @property
    def resource_type(self) -> str:
        return str(self.resource.get("resourceType") or self.unit.resource_type)


@dataclass
class SubmissionFailure:
    unit: SubmissionUnit
    error: Exception
    attempts: int = 1

    @property
    def detail(self) -> str:
        return str(self.error) or type(self.error).__name__


Outcome = Union[SubmissionSuccess, SubmissionFailure]
