"""Enumerations shared across the application.

Living in the domain layer lets the CLI, the services and the adapters share a
single source of truth without circular imports.
"""

from __future__ import annotations

from enum import Enum


class BundleType(str, Enum):
    """Bundle types this tool knows how to process."""

    TRANSACTION = "transaction"
    BATCH = "batch"
    COLLECTION = "collection"

    @classmethod
    def parse(cls, value: str | None) -> "BundleType | None":
        """Return the matching member, or None for anything unsupported."""

        for member in cls:
            if member.value == value:
                return member
        return None


class SubmissionMode(str, Enum):
    """How a bundle reaches the server."""

    SPLIT = "split"
    WHOLE = "whole"

    def label(self) -> str:
        """Human readable label for messages and logging."""

        if self is SubmissionMode.WHOLE:
            return "whole-bundle transaction"
        return "split and resolve"
