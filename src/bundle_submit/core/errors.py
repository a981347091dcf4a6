"""Error taxonomy.

File-level and resolution-level errors abort the current bundle only.
Transport errors never escape a submission task: the orchestrator turns them
into `SubmissionFailure` values.
"""

from __future__ import annotations

from pathlib import Path


class BundleSubmitError(Exception):
    """Base class for every error raised by this package."""


class FileAccessError(BundleSubmitError):
    """The bundle file could not be read."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Unable to read bundle file {path}: {reason}")
        self.path = path
        self.reason = reason


class BundleParseError(BundleSubmitError):
    """The bundle file is not a valid bundle document."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Unable to parse bundle in file {path}: {reason}")
        self.path = path
        self.reason = reason


class UnsupportedBundleTypeError(BundleSubmitError):
    """The bundle type is not transaction, batch or collection. Informational."""

    def __init__(self, bundle_type: str | None) -> None:
        super().__init__(
            "This tool handles transaction, batch or collection bundles. "
            f"The supplied bundle is of type {bundle_type!r} and cannot be processed."
        )
        self.bundle_type = bundle_type


class ResolutionError(BundleSubmitError):
    """Reference resolution failed for a bundle."""


class DuplicateIdentifierError(ResolutionError):
    """Two entries of the same bundle share a fullUrl."""

    def __init__(self, full_url: str) -> None:
        super().__init__(f"Duplicate fullUrl in bundle: {full_url}")
        self.full_url = full_url


class TransportError(BundleSubmitError):
    """A submission to the server failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ThrottledError(TransportError):
    """The server rejected the call because the request rate was exceeded (429)."""

    def __init__(self, message: str, *, retry_after: float | None = None, body: str | None = None) -> None:
        super().__init__(message, status_code=429, body=body)
        self.retry_after = retry_after


class ClientConstructionError(BundleSubmitError):
    """The transport client could not be built (e.g. invalid server URL)."""
