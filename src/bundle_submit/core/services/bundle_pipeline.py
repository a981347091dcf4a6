"""Bundle submission orchestration utilities.

This module ties loading, reference resolution, submission and reporting
together for one file or a directory of files. UI concerns (printing, tables)
stay out: the CLI plugs in through `PipelineHooks`, which keeps the pipeline
reusable from tests and other entry points.

Result codes:
- 0: processing completed (even if some resources failed), or the bundle type
  is unsupported and the file was skipped.
- -1: the file could not be read or parsed, references could not be
  resolved, or the transport could not be built. A transport that cannot be
  built stops a directory run before its first file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from bundle_submit.adapters.bundle_loader import iter_bundle_files, load_bundle
from bundle_submit.adapters.fhir_transport import FhirHttpTransport, build_transport
from bundle_submit.core.config import AppSettings
from bundle_submit.core.domain.enums import SubmissionMode
from bundle_submit.core.domain.models import Bundle
from bundle_submit.core.domain.submission import Outcome, SubmissionUnit
from bundle_submit.core.errors import (
    BundleParseError,
    ClientConstructionError,
    FileAccessError,
    ResolutionError,
    UnsupportedBundleTypeError,
)
from bundle_submit.core.interfaces.transport import ResourceTransport
from bundle_submit.core.services.admission_gate import AdmissionGate
from bundle_submit.core.services.completion_reporter import CompletionReporter, SubmissionReport
from bundle_submit.core.services.reference_resolver import ReferenceLookupTable, resolve
from bundle_submit.core.services.submission_orchestrator import SubmissionOrchestrator, build_units

logger = logging.getLogger(__name__)

RESULT_OK = 0
RESULT_FATAL = -1


@dataclass
class SubmitOptions:
    """Parameters that control one submission run."""

    mode: SubmissionMode = SubmissionMode.SPLIT
    max_concurrency: int = 10
    max_waiters: int | None = None
    throttle_backoff_seconds: float = 3.0
    server_url: str | None = None
    bearer_token: str | None = None

    @classmethod
    def from_settings(cls, settings: AppSettings, **overrides: object) -> "SubmitOptions":
        values: dict[str, object] = {
            "mode": settings.default_mode,
            "max_concurrency": settings.max_concurrency,
            "max_waiters": settings.max_waiters,
            "throttle_backoff_seconds": settings.throttle_backoff_seconds,
            "server_url": settings.server_url,
            "bearer_token": settings.bearer_token,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


@dataclass
class PipelineHooks:
    """Optional callbacks for UI layers (messages, progress, summaries)."""

    info: Callable[[str], None] | None = None
    warning: Callable[[str], None] | None = None
    error: Callable[[str], None] | None = None
    unit_started: Callable[[SubmissionUnit], None] | None = None
    outcome: Callable[[Outcome, str], None] | None = None
    bundle_done: Callable[[Path, SubmissionReport], None] | None = None


@dataclass
class FileResult:
    path: Path
    code: int
    report: SubmissionReport | None = None


def _say(callback: Callable[[str], None] | None, message: str) -> None:
    if callback:
        callback(message)


async def submit_bundle(
    bundle: Bundle,
    *,
    transport: ResourceTransport,
    options: SubmitOptions,
    hooks: PipelineHooks | None = None,
) -> SubmissionReport:
    """Resolve (split mode) and submit one bundle.

    Raises `ResolutionError` before anything is sent when the bundle has
    duplicate fullUrls.
    """

    hooks = hooks or PipelineHooks()

    if options.mode is SubmissionMode.WHOLE:
        # The server resolves fullUrls inside a transaction; only reject duplicates.
        ReferenceLookupTable.from_bundle(bundle)
        units = build_units(bundle, options.mode)
    else:
        resolution = resolve(bundle)
        for warning in resolution.warnings:
            _say(hooks.warning, warning.message())
        units = build_units(bundle, options.mode, resolution)

    gate = AdmissionGate(options.max_concurrency, max_waiters=options.max_waiters)
    orchestrator = SubmissionOrchestrator(
        transport=transport,
        gate=gate,
        throttle_backoff_seconds=options.throttle_backoff_seconds,
        on_dispatch=hooks.unit_started,
    )
    reporter = CompletionReporter(emit=hooks.outcome)
    return await reporter.drain(orchestrator.submit(units))


async def process_bundle_file(
    path: Path,
    *,
    settings: AppSettings,
    options: SubmitOptions,
    transport: ResourceTransport | None = None,
    hooks: PipelineHooks | None = None,
) -> FileResult:
    """Load, resolve and submit one bundle file. Never raises for bundle errors."""

    hooks = hooks or PipelineHooks()

    try:
        bundle = load_bundle(path)
    except (FileAccessError, BundleParseError) as exc:
        _say(hooks.error, str(exc))
        return FileResult(path=path, code=RESULT_FATAL)

    if bundle.bundle_type is None:
        _say(hooks.info, f"{path}: {UnsupportedBundleTypeError(bundle.type)}")
        return FileResult(path=path, code=RESULT_OK)

    owned: FhirHttpTransport | None = None
    if transport is None:
        try:
            owned = build_transport(
                settings,
                server_url=options.server_url,
                bearer_token=options.bearer_token,
            )
        except ClientConstructionError as exc:
            _say(hooks.error, str(exc))
            return FileResult(path=path, code=RESULT_FATAL)
        transport = owned

    try:
        report = await submit_bundle(bundle, transport=transport, options=options, hooks=hooks)
    except ResolutionError as exc:
        _say(hooks.error, f"Failed to resolve references in {path}: {exc}")
        return FileResult(path=path, code=RESULT_FATAL)
    finally:
        if owned is not None:
            await owned.aclose()

    logger.info("%s: %d submitted, %d failed", path, len(report.succeeded), len(report.failed))
    if hooks.bundle_done:
        hooks.bundle_done(path, report)
    return FileResult(path=path, code=RESULT_OK, report=report)


async def process_bundle_directory(
    directory: Path,
    *,
    settings: AppSettings,
    options: SubmitOptions,
    transport: ResourceTransport | None = None,
    hooks: PipelineHooks | None = None,
) -> list[FileResult]:
    """Process every `*.json` file with one shared transport.

    A fatal file never stops the next one, but a transport that cannot be
    built aborts the whole run with a single fatal result for the directory.
    """

    hooks = hooks or PipelineHooks()
    paths = iter_bundle_files(directory)
    if not paths:
        return []

    owned: FhirHttpTransport | None = None
    if transport is None:
        try:
            owned = build_transport(
                settings,
                server_url=options.server_url,
                bearer_token=options.bearer_token,
            )
        except ClientConstructionError as exc:
            _say(hooks.error, str(exc))
            return [FileResult(path=directory, code=RESULT_FATAL)]
        transport = owned

    results: list[FileResult] = []
    try:
        for path in paths:
            results.append(
                await process_bundle_file(
                    path,
                    settings=settings,
                    options=options,
                    transport=transport,
                    hooks=hooks,
                )
            )
    finally:
        if owned is not None:
            await owned.aclose()
    return results


def overall_code(results: list[FileResult]) -> int:
    """The last file's code is the run's code; an empty run is OK."""

    return results[-1].code if results else RESULT_OK
