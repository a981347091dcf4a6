"""Command line interface (Typer).

Commands:
- `submit`: send a bundle file, or every bundle of a directory, to a server.
- `resolve`: rewrite temporary references of one bundle offline and print it.
- `doctor`: configuration and connectivity checks.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from bundle_submit.adapters.bundle_loader import load_bundle
from bundle_submit.adapters.fhir_transport import validate_server_url
from bundle_submit.adapters.json_exporter import dump_bundle_json, export_bundle_json
from bundle_submit.cli import doctor
from bundle_submit.cli.ui_components import console_hooks
from bundle_submit.core.config import AppSettings
from bundle_submit.core.domain.enums import SubmissionMode
from bundle_submit.core.errors import BundleSubmitError, ClientConstructionError, UnsupportedBundleTypeError
from bundle_submit.core.logging_config import configure_logging
from bundle_submit.core.services.bundle_pipeline import (
    RESULT_FATAL,
    SubmitOptions,
    overall_code,
    process_bundle_directory,
    process_bundle_file,
)
from bundle_submit.core.services.reference_resolver import resolve as resolve_references

app = typer.Typer(
    name="fhir-bundle-submit",
    no_args_is_help=True,
    help="Submit the resources of a FHIR bundle to a FHIR server.",
    epilog="Sample usage: fhir-bundle-submit submit -p bundle.json -s https://example.com/fhir",
)
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)


def _usage_error(message: str) -> NoReturn:
    _console.print(f"[yellow]{escape(message)}[/yellow]")
    _console.print("Try 'fhir-bundle-submit submit --help' for help.")
    raise typer.Exit(code=0)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
) -> None:
    settings = AppSettings()
    configure_logging(logging.DEBUG if verbose else settings.log_level)


@app.command()
def submit(
    bundle: Optional[Path] = typer.Option(
        None, "--bundle", "-p", help="Path to a .json file containing a FHIR Bundle."
    ),
    bundle_dir: Optional[Path] = typer.Option(
        None, "--bundle-dir", "-d", help="Path to a directory of .json FHIR Bundle files."
    ),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="FHIR server base URL."),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Bearer token for the server."),
    mode: Optional[SubmissionMode] = typer.Option(
        None,
        "--mode",
        case_sensitive=False,
        help="split: resolve references and upsert each resource; whole: submit the bundle as a transaction.",
    ),
    max_concurrency: Optional[int] = typer.Option(None, "--max-concurrency", min=1, help="Submissions in flight."),
    max_waiters: Optional[int] = typer.Option(None, "--max-waiters", min=1, help="Submissions queued for a slot."),
    throttle_backoff: Optional[float] = typer.Option(
        None, "--throttle-backoff", min=0.0, help="Seconds to wait before retrying a throttled call."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print failures and summaries."),
) -> None:
    """Submit a bundle file or a directory of bundle files."""

    settings = AppSettings()

    if bundle is None and bundle_dir is None:
        _usage_error("No bundle path or directory specified.")
    if bundle is not None and bundle_dir is not None:
        _usage_error("Only a bundle path or a directory can be specified, not both.")
    if bundle is not None and not bundle.is_file():
        _usage_error(f"Unable to access bundle file: {bundle}")
    if bundle_dir is not None and not bundle_dir.is_dir():
        _usage_error(f"Unable to access bundle directory: {bundle_dir}")

    try:
        server_url = validate_server_url(server or settings.server_url)
    except ClientConstructionError as exc:
        _usage_error(str(exc))

    options = SubmitOptions.from_settings(
        settings,
        mode=mode,
        max_concurrency=max_concurrency,
        max_waiters=max_waiters,
        throttle_backoff_seconds=throttle_backoff,
        server_url=server_url,
        bearer_token=token,
    )
    hooks = console_hooks(_console, quiet=quiet)
    _console.print(f"Submitting to [bold]{escape(server_url)}[/bold] ({options.mode.label()})")

    if bundle is not None:
        result = asyncio.run(process_bundle_file(bundle, settings=settings, options=options, hooks=hooks))
        code = result.code
    else:
        directory = Path(bundle_dir or ".")
        results = asyncio.run(
            process_bundle_directory(directory, settings=settings, options=options, hooks=hooks)
        )
        if not results:
            _console.print(f"No .json files found in {escape(str(directory))}")
        code = overall_code(results)

    raise typer.Exit(code=code)


@app.command()
def resolve(
    bundle: Path = typer.Argument(..., help="Path to a .json file containing a FHIR Bundle."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the resolved bundle here."),
) -> None:
    """Rewrite temporary references offline and print the resolved bundle."""

    try:
        document = load_bundle(bundle)
        if document.bundle_type is None:
            raise UnsupportedBundleTypeError(document.type)
        result = resolve_references(document)
    except UnsupportedBundleTypeError as exc:
        _err_console.print(f"[cyan]{escape(str(exc))}[/cyan]")
        raise typer.Exit(code=0)
    except BundleSubmitError as exc:
        _err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=RESULT_FATAL)

    for warning in result.warnings:
        _err_console.print(f"[yellow]Warning:[/yellow] {escape(warning.message())}")
    _err_console.print(
        f"Rewrote {result.rewritten} reference(s); {len(result.warnings)} left unresolved."
    )

    if output is not None:
        path = export_bundle_json(bundle=result.bundle, output_path=output)
        _err_console.print(f"[green]Resolved bundle written to:[/green] {escape(str(path))}")
    else:
        typer.echo(dump_bundle_json(result.bundle), nl=False)


def run() -> None:
    app()
