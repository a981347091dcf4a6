"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bundle_submit.adapters.fhir_transport import build_transport
from bundle_submit.core.config import AppSettings, write_user_env_vars
from bundle_submit.core.errors import BundleSubmitError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_server(settings: AppSettings, server_url: str | None) -> tuple[bool, str]:
    try:
        async with build_transport(settings, server_url=server_url) as transport:
            statement = await transport.capability_statement()
    except BundleSubmitError as exc:
        return False, str(exc)
    version = statement.get("fhirVersion") or "unknown FHIR version"
    software = (statement.get("software") or {}).get("name") or "unknown server"
    return True, f"{software} ({version})"


@app.command()
def run(
    server: Optional[str] = typer.Option(None, "--server", "-s", help="FHIR server URL to check."),
) -> None:
    """Show effective configuration and check that the server answers."""

    settings = AppSettings()
    server_url = server or settings.server_url

    table = Table(title="fhir-bundle-submit doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("Server URL", "OK" if server_url else "MISSING", server_url or "set FHIR_SUBMIT_SERVER_URL or --server")
    table.add_row("Bearer token", "OK" if settings.bearer_token else "OPTIONAL", "set" if settings.bearer_token else "not set")
    table.add_row("Mode", "OK", settings.default_mode.label())
    table.add_row(
        "Concurrency",
        "OK",
        f"{settings.max_concurrency} in flight, waiters "
        f"{settings.max_waiters if settings.max_waiters is not None else 'unbounded'}",
    )
    table.add_row("Throttle backoff", "OK", f"{settings.throttle_backoff_seconds:.1f}s, single retry")

    if server_url:
        ok, detail = asyncio.run(_check_server(settings, server_url))
        table.add_row("Server metadata", "OK" if ok else "FAIL", detail)

    _console.print(table)


@app.command(name="setup-server")
def setup_server() -> None:
    """Interactive server setup (stores config in the user config .env)."""

    settings = AppSettings()
    server_url = typer.prompt("FHIR server URL", default=settings.server_url or "", show_default=True).strip()
    token = typer.prompt("Bearer token (empty for none)", default="", hide_input=True, show_default=False).strip()

    if not server_url:
        raise typer.BadParameter("server URL is required")

    env_path = write_user_env_vars(
        {
            "FHIR_SUBMIT_SERVER_URL": server_url,
            "FHIR_SUBMIT_BEARER_TOKEN": token or None,
        }
    )
    _console.print(f"[green]Saved server config to:[/green] {env_path}")
