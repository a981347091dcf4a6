"""FHIR REST transport (httpx).

Implements `core.interfaces.transport.ResourceTransport`:
- upsert: `PUT [base]/[type]/[id]` (create if absent, update otherwise).
- transaction: `POST [base]` with the whole bundle.

HTTP 429 becomes `ThrottledError` so the orchestrator can tell throttling
apart from every other failure.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from bundle_submit.adapters.http_client import build_async_client
from bundle_submit.core.config import AppSettings
from bundle_submit.core.errors import ClientConstructionError, ThrottledError, TransportError

logger = logging.getLogger(__name__)


def validate_server_url(url: str | None) -> str:
    """Return the URL without trailing slash, or raise if it is not absolute."""

    if not url:
        raise ClientConstructionError("No FHIR server URL specified.")
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ClientConstructionError(
            f"FHIR server URL: {url} does not appear to be a valid URL. Please check it and try again."
        )
    return url.strip().rstrip("/")


def _operation_outcome_text(payload: Any) -> str | None:
    if not isinstance(payload, dict) or payload.get("resourceType") != "OperationOutcome":
        return None
    messages: list[str] = []
    for issue in payload.get("issue") or []:
        if not isinstance(issue, dict):
            continue
        text = issue.get("diagnostics") or (issue.get("details") or {}).get("text")
        if isinstance(text, str) and text.strip():
            messages.append(text.strip())
    return "; ".join(messages) or None


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class FhirHttpTransport:
    """Async FHIR client bound to one server base URL."""

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self.base_url = base_url

    async def __aenter__(self) -> "FhirHttpTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upsert(self, resource: dict[str, Any]) -> dict[str, Any]:
        resource_type = resource.get("resourceType")
        resource_id = resource.get("id")
        if not isinstance(resource_type, str) or not isinstance(resource_id, str) or not resource_id:
            raise TransportError(f"Cannot upsert {resource_type or 'resource'} without an id")
        return await self._send("PUT", f"{self.base_url}/{resource_type}/{resource_id}", resource)

    async def submit_transaction(self, bundle: dict[str, Any]) -> dict[str, Any]:
        return await self._send("POST", self.base_url, bundle)

    async def capability_statement(self) -> dict[str, Any]:
        """`GET [base]/metadata`, used by the doctor command."""

        return await self._send("GET", f"{self.base_url}/metadata", None)

    async def _send(self, method: str, url: str, body: dict[str, Any] | None) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, json=body)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

        payload: Any = None
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                payload = None

        if response.status_code == 429:
            raise ThrottledError(
                f"{method} {url} was throttled (HTTP 429)",
                retry_after=_retry_after(response),
                body=response.text,
            )
        if response.is_error:
            detail = _operation_outcome_text(payload) or response.reason_phrase
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}: {detail}",
                status_code=response.status_code,
                body=response.text,
            )

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return payload if isinstance(payload, dict) else {}


def build_transport(
    settings: AppSettings,
    *,
    server_url: str | None = None,
    bearer_token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FhirHttpTransport:
    """Build the HTTP transport; raises `ClientConstructionError` on bad config."""

    base_url = validate_server_url(server_url or settings.server_url)
    try:
        client = build_async_client(
            settings,
            bearer_token=bearer_token or settings.bearer_token,
            transport=transport,
        )
    except (ValueError, TypeError, httpx.HTTPError) as exc:
        raise ClientConstructionError(f"Unable to create FHIR client for server {base_url}. Error: {exc}") from exc
    return FhirHttpTransport(client, base_url)
