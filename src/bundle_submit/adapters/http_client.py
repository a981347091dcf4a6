"""httpx wrapper.

Why a wrapper:
- Standardizes timeouts, headers and authentication for every server call.
- Eases testing: the network layer can be swapped for `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from bundle_submit.core.config import AppSettings

FHIR_JSON = "application/fhir+json"


def build_async_client(
    settings: AppSettings | None = None,
    *,
    bearer_token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an `httpx.AsyncClient` with the defaults every call shares.

    When a bearer token is given it is attached to every request.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": FHIR_JSON,
        "Content-Type": FHIR_JSON,
    }
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )
