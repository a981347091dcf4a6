"""Transport contract used by the submission orchestrator.

Why Protocol:
- A structural contract (duck typing) with no rigid inheritance.
- The HTTP adapter and in-memory test stubs are interchangeable.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResourceTransport(Protocol):
    """Minimal capability needed to put resources on a server.

    Design rules:
    - Both calls are async because they do I/O.
    - Rate limiting is signalled with `ThrottledError`; every other failure is
      a `TransportError` (or any other exception, treated the same way).
    """

    async def upsert(self, resource: dict[str, Any]) -> dict[str, Any]:
        """Create the resource if absent, update it otherwise; return the stored copy."""

        ...

    async def submit_transaction(self, bundle: dict[str, Any]) -> dict[str, Any]:
        """Submit a whole bundle atomically; return the server response bundle."""

        ...
