"""Bounded-concurrency submission with a single throttling retry.

Every unit is dispatched as its own task at once; the admission gate decides
how many of them talk to the server at the same time. Outcomes are drained in
completion order, so a slow or failing unit never holds back the report of a
faster one, and no unit can cancel or abort another.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

from bundle_submit.core.domain.enums import SubmissionMode
from bundle_submit.core.domain.models import Bundle
from bundle_submit.core.domain.submission import (
    MAX_ATTEMPTS,
    Outcome,
    SubmissionFailure,
    SubmissionSuccess,
    SubmissionUnit,
)
from bundle_submit.core.errors import ThrottledError
from bundle_submit.core.interfaces.transport import ResourceTransport
from bundle_submit.core.services.admission_gate import AdmissionGate
from bundle_submit.core.services.reference_resolver import ResolutionResult

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def build_units(
    bundle: Bundle,
    mode: SubmissionMode,
    resolution: ResolutionResult | None = None,
) -> list[SubmissionUnit]:
    """Turn a bundle into submission units.

    - whole: a single unit carrying the bundle document as read.
    - split: one unit per entry resource of the resolved copy.
    """

    if mode is SubmissionMode.WHOLE:
        label = f"Bundle ({bundle.type}, {len(bundle.entry)} entries)"
        return [SubmissionUnit(label=label, mode=mode, payload=bundle.to_payload(), method="POST")]

    if resolution is None:
        raise ValueError("split mode needs a resolution result")

    units: list[SubmissionUnit] = []
    for entry in resolution.bundle.entry:
        if entry.resource is None:
            logger.info("Skipping entry %s: no resource", entry.full_url)
            continue
        units.append(
            SubmissionUnit(
                label=entry.describe(),
                mode=mode,
                payload=entry.resource,
                method=entry.request.method if entry.request else None,
            )
        )
    return units


class SubmissionOrchestrator:
    """Send units through a shared gate and yield one outcome per unit."""

    def __init__(
        self,
        *,
        transport: ResourceTransport,
        gate: AdmissionGate,
        throttle_backoff_seconds: float = 3.0,
        sleep: Sleep = asyncio.sleep,
        on_dispatch: Callable[[SubmissionUnit], None] | None = None,
    ) -> None:
        self._transport = transport
        self._gate = gate
        self._backoff = throttle_backoff_seconds
        self._sleep = sleep
        self._on_dispatch = on_dispatch

    async def submit(self, units: Iterable[SubmissionUnit]) -> AsyncIterator[Outcome]:
        """Dispatch every unit, then yield outcomes as they complete."""

        in_flight: set[asyncio.Task[Outcome]] = set()
        for unit in units:
            if self._on_dispatch:
                self._on_dispatch(unit)
            logger.debug("Dispatching %s", unit.label)
            in_flight.add(asyncio.create_task(self._run(unit), name=unit.label))

        while in_flight:
            done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                yield task.result()

    async def _call(self, unit: SubmissionUnit) -> dict:
        if unit.mode is SubmissionMode.WHOLE:
            return await self._transport.submit_transaction(unit.payload)
        return await self._transport.upsert(unit.payload)

    async def _run(self, unit: SubmissionUnit) -> Outcome:
        throttled: ThrottledError | None = None

        # The slot is held across the backoff: the retry is the same step.
        async with self._gate:
            for attempt in range(1, MAX_ATTEMPTS + 1):
                unit.attempts = attempt
                if throttled is not None:
                    logger.warning("%s throttled by server; retrying in %.1fs", unit.label, self._backoff)
                    await self._sleep(self._backoff)
                try:
                    result = await self._call(unit)
                except ThrottledError as exc:
                    throttled = exc
                    continue
                except Exception as exc:
                    logger.debug("%s failed: %s", unit.label, exc)
                    return SubmissionFailure(unit=unit, error=exc, attempts=attempt)
                return SubmissionSuccess(unit=unit, resource=result or {}, attempts=attempt)

        logger.debug("%s still throttled after %d attempts", unit.label, unit.attempts)
        return SubmissionFailure(unit=unit, error=throttled, attempts=unit.attempts)
