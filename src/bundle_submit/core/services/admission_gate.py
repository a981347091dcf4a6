"""Bounded admission gate for concurrent submissions.

One gate is created per submission run and handed to every task of that run;
it is the only mutable state those tasks share.
"""

from __future__ import annotations

import asyncio
from types import TracebackType


class AdmissionGate:
    """Counting gate with `capacity` slots and an optional waiter-queue bound.

    - `capacity`: at most this many holders at once.
    - `max_waiters`: at most this many callers parked on the slot queue; extra
      callers wait to join the queue. Nobody is ever rejected.
    """

    def __init__(self, capacity: int, *, max_waiters: int | None = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if max_waiters is not None and max_waiters < 1:
            raise ValueError("max_waiters must be >= 1 when set")
        self.capacity = capacity
        self.max_waiters = max_waiters
        self._slots = asyncio.Semaphore(capacity)
        self._queue = asyncio.Semaphore(max_waiters) if max_waiters is not None else None
        self._in_flight = 0
        self._waiting = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def waiting(self) -> int:
        return self._waiting

    async def acquire(self) -> None:
        if self._queue is not None:
            await self._queue.acquire()
        self._waiting += 1
        try:
            await self._slots.acquire()
        finally:
            self._waiting -= 1
            if self._queue is not None:
                self._queue.release()
        self._in_flight += 1

    def release(self) -> None:
        self._in_flight -= 1
        self._slots.release()

    async def __aenter__(self) -> "AdmissionGate":
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
