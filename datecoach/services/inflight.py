# datecoach/services/inflight.py
"""
In-flight request registry.

Coalesces concurrent identical requests into one shared task so that at most
one network call is outstanding per request digest.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

from datecoach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class InFlightRegistry(Generic[T]):
    """key -> pending task map; entries are dropped as soon as the task settles."""

    def __init__(self):
        self._pending: dict[str, asyncio.Task[T]] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Await the task registered for ``key``, starting ``factory()`` if none is.

        Every waiter receives the same result, or the same exception.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._settle(key, done))
        else:
            logger.debug("Joining in-flight request", key=key[:12], waiters=len(self._pending))

        # shield: one cancelled waiter must not cancel the shared call
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task[T]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            # retrieved here so an unawaited failure is not reported as lost
            logger.debug("In-flight request failed", key=key[:12], error=str(task.exception()))

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending
