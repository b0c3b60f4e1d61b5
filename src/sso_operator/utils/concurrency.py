"""
Per-resource mutual exclusion for reconciliation passes.

Events for an SSO may be delivered again while a pass for the same resource
is still running (provisioning waits on pods and jobs for minutes). The guard
admits one pass per ``(namespace, name)`` key and drops the events that arrive
while it is in flight; unrelated keys never contend.
"""

import logging
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


class ConcurrencyGuard:
    """
    Set of resource keys with a pass in flight.

    All passes run on the operator's event loop, and the membership check and
    the insert happen without an ``await`` in between, so two tasks can never
    both be admitted for the same key.

    Example:
        guard = ConcurrencyGuard()

        async with guard.admit(("team-a", "my-sso")) as admitted:
            if not admitted:
                return  # another pass owns this resource
            await reconcile()
    """

    def __init__(self):
        self._in_flight: set[Hashable] = set()

    @asynccontextmanager
    async def admit(self, key: Hashable) -> AsyncIterator[bool]:
        """
        Try to take ownership of ``key`` for the duration of the block.

        Yields:
            True when the key was free and is now held, False when another
            pass holds it (the caller should drop its event)
        """
        if key in self._in_flight:
            logger.debug(f"Pass for {key} already in flight, dropping event")
            yield False
            return

        self._in_flight.add(key)
        try:
            yield True
        finally:
            self._in_flight.discard(key)

    def in_flight(self, key: Hashable) -> bool:
        """Check whether a pass currently holds ``key``."""
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)
