"""Transient storage for in-flight authorization attempts.

Holds the state nonce and code verifier for each browser context between
the redirect to the provider and the callback. Nothing here is persisted.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from ocra.auth.client.models.flow import PendingAuthorization

logger = logging.getLogger(__name__)


class FlowStateStore(Protocol):
    """Per-browser-context storage for pending authorizations.

    ``take`` must remove and return the entry in one step so a second
    completion of the same attempt finds nothing.
    """

    def put(
        self, context_id: str, pending: PendingAuthorization
    ) -> PendingAuthorization | None: ...

    def take(self, context_id: str) -> PendingAuthorization | None: ...

    def peek(self, context_id: str) -> PendingAuthorization | None: ...

    def discard(self, context_id: str) -> None: ...


class InMemoryFlowStateStore:
    """Process-local flow state store with expiry.

    Every method runs without awaiting, so under asyncio each call is
    atomic with respect to other coroutines.
    """

    def __init__(
        self,
        ttl_seconds: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[PendingAuthorization, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    # ================================
    # Storage
    # ================================

    def put(
        self, context_id: str, pending: PendingAuthorization
    ) -> PendingAuthorization | None:
        """Store a pending attempt, replacing any earlier one.

        Returns the replaced attempt, if there was one.
        """
        previous = self._entries.get(context_id)
        self._entries[context_id] = (pending, self._clock() + self.ttl_seconds)
        if previous is not None:
            logger.debug(f"Replaced in-flight authorization for {context_id[:8]}")
            return previous[0]
        return None

    # ================================
    # Access
    # ================================

    def take(self, context_id: str) -> PendingAuthorization | None:
        """Remove and return the pending attempt.

        Returns None if nothing is stored or the entry has expired.
        """
        entry = self._entries.pop(context_id, None)
        if entry is None:
            return None
        pending, expires_at = entry
        if self._clock() >= expires_at:
            logger.debug(f"Pending authorization for {context_id[:8]} expired")
            return None
        return pending

    def peek(self, context_id: str) -> PendingAuthorization | None:
        entry = self._entries.get(context_id)
        if entry is None or self._clock() >= entry[1]:
            return None
        return entry[0]

    # ================================
    # Cleanup
    # ================================

    def discard(self, context_id: str) -> None:
        self._entries.pop(context_id, None)

    def purge_expired(self) -> int:
        """Drop expired entries.

        Returns the number of entries removed.
        """
        now = self._clock()
        expired = [key for key, (_, exp) in self._entries.items() if now >= exp]
        for key in expired:
            del self._entries[key]
        return len(expired)
