"""Optimistic local writes with an ordered queue of remote writes and their inverses."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable

from core.errors import StoreError, SyncError

LOGGER = logging.getLogger("habitstock.sync")


@dataclass(frozen=True)
class PendingOperation:
    """A local change already applied, waiting for its remote write."""

    description: str
    remote: Callable[[], None]
    inverse: Callable[[], None]


class PendingOperationLog:
    """
    FIFO of remote writes for one user's session.

    Writes run strictly in the order the local changes happened. When one
    fails, that operation and every later one is undone newest-first so the
    local state matches what the store actually holds.
    """

    def __init__(self) -> None:
        self._queue: deque[PendingOperation] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def record(self, description: str, remote: Callable[[], None], inverse: Callable[[], None]) -> PendingOperation:
        operation = PendingOperation(description=description, remote=remote, inverse=inverse)
        self._queue.append(operation)
        return operation

    def flush(self) -> int:
        """Run queued writes; returns how many reached the store."""
        written = 0
        while self._queue:
            operation = self._queue[0]
            try:
                operation.remote()
            except StoreError as exc:
                failed = list(self._queue)
                self._queue.clear()
                LOGGER.warning(
                    "Remote write failed for %s; rolling back %d local change(s): %s",
                    operation.description,
                    len(failed),
                    exc,
                )
                for pending in reversed(failed):
                    pending.inverse()
                raise SyncError(f"Failed to save {operation.description}: {exc}") from exc
            self._queue.popleft()
            written += 1
        return written

    def discard(self) -> int:
        """Undo every queued change without writing it."""
        dropped = list(self._queue)
        self._queue.clear()
        for pending in reversed(dropped):
            pending.inverse()
        return len(dropped)
