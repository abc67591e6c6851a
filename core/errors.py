"""Exception types raised by the HabitStock core."""

from __future__ import annotations


class HabitStockError(Exception):
    """Base class for all domain errors."""


class ValidationError(HabitStockError, ValueError):
    """Input rejected before any state was touched."""


class TaskNotFoundError(HabitStockError, KeyError):
    """No task with the requested id exists in the ledger."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Task not found"


class BoostNotAllowedError(HabitStockError):
    """News boost requested for an incomplete or already boosted task."""


class StoreError(HabitStockError):
    """The document store rejected or failed a read/write."""


class SyncError(HabitStockError):
    """A queued remote write failed and local state was rolled back."""


class NewsServiceError(HabitStockError):
    """The news generation service failed or returned an unusable payload."""
