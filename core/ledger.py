"""Task ledger: per-date, per-difficulty tasks and their applied price effects."""

from __future__ import annotations

import copy
import datetime
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable

import numpy as np

from config.settings import NEWS_BOOST_MULTIPLIER
from core.errors import BoostNotAllowedError, TaskNotFoundError, ValidationError
from core.models import Task, TasksByDifficulty, round_percent, round_price, validate_difficulty
from core.price_generator import generate
from core.stock_book import StockBook

LOGGER = logging.getLogger("habitstock.ledger")


@dataclass(frozen=True)
class BoostResult:
    """What a news boost added to the task and to the owner's price."""

    task: Task
    increase: float
    percent_increase: float


def validate_date(value: str) -> str:
    try:
        return datetime.date.fromisoformat(str(value)).isoformat()
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc


def _millisecond_id() -> str:
    return str(int(time.time() * 1000))


class TaskLedger:
    """
    Holds one user's tasks and keeps their applied deltas in step with the
    user's stock book.

    Price deltas are drawn once when a task is created (or its difficulty
    changes) and frozen; toggling only ever adds or subtracts that frozen value.
    """

    def __init__(
        self,
        stock_book: StockBook,
        rng: np.random.Generator | None = None,
        clock: Callable[[], datetime.date] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.stock_book = stock_book
        self._rng = rng
        self._clock = clock or datetime.date.today
        self._id_factory = id_factory or _millisecond_id
        self._days: dict[str, TasksByDifficulty] = {}
        self._dates_by_id: dict[str, str] = {}

    def today(self) -> str:
        return self._clock().isoformat()

    def _new_id(self) -> str:
        candidate = self._id_factory()
        while candidate in self._dates_by_id:
            candidate = str(int(candidate) + 1) if candidate.isdigit() else f"{candidate}-1"
        return candidate

    def _insert(self, task: Task) -> None:
        self._days.setdefault(task.due_date, TasksByDifficulty()).bucket(task.difficulty).append(task)
        self._dates_by_id[task.id] = task.due_date

    def _remove(self, task: Task) -> None:
        self._days[task.due_date].bucket(task.difficulty).remove(task)
        del self._dates_by_id[task.id]

    def _touch(self, task: Task) -> None:
        task.updated_at = datetime.datetime.now(datetime.timezone.utc).isoformat()

    def get(self, task_id: str) -> Task:
        date = self._dates_by_id.get(task_id)
        if date is None:
            raise TaskNotFoundError(f"Task not found: {task_id}")
        for task in self._days[date].all():
            if task.id == task_id:
                return task
        raise TaskNotFoundError(f"Task not found: {task_id}")

    def tasks_for(self, date: str) -> TasksByDifficulty:
        return self._days.get(date, TasksByDifficulty())

    def dates(self) -> list[str]:
        return sorted(date for date, group in self._days.items() if group.all())

    def incomplete_for(self, date: str) -> list[Task]:
        return [task for task in self.tasks_for(date).all() if not task.completed]

    def snapshot(self, task_id: str) -> Task:
        """Detached copy of a task, used to build inverse operations."""
        return copy.deepcopy(self.get(task_id))

    def create(self, text: str, difficulty: str, due_date: str) -> Task:
        """Add a task with a price delta drawn once at the current price."""
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("Task text must not be empty")
        level = validate_difficulty(difficulty)
        day = validate_date(due_date)

        drawn = generate(level, self.stock_book.current_price, self._rng)
        task = Task(
            id=self._new_id(),
            text=cleaned,
            difficulty=level,
            due_date=day,
            price_change=drawn.price_change,
            percentage=round_percent(drawn.percentage),
        )
        self._insert(task)
        LOGGER.info("Created task %s (%s, %s) worth %.1f", task.id, level, day, task.price_change)
        return task

    def toggle_complete(self, task_id: str) -> Task:
        """Flip completion and move the applied totals and today's bar by the frozen delta."""
        task = self.get(task_id)
        task.completed = not task.completed
        sign = 1.0 if task.completed else -1.0

        task.applied_price_change = round_price(task.applied_price_change + sign * task.price_change)
        task.applied_percentage = round_percent(task.applied_percentage + sign * task.percentage)
        self.stock_book.apply_delta(self.today(), task.price_change, task.percentage, task.completed)
        self._touch(task)

        LOGGER.info(
            "Task %s %s; applied=%.1f price=%.1f",
            task.id,
            "completed" if task.completed else "reopened",
            task.applied_price_change,
            self.stock_book.current_price,
        )
        return task

    def delete(self, task_id: str) -> Task:
        """Remove a task, first reversing whatever it still contributes to the price."""
        task = self.get(task_id)
        if task.completed and task.applied_price_change:
            self.stock_book.apply_delta(
                self.today(),
                task.applied_price_change,
                task.applied_percentage,
                completed=False,
            )
        self._remove(task)
        LOGGER.info("Deleted task %s", task.id)
        return task

    def edit_text(self, task_id: str, text: str) -> Task:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("Task text must not be empty")
        task = self.get(task_id)
        task.text = cleaned
        self._touch(task)
        return task

    def edit_difficulty(self, task_id: str, difficulty: str) -> Task:
        """
        Move a task to another tier and redraw its delta at the current price.

        Applied totals are left as they are, so a completed task re-tiered
        here will subtract its new delta when reopened.
        """
        level = validate_difficulty(difficulty)
        task = self.get(task_id)
        drawn = generate(level, self.stock_book.current_price, self._rng)

        self._remove(task)
        task.difficulty = level
        task.price_change = drawn.price_change
        task.percentage = round_percent(drawn.percentage)
        self._insert(task)
        self._touch(task)
        LOGGER.info("Task %s moved to %s, redrawn delta %.1f", task.id, level, task.price_change)
        return task

    def edit_due_date(self, task_id: str, due_date: str) -> Task:
        day = validate_date(due_date)
        task = self.get(task_id)
        self._remove(task)
        task.due_date = day
        self._insert(task)
        self._touch(task)
        return task

    def apply_news_boost(self, task_id: str) -> BoostResult:
        """
        Grow a completed task's effect once by NEWS_BOOST_MULTIPLIER.

        Raises:
            BoostNotAllowedError: Task is incomplete or was already boosted.
        """
        task = self.get(task_id)
        if not task.completed:
            raise BoostNotAllowedError(f"Task {task_id} must be completed before it can be boosted")
        if task.has_generated_news:
            raise BoostNotAllowedError(f"Task {task_id} already received its news boost")

        extra = NEWS_BOOST_MULTIPLIER - 1.0
        increase = round_price(task.price_change * extra)
        percent_increase = round_percent(task.percentage * extra)

        task.price_change = round_price(task.price_change * NEWS_BOOST_MULTIPLIER)
        task.percentage = round_percent(task.percentage * NEWS_BOOST_MULTIPLIER)
        task.applied_price_change = round_price(task.applied_price_change + increase)
        task.applied_percentage = round_percent(task.applied_percentage + percent_increase)
        task.has_generated_news = True
        self.stock_book.apply_boost(self.today(), increase, percent_increase)
        self._touch(task)

        LOGGER.info("Boosted task %s by %.1f (now %.1f)", task.id, increase, task.price_change)
        return BoostResult(task=task, increase=increase, percent_increase=percent_increase)

    def restore(self, task: Task) -> None:
        """Put a task snapshot back in place of whatever the ledger holds for its id."""
        if task.id in self._dates_by_id:
            self._remove(self.get(task.id))
        self._insert(copy.deepcopy(task))

    def discard(self, task_id: str) -> None:
        """Drop a task without touching the stock book."""
        self._remove(self.get(task_id))

    def replace_day(self, date: str, tasks: Iterable[Task]) -> bool:
        """
        Reconcile one date with an authoritative snapshot.

        Returns False when the snapshot matches local state, so repeated
        delivery of the same server state is a no-op.
        """
        incoming = sorted(tasks, key=lambda item: item.id)
        current = sorted(self.tasks_for(date).all(), key=lambda item: item.id)
        if [task.to_document() for task in incoming] == [task.to_document() for task in current]:
            return False

        for task in current:
            self._remove(task)
        for task in incoming:
            if task.id in self._dates_by_id:
                self._remove(self.get(task.id))
            self._insert(copy.deepcopy(task))
        return True
