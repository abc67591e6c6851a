"""One user's wired-up services: store, ledger, stock book, sync log, follow and news."""

from __future__ import annotations

import copy
import datetime
import logging
from typing import Any, Callable

import numpy as np

from config.settings import DEFAULT_START_PRICE
from core.aggregator import aggregate
from core.documents import stocks_path, summary_path, todo_path, todos_path, user_path
from core.errors import StoreError
from core.follow import FollowService
from core.ledger import BoostResult, TaskLedger, validate_date
from core.models import Bucket, StockBar, Task, TasksByDifficulty
from core.news import NewsClient, NewsService
from core.stock_book import StockBook
from core.store import InMemoryDocumentStore, Subscription
from core.summary import StockSummary, calculate_summary
from core.sync import PendingOperationLog

LOGGER = logging.getLogger("habitstock.session")


class UserSession:
    """
    Explicit service object for one signed-in user.

    Built once and handed to whatever needs it. Every mutation is applied
    locally first, then queued as a remote write with its inverse; with
    `autoflush` the queue is written immediately.
    """

    def __init__(
        self,
        user_id: str,
        store: InMemoryDocumentStore,
        rng: np.random.Generator | None = None,
        clock: Callable[[], datetime.date] | None = None,
        news_client: NewsClient | None = None,
        autoflush: bool = True,
        name: str | None = None,
        email: str | None = None,
    ) -> None:
        self.user_id = user_id
        self.store = store
        self.autoflush = autoflush
        self._clock = clock or datetime.date.today

        self.profile = self._load_profile(name, email)
        self.stock_book = StockBook.from_document(
            store.get(stocks_path(user_id)),
            base_price=float(self.profile.get("startPrice", DEFAULT_START_PRICE)),
        )
        self.ledger = TaskLedger(self.stock_book, rng=rng, clock=self._clock)
        for payload in store.list(todos_path(user_id)).values():
            self.ledger.restore(Task.from_document(payload))

        self.sync = PendingOperationLog()
        self.follow = FollowService(store, user_id)
        self.news = NewsService(self, news_client or NewsClient())
        self._day_subscription: Subscription | None = None
        self._stock_subscription: Subscription | None = None

    def _load_profile(self, name: str | None, email: str | None) -> dict[str, Any]:
        profile = self.store.get(user_path(self.user_id))
        if profile is None:
            display_name = (name or self.user_id).strip()
            profile = {
                "uid": self.user_id,
                "name": display_name,
                "nameLower": display_name.lower(),
                "email": (email or "").strip().lower(),
                "price": DEFAULT_START_PRICE,
                "startPrice": DEFAULT_START_PRICE,
                "registerDate": self.today(),
                "followingCount": 0,
                "followersCount": 0,
            }
            self.store.set(user_path(self.user_id), profile)
            LOGGER.info("Registered new user %s at %.1f", self.user_id, DEFAULT_START_PRICE)
        return profile

    def today(self) -> str:
        return self._clock().isoformat()

    @property
    def register_date(self) -> str:
        return str(self.profile.get("registerDate", self.today()))

    @property
    def current_price(self) -> float:
        return self.stock_book.current_price

    def flush(self) -> int:
        return self.sync.flush()

    def _after_record(self) -> None:
        if self.autoflush:
            self.flush()

    def _changed_bars(self, before: dict[str, StockBar]) -> dict[str, dict[str, Any]]:
        return {
            date: bar.to_document()
            for date, bar in self.stock_book.records.items()
            if before.get(date) != bar
        }

    def _record_change(
        self,
        description: str,
        task_id: str,
        action: Callable[[], Any],
        deleted: bool = False,
        extra_documents: dict[str, dict[str, Any]] | None = None,
    ) -> Any:
        """
        Apply a ledger action locally and queue the matching remote batch.

        `extra_documents` are written in the same batch, so they land only
        if the task and price writes do.
        """
        task_before = self.ledger.snapshot(task_id)
        records_before = copy.deepcopy(self.stock_book.records)

        result = action()

        task_after = None if deleted else self.ledger.snapshot(task_id)
        changed_bars = self._changed_bars(records_before)
        price_after = self.stock_book.current_price
        summary_after = self.summary().to_document()
        extras = copy.deepcopy(extra_documents or {})

        def remote() -> None:
            batch = self.store.batch()
            if task_after is None:
                batch.delete(todo_path(self.user_id, task_id))
            else:
                batch.set(todo_path(self.user_id, task_id), task_after.to_document())
            if changed_bars:
                batch.set(stocks_path(self.user_id), changed_bars, merge=True)
                batch.set(summary_path(self.user_id), summary_after)
            for path, document in extras.items():
                batch.set(path, document)
            batch.update(user_path(self.user_id), {"price": price_after})
            batch.commit()

        def inverse() -> None:
            self.ledger.restore(task_before)
            self.stock_book.replace(copy.deepcopy(records_before))

        self.sync.record(description, remote, inverse)
        self._after_record()
        return result

    def add_task(self, text: str, difficulty: str, due_date: str | None = None) -> Task:
        task = self.ledger.create(text, difficulty, due_date or self.today())
        created = copy.deepcopy(task)
        self.sync.record(
            f"create task {task.id}",
            remote=lambda: self.store.set(todo_path(self.user_id, created.id), created.to_document()),
            inverse=lambda: self.ledger.discard(created.id),
        )
        self._after_record()
        return task

    def toggle_task(self, task_id: str) -> Task:
        return self._record_change(f"toggle task {task_id}", task_id, lambda: self.ledger.toggle_complete(task_id))

    def delete_task(self, task_id: str) -> Task:
        return self._record_change(
            f"delete task {task_id}",
            task_id,
            lambda: self.ledger.delete(task_id),
            deleted=True,
        )

    def edit_task_text(self, task_id: str, text: str) -> Task:
        return self._record_change(f"edit task {task_id}", task_id, lambda: self.ledger.edit_text(task_id, text))

    def edit_task_difficulty(self, task_id: str, difficulty: str) -> Task:
        return self._record_change(
            f"edit task {task_id}",
            task_id,
            lambda: self.ledger.edit_difficulty(task_id, difficulty),
        )

    def edit_task_due_date(self, task_id: str, due_date: str) -> Task:
        return self._record_change(
            f"edit task {task_id}",
            task_id,
            lambda: self.ledger.edit_due_date(task_id, due_date),
        )

    def boost_task(self, task_id: str, extra_documents: dict[str, dict[str, Any]] | None = None) -> BoostResult:
        return self._record_change(
            f"boost task {task_id}",
            task_id,
            lambda: self.ledger.apply_news_boost(task_id),
            extra_documents=extra_documents,
        )

    def tasks_for(self, date: str) -> TasksByDifficulty:
        return self.ledger.tasks_for(date)

    def settle_day(self, date: str | None = None) -> StockBar | None:
        """Charge today's (or `date`'s) incomplete tasks against the price."""
        day = validate_date(date) if date else self.today()
        incomplete = self.ledger.incomplete_for(day)
        records_before = copy.deepcopy(self.stock_book.records)
        bar = self.stock_book.settle_day(day, incomplete)
        if bar is None:
            LOGGER.info("%s: nothing to settle for %s", self.user_id, day)
            return None

        changed_bars = self._changed_bars(records_before)
        price_after = self.stock_book.current_price
        summary_after = self.summary().to_document()

        def remote() -> None:
            batch = self.store.batch()
            batch.set(stocks_path(self.user_id), changed_bars, merge=True)
            batch.set(summary_path(self.user_id), summary_after)
            batch.update(user_path(self.user_id), {"price": price_after})
            batch.commit()

        def inverse() -> None:
            self.stock_book.replace(copy.deepcopy(records_before))

        self.sync.record(f"settle {day}", remote, inverse)
        self._after_record()
        return bar

    def load_range(self, start_date: str, end_date: str) -> dict[str, StockBar]:
        """
        Bars within the range, persisting flat bars for days without activity.

        Days after today are never materialized.
        """
        start_date = validate_date(start_date)
        end_date = min(validate_date(end_date), self.today())
        if start_date > end_date:
            return {}
        created = self.stock_book.fill_range(start_date, end_date)
        if created:
            payload = {date: bar.to_document() for date, bar in created.items()}
            try:
                self.store.set(stocks_path(self.user_id), payload, merge=True)
            except StoreError as exc:
                LOGGER.warning("Failed to persist %d filled days: %s", len(created), exc)
        return {
            date: bar
            for date, bar in self.stock_book.records.items()
            if start_date <= date <= end_date
        }

    def buckets(self, period: str) -> list[Bucket]:
        return aggregate(self.stock_book.records, period)

    def summary(self) -> StockSummary:
        return calculate_summary(self.stock_book.records, self.register_date, self._clock())

    def watch_day(self, date: str, on_update: Callable[[TasksByDifficulty], None]) -> Subscription:
        """
        Follow server state for one date. Any previous date watch is torn
        down first so stale-date callbacks never interleave with new ones.
        """
        if self._day_subscription is not None:
            self._day_subscription.unsubscribe()

        def _handle(documents: dict | None) -> None:
            tasks = [
                Task.from_document(payload)
                for payload in (documents or {}).values()
                if payload.get("dueDate") == date
            ]
            if self.ledger.replace_day(date, tasks):
                on_update(self.ledger.tasks_for(date))

        self._day_subscription = self.store.subscribe(todos_path(self.user_id), _handle)
        return self._day_subscription

    def watch_stocks(self, on_update: Callable[[dict[str, StockBar]], None]) -> Subscription:
        if self._stock_subscription is not None:
            self._stock_subscription.unsubscribe()

        def _handle(document: dict | None) -> None:
            incoming = StockBook.from_document(document, base_price=self.stock_book.base_price).records
            if incoming == self.stock_book.records:
                return
            self.stock_book.replace(incoming)
            on_update(self.stock_book.records)

        self._stock_subscription = self.store.subscribe(stocks_path(self.user_id), _handle)
        return self._stock_subscription

    def close(self) -> None:
        for subscription in (self._day_subscription, self._stock_subscription):
            if subscription is not None:
                subscription.unsubscribe()
        self._day_subscription = None
        self._stock_subscription = None
        self.follow.unsubscribe()
