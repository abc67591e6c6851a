"""Per-user date -> OHLCV map and the arithmetic that moves the user's price."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Iterable, Mapping

from config.settings import DEFAULT_START_PRICE, MIN_PRICE
from core.models import StockBar, Task, round_percent, round_price

LOGGER = logging.getLogger("habitstock.stock_book")


def _parse_date(value: str) -> datetime.date:
    return datetime.date.fromisoformat(value)


def date_range(start: str, end: str) -> list[str]:
    """Inclusive list of ISO dates from start to end."""
    first = _parse_date(start)
    last = _parse_date(end)
    return [(first + datetime.timedelta(days=offset)).isoformat() for offset in range((last - first).days + 1)]


class StockBook:
    """Owns one user's daily bars; every price movement goes through here."""

    def __init__(self, base_price: float = DEFAULT_START_PRICE, records: Mapping[str, StockBar] | None = None) -> None:
        if base_price <= 0:
            raise ValueError(f"Base price must be positive, got {base_price}")
        self.base_price = float(base_price)
        self._records: dict[str, StockBar] = dict(records or {})

    @property
    def records(self) -> dict[str, StockBar]:
        return self._records

    @property
    def current_price(self) -> float:
        """Close of the most recent bar, or the base price before any activity."""
        if not self._records:
            return self.base_price
        return self._records[max(self._records)].close

    def price_before(self, date: str) -> float:
        earlier = [key for key in self._records if key < date]
        if not earlier:
            return self.base_price
        return self._records[max(earlier)].close

    def get(self, date: str) -> StockBar | None:
        return self._records.get(date)

    def ensure_bar(self, date: str) -> StockBar:
        """Return the bar for date, creating a flat one at the previous close."""
        bar = self._records.get(date)
        if bar is None:
            bar = StockBar.flat(date, self.price_before(date))
            self._records[date] = bar
        return bar

    def set_bar(self, bar: StockBar) -> None:
        self._records[bar.date] = bar

    def _carry_forward(self, date: str, shift: float) -> None:
        """Move every bar after `date` by the same amount, floored at MIN_PRICE."""
        if not shift:
            return
        for key in sorted(self._records):
            if key <= date:
                continue
            bar = self._records[key]
            bar.open = max(MIN_PRICE, round_price(bar.open + shift))
            bar.close = max(MIN_PRICE, round_price(bar.close + shift))
            bar.high = max(MIN_PRICE, round_price(bar.high + shift))
            bar.low = max(MIN_PRICE, round_price(bar.low + shift))

    def fill_range(self, start: str, end: str) -> dict[str, StockBar]:
        """Materialize flat bars for days without activity; returns only the new ones."""
        created: dict[str, StockBar] = {}
        for day in date_range(start, end):
            if day not in self._records:
                created[day] = self.ensure_bar(day)
        if created:
            LOGGER.debug("Filled %d empty days between %s and %s", len(created), start, end)
        return created

    def apply_delta(self, date: str, price_change: float, percentage: float, completed: bool) -> StockBar:
        """Add (completed) or remove (un-completed) one task's effect on the date's bar."""
        bar = self.ensure_bar(date)
        previous_close = bar.close
        sign = 1.0 if completed else -1.0

        bar.change_price = round_price(bar.change_price + sign * price_change)
        bar.change_rate = round_percent(bar.change_rate + sign * percentage)
        bar.close = round_price(bar.close + sign * price_change)
        if completed:
            bar.high = max(bar.high, bar.close)
            bar.volume += 1
        else:
            bar.low = min(bar.low, bar.close)
            bar.volume = max(0, bar.volume - 1)
        self._carry_forward(date, round_price(bar.close - previous_close))
        return bar

    def apply_boost(self, date: str, increase: float, percent_increase: float) -> StockBar:
        """Add a news-boost increment to the date's bar without counting a new event."""
        bar = self.ensure_bar(date)
        bar.change_price = round_price(bar.change_price + increase)
        bar.change_rate = round_percent(bar.change_rate + percent_increase)
        bar.close = round_price(bar.close + increase)
        bar.high = max(bar.high, bar.close)
        self._carry_forward(date, increase)
        return bar

    def settle_day(self, date: str, incomplete_tasks: Iterable[Task]) -> StockBar | None:
        """
        Apply the end-of-day penalty for tasks still open on their due date.

        The summed price change of every incomplete task is subtracted from
        that day's close, floored at MIN_PRICE, and later bars move with it.
        A day is settled at most once; returns None when there is nothing to do.
        """
        pending = list(incomplete_tasks)
        if not pending:
            return None
        existing = self._records.get(date)
        if existing is not None and existing.settled:
            LOGGER.info("%s already settled; skipping", date)
            return None

        total_change = round_price(sum(task.price_change for task in pending))
        total_rate = round_percent(sum(task.percentage for task in pending))
        bar = self.ensure_bar(date)
        current = bar.close
        new_price = max(MIN_PRICE, round_price(current - total_change))

        bar.change_price = round_price(bar.change_price - total_change)
        bar.change_rate = round_percent(bar.change_rate - total_rate)
        bar.close = new_price
        bar.high = max(bar.high, current)
        bar.low = min(bar.low, new_price)
        bar.volume += len(pending)
        bar.settled = True
        self._carry_forward(date, round_price(new_price - current))

        LOGGER.info(
            "Settled %s: %.1f -> %.1f (%d incomplete, change=%.1f)",
            date,
            current,
            new_price,
            len(pending),
            total_change,
        )
        return bar

    def replace(self, records: Mapping[str, StockBar]) -> None:
        self._records = dict(records)

    def to_document(self) -> dict[str, dict[str, Any]]:
        return {date: bar.to_document() for date, bar in self._records.items()}

    @classmethod
    def from_document(cls, payload: Mapping[str, Any] | None, base_price: float = DEFAULT_START_PRICE) -> "StockBook":
        records = {
            str(date): StockBar.from_document(value)
            for date, value in (payload or {}).items()
            if isinstance(value, Mapping)
        }
        return cls(base_price=base_price, records=records)
