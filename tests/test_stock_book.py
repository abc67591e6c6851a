"""Tests for bar arithmetic, gap filling and end-of-day settlement."""

from __future__ import annotations

import pytest

from core.models import StockBar, Task
from core.stock_book import StockBook, date_range


def _open_task(task_id, price_change, percentage=0.0):
    return Task(id=task_id, text=task_id, difficulty="hard", due_date="2024-01-03",
                price_change=price_change, percentage=percentage)


class TestStockBook:
    def test_base_price_before_any_activity(self):
        assert StockBook(base_price=100.0).current_price == 100.0

    def test_non_positive_base_price_rejected(self):
        with pytest.raises(ValueError):
            StockBook(base_price=0)

    def test_new_bar_opens_at_previous_close(self):
        book = StockBook(records={"2024-01-01": StockBar.flat("2024-01-01", 105.0)})
        bar = book.ensure_bar("2024-01-03")
        assert (bar.open, bar.close, bar.high, bar.low) == (105.0, 105.0, 105.0, 105.0)

    def test_uncomplete_lowers_low_and_floors_volume(self):
        book = StockBook()
        bar = book.apply_delta("2024-01-03", 2.0, 2.0, completed=False)
        assert bar.close == 98.0
        assert bar.low == 98.0
        assert bar.volume == 0

    def test_fill_range_returns_only_new_bars(self):
        book = StockBook(records={"2024-01-01": StockBar.flat("2024-01-01", 105.0)})
        created = book.fill_range("2024-01-01", "2024-01-03")

        assert sorted(created) == ["2024-01-02", "2024-01-03"]
        assert all(bar.close == 105.0 for bar in created.values())
        assert len(book.records) == 3

    def test_date_range_is_inclusive(self):
        assert date_range("2024-02-28", "2024-03-01") == ["2024-02-28", "2024-02-29", "2024-03-01"]


class TestSettlement:
    def test_nothing_to_settle(self):
        assert StockBook().settle_day("2024-01-03", []) is None

    def test_incomplete_tasks_pull_price_down(self):
        book = StockBook()
        bar = book.settle_day("2024-01-03", [_open_task("a", 1.5, 1.5), _open_task("b", 2.0, 2.0)])

        assert bar.close == 96.5
        assert bar.change_price == -3.5
        assert bar.change_rate == -3.5
        assert bar.high == 100.0
        assert bar.low == 96.5
        assert bar.volume == 2

    def test_price_never_drops_below_floor(self):
        book = StockBook()
        bar = book.settle_day("2024-01-03", [_open_task("a", 60.0), _open_task("b", 50.0)])

        assert bar.close == 1.0
        assert book.current_price == 1.0
        assert bar.low == 1.0

    def test_same_day_settles_once(self):
        book = StockBook()
        tasks = [_open_task("a", 2.0, 2.0)]

        first = book.settle_day("2024-01-03", tasks)
        second = book.settle_day("2024-01-03", tasks)

        assert first.settled
        assert second is None
        assert book.current_price == 98.0
        assert book.get("2024-01-03").volume == 1

    def test_past_day_moves_later_bars(self):
        book = StockBook(records={
            "2024-01-02": StockBar.flat("2024-01-02", 100.0),
            "2024-01-03": StockBar.flat("2024-01-03", 104.0),
        })

        book.settle_day("2024-01-02", [_open_task("a", 3.0, 3.0)])

        assert book.get("2024-01-02").close == 97.0
        assert book.current_price == 101.0


class TestCarryForward:
    def test_delta_on_earlier_day_shifts_later_bars(self):
        book = StockBook(records={"2024-01-05": StockBar.flat("2024-01-05", 100.0)})

        book.apply_delta("2024-01-03", 2.5, 2.5, completed=True)

        later = book.get("2024-01-05")
        assert (later.open, later.close, later.high, later.low) == (102.5, 102.5, 102.5, 102.5)
        assert book.current_price == 102.5

    def test_reversal_restores_later_bars(self):
        book = StockBook(records={"2024-01-05": StockBar.flat("2024-01-05", 100.0)})

        book.apply_delta("2024-01-03", 2.5, 2.5, completed=True)
        book.apply_delta("2024-01-03", 2.5, 2.5, completed=False)

        assert book.current_price == 100.0

    def test_boost_shifts_later_bars(self):
        book = StockBook(records={"2024-01-05": StockBar.flat("2024-01-05", 100.0)})
        book.apply_boost("2024-01-03", 1.2, 1.2)
        assert book.current_price == 101.2
