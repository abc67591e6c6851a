"""Tests for the task ledger and how it moves the stock book."""

from __future__ import annotations

import pytest

from core.errors import BoostNotAllowedError, TaskNotFoundError, ValidationError
from core.ledger import TaskLedger
from core.models import Task
from core.stock_book import StockBook

TODAY = "2024-01-03"


@pytest.fixture
def book():
    return StockBook(base_price=100.0)


@pytest.fixture
def ledger(book, rng, clock):
    return TaskLedger(book, rng=rng, clock=clock)


class TestCreate:
    def test_delta_is_frozen_at_creation(self, ledger, book):
        task = ledger.create("Read 20 pages", "medium", TODAY)

        assert task.price_change >= 0
        assert task.applied_price_change == 0.0
        assert not task.completed
        assert book.current_price == 100.0
        assert ledger.tasks_for(TODAY).medium == [task]

    def test_empty_text_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.create("   ", "easy", TODAY)

    def test_unknown_difficulty_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.create("Stretch", "trivial", TODAY)

    def test_bad_due_date_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.create("Stretch", "easy", "2024-13-01")

    def test_colliding_ids_are_bumped(self, book, rng, clock):
        ledger = TaskLedger(book, rng=rng, clock=clock, id_factory=lambda: "1000")
        first = ledger.create("One", "easy", TODAY)
        second = ledger.create("Two", "easy", TODAY)
        assert (first.id, second.id) == ("1000", "1001")


class TestToggle:
    def test_complete_moves_price_by_frozen_delta(self, ledger, book):
        task = ledger.create("Gym", "hard", TODAY)
        ledger.toggle_complete(task.id)

        bar = book.get(TODAY)
        assert task.completed
        assert task.applied_price_change == task.price_change
        assert book.current_price == pytest.approx(100.0 + task.price_change)
        assert bar.volume == 1
        assert bar.high == bar.close

    def test_double_toggle_restores_applied_totals(self, ledger, book):
        task = ledger.create("Gym", "extreme", TODAY)
        before = (task.applied_price_change, task.applied_percentage)

        ledger.toggle_complete(task.id)
        ledger.toggle_complete(task.id)

        assert task.applied_price_change == pytest.approx(before[0], abs=0.1)
        assert task.applied_percentage == pytest.approx(before[1], abs=0.01)
        assert book.current_price == pytest.approx(100.0)
        assert book.get(TODAY).volume == 0

    def test_unknown_task(self, ledger):
        with pytest.raises(TaskNotFoundError):
            ledger.toggle_complete("missing")


class TestDelete:
    def test_deleting_completed_task_reverses_its_delta(self, ledger, book):
        task = ledger.create("Meditate", "medium", TODAY)
        ledger.toggle_complete(task.id)
        price_before = book.current_price
        applied = task.applied_price_change

        ledger.delete(task.id)

        assert book.current_price == pytest.approx(price_before - applied)
        assert ledger.tasks_for(TODAY).all() == []
        with pytest.raises(TaskNotFoundError):
            ledger.get(task.id)

    def test_deleting_open_task_leaves_price(self, ledger, book):
        task = ledger.create("Meditate", "medium", TODAY)
        ledger.delete(task.id)
        assert book.current_price == 100.0
        assert book.get(TODAY) is None


class TestNewsBoost:
    @pytest.fixture
    def completed(self, ledger, book):
        task = Task(
            id="t1",
            text="Ship it",
            difficulty="hard",
            due_date=TODAY,
            price_change=10.0,
            percentage=10.0,
            completed=True,
            applied_price_change=10.0,
            applied_percentage=10.0,
        )
        ledger.restore(task)
        book.apply_delta(TODAY, 10.0, 10.0, completed=True)
        return ledger.get("t1")

    def test_boost_grows_delta_once(self, ledger, book, completed):
        result = ledger.apply_news_boost(completed.id)

        assert result.increase == 5.0
        assert completed.price_change == 15.0
        assert completed.applied_price_change == 15.0
        assert completed.has_generated_news
        assert book.current_price == 115.0

    def test_second_boost_rejected(self, ledger, book, completed):
        ledger.apply_news_boost(completed.id)
        with pytest.raises(BoostNotAllowedError):
            ledger.apply_news_boost(completed.id)
        assert completed.price_change == 15.0
        assert book.current_price == 115.0

    def test_open_task_cannot_be_boosted(self, ledger):
        task = ledger.create("Walk", "easy", TODAY)
        with pytest.raises(BoostNotAllowedError):
            ledger.apply_news_boost(task.id)


class TestEdits:
    def test_difficulty_edit_redraws_delta_only(self, ledger):
        task = ledger.create("Study", "easy", TODAY)
        ledger.toggle_complete(task.id)
        applied = task.applied_price_change

        ledger.edit_difficulty(task.id, "extreme")

        assert ledger.tasks_for(TODAY).easy == []
        assert ledger.tasks_for(TODAY).extreme == [task]
        assert task.applied_price_change == applied

    def test_due_date_edit_moves_task(self, ledger):
        task = ledger.create("Study", "easy", TODAY)
        ledger.edit_due_date(task.id, "2024-01-05")

        assert ledger.tasks_for(TODAY).all() == []
        assert ledger.tasks_for("2024-01-05").easy == [task]
        assert ledger.dates() == ["2024-01-05"]

    def test_text_edit_strips_and_validates(self, ledger):
        task = ledger.create("Study", "easy", TODAY)
        ledger.edit_text(task.id, "  Study harder ")
        assert task.text == "Study harder"
        assert task.updated_at is not None
        with pytest.raises(ValidationError):
            ledger.edit_text(task.id, "")


class TestReconcile:
    def test_identical_snapshot_is_a_no_op(self, ledger):
        task = ledger.create("Walk", "easy", TODAY)
        assert ledger.replace_day(TODAY, [ledger.snapshot(task.id)]) is False

    def test_snapshot_replaces_day(self, ledger):
        ledger.create("Walk", "easy", TODAY)
        incoming = Task(id="remote", text="Swim", difficulty="hard", due_date=TODAY)

        assert ledger.replace_day(TODAY, [incoming]) is True
        assert [task.id for task in ledger.tasks_for(TODAY).all()] == ["remote"]
