"""Tests for rounding helpers and document conversion."""

from __future__ import annotations

import pytest

from core.errors import ValidationError
from core.models import StockBar, Task, TasksByDifficulty, round_percent, round_price, validate_difficulty


class TestRounding:
    def test_round_price_is_half_up(self):
        assert round_price(0.25) == 0.3
        assert round_price(0.05) == 0.1
        assert round_price(2.449) == 2.4

    def test_round_percent_is_half_up(self):
        assert round_percent(1.005) == 1.01
        assert round_percent(0.004) == 0.0

    def test_negative_values_round_away_from_zero(self):
        assert round_price(-0.25) == -0.3


class TestDocuments:
    def test_task_document_uses_stored_field_names(self):
        task = Task(id="1", text="Run", difficulty="easy", due_date="2024-01-03", price_change=0.4, percentage=0.4)
        document = task.to_document()

        assert document["dueDate"] == "2024-01-03"
        assert document["priceChange"] == 0.4
        assert "hasGeneratedNews" not in document
        assert Task.from_document(document) == task

    def test_news_flag_written_once_set(self):
        task = Task(id="1", text="Run", difficulty="easy", due_date="2024-01-03", has_generated_news=True)
        assert task.to_document()["hasGeneratedNews"] is True

    def test_bar_from_sparse_document(self):
        bar = StockBar.from_document({"date": "2024-01-01", "open": 100, "close": 101})
        assert bar.volume == 0
        assert bar.change_price == 0.0

    def test_unknown_difficulty_in_document_rejected(self):
        with pytest.raises(ValidationError):
            Task.from_document({"id": "1", "difficulty": "impossible"})


class TestTasksByDifficulty:
    def test_all_is_ordered_by_tier(self):
        group = TasksByDifficulty()
        group.bucket("extreme").append(Task(id="x", text="x", difficulty="extreme", due_date="2024-01-01"))
        group.bucket("easy").append(Task(id="e", text="e", difficulty="easy", due_date="2024-01-01"))
        assert [task.id for task in group.all()] == ["e", "x"]

    def test_validate_difficulty_normalizes(self):
        assert validate_difficulty(" HARD ") == "hard"
