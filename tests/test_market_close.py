"""Tests for the end-of-day settlement runner."""

from __future__ import annotations

import datetime

from core.documents import todo_path, user_path
from core.session import UserSession
from core.store import JsonFileDocumentStore
from scripts.run_market_close import main, settle_users

DAY = datetime.date(2024, 1, 3)


def _seed(path, rng):
    store = JsonFileDocumentStore(path)
    alice = UserSession("alice", store, rng=rng, clock=lambda: DAY)
    alice.add_task("Water plants", "easy")
    UserSession("bob", store, rng=rng, clock=lambda: DAY)
    return store


class TestSettleUsers:
    def test_only_users_with_open_tasks_move(self, tmp_path, rng):
        store = _seed(tmp_path / "store.json", rng)

        results = settle_users(["alice", "bob"], store, DAY)

        assert results["alice"]["status"] == "settled"
        assert results["bob"] == {"status": "unchanged", "price": 100.0}
        assert store.get(user_path("alice"))["price"] == results["alice"]["price"]

    def test_chart_written_per_user(self, tmp_path, rng):
        store = _seed(tmp_path / "store.json", rng)

        results = settle_users(["alice"], store, DAY, chart_period="week", chart_dir=tmp_path / "charts")

        assert (tmp_path / "charts" / "alice_week.png").exists()
        assert results["alice"]["chart"].endswith("alice_week.png")

    def test_unloadable_user_does_not_stop_the_run(self, tmp_path, rng):
        store = _seed(tmp_path / "store.json", rng)
        store.set(user_path("bad"), {"uid": "bad", "price": 100.0})
        store.set(
            todo_path("bad", "t1"),
            {"id": "t1", "text": "Slay dragon", "difficulty": "legendary", "dueDate": DAY.isoformat()},
        )

        results = settle_users(["bad", "alice"], store, DAY)

        assert results["bad"]["status"] == "failed"
        assert "legendary" in results["bad"]["error"]
        assert results["alice"]["status"] == "settled"


class TestMain:
    def test_settles_every_user_in_store(self, tmp_path, rng, capsys):
        path = tmp_path / "store.json"
        _seed(path, rng)

        assert main(["--store", str(path), "--date", "2024-01-03"]) == 0

        output = capsys.readouterr().out
        assert "alice: " in output
        assert "bob: " in output
        assert JsonFileDocumentStore(path).get(user_path("alice"))["price"] <= 100.0
