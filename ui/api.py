"""Request parsing and payload helpers for HabitStock UI API routes."""

from __future__ import annotations

from typing import Any

from core.follow import FriendStock
from core.ledger import BoostResult
from core.models import Bucket, StockBar, TasksByDifficulty
from core.news import NewsArticle


def parse_int(raw_value: str | None, default: int, min_value: int, max_value: int) -> int:
    """Parse bounded int from request args."""
    try:
        value = int(raw_value) if raw_value is not None else default
    except (TypeError, ValueError):
        value = default
    return max(min_value, min(max_value, value))


def serialize_tasks(group: TasksByDifficulty) -> dict[str, list[dict[str, Any]]]:
    return group.to_document()


def serialize_buckets(buckets: list[Bucket]) -> list[list[Any]]:
    return [bucket.as_row() for bucket in buckets]


def serialize_bars(records: dict[str, StockBar]) -> dict[str, dict[str, Any]]:
    return {date: records[date].to_document() for date in sorted(records)}


def serialize_friend_stocks(friend_stocks: FriendStock) -> dict[str, dict[str, dict[str, Any]]]:
    return {friend_id: serialize_bars(records) for friend_id, records in sorted(friend_stocks.items())}


def serialize_boost(article: NewsArticle, boost: BoostResult) -> dict[str, Any]:
    return {
        "news": article.to_document(),
        "task": boost.task.to_document(),
        "increase": boost.increase,
        "percentIncrease": boost.percent_increase,
    }
