"""Task and price-bar records shared by the ledger, stock book and store."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from core.errors import ValidationError

EASY = "easy"
MEDIUM = "medium"
HARD = "hard"
EXTREME = "extreme"
DIFFICULTIES = (EASY, MEDIUM, HARD, EXTREME)

DAY = "day"
WEEK = "week"
MONTH = "month"
PERIODS = (DAY, WEEK, MONTH)


def _quantize(value: float, places: str) -> float:
    return float(Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def round_price(value: float) -> float:
    """Round a currency amount half-up to one decimal."""
    return _quantize(value, "0.1")


def round_percent(value: float) -> float:
    """Round a percent-unit value half-up to two decimals."""
    return _quantize(value, "0.01")


def validate_difficulty(difficulty: str) -> str:
    normalized = str(difficulty or "").strip().lower()
    if normalized not in DIFFICULTIES:
        raise ValidationError(f"Unknown difficulty: {difficulty!r}")
    return normalized


@dataclass
class Task:
    """One unit of user-defined work and its frozen price effect."""

    id: str
    text: str
    difficulty: str
    due_date: str
    price_change: float = 0.0
    percentage: float = 0.0
    completed: bool = False
    applied_price_change: float = 0.0
    applied_percentage: float = 0.0
    has_generated_news: bool = False
    updated_at: str | None = None

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "difficulty": self.difficulty,
            "dueDate": self.due_date,
            "priceChange": self.price_change,
            "percentage": self.percentage,
            "appliedPriceChange": self.applied_price_change,
            "appliedPercentage": self.applied_percentage,
        }
        if self.has_generated_news:
            payload["hasGeneratedNews"] = True
        if self.updated_at is not None:
            payload["updatedAt"] = self.updated_at
        return payload

    @classmethod
    def from_document(cls, payload: dict[str, Any]) -> "Task":
        return cls(
            id=str(payload["id"]),
            text=str(payload.get("text", "")),
            difficulty=validate_difficulty(payload.get("difficulty", "")),
            due_date=str(payload.get("dueDate", "")),
            price_change=float(payload.get("priceChange", 0.0)),
            percentage=float(payload.get("percentage", 0.0)),
            completed=bool(payload.get("completed", False)),
            applied_price_change=float(payload.get("appliedPriceChange", 0.0)),
            applied_percentage=float(payload.get("appliedPercentage", 0.0)),
            has_generated_news=bool(payload.get("hasGeneratedNews", False)),
            updated_at=payload.get("updatedAt"),
        )


@dataclass
class StockBar:
    """One calendar day's simulated OHLCV bar."""

    date: str
    open: float
    close: float
    high: float
    low: float
    change_price: float = 0.0
    change_rate: float = 0.0
    volume: int = 0
    settled: bool = False

    @classmethod
    def flat(cls, date: str, price: float) -> "StockBar":
        """Default bar for a day with no activity."""
        return cls(date=date, open=price, close=price, high=price, low=price)

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "date": self.date,
            "open": self.open,
            "close": self.close,
            "high": self.high,
            "low": self.low,
            "changePrice": self.change_price,
            "changeRate": self.change_rate,
            "volume": self.volume,
        }
        if self.settled:
            payload["settled"] = True
        return payload

    @classmethod
    def from_document(cls, payload: dict[str, Any]) -> "StockBar":
        return cls(
            date=str(payload["date"]),
            open=float(payload.get("open", 0.0)),
            close=float(payload.get("close", 0.0)),
            high=float(payload.get("high", 0.0)),
            low=float(payload.get("low", 0.0)),
            change_price=float(payload.get("changePrice", 0.0)),
            change_rate=float(payload.get("changeRate", 0.0)),
            volume=int(payload.get("volume", 0)),
            settled=bool(payload.get("settled", False)),
        )


@dataclass(frozen=True)
class Bucket:
    """Aggregated bar over a day, week or month."""

    key: str
    open: float
    close: float
    high: float
    low: float
    volume: int

    def as_row(self) -> list[Any]:
        return [self.key, self.open, self.close, self.high, self.low, self.volume]


@dataclass
class TasksByDifficulty:
    """Tasks due on one date, grouped by difficulty tier."""

    easy: list[Task] = field(default_factory=list)
    medium: list[Task] = field(default_factory=list)
    hard: list[Task] = field(default_factory=list)
    extreme: list[Task] = field(default_factory=list)

    def bucket(self, difficulty: str) -> list[Task]:
        return getattr(self, validate_difficulty(difficulty))

    def all(self) -> list[Task]:
        return [task for difficulty in DIFFICULTIES for task in self.bucket(difficulty)]

    def to_document(self) -> dict[str, list[dict[str, Any]]]:
        return {
            difficulty: [task.to_document() for task in self.bucket(difficulty)]
            for difficulty in DIFFICULTIES
        }
