"""High/low/volume summary of a user's stock history."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Mapping

import pandas as pd

from core.aggregator import records_to_frame
from core.models import StockBar

RECENT_WINDOW_DAYS = 7


@dataclass(frozen=True)
class PeriodStats:
    high: float
    low: float
    current: float
    high_date: str
    low_date: str

    def to_document(self) -> dict[str, Any]:
        return {
            "high": self.high,
            "low": self.low,
            "current": self.current,
            "highDate": self.high_date,
            "lowDate": self.low_date,
        }


@dataclass(frozen=True)
class StockSummary:
    recent_7_days: PeriodStats
    all_time: PeriodStats
    max_volume: int
    max_volume_date: str
    last_updated: str

    def to_document(self) -> dict[str, Any]:
        return {
            "recent7Days": self.recent_7_days.to_document(),
            "allTime": self.all_time.to_document(),
            "maxVolume": {"volume": self.max_volume, "date": self.max_volume_date},
            "lastUpdated": self.last_updated,
        }


def _period_stats(frame: pd.DataFrame, current: float) -> PeriodStats:
    if frame.empty:
        return PeriodStats(high=0.0, low=0.0, current=current, high_date="", low_date="")
    high_row = frame.loc[frame["High"].idxmax()]
    low_row = frame.loc[frame["Low"].idxmin()]
    return PeriodStats(
        high=float(high_row["High"]),
        low=float(low_row["Low"]),
        current=current,
        high_date=str(high_row["Date"]),
        low_date=str(low_row["Date"]),
    )


def calculate_summary(
    records: Mapping[str, StockBar],
    register_date: str,
    today: datetime.date | None = None,
) -> StockSummary:
    """Summarize the last week and the whole history, plus the busiest day."""
    now = datetime.datetime.now(datetime.timezone.utc).isoformat()
    frame = records_to_frame(records)

    if frame.empty:
        empty = PeriodStats(high=0.0, low=0.0, current=0.0, high_date=register_date, low_date=register_date)
        return StockSummary(
            recent_7_days=empty,
            all_time=empty,
            max_volume=0,
            max_volume_date=register_date,
            last_updated=now,
        )

    reference = today or datetime.date.today()
    cutoff = (reference - datetime.timedelta(days=RECENT_WINDOW_DAYS)).isoformat()
    current = float(frame["Close"].iloc[-1])
    recent = frame[frame["Date"] >= cutoff].reset_index(drop=True)

    max_volume = int(frame["Volume"].max())
    max_volume_date = str(frame.loc[frame["Volume"].idxmax(), "Date"]) if max_volume > 0 else ""

    return StockSummary(
        recent_7_days=_period_stats(recent, current),
        all_time=_period_stats(frame, current),
        max_volume=max(max_volume, 0),
        max_volume_date=max_volume_date,
        last_updated=now,
    )
