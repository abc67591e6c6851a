"""Fold the daily OHLCV map into day, week or month buckets for charting."""

from __future__ import annotations

from typing import Iterable, Mapping

import pandas as pd

from core.errors import ValidationError
from core.models import DAY, MONTH, PERIODS, WEEK, Bucket, StockBar

FRAME_COLUMNS = ["Date", "Open", "Close", "High", "Low", "Volume"]


def _bars(records: Mapping[str, StockBar] | Iterable[StockBar]) -> list[StockBar]:
    if isinstance(records, Mapping):
        return list(records.values())
    return list(records)


def records_to_frame(records: Mapping[str, StockBar] | Iterable[StockBar]) -> pd.DataFrame:
    """Build a date-sorted OHLCV frame from stock bars."""
    rows = [
        {
            "Date": bar.date,
            "Open": bar.open,
            "Close": bar.close,
            "High": bar.high,
            "Low": bar.low,
            "Volume": bar.volume,
        }
        for bar in _bars(records)
    ]
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    return frame.sort_values("Date", kind="stable").reset_index(drop=True)


def _period_keys(dates: pd.Series, period: str) -> pd.Series:
    """Sunday that starts each week, or YYYY-MM for months."""
    parsed = pd.to_datetime(dates, format="%Y-%m-%d")
    if period == WEEK:
        # dayofweek is Monday=0; Sunday-anchored offset is (dayofweek + 1) % 7
        offsets = pd.to_timedelta((parsed.dt.dayofweek + 1) % 7, unit="D")
        return (parsed - offsets).dt.strftime("%Y-%m-%d")
    return parsed.dt.strftime("%Y-%m")


def aggregate_frame(frame: pd.DataFrame, period: str) -> pd.DataFrame:
    """Aggregate an OHLCV frame; the Date column holds the bucket key."""
    if period not in PERIODS:
        raise ValidationError(f"Unknown period: {period!r}")

    ordered = frame.sort_values("Date", kind="stable").reset_index(drop=True)
    if period == DAY or ordered.empty:
        return ordered[FRAME_COLUMNS].copy()

    ordered["Key"] = _period_keys(ordered["Date"], period)
    grouped = ordered.groupby("Key", sort=True).agg(
        Open=("Open", "first"),
        Close=("Close", "last"),
        High=("High", "max"),
        Low=("Low", "min"),
        Volume=("Volume", "sum"),
    )
    grouped = grouped.reset_index().rename(columns={"Key": "Date"})
    return grouped[FRAME_COLUMNS]


def aggregate(records: Mapping[str, StockBar] | Iterable[StockBar], period: str) -> list[Bucket]:
    """Return buckets sorted ascending by period key."""
    frame = aggregate_frame(records_to_frame(records), period)
    return [
        Bucket(
            key=str(row.Date),
            open=float(row.Open),
            close=float(row.Close),
            high=float(row.High),
            low=float(row.Low),
            volume=int(row.Volume),
        )
        for row in frame.itertuples(index=False)
    ]
