"""Moving-average overlays computed on the full closing-price history."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from config.settings import MOVING_AVERAGE_WINDOWS


def _rolling_mean(series: pd.Series, window: int) -> pd.Series:
    return series.rolling(window=window, min_periods=window).mean()


def moving_average(series: Sequence[float], window: int) -> list[float | None]:
    """Trailing mean of the last `window` values; `None` until enough history exists."""
    if window < 1:
        raise ValueError(f"Window must be at least 1, got {window}")

    averaged = _rolling_mean(pd.Series(list(series), dtype="float64"), window)
    return [None if pd.isna(value) else float(value) for value in averaged]


def add_moving_averages(
    frame: pd.DataFrame,
    windows: Sequence[int] = MOVING_AVERAGE_WINDOWS,
) -> pd.DataFrame:
    """Return a copy of bucket data with MA_<window> columns over the Close series."""
    enriched = frame.copy()
    for window in windows:
        enriched[f"MA_{window}"] = _rolling_mean(enriched["Close"].astype("float64"), window)
    return enriched


def visible_moving_averages(
    closes: Sequence[float],
    start: int,
    stop: int,
    windows: Sequence[int] = MOVING_AVERAGE_WINDOWS,
) -> dict[int, list[float | None]]:
    """Slice averages computed on the whole series to the visible window."""
    return {window: moving_average(closes, window)[start:stop] for window in windows}
