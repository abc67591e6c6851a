"""Tests for day/week/month bucketing of daily bars."""

from __future__ import annotations

import pytest

from core.aggregator import aggregate, aggregate_frame, records_to_frame
from core.errors import ValidationError
from core.models import StockBar


def _bar(date, open_, close, high, low, volume):
    return StockBar(date=date, open=open_, close=close, high=high, low=low, volume=volume)


@pytest.fixture
def same_week():
    return {
        "2024-01-01": _bar("2024-01-01", 100, 105, 108, 99, 10),
        "2024-01-02": _bar("2024-01-02", 105, 102, 107, 101, 20),
        "2024-01-03": _bar("2024-01-03", 102, 110, 112, 100, 5),
    }


class TestAggregate:
    def test_day_returns_every_record_sorted(self, same_week):
        shuffled = [same_week["2024-01-03"], same_week["2024-01-01"], same_week["2024-01-02"]]
        buckets = aggregate(shuffled, "day")

        assert [bucket.key for bucket in buckets] == ["2024-01-01", "2024-01-02", "2024-01-03"]
        assert [bucket.volume for bucket in buckets] == [10, 20, 5]
        assert buckets[1].close == 102

    def test_week_folds_into_one_bucket(self, same_week):
        buckets = aggregate(same_week, "week")

        assert len(buckets) == 1
        bucket = buckets[0]
        assert (bucket.open, bucket.close, bucket.high, bucket.low, bucket.volume) == (100, 110, 112, 99, 35)

    def test_week_key_is_the_starting_sunday(self, same_week):
        assert aggregate(same_week, "week")[0].key == "2023-12-31"

    def test_saturday_and_sunday_fall_in_different_weeks(self):
        records = [
            _bar("2024-01-06", 100, 101, 101, 100, 1),
            _bar("2024-01-07", 101, 99, 101, 99, 2),
        ]
        keys = [bucket.key for bucket in aggregate(records, "week")]
        assert keys == ["2023-12-31", "2024-01-07"]

    def test_month_buckets(self):
        records = [
            _bar("2024-02-01", 110, 120, 121, 109, 4),
            _bar("2024-01-30", 100, 105, 106, 98, 1),
            _bar("2024-01-31", 105, 110, 111, 104, 2),
        ]
        buckets = aggregate(records, "month")

        assert [bucket.key for bucket in buckets] == ["2024-01", "2024-02"]
        assert buckets[0].open == 100
        assert buckets[0].close == 110
        assert buckets[0].low == 98
        assert buckets[0].volume == 3
        assert buckets[1].high == 121

    def test_empty_history(self):
        assert aggregate({}, "week") == []

    def test_unknown_period_rejected(self, same_week):
        with pytest.raises(ValidationError):
            aggregate(same_week, "year")


class TestFrames:
    def test_records_to_frame_sorts_by_date(self, same_week):
        frame = records_to_frame(reversed(list(same_week.values())))
        assert list(frame["Date"]) == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_aggregate_frame_keeps_columns(self, same_week):
        frame = aggregate_frame(records_to_frame(same_week), "month")
        assert list(frame.columns) == ["Date", "Open", "Close", "High", "Low", "Volume"]
        assert frame.iloc[0]["Date"] == "2024-01"
