"""UI data models for the stock view."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from core.models import Bucket
from core.summary import StockSummary
from ui.api import serialize_buckets


@dataclass
class StockViewModel:
    """Stock tab payload for one user and period."""

    user_id: str
    period: str
    current_price: float
    buckets: list[Bucket]
    summary: StockSummary
    pending_writes: int = 0
    chart_html: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "userId": self.user_id,
            "period": self.period,
            "currentPrice": self.current_price,
            "buckets": serialize_buckets(self.buckets),
            "summary": self.summary.to_document(),
            "pendingWrites": self.pending_writes,
        }
        if self.chart_html is not None:
            payload["chartHtml"] = self.chart_html
        return payload
