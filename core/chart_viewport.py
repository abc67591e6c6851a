"""Pan/zoom state for the candle chart and the hand-off from the gesture thread."""

from __future__ import annotations

import math
import queue
from dataclasses import dataclass, replace
from typing import Sequence

import pandas as pd

from config.settings import MIN_VISIBLE_POINTS, MOVING_AVERAGE_WINDOWS
from core.indicators import add_moving_averages


def visible_bounds(total: int, minimum: int = MIN_VISIBLE_POINTS) -> tuple[int, int]:
    """Smallest and largest number of candles a zoom level may show."""
    if total <= 0:
        return (0, 0)
    lower = min(total, max(minimum, math.ceil(total / 40)))
    upper = min(total, max(lower, total // 5))
    return (lower, upper)


@dataclass(frozen=True)
class Viewport:
    """Visible window over `total` data points: `offset` is the first visible index."""

    total: int
    visible: int
    offset: int

    @property
    def stop(self) -> int:
        return self.offset + self.visible

    @classmethod
    def latest(cls, total: int, visible: int | None = None) -> "Viewport":
        """Window anchored at the newest data point."""
        lower, upper = visible_bounds(total)
        count = upper if visible is None else max(lower, min(upper, visible))
        return cls(total=total, visible=count, offset=max(0, total - count))

    def clamp_offset(self, offset: float) -> int:
        return int(max(0, min(self.total - self.visible, round(offset))))

    def pinch(self, scale: float) -> "Viewport":
        """Zoom around the right edge; scale > 1 zooms in."""
        if scale <= 0 or self.total <= 0:
            return self
        lower, upper = visible_bounds(self.total)
        visible = max(lower, min(upper, round(self.visible / scale)))
        right_edge = self.stop
        zoomed = replace(self, visible=visible)
        return replace(zoomed, offset=zoomed.clamp_offset(right_edge - visible))

    def pan(self, dx: float, point_width: float) -> "Viewport":
        """Drag right (positive dx) to scroll back toward older data."""
        if point_width <= 0:
            return self
        return replace(self, offset=self.clamp_offset(self.offset - dx / point_width))


class GestureBridge:
    """
    Carries viewport results from the gesture thread to the render thread.

    The gesture side never blocks: when the render side falls behind only
    the newest viewport matters, so older pending ones are dropped.
    """

    def __init__(self, initial: Viewport) -> None:
        self._pending: queue.Queue[Viewport] = queue.Queue(maxsize=1)
        self.current = initial

    def post(self, viewport: Viewport) -> None:
        while True:
            try:
                self._pending.put_nowait(viewport)
                return
            except queue.Full:
                try:
                    self._pending.get_nowait()
                except queue.Empty:
                    pass

    def drain(self) -> bool:
        """Apply the newest posted viewport; True if the view changed."""
        latest: Viewport | None = None
        while True:
            try:
                latest = self._pending.get_nowait()
            except queue.Empty:
                break
        if latest is None or latest == self.current:
            return False
        self.current = latest
        return True


def visible_frame(
    frame: pd.DataFrame,
    viewport: Viewport,
    windows: Sequence[int] = MOVING_AVERAGE_WINDOWS,
) -> pd.DataFrame:
    """Rows in view, with moving averages taken over the full history first."""
    enriched = add_moving_averages(frame.reset_index(drop=True), windows)
    return enriched.iloc[viewport.offset : viewport.stop].reset_index(drop=True)
