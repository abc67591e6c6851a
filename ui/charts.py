"""Interactive chart builders for the HabitStock UI."""

from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go
from plotly.offline import plot
from plotly.subplots import make_subplots

from config.settings import MOVING_AVERAGE_WINDOWS
from core.aggregator import aggregate_frame, records_to_frame
from core.chart_viewport import Viewport, visible_frame
from core.follow import FriendStock

_MA_COLORS = {5: "#f59f00", 20: "#2f9e44", 60: "#7048e8"}


def _as_div(figure: go.Figure) -> str:
    return plot(
        figure,
        output_type="div",
        include_plotlyjs=False,
        config={"displaylogo": False, "responsive": True},
    )


def build_candle_chart(frame: pd.DataFrame, viewport: Viewport | None = None, title: str = "My Stock") -> str:
    """Candlestick + volume chart; moving averages span the full history before slicing."""
    view = viewport or Viewport.latest(len(frame))
    data = visible_frame(frame, view)

    figure = make_subplots(
        rows=2,
        cols=1,
        shared_xaxes=True,
        row_heights=[0.78, 0.22],
        vertical_spacing=0.04,
    )

    figure.add_trace(
        go.Candlestick(
            x=data["Date"],
            open=data["Open"],
            high=data["High"],
            low=data["Low"],
            close=data["Close"],
            name="Price",
            increasing_line_color="#e03131",
            decreasing_line_color="#1971c2",
        ),
        row=1,
        col=1,
    )

    for window in MOVING_AVERAGE_WINDOWS:
        figure.add_trace(
            go.Scatter(
                x=data["Date"],
                y=data[f"MA_{window}"],
                mode="lines",
                name=f"MA {window}",
                line={"width": 1.2, "color": _MA_COLORS.get(window)},
                hovertemplate="%{x}<br>MA: %{y:.1f}<extra></extra>",
            ),
            row=1,
            col=1,
        )

    figure.add_trace(
        go.Bar(
            x=data["Date"],
            y=data["Volume"],
            name="Tasks",
            marker_color="#868e96",
            hovertemplate="%{x}<br>Tasks: %{y}<extra></extra>",
        ),
        row=2,
        col=1,
    )

    figure.update_layout(
        title=title,
        template="plotly_white",
        hovermode="x unified",
        showlegend=True,
        legend={"orientation": "h", "y": 1.1},
        margin={"l": 30, "r": 20, "t": 60, "b": 30},
        xaxis_rangeslider_visible=False,
        yaxis={"title": "Price"},
        yaxis2={"title": "Tasks"},
    )
    figure.update_xaxes(type="category")
    return _as_div(figure)


def build_friend_comparison_chart(friend_stocks: FriendStock, period: str = "day") -> str:
    """Close series of every followed user on one chart."""
    figure = go.Figure()
    for friend_id, records in sorted(friend_stocks.items()):
        if not records:
            continue
        data = aggregate_frame(records_to_frame(records), period)
        figure.add_trace(
            go.Scatter(
                x=data["Date"],
                y=data["Close"],
                mode="lines+markers",
                name=friend_id,
                hovertemplate="%{x}<br>Close: %{y:.1f}<extra></extra>",
            )
        )

    figure.update_layout(
        title="Friends",
        template="plotly_white",
        hovermode="x unified",
        margin={"l": 30, "r": 20, "t": 60, "b": 30},
        yaxis={"title": "Price"},
    )
    return _as_div(figure)
