"""Static chart of a user's price history with moving-average overlays."""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd

from config.settings import DATA_DIR, MOVING_AVERAGE_WINDOWS
from core.indicators import add_moving_averages


def _chart_output_dir() -> Path:
    path = Path(DATA_DIR) / "charts"
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_stock_chart(user_id: str, frame: pd.DataFrame, period: str, output_dir: Path | None = None) -> Path:
    """Save close/MA chart with a volume panel for aggregated bucket data."""
    data = add_moving_averages(frame)
    dates = pd.to_datetime(data["Date"], format="%Y-%m" if period == "month" else "%Y-%m-%d")

    fig, (ax_price, ax_volume) = plt.subplots(
        2,
        1,
        figsize=(12, 7),
        sharex=True,
        gridspec_kw={"height_ratios": [3, 1]},
    )

    ax_price.plot(dates, data["Close"], label="Close", linewidth=1.6)
    for window in MOVING_AVERAGE_WINDOWS:
        ax_price.plot(dates, data[f"MA_{window}"], label=f"MA {window}", linewidth=1.0)
    ax_price.fill_between(dates, data["Low"], data["High"], alpha=0.12, label="High/Low")

    ax_price.legend(loc="upper left")
    ax_price.set_title(f"{user_id} | {period.title()} view")
    ax_price.set_ylabel("Price")
    ax_price.grid(True, alpha=0.25)

    ax_volume.bar(dates, data["Volume"], color="tab:gray")
    ax_volume.set_ylabel("Tasks")
    ax_volume.set_xlabel("Date")
    ax_volume.grid(True, alpha=0.25)

    fig.tight_layout()

    output_path = (output_dir or _chart_output_dir()) / f"{user_id}_{period}.png"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=130)
    plt.close(fig)
    return output_path
