import argparse
import datetime
import logging
import os
import sys
from pathlib import Path

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from config.settings import LOGS_DIR, STORE_FILE
from core.aggregator import aggregate_frame, records_to_frame
from core.errors import HabitStockError
from core.models import PERIODS
from core.session import UserSession
from core.store import JsonFileDocumentStore
from core.visualizer import save_stock_chart


def _configure_logging():
    """Configure file logging for local and cron execution."""
    os.makedirs(LOGS_DIR, exist_ok=True)

    log_file = os.path.join(LOGS_DIR, "market_close.log")
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.handlers.clear()

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    root_logger.addHandler(file_handler)

    logging.getLogger("matplotlib").setLevel(logging.WARNING)


def _parse_date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from exc


def settle_users(
    user_ids: list[str],
    store: JsonFileDocumentStore,
    day: datetime.date,
    chart_period: str | None = None,
    chart_dir: Path | None = None,
) -> dict:
    """Apply the end-of-day penalty for each user; returns per-user closing prices."""
    logger = logging.getLogger("habitstock.market_close")
    results: dict[str, dict] = {}

    for user_id in user_ids:
        session = None
        try:
            session = UserSession(user_id, store, clock=lambda: day)
            bar = session.settle_day(day.isoformat())
            results[user_id] = {
                "status": "settled" if bar is not None else "unchanged",
                "price": session.current_price,
            }
            if chart_period:
                frame = aggregate_frame(records_to_frame(session.stock_book.records), chart_period)
                if not frame.empty:
                    results[user_id]["chart"] = str(save_stock_chart(user_id, frame, chart_period, chart_dir))
        except HabitStockError as error:
            logger.error("Failed to settle %s: %s", user_id, error)
            results[user_id] = {"status": "failed", "error": str(error)}
        finally:
            if session is not None:
                session.close()

    return results


def main(argv: list[str] | None = None):
    _configure_logging()
    logger = logging.getLogger("habitstock.market_close")

    parser = argparse.ArgumentParser(description="Run the HabitStock end-of-day settlement")
    parser.add_argument(
        "--user",
        action="append",
        dest="users",
        help="User id to settle; repeat for several (default: every user in the store)",
    )
    parser.add_argument("--store", default=STORE_FILE, help="Path to the JSON document store")
    parser.add_argument(
        "--date",
        type=_parse_date,
        default=None,
        help="Day to settle as YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--chart",
        choices=PERIODS,
        default=None,
        help="Also save a static chart aggregated by this period",
    )
    args = parser.parse_args(argv)

    day = args.date or datetime.date.today()
    start_time = datetime.datetime.now(datetime.timezone.utc)
    logger.info("Market close for %s started at %s", day.isoformat(), start_time.isoformat())

    exit_code = 0
    try:
        store = JsonFileDocumentStore(args.store)
        user_ids = args.users or sorted(store.list("users"))
        results = settle_users(user_ids, store, day, args.chart)
        for user_id, result in results.items():
            print(f"{user_id}: {result}")
        if any(result["status"] == "failed" for result in results.values()):
            exit_code = 1
    except KeyboardInterrupt:
        exit_code = 2
        logger.warning("Run interrupted by user")
    except Exception as error:
        exit_code = 1
        logger.error("Fatal error: %s", error)

    end_time = datetime.datetime.now(datetime.timezone.utc)
    logger.info("Market close ended at %s", end_time.isoformat())
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
