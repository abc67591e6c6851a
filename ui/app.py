"""Local Flask JSON API over one user's HabitStock session."""

from __future__ import annotations

from dataclasses import replace
import logging
import os
from pathlib import Path
import sys
from typing import Any

from flask import Flask, got_request_exception, jsonify, request

# Make `python ui/app.py` work without external PYTHONPATH setup.
THIS_DIR = Path(__file__).resolve().parent
PROJECT_DIR = THIS_DIR.parent
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from config.settings import LOGS_DIR, STORE_FILE
from core.aggregator import aggregate_frame, records_to_frame
from core.chart_viewport import Viewport, visible_bounds
from core.errors import (
    BoostNotAllowedError,
    NewsServiceError,
    StoreError,
    SyncError,
    TaskNotFoundError,
    ValidationError,
)
from core.ledger import validate_date
from core.models import DAY, PERIODS
from core.reports import submit_report
from core.session import UserSession
from core.store import JsonFileDocumentStore
from ui.api import (
    parse_int,
    serialize_bars,
    serialize_boost,
    serialize_friend_stocks,
    serialize_tasks,
)
from ui.charts import build_candle_chart, build_friend_comparison_chart
from ui.models import StockViewModel

DEFAULT_USER_ID = os.getenv("HABITSTOCK_USER", "local")


def _configure_ui_logger() -> logging.Logger:
    """Configure file logger for the UI app."""
    logs_dir = Path(LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / "ui.log"

    logger = logging.getLogger("habitstock.ui")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    existing = None
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            existing = handler
            break

    if existing is None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    return logger


def _json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


def create_app(session: UserSession | None = None) -> Flask:
    """Create the Flask application around an explicit user session."""
    app = Flask(__name__)
    logger = _configure_ui_logger()

    if session is None:
        session = UserSession(DEFAULT_USER_ID, JsonFileDocumentStore(STORE_FILE))
    app.config["USER_SESSION"] = session
    logger.info("UI app initialized for user %s", session.user_id)

    def _error(message: str, status_code: int):
        return jsonify({"error": message}), status_code

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return _error(str(exc), 400)

    @app.errorhandler(TaskNotFoundError)
    def _not_found(exc: TaskNotFoundError):
        return _error(str(exc), 404)

    @app.errorhandler(BoostNotAllowedError)
    def _boost_rejected(exc: BoostNotAllowedError):
        return _error(str(exc), 409)

    @app.errorhandler(SyncError)
    def _sync_failed(exc: SyncError):
        logger.warning("Write rolled back: %s", exc)
        return _error(str(exc), 502)

    @app.errorhandler(NewsServiceError)
    def _news_failed(exc: NewsServiceError):
        logger.warning("News generation failed: %s", exc)
        return _error(str(exc), 502)

    @app.route("/api/tasks/<date>")
    def tasks_for_date(date: str):
        day = validate_date(date)
        return jsonify({"date": day, "tasks": serialize_tasks(session.tasks_for(day))})

    @app.route("/api/tasks", methods=["POST"])
    def create_task():
        body = _json_body()
        task = session.add_task(
            str(body.get("text", "")),
            str(body.get("difficulty", "")),
            body.get("dueDate") or None,
        )
        return jsonify(task.to_document()), 201

    @app.route("/api/tasks/<task_id>/toggle", methods=["POST"])
    def toggle_task(task_id: str):
        task = session.toggle_task(task_id)
        return jsonify({"task": task.to_document(), "price": session.current_price})

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    def edit_task(task_id: str):
        body = _json_body()
        session.ledger.get(task_id)
        if "text" in body:
            session.edit_task_text(task_id, str(body["text"]))
        if "difficulty" in body:
            session.edit_task_difficulty(task_id, str(body["difficulty"]))
        if "dueDate" in body:
            session.edit_task_due_date(task_id, str(body["dueDate"]))
        return jsonify(session.ledger.get(task_id).to_document())

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def delete_task(task_id: str):
        task = session.delete_task(task_id)
        return jsonify({"deleted": task.id, "price": session.current_price})

    @app.route("/api/tasks/<task_id>/news", methods=["POST"])
    def generate_news(task_id: str):
        article, boost = session.news.publish_for_task(task_id, _bearer_token())
        return jsonify(serialize_boost(article, boost)), 201

    @app.route("/api/stock")
    def stock_view():
        period = (request.args.get("period") or DAY).strip().lower()
        if period not in PERIODS:
            raise ValidationError(f"Unknown period: {period!r}")

        model = StockViewModel(
            user_id=session.user_id,
            period=period,
            current_price=session.current_price,
            buckets=session.buckets(period),
            summary=session.summary(),
            pending_writes=len(session.sync),
        )

        if request.args.get("chart") == "1":
            frame = aggregate_frame(records_to_frame(session.stock_book.records), period)
            lower, upper = visible_bounds(len(frame))
            visible = parse_int(request.args.get("visible"), upper, lower, upper)
            viewport = Viewport.latest(len(frame), visible)
            if request.args.get("offset") is not None:
                offset = parse_int(request.args.get("offset"), 0, 0, len(frame))
                viewport = replace(viewport, offset=viewport.clamp_offset(offset))
            model.chart_html = build_candle_chart(frame, viewport, title=f"{session.user_id} ({period})")

        return jsonify(model.to_payload())

    @app.route("/api/stock/bars")
    def stock_bars():
        start = request.args.get("start") or session.register_date
        end = request.args.get("end") or session.today()
        if start > end:
            raise ValidationError("start must not be after end")
        return jsonify({"bars": serialize_bars(session.load_range(start, end))})

    @app.route("/api/settle", methods=["POST"])
    def settle():
        body = request.get_json(silent=True) or {}
        bar = session.settle_day(body.get("date") if isinstance(body, dict) else None)
        return jsonify({"bar": bar.to_document() if bar else None, "price": session.current_price})

    @app.route("/api/following")
    def following():
        return jsonify({"following": session.follow.following(), "followers": session.follow.followers()})

    @app.route("/api/follow/<target_id>", methods=["POST"])
    def follow(target_id: str):
        changed = session.follow.follow(target_id)
        return jsonify({"following": session.follow.following(), "changed": changed})

    @app.route("/api/follow/<target_id>", methods=["DELETE"])
    def unfollow(target_id: str):
        changed = session.follow.unfollow(target_id)
        return jsonify({"following": session.follow.following(), "changed": changed})

    @app.route("/api/users/search")
    def search_users():
        field = (request.args.get("by") or "name").strip().lower()
        users = session.follow.search_users(request.args.get("q") or "", field)
        return jsonify({"users": users})

    @app.route("/api/users/suggested")
    def suggested_users():
        limit = parse_int(request.args.get("limit"), 10, 1, 50)
        return jsonify({"users": session.follow.suggested_users(limit)})

    @app.route("/api/reports", methods=["POST"])
    def create_report():
        body = _json_body()
        report_id = submit_report(
            session.store,
            reporter_uid=session.user_id,
            report_type=str(body.get("type", "")),
            content_id=str(body.get("contentId", "")),
            reason=str(body.get("reason", "")),
            reported_uid=body.get("reportedUid"),
            details=body.get("details"),
        )
        return jsonify({"id": report_id, "status": "pending"}), 201

    @app.route("/api/friends")
    def friends():
        friend_stocks = session.follow.load_friend_stocks(
            start_date=request.args.get("start") or None,
            end_date=request.args.get("end") or None,
        )
        payload: dict[str, Any] = {"friends": serialize_friend_stocks(friend_stocks)}
        if request.args.get("chart") == "1":
            payload["chartHtml"] = build_friend_comparison_chart(friend_stocks)
        return jsonify(payload)

    def _log_unhandled_exception(sender: Flask, exception: Exception, **_: Any) -> None:
        logger.exception("Unhandled UI exception: %s", exception)

    got_request_exception.connect(_log_unhandled_exception, app)

    return app


if __name__ == "__main__":
    create_app().run(host="127.0.0.1", port=5000, debug=False)
