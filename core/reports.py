"""User reports against published news articles and comments."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from core.documents import report_path
from core.errors import StoreError, ValidationError
from core.store import SERVER_TIMESTAMP, InMemoryDocumentStore

LOGGER = logging.getLogger("habitstock.reports")

REPORT_TYPES = ("news", "comment")
PENDING = "pending"


@dataclass(frozen=True)
class Report:
    type: str
    content_id: str
    reporter_uid: str
    reason: str
    reported_uid: str | None = None
    details: str | None = None

    def to_document(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "contentId": self.content_id,
            "reporterUid": self.reporter_uid,
            "reason": self.reason,
            "status": PENDING,
            "reportedAt": SERVER_TIMESTAMP,
        }
        if self.reported_uid:
            payload["reportedUid"] = self.reported_uid
        if self.details:
            payload["details"] = self.details
        return payload


def _required(value: str | None, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{label} must not be empty")
    return cleaned


def submit_report(
    store: InMemoryDocumentStore,
    reporter_uid: str,
    report_type: str,
    content_id: str,
    reason: str,
    reported_uid: str | None = None,
    details: str | None = None,
) -> str:
    """
    Validate and store a report with status "pending"; returns the report id.

    Raises:
        ValidationError: Unknown type or a missing required field.
        StoreError: The write failed.
    """
    kind = (report_type or "").strip().lower()
    if kind not in REPORT_TYPES:
        raise ValidationError(f"Unknown report type: {report_type!r}")
    report = Report(
        type=kind,
        content_id=_required(content_id, "Content id"),
        reporter_uid=_required(reporter_uid, "Reporter id"),
        reason=_required(reason, "Reason"),
        reported_uid=(reported_uid or "").strip() or None,
        details=(details or "").strip() or None,
    )

    report_id = uuid.uuid4().hex
    try:
        store.set(report_path(report_id), report.to_document())
    except StoreError as exc:
        LOGGER.error("Error submitting report on %s %s: %s", kind, report.content_id, exc)
        raise
    LOGGER.info("Report %s filed by %s on %s %s", report_id, report.reporter_uid, kind, report.content_id)
    return report_id
