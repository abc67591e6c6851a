"""AI news generation for completed tasks and the one-time price boost it triggers."""

from __future__ import annotations

import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from config.settings import NEWS_API_TIMEOUT, NEWS_API_URL
from core.documents import news_path
from core.errors import BoostNotAllowedError, NewsServiceError
from core.ledger import BoostResult

if TYPE_CHECKING:
    from core.session import UserSession

LOGGER = logging.getLogger("habitstock.news")


@dataclass(frozen=True)
class NewsArticle:
    task_id: str
    title: str
    content: str

    def to_document(self) -> dict[str, Any]:
        return {"taskId": self.task_id, "title": self.title, "content": self.content}


class NewsClient:
    """HTTP client for the generative news function."""

    def __init__(self, url: str = NEWS_API_URL, timeout: float = NEWS_API_TIMEOUT, attempts: int = 3) -> None:
        self.url = url
        self.timeout = timeout
        self.attempts = max(1, attempts)

    def _post(self, payload: dict[str, Any], token: str) -> dict[str, Any]:
        request = urllib.request.Request(
            self.url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {token}",
            },
            method="POST",
        )
        backoff = 1.0
        for attempt in range(1, self.attempts + 1):
            try:
                with urllib.request.urlopen(request, timeout=self.timeout) as response:
                    return json.loads(response.read().decode("utf-8"))
            except urllib.error.HTTPError as exc:
                # Client errors will not improve on retry
                if exc.code < 500 or attempt == self.attempts:
                    raise NewsServiceError(f"News service returned HTTP {exc.code}") from exc
            except (urllib.error.URLError, TimeoutError, ValueError) as exc:
                if attempt == self.attempts:
                    raise NewsServiceError(f"News service unavailable: {exc}") from exc
            time.sleep(backoff)
            backoff *= 2
        raise NewsServiceError("News service unavailable")

    def generate(self, task_id: str, due_date: str, token: str) -> NewsArticle:
        if not token:
            raise NewsServiceError("A bearer token is required to generate news")
        body = self._post({"taskId": task_id, "dueDate": due_date}, token)
        title = str(body.get("title") or "").strip()
        content = str(body.get("content") or "").strip()
        if not title or not content:
            raise NewsServiceError("News service returned an empty article")
        return NewsArticle(task_id=task_id, title=title, content=content)


class NewsService:
    """Publishes a news article for a completed task and applies its boost."""

    def __init__(self, session: "UserSession", client: NewsClient) -> None:
        self._session = session
        self._client = client

    def publish_for_task(self, task_id: str, token: str) -> tuple[NewsArticle, BoostResult]:
        """
        Raises:
            BoostNotAllowedError: Task is incomplete or already has news; the
                service is not called.
            NewsServiceError: Generation failed; nothing is changed.
            SyncError: The boost could not be saved; neither the article
                nor the boost is kept.
        """
        task = self._session.ledger.get(task_id)
        if not task.completed:
            raise BoostNotAllowedError(f"Task {task_id} must be completed before news can be generated")
        if task.has_generated_news:
            raise BoostNotAllowedError(f"Task {task_id} already has news")

        article = self._client.generate(task.id, task.due_date, token)
        boost = self._session.boost_task(
            task.id,
            extra_documents={news_path(self._session.user_id, task.id): article.to_document()},
        )
        LOGGER.info("Published news for task %s: %s", task.id, article.title)
        return article, boost
