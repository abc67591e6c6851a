"""Tests for news publication and the boost it applies."""

from __future__ import annotations

import pytest

from core.documents import news_path
from core.errors import BoostNotAllowedError, NewsServiceError, SyncError
from core.news import NewsArticle, NewsClient
from core.session import UserSession


class FakeNewsClient(NewsClient):
    def __init__(self) -> None:
        super().__init__(url="http://news.invalid/generate", attempts=1)
        self.calls = []

    def generate(self, task_id, due_date, token):
        self.calls.append((task_id, due_date, token))
        return NewsArticle(task_id=task_id, title="Local hero finishes task", content="Markets rejoice.")


@pytest.fixture
def news_client():
    return FakeNewsClient()


@pytest.fixture
def newsy_session(store, rng, clock, news_client):
    user_session = UserSession("alice", store, rng=rng, clock=clock, news_client=news_client)
    yield user_session
    user_session.close()


class TestPublish:
    def test_open_task_is_rejected_before_calling_service(self, newsy_session, news_client):
        task = newsy_session.add_task("Write blog post", "hard")
        with pytest.raises(BoostNotAllowedError):
            newsy_session.news.publish_for_task(task.id, "token")
        assert news_client.calls == []

    def test_publish_stores_article_and_boosts(self, newsy_session, news_client, store):
        task = newsy_session.add_task("Write blog post", "hard")
        newsy_session.toggle_task(task.id)
        price_before = newsy_session.current_price

        article, boost = newsy_session.news.publish_for_task(task.id, "token")

        assert store.get(news_path("alice", task.id)) == article.to_document()
        assert boost.task.has_generated_news
        assert newsy_session.current_price == pytest.approx(price_before + boost.increase)
        assert news_client.calls == [(task.id, "2024-01-03", "token")]

    def test_failed_boost_leaves_no_article(self, flaky_store, rng, clock, news_client):
        session = UserSession("alice", flaky_store, rng=rng, clock=clock, news_client=news_client)
        task = session.add_task("Write blog post", "hard")
        session.toggle_task(task.id)
        price_before = session.current_price
        flaky_store.fail = True

        with pytest.raises(SyncError):
            session.news.publish_for_task(task.id, "token")

        assert flaky_store.get(news_path("alice", task.id)) is None
        assert not session.ledger.get(task.id).has_generated_news
        assert session.current_price == price_before
        session.close()

    def test_second_publish_is_rejected(self, newsy_session, news_client):
        task = newsy_session.add_task("Write blog post", "hard")
        newsy_session.toggle_task(task.id)
        newsy_session.news.publish_for_task(task.id, "token")

        with pytest.raises(BoostNotAllowedError):
            newsy_session.news.publish_for_task(task.id, "token")
        assert len(news_client.calls) == 1


class TestNewsClient:
    def test_token_required(self):
        client = NewsClient(url="http://news.invalid/generate", attempts=1)
        with pytest.raises(NewsServiceError):
            client.generate("1", "2024-01-03", "")
