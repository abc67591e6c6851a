"""Follow edges between users and the read-only friend stock snapshot."""

from __future__ import annotations

import logging
from typing import Any, Callable

from core.documents import followers_path, following_path, stocks_path, user_path, users_path
from core.errors import StoreError, ValidationError
from core.models import StockBar
from core.store import SERVER_TIMESTAMP, Increment, InMemoryDocumentStore, Subscription

LOGGER = logging.getLogger("habitstock.follow")

FriendStock = dict[str, dict[str, StockBar]]

SEARCH_FIELDS = ("name", "email")
SEARCH_LIMIT = 20
SUGGESTION_LIMIT = 10


class FollowService:
    """Follow/unfollow for one user; friend data is only ever replaced wholesale."""

    def __init__(self, store: InMemoryDocumentStore, user_id: str) -> None:
        self._store = store
        self.user_id = user_id
        self._friend_stocks: FriendStock = {}
        self._subscription: Subscription | None = None

    def _validate_target(self, target_id: str) -> str:
        target = (target_id or "").strip()
        if not target:
            raise ValidationError("Target user id must not be empty")
        if target == self.user_id:
            raise ValidationError("Users cannot follow themselves")
        if self._store.get(user_path(target)) is None:
            raise ValidationError(f"Unknown user: {target}")
        return target

    def following(self) -> list[str]:
        return sorted(self._store.list(following_path(self.user_id)))

    def followers(self) -> list[str]:
        return sorted(self._store.list(followers_path(self.user_id)))

    def is_following(self, target_id: str) -> bool:
        return self._store.get(f"{following_path(self.user_id)}/{target_id}") is not None

    def _other_profiles(self) -> list[dict[str, Any]]:
        return [
            {**profile, "uid": uid}
            for uid, profile in sorted(self._store.list(users_path()).items())
            if uid != self.user_id
        ]

    def search_users(self, query: str, field: str = "name", limit: int = SEARCH_LIMIT) -> list[dict[str, Any]]:
        """Prefix search on display name (case-insensitive) or email; errors degrade to []."""
        if field not in SEARCH_FIELDS:
            raise ValidationError(f"Unknown search field: {field!r}")
        needle = (query or "").strip().lower()
        if not needle:
            return []
        key = "nameLower" if field == "name" else "email"
        try:
            profiles = self._other_profiles()
        except StoreError as exc:
            LOGGER.warning("Error searching users by %s: %s", field, exc)
            return []
        matches = [profile for profile in profiles if str(profile.get(key, "")).lower().startswith(needle)]
        return matches[:limit]

    def suggested_users(self, limit: int = SUGGESTION_LIMIT) -> list[dict[str, Any]]:
        """Most-followed other users first; errors degrade to []."""
        try:
            profiles = self._other_profiles()
        except StoreError as exc:
            LOGGER.warning("Error fetching suggested users: %s", exc)
            return []
        profiles.sort(key=lambda profile: int(profile.get("followersCount", 0)), reverse=True)
        return profiles[:limit]

    def follow(self, target_id: str) -> bool:
        """Write both edges and bump both counters atomically; False if already following."""
        target = self._validate_target(target_id)
        if self.is_following(target):
            return False

        batch = self._store.batch()
        batch.set(f"{following_path(self.user_id)}/{target}", {"followedAt": SERVER_TIMESTAMP})
        batch.set(f"{followers_path(target)}/{self.user_id}", {"followedAt": SERVER_TIMESTAMP})
        batch.update(user_path(self.user_id), {"followingCount": Increment(1)})
        batch.update(user_path(target), {"followersCount": Increment(1)})
        try:
            batch.commit()
        except StoreError as exc:
            LOGGER.error("Error following %s -> %s: %s", self.user_id, target, exc)
            raise
        LOGGER.info("%s followed %s", self.user_id, target)
        return True

    def unfollow(self, target_id: str) -> bool:
        target = self._validate_target(target_id)
        if not self.is_following(target):
            return False

        batch = self._store.batch()
        batch.delete(f"{following_path(self.user_id)}/{target}")
        batch.delete(f"{followers_path(target)}/{self.user_id}")
        batch.update(user_path(self.user_id), {"followingCount": Increment(-1)})
        batch.update(user_path(target), {"followersCount": Increment(-1)})
        try:
            batch.commit()
        except StoreError as exc:
            LOGGER.error("Error unfollowing %s -> %s: %s", self.user_id, target, exc)
            raise
        LOGGER.info("%s unfollowed %s", self.user_id, target)
        return True

    def load_friend_stocks(
        self,
        friend_ids: list[str] | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> FriendStock:
        """Read friends' bars within the optional date range; failures degrade to empty."""
        ids = self.following() if friend_ids is None else friend_ids
        snapshot: FriendStock = {}
        try:
            for friend_id in ids:
                document = self._store.get(stocks_path(friend_id))
                if document is None:
                    continue
                snapshot[friend_id] = {
                    date: StockBar.from_document(value)
                    for date, value in document.items()
                    if (start_date is None or date >= start_date) and (end_date is None or date <= end_date)
                }
        except StoreError as exc:
            LOGGER.warning("Error loading friend stock data: %s", exc)
            return {}
        return snapshot

    @property
    def friend_stocks(self) -> FriendStock:
        return self._friend_stocks

    def subscribe_following(self, on_update: Callable[[FriendStock], None]) -> Subscription:
        """Refresh the friend snapshot whenever the follow list changes."""
        self.unsubscribe()

        def _handle(following: dict | None) -> None:
            ids = sorted(following or {})
            self._friend_stocks = self.load_friend_stocks(ids)
            on_update(self._friend_stocks)

        self._subscription = self._store.subscribe(following_path(self.user_id), _handle)
        return self._subscription

    def unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
