"""Hierarchical document store with merge writes, batches and snapshot subscriptions."""

from __future__ import annotations

import copy
import datetime
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from core.errors import StoreError

LOGGER = logging.getLogger("habitstock.store")

Snapshot = Any
Callback = Callable[[Snapshot], None]


@dataclass(frozen=True)
class Increment:
    """Field transform that adds `amount` to the stored number."""

    amount: float


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


DELETE_FIELD = _Sentinel("DELETE_FIELD")
SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
_NOTHING = object()


def _segments(path: str) -> list[str]:
    parts = [part for part in str(path).strip("/").split("/") if part]
    if not parts:
        raise StoreError("Empty document path")
    return parts


def is_document_path(path: str) -> bool:
    return len(_segments(path)) % 2 == 0


def _require_document(path: str) -> str:
    if not is_document_path(path):
        raise StoreError(f"Not a document path: {path}")
    return "/".join(_segments(path))


def _resolve(value: Any, current: Any = None) -> Any:
    if isinstance(value, Increment):
        base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
        return base + value.amount
    if value is SERVER_TIMESTAMP:
        return datetime.datetime.now(datetime.timezone.utc).isoformat()
    if isinstance(value, dict):
        return {key: _resolve(item) for key, item in value.items() if item is not DELETE_FIELD}
    return copy.deepcopy(value)


def _merge(target: dict[str, Any], data: dict[str, Any]) -> None:
    for key, value in data.items():
        if value is DELETE_FIELD:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = _resolve(value, target.get(key))


def _apply_field_updates(target: dict[str, Any], fields: dict[str, Any]) -> None:
    """Apply dotted-path field updates (`"a.b": 1`) in place."""
    for dotted, value in fields.items():
        parts = dotted.split(".")
        node = target
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        leaf = parts[-1]
        if value is DELETE_FIELD:
            node.pop(leaf, None)
        else:
            node[leaf] = _resolve(value, node.get(leaf))


class Subscription:
    """
    Standing listener on one document or collection path.

    Identical consecutive payloads are delivered once; after `unsubscribe`
    no further callbacks fire, including ones already in flight for the
    old key.
    """

    def __init__(self, store: "InMemoryDocumentStore", path: str, callback: Callback) -> None:
        self._store = store
        self.path = path
        self._callback = callback
        self._last: Snapshot = _NOTHING
        self.active = True

    def deliver(self, payload: Snapshot) -> bool:
        if not self.active or payload == self._last:
            return False
        self._last = copy.deepcopy(payload)
        self._callback(payload)
        return True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._detach(self)


class WriteBatch:
    """Atomic group of writes; nothing is visible until `commit` succeeds."""

    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self._ops: list[tuple[str, str, Any]] = []

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> "WriteBatch":
        self._ops.append(("merge" if merge else "set", _require_document(path), data))
        return self

    def update(self, path: str, fields: dict[str, Any]) -> "WriteBatch":
        self._ops.append(("update", _require_document(path), fields))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._ops.append(("delete", _require_document(path), None))
        return self

    def commit(self) -> None:
        self._store._commit_ops(self._ops)
        self._ops = []


class InMemoryDocumentStore:
    """Process-local document store used by sessions, tests and the local UI."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self._documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()

    def get(self, path: str) -> dict[str, Any] | None:
        key = _require_document(path)
        with self._lock:
            document = self._documents.get(key)
            return copy.deepcopy(document) if document is not None else None

    def list(self, collection_path: str) -> dict[str, dict[str, Any]]:
        """Direct child documents of a collection, keyed by document id."""
        prefix = "/".join(_segments(collection_path))
        if is_document_path(prefix):
            raise StoreError(f"Not a collection path: {collection_path}")
        depth = len(_segments(prefix)) + 1
        with self._lock:
            return {
                key.rsplit("/", 1)[1]: copy.deepcopy(document)
                for key, document in self._documents.items()
                if key.startswith(prefix + "/") and len(key.split("/")) == depth
            }

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._commit_ops([("merge" if merge else "set", _require_document(path), data)])

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._commit_ops([("update", _require_document(path), fields)])

    def delete(self, path: str) -> None:
        self._commit_ops([("delete", _require_document(path), None)])

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def subscribe(self, path: str, callback: Callback) -> Subscription:
        """Deliver the current snapshot now and after every change to the path."""
        subscription = Subscription(self, "/".join(_segments(path)), callback)
        with self._lock:
            self._subscriptions.append(subscription)
            payload = self._snapshot(subscription.path)
        subscription.deliver(payload)
        return subscription

    def _snapshot(self, path: str) -> Snapshot:
        if is_document_path(path):
            return self.get(path)
        return self.list(path)

    def _detach(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _commit_ops(self, ops: list[tuple[str, str, Any]]) -> None:
        with self._lock:
            staged = copy.deepcopy(self._documents)
            for kind, key, data in ops:
                if kind == "set":
                    staged[key] = _resolve(data)
                elif kind == "merge":
                    document = staged.setdefault(key, {})
                    _merge(document, data)
                elif kind == "update":
                    if key not in staged:
                        raise StoreError(f"Cannot update missing document: {key}")
                    _apply_field_updates(staged[key], data)
                elif kind == "delete":
                    staged.pop(key, None)
            self._persist(staged)
            self._documents = staged
            touched = {key for _, key, _ in ops}
            listeners = [
                item
                for item in self._subscriptions
                if any(key == item.path or key.startswith(item.path + "/") for key in touched)
            ]
            payloads = [(item, self._snapshot(item.path)) for item in listeners]

        for subscription, payload in payloads:
            subscription.deliver(payload)

    def _persist(self, documents: dict[str, dict[str, Any]]) -> None:
        """Hook for durable backends; raising here aborts the write."""


class JsonFileDocumentStore(InMemoryDocumentStore):
    """Document store persisted to one JSON file after every write."""

    def __init__(self, file_path: str | Path) -> None:
        self.file_path = Path(file_path)
        documents: dict[str, dict[str, Any]] = {}
        if self.file_path.exists():
            try:
                payload = json.loads(self.file_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise StoreError(f"Failed to read store file {self.file_path}: {exc}") from exc
            if isinstance(payload, dict):
                documents = payload
        super().__init__(documents)

    def _persist(self, documents: dict[str, dict[str, Any]]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            self.file_path.write_text(json.dumps(documents, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Failed to write store file %s: %s", self.file_path, exc)
            raise StoreError(f"Failed to write store file {self.file_path}: {exc}") from exc
