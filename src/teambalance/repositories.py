from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from itertools import count
from threading import RLock
from typing import Callable, Dict, List, Optional

from .models import TaskEntity, TaskPatch, TaskRecord
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[List[TaskEntity]], None]
Unsubscribe = Callable[[], None]


def _copy_task(task: TaskEntity) -> TaskEntity:
    copied = task.copy()
    if copied["evidence"] is not None:
        copied["evidence"] = copied["evidence"].copy()  # type: ignore[assignment]
    return copied


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """
    Abstract task store contract.

    Besides CRUD, every repository pushes the full task snapshot (newest first)
    to its subscribers once on subscribe and again after every successful write.
    Subscribers must treat each snapshot as a full replace.
    """

    def __init__(self) -> None:
        self._listeners_lock = RLock()
        # Held while a snapshot is taken and delivered, so listeners see snapshots in write order.
        self._notify_lock = RLock()
        self._listeners: Dict[int, SnapshotListener] = {}
        self._listener_ids = count(1)

    @abstractmethod
    def create(self, record: TaskRecord) -> TaskEntity:
        """Persist a new task, assigning id and created_at. Return the stored entity."""

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskEntity]:
        """Return a TaskEntity by id, or None if not found."""

    @abstractmethod
    def update(self, task_id: str, patch: TaskPatch) -> Optional[TaskEntity]:
        """Apply a partial update. Return the updated entity or None if not found."""

    @abstractmethod
    def delete(self, task_id: str) -> bool:
        """Delete a task by id. Return True if deleted, False if not found."""

    @abstractmethod
    def snapshot(self) -> List[TaskEntity]:
        """Return every task ordered by created_at descending (newest first)."""

    def subscribe(self, listener: SnapshotListener) -> Unsubscribe:
        """
        Register a listener for full snapshots and deliver the current one immediately.

        Returns:
            A callable that removes the listener. Calling it twice is harmless.
        """
        with self._listeners_lock:
            listener_id = next(self._listener_ids)
            self._listeners[listener_id] = listener
        logger.debug("Snapshot listener %s subscribed", listener_id)
        with self._notify_lock:
            self._deliver(listener_id, listener, self.snapshot())

        def unsubscribe() -> None:
            with self._listeners_lock:
                if self._listeners.pop(listener_id, None) is not None:
                    logger.debug("Snapshot listener %s unsubscribed", listener_id)

        return unsubscribe

    def _notify(self) -> None:
        """Push the current snapshot to every listener after a successful write."""
        with self._listeners_lock:
            listeners = list(self._listeners.items())
        if not listeners:
            return
        with self._notify_lock:
            tasks = self.snapshot()
            for listener_id, listener in listeners:
                self._deliver(listener_id, listener, tasks)

    @staticmethod
    def _deliver(listener_id: int, listener: SnapshotListener, tasks: List[TaskEntity]) -> None:
        # Each listener gets its own copies so none can alter what another sees.
        try:
            listener([_copy_task(t) for t in tasks])
        except Exception:
            # A failing listener must not undo or fail the write that triggered it.
            logger.exception("Snapshot listener %s failed", listener_id)


class InMemoryTaskRepository(TaskRepository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = RLock()
        self._items: Dict[str, TaskEntity] = {}
        self._order: Dict[str, int] = {}
        self._sequence = count()

    def _now(self) -> datetime:
        return datetime.now()

    def create(self, record: TaskRecord) -> TaskEntity:
        entity: TaskEntity = {
            "id": uuid.uuid4().hex,
            "title": record["title"],
            "member": record["member"],
            "weight": record["weight"],
            "deadline": record["deadline"],
            "status": record["status"],
            "evidence": record["evidence"],
            "created_at": self._now(),
        }
        with self._lock:
            self._items[entity["id"]] = entity
            self._order[entity["id"]] = next(self._sequence)
            stored = _copy_task(entity)
        self._notify()
        return stored

    def get(self, task_id: str) -> Optional[TaskEntity]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else _copy_task(item)

    def update(self, task_id: str, patch: TaskPatch) -> Optional[TaskEntity]:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return None

            # Update only provided fields; evidence may be explicitly nulled
            updated = _copy_task(existing)
            if "status" in patch:
                updated["status"] = patch["status"]
            if "evidence" in patch:
                updated["evidence"] = patch["evidence"]

            self._items[task_id] = updated
            stored = _copy_task(updated)
        self._notify()
        return stored

    def delete(self, task_id: str) -> bool:
        with self._lock:
            removed = self._items.pop(task_id, None) is not None
            self._order.pop(task_id, None)
        if removed:
            self._notify()
        return removed

    def snapshot(self) -> List[TaskEntity]:
        with self._lock:
            # Ties on created_at fall back to insertion order, newest first
            items_sorted = sorted(
                self._items.values(),
                key=lambda t: (t["created_at"], self._order[t["id"]]),
                reverse=True,
            )
            # Return copies to avoid external mutation
            return [_copy_task(t) for t in items_sorted]


# PUBLIC_INTERFACE
def build_repository(settings: Optional[Settings] = None) -> TaskRepository:
    """
    Factory to return the configured repository based on settings.
    - memory: InMemoryTaskRepository
    - sqlite: SQLiteTaskRepository (standard library sqlite3)
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteTaskRepository

        logger.info("Using SQLite task store at %s", settings.sqlite_db_path)
        return SQLiteTaskRepository(settings.sqlite_db_path)
    logger.info("Using in-memory task store")
    return InMemoryTaskRepository()
