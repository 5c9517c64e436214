from __future__ import annotations

import logging
from threading import RLock
from typing import List, Optional

from .aggregation import BoardSummary, summarize
from .models import TaskEntity
from .repositories import TaskRepository, Unsubscribe

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class BoardProjection:
    """
    Keeps the derived board views in step with the repository.

    Subscribes on construction; each pushed snapshot replaces the previous one
    entirely and the summary is recomputed from scratch.
    """

    def __init__(self, repository: TaskRepository) -> None:
        self._lock = RLock()
        self._tasks: List[TaskEntity] = []
        self._summary = BoardSummary()
        self._unsubscribe: Optional[Unsubscribe] = repository.subscribe(self._on_snapshot)

    def _on_snapshot(self, tasks: List[TaskEntity]) -> None:
        summary = summarize(tasks)
        with self._lock:
            self._tasks = tasks
            self._summary = summary
        logger.debug(
            "Board recomputed: %d tasks, %d members, %d group pts",
            summary.task_count,
            len(summary.members),
            summary.total_group_points,
        )

    @property
    def tasks(self) -> List[TaskEntity]:
        with self._lock:
            return list(self._tasks)

    @property
    def summary(self) -> BoardSummary:
        with self._lock:
            return self._summary

    def close(self) -> None:
        """Stop following the repository. The last computed views stay readable."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
