"""
Task lifecycle: creation, the pending/completed state machine and evidence capture.

State machine::

    pending --complete(evidence?)--> completed
    completed --reopen-----------> pending   (evidence cleared)

Completing always goes through an evidence-capture step; reopening never does.
The manager keeps no copy of persisted task state. Every result it returns is
what the repository confirmed, and nothing changes locally when a store call
fails.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date
from threading import RLock
from typing import Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import NotFoundError, ValidationError
from .evidence import EvidenceStore
from .models import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    Evidence,
    FileEvidence,
    LinkEvidence,
    TaskEntity,
    TaskRecord,
)
from .repositories import TaskRepository, Unsubscribe
from .schemas import TaskCreate
from .settings import DEFAULT_MAX_EVIDENCE_BYTES
from .utils import is_web_url

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class EvidenceFile:
    """An uploaded file waiting to be written to the evidence store."""

    content: bytes
    name: str
    mime_type: str
    size: int

    @classmethod
    def from_bytes(cls, content: bytes, name: str, mime_type: Optional[str] = None) -> "EvidenceFile":
        return cls(content=content, name=name, mime_type=mime_type or DEFAULT_MIME_TYPE, size=len(content))


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class EvidenceInput:
    """
    Evidence offered when completing a task: nothing, a link, a file, or both.
    When both are present the file wins and the link is ignored.
    """

    link: Optional[str] = None
    file: Optional[EvidenceFile] = None

    @classmethod
    def none(cls) -> "EvidenceInput":
        return cls()

    @classmethod
    def from_link(cls, url: str) -> "EvidenceInput":
        return cls(link=url)

    @classmethod
    def from_file(cls, file: EvidenceFile) -> "EvidenceInput":
        return cls(file=file)

    def resolved(self) -> Optional[Union[EvidenceFile, str]]:
        """The single piece of evidence to record, or None to complete without any."""
        if self.file is not None:
            return self.file
        if self.link is not None and self.link.strip():
            return self.link.strip()
        return None


# PUBLIC_INTERFACE
@dataclass
class EvidenceCapture:
    """Transient, unpersisted evidence a user is assembling for one task."""

    task_id: str
    link: Optional[str] = None
    file: Optional[EvidenceFile] = None

    def as_input(self) -> EvidenceInput:
        return EvidenceInput(link=self.link, file=self.file)


class ToggleAction(str, enum.Enum):
    AWAITING_EVIDENCE = "awaiting_evidence"
    REOPENED = "reopened"


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class ToggleOutcome:
    """What toggle_status did: opened an evidence step, or reopened the task."""

    action: ToggleAction
    task: TaskEntity


def _format_errors(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors(include_url=False, include_context=False):
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


# PUBLIC_INTERFACE
class TaskLifecycleManager:
    """
    Owns task state transitions and enforces the lifecycle invariants:
    - new tasks start pending with no evidence
    - evidence is only ever present on completed tasks
    - status and evidence are written in a single repository update
    """

    def __init__(
        self,
        repository: TaskRepository,
        evidence_store: EvidenceStore,
        max_evidence_bytes: int = DEFAULT_MAX_EVIDENCE_BYTES,
    ) -> None:
        self._repository = repository
        self._evidence_store = evidence_store
        self._max_evidence_bytes = max_evidence_bytes
        self._captures_lock = RLock()
        self._captures: Dict[str, EvidenceCapture] = {}
        self._unsubscribe: Optional[Unsubscribe] = repository.subscribe(self._prune_captures)

    @property
    def repository(self) -> TaskRepository:
        return self._repository

    @property
    def evidence_store(self) -> EvidenceStore:
        return self._evidence_store

    @property
    def max_evidence_bytes(self) -> int:
        return self._max_evidence_bytes

    # ---- queries ----

    def get_task(self, task_id: str) -> TaskEntity:
        task = self._repository.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def list_tasks(self) -> List[TaskEntity]:
        return self._repository.snapshot()

    # ---- commands ----

    def create_task(
        self,
        title: str,
        member: str,
        weight: object = 1,
        deadline: Optional[Union[date, str]] = None,
    ) -> TaskEntity:
        """
        Validate and persist a new pending task.

        Raises:
            ValidationError: empty title/member, weight not a whole number in 1..10,
                or an unparsable deadline. Nothing is written in that case.
        """
        try:
            draft = TaskCreate(title=title, member=member, weight=weight, deadline=deadline)
        except PydanticValidationError as e:
            raise ValidationError(
                _format_errors(e),
                errors=e.errors(include_url=False, include_context=False),
            ) from e

        record: TaskRecord = {
            "title": draft.title,
            "member": draft.member,
            "weight": draft.weight,
            "deadline": draft.deadline,
            "status": STATUS_PENDING,
            "evidence": None,
        }
        task = self._repository.create(record)
        logger.info("Created task %s for %r (%d pts)", task["id"], task["member"], task["weight"])
        return task

    def toggle_status(self, task_id: str) -> ToggleOutcome:
        """
        Pending tasks are not completed here: an evidence capture is opened and
        the task is returned untouched. Completed tasks go straight back to
        pending with their evidence cleared.
        """
        task = self.get_task(task_id)
        if task["status"] == STATUS_PENDING:
            self.begin_capture(task_id)
            return ToggleOutcome(ToggleAction.AWAITING_EVIDENCE, task)

        reopened = self._write(task_id, STATUS_PENDING, None)
        logger.info("Reopened task %s", task_id)
        return ToggleOutcome(ToggleAction.REOPENED, reopened)

    def complete_with_evidence(self, task_id: str, evidence: Optional[EvidenceInput] = None) -> TaskEntity:
        """
        Complete a task, recording the given evidence.

        With no explicit input, whatever was staged for the task is used. A file
        takes precedence over a link. When nothing usable is supplied this
        behaves exactly like skip_without_evidence.
        """
        if evidence is None:
            capture = self.get_capture(task_id)
            evidence = capture.as_input() if capture is not None else EvidenceInput.none()

        chosen = evidence.resolved()
        if chosen is None:
            return self.skip_without_evidence(task_id)

        self.get_task(task_id)

        record: Evidence
        if isinstance(chosen, EvidenceFile):
            self._check_size(chosen)
            # Bytes go to the evidence store first; only the reference is recorded.
            reference = self._evidence_store.store(chosen.content, chosen.name, chosen.mime_type)
            file_evidence: FileEvidence = {
                "type": "file",
                "name": chosen.name,
                "reference": reference,
                "mime_type": chosen.mime_type,
                "size": chosen.size,
            }
            record = file_evidence
        else:
            self._check_link(chosen)
            link_evidence: LinkEvidence = {"type": "link", "url": chosen}
            record = link_evidence

        completed = self._write(task_id, STATUS_COMPLETED, record)
        self._drop_capture(task_id)
        logger.info("Completed task %s with %s evidence", task_id, record["type"])
        return completed

    def skip_without_evidence(self, task_id: str) -> TaskEntity:
        """
        Complete a task without evidence. A task that is already completed is
        returned unchanged, so repeating the call is a no-op.
        """
        task = self.get_task(task_id)
        if task["status"] == STATUS_COMPLETED:
            self._drop_capture(task_id)
            return task

        completed = self._write(task_id, STATUS_COMPLETED, None)
        self._drop_capture(task_id)
        logger.info("Completed task %s without evidence", task_id)
        return completed

    def delete_task(self, task_id: str) -> None:
        if not self._repository.delete(task_id):
            raise NotFoundError(task_id)
        self._drop_capture(task_id)
        logger.info("Deleted task %s", task_id)

    # ---- evidence capture ----

    def begin_capture(self, task_id: str) -> EvidenceCapture:
        """Open (or keep) the capture session for a task."""
        with self._captures_lock:
            capture = self._captures.get(task_id)
            if capture is None:
                capture = self._captures[task_id] = EvidenceCapture(task_id=task_id)
                logger.debug("Awaiting evidence for task %s", task_id)
            return capture

    def stage_evidence(
        self,
        task_id: str,
        link: Optional[str] = None,
        file: Optional[EvidenceFile] = None,
    ) -> EvidenceCapture:
        """Remember a typed link and/or a selected file for a task. Nothing is persisted."""
        self.get_task(task_id)
        if file is not None:
            self._check_size(file)
        if link is not None and link.strip():
            self._check_link(link)
        with self._captures_lock:
            capture = self.begin_capture(task_id)
            if link is not None:
                capture.link = link
            if file is not None:
                capture.file = file
            return capture

    def get_capture(self, task_id: str) -> Optional[EvidenceCapture]:
        with self._captures_lock:
            return self._captures.get(task_id)

    def cancel_capture(self, task_id: str) -> bool:
        """Abandon the evidence step. Only transient state is cleared; the store is untouched."""
        dropped = self._drop_capture(task_id)
        if dropped:
            logger.debug("Evidence capture cancelled for task %s", task_id)
        return dropped

    def close(self) -> None:
        """Stop following the repository."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ---- internals ----

    def _drop_capture(self, task_id: str) -> bool:
        with self._captures_lock:
            return self._captures.pop(task_id, None) is not None

    def _prune_captures(self, tasks: List[TaskEntity]) -> None:
        # Captures only make sense for tasks that still exist.
        live = {t["id"] for t in tasks}
        with self._captures_lock:
            stale = [task_id for task_id in self._captures if task_id not in live]
            for task_id in stale:
                del self._captures[task_id]
        if stale:
            logger.debug("Dropped evidence captures for removed tasks: %s", ", ".join(stale))

    @staticmethod
    def _check_link(link: str) -> None:
        if not is_web_url(link):
            raise ValidationError(f"Evidence link {link!r} must be an http or https URL")

    def _check_size(self, file: EvidenceFile) -> None:
        if file.size > self._max_evidence_bytes:
            raise ValidationError(
                f"Evidence file {file.name!r} is {file.size} bytes; the limit is {self._max_evidence_bytes} bytes"
            )

    def _write(self, task_id: str, status: str, evidence: Optional[Evidence]) -> TaskEntity:
        updated = self._repository.update(task_id, {"status": status, "evidence": evidence})  # type: ignore[typeddict-item]
        if updated is None:
            raise NotFoundError(task_id)
        return updated
