from __future__ import annotations

from typing import Any, Dict, List, Optional


class BoardError(Exception):
    """Base class for all errors raised by the board core."""


# PUBLIC_INTERFACE
class ValidationError(BoardError):
    """
    Raised when a command carries invalid input (empty title/member, bad weight,
    unparsable deadline, oversized evidence file). The operation is rejected
    before anything is written.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors: List[Dict[str, Any]] = errors or []


# PUBLIC_INTERFACE
class NotFoundError(BoardError):
    """Raised when an operation references a task id absent from the store."""

    def __init__(self, task_id: str, what: str = "Task") -> None:
        super().__init__(f"{what} not found: {task_id}")
        self.task_id = task_id
        self.what = what


# PUBLIC_INTERFACE
class StoreUnavailableError(BoardError):
    """
    Raised when the task store or the evidence store fails. The core does not
    retry and does not change any local state when this is raised.
    """
