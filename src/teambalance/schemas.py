from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from .aggregation import BoardSummary, ContributionShare, MemberStats
from .deadlines import DeadlineStatus, UrgencyCategory, classify
from .models import STATUS_COMPLETED, Evidence, TaskEntity, TaskStatus
from .utils import PreviewKind, display_url, preview_kind

# Shared type for incoming deadlines which can be a date, datetime, or ISO8601 string
DeadlineInput = Union[date, datetime, str]


def _parse_deadline(value: Optional[DeadlineInput]) -> Optional[date]:
    """
    Internal helper to normalize deadline input into a calendar date.
    - None or an empty/blank string means "no deadline".
    - A datetime keeps only its date part.
    - A string is parsed as an ISO date, falling back to an ISO datetime.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid deadline format. Use an ISO8601 date or datetime string (e.g., '2025-01-31')."
                ) from e

    raise ValueError("Invalid type for deadline; expected date, datetime, or ISO8601 string.")


def _normalize_weight(value: object) -> object:
    """
    Coerce numeric input to an int before range checks run.
    Accepts ints, numeric strings and integral floats; rejects booleans and fractions.
    """
    if isinstance(value, bool):
        raise ValueError("weight must be a number between 1 and 10")
    if isinstance(value, str):
        s = value.strip()
        try:
            return int(s)
        except ValueError:
            try:
                value = float(s)
            except ValueError as e:
                raise ValueError("weight must be a number between 1 and 10") from e
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("weight must be a whole number of points")
        return int(value)
    return value


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new board task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Final edit",
                "member": "Bob",
                "weight": 3,
                "deadline": "2025-02-01",
            }
        }
    )

    # Whitespace is stripped before the length limits apply.
    title: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)] = Field(
        ..., description="Short title for the task"
    )
    member: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)] = Field(
        ..., description="Name of the assignee"
    )
    weight: int = Field(default=1, description="Effort points from 1 to 10", ge=1, le=10)
    deadline: Optional[date] = Field(
        default=None,
        description="Optional due date. Accepts an ISO8601 date or datetime; an empty string means no deadline",
    )

    @field_validator("weight", mode="before")
    @classmethod
    def normalize_weight(cls, v: object) -> object:
        """
        Normalize weight to an integer.
        """
        return _normalize_weight(v)

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_deadline(cls, v: Optional[DeadlineInput]) -> Optional[date]:
        """
        Normalize deadline from str/date/datetime to date.
        """
        return _parse_deadline(v)


# PUBLIC_INTERFACE
class DeadlineStatusOut(BaseModel):
    """Urgency classification of a task deadline at request time."""

    category: UrgencyCategory = Field(..., description="none, overdue, today, urgent, soon or safe")
    label: str = Field(..., description="Human-readable urgency label; empty when category is none")

    @classmethod
    def from_status(cls, status: DeadlineStatus) -> "DeadlineStatusOut":
        return cls(category=status.category, label=status.label)


class LinkEvidenceOut(BaseModel):
    type: Literal["link"] = "link"
    url: str = Field(..., description="Evidence link as submitted")
    display_url: str = Field(..., description="Link shortened to 60 characters for display")


class FileEvidenceOut(BaseModel):
    type: Literal["file"] = "file"
    name: str = Field(..., description="Original file name")
    reference: str = Field(..., description="Evidence store reference of the file content")
    mime_type: str = Field(..., description="MIME type declared at upload")
    size: int = Field(..., description="File size in bytes")
    preview: PreviewKind = Field(..., description="How the file can be viewed: pdf, image or download")


EvidenceOut = Annotated[Union[LinkEvidenceOut, FileEvidenceOut], Field(discriminator="type")]


def evidence_out(evidence: Optional[Evidence]) -> Optional[Union[LinkEvidenceOut, FileEvidenceOut]]:
    if evidence is None:
        return None
    if evidence["type"] == "file":
        return FileEvidenceOut(
            name=evidence["name"],
            reference=evidence["reference"],
            mime_type=evidence["mime_type"],
            size=evidence["size"],
            preview=preview_kind(evidence["name"]),
        )
    return LinkEvidenceOut(url=evidence["url"], display_url=display_url(evidence["url"]))


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Schema returned by the API for a board task.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "5f0c6a2e9d4b4c8e8f1a2b3c4d5e6f70",
                "title": "Final edit",
                "member": "Bob",
                "weight": 3,
                "deadline": "2025-02-01",
                "status": "completed",
                "evidence": {
                    "type": "link",
                    "url": "https://docs.example.com/final",
                    "display_url": "https://docs.example.com/final",
                },
                "created_at": "2025-01-25T10:15:30.123456",
                "deadline_status": {"category": "none", "label": ""},
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the task")
    title: str = Field(..., description="Short title for the task")
    member: str = Field(..., description="Name of the assignee")
    weight: int = Field(..., description="Effort points from 1 to 10")
    deadline: Optional[date] = Field(default=None, description="Optional due date")
    status: TaskStatus = Field(..., description="pending or completed")
    evidence: Optional[EvidenceOut] = Field(default=None, description="Proof of completion, if any")
    created_at: datetime = Field(..., description="Creation timestamp")
    deadline_status: DeadlineStatusOut = Field(..., description="Deadline urgency at request time")

    @classmethod
    def from_entity(cls, entity: TaskEntity, now: datetime) -> "TaskOut":
        status = classify(entity["deadline"], entity["status"] == STATUS_COMPLETED, now)
        return cls(
            id=entity["id"],
            title=entity["title"],
            member=entity["member"],
            weight=entity["weight"],
            deadline=entity["deadline"],
            status=entity["status"],
            evidence=evidence_out(entity["evidence"]),
            created_at=entity["created_at"],
            deadline_status=DeadlineStatusOut.from_status(status),
        )


# PUBLIC_INTERFACE
class ToggleOut(BaseModel):
    """
    Result of toggling a task.
    - awaiting_evidence: the task is still pending; an evidence capture step was opened
    - reopened: the task went back to pending and its evidence was cleared
    """

    action: Literal["awaiting_evidence", "reopened"]
    task: TaskOut


# PUBLIC_INTERFACE
class EvidenceCaptureOut(BaseModel):
    """Transient evidence staged for a task that is not yet persisted."""

    task_id: str
    link: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None


class MemberStatsOut(BaseModel):
    display_name: str
    completed_count: int
    pending_count: int
    total_points: int
    completed_points: int
    completion_rate: int = Field(..., description="Completed points as a whole percentage of total points")

    @classmethod
    def from_stats(cls, stats: MemberStats) -> "MemberStatsOut":
        return cls(
            display_name=stats.display_name,
            completed_count=stats.completed_count,
            pending_count=stats.pending_count,
            total_points=stats.total_points,
            completed_points=stats.completed_points,
            completion_rate=stats.completion_rate,
        )


class ContributionShareOut(BaseModel):
    display_name: str
    completed_points: int
    share: float = Field(..., description="Fraction of all completed points, 0..1")
    percent: float = Field(..., description="share expressed as a percentage, one decimal")

    @classmethod
    def from_share(cls, item: ContributionShare) -> "ContributionShareOut":
        return cls(
            display_name=item.display_name,
            completed_points=item.completed_points,
            share=item.share,
            percent=round(item.share * 100, 1),
        )


# PUBLIC_INTERFACE
class BoardSummaryOut(BaseModel):
    """
    Dashboard view of the whole board: per-member statistics, contribution
    split and group progress.
    """

    members: List[MemberStatsOut]
    contribution: List[ContributionShareOut] = Field(
        ..., description="Empty until at least one task is completed"
    )
    total_group_points: int
    task_count: int
    completed_count: int

    @classmethod
    def from_summary(cls, summary: BoardSummary) -> "BoardSummaryOut":
        return cls(
            members=[MemberStatsOut.from_stats(m) for m in summary.members],
            contribution=[ContributionShareOut.from_share(c) for c in summary.contribution],
            total_group_points=summary.total_group_points,
            task_count=summary.task_count,
            completed_count=summary.completed_count,
        )
