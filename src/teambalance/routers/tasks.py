from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from ..dependencies import get_board_projection, get_lifecycle_manager, get_now
from ..errors import ValidationError
from ..lifecycle import DEFAULT_MIME_TYPE, EvidenceFile, EvidenceInput, TaskLifecycleManager
from ..projection import BoardProjection
from ..schemas import EvidenceCaptureOut, TaskCreate, TaskOut, ToggleOut
from ..utils import inline_mime_type, is_web_url

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


class TaskListOut(BaseModel):
    """
    Envelope for the task board listing.
    """
    items: List[TaskOut] = Field(..., description="Tasks, newest first")
    total: int = Field(..., description="Number of tasks returned")


def _read_upload(upload: Optional[UploadFile], limit: int) -> Optional[EvidenceFile]:
    """
    Turn a multipart upload into an EvidenceFile. An empty file part without a
    name (what browsers send when nothing was selected) counts as no file.

    At most limit + 1 bytes are read; anything larger is rejected without
    reading the rest.
    """
    if upload is None:
        return None
    content = upload.file.read(limit + 1)
    if len(content) > limit:
        raise ValidationError(f"Evidence file {upload.filename!r} exceeds the limit of {limit} bytes")
    if not upload.filename and not content:
        return None
    return EvidenceFile.from_bytes(content, upload.filename or "evidence", upload.content_type)


def _capture_out(task_id: str, link: Optional[str], file: Optional[EvidenceFile]) -> EvidenceCaptureOut:
    return EvidenceCaptureOut(
        task_id=task_id,
        link=link,
        file_name=file.name if file else None,
        file_size=file.size if file else None,
    )


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a new pending task and return the created resource.",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error"},
    },
)
def create_task(
    payload: TaskCreate,
    manager: TaskLifecycleManager = Depends(get_lifecycle_manager),
    now: datetime = Depends(get_now),
) -> TaskOut:
    """
    Create a new Task.
    """
    created = manager.create_task(payload.title, payload.member, payload.weight, payload.deadline)
    return TaskOut.from_entity(created, now)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TaskListOut,
    summary="List Tasks",
    description=(
        "List every task on the board, newest first, each with its deadline urgency.\n\n"
        "Query parameters:\n"
        "- status: optional filter, 'pending' or 'completed'"
    ),
)
def list_tasks(
    status_filter: Optional[Literal["pending", "completed"]] = Query(
        None, alias="status", description="Filter by task status"
    ),
    projection: BoardProjection = Depends(get_board_projection),
    now: datetime = Depends(get_now),
) -> TaskListOut:
    """
    List the current board snapshot.
    """
    items = projection.tasks
    if status_filter is not None:
        items = [t for t in items if t["status"] == status_filter]
    return TaskListOut(items=[TaskOut.from_entity(t, now) for t in items], total=len(items))


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={404: {"description": "Task not found"}},
)
def get_task(
    task_id: str,
    manager: TaskLifecycleManager = Depends(get_lifecycle_manager),
    now: datetime = Depends(get_now),
) -> TaskOut:
    """
    Retrieve a single Task by its ID.
    """
    return TaskOut.from_entity(manager.get_task(task_id), now)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
def delete_task(task_id: str, manager: TaskLifecycleManager = Depends(get_lifecycle_manager)) -> None:
    """
    Delete a Task permanently. Returns 204 on success, 404 if not found.
    """
    manager.delete_task(task_id)
    return None


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/toggle",
    response_model=ToggleOut,
    summary="Toggle Task",
    description=(
        "Pending task: nothing is changed, an evidence step is opened and the action is "
        "'awaiting_evidence'. Completed task: it is reopened and its evidence cleared."
    ),
    responses={404: {"description": "Task not found"}},
)
def toggle_task(
    task_id: str,
    manager: TaskLifecycleManager = Depends(get_lifecycle_manager),
    now: datetime = Depends(get_now),
) -> ToggleOut:
    outcome = manager.toggle_status(task_id)
    return ToggleOut(action=outcome.action.value, task=TaskOut.from_entity(outcome.task, now))


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}/capture",
    response_model=EvidenceCaptureOut,
    summary="Get Evidence Capture",
    responses={404: {"description": "No evidence capture in progress"}},
)
def get_capture(task_id: str, manager: TaskLifecycleManager = Depends(get_lifecycle_manager)) -> EvidenceCaptureOut:
    capture = manager.get_capture(task_id)
    if capture is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No evidence capture in progress")
    return _capture_out(task_id, capture.link, capture.file)


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}/capture",
    response_model=EvidenceCaptureOut,
    summary="Stage Evidence",
    description="Remember a link and/or a file for a later completion. Nothing is persisted.",
    responses={404: {"description": "Task not found"}},
)
def stage_evidence(
    task_id: str,
    link: Optional[str] = Form(None, description="Evidence link"),
    file: Optional[UploadFile] = File(None, description="Evidence file"),
    manager: TaskLifecycleManager = Depends(get_lifecycle_manager),
) -> EvidenceCaptureOut:
    evidence_file = _read_upload(file, manager.max_evidence_bytes)
    capture = manager.stage_evidence(task_id, link=link, file=evidence_file)
    return _capture_out(task_id, capture.link, capture.file)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}/capture",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel Evidence Capture",
    description="Abandon the evidence step. Staged input is discarded; the task is not modified.",
)
def cancel_capture(task_id: str, manager: TaskLifecycleManager = Depends(get_lifecycle_manager)) -> None:
    manager.cancel_capture(task_id)
    return None


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/complete",
    response_model=TaskOut,
    summary="Complete Task",
    description=(
        "Complete a task with optional evidence sent as multipart form data.\n\n"
        "- file: evidence file (takes precedence over link)\n"
        "- link: evidence URL\n\n"
        "With neither field, previously staged evidence is used; with nothing staged the "
        "task is completed without evidence."
    ),
    responses={
        404: {"description": "Task not found"},
        422: {"description": "Evidence file too large"},
        503: {"description": "Store unavailable"},
    },
)
def complete_task(
    task_id: str,
    link: Optional[str] = Form(None, description="Evidence link"),
    file: Optional[UploadFile] = File(None, description="Evidence file"),
    manager: TaskLifecycleManager = Depends(get_lifecycle_manager),
    now: datetime = Depends(get_now),
) -> TaskOut:
    evidence_file = _read_upload(file, manager.max_evidence_bytes)
    evidence = None
    if link is not None or evidence_file is not None:
        evidence = EvidenceInput(link=link, file=evidence_file)
    completed = manager.complete_with_evidence(task_id, evidence)
    return TaskOut.from_entity(completed, now)


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/skip",
    response_model=TaskOut,
    summary="Complete Task Without Evidence",
    responses={404: {"description": "Task not found"}},
)
def skip_evidence(
    task_id: str,
    manager: TaskLifecycleManager = Depends(get_lifecycle_manager),
    now: datetime = Depends(get_now),
) -> TaskOut:
    return TaskOut.from_entity(manager.skip_without_evidence(task_id), now)


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}/evidence",
    summary="Open Evidence",
    description=(
        "File evidence is returned as its content: inline for PDFs and images whose declared "
        "type matches their extension, as an octet-stream attachment otherwise. Link evidence "
        "redirects to the link."
    ),
    responses={
        200: {"description": "Evidence file content"},
        307: {"description": "Redirect to link evidence"},
        404: {"description": "Task or evidence not found"},
    },
)
def open_evidence(task_id: str, manager: TaskLifecycleManager = Depends(get_lifecycle_manager)) -> Response:
    task = manager.get_task(task_id)
    evidence = task["evidence"]
    if evidence is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")

    if evidence["type"] == "link":
        if not is_web_url(evidence["url"]):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")
        return RedirectResponse(evidence["url"], status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    content = manager.evidence_store.open(evidence["reference"])
    media_type = inline_mime_type(evidence["name"], evidence["mime_type"])
    disposition = "inline" if media_type else "attachment"
    return Response(
        content=content,
        media_type=media_type or DEFAULT_MIME_TYPE,
        headers={
            "Content-Disposition": f"{disposition}; filename*=utf-8''{quote(evidence['name'])}",
            "X-Content-Type-Options": "nosniff",
        },
    )
