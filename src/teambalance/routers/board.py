from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import get_board_projection
from ..projection import BoardProjection
from ..schemas import BoardSummaryOut

router = APIRouter(
    prefix="/api/v1/board",
    tags=["board"],
)


# PUBLIC_INTERFACE
@router.get(
    "/summary",
    response_model=BoardSummaryOut,
    summary="Board Summary",
    description=(
        "Per-member statistics (grouped case-insensitively, first-seen order), the "
        "contribution split of completed points and the total group points."
    ),
)
def board_summary(projection: BoardProjection = Depends(get_board_projection)) -> BoardSummaryOut:
    """
    Return the dashboard derived from the latest task snapshot.
    """
    return BoardSummaryOut.from_summary(projection.summary)
