"""Weekly progress router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import CurrentUser, get_current_user, get_staff_user
from app.progress import controller
from app.progress.schemas import ProgressSummaryResponse, WeekStatusRequest

router = APIRouter(prefix="/batches", tags=["Progress"])


@router.get(
    "/{batch_id}/progress",
    response_model=ProgressSummaryResponse,
    summary="Weekly progress of a batch",
    description="Recomputed from the stored weeks on every call.",
)
async def get_progress(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_current_user),
) -> ProgressSummaryResponse:
    return await controller.get_progress(db, batch_id)


@router.put(
    "/{batch_id}/weeks/{week_number}",
    response_model=ProgressSummaryResponse,
    summary="Complete or reopen a week",
    description="Weeks complete strictly in order: only week k+1 can be completed and only "
    "week k can be reopened. Out-of-order calls return 409. Completing the last week "
    "completes the batch; a completed batch returns 409 until it is restarted.",
)
async def set_week_status(
    batch_id: UUID,
    week_number: int,
    body: WeekStatusRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> ProgressSummaryResponse:
    return await controller.set_week_status(db, batch_id, week_number, body.completed, user.id)
