"""Progress controller — maps tracker results to HTTP responses."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    BatchNotFoundError,
    CourseNotFoundError,
    PreconditionError,
    SequenceViolationError,
    ValidationError,
)
from app.progress import service
from app.progress.schemas import ProgressSummaryResponse


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (BatchNotFoundError, CourseNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, (SequenceViolationError, PreconditionError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def get_progress(db: AsyncSession, batch_id: UUID) -> ProgressSummaryResponse:
    try:
        summary = await service.get_progress_summary(db, batch_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ProgressSummaryResponse.model_validate(summary)


async def set_week_status(
    db: AsyncSession,
    batch_id: UUID,
    week_number: int,
    completed: bool,
    actor: UUID,
) -> ProgressSummaryResponse:
    try:
        summary = await service.set_week_status(db, batch_id, week_number, completed, actor)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ProgressSummaryResponse.model_validate(summary)
