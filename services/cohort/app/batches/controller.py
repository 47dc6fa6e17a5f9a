"""Batch controller — maps service results to HTTP responses."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.batches import service
from app.batches.schemas import (
    BatchCreate,
    BatchResponse,
    BatchStatsResponse,
    BatchStudentResponse,
    BatchUpdate,
    CompletedBatchStudentResponse,
)
from app.exceptions import (
    BatchNotFoundError,
    CourseNotFoundError,
    PreconditionError,
    StudentNotInBatchError,
    ValidationError,
)
from app.models.enums import BatchStatus
from app.pagination import OffsetPage

logger = logging.getLogger(__name__)


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (BatchNotFoundError, CourseNotFoundError, StudentNotInBatchError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, PreconditionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    logger.error("Unhandled batch error", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def create_batch(db: AsyncSession, body: BatchCreate, created_by: UUID) -> BatchResponse:
    try:
        batch = await service.create_batch(
            db,
            name=body.name,
            description=body.description,
            teacher_id=body.teacher_id,
            course_id=body.course_id,
            created_by=created_by,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return BatchResponse.model_validate(batch)


async def get_batch(db: AsyncSession, batch_id: UUID) -> BatchResponse:
    try:
        batch = await service.get_batch(db, batch_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return BatchResponse.model_validate(batch)


async def list_batches(
    db: AsyncSession,
    *,
    teacher_id: UUID | None,
    course_id: UUID | None,
    batch_status: BatchStatus | None,
    is_active: bool | None,
    limit: int,
    offset: int,
) -> OffsetPage[BatchResponse]:
    items, total = await service.list_batches(
        db,
        teacher_id=teacher_id,
        course_id=course_id,
        status=batch_status,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )
    return OffsetPage[BatchResponse].build(
        [BatchResponse.model_validate(b) for b in items], total, limit, offset,
    )


async def update_batch(db: AsyncSession, batch_id: UUID, body: BatchUpdate) -> BatchResponse:
    try:
        batch = await service.update_batch(db, batch_id, body.model_dump(exclude_unset=True))
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return BatchResponse.model_validate(batch)


async def delete_batch(db: AsyncSession, batch_id: UUID, hard: bool) -> None:
    try:
        await service.delete_batch(db, batch_id, hard=hard)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def run_lifecycle_action(db: AsyncSession, action, batch_id: UUID, *args) -> BatchResponse:
    """Shared wrapper for assign-course / start / dates / restart / archive."""
    try:
        batch = await action(db, batch_id, *args)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return BatchResponse.model_validate(batch)


async def get_batch_stats(db: AsyncSession) -> BatchStatsResponse:
    return BatchStatsResponse(**await service.get_batch_stats(db))


async def assign_student(
    db: AsyncSession,
    batch_id: UUID,
    student_id: UUID,
    assigned_by: UUID,
) -> BatchStudentResponse:
    try:
        member = await service.assign_student(db, batch_id, student_id, assigned_by)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return BatchStudentResponse.model_validate(member)


async def remove_student(db: AsyncSession, batch_id: UUID, student_id: UUID) -> None:
    try:
        await service.remove_student(db, batch_id, student_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc


async def list_batch_students(db: AsyncSession, batch_id: UUID) -> list[BatchStudentResponse]:
    try:
        members = await service.list_batch_students(db, batch_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return [BatchStudentResponse.model_validate(m) for m in members]


async def set_student_progress(
    db: AsyncSession,
    batch_id: UUID,
    student_id: UUID,
    percentage: int,
) -> BatchStudentResponse:
    try:
        member = await service.set_student_progress(db, batch_id, student_id, percentage)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return BatchStudentResponse.model_validate(member)


async def list_student_batches(db: AsyncSession, student_id: UUID) -> list[BatchResponse]:
    batches = await service.list_student_batches(db, student_id)
    return [BatchResponse.model_validate(b) for b in batches]


async def list_completed_batch_students(
    db: AsyncSession,
    teacher_id: UUID,
) -> list[CompletedBatchStudentResponse]:
    rows = await service.list_completed_batch_students(db, teacher_id)
    return [
        CompletedBatchStudentResponse(
            batch_id=batch.batch_id,
            batch_name=batch.name,
            course_id=batch.course_id,
            certificates_issued=batch.certificates_issued,
            student_id=member.student_id,
            assigned_at=member.assigned_at,
        )
        for batch, member in rows
    ]
