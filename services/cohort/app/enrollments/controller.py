"""Enrollment controller — maps service results to HTTP responses."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.enrollments import service
from app.enrollments.schemas import (
    BulkStatusItem,
    BulkStatusRequest,
    BulkStatusResponse,
    EnrollmentResponse,
    EnrollmentStatsResponse,
)
from app.exceptions import (
    AlreadyEnrolledError,
    BatchNotFoundError,
    CourseNotFoundError,
    EnrollmentNotFoundError,
    InvalidStateError,
    PreconditionError,
)
from app.models.enums import EnrollmentStatus


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (EnrollmentNotFoundError, CourseNotFoundError, BatchNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InvalidStateError, AlreadyEnrolledError, PreconditionError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def create_enrollment(
    db: AsyncSession,
    student_id: UUID,
    course_id: UUID,
) -> EnrollmentResponse:
    try:
        enrollment = await service.create_enrollment(db, student_id, course_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return EnrollmentResponse.model_validate(enrollment)


async def get_enrollment(db: AsyncSession, enrollment_id: UUID) -> EnrollmentResponse:
    try:
        enrollment = await service.get_enrollment(db, enrollment_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return EnrollmentResponse.model_validate(enrollment)


async def list_enrollments(
    db: AsyncSession,
    *,
    student_id: UUID | None,
    course_id: UUID | None,
    enrollment_status: EnrollmentStatus | None,
) -> list[EnrollmentResponse]:
    rows = await service.list_enrollments(
        db, student_id=student_id, course_id=course_id, status=enrollment_status,
    )
    return [EnrollmentResponse.model_validate(e) for e in rows]


async def change_status(db: AsyncSession, action, enrollment_id: UUID, *args) -> EnrollmentResponse:
    """Shared wrapper for approve / reject / complete."""
    try:
        enrollment = await action(db, enrollment_id, *args)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return EnrollmentResponse.model_validate(enrollment)


async def bulk_update_status(
    db: AsyncSession,
    body: BulkStatusRequest,
    actor: UUID,
) -> BulkStatusResponse:
    target = EnrollmentStatus.APPROVED if body.action == "approve" else EnrollmentStatus.REJECTED
    results = await service.bulk_update_status(db, body.enrollment_ids, target, actor)
    items = [BulkStatusItem.model_validate(r) for r in results]
    ok = sum(1 for r in items if r.ok)
    return BulkStatusResponse(results=items, success_count=ok, fail_count=len(items) - ok)


async def get_enrollment_stats(db: AsyncSession, course_id: UUID | None) -> EnrollmentStatsResponse:
    return EnrollmentStatsResponse(**await service.get_enrollment_stats(db, course_id))


async def complete_batch_enrollments(db: AsyncSession, batch_id: UUID) -> list[EnrollmentResponse]:
    try:
        rows = await service.complete_batch_enrollments(db, batch_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return [EnrollmentResponse.model_validate(e) for e in rows]
