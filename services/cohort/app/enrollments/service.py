"""Enrollment approval workflow.

    pending → approved | rejected
    approved → completed   (driven by attendance / grading, an input event here)

Rejected is terminal. A student who wants to retry gets a fresh enrollment;
the partial unique index only covers non-rejected rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.batches import service as batch_service
from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    EnrollmentNotFoundError,
    InvalidStateError,
    PreconditionError,
)
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.enums import BatchStatus, EnrollmentStatus

logger = logging.getLogger(__name__)

_APPROVE_FROM = {EnrollmentStatus.PENDING}
_REJECT_FROM = {EnrollmentStatus.PENDING}
_COMPLETE_FROM = {EnrollmentStatus.APPROVED}


@dataclass(frozen=True)
class BulkStatusResult:
    enrollment_id: UUID
    ok: bool
    status: EnrollmentStatus | None = None
    error: str | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def create_enrollment(
    db: AsyncSession,
    student_id: UUID,
    course_id: UUID,
) -> Enrollment:
    if await db.get(Course, course_id) is None:
        raise CourseNotFoundError(str(course_id))

    open_enrollment = await db.scalar(
        select(Enrollment.enrollment_id).where(
            Enrollment.student_id == student_id,
            Enrollment.course_id == course_id,
            Enrollment.status != EnrollmentStatus.REJECTED,
        )
    )
    if open_enrollment is not None:
        raise AlreadyEnrolledError("Student already has an open enrollment for this course.")

    enrollment = Enrollment(
        student_id=student_id,
        course_id=course_id,
        status=EnrollmentStatus.PENDING,
    )
    db.add(enrollment)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise AlreadyEnrolledError("Student already has an open enrollment for this course.")
    await db.refresh(enrollment)
    return enrollment


async def get_enrollment(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    enrollment = await db.get(Enrollment, enrollment_id, populate_existing=True)
    if enrollment is None:
        raise EnrollmentNotFoundError(str(enrollment_id))
    return enrollment


async def list_enrollments(
    db: AsyncSession,
    *,
    student_id: UUID | None = None,
    course_id: UUID | None = None,
    status: EnrollmentStatus | None = None,
    student_ids: list[UUID] | None = None,
) -> list[Enrollment]:
    stmt = select(Enrollment)
    if student_id is not None:
        stmt = stmt.where(Enrollment.student_id == student_id)
    if course_id is not None:
        stmt = stmt.where(Enrollment.course_id == course_id)
    if status is not None:
        stmt = stmt.where(Enrollment.status == status)
    if student_ids is not None:
        if not student_ids:
            return []
        stmt = stmt.where(Enrollment.student_id.in_(student_ids))
    result = await db.execute(stmt.order_by(Enrollment.created_at.asc()))
    return list(result.scalars().all())


def _check(enrollment: Enrollment, allowed: set[EnrollmentStatus], target: EnrollmentStatus) -> None:
    if enrollment.status not in allowed:
        raise InvalidStateError(enrollment.status.value, target.value)


async def approve_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    approved_by: UUID | None = None,
) -> Enrollment:
    enrollment = await get_enrollment(db, enrollment_id)
    _check(enrollment, _APPROVE_FROM, EnrollmentStatus.APPROVED)
    enrollment.status = EnrollmentStatus.APPROVED
    enrollment.approved_by = approved_by
    enrollment.approved_at = _now()
    enrollment.updated_at = _now()
    await db.flush()
    await db.refresh(enrollment)
    return enrollment


async def reject_enrollment(
    db: AsyncSession,
    enrollment_id: UUID,
    rejected_by: UUID | None = None,
) -> Enrollment:
    enrollment = await get_enrollment(db, enrollment_id)
    _check(enrollment, _REJECT_FROM, EnrollmentStatus.REJECTED)
    enrollment.status = EnrollmentStatus.REJECTED
    enrollment.approved_by = rejected_by
    enrollment.updated_at = _now()
    await db.flush()
    await db.refresh(enrollment)
    return enrollment


async def complete_enrollment(db: AsyncSession, enrollment_id: UUID) -> Enrollment:
    enrollment = await get_enrollment(db, enrollment_id)
    _check(enrollment, _COMPLETE_FROM, EnrollmentStatus.COMPLETED)
    enrollment.status = EnrollmentStatus.COMPLETED
    enrollment.completed_at = _now()
    enrollment.updated_at = _now()
    await db.flush()
    await db.refresh(enrollment)
    return enrollment


async def bulk_update_status(
    db: AsyncSession,
    enrollment_ids: list[UUID],
    target: EnrollmentStatus,
    actor: UUID | None = None,
) -> list[BulkStatusResult]:
    """Approve or reject many enrollments; each id gets its own result."""
    if target == EnrollmentStatus.APPROVED:
        action = approve_enrollment
    elif target == EnrollmentStatus.REJECTED:
        action = reject_enrollment
    else:
        raise InvalidStateError(EnrollmentStatus.PENDING.value, target.value)

    results: list[BulkStatusResult] = []
    for enrollment_id in enrollment_ids:
        try:
            enrollment = await action(db, enrollment_id, actor)
        except (EnrollmentNotFoundError, InvalidStateError) as exc:
            results.append(BulkStatusResult(enrollment_id, ok=False, error=str(exc)))
            continue
        results.append(BulkStatusResult(enrollment_id, ok=True, status=enrollment.status))
    return results


async def get_enrollment_stats(
    db: AsyncSession,
    course_id: UUID | None = None,
) -> dict[str, int]:
    stmt = select(Enrollment.status, func.count()).group_by(Enrollment.status)
    if course_id is not None:
        stmt = stmt.where(Enrollment.course_id == course_id)
    stats = {s.value: 0 for s in EnrollmentStatus}
    for status, count in (await db.execute(stmt)).all():
        stats[EnrollmentStatus(status).value] = count
    stats["total"] = sum(stats.values())
    return stats


async def complete_batch_enrollments(db: AsyncSession, batch_id: UUID) -> list[Enrollment]:
    """Mark the approved enrollments of a completed batch's roster as completed."""
    batch = await batch_service.get_batch(db, batch_id)
    if batch.status != BatchStatus.COMPLETED:
        raise PreconditionError("Only a completed batch can complete its enrollments.")
    if batch.course_id is None:
        raise PreconditionError("Batch has no course assigned.")

    student_ids = await batch_service.roster_student_ids(db, batch_id)
    approved = await list_enrollments(
        db,
        course_id=batch.course_id,
        status=EnrollmentStatus.APPROVED,
        student_ids=student_ids,
    )
    now = _now()
    for enrollment in approved:
        enrollment.status = EnrollmentStatus.COMPLETED
        enrollment.completed_at = now
        enrollment.updated_at = now
    await db.flush()
    logger.info("Batch %s: %d enrollments completed", batch_id, len(approved))
    return approved
