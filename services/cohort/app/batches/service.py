"""Batch service — lifecycle state machine, dates, and roster.

Pure business logic, no FastAPI imports.

Status flow:
    not_started → active → in_progress → completed
    any of the above → archived (terminal)
    active | in_progress | completed → not_started (restart)

Weekly progress itself lives in ``app.progress.service``; this module only
owns the transitions it triggers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    BatchNotFoundError,
    CourseNotFoundError,
    InvalidStatusTransitionError,
    PreconditionError,
    StudentNotInBatchError,
    ValidationError,
)
from app.models.batch import Batch, BatchStudent
from app.models.course import Course
from app.models.enums import BatchStatus
from app.pagination import fetch_page
from app.progress import store as progress_store

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.NOT_STARTED: frozenset({BatchStatus.ACTIVE, BatchStatus.ARCHIVED}),
    BatchStatus.ACTIVE: frozenset({
        BatchStatus.IN_PROGRESS,
        BatchStatus.COMPLETED,
        BatchStatus.NOT_STARTED,
        BatchStatus.ARCHIVED,
    }),
    BatchStatus.IN_PROGRESS: frozenset({
        BatchStatus.COMPLETED,
        BatchStatus.NOT_STARTED,
        BatchStatus.ARCHIVED,
    }),
    BatchStatus.COMPLETED: frozenset({BatchStatus.NOT_STARTED, BatchStatus.ARCHIVED}),
    BatchStatus.ARCHIVED: frozenset(),
}

# States in which weeks may be ticked off; a completed batch changes only via restart
PROGRESS_STATES = frozenset({BatchStatus.ACTIVE, BatchStatus.IN_PROGRESS})

# Fields a plain update may touch; status and progress have dedicated paths
_UPDATABLE_FIELDS = ("name", "description", "teacher_id")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def can_transition(current: BatchStatus, target: BatchStatus) -> bool:
    return target in _TRANSITIONS[current]


def transition(batch: Batch, target: BatchStatus) -> None:
    """Move ``batch`` to ``target`` or raise InvalidStatusTransitionError."""
    if batch.status == target:
        batch.updated_at = _now()
        return
    if not can_transition(batch.status, target):
        raise InvalidStatusTransitionError(batch.status.value, target.value)
    logger.info("Batch %s: %s -> %s", batch.batch_id, batch.status.value, target.value)
    batch.status = target
    batch.updated_at = _now()


# ===========================================================================
# CRUD
# ===========================================================================


async def create_batch(
    db: AsyncSession,
    *,
    name: str,
    created_by: UUID,
    description: str | None = None,
    teacher_id: UUID | None = None,
    course_id: UUID | None = None,
) -> Batch:
    if course_id is not None and await db.get(Course, course_id) is None:
        raise CourseNotFoundError(str(course_id))
    batch = Batch(
        name=name,
        description=description,
        teacher_id=teacher_id,
        course_id=course_id,
        created_by=created_by,
        status=BatchStatus.NOT_STARTED,
    )
    db.add(batch)
    await db.flush()
    await db.refresh(batch)
    return batch


async def get_batch(db: AsyncSession, batch_id: UUID) -> Batch:
    # populate_existing: progress writers race on this row, never trust the identity map
    batch = await db.get(Batch, batch_id, populate_existing=True)
    if batch is None:
        raise BatchNotFoundError(str(batch_id))
    return batch


async def get_course(db: AsyncSession, course_id: UUID) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError(str(course_id))
    return course


async def list_batches(
    db: AsyncSession,
    *,
    teacher_id: UUID | None = None,
    course_id: UUID | None = None,
    status: BatchStatus | None = None,
    is_active: bool | None = True,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Batch], int]:
    conditions = []
    if teacher_id is not None:
        conditions.append(Batch.teacher_id == teacher_id)
    if course_id is not None:
        conditions.append(Batch.course_id == course_id)
    if status is not None:
        conditions.append(Batch.status == status)
    if is_active is not None:
        conditions.append(Batch.is_active == is_active)

    stmt = select(Batch).where(*conditions).order_by(Batch.created_at.desc())
    return await fetch_page(db, stmt, limit=limit, offset=offset)


async def update_batch(db: AsyncSession, batch_id: UUID, updates: dict) -> Batch:
    batch = await get_batch(db, batch_id)
    for key, value in updates.items():
        if key in _UPDATABLE_FIELDS and value is not None:
            setattr(batch, key, value)
    batch.updated_at = _now()
    await db.flush()
    await db.refresh(batch)
    return batch


async def assign_course(db: AsyncSession, batch_id: UUID, course_id: UUID) -> Batch:
    """Bind the batch's single course. Only before the batch has started."""
    batch = await get_batch(db, batch_id)
    if batch.status != BatchStatus.NOT_STARTED:
        raise PreconditionError("The course can only be changed before the batch starts.")
    await get_course(db, course_id)
    batch.course_id = course_id
    batch.updated_at = _now()
    await db.flush()
    await db.refresh(batch)
    return batch


async def delete_batch(db: AsyncSession, batch_id: UUID, *, hard: bool = False) -> None:
    """Soft delete by default. A hard delete drops the batch and its week rows.

    Roster rows are left alone either way.
    """
    batch = await get_batch(db, batch_id)
    if not hard:
        batch.is_active = False
        batch.updated_at = _now()
        await db.flush()
        return
    await progress_store.delete_all_weeks(db, batch_id)
    await db.delete(batch)
    await db.flush()
    logger.info("Batch %s hard-deleted", batch_id)


# ===========================================================================
# Lifecycle
# ===========================================================================


async def start_batch(db: AsyncSession, batch_id: UUID) -> Batch:
    batch = await get_batch(db, batch_id)
    if batch.status != BatchStatus.NOT_STARTED:
        raise InvalidStatusTransitionError(batch.status.value, BatchStatus.ACTIVE.value)
    if batch.course_id is None:
        raise PreconditionError("Assign a course before starting the batch.")
    course = await get_course(db, batch.course_id)

    start = _now()
    batch.start_date = start
    batch.end_date = start + timedelta(weeks=course.duration_weeks)
    transition(batch, BatchStatus.ACTIVE)
    await db.flush()
    await db.refresh(batch)
    return batch


async def set_batch_dates(
    db: AsyncSession,
    batch_id: UUID,
    start_date: datetime,
    end_date: datetime,
) -> Batch:
    """Set explicit dates. Promotes a not_started batch to active."""
    batch = await get_batch(db, batch_id)
    if batch.status == BatchStatus.ARCHIVED:
        raise InvalidStatusTransitionError(batch.status.value, BatchStatus.ACTIVE.value)

    start_date = _as_utc(start_date)
    end_date = _as_utc(end_date)
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date.")

    batch.start_date = start_date
    batch.end_date = end_date
    if batch.status == BatchStatus.NOT_STARTED:
        transition(batch, BatchStatus.ACTIVE)
    else:
        batch.updated_at = _now()
    await db.flush()
    await db.refresh(batch)
    return batch


async def restart_batch(db: AsyncSession, batch_id: UUID) -> Batch:
    """Reset to not_started: dates, percentage and every WeekProgress row go.

    Bumping ``progress_version`` makes any in-flight week write lose its
    compare-and-swap instead of landing on the wiped batch.
    """
    batch = await get_batch(db, batch_id)
    if batch.status == BatchStatus.NOT_STARTED:
        return batch
    transition(batch, BatchStatus.NOT_STARTED)

    removed = await progress_store.delete_all_weeks(db, batch_id)
    batch.start_date = None
    batch.end_date = None
    batch.progress_percentage = 0
    batch.certificates_issued = False
    batch.progress_version = Batch.progress_version + 1
    await db.flush()
    await db.refresh(batch)
    logger.info("Batch %s restarted (%d week rows removed)", batch_id, removed)
    return batch


async def mark_batch_completed(db: AsyncSession, batch_id: UUID) -> Batch:
    batch = await get_batch(db, batch_id)
    if batch.course_id is None:
        raise PreconditionError("Batch has no course assigned.")
    course = await get_course(db, batch.course_id)
    weeks = await progress_store.list_weeks(db, batch_id)
    if progress_store.completed_prefix(weeks) < course.duration_weeks:
        raise PreconditionError("All weeks must be completed before the batch can complete.")

    transition(batch, BatchStatus.COMPLETED)
    batch.progress_percentage = 100
    await db.flush()
    await db.refresh(batch)
    return batch


async def archive_batch(db: AsyncSession, batch_id: UUID) -> Batch:
    batch = await get_batch(db, batch_id)
    transition(batch, BatchStatus.ARCHIVED)
    await db.flush()
    await db.refresh(batch)
    return batch


async def get_batch_stats(db: AsyncSession) -> dict[str, int]:
    rows = await db.execute(
        select(Batch.status, func.count())
        .where(Batch.is_active.is_(True))
        .group_by(Batch.status)
    )
    stats = {s.value: 0 for s in BatchStatus}
    for status, count in rows.all():
        stats[BatchStatus(status).value] = count
    stats["total"] = sum(stats.values())
    stats["inactive"] = await db.scalar(
        select(func.count()).select_from(Batch).where(Batch.is_active.is_(False))
    ) or 0
    return stats


# ===========================================================================
# Roster
# ===========================================================================


async def assign_student(
    db: AsyncSession,
    batch_id: UUID,
    student_id: UUID,
    assigned_by: UUID | None = None,
) -> BatchStudent:
    """Add a student to the roster, re-activating an earlier soft removal."""
    batch = await get_batch(db, batch_id)
    if batch.status == BatchStatus.ARCHIVED:
        raise PreconditionError("Cannot add students to an archived batch.")

    existing = await db.scalar(
        select(BatchStudent).where(
            BatchStudent.batch_id == batch_id,
            BatchStudent.student_id == student_id,
        )
    )
    if existing is not None:
        if not existing.is_active:
            existing.is_active = True
            existing.assigned_by = assigned_by
            existing.assigned_at = _now()
            existing.updated_at = _now()
            await db.flush()
            await db.refresh(existing)
        return existing

    member = BatchStudent(batch_id=batch_id, student_id=student_id, assigned_by=assigned_by)
    db.add(member)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise PreconditionError("Student was added to this batch concurrently.")
    await db.refresh(member)
    return member


async def _get_member(db: AsyncSession, batch_id: UUID, student_id: UUID) -> BatchStudent:
    member = await db.scalar(
        select(BatchStudent).where(
            BatchStudent.batch_id == batch_id,
            BatchStudent.student_id == student_id,
            BatchStudent.is_active.is_(True),
        )
    )
    if member is None:
        raise StudentNotInBatchError(str(batch_id), str(student_id))
    return member


async def remove_student(db: AsyncSession, batch_id: UUID, student_id: UUID) -> None:
    member = await _get_member(db, batch_id, student_id)
    member.is_active = False
    member.updated_at = _now()
    await db.flush()


async def list_batch_students(db: AsyncSession, batch_id: UUID) -> list[BatchStudent]:
    await get_batch(db, batch_id)
    result = await db.execute(
        select(BatchStudent)
        .where(BatchStudent.batch_id == batch_id, BatchStudent.is_active.is_(True))
        .order_by(BatchStudent.assigned_at.asc())
    )
    return list(result.scalars().all())


async def roster_student_ids(db: AsyncSession, batch_id: UUID) -> list[UUID]:
    result = await db.execute(
        select(BatchStudent.student_id).where(
            BatchStudent.batch_id == batch_id,
            BatchStudent.is_active.is_(True),
        )
    )
    return list(result.scalars().all())


async def set_student_progress(
    db: AsyncSession,
    batch_id: UUID,
    student_id: UUID,
    percentage: int,
) -> BatchStudent:
    """Teacher-entered per-student figure; does not touch week progress."""
    if not 0 <= percentage <= 100:
        raise ValidationError("progress_percentage must be between 0 and 100.")
    member = await _get_member(db, batch_id, student_id)
    member.progress_percentage = percentage
    member.updated_at = _now()
    await db.flush()
    await db.refresh(member)
    return member


async def list_student_batches(db: AsyncSession, student_id: UUID) -> list[Batch]:
    result = await db.execute(
        select(Batch)
        .join(BatchStudent, BatchStudent.batch_id == Batch.batch_id)
        .where(
            BatchStudent.student_id == student_id,
            BatchStudent.is_active.is_(True),
            Batch.is_active.is_(True),
        )
        .order_by(Batch.created_at.desc())
    )
    return list(result.scalars().all())


async def list_completed_batch_students(
    db: AsyncSession,
    teacher_id: UUID,
) -> list[tuple[Batch, BatchStudent]]:
    """Roster of the teacher's completed batches, the certificate worklist."""
    result = await db.execute(
        select(Batch, BatchStudent)
        .join(BatchStudent, BatchStudent.batch_id == Batch.batch_id)
        .where(
            Batch.teacher_id == teacher_id,
            Batch.status == BatchStatus.COMPLETED,
            Batch.is_active.is_(True),
            BatchStudent.is_active.is_(True),
        )
        .order_by(Batch.updated_at.desc(), BatchStudent.assigned_at.asc())
    )
    return [(batch, member) for batch, member in result.all()]
