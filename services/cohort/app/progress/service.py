"""Weekly progress tracker.

Completed weeks always form the prefix 1..k. Only week k+1 may be
completed and only week k may be un-completed. Writers are serialised per
batch by a compare-and-swap on ``batches.progress_version``; the
(batch_id, week_number) unique constraint backs it up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.batches import service as batch_service
from app.batches.service import PROGRESS_STATES
from app.exceptions import PreconditionError, SequenceViolationError, ValidationError
from app.models.batch import Batch
from app.models.enums import BatchStatus
from app.progress import store

logger = logging.getLogger(__name__)

CONCURRENT_CHANGE_MESSAGE = "Progress changed concurrently. Reload and try again."


@dataclass(frozen=True)
class WeekState:
    week_number: int
    is_completed: bool
    completed_at: datetime | None = None
    completed_by: UUID | None = None


@dataclass(frozen=True)
class ProgressSummary:
    batch_id: UUID
    status: BatchStatus
    duration_weeks: int
    completed_weeks: int
    percentage: int
    weeks: list[WeekState]

    @property
    def next_week(self) -> int | None:
        """First week that may be completed, None once everything is done."""
        if self.completed_weeks >= self.duration_weeks:
            return None
        return self.completed_weeks + 1


async def _claim(db: AsyncSession, batch: Batch) -> None:
    """Bump progress_version only if nobody else did since we read the batch."""
    seen = batch.progress_version
    result = await db.execute(
        update(Batch)
        .where(Batch.batch_id == batch.batch_id, Batch.progress_version == seen)
        .values(progress_version=seen + 1, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise SequenceViolationError(CONCURRENT_CHANGE_MESSAGE)
    await db.refresh(batch)


async def set_week_status(
    db: AsyncSession,
    batch_id: UUID,
    week_number: int,
    completed: bool,
    actor: UUID | None = None,
) -> ProgressSummary:
    batch = await batch_service.get_batch(db, batch_id)
    if batch.status == BatchStatus.COMPLETED:
        raise PreconditionError(
            "Batch is completed; restart the batch to change its progress."
        )
    if batch.status not in PROGRESS_STATES:
        raise PreconditionError(
            f"Week progress cannot change while the batch is {batch.status.value}."
        )
    if batch.course_id is None:
        raise PreconditionError("Batch has no course assigned.")
    course = await batch_service.get_course(db, batch.course_id)
    duration = course.duration_weeks
    if not 1 <= week_number <= duration:
        raise ValidationError(f"week_number must be between 1 and {duration}.")

    weeks = await store.list_weeks(db, batch_id)
    k = store.completed_prefix(weeks)

    if completed:
        if week_number != k + 1:
            raise SequenceViolationError(
                f"Complete week {k + 1} first." if week_number > k + 1
                else f"Week {week_number} is already completed.",
                expected_week=k + 1,
            )
    else:
        if week_number != k:
            raise SequenceViolationError(
                f"Only week {k}, the last completed week, can be marked incomplete."
                if k > 0 else "No week has been completed yet.",
                expected_week=k or None,
            )

    await _claim(db, batch)

    if completed:
        try:
            await store.save_completed_week(db, batch_id, week_number, actor)
        except IntegrityError:
            await db.rollback()
            raise SequenceViolationError(CONCURRENT_CHANGE_MESSAGE, expected_week=k + 1)
        new_k = k + 1
    else:
        await store.delete_week(db, batch_id, week_number)
        new_k = k - 1

    batch.progress_percentage = store.progress_percentage(new_k, duration)
    if new_k == duration:
        await db.flush()
        await batch_service.mark_batch_completed(db, batch_id)
    elif new_k > 0:
        batch_service.transition(batch, BatchStatus.IN_PROGRESS)
    else:
        # Reopening week 1 keeps the status; only the percentage drops
        batch_service.transition(batch, batch.status)
    await db.flush()

    logger.info(
        "Batch %s week %d %s by %s (%d/%d)",
        batch_id, week_number, "completed" if completed else "reopened", actor, new_k, duration,
    )
    return await get_progress_summary(db, batch_id)


async def get_progress_summary(db: AsyncSession, batch_id: UUID) -> ProgressSummary:
    """Recompute k and the week list from the stored rows."""
    batch = await batch_service.get_batch(db, batch_id)
    duration = 0
    if batch.course_id is not None:
        course = await batch_service.get_course(db, batch.course_id)
        duration = course.duration_weeks

    rows = {w.week_number: w for w in await store.list_weeks(db, batch_id)}
    k = store.completed_prefix(list(rows.values()))
    weeks = []
    for n in range(1, duration + 1):
        row = rows.get(n)
        weeks.append(
            WeekState(
                week_number=n,
                is_completed=bool(row and row.is_completed),
                completed_at=row.completed_at if row else None,
                completed_by=row.completed_by if row else None,
            )
        )
    return ProgressSummary(
        batch_id=batch.batch_id,
        status=batch.status,
        duration_weeks=duration,
        completed_weeks=k,
        percentage=store.progress_percentage(k, duration),
        weeks=weeks,
    )
