"""WeekProgress persistence plus the prefix arithmetic built on it.

Leaf module: no lifecycle rules here, callers own the invariants.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.week_progress import WeekProgress


async def list_weeks(db: AsyncSession, batch_id: UUID) -> list[WeekProgress]:
    result = await db.execute(
        select(WeekProgress)
        .where(WeekProgress.batch_id == batch_id)
        .order_by(WeekProgress.week_number.asc())
    )
    return list(result.scalars().all())


async def save_completed_week(
    db: AsyncSession,
    batch_id: UUID,
    week_number: int,
    completed_by: UUID | None = None,
) -> WeekProgress:
    """Insert the completion row. A duplicate surfaces as IntegrityError on flush."""
    row = WeekProgress(
        batch_id=batch_id,
        week_number=week_number,
        is_completed=True,
        completed_at=datetime.now(timezone.utc),
        completed_by=completed_by,
    )
    db.add(row)
    await db.flush()
    return row


async def delete_week(db: AsyncSession, batch_id: UUID, week_number: int) -> int:
    result = await db.execute(
        delete(WeekProgress).where(
            WeekProgress.batch_id == batch_id,
            WeekProgress.week_number == week_number,
        )
    )
    return result.rowcount or 0


async def delete_all_weeks(db: AsyncSession, batch_id: UUID) -> int:
    result = await db.execute(
        delete(WeekProgress).where(WeekProgress.batch_id == batch_id)
    )
    return result.rowcount or 0


def completed_prefix(weeks: list[WeekProgress]) -> int:
    """Length k of the run 1..k of completed weeks.

    Stops at the first gap so a stray row past a hole never counts.
    """
    done = {w.week_number for w in weeks if w.is_completed}
    k = 0
    while (k + 1) in done:
        k += 1
    return k


def progress_percentage(completed: int, duration_weeks: int) -> int:
    """round_half_up(100 * completed / duration_weeks) in integer arithmetic."""
    if duration_weeks <= 0:
        return 0
    completed = max(0, min(completed, duration_weeks))
    return (200 * completed + duration_weeks) // (2 * duration_weeks)
