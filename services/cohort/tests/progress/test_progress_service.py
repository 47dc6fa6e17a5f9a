import asyncio
import random
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.batches import service as batch_service
from app.exceptions import PreconditionError, SequenceViolationError, ValidationError
from app.models.enums import BatchStatus
from app.models.week_progress import WeekProgress
from app.progress import service, store


@pytest.mark.parametrize(
    ("completed", "duration", "expected"),
    [(0, 5, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 2, 50), (5, 5, 100)],
)
def test_progress_percentage_rounds_half_up(completed, duration, expected) -> None:
    assert store.progress_percentage(completed, duration) == expected


def test_completed_prefix_stops_at_gap() -> None:
    weeks = [WeekProgress(week_number=n, is_completed=True) for n in (1, 2, 4)]
    assert store.completed_prefix(weeks) == 2
    assert store.completed_prefix([]) == 0


@pytest.mark.asyncio
async def test_weeks_complete_in_order_and_finish_batch(db_session, seed) -> None:
    course = await seed.course(duration_weeks=3)
    batch = await seed.started_batch(course)
    teacher = uuid4()

    summary = await service.set_week_status(db_session, batch.batch_id, 1, True, teacher)
    await db_session.commit()
    assert summary.percentage == 33
    assert summary.status == BatchStatus.IN_PROGRESS
    assert summary.next_week == 2

    with pytest.raises(SequenceViolationError) as excinfo:
        await service.set_week_status(db_session, batch.batch_id, 3, True, teacher)
    assert excinfo.value.expected_week == 2
    assert "week 2" in str(excinfo.value)
    await db_session.rollback()

    summary = await service.set_week_status(db_session, batch.batch_id, 2, True, teacher)
    await db_session.commit()
    assert summary.percentage == 67

    summary = await service.set_week_status(db_session, batch.batch_id, 3, True, teacher)
    await db_session.commit()
    assert summary.percentage == 100
    assert summary.status == BatchStatus.COMPLETED
    assert summary.next_week is None
    assert all(w.is_completed and w.completed_by == teacher for w in summary.weeks)

    reloaded = await batch_service.get_batch(db_session, batch.batch_id)
    assert reloaded.status == BatchStatus.COMPLETED
    assert reloaded.progress_percentage == 100


@pytest.mark.asyncio
async def test_only_last_completed_week_can_be_reopened(db_session, seed) -> None:
    course = await seed.course(duration_weeks=3)
    batch = await seed.started_batch(course)
    await service.set_week_status(db_session, batch.batch_id, 1, True)
    await service.set_week_status(db_session, batch.batch_id, 2, True)
    await db_session.commit()

    with pytest.raises(SequenceViolationError):
        await service.set_week_status(db_session, batch.batch_id, 1, False)
    await db_session.rollback()

    summary = await service.set_week_status(db_session, batch.batch_id, 2, False)
    await db_session.commit()
    assert summary.completed_weeks == 1
    assert summary.percentage == 33
    assert summary.status == BatchStatus.IN_PROGRESS

    summary = await service.set_week_status(db_session, batch.batch_id, 1, False)
    await db_session.commit()
    assert summary.completed_weeks == 0
    assert summary.percentage == 0
    # A batch that has made progress stays in progress
    assert summary.status == BatchStatus.IN_PROGRESS
    rows = (await db_session.execute(
        select(WeekProgress).where(WeekProgress.batch_id == batch.batch_id)
    )).scalars().all()
    assert rows == []


@pytest.mark.asyncio
async def test_completed_batch_progress_is_frozen_until_restart(db_session, seed) -> None:
    course = await seed.course(duration_weeks=2)
    batch = await seed.completed_batch(course)

    for week, completed in ((2, False), (1, False), (2, True)):
        with pytest.raises(PreconditionError, match="restart"):
            await service.set_week_status(db_session, batch.batch_id, week, completed)
        await db_session.rollback()

    summary = await service.get_progress_summary(db_session, batch.batch_id)
    assert summary.status == BatchStatus.COMPLETED
    assert summary.completed_weeks == 2
    assert summary.percentage == 100

    await batch_service.restart_batch(db_session, batch.batch_id)
    await batch_service.start_batch(db_session, batch.batch_id)
    await db_session.commit()
    summary = await service.set_week_status(db_session, batch.batch_id, 1, True)
    assert summary.status == BatchStatus.IN_PROGRESS
    assert summary.percentage == 50


@pytest.mark.asyncio
@pytest.mark.parametrize("week", [0, 4, -1])
async def test_week_outside_course_is_validation_error(db_session, seed, week) -> None:
    course = await seed.course(duration_weeks=3)
    batch = await seed.started_batch(course)
    with pytest.raises(ValidationError):
        await service.set_week_status(db_session, batch.batch_id, week, True)


@pytest.mark.asyncio
async def test_progress_needs_started_batch(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.batch(course)
    with pytest.raises(PreconditionError):
        await service.set_week_status(db_session, batch.batch_id, 1, True)


@pytest.mark.asyncio
async def test_summary_of_unstarted_batch(db_session, seed) -> None:
    course = await seed.course(duration_weeks=4)
    batch = await seed.batch(course)
    summary = await service.get_progress_summary(db_session, batch.batch_id)
    assert summary.completed_weeks == 0
    assert [w.week_number for w in summary.weeks] == [1, 2, 3, 4]
    assert summary.next_week == 1


@pytest.mark.asyncio
async def test_random_sequences_keep_prefix(db_session, seed) -> None:
    duration = 6
    course = await seed.course(duration_weeks=duration)
    batch = await seed.started_batch(course)
    rng = random.Random(20250101)
    k = 0

    for _ in range(150):
        week = rng.randint(1, duration)
        completed = rng.random() < 0.6
        valid = week == k + 1 if completed else week == k
        if k == duration:
            # Finished: the batch is completed and frozen
            with pytest.raises(PreconditionError):
                await service.set_week_status(db_session, batch.batch_id, week, completed)
            await db_session.rollback()
            continue
        try:
            summary = await service.set_week_status(db_session, batch.batch_id, week, completed)
        except SequenceViolationError:
            await db_session.rollback()
            assert not valid
        else:
            await db_session.commit()
            assert valid
            k = summary.completed_weeks

        done = {
            w.week_number
            for w in await store.list_weeks(db_session, batch.batch_id)
            if w.is_completed
        }
        assert done == set(range(1, k + 1))


@pytest.mark.asyncio
async def test_concurrent_completion_has_one_winner(session_factory, seed) -> None:
    course = await seed.course(duration_weeks=3)
    batch = await seed.started_batch(course)

    async def complete_week_one() -> bool:
        async with session_factory() as session:
            try:
                await service.set_week_status(session, batch.batch_id, 1, True)
                await session.commit()
                return True
            except SequenceViolationError:
                await session.rollback()
                return False

    results = await asyncio.gather(*(complete_week_one() for _ in range(4)))
    assert results.count(True) == 1

    async with session_factory() as session:
        summary = await service.get_progress_summary(session, batch.batch_id)
        reloaded = await batch_service.get_batch(session, batch.batch_id)
    assert summary.completed_weeks == 1
    assert reloaded.progress_version == 1


@pytest.mark.asyncio
async def test_restart_invalidates_stale_writer(session_factory, seed) -> None:
    course = await seed.course(duration_weeks=3)
    batch = await seed.started_batch(course)

    async with session_factory() as stale:
        # Reader sees version 0, then the batch is restarted and restarted again
        seen = await batch_service.get_batch(stale, batch.batch_id)
        async with session_factory() as other:
            await batch_service.restart_batch(other, batch.batch_id)
            await batch_service.start_batch(other, batch.batch_id)
            await other.commit()
        with pytest.raises(SequenceViolationError):
            await service._claim(stale, seen)
