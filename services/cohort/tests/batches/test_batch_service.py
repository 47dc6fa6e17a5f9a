from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.batches import service
from app.batches.service import can_transition
from app.exceptions import (
    BatchNotFoundError,
    InvalidStatusTransitionError,
    PreconditionError,
    StudentNotInBatchError,
    ValidationError,
)
from app.models.batch import BatchStudent
from app.models.enums import BatchStatus
from app.models.week_progress import WeekProgress
from app.progress import service as progress_service


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (BatchStatus.NOT_STARTED, BatchStatus.ACTIVE, True),
        (BatchStatus.NOT_STARTED, BatchStatus.COMPLETED, False),
        (BatchStatus.ACTIVE, BatchStatus.IN_PROGRESS, True),
        (BatchStatus.IN_PROGRESS, BatchStatus.COMPLETED, True),
        (BatchStatus.IN_PROGRESS, BatchStatus.ACTIVE, False),
        (BatchStatus.COMPLETED, BatchStatus.IN_PROGRESS, False),
        (BatchStatus.COMPLETED, BatchStatus.ACTIVE, False),
        (BatchStatus.COMPLETED, BatchStatus.NOT_STARTED, True),
        (BatchStatus.COMPLETED, BatchStatus.ARCHIVED, True),
        (BatchStatus.ARCHIVED, BatchStatus.NOT_STARTED, False),
        (BatchStatus.ARCHIVED, BatchStatus.ACTIVE, False),
    ],
)
def test_transition_table(current, target, allowed) -> None:
    assert can_transition(current, target) is allowed


@pytest.mark.asyncio
async def test_create_batch_starts_not_started(db_session, seed) -> None:
    course = await seed.course()
    batch = await service.create_batch(
        db_session, name="Evening", created_by=uuid4(), course_id=course.course_id,
    )
    assert batch.status == BatchStatus.NOT_STARTED
    assert batch.progress_percentage == 0
    assert batch.start_date is None and batch.end_date is None


@pytest.mark.asyncio
async def test_start_requires_course(db_session, seed) -> None:
    batch = await seed.batch()
    with pytest.raises(PreconditionError):
        await service.start_batch(db_session, batch.batch_id)


@pytest.mark.asyncio
async def test_start_computes_dates_from_duration(db_session, seed) -> None:
    course = await seed.course(duration_weeks=3)
    batch = await seed.batch(course)

    started = await service.start_batch(db_session, batch.batch_id)
    await db_session.commit()

    assert started.status == BatchStatus.ACTIVE
    assert started.end_date - started.start_date == timedelta(weeks=3)


@pytest.mark.asyncio
async def test_start_twice_is_rejected(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.started_batch(course)
    with pytest.raises(InvalidStatusTransitionError):
        await service.start_batch(db_session, batch.batch_id)


@pytest.mark.asyncio
async def test_set_dates_end_before_start_leaves_batch_untouched(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.batch(course)

    with pytest.raises(ValidationError):
        await service.set_batch_dates(
            db_session, batch.batch_id, datetime(2025, 1, 1), datetime(2024, 12, 31),
        )
    await db_session.rollback()

    reloaded = await service.get_batch(db_session, batch.batch_id)
    assert reloaded.status == BatchStatus.NOT_STARTED
    assert reloaded.start_date is None


@pytest.mark.asyncio
async def test_set_dates_promotes_not_started(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.batch(course)

    updated = await service.set_batch_dates(
        db_session, batch.batch_id, datetime(2025, 1, 1), datetime(2025, 3, 1, tzinfo=timezone.utc),
    )
    await db_session.commit()

    assert updated.status == BatchStatus.ACTIVE
    assert updated.start_date.replace(tzinfo=None) == datetime(2025, 1, 1)


@pytest.mark.asyncio
async def test_set_dates_keeps_in_progress_status(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.started_batch(course)
    await progress_service.set_week_status(db_session, batch.batch_id, 1, True)
    await db_session.commit()

    updated = await service.set_batch_dates(
        db_session, batch.batch_id, datetime(2025, 1, 1), datetime(2025, 2, 1),
    )
    assert updated.status == BatchStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_restart_clears_progress_and_allows_start(db_session, seed) -> None:
    course = await seed.course(duration_weeks=2)
    batch = await seed.completed_batch(course)
    version_before = batch.progress_version

    restarted = await service.restart_batch(db_session, batch.batch_id)
    await db_session.commit()

    assert restarted.status == BatchStatus.NOT_STARTED
    assert restarted.progress_percentage == 0
    assert restarted.start_date is None and restarted.end_date is None
    assert restarted.certificates_issued is False
    assert restarted.progress_version == version_before + 1
    remaining = await db_session.scalar(
        select(func.count()).select_from(WeekProgress).where(WeekProgress.batch_id == batch.batch_id)
    )
    assert remaining == 0

    again = await service.start_batch(db_session, batch.batch_id)
    assert again.status == BatchStatus.ACTIVE


@pytest.mark.asyncio
async def test_restart_not_started_is_noop(db_session, seed) -> None:
    batch = await seed.batch()
    restarted = await service.restart_batch(db_session, batch.batch_id)
    assert restarted.status == BatchStatus.NOT_STARTED
    assert restarted.progress_version == 0


@pytest.mark.asyncio
async def test_archived_is_terminal(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.started_batch(course)
    archived = await service.archive_batch(db_session, batch.batch_id)
    await db_session.commit()
    assert archived.status == BatchStatus.ARCHIVED

    with pytest.raises(InvalidStatusTransitionError):
        await service.restart_batch(db_session, batch.batch_id)
    with pytest.raises(InvalidStatusTransitionError):
        await service.start_batch(db_session, batch.batch_id)
    with pytest.raises(InvalidStatusTransitionError):
        await service.set_batch_dates(
            db_session, batch.batch_id, datetime(2025, 1, 1), datetime(2025, 2, 1),
        )
    with pytest.raises(PreconditionError):
        await service.assign_student(db_session, batch.batch_id, uuid4())


@pytest.mark.asyncio
async def test_mark_completed_requires_all_weeks(db_session, seed) -> None:
    course = await seed.course(duration_weeks=2)
    batch = await seed.started_batch(course)
    await progress_service.set_week_status(db_session, batch.batch_id, 1, True)
    await db_session.commit()

    with pytest.raises(PreconditionError):
        await service.mark_batch_completed(db_session, batch.batch_id)


@pytest.mark.asyncio
async def test_assign_course_only_before_start(db_session, seed) -> None:
    course = await seed.course()
    other = await seed.course(title="Ayurveda Basics")
    batch = await seed.batch()

    assigned = await service.assign_course(db_session, batch.batch_id, course.course_id)
    await db_session.commit()
    assert assigned.course_id == course.course_id

    await service.start_batch(db_session, batch.batch_id)
    await db_session.commit()
    with pytest.raises(PreconditionError):
        await service.assign_course(db_session, batch.batch_id, other.course_id)


@pytest.mark.asyncio
async def test_update_batch_ignores_status(db_session, seed) -> None:
    batch = await seed.batch()
    updated = await service.update_batch(
        db_session, batch.batch_id, {"name": "Renamed", "status": BatchStatus.COMPLETED},
    )
    assert updated.name == "Renamed"
    assert updated.status == BatchStatus.NOT_STARTED


@pytest.mark.asyncio
async def test_soft_delete_hides_batch_from_listing(db_session, seed) -> None:
    batch = await seed.batch()
    await service.delete_batch(db_session, batch.batch_id)
    await db_session.commit()

    items, total = await service.list_batches(db_session)
    assert total == 0 and items == []
    items, total = await service.list_batches(db_session, is_active=False)
    assert [b.batch_id for b in items] == [batch.batch_id]


@pytest.mark.asyncio
async def test_hard_delete_keeps_roster(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.started_batch(course)
    student = uuid4()
    await service.assign_student(db_session, batch.batch_id, student)
    await progress_service.set_week_status(db_session, batch.batch_id, 1, True)
    await db_session.commit()

    await service.delete_batch(db_session, batch.batch_id, hard=True)
    await db_session.commit()

    with pytest.raises(BatchNotFoundError):
        await service.get_batch(db_session, batch.batch_id)
    weeks = await db_session.scalar(
        select(func.count()).select_from(WeekProgress).where(WeekProgress.batch_id == batch.batch_id)
    )
    members = await db_session.scalar(
        select(func.count()).select_from(BatchStudent).where(BatchStudent.batch_id == batch.batch_id)
    )
    assert weeks == 0
    assert members == 1


@pytest.mark.asyncio
async def test_roster_remove_and_reassign(db_session, seed) -> None:
    batch = await seed.batch()
    student = uuid4()

    first = await service.assign_student(db_session, batch.batch_id, student)
    await service.remove_student(db_session, batch.batch_id, student)
    await db_session.commit()
    assert await service.list_batch_students(db_session, batch.batch_id) == []

    again = await service.assign_student(db_session, batch.batch_id, student)
    assert again.id == first.id
    assert again.is_active is True

    with pytest.raises(StudentNotInBatchError):
        await service.remove_student(db_session, batch.batch_id, uuid4())


@pytest.mark.asyncio
async def test_student_progress_is_independent_of_week_progress(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.started_batch(course)
    student = uuid4()
    await service.assign_student(db_session, batch.batch_id, student)

    member = await service.set_student_progress(db_session, batch.batch_id, student, 40)
    await db_session.commit()
    assert member.progress_percentage == 40
    assert (await service.get_batch(db_session, batch.batch_id)).progress_percentage == 0

    with pytest.raises(ValidationError):
        await service.set_student_progress(db_session, batch.batch_id, student, 150)


@pytest.mark.asyncio
async def test_batch_stats(db_session, seed) -> None:
    course = await seed.course(duration_weeks=1)
    await seed.batch()
    await seed.started_batch(course)
    await seed.completed_batch(course)
    deleted = await seed.batch()
    await service.delete_batch(db_session, deleted.batch_id)
    await db_session.commit()

    stats = await service.get_batch_stats(db_session)
    assert stats["not_started"] == 1
    assert stats["active"] == 1
    assert stats["completed"] == 1
    assert stats["total"] == 3
    assert stats["inactive"] == 1


@pytest.mark.asyncio
async def test_student_and_teacher_views(db_session, seed) -> None:
    course = await seed.course(duration_weeks=1)
    teacher = uuid4()
    student = uuid4()
    done = await seed.completed_batch(course, [student], teacher_id=teacher)
    running = await seed.started_batch(course, teacher_id=teacher)
    await service.assign_student(db_session, running.batch_id, student)
    await db_session.commit()

    mine = await service.list_student_batches(db_session, student)
    assert {b.batch_id for b in mine} == {done.batch_id, running.batch_id}

    worklist = await service.list_completed_batch_students(db_session, teacher)
    assert [(b.batch_id, m.student_id) for b, m in worklist] == [(done.batch_id, student)]
