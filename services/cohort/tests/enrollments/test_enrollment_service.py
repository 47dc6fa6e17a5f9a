from uuid import uuid4

import pytest

from app.batches import service as batch_service
from app.enrollments import service
from app.exceptions import AlreadyEnrolledError, InvalidStateError, PreconditionError
from app.models.enums import EnrollmentStatus
from shared.database.postgres import Base


@pytest.mark.asyncio
async def test_pending_approve_complete(db_session, seed) -> None:
    course = await seed.course()
    student = uuid4()
    approver = uuid4()

    enrollment = await service.create_enrollment(db_session, student, course.course_id)
    assert enrollment.status == EnrollmentStatus.PENDING

    approved = await service.approve_enrollment(db_session, enrollment.enrollment_id, approver)
    assert approved.status == EnrollmentStatus.APPROVED
    assert approved.approved_by == approver
    assert approved.approved_at is not None

    completed = await service.complete_enrollment(db_session, enrollment.enrollment_id)
    assert completed.status == EnrollmentStatus.COMPLETED
    assert completed.completed_at is not None


@pytest.mark.asyncio
async def test_duplicate_open_enrollment_rejected(db_session, seed) -> None:
    course = await seed.course()
    student = uuid4()
    await service.create_enrollment(db_session, student, course.course_id)
    await db_session.commit()

    with pytest.raises(AlreadyEnrolledError):
        await service.create_enrollment(db_session, student, course.course_id)


@pytest.mark.asyncio
async def test_only_pending_can_be_decided(db_session, seed) -> None:
    course = await seed.course()
    enrollment = await service.create_enrollment(db_session, uuid4(), course.course_id)
    await service.approve_enrollment(db_session, enrollment.enrollment_id)
    await db_session.commit()

    with pytest.raises(InvalidStateError):
        await service.approve_enrollment(db_session, enrollment.enrollment_id)
    with pytest.raises(InvalidStateError):
        await service.reject_enrollment(db_session, enrollment.enrollment_id)


@pytest.mark.asyncio
async def test_complete_requires_approval(db_session, seed) -> None:
    course = await seed.course()
    enrollment = await service.create_enrollment(db_session, uuid4(), course.course_id)
    with pytest.raises(InvalidStateError) as excinfo:
        await service.complete_enrollment(db_session, enrollment.enrollment_id)
    assert excinfo.value.current == "pending"
    assert excinfo.value.target == "completed"


@pytest.mark.asyncio
async def test_rejected_is_terminal_but_student_can_reapply(db_session, seed) -> None:
    course = await seed.course()
    student = uuid4()
    first = await service.create_enrollment(db_session, student, course.course_id)
    await service.reject_enrollment(db_session, first.enrollment_id)
    await db_session.commit()

    with pytest.raises(InvalidStateError):
        await service.approve_enrollment(db_session, first.enrollment_id)

    second = await service.create_enrollment(db_session, student, course.course_id)
    await db_session.commit()
    assert second.enrollment_id != first.enrollment_id
    assert second.status == EnrollmentStatus.PENDING


@pytest.mark.asyncio
async def test_bulk_update_reports_each_item(db_session, seed) -> None:
    course = await seed.course()
    pending = await service.create_enrollment(db_session, uuid4(), course.course_id)
    decided = await service.create_enrollment(db_session, uuid4(), course.course_id)
    await service.reject_enrollment(db_session, decided.enrollment_id)
    await db_session.commit()
    missing = uuid4()

    results = await service.bulk_update_status(
        db_session,
        [pending.enrollment_id, decided.enrollment_id, missing],
        EnrollmentStatus.APPROVED,
    )

    assert [r.enrollment_id for r in results] == [pending.enrollment_id, decided.enrollment_id, missing]
    assert [r.ok for r in results] == [True, False, False]
    assert results[0].status == EnrollmentStatus.APPROVED


@pytest.mark.asyncio
async def test_enrollment_stats(db_session, seed) -> None:
    course = await seed.course()
    await seed.enrollment(course, status=EnrollmentStatus.PENDING)
    await seed.enrollment(course, status=EnrollmentStatus.COMPLETED)
    await seed.enrollment(course, status=EnrollmentStatus.COMPLETED)

    stats = await service.get_enrollment_stats(db_session, course.course_id)
    assert stats == {
        "pending": 1, "approved": 0, "rejected": 0, "completed": 2, "total": 3,
    }


@pytest.mark.asyncio
async def test_complete_batch_enrollments_only_touches_roster(db_session, seed) -> None:
    course = await seed.course(duration_weeks=1)
    on_roster = uuid4()
    pending_student = uuid4()
    outsider = uuid4()
    roster_enrollment = await seed.enrollment(course, student_id=on_roster, status=EnrollmentStatus.APPROVED)
    await seed.enrollment(course, student_id=pending_student, status=EnrollmentStatus.PENDING)
    outsider_enrollment = await seed.enrollment(course, student_id=outsider, status=EnrollmentStatus.APPROVED)
    batch = await seed.completed_batch(course, [on_roster, pending_student])

    done = await service.complete_batch_enrollments(db_session, batch.batch_id)
    await db_session.commit()

    assert [e.enrollment_id for e in done] == [roster_enrollment.enrollment_id]
    outsider_now = await service.get_enrollment(db_session, outsider_enrollment.enrollment_id)
    assert outsider_now.status == EnrollmentStatus.APPROVED


@pytest.mark.asyncio
async def test_complete_batch_enrollments_needs_completed_batch(db_session, seed) -> None:
    course = await seed.course()
    batch = await seed.started_batch(course)
    with pytest.raises(PreconditionError):
        await service.complete_batch_enrollments(db_session, batch.batch_id)
    assert (await batch_service.get_batch(db_session, batch.batch_id)).status.value == "active"


def test_models_declare_no_deprecated_loaders() -> None:
    strategies = {
        (mapper.class_.__name__, rel.key): rel.lazy
        for mapper in Base.registry.mappers
        for rel in mapper.relationships
    }
    assert "noload" not in strategies.values(), strategies
