"""Batch router — CRUD, lifecycle actions, and roster."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.batches import controller, service
from app.batches.schemas import (
    AssignCourseRequest,
    AssignStudentRequest,
    BatchCreate,
    BatchResponse,
    BatchStatsResponse,
    BatchStudentResponse,
    BatchUpdate,
    CompletedBatchStudentResponse,
    SetDatesRequest,
    StudentProgressRequest,
)
from app.database import get_db
from app.dependencies import CurrentUser, get_current_user, get_staff_user
from app.models.enums import BatchStatus
from app.pagination import OffsetPage

router = APIRouter(prefix="/batches", tags=["Batches"])


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a batch",
    description="New batches start in `not_started`. A course may be attached now or later.",
)
async def create_batch(
    body: BatchCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.create_batch(db, body, user.id)


@router.get(
    "",
    response_model=OffsetPage[BatchResponse],
    summary="List batches",
)
async def list_batches(
    teacher_id: UUID | None = None,
    course_id: UUID | None = None,
    batch_status: BatchStatus | None = Query(default=None, alias="status"),
    is_active: bool | None = True,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> OffsetPage[BatchResponse]:
    return await controller.list_batches(
        db,
        teacher_id=teacher_id,
        course_id=course_id,
        batch_status=batch_status,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/stats",
    response_model=BatchStatsResponse,
    summary="Batch counts per status",
)
async def get_batch_stats(
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchStatsResponse:
    return await controller.get_batch_stats(db)


@router.get(
    "/me",
    response_model=list[BatchResponse],
    summary="Batches I am enrolled in",
    description="Active roster memberships of the authenticated student, with batch progress.",
)
async def list_my_batches(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[BatchResponse]:
    return await controller.list_student_batches(db, user.id)


@router.get(
    "/completed-students",
    response_model=list[CompletedBatchStudentResponse],
    summary="Students of my completed batches",
    description="Certificate worklist: roster of every completed batch taught by the caller.",
)
async def list_completed_batch_students(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> list[CompletedBatchStudentResponse]:
    return await controller.list_completed_batch_students(db, user.id)


@router.get("/{batch_id}", response_model=BatchResponse, summary="Get batch")
async def get_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_current_user),
) -> BatchResponse:
    return await controller.get_batch(db, batch_id)


@router.patch(
    "/{batch_id}",
    response_model=BatchResponse,
    summary="Update batch details",
    description="Name, description and teacher only. Use the lifecycle endpoints for status.",
)
async def update_batch(
    batch_id: UUID,
    body: BatchUpdate,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.update_batch(db, batch_id, body)


@router.delete(
    "/{batch_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete batch",
    description="Soft delete by default. `hard=true` removes the batch and its week progress; "
    "roster history is kept.",
)
async def delete_batch(
    batch_id: UUID,
    hard: bool = False,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> Response:
    await controller.delete_batch(db, batch_id, hard)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.put(
    "/{batch_id}/course",
    response_model=BatchResponse,
    summary="Assign the batch course",
    description="Only while the batch is `not_started`.",
)
async def assign_course(
    batch_id: UUID,
    body: AssignCourseRequest,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.run_lifecycle_action(db, service.assign_course, batch_id, body.course_id)


@router.post(
    "/{batch_id}/start",
    response_model=BatchResponse,
    summary="Start batch",
    description="`not_started` → `active`. Start is now, end is start + course duration in weeks.",
)
async def start_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.run_lifecycle_action(db, service.start_batch, batch_id)


@router.put(
    "/{batch_id}/dates",
    response_model=BatchResponse,
    summary="Set batch dates",
    description="End must be after start. A `not_started` batch becomes `active`.",
)
async def set_batch_dates(
    batch_id: UUID,
    body: SetDatesRequest,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.run_lifecycle_action(
        db, service.set_batch_dates, batch_id, body.start_date, body.end_date,
    )


@router.post(
    "/{batch_id}/restart",
    response_model=BatchResponse,
    summary="Restart batch",
    description="Clears dates and all week progress; status returns to `not_started`.",
)
async def restart_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.run_lifecycle_action(db, service.restart_batch, batch_id)


@router.post(
    "/{batch_id}/archive",
    response_model=BatchResponse,
    summary="Archive batch",
    description="Terminal. An archived batch accepts no further transitions.",
)
async def archive_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchResponse:
    return await controller.run_lifecycle_action(db, service.archive_batch, batch_id)


# ---------------------------------------------------------------------------
# Roster
# ---------------------------------------------------------------------------


@router.get(
    "/{batch_id}/students",
    response_model=list[BatchStudentResponse],
    summary="List batch roster",
)
async def list_batch_students(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> list[BatchStudentResponse]:
    return await controller.list_batch_students(db, batch_id)


@router.post(
    "/{batch_id}/students",
    response_model=BatchStudentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add student to batch",
)
async def assign_student(
    batch_id: UUID,
    body: AssignStudentRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> BatchStudentResponse:
    return await controller.assign_student(db, batch_id, body.student_id, user.id)


@router.delete(
    "/{batch_id}/students/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove student from batch",
)
async def remove_student(
    batch_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> Response:
    await controller.remove_student(db, batch_id, student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{batch_id}/students/{student_id}/progress",
    response_model=BatchStudentResponse,
    summary="Set a student's own progress figure",
    description="Independent of the batch week progress.",
)
async def set_student_progress(
    batch_id: UUID,
    student_id: UUID,
    body: StudentProgressRequest,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> BatchStudentResponse:
    return await controller.set_student_progress(
        db, batch_id, student_id, body.progress_percentage,
    )
