"""Enrollment router — requests, approval, and completion."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import CurrentUser, get_current_user, get_staff_user
from app.enrollments import controller, service
from app.enrollments.schemas import (
    BulkStatusRequest,
    BulkStatusResponse,
    EnrollmentCreate,
    EnrollmentResponse,
    EnrollmentStatsResponse,
)
from app.models.enums import EnrollmentStatus

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request enrollment",
    description="Creates a `pending` enrollment. 409 if an open (non-rejected) enrollment "
    "already exists for the same student and course. A rejected student may apply again.",
)
async def create_enrollment(
    body: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> EnrollmentResponse:
    student_id = user.id
    if body.student_id is not None and body.student_id != user.id:
        if not user.is_staff:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only staff can enroll other students.",
            )
        student_id = body.student_id
    return await controller.create_enrollment(db, student_id, body.course_id)


@router.get(
    "",
    response_model=list[EnrollmentResponse],
    summary="List enrollments",
)
async def list_enrollments(
    student_id: UUID | None = None,
    course_id: UUID | None = None,
    enrollment_status: EnrollmentStatus | None = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> list[EnrollmentResponse]:
    return await controller.list_enrollments(
        db, student_id=student_id, course_id=course_id, enrollment_status=enrollment_status,
    )


@router.get(
    "/me",
    response_model=list[EnrollmentResponse],
    summary="My enrollments",
)
async def list_my_enrollments(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> list[EnrollmentResponse]:
    return await controller.list_enrollments(
        db, student_id=user.id, course_id=None, enrollment_status=None,
    )


@router.get(
    "/stats",
    response_model=EnrollmentStatsResponse,
    summary="Enrollment counts per status",
)
async def get_enrollment_stats(
    course_id: UUID | None = None,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> EnrollmentStatsResponse:
    return await controller.get_enrollment_stats(db, course_id)


@router.post(
    "/bulk-status",
    response_model=BulkStatusResponse,
    summary="Approve or reject many enrollments",
    description="Each enrollment is handled independently; the response lists one result per id.",
)
async def bulk_update_status(
    body: BulkStatusRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> BulkStatusResponse:
    return await controller.bulk_update_status(db, body, user.id)


@router.post(
    "/batches/{batch_id}/complete",
    response_model=list[EnrollmentResponse],
    summary="Complete the enrollments of a completed batch",
    description="Moves every approved enrollment on the batch roster to `completed`.",
)
async def complete_batch_enrollments(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> list[EnrollmentResponse]:
    return await controller.complete_batch_enrollments(db, batch_id)


@router.get("/{enrollment_id}", response_model=EnrollmentResponse, summary="Get enrollment")
async def get_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> EnrollmentResponse:
    return await controller.get_enrollment(db, enrollment_id)


@router.post(
    "/{enrollment_id}/approve",
    response_model=EnrollmentResponse,
    summary="Approve enrollment",
    description="`pending` → `approved`. Any other starting state returns 409.",
)
async def approve_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> EnrollmentResponse:
    return await controller.change_status(db, service.approve_enrollment, enrollment_id, user.id)


@router.post(
    "/{enrollment_id}/reject",
    response_model=EnrollmentResponse,
    summary="Reject enrollment",
    description="`pending` → `rejected`. Rejection is final.",
)
async def reject_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_staff_user),
) -> EnrollmentResponse:
    return await controller.change_status(db, service.reject_enrollment, enrollment_id, user.id)


@router.post(
    "/{enrollment_id}/complete",
    response_model=EnrollmentResponse,
    summary="Mark enrollment completed",
    description="`approved` → `completed`. Makes the student eligible for a certificate.",
)
async def complete_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> EnrollmentResponse:
    return await controller.change_status(db, service.complete_enrollment, enrollment_id)
