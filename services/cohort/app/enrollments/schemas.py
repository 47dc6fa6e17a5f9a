"""Enrollment domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import EnrollmentStatus


class EnrollmentCreate(BaseModel):
    course_id: UUID
    student_id: UUID | None = Field(
        default=None,
        description="Staff only. Students always enroll themselves.",
    )


class BulkStatusRequest(BaseModel):
    enrollment_ids: list[UUID] = Field(min_length=1, max_length=500)
    action: Literal["approve", "reject"]


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enrollment_id: UUID
    student_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class BulkStatusItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enrollment_id: UUID
    ok: bool
    status: EnrollmentStatus | None = None
    error: str | None = None


class BulkStatusResponse(BaseModel):
    results: list[BulkStatusItem]
    success_count: int
    fail_count: int


class EnrollmentStatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    completed: int
