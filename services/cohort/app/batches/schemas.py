"""Batch domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import BatchStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BatchCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    teacher_id: UUID | None = None
    course_id: UUID | None = Field(
        default=None,
        description="Optional; a course can also be assigned later, before the batch starts.",
    )


class BatchUpdate(BaseModel):
    """Partial update. Status and progress are changed only through their own endpoints."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    teacher_id: UUID | None = None


class AssignCourseRequest(BaseModel):
    course_id: UUID


class SetDatesRequest(BaseModel):
    start_date: datetime = Field(description="Naive values are taken as UTC.")
    end_date: datetime = Field(description="Must be after start_date.")


class AssignStudentRequest(BaseModel):
    student_id: UUID


class StudentProgressRequest(BaseModel):
    progress_percentage: int = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: UUID
    name: str
    description: str | None = None
    course_id: UUID | None = None
    teacher_id: UUID | None = None
    created_by: UUID
    status: BatchStatus
    start_date: datetime | None = None
    end_date: datetime | None = None
    progress_percentage: int = Field(description="Share of weeks completed, 0-100.")
    certificates_issued: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class BatchStudentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    batch_id: UUID
    student_id: UUID
    assigned_by: UUID | None = None
    assigned_at: datetime
    is_active: bool
    progress_percentage: int = Field(
        description="Teacher-entered per-student figure, independent of week progress.",
    )


class CompletedBatchStudentResponse(BaseModel):
    """One row of a teacher's certificate worklist."""

    batch_id: UUID
    batch_name: str
    course_id: UUID | None = None
    certificates_issued: bool
    student_id: UUID
    assigned_at: datetime


class BatchStatsResponse(BaseModel):
    total: int
    not_started: int
    active: int
    in_progress: int
    completed: int
    archived: int
    inactive: int
