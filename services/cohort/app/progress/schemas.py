"""Weekly progress schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import BatchStatus


class WeekStatusRequest(BaseModel):
    completed: bool = Field(description="True to complete the week, false to reopen it.")


class WeekStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_number: int
    is_completed: bool
    completed_at: datetime | None = None
    completed_by: UUID | None = None


class ProgressSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: UUID
    status: BatchStatus
    duration_weeks: int
    completed_weeks: int
    percentage: int
    next_week: int | None = Field(
        default=None,
        description="The only week that can be completed next; null when all are done.",
    )
    weeks: list[WeekStateResponse]
