"""Certificate domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.certificates.outcomes import FailureReason


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class IssueRequest(BaseModel):
    template_id: UUID | None = Field(
        default=None,
        description="Omit to use the template assigned to the course (or its gurukul).",
    )


class IssueManyRequest(IssueRequest):
    enrollment_ids: list[UUID] = Field(min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CertificateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    certificate_id: UUID
    enrollment_id: UUID
    student_id: UUID
    course_id: UUID
    batch_id: UUID | None = None
    template_id: UUID | None = None
    certificate_number: str
    verification_code: str = Field(description="Tamper-proof verification code.")
    certificate_url: str
    issued_by: UUID | None = None
    issued_at: datetime
    regenerated_at: datetime | None = None
    verification_url: str | None = None


class IssuanceItemResponse(BaseModel):
    enrollment_id: UUID
    ok: bool
    certificate: CertificateResponse | None = None
    reason: FailureReason | None = None
    detail: str | None = None


class BulkIssuanceResponse(BaseModel):
    """Per-item outcomes plus counts. Never a single pass/fail flag."""

    results: list[IssuanceItemResponse]
    success_count: int
    fail_count: int


class CertificateVerifyResponse(BaseModel):
    """Public verification result."""

    is_valid: bool
    certificate_id: UUID | None = None
    certificate_number: str | None = None
    student_id: UUID | None = None
    course_id: UUID | None = None
    course_title: str | None = None
    issued_at: datetime | None = None
