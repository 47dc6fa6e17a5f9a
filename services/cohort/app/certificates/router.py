"""Certificate router — eligibility, single and bulk issuance, public verification."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.certificates import controller
from app.certificates.issuer import CertificateRenderer
from app.certificates.schemas import (
    BulkIssuanceResponse,
    CertificateResponse,
    CertificateVerifyResponse,
    IssueManyRequest,
    IssueRequest,
)
from app.config import Settings
from app.database import get_db
from app.dependencies import (
    CurrentUser,
    get_current_user,
    get_issuance_session_factory,
    get_renderer,
    get_settings,
    get_staff_user,
)
from app.enrollments.schemas import EnrollmentResponse
from app.rate_limit import limiter

router = APIRouter(prefix="/certificates", tags=["Certificates"])


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


@router.get(
    "/courses/{course_id}/eligible",
    response_model=list[EnrollmentResponse],
    summary="Completed enrollments without a certificate",
)
async def list_eligible_for_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> list[EnrollmentResponse]:
    return await controller.list_eligible_for_course(db, course_id)


@router.get(
    "/batches/{batch_id}/eligible",
    response_model=list[EnrollmentResponse],
    summary="Eligible roster students of a completed batch",
    description="Empty unless the batch is `completed`.",
)
async def list_eligible_for_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
    _user: CurrentUser = Depends(get_staff_user),
) -> list[EnrollmentResponse]:
    return await controller.list_eligible_for_batch(db, batch_id)


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


@router.post(
    "/enrollments/{enrollment_id}/issue",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue one certificate",
    description="Requires enrollment status `completed`. Returns 409 `already_certified` if the "
    "student already holds a certificate for the course, 502 if the renderer fails.",
)
async def issue_one(
    enrollment_id: UUID,
    body: IssueRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_issuance_session_factory),
    renderer: CertificateRenderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(get_staff_user),
) -> CertificateResponse:
    return await controller.issue_one(
        session_factory, renderer, settings, enrollment_id, body.template_id, user.id,
    )


@router.post(
    "/issue",
    response_model=BulkIssuanceResponse,
    summary="Issue certificates for many enrollments",
    description="Every enrollment is issued independently. The response carries one result "
    "per id, in request order, plus success and failure counts.",
)
async def issue_many(
    body: IssueManyRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_issuance_session_factory),
    renderer: CertificateRenderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(get_staff_user),
) -> BulkIssuanceResponse:
    return await controller.issue_many(
        session_factory, renderer, settings, body.enrollment_ids, body.template_id, user.id,
    )


@router.post(
    "/batches/{batch_id}/issue",
    response_model=BulkIssuanceResponse,
    summary="Issue certificates for a completed batch",
    description="409 unless the batch is `completed`. Marks the batch `certificates_issued` "
    "when no item fails.",
)
async def issue_for_batch(
    batch_id: UUID,
    body: IssueRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_issuance_session_factory),
    renderer: CertificateRenderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(get_staff_user),
) -> BulkIssuanceResponse:
    return await controller.issue_for_batch(
        session_factory, renderer, settings, batch_id, body.template_id, user.id,
    )


@router.post(
    "/courses/{course_id}/issue",
    response_model=BulkIssuanceResponse,
    summary="Issue certificates for every eligible enrollment of a course",
)
async def issue_for_course(
    course_id: UUID,
    body: IssueRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_issuance_session_factory),
    renderer: CertificateRenderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(get_staff_user),
) -> BulkIssuanceResponse:
    return await controller.issue_for_course(
        session_factory, renderer, settings, course_id, body.template_id, user.id,
    )


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=list[CertificateResponse],
    summary="List certificates",
)
async def list_certificates(
    student_id: UUID | None = None,
    course_id: UUID | None = None,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _user: CurrentUser = Depends(get_staff_user),
) -> list[CertificateResponse]:
    return await controller.list_certificates(
        db, settings, student_id=student_id, course_id=course_id,
    )


@router.get(
    "/me",
    response_model=list[CertificateResponse],
    summary="List my certificates",
    description="Newest first.",
)
async def list_my_certificates(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    user: CurrentUser = Depends(get_current_user),
) -> list[CertificateResponse]:
    return await controller.list_certificates(db, settings, student_id=user.id, course_id=None)


@router.get(
    "/verify/{code}",
    response_model=CertificateVerifyResponse,
    summary="Verify certificate (public)",
    description="Public endpoint, no authentication required. Rate limited per client IP.",
)
@limiter.limit("30/minute")
async def verify_certificate(
    request: Request,
    code: str,
    db: AsyncSession = Depends(get_db),
) -> CertificateVerifyResponse:
    return await controller.verify_certificate(db, code)


@router.get("/{certificate_id}", response_model=CertificateResponse, summary="Get certificate")
async def get_certificate(
    certificate_id: UUID,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _user: CurrentUser = Depends(get_current_user),
) -> CertificateResponse:
    return await controller.get_certificate(db, certificate_id, settings)


@router.post(
    "/{certificate_id}/regenerate",
    response_model=CertificateResponse,
    summary="Regenerate certificate",
    description="Re-renders the artifact, optionally with another template. The student, "
    "course, number and verification code stay the same.",
)
async def regenerate_certificate(
    certificate_id: UUID,
    body: IssueRequest,
    db: AsyncSession = Depends(get_db),
    renderer: CertificateRenderer = Depends(get_renderer),
    settings: Settings = Depends(get_settings),
    _user: CurrentUser = Depends(get_staff_user),
) -> CertificateResponse:
    return await controller.regenerate_certificate(
        db, renderer, settings, certificate_id, body.template_id,
    )
