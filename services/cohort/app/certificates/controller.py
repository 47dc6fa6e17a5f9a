"""Certificate controller — maps issuance outcomes and service results to HTTP."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.certificates import service
from app.certificates.issuer import CertificateRenderer
from app.certificates.outcomes import BulkIssuanceReport, Failed, FailureReason, Issued
from app.certificates.schemas import (
    BulkIssuanceResponse,
    CertificateResponse,
    CertificateVerifyResponse,
    IssuanceItemResponse,
)
from app.config import Settings
from app.enrollments.schemas import EnrollmentResponse
from app.exceptions import (
    BatchNotFoundError,
    CertificateNotFoundError,
    CourseNotFoundError,
    IssuerError,
    PreconditionError,
    TemplateNotFoundError,
)
from app.models.certificate import Certificate

logger = logging.getLogger(__name__)

_FAILURE_STATUS = {
    FailureReason.ALREADY_CERTIFIED: status.HTTP_409_CONFLICT,
    FailureReason.ENROLLMENT_NOT_COMPLETED: status.HTTP_409_CONFLICT,
    FailureReason.CERTIFICATION_DISABLED: status.HTTP_409_CONFLICT,
    FailureReason.CANCELLED: status.HTTP_409_CONFLICT,
    FailureReason.ENROLLMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureReason.TEMPLATE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureReason.ISSUER_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(
        exc,
        (CertificateNotFoundError, CourseNotFoundError, BatchNotFoundError, TemplateNotFoundError),
    ):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PreconditionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, IssuerError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Certificate renderer failed, try again. ({exc})",
        )
    logger.error("Unhandled certificate error", exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


def _to_response(cert: Certificate, settings: Settings) -> CertificateResponse:
    resp = CertificateResponse.model_validate(cert)
    resp.verification_url = f"{settings.certificate_base_url}/verify/{cert.verification_code}"
    return resp


def _to_bulk_response(report: BulkIssuanceReport, settings: Settings) -> BulkIssuanceResponse:
    items = []
    for result in report.results:
        outcome = result.outcome
        if isinstance(outcome, Issued):
            items.append(IssuanceItemResponse(
                enrollment_id=result.enrollment_id,
                ok=True,
                certificate=_to_response(outcome.certificate, settings),
            ))
        else:
            items.append(IssuanceItemResponse(
                enrollment_id=result.enrollment_id,
                ok=False,
                reason=outcome.reason,
                detail=outcome.detail or None,
            ))
    return BulkIssuanceResponse(
        results=items,
        success_count=report.success_count,
        fail_count=report.fail_count,
    )


async def issue_one(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    enrollment_id: UUID,
    template_id: UUID | None,
    issued_by: UUID,
) -> CertificateResponse:
    outcome = await service.issue_one(
        session_factory, renderer, settings, enrollment_id, template_id, issued_by=issued_by,
    )
    if isinstance(outcome, Failed):
        detail = outcome.reason.value + (f": {outcome.detail}" if outcome.detail else "")
        raise HTTPException(status_code=_FAILURE_STATUS[outcome.reason], detail=detail)
    return _to_response(outcome.certificate, settings)


async def issue_many(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    enrollment_ids: list[UUID],
    template_id: UUID | None,
    issued_by: UUID,
) -> BulkIssuanceResponse:
    report = await service.issue_many(
        session_factory, renderer, settings, enrollment_ids, template_id, issued_by=issued_by,
    )
    return _to_bulk_response(report, settings)


async def issue_for_batch(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    batch_id: UUID,
    template_id: UUID | None,
    issued_by: UUID,
) -> BulkIssuanceResponse:
    try:
        report = await service.issue_for_batch(
            session_factory, renderer, settings, batch_id, template_id, issued_by=issued_by,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return _to_bulk_response(report, settings)


async def issue_for_course(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    course_id: UUID,
    template_id: UUID | None,
    issued_by: UUID,
) -> BulkIssuanceResponse:
    try:
        report = await service.issue_for_course(
            session_factory, renderer, settings, course_id, template_id, issued_by=issued_by,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return _to_bulk_response(report, settings)


async def list_eligible_for_course(db: AsyncSession, course_id: UUID) -> list[EnrollmentResponse]:
    try:
        rows = await service.list_eligible_for_course(db, course_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return [EnrollmentResponse.model_validate(e) for e in rows]


async def list_eligible_for_batch(db: AsyncSession, batch_id: UUID) -> list[EnrollmentResponse]:
    try:
        rows = await service.list_eligible_for_batch(db, batch_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return [EnrollmentResponse.model_validate(e) for e in rows]


async def regenerate_certificate(
    db: AsyncSession,
    renderer: CertificateRenderer,
    settings: Settings,
    certificate_id: UUID,
    template_id: UUID | None,
) -> CertificateResponse:
    try:
        cert = await service.regenerate_certificate(db, renderer, settings, certificate_id, template_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return _to_response(cert, settings)


async def get_certificate(db: AsyncSession, certificate_id: UUID, settings: Settings) -> CertificateResponse:
    try:
        cert = await service.get_certificate(db, certificate_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return _to_response(cert, settings)


async def list_certificates(
    db: AsyncSession,
    settings: Settings,
    *,
    student_id: UUID | None,
    course_id: UUID | None,
) -> list[CertificateResponse]:
    certs = await service.list_certificates(db, student_id=student_id, course_id=course_id)
    return [_to_response(c, settings) for c in certs]


async def verify_certificate(db: AsyncSession, code: str) -> CertificateVerifyResponse:
    result = await service.verify_certificate(db, code)
    return CertificateVerifyResponse(**result)
