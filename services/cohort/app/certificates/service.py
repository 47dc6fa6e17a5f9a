"""Certificate issuance coordinator.

Pure business logic, no FastAPI imports.

Single issuance runs in its own session and transaction so that bulk
flows can fan out without sharing state. The certificate row is inserted
and flushed before the renderer is called: the (student_id, course_id)
unique constraint decides the race, and a renderer failure rolls the row
back. Bulk flows never raise per item; every enrollment id comes back with
exactly one outcome.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.batches import service as batch_service
from app.certificates import eligibility, store
from app.certificates.issuer import CertificateRenderData, CertificateRenderer
from app.certificates.outcomes import (
    BulkIssuanceReport,
    Failed,
    FailureReason,
    IssuanceOutcome,
    IssuanceResult,
    Issued,
)
from app.config import Settings
from app.enrollments import service as enrollment_service
from app.exceptions import (
    AlreadyCertifiedError,
    CertificateNotFoundError,
    CourseNotFoundError,
    IssuerError,
    PreconditionError,
    TemplateNotFoundError,
)
from app.models.batch import Batch
from app.models.certificate import Certificate
from app.models.certificate_template import CertificateAssignment, CertificateTemplate
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.enums import BatchStatus, EnrollmentStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def _generate_verification_code(
    student_id: UUID,
    course_id: UUID,
    timestamp: datetime,
    secret: str,
) -> str:
    """HMAC-SHA256(student_id:course_id:issued_at, secret) → 16-char code."""
    message = f"{student_id}:{course_id}:{timestamp.isoformat()}"
    digest = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return digest[:16].upper()


def _generate_certificate_number(issued_at: datetime) -> str:
    return f"GKL-{issued_at:%Y}-{uuid.uuid4().hex[:10].upper()}"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


async def resolve_template_for_course(
    db: AsyncSession,
    course_id: UUID,
) -> CertificateTemplate | None:
    """Course-level assignment first, then the course's gurukul."""
    course = await db.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError(str(course_id))

    base = (
        select(CertificateTemplate)
        .join(CertificateAssignment, CertificateAssignment.template_id == CertificateTemplate.template_id)
        .where(CertificateTemplate.is_active.is_(True))
        .order_by(CertificateAssignment.created_at.desc())
        .limit(1)
    )
    template = await db.scalar(base.where(CertificateAssignment.course_id == course_id))
    if template is None and course.gurukul_id is not None:
        template = await db.scalar(
            base.where(
                CertificateAssignment.course_id.is_(None),
                CertificateAssignment.gurukul_id == course.gurukul_id,
            )
        )
    return template


async def _pick_template(
    db: AsyncSession,
    course_id: UUID,
    template_id: UUID | None,
) -> CertificateTemplate:
    if template_id is None:
        template = await resolve_template_for_course(db, course_id)
        if template is None:
            raise TemplateNotFoundError(f"no template assigned to course {course_id}")
        return template
    template = await db.get(CertificateTemplate, template_id)
    if template is None or not template.is_active:
        raise TemplateNotFoundError(str(template_id))
    return template


async def _render(
    renderer: CertificateRenderer,
    template_id: UUID,
    data: CertificateRenderData,
    settings: Settings,
) -> str:
    try:
        return await asyncio.wait_for(
            renderer.render(template_id, data),
            timeout=settings.issuer_timeout_secs,
        )
    except TimeoutError as exc:
        raise IssuerError(f"renderer timed out after {settings.issuer_timeout_secs}s") from exc


# ---------------------------------------------------------------------------
# Single issuance
# ---------------------------------------------------------------------------


async def issue_one(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    enrollment_id: UUID,
    template_id: UUID | None = None,
    *,
    issued_by: UUID | None = None,
    batch_id: UUID | None = None,
) -> IssuanceOutcome:
    async with session_factory() as db:
        enrollment = await db.get(Enrollment, enrollment_id)
        if enrollment is None:
            return Failed(FailureReason.ENROLLMENT_NOT_FOUND, str(enrollment_id))
        if enrollment.status != EnrollmentStatus.COMPLETED:
            return Failed(
                FailureReason.ENROLLMENT_NOT_COMPLETED,
                f"enrollment is {enrollment.status.value}",
            )

        course = await db.get(Course, enrollment.course_id)
        if course is None or not course.certificate_enabled:
            return Failed(FailureReason.CERTIFICATION_DISABLED, str(enrollment.course_id))

        try:
            template = await _pick_template(db, course.course_id, template_id)
        except TemplateNotFoundError as exc:
            return Failed(FailureReason.TEMPLATE_NOT_FOUND, str(exc))

        if await store.certificate_exists(db, enrollment.student_id, course.course_id):
            return Failed(FailureReason.ALREADY_CERTIFIED)

        issued_at = datetime.now(timezone.utc)
        verification_code = _generate_verification_code(
            enrollment.student_id, course.course_id, issued_at,
            settings.certificate_signing_secret,
        )
        data = CertificateRenderData(
            certificate_number=_generate_certificate_number(issued_at),
            student_id=str(enrollment.student_id),
            course_id=str(course.course_id),
            course_title=course.title,
            issued_date=issued_at,
            verification_code=verification_code,
            verification_url=f"{settings.certificate_base_url}/verify/{verification_code}",
            batch_id=str(batch_id) if batch_id else None,
        )
        cert = Certificate(
            enrollment_id=enrollment.enrollment_id,
            student_id=enrollment.student_id,
            course_id=course.course_id,
            batch_id=batch_id,
            template_id=template.template_id,
            certificate_number=data.certificate_number,
            verification_code=verification_code,
            certificate_data=data.to_payload(),
            issued_by=issued_by,
            issued_at=issued_at,
        )

        # Claim the pair before calling out; the loser of a race stops here
        try:
            await store.create_certificate(db, cert)
        except AlreadyCertifiedError:
            return Failed(FailureReason.ALREADY_CERTIFIED)

        try:
            cert.certificate_url = await _render(renderer, template.template_id, data, settings)
        except IssuerError as exc:
            await db.rollback()
            logger.warning("Certificate render failed for enrollment %s: %s", enrollment_id, exc)
            return Failed(FailureReason.ISSUER_ERROR, str(exc))

        await db.commit()
        logger.info(
            "Certificate %s issued to student %s for course %s",
            cert.certificate_number, cert.student_id, cert.course_id,
        )
        return Issued(cert)


# ---------------------------------------------------------------------------
# Bulk issuance
# ---------------------------------------------------------------------------


async def issue_many(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    enrollment_ids: list[UUID],
    template_id: UUID | None = None,
    *,
    issued_by: UUID | None = None,
    batch_id: UUID | None = None,
    stop: asyncio.Event | None = None,
) -> BulkIssuanceReport:
    """Issue for each id independently; results keep the input order.

    Setting ``stop`` prevents items that have not been dispatched yet from
    starting (they report CANCELLED). Dispatched items run to completion.
    """
    semaphore = asyncio.Semaphore(max(1, settings.issuance_max_concurrency))

    async def _run(enrollment_id: UUID) -> IssuanceResult:
        async with semaphore:
            if stop is not None and stop.is_set():
                return IssuanceResult(
                    enrollment_id, Failed(FailureReason.CANCELLED, "stopped before dispatch")
                )
            try:
                outcome = await issue_one(
                    session_factory, renderer, settings, enrollment_id, template_id,
                    issued_by=issued_by, batch_id=batch_id,
                )
            except Exception as exc:
                logger.warning(
                    "Unexpected error issuing certificate for enrollment %s",
                    enrollment_id, exc_info=True,
                )
                outcome = Failed(FailureReason.ISSUER_ERROR, f"unexpected error: {exc}")
            return IssuanceResult(enrollment_id, outcome)

    results = await asyncio.gather(*(_run(eid) for eid in enrollment_ids))
    report = BulkIssuanceReport(list(results))
    logger.info("Bulk issuance: %s", report.summary())
    return report


async def list_eligible_for_course(db: AsyncSession, course_id: UUID) -> list[Enrollment]:
    if await db.get(Course, course_id) is None:
        raise CourseNotFoundError(str(course_id))
    enrollments = await enrollment_service.list_enrollments(
        db, course_id=course_id, status=EnrollmentStatus.COMPLETED,
    )
    certificates = await store.list_certificates(db, course_id=course_id)
    return eligibility.eligible_for_course(course_id, enrollments, certificates)


async def list_eligible_for_batch(db: AsyncSession, batch_id: UUID) -> list[Enrollment]:
    batch = await batch_service.get_batch(db, batch_id)
    if batch.status != BatchStatus.COMPLETED or batch.course_id is None:
        return []
    roster = await batch_service.roster_student_ids(db, batch_id)
    enrollments = await enrollment_service.list_enrollments(
        db, course_id=batch.course_id, student_ids=roster,
    )
    certificates = await store.list_certificates(
        db, course_id=batch.course_id, student_ids=roster,
    )
    return eligibility.eligible_for_batch(batch, roster, enrollments, certificates)


async def issue_for_batch(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    batch_id: UUID,
    template_id: UUID | None = None,
    *,
    issued_by: UUID | None = None,
    stop: asyncio.Event | None = None,
) -> BulkIssuanceReport:
    """Certify every eligible roster student of a completed batch.

    ``certificates_issued`` is set only when nothing failed.
    """
    async with session_factory() as db:
        batch = await batch_service.get_batch(db, batch_id)
        if batch.status != BatchStatus.COMPLETED:
            raise PreconditionError("Certificates can only be issued for a completed batch.")
        eligible = await list_eligible_for_batch(db, batch_id)
        enrollment_ids = [e.enrollment_id for e in eligible]

    report = await issue_many(
        session_factory, renderer, settings, enrollment_ids, template_id,
        issued_by=issued_by, batch_id=batch_id, stop=stop,
    )

    if report.fail_count == 0:
        async with session_factory() as db:
            # A restart in the meantime leaves the flag alone
            await db.execute(
                update(Batch)
                .where(Batch.batch_id == batch_id, Batch.status == BatchStatus.COMPLETED)
                .values(certificates_issued=True, updated_at=datetime.now(timezone.utc))
                .execution_options(synchronize_session=False)
            )
            await db.commit()
    logger.info("Batch %s certificates: %s", batch_id, report.summary())
    return report


async def issue_for_course(
    session_factory: async_sessionmaker[AsyncSession],
    renderer: CertificateRenderer,
    settings: Settings,
    course_id: UUID,
    template_id: UUID | None = None,
    *,
    issued_by: UUID | None = None,
    stop: asyncio.Event | None = None,
) -> BulkIssuanceReport:
    async with session_factory() as db:
        eligible = await list_eligible_for_course(db, course_id)
        enrollment_ids = [e.enrollment_id for e in eligible]
    return await issue_many(
        session_factory, renderer, settings, enrollment_ids, template_id,
        issued_by=issued_by, stop=stop,
    )


# ---------------------------------------------------------------------------
# Regeneration & retrieval
# ---------------------------------------------------------------------------


async def regenerate_certificate(
    db: AsyncSession,
    renderer: CertificateRenderer,
    settings: Settings,
    certificate_id: UUID,
    template_id: UUID | None = None,
) -> Certificate:
    """Re-render with a new template. The (student, course) identity never changes."""
    cert = await get_certificate(db, certificate_id)
    template = await _pick_template(db, cert.course_id, template_id)
    course = await db.get(Course, cert.course_id)

    snapshot = dict(cert.certificate_data or {})
    data = CertificateRenderData(
        certificate_number=cert.certificate_number,
        student_id=str(cert.student_id),
        course_id=str(cert.course_id),
        course_title=course.title if course else snapshot.get("course_title", ""),
        issued_date=cert.issued_at,
        verification_code=cert.verification_code,
        verification_url=f"{settings.certificate_base_url}/verify/{cert.verification_code}",
        batch_id=str(cert.batch_id) if cert.batch_id else None,
    )
    url = await _render(renderer, template.template_id, data, settings)

    cert.certificate_url = url
    cert.template_id = template.template_id
    cert.certificate_data = data.to_payload()
    cert.regenerated_at = datetime.now(timezone.utc)
    await db.flush()
    await db.refresh(cert)
    return cert


async def get_certificate(db: AsyncSession, certificate_id: UUID) -> Certificate:
    cert = await db.get(Certificate, certificate_id)
    if cert is None:
        raise CertificateNotFoundError(str(certificate_id))
    return cert


async def list_certificates(
    db: AsyncSession,
    *,
    student_id: UUID | None = None,
    course_id: UUID | None = None,
) -> list[Certificate]:
    return await store.list_certificates(db, student_id=student_id, course_id=course_id)


async def verify_certificate(db: AsyncSession, verification_code: str) -> dict:
    """Public lookup by verification code."""
    cert = await db.scalar(
        select(Certificate).where(Certificate.verification_code == verification_code.upper())
    )
    if cert is None:
        return {"is_valid": False}
    course = await db.get(Course, cert.course_id)
    return {
        "is_valid": True,
        "certificate_id": cert.certificate_id,
        "certificate_number": cert.certificate_number,
        "student_id": cert.student_id,
        "course_id": cert.course_id,
        "course_title": course.title if course else None,
        "issued_at": cert.issued_at,
    }
