"""Certificate store. ``create_certificate`` is the uniqueness boundary."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AlreadyCertifiedError
from app.models.certificate import Certificate


async def certificate_exists(db: AsyncSession, student_id: UUID, course_id: UUID) -> bool:
    found = await db.scalar(
        select(Certificate.certificate_id).where(
            Certificate.student_id == student_id,
            Certificate.course_id == course_id,
        )
    )
    return found is not None


async def create_certificate(db: AsyncSession, certificate: Certificate) -> Certificate:
    """Insert and flush. A second row for the pair raises AlreadyCertifiedError.

    The caller owns the transaction and must discard it after the error.
    """
    db.add(certificate)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise AlreadyCertifiedError(str(certificate.student_id), str(certificate.course_id)) from exc
    return certificate


async def list_certificates(
    db: AsyncSession,
    *,
    student_id: UUID | None = None,
    course_id: UUID | None = None,
    student_ids: list[UUID] | None = None,
) -> list[Certificate]:
    stmt = select(Certificate)
    if student_id is not None:
        stmt = stmt.where(Certificate.student_id == student_id)
    if course_id is not None:
        stmt = stmt.where(Certificate.course_id == course_id)
    if student_ids is not None:
        if not student_ids:
            return []
        stmt = stmt.where(Certificate.student_id.in_(student_ids))
    result = await db.execute(stmt.order_by(Certificate.issued_at.desc()))
    return list(result.scalars().all())
