"""Certificate eligibility — pure functions, no I/O.

An enrollment is eligible exactly when it is completed and its
(student, course) pair holds no certificate yet. Issuance still re-checks
at write time; the unique constraint on certificates is the real guard.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from app.models.enums import BatchStatus, EnrollmentStatus


class _EnrollmentLike(Protocol):
    enrollment_id: UUID
    student_id: UUID
    course_id: UUID
    status: EnrollmentStatus


class _CertificateLike(Protocol):
    student_id: UUID
    course_id: UUID


class _BatchLike(Protocol):
    status: BatchStatus
    course_id: UUID | None


def _certified_pairs(certificates: Iterable[_CertificateLike]) -> set[tuple[UUID, UUID]]:
    return {(c.student_id, c.course_id) for c in certificates}


def has_certificate(
    student_id: UUID,
    course_id: UUID,
    certificates: Iterable[_CertificateLike],
) -> bool:
    return any(c.student_id == student_id and c.course_id == course_id for c in certificates)


def eligible_for_course(
    course_id: UUID,
    enrollments: Iterable[_EnrollmentLike],
    certificates: Iterable[_CertificateLike],
) -> list[_EnrollmentLike]:
    certified = _certified_pairs(certificates)
    eligible = []
    seen: set[UUID] = set()
    for e in enrollments:
        if e.course_id != course_id or e.status != EnrollmentStatus.COMPLETED:
            continue
        if (e.student_id, e.course_id) in certified or e.student_id in seen:
            continue
        # One pair, one certificate: keep only the first enrollment per student
        seen.add(e.student_id)
        eligible.append(e)
    return eligible


def eligible_for_batch(
    batch: _BatchLike,
    roster: Iterable[UUID],
    enrollments: Iterable[_EnrollmentLike],
    certificates: Iterable[_CertificateLike],
) -> list[_EnrollmentLike]:
    if batch.status != BatchStatus.COMPLETED or batch.course_id is None:
        return []
    members = set(roster)
    return [
        e for e in eligible_for_course(batch.course_id, enrollments, certificates)
        if e.student_id in members
    ]
