"""Per-item issuance outcomes.

Every enrollment id handed to the coordinator comes back as exactly one
``IssuanceResult`` whose outcome is either ``Issued`` or ``Failed``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from uuid import UUID

from app.models.certificate import Certificate


class FailureReason(str, enum.Enum):
    ALREADY_CERTIFIED = "already_certified"
    ENROLLMENT_NOT_COMPLETED = "enrollment_not_completed"
    TEMPLATE_NOT_FOUND = "template_not_found"
    ISSUER_ERROR = "issuer_error"
    ENROLLMENT_NOT_FOUND = "enrollment_not_found"
    CERTIFICATION_DISABLED = "certification_disabled"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Issued:
    certificate: Certificate

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failed:
    reason: FailureReason
    detail: str = ""

    @property
    def ok(self) -> bool:
        return False


IssuanceOutcome = Issued | Failed


@dataclass(frozen=True)
class IssuanceResult:
    enrollment_id: UUID
    outcome: IssuanceOutcome


@dataclass(frozen=True)
class BulkIssuanceReport:
    results: list[IssuanceResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r.outcome, Issued))

    @property
    def fail_count(self) -> int:
        return len(self.results) - self.success_count

    def count(self, reason: FailureReason) -> int:
        return sum(
            1 for r in self.results
            if isinstance(r.outcome, Failed) and r.outcome.reason == reason
        )

    def summary(self) -> str:
        return f"{self.success_count} succeeded, {self.fail_count} failed"
