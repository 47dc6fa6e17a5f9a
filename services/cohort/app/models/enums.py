import enum

from sqlalchemy import Enum as SAEnum


class BatchStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class EnrollmentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# Persist the lowercase values; native ENUM type on PostgreSQL, VARCHAR elsewhere.
batch_status_enum = SAEnum(
    BatchStatus, name="batch_status", values_callable=_values, validate_strings=True
)
enrollment_status_enum = SAEnum(
    EnrollmentStatus, name="enrollment_status", values_callable=_values, validate_strings=True
)
