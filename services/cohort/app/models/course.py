import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Index, SmallInteger, String
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


class Course(Base):
    """Course reference data. Owned by course authoring; read-only here."""

    __tablename__ = "courses"

    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    duration_weeks: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    certificate_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Soft reference: gurukuls are managed by the CMS
    gurukul_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    # Soft reference: profiles live in the identity service
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        CheckConstraint("duration_weeks >= 1", name="ck_courses_duration_positive"),
        Index("ix_courses_gurukul_id", "gurukul_id"),
    )
