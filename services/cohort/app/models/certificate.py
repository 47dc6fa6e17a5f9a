import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base


class Certificate(Base):
    """Issued certificate. Identity is the (student_id, course_id) pair.

    Regeneration swaps the rendered artifact (url, template, regenerated_at)
    but never the identity columns.
    """

    __tablename__ = "certificates"

    certificate_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("enrollments.enrollment_id", ondelete="RESTRICT"),
        nullable=False,
    )
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courses.course_id", ondelete="RESTRICT"),
        nullable=False,
    )
    # Set when issued through the batch flow
    batch_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("certificate_templates.template_id", ondelete="SET NULL"),
        nullable=True,
    )
    certificate_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    verification_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    certificate_url: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    # Snapshot sent to the renderer, kept for verification display
    certificate_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    issued_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    issued_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    regenerated_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_certificates_student_course"),
        Index("ix_certificates_course_id", "course_id"),
        Index("ix_certificates_batch_id", "batch_id"),
    )
