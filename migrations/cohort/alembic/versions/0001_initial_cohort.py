"""Initial cohort schema: courses, batches, weekly progress, enrollments, certificates.

Revision ID: 0001_initial_cohort
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

revision = "0001_initial_cohort"
down_revision = None
branch_labels = None
depends_on = None

BATCH_STATUS = ("not_started", "active", "in_progress", "completed", "archived")
ENROLLMENT_STATUS = ("pending", "approved", "rejected", "completed")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, TIMESTAMP(timezone=True), nullable=nullable)


def upgrade() -> None:
    # ── courses ──────────────────────────────────────────────────────────
    op.create_table(
        "courses",
        sa.Column("course_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("duration_weeks", sa.SmallInteger(), nullable=False),
        sa.Column("certificate_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("gurukul_id", UUID(as_uuid=True), nullable=True),
        sa.Column("teacher_id", UUID(as_uuid=True), nullable=True),
        _ts("created_at"),
        sa.CheckConstraint("duration_weeks >= 1", name="ck_courses_duration_positive"),
    )
    op.create_index("ix_courses_gurukul_id", "courses", ["gurukul_id"])

    # ── batches ──────────────────────────────────────────────────────────
    op.create_table(
        "batches",
        sa.Column("batch_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "course_id", UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("teacher_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "status", sa.Enum(*BATCH_STATUS, name="batch_status"),
            nullable=False, server_default="not_started",
        ),
        _ts("start_date", nullable=True),
        _ts("end_date", nullable=True),
        sa.Column("progress_percentage", sa.SmallInteger(), nullable=False, server_default="0"),
        sa.Column("progress_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("certificates_issued", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_batches_teacher_id", "batches", ["teacher_id"])
    op.create_index("ix_batches_course_id", "batches", ["course_id"])
    op.create_index("ix_batches_status", "batches", ["status"])

    op.create_table(
        "batch_students",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("batch_id", UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", UUID(as_uuid=True), nullable=False),
        sa.Column("assigned_by", UUID(as_uuid=True), nullable=True),
        _ts("assigned_at"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("progress_percentage", sa.SmallInteger(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("batch_id", "student_id", name="uq_batch_students_batch_student"),
    )
    op.create_index("ix_batch_students_student_id", "batch_students", ["student_id"])

    # ── week_progress ────────────────────────────────────────────────────
    op.create_table(
        "week_progress",
        sa.Column("progress_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "batch_id", UUID(as_uuid=True),
            sa.ForeignKey("batches.batch_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("week_number", sa.SmallInteger(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("completed_at", nullable=True),
        sa.Column("completed_by", UUID(as_uuid=True), nullable=True),
        sa.UniqueConstraint("batch_id", "week_number", name="uq_week_progress_batch_week"),
    )

    # ── enrollments ──────────────────────────────────────────────────────
    op.create_table(
        "enrollments",
        sa.Column("enrollment_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("student_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "course_id", UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "status", sa.Enum(*ENROLLMENT_STATUS, name="enrollment_status"),
            nullable=False, server_default="pending",
        ),
        sa.Column("approved_by", UUID(as_uuid=True), nullable=True),
        _ts("approved_at", nullable=True),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index(
        "uq_enrollments_student_course_open",
        "enrollments",
        ["student_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'rejected'"),
    )
    op.create_index("ix_enrollments_course_id", "enrollments", ["course_id"])
    op.create_index("ix_enrollments_status", "enrollments", ["status"])

    # ── certificate templates ────────────────────────────────────────────
    op.create_table(
        "certificate_templates",
        sa.Column("template_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
    )
    op.create_table(
        "certificate_assignments",
        sa.Column("assignment_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "template_id", UUID(as_uuid=True),
            sa.ForeignKey("certificate_templates.template_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "course_id", UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("gurukul_id", UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        _ts("created_at"),
        sa.CheckConstraint(
            "course_id IS NOT NULL OR gurukul_id IS NOT NULL",
            name="ck_certificate_assignments_target",
        ),
    )
    op.create_index("ix_certificate_assignments_course_id", "certificate_assignments", ["course_id"])
    op.create_index("ix_certificate_assignments_gurukul_id", "certificate_assignments", ["gurukul_id"])

    # ── certificates ─────────────────────────────────────────────────────
    op.create_table(
        "certificates",
        sa.Column("certificate_id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "enrollment_id", UUID(as_uuid=True),
            sa.ForeignKey("enrollments.enrollment_id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("student_id", UUID(as_uuid=True), nullable=False),
        sa.Column(
            "course_id", UUID(as_uuid=True),
            sa.ForeignKey("courses.course_id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("batch_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "template_id", UUID(as_uuid=True),
            sa.ForeignKey("certificate_templates.template_id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("certificate_number", sa.String(40), nullable=False, unique=True),
        sa.Column("verification_code", sa.String(32), nullable=False, unique=True),
        sa.Column("certificate_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("certificate_data", sa.JSON(), nullable=False),
        sa.Column("issued_by", UUID(as_uuid=True), nullable=True),
        _ts("issued_at"),
        _ts("regenerated_at", nullable=True),
        # One certificate per (student, course), whatever batch or enrollment issued it
        sa.UniqueConstraint("student_id", "course_id", name="uq_certificates_student_course"),
    )
    op.create_index("ix_certificates_course_id", "certificates", ["course_id"])
    op.create_index("ix_certificates_batch_id", "certificates", ["batch_id"])


def downgrade() -> None:
    op.drop_table("certificates")
    op.drop_table("certificate_assignments")
    op.drop_table("certificate_templates")
    op.drop_index("uq_enrollments_student_course_open", table_name="enrollments")
    op.drop_table("enrollments")
    op.drop_table("week_progress")
    op.drop_table("batch_students")
    op.drop_table("batches")
    op.drop_table("courses")
    op.execute("DROP TYPE IF EXISTS enrollment_status")
    op.execute("DROP TYPE IF EXISTS batch_status")
