"""Initial schema

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("student", "teacher", "admin", name="role_enum", native_enum=False)
product_format_enum = sa.Enum("private", "group", "hybrid", name="product_format_enum", native_enum=False)
enrollment_status_enum = sa.Enum(
    "interested",
    "paid",
    "welcome_package_sent",
    "dropped",
    "declined",
    name="enrollment_status_enum",
    native_enum=False,
)
reschedule_status_enum = sa.Enum(
    "pending",
    "approved",
    "rejected",
    "cancelled",
    name="reschedule_status_enum",
    native_enum=False,
)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "students",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_students_user_id_users", ondelete="SET NULL"),
        sa.UniqueConstraint("user_id", name="uq_students_user_id"),
    )
    op.create_index("ix_students_email", "students", ["email"], unique=False)

    op.create_table(
        "teachers",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.String(length=128), nullable=False),
        sa.Column("last_name", sa.String(length=128), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_teachers_user_id_users", ondelete="SET NULL"),
        sa.UniqueConstraint("user_id", name="uq_teachers_user_id"),
    )

    op.create_table(
        "products",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("format", product_format_enum, nullable=False),
    )
    op.create_index("ix_products_format", "products", ["format"], unique=False)

    op.create_table(
        "cohorts",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("nickname", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], name="fk_cohorts_product_id_products", ondelete="RESTRICT"),
    )
    op.create_index("ix_cohorts_product_id", "cohorts", ["product_id"], unique=False)

    op.create_table(
        "weekly_sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("day_of_week", sa.String(length=16), nullable=True),
        sa.Column("start_time", sa.String(length=8), nullable=True),
        sa.Column("end_time", sa.String(length=8), nullable=True),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], name="fk_weekly_sessions_cohort_id_cohorts", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["teachers.id"],
            name="fk_weekly_sessions_teacher_id_teachers",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_weekly_sessions_cohort_id", "weekly_sessions", ["cohort_id"], unique=False)
    op.create_index("ix_weekly_sessions_teacher_id", "weekly_sessions", ["teacher_id"], unique=False)

    op.create_table(
        "enrollments",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", enrollment_status_enum, nullable=False),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], name="fk_enrollments_student_id_students", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["cohort_id"], ["cohorts.id"], name="fk_enrollments_cohort_id_cohorts", ondelete="CASCADE"),
        sa.UniqueConstraint("student_id", "cohort_id", name="uq_enrollments_student_cohort"),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"], unique=False)
    op.create_index("ix_enrollments_cohort_id", "enrollments", ["cohort_id"], unique=False)
    op.create_index("ix_enrollments_status", "enrollments", ["status"], unique=False)

    op.create_table(
        "reschedule_requests",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("cohort_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("original_class_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("proposed_datetime", sa.String(length=255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", reschedule_status_enum, nullable=False),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_reschedule_requests_student_id_students",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["cohort_id"],
            ["cohorts.id"],
            name="fk_reschedule_requests_cohort_id_cohorts",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_reschedule_requests_student_id", "reschedule_requests", ["student_id"], unique=False)
    op.create_index("ix_reschedule_requests_cohort_id", "reschedule_requests", ["cohort_id"], unique=False)
    op.create_index("ix_reschedule_requests_status", "reschedule_requests", ["status"], unique=False)
    op.create_index(
        "ix_reschedule_requests_student_status_created",
        "reschedule_requests",
        ["student_id", "status", "created_at"],
        unique=False,
    )
    op.create_index(
        "uq_reschedule_requests_active_class",
        "reschedule_requests",
        ["student_id", "cohort_id", "original_class_date"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("recipient_email", sa.String(length=320), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("outbox_event_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["outbox_event_id"],
            ["outbox_events.id"],
            name="fk_notifications_outbox_event_id_outbox_events",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_notifications_recipient_email", "notifications", ["recipient_email"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)
    op.create_index("ix_notifications_outbox_event_id", "notifications", ["outbox_event_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_outbox_event_id", table_name="notifications")
    op.drop_index("ix_notifications_status", table_name="notifications")
    op.drop_index("ix_notifications_recipient_email", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("uq_reschedule_requests_active_class", table_name="reschedule_requests")
    op.drop_index("ix_reschedule_requests_student_status_created", table_name="reschedule_requests")
    op.drop_index("ix_reschedule_requests_status", table_name="reschedule_requests")
    op.drop_index("ix_reschedule_requests_cohort_id", table_name="reschedule_requests")
    op.drop_index("ix_reschedule_requests_student_id", table_name="reschedule_requests")
    op.drop_table("reschedule_requests")

    op.drop_index("ix_enrollments_status", table_name="enrollments")
    op.drop_index("ix_enrollments_cohort_id", table_name="enrollments")
    op.drop_index("ix_enrollments_student_id", table_name="enrollments")
    op.drop_table("enrollments")

    op.drop_index("ix_weekly_sessions_teacher_id", table_name="weekly_sessions")
    op.drop_index("ix_weekly_sessions_cohort_id", table_name="weekly_sessions")
    op.drop_table("weekly_sessions")

    op.drop_index("ix_cohorts_product_id", table_name="cohorts")
    op.drop_table("cohorts")

    op.drop_index("ix_products_format", table_name="products")
    op.drop_table("products")

    op.drop_table("teachers")

    op.drop_index("ix_students_email", table_name="students")
    op.drop_table("students")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
