"""Initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("learner", "teacher", "admin", name="role_enum", native_enum=False)
learner_status_enum = sa.Enum("trial", "active", "paused", "churned", name="learner_status_enum", native_enum=False)
package_status_enum = sa.Enum("active", "paused", "expired", "completed", name="package_status_enum", native_enum=False)
billing_type_enum = sa.Enum("trial", "credit", "one_off", name="billing_type_enum", native_enum=False)
session_status_enum = sa.Enum(
    "scheduled",
    "rescheduled",
    "completed",
    "cancelled",
    name="session_status_enum",
    native_enum=False,
)
approval_type_enum = sa.Enum(
    "new_student_booking",
    "pause_request",
    "reschedule",
    "cancellation",
    name="approval_type_enum",
    native_enum=False,
)
approval_status_enum = sa.Enum("pending", "approved", "rejected", name="approval_status_enum", native_enum=False)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _hours_col(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision=10, scale=2), nullable=nullable)


def _uuid_col(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), nullable=nullable)


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
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _uuid_col("role_id"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "learner_profiles",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("user_id"),
        _uuid_col("teacher_id", nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("birthday", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=32), nullable=True),
        sa.Column("guardian_name", sa.String(length=255), nullable=True),
        sa.Column("guardian_email", sa.String(length=255), nullable=True),
        sa.Column("status", learner_status_enum, nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_learner_profiles_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["users.id"],
            name="fk_learner_profiles_teacher_id_users",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("user_id", name="uq_learner_profiles_user_id"),
    )
    op.create_index("ix_learner_profiles_user_id", "learner_profiles", ["user_id"], unique=False)
    op.create_index("ix_learner_profiles_teacher_id", "learner_profiles", ["teacher_id"], unique=False)
    op.create_index("ix_learner_profiles_status", "learner_profiles", ["status"], unique=False)

    op.create_table(
        "learner_progress",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("student_id"),
        _uuid_col("course_id"),
        _hours_col("hours_completed"),
        sa.Column("sessions_completed", sa.Integer(), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_learner_progress_student_id_users",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("student_id", "course_id", name="uq_learner_progress_student_course"),
    )
    op.create_index("ix_learner_progress_student_id", "learner_progress", ["student_id"], unique=False)

    op.create_table(
        "catalog_sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("course_id"),
        _uuid_col("unit_id", nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        _hours_col("estimated_hours"),
    )
    op.create_index("ix_catalog_sessions_course_id", "catalog_sessions", ["course_id"], unique=False)
    op.create_index("ix_catalog_sessions_unit_id", "catalog_sessions", ["unit_id"], unique=False)

    op.create_table(
        "credit_ledgers",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("student_id"),
        _uuid_col("course_id"),
        _hours_col("total_hours"),
        _hours_col("uncommitted_hours"),
        _hours_col("committed_hours"),
        _hours_col("completed_hours"),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_credit_ledgers_student_id_users",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("student_id", "course_id", name="uq_credit_ledgers_student_course"),
        sa.CheckConstraint("total_hours >= 0", name="ck_credit_ledgers_total_non_negative"),
        sa.CheckConstraint("uncommitted_hours >= 0", name="ck_credit_ledgers_uncommitted_non_negative"),
        sa.CheckConstraint("committed_hours >= 0", name="ck_credit_ledgers_committed_non_negative"),
        sa.CheckConstraint("completed_hours >= 0", name="ck_credit_ledgers_completed_non_negative"),
        sa.CheckConstraint(
            "uncommitted_hours + committed_hours + completed_hours = total_hours",
            name="ck_credit_ledgers_buckets_sum_to_total",
        ),
    )
    op.create_index("ix_credit_ledgers_student_id", "credit_ledgers", ["student_id"], unique=False)
    op.create_index("ix_credit_ledgers_course_id", "credit_ledgers", ["course_id"], unique=False)

    op.create_table(
        "hour_packages",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("student_id"),
        _uuid_col("course_id"),
        _uuid_col("ledger_id"),
        _hours_col("total_hours"),
        _hours_col("hours_remaining"),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("external_reference", sa.String(length=128), nullable=True),
        sa.Column("purchase_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", package_status_enum, nullable=False),
        sa.Column("pause_count", sa.Integer(), nullable=False),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("pause_reason", sa.Text(), nullable=True),
        sa.Column("total_days_paused", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_hour_packages_student_id_users",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["credit_ledgers.id"],
            name="fk_hour_packages_ledger_id_credit_ledgers",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("external_reference", name="uq_hour_packages_external_reference"),
        sa.CheckConstraint(
            "(status = 'paused') = (paused_at IS NOT NULL)",
            name="ck_hour_packages_paused_iff_paused_at",
        ),
        sa.CheckConstraint("hours_remaining >= 0", name="ck_hour_packages_hours_remaining_non_negative"),
        sa.CheckConstraint("hours_remaining <= total_hours", name="ck_hour_packages_hours_remaining_within_total"),
        sa.CheckConstraint("pause_count >= 0", name="ck_hour_packages_pause_count_non_negative"),
    )
    op.create_index("ix_hour_packages_student_id", "hour_packages", ["student_id"], unique=False)
    op.create_index("ix_hour_packages_course_id", "hour_packages", ["course_id"], unique=False)
    op.create_index("ix_hour_packages_ledger_id", "hour_packages", ["ledger_id"], unique=False)
    op.create_index("ix_hour_packages_expires_at", "hour_packages", ["expires_at"], unique=False)

    op.create_table(
        "session_instances",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("student_id"),
        _uuid_col("teacher_id"),
        _uuid_col("course_id"),
        _uuid_col("unit_id", nullable=True),
        _uuid_col("catalog_session_id", nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("lesson_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        _hours_col("duration_hours"),
        sa.Column("billing_type", billing_type_enum, nullable=False),
        sa.Column("status", session_status_enum, nullable=False),
        _uuid_col("ledger_id", nullable=True),
        _uuid_col("package_id", nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_session_instances_student_id_users",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["users.id"],
            name="fk_session_instances_teacher_id_users",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["catalog_session_id"],
            ["catalog_sessions.id"],
            name="fk_session_instances_catalog_session_id_catalog_sessions",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["credit_ledgers.id"],
            name="fk_session_instances_ledger_id_credit_ledgers",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["package_id"],
            ["hour_packages.id"],
            name="fk_session_instances_package_id_hour_packages",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("duration_hours > 0", name="ck_session_instances_duration_positive"),
        sa.CheckConstraint("ends_at > starts_at", name="ck_session_instances_ends_after_start"),
        sa.CheckConstraint(
            "billing_type <> 'credit' OR ledger_id IS NOT NULL",
            name="ck_session_instances_credit_session_has_ledger",
        ),
    )
    op.create_index("ix_session_instances_student_id", "session_instances", ["student_id"], unique=False)
    op.create_index("ix_session_instances_teacher_id", "session_instances", ["teacher_id"], unique=False)
    op.create_index("ix_session_instances_course_id", "session_instances", ["course_id"], unique=False)
    op.create_index("ix_session_instances_starts_at", "session_instances", ["starts_at"], unique=False)
    op.create_index("ix_session_instances_status", "session_instances", ["status"], unique=False)
    op.create_index("ix_session_instances_ledger_id", "session_instances", ["ledger_id"], unique=False)

    op.create_table(
        "approval_requests",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("type", approval_type_enum, nullable=False),
        sa.Column("status", approval_status_enum, nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        _uuid_col("student_id"),
        _uuid_col("teacher_id", nullable=True),
        _uuid_col("session_instance_id", nullable=True),
        _uuid_col("package_id", nullable=True),
        _uuid_col("requested_by_id", nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _uuid_col("resolved_by_id", nullable=True),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_approval_requests_student_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["users.id"],
            name="fk_approval_requests_teacher_id_users",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["session_instance_id"],
            ["session_instances.id"],
            name="fk_approval_requests_session_instance_id_session_instances",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["package_id"],
            ["hour_packages.id"],
            name="fk_approval_requests_package_id_hour_packages",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["requested_by_id"],
            ["users.id"],
            name="fk_approval_requests_requested_by_id_users",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["resolved_by_id"],
            ["users.id"],
            name="fk_approval_requests_resolved_by_id_users",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_approval_requests_type", "approval_requests", ["type"], unique=False)
    op.create_index("ix_approval_requests_status", "approval_requests", ["status"], unique=False)
    op.create_index("ix_approval_requests_student_id", "approval_requests", ["student_id"], unique=False)
    op.create_index("ix_approval_requests_teacher_id", "approval_requests", ["teacher_id"], unique=False)
    op.create_index(
        "uq_approval_requests_pending_session",
        "approval_requests",
        ["session_instance_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending' AND session_instance_id IS NOT NULL"),
    )
    op.create_index(
        "uq_approval_requests_pending_package",
        "approval_requests",
        ["package_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending' AND package_id IS NOT NULL"),
    )

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("user_id"),
        _uuid_col("source_event_id", nullable=True),
        sa.Column("event_type", sa.String(length=128), nullable=True),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=512), nullable=True),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_notifications_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("source_event_id", "user_id", name="uq_notifications_source_event_user"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        _uuid_col("actor_id", nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id", "created_at"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=64), nullable=False),
        sa.Column("aggregate_id", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index(
        "ix_outbox_events_status_occurred_at",
        "outbox_events",
        ["status", "occurred_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status_occurred_at", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("uq_approval_requests_pending_package", table_name="approval_requests")
    op.drop_index("uq_approval_requests_pending_session", table_name="approval_requests")
    op.drop_index("ix_approval_requests_teacher_id", table_name="approval_requests")
    op.drop_index("ix_approval_requests_student_id", table_name="approval_requests")
    op.drop_index("ix_approval_requests_status", table_name="approval_requests")
    op.drop_index("ix_approval_requests_type", table_name="approval_requests")
    op.drop_table("approval_requests")

    op.drop_index("ix_session_instances_ledger_id", table_name="session_instances")
    op.drop_index("ix_session_instances_status", table_name="session_instances")
    op.drop_index("ix_session_instances_starts_at", table_name="session_instances")
    op.drop_index("ix_session_instances_course_id", table_name="session_instances")
    op.drop_index("ix_session_instances_teacher_id", table_name="session_instances")
    op.drop_index("ix_session_instances_student_id", table_name="session_instances")
    op.drop_table("session_instances")

    op.drop_index("ix_hour_packages_expires_at", table_name="hour_packages")
    op.drop_index("ix_hour_packages_ledger_id", table_name="hour_packages")
    op.drop_index("ix_hour_packages_course_id", table_name="hour_packages")
    op.drop_index("ix_hour_packages_student_id", table_name="hour_packages")
    op.drop_table("hour_packages")

    op.drop_index("ix_credit_ledgers_course_id", table_name="credit_ledgers")
    op.drop_index("ix_credit_ledgers_student_id", table_name="credit_ledgers")
    op.drop_table("credit_ledgers")

    op.drop_index("ix_catalog_sessions_unit_id", table_name="catalog_sessions")
    op.drop_index("ix_catalog_sessions_course_id", table_name="catalog_sessions")
    op.drop_table("catalog_sessions")

    op.drop_index("ix_learner_progress_student_id", table_name="learner_progress")
    op.drop_table("learner_progress")

    op.drop_index("ix_learner_profiles_status", table_name="learner_profiles")
    op.drop_index("ix_learner_profiles_teacher_id", table_name="learner_profiles")
    op.drop_index("ix_learner_profiles_user_id", table_name="learner_profiles")
    op.drop_table("learner_profiles")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
