"""Create family, caregiver, care log, audit and view tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE = sa.Enum("family_admin", "family_member", name="userrole")
CARE_LOG_STATUS = sa.Enum("draft", "submitted", name="carelogstatus")
AUDIT_ACTION = sa.Enum("create", "update", "submit", "submit_section", name="auditaction")

# Sub-record columns stored as JSONB, in table order.
MORNING_JSON = ("oral_care", "morning_exercise_session")
AFTERNOON_JSON = (
    "afternoon_rest",
    "afternoon_exercise_session",
    "physical_activity",
    "activities",
    "movement_difficulties",
)
EVENING_JSON = ("night_sleep", "spiritual_emotional")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _jsonb(name: str) -> sa.Column:
    return sa.Column(name, postgresql.JSONB(), nullable=True)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", USER_ROLE, nullable=False, server_default="family_admin"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="Asia/Singapore"),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "care_recipients",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "family_admin_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="Asia/Singapore"),
        *_timestamps(),
    )
    op.create_index("ix_care_recipients_family_admin_id", "care_recipients", ["family_admin_id"])

    op.create_table(
        "care_recipient_access",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "care_recipient_id",
            sa.UUID(),
            sa.ForeignKey("care_recipients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("granted_by", sa.UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("granted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_care_recipient_access_recipient_user",
        "care_recipient_access",
        ["care_recipient_id", "user_id"],
    )
    op.create_index("ix_care_recipient_access_user_id", "care_recipient_access", ["user_id"])

    op.create_table(
        "caregivers",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "care_recipient_id",
            sa.UUID(),
            sa.ForeignKey("care_recipients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_caregivers_care_recipient_id", "caregivers", ["care_recipient_id"])

    op.create_table(
        "care_logs",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "care_recipient_id",
            sa.UUID(),
            sa.ForeignKey("care_recipients.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("caregiver_id", sa.UUID(), sa.ForeignKey("caregivers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("log_date", sa.Date(), nullable=False),
        # Lifecycle
        sa.Column("status", CARE_LOG_STATUS, nullable=False, server_default="draft"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invalidated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("invalidated_by", sa.UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("invalidation_reason", sa.Text(), nullable=True),
        _jsonb("completed_sections"),
        # Morning
        sa.Column("wake_time", sa.String(5), nullable=True),
        sa.Column("mood", sa.String(20), nullable=True),
        sa.Column("shower_time", sa.String(5), nullable=True),
        sa.Column("hair_wash", sa.Boolean(), nullable=True),
        sa.Column("blood_pressure", sa.String(10), nullable=True),
        sa.Column("pulse_rate", sa.Integer(), nullable=True),
        sa.Column("oxygen_level", sa.Integer(), nullable=True),
        sa.Column("blood_sugar", sa.Float(), nullable=True),
        sa.Column("vitals_time", sa.String(5), nullable=True),
        *[_jsonb(name) for name in MORNING_JSON],
        # Afternoon / evening
        *[_jsonb(name) for name in AFTERNOON_JSON],
        *[_jsonb(name) for name in EVENING_JSON],
        # Daily summary
        _jsonb("bowel_movements"),
        _jsonb("urination"),
        sa.Column("balance_issues", sa.Integer(), nullable=True),
        _jsonb("walking_pattern"),
        sa.Column("freezing_episodes", sa.String(20), nullable=True),
        sa.Column("eye_movement_problems", sa.Boolean(), nullable=True),
        sa.Column("speech_communication_scale", sa.Integer(), nullable=True),
        sa.Column("near_falls", sa.String(20), nullable=True),
        sa.Column("actual_falls", sa.String(20), nullable=True),
        _jsonb("unaccompanied_time"),
        sa.Column("unaccompanied_incidents", sa.Text(), nullable=True),
        sa.Column("total_unaccompanied_minutes", sa.Integer(), nullable=True),
        _jsonb("safety_checks"),
        _jsonb("emergency_prep"),
        _jsonb("room_maintenance"),
        _jsonb("personal_items_check"),
        _jsonb("hospital_bag_status"),
        _jsonb("special_concerns"),
        _jsonb("caregiver_notes"),
        sa.Column("emergency_flag", sa.Boolean(), nullable=True),
        sa.Column("emergency_note", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        # Shared
        _jsonb("medications"),
        _jsonb("meals"),
        _jsonb("fluids"),
        sa.Column("total_fluid_intake", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_care_logs_care_recipient_id_log_date", "care_logs", ["care_recipient_id", "log_date"])
    op.create_index("ix_care_logs_caregiver_id", "care_logs", ["caregiver_id"])

    op.create_table(
        "care_log_audit",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("care_log_id", sa.UUID(), sa.ForeignKey("care_logs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("changed_by", sa.UUID(), nullable=False),
        sa.Column("changed_by_name", sa.String(255), nullable=True),
        sa.Column("action", AUDIT_ACTION, nullable=False),
        sa.Column("section_submitted", sa.String(32), nullable=True),
        _jsonb("changes"),
        _jsonb("snapshot"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_care_log_audit_care_log_id", "care_log_audit", ["care_log_id"])
    op.create_index("ix_care_log_audit_created_at", "care_log_audit", ["created_at"])

    op.create_table(
        "care_log_views",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("care_log_id", sa.UUID(), sa.ForeignKey("care_logs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("viewed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("care_log_id", "user_id", name="uq_care_log_views_log_user"),
    )
    op.create_index("ix_care_log_views_user_id", "care_log_views", ["user_id"])


def downgrade() -> None:
    op.drop_table("care_log_views")
    op.drop_table("care_log_audit")
    op.drop_table("care_logs")
    op.drop_table("caregivers")
    op.drop_table("care_recipient_access")
    op.drop_table("care_recipients")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS auditaction")
    op.execute("DROP TYPE IF EXISTS carelogstatus")
    op.execute("DROP TYPE IF EXISTS userrole")
