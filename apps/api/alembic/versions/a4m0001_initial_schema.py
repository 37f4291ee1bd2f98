"""initial schema: users, listings, applications, notifications

Revision ID: a4m0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the enum types (user_role, application_status, payment_status,
   notification_type)
2. Creates users and the three listing tables with their availability flags
3. Creates applications with payment tracking columns
4. Creates notifications

Deadline columns are indexed because the hourly sweep and the status
summary filter on them.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a4m0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    enum_type = postgresql.ENUM(*values, name=name, create_type=False)
    enum_type.create(op.get_bind(), checkfirst=True)
    return enum_type


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create the initial schema."""
    user_role = _enum("user_role", "student", "admin")
    application_status = _enum(
        "application_status",
        "draft",
        "payment_pending",
        "submitted",
        "payment_failed",
        "payment_cancelled",
        "processing",
        "completed",
        "rejected",
    )
    payment_status = _enum(
        "payment_status", "pending", "completed", "failed", "cancelled", "refunded"
    )
    notification_type = _enum(
        "notification_type",
        "payment_verified",
        "payment_rejected",
        "application_update",
        "application_submitted",
        "deadline_reminder",
        "general",
    )

    op.create_table(
        "users",
        *_audit_columns(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", user_role, nullable=False, server_default="student"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    # Listings
    op.create_table(
        "institutions",
        *_audit_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("province", sa.String(length=100), nullable=True),
        sa.Column("website_url", sa.String(length=500), nullable=True),
        sa.Column("application_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("application_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_institutions_application_deadline", "institutions", ["application_deadline"]
    )

    op.create_table(
        "programs",
        *_audit_columns(),
        sa.Column("institution_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("qualification_type", sa.String(length=100), nullable=True),
        sa.Column("application_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["institution_id"],
            ["institutions.id"],
            name="fk_programs_institution_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_programs_application_deadline", "programs", ["application_deadline"])
    op.create_index("ix_programs_institution_id", "programs", ["institution_id"])

    op.create_table(
        "bursaries",
        *_audit_columns(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("provider", sa.String(length=200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("application_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bursaries_application_deadline", "bursaries", ["application_deadline"])

    # Applications
    op.create_table(
        "applications",
        *_audit_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("institution_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("program_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", application_status, nullable=False, server_default="draft"),
        sa.Column("payment_status", payment_status, nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("payment_reference", sa.String(length=100), nullable=True),
        sa.Column("yoco_charge_id", sa.String(length=100), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_verified_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("payment_verification_notes", sa.Text(), nullable=True),
        sa.Column("deadline_reminder_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_applications_user_id", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["institution_id"], ["institutions.id"], name="fk_applications_institution_id"
        ),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], name="fk_applications_program_id"),
        sa.ForeignKeyConstraint(
            ["payment_verified_by"], ["users.id"], name="fk_applications_payment_verified_by"
        ),
    )
    op.create_index("ix_applications_user_id", "applications", ["user_id"])
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index(
        "ix_applications_yoco_charge_id", "applications", ["yoco_charge_id"], unique=True
    )
    op.create_index("ix_applications_payment_reference", "applications", ["payment_reference"])

    # Notifications
    op.create_table(
        "notifications",
        *_audit_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", notification_type, nullable=False, server_default="general"),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_notifications_user_id", ondelete="CASCADE"
        ),
    )
    op.create_index(
        "ix_notifications_user_id_created_at", "notifications", ["user_id", "created_at"]
    )
    op.create_index("ix_notifications_user_id_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    """Drop every table and enum type created above."""
    op.drop_table("notifications")
    op.drop_table("applications")
    op.drop_table("bursaries")
    op.drop_table("programs")
    op.drop_table("institutions")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")

    for enum_name in ("notification_type", "payment_status", "application_status", "user_role"):
        postgresql.ENUM(name=enum_name).drop(op.get_bind(), checkfirst=True)
