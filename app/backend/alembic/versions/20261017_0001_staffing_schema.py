"""staffing forecast schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


employment_type = postgresql.ENUM("employee", "contractor", name="employment_type", create_type=False)
overtime_mode = postgresql.ENUM("none", "eligible", "all", name="overtime_mode", create_type=False)
rate_kind = postgresql.ENUM("cost", "sell", name="rate_kind", create_type=False)
leave_status = postgresql.ENUM("SCHEDULED", "PROCESSED", "REJECTED", name="leave_status", create_type=False)
approval_status = postgresql.ENUM(
    "approved",
    "pending",
    "rejected",
    "unsubmitted",
    "not_required",
    "no_approval",
    name="approval_status",
    create_type=False,
)
overlay_subject = postgresql.ENUM("person", "month", name="overlay_subject", create_type=False)
forecast_field = postgresql.ENUM(
    "hoursPerWeek",
    "billablePercentage",
    "sellRate",
    "costRate",
    "plannedBonus",
    "forecastHours",
    "expenses",
    name="forecast_field",
    create_type=False,
)

ENUMS = (
    employment_type,
    overtime_mode,
    rate_kind,
    leave_status,
    approval_status,
    overlay_subject,
    forecast_field,
)


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def upgrade() -> None:
    for enum_type in ENUMS:
        enum_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "staff_members",
        _uuid_pk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("employment_type", employment_type, nullable=False),
        sa.Column("hours_per_week", sa.Numeric(6, 2), nullable=True),
        sa.Column("billable_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_potential", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payroll_ref", sa.String(length=128), nullable=True),
        sa.Column("overtime_mode", overtime_mode, nullable=False, server_default="none"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("hours_per_week IS NULL OR hours_per_week >= 0", name="ck_staff_members_hours_non_negative"),
        sa.CheckConstraint(
            "billable_percentage IS NULL OR (billable_percentage >= 0 AND billable_percentage <= 100)",
            name="ck_staff_members_billable_percentage_range",
        ),
    )
    op.create_index("ix_staff_members_payroll_ref", "staff_members", ["payroll_ref"])

    op.create_table(
        "staff_rates",
        _uuid_pk(),
        sa.Column("staff_member_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_members.id"), nullable=False),
        sa.Column("rate_kind", rate_kind, nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_staff_rates_amount_non_negative"),
        sa.UniqueConstraint("staff_member_id", "rate_kind", "sequence_no", name="uq_staff_rates_member_kind_seq"),
    )
    op.create_index("ix_staff_rates_member_kind", "staff_rates", ["staff_member_id", "rate_kind"])

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("overtime_inclusive", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )

    op.create_table(
        "tasks",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("billable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("cost_rate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.CheckConstraint("cost_rate >= 0", name="ck_tasks_cost_rate_non_negative"),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])

    op.create_table(
        "task_sell_rates",
        _uuid_pk(),
        sa.Column("task_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.CheckConstraint("amount >= 0", name="ck_task_sell_rates_amount_non_negative"),
        sa.UniqueConstraint("task_id", "sequence_no", name="uq_task_sell_rates_task_seq"),
    )

    op.create_table(
        "task_assignments",
        _uuid_pk(),
        sa.Column("task_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("staff_member_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_members.id"), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint("task_id", "staff_member_id", name="uq_task_assignments_task_member"),
    )
    op.create_index("ix_task_assignments_staff_member_id", "task_assignments", ["staff_member_id"])

    op.create_table(
        "time_entries",
        _uuid_pk(),
        sa.Column("staff_member_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_members.id"), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("task_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tasks.id"), nullable=True),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Numeric(8, 2), nullable=False),
        sa.CheckConstraint("hours >= 0", name="ck_time_entries_hours_non_negative"),
    )
    op.create_index("ix_time_entries_member_date", "time_entries", ["staff_member_id", "entry_date"])
    op.create_index("ix_time_entries_project_date", "time_entries", ["project_id", "entry_date"])

    op.create_table(
        "leave_records",
        _uuid_pk(),
        sa.Column("payroll_ref", sa.String(length=128), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("units", sa.Numeric(8, 2), nullable=False),
        sa.Column("status", leave_status, nullable=False, server_default="SCHEDULED"),
        sa.CheckConstraint("units >= 0", name="ck_leave_records_units_non_negative"),
    )
    op.create_index("ix_leave_records_payroll_ref", "leave_records", ["payroll_ref"])

    op.create_table(
        "public_holidays",
        _uuid_pk(),
        sa.Column("holiday_date", sa.Date(), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "bonuses",
        _uuid_pk(),
        sa.Column("staff_member_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_members.id"), nullable=False),
        sa.Column("bonus_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payslip_ref", sa.String(length=128), nullable=True),
        sa.CheckConstraint("amount >= 0", name="ck_bonuses_amount_non_negative"),
    )
    op.create_index("ix_bonuses_member_date", "bonuses", ["staff_member_id", "bonus_date"])

    op.create_table(
        "approvals",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("staff_member_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("staff_members.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", approval_status, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approvals_project_member", "approvals", ["project_id", "staff_member_id"])

    op.create_table(
        "forecast_deltas",
        _uuid_pk(),
        sa.Column("month_start", sa.Date(), nullable=False),
        sa.Column("subject", overlay_subject, nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("field", forecast_field, nullable=False),
        sa.Column("value", sa.Numeric(14, 4), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "month_start",
            "subject",
            "entity_id",
            "field",
            name="uq_forecast_deltas_month_subject_entity_field",
        ),
    )
    op.create_index("ix_forecast_deltas_month", "forecast_deltas", ["month_start"])

    op.create_table(
        "overtime_submissions",
        _uuid_pk(),
        sa.Column("submission_month", sa.Date(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("pay_run_ref", sa.String(length=128), nullable=False),
        sa.Column("total_overtime_hours", sa.Numeric(10, 2), nullable=False),
        sa.Column("user_count", sa.Integer(), nullable=False),
        sa.Column("entries_payload", postgresql.JSONB(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("total_overtime_hours >= 0", name="ck_overtime_submissions_hours_non_negative"),
        sa.UniqueConstraint("submission_month", name="uq_overtime_submissions_month"),
    )


def downgrade() -> None:
    op.drop_table("overtime_submissions")

    op.drop_index("ix_forecast_deltas_month", table_name="forecast_deltas")
    op.drop_table("forecast_deltas")

    op.drop_index("ix_approvals_project_member", table_name="approvals")
    op.drop_table("approvals")

    op.drop_index("ix_bonuses_member_date", table_name="bonuses")
    op.drop_table("bonuses")

    op.drop_table("public_holidays")

    op.drop_index("ix_leave_records_payroll_ref", table_name="leave_records")
    op.drop_table("leave_records")

    op.drop_index("ix_time_entries_project_date", table_name="time_entries")
    op.drop_index("ix_time_entries_member_date", table_name="time_entries")
    op.drop_table("time_entries")

    op.drop_index("ix_task_assignments_staff_member_id", table_name="task_assignments")
    op.drop_table("task_assignments")

    op.drop_table("task_sell_rates")

    op.drop_index("ix_tasks_project_id", table_name="tasks")
    op.drop_table("tasks")

    op.drop_table("projects")

    op.drop_index("ix_staff_rates_member_kind", table_name="staff_rates")
    op.drop_table("staff_rates")

    op.drop_index("ix_staff_members_payroll_ref", table_name="staff_members")
    op.drop_table("staff_members")

    for enum_type in reversed(ENUMS):
        enum_type.drop(op.get_bind(), checkfirst=True)
