"""ORM entities for the staffing forecast schema."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from staffplan.db.base import Base
from staffplan.engine.overlay import ForecastField, OverlaySubject
from staffplan.engine.types import ApprovalStatus, EmploymentType, LeaveStatus, OvertimeMode, RateKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls: type, name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class StaffMember(Base):
    __tablename__ = "staff_members"
    __table_args__ = (
        CheckConstraint("hours_per_week IS NULL OR hours_per_week >= 0", name="ck_staff_members_hours_non_negative"),
        CheckConstraint(
            "billable_percentage IS NULL OR (billable_percentage >= 0 AND billable_percentage <= 100)",
            name="ck_staff_members_billable_percentage_range",
        ),
        Index("ix_staff_members_payroll_ref", "payroll_ref"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    employment_type: Mapped[EmploymentType] = mapped_column(
        _enum(EmploymentType, "employment_type"), nullable=False, default=EmploymentType.EMPLOYEE
    )
    hours_per_week: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    billable_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_potential: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payroll_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    overtime_mode: Mapped[OvertimeMode] = mapped_column(
        _enum(OvertimeMode, "overtime_mode"), nullable=False, default=OvertimeMode.NONE
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class StaffRate(Base):
    """Append-only rate history; ``sequence_no`` preserves insertion order."""

    __tablename__ = "staff_rates"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_staff_rates_amount_non_negative"),
        Index("ix_staff_rates_member_kind", "staff_member_id", "rate_kind"),
        UniqueConstraint("staff_member_id", "rate_kind", "sequence_no", name="uq_staff_rates_member_kind_seq"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    staff_member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_members.id"), nullable=False
    )
    rate_kind: Mapped[RateKind] = mapped_column(_enum(RateKind, "rate_kind"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sequence_no: Mapped[int] = mapped_column(nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    overtime_inclusive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint("cost_rate >= 0", name="ck_tasks_cost_rate_non_negative"),
        Index("ix_tasks_project_id", "project_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    cost_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))


class TaskSellRate(Base):
    __tablename__ = "task_sell_rates"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_task_sell_rates_amount_non_negative"),
        UniqueConstraint("task_id", "sequence_no", name="uq_task_sell_rates_task_seq"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("tasks.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    sequence_no: Mapped[int] = mapped_column(nullable=False)


class TaskAssignment(Base):
    __tablename__ = "task_assignments"
    __table_args__ = (
        Index("ix_task_assignments_staff_member_id", "staff_member_id"),
        UniqueConstraint("task_id", "staff_member_id", name="uq_task_assignments_task_member"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("tasks.id"), nullable=False)
    staff_member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_members.id"), nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TimeEntry(Base):
    __tablename__ = "time_entries"
    __table_args__ = (
        CheckConstraint("hours >= 0", name="ck_time_entries_hours_non_negative"),
        Index("ix_time_entries_member_date", "staff_member_id", "entry_date"),
        Index("ix_time_entries_project_date", "project_id", "entry_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    staff_member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_members.id"), nullable=False
    )
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    task_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("tasks.id"), nullable=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)


class LeaveRecord(Base):
    """Leave imported from payroll, matched to staff through ``payroll_ref``."""

    __tablename__ = "leave_records"
    __table_args__ = (
        CheckConstraint("units >= 0", name="ck_leave_records_units_non_negative"),
        Index("ix_leave_records_payroll_ref", "payroll_ref"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    payroll_ref: Mapped[str] = mapped_column(String(128), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    units: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        _enum(LeaveStatus, "leave_status"), nullable=False, default=LeaveStatus.SCHEDULED
    )


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    holiday_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Bonus(Base):
    __tablename__ = "bonuses"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_bonuses_amount_non_negative"),
        Index("ix_bonuses_member_date", "staff_member_id", "bonus_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    staff_member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_members.id"), nullable=False
    )
    bonus_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payslip_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)


class Approval(Base):
    __tablename__ = "approvals"
    __table_args__ = (Index("ix_approvals_project_member", "project_id", "staff_member_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False)
    staff_member_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("staff_members.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        _enum(ApprovalStatus, "approval_status"), nullable=False, default=ApprovalStatus.PENDING
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ForecastDelta(Base):
    """One overridden forecast value for one month."""

    __tablename__ = "forecast_deltas"
    __table_args__ = (
        UniqueConstraint(
            "month_start",
            "subject",
            "entity_id",
            "field",
            name="uq_forecast_deltas_month_subject_entity_field",
        ),
        Index("ix_forecast_deltas_month", "month_start"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    month_start: Mapped[date] = mapped_column(Date, nullable=False)
    subject: Mapped[OverlaySubject] = mapped_column(_enum(OverlaySubject, "overlay_subject"), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(128), nullable=False)
    field: Mapped[ForecastField] = mapped_column(_enum(ForecastField, "forecast_field"), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class OvertimeSubmission(Base):
    """Local ledger of overtime already handed to payroll, one row per month."""

    __tablename__ = "overtime_submissions"
    __table_args__ = (
        CheckConstraint("total_overtime_hours >= 0", name="ck_overtime_submissions_hours_non_negative"),
        UniqueConstraint("submission_month", name="uq_overtime_submissions_month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    submission_month: Mapped[date] = mapped_column(Date, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    pay_run_ref: Mapped[str] = mapped_column(String(128), nullable=False)
    total_overtime_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    user_count: Mapped[int] = mapped_column(nullable=False)
    entries_payload: Mapped[list] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
