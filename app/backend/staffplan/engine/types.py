"""Immutable input snapshots consumed by the calculation engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal


class EmploymentType(str, enum.Enum):
    EMPLOYEE = "employee"
    CONTRACTOR = "contractor"


class OvertimeMode(str, enum.Enum):
    NONE = "none"
    ELIGIBLE = "eligible"
    ALL = "all"


class RateKind(str, enum.Enum):
    COST = "cost"
    SELL = "sell"


class ApprovalStatus(str, enum.Enum):
    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"
    UNSUBMITTED = "unsubmitted"
    NOT_REQUIRED = "not_required"
    NO_APPROVAL = "no_approval"


class LeaveStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


@dataclass(frozen=True, slots=True)
class RateEntry:
    amount: Decimal
    effective_date: date | None


@dataclass(frozen=True, slots=True)
class Person:
    id: str
    name: str
    employment_type: EmploymentType
    hours_per_week: Decimal | None = None
    billable_percentage: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_potential: bool = False
    payroll_ref: str | None = None
    overtime_mode: OvertimeMode = OvertimeMode.NONE
    cost_rates: tuple[RateEntry, ...] = ()
    sell_rates: tuple[RateEntry, ...] = ()

    @property
    def is_employee(self) -> bool:
        return self.employment_type is EmploymentType.EMPLOYEE

    @property
    def is_contractor(self) -> bool:
        return self.employment_type is EmploymentType.CONTRACTOR


@dataclass(frozen=True, slots=True)
class Assignment:
    person_id: str
    active: bool = True


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    name: str
    billable: bool = True
    active: bool = True
    sell_rates: tuple[RateEntry, ...] = ()
    cost_rate: Decimal = Decimal("0")
    assignments: tuple[Assignment, ...] = ()

    def has_active_assignment(self, person_id: str) -> bool:
        return any(item.person_id == person_id and item.active for item in self.assignments)


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    active: bool = True
    end_date: date | None = None
    overtime_inclusive: bool = False
    requires_approval: bool = False
    tasks: tuple[Task, ...] = ()

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


@dataclass(frozen=True, slots=True)
class LeaveRecord:
    person_id: str
    start_date: date
    end_date: date
    units: Decimal
    status: LeaveStatus = LeaveStatus.SCHEDULED


@dataclass(frozen=True, slots=True)
class TimeEntry:
    id: str
    person_id: str
    project_id: str
    task_id: str | None
    entry_date: date
    hours: Decimal


@dataclass(frozen=True, slots=True)
class Approval:
    project_id: str
    person_id: str
    start_date: date
    end_date: date
    status: ApprovalStatus


@dataclass(frozen=True, slots=True)
class Period:
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end
