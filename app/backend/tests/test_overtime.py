from __future__ import annotations

import logging
import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from staffplan.engine.forecast import compute_forecast
from staffplan.engine.overlay import DeltaOverlay
from staffplan.engine.overtime import (
    allocate_overtime,
    approval_status_for_period,
    compute_overtime,
    is_overtime_eligible,
)
from staffplan.engine.temporal import DEFAULT_HOURS_PER_WEEK
from staffplan.engine.types import (
    Approval,
    ApprovalStatus,
    EmploymentType,
    OvertimeMode,
    Period,
    Person,
    Project,
    TimeEntry,
)

JUNE = Period(date(2024, 6, 1), date(2024, 6, 30))
CENT = Decimal("0.01")

PORTAL = Project(id="p-a", name="Portal", overtime_inclusive=True, requires_approval=True)
SUPPORT = Project(id="p-b", name="Support", overtime_inclusive=True)
INTERNAL = Project(id="p-c", name="Internal")


def _employee(person_id: str, mode: OvertimeMode = OvertimeMode.ELIGIBLE, **overrides) -> Person:
    values = {
        "id": person_id,
        "name": person_id.upper(),
        "employment_type": EmploymentType.EMPLOYEE,
        "hours_per_week": Decimal("40"),
        "overtime_mode": mode,
    }
    values.update(overrides)
    return Person(**values)


def _entries(person_id: str, project_id: str, total_hours: int, *, start: date = date(2024, 6, 3)) -> list[TimeEntry]:
    """Spread ``total_hours`` over consecutive days in 10 hour chunks."""

    entries = []
    remaining = total_hours
    day = start
    index = 0
    while remaining > 0:
        hours = min(10, remaining)
        entries.append(TimeEntry(f"{person_id}-{project_id}-{index}", person_id, project_id, None, day, Decimal(hours)))
        remaining -= hours
        day += timedelta(days=1)
        index += 1
    return entries


def test_overtime_is_split_in_proportion_to_project_hours() -> None:
    entries = _entries("u1", "p-a", 120) + _entries("u1", "p-b", 60)

    report = compute_overtime([_employee("u1")], entries, [PORTAL, SUPPORT], [], JUNE)

    assert report.summary.working_days == 20
    [entry] = report.entries
    assert entry.standard_hours == Decimal("160")
    assert entry.total_hours == Decimal("180")
    assert entry.overtime_hours == Decimal("20")
    shares = {item.project_id: item.overtime_hours.quantize(CENT) for item in entry.projects}
    assert shares == {"p-a": Decimal("13.33"), "p-b": Decimal("6.67")}
    assert abs(sum(item.overtime_hours for item in entry.projects) - entry.overtime_hours) < Decimal("0.0001")
    assert [item.project_id for item in entry.projects] == ["p-a", "p-b"]


def test_nobody_at_or_under_standard_hours_is_reported() -> None:
    report = compute_overtime([_employee("u1")], _entries("u1", "p-a", 160), [PORTAL], [], JUNE)

    assert report.entries == ()
    assert report.summary.total_users == 0
    assert report.summary.total_overtime_hours == Decimal("0")
    assert report.summary.has_pending_approvals is False


def test_entries_outside_the_period_are_ignored() -> None:
    entries = _entries("u1", "p-b", 170) + _entries("u1", "p-b", 50, start=date(2024, 7, 1))

    [entry] = compute_overtime([_employee("u1")], entries, [SUPPORT], [], JUNE).entries

    assert entry.total_hours == Decimal("170")
    assert entry.overtime_hours == Decimal("10")


@pytest.mark.parametrize(
    ("person", "project", "expected"),
    [
        (_employee("u1", OvertimeMode.ALL), INTERNAL, True),
        (_employee("u1", OvertimeMode.ELIGIBLE), INTERNAL, False),
        (_employee("u1", OvertimeMode.ELIGIBLE), SUPPORT, True),
        (_employee("u1", OvertimeMode.NONE), SUPPORT, False),
        (_employee("u1", OvertimeMode.ALL, employment_type=EmploymentType.CONTRACTOR), SUPPORT, False),
        (None, SUPPORT, False),
        (_employee("u1"), None, False),
    ],
)
def test_overtime_eligibility(person: Person | None, project: Project | None, expected: bool) -> None:
    assert is_overtime_eligible(person, project) is expected


def test_eligible_mode_counts_only_overtime_inclusive_projects() -> None:
    entries = _entries("u1", "p-b", 100) + _entries("u1", "p-c", 100)

    report = compute_overtime([_employee("u1")], entries, [SUPPORT, INTERNAL], [], JUNE)

    assert report.entries == ()


def test_all_mode_counts_every_project() -> None:
    entries = _entries("u1", "p-b", 100) + _entries("u1", "p-c", 100)

    [entry] = compute_overtime([_employee("u1", OvertimeMode.ALL)], entries, [SUPPORT, INTERNAL], [], JUNE).entries

    assert entry.overtime_hours == Decimal("40")
    assert {item.project_id for item in entry.projects} == {"p-b", "p-c"}


def test_part_time_hours_lower_the_standard() -> None:
    person = _employee("u1", hours_per_week=Decimal("20"))

    [entry] = compute_overtime([person], _entries("u1", "p-b", 100), [SUPPORT], [], JUNE).entries

    assert entry.standard_hours == Decimal("80")
    assert entry.overtime_hours == Decimal("20")


def test_entries_are_sorted_by_overtime_descending() -> None:
    entries = _entries("u1", "p-b", 170) + _entries("u2", "p-b", 200)

    report = compute_overtime([_employee("u1"), _employee("u2")], entries, [SUPPORT], [], JUNE)

    assert [entry.person_id for entry in report.entries] == ["u2", "u1"]
    assert report.summary.total_overtime_hours == Decimal("50")
    assert report.summary.total_users == 2


def test_approval_annotation_and_pending_flag() -> None:
    entries = _entries("u1", "p-a", 170) + _entries("u2", "p-a", 170)
    approvals = [Approval("p-a", "u1", date(2024, 6, 1), date(2024, 6, 30), ApprovalStatus.APPROVED)]

    report = compute_overtime([_employee("u1"), _employee("u2")], entries, [PORTAL], approvals, JUNE)
    statuses = {entry.person_id: entry.projects[0].approval_status for entry in report.entries}

    assert statuses == {"u1": ApprovalStatus.APPROVED, "u2": ApprovalStatus.UNSUBMITTED}
    assert report.summary.has_pending_approvals is True


def test_fully_approved_report_has_no_pending_approvals() -> None:
    entries = _entries("u1", "p-a", 170) + _entries("u1", "p-b", 10, start=date(2024, 6, 20))
    approvals = [Approval("p-a", "u1", date(2024, 5, 1), date(2024, 7, 31), ApprovalStatus.APPROVED)]

    report = compute_overtime([_employee("u1")], entries, [PORTAL, SUPPORT], approvals, JUNE)
    statuses = [item.approval_status for item in report.entries[0].projects]

    assert statuses == [ApprovalStatus.APPROVED, ApprovalStatus.NOT_REQUIRED]
    assert report.summary.has_pending_approvals is False


def test_approval_must_cover_the_whole_period() -> None:
    partial = [Approval("p-a", "u1", date(2024, 6, 10), date(2024, 6, 30), ApprovalStatus.APPROVED)]

    assert approval_status_for_period(partial, PORTAL, "u1", JUNE) is ApprovalStatus.UNSUBMITTED
    assert approval_status_for_period(partial, SUPPORT, "u1", JUNE) is ApprovalStatus.NOT_REQUIRED


def test_allocate_overtime_without_basis_is_empty() -> None:
    assert allocate_overtime({}, Decimal("5")) == {}
    assert allocate_overtime({"p-a": Decimal("0")}, Decimal("5")) == {}


def test_overtime_without_project_hours_logs_a_warning(caplog: pytest.LogCaptureFixture) -> None:
    # A correction entry cancels the logged hours while a negative default standard leaves overtime.
    person = _employee("u1", hours_per_week=None)
    entries = [
        TimeEntry("e1", "u1", "p-b", None, date(2024, 6, 3), Decimal("5")),
        TimeEntry("e2", "u1", "p-b", None, date(2024, 6, 4), Decimal("-5")),
    ]

    with caplog.at_level(logging.WARNING, logger="staffplan.engine.overtime"):
        report = compute_overtime([person], entries, [SUPPORT], [], JUNE, default_hours_per_week=Decimal("-1"))

    [entry] = report.entries
    assert entry.projects == ()
    assert "no project hours" in caplog.text


@pytest.mark.parametrize("seed", [11, 12, 13])
def test_allocation_conserves_overtime(seed: int) -> None:
    rng = random.Random(seed)
    project_hours = {f"p{index}": Decimal(rng.randint(1, 90)) for index in range(rng.randint(1, 6))}
    overtime = Decimal(rng.randint(1, 40))

    shares = allocate_overtime(project_hours, overtime)

    assert set(shares) == set(project_hours)
    assert abs(sum(shares.values()) - overtime) < Decimal("0.0001")


def test_forecast_and_overtime_share_the_default_working_week() -> None:
    person = _employee("u1", hours_per_week=None)
    forecast = compute_forecast([person], [], [], 0, {}, DeltaOverlay(), JUNE.start)

    [entry] = compute_overtime([person], _entries("u1", "p-b", 170), [SUPPORT], [], JUNE).entries

    assert entry.hours_per_week == DEFAULT_HOURS_PER_WEEK
    assert entry.standard_hours == forecast.rows[0].base_hours == Decimal("160")
