from __future__ import annotations

import random
from datetime import date
from decimal import Decimal

import pytest

from staffplan.engine.forecast import (
    combine_forecast_totals,
    compute_forecast,
    potential_staff_hours,
)
from staffplan.engine.overlay import DeltaOverlay, ForecastField, OverlaySubject
from staffplan.engine.types import (
    Assignment,
    EmploymentType,
    LeaveRecord,
    LeaveStatus,
    Person,
    Project,
    RateEntry,
    Task,
)

JUNE = date(2024, 6, 1)
RATE_DATE = date(2024, 1, 1)


def _employee(person_id: str = "u1", **overrides) -> Person:
    values = {
        "id": person_id,
        "name": f"Employee {person_id}",
        "employment_type": EmploymentType.EMPLOYEE,
        "hours_per_week": Decimal("40"),
        "billable_percentage": Decimal("100"),
        "cost_rates": (RateEntry(Decimal("50"), date(2023, 1, 1)),),
        "sell_rates": (RateEntry(Decimal("100"), date(2023, 1, 1)),),
    }
    values.update(overrides)
    return Person(**values)


def _contractor(person_id: str = "c1", **overrides) -> Person:
    values = {
        "id": person_id,
        "name": f"Contractor {person_id}",
        "employment_type": EmploymentType.CONTRACTOR,
        "hours_per_week": Decimal("40"),
        "cost_rates": (RateEntry(Decimal("70"), date(2023, 1, 1)),),
        "sell_rates": (RateEntry(Decimal("110"), date(2023, 1, 1)),),
    }
    values.update(overrides)
    return Person(**values)


def _run(roster, *, leave=(), holidays=0, bonuses=None, overlay=None, projects=(), month=JUNE):
    return compute_forecast(
        roster,
        list(projects),
        list(leave),
        holidays,
        bonuses or {},
        overlay or DeltaOverlay(),
        month,
        rate_date=RATE_DATE,
    )


def test_full_month_employee_without_deductions() -> None:
    result = _run([_employee()])
    row = result.rows[0]

    assert result.working_days == 20
    assert row.forecast_hours == Decimal("160")
    assert row.revenue == Decimal("16000")
    assert row.cost == Decimal("8000")


def test_public_holidays_reduce_forecast_hours() -> None:
    result = _run([_employee()], holidays=2)

    assert result.rows[0].forecast_hours == Decimal("144")
    assert result.rows[0].holiday_hours == Decimal("16")


def test_potential_employee_starting_mid_month_is_prorated_by_calendar_days() -> None:
    starter = _employee("p1", is_potential=True, start_date=date(2024, 6, 16))
    row = _run([starter]).rows[0]

    assert row.forecast_hours == Decimal("80")
    assert row.base_hours == Decimal("80")
    assert row.cost == Decimal("4000")


def test_potential_staff_hours_helper() -> None:
    assert potential_staff_hours(Decimal("40"), date(2024, 6, 16), JUNE, 20) == Decimal("80")
    assert potential_staff_hours(Decimal("40"), date(2024, 7, 2), JUNE, 20) == Decimal("0")
    assert potential_staff_hours(Decimal("40"), date(2024, 3, 1), JUNE, 20) == Decimal("160")
    assert potential_staff_hours(Decimal("40"), None, JUNE, 20) == Decimal("160")


def test_potential_staff_ignore_holidays_and_leave() -> None:
    starter = _employee("p1", is_potential=True, payroll_ref="X1")
    leave = [LeaveRecord("p1", date(2024, 6, 3), date(2024, 6, 4), Decimal("16"))]

    row = _run([starter], leave=leave, holidays=2).rows[0]

    assert row.forecast_hours == Decimal("160")
    assert row.leave_hours == Decimal("0")


def test_only_scheduled_leave_is_deducted() -> None:
    leave = [
        LeaveRecord("u1", date(2024, 6, 3), date(2024, 6, 4), Decimal("16")),
        LeaveRecord("u1", date(2024, 6, 10), date(2024, 6, 10), Decimal("8"), LeaveStatus.PROCESSED),
        LeaveRecord("u1", date(2024, 5, 1), date(2024, 5, 2), Decimal("16")),
    ]

    row = _run([_employee()], leave=leave).rows[0]

    assert row.leave_hours == Decimal("16")
    assert row.forecast_hours == Decimal("144")


def test_billable_percentage_scales_hours_but_cost_uses_base_hours() -> None:
    row = _run([_employee(billable_percentage=Decimal("75"))]).rows[0]

    assert row.forecast_hours == Decimal("120")
    assert row.cost == Decimal("8000")


def test_deductions_never_make_hours_negative() -> None:
    leave = [LeaveRecord("u1", date(2024, 6, 1), date(2024, 6, 30), Decimal("400"))]

    assert _run([_employee()], leave=leave).rows[0].forecast_hours == Decimal("0")


def test_contractor_ignores_leave_and_cost_follows_forecast_hours() -> None:
    leave = [LeaveRecord("c1", date(2024, 6, 3), date(2024, 6, 4), Decimal("16"))]

    row = _run([_contractor()], leave=leave, holidays=1).rows[0]

    assert row.forecast_hours == Decimal("152")
    assert row.cost == Decimal("10640")
    assert row.revenue == Decimal("16720")


def test_mid_month_hire_uses_effective_working_days() -> None:
    row = _run([_employee(start_date=date(2024, 6, 15))]).rows[0]

    assert row.effective_working_days == 10
    assert row.forecast_hours == Decimal("80")


def test_people_outside_their_employment_window_are_excluded() -> None:
    result = _run(
        [
            _employee("u1"),
            _employee("u2", end_date=date(2024, 5, 31)),
            _employee("u3", start_date=date(2024, 7, 1)),
            _employee("p1", is_potential=True, start_date=date(2024, 8, 1)),
        ]
    )

    assert [row.person_id for row in result.rows] == ["u1", "p1"]
    assert result.rows[1].forecast_hours == Decimal("0")
    assert result.totals.employee_count == 1


def test_overlay_values_win_over_computed_defaults() -> None:
    overlay = DeltaOverlay()
    overlay.set("u1", ForecastField.HOURS_PER_WEEK, Decimal("20"))
    overlay.set("u1", ForecastField.SELL_RATE, Decimal("150"))
    overlay.set("c1", ForecastField.FORECAST_HOURS, Decimal("10"))

    result = _run([_employee(), _contractor()], overlay=overlay)
    employee, contractor = result.rows

    assert employee.forecast_hours == Decimal("80")
    assert employee.revenue == Decimal("12000")
    assert employee.overridden_fields == frozenset({ForecastField.HOURS_PER_WEEK, ForecastField.SELL_RATE})
    assert contractor.forecast_hours == Decimal("10")
    assert contractor.cost == Decimal("700")


def test_sell_rate_falls_back_to_task_average() -> None:
    person = _employee(sell_rates=())
    project = Project(
        id="p",
        name="Platform",
        tasks=(
            Task("t1", "Build", sell_rates=(RateEntry(Decimal("90"), date(2023, 1, 1)),), assignments=(Assignment("u1"),)),
            Task("t2", "Run", sell_rates=(RateEntry(Decimal("130"), date(2023, 1, 1)),), assignments=(Assignment("u1"),)),
        ),
    )

    row = _run([person], projects=[project]).rows[0]

    assert row.sell_rate == Decimal("110")


def test_rates_resolve_at_the_given_reference_date() -> None:
    person = _employee(
        cost_rates=(
            RateEntry(Decimal("50"), date(2023, 1, 1)),
            RateEntry(Decimal("55"), date(2024, 6, 1)),
        )
    )

    by_default = compute_forecast([person], [], [], 0, {}, DeltaOverlay(), JUNE)
    historical = _run([person])

    assert by_default.rows[0].cost_rate == Decimal("55")
    assert historical.rows[0].cost_rate == Decimal("50")


def test_totals_include_bonuses_and_month_expenses() -> None:
    overlay = DeltaOverlay()
    overlay.set("2024-06", ForecastField.EXPENSES, Decimal("1000"), OverlaySubject.MONTH)

    result = _run([_employee(), _contractor()], bonuses={"u1": Decimal("500")}, overlay=overlay)
    totals = result.totals

    assert totals.revenue == Decimal("16000") + Decimal("17600")
    assert totals.bonuses == Decimal("500")
    assert totals.expenses == Decimal("1000")
    assert totals.cost == Decimal("8000") + Decimal("11200") + Decimal("500") + Decimal("1000")
    assert totals.margin == totals.revenue - totals.cost
    assert totals.employee_count == 1
    assert totals.contractor_count == 1


def test_missing_bonus_key_means_zero() -> None:
    row = _run([_employee()], bonuses={"someone-else": Decimal("900")}).rows[0]

    assert row.planned_bonus == Decimal("0")


def test_margin_percent_is_zero_without_revenue() -> None:
    person = _employee(sell_rates=())

    totals = _run([person]).totals

    assert totals.revenue == Decimal("0")
    assert totals.margin_percent == Decimal("0")


def test_combined_totals_are_simple_sums_of_months() -> None:
    june = _run([_employee()]).totals
    july = _run([_employee()], month=date(2024, 7, 1), holidays=1).totals

    combined = combine_forecast_totals([june, july])

    assert combined.month_count == 2
    assert combined.revenue == june.revenue + july.revenue
    assert combined.cost == june.cost + july.cost
    assert combined.margin == june.margin + july.margin
    assert combined.average_margin_percent == (june.margin_percent + july.margin_percent) / 2
    assert combined.average_headcount == Decimal("1")


def test_combined_totals_of_nothing() -> None:
    combined = combine_forecast_totals([])

    assert combined.month_count == 0
    assert combined.margin_percent == Decimal("0")


@pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
def test_random_rosters_keep_totals_consistent(seed: int) -> None:
    rng = random.Random(seed)
    roster = []
    leave = []
    for index in range(12):
        person_id = f"u{index}"
        factory = _employee if rng.random() < 0.6 else _contractor
        start = date(2024, rng.randint(4, 7), rng.randint(1, 28)) if rng.random() < 0.4 else None
        roster.append(
            factory(
                person_id,
                hours_per_week=Decimal(rng.randint(8, 45)),
                billable_percentage=Decimal(rng.randint(0, 100)),
                start_date=start,
                is_potential=rng.random() < 0.2,
            )
        )
        if rng.random() < 0.5:
            leave.append(LeaveRecord(person_id, JUNE, JUNE, Decimal(rng.randint(0, 200))))

    result = _run(roster, leave=leave, holidays=rng.randint(0, 3), bonuses={"u0": Decimal("250")})

    assert all(row.forecast_hours >= 0 for row in result.rows)
    assert result.totals.hours == sum((row.forecast_hours for row in result.rows), Decimal("0"))
    assert result.totals.cost == sum((row.cost for row in result.rows), Decimal("0")) + result.totals.bonuses
    assert result.totals.margin == result.totals.revenue - result.totals.cost


def test_head_counts_include_potential_staff_active_in_the_month() -> None:
    result = _run(
        [
            _employee("u1"),
            _employee("p1", is_potential=True, start_date=date(2024, 6, 16)),
            _contractor("p2", is_potential=True),
            _employee("p3", is_potential=True, start_date=date(2024, 7, 1)),
        ]
    )

    assert len(result.rows) == 4
    assert result.totals.employee_count == 2
    assert result.totals.contractor_count == 1
