"""Monthly staffing forecast: per-person rows and portfolio totals."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from staffplan.engine.overlay import DeltaOverlay, ForecastField, OverlaySubject
from staffplan.engine.rates import ZERO, average_sell_rate_for_person, resolve_rate
from staffplan.engine.temporal import (
    DEFAULT_HOURS_PER_WEEK,
    WORK_WEEK_DAYS,
    days_in_month,
    effective_working_days,
    format_year_month,
    is_active_in_month,
    month_bounds,
    working_days_in_range,
)
from staffplan.engine.types import EmploymentType, LeaveRecord, LeaveStatus, Person, Project

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
DEFAULT_HOURS_PER_DAY = Decimal("8")


@dataclass(frozen=True, slots=True)
class ForecastRow:
    person_id: str
    name: str
    employment_type: EmploymentType
    is_potential: bool
    hours_per_week: Decimal
    billable_percentage: Decimal
    sell_rate: Decimal
    cost_rate: Decimal
    planned_bonus: Decimal
    forecast_hours: Decimal
    effective_working_days: int
    base_hours: Decimal
    holiday_hours: Decimal
    leave_hours: Decimal
    revenue: Decimal
    # Salary or contract cost of the row; bonuses are added at the totals level.
    cost: Decimal
    overridden_fields: frozenset[ForecastField]
    active_in_month: bool


@dataclass(frozen=True, slots=True)
class ForecastTotals:
    hours: Decimal
    revenue: Decimal
    cost: Decimal
    bonuses: Decimal
    expenses: Decimal
    leave_hours: Decimal
    margin: Decimal
    margin_percent: Decimal
    employee_count: int
    contractor_count: int


@dataclass(frozen=True, slots=True)
class ForecastResult:
    month: date
    working_days: int
    holiday_count: int
    rows: tuple[ForecastRow, ...]
    totals: ForecastTotals


@dataclass(frozen=True, slots=True)
class CombinedForecast:
    month_count: int
    hours: Decimal
    revenue: Decimal
    cost: Decimal
    bonuses: Decimal
    expenses: Decimal
    leave_hours: Decimal
    margin: Decimal
    margin_percent: Decimal
    average_margin_percent: Decimal
    average_headcount: Decimal


def margin_percent(revenue: Decimal, margin: Decimal) -> Decimal:
    if revenue > ZERO:
        return margin / revenue * HUNDRED
    return ZERO


def scheduled_leave_hours(
    leave: Sequence[LeaveRecord],
    month_start: date,
    month_end: date,
) -> dict[str, Decimal]:
    """Scheduled leave units per person for records overlapping the month."""

    totals: dict[str, Decimal] = {}
    for record in leave:
        if record.status is not LeaveStatus.SCHEDULED:
            continue
        if record.start_date > month_end or record.end_date < month_start:
            continue
        totals[record.person_id] = totals.get(record.person_id, ZERO) + record.units
    return totals


def potential_staff_hours(
    hours_per_week: Decimal,
    start_date: date | None,
    month_start: date,
    working_days: int,
    end_date: date | None = None,
) -> Decimal:
    """Pro-rated hours for a person who is not hired yet.

    A start inside the month scales the month's working days by the calendar
    fraction of the month remaining, ``(daysInMonth - startDay + 1) / daysInMonth``.
    This is deliberately not a working-day recount.
    """

    first, last = month_bounds(month_start)
    daily_hours = hours_per_week / WORK_WEEK_DAYS
    if start_date is not None and start_date > last:
        return ZERO
    if end_date is not None and end_date < first:
        return ZERO
    if start_date is not None and start_date >= first:
        total_days = days_in_month(first)
        remaining_days = Decimal(working_days) * Decimal(total_days - start_date.day + 1) / Decimal(total_days)
        return daily_hours * remaining_days
    return daily_hours * Decimal(working_days)


def _default_sell_rate(person: Person, projects: Sequence[Project], rate_date: date) -> Decimal:
    if person.sell_rates:
        return resolve_rate(person.sell_rates, rate_date)
    return average_sell_rate_for_person(projects, person.id, rate_date)


def _build_row(
    person: Person,
    *,
    month_start: date,
    month_end: date,
    working_days: int,
    holiday_hours: Decimal,
    leave_by_person: Mapping[str, Decimal],
    bonuses: Mapping[str, Decimal],
    overlay: DeltaOverlay,
    projects: Sequence[Project],
    rate_date: date,
    default_hours_per_week: Decimal,
) -> ForecastRow:
    pid = person.id
    hours_per_week = overlay.resolve(
        pid, ForecastField.HOURS_PER_WEEK, person.hours_per_week or default_hours_per_week
    )
    billable_percentage = overlay.resolve(
        pid, ForecastField.BILLABLE_PERCENTAGE, person.billable_percentage or ZERO
    )
    sell_rate = overlay.resolve(pid, ForecastField.SELL_RATE, _default_sell_rate(person, projects, rate_date))
    cost_rate = overlay.resolve(pid, ForecastField.COST_RATE, resolve_rate(person.cost_rates, rate_date))
    planned_bonus = overlay.resolve(pid, ForecastField.PLANNED_BONUS, bonuses.get(pid, ZERO))

    effective_days = effective_working_days(month_start, month_end, person.start_date, person.end_date)
    person_holiday_hours = ZERO
    leave_hours = ZERO

    if person.is_potential:
        base_hours = potential_staff_hours(
            hours_per_week,
            person.start_date,
            month_start,
            working_days,
            end_date=person.end_date,
        )
        computed_hours = base_hours
    else:
        base_hours = hours_per_week / WORK_WEEK_DAYS * Decimal(effective_days)
        person_holiday_hours = holiday_hours
        if person.is_employee:
            billable_hours = base_hours * (billable_percentage / HUNDRED)
            leave_hours = leave_by_person.get(pid, ZERO)
            computed_hours = max(ZERO, billable_hours - holiday_hours - leave_hours)
        else:
            computed_hours = max(ZERO, base_hours - holiday_hours)

    forecast_hours = overlay.resolve(pid, ForecastField.FORECAST_HOURS, computed_hours)
    revenue = forecast_hours * sell_rate
    if person.is_employee:
        cost = base_hours * cost_rate
    else:
        cost = forecast_hours * cost_rate

    return ForecastRow(
        person_id=pid,
        name=person.name,
        employment_type=person.employment_type,
        is_potential=person.is_potential,
        hours_per_week=hours_per_week,
        billable_percentage=billable_percentage,
        sell_rate=sell_rate,
        cost_rate=cost_rate,
        planned_bonus=planned_bonus,
        forecast_hours=forecast_hours,
        effective_working_days=effective_days,
        base_hours=base_hours,
        holiday_hours=person_holiday_hours,
        leave_hours=leave_hours,
        revenue=revenue,
        cost=cost,
        overridden_fields=overlay.overridden_fields(pid),
        active_in_month=is_active_in_month(month_start, month_end, person.start_date, person.end_date),
    )


def summarize_rows(rows: Sequence[ForecastRow], expenses: Decimal = ZERO) -> ForecastTotals:
    hours = sum((row.forecast_hours for row in rows), ZERO)
    revenue = sum((row.revenue for row in rows), ZERO)
    bonuses = sum((row.planned_bonus for row in rows), ZERO)
    leave_hours = sum((row.leave_hours for row in rows), ZERO)
    cost = sum((row.cost for row in rows), ZERO) + bonuses + expenses
    margin = revenue - cost

    active = [row for row in rows if row.active_in_month]
    return ForecastTotals(
        hours=hours,
        revenue=revenue,
        cost=cost,
        bonuses=bonuses,
        expenses=expenses,
        leave_hours=leave_hours,
        margin=margin,
        margin_percent=margin_percent(revenue, margin),
        employee_count=sum(1 for row in active if row.employment_type is EmploymentType.EMPLOYEE),
        contractor_count=sum(1 for row in active if row.employment_type is EmploymentType.CONTRACTOR),
    )


def compute_forecast(
    roster: Sequence[Person],
    projects: Sequence[Project],
    leave: Sequence[LeaveRecord],
    holiday_count: int,
    bonuses: Mapping[str, Decimal],
    overlay: DeltaOverlay,
    month: date,
    *,
    rate_date: date | None = None,
    default_hours_per_week: Decimal = DEFAULT_HOURS_PER_WEEK,
    hours_per_day: Decimal = DEFAULT_HOURS_PER_DAY,
) -> ForecastResult:
    """Compute forecast rows and totals for the month containing ``month``.

    People who are not potential staff and whose employment window misses the
    month are left out. Potential staff always get a row; a start after the
    month yields zero hours. ``rate_date`` defaults to the first of the month.
    """

    month_start, month_end = month_bounds(month)
    working_days = working_days_in_range(month_start, month_end)
    holiday_hours = Decimal(holiday_count) * hours_per_day
    leave_by_person = scheduled_leave_hours(leave, month_start, month_end)
    reference = rate_date or month_start

    rows: list[ForecastRow] = []
    for person in roster:
        if not person.is_potential and not is_active_in_month(
            month_start, month_end, person.start_date, person.end_date
        ):
            continue
        rows.append(
            _build_row(
                person,
                month_start=month_start,
                month_end=month_end,
                working_days=working_days,
                holiday_hours=holiday_hours,
                leave_by_person=leave_by_person,
                bonuses=bonuses,
                overlay=overlay,
                projects=projects,
                rate_date=reference,
                default_hours_per_week=default_hours_per_week,
            )
        )

    expenses = overlay.resolve(
        format_year_month(month_start), ForecastField.EXPENSES, ZERO, OverlaySubject.MONTH
    )
    totals = summarize_rows(rows, expenses)
    logger.debug(
        "Forecast %s: %d rows, revenue=%s cost=%s",
        format_year_month(month_start),
        len(rows),
        totals.revenue,
        totals.cost,
    )
    return ForecastResult(
        month=month_start,
        working_days=working_days,
        holiday_count=holiday_count,
        rows=tuple(rows),
        totals=totals,
    )


def combine_forecast_totals(monthly: Sequence[ForecastTotals]) -> CombinedForecast:
    """Sum independently computed monthly totals without cross-month normalization."""

    revenue = sum((item.revenue for item in monthly), ZERO)
    cost = sum((item.cost for item in monthly), ZERO)
    margin = sum((item.margin for item in monthly), ZERO)
    count = len(monthly)
    divisor = Decimal(count or 1)
    return CombinedForecast(
        month_count=count,
        hours=sum((item.hours for item in monthly), ZERO),
        revenue=revenue,
        cost=cost,
        bonuses=sum((item.bonuses for item in monthly), ZERO),
        expenses=sum((item.expenses for item in monthly), ZERO),
        leave_hours=sum((item.leave_hours for item in monthly), ZERO),
        margin=margin,
        margin_percent=margin_percent(revenue, margin),
        average_margin_percent=sum((item.margin_percent for item in monthly), ZERO) / divisor,
        average_headcount=Decimal(sum(item.employee_count + item.contractor_count for item in monthly)) / divisor,
    )
