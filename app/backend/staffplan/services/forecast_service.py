"""Forecast computation and overlay persistence."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from staffplan.core.config import get_settings
from staffplan.engine.forecast import (
    CombinedForecast,
    ForecastResult,
    ForecastRow,
    ForecastTotals,
    combine_forecast_totals,
    compute_forecast,
)
from staffplan.engine.overlay import (
    ForecastField,
    OverlayKey,
    OverlaySubject,
    apply_overlay_edit,
    validate_field,
)
from staffplan.engine.temporal import format_year_month, month_bounds, month_sequence
from staffplan.engine.types import Person, Project
from staffplan.models.entities import ForecastDelta
from staffplan.repositories.staffing_repository import StaffingRepository
from staffplan.services.snapshot_service import (
    SnapshotService,
    money,
    overlay_from_rows,
    parse_month_or_422,
    parse_uuid_or_404,
)

logger = logging.getLogger(__name__)

MAX_RANGE_MONTHS = 36


@dataclass(slots=True)
class DeltaEditResult:
    month_start: date
    touched: list[OverlayKey]
    deltas: list[ForecastDelta]


class ForecastService:
    """Builds monthly forecasts and persists overlay edits."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.repo = StaffingRepository(db)
        self.snapshots = SnapshotService(db)
        self.settings = get_settings()

    # ---------- Serialization ----------
    @staticmethod
    def serialize_row(row: ForecastRow) -> dict[str, object]:
        return {
            "person_id": row.person_id,
            "name": row.name,
            "employment_type": row.employment_type.value,
            "is_potential": row.is_potential,
            "hours_per_week": money(row.hours_per_week),
            "billable_percentage": money(row.billable_percentage),
            "sell_rate": money(row.sell_rate),
            "cost_rate": money(row.cost_rate),
            "planned_bonus": money(row.planned_bonus),
            "forecast_hours": money(row.forecast_hours),
            "effective_working_days": row.effective_working_days,
            "base_hours": money(row.base_hours),
            "holiday_hours": money(row.holiday_hours),
            "leave_hours": money(row.leave_hours),
            "revenue": money(row.revenue),
            "cost": money(row.cost),
            "overridden_fields": sorted(item.value for item in row.overridden_fields),
        }

    @staticmethod
    def serialize_totals(totals: ForecastTotals) -> dict[str, object]:
        return {
            "hours": money(totals.hours),
            "revenue": money(totals.revenue),
            "cost": money(totals.cost),
            "bonuses": money(totals.bonuses),
            "expenses": money(totals.expenses),
            "leave_hours": money(totals.leave_hours),
            "margin": money(totals.margin),
            "margin_percent": money(totals.margin_percent),
            "employee_count": totals.employee_count,
            "contractor_count": totals.contractor_count,
        }

    @staticmethod
    def serialize_combined(combined: CombinedForecast) -> dict[str, object]:
        return {
            "month_count": combined.month_count,
            "hours": money(combined.hours),
            "revenue": money(combined.revenue),
            "cost": money(combined.cost),
            "bonuses": money(combined.bonuses),
            "expenses": money(combined.expenses),
            "leave_hours": money(combined.leave_hours),
            "margin": money(combined.margin),
            "margin_percent": money(combined.margin_percent),
            "average_margin_percent": money(combined.average_margin_percent),
            "average_headcount": money(combined.average_headcount),
        }

    @staticmethod
    def serialize_delta(delta: ForecastDelta) -> dict[str, object]:
        key = OverlayKey(delta.subject, delta.entity_id, delta.field)
        return {
            "key": key.storage_key,
            "subject": delta.subject.value,
            "entity_id": delta.entity_id,
            "field": delta.field.value,
            "value": str(delta.value),
            "updated_at": delta.updated_at.isoformat(),
        }

    # ---------- Computation ----------
    def _rate_date(self) -> date | None:
        if self.settings.forecast_rates_as_of_today:
            return date.today()
        return None

    def _compute(self, month_start: date, people: list[Person], projects: list[Project]) -> ForecastResult:
        first, last = month_bounds(month_start)
        return compute_forecast(
            people,
            projects,
            self.snapshots.leave(first, last, people),
            self.repo.count_public_holidays(first, last),
            self.snapshots.bonuses_by_person(first, last),
            self.snapshots.overlay(first),
            first,
            rate_date=self._rate_date(),
            default_hours_per_week=self.settings.default_hours_per_week,
            hours_per_day=self.settings.holiday_hours_per_day,
        )

    def monthly_forecast(self, month: str) -> dict[str, object]:
        month_start = parse_month_or_422(month)
        result = self._compute(month_start, self.snapshots.people(), self.snapshots.projects())
        return {
            "month": format_year_month(result.month),
            "working_days": result.working_days,
            "holiday_count": result.holiday_count,
            "rows": [self.serialize_row(row) for row in result.rows],
            "totals": self.serialize_totals(result.totals),
            "deltas": [self.serialize_delta(row) for row in self.repo.list_forecast_deltas(month_start)],
        }

    def range_forecast(self, from_month: str, to_month: str) -> dict[str, object]:
        first = parse_month_or_422(from_month)
        last = parse_month_or_422(to_month)
        if last < first:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="to_month must not be before from_month.",
            )
        months = month_sequence(first, last)
        if len(months) > MAX_RANGE_MONTHS:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"A forecast range may span at most {MAX_RANGE_MONTHS} months.",
            )

        people = self.snapshots.people()
        projects = self.snapshots.projects()
        results = [self._compute(month_start, people, projects) for month_start in months]
        combined = combine_forecast_totals([result.totals for result in results])
        return {
            "from_month": format_year_month(first),
            "to_month": format_year_month(last),
            "months": [
                {
                    "month": format_year_month(result.month),
                    "working_days": result.working_days,
                    "holiday_count": result.holiday_count,
                    "totals": self.serialize_totals(result.totals),
                }
                for result in results
            ],
            "combined": self.serialize_combined(combined),
        }

    # ---------- Overlay edits ----------
    def _resolve_subject_person(self, subject: OverlaySubject, entity_id: str, month_start: date) -> Person | None:
        if subject is OverlaySubject.MONTH:
            if entity_id != format_year_month(month_start):
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Month overrides must target the month being edited.",
                )
            return None

        member = self.repo.get_staff_member(parse_uuid_or_404(entity_id, "Staff member not found."))
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found.")
        return Person(
            id=str(member.id),
            name=member.name,
            employment_type=member.employment_type,
            is_potential=member.is_potential,
        )

    def edit_delta(
        self,
        *,
        month: str,
        subject: OverlaySubject,
        entity_id: str,
        field: ForecastField,
        value: Decimal | None,
    ) -> DeltaEditResult:
        """Set (or clear, when ``value`` is None) one override and apply its cascade.

        All touched rows are written in one nested transaction and committed once.
        """

        month_start = parse_month_or_422(month)
        try:
            validate_field(subject, field)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        person = self._resolve_subject_person(subject, entity_id, month_start)

        overlay = overlay_from_rows(self.repo.list_forecast_deltas(month_start))
        now = datetime.now(timezone.utc)
        touched = apply_overlay_edit(
            overlay,
            person=person,
            entity_id=entity_id,
            field=field,
            value=value,
            subject=subject,
            updated_at=now,
        )

        try:
            with self.db.begin_nested():
                for key in touched:
                    row = self.repo.get_forecast_delta(month_start, key.subject, key.entity_id, key.field)
                    entry = overlay.get_entry(key)
                    if entry is None:
                        if row is not None:
                            self.repo.delete_forecast_delta(row)
                    elif row is None:
                        self.repo.add_forecast_delta(
                            ForecastDelta(
                                month_start=month_start,
                                subject=key.subject,
                                entity_id=key.entity_id,
                                field=key.field,
                                value=entry.value,
                                updated_at=entry.updated_at,
                            )
                        )
                    else:
                        row.value = entry.value
                        row.updated_at = entry.updated_at
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Concurrent edit of the same forecast override; retry the request.",
            ) from exc

        logger.info(
            "Forecast override %s %s for %s",
            "cleared" if value is None else "set",
            touched[0].storage_key,
            format_year_month(month_start),
            extra={"month": format_year_month(month_start)},
        )
        return DeltaEditResult(
            month_start=month_start,
            touched=touched,
            deltas=self.repo.list_forecast_deltas(month_start),
        )

    def clear_month(self, month: str) -> int:
        month_start = parse_month_or_422(month)
        removed = self.repo.delete_forecast_deltas(month_start)
        self.db.commit()
        logger.info("Cleared %d forecast overrides for %s", removed, format_year_month(month_start))
        return removed
