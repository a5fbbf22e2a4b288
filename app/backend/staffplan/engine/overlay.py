"""Sparse override layer applied on top of computed forecast defaults.

Overlay values are diffs against a default that can always be recomputed
without consulting the overlay. Reverting a value to its default removes the
key; it never stores the default literal, so later changes to the default are
not masked by a stale copy.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from staffplan.engine.types import Person


class OverlaySubject(str, enum.Enum):
    PERSON = "person"
    MONTH = "month"


class ForecastField(str, enum.Enum):
    HOURS_PER_WEEK = "hoursPerWeek"
    BILLABLE_PERCENTAGE = "billablePercentage"
    SELL_RATE = "sellRate"
    COST_RATE = "costRate"
    PLANNED_BONUS = "plannedBonus"
    FORECAST_HOURS = "forecastHours"
    EXPENSES = "expenses"


SUBJECT_FIELDS: dict[OverlaySubject, frozenset[ForecastField]] = {
    OverlaySubject.PERSON: frozenset(
        {
            ForecastField.HOURS_PER_WEEK,
            ForecastField.BILLABLE_PERCENTAGE,
            ForecastField.SELL_RATE,
            ForecastField.COST_RATE,
            ForecastField.PLANNED_BONUS,
            ForecastField.FORECAST_HOURS,
        }
    ),
    OverlaySubject.MONTH: frozenset({ForecastField.EXPENSES}),
}


@dataclass(frozen=True, slots=True)
class OverlayKey:
    subject: OverlaySubject
    entity_id: str
    field: ForecastField

    @property
    def storage_key(self) -> str:
        return f"{self.subject.value}:{self.entity_id}_{self.field.value}"


@dataclass(frozen=True, slots=True)
class OverlayValue:
    value: Decimal
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class DerivedRule:
    """A write to ``trigger`` invalidates overrides of ``dependents``.

    ``potential_only`` restricts the rule to people not yet hired.
    """

    trigger: ForecastField
    dependents: tuple[ForecastField, ...]
    potential_only: bool = False


DERIVED_ON_WRITE: tuple[DerivedRule, ...] = (
    DerivedRule(
        trigger=ForecastField.HOURS_PER_WEEK,
        dependents=(ForecastField.FORECAST_HOURS,),
        potential_only=True,
    ),
)


def validate_field(subject: OverlaySubject, field: ForecastField) -> None:
    if field not in SUBJECT_FIELDS[subject]:
        raise ValueError(f"Field {field.value!r} is not editable for subject {subject.value!r}.")


class DeltaOverlay:
    """In-memory overlay keyed by ``(subject, entity_id, field)``.

    Last write wins per key. Distinct keys never interact, except through the
    derived-on-write rules applied by :func:`apply_overlay_edit`.
    """

    def __init__(self, values: dict[OverlayKey, OverlayValue] | None = None) -> None:
        self._values: dict[OverlayKey, OverlayValue] = dict(values or {})

    def __len__(self) -> int:
        return len(self._values)

    def get(
        self,
        entity_id: str,
        field: ForecastField,
        subject: OverlaySubject = OverlaySubject.PERSON,
    ) -> Decimal | None:
        stored = self._values.get(OverlayKey(subject, entity_id, field))
        return stored.value if stored is not None else None

    def get_entry(self, key: OverlayKey) -> OverlayValue | None:
        return self._values.get(key)

    def set(
        self,
        entity_id: str,
        field: ForecastField,
        value: Decimal | None,
        subject: OverlaySubject = OverlaySubject.PERSON,
        updated_at: datetime | None = None,
    ) -> None:
        if value is None:
            self.clear(entity_id, field, subject)
            return
        self._values[OverlayKey(subject, entity_id, field)] = OverlayValue(
            value=value,
            updated_at=updated_at or datetime.now(timezone.utc),
        )

    def clear(
        self,
        entity_id: str,
        field: ForecastField,
        subject: OverlaySubject = OverlaySubject.PERSON,
    ) -> bool:
        return self._values.pop(OverlayKey(subject, entity_id, field), None) is not None

    def resolve(
        self,
        entity_id: str,
        field: ForecastField,
        default: Decimal,
        subject: OverlaySubject = OverlaySubject.PERSON,
    ) -> Decimal:
        value = self.get(entity_id, field, subject)
        return default if value is None else value

    def overridden_fields(
        self,
        entity_id: str,
        subject: OverlaySubject = OverlaySubject.PERSON,
    ) -> frozenset[ForecastField]:
        return frozenset(
            key.field for key in self._values if key.subject is subject and key.entity_id == entity_id
        )


def cascade_targets(person: Person | None, field: ForecastField) -> list[ForecastField]:
    """Dependent fields whose overrides a write to ``field`` invalidates."""

    targets: list[ForecastField] = []
    for rule in DERIVED_ON_WRITE:
        if rule.trigger is not field:
            continue
        if rule.potential_only and (person is None or not person.is_potential):
            continue
        targets.extend(rule.dependents)
    return targets


def apply_overlay_edit(
    overlay: DeltaOverlay,
    *,
    person: Person | None,
    entity_id: str,
    field: ForecastField,
    value: Decimal | None,
    subject: OverlaySubject = OverlaySubject.PERSON,
    updated_at: datetime | None = None,
) -> list[OverlayKey]:
    """Set or clear one value and apply the derived-on-write cascade.

    Returns every key that was written or removed, in write order.
    """

    validate_field(subject, field)
    touched = [OverlayKey(subject, entity_id, field)]
    overlay.set(entity_id, field, value, subject, updated_at)

    if subject is OverlaySubject.PERSON:
        for dependent in cascade_targets(person, field):
            overlay.clear(entity_id, dependent, subject)
            touched.append(OverlayKey(subject, entity_id, dependent))
    return touched
