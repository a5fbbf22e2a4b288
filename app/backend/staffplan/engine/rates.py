"""Effective-dated rate resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from staffplan.engine.types import Project, RateEntry

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def resolve_rate_entry(history: Sequence[RateEntry] | None, reference_date: date) -> RateEntry | None:
    """Return the entry applicable on ``reference_date``.

    The applicable entry is the one with the latest effective date that is not
    after the reference date. Entries without an effective date are ignored.
    When two entries share the winning effective date the one inserted last
    wins, so the outcome never depends on sort stability.
    """

    chosen: RateEntry | None = None
    for entry in history or ():
        if entry.effective_date is None or entry.effective_date > reference_date:
            continue
        if chosen is None or entry.effective_date >= chosen.effective_date:
            if chosen is not None and entry.effective_date == chosen.effective_date:
                logger.warning(
                    "Duplicate effective date %s in rate history, using the later entry.",
                    entry.effective_date.isoformat(),
                )
            chosen = entry
    return chosen


def resolve_rate(history: Sequence[RateEntry] | None, reference_date: date) -> Decimal:
    """Rate amount applicable on ``reference_date``; 0 when nothing applies."""

    entry = resolve_rate_entry(history, reference_date)
    if entry is None:
        return ZERO
    return entry.amount


def average_sell_rate_for_person(projects: Iterable[Project], person_id: str, reference_date: date) -> Decimal:
    """Arithmetic mean of task sell rates over the person's billable assignments.

    Every billable task with an active assignment for the person contributes
    one resolved rate, regardless of hours. No such task resolves to 0.
    """

    rates = [
        resolve_rate(task.sell_rates, reference_date)
        for project in projects
        for task in project.tasks
        if task.billable and task.has_active_assignment(person_id)
    ]
    if not rates:
        return ZERO
    return sum(rates, ZERO) / Decimal(len(rates))
