from __future__ import annotations

import logging
import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from staffplan.engine.rates import average_sell_rate_for_person, resolve_rate, resolve_rate_entry
from staffplan.engine.types import Assignment, Project, RateEntry, Task

HISTORY = (
    RateEntry(amount=Decimal("50"), effective_date=date(2024, 1, 1)),
    RateEntry(amount=Decimal("60"), effective_date=date(2024, 6, 1)),
)


@pytest.mark.parametrize(
    ("reference", "expected"),
    [
        (date(2024, 3, 15), Decimal("50")),
        (date(2024, 7, 1), Decimal("60")),
        (date(2024, 6, 1), Decimal("60")),
        (date(2023, 12, 31), Decimal("0")),
    ],
)
def test_resolve_rate_picks_latest_entry_not_after_reference(reference: date, expected: Decimal) -> None:
    assert resolve_rate(HISTORY, reference) == expected


def test_resolve_rate_is_independent_of_history_order() -> None:
    reversed_history = tuple(reversed(HISTORY))

    assert resolve_rate(reversed_history, date(2024, 3, 15)) == Decimal("50")
    assert resolve_rate(reversed_history, date(2024, 7, 1)) == Decimal("60")


def test_resolve_rate_without_applicable_entry_is_zero() -> None:
    assert resolve_rate((), date(2024, 1, 1)) == Decimal("0")
    assert resolve_rate(None, date(2024, 1, 1)) == Decimal("0")
    assert resolve_rate((RateEntry(Decimal("80"), None),), date(2024, 1, 1)) == Decimal("0")


def test_duplicate_effective_dates_resolve_to_last_inserted(caplog: pytest.LogCaptureFixture) -> None:
    history = (
        RateEntry(amount=Decimal("70"), effective_date=date(2024, 2, 1)),
        RateEntry(amount=Decimal("75"), effective_date=date(2024, 2, 1)),
    )

    with caplog.at_level(logging.WARNING, logger="staffplan.engine.rates"):
        entry = resolve_rate_entry(history, date(2024, 3, 1))

    assert entry is history[1]
    assert "Duplicate effective date 2024-02-01" in caplog.text


def _task(task_id: str, *, billable: bool, rate: str, assignments: tuple[Assignment, ...]) -> Task:
    return Task(
        id=task_id,
        name=task_id,
        billable=billable,
        sell_rates=(RateEntry(Decimal(rate), date(2024, 1, 1)),),
        assignments=assignments,
    )


def test_average_sell_rate_counts_billable_active_assignments_only() -> None:
    project = Project(
        id="p1",
        name="Portal",
        tasks=(
            _task("t1", billable=True, rate="100", assignments=(Assignment("u1"),)),
            _task("t2", billable=True, rate="150", assignments=(Assignment("u1"), Assignment("u2"))),
            _task("t3", billable=False, rate="500", assignments=(Assignment("u1"),)),
            _task("t4", billable=True, rate="900", assignments=(Assignment("u1", active=False),)),
        ),
    )
    other = Project(
        id="p2",
        name="Support",
        tasks=(_task("t5", billable=True, rate="110", assignments=(Assignment("u1"),)),),
    )

    assert average_sell_rate_for_person([project, other], "u1", date(2024, 6, 1)) == Decimal("120")
    assert average_sell_rate_for_person([project, other], "u2", date(2024, 6, 1)) == Decimal("150")


def test_average_sell_rate_without_assignments_is_zero() -> None:
    assert average_sell_rate_for_person([], "u1", date(2024, 6, 1)) == Decimal("0")


@pytest.mark.parametrize("seed", [3, 17, 2024])
def test_resolution_is_monotonic_in_the_reference_date(seed: int) -> None:
    rng = random.Random(seed)
    origin = date(2022, 1, 1)
    for _ in range(200):
        history = tuple(
            RateEntry(Decimal(rng.randint(10, 200)), origin + timedelta(days=rng.randint(0, 900)))
            for _ in range(rng.randint(1, 6))
        )
        earlier = origin + timedelta(days=rng.randint(-30, 960))
        later = earlier + timedelta(days=rng.randint(0, 120))

        first = resolve_rate_entry(history, earlier)
        second = resolve_rate_entry(history, later)

        assert second is not None or first is None
        if first is not None:
            assert first.effective_date <= earlier
            assert first.effective_date <= second.effective_date
        if second is not None:
            assert second.effective_date <= later
