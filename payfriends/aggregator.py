"""Balance aggregation over a snapshot of expense records.

Everything in here is a pure function of its arguments. Records are assumed
to be normalized ``ExpenseRecord`` instances, so amounts are already
``Decimal`` and ``paid``/``pending`` are disjoint.
"""
from __future__ import annotations

import calendar
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import ZERO, AnalyticsSummary, ExpenseRecord, FrontedTotal, Leader, PendingDetail

OWER_METRICS = ("amount", "count")


def aggregate_fronted(records: Iterable[ExpenseRecord]) -> Dict[str, FrontedTotal]:
    fronted: Dict[str, FrontedTotal] = {}
    for record in records:
        total = fronted.setdefault(record.fronted_by, FrontedTotal())
        total.total_fronted += record.total_amount
        total.count += 1
    return fronted


def aggregate_pending(records: Iterable[ExpenseRecord]) -> Dict[str, List[PendingDetail]]:
    pending: Dict[str, List[PendingDetail]] = {}
    for record in records:
        for person in record.pending:
            pending.setdefault(person, []).append(
                PendingDetail(
                    owes_to=record.fronted_by,
                    description=record.description,
                    amount=record.per_person_share,
                )
            )
    return pending


def owed_totals(records: Iterable[ExpenseRecord]) -> Dict[str, Decimal]:
    owed: Dict[str, Decimal] = {}
    for record in records:
        for person in record.pending:
            owed[person] = owed.get(person, ZERO) + record.per_person_share
    return owed


def incomplete_by_person(records: Iterable[ExpenseRecord]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for record in records:
        for person in record.involved:
            if person not in record.paid:
                counts[person] = counts.get(person, 0) + 1
    return counts


def total_incomplete(records: Iterable[ExpenseRecord]) -> int:
    return sum(incomplete_by_person(records).values())


def _leader(totals: Mapping[str, Decimal]) -> Leader:
    # strict ">" keeps the first person seen on ties
    best = Leader()
    for person, amount in totals.items():
        if amount > best.amount:
            best = Leader(person=person, amount=amount)
    return best


def best_fronter(records: Iterable[ExpenseRecord]) -> Leader:
    fronted = aggregate_fronted(records)
    return _leader({person: total.total_fronted for person, total in fronted.items()})


def worst_ower(records: Iterable[ExpenseRecord], metric: str = "amount") -> Leader:
    """Person who owes the most.

    ``metric="amount"`` ranks by summed pending shares. ``metric="count"``
    ranks by the number of unpaid shares instead; ``Leader.amount`` then
    holds that person's summed pending shares so both views report money.
    """
    if metric not in OWER_METRICS:
        raise ValueError(f"Unknown ower metric {metric!r}, expected one of {OWER_METRICS}")
    records = list(records)
    owed = owed_totals(records)
    if metric == "amount":
        return _leader(owed)

    best_person, best_count = "", 0
    for person, count in incomplete_by_person(records).items():
        if count > best_count:
            best_person, best_count = person, count
    return Leader(person=best_person, amount=owed.get(best_person, ZERO))


def biggest_spender(records: Iterable[ExpenseRecord]) -> Leader:
    spent: Dict[str, Decimal] = {}
    for record in records:
        for person in record.paid:
            spent[person] = spent.get(person, ZERO) + record.per_person_share
    return _leader(spent)


def one_month_before(as_of: date) -> date:
    """Same day of the previous calendar month, clamped to that month's end."""
    year, month = (as_of.year, as_of.month - 1) if as_of.month > 1 else (as_of.year - 1, 12)
    day = min(as_of.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def monthly_total(records: Iterable[ExpenseRecord], as_of: Optional[date] = None) -> Decimal:
    as_of = as_of or date.today()
    start = one_month_before(as_of)
    total = ZERO
    for record in records:
        if record.date is not None and start <= record.date <= as_of:
            total += record.total_amount
    return total


def summarize(
    records: Sequence[ExpenseRecord],
    as_of: Optional[date] = None,
    ower_metric: str = "amount",
) -> AnalyticsSummary:
    incomplete = incomplete_by_person(records)
    return AnalyticsSummary(
        fronted=aggregate_fronted(records),
        incomplete=incomplete,
        total_incomplete=sum(incomplete.values()),
        best_fronter=best_fronter(records),
        worst_ower=worst_ower(records, metric=ower_metric),
        biggest_spender=biggest_spender(records),
        monthly_total=monthly_total(records, as_of),
    )
