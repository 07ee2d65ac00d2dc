# taxidesk/aggregation.py
"""
Totals over already-fetched record sets.

Works on anything exposing the record attributes (ORM rows, schemas,
SimpleNamespace). Amounts accumulate as Decimal; rounding happens only
when values are formatted for display.
"""
from __future__ import annotations

from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from taxidesk.date_ranges import month_label, shift_month

ZERO = Decimal("0")
COST_FIELDS = ("driver_amount", "commission", "fuel_amount", "tolls")
TREND_PERIODS = (3, 6, 12)


def money(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def trip_cost(trip) -> Decimal:
    return sum((money(getattr(trip, f, None)) for f in COST_FIELDS), ZERO)


def trip_profit(trip) -> Decimal:
    return money(trip.trip_amount) - trip_cost(trip)


def _total(records: Iterable, attr: str) -> Decimal:
    return sum((money(getattr(r, attr, None)) for r in records), ZERO)


@dataclass(frozen=True)
class Summary:
    trip_count: int = 0
    total_revenue: Decimal = ZERO
    total_trip_cost: Decimal = ZERO
    maintenance_cost: Decimal = ZERO
    maintenance_count: int = 0
    total_profit: Decimal = ZERO

    @property
    def total_expenses(self) -> Decimal:
        return self.total_trip_cost + self.maintenance_cost

    @property
    def trip_profit(self) -> Decimal:
        """Profit before maintenance."""
        return self.total_profit + self.maintenance_cost

    @property
    def average_trip_value(self) -> Decimal:
        if not self.trip_count:
            return ZERO
        return self.total_revenue / self.trip_count


def summarize(trips: Sequence, maintenance: Sequence = ()) -> Summary:
    maintenance_cost = _total(maintenance, "amount")
    return Summary(
        trip_count=len(trips),
        total_revenue=_total(trips, "trip_amount"),
        total_trip_cost=sum((trip_cost(t) for t in trips), ZERO),
        maintenance_cost=maintenance_cost,
        maintenance_count=len(maintenance),
        total_profit=sum((trip_profit(t) for t in trips), ZERO) - maintenance_cost,
    )


def pending_total(trips: Iterable) -> Decimal:
    """Sum of trip amounts still awaiting payment, over whatever set it is given."""
    return sum(
        (money(t.trip_amount) for t in trips if getattr(t, "payment_status", None) == "pending"),
        ZERO,
    )


@dataclass(frozen=True)
class ExpenseBreakdown:
    trips_count: int = 0
    driver_amount: Decimal = ZERO
    commission: Decimal = ZERO
    fuel_amount: Decimal = ZERO
    tolls: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.driver_amount + self.commission + self.fuel_amount + self.tolls


def expense_breakdown(trips: Sequence) -> ExpenseBreakdown:
    return ExpenseBreakdown(
        trips_count=len(trips),
        driver_amount=_total(trips, "driver_amount"),
        commission=_total(trips, "commission"),
        fuel_amount=_total(trips, "fuel_amount"),
        tolls=_total(trips, "tolls"),
    )


@dataclass(frozen=True)
class OutsideSummary:
    trip_count: int = 0
    total_amount: Decimal = ZERO
    pending_amount: Decimal = ZERO


def outside_summary(outside_trips: Sequence) -> OutsideSummary:
    return OutsideSummary(
        trip_count=len(outside_trips),
        total_amount=_total(outside_trips, "trip_amount"),
        pending_amount=pending_total(outside_trips),
    )


@dataclass
class MonthGroup:
    label: str
    first_day: date
    records: List = field(default_factory=list)
    total: Decimal = ZERO


def group_by_month(records: Iterable, amount: Callable = lambda r: r.amount) -> "OrderedDict[str, MonthGroup]":
    """
    'Month Year' -> MonthGroup, most recent month first.

    Ordering compares each group's month, taken from its first record's date,
    so "January 2025" sorts ahead of "December 2024".
    """
    groups: Dict[str, MonthGroup] = {}
    for record in records:
        label = month_label(record.date)
        group = groups.get(label)
        if group is None:
            group = groups[label] = MonthGroup(label, record.date.replace(day=1))
        group.records.append(record)
        group.total += money(amount(record))
    ordered = sorted(groups.values(), key=lambda g: g.first_day, reverse=True)
    return OrderedDict((g.label, g) for g in ordered)


# ---------------- Trends ----------------

@dataclass(frozen=True)
class MonthPoint:
    label: str  # "Jan 24"
    first_day: date
    trip_count: int = 0
    revenue: Decimal = ZERO
    expenses: Decimal = ZERO
    maintenance: Decimal = ZERO

    @property
    def profit(self) -> Decimal:
        """Revenue less trip costs; maintenance is reported beside it, not deducted."""
        return self.revenue - self.expenses


def monthly_series(
    trips: Iterable, maintenance: Iterable, months: int = 6, today: Optional[date] = None
) -> List[MonthPoint]:
    """
    One point per calendar month for the last `months` months, oldest first.

    Months without records still get a zero point; records dated outside the
    window are ignored.
    """
    today = today or date.today()
    totals: "OrderedDict[date, dict]" = OrderedDict()
    for back in range(months - 1, -1, -1):
        year, month = shift_month(today.year, today.month, -back)
        totals[date(year, month, 1)] = dict(trip_count=0, revenue=ZERO, expenses=ZERO, maintenance=ZERO)

    for t in trips:
        point = totals.get(t.date.replace(day=1))
        if point is None:
            continue
        point["trip_count"] += 1
        point["revenue"] += money(t.trip_amount)
        point["expenses"] += trip_cost(t)
    for m in maintenance:
        point = totals.get(m.date.replace(day=1))
        if point is not None:
            point["maintenance"] += money(m.amount)

    return [MonthPoint(first.strftime("%b %y"), first, **point) for first, point in totals.items()]


def maintenance_by_type(records: Iterable) -> List[Tuple[str, Decimal]]:
    """(maintenance type, total amount), largest first; untyped records are skipped."""
    totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for r in records:
        if r.maintenance_type:
            totals[r.maintenance_type] += money(r.amount)
    return sorted(totals.items(), key=lambda item: (-item[1], item[0]))
