# taxidesk/reports.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from taxidesk.aggregation import (
    ExpenseBreakdown,
    OutsideSummary,
    Summary,
    expense_breakdown,
    outside_summary,
    pending_total,
    summarize,
)
from taxidesk.config import settings
from taxidesk.date_ranges import DateRange, Monthly, month_label, resolve

TRIP_SEARCH_FIELDS = ("driver_name", "customer_name", "from_location", "to_location", "company", "date")
MAINTENANCE_SEARCH_FIELDS = ("vehicle_number", "driver_name", "maintenance_type", "date")
OUTSIDE_SEARCH_FIELDS = (
    "driver_name",
    "travel_company",
    "vehicle_number",
    "from_location",
    "to_location",
    "trip_given_company",
    "date",
)
PAYMENT_FILTERS = ("all", "pending", "paid")


def format_currency(value, symbol: Optional[str] = None) -> str:
    symbol = settings.currency_symbol if symbol is None else symbol
    value = Decimal(str(value or 0))
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def _text(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "strftime"):
        # ISO plus the dd/mm/YYYY form the tables show
        return f"{value.isoformat()} {value.strftime('%d/%m/%Y')}"
    return str(value)


def matches(record, fields: Sequence[str], query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in _text(getattr(record, f, None)).lower() for f in fields)


def refine(records: Sequence, fields: Sequence[str], query: str = "", payment_status: str = "all") -> List:
    """Free-text search plus optional paid/pending restriction."""
    out = []
    for r in records:
        if payment_status != "all" and getattr(r, "payment_status", None) != payment_status:
            continue
        if matches(r, fields, query or ""):
            out.append(r)
    return out


# ---------------- Summary cards ----------------

@dataclass(frozen=True)
class Card:
    key: str
    title: str
    value: str
    tone: Optional[str] = None  # "positive" / "negative"


def _tone(amount: Decimal) -> str:
    return "positive" if amount >= 0 else "negative"


@dataclass(frozen=True)
class DashboardReport:
    date_range: DateRange
    summary: Summary
    outside: OutsideSummary
    pending: Decimal
    pending_all: Decimal

    @property
    def cards(self) -> List[Card]:
        s = self.summary
        return [
            Card("trips", "Total Trips", str(s.trip_count)),
            Card("revenue", "Trip Money", format_currency(s.total_revenue)),
            Card("expenses", "Total Expenses", format_currency(s.total_expenses)),
            Card("profit", "Total Profit", format_currency(s.total_profit), _tone(s.total_profit)),
            Card("maintenance", "Maintenance", format_currency(s.maintenance_cost)),
            Card("pending", "Pending Bills", format_currency(self.pending), "negative" if self.pending else None),
            Card("outside_trips", "Outside Vehicle Trips", str(self.outside.trip_count)),
            Card("outside_amount", "Outside Vehicle Money", format_currency(self.outside.total_amount)),
            Card("outside_pending", "Outside Pending", format_currency(self.outside.pending_amount)),
        ]


def build_dashboard(
    date_range: DateRange,
    trips: Sequence,
    maintenance: Sequence,
    outside_trips: Sequence,
    pending_all: Decimal,
) -> DashboardReport:
    """
    Cards for the period. ``pending_all`` is computed by the caller over every
    visible trip, regardless of date filter or search, and is shown beside the
    trips table rather than as a card.
    """
    return DashboardReport(
        date_range=date_range,
        summary=summarize(trips, maintenance),
        outside=outside_summary(outside_trips),
        pending=pending_total(trips),
        pending_all=pending_all,
    )


# ---------------- Monthly report ----------------

@dataclass(frozen=True)
class MonthlyReport:
    month: Monthly
    date_range: DateRange
    summary: Summary

    @property
    def title(self) -> str:
        return month_label(self.date_range.start)

    @property
    def cards(self) -> List[Card]:
        s = self.summary
        return [
            Card("trips", "Total Trips", str(s.trip_count)),
            Card("revenue", "Total Revenue", format_currency(s.total_revenue)),
            Card("trip_profit", "Trip Profit", format_currency(s.trip_profit), _tone(s.trip_profit)),
            Card("maintenance", "Maintenance Cost", format_currency(s.maintenance_cost)),
            Card("net_profit", "Net Profit", format_currency(s.total_profit), _tone(s.total_profit)),
            Card("average", "Average Trip Value", format_currency(s.average_trip_value)),
        ]

    def summary_rows(self) -> List[list]:
        s = self.summary
        return [
            ["Monthly Report Summary", ""],
            ["Month", self.month.value],
            ["", ""],
            ["Total Trips", s.trip_count],
            ["Total Revenue", format_currency(s.total_revenue)],
            ["Total Profit", format_currency(s.trip_profit)],
            ["Total Maintenance", format_currency(s.maintenance_cost)],
            ["Net Profit", format_currency(s.total_profit)],
            ["Average Trip Value", format_currency(s.average_trip_value)],
        ]


def monthly_report(month: Monthly, trips: Sequence, maintenance: Sequence) -> MonthlyReport:
    return MonthlyReport(month=month, date_range=resolve(month), summary=summarize(trips, maintenance))


# ---------------- Expense report ----------------

@dataclass(frozen=True)
class ExpenseReport:
    date_range: DateRange
    breakdown: ExpenseBreakdown

    @property
    def cards(self) -> List[Card]:
        b = self.breakdown
        return [
            Card("trips", "Trips", str(b.trips_count)),
            Card("driver_amount", "Driver Amount", format_currency(b.driver_amount)),
            Card("commission", "Commission", format_currency(b.commission)),
            Card("fuel_amount", "Fuel Amount", format_currency(b.fuel_amount)),
            Card("tolls", "Tolls", format_currency(b.tolls)),
            Card("total", "Total", format_currency(b.total)),
        ]

    def summary_rows(self) -> List[list]:
        b = self.breakdown
        return [
            ["Expenses Report", ""],
            ["Range", self.date_range.label()],
            ["", ""],
            ["Trips", b.trips_count],
            ["Driver Amount", format_currency(b.driver_amount)],
            ["Commission", format_currency(b.commission)],
            ["Fuel Amount", format_currency(b.fuel_amount)],
            ["Tolls", format_currency(b.tolls)],
        ]


def expense_report(date_range: DateRange, trips: Sequence) -> ExpenseReport:
    return ExpenseReport(date_range=date_range, breakdown=expense_breakdown(trips))
