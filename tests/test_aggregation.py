from datetime import date
from decimal import Decimal
from types import SimpleNamespace as NS

from taxidesk.aggregation import (
    ZERO,
    expense_breakdown,
    group_by_month,
    maintenance_by_type,
    monthly_series,
    outside_summary,
    pending_total,
    summarize,
    trip_profit,
)


def trip(day=date(2024, 1, 5), amount="1000", driver="300", commission="50", fuel="200", tolls="25", status="pending"):
    return NS(
        date=day,
        trip_amount=Decimal(amount),
        driver_amount=Decimal(driver),
        commission=Decimal(commission),
        fuel_amount=Decimal(fuel),
        tolls=Decimal(tolls),
        payment_status=status,
    )


def maint(day=date(2024, 1, 10), amount="150"):
    return NS(date=day, amount=Decimal(amount))


def test_profit_sum_equals_revenue_minus_costs():
    trips = [trip(), trip(amount="2500.50", driver="800", fuel="410.25"), trip(amount="90", tolls="0")]
    s = summarize(trips)
    revenue = sum(t.trip_amount for t in trips)
    costs = sum(t.driver_amount + t.commission + t.fuel_amount + t.tolls for t in trips)
    assert sum(trip_profit(t) for t in trips) == revenue - costs
    assert s.total_profit == revenue - costs
    assert s.total_revenue == revenue
    assert s.total_trip_cost == costs


def test_profit_can_be_negative():
    assert trip_profit(trip(amount="100", driver="300")) == Decimal("-475")


def test_empty_input_is_all_zero():
    s = summarize([], [])
    assert s.trip_count == 0
    assert s.total_revenue == ZERO
    assert s.total_expenses == ZERO
    assert s.total_profit == ZERO
    assert s.average_trip_value == ZERO
    assert pending_total([]) == ZERO
    assert expense_breakdown([]).total == ZERO
    assert outside_summary([]).total_amount == ZERO
    assert group_by_month([]) == {}


def test_maintenance_reduces_profit_and_adds_to_expenses():
    s = summarize([trip()], [maint(amount="150"), maint(amount="50")])
    assert s.maintenance_cost == Decimal("200")
    assert s.trip_profit == Decimal("425")
    assert s.total_profit == Decimal("225")
    assert s.total_expenses == Decimal("775")


def test_average_trip_value():
    s = summarize([trip(amount="100"), trip(amount="200")])
    assert s.average_trip_value == Decimal("150")


def test_pending_total_counts_only_pending():
    trips = [trip(amount="100"), trip(amount="250", status="paid"), trip(amount="40")]
    assert pending_total(trips) == Decimal("140")


def test_expense_breakdown():
    b = expense_breakdown([trip(), trip(driver="100", commission="0", fuel="0", tolls="10")])
    assert b.trips_count == 2
    assert b.driver_amount == Decimal("400")
    assert b.commission == Decimal("50")
    assert b.fuel_amount == Decimal("200")
    assert b.tolls == Decimal("35")
    assert b.total == Decimal("685")


def test_outside_summary():
    rides = [
        NS(trip_amount=Decimal("500"), payment_status="pending"),
        NS(trip_amount=Decimal("700"), payment_status="paid"),
    ]
    s = outside_summary(rides)
    assert (s.trip_count, s.total_amount, s.pending_amount) == (2, Decimal("1200"), Decimal("500"))


def test_group_by_month_orders_by_date_not_label():
    records = [
        maint(date(2024, 1, 5), "100"),
        maint(date(2024, 1, 20), "50"),
        maint(date(2024, 2, 1), "75"),
        maint(date(2023, 12, 15), "20"),
    ]
    groups = group_by_month(records)
    assert list(groups) == ["February 2024", "January 2024", "December 2023"]
    assert groups["January 2024"].total == Decimal("150")
    assert len(groups["January 2024"].records) == 2
    assert groups["February 2024"].total == Decimal("75")
    assert groups["December 2023"].total == Decimal("20")


def test_group_by_month_with_custom_amount():
    groups = group_by_month([trip(date(2024, 3, 1)), trip(date(2024, 3, 9))], amount=lambda t: t.trip_amount)
    assert groups["March 2024"].total == Decimal("2000")


# ---------------- trends ----------------

def test_monthly_series_oldest_first_with_empty_months():
    trips = [
        trip(day=date(2024, 1, 5)),
        trip(day=date(2024, 3, 2), amount="400", driver="100", commission="0", fuel="50", tolls="0"),
        trip(day=date(2024, 3, 20)),
        trip(day=date(2023, 9, 1)),  # outside the window
    ]
    maintenance = [maint(day=date(2024, 3, 10), amount="900"), maint(day=date(2023, 12, 31))]

    series = monthly_series(trips, maintenance, months=3, today=date(2024, 3, 15))
    assert [p.label for p in series] == ["Jan 24", "Feb 24", "Mar 24"]
    jan, feb, mar = series
    assert (jan.trip_count, jan.revenue, jan.expenses, jan.profit) == (1, Decimal("1000"), Decimal("575"), Decimal("425"))
    assert (feb.trip_count, feb.revenue, feb.maintenance) == (0, ZERO, ZERO)
    assert mar.trip_count == 2
    assert mar.revenue == Decimal("1400")
    assert mar.profit == Decimal("675")
    assert mar.maintenance == Decimal("900")


def test_monthly_series_crosses_year_boundary():
    series = monthly_series([], [], months=3, today=date(2025, 1, 4))
    assert [p.first_day for p in series] == [date(2024, 11, 1), date(2024, 12, 1), date(2025, 1, 1)]


def test_maintenance_by_type_largest_first():
    records = [
        NS(maintenance_type="Oil Change", amount=Decimal("1500")),
        NS(maintenance_type="Tire Change", amount=Decimal("4000")),
        NS(maintenance_type="Oil Change", amount=Decimal("1200.50")),
        NS(maintenance_type="", amount=Decimal("99")),
    ]
    assert maintenance_by_type(records) == [("Tire Change", Decimal("4000")), ("Oil Change", Decimal("2700.50"))]
    assert maintenance_by_type([]) == []
