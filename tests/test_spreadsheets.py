from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from taxidesk import schemas
from taxidesk.aggregation import summarize
from taxidesk.columns import TABLES, SpreadsheetImportError, export_rows, lookup, TRIP_COLUMNS
from taxidesk.date_ranges import DateRange
from taxidesk.spreadsheets import (
    UnreadableWorkbookError,
    export_filename,
    import_records,
    report_workbook,
    table_workbook,
    template_workbook,
)


def workbook_bytes(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def make_trip(**kw):
    data = dict(
        date=date(2024, 1, 5),
        driver_name="Ravi",
        driver_number="9876543210",
        customer_name="Anita",
        customer_number="9123456780",
        from_location="Airport",
        to_location="Beach Road",
        trip_amount=Decimal("1250.75"),
        driver_amount=Decimal("400"),
        commission=Decimal("60.50"),
        fuel_amount=Decimal("210.25"),
        tolls=Decimal("35"),
    )
    data.update(kw)
    return schemas.TripCreate(**data)


def test_export_then_import_reproduces_totals():
    trips = [
        make_trip(),
        make_trip(date=date(2024, 1, 9), trip_amount=Decimal("999.99"), company="Infosys", fuel_type="Diesel"),
        make_trip(date=date(2024, 1, 20), payment_status="paid", payment_mode="UPI", tolls=Decimal("0")),
    ]
    content = table_workbook("Trips", TABLES["trips"], trips)
    imported = import_records(content, TABLES["trips"])

    before, after = summarize(trips), summarize(imported)
    assert after.trip_count == before.trip_count
    assert after.total_revenue == before.total_revenue
    assert after.total_trip_cost == before.total_trip_cost
    assert after.total_profit == before.total_profit
    assert [t.date for t in imported] == [t.date for t in trips]
    assert imported[1].company == "Infosys"
    assert imported[2].payment_status == "paid"


def test_export_rows_recompute_profit_and_format_dates():
    headers, rows = export_rows([make_trip()], TRIP_COLUMNS)
    row = dict(zip(headers, rows[0]))
    assert row["Date"] == "05/01/2024"
    assert row["Driver Amount (₹)"] == Decimal("400")
    assert row["Profit (₹)"] == Decimal("545.00")
    assert row["Company"] == ""


def test_import_applies_defaults():
    content = workbook_bytes([
        ["Date", "Driver Name", "Driver Number", "Customer Name", "Customer Number", "From", "To", "Trip Amount"],
        ["2024-03-02", "Ravi", "9876543210", "Anita", "9123456780", "Airport", "Station", 800],
    ])
    (t,) = import_records(content, TABLES["trips"])
    assert t.fuel_type == "Petrol"
    assert t.payment_mode == "Cash"
    assert t.payment_status == "pending"
    assert t.driver_amount == Decimal("0")
    assert t.company is None
    assert t.trip_amount == Decimal("800")


def test_machine_key_wins_over_header_and_aliases_work():
    content = workbook_bytes([
        ["date", "Driver Name", "driver_name", "Driver Number", "Customer Name", "Customer Number",
         "From", "To", "Fuel", "Driver Amount", "Payment Mode"],
        [datetime(2024, 3, 2), "Header Name", "Key Name", 9876543210, "Anita", "9123456780",
         "Airport", "Station", 150, "120.5", "credit card"],
    ])
    (t,) = import_records(content, TABLES["trips"])
    assert t.driver_name == "Key Name"
    assert t.date == date(2024, 3, 2)
    assert t.driver_number == "9876543210"
    assert t.fuel_amount == Decimal("150")
    assert t.driver_amount == Decimal("120.5")
    assert t.payment_mode == "Card"


def test_lookup_precedence():
    col = next(c for c in TRIP_COLUMNS if c.key == "fuel_amount")
    assert lookup({"fuel_amount": 5, "Fuel (₹)": 6, "Fuel": 7}, col) == 5
    assert lookup({"Fuel (₹)": 6, "Fuel": 7}, col) == 6
    assert lookup({"fuel amount": 8}, col) == 8
    assert lookup({"fuel_amount": "  "}, col) == Decimal("0")


def test_one_bad_row_rejects_whole_file():
    content = workbook_bytes([
        ["Date", "Driver Name", "Driver Number", "Customer Name", "Customer Number", "From", "To"],
        ["02/03/2024", "Ravi", "9876543210", "Anita", "9123456780", "Airport", "Station"],
        ["not a date", "Ravi", "9876543210", "Anita", "9123456780", "Airport", "Station"],
        ["03/03/2024", "Ravi", "123", "Anita", "9123456780", "Airport", "Station"],
    ])
    with pytest.raises(SpreadsheetImportError) as info:
        import_records(content, TABLES["trips"])
    problems = info.value.problems
    assert len(problems) == 2
    assert problems[0].startswith("row 3")
    assert "driver_number" in problems[1]


def test_header_row_may_follow_blank_rows():
    content = workbook_bytes([
        [],
        ["Date", "Vehicle Number", "Driver Name", "Driver Number", "Maintenance Type", "Amount"],
        ["2024-01-02", "AP31 AB 1234", "Ravi", "9876543210", "Oil Change", 1500],
    ])
    (m,) = import_records(content, TABLES["maintenance"])
    assert m.vehicle_number == "AP31 AB 1234"
    assert m.km_at_maintenance is None
    assert m.payment_mode == "Cash"


def test_unreadable_upload():
    with pytest.raises(UnreadableWorkbookError):
        import_records(b"definitely not a workbook", TABLES["trips"])


def test_empty_workbook_has_no_header():
    with pytest.raises(UnreadableWorkbookError):
        import_records(workbook_bytes([]), TABLES["trips"])


def test_template_lists_importable_headers():
    wb = load_workbook(BytesIO(template_workbook(TABLES["maintenance"])))
    headers = [c.value for c in wb.active[1]]
    assert headers == [
        "Date", "Vehicle Number", "Driver Name", "Driver Number", "Company", "Maintenance Type",
        "Description", "Amount", "Payment Mode", "KM at Maintenance", "Next Oil Change KM",
        "Original Odometer KM",
    ]


def test_report_workbook_has_summary_then_details():
    content = report_workbook([["Expenses Report", ""], ["Trips", 1]], [("Expenses", TRIP_COLUMNS, [make_trip()])])
    wb = load_workbook(BytesIO(content))
    assert wb.sheetnames == ["Summary", "Expenses"]
    assert wb["Summary"]["A1"].value == "Expenses Report"
    assert wb["Expenses"]["A2"].value == "05/01/2024"


def test_export_filenames():
    rng = DateRange(date(2024, 1, 1), date(2024, 1, 31))
    assert export_filename("expenses", rng) == "expenses-20240101-20240131.xlsx"
    assert export_filename("outside_vehicle_trips", date(2024, 2, 9)) == "outside_vehicle_trips_20240209.xlsx"
    assert export_filename("monthly-report", "2024-01") == "monthly-report-2024-01.xlsx"
