# taxidesk/columns.py
"""
Column tables for spreadsheet export and import.

Each record type has one ordered list of ``Column``. Export writes the
display ``header``; import looks a field up by machine ``key`` first, then by
the display header and its aliases, and falls back to the column's default.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ValidationError

from taxidesk import schemas
from taxidesk.aggregation import trip_profit

TEXT = "text"
OPTIONAL = "optional"
MONEY = "money"
KM = "km"
DATE = "date"
FUEL = "fuel"
MODE = "mode"
STATUS = "status"

DEFAULTS = {
    TEXT: "",
    OPTIONAL: None,
    MONEY: Decimal("0"),
    KM: None,
    FUEL: schemas.FuelType.PETROL.value,
    MODE: schemas.PaymentMode.CASH.value,
    STATUS: schemas.PaymentStatus.PENDING.value,
}

MODE_ALIASES = {"credit card": "Card", "debit card": "Card"}

EXPORT_DATE_FORMAT = "%d/%m/%Y"
IMPORT_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")


@dataclass(frozen=True)
class Column:
    key: str
    header: str
    kind: str = TEXT
    aliases: Tuple[str, ...] = ()
    importable: bool = True

    @property
    def headers(self) -> Tuple[str, ...]:
        return (self.header,) + self.aliases


TRIP_COLUMNS = [
    Column("date", "Date", DATE),
    Column("driver_name", "Driver Name"),
    Column("driver_number", "Driver Number"),
    Column("customer_name", "Customer Name"),
    Column("customer_number", "Customer Number"),
    Column("from_location", "From", aliases=("From Location",)),
    Column("to_location", "To", aliases=("To Location",)),
    Column("company", "Company", OPTIONAL),
    Column("car_number", "Car Number", OPTIONAL),
    Column("fuel_type", "Fuel Type", FUEL),
    Column("payment_mode", "Payment Mode", MODE),
    Column("payment_status", "Payment Status", STATUS),
    Column("driver_amount", "Driver Amount (₹)", MONEY, aliases=("Driver Amount",)),
    Column("commission", "Commission (₹)", MONEY, aliases=("Commission",)),
    Column("fuel_amount", "Fuel (₹)", MONEY, aliases=("Fuel", "Fuel Amount")),
    Column("tolls", "Tolls (₹)", MONEY, aliases=("Tolls",)),
    Column("trip_amount", "Trip Amount", MONEY, aliases=("Trip Amount (₹)",)),
    Column("profit", "Profit (₹)", MONEY, aliases=("Profit",), importable=False),
]

MAINTENANCE_COLUMNS = [
    Column("date", "Date", DATE),
    Column("vehicle_number", "Vehicle Number"),
    Column("driver_name", "Driver Name"),
    Column("driver_number", "Driver Number"),
    Column("company", "Company", OPTIONAL),
    Column("maintenance_type", "Maintenance Type", aliases=("Type",)),
    Column("description", "Description", OPTIONAL),
    Column("amount", "Amount", MONEY, aliases=("Amount (₹)",)),
    Column("payment_mode", "Payment Mode", MODE),
    Column("km_at_maintenance", "KM at Maintenance", KM),
    Column("next_oil_change_km", "Next Oil Change KM", KM),
    Column("original_odometer_km", "Original Odometer KM", KM),
]

OUTSIDE_COLUMNS = [
    Column("date", "Date", DATE),
    Column("driver_name", "Driver Name", aliases=("Driver",)),
    Column("driver_number", "Driver Number"),
    Column("travel_company", "Travel Company"),
    Column("vehicle_type", "Vehicle Type"),
    Column("from_location", "From"),
    Column("to_location", "To"),
    Column("vehicle_number", "Vehicle Number"),
    Column("trip_given_company", "Trip Given Company", aliases=("Trip Given By",)),
    Column("payment_mode", "Payment Mode", MODE),
    Column("payment_status", "Payment Status", STATUS),
    Column("trip_amount", "Trip Amount", MONEY, aliases=("Amount",)),
]

# detail sheet of the expenses report (export only)
EXPENSE_COLUMNS = [
    Column("date", "Date", DATE),
    Column("driver_name", "Driver"),
    Column("driver_number", "Driver No"),
    Column("driver_amount", "Driver Amount", MONEY),
    Column("commission", "Commission", MONEY),
    Column("fuel_amount", "Fuel Amount", MONEY),
    Column("tolls", "Tolls", MONEY),
]


@dataclass(frozen=True)
class Table:
    name: str
    sheet_title: str
    columns: Sequence[Column]
    schema: Type[BaseModel]


TABLES: Dict[str, Table] = {
    "trips": Table("trips", "Trips", TRIP_COLUMNS, schemas.TripCreate),
    "maintenance": Table("maintenance", "Maintenance", MAINTENANCE_COLUMNS, schemas.MaintenanceCreate),
    "outside-trips": Table(
        "outside-trips", "Outside Vehicle Trips", OUTSIDE_COLUMNS, schemas.OutsideVehicleTripCreate
    ),
}


# ---------------- Export ----------------

def _export_value(record, col: Column):
    if col.key == "profit":
        return trip_profit(record)
    value = getattr(record, col.key, None)
    if value is None:
        return "" if col.kind in (TEXT, OPTIONAL) else None
    if col.kind == DATE:
        return value.strftime(EXPORT_DATE_FORMAT)
    if hasattr(value, "value"):  # enums
        return value.value
    if col.kind == MONEY:
        return Decimal(str(value))
    return value


def export_rows(records: Iterable, columns: Sequence[Column]) -> Tuple[List[str], List[list]]:
    headers = [c.header for c in columns]
    rows = [[_export_value(r, c) for c in columns] for r in records]
    return headers, rows


# ---------------- Import ----------------

class SpreadsheetImportError(ValueError):
    """One or more rows could not be turned into records; nothing was saved."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def lookup(row: Dict[str, object], col: Column):
    """Machine key first, then display header and aliases, else the column default."""
    if not _blank(row.get(col.key)):
        return row[col.key]
    lowered = {str(k).strip().lower(): v for k, v in row.items() if k is not None}
    for header in col.headers:
        value = lowered.get(header.lower())
        if not _blank(value):
            return value
    return DEFAULTS.get(col.kind)


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in IMPORT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognised date {value!r}")


def parse_amount(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    text = str(value).replace("₹", "").replace(",", "").strip()
    try:
        return Decimal(text)
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")


def _choice(value, enum) -> str:
    text = str(value).strip()
    for member in enum:
        if member.value.lower() == text.lower():
            return member.value
    return text


def _coerce(value, col: Column):
    if value is None:
        return None
    if col.kind == DATE:
        return parse_date(value)
    if col.kind in (MONEY, KM):
        return parse_amount(value)
    if col.kind == FUEL:
        return _choice(value, schemas.FuelType)
    if col.kind == MODE:
        text = str(value).strip()
        return _choice(MODE_ALIASES.get(text.lower(), text), schemas.PaymentMode)
    if col.kind == STATUS:
        return str(value).strip().lower()
    if isinstance(value, float) and value.is_integer():
        # phone numbers typed into numeric cells
        return str(int(value))
    return str(value).strip()


def row_to_payload(row: Dict[str, object], columns: Sequence[Column]) -> dict:
    return {c.key: _coerce(lookup(row, c), c) for c in columns if c.importable}


def parse_rows(rows: Iterable[Tuple[int, Dict[str, object]]], table: Table) -> List[BaseModel]:
    """Validate every (row number, row) with the form schema; raise if any row is bad."""
    records, problems = [], []
    for number, row in rows:
        try:
            records.append(table.schema(**row_to_payload(row, table.columns)))
        except ValidationError as exc:
            fields = ", ".join(str(e["loc"][0]) for e in exc.errors() if e.get("loc"))
            problems.append(f"row {number}: invalid {fields}")
        except ValueError as exc:
            problems.append(f"row {number}: {exc}")
    if problems:
        raise SpreadsheetImportError(problems)
    return records
