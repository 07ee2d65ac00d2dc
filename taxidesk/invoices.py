# taxidesk/invoices.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Sequence

from taxidesk.aggregation import ZERO, money
from taxidesk.config import settings

DATE_FORMAT = "%d/%m/%Y"
CENT = Decimal("0.01")


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: str = ""
    cost: Decimal = ZERO


@dataclass(frozen=True)
class BankDetails:
    account_holder: str
    branch: str
    bank_name: str
    account_number: str
    ifsc: str

    @classmethod
    def from_settings(cls) -> "BankDetails":
        return cls(
            account_holder=settings.bank_account_holder,
            branch=settings.bank_branch,
            bank_name=settings.bank_name,
            account_number=settings.bank_account_number,
            ifsc=settings.bank_ifsc,
        )


@dataclass(frozen=True)
class Invoice:
    number: str
    customer_name: str
    invoice_date: str
    start_date: str
    end_date: str
    from_to: str
    car_number: str
    base_description: str
    base_amount: Decimal
    with_gst: bool
    gst_rate: Decimal
    bank: BankDetails
    extra_items: List[LineItem] = field(default_factory=list)

    @property
    def extras_total(self) -> Decimal:
        return sum((i.cost for i in self.extra_items), ZERO)

    @property
    def subtotal(self) -> Decimal:
        return self.base_amount + self.extras_total

    @property
    def gst_amount(self) -> Decimal:
        if not self.with_gst:
            return ZERO
        return (self.subtotal * self.gst_rate).quantize(CENT, rounding=ROUND_HALF_UP)

    @property
    def gst_percent(self) -> str:
        return f"{(self.gst_rate * 100).normalize():f}"

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.gst_amount


def invoice_number(trip_id) -> str:
    return str(trip_id).zfill(4)[-4:].upper()


def build_invoice(trip, with_gst: bool, extra_items: Sequence[LineItem] = (), gst_rate: Optional[Decimal] = None) -> Invoice:
    """Invoice for a single trip; dates are the trip date."""
    day = trip.date.strftime(DATE_FORMAT)
    return Invoice(
        number=invoice_number(trip.id),
        customer_name=trip.customer_name,
        invoice_date=day,
        start_date=day,
        end_date=day,
        from_to=f"{trip.from_location} to {trip.to_location}",
        car_number=getattr(trip, "car_number", None) or trip.company or "N/A",
        base_description=f"Taxi Service ({trip.fuel_type})",
        base_amount=money(trip.trip_amount),
        with_gst=with_gst,
        gst_rate=settings.gst_rate if gst_rate is None else gst_rate,
        bank=BankDetails.from_settings(),
        extra_items=[i for i in extra_items if i.description or i.cost],
    )


def parse_line_items(descriptions: Sequence[str], quantities: Sequence[str], costs: Sequence[str]) -> List[LineItem]:
    """Zip parallel form lists into line items; rows with neither text nor cost are dropped."""
    items = []
    for i, desc in enumerate(descriptions):
        qty = quantities[i] if i < len(quantities) else ""
        raw = costs[i] if i < len(costs) else ""
        try:
            cost = money(raw.strip() if isinstance(raw, str) else raw)
        except ArithmeticError:
            raise ValueError(f"Line item cost is not a number: {raw!r}")
        if not cost.is_finite():
            raise ValueError(f"Line item cost is not a number: {raw!r}")
        if cost < 0:
            raise ValueError("Line item cost cannot be negative")
        if (desc or "").strip() or cost:
            items.append(LineItem((desc or "").strip(), (qty or "").strip(), cost))
    return items
