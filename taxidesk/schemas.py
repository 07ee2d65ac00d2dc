# taxidesk/schemas.py
from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

MIN_PHONE_DIGITS = 10

MAINTENANCE_TYPES = [
    "Oil Change",
    "Brake Service",
    "Tire Change",
    "AC Repair",
    "Engine Repair",
    "Battery Replacement",
    "Transmission Service",
    "General Service",
    "Other",
]

VEHICLE_TYPES = [
    "4 Seater",
    "6 Seater",
    "7 Seater",
    "12 Seater",
    "17 Seater",
    "27 Seater",
    "40 Seater",
]


class FuelType(str, Enum):
    PETROL = "Petrol"
    DIESEL = "Diesel"
    CNG = "CNG"
    EV = "EV"


class PaymentMode(str, Enum):
    CASH = "Cash"
    UPI = "UPI"
    ONLINE = "Online"
    CARD = "Card"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"


def normalize_phone(value: str) -> str:
    return "".join((value or "").split())


def _check_phone(value: str) -> str:
    value = normalize_phone(value)
    if sum(ch.isdigit() for ch in value) < MIN_PHONE_DIGITS:
        raise ValueError("Valid phone number is required")
    return value


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
    return value or None


class _Record(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)


# ---------- Trip ----------
class TripBase(_Record):
    date: dt.date
    driver_name: str = Field(min_length=1)
    driver_number: str
    customer_name: str = Field(min_length=1)
    customer_number: str
    from_location: str = Field(min_length=1)
    to_location: str = Field(min_length=1)
    company: Optional[str] = None
    car_number: Optional[str] = None
    fuel_type: FuelType = FuelType.PETROL
    payment_mode: PaymentMode = PaymentMode.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    driver_amount: Decimal = Field(default=Decimal("0"), ge=0)
    commission: Decimal = Field(default=Decimal("0"), ge=0)
    fuel_amount: Decimal = Field(default=Decimal("0"), ge=0)
    tolls: Decimal = Field(default=Decimal("0"), ge=0)
    trip_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("driver_number", "customer_number")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator("company", "car_number", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    @computed_field
    @property
    def profit(self) -> Decimal:
        return self.trip_amount - (self.driver_amount + self.commission + self.fuel_amount + self.tolls)


class TripCreate(TripBase):
    pass


class TripUpdate(TripBase):
    """Edits replace every editable field."""


# ---------- Maintenance ----------
class MaintenanceBase(_Record):
    date: dt.date
    vehicle_number: str = Field(min_length=1)
    driver_name: str = Field(min_length=1)
    driver_number: str
    company: Optional[str] = None
    maintenance_type: str = Field(min_length=1)
    description: Optional[str] = None
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_mode: PaymentMode = PaymentMode.CASH
    km_at_maintenance: Optional[Decimal] = Field(default=None, ge=0)
    next_oil_change_km: Optional[Decimal] = Field(default=None, ge=0)
    original_odometer_km: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("driver_number")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return _check_phone(v)

    @field_validator(
        "company", "description", "km_at_maintenance", "next_oil_change_km", "original_odometer_km",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class MaintenanceCreate(MaintenanceBase):
    pass


class MaintenanceUpdate(MaintenanceBase):
    pass


# ---------- Outside vehicle trip ----------
class OutsideVehicleTripBase(_Record):
    date: dt.date
    driver_name: str = Field(min_length=1)
    driver_number: str
    travel_company: str = Field(min_length=1)
    vehicle_type: str = Field(min_length=1)
    vehicle_number: str = Field(min_length=1)
    from_location: str = Field(min_length=1)
    to_location: str = Field(min_length=1)
    trip_given_company: str = Field(min_length=1)
    payment_mode: PaymentMode = PaymentMode.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    trip_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("driver_number")
    @classmethod
    def check_phone(cls, v: str) -> str:
        return _check_phone(v)


class OutsideVehicleTripCreate(OutsideVehicleTripBase):
    pass


class OutsideVehicleTripUpdate(OutsideVehicleTripBase):
    pass
