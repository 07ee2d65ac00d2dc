# taxidesk/models.py
from __future__ import annotations
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey, Boolean, Text
from sqlalchemy.orm import relationship
from taxidesk.db import Base
from datetime import datetime

ROLES = ("admin", "driver1", "driver2", "driver3")


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(20), unique=True, nullable=False, index=True)
    full_name = Column(String(200))
    role = Column(String(20), nullable=False, default="driver1")
    created_at = Column(DateTime, default=datetime.utcnow)

    trips = relationship("Trip", back_populates="creator")
    maintenance = relationship("Maintenance", back_populates="creator")
    outside_trips = relationship("OutsideVehicleTrip", back_populates="creator")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class OtpChallenge(Base):
    __tablename__ = "otp_challenges"
    id = Column(Integer, primary_key=True, index=True)
    phone = Column(String(20), nullable=False, index=True)
    code_hash = Column(String(200), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0)
    consumed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Trip(Base):
    __tablename__ = "trips"
    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    driver_name = Column(String(200), nullable=False)
    driver_number = Column(String(20), nullable=False)
    customer_name = Column(String(200), nullable=False)
    customer_number = Column(String(20), nullable=False)
    from_location = Column(String(200), nullable=False)
    to_location = Column(String(200), nullable=False)
    company = Column(String(200))
    car_number = Column(String(32))
    fuel_type = Column(String(20), nullable=False, default="Petrol")
    payment_mode = Column(String(20), nullable=False, default="Cash")
    payment_status = Column(String(20), nullable=False, default="pending")
    driver_amount = Column(Numeric(10, 2), nullable=False, default=0)
    commission = Column(Numeric(10, 2), nullable=False, default=0)
    fuel_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tolls = Column(Numeric(10, 2), nullable=False, default=0)
    trip_amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = relationship("Profile", back_populates="trips")

    @property
    def profit(self) -> Decimal:
        # never stored: always derived from the current amounts
        from taxidesk.aggregation import trip_profit
        return trip_profit(self)


class Maintenance(Base):
    __tablename__ = "maintenance"
    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    vehicle_number = Column(String(32), nullable=False)
    driver_name = Column(String(200), nullable=False)
    driver_number = Column(String(20), nullable=False)
    company = Column(String(200))
    maintenance_type = Column(String(100), nullable=False)
    description = Column(Text)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_mode = Column(String(20), nullable=False, default="Cash")
    # odometer readings are informational only
    km_at_maintenance = Column(Numeric(10, 1))
    next_oil_change_km = Column(Numeric(10, 1))
    original_odometer_km = Column(Numeric(10, 1))
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = relationship("Profile", back_populates="maintenance")


class OutsideVehicleTrip(Base):
    __tablename__ = "outside_vehicle_trips"
    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    driver_name = Column(String(200), nullable=False)
    driver_number = Column(String(20), nullable=False)
    travel_company = Column(String(200), nullable=False)
    vehicle_type = Column(String(50), nullable=False)
    vehicle_number = Column(String(32), nullable=False)
    from_location = Column(String(200), nullable=False)
    to_location = Column(String(200), nullable=False)
    trip_given_company = Column(String(200), nullable=False)
    payment_mode = Column(String(20), nullable=False, default="Cash")
    payment_status = Column(String(20), nullable=False, default="pending")
    trip_amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = relationship("Profile", back_populates="outside_trips")
