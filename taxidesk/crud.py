# taxidesk/crud.py
"""
Store access. Every read is scoped: admins see all rows, everyone else only
rows they created. Callers handle SQLAlchemyError.
"""
import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from taxidesk import models
from taxidesk.date_ranges import DateRange

logger = logging.getLogger(__name__)


# ---------- shared ----------
def _scoped(db: Session, model, user: models.Profile, date_range: Optional[DateRange] = None):
    q = db.query(model)
    if not user.is_admin:
        q = q.filter(model.created_by == user.id)
    if date_range is not None:
        q = q.filter(model.date >= date_range.start, model.date <= date_range.end)
    return q.order_by(model.date.desc(), model.id.desc())


def _get(db: Session, model, user: models.Profile, record_id: int):
    obj = db.get(model, record_id)
    if not obj or not (user.is_admin or obj.created_by == user.id):
        return None
    return obj


def _create(db: Session, model, user: models.Profile, data: BaseModel):
    obj = model(**data.model_dump(exclude={"profit"}), created_by=user.id)
    db.add(obj); db.commit(); db.refresh(obj)
    logger.info("%s %s created by %s", model.__tablename__, obj.id, user.id)
    return obj


def _bulk_create(db: Session, model, user: models.Profile, rows: Iterable[BaseModel]) -> int:
    objs = [model(**r.model_dump(exclude={"profit"}), created_by=user.id) for r in rows]
    db.add_all(objs)
    db.commit()
    logger.info("%s: imported %d row(s) for %s", model.__tablename__, len(objs), user.id)
    return len(objs)


def _update(db: Session, model, user: models.Profile, record_id: int, data: BaseModel):
    obj = _get(db, model, user, record_id)
    if not obj: return None
    for k, v in data.model_dump(exclude={"profit"}).items():
        setattr(obj, k, v)
    db.commit(); db.refresh(obj)
    return obj


def _delete(db: Session, model, user: models.Profile, record_id: int) -> bool:
    obj = _get(db, model, user, record_id)
    if not obj: return False
    db.delete(obj); db.commit()
    logger.info("%s %s deleted by %s", model.__tablename__, record_id, user.id)
    return True


def _set_status(db: Session, model, user: models.Profile, record_id: int, status: str):
    obj = _get(db, model, user, record_id)
    if not obj: return None
    obj.payment_status = status
    db.commit(); db.refresh(obj)
    return obj


# ---------- TRIP ----------
def list_trips(db: Session, user: models.Profile, date_range: Optional[DateRange] = None) -> List[models.Trip]:
    return _scoped(db, models.Trip, user, date_range).all()

def get_trip(db: Session, user: models.Profile, trip_id: int):
    return _get(db, models.Trip, user, trip_id)

def create_trip(db: Session, user: models.Profile, trip):
    return _create(db, models.Trip, user, trip)

def bulk_create_trips(db: Session, user: models.Profile, trips) -> int:
    return _bulk_create(db, models.Trip, user, trips)

def update_trip(db: Session, user: models.Profile, trip_id: int, trip):
    return _update(db, models.Trip, user, trip_id, trip)

def delete_trip(db: Session, user: models.Profile, trip_id: int) -> bool:
    return _delete(db, models.Trip, user, trip_id)

def set_trip_status(db: Session, user: models.Profile, trip_id: int, status: str):
    return _set_status(db, models.Trip, user, trip_id, status)


# ---------- MAINTENANCE ----------
def list_maintenance(db: Session, user: models.Profile, date_range: Optional[DateRange] = None) -> List[models.Maintenance]:
    return _scoped(db, models.Maintenance, user, date_range).all()

def get_maintenance(db: Session, user: models.Profile, record_id: int):
    return _get(db, models.Maintenance, user, record_id)

def create_maintenance(db: Session, user: models.Profile, record):
    return _create(db, models.Maintenance, user, record)

def bulk_create_maintenance(db: Session, user: models.Profile, records) -> int:
    return _bulk_create(db, models.Maintenance, user, records)

def update_maintenance(db: Session, user: models.Profile, record_id: int, record):
    return _update(db, models.Maintenance, user, record_id, record)

def delete_maintenance(db: Session, user: models.Profile, record_id: int) -> bool:
    return _delete(db, models.Maintenance, user, record_id)


# ---------- OUTSIDE VEHICLE TRIP ----------
def list_outside_trips(db: Session, user: models.Profile, date_range: Optional[DateRange] = None) -> List[models.OutsideVehicleTrip]:
    return _scoped(db, models.OutsideVehicleTrip, user, date_range).all()

def get_outside_trip(db: Session, user: models.Profile, trip_id: int):
    return _get(db, models.OutsideVehicleTrip, user, trip_id)

def create_outside_trip(db: Session, user: models.Profile, trip):
    return _create(db, models.OutsideVehicleTrip, user, trip)

def bulk_create_outside_trips(db: Session, user: models.Profile, trips) -> int:
    return _bulk_create(db, models.OutsideVehicleTrip, user, trips)

def update_outside_trip(db: Session, user: models.Profile, trip_id: int, trip):
    return _update(db, models.OutsideVehicleTrip, user, trip_id, trip)

def delete_outside_trip(db: Session, user: models.Profile, trip_id: int) -> bool:
    return _delete(db, models.OutsideVehicleTrip, user, trip_id)

def set_outside_trip_status(db: Session, user: models.Profile, trip_id: int, status: str):
    return _set_status(db, models.OutsideVehicleTrip, user, trip_id, status)


# ---------- PROFILE ----------
def get_profile(db: Session, profile_id: int):
    return db.get(models.Profile, profile_id)
