# main.py (project root)

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from types import SimpleNamespace as NS
from typing import Dict, Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from taxidesk import auth, crud, models, schemas, spreadsheets, ui_state
from taxidesk.aggregation import TREND_PERIODS, group_by_month, maintenance_by_type, monthly_series, pending_total
from taxidesk.columns import EXPENSE_COLUMNS, MAINTENANCE_COLUMNS, TABLES, TRIP_COLUMNS, SpreadsheetImportError
from taxidesk.config import settings
from taxidesk.date_ranges import (
    PRESETS,
    InvertedRangeError,
    Preset,
    current_month,
    filter_from_params,
    filter_to_dict,
    month_label,
    month_options,
    parse_month,
    resolve,
    trailing_months,
    year_options,
)
from taxidesk.db import Base, engine, get_db
from taxidesk.invoices import build_invoice, parse_line_items
from taxidesk.reports import (
    MAINTENANCE_SEARCH_FIELDS,
    OUTSIDE_SEARCH_FIELDS,
    PAYMENT_FILTERS,
    TRIP_SEARCH_FIELDS,
    build_dashboard,
    expense_report,
    format_currency,
    monthly_report,
    refine,
)

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("taxidesk.web")

# ---------------- App & Templates ----------------

Base.metadata.create_all(bind=engine)

app = FastAPI(title="TaxiDesk", version="1.0.0")
app.add_middleware(SessionMiddleware, secret_key=settings.session_key)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "taxidesk" / "templates"))


def _dmy(value) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


templates.env.filters["currency"] = format_currency
templates.env.filters["dmy"] = _dmy

# tests swap the sender to capture codes
otp_service = auth.OtpService()


# ---------------- Helpers ----------------

PRESET_LABELS = {"this_month": "This Month", "last_month": "Last Month", "last_30": "Last 30 Days"}

CHOICES = NS(
    fuel_types=[e.value for e in schemas.FuelType],
    payment_modes=[e.value for e in schemas.PaymentMode],
    payment_statuses=[e.value for e in schemas.PaymentStatus],
    maintenance_types=schemas.MAINTENANCE_TYPES,
    vehicle_types=schemas.VEHICLE_TYPES,
    roles=models.ROLES,
)

KINDS = {
    "trips": NS(
        section="trips",
        label="Trip",
        title="Trips",
        table=TABLES["trips"],
        create=schemas.TripCreate,
        update=schemas.TripUpdate,
        search=TRIP_SEARCH_FIELDS,
        form="_trip_form.html",
        list=crud.list_trips,
        get=crud.get_trip,
        add=crud.create_trip,
        change=crud.update_trip,
        delete=crud.delete_trip,
        bulk=crud.bulk_create_trips,
        set_status=crud.set_trip_status,
        export_name=lambda rng: spreadsheets.export_filename("trips", rng),
    ),
    "maintenance": NS(
        section="maintenance",
        label="Maintenance record",
        title="Maintenance",
        table=TABLES["maintenance"],
        create=schemas.MaintenanceCreate,
        update=schemas.MaintenanceUpdate,
        search=MAINTENANCE_SEARCH_FIELDS,
        form="_maintenance_form.html",
        list=crud.list_maintenance,
        get=crud.get_maintenance,
        add=crud.create_maintenance,
        change=crud.update_maintenance,
        delete=crud.delete_maintenance,
        bulk=crud.bulk_create_maintenance,
        set_status=None,
        export_name=lambda rng: spreadsheets.export_filename("maintenance", rng),
    ),
    "outside-trips": NS(
        section="outside-trips",
        label="Outside vehicle trip",
        title="Outside Vehicle Trips",
        table=TABLES["outside-trips"],
        create=schemas.OutsideVehicleTripCreate,
        update=schemas.OutsideVehicleTripUpdate,
        search=OUTSIDE_SEARCH_FIELDS,
        form="_outside_form.html",
        list=crud.list_outside_trips,
        get=crud.get_outside_trip,
        add=crud.create_outside_trip,
        change=crud.update_outside_trip,
        delete=crud.delete_outside_trip,
        bulk=crud.bulk_create_outside_trips,
        set_status=crud.set_outside_trip_status,
        export_name=lambda rng: spreadsheets.export_filename("outside_vehicle_trips", date.today()),
    ),
}


def get_current_user(request: Request, db: Session) -> Optional[models.Profile]:
    uid = request.session.get("user_id")
    return crud.get_profile(db, uid) if uid else None


def require_login(request: Request, db: Session) -> models.Profile | RedirectResponse:
    user = get_current_user(request, db)
    if not user:
        return RedirectResponse(url="/login", status_code=303)
    return user  # type: ignore[return-value]


def flash(request: Request, message: str, level: str = "info") -> None:
    messages = list(request.session.get("flashes", []))
    messages.append({"level": level, "message": message})
    request.session["flashes"] = messages


def render(request: Request, name: str, ctx: dict, status_code: int = 200, user=None):
    ctx = {"user": user, "flashes": request.session.pop("flashes", []), "choices": CHOICES, **ctx}
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)


def get_view(request: Request) -> ui_state.ViewState:
    return ui_state.from_dict(request.session.get("view"))


def save_view(request: Request, view: ui_state.ViewState) -> ui_state.ViewState:
    request.session["view"] = ui_state.to_dict(view)
    return view


def dispatch(request: Request, action) -> ui_state.ViewState:
    return save_view(request, ui_state.reduce(get_view(request), action))


def form_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "__all__"
        errors.setdefault(field, err["msg"].removeprefix("Value error, "))
    return errors


async def form_payload(request: Request) -> dict:
    """Submitted fields with blanks dropped, so schema defaults apply."""
    form = await request.form()
    return {k: v.strip() for k, v in form.items() if isinstance(v, str) and v.strip()}


def _input_value(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def record_values(kind, record) -> dict:
    return {name: _input_value(getattr(record, name, None)) for name in kind.create.model_fields}


def new_form_values() -> dict:
    return {
        "date": date.today().isoformat(),
        "fuel_type": schemas.FuelType.PETROL.value,
        "payment_mode": schemas.PaymentMode.CASH.value,
        "payment_status": schemas.PaymentStatus.PENDING.value,
    }


def store_failed(request: Request, db: Session, what: str) -> None:
    db.rollback()
    logger.exception("Store error while trying to %s", what)
    flash(request, f"Could not {what}. Please try again.", "error")


def xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=spreadsheets.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _refined(kind, view: ui_state.ViewState, records):
    status = view.payment_status if kind.set_status else "all"
    return refine(records, kind.search, view.search, status)


def dashboard_context(request: Request, db: Session, user: models.Profile, view: ui_state.ViewState,
                      values: Optional[dict] = None, errors: Optional[dict] = None) -> dict:
    date_range = resolve(view.filter)
    kind = KINDS[view.section]
    try:
        sets = {
            "trips": crud.list_trips(db, user, date_range),
            "maintenance": crud.list_maintenance(db, user, date_range),
            "outside-trips": crud.list_outside_trips(db, user, date_range),
        }
        all_trips = crud.list_trips(db, user)
    except SQLAlchemyError:
        store_failed(request, db, "load records")
        # no figures are computed from a failed load
        report, records, month_groups, load_failed = None, [], None, True
    else:
        sets[view.section] = _refined(kind, view, sets[view.section])
        report = build_dashboard(
            date_range, sets["trips"], sets["maintenance"], sets["outside-trips"], pending_total(all_trips)
        )
        records = sets[view.section]
        month_groups = group_by_month(sets["maintenance"]) if view.section == "maintenance" else None
        load_failed = False
    return {
        "view": view,
        "kind": kind,
        "kinds": KINDS,
        "date_range": date_range,
        "report": report,
        "load_failed": load_failed,
        "filter": filter_to_dict(view.filter),
        "records": records,
        "month_groups": month_groups,
        "month_options": month_options(),
        "year_options": year_options(),
        "presets": PRESET_LABELS,
        "payment_filters": PAYMENT_FILTERS,
        "values": values if values is not None else new_form_values(),
        "errors": errors or {},
    }


# ---------------- Health / Ping ----------------

@app.get("/__ping")
def ping() -> Dict[str, bool]:
    return {"pong": True}


@app.get("/health")
def health() -> Dict[str, bool]:
    return {"ok": True}


# ---------------- Auth ----------------

def _auth_state(request: Request) -> auth.PhoneAuthState:
    return auth.PhoneAuthState.from_dict(request.session.get("auth"))


def _save_auth_state(request: Request, state: auth.PhoneAuthState) -> None:
    request.session["auth"] = state.to_dict()


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, db: Session = Depends(get_db)):
    if get_current_user(request, db):
        return RedirectResponse(url="/", status_code=303)
    state = _auth_state(request)
    if state.step is auth.AuthStep.AUTHENTICATED:
        state = auth.PhoneAuthState()
    # errors are shown once
    _save_auth_state(request, auth.PhoneAuthState(state.step, state.phone, state.is_new_user))
    return render(request, "login.html", {"state": state, "steps": auth.AuthStep})


@app.post("/login/request-code")
def login_request_code(request: Request, phone: str = Form(""), db: Session = Depends(get_db)):
    try:
        state = auth.request_code(_auth_state(request), db, otp_service, phone)
    except SQLAlchemyError:
        store_failed(request, db, "send a code")
        return RedirectResponse(url="/login", status_code=303)
    _save_auth_state(request, state)
    return RedirectResponse(url="/login", status_code=303)


@app.post("/login/verify")
def login_verify(
    request: Request,
    code: str = Form(""),
    full_name: str = Form(""),
    role: str = Form(""),
    db: Session = Depends(get_db),
):
    try:
        state = auth.verify_code(
            _auth_state(request), db, otp_service, code, full_name=full_name or None, role=role or None
        )
    except SQLAlchemyError:
        store_failed(request, db, "verify the code")
        return RedirectResponse(url="/login", status_code=303)

    if state.step is auth.AuthStep.AUTHENTICATED:
        request.session.pop("auth", None)
        request.session["user_id"] = state.user_id
        logger.info("Profile %s signed in", state.user_id)
        return RedirectResponse(url="/", status_code=303)
    _save_auth_state(request, state)
    return RedirectResponse(url="/login", status_code=303)


@app.post("/login/change-number")
def login_change_number(request: Request):
    _save_auth_state(request, auth.change_number(_auth_state(request)))
    return RedirectResponse(url="/login", status_code=303)


@app.get("/logout")
def logout(request: Request):
    request.session.clear()
    return RedirectResponse(url="/login", status_code=303)


# ---------------- Dashboard ----------------

@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request, db: Session = Depends(get_db)):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user
    return render(request, "dashboard.html", dashboard_context(request, db, user, get_view(request)), user=user)


@app.get("/ui/section/{name}")
def ui_section(name: str, request: Request):
    try:
        dispatch(request, ui_state.SectionChanged(name))
    except ValueError as exc:
        flash(request, str(exc), "error")
    return RedirectResponse(url="/", status_code=303)


@app.post("/ui/filter")
def ui_filter(
    request: Request,
    kind: str = Form("monthly"),
    month: str = Form(""),
    year: str = Form(""),
    start: str = Form(""),
    end: str = Form(""),
    preset: str = Form(""),
):
    try:
        flt = filter_from_params(kind, month=month, year=year, start=start, end=end, preset=preset)
        dispatch(request, ui_state.FilterChanged(flt))
    except InvertedRangeError as exc:
        flash(request, f"Invalid date range: {exc}", "error")
    except ValueError as exc:
        flash(request, str(exc), "error")
    return RedirectResponse(url="/", status_code=303)


@app.get("/ui/add")
def ui_add(request: Request):
    dispatch(request, ui_state.AddFormOpened())
    return RedirectResponse(url="/", status_code=303)


@app.get("/ui/close")
def ui_close(request: Request):
    dispatch(request, ui_state.FormClosed())
    return RedirectResponse(url="/", status_code=303)


@app.post("/ui/search")
def ui_search(request: Request, q: str = Form("")):
    dispatch(request, ui_state.SearchChanged(q))
    return RedirectResponse(url="/", status_code=303)


@app.post("/ui/status")
def ui_status(request: Request, status: str = Form("all")):
    try:
        dispatch(request, ui_state.PaymentStatusChanged(status))
    except ValueError as exc:
        flash(request, str(exc), "error")
    return RedirectResponse(url="/", status_code=303)


# ---------------- Records (shared) ----------------

async def _create(request: Request, db: Session, kind):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    payload = await form_payload(request)
    try:
        data = kind.create(**payload)
    except ValidationError as exc:
        view = ui_state.reduce(get_view(request), ui_state.SectionChanged(kind.section))
        view = save_view(request, ui_state.reduce(view, ui_state.AddFormOpened()))
        ctx = dashboard_context(request, db, user, view, values=payload, errors=form_errors(exc))
        return render(request, "dashboard.html", ctx, status_code=400, user=user)

    try:
        kind.add(db, user, data)
    except SQLAlchemyError:
        store_failed(request, db, f"save the {kind.label.lower()}")
        return RedirectResponse(url="/", status_code=303)

    dispatch(request, ui_state.FormClosed())
    flash(request, f"{kind.label} added successfully")
    return RedirectResponse(url="/", status_code=303)


def _edit_page(request: Request, db: Session, kind, record_id: int):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    record = kind.get(db, user, record_id)
    if not record:
        return RedirectResponse(url="/", status_code=303)
    dispatch(request, ui_state.EditStarted(record_id))
    return render(
        request,
        "record_edit.html",
        {"kind": kind, "record": record, "values": record_values(kind, record), "errors": {}},
        user=user,
    )


async def _edit(request: Request, db: Session, kind, record_id: int):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    record = kind.get(db, user, record_id)
    if not record:
        return RedirectResponse(url="/", status_code=303)

    payload = await form_payload(request)
    try:
        data = kind.update(**payload)
    except ValidationError as exc:
        return render(
            request,
            "record_edit.html",
            {"kind": kind, "record": record, "values": payload, "errors": form_errors(exc)},
            status_code=400,
            user=user,
        )

    try:
        kind.change(db, user, record_id, data)
    except SQLAlchemyError:
        store_failed(request, db, f"update the {kind.label.lower()}")
        return RedirectResponse(url="/", status_code=303)

    dispatch(request, ui_state.FormClosed())
    flash(request, f"{kind.label} updated successfully")
    return RedirectResponse(url="/", status_code=303)


def _delete(request: Request, db: Session, kind, record_id: int):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user
    try:
        if kind.delete(db, user, record_id):
            flash(request, f"{kind.label} deleted successfully")
    except SQLAlchemyError:
        store_failed(request, db, f"delete the {kind.label.lower()}")
    return RedirectResponse(url="/", status_code=303)


def _set_status(request: Request, db: Session, kind, record_id: int, status: str):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user
    if status not in CHOICES.payment_statuses:
        return RedirectResponse(url="/", status_code=303)
    try:
        if kind.set_status(db, user, record_id, status):
            flash(request, f"Payment marked as {status}")
    except SQLAlchemyError:
        store_failed(request, db, "update the payment status")
    return RedirectResponse(url="/", status_code=303)


def _export(request: Request, db: Session, kind):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    view = get_view(request)
    date_range = resolve(view.filter)
    try:
        records = kind.list(db, user, date_range)
    except SQLAlchemyError:
        store_failed(request, db, f"export {kind.title.lower()}")
        return RedirectResponse(url="/", status_code=303)
    if view.section == kind.section:
        records = _refined(kind, view, records)

    content = spreadsheets.table_workbook(kind.table.sheet_title, kind.table, records)
    return xlsx_response(content, kind.export_name(date_range))


def _template(request: Request, db: Session, kind):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user
    return xlsx_response(spreadsheets.template_workbook(kind.table), f"{kind.section}-template.xlsx")


async def _import(request: Request, db: Session, kind, file: UploadFile):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    content = await file.read()
    try:
        rows = spreadsheets.import_records(content, kind.table)
    except (spreadsheets.UnreadableWorkbookError, SpreadsheetImportError) as exc:
        logger.warning("Import of %s rejected: %s", kind.section, exc)
        flash(request, f"Import failed: {exc}", "error")
        return RedirectResponse(url="/", status_code=303)
    if not rows:
        flash(request, "The uploaded file has no data rows.", "error")
        return RedirectResponse(url="/", status_code=303)

    try:
        count = kind.bulk(db, user, rows)
    except SQLAlchemyError:
        store_failed(request, db, f"import {kind.title.lower()}")
        return RedirectResponse(url="/", status_code=303)
    flash(request, f"Imported {count} {kind.title.lower()} record(s)")
    return RedirectResponse(url="/", status_code=303)


# ---------------- Trips ----------------

@app.post("/trips")
async def trips_create(request: Request, db: Session = Depends(get_db)):
    return await _create(request, db, KINDS["trips"])


@app.get("/trips/edit/{trip_id}", response_class=HTMLResponse)
def trips_edit_page(trip_id: int, request: Request, db: Session = Depends(get_db)):
    return _edit_page(request, db, KINDS["trips"], trip_id)


@app.post("/trips/edit/{trip_id}")
async def trips_edit(trip_id: int, request: Request, db: Session = Depends(get_db)):
    return await _edit(request, db, KINDS["trips"], trip_id)


@app.post("/trips/delete/{trip_id}")
def trips_delete(trip_id: int, request: Request, db: Session = Depends(get_db)):
    return _delete(request, db, KINDS["trips"], trip_id)


@app.post("/trips/status/{trip_id}")
def trips_status(trip_id: int, request: Request, status: str = Form(...), db: Session = Depends(get_db)):
    return _set_status(request, db, KINDS["trips"], trip_id, status)


@app.get("/trips/export")
def trips_export(request: Request, db: Session = Depends(get_db)):
    return _export(request, db, KINDS["trips"])


@app.get("/trips/template")
def trips_template(request: Request, db: Session = Depends(get_db)):
    return _template(request, db, KINDS["trips"])


@app.post("/trips/import")
async def trips_import(request: Request, file: UploadFile = File(...), db: Session = Depends(get_db)):
    return await _import(request, db, KINDS["trips"], file)


# ---------------- Invoices ----------------

@app.get("/trips/invoice/{trip_id}", response_class=HTMLResponse)
def trip_invoice(trip_id: int, request: Request, gst: int = Query(0), db: Session = Depends(get_db)):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    trip = crud.get_trip(db, user, trip_id)
    if not trip:
        return RedirectResponse(url="/", status_code=303)
    invoice = build_invoice(trip, with_gst=bool(gst))
    return render(request, "invoice.html", {"invoice": invoice, "trip": trip, "company": settings}, user=user)


@app.post("/trips/invoice/{trip_id}", response_class=HTMLResponse)
async def trip_invoice_items(trip_id: int, request: Request, db: Session = Depends(get_db)):
    """Re-render the invoice with extra line items (hours, kilometres, other fees)."""
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    trip = crud.get_trip(db, user, trip_id)
    if not trip:
        return RedirectResponse(url="/", status_code=303)

    form = await request.form()
    with_gst = form.get("gst") in ("1", "on", "true")
    try:
        items = parse_line_items(form.getlist("description"), form.getlist("quantity"), form.getlist("cost"))
        status_code = 200
    except ValueError as exc:
        flash(request, str(exc), "error")
        items, status_code = [], 400
    invoice = build_invoice(trip, with_gst=with_gst, extra_items=items)
    return render(
        request, "invoice.html", {"invoice": invoice, "trip": trip, "company": settings},
        status_code=status_code, user=user,
    )


# ---------------- Maintenance ----------------

@app.post("/maintenance")
async def maintenance_create(request: Request, db: Session = Depends(get_db)):
    return await _create(request, db, KINDS["maintenance"])


@app.get("/maintenance/edit/{record_id}", response_class=HTMLResponse)
def maintenance_edit_page(record_id: int, request: Request, db: Session = Depends(get_db)):
    return _edit_page(request, db, KINDS["maintenance"], record_id)


@app.post("/maintenance/edit/{record_id}")
async def maintenance_edit(record_id: int, request: Request, db: Session = Depends(get_db)):
    return await _edit(request, db, KINDS["maintenance"], record_id)


@app.post("/maintenance/delete/{record_id}")
def maintenance_delete(record_id: int, request: Request, db: Session = Depends(get_db)):
    return _delete(request, db, KINDS["maintenance"], record_id)


@app.get("/maintenance/export")
def maintenance_export(request: Request, db: Session = Depends(get_db)):
    return _export(request, db, KINDS["maintenance"])


@app.get("/maintenance/template")
def maintenance_template(request: Request, db: Session = Depends(get_db)):
    return _template(request, db, KINDS["maintenance"])


@app.post("/maintenance/import")
async def maintenance_import(request: Request, file: UploadFile = File(...), db: Session = Depends(get_db)):
    return await _import(request, db, KINDS["maintenance"], file)


# ---------------- Outside Vehicle Trips ----------------

@app.post("/outside-trips")
async def outside_create(request: Request, db: Session = Depends(get_db)):
    return await _create(request, db, KINDS["outside-trips"])


@app.get("/outside-trips/edit/{trip_id}", response_class=HTMLResponse)
def outside_edit_page(trip_id: int, request: Request, db: Session = Depends(get_db)):
    return _edit_page(request, db, KINDS["outside-trips"], trip_id)


@app.post("/outside-trips/edit/{trip_id}")
async def outside_edit(trip_id: int, request: Request, db: Session = Depends(get_db)):
    return await _edit(request, db, KINDS["outside-trips"], trip_id)


@app.post("/outside-trips/delete/{trip_id}")
def outside_delete(trip_id: int, request: Request, db: Session = Depends(get_db)):
    return _delete(request, db, KINDS["outside-trips"], trip_id)


@app.post("/outside-trips/status/{trip_id}")
def outside_status(trip_id: int, request: Request, status: str = Form(...), db: Session = Depends(get_db)):
    return _set_status(request, db, KINDS["outside-trips"], trip_id, status)


@app.get("/outside-trips/export")
def outside_export(request: Request, db: Session = Depends(get_db)):
    return _export(request, db, KINDS["outside-trips"])


@app.get("/outside-trips/template")
def outside_template(request: Request, db: Session = Depends(get_db)):
    return _template(request, db, KINDS["outside-trips"])


@app.post("/outside-trips/import")
async def outside_import(request: Request, file: UploadFile = File(...), db: Session = Depends(get_db)):
    return await _import(request, db, KINDS["outside-trips"], file)


# ---------------- Reports ----------------

def _month_or_current(request: Request, month: Optional[str]):
    if not month:
        return current_month()
    try:
        return parse_month(month)
    except ValueError as exc:
        flash(request, str(exc), "error")
        return current_month()


def _expense_range(request: Request, kind: str, preset: str, start: str, end: str):
    """Preset or custom range; anything invalid falls back to this month."""
    try:
        flt = filter_from_params(kind, start=start, end=end, preset=preset)
        return flt, resolve(flt)
    except InvertedRangeError as exc:
        flash(request, f"Invalid date range: {exc}", "error")
    except ValueError as exc:
        flash(request, str(exc), "error")
    flt = Preset("this_month")
    return flt, resolve(flt)


@app.get("/reports/monthly", response_class=HTMLResponse)
def reports_monthly(request: Request, month: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Trips, revenue, profit and maintenance for one calendar month."""
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    m = _month_or_current(request, month)
    date_range = resolve(m)
    try:
        trips = crud.list_trips(db, user, date_range)
        maintenance = crud.list_maintenance(db, user, date_range)
    except SQLAlchemyError:
        store_failed(request, db, "load the monthly report")
        trips, maintenance, report = [], [], None
    else:
        report = monthly_report(m, trips, maintenance)

    return render(
        request,
        "reports_monthly.html",
        {
            "report": report,
            "title": month_label(date_range.start),
            "trips": trips,
            "maintenance": maintenance,
            "month": m.value,
            "month_options": month_options(),
        },
        user=user,
    )


@app.get("/reports/monthly/export")
def reports_monthly_export(request: Request, month: Optional[str] = Query(None), db: Session = Depends(get_db)):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    m = _month_or_current(request, month)
    date_range = resolve(m)
    try:
        trips = crud.list_trips(db, user, date_range)
        maintenance = crud.list_maintenance(db, user, date_range)
    except SQLAlchemyError:
        store_failed(request, db, "export the monthly report")
        return RedirectResponse(url="/reports/monthly", status_code=303)

    report = monthly_report(m, trips, maintenance)
    content = spreadsheets.report_workbook(
        report.summary_rows(),
        [("Trips", TRIP_COLUMNS, trips), ("Maintenance", MAINTENANCE_COLUMNS, maintenance)],
    )
    return xlsx_response(content, spreadsheets.export_filename("monthly-report", m.value))


@app.get("/reports/trends", response_class=HTMLResponse)
def reports_trends(request: Request, months: str = Query("6"), db: Session = Depends(get_db)):
    """Month-by-month revenue, expenses, profit and maintenance, plus maintenance by type."""
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    if not months.isdigit() or int(months) not in TREND_PERIODS:
        flash(request, f"Unknown period: {months!r}", "error")
        months = "6"
    count = int(months)
    date_range = trailing_months(count)
    try:
        trips = crud.list_trips(db, user, date_range)
        maintenance = crud.list_maintenance(db, user, date_range)
    except SQLAlchemyError:
        store_failed(request, db, "load the trends report")
        series, by_type = None, None
    else:
        series = monthly_series(trips, maintenance, count)
        by_type = maintenance_by_type(maintenance)

    return render(
        request,
        "reports_trends.html",
        {
            "series": series,
            "by_type": by_type,
            "months": count,
            "periods": TREND_PERIODS,
            "date_range": date_range,
        },
        user=user,
    )


@app.get("/reports/expenses", response_class=HTMLResponse)
def reports_expenses(
    request: Request,
    kind: str = Query("preset"),
    preset: str = Query("this_month"),
    start: str = Query(""),
    end: str = Query(""),
    db: Session = Depends(get_db),
):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    flt, date_range = _expense_range(request, kind, preset, start, end)
    try:
        trips = crud.list_trips(db, user, date_range)
    except SQLAlchemyError:
        store_failed(request, db, "load the expenses report")
        trips, report = [], None
    else:
        report = expense_report(date_range, trips)

    return render(
        request,
        "reports_expenses.html",
        {
            "report": report,
            "date_range": date_range,
            "trips": trips,
            "filter": filter_to_dict(flt),
            "presets": {p: PRESET_LABELS[p] for p in PRESETS},
        },
        user=user,
    )


@app.get("/reports/expenses/export")
def reports_expenses_export(
    request: Request,
    kind: str = Query("preset"),
    preset: str = Query("this_month"),
    start: str = Query(""),
    end: str = Query(""),
    db: Session = Depends(get_db),
):
    user = require_login(request, db)
    if isinstance(user, RedirectResponse):
        return user

    _, date_range = _expense_range(request, kind, preset, start, end)
    try:
        trips = crud.list_trips(db, user, date_range)
    except SQLAlchemyError:
        store_failed(request, db, "export the expenses report")
        return RedirectResponse(url="/reports/expenses", status_code=303)

    report = expense_report(date_range, trips)
    content = spreadsheets.report_workbook(report.summary_rows(), [("Expenses", EXPENSE_COLUMNS, trips)])
    return xlsx_response(content, spreadsheets.export_filename("expenses", date_range))
