# taxidesk/ui_state.py
"""
Dashboard view state.

The state is an immutable value; every user action goes through ``reduce``.
It travels between requests as a plain dict in the signed session cookie.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional, Union

from taxidesk.date_ranges import DateFilter, current_month, filter_from_dict, filter_to_dict, resolve
from taxidesk.reports import PAYMENT_FILTERS

SECTIONS = ("trips", "maintenance", "outside-trips")


@dataclass(frozen=True)
class ViewState:
    section: str = "trips"
    filter: DateFilter = field(default_factory=current_month)
    show_add_form: bool = False
    editing_id: Optional[int] = None
    search: str = ""
    payment_status: str = "all"


# ---------------- Actions ----------------

@dataclass(frozen=True)
class SectionChanged:
    section: str


@dataclass(frozen=True)
class FilterChanged:
    filter: DateFilter
    today: Optional[date] = None


@dataclass(frozen=True)
class AddFormOpened:
    pass


@dataclass(frozen=True)
class FormClosed:
    """Cancel, or a submit that went through."""


@dataclass(frozen=True)
class EditStarted:
    record_id: int


@dataclass(frozen=True)
class SearchChanged:
    query: str


@dataclass(frozen=True)
class PaymentStatusChanged:
    status: str


Action = Union[
    SectionChanged, FilterChanged, AddFormOpened, FormClosed, EditStarted, SearchChanged, PaymentStatusChanged
]


def reduce(state: ViewState, action: Action) -> ViewState:
    if isinstance(action, SectionChanged):
        if action.section not in SECTIONS:
            raise ValueError(f"Unknown section: {action.section!r}")
        if action.section == state.section:
            return replace(state, show_add_form=False, editing_id=None)
        return replace(
            state, section=action.section, show_add_form=False, editing_id=None, search="", payment_status="all"
        )
    if isinstance(action, FilterChanged):
        # raises InvertedRangeError; the caller keeps the old state
        resolve(action.filter, action.today)
        return replace(state, filter=action.filter)
    if isinstance(action, AddFormOpened):
        return replace(state, show_add_form=True, editing_id=None)
    if isinstance(action, FormClosed):
        return replace(state, show_add_form=False, editing_id=None)
    if isinstance(action, EditStarted):
        return replace(state, show_add_form=False, editing_id=action.record_id)
    if isinstance(action, SearchChanged):
        return replace(state, search=(action.query or "").strip())
    if isinstance(action, PaymentStatusChanged):
        if action.status not in PAYMENT_FILTERS:
            raise ValueError(f"Unknown payment status filter: {action.status!r}")
        return replace(state, payment_status=action.status)
    raise TypeError(f"Unsupported action: {action!r}")


# ---------------- Session ----------------

def to_dict(state: ViewState) -> dict:
    return {
        "section": state.section,
        "filter": filter_to_dict(state.filter),
        "show_add_form": state.show_add_form,
        "editing_id": state.editing_id,
        "search": state.search,
        "payment_status": state.payment_status,
    }


def from_dict(data: Optional[dict]) -> ViewState:
    """Unknown or stale session payloads fall back to the default view."""
    if not data:
        return ViewState()
    try:
        flt = filter_from_dict(data.get("filter") or {})
    except ValueError:
        flt = current_month()
    section = data.get("section")
    status = data.get("payment_status")
    return ViewState(
        section=section if section in SECTIONS else "trips",
        filter=flt,
        show_add_form=bool(data.get("show_add_form")),
        editing_id=data.get("editing_id"),
        search=data.get("search") or "",
        payment_status=status if status in PAYMENT_FILTERS else "all",
    )
