# taxidesk/date_ranges.py
"""
Date filters and their translation into inclusive date ranges.

A filter is exactly one of Monthly / Yearly / Custom / Preset. ``resolve``
turns it into a ``DateRange`` whose bounds are used verbatim as
``date >= start`` and ``date <= end`` predicates.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Tuple, Union

PRESETS = ("this_month", "last_month", "last_30")
FILTER_KINDS = ("monthly", "yearly", "custom", "preset")


class InvertedRangeError(ValueError):
    """Custom range whose end date falls before its start date."""

    def __init__(self, start: date, end: date):
        super().__init__(f"End date {end.isoformat()} is before start date {start.isoformat()}")
        self.start = start
        self.end = end


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def bounds(self) -> Tuple[str, str]:
        """Zero-padded YYYY-MM-DD strings; safe for lexicographic comparison."""
        return self.start.isoformat(), self.end.isoformat()

    def label(self) -> str:
        return f"{self.start.strftime('%d %b %Y')} - {self.end.strftime('%d %b %Y')}"


@dataclass(frozen=True)
class Monthly:
    year: int
    month: int
    kind: str = "monthly"

    @property
    def value(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class Yearly:
    year: int
    kind: str = "yearly"


@dataclass(frozen=True)
class Custom:
    start: date
    end: date
    kind: str = "custom"


@dataclass(frozen=True)
class Preset:
    name: str
    kind: str = "preset"


DateFilter = Union[Monthly, Yearly, Custom, Preset]


def first_of_month(year: int, month: int) -> date:
    return date(year, month, 1)


def last_of_month(year: int, month: int) -> date:
    # day 0 of the following month
    if month == 12:
        return date(year + 1, 1, 1) - timedelta(days=1)
    return date(year, month + 1, 1) - timedelta(days=1)


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def trailing_months(months: int, today: Optional[date] = None) -> DateRange:
    """The last `months` calendar months, the current one included."""
    if months < 1:
        raise ValueError(f"Need at least one month, got {months}")
    today = today or date.today()
    year, month = shift_month(today.year, today.month, -(months - 1))
    return DateRange(first_of_month(year, month), last_of_month(today.year, today.month))


def resolve(flt: DateFilter, today: Optional[date] = None) -> DateRange:
    if isinstance(flt, Monthly):
        return DateRange(first_of_month(flt.year, flt.month), last_of_month(flt.year, flt.month))
    if isinstance(flt, Yearly):
        return DateRange(date(flt.year, 1, 1), date(flt.year, 12, 31))
    if isinstance(flt, Custom):
        if flt.end < flt.start:
            raise InvertedRangeError(flt.start, flt.end)
        return DateRange(flt.start, flt.end)
    if isinstance(flt, Preset):
        return resolve(expand_preset(flt.name, today), today)
    raise TypeError(f"Unsupported filter: {flt!r}")


def expand_preset(name: str, today: Optional[date] = None) -> DateFilter:
    """Reduce a named preset to one of the primitive filters."""
    today = today or date.today()
    if name == "this_month":
        return Monthly(today.year, today.month)
    if name == "last_month":
        year, month = shift_month(today.year, today.month, -1)
        return Monthly(year, month)
    if name == "last_30":
        return Custom(today - timedelta(days=29), today)
    raise ValueError(f"Unknown preset: {name}")


def current_month(today: Optional[date] = None) -> Monthly:
    today = today or date.today()
    return Monthly(today.year, today.month)


def parse_month(value: str) -> Monthly:
    try:
        year_s, month_s = value.strip().split("-")
        year, month = int(year_s), int(month_s)
    except (AttributeError, ValueError):
        raise ValueError(f"Month must look like YYYY-MM, got {value!r}")
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {value!r}")
    return Monthly(year, month)


def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValueError(f"Date must look like YYYY-MM-DD, got {value!r}")


def filter_from_params(
    kind: Optional[str],
    month: Optional[str] = None,
    year: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    preset: Optional[str] = None,
) -> DateFilter:
    """Build a filter from request parameters; only the active variant's fields are read."""
    kind = (kind or "monthly").strip().lower()
    if kind == "monthly":
        if not month:
            raise ValueError("Select a month")
        return parse_month(month)
    if kind == "yearly":
        try:
            return Yearly(int(str(year).strip()))
        except ValueError:
            raise ValueError(f"Year must be a number, got {year!r}")
    if kind == "custom":
        if not start or not end:
            raise ValueError("Select both a start and an end date")
        return Custom(parse_day(start), parse_day(end))
    if kind == "preset":
        if preset not in PRESETS:
            raise ValueError(f"Unknown preset: {preset!r}")
        return Preset(preset)
    raise ValueError(f"Unknown filter type: {kind!r}")


def filter_to_dict(flt: DateFilter) -> dict:
    if isinstance(flt, Monthly):
        return {"kind": "monthly", "month": flt.value}
    if isinstance(flt, Yearly):
        return {"kind": "yearly", "year": str(flt.year)}
    if isinstance(flt, Custom):
        return {"kind": "custom", "start": flt.start.isoformat(), "end": flt.end.isoformat()}
    return {"kind": "preset", "preset": flt.name}


def filter_from_dict(data: dict) -> DateFilter:
    return filter_from_params(
        data.get("kind"),
        month=data.get("month"),
        year=data.get("year"),
        start=data.get("start"),
        end=data.get("end"),
        preset=data.get("preset"),
    )


def month_label(day: date) -> str:
    return day.strftime("%B %Y")


def month_options(today: Optional[date] = None, count: int = 12) -> List[Tuple[str, str]]:
    """(YYYY-MM, 'Month Year') pairs, current month first."""
    today = today or date.today()
    options = []
    for i in range(count):
        year, month = shift_month(today.year, today.month, -i)
        options.append((f"{year:04d}-{month:02d}", month_label(date(year, month, 1))))
    return options


def year_options(today: Optional[date] = None, count: int = 5) -> List[str]:
    today = today or date.today()
    return [str(today.year - i) for i in range(count)]
