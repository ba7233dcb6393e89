"""
Cadence Normalizer

Two jobs, used by nearly every other engine module:
1. Convert an amount at any cadence into its monthly equivalent
2. Project the next occurrence date of a cadence from an anchor date

DESIGN DECISION: Monthly equivalents are NOT rounded here.
They feed sums and products further down; rounding happens once, where a
figure leaves the engine. This keeps monthly_equivalent exactly linear in
the amount.

Month-family cadences (monthly, quarterly, yearly, custom months/years)
are searched month by month from today. The search is capped at 36 months
so a pathological cycle length always terminates with None.
"""

import calendar
import math
import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

import structlog

from finance_engine.engine.numeric import finite_or_zero
from finance_engine.models.records import Cadence, CustomCadenceUnit


logger = structlog.get_logger(__name__)

DAYS_PER_YEAR = 365.2425
MONTH_SEARCH_LIMIT = 36
MAX_COMPLETED_CYCLES = 600

_MONTH_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}$")
_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_MONTH_CYCLES = {
    Cadence.MONTHLY: 1,
    Cadence.QUARTERLY: 3,
    Cadence.YEARLY: 12,
}

DateLike = Union[date, datetime]


# ===== CALENDAR HELPERS =====

def as_date(value: DateLike) -> date:
    """Start-of-day view of a date or timestamp."""
    if isinstance(value, datetime):
        return value.date()
    return value


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def date_with_clamped_day(year: int, month: int, day: int) -> date:
    """
    Build a date, clamping the day into 1..days-in-month.

    month may run past 12 (or below 1); it rolls into the next (or previous) year.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, min(max(day, 1), days_in_month(year, month)))


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def month_key(value: DateLike) -> str:
    """'YYYY-MM' for a date."""
    value = as_date(value)
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_key(value: str) -> Optional[date]:
    """First day of the month named by a 'YYYY-MM' key, or None."""
    if not isinstance(value, str) or not _MONTH_KEY_PATTERN.match(value):
        return None
    year, month = int(value[:4]), int(value[5:7])
    if month < 1 or month > 12:
        return None
    return date(year, month, 1)


def parse_iso_date(value: str) -> Optional[date]:
    """Strict 'YYYY-MM-DD' parse; impossible dates (2026-02-30) give None."""
    if not isinstance(value, str) or not _ISO_DATE_PATTERN.match(value):
        return None
    try:
        return date(int(value[:4]), int(value[5:7]), int(value[8:10]))
    except ValueError:
        return None


def add_calendar_months_keeping_day(value: DateLike, months: int) -> date:
    """Jan 31 + 1 month is Feb 28 (or 29), never March."""
    value = as_date(value)
    return date_with_clamped_day(value.year, value.month + months, value.day)


def count_completed_monthly_cycles(since: DateLike, now: DateLike) -> int:
    """
    Number of whole calendar-month boundaries passed between since and now.

    Each step re-anchors on the previous clamped date, so a cycle started on
    the 31st drifts to the 28th after February.
    """
    today = as_date(now)
    marker = as_date(since)
    cycles = 0
    for _ in range(MAX_COMPLETED_CYCLES):
        following = add_calendar_months_keeping_day(marker, 1)
        if following > today:
            break
        marker = following
        cycles += 1
    return cycles


def resolve_cadence_anchor_date(created_at: DateLike, pay_date_anchor: Optional[str] = None) -> date:
    """A valid ISO pay-date anchor wins over the record's creation date."""
    if pay_date_anchor:
        parsed = parse_iso_date(pay_date_anchor)
        if parsed is not None:
            return parsed
    return as_date(created_at)


# ===== MONTHLY EQUIVALENT =====

def _valid_custom_interval(custom_interval: Optional[float]) -> bool:
    interval = finite_or_zero(custom_interval)
    return interval > 0


def monthly_equivalent(
    amount: float,
    cadence: Cadence,
    custom_interval: Optional[int] = None,
    custom_unit: Optional[CustomCadenceUnit] = None,
) -> float:
    """
    Convert an amount at the given cadence into a per-month amount.

    weekly x52/12, biweekly x26/12, quarterly /3, yearly /12.
    Custom day and week intervals use the mean Gregorian year (365.2425 days).
    one_time and any invalid custom configuration give 0.
    """
    amount = finite_or_zero(amount)

    if cadence == Cadence.WEEKLY:
        return amount * 52 / 12
    if cadence == Cadence.BIWEEKLY:
        return amount * 26 / 12
    if cadence == Cadence.MONTHLY:
        return amount
    if cadence == Cadence.QUARTERLY:
        return amount / 3
    if cadence == Cadence.YEARLY:
        return amount / 12
    if cadence == Cadence.CUSTOM:
        if not _valid_custom_interval(custom_interval) or custom_unit is None:
            return 0.0
        interval = float(custom_interval)
        if custom_unit == CustomCadenceUnit.DAYS:
            return amount * DAYS_PER_YEAR / (interval * 12)
        if custom_unit == CustomCadenceUnit.WEEKS:
            return amount * DAYS_PER_YEAR / (interval * 7 * 12)
        if custom_unit == CustomCadenceUnit.MONTHS:
            return amount / interval
        if custom_unit == CustomCadenceUnit.YEARS:
            return amount / (interval * 12)
        return 0.0
    # one_time and anything unrecognised
    return 0.0


def occurrences_per_month(
    cadence: Cadence,
    custom_interval: Optional[int] = None,
    custom_unit: Optional[CustomCadenceUnit] = None,
) -> float:
    """How many times a cadence fires in an average month."""
    return monthly_equivalent(1, cadence, custom_interval, custom_unit)


# ===== NEXT OCCURRENCE =====

def _next_by_day_interval(anchor: date, today: date, interval_days: int) -> date:
    if anchor >= today:
        return anchor
    steps = math.ceil((today - anchor).days / interval_days)
    return anchor + timedelta(days=steps * interval_days)


def _next_by_month_cycle(day: int, cycle_months: int, anchor: date, today: date) -> Optional[date]:
    anchor_month_start = anchor.replace(day=1)
    for offset in range(MONTH_SEARCH_LIMIT):
        candidate = date_with_clamped_day(today.year, today.month + offset, day)
        month_diff = months_between(anchor_month_start, candidate)
        if candidate >= today and month_diff >= 0 and month_diff % cycle_months == 0:
            return candidate

    logger.debug(
        "cadence_month_search_exhausted",
        cycle_months=cycle_months,
        anchor=anchor.isoformat(),
        today=today.isoformat(),
    )
    return None


def next_occurrence(
    cadence: Cadence,
    anchor: DateLike,
    now: DateLike,
    day_of_month: Optional[int] = None,
    custom_interval: Optional[int] = None,
    custom_unit: Optional[CustomCadenceUnit] = None,
) -> Optional[date]:
    """
    Next date on or after today on which the cadence falls due.

    Args:
        cadence: The recurrence pattern
        anchor: Creation timestamp or pay-date anchor the schedule counts from
        now: Current time; only its date matters
        day_of_month: Target day for month-family and one-time cadences,
                      clamped to the length of each candidate month.
                      Defaults to the anchor's day.
        custom_interval: Interval for custom cadences
        custom_unit: Unit for custom cadences

    Returns:
        The projected date, or None when the cadence is one-time and already
        past, the custom configuration is invalid, or no month within the
        search limit matches.
    """
    today = as_date(now)
    anchor_date = as_date(anchor)
    day = anchor_date.day if day_of_month is None else int(day_of_month)

    if cadence == Cadence.ONE_TIME:
        candidate = date_with_clamped_day(anchor_date.year, anchor_date.month, min(max(day, 1), 31))
        scheduled = anchor_date if candidate < anchor_date else candidate
        return scheduled if scheduled >= today else None

    if cadence == Cadence.WEEKLY:
        return _next_by_day_interval(anchor_date, today, 7)
    if cadence == Cadence.BIWEEKLY:
        return _next_by_day_interval(anchor_date, today, 14)

    if cadence == Cadence.CUSTOM:
        interval = int(finite_or_zero(custom_interval))
        if interval <= 0 or custom_unit is None:
            logger.debug("cadence_custom_unresolvable", interval=custom_interval, unit=custom_unit)
            return None
        if custom_unit == CustomCadenceUnit.DAYS:
            return _next_by_day_interval(anchor_date, today, interval)
        if custom_unit == CustomCadenceUnit.WEEKS:
            return _next_by_day_interval(anchor_date, today, interval * 7)
        cycle_months = interval if custom_unit == CustomCadenceUnit.MONTHS else interval * 12
        return _next_by_month_cycle(day, cycle_months, anchor_date, today)

    cycle_months = _MONTH_CYCLES.get(cadence)
    if cycle_months is None:
        return None
    return _next_by_month_cycle(day, cycle_months, anchor_date, today)
