"""
Recurrence generator: turn a line's schedule into concrete calendar dates.

Every function here is pure. Dates go in as ``date`` objects or
"YYYY-MM-DD" strings and come out as sorted, de-duplicated ISO strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Iterable, Literal

from dateutil.rrule import rrule, WEEKLY, MONTHLY

from .errors import ValidationError
from .shared import (
    add_months,
    next_weekday_on_or_after,
    parse_iso_date,
    parse_start_time,
    parse_time,
    to_dateutil_weekday,
    to_iso_date,
    validate_day,
)

Frequency = Literal["weekly", "monthly", "variable", "oneTime"]
FREQUENCIES: tuple[str, ...] = ("weekly", "monthly", "variable", "oneTime")
DEFAULT_HORIZON_MONTHS = 6


def validate_frequency(frequency: str) -> str:
    if frequency not in FREQUENCIES:
        raise ValidationError(
            f"invalid frequency {frequency!r}, expected one of {', '.join(FREQUENCIES)}"
        )
    return frequency


@dataclass(frozen=True)
class RecurrenceRule:
    """
    A line's schedule. Not persisted: the Lines table stores the same
    fields, and occurrences are what the rule expands into.
    """

    days_of_week: frozenset[int]
    frequency: str
    start_time: str
    end_time: str
    anchor_date: date = field(default_factory=date.today)
    horizon_months: int = DEFAULT_HORIZON_MONTHS

    def __post_init__(self):
        days = frozenset(validate_day(d) for d in self.days_of_week)
        object.__setattr__(self, "days_of_week", days)
        validate_frequency(self.frequency)
        parse_start_time(self.start_time)
        parse_time(self.end_time)
        object.__setattr__(self, "anchor_date", parse_iso_date(self.anchor_date))
        if self.horizon_months < 0:
            raise ValidationError(f"horizon_months must be >= 0: {self.horizon_months}")
        if self.frequency != "variable" and not days:
            raise ValidationError(f"a {self.frequency} line needs at least one day")

    def suggestions(self) -> list[str]:
        return generate_suggestions(
            self.days_of_week, self.frequency, self.anchor_date, self.horizon_months
        )


def generate_suggestions(
    days_of_week: Iterable[int],
    frequency: str,
    anchor_date: date | str | None = None,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[str]:
    """
    Generate the dates a line is expected to run on.

    Args:
        days_of_week: weekday indices, 0 = Sunday .. 6 = Saturday.
        frequency: "weekly", "monthly", "oneTime" or "variable".
        anchor_date: first day considered (inclusive). Defaults to today.
        horizon_months: calendar months past the anchor to generate through
            (inclusive cutoff). Ignored for "oneTime".

    Returns:
        Strictly ascending "YYYY-MM-DD" strings, all on or after the anchor.
        "variable" lines and empty day sets give an empty list.

    Raises:
        ValidationError: unknown frequency, a day outside 0-6, a malformed
            anchor or a negative horizon.
    """
    validate_frequency(frequency)
    days = sorted({validate_day(d) for d in days_of_week})
    anchor = parse_iso_date(anchor_date) if anchor_date is not None else date.today()
    if horizon_months < 0:
        raise ValidationError(f"horizon_months must be >= 0: {horizon_months}")

    if frequency == "variable" or not days:
        return []

    if frequency == "oneTime":
        found = _one_time(days, anchor)
    else:
        cutoff = add_months(anchor, horizon_months)
        if frequency == "weekly":
            found = _weekly(days, anchor, cutoff)
        else:
            found = _monthly(days, anchor, cutoff)

    return sorted({to_iso_date(d) for d in found if d >= anchor})


def _as_datetime(d: date) -> datetime:
    return datetime.combine(d, time(0, 0))


def _weekly(days: list[int], anchor: date, cutoff: date) -> list[date]:
    rule = rrule(
        WEEKLY,
        byweekday=[to_dateutil_weekday(d) for d in days],
        dtstart=_as_datetime(anchor),
        until=_as_datetime(cutoff),
    )
    return [dt.date() for dt in rule]


def _monthly(days: list[int], anchor: date, cutoff: date) -> list[date]:
    # first match on or after the anchor, then the first match of each later month
    next_month = _as_datetime(add_months(anchor.replace(day=1), 1))
    results: list[date] = []
    for d in days:
        results.append(next_weekday_on_or_after(anchor, d))
        rule = rrule(
            MONTHLY,
            byweekday=to_dateutil_weekday(d)(+1),
            dtstart=next_month,
            until=_as_datetime(cutoff),
        )
        results.extend(dt.date() for dt in rule)
    return [d for d in results if d <= cutoff]


def _one_time(days: list[int], anchor: date) -> list[date]:
    return [next_weekday_on_or_after(anchor, d) for d in days]
