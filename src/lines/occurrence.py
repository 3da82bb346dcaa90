from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Literal, Optional

from .collisions import CollisionRange, is_overnight_shift
from .shared import parse_iso_date, parse_start_time, parse_time, to_iso_date

EventStatus = Literal["cancelled", "ended", "current", "upcoming"]


@dataclass
class Line:
    id: Optional[int]
    venue_id: int
    name: str
    days: list[int]
    start_time: str
    end_time: str
    frequency: str
    color: str
    created: Optional[str] = None
    modified: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Line":
        return cls(
            id=row["id"],
            venue_id=row["venue_id"],
            name=row["name"],
            days=json.loads(row["days"] or "[]"),
            start_time=row["start_time"],
            end_time=row["end_time"],
            frequency=row["frequency"],
            color=row["color"],
            created=row["created"],
            modified=row["modified"],
        )

    @property
    def is_overnight(self) -> bool:
        return is_overnight_shift(self.start_time, self.end_time)


@dataclass
class Occurrence:
    id: Optional[int]
    line_id: int
    venue_id: int
    date: str
    start_time: str
    end_time: str
    is_expected: bool
    is_active: bool = True
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    contact: Optional[str] = None
    created: Optional[str] = None
    modified: Optional[str] = None
    line_name: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Occurrence":
        keys = row.keys()
        return cls(
            id=row["id"],
            line_id=row["line_id"],
            venue_id=row["venue_id"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            is_expected=bool(row["is_expected"]),
            is_active=bool(row["is_active"]),
            title=row["title"],
            subtitle=row["subtitle"],
            description=row["description"],
            location=row["location"],
            contact=row["contact"],
            created=row["created"],
            modified=row["modified"],
            line_name=row["line_name"] if "line_name" in keys else None,
        )

    @property
    def is_overnight(self) -> bool:
        return is_overnight_shift(self.start_time, self.end_time)

    def as_range(self) -> CollisionRange:
        return CollisionRange(
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            line_id=self.line_id,
            line_name=self.line_name,
        )

    def bounds(self) -> tuple[datetime, datetime]:
        """Local-naive start and end; overnight ends fall on the next day."""
        day = parse_iso_date(self.date)
        start_h, start_m = parse_time(self.start_time)
        end_h, end_m = parse_time(self.end_time)
        start_dt = datetime(day.year, day.month, day.day, start_h % 24, start_m)
        end_dt = datetime(day.year, day.month, day.day) + timedelta(
            hours=end_h, minutes=end_m
        )
        if self.is_overnight and self.end_time != "24:00":
            end_dt += timedelta(days=1)
        return start_dt, end_dt


@dataclass(frozen=True)
class OccurrenceInput:
    """
    One entry in the replacement set handed to ``sync_occurrences``.

    ``is_expected`` records where the date came from: True for dates the
    recurrence rule produced, False for dates a user added by hand. Times
    left as None fall back to the line's defaults.
    """

    date: str
    is_expected: bool
    is_active: bool = True
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "date", to_iso_date(self.date))
        if self.start_time is not None:
            parse_start_time(self.start_time)
        if self.end_time is not None:
            parse_time(self.end_time)

    @classmethod
    def generated(cls, date: str, **overrides) -> "OccurrenceInput":
        return cls(date=date, is_expected=True, **overrides)

    @classmethod
    def manual(cls, date: str, **overrides) -> "OccurrenceInput":
        return cls(date=date, is_expected=False, **overrides)


@dataclass
class LineSummary:
    total_events: int = 0
    active_events: int = 0
    cancelled_events: int = 0


@dataclass
class Neighbors:
    previous: Optional[Occurrence] = None
    next: Optional[Occurrence] = None


@dataclass
class CalendarEntry:
    occurrence: Occurrence
    is_overnight: bool
    status: EventStatus = field(default="upcoming")


def event_status(occurrence: Occurrence, now: datetime | None = None) -> EventStatus:
    """
    "cancelled" for inactive occurrences, otherwise "ended", "current"
    or "upcoming" relative to ``now``. Both ends are inclusive.
    """
    if not occurrence.is_active:
        return "cancelled"
    now = now or datetime.now()
    start_dt, end_dt = occurrence.bounds()
    if now > end_dt:
        return "ended"
    if start_dt <= now <= end_dt:
        return "current"
    return "upcoming"


def calculate_hour_bounds(occurrences: list[Occurrence]) -> tuple[int, int]:
    """
    Hours to show in a compressed calendar: one hour of padding around the
    earliest start and latest end, clamped to 0..24. An end of "24:00"
    counts as hour 0, matching how overnight ends wrap.
    """
    if not occurrences:
        return 0, 24
    hours: list[int] = []
    for occ in occurrences:
        start_h, _ = parse_time(occ.start_time)
        end_h, _ = parse_time(occ.end_time)
        hours.extend([start_h, 0 if end_h == 24 else end_h])
    return max(0, min(hours) - 1), min(24, max(hours) + 1)
