"""
Collision detection for line occurrences.

Two events at the same venue may not overlap in time. A range whose end
time is not after its start time runs past midnight into the next date,
so ranges are compared as absolute minute intervals rather than per date.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .shared import (
    MINUTES_PER_DAY,
    minutes_since_epoch,
    parse_iso_date,
    parse_start_time,
    time_to_minutes,
)


@dataclass(frozen=True)
class CollisionRange:
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    line_id: Optional[int] = None
    line_name: Optional[str] = None

    def __post_init__(self):
        # fail early on malformed values rather than mid-comparison
        parse_iso_date(self.date)
        parse_start_time(self.start_time)
        time_to_minutes(self.end_time)

    @property
    def is_overnight(self) -> bool:
        return is_overnight_shift(self.start_time, self.end_time)

    def span(self) -> tuple[int, int]:
        """Half-open [start, end) in minutes since the proleptic epoch."""
        start = minutes_since_epoch(self.date, self.start_time)
        end = minutes_since_epoch(self.date, self.end_time)
        if self.is_overnight and self.end_time != "24:00":
            end += MINUTES_PER_DAY
        return start, end


@dataclass
class CollisionResult:
    has_collision: bool
    conflicting_ranges: list[CollisionRange] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.has_collision


def is_overnight_shift(start_time: str, end_time: str) -> bool:
    """
    True when the shift ends on the following calendar day, i.e. its end
    is not after its start ("22:00"-"02:00", and "10:00"-"10:00" as a full
    day). "24:00" always ends at midnight.
    """
    parse_start_time(start_time)
    if end_time == "24:00":
        return True
    return time_to_minutes(end_time) <= time_to_minutes(start_time)


def do_time_ranges_overlap(first: CollisionRange, second: CollisionRange) -> bool:
    """Touching ranges, where one ends as the other starts, do not overlap."""
    start1, end1 = first.span()
    start2, end2 = second.span()
    return start1 < end2 and start2 < end1


def check_collision(
    new_range: CollisionRange, existing_ranges: Iterable[CollisionRange]
) -> CollisionResult:
    """Stop at the first existing range that overlaps ``new_range``."""
    for existing in existing_ranges:
        if do_time_ranges_overlap(new_range, existing):
            return CollisionResult(True, [existing])
    return CollisionResult(False)


def check_multiple_collisions(
    new_ranges: Iterable[CollisionRange],
    existing_ranges: Iterable[CollisionRange],
) -> CollisionResult:
    """
    Compare every proposed range against every existing one, and the
    proposed ranges against each other.

    Every existing range hit by any proposed range is reported once, in
    input order. For overlapping pairs within ``new_ranges`` the later
    range of the pair is reported. Callers exclude the edited line's own
    occurrences and cancelled occurrences from ``existing_ranges``; the
    detector does not look at ``line_id``.
    """
    new_ranges = list(new_ranges)
    existing_ranges = list(existing_ranges)
    conflicts: list[CollisionRange] = []

    for existing in existing_ranges:
        if any(do_time_ranges_overlap(new, existing) for new in new_ranges):
            conflicts.append(existing)

    # by position: equal ranges are still separate conflicts
    reported: set[int] = set()
    for i, first in enumerate(new_ranges):
        for j in range(i + 1, len(new_ranges)):
            second = new_ranges[j]
            if j not in reported and do_time_ranges_overlap(first, second):
                reported.add(j)
                conflicts.append(second)

    return CollisionResult(bool(conflicts), conflicts)
