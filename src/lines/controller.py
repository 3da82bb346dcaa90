from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from .collisions import CollisionRange, CollisionResult, check_multiple_collisions
from .errors import (
    CollisionError,
    LineNotFoundError,
    PaletteExhaustedError,
    ValidationError,
)
from .lines_env import LinesEnvironment
from .model import DatabaseManager
from .occurrence import (
    CalendarEntry,
    Line,
    LineSummary,
    Neighbors,
    Occurrence,
    OccurrenceInput,
    calculate_hour_bounds,
    event_status,
)
from .schedule import RecurrenceRule
from .shared import log_msg, set_logging, to_iso_date
from .sync import OccurrenceSynchronizer


class Controller:
    """
    Everything a request handler would do around the scheduling core:
    look up lines, run the collision check before committing, carry manual
    dates and cancellations across a regeneration, and report on the
    resulting calendar.
    """

    def __init__(self, database_path: str, env: LinesEnvironment, reset: bool = False):
        self.env = env
        self.config = env.config
        set_logging(self.config.logging.enabled)

        self.db_manager = DatabaseManager(database_path, reset=reset)
        self.synchronizer = OccurrenceSynchronizer(self.db_manager)

        self.horizon_months = self.config.schedule.horizon_months
        self.palette = list(self.config.venue.palette)
        self.max_lines = min(self.config.venue.max_lines, len(self.palette))
        self.ampm = self.config.ui.ampm
        _yr = "%Y"
        _dm = "%d-%m" if self.config.ui.dayfirst else "%m-%d"
        self.datefmt = f"{_yr}-{_dm}" if self.config.ui.yearfirst else f"{_dm}-{_yr}"

    def close(self):
        self.db_manager.close()

    def fmt_user(self, value: date | str) -> str:
        if isinstance(value, str):
            value = datetime.strptime(to_iso_date(value), "%Y-%m-%d").date()
        return value.strftime(self.datefmt)

    # ---------------- lines ----------------

    def get_line(self, line_id: int) -> Line:
        line = self.db_manager.get_line(line_id)
        if line is None:
            raise LineNotFoundError(line_id)
        return line

    def list_lines(self, venue_id: int) -> list[Line]:
        return self.db_manager.get_lines_for_venue(venue_id)

    def available_colors(self, venue_id: int, exclude_line_id: int | None = None) -> list[str]:
        used = {
            line.color
            for line in self.db_manager.get_lines_for_venue(venue_id)
            if line.id != exclude_line_id
        }
        return [color for color in self.palette if color not in used]

    def next_available_color(self, venue_id: int) -> str:
        available = self.available_colors(venue_id)
        if not available:
            raise PaletteExhaustedError(
                "every color is taken; delete a line to free one up"
            )
        return available[0]

    def create_line(
        self,
        venue_id: int,
        name: str,
        days: Iterable[int],
        start_time: str,
        end_time: str,
        frequency: str,
        color: str | None = None,
        *,
        selected_dates: Optional[list[str]] = None,
        manual_dates: Optional[list[str]] = None,
        anchor_date: date | str | None = None,
    ) -> Line:
        """
        Create a line and its occurrences.

        Without ``selected_dates`` the expected dates come from the
        recurrence rule. ``manual_dates`` not already selected are added as
        manual occurrences. Raises CollisionError before anything is written
        when the dates overlap active occurrences of other lines.
        """
        if not name or not name.strip():
            raise ValidationError("a line needs a name")
        rule = self._rule(days, frequency, start_time, end_time, anchor_date)

        if self.db_manager.count_lines(venue_id) >= self.max_lines:
            raise PaletteExhaustedError(
                f"venue {venue_id} already has {self.max_lines} lines"
            )
        if color is None:
            color = self.next_available_color(venue_id)
        elif color not in self.available_colors(venue_id):
            raise ValidationError(f"color {color} is not available for this venue")

        line = Line(
            id=None,
            venue_id=venue_id,
            name=name.strip(),
            days=sorted(rule.days_of_week),
            start_time=start_time,
            end_time=end_time,
            frequency=frequency,
            color=color,
        )
        if selected_dates is None:
            selected_dates = rule.suggestions()
        inputs = self._explicit_inputs(selected_dates, manual_dates)
        self._ensure_no_collisions(line, inputs)

        with self.db_manager.transaction():
            line.id = self.db_manager.add_line(line)
            self.synchronizer.sync_occurrences(line, inputs)

        log_msg(f"created line {line.id} '{line.name}' with {len(inputs)} occurrences")
        return self.get_line(line.id)

    def update_line(
        self,
        line_id: int,
        *,
        name: str | None = None,
        days: Optional[Iterable[int]] = None,
        start_time: str | None = None,
        end_time: str | None = None,
        frequency: str | None = None,
        color: str | None = None,
        selected_dates: Optional[list[str]] = None,
        manual_dates: Optional[list[str]] = None,
        anchor_date: date | str | None = None,
    ) -> Line:
        """
        Update a line's fields and, when its schedule changed, its occurrences.

        With ``selected_dates`` or ``manual_dates`` the occurrences are
        replaced by exactly those dates. Otherwise a change to days,
        frequency or times regenerates the expected dates from the rule,
        re-supplying the line's manual occurrences and keeping any date
        that was cancelled cancelled.
        """
        current = self.get_line(line_id)
        days = sorted(set(days)) if days is not None else None
        if color is not None and color not in self.available_colors(
            current.venue_id, exclude_line_id=line_id
        ):
            raise ValidationError(f"color {color} is not available for this venue")

        updated = Line(
            id=current.id,
            venue_id=current.venue_id,
            name=(name.strip() if name else current.name),
            days=days if days is not None else current.days,
            start_time=start_time or current.start_time,
            end_time=end_time or current.end_time,
            frequency=frequency or current.frequency,
            color=color or current.color,
        )
        rule = self._rule(
            updated.days,
            updated.frequency,
            updated.start_time,
            updated.end_time,
            anchor_date,
        )

        inputs: Optional[list[OccurrenceInput]] = None
        if selected_dates is not None or manual_dates is not None:
            inputs = self._explicit_inputs(selected_dates or [], manual_dates)
        elif any(v is not None for v in (days, frequency, start_time, end_time)):
            inputs = self.regenerated_inputs(current, rule)

        if inputs is not None:
            self._ensure_no_collisions(updated, inputs)

        with self.db_manager.transaction():
            self.db_manager.update_line(
                line_id,
                name=updated.name,
                days=updated.days,
                start_time=updated.start_time,
                end_time=updated.end_time,
                frequency=updated.frequency,
                color=updated.color,
            )
            if inputs is not None:
                self.synchronizer.sync_occurrences(updated, inputs)

        return self.get_line(line_id)

    def delete_line(self, line_id: int) -> None:
        self.get_line(line_id)
        self.db_manager.delete_line(line_id)

    # ---------------- occurrences ----------------

    def get_occurrences(self, line_id: int) -> list[Occurrence]:
        return self.db_manager.find_occurrences_by_line(line_id)

    def manual_inputs_for(self, line_id: int) -> list[OccurrenceInput]:
        """The line's manual occurrences, ready to pass back to sync_occurrences."""
        return [
            OccurrenceInput.manual(
                occ.date,
                is_active=occ.is_active,
                start_time=occ.start_time,
                end_time=occ.end_time,
            )
            for occ in self.db_manager.find_occurrences_by_line(line_id)
            if not occ.is_expected
        ]

    def regenerated_inputs(
        self, line: Line, rule: RecurrenceRule
    ) -> list[OccurrenceInput]:
        """
        Expected dates from ``rule`` plus the line's current manual dates.
        Dates that are currently cancelled stay cancelled.
        """
        cancelled = {
            occ.date
            for occ in self.db_manager.find_occurrences_by_line(line.id)
            if not occ.is_active
        }
        manual = self.manual_inputs_for(line.id)
        manual_dates = {occ.date for occ in manual}
        inputs = [
            OccurrenceInput.generated(d, is_active=d not in cancelled)
            for d in rule.suggestions()
            if d not in manual_dates
        ]
        return sorted(inputs + manual, key=lambda occ: occ.date)

    def add_manual_occurrence(
        self,
        line_id: int,
        date: str,
        start_time: str | None = None,
        end_time: str | None = None,
    ) -> Occurrence:
        line = self.get_line(line_id)
        start_time = start_time or line.start_time
        end_time = end_time or line.end_time
        self._ensure_no_collisions(
            line, [OccurrenceInput.manual(date, start_time=start_time, end_time=end_time)]
        )
        return self.synchronizer.add_manual_occurrence(
            line.id, line.venue_id, date, start_time, end_time
        )

    def cancel_occurrence(self, occurrence_id: int) -> None:
        self.synchronizer.cancel_occurrence(occurrence_id)

    def reactivate_occurrence(self, occurrence_id: int) -> None:
        self.synchronizer.reactivate_occurrence(occurrence_id)

    # ---------------- collisions ----------------

    def check_line_collisions(
        self,
        venue_id: int,
        new_ranges: Iterable[CollisionRange],
        exclude_line_id: int | None = None,
    ) -> CollisionResult:
        """
        Compare proposed ranges with the venue's active occurrences,
        leaving out ``exclude_line_id`` so a line never collides with itself.
        """
        existing = [
            occ.as_range()
            for occ in self.db_manager.find_occurrences_by_venue(venue_id)
            if occ.is_active and occ.line_id != exclude_line_id
        ]
        result = check_multiple_collisions(new_ranges, existing)
        if result.has_collision:
            log_msg(
                f"venue {venue_id}: {len(result.conflicting_ranges)} collisions "
                f"(excluding line {exclude_line_id})"
            )
        return result

    def _ensure_no_collisions(self, line: Line, inputs: list[OccurrenceInput]):
        new_ranges = [
            CollisionRange(
                date=occ.date,
                start_time=occ.start_time or line.start_time,
                end_time=occ.end_time or line.end_time,
                line_id=line.id,
                line_name=line.name,
            )
            for occ in inputs
            if occ.is_active
        ]
        result = self.check_line_collisions(line.venue_id, new_ranges, line.id)
        if result.has_collision:
            raise CollisionError(result)

    # ---------------- calendar ----------------

    def venue_calendar(
        self, venue_id: int, now: datetime | None = None
    ) -> list[CalendarEntry]:
        now = now or datetime.now()
        return [
            CalendarEntry(occ, occ.is_overnight, event_status(occ, now))
            for occ in self.db_manager.find_occurrences_by_venue(venue_id)
        ]

    def hour_bounds(self, venue_id: int) -> tuple[int, int]:
        return calculate_hour_bounds(self.db_manager.find_occurrences_by_venue(venue_id))

    def neighbor_occurrences(self, line_id: int, current_date: str) -> Neighbors:
        occurrences = self.db_manager.find_occurrences_by_line(line_id)
        current_date = to_iso_date(current_date)
        dates = [occ.date for occ in occurrences]
        if current_date not in dates:
            return Neighbors()
        index = dates.index(current_date)
        return Neighbors(
            previous=occurrences[index - 1] if index > 0 else None,
            next=occurrences[index + 1] if index < len(occurrences) - 1 else None,
        )

    def line_summary(self, line_id: int) -> LineSummary:
        total = self.db_manager.count_occurrences(line_id)
        active = self.db_manager.count_occurrences(line_id, active_only=True)
        return LineSummary(total, active, total - active)

    # ---------------- helpers ----------------

    def _rule(self, days, frequency, start_time, end_time, anchor_date) -> RecurrenceRule:
        return RecurrenceRule(
            days_of_week=frozenset(days),
            frequency=frequency,
            start_time=start_time,
            end_time=end_time,
            anchor_date=anchor_date if anchor_date is not None else date.today(),
            horizon_months=self.horizon_months,
        )

    @staticmethod
    def _explicit_inputs(
        selected_dates: list[str], manual_dates: Optional[list[str]]
    ) -> list[OccurrenceInput]:
        inputs = [OccurrenceInput.generated(d) for d in selected_dates]
        chosen = {occ.date for occ in inputs}
        for d in manual_dates or []:
            occ = OccurrenceInput.manual(d)
            if occ.date not in chosen:
                chosen.add(occ.date)
                inputs.append(occ)
        return inputs
