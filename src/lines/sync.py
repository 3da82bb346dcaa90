"""
Occurrence synchronizer: keeps the stored occurrences of a line in step
with the set of dates the caller wants.
"""

from __future__ import annotations

from typing import Iterable

from .errors import DuplicateDateError, OccurrenceNotFoundError
from .model import DatabaseManager
from .occurrence import Line, Occurrence, OccurrenceInput
from .shared import log_msg, parse_start_time, parse_time, to_iso_date


class OccurrenceSynchronizer:
    def __init__(self, storage: DatabaseManager):
        self.storage = storage

    def sync_occurrences(self, line: Line, inputs: Iterable[OccurrenceInput]) -> int:
        """
        Replace every stored occurrence of ``line`` with ``inputs``.

        All existing rows for the line are deleted, manual ones included.
        A manual date survives only when it is passed again in ``inputs``.
        Missing times fall back to the line's defaults. When a date appears
        more than once the first entry wins. The delete and insert share a
        single transaction, so a failure leaves the previous rows in place.

        Returns the number of occurrences stored.
        """
        records: list[Occurrence] = []
        seen: set[str] = set()
        for occ in inputs:
            if occ.date in seen:
                continue
            seen.add(occ.date)
            records.append(
                Occurrence(
                    id=None,
                    line_id=line.id,
                    venue_id=line.venue_id,
                    date=occ.date,
                    start_time=occ.start_time or line.start_time,
                    end_time=occ.end_time or line.end_time,
                    is_expected=occ.is_expected,
                    is_active=occ.is_active,
                )
            )

        with self.storage.transaction():
            removed = self.storage.delete_occurrences_by_line(line.id)
            stored = self.storage.bulk_insert_occurrences(records)

        log_msg(f"line {line.id}: replaced {removed} occurrences with {stored}")
        return stored

    def add_manual_occurrence(
        self,
        line_id: int,
        venue_id: int,
        date: str,
        start_time: str,
        end_time: str,
    ) -> Occurrence:
        """
        Add a single hand-picked date to a line.

        Raises:
            DuplicateDateError: the line already has an occurrence on ``date``.
                Nothing is written.
        """
        date = to_iso_date(date)
        parse_start_time(start_time)
        parse_time(end_time)
        if self.storage.find_occurrence_by_line_and_date(line_id, date):
            raise DuplicateDateError(line_id, date)

        occurrence = self.storage.insert_occurrence(
            Occurrence(
                id=None,
                line_id=line_id,
                venue_id=venue_id,
                date=date,
                start_time=start_time,
                end_time=end_time,
                is_expected=False,
                is_active=True,
            )
        )
        log_msg(f"line {line_id}: added manual occurrence on {date}")
        return occurrence

    def cancel_occurrence(self, occurrence_id: int) -> None:
        self._set_active(occurrence_id, False)

    def reactivate_occurrence(self, occurrence_id: int) -> None:
        self._set_active(occurrence_id, True)

    def _set_active(self, occurrence_id: int, is_active: bool) -> None:
        # idempotent: setting the current value again is not an error
        if not self.storage.update_occurrence_active(occurrence_id, is_active):
            raise OccurrenceNotFoundError(occurrence_id)
        log_msg(
            f"occurrence {occurrence_id} {'reactivated' if is_active else 'cancelled'}"
        )
