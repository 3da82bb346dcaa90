"""Typed errors raised by the scheduling core and its storage layer."""


class SchedulingError(Exception):
    """Base class for every error raised by lines."""


class ValidationError(SchedulingError, ValueError):
    """Malformed schedule input: bad time, date, weekday or frequency."""


class DuplicateDateError(SchedulingError):
    def __init__(self, line_id: int, date: str):
        self.line_id = line_id
        self.date = date
        super().__init__(f"date {date} already exists for line {line_id}")


class OccurrenceNotFoundError(SchedulingError, LookupError):
    def __init__(self, occurrence_id: int):
        self.occurrence_id = occurrence_id
        super().__init__(f"no occurrence with id {occurrence_id}")


class LineNotFoundError(SchedulingError, LookupError):
    def __init__(self, line_id: int):
        self.line_id = line_id
        super().__init__(f"no line with id {line_id}")


class PaletteExhaustedError(SchedulingError):
    """Every palette color is taken, or the venue is at its line limit."""


class CollisionError(SchedulingError):
    """
    Raised by callers, never by the detector itself, when a proposed
    schedule overlaps existing occurrences. ``result`` is the
    CollisionResult that triggered it.
    """

    def __init__(self, result):
        self.result = result
        count = len(result.conflicting_ranges)
        super().__init__(
            f"found {count} collision{'s' if count != 1 else ''} with existing events; "
            "overlapping events at the same venue are not allowed"
        )
