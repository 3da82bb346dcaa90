import inspect
import textwrap
import shutil
import re
import os
from datetime import date, datetime
from pathlib import Path
from dateutil.relativedelta import relativedelta
from dateutil.rrule import weekday, MO, TU, WE, TH, FR, SA, SU

from .errors import ValidationError

ISO_DATE_FMT = "%Y-%m-%d"
MINUTES_PER_DAY = 24 * 60

TIME_REGEX = re.compile(r"^(?:[01][0-9]|2[0-3]):[0-5][0-9]$|^24:00$")
DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# 0 = Sunday, matching the stored `days` column
WEEKDAY_NAMES = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]
_DATEUTIL_WEEKDAYS: list[weekday] = [SU, MO, TU, WE, TH, FR, SA]

_logging_enabled = True


# ─── Times ───────────────────────────────────────────────────


def parse_time(value: str) -> tuple[int, int]:
    """
    Split an "HH:MM" 24-hour string into (hours, minutes).
    "24:00" is accepted as the end of the day.

    Raises:
        ValidationError: if the string is not HH:MM.
    """
    if not isinstance(value, str) or not TIME_REGEX.match(value):
        raise ValidationError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = value.split(":")
    return int(hours), int(minutes)


def parse_start_time(value: str) -> tuple[int, int]:
    """Like ``parse_time``, but "24:00" is only valid as an end time."""
    if value == "24:00":
        raise ValidationError("invalid start time '24:00', use 00:00 on the next day")
    return parse_time(value)


def time_to_minutes(value: str) -> int:
    hours, minutes = parse_time(value)
    return hours * 60 + minutes


def format_time_range(start_time: str, end_time: str, ampm: bool = False) -> str:
    """Format an HH:MM pair for display, respecting the AM/PM preference."""
    if not ampm:
        return f"{start_time}-{end_time}"

    def _fmt(value: str) -> str:
        hours, minutes = parse_time(value)
        suffix = "am" if hours % 24 < 12 else "pm"
        hour = hours % 12 or 12
        return f"{hour}{suffix}" if minutes == 0 else f"{hour}:{minutes:02d}{suffix}"

    return f"{_fmt(start_time)}-{_fmt(end_time)}"


# ─── Dates ───────────────────────────────────────────────────


def parse_iso_date(value: str | date) -> date:
    """
    Return a ``date`` for a "YYYY-MM-DD" string. Dates pass through and
    datetimes are truncated to their date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_REGEX.match(value):
        raise ValidationError(f"invalid date {value!r}, expected YYYY-MM-DD")
    try:
        return datetime.strptime(value, ISO_DATE_FMT).date()
    except ValueError as e:
        raise ValidationError(f"invalid date {value!r}: {e}") from e


def to_iso_date(value: date | str) -> str:
    return parse_iso_date(value).strftime(ISO_DATE_FMT)


def day_of_week(value: date | str) -> int:
    """Day of week with 0 = Sunday .. 6 = Saturday."""
    return (parse_iso_date(value).weekday() + 1) % 7


def to_dateutil_weekday(day: int) -> weekday:
    """Map a 0 = Sunday day index to the dateutil weekday instance."""
    validate_day(day)
    return _DATEUTIL_WEEKDAYS[day]


def validate_day(day: int) -> int:
    if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
        raise ValidationError(f"invalid day of week {day!r}, expected 0-6")
    return day


def add_months(value: date, months: int) -> date:
    """Calendar month step; the day clamps to the target month's last day."""
    return value + relativedelta(months=months)


def next_weekday_on_or_after(value: date, day: int) -> date:
    return value + relativedelta(weekday=to_dateutil_weekday(day)(+1))


def minutes_since_epoch(iso_date: str, hhmm: str) -> int:
    """Absolute minute offset of a date + time, used to compare ranges across days."""
    return parse_iso_date(iso_date).toordinal() * MINUTES_PER_DAY + time_to_minutes(
        hhmm
    )


# ─── Logging ─────────────────────────────────────────────────


def set_logging(enabled: bool) -> None:
    global _logging_enabled
    _logging_enabled = enabled


def _get_runtime_home() -> Path:
    override = os.environ.get("LINES_HOME")
    if override:
        return Path(override).expanduser()
    from .lines_env import LinesEnvironment

    return LinesEnvironment().home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def _caller_name(frame) -> str:
    func_name = frame.f_code.co_name
    if "self" in frame.f_locals:  # instance method
        return f"{frame.f_locals['self'].__class__.__name__}.{func_name}"
    if "cls" in frame.f_locals:  # classmethod
        return f"{frame.f_locals['cls'].__name__}.{func_name}"
    return func_name


def _write_entry(
    kind: str,
    caller_name: str,
    msg: str,
    file_path: str | Path | None,
    print_output: bool,
):
    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} {kind}_msg ({caller_name}):  ",
    ]
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 40),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    # Best-effort file logging; fall back to console when the file is unwritable.
    if file_path is None:
        file_path = _default_log_relative_path(kind)
    log_path = _resolve_log_file_path(file_path)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            f.writelines(lines)
    except OSError:
        print_output = True

    if print_output:
        print("".join(lines))


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    if not _logging_enabled and not print_output:
        return
    caller_name = _caller_name(inspect.stack()[1].frame)
    _write_entry("log", caller_name, msg, file_path, print_output)

