import os
import sqlite3
import json
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

from .occurrence import Line, Occurrence
from .shared import log_msg


def utc_now_string():
    """Return current UTC time as 'YYYYMMDDTHHMMZ'."""
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%MZ")


LINE_FIELDS = ("name", "days", "start_time", "end_time", "frequency", "color")

OCCURRENCE_COLUMNS = """
    o.id, o.line_id, o.venue_id, o.date, o.start_time, o.end_time,
    o.is_expected, o.is_active, o.title, o.subtitle, o.description,
    o.location, o.contact, o.created, o.modified
"""


class DatabaseManager:
    """
    sqlite storage for lines and their occurrences.

    Write methods commit immediately unless they run inside
    ``transaction()``, in which case the outermost block commits or rolls
    back everything at once.
    """

    def __init__(self, db_path: str, reset: bool = False):
        self.db_path = str(db_path)
        self._tx_depth = 0

        if reset and os.path.exists(self.db_path):
            os.remove(self.db_path)

        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.cursor = self.conn.cursor()
        self.setup_database()

    def close(self):
        self.conn.close()

    def setup_database(self):
        """
        Create (if missing) all tables and indexes.

        Notes:
        - `days` is a JSON list of weekday indices, 0 = Sunday.
        - Dates are 'YYYY-MM-DD' and times 'HH:MM' text so that string
          order is chronological order.
        - Timestamps are 'YYYYMMDDTHHMMZ' UTC.
        """
        # ---------------- Lines ----------------
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS Lines (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                venue_id    INTEGER NOT NULL,
                name        TEXT    NOT NULL,
                days        TEXT    NOT NULL,       -- JSON list, 0 = Sunday
                start_time  TEXT    NOT NULL,       -- 'HH:MM'
                end_time    TEXT    NOT NULL,       -- 'HH:MM', <= start means overnight
                frequency   TEXT    NOT NULL
                    CHECK (frequency IN ('weekly','monthly','variable','oneTime')),
                color       TEXT    NOT NULL,
                created     TEXT,
                modified    TEXT
            );
        """)
        self.cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_lines_venue
            ON Lines(venue_id);
        """)

        # ---------------- Occurrences ----------------
        self.cursor.execute("""
            CREATE TABLE IF NOT EXISTS Occurrences (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                line_id     INTEGER NOT NULL,
                venue_id    INTEGER NOT NULL,       -- denormalized for venue-wide queries
                date        TEXT    NOT NULL,       -- 'YYYY-MM-DD'
                start_time  TEXT    NOT NULL,
                end_time    TEXT    NOT NULL,
                is_expected INTEGER NOT NULL DEFAULT 1,
                is_active   INTEGER NOT NULL DEFAULT 1,
                title       TEXT,
                subtitle    TEXT,
                description TEXT,
                location    TEXT,
                contact     TEXT,
                created     TEXT,
                modified    TEXT,
                FOREIGN KEY (line_id) REFERENCES Lines(id) ON DELETE CASCADE
            );
        """)

        # at most one occurrence per line and date
        self.cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_occurrences_line_date
            ON Occurrences(line_id, date);
        """)
        self.cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_occurrences_venue_date
            ON Occurrences(venue_id, date);
        """)

        self.conn.commit()

    @contextmanager
    def transaction(self):
        """Unit of work: commit on success, roll back everything on error."""
        outermost = self._tx_depth == 0
        self._tx_depth += 1
        try:
            yield self
        except Exception:
            if outermost:
                self.conn.rollback()
            raise
        else:
            if outermost:
                self.conn.commit()
        finally:
            self._tx_depth -= 1

    def _commit(self):
        if self._tx_depth == 0:
            self.conn.commit()

    # ---------------- Lines ----------------

    def add_line(self, line: Line) -> int:
        timestamp = utc_now_string()
        self.cursor.execute(
            """
            INSERT INTO Lines (
                venue_id, name, days, start_time, end_time,
                frequency, color, created, modified
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                line.venue_id,
                line.name,
                json.dumps(sorted(line.days)),
                line.start_time,
                line.end_time,
                line.frequency,
                line.color,
                timestamp,
                timestamp,
            ),
        )
        self._commit()
        log_msg(f"added line {self.cursor.lastrowid} '{line.name}' for venue {line.venue_id}")
        return self.cursor.lastrowid

    def update_line(self, line_id: int, **fields) -> None:
        """
        Update the given columns of a line. Only names in LINE_FIELDS are
        accepted and None values are skipped. `modified` is always touched.
        """
        assignments = []
        values = []
        for name, value in fields.items():
            if name not in LINE_FIELDS:
                raise KeyError(f"unknown line field: {name}")
            if value is None:
                continue
            if name == "days":
                value = json.dumps(sorted(value))
            assignments.append(f"{name} = ?")
            values.append(value)

        assignments.append("modified = ?")
        values.append(utc_now_string())
        values.append(line_id)

        sql = f"UPDATE Lines SET {', '.join(assignments)} WHERE id = ?"
        self.cursor.execute(sql, values)
        self._commit()

    def get_line(self, line_id: int) -> Optional[Line]:
        row = self.conn.execute("SELECT * FROM Lines WHERE id = ?", (line_id,)).fetchone()
        return Line.from_row(row) if row else None

    def get_lines_for_venue(self, venue_id: int) -> list[Line]:
        rows = self.conn.execute(
            "SELECT * FROM Lines WHERE venue_id = ? ORDER BY id", (venue_id,)
        ).fetchall()
        return [Line.from_row(row) for row in rows]

    def count_lines(self, venue_id: int) -> int:
        (count,) = self.conn.execute(
            "SELECT COUNT(*) FROM Lines WHERE venue_id = ?", (venue_id,)
        ).fetchone()
        return count

    def delete_line(self, line_id: int) -> None:
        # Occurrences go with it through ON DELETE CASCADE
        self.cursor.execute("DELETE FROM Lines WHERE id = ?", (line_id,))
        self._commit()
        log_msg(f"deleted line {line_id}")

    # ---------------- Occurrences ----------------

    def _select_occurrences(self, where: str, params: tuple) -> list[Occurrence]:
        rows = self.conn.execute(
            f"""
            SELECT {OCCURRENCE_COLUMNS}, l.name AS line_name
            FROM Occurrences o
            LEFT JOIN Lines l ON l.id = o.line_id
            WHERE {where}
            ORDER BY o.date, o.start_time, o.id
            """,
            params,
        ).fetchall()
        return [Occurrence.from_row(row) for row in rows]

    def find_occurrences_by_line(self, line_id: int) -> list[Occurrence]:
        return self._select_occurrences("o.line_id = ?", (line_id,))

    def find_occurrences_by_venue(self, venue_id: int) -> list[Occurrence]:
        return self._select_occurrences("o.venue_id = ?", (venue_id,))

    def find_occurrence_by_line_and_date(
        self, line_id: int, date: str
    ) -> Optional[Occurrence]:
        found = self._select_occurrences(
            "o.line_id = ? AND o.date = ?", (line_id, date)
        )
        return found[0] if found else None

    def get_occurrence(self, occurrence_id: int) -> Optional[Occurrence]:
        found = self._select_occurrences("o.id = ?", (occurrence_id,))
        return found[0] if found else None

    def insert_occurrence(self, occurrence: Occurrence) -> Occurrence:
        self.bulk_insert_occurrences([occurrence])
        occurrence.id = self.cursor.lastrowid
        return occurrence

    def bulk_insert_occurrences(self, records: Iterable[Occurrence]) -> int:
        """
        Insert occurrences as given. A second row for an existing
        (line_id, date) raises sqlite3.IntegrityError.
        """
        timestamp = utc_now_string()
        rows = [
            (
                occ.line_id,
                occ.venue_id,
                occ.date,
                occ.start_time,
                occ.end_time,
                int(occ.is_expected),
                int(occ.is_active),
                occ.title,
                occ.subtitle,
                occ.description,
                occ.location,
                occ.contact,
                timestamp,
                timestamp,
            )
            for occ in records
        ]
        if not rows:
            return 0
        for row in rows:
            self.cursor.execute(
                """
                INSERT INTO Occurrences (
                    line_id, venue_id, date, start_time, end_time,
                    is_expected, is_active, title, subtitle, description,
                    location, contact, created, modified
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                row,
            )
        self._commit()
        return len(rows)

    def delete_occurrences_by_line(self, line_id: int) -> int:
        self.cursor.execute("DELETE FROM Occurrences WHERE line_id = ?", (line_id,))
        count = self.cursor.rowcount
        self._commit()
        return count

    def update_occurrence_active(self, occurrence_id: int, is_active: bool) -> bool:
        """Set is_active only. Returns False when no such occurrence exists."""
        self.cursor.execute(
            "UPDATE Occurrences SET is_active = ? WHERE id = ?",
            (int(is_active), occurrence_id),
        )
        found = self.cursor.rowcount > 0
        self._commit()
        return found

    def count_occurrences(self, line_id: int, active_only: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM Occurrences WHERE line_id = ?"
        if active_only:
            sql += " AND is_active = 1"
        (count,) = self.conn.execute(sql, (line_id,)).fetchone()
        return count
