"""
Tests for overnight detection and venue collision checks.
"""

import pytest

from lines.collisions import (
    CollisionRange,
    CollisionResult,
    check_collision,
    check_multiple_collisions,
    do_time_ranges_overlap,
    is_overnight_shift,
)
from lines.errors import ValidationError


def rng(d, start, end, line_id=None):
    return CollisionRange(date=d, start_time=start, end_time=end, line_id=line_id)


@pytest.mark.unit
class TestOvernight:
    @pytest.mark.parametrize(
        "start, end, expected",
        [
            ("22:00", "02:00", True),
            ("18:00", "22:00", False),
            ("10:00", "10:00", True),
            ("00:00", "23:59", False),
            ("20:00", "24:00", True),
        ],
    )
    def test_is_overnight_shift(self, start, end, expected):
        assert is_overnight_shift(start, end) is expected

    def test_bad_time_raises(self):
        with pytest.raises(ValidationError):
            is_overnight_shift("9pm", "02:00")

    def test_span_spills_into_next_day(self):
        start, end = rng("2025-01-06", "22:00", "02:00").span()
        assert end - start == 4 * 60

    def test_midnight_end_is_end_of_same_day(self):
        start, end = rng("2025-01-06", "20:00", "24:00").span()
        assert end - start == 4 * 60

    def test_equal_times_span_a_full_day(self):
        start, end = rng("2025-01-06", "10:00", "10:00").span()
        assert end - start == 24 * 60


@pytest.mark.unit
class TestOverlap:
    def test_identical_ranges_overlap(self):
        a = rng("2025-01-06", "18:00", "22:00")
        assert do_time_ranges_overlap(a, a)

    def test_disjoint_same_day(self):
        a = rng("2025-01-06", "18:00", "22:00")
        b = rng("2025-01-06", "09:00", "12:00")
        assert not do_time_ranges_overlap(a, b)

    def test_partial_overlap(self):
        a = rng("2025-01-06", "18:00", "22:00")
        b = rng("2025-01-06", "19:00", "23:00")
        assert do_time_ranges_overlap(a, b)
        assert do_time_ranges_overlap(b, a)

    def test_touching_ranges_do_not_overlap(self):
        a = rng("2025-01-06", "18:00", "22:00")
        b = rng("2025-01-06", "22:00", "23:00")
        assert not do_time_ranges_overlap(a, b)

    def test_different_dates_do_not_overlap(self):
        a = rng("2025-01-06", "18:00", "22:00")
        b = rng("2025-01-07", "18:00", "22:00")
        assert not do_time_ranges_overlap(a, b)

    def test_overnight_reaches_next_morning(self):
        late = rng("2025-01-05", "22:00", "03:00")
        early = rng("2025-01-06", "01:00", "05:00")
        assert do_time_ranges_overlap(late, early)

    def test_overnight_clear_of_next_evening(self):
        late = rng("2025-01-05", "22:00", "03:00")
        evening = rng("2025-01-06", "18:00", "22:00")
        assert not do_time_ranges_overlap(late, evening)

    def test_two_overnight_shifts_same_date(self):
        a = rng("2025-01-06", "23:00", "03:00")
        b = rng("2025-01-06", "22:00", "02:00")
        assert do_time_ranges_overlap(a, b)

    def test_malformed_range_rejected(self):
        with pytest.raises(ValidationError):
            rng("2025-13-01", "18:00", "22:00")


@pytest.mark.unit
class TestCheckCollision:
    def test_no_existing_ranges(self):
        result = check_collision(rng("2025-01-06", "18:00", "22:00"), [])
        assert result == CollisionResult(False, [])
        assert not result

    def test_returns_first_hit_only(self):
        existing = [
            rng("2025-01-06", "09:00", "12:00", line_id=1),
            rng("2025-01-06", "19:00", "20:00", line_id=2),
            rng("2025-01-06", "21:00", "23:00", line_id=3),
        ]
        result = check_collision(rng("2025-01-06", "18:00", "22:00"), existing)
        assert result.has_collision
        assert [r.line_id for r in result.conflicting_ranges] == [2]


@pytest.mark.unit
class TestCheckMultipleCollisions:
    def test_reports_every_conflict(self):
        new = [
            rng("2025-01-06", "18:00", "22:00"),
            rng("2025-01-08", "18:00", "22:00"),
        ]
        existing = [
            rng("2025-01-06", "20:00", "23:00", line_id=1),
            rng("2025-01-07", "18:00", "22:00", line_id=2),
            rng("2025-01-08", "17:00", "19:00", line_id=3),
        ]
        result = check_multiple_collisions(new, existing)

        assert result.has_collision
        assert [r.line_id for r in result.conflicting_ranges] == [1, 3]

    def test_existing_range_reported_once(self):
        new = [
            rng("2025-01-06", "18:00", "19:00"),
            rng("2025-01-06", "20:00", "21:00"),
        ]
        existing = [rng("2025-01-06", "17:00", "23:00", line_id=9)]
        result = check_multiple_collisions(new, existing)
        assert len(result.conflicting_ranges) == 1

    def test_no_conflicts(self):
        new = [rng("2025-01-06", "18:00", "22:00")]
        existing = [rng("2025-01-06", "22:00", "23:30", line_id=1)]
        result = check_multiple_collisions(new, existing)
        assert result == CollisionResult(False, [])

    def test_overlap_within_proposed_ranges(self):
        first = rng("2025-01-06", "18:00", "22:00")
        second = rng("2025-01-06", "21:00", "23:00")
        result = check_multiple_collisions([first, second], [])
        assert result.has_collision
        assert result.conflicting_ranges == [second]

    def test_overnight_proposal_hits_next_day(self):
        new = [rng("2025-01-05", "22:00", "03:00")]
        existing = [rng("2025-01-06", "01:00", "05:00", line_id=4)]
        result = check_multiple_collisions(new, existing)
        assert [r.line_id for r in result.conflicting_ranges] == [4]

    def test_accepts_generators(self):
        new = (r for r in [rng("2025-01-06", "18:00", "22:00")])
        existing = (r for r in [rng("2025-01-06", "19:00", "20:00", line_id=1)])
        assert check_multiple_collisions(new, existing).has_collision


@pytest.mark.unit
class TestEndOfDayStart:
    def test_midnight_start_rejected(self):
        with pytest.raises(ValidationError, match="start time"):
            rng("2025-01-06", "24:00", "02:00")
        with pytest.raises(ValidationError, match="start time"):
            rng("2025-01-06", "24:00", "24:00")

    def test_overnight_check_rejects_midnight_start(self):
        with pytest.raises(ValidationError):
            is_overnight_shift("24:00", "02:00")

    def test_midnight_as_end_still_allowed(self):
        start, end = rng("2025-01-06", "00:00", "24:00").span()
        assert end - start == 24 * 60


@pytest.mark.unit
def test_equal_proposed_ranges_are_each_reported():
    existing = [rng("2025-01-06", "19:00", "20:00")]
    repeated = rng("2025-01-06", "19:00", "20:00")
    result = check_multiple_collisions([repeated, repeated], existing)
    assert len(result.conflicting_ranges) == 2
