"""
Tests for the half-open time range and the pricing calculator.

Tests cover:
- Range construction (end must be after start)
- Overlap semantics, including adjacent ranges
- Calendar-day counting (partial days, midnight ends)
- Price and deposit stamping
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from core.pricing import price
from core.time_range import TimeRange, duration_in_whole_days, overlaps


def at(day, hour=0, minute=0):
    return datetime(2025, 1, day, hour, minute, tzinfo=dt_timezone.utc)


class TestTimeRange:

    def test_end_must_be_after_start(self):
        with pytest.raises(ValueError):
            TimeRange(at(10, 12), at(10, 12))

        with pytest.raises(ValueError):
            TimeRange(at(10, 12), at(10, 9))

    def test_missing_bound_rejected(self):
        with pytest.raises(ValueError):
            TimeRange(at(10), None)

    def test_overlapping_ranges(self):
        a = TimeRange(at(10, 10), at(10, 12))
        b = TimeRange(at(10, 11), at(10, 13))

        assert overlaps(a, b)
        assert overlaps(b, a)
        assert a.overlaps(b)

    def test_adjacent_ranges_do_not_overlap(self):
        """A booking ending at 12:00 and one starting at 12:00 can coexist."""
        a = TimeRange(at(10, 10), at(10, 12))
        b = TimeRange(at(10, 12), at(10, 14))

        assert not overlaps(a, b)
        assert not overlaps(b, a)

    def test_contained_range_overlaps(self):
        outer = TimeRange(at(10), at(15))
        inner = TimeRange(at(11), at(12))

        assert overlaps(outer, inner)
        assert overlaps(inner, outer)

    def test_contains_is_half_open(self):
        time_range = TimeRange(at(10, 10), at(10, 12))

        assert time_range.contains(at(10, 10))
        assert time_range.contains(at(10, 11, 59))
        assert not time_range.contains(at(10, 12))


class TestWholeDays:

    def test_partial_days_count_as_whole_days(self):
        """18:00 on the 10th to 09:00 on the 12th touches three calendar days."""
        assert duration_in_whole_days(TimeRange(at(10, 18), at(12, 9))) == 3

    def test_same_day_range_is_one_day(self):
        assert duration_in_whole_days(TimeRange(at(10, 10), at(10, 12))) == 1

    def test_end_at_midnight_does_not_touch_next_day(self):
        assert duration_in_whole_days(TimeRange(at(10), at(11))) == 1
        assert duration_in_whole_days(TimeRange(at(10), at(12))) == 2

    def test_one_minute_past_midnight_touches_next_day(self):
        assert duration_in_whole_days(TimeRange(at(10), at(11, 0, 1))) == 2

    def test_whole_days_property(self):
        assert TimeRange(at(10, 18), at(12, 9)).whole_days == 3


class TestPricing:

    def test_price_for_three_calendar_days(self):
        quote = price(TimeRange(at(10, 18), at(12, 9)), Decimal('50.00'))

        assert quote.days == 3
        assert quote.total_due == Decimal('150.00')

    def test_deposit_copied(self):
        quote = price(TimeRange(at(10), at(11)), Decimal('80.00'), Decimal('250'))

        assert quote.total_due == Decimal('80.00')
        assert quote.deposit_amount == Decimal('250.00')

    def test_default_deposit_is_zero(self):
        quote = price(TimeRange(at(10), at(11)), Decimal('80.00'))

        assert quote.deposit_amount == Decimal('0.00')

    def test_amounts_rounded_to_cents(self):
        quote = price(TimeRange(at(10), at(13)), Decimal('33.333'))

        assert quote.total_due == Decimal('100.00')

    def test_float_rate_accepted(self):
        quote = price(TimeRange(at(10), at(12)), 19.99)

        assert quote.total_due == Decimal('39.98')
