"""
Unit tests for timezone_helper.
"""
import pytest
from datetime import date, datetime
import pytz

from utils.timezone_helper import (
    convert_to_timezone,
    local_date,
    local_day_bounds,
    local_isoformat,
    local_today,
    utc_offset_seconds,
)


@pytest.mark.unit
class TestTimezoneHelper:
    """Test cases for timezone helper functions."""

    def test_convert_to_timezone_with_valid_timezone(self):
        """Test timezone conversion with valid timezone identifier."""
        # Arrange
        utc_dt = datetime(2024, 1, 15, 12, 0, 0, tzinfo=pytz.UTC)

        # Act
        result = convert_to_timezone(utc_dt, "Europe/Moscow")

        # Assert
        assert result.tzinfo is not None
        assert result.hour == 15  # Moscow is UTC+3
        assert result.strftime("%Y-%m-%d") == "2024-01-15"

    def test_convert_to_timezone_with_naive_datetime(self):
        """Test timezone conversion with naive datetime (no timezone info)."""
        # Arrange
        naive_dt = datetime(2024, 1, 15, 12, 0, 0)

        # Act
        result = convert_to_timezone(naive_dt, "America/New_York")

        # Assert
        assert result.tzinfo is not None
        assert result.hour == 7  # New York is UTC-5

    def test_convert_to_timezone_with_unknown_timezone(self):
        """Test unknown timezone keeps UTC."""
        # Arrange
        utc_dt = datetime(2024, 1, 15, 12, 0, 0, tzinfo=pytz.UTC)

        # Act
        result = convert_to_timezone(utc_dt, "Mars/Olympus")

        # Assert
        assert result.hour == 12

    def test_local_isoformat(self):
        """Test local time keeps its UTC offset."""
        timestamp = int(datetime(2024, 1, 15, 22, 30, 0, tzinfo=pytz.UTC).timestamp())

        assert local_isoformat(timestamp, "Asia/Tokyo") == "2024-01-16T07:30:00+09:00"
        assert local_isoformat(timestamp, None) == "2024-01-15T22:30:00+00:00"

    def test_local_date_crosses_midnight(self):
        """Test a late UTC timestamp falls on the next local day east of UTC."""
        # Arrange
        timestamp = int(datetime(2026, 1, 19, 23, 30, tzinfo=pytz.UTC).timestamp())

        # Act & Assert
        assert local_date(timestamp, None) == date(2026, 1, 19)
        assert local_date(timestamp, "Europe/Kyiv") == date(2026, 1, 20)

    def test_local_today_uses_reference_time(self):
        """Test today's date honours the timezone of the reference time."""
        now = datetime(2026, 3, 1, 22, 0, tzinfo=pytz.UTC)
        assert local_today(None, now) == date(2026, 3, 1)
        assert local_today("Asia/Tokyo", now) == date(2026, 3, 2)

    def test_local_day_bounds_utc(self):
        """Test day bounds span exactly 24 hours in UTC."""
        # Act
        start, end = local_day_bounds(date(2026, 1, 19), None)

        # Assert
        assert start == int(datetime(2026, 1, 19, tzinfo=pytz.UTC).timestamp())
        assert end - start == 86400

    def test_local_day_bounds_with_offset(self):
        """Test day bounds start at local midnight."""
        # Act
        start, _ = local_day_bounds(date(2026, 1, 19), "Europe/Kyiv")

        # Assert
        assert start == int(datetime(2026, 1, 18, 22, 0, tzinfo=pytz.UTC).timestamp())

    def test_utc_offset_seconds(self):
        """Test offsets for fixed and UTC zones."""
        now = datetime(2026, 1, 19, 12, 0, tzinfo=pytz.UTC)
        assert utc_offset_seconds(None, now) == 0
        assert utc_offset_seconds("Asia/Tokyo", now) == 9 * 3600
