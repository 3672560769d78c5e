# Copyright 2025 Liatrio
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for time argument parsing."""

from datetime import datetime, timedelta, timezone

import pytest

from tempo_mcp.exceptions import TimeFormatError
from tempo_mcp.time_parser import parse_duration, parse_time, to_unix_seconds

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
TOLERANCE = timedelta(seconds=5)


class TestRelativeTimes:
    """Test "now" and duration offsets."""

    def test_now_is_current_time(self):
        result = parse_time("now")
        assert abs(result - datetime.now(timezone.utc)) < TOLERANCE
        assert result.tzinfo is not None

    def test_one_hour_ago(self):
        expected = datetime.now(timezone.utc) - timedelta(hours=1)
        assert abs(parse_time("-1h") - expected) < TOLERANCE

    def test_now_uses_reference_instant(self):
        assert parse_time("now", now=FIXED_NOW) == FIXED_NOW

    def test_compound_offset(self):
        assert parse_time("-1h30m", now=FIXED_NOW) == FIXED_NOW - timedelta(minutes=90)

    def test_fractional_and_small_units(self):
        assert parse_time("-1.5h", now=FIXED_NOW) == FIXED_NOW - timedelta(minutes=90)
        assert parse_time("-500ms", now=FIXED_NOW) == FIXED_NOW - timedelta(milliseconds=500)
        assert parse_time("-30s", now=FIXED_NOW) == FIXED_NOW - timedelta(seconds=30)

    def test_positive_offset(self):
        assert parse_time("+15m", now=FIXED_NOW) == FIXED_NOW + timedelta(minutes=15)

    def test_unitless_zero_offset(self):
        assert parse_time("-0", now=FIXED_NOW) == FIXED_NOW
        assert parse_time("+0", now=FIXED_NOW) == FIXED_NOW
        assert parse_duration("-0") == timedelta(0)

    def test_parse_duration_rejects_unsigned(self):
        with pytest.raises(ValueError):
            parse_duration("30m")

    def test_parse_duration_rejects_unknown_unit(self):
        with pytest.raises(ValueError):
            parse_duration("-3d")


class TestAbsoluteTimes:
    """Test RFC3339 and the fallback layouts."""

    def test_date_only_is_midnight_utc(self):
        assert parse_time("2023-01-01") == datetime(2023, 1, 1, tzinfo=timezone.utc)

    def test_rfc3339_utc(self):
        assert parse_time("2023-01-01T10:00:00Z") == datetime(
            2023, 1, 1, 10, 0, 0, tzinfo=timezone.utc
        )

    def test_rfc3339_with_offset_is_normalized_to_utc(self):
        result = parse_time("2023-01-01T10:00:00+02:00")
        assert result == datetime(2023, 1, 1, 8, 0, 0, tzinfo=timezone.utc)
        assert result.utcoffset() == timedelta(0)

    def test_rfc3339_nanosecond_fraction(self):
        result = parse_time("2023-01-01T10:00:00.123456789Z")
        assert result.microsecond == 123456

    def test_datetime_with_t_separator(self):
        assert parse_time("2023-06-15T08:30:00") == datetime(
            2023, 6, 15, 8, 30, tzinfo=timezone.utc
        )

    def test_datetime_with_space_separator(self):
        assert parse_time("2023-06-15 08:30:00") == datetime(
            2023, 6, 15, 8, 30, tzinfo=timezone.utc
        )


class TestInvalidTimes:
    """Test inputs that match no format."""

    @pytest.mark.parametrize(
        "value", ["yesterday", "-abc", "2023-13-01", "01/02/2023", "Now", ""]
    )
    def test_unsupported_format(self, value):
        with pytest.raises(TimeFormatError) as exc_info:
            parse_time(value, now=FIXED_NOW)
        assert str(exc_info.value) == f"unsupported time format: {value}"

    def test_time_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_time("not-a-time")

    @pytest.mark.parametrize("value", ["-99999999h", "-99999999999h", "+" + "9" * 400 + "h"])
    def test_out_of_range_duration(self, value):
        with pytest.raises(TimeFormatError) as exc_info:
            parse_time(value, now=FIXED_NOW)
        assert str(exc_info.value) == f"unsupported time format: {value}"

    def test_overflowing_duration_is_value_error(self):
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration("-99999999999h")

    @pytest.mark.parametrize(
        "value", ["2023-1-1", "2023-01-01 1:2:3", "2023-01-01T1:02:03", "023-01-01"]
    )
    def test_fallback_layouts_are_fixed_width(self, value):
        with pytest.raises(TimeFormatError):
            parse_time(value, now=FIXED_NOW)


def test_to_unix_seconds():
    assert to_unix_seconds(datetime(2023, 1, 1, tzinfo=timezone.utc)) == 1672531200
