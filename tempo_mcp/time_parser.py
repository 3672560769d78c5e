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

"""Parsing of the time arguments accepted by the Tempo tools.

Supported inputs, tried in this order:

- ``now``
- a signed duration offset from now, e.g. ``-30m``, ``-1h30m``, ``+1.5h``
- an RFC3339 timestamp, e.g. ``2023-01-01T10:00:00Z``
- ``YYYY-MM-DDTHH:MM:SS``, ``YYYY-MM-DD HH:MM:SS`` or ``YYYY-MM-DD`` (UTC)
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from .exceptions import TimeFormatError

# Nanoseconds per duration unit
_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5 micro sign
    "μs": 1_000,  # U+03BC greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_DURATION_TERM = re.compile(r"(\d*\.?\d*)(ns|us|µs|μs|ms|s|m|h)")
_DURATION = re.compile(
    r"^[-+](?:0|(?:(?:\d+\.?\d*|\.\d+)(?:ns|us|µs|μs|ms|s|m|h))+)$"
)

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)

FALLBACK_LAYOUTS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)
# strptime alone would accept single-digit fields such as 2023-1-1
_FALLBACK_SHAPE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ]\d{2}:\d{2}:\d{2})?$")


def parse_duration(value: str) -> timedelta:
    """Parse a signed duration such as ``-1h30m`` into a timedelta.

    Raises:
        ValueError: if ``value`` is not a signed duration.
    """
    if not _DURATION.match(value):
        raise ValueError(f"invalid duration: {value}")

    total_ns = 0.0
    for number, unit in _DURATION_TERM.findall(value[1:]):
        total_ns += float(number) * _DURATION_UNITS[unit]

    try:
        delta = timedelta(microseconds=round(total_ns / 1_000))
    except OverflowError as e:
        raise ValueError(f"invalid duration: {value}") from e
    return -delta if value[0] == "-" else delta


def _parse_rfc3339(value: str) -> Optional[datetime]:
    match = _RFC3339.match(value)
    if not match:
        return None

    date_part, time_part, fraction, offset = match.groups()
    if offset in ("Z", "z"):
        offset = "+00:00"
    # strptime only understands microseconds
    micros = (fraction or "0")[:6].ljust(6, "0")
    try:
        parsed = datetime.strptime(
            f"{date_part}T{time_part}.{micros}{offset}", "%Y-%m-%dT%H:%M:%S.%f%z"
        )
    except ValueError:
        return None
    return parsed.astimezone(timezone.utc)


def parse_time(value: str, now: Optional[datetime] = None) -> datetime:
    """Convert a time argument into a timezone-aware UTC datetime.

    Args:
        value: The time string to parse.
        now: Reference instant for ``now`` and relative offsets. Defaults to the
            current time.

    Raises:
        TimeFormatError: if none of the supported formats match.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if value == "now":
        return now

    if value[:1] in ("-", "+"):
        try:
            return now + parse_duration(value)
        except (ValueError, OverflowError):
            pass

    parsed = _parse_rfc3339(value)
    if parsed is not None:
        return parsed

    if not _FALLBACK_SHAPE.match(value):
        raise TimeFormatError(value)

    for layout in FALLBACK_LAYOUTS:
        try:
            return datetime.strptime(value, layout).replace(tzinfo=timezone.utc)
        except ValueError:
            continue

    raise TimeFormatError(value)


def to_unix_seconds(instant: datetime) -> int:
    """Return ``instant`` as whole Unix seconds."""
    return int(instant.timestamp())
