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

"""Data models for Tempo requests and search responses."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import DEFAULT_LIMIT


@dataclass(frozen=True)
class TempoConnection:
    """Where and how to reach a Tempo server."""

    url: str
    username: str = ""
    password: str = ""
    token: str = ""

    @property
    def auth_type(self) -> str:
        """Authentication scheme applied to requests: bearer, basic or none."""
        if self.token:
            return "bearer"
        if self.username or self.password:
            return "basic"
        return "none"

    def __repr__(self) -> str:
        return f"TempoConnection(url={self.url!r}, auth_type={self.auth_type!r})"


@dataclass(frozen=True)
class QueryRequest:
    """A single TraceQL search against Tempo."""

    query: str
    start: int
    end: int
    connection: TempoConnection
    limit: int = DEFAULT_LIMIT


@dataclass
class TraceResult:
    """One trace from a Tempo search response."""

    trace_id: str
    service_name: str = ""
    trace_name: str = ""
    start_time_unix_nano: str = ""
    duration_ms: int = 0
    attributes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TraceResult":
        attributes = data.get("attributes") or {}
        return cls(
            trace_id=str(data.get("traceID", "")),
            service_name=str(data.get("rootServiceName", "")),
            trace_name=str(data.get("rootTraceName", "")),
            start_time_unix_nano=str(data.get("startTimeUnixNano") or ""),
            duration_ms=int(data.get("durationMs") or 0),
            attributes={str(k): str(v) for k, v in attributes.items()},
        )

    @property
    def start_time(self) -> Optional[datetime]:
        """Start of the trace in UTC, or None when the timestamp is missing or invalid."""
        try:
            nanos = int(self.start_time_unix_nano)
        except ValueError:
            return None
        seconds, remainder = divmod(nanos, 1_000_000_000)
        try:
            instant = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
        return instant.replace(microsecond=remainder // 1_000)


@dataclass
class SearchResult:
    """Decoded body of a Tempo ``/api/search`` response."""

    traces: List[TraceResult] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResult":
        return cls(
            traces=[TraceResult.from_dict(t) for t in data.get("traces") or []],
            metrics=data.get("metrics") or {},
            error=str(data.get("error") or ""),
        )
