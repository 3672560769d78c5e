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

"""Text rendering of Tempo search results."""

from datetime import datetime

from .models import SearchResult, TraceResult

NO_TRACES_MESSAGE = "No traces found matching the query"


def format_timestamp(instant: datetime) -> str:
    """RFC3339 in UTC with a ``Z`` suffix."""
    return instant.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_trace(index: int, trace: TraceResult) -> str:
    lines = [
        f"Trace {index}:",
        f"  TraceID: {trace.trace_id}",
        f"  Service: {trace.service_name}",
        f"  Name: {trace.trace_name}",
    ]

    start_time = trace.start_time
    if start_time is not None:
        lines.append(f"  Start Time: {format_timestamp(start_time)}")

    lines.append(f"  Duration: {trace.duration_ms} ms")

    if trace.attributes:
        lines.append("  Attributes:")
        lines.extend(f"    {key}: {value}" for key, value in trace.attributes.items())

    return "\n".join(lines) + "\n"


def format_search_results(result: SearchResult) -> str:
    """Render a search result as a multi-line text block.

    An empty result renders as ``NO_TRACES_MESSAGE``.
    """
    if not result.traces:
        return NO_TRACES_MESSAGE

    output = [f"Found {len(result.traces)} traces:\n\n"]
    for i, trace in enumerate(result.traces, start=1):
        output.append(format_trace(i, trace))
        output.append("\n")
    return "".join(output)
