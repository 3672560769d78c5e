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

"""Tests for search result models and text formatting."""

from datetime import datetime, timezone

from conftest import SAMPLE_SEARCH_RESPONSE

from tempo_mcp.formatting import NO_TRACES_MESSAGE, format_search_results
from tempo_mcp.models import SearchResult, TempoConnection, TraceResult


class TestModels:
    """Test decoding of Tempo JSON into models."""

    def test_search_result_from_dict(self):
        result = SearchResult.from_dict(SAMPLE_SEARCH_RESPONSE)

        assert len(result.traces) == 2
        assert result.metrics["inspectedTraces"] == 42
        assert result.error == ""

        first = result.traces[0]
        assert first.trace_id == "2f3e0cee77ae5dc9c17ade3689eb2e54"
        assert first.service_name == "frontend"
        assert first.trace_name == "GET /api/products"
        assert first.duration_ms == 1250
        assert first.attributes == {"http.status_code": "200"}

    def test_missing_duration_defaults_to_zero(self):
        trace = TraceResult.from_dict({"traceID": "abc"})
        assert trace.duration_ms == 0
        assert trace.attributes == {}

    def test_start_time_from_nanoseconds(self):
        trace = TraceResult.from_dict(SAMPLE_SEARCH_RESPONSE["traces"][1])
        assert trace.start_time == datetime(
            2023, 1, 1, 0, 1, 0, 500000, tzinfo=timezone.utc
        )

    def test_unparseable_start_time(self):
        assert TraceResult(trace_id="abc", start_time_unix_nano="soon").start_time is None
        assert TraceResult(trace_id="abc").start_time is None

    def test_null_traces(self):
        assert SearchResult.from_dict({"traces": None}).traces == []

    def test_connection_auth_type(self):
        assert TempoConnection(url="http://t", token="x", username="u").auth_type == "bearer"
        assert TempoConnection(url="http://t", password="p").auth_type == "basic"
        assert TempoConnection(url="http://t").auth_type == "none"

    def test_connection_repr_hides_credentials(self):
        text = repr(TempoConnection(url="http://t", password="hunter2", token="secret"))
        assert "hunter2" not in text
        assert "secret" not in text


class TestFormatSearchResults:
    """Test format_search_results."""

    def test_empty_result(self):
        assert format_search_results(SearchResult()) == "No traces found matching the query"
        assert NO_TRACES_MESSAGE == "No traces found matching the query"

    def test_full_output(self):
        output = format_search_results(SearchResult.from_dict(SAMPLE_SEARCH_RESPONSE))

        assert output == (
            "Found 2 traces:\n"
            "\n"
            "Trace 1:\n"
            "  TraceID: 2f3e0cee77ae5dc9c17ade3689eb2e54\n"
            "  Service: frontend\n"
            "  Name: GET /api/products\n"
            "  Start Time: 2023-01-01T00:00:00Z\n"
            "  Duration: 1250 ms\n"
            "  Attributes:\n"
            "    http.status_code: 200\n"
            "\n"
            "Trace 2:\n"
            "  TraceID: 8a1c4b0f2d7e9e31\n"
            "  Service: checkout\n"
            "  Name: PlaceOrder\n"
            "  Start Time: 2023-01-01T00:01:00Z\n"
            "  Duration: 0 ms\n"
            "\n"
        )

    def test_start_time_omitted_when_missing(self):
        output = format_search_results(
            SearchResult(traces=[TraceResult(trace_id="abc", duration_ms=7)])
        )
        assert "Start Time" not in output
        assert "  Duration: 7 ms\n" in output
