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

"""Tests for Tempo URL construction."""

from urllib.parse import parse_qs, urlsplit

import pytest

from tempo_mcp.exceptions import InvalidTempoURLError
from tempo_mcp.query_url import build_search_url, build_trace_url

START = 1672531200
END = 1672534800


class TestBuildSearchURL:
    """Test build_search_url."""

    def test_pathless_base_gets_search_path(self):
        url = build_search_url("http://host:3200", "{duration>1s}", 1, 2, 20)
        assert url == (
            "http://host:3200/api/search"
            "?end=2000000000&limit=20&q=%7Bduration%3E1s%7D&start=1000000000"
        )

    def test_root_path_gets_search_path(self):
        url = build_search_url("http://host:3200/", "{}", START, END, 5)
        assert urlsplit(url).path == "/api/search"

    def test_search_path_is_not_duplicated(self):
        url = build_search_url("http://host:3200/api/search", "{}", START, END, 5)
        assert urlsplit(url).path == "/api/search"
        assert url.count("/api/search") == 1

    def test_path_prefix_is_preserved(self):
        assert urlsplit(
            build_search_url("https://grafana.example.com/tempo", "{}", START, END, 5)
        ).path == "/tempo/api/search"
        assert urlsplit(
            build_search_url("https://grafana.example.com/tempo/", "{}", START, END, 5)
        ).path == "/tempo/api/search"

    def test_times_are_nanoseconds(self):
        params = parse_qs(urlsplit(build_search_url("http://host", "{}", START, END, 20)).query)
        assert params["start"] == ["1672531200000000000"]
        assert params["end"] == ["1672534800000000000"]
        assert params["limit"] == ["20"]

    def test_query_is_form_encoded(self):
        url = build_search_url("http://host", '{ .service.name = "api" }', START, END, 20)
        assert "q=%7B+.service.name+%3D+%22api%22+%7D" in url
        assert parse_qs(urlsplit(url).query)["q"] == ['{ .service.name = "api" }']

    def test_existing_query_parameters_are_kept(self):
        url = build_search_url("http://host:3200?orgId=1&limit=99", "{}", START, END, 20)
        params = parse_qs(urlsplit(url).query)
        assert params["orgId"] == ["1"]
        assert params["limit"] == ["20"]

    @pytest.mark.parametrize(
        "base_url",
        ["not a url", "localhost", "http://host:abc", "http://[::1", "/api/search"],
    )
    def test_invalid_base_url(self, base_url):
        with pytest.raises(InvalidTempoURLError) as exc_info:
            build_search_url(base_url, "{}", START, END, 20)
        assert base_url in str(exc_info.value)


class TestBuildTraceURL:
    """Test build_trace_url."""

    def test_trace_url(self):
        assert (
            build_trace_url("http://host:3200", "2f3e0cee77ae5dc9")
            == "http://host:3200/api/traces/2f3e0cee77ae5dc9"
        )

    def test_trailing_slash_is_dropped(self):
        assert build_trace_url("http://host:3200/", "abc") == "http://host:3200/api/traces/abc"

    def test_prefix_is_kept(self):
        assert build_trace_url("http://host/tempo", "abc") == "http://host/tempo/api/traces/abc"

    def test_trace_id_is_escaped(self):
        assert build_trace_url("http://host", "a/b c").endswith("/api/traces/a%2Fb%20c")

    def test_invalid_base_url(self):
        with pytest.raises(InvalidTempoURLError):
            build_trace_url("host-without-scheme", "abc")
