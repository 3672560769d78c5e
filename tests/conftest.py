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

import os

# Must be set before tempo_mcp.telemetry is imported
os.environ.setdefault("OTEL_TRACES_EXPORTER", "none")
os.environ.setdefault("OTEL_METRICS_EXPORTER", "none")
os.environ.setdefault("MCP_TRANSPORT", "stdio")

import json
from unittest.mock import Mock

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from tempo_mcp.telemetry import get_tracer

_span_exporter = InMemorySpanExporter()


@pytest.fixture(autouse=True)
def clean_tempo_env(monkeypatch):
    """Keep the developer's Tempo settings out of the tests."""
    for name in ("TEMPO_URL", "HTTP_PROXY", "SERVICE_PORT", "MCP_PORT", "MCP_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MCP_TRANSPORT", "stdio")


@pytest.fixture(scope="session")
def _span_processor():
    get_tracer()
    trace.get_tracer_provider().add_span_processor(SimpleSpanProcessor(_span_exporter))
    return _span_exporter


@pytest.fixture
def span_exporter(_span_processor):
    """In-memory exporter attached to the global tracer provider."""
    _span_processor.clear()
    yield _span_processor
    _span_processor.clear()


def make_response(status_code=200, payload=None, text=None):
    """Build a stand-in for ``requests.Response``."""
    if text is None:
        text = json.dumps(payload if payload is not None else {})
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.content = text.encode("utf-8")
    return response


SAMPLE_SEARCH_RESPONSE = {
    "traces": [
        {
            "traceID": "2f3e0cee77ae5dc9c17ade3689eb2e54",
            "rootServiceName": "frontend",
            "rootTraceName": "GET /api/products",
            "startTimeUnixNano": "1672531200000000000",
            "durationMs": 1250,
            "attributes": {"http.status_code": "200"},
        },
        {
            "traceID": "8a1c4b0f2d7e9e31",
            "rootServiceName": "checkout",
            "rootTraceName": "PlaceOrder",
            "startTimeUnixNano": "1672531260500000000",
        },
    ],
    "metrics": {"inspectedTraces": 42, "inspectedBytes": "1024"},
}
