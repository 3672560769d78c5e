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

"""OpenTelemetry telemetry configuration and utilities."""

import logging
import os
import time
import uuid
from typing import Optional

from opentelemetry import context as otel_context
from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.semconv.resource import ResourceAttributes
from opentelemetry.semconv.trace import SpanAttributes
from opentelemetry.semconv.attributes.error_attributes import ERROR_TYPE
from opentelemetry.trace import Status, StatusCode, set_span_in_context

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[trace_id=%(otelTraceID)s span_id=%(otelSpanID)s] - %(message)s"
)


class TelemetryConfig:
    """Centralized OpenTelemetry configuration and setup."""

    def __init__(self):
        self.service_name = os.getenv("SERVICE_NAME", "tempo-mcp-server")
        self.service_instance_id = os.getenv("SERVICE_INSTANCE_ID", "local")
        self.otlp_endpoint = os.getenv(
            "OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317"
        )
        # "none" disables the OTLP exporter for that signal
        self.traces_exporter = os.getenv("OTEL_TRACES_EXPORTER", "otlp").strip().lower()
        self.metrics_exporter = os.getenv("OTEL_METRICS_EXPORTER", "otlp").strip().lower()
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        self._tracer: Optional[trace.Tracer] = None
        self._logger: Optional[logging.Logger] = None
        self._initialized = False

    def initialize(self) -> None:
        """Initialize OpenTelemetry SDK with proper configuration."""
        if self._initialized:
            return

        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: self.service_name,
                ResourceAttributes.SERVICE_INSTANCE_ID: self.service_instance_id,
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: os.getenv(
                    "DEPLOYMENT_ENVIRONMENT", "development"
                ),
                "service.namespace": "grafana-tempo",
                "service.type": "mcp_server",
                "telemetry.sdk.name": "opentelemetry",
                "telemetry.sdk.language": "python",
                "process.pid": os.getpid(),
                "process.executable.name": "python",
                "host.name": os.getenv("HOSTNAME", "localhost"),
            }
        )

        self._setup_tracing(resource)
        self._setup_metrics(resource)
        self._setup_logging()

        self._initialized = True

    def _setup_tracing(self, resource: Resource) -> None:
        """Configure OpenTelemetry tracing."""
        tracer_provider = TracerProvider(resource=resource)

        if self.traces_exporter != "none":
            span_exporter = OTLPSpanExporter(endpoint=self.otlp_endpoint)
            tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

        trace.set_tracer_provider(tracer_provider)
        self._tracer = trace.get_tracer(__name__)

    def _setup_metrics(self, resource: Resource) -> None:
        """Configure OpenTelemetry metrics."""
        metric_readers = []
        if self.metrics_exporter != "none":
            metric_exporter = OTLPMetricExporter(endpoint=self.otlp_endpoint)
            metric_readers.append(
                PeriodicExportingMetricReader(
                    exporter=metric_exporter,
                    export_interval_millis=30000,  # Export every 30 seconds
                )
            )

        meter_provider = MeterProvider(resource=resource, metric_readers=metric_readers)
        metrics.set_meter_provider(meter_provider)

    def _setup_logging(self) -> None:
        """Configure OpenTelemetry logging bridge.

        The root handler installed by the instrumentor writes to stderr, which
        keeps stdout free for the stdio MCP transport.
        """
        level = getattr(logging, self.log_level, logging.INFO)
        LoggingInstrumentor().instrument(
            set_logging_format=True, logging_format=LOG_FORMAT, log_level=level
        )

        self._logger = logging.getLogger(self.service_name)
        self._logger.setLevel(level)

        formatter = logging.Formatter(LOG_FORMAT)
        for handler in self._logger.handlers:
            handler.setFormatter(formatter)

    @property
    def tracer(self) -> trace.Tracer:
        """Get the configured tracer."""
        if not self._initialized:
            self.initialize()
        return self._tracer

    @property
    def logger(self) -> logging.Logger:
        """Get the configured logger with trace correlation."""
        if not self._initialized:
            self.initialize()
        if self._logger is None:
            raise RuntimeError("Logger not properly initialized")
        return self._logger


# Global telemetry instance
telemetry = TelemetryConfig()


def get_tracer() -> trace.Tracer:
    """Get the global tracer instance."""
    return telemetry.tracer


def get_logger() -> logging.Logger:
    """Get the global logger instance with trace correlation."""
    return telemetry.logger


def set_span_error(span: trace.Span, error: Exception) -> None:
    """Set span status to error and record exception details."""
    span.set_status(Status(StatusCode.ERROR, str(error)))
    span.record_exception(error)


def add_span_attributes(span: trace.Span, **attributes) -> None:
    """Add multiple attributes to a span safely."""
    for key, value in attributes.items():
        if value is not None:
            if not isinstance(value, (str, int, float, bool)):
                value = str(value)
            span.set_attribute(key, value)


class _RootSpanContextManager:
    def __init__(self, span: trace.Span, span_context):
        self.span = span
        self.span_context = span_context
        self.token = None

    def __enter__(self) -> trace.Span:
        self.token = otel_context.attach(self.span_context)
        return self.span

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.span.set_status(Status(StatusCode.ERROR, str(exc_val)))
            self.span.record_exception(exc_val)
        else:
            self.span.set_status(Status(StatusCode.OK))

        self.span.end()
        otel_context.detach(self.token)


def create_root_span_context(
    tracer: trace.Tracer,
    operation_name: str,
    operation_type: str = "mcp",
    session_id: Optional[str] = None,
) -> _RootSpanContextManager:
    """Create a root span context manager for an MCP operation.

    Each tool call starts a new trace with no parent, so spans from the
    HTTP/SSE transport layers never become its ancestors.

    Args:
        tracer: The OpenTelemetry tracer instance
        operation_name: Name of the operation (e.g., 'mcp.tool.tempo_query')
        operation_type: Type of operation ('mcp', 'tool')
        session_id: Optional session identifier for SSE connections
    """
    attributes = {
        "operation.type": operation_type,
        "mcp.operation": operation_name,
    }

    if operation_type == "tool":
        attributes[MCPAttributes.MCP_TOOL_NAME] = operation_name.split(".")[-1]

    if session_id and not session_id.startswith("stdio-"):
        attributes[MCPAttributes.MCP_SESSION_ID] = session_id
        attributes[MCPAttributes.MCP_TRANSPORT] = "sse"
        attributes[MCPAttributes.MCP_SESSION_TYPE] = "sse"
        attributes[SpanAttributes.NETWORK_PROTOCOL_NAME] = "http"
        attributes[SpanAttributes.NETWORK_TRANSPORT] = "tcp"
    else:
        transport = os.getenv("MCP_TRANSPORT", "stdio")
        attributes[MCPAttributes.MCP_TRANSPORT] = transport
        if session_id:
            attributes[MCPAttributes.MCP_SESSION_ID] = session_id

        if transport == "http":
            attributes[SpanAttributes.NETWORK_PROTOCOL_NAME] = "http"
            attributes[SpanAttributes.NETWORK_TRANSPORT] = "tcp"
        elif transport == "stdio":
            attributes[SpanAttributes.NETWORK_TRANSPORT] = "pipe"

    empty_context = otel_context.Context()
    span = tracer.start_span(
        name=operation_name,
        context=empty_context,
        attributes=attributes,
    )
    return _RootSpanContextManager(span, set_span_in_context(span, empty_context))


def add_enhanced_error_attributes(
    span: trace.Span, error: Exception, **context
) -> None:
    """Add error attributes to a span using semantic conventions.

    Args:
        span: The span to add error attributes to
        error: The exception that occurred
        **context: Additional context attributes to add
    """
    span.set_attribute(ERROR_TYPE, _get_semantic_error_type(error))
    span.set_attribute(SpanAttributes.EXCEPTION_MESSAGE, str(error))

    for key, value in context.items():
        if value is not None:
            span.set_attribute(f"error.context.{key}", str(value))

    set_span_error(span, error)


_ERROR_TYPE_MAPPING = {
    "TimeoutError": "timeout",
    "ConnectionError": "connection_error",
    "ConnectionRefusedError": "connection_refused",
    "SSLError": "ssl_error",
    "PermissionError": "permission_denied",
    "FileNotFoundError": "not_found",
    "IsADirectoryError": "invalid_argument",
    "ValueError": "invalid_argument",
    "TypeError": "invalid_argument",
    "KeyError": "not_found",
    "OSError": "system_error",
    "TimeFormatError": "invalid_argument",
    "InvalidTempoURLError": "invalid_argument",
    "TempoConnectionError": "connection_error",
    "TempoResponseError": "invalid_response",
    "TempoQueryError": "tempo_error",
}


def _get_semantic_error_type(error: Exception) -> str:
    """Get a semantic convention compliant error type for an exception.

    HTTP errors are reported by their status code.
    """
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)

    response = getattr(error, "response", None)
    if response is not None and isinstance(
        getattr(response, "status_code", None), int
    ):
        return str(response.status_code)

    error_class = error.__class__.__name__
    return _ERROR_TYPE_MAPPING.get(error_class, error_class)


def add_mcp_operation_context(
    span: trace.Span,
    operation_type: str,
    operation_name: str,
    input_data: Optional[dict] = None,
    **context,
) -> None:
    """Add MCP operation context to a span.

    Args:
        span: The span to add context to
        operation_type: Type of operation (tool, server)
        operation_name: Name of the specific operation
        input_data: Input data for the operation
        **context: Additional context attributes
    """
    span.set_attribute(MCPAttributes.MCP_OPERATION_ID, str(uuid.uuid4()))
    span.set_attribute(MCPAttributes.MCP_OPERATION_TYPE, operation_type)
    span.set_attribute("operation.name", operation_name)
    span.set_attribute("operation.timestamp", int(time.time() * 1000))

    if input_data and operation_type == "tool":
        span.set_attribute(MCPAttributes.MCP_TOOL_INPUT_SIZE, len(str(input_data)))

    session_id = extract_session_id_from_request()
    if session_id:
        span.set_attribute(MCPAttributes.MCP_SESSION_ID, session_id)

    span.set_attribute(MCPAttributes.MCP_TRANSPORT, os.getenv("MCP_TRANSPORT", "stdio"))

    for key, value in context.items():
        if value is not None:
            span.set_attribute(f"mcp.context.{key}", str(value))


def add_operation_metrics(
    span: trace.Span,
    operation_type: str,
    start_time: float,
    output_data: Optional[str] = None,
    **metrics,
) -> None:
    """Add operation performance metrics to a span.

    Args:
        span: The span to add metrics to
        operation_type: Type of operation (tool)
        start_time: Operation start time (from time.time())
        output_data: Output used for size calculation
        **metrics: Additional metrics to add
    """
    execution_time = int((time.time() - start_time) * 1000)

    if operation_type == "tool":
        span.set_attribute(MCPAttributes.MCP_TOOL_EXECUTION_TIME, execution_time)
        if output_data is not None:
            span.set_attribute(MCPAttributes.MCP_TOOL_OUTPUT_SIZE, len(output_data))

    for key, value in metrics.items():
        if value is not None:
            span.set_attribute(f"metrics.{key}", value)


def create_span_event(event_name: str, operation_type: str, **event_data) -> dict:
    """Create a structured span event with consistent formatting.

    Args:
        event_name: Name of the event
        operation_type: Type of operation (tool, http_request, server)
        **event_data: Additional event data

    Returns:
        Dictionary with structured event data
    """
    event = {
        "event_name": event_name,
        "event_type": operation_type,
        "timestamp": int(time.time() * 1000),
    }
    for key, value in event_data.items():
        if value is not None:
            event[key] = value if isinstance(value, (str, int, float, bool)) else str(value)

    session_id = extract_session_id_from_request()
    if session_id:
        event["session_id"] = session_id

    return event


# MCP-specific semantic conventions
# Following OpenTelemetry naming conventions: https://opentelemetry.io/docs/specs/semconv/
class MCPAttributes:
    """MCP-specific span attributes following OpenTelemetry semantic conventions."""

    # MCP tool execution attributes
    MCP_TOOL_NAME = "mcp.tool.name"
    MCP_TOOL_ARGUMENTS = "mcp.tool.arguments"
    MCP_TOOL_CATEGORY = "mcp.tool.category"
    MCP_TOOL_EXECUTION_TIME = "mcp.tool.execution_time_ms"
    MCP_TOOL_INPUT_SIZE = "mcp.tool.input.size_bytes"
    MCP_TOOL_OUTPUT_SIZE = "mcp.tool.output.size_bytes"

    # MCP server attributes
    MCP_TRANSPORT = "mcp.transport"

    # MCP session attributes for SSE connections
    MCP_SESSION_ID = "mcp.session.id"
    MCP_SESSION_TYPE = "mcp.session.type"

    # MCP operation context
    MCP_OPERATION_ID = "mcp.operation.id"
    MCP_OPERATION_TYPE = "mcp.operation.type"


class TempoAttributes:
    """Span attributes describing a Tempo API request."""

    TEMPO_URL = "tempo.url"
    TEMPO_QUERY = "tempo.query"
    TEMPO_QUERY_START = "tempo.query.start"
    TEMPO_QUERY_END = "tempo.query.end"
    TEMPO_QUERY_LIMIT = "tempo.query.limit"
    TEMPO_TRACE_ID = "tempo.trace.id"
    TEMPO_AUTH_TYPE = "tempo.auth.type"
    TEMPO_PROXY = "tempo.proxy"
    TEMPO_TRACES_COUNT = "tempo.traces.count"


def extract_session_id_from_request() -> Optional[str]:
    """Extract the MCP session ID for the current request.

    Looks at the HTTP request headers and query parameters first, and falls
    back to a per-process ID for stdio transport.
    """
    try:
        from fastmcp.server.dependencies import get_http_request

        request = get_http_request()
        for header_name in ("mcp-session-id", "x-session-id", "session-id"):
            session_id = request.headers.get(header_name)
            if session_id:
                return session_id

        session_id = request.query_params.get("session_id")
        if session_id:
            return session_id
    except (ImportError, RuntimeError):
        # No active HTTP request
        pass

    if os.getenv("MCP_TRANSPORT", "stdio") == "stdio":
        return f"stdio-{os.getpid()}"
    return None
