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

"""Tempo MCP tool implementations.

The functions here are registered as MCP tools by ``tempo_mcp.main``. Failures
are raised as ``ToolError`` so they reach the client as tool-call errors.
"""

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated

from fastmcp.exceptions import ToolError
from opentelemetry.semconv.trace import SpanAttributes
from pydantic import Field

from .config import DEFAULT_LIMIT, DEFAULT_LOOKBACK, ENV_TEMPO_URL, get_tempo_url
from .exceptions import InvalidTempoURLError, TempoMCPError, TimeFormatError
from .formatting import format_search_results
from .models import QueryRequest, TempoConnection
from .tempo_client import fetch_trace, resolve_tempo_url, search_traces
from .time_parser import parse_time, to_unix_seconds
from .telemetry import (
    get_tracer,
    get_logger,
    add_span_attributes,
    create_root_span_context,
    extract_session_id_from_request,
    add_enhanced_error_attributes,
    add_mcp_operation_context,
    add_operation_metrics,
    create_span_event,
    MCPAttributes,
    TempoAttributes,
)

tracer = get_tracer()
logger = get_logger()

UrlParam = Annotated[
    str,
    Field(
        description=f"Tempo server URL (default: {get_tempo_url()} from {ENV_TEMPO_URL} env var)"
    ),
]
UsernameParam = Annotated[str, Field(description="Username for basic authentication")]
PasswordParam = Annotated[str, Field(description="Password for basic authentication")]
TokenParam = Annotated[str, Field(description="Bearer token for authentication")]


def _fail(span, prefix: str, error: Exception, tool_name: str, start_time: float, **context):
    """Record ``error`` on the span and log it, returning the ToolError to raise."""
    add_enhanced_error_attributes(
        span,
        error,
        tool_name=tool_name,
        processing_time_ms=int((time.time() - start_time) * 1000),
        **context,
    )
    span.add_event(
        "tool_execution_failed",
        create_span_event(
            "tool_execution_failed",
            "tool",
            tool_name=tool_name,
            error_type=error.__class__.__name__,
            error_message=str(error),
        ),
    )
    logger.error(
        f"{tool_name} failed: {prefix}: {error}",
        exc_info=True,
        extra={"tool_name": tool_name, "error_type": error.__class__.__name__},
    )
    return ToolError(f"{prefix}: {error}")


async def tempo_query(
    query: Annotated[str, Field(description="Tempo query string")],
    url: UrlParam = "",
    username: UsernameParam = "",
    password: PasswordParam = "",
    token: TokenParam = "",
    start: Annotated[
        str, Field(description="Start time for the query (default: 1h ago)")
    ] = "",
    end: Annotated[str, Field(description="End time for the query (default: now)")] = "",
    limit: Annotated[
        int,
        Field(description=f"Maximum number of traces to return (default: {DEFAULT_LIMIT})"),
    ] = DEFAULT_LIMIT,
) -> str:
    """Run a query against Grafana Tempo"""
    start_time = time.time()
    session_id = extract_session_id_from_request()

    with create_root_span_context(
        tracer, "mcp.tool.tempo_query", "tool", session_id
    ) as span:
        add_mcp_operation_context(
            span,
            operation_type="tool",
            operation_name="tempo_query",
            input_data={"query": query, "start": start, "end": end, "limit": limit},
            tool_category="trace_search",
        )

        connection = TempoConnection(
            url=resolve_tempo_url(url), username=username, password=password, token=token
        )

        now = datetime.now(timezone.utc)
        range_start = now - DEFAULT_LOOKBACK
        range_end = now
        if start:
            try:
                range_start = parse_time(start, now=now)
            except TimeFormatError as e:
                raise _fail(span, "invalid start time", e, "tempo_query", start_time) from e
        if end:
            try:
                range_end = parse_time(end, now=now)
            except TimeFormatError as e:
                raise _fail(span, "invalid end time", e, "tempo_query", start_time) from e

        request = QueryRequest(
            query=query,
            start=to_unix_seconds(range_start),
            end=to_unix_seconds(range_end),
            limit=limit,
            connection=connection,
        )

        add_span_attributes(
            span,
            **{
                SpanAttributes.CODE_FUNCTION: "tempo_query",
                MCPAttributes.MCP_TOOL_CATEGORY: "trace_search",
                MCPAttributes.MCP_TOOL_ARGUMENTS: f"query={query}, start={start}, end={end}, limit={limit}",
                TempoAttributes.TEMPO_URL: connection.url,
                TempoAttributes.TEMPO_QUERY: query,
                TempoAttributes.TEMPO_QUERY_START: request.start,
                TempoAttributes.TEMPO_QUERY_END: request.end,
                TempoAttributes.TEMPO_QUERY_LIMIT: limit,
                TempoAttributes.TEMPO_AUTH_TYPE: connection.auth_type,
            },
        )
        span.add_event(
            "tool_execution_started",
            create_span_event(
                "tool_execution_started", "tool", tool_name="tempo_query", query=query
            ),
        )
        logger.info(
            f"Running Tempo query against {connection.url}",
            extra={"query": query, "limit": limit, "session_id": session_id},
        )

        try:
            result = search_traces(request)
        except InvalidTempoURLError as e:
            raise _fail(
                span, "failed to build query URL", e, "tempo_query", start_time, url=connection.url
            ) from e
        except TempoMCPError as e:
            raise _fail(
                span, "query execution failed", e, "tempo_query", start_time, query=query
            ) from e

        formatted = format_search_results(result)

        add_operation_metrics(
            span,
            operation_type="tool",
            start_time=start_time,
            output_data=formatted,
            traces_count=len(result.traces),
        )
        add_span_attributes(
            span,
            **{TempoAttributes.TEMPO_TRACES_COUNT: len(result.traces), "result.success": True},
        )
        logger.info(
            "Tempo query completed",
            extra={
                "traces_count": len(result.traces),
                "processing_time_ms": int((time.time() - start_time) * 1000),
            },
        )
        return formatted


async def tempo_trace(
    trace_id: Annotated[str, Field(description="Tempo trace ID")],
    url: UrlParam = "",
    username: UsernameParam = "",
    password: PasswordParam = "",
    token: TokenParam = "",
    filename: Annotated[
        str, Field(description="Filename to save the JSON trace data to")
    ] = "",
) -> str:
    """Run a trace against Grafana Tempo"""
    start_time = time.time()
    session_id = extract_session_id_from_request()

    with create_root_span_context(
        tracer, "mcp.tool.tempo_trace", "tool", session_id
    ) as span:
        add_mcp_operation_context(
            span,
            operation_type="tool",
            operation_name="tempo_trace",
            input_data={"trace_id": trace_id, "filename": filename},
            tool_category="trace_lookup",
        )

        if not trace_id:
            raise _fail(
                span, "invalid arguments", ValueError("trace_id is required"), "tempo_trace", start_time
            )

        connection = TempoConnection(
            url=resolve_tempo_url(url), username=username, password=password, token=token
        )
        add_span_attributes(
            span,
            **{
                SpanAttributes.CODE_FUNCTION: "tempo_trace",
                MCPAttributes.MCP_TOOL_CATEGORY: "trace_lookup",
                MCPAttributes.MCP_TOOL_ARGUMENTS: f"trace_id={trace_id}, filename={filename}",
                TempoAttributes.TEMPO_URL: connection.url,
                TempoAttributes.TEMPO_TRACE_ID: trace_id,
                TempoAttributes.TEMPO_AUTH_TYPE: connection.auth_type,
            },
        )
        logger.info(f"Received Tempo trace request: {trace_id}")

        try:
            body = fetch_trace(connection, trace_id)
        except TempoMCPError as e:
            raise _fail(
                span, "failed to make Tempo request", e, "tempo_trace", start_time, trace_id=trace_id
            ) from e

        if filename:
            try:
                Path(filename).write_bytes(body)
            except OSError as e:
                raise _fail(
                    span, "failed to save trace to file", e, "tempo_trace", start_time, filename=filename
                ) from e
            response_text = f"Trace saved to {filename}"
            span.add_event(
                "trace_saved",
                create_span_event("trace_saved", "tool", filename=filename, size_bytes=len(body)),
            )
        else:
            response_text = body.decode("utf-8", errors="replace")

        add_operation_metrics(
            span,
            operation_type="tool",
            start_time=start_time,
            output_data=response_text,
            trace_size_bytes=len(body),
        )
        return response_text
