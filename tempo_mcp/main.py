#!/usr/bin/env python3
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

"""Grafana Tempo MCP Server."""

import signal
import sys
import time

import uvicorn
from fastapi import FastAPI
from fastmcp import FastMCP
from opentelemetry.semconv.trace import SpanAttributes

from tempo_mcp.config import ServerConfig, get_tempo_url
from tempo_mcp.telemetry import (
    telemetry,
    get_tracer,
    get_logger,
    set_span_error,
    add_span_attributes,
    MCPAttributes,
)
from tempo_mcp.tools import tempo_query, tempo_trace

SERVICE_NAME = "tempo-mcp-server"
TOOL_NAMES = ("tempo_query", "tempo_trace")

telemetry.initialize()

logger = get_logger()
tracer = get_tracer()


with tracer.start_as_current_span("mcp.server.initialize"):
    logger.info("Initializing MCP server")
    mcp = FastMCP("Tempo MCP Server")

    mcp.tool(name="tempo_query")(tempo_query)
    mcp.tool(name="tempo_trace")(tempo_trace)

    mcp_http_app = mcp.http_app(path="/", transport="http")
    mcp_sse_app = mcp.http_app(path="/", transport="sse")

    app = FastAPI(
        title="Tempo MCP Server",
        description="MCP server exposing Grafana Tempo trace search",
        lifespan=mcp_http_app.lifespan,
    )

    logger.info("MCP server initialized successfully")


@app.get("/health")
async def health_check():
    """Health check endpoint for liveness probes."""
    config = ServerConfig.from_env()
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "timestamp": time.time(),
        "transport": config.transport,
        "port": config.port,
        "tempo_url": get_tempo_url(),
        "mcp_available": mcp is not None,
    }


@app.get("/ready")
async def readiness_check():
    """Readiness check endpoint.

    Ready once the MCP server exists and the FastAPI routes are mounted.
    """
    mcp_ready = mcp is not None
    app_ready = app is not None and len(app.routes) > 0

    if not (mcp_ready and app_ready):
        logger.warning(
            "Service not ready",
            extra={"mcp_initialized": mcp_ready, "app_initialized": app_ready},
        )

    return {
        "status": "ready" if mcp_ready and app_ready else "not_ready",
        "service": SERVICE_NAME,
        "mcp_initialized": mcp_ready,
        "app_initialized": app_ready,
        "timestamp": time.time(),
    }


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "Tempo MCP Server",
        "tools": list(TOOL_NAMES),
        "mcp_http_endpoint": "/mcp/",
        "mcp_sse_endpoint": "/sse/",
        "health_endpoint": "/health",
    }


app.mount("/mcp", mcp_http_app)  # HTTP streaming transport
app.mount("/sse", mcp_sse_app)  # SSE transport


def setup_signal_handlers(config: ServerConfig):
    """Set up signal handlers for graceful shutdown."""

    def signal_handler(signum, frame):
        signal_name = "SIGTERM" if signum == signal.SIGTERM else "SIGINT"
        # stdout belongs to the stdio transport
        print(f"\nReceived {signal_name}. Shutting down gracefully...", file=sys.stderr)
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    # uvicorn handles SIGINT itself
    if not config.serves_http and config.transport == "stdio":
        signal.signal(signal.SIGINT, signal_handler)


def main():
    """Main entry point for the MCP server."""
    with tracer.start_as_current_span("mcp.server.main") as span:
        try:
            config = ServerConfig.from_env()
            add_span_attributes(
                span,
                **{
                    SpanAttributes.CODE_FUNCTION: "main",
                    MCPAttributes.MCP_TRANSPORT: config.transport,
                    "server.port": config.port,
                },
            )

            setup_signal_handlers(config)

            span.add_event(
                "server_starting",
                {
                    "transport": config.transport,
                    "host": config.host,
                    "port": config.port,
                    "tempo_url": get_tempo_url(),
                },
            )

            if config.serves_http:
                logger.info(
                    f"Starting MCP server with HTTP transport (both /mcp and /sse endpoints) on {config.host}:{config.port}"
                )
                try:
                    uvicorn.run(app, host=config.host, port=config.port, log_level="info")
                except KeyboardInterrupt:
                    logger.info("Shutting down gracefully...")
            elif config.transport == "sse":
                logger.info(
                    f"Starting MCP server with SSE transport on {config.host}:{config.port}"
                )
                try:
                    mcp.run(transport="sse", host=config.host, port=config.port)
                except KeyboardInterrupt:
                    logger.info("Shutting down gracefully...")
            else:
                logger.info("Starting MCP server with STDIO transport")
                try:
                    mcp.run()
                except KeyboardInterrupt:
                    logger.info("Shutting down gracefully...")
                    sys.exit(0)
        except Exception as e:
            set_span_error(span, e)
            logger.error("Failed to start MCP server", exc_info=True)
            raise


if __name__ == "__main__":
    main()
