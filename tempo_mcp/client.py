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

"""Command line client for exercising the Tempo MCP server.

Spawns the server over stdio, calls one tool and prints the text it returns::

    tempo-mcp-client tempo_query '{duration>1s}'
    tempo-mcp-client tempo_query '{duration>500ms}' -30m now 50
    tempo-mcp-client tempo_query --token $TOKEN '{duration>1s}'
    tempo-mcp-client tempo_query http://tempo:3200 '{service.name="frontend"}'
    tempo-mcp-client tempo_trace 2f3e0cee77ae5dc9c17ade3689eb2e54 --filename trace.json
    tempo-mcp-client health --url http://localhost:8080/health
"""

import argparse
import asyncio
import shlex
import sys
from typing import Any, Dict, List, Optional

import httpx
from mcp.client.session import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client

DEFAULT_HEALTH_URL = "http://localhost:8080/health"


def default_server_command() -> List[str]:
    return [sys.executable, "-m", "tempo_mcp.main"]


def parse_tempo_query_args(
    values: List[str], parser: argparse.ArgumentParser
) -> Dict[str, Any]:
    """Map positional ``[url] query [start] [end] [limit]`` onto tool arguments."""
    params: Dict[str, Any] = {}

    if len(values) >= 2 and values[0].startswith("http"):
        params["url"] = values[0]
        params["query"] = values[1]
        rest = values[2:]
    elif values:
        params["query"] = values[0]
        rest = values[1:]
    else:
        parser.error("query is required")

    if len(rest) > 3:
        parser.error(f"unexpected arguments: {' '.join(rest[3:])}")
    if len(rest) >= 1:
        params["start"] = rest[0]
    if len(rest) >= 2:
        params["end"] = rest[1]
    if len(rest) >= 3:
        try:
            params["limit"] = int(float(rest[2]))
        except ValueError:
            parser.error(f"invalid limit: {rest[2]}")

    return params


async def call_tool(
    server_command: List[str], tool: str, arguments: Dict[str, Any]
) -> str:
    """Start the server, call ``tool`` and return its text content.

    Raises:
        RuntimeError: if the server reports a tool-call error
    """
    server_params = StdioServerParameters(
        command=server_command[0], args=server_command[1:]
    )

    async with stdio_client(server_params) as (read, write):
        async with ClientSession(read, write) as session:
            await session.initialize()
            result = await session.call_tool(tool, arguments)

    text = "\n".join(
        item.text for item in result.content if getattr(item, "type", None) == "text"
    )
    if result.isError:
        raise RuntimeError(text or f"{tool} failed")
    return text


def check_health(url: str) -> int:
    """GET a running server's health endpoint; returns a process exit code."""
    try:
        response = httpx.get(url, timeout=5.0)
    except httpx.HTTPError as exc:
        print(f"[ERROR] Health check failed: {exc}", file=sys.stderr)
        return 2

    print({"status_code": response.status_code, "body": response.text})
    return 0 if response.status_code == 200 else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tempo-mcp-client", description="Call Tempo MCP server tools from the shell"
    )
    parser.add_argument(
        "--server-command",
        help="Command used to start the MCP server (default: this Python running tempo_mcp.main)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_query = subparsers.add_parser(
        "tempo_query",
        help="Search traces",
        usage="%(prog)s [--username U] [--password P] [--token T] [url] query [start] [end] [limit]",
    )
    # REMAINDER keeps relative times such as -30m from being read as options
    p_query.add_argument("args", nargs=argparse.REMAINDER, metavar="ARG")
    p_query.add_argument("--username")
    p_query.add_argument("--password")
    p_query.add_argument("--token")

    p_trace = subparsers.add_parser("tempo_trace", help="Fetch a single trace by ID")
    p_trace.add_argument("trace_id")
    p_trace.add_argument("--url")
    p_trace.add_argument("--filename")
    p_trace.add_argument("--username")
    p_trace.add_argument("--password")
    p_trace.add_argument("--token")

    p_health = subparsers.add_parser("health", help="Call a running server's /health endpoint")
    p_health.add_argument("--url", default=DEFAULT_HEALTH_URL)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "health":
        return check_health(args.url)

    if args.command == "tempo_query":
        arguments = parse_tempo_query_args(args.args, parser)
    else:
        arguments = {"trace_id": args.trace_id}
        for name in ("url", "filename"):
            if getattr(args, name):
                arguments[name] = getattr(args, name)
    for name in ("username", "password", "token"):
        if getattr(args, name):
            arguments[name] = getattr(args, name)

    server_command = (
        shlex.split(args.server_command) if args.server_command else default_server_command()
    )

    try:
        output = asyncio.run(call_tool(server_command, args.command, arguments))
    except RuntimeError as exc:
        print(f"MCP error: {exc}", file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
