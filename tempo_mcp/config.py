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

"""Environment-driven configuration for the Tempo MCP server."""

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

# Tempo connection
ENV_TEMPO_URL = "TEMPO_URL"
DEFAULT_TEMPO_URL = "http://localhost:3200"
ENV_HTTP_PROXY = "HTTP_PROXY"

# Query defaults
DEFAULT_LIMIT = 20
DEFAULT_LOOKBACK = timedelta(hours=1)
REQUEST_TIMEOUT_SECONDS = 30

# Tempo HTTP API paths
SEARCH_API_PATH = "/api/search"
TRACES_API_PATH = "/api/traces"

VALID_TRANSPORTS = ("stdio", "sse", "http")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_tempo_url() -> str:
    """Return the Tempo base URL from ``TEMPO_URL`` or the default."""
    return os.getenv(ENV_TEMPO_URL) or DEFAULT_TEMPO_URL


def get_http_proxy() -> Optional[str]:
    """Return the ``HTTP_PROXY`` address as a URL, or None when unset.

    A bare ``host:port`` is treated as an http proxy.
    """
    proxy = os.getenv(ENV_HTTP_PROXY)
    if not proxy:
        return None
    if "://" not in proxy:
        proxy = f"http://{proxy}"
    return proxy


@dataclass(frozen=True)
class ServerConfig:
    """Transport and binding settings for the MCP server."""

    transport: str = "stdio"
    host: str = "0.0.0.0"
    mcp_port: int = 8080
    service_port: Optional[int] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if self.transport not in VALID_TRANSPORTS:
            raise ValueError(
                f"MCP_TRANSPORT must be one of {list(VALID_TRANSPORTS)}, got {self.transport}"
            )
        for name, port in (("MCP_PORT", self.mcp_port), ("SERVICE_PORT", self.service_port)):
            if port is not None and not (1 <= port <= 65535):
                raise ValueError(f"{name} must be between 1 and 65535, got {port}")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}, got {self.log_level}"
            )

    @property
    def port(self) -> int:
        """Port the HTTP transports listen on; SERVICE_PORT wins over MCP_PORT."""
        return self.service_port if self.service_port is not None else self.mcp_port

    @property
    def serves_http(self) -> bool:
        """Whether the FastAPI app (both /mcp and /sse) should be served."""
        return self.service_port is not None or self.transport == "http"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        service_port = os.getenv("SERVICE_PORT")
        return cls(
            transport=os.getenv("MCP_TRANSPORT", "stdio").lower(),
            host=os.getenv("MCP_HOST", "0.0.0.0"),
            mcp_port=int(os.getenv("MCP_PORT", "8080")),
            service_port=int(service_port) if service_port else None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
