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

"""Exceptions raised while talking to Tempo."""

from typing import Optional


class TempoMCPError(Exception):
    """Base exception for Tempo MCP server errors."""

    pass


class TimeFormatError(TempoMCPError, ValueError):
    """A time argument matched none of the supported formats."""

    def __init__(self, value: str):
        super().__init__(f"unsupported time format: {value}")
        self.value = value


class InvalidTempoURLError(TempoMCPError, ValueError):
    """The Tempo base URL could not be parsed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"invalid Tempo URL {url!r}: {reason}")
        self.url = url
        self.reason = reason


class TempoConnectionError(TempoMCPError):
    """The HTTP request to Tempo could not be completed."""

    pass


class TempoHTTPError(TempoMCPError):
    """Tempo answered with a non-200 status."""

    def __init__(self, status_code: int, body: str, url: Optional[str] = None):
        super().__init__(f"HTTP error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body
        self.url = url


class TempoResponseError(TempoMCPError):
    """The Tempo response body was not valid JSON."""

    pass


class TempoQueryError(TempoMCPError):
    """Tempo reported an error in the response payload."""

    def __init__(self, message: str):
        super().__init__(f"Tempo error: {message}")
        self.tempo_message = message
