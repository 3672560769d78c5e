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

"""URL construction for the Tempo search and trace APIs."""

from urllib.parse import SplitResult, parse_qsl, quote, urlencode, urlsplit, urlunsplit

from .config import SEARCH_API_PATH, TRACES_API_PATH
from .exceptions import InvalidTempoURLError

NANOSECONDS_PER_SECOND = 1_000_000_000


def _split_base_url(base_url: str) -> SplitResult:
    """Split and validate a Tempo base URL."""
    try:
        parts = urlsplit(base_url.strip())
        # Accessing .port validates it
        parts.port
    except ValueError as e:
        raise InvalidTempoURLError(base_url, str(e)) from e

    if not parts.scheme or not parts.netloc:
        raise InvalidTempoURLError(base_url, "expected scheme://host[:port][/path]")
    return parts


def build_search_url(base_url: str, query: str, start: int, end: int, limit: int) -> str:
    """Build the Tempo search URL for a TraceQL query.

    Args:
        base_url: Tempo server URL, optionally with a path prefix
        query: TraceQL query string
        start: Range start in Unix seconds
        end: Range end in Unix seconds
        limit: Maximum number of traces to return

    Returns:
        The fully qualified search URL

    Raises:
        InvalidTempoURLError: if ``base_url`` cannot be parsed
    """
    parts = _split_base_url(base_url)

    path = parts.path
    if SEARCH_API_PATH not in path:
        if path in ("", "/"):
            path = SEARCH_API_PATH
        else:
            path = path.rstrip("/") + SEARCH_API_PATH

    params = dict(parse_qsl(parts.query, keep_blank_values=True))
    params.update(
        {
            "q": query,
            "start": str(start * NANOSECONDS_PER_SECOND),
            "end": str(end * NANOSECONDS_PER_SECOND),
            "limit": str(limit),
        }
    )
    encoded = urlencode(sorted(params.items()))

    return urlunsplit((parts.scheme, parts.netloc, path, encoded, parts.fragment))


def build_trace_url(base_url: str, trace_id: str) -> str:
    """Build the Tempo URL that returns a single trace by ID.

    Raises:
        InvalidTempoURLError: if ``base_url`` cannot be parsed
    """
    _split_base_url(base_url)
    return f"{base_url.strip().rstrip('/')}{TRACES_API_PATH}/{quote(trace_id, safe='')}"
