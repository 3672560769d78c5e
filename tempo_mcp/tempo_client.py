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

"""HTTP access to the Tempo search and trace APIs."""

import json
from typing import Dict, Optional

import requests
from requests.auth import HTTPBasicAuth
from opentelemetry.semconv.trace import SpanAttributes

from .config import REQUEST_TIMEOUT_SECONDS, get_http_proxy, get_tempo_url
from .exceptions import (
    TempoConnectionError,
    TempoHTTPError,
    TempoQueryError,
    TempoResponseError,
)
from .models import QueryRequest, SearchResult, TempoConnection
from .query_url import build_search_url, build_trace_url
from .telemetry import (
    get_tracer,
    get_logger,
    add_span_attributes,
    add_enhanced_error_attributes,
    create_span_event,
    TempoAttributes,
)

USER_AGENT = "tempo-mcp-server/0.1.0"

tracer = get_tracer()
logger = get_logger()


def resolve_tempo_url(url: Optional[str] = None) -> str:
    """Use ``url`` when given, else ``TEMPO_URL``, else the default."""
    return url if url else get_tempo_url()


def _request_headers(connection: TempoConnection) -> Dict[str, str]:
    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    if connection.token:
        headers["Authorization"] = f"Bearer {connection.token}"
    return headers


def _request_auth(connection: TempoConnection) -> Optional[HTTPBasicAuth]:
    # Bearer token takes precedence over basic auth
    if connection.token:
        return None
    if connection.username or connection.password:
        return HTTPBasicAuth(connection.username, connection.password)
    return None


def make_tempo_request(connection: TempoConnection, url: str) -> bytes:
    """GET ``url`` from Tempo and return the raw response body.

    Raises:
        TempoConnectionError: if the request could not be sent or timed out
        TempoHTTPError: if Tempo answered with anything but 200
    """
    with tracer.start_as_current_span("tempo.http.get") as span:
        proxy = get_http_proxy()
        add_span_attributes(
            span,
            **{
                SpanAttributes.HTTP_METHOD: "GET",
                SpanAttributes.HTTP_URL: url,
                SpanAttributes.USER_AGENT_ORIGINAL: USER_AGENT,
                TempoAttributes.TEMPO_AUTH_TYPE: connection.auth_type,
                TempoAttributes.TEMPO_PROXY: proxy,
            },
        )

        proxies = None
        if proxy:
            logger.info(f"Using HTTP_PROXY: {proxy}")
            proxies = {"http": proxy, "https": proxy}

        logger.info(f"Executing Tempo request: {url}")
        try:
            response = requests.get(
                url,
                headers=_request_headers(connection),
                auth=_request_auth(connection),
                proxies=proxies,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            error = TempoConnectionError(f"request to {url} failed: {e}")
            add_enhanced_error_attributes(span, error, url=url)
            raise error from e

        add_span_attributes(
            span,
            **{
                SpanAttributes.HTTP_STATUS_CODE: response.status_code,
                SpanAttributes.HTTP_RESPONSE_CONTENT_LENGTH: len(response.content),
            },
        )

        if response.status_code != 200:
            error = TempoHTTPError(response.status_code, response.text, url=url)
            add_enhanced_error_attributes(span, error, url=url)
            logger.warning(
                "Tempo request failed",
                extra={"status_code": response.status_code, "url": url},
            )
            raise error

        logger.info(f"Tempo raw response length: {len(response.content)} bytes")
        return response.content


def decode_search_response(body: bytes) -> SearchResult:
    """Decode a ``/api/search`` body.

    Raises:
        TempoResponseError: if the body is not a valid search response
        TempoQueryError: if Tempo reported an error in the body
    """
    try:
        data = json.loads(body)
        result = SearchResult.from_dict(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise TempoResponseError(f"invalid Tempo response: {e}") from e

    if result.error:
        raise TempoQueryError(result.error)
    return result


def search_traces(request: QueryRequest) -> SearchResult:
    """Run a TraceQL search and return the decoded result."""
    with tracer.start_as_current_span("tempo.search_traces") as span:
        add_span_attributes(
            span,
            **{
                SpanAttributes.CODE_FUNCTION: "search_traces",
                TempoAttributes.TEMPO_URL: request.connection.url,
                TempoAttributes.TEMPO_QUERY: request.query,
                TempoAttributes.TEMPO_QUERY_START: request.start,
                TempoAttributes.TEMPO_QUERY_END: request.end,
                TempoAttributes.TEMPO_QUERY_LIMIT: request.limit,
            },
        )

        url = build_search_url(
            request.connection.url, request.query, request.start, request.end, request.limit
        )
        body = make_tempo_request(request.connection, url)

        try:
            result = decode_search_response(body)
        except (TempoResponseError, TempoQueryError) as e:
            add_enhanced_error_attributes(span, e, query=request.query)
            raise

        add_span_attributes(span, **{TempoAttributes.TEMPO_TRACES_COUNT: len(result.traces)})
        span.add_event(
            "tempo_search_completed",
            create_span_event(
                "tempo_search_completed",
                "http_request",
                traces_count=len(result.traces),
                response_size_bytes=len(body),
            ),
        )
        return result


def fetch_trace(connection: TempoConnection, trace_id: str) -> bytes:
    """Return the raw JSON body of a single trace, undecoded."""
    with tracer.start_as_current_span("tempo.fetch_trace") as span:
        add_span_attributes(
            span,
            **{
                SpanAttributes.CODE_FUNCTION: "fetch_trace",
                TempoAttributes.TEMPO_URL: connection.url,
                TempoAttributes.TEMPO_TRACE_ID: trace_id,
            },
        )
        return make_tempo_request(connection, build_trace_url(connection.url, trace_id))
