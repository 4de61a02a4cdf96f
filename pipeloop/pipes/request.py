"""
HTTP transport to the pipe endpoint.

`PipeRequest` posts a request body to an endpoint and returns either a
complete `RunResponse` or, for streamed requests, a `RunResponseStream`
whose units are decoded from server-sent events as they arrive. The
thread id of the conversation is read from the `lb-thread-id` response
header.

When the dispatcher targets a local development server, a server that
is not reachable is not an error: `post` returns None, which the
orchestrator hands back to its caller as an empty result.

HTTP clients are pooled by base URL and shared by all dispatchers
targeting the same endpoint. Call `cleanup_clients` on shutdown.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from ..utils import logger as default_logger
from ..utils.logging import LoggerBase
from .errors import APIError
from .messages import (
    ChunkStream,
    RawResponseInfo,
    RunResponse,
    RunResponseStream,
)

THREAD_ID_HEADER = "lb-thread-id"
LLM_KEY_HEADER = "LB-LLM-Key"

# one client per base URL
_client_pool: dict[str, httpx.AsyncClient] = {}


def get_or_create_client(
    base_url: str, timeout: float = 30.0
) -> httpx.AsyncClient:
    """Get or create the pooled HTTP client of a base URL."""
    client = _client_pool.get(base_url)
    if client is None or client.is_closed:
        client = httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
                keepalive_expiry=30.0,
            ),
        )
        _client_pool[base_url] = client
    return client


async def cleanup_clients() -> None:
    """Close all pooled clients."""
    for client in _client_pool.values():
        await client.aclose()
    _client_pool.clear()


async def _iter_events(
    response: httpx.Response,
) -> AsyncIterator[ChunkStream]:
    """Decode the units of a server-sent event stream. The response is
    closed when the stream ends or the iterator is closed."""
    try:
        async for line in response.aiter_lines():
            line = line.strip()
            if not line.startswith("data:"):
                continue
            data = line[len("data:"):].strip()
            if data == "[DONE]":
                break
            if not data:
                continue
            yield ChunkStream.model_validate(json.loads(data))
    finally:
        await response.aclose()


def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        error = body.get('error')
        if isinstance(error, dict) and error.get('message'):
            return str(error['message'])
        if isinstance(error, str):
            return error
        if body.get('message'):
            return str(body['message'])
    return default


class PipeRequest:
    """Dispatches requests to the pipe endpoint.

    Args:
        base_url: base URL of the endpoint
        api_key: pipe API key, sent as a bearer token
        llm_key: model provider key, sent in the LB-LLM-Key header
        timeout: HTTP timeout in seconds, for pooled clients
        client: an HTTP client to use instead of the pooled one
        check_local_server: return None from `post` if the server at
            base_url cannot be reached (for local development)
        logger: logger for connection reports
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        llm_key: str | None = None,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        check_local_server: bool = False,
        logger: LoggerBase = default_logger,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.llm_key = llm_key
        self.timeout = timeout
        self.check_local_server = check_local_server
        self.logger = logger
        self.client = client or get_or_create_client(self.base_url, timeout)

    def with_credentials(
        self, api_key: str | None = None, llm_key: str | None = None
    ) -> 'PipeRequest':
        """A dispatcher sharing this one's client, with the given
        credentials replacing the current ones."""
        return PipeRequest(
            self.base_url,
            api_key if api_key is not None else self.api_key,
            llm_key if llm_key is not None else self.llm_key,
            timeout=self.timeout,
            client=self.client,
            check_local_server=self.check_local_server,
            logger=self.logger,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if self.llm_key:
            headers[LLM_KEY_HEADER] = self.llm_key
        return headers

    async def is_local_server_running(self) -> bool:
        """Whether the server at the base URL accepts connections."""
        try:
            await self.client.get(self.base_url, timeout=5.0)
        except httpx.TransportError as e:
            self.logger.warning(
                f"Local server at {self.base_url} is not running: {e}"
            )
            return False
        return True

    async def post(
        self,
        endpoint: str,
        body: dict[str, Any],
        *,
        stream: bool = False,
        raw_response: bool = False,
    ) -> RunResponse | RunResponseStream | None:
        """
        Post a request body to an endpoint.

        Returns:
            the response, or None if a local server was required and
            is not running

        Raises:
            APIError: non-success status of the endpoint
            httpx.HTTPError: transport failures
        """
        if self.check_local_server and not await self.is_local_server_running():
            return None

        url = f"{self.base_url}{endpoint}"
        self.logger.debug(f"POST {url} (stream={stream})")
        request = self.client.build_request(
            "POST", url, headers=self._headers(), json=body
        )
        response = await self.client.send(request, stream=stream)

        if response.is_error:
            await response.aread()
            await response.aclose()
            try:
                error_body: Any = response.json()
            except ValueError:
                error_body = response.text
            raise APIError(
                response.status_code,
                _error_message(error_body, response.reason_phrase),
                error_body,
            )

        thread_id = response.headers.get(THREAD_ID_HEADER)
        raw = (
            RawResponseInfo(headers=dict(response.headers))
            if raw_response
            else None
        )

        if stream:
            return RunResponseStream(
                stream=_iter_events(response),
                thread_id=thread_id,
                raw_response=raw,
            )

        result = RunResponse.model_validate(response.json())
        result.thread_id = thread_id or result.thread_id
        result.raw_response = raw
        return result
