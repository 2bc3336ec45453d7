"""Transports that open a streaming completion request and yield wire lines.

The controller only depends on the ``Transport`` / ``StreamHandle``
protocols.  ``HttpxTransport`` is the concrete implementation for
OpenAI-compatible ``/chat/completions`` endpoints (LM Studio, Ollama,
vLLM, hosted APIs).
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Protocol, runtime_checkable

import httpx

from streamcall.config import EndpointSpec
from streamcall.errors import TransportError
from streamcall.types import ChatRequest

_logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = (429, 500, 502, 503, 504)
_BACKOFF_BASE = 1  # seconds -- exponential: 1, 2, 4


@runtime_checkable
class StreamHandle(Protocol):
    """An open stream.  ``lines()`` ends when the server closes it."""

    def lines(self) -> AsyncIterator[str]: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class Transport(Protocol):
    async def open(self, request: ChatRequest) -> StreamHandle: ...


# ---------------------------------------------------------------------------
# httpx implementation
# ---------------------------------------------------------------------------

class HttpxStreamHandle:
    """Wraps a streaming ``httpx.Response``."""

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def lines(self) -> AsyncIterator[str]:
        try:
            async for line in self._response.aiter_lines():
                yield line
        except httpx.TimeoutException as e:
            raise TransportError(f"stream timed out: {e}") from e
        except httpx.HTTPError as e:
            if self._closed:
                return
            raise TransportError(f"stream interrupted: {e}") from e
        except httpx.StreamError as e:
            if self._closed:
                return
            raise TransportError(f"stream interrupted: {e}") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class HttpxTransport:
    """Streams chat completions over HTTP with ``httpx.AsyncClient``.

    Retryable statuses (429 and 5xx gateway errors) and connection
    failures are retried with exponential backoff, but only before the
    response body is read.  Once lines flow, failures surface as
    ``TransportError`` and the caller decides what to do.
    """

    def __init__(
        self,
        endpoint: EndpointSpec,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                endpoint.timeout, connect=30, read=endpoint.read_timeout,
            ),
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.endpoint.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def open(self, request: ChatRequest) -> HttpxStreamHandle:
        """POST *request* and return a handle once a 2xx status arrives.

        Raises
        ------
        TransportError
            On non-retryable status, exhausted retries, or network failure.
        """
        payload = request.to_payload()
        retries = max(1, self.endpoint.retries)
        last_error: str = "exhausted retries"
        last_status: int | None = None

        for attempt in range(retries):
            http_request = self._client.build_request(
                "POST", self.endpoint.url, json=payload, headers=self._headers(),
            )
            try:
                response = await self._client.send(http_request, stream=True)
            except httpx.TimeoutException as e:
                last_error = f"timeout: {e}"
                _logger.warning(
                    "Stream request timeout (attempt %d/%d): %s",
                    attempt + 1, retries, e,
                )
            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                _logger.warning(
                    "Stream request failed (attempt %d/%d): %s",
                    attempt + 1, retries, e,
                )
            else:
                if response.status_code in _RETRYABLE_STATUS:
                    await response.aclose()
                    last_status = response.status_code
                    last_error = f"HTTP {response.status_code}"
                    _logger.warning(
                        "Stream endpoint returned %d (attempt %d/%d), retrying...",
                        response.status_code, attempt + 1, retries,
                    )
                elif response.status_code >= 400:
                    body = await response.aread()
                    await response.aclose()
                    raise TransportError(
                        f"HTTP {response.status_code}: "
                        f"{body.decode('utf-8', 'replace')[:200]}",
                        status_code=response.status_code,
                    )
                else:
                    _logger.debug("Stream opened: %s", self.endpoint.url)
                    return HttpxStreamHandle(response)

            if attempt < retries - 1:
                await asyncio.sleep(_BACKOFF_BASE * (2 ** attempt))

        raise TransportError(last_error, status_code=last_status)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
