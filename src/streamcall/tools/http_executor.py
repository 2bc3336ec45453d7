"""Remote tool execution over HTTP.

Posts ``{"tool_name", "arguments", "client_id"}`` to
``{server_url}/api/tools/execute`` and extracts the tool output from the
response.  A non-empty ``error`` field is always reported as a failure.
Otherwise tool servers differ in how they shape the reply, so the first
non-null of these wins:

- ``result``
- ``response``
- ``data.result`` (or ``data`` itself when it is a scalar)

A body that is not JSON, or JSON without any of the fields above, is
returned verbatim.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from streamcall.config import ToolServerSpec
from streamcall.errors import ToolExecutionError

_logger = logging.getLogger(__name__)

EXECUTE_PATH = "api/tools/execute"


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def extract_output(body: str) -> str:
    """Pull the tool output out of a tool server response body."""
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body
    if not isinstance(data, dict):
        return body

    if data.get("error"):
        raise ToolExecutionError(f"tool server error: {_as_text(data['error'])}")
    for key in ("result", "response"):
        if data.get(key) is not None:
            return _as_text(data[key])
    inner = data.get("data")
    if isinstance(inner, dict) and inner.get("result") is not None:
        return _as_text(inner["result"])
    if inner is not None and not isinstance(inner, (dict, list)):
        return _as_text(inner)
    return body


class HttpToolExecutor:
    """``ToolExecutor`` backed by a remote tool server."""

    def __init__(
        self,
        server: ToolServerSpec,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not server.url:
            raise ValueError("tool server url is required")
        self.server = server
        self.url = server.url.rstrip("/") + "/" + EXECUTE_PATH
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(server.timeout, connect=10),
        )

    async def invoke(self, name: str, arguments: dict[str, Any]) -> str:
        payload = {
            "tool_name": name,
            "arguments": arguments or {},
            "client_id": self.server.client_id,
        }
        _logger.debug("POST %s tool=%s", self.url, name)
        try:
            resp = await self._client.post(self.url, json=payload)
        except httpx.TimeoutException as e:
            raise ToolExecutionError(f"tool server timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ToolExecutionError(f"tool server unreachable: {e}") from e

        if resp.status_code >= 400:
            raise ToolExecutionError(
                f"tool server returned HTTP {resp.status_code}: {resp.text[:200]}"
            )
        return extract_output(resp.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
