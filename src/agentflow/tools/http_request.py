"""HTTP request tool - call external APIs with httpx."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from agentflow.errors import ToolError
from agentflow.tools.base import BaseTool

logger = logging.getLogger(__name__)

_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


class HTTPRequestTool(BaseTool):
    id = "http_request"
    name = "HTTP Request"
    description = "Make HTTP requests to APIs"
    capabilities = ["api_call", "http_request", "data_fetch"]
    input_schema = {
        "type": "object",
        "properties": {
            "url": {"type": "string"},
            "method": {"type": "string", "default": "GET"},
            "headers": {"type": "object"},
            "body": {"type": "string"},
            "json": {"type": "object"},
        },
        "required": ["url"],
    }
    output_schema = {
        "type": "object",
        "properties": {
            "status": {"type": "number"},
            "data": {"type": "object"},
            "headers": {"type": "object"},
        },
    }

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self._timeout = timeout
        self._client = client

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        method = str(payload.get("method", "GET")).upper()
        if method not in _METHODS:
            raise ToolError(f"Unsupported HTTP method: {method}")

        kwargs: dict[str, Any] = {"headers": payload.get("headers") or {}}
        if payload.get("json") is not None:
            kwargs["json"] = payload["json"]
        elif payload.get("body") is not None:
            kwargs["content"] = payload["body"]

        try:
            if self._client is not None:
                response = await self._client.request(method, payload["url"], **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.request(method, payload["url"], **kwargs)
        except httpx.HTTPError as e:
            raise ToolError(f"{method} {payload['url']} failed: {e}") from e

        logger.info(f"http_request: {method} {payload['url']} -> {response.status_code}")
        try:
            data: Any = response.json()
        except ValueError:
            data = response.text

        return {
            "status": response.status_code,
            "data": data,
            "headers": dict(response.headers),
            "confidence": 0.9 if response.is_success else 0.2,
        }
