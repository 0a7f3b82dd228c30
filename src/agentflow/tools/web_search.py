"""Web search tool - DuckDuckGo instant-answer API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from agentflow.errors import ToolError
from agentflow.tools.base import BaseTool

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.duckduckgo.com/"


class WebSearchTool(BaseTool):
    id = "web_search"
    name = "Web Search"
    description = "Search the web for information"
    capabilities = ["search", "research", "information_gathering"]
    input_schema = {
        "type": "object",
        "properties": {
            "query": {"type": "string"},
            "max_results": {"type": "number", "default": 10},
        },
        "required": ["query"],
    }
    output_schema = {
        "type": "object",
        "properties": {
            "results": {"type": "array"},
            "confidence": {"type": "number"},
        },
    }

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> None:
        self._timeout = timeout
        self._client = client

    async def execute(self, payload: dict[str, Any]) -> dict[str, Any]:
        query = str(payload["query"]).strip()
        if not query:
            raise ToolError("Empty search query")
        max_results = int(payload.get("max_results", payload.get("maxResults", 10)))

        params = {"q": query, "format": "json", "no_html": 1, "skip_disambig": 1}
        if self._client is not None:
            response = await self._client.get(SEARCH_URL, params=params)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(SEARCH_URL, params=params)
        if response.status_code >= 400:
            raise ToolError(f"Search failed with HTTP {response.status_code}")

        results = self._collect(response.json())[:max_results]
        logger.info(f"web_search: {len(results)} result(s) for {query!r}")
        return {
            "query": query,
            "results": results,
            "confidence": 0.8 if results else 0.2,
        }

    @staticmethod
    def _collect(data: dict[str, Any]) -> list[dict[str, str]]:
        results: list[dict[str, str]] = []
        if data.get("AbstractText"):
            results.append({
                "title": data.get("Heading", ""),
                "text": data["AbstractText"],
                "url": data.get("AbstractURL", ""),
            })

        def walk(topics: list[Any]) -> None:
            for topic in topics:
                if "Topics" in topic:
                    walk(topic["Topics"])
                elif topic.get("Text"):
                    results.append({
                        "title": topic["Text"].split(" - ")[0],
                        "text": topic["Text"],
                        "url": topic.get("FirstURL", ""),
                    })

        walk(data.get("RelatedTopics", []))
        return results
