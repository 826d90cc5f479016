# ============================================
# WEB SEARCH TOOL
# ============================================

import asyncio
import os
import random
import re
import time
from collections import OrderedDict
from typing import Any

import aiohttp
import structlog

from codeagent.core.tools.base import Tool

DEFAULT_INSTANCES = [
    "https://searx.be",
    "https://searx.tiekoetter.com",
    "https://searxng.site",
]

HTML_TAG = re.compile(r"<[^>]+>")

logger = structlog.get_logger(component="web_search")


class TTLCache:
    """Small in-memory cache with expiry and an entry cap."""

    def __init__(self, max_entries: int = 500, ttl_seconds: float = 600.0):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (time.monotonic(), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


SEARCH_CACHE = TTLCache()


def configured_instances() -> list[str]:
    raw = os.getenv("SEARX_URLS", "")
    instances = [item.strip().rstrip("/") for item in raw.split(",") if item.strip()]
    return instances or list(DEFAULT_INSTANCES)


class WebSearchTool(Tool):
    """
    Developer-focused web search through SearXNG JSON endpoints.

    ``SEARX_URL`` pins a single instance; otherwise the instances from
    ``SEARX_URLS`` (or the built-in list) are health-probed round robin.
    """

    _next_instance = 0

    def __init__(self, cache: TTLCache | None = None, timeout: float = 8.0):
        self.cache = cache if cache is not None else SEARCH_CACHE
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return "Developer-focused web search via public SearXNG instances (JSON)."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": 'Search query, e.g. "pydantic validator example site:github.com"',
                },
                "topK": {"type": "integer", "description": "Max results to return (1-20)"},
                "language": {"type": "string", "description": '2-letter language code, e.g. "en"'},
                "safesearch": {"type": "integer", "description": "0 off, 1 moderate, 2 strict"},
            },
            "required": ["query"],
        }

    async def execute(
        self,
        query: str,
        topK: int = 8,
        language: str = "en",
        safesearch: int = 1,
        **kwargs: Any,
    ) -> list[dict[str, str]]:
        key = f"{language}|{safesearch}|{topK}|{query}"
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        params = {
            "q": query,
            "format": "json",
            "language": language,
            "safesearch": str(safesearch),
            "categories": "general",
        }
        data = await self._search(params)

        limit = max(1, min(20, int(topK)))
        results = [
            {
                "title": item.get("title") or "",
                "url": item.get("url") or item.get("href") or "",
                "snippet": HTML_TAG.sub("", item.get("content") or item.get("snippet") or ""),
                "engine": item.get("engine") or "",
            }
            for item in (data.get("results") or [])[:limit]
        ]
        self.cache.set(key, tuple(results))
        logger.info("web_search_completed", query=query[:100], results=len(results))
        return results

    async def _search(self, params: dict[str, str]) -> dict[str, Any]:
        base = await self.pick_instance()
        try:
            return await self._fetch_json(f"{base}/search", params)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("web_search_instance_failed", instance=base, error=str(e)[:200])
            await asyncio.sleep(0.2 + random.random() * 0.4)
            alternative = await self.pick_instance()
            if alternative == base:
                raise
            return await self._fetch_json(f"{alternative}/search", params)

    async def _fetch_json(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                params=params,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    raise aiohttp.ClientResponseError(
                        response.request_info,
                        response.history,
                        status=response.status,
                        message=f"SearXNG HTTP {response.status}",
                    )
                return await response.json(content_type=None)

    async def _is_healthy(self, base: str) -> bool:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    f"{base}/search",
                    params={"q": "ok", "format": "json"},
                    timeout=aiohttp.ClientTimeout(total=1.5),
                ) as response:
                    return response.status == 200 and "application/json" in response.headers.get(
                        "Content-Type", ""
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    async def pick_instance(self) -> str:
        """Pinned instance, else the next healthy one, else the first."""
        pinned = os.getenv("SEARX_URL", "").strip()
        if pinned:
            return pinned.rstrip("/")

        instances = configured_instances()
        start = WebSearchTool._next_instance % len(instances)
        for offset in range(len(instances)):
            index = (start + offset) % len(instances)
            if await self._is_healthy(instances[index]):
                WebSearchTool._next_instance = index + 1
                return instances[index]
        return instances[0]
