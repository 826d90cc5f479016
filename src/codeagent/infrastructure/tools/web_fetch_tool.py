# ============================================
# WEB FETCH TOOL
# ============================================

import html as html_lib
import re
from typing import Any

import aiohttp

from codeagent.core.tools.base import Tool

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_TIMEOUT_MS = 15000
USER_AGENT = "codeagent-web-tools/0.1"

_SCRIPT = re.compile(r"<script[^>]*>.*?</script>", re.DOTALL | re.IGNORECASE)
_STYLE = re.compile(r"<style[^>]*>.*?</style>", re.DOTALL | re.IGNORECASE)
_TITLE = re.compile(r"<title[^>]*>(.*?)</title>", re.DOTALL | re.IGNORECASE)
_BLOCK_END = re.compile(r"</(p|div|li|h[1-6]|tr|pre|section|article)>|<br\s*/?>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")


def extract_title(html: str) -> str:
    match = _TITLE.search(html)
    return html_lib.unescape(match.group(1)).strip() if match else ""


def extract_text(html: str) -> str:
    """Strip scripts, styles and tags, keeping block boundaries as newlines."""
    text = _SCRIPT.sub("", html)
    text = _STYLE.sub("", text)
    text = _TITLE.sub("", text)
    text = _BLOCK_END.sub("\n", text)
    text = html_lib.unescape(_TAG.sub("", text))
    lines = (" ".join(line.split()) for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


class WebFetchTool(Tool):
    """Fetch a URL and extract its readable text."""

    @property
    def name(self) -> str:
        return "web_fetch"

    @property
    def description(self) -> str:
        return "Fetch a URL and extract the main text of the page."

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to fetch and extract text from"},
                "maxBytes": {"type": "integer", "description": "Max bytes to download (default 5MB)"},
                "timeoutMs": {"type": "integer", "description": "Timeout in milliseconds"},
            },
            "required": ["url"],
        }

    async def execute(
        self,
        url: str,
        maxBytes: int = DEFAULT_MAX_BYTES,
        timeoutMs: int = DEFAULT_TIMEOUT_MS,
        **kwargs: Any,
    ) -> dict[str, Any]:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url,
                headers={"User-Agent": USER_AGENT, "Accept": "*/*"},
                timeout=aiohttp.ClientTimeout(total=timeoutMs / 1000),
                allow_redirects=True,
            ) as response:
                mime = response.headers.get("Content-Type", "")
                if "html" not in mime and not mime.startswith("text/"):
                    return {
                        "url": url,
                        "status": response.status,
                        "mime": mime,
                        "title": "",
                        "text": "",
                        "bytes": int(response.headers.get("Content-Length") or 0),
                        "wasTruncated": False,
                    }

                body, truncated = await self._read_capped(response, maxBytes)

        page = body.decode("utf-8", errors="replace")
        is_html = "html" in mime
        return {
            "url": url,
            "status": response.status,
            "mime": mime,
            "title": extract_title(page) if is_html else "",
            "text": extract_text(page) if is_html else page.strip(),
            "bytes": len(body),
            "wasTruncated": truncated,
        }

    @staticmethod
    async def _read_capped(response: aiohttp.ClientResponse, max_bytes: int) -> tuple[bytes, bool]:
        chunks: list[bytes] = []
        received = 0
        async for chunk in response.content.iter_chunked(64 * 1024):
            if received + len(chunk) > max_bytes:
                chunks.append(chunk[: max_bytes - received])
                return b"".join(chunks), True
            chunks.append(chunk)
            received += len(chunk)
        return b"".join(chunks), False
