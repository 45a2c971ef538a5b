"""
Search clients.

A search client turns one query string into a ranked list of organic
results.  Results are deduplicated by normalized URL, first occurrence
wins.  Two backends are provided:

* :class:`BrightDataClient` calls Bright Data's request API with a SERP
  zone for Google results and an unlocker zone for page markdown, so it
  doubles as a markdown fetcher.
* :class:`DuckDuckGoSearchClient` parses DuckDuckGo's HTML endpoint with
  BeautifulSoup and needs no API key.

Clients do not retry; the orchestrator owns the retry policy.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs, quote_plus, urlsplit

import aiohttp
from bs4 import BeautifulSoup  # type: ignore

from ..config import require_env
from ..normalize.canonicalize import normalize_url

logger = logging.getLogger(__name__)

BRIGHTDATA_ENDPOINT = "https://api.brightdata.com/request"
DUCKDUCKGO_ENDPOINT = "https://html.duckduckgo.com/html/"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"


@dataclass(frozen=True)
class SearchResult:
    url: str
    title: str
    type: str = "organic"
    position: int = 0
    snippet: Optional[str] = None


def dedupe_results(results: Iterable[SearchResult]) -> List[SearchResult]:
    seen = set()
    out: List[SearchResult] = []
    for result in results:
        key = normalize_url(result.url)
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(SearchResult(key, result.title, result.type, result.position, result.snippet))
    return out


class SearchClient(ABC):
    @abstractmethod
    async def search(self, query: str, limit: int = 10) -> List[SearchResult]:
        """Return at most ``limit`` deduplicated results for ``query``."""
        raise NotImplementedError


class BrightDataClient(SearchClient):
    """Bright Data SERP search plus unlocker markdown fetching."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        unlocker_zone: Optional[str] = None,
        serp_zone: Optional[str] = None,
        timeout_seconds: int = 60,
    ) -> None:
        self.api_key = api_key or require_env("BRIGHTDATA_API_KEY")
        self.unlocker_zone = unlocker_zone or require_env("BRIGHTDATA_ZONE")
        self.serp_zone = serp_zone or os.getenv("BRIGHTDATA_SERP_ZONE") or self.unlocker_zone
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def _request(self, payload: Dict[str, Any]) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(BRIGHTDATA_ENDPOINT, json=payload, headers=headers) as resp:
                body = await resp.text()
                if resp.status >= 400:
                    raise RuntimeError(f"Bright Data request failed: HTTP {resp.status}: {body[:200]}")
                return body

    @staticmethod
    def _unwrap(raw: str) -> Any:
        """Return the response body, unwrapping Bright Data's status envelope if present."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return raw
        if isinstance(data, dict) and isinstance(data.get("status_code"), int) and "body" in data:
            body = data["body"]
            if isinstance(body, str):
                try:
                    return json.loads(body)
                except json.JSONDecodeError:
                    return body
            return body
        return data

    @staticmethod
    def parse_serp(data: Any) -> List[SearchResult]:
        if not isinstance(data, dict):
            return []
        organic = data.get("organic")
        if not isinstance(organic, list):
            nested = data.get("results")
            organic = nested.get("organic") if isinstance(nested, dict) else None
        if not isinstance(organic, list):
            return []
        results: List[SearchResult] = []
        for item in organic:
            if not isinstance(item, dict):
                continue
            url = str(item.get("link") or "").strip()
            title = str(item.get("title") or "").strip()
            if not url or not title:
                continue
            try:
                position = int(item.get("rank") or item.get("position") or 0)
            except (TypeError, ValueError):
                position = 0
            snippet = item.get("snippet") if isinstance(item.get("snippet"), str) else None
            results.append(SearchResult(url=url, title=title, position=position, snippet=snippet))
        return dedupe_results(results)

    async def search(self, query: str, limit: int = 10) -> List[SearchResult]:
        raw = await self._request(
            {
                "zone": self.serp_zone,
                "url": f"https://www.google.com/search?q={quote_plus(query)}&brd_json=1",
                "method": "GET",
                "format": "json",
                "data_format": "json",
            }
        )
        results = self.parse_serp(self._unwrap(raw))
        logger.debug("Bright Data returned %d results for %r", len(results), query)
        return results[:limit]

    async def fetch_markdown(self, url: str) -> str:
        raw = await self._request(
            {
                "zone": self.unlocker_zone,
                "url": url,
                "method": "GET",
                "format": "raw",
                "data_format": "markdown",
            }
        )
        body = self._unwrap(raw)
        markdown = body if isinstance(body, str) else json.dumps(body)
        if not markdown.strip():
            raise RuntimeError(f"Empty markdown for {url}")
        return markdown


def _unwrap_ddg_redirect(href: str) -> str:
    """DuckDuckGo wraps result links in ``/l/?uddg=<target>``."""
    parts = urlsplit(href)
    if parts.path.startswith("/l/"):
        target = parse_qs(parts.query).get("uddg")
        if target:
            return target[0]
    if href.startswith("//"):
        return "https:" + href
    return href


class DuckDuckGoSearchClient(SearchClient):
    """Keyless search through DuckDuckGo's HTML interface."""

    def __init__(self, timeout_seconds: int = 30) -> None:
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    @staticmethod
    def parse_html(html: str) -> List[SearchResult]:
        soup = BeautifulSoup(html, "html.parser")
        results: List[SearchResult] = []
        for position, anchor in enumerate(soup.select("a.result__a"), start=1):
            href = anchor.get("href") or ""
            url = _unwrap_ddg_redirect(str(href))
            title = anchor.get_text(" ", strip=True)
            if not url.startswith("http") or not title:
                continue
            container = anchor.find_parent(class_="result")
            snippet_el = container.select_one(".result__snippet") if container else None
            snippet = snippet_el.get_text(" ", strip=True) if snippet_el else None
            results.append(SearchResult(url=url, title=title, position=position, snippet=snippet))
        return dedupe_results(results)

    async def search(self, query: str, limit: int = 10) -> List[SearchResult]:
        async with aiohttp.ClientSession(timeout=self.timeout, headers={"User-Agent": USER_AGENT}) as session:
            async with session.post(DUCKDUCKGO_ENDPOINT, data={"q": query}) as resp:
                html = await resp.text()
                if resp.status >= 400:
                    raise RuntimeError(f"DuckDuckGo search failed: HTTP {resp.status}")
        results = self.parse_html(html)
        logger.debug("DuckDuckGo returned %d results for %r", len(results), query)
        return results[:limit]
