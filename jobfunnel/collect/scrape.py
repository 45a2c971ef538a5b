"""
Page fetchers that return markdown.

The extraction stage only needs ``fetch_markdown(url) -> str``.  Fetchers
raise on failure or on an empty page and never retry internally; the
orchestrator decides how many attempts a page gets.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)

_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_BLANK_RUNS = re.compile(r"\n{3,}")


def clean_markdown(markdown: str, max_chars: int = 60000) -> str:
    """Drop inline images and blank-line runs, then truncate to ``max_chars``."""
    if not markdown:
        return ""
    cleaned = _BLANK_RUNS.sub("\n\n", _IMAGE.sub("", markdown)).strip()
    if len(cleaned) > max_chars:
        return cleaned[:max_chars] + "..."
    return cleaned


class MarkdownFetcher(ABC):
    @abstractmethod
    async def fetch_markdown(self, url: str) -> str:
        raise NotImplementedError

    async def __aenter__(self) -> "MarkdownFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class Crawl4AIFetcher(MarkdownFetcher):
    """Headless-browser fetcher built on crawl4ai.

    Used as an async context manager it keeps one browser open for all
    fetches; otherwise each call starts and stops its own crawler.
    """

    def __init__(self, timeout_seconds: int = 30, max_chars: int = 60000) -> None:
        try:
            from crawl4ai import AsyncWebCrawler, CrawlerRunConfig  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "crawl4ai package is required for Crawl4AIFetcher. Install it via pip."
            ) from exc
        self._crawler_cls = AsyncWebCrawler
        self.max_chars = max_chars
        self.run_config = CrawlerRunConfig(
            verbose=False,
            wait_for="css:body",
            delay_before_return_html=1.0,
            page_timeout=timeout_seconds * 1000,
        )
        self._crawler: Optional[Any] = None

    async def __aenter__(self) -> "Crawl4AIFetcher":
        self._crawler = self._crawler_cls()
        await self._crawler.__aenter__()
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._crawler is not None:
            await self._crawler.__aexit__(*exc_info)
            self._crawler = None

    async def _crawl(self, crawler: Any, url: str) -> str:
        result = await crawler.arun(url, config=self.run_config)
        if not getattr(result, "success", True):
            raise RuntimeError(f"Crawl failed for {url}: {getattr(result, 'error_message', '')}")
        markdown = ""
        if getattr(result, "markdown", None):
            markdown = result.markdown.raw_markdown or ""
        return markdown

    async def fetch_markdown(self, url: str) -> str:
        if self._crawler is not None:
            markdown = await self._crawl(self._crawler, url)
        else:
            async with self._crawler_cls() as crawler:
                markdown = await self._crawl(crawler, url)
        cleaned = clean_markdown(markdown, self.max_chars)
        if not cleaned:
            raise RuntimeError(f"Empty markdown for {url}")
        logger.debug("Fetched %s (%d chars, %d after cleaning)", url, len(markdown), len(cleaned))
        return cleaned


class BrightDataFetcher(MarkdownFetcher):
    """Adapter exposing :class:`BrightDataClient`'s unlocker as a fetcher."""

    def __init__(self, client, max_chars: int = 60000) -> None:
        self.client = client
        self.max_chars = max_chars

    async def fetch_markdown(self, url: str) -> str:
        markdown = await self.client.fetch_markdown(url)
        return clean_markdown(markdown, self.max_chars)
