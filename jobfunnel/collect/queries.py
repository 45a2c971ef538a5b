"""
Search query ("dork") generation.

The model turns the candidate context into a handful of search strings
aimed at ATS domains and company careers pages.  The freshness window is
computed here so the model never has to guess today's date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from ..llm import prompts
from ..llm.client import JsonLLMClient
from ..llm.schemas import SearchQueriesResponse

logger = logging.getLogger(__name__)

MAX_QUERIES = 10
FRESHNESS_DAYS = 30


@dataclass(frozen=True)
class SearchQuery:
    query: str
    site: Optional[str] = None
    location: Optional[str] = None


def clamp_limit(limit: object, default: int = 5) -> int:
    try:
        n = int(limit)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        n = default
    return max(1, min(MAX_QUERIES, n))


class QueryGenerator:
    def __init__(self, llm: JsonLLMClient, freshness_days: int = FRESHNESS_DAYS) -> None:
        self.llm = llm
        self.freshness_days = freshness_days

    async def generate(self, user_context: str, limit: int = 5, today: Optional[date] = None) -> List[SearchQuery]:
        safe_limit = clamp_limit(limit)
        after = (today or date.today()) - timedelta(days=self.freshness_days)
        resp = await self.llm.call(
            prompts.SEARCH_QUERIES,
            {"user_context": user_context, "limit": safe_limit, "after_date": after.isoformat()},
            SearchQueriesResponse,
            label="search_queries",
        )
        queries: List[SearchQuery] = []
        seen = set()
        for item in resp.queries:
            text = " ".join(item.query.split())
            if not text or text in seen:
                continue
            seen.add(text)
            queries.append(SearchQuery(query=text, site=item.site, location=item.location))
            if len(queries) >= safe_limit:
                break
        logger.info("Generated %d search queries", len(queries))
        return queries
