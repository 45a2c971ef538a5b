"""
URL relevance scoring.

Candidate URLs are deduplicated, split into fixed-size batches and sent
to the classifier through the bounded worker pool.  The result always has exactly one
``ScoredUrl`` per input URL, in input order: a batch that fails or a URL
the model forgot is filled in as score 0 / ``irrelevant``.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..concurrency import chunk, map_limit
from ..llm import prompts
from ..llm.client import JsonLLMClient
from ..llm.schemas import ScoreUrlsResponse
from ..normalize.canonicalize import normalize_url
from ..normalize.mapping import map_url_kind
from ..normalize.schema import ScoredUrl, UrlKind, clamp_score

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 25
DEFAULT_CONCURRENCY = 4
MISSING_REASON = "missing model output"


class UrlScorer:
    def __init__(
        self,
        llm: JsonLLMClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if concurrency <= 0:
            raise ValueError("concurrency must be positive")
        self.llm = llm
        self.batch_size = batch_size
        self.concurrency = concurrency

    async def _score_batch(self, system: str, batch: List[str], index: int) -> List[ScoredUrl]:
        try:
            resp = await self.llm.call(system, {"urls": batch}, ScoreUrlsResponse, label="score_urls")
        except Exception as exc:  # noqa: BLE001
            logger.error("URL scoring batch %d (%d urls) failed: %s", index, len(batch), exc)
            return []
        if len(resp.results) != len(batch):
            logger.warning(
                "URL scoring batch %d: expected %d items, got %d", index, len(batch), len(resp.results)
            )
        return [
            ScoredUrl(
                url=item.url,
                score=clamp_score(item.score),
                kind=map_url_kind(item.kind),
                reason=item.reason,
            )
            for item in resp.results
        ]

    async def score(
        self,
        urls: Sequence[str],
        user_context: Optional[str] = None,
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> List[ScoredUrl]:
        """Score ``urls``; the output is aligned one-to-one with the input."""
        original = [u.strip() for u in urls]
        unique: List[str] = []
        seen = set()
        for u in original:
            if u and u not in seen:
                seen.add(u)
                unique.append(u)
        if not unique:
            return [ScoredUrl(url=u, score=0.0, kind=UrlKind.IRRELEVANT, reason=MISSING_REASON) for u in original]

        system = prompts.with_user_context(prompts.URL_SCORING, user_context)
        batches = chunk(unique, batch_size or self.batch_size)
        results = await map_limit(
            batches, concurrency or self.concurrency, lambda batch, i: self._score_batch(system, batch, i)
        )

        by_url: Dict[str, ScoredUrl] = {}
        for batch_result in results:
            for item in batch_result:
                # First answer wins when the model repeats a URL
                by_url.setdefault(normalize_url(item.url), item)

        scored: List[ScoredUrl] = []
        for u in original:
            hit = by_url.get(normalize_url(u))
            if hit is None:
                scored.append(ScoredUrl(url=u, score=0.0, kind=UrlKind.IRRELEVANT, reason=MISSING_REASON))
            else:
                scored.append(ScoredUrl(url=u, score=hit.score, kind=hit.kind, reason=hit.reason))
        logger.info("Scored %d urls (%d unique, %d batches)", len(scored), len(unique), len(batches))
        return scored
