"""
Funnel filter: choose which scored URLs are worth scraping.

Each page kind has its own score floor because an index or careers page
is less likely than a single listing to yield real postings.  The
effective floor is the larger of the kind floor and the caller's floor.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from ..normalize.canonicalize import normalize_url
from ..normalize.schema import ScoredUrl, UrlKind

logger = logging.getLogger(__name__)

KIND_FLOORS: Dict[UrlKind, float] = {
    UrlKind.JOB_LISTING: 55,
    UrlKind.JOBS_INDEX: 60,
    UrlKind.CAREERS: 65,
}


def passes_threshold(item: ScoredUrl, min_score: float, keep_careers: bool = True) -> bool:
    floor = KIND_FLOORS.get(item.kind)
    if floor is None:
        return False
    if item.kind is UrlKind.CAREERS and not keep_careers:
        return False
    return item.score >= max(floor, min_score)


def shortlist(
    scored: Iterable[ScoredUrl],
    *,
    min_score: float = 60,
    keep_careers: bool = True,
    max_to_scrape: int = 10,
) -> List[ScoredUrl]:
    """Return the URLs to scrape, best first.

    Duplicates by normalized URL keep their highest score.  Ties keep the
    order in which URLs were first seen.
    """
    best: Dict[str, ScoredUrl] = {}
    order: List[str] = []
    for item in scored:
        key = normalize_url(item.url)
        if not key:
            continue
        current = best.get(key)
        if current is None:
            order.append(key)
            best[key] = item
        elif item.score > current.score:
            best[key] = item
    picked = [best[k] for k in order if passes_threshold(best[k], min_score, keep_careers)]
    picked.sort(key=lambda s: s.score, reverse=True)
    picked = picked[:max(0, max_to_scrape)]
    logger.info("Shortlisted %d of %d unique urls", len(picked), len(order))
    return picked
