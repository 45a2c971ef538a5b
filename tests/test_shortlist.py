"""Tests for the kind-aware funnel filter."""

from __future__ import annotations

from jobfunnel.collect.shortlist import passes_threshold, shortlist
from jobfunnel.normalize.schema import ScoredUrl, UrlKind


def _s(url: str, score: float, kind: UrlKind) -> ScoredUrl:
    return ScoredUrl(url=url, score=score, kind=kind)


def test_jobs_index_threshold_scenario() -> None:
    assert passes_threshold(_s("https://a", 70, UrlKind.JOBS_INDEX), min_score=40)
    assert not passes_threshold(_s("https://a", 58, UrlKind.JOBS_INDEX), min_score=40)


def test_kind_floors_and_caller_floor() -> None:
    assert passes_threshold(_s("https://a", 55, UrlKind.JOB_LISTING), min_score=0)
    assert not passes_threshold(_s("https://a", 55, UrlKind.JOB_LISTING), min_score=70)
    assert passes_threshold(_s("https://a", 65, UrlKind.CAREERS), min_score=0)
    assert not passes_threshold(_s("https://a", 90, UrlKind.CAREERS), min_score=0, keep_careers=False)
    assert not passes_threshold(_s("https://a", 100, UrlKind.BLOG_OR_NEWS), min_score=0)
    assert not passes_threshold(_s("https://a", 100, UrlKind.LOGIN_OR_GATE), min_score=0)


def test_shortlist_dedupes_keeping_highest_and_sorts() -> None:
    scored = [
        _s("https://a.io/jobs?utm_source=x", 62, UrlKind.JOBS_INDEX),
        _s("https://b.io/job/1", 96, UrlKind.JOB_LISTING),
        _s("https://a.io/jobs", 81, UrlKind.JOBS_INDEX),
        _s("https://c.io/blog", 99, UrlKind.BLOG_OR_NEWS),
        _s("https://d.io/careers", 70, UrlKind.CAREERS),
    ]
    picked = shortlist(scored, min_score=60, max_to_scrape=10)
    assert [p.url for p in picked] == ["https://b.io/job/1", "https://a.io/jobs", "https://d.io/careers"]
    assert picked[1].score == 81


def test_shortlist_truncates() -> None:
    scored = [_s(f"https://x.io/job/{i}", 60 + i, UrlKind.JOB_LISTING) for i in range(8)]
    picked = shortlist(scored, min_score=0, max_to_scrape=3)
    assert [p.score for p in picked] == [67, 66, 65]
