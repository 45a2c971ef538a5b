"""Tests for single-call LLM reranking."""

from __future__ import annotations

import asyncio

import pytest  # type: ignore

from jobfunnel.normalize.schema import JobPosting
from jobfunnel.rank.rerank import Reranker

from conftest import ScriptedProvider, make_client


def _postings(n: int):
    return [JobPosting(title=f"Engineer {i}", source_url=f"https://x.io/{i}") for i in range(n)]


def _score_by_position(payload):
    return {
        "ranked": [
            {"id": job["id"], "fit_score": (i * 37) % 100, "match": ["Python"], "reason": "ok"}
            for i, job in enumerate(payload["jobs"])
        ]
    }


def test_thirty_postings_truncate_to_ten_sorted() -> None:
    provider = ScriptedProvider({"rank": _score_by_position})
    ranked = asyncio.run(Reranker(make_client(provider)).rerank(_postings(30), "python dev", top_k=10))
    assert len(ranked) == 10
    scores = [r.fit_score for r in ranked]
    assert scores == sorted(scores, reverse=True)
    assert provider.count("rank") == 1
    assert provider.calls[0][1]["top_k"] == 10


def test_scores_clamped_and_ties_keep_model_order() -> None:
    postings = _postings(3)

    def handler(payload):
        ids = [j["id"] for j in payload["jobs"]]
        return {
            "ranked": [
                {"id": ids[2], "fit_score": 150},
                {"id": ids[0], "fit_score": 50},
                {"id": ids[1], "fit_score": 50},
            ]
        }

    ranked = asyncio.run(Reranker(make_client(ScriptedProvider({"rank": handler}))).rerank(postings, "ctx", top_k=3))
    assert [r.fit_score for r in ranked] == [100, 50, 50]
    assert [r.job.title for r in ranked] == ["Engineer 2", "Engineer 0", "Engineer 1"]


def test_unknown_and_repeated_ids_are_ignored() -> None:
    postings = _postings(2)

    def handler(payload):
        ids = [j["id"] for j in payload["jobs"]]
        return {
            "ranked": [
                {"id": "made-up", "fit_score": 99},
                {"id": ids[0], "fit_score": 80},
                {"id": ids[0], "fit_score": 10},
            ]
        }

    ranked = asyncio.run(Reranker(make_client(ScriptedProvider({"rank": handler}))).rerank(postings, "ctx"))
    assert len(ranked) == 1
    assert ranked[0].job is postings[0]
    assert ranked[0].fit_score == 80


def test_rejected_items_only_fill_shortfall() -> None:
    postings = _postings(4)

    def handler(payload):
        ids = [j["id"] for j in payload["jobs"]]
        return {
            "ranked": [
                {"id": ids[0], "fit_score": 90},
                {"id": ids[1], "fit_score": 60, "reject": True, "reason": "sales role"},
                {"id": ids[2], "fit_score": 70},
                {"id": ids[3], "fit_score": 30},
            ]
        }

    reranker = Reranker(make_client(ScriptedProvider({"rank": handler})))
    enough = asyncio.run(reranker.rerank(postings, "ctx", top_k=3))
    assert [r.job.title for r in enough] == ["Engineer 0", "Engineer 2", "Engineer 3"]

    short = asyncio.run(reranker.rerank(postings, "ctx", top_k=4))
    assert len(short) == 4
    assert short[-1].rejected and short[-1].fit_score == 10


def test_rationale_is_carried_and_postings_unchanged() -> None:
    postings = [JobPosting(title="Eng", source_url="https://x.io/1", requirements=["Go"])]

    def handler(payload):
        job = payload["jobs"][0]
        assert job["requirements"] == ["Go"]
        return {"ranked": [{"id": job["id"], "fit_score": 72, "match": ["Go"], "missing": ["K8s"], "reason": "good"}]}

    (ranked,) = asyncio.run(Reranker(make_client(ScriptedProvider({"rank": handler}))).rerank(postings, "ctx"))
    assert ranked.job is postings[0]
    assert ranked.rationale.match == ["Go"]
    assert ranked.rationale.missing == ["K8s"]
    assert ranked.rationale.reason == "good"


@pytest.mark.parametrize("top_k", [0, -1])
def test_non_positive_top_k_makes_no_call(top_k: int) -> None:
    provider = ScriptedProvider()
    assert asyncio.run(Reranker(make_client(provider)).rerank(_postings(2), "ctx", top_k=top_k)) == []
    assert provider.calls == []


def test_malformed_fields_degrade_one_item() -> None:
    postings = _postings(2)

    def handler(payload):
        ids = [j["id"] for j in payload["jobs"]]
        return {
            "ranked": [
                {"id": ids[0], "fit_score": 80, "match": ["Python"]},
                {"id": ids[1], "fit_score": "high", "match": "SQL", "reason": 3, "reject": "no"},
            ]
        }

    ranked = asyncio.run(Reranker(make_client(ScriptedProvider({"rank": handler}))).rerank(postings, "ctx", top_k=2))
    assert [r.fit_score for r in ranked] == [80, 0]
    assert ranked[1].rationale.match == ["SQL"]
    assert ranked[1].rationale.reason == "3"
    assert ranked[1].rejected is False
