"""
LLM reranking of a retrieved shortlist.

The whole shortlist goes to the model in one call together with the
candidate context.  The model answers with ids, scores and rationale;
postings are looked up by id so the model cannot alter posting fields,
and ids it invents are ignored.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..llm import prompts
from ..llm.client import JsonLLMClient
from ..llm.schemas import RankJobsResponse
from ..normalize.schema import JobPosting, RankedJob, Rationale, clamp_score
from .vector_index import job_stable_id

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 10
REJECTED_SCORE_CEILING = 10.0
DESCRIPTION_EXCERPT = 1500


def _job_payload(job_id: str, job: JobPosting) -> Dict[str, object]:
    data = job.to_dict()
    payload: Dict[str, object] = {"id": job_id}
    for key in (
        "title",
        "company",
        "location",
        "remote",
        "employment_type",
        "seniority",
        "team",
        "compensation",
        "responsibilities",
        "requirements",
        "nice_to_have",
        "skills",
    ):
        value = data.get(key)
        if value not in (None, "", []):
            payload[key] = value
    if job.description_markdown:
        payload["description"] = job.description_markdown[:DESCRIPTION_EXCERPT]
    return payload


class Reranker:
    def __init__(self, llm: JsonLLMClient) -> None:
        self.llm = llm

    async def rerank(
        self,
        postings: Sequence[JobPosting],
        user_context: str,
        top_k: int = DEFAULT_TOP_K,
    ) -> List[RankedJob]:
        """Score ``postings`` against ``user_context`` and return the best ``top_k``.

        Rejected items are only returned when there are not enough
        acceptable ones to fill ``top_k``.
        """
        if not postings or top_k <= 0:
            return []
        by_id: Dict[str, JobPosting] = {}
        for job in postings:
            by_id.setdefault(job_stable_id(job), job)

        resp = await self.llm.call(
            prompts.RANK_JOBS,
            {
                "user_context": user_context,
                "jobs": [_job_payload(job_id, job) for job_id, job in by_id.items()],
                "top_k": top_k,
            },
            RankJobsResponse,
            label="rank_jobs",
        )

        ranked: List[RankedJob] = []
        seen = set()
        for item in resp.ranked:
            job = by_id.get(item.id)
            if job is None or item.id in seen:
                continue
            seen.add(item.id)
            score = clamp_score(item.fit_score)
            if item.reject:
                score = min(score, REJECTED_SCORE_CEILING)
            ranked.append(
                RankedJob(
                    job=job,
                    fit_score=score,
                    rationale=Rationale(match=item.match, missing=item.missing, reason=item.reason),
                    rejected=item.reject,
                )
            )
        dropped = len(resp.ranked) - len(ranked)
        if dropped:
            logger.warning("Ignored %d rerank items with unknown or repeated ids", dropped)

        # Stable: equal scores keep the model's order
        ranked.sort(key=lambda r: r.fit_score, reverse=True)
        accepted = [r for r in ranked if not r.rejected]
        picked = accepted[:top_k] if len(accepted) >= top_k else ranked[:top_k]
        logger.info("Reranked %d postings; returning %d", len(postings), len(picked))
        return picked
