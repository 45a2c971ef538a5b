"""
Vector index for postings.

Each posting is rendered into a fixed text template, embedded and stored
under a stable id derived from ``(source_url, apply_url, title)``, so
re-indexing a posting overwrites its previous vector.  Retrieval embeds
the candidate context once and joins matches back to the postings the
caller supplied; ids that are not among them (older postings still in
the index) are dropped.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence

from ..concurrency import map_limit
from ..normalize.schema import JobPosting, RetrievedJob
from .embed import Embedder
from .vector_store import Metadata, VectorRecord, VectorStore

logger = logging.getLogger(__name__)

DEFAULT_INDEX_CONCURRENCY = 4


def job_stable_id(job: JobPosting) -> str:
    base = f"{job.source_url}::{job.apply_url or ''}::{job.title}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


def _render_list(items: Sequence[str]) -> str:
    if not items:
        return ""
    return "- " + "\n- ".join(items)


def _enum_text(value) -> str:
    return value.value if value is not None else "unknown"


def job_to_embedding_text(job: JobPosting) -> str:
    """Render ``job`` into the text that gets embedded."""
    text = f"""
Title: {job.title}
Company: {job.company or ""}
Location: {job.location or ""}
Remote: {_enum_text(job.remote)}
EmploymentType: {_enum_text(job.employment_type)}
Seniority: {_enum_text(job.seniority)}
Team: {job.team or ""}

Responsibilities:
{_render_list(job.responsibilities)}

Requirements:
{_render_list(job.requirements)}

NiceToHave:
{_render_list(job.nice_to_have)}

Compensation: {job.compensation or ""}

ApplyUrl: {job.apply_url or ""}
SourceUrl: {job.source_url}

DescriptionMarkdown:
{job.description_markdown or ""}
"""
    return text.strip()


def job_metadata(job: JobPosting) -> Metadata:
    return {
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "remote": _enum_text(job.remote),
        "employment_type": _enum_text(job.employment_type),
        "seniority": _enum_text(job.seniority),
        "source_url": job.source_url,
        "apply_url": job.apply_url,
    }


@dataclass(frozen=True)
class VectorMatch:
    id: str
    score: float
    metadata: Optional[Metadata] = None


def _sanitize_match(raw: Any) -> Optional[VectorMatch]:
    if not isinstance(raw, dict):
        return None
    match_id = raw.get("id")
    score = raw.get("score")
    if not isinstance(match_id, str) or isinstance(score, bool) or not isinstance(score, Real):
        return None
    metadata = raw.get("metadata")
    return VectorMatch(match_id, float(score), dict(metadata) if isinstance(metadata, dict) else None)


class VectorIndex:
    def __init__(self, store: VectorStore, embedder: Embedder) -> None:
        self.store = store
        self.embedder = embedder

    async def upsert(self, records: List[VectorRecord]) -> None:
        if not records:
            return
        await self.store.upsert(records)

    async def query(
        self, vector: List[float], top_k: int, metadata_filter: Optional[Metadata] = None
    ) -> List[VectorMatch]:
        raw = await self.store.query(vector, top_k, metadata_filter)
        matches = [m for m in (_sanitize_match(r) for r in raw) if m is not None]
        if len(matches) != len(raw):
            logger.warning("Dropped %d malformed vector matches", len(raw) - len(matches))
        return matches

    async def index_postings(
        self,
        postings: Sequence[JobPosting],
        embedder: Optional[Embedder] = None,
        concurrency: int = DEFAULT_INDEX_CONCURRENCY,
    ) -> int:
        """Embed and upsert ``postings``; returns the number of vectors written.

        Postings without a ``source_url`` are skipped because they have no
        stable id.  An embedding failure propagates and nothing is upserted.
        """
        embedder = embedder or self.embedder
        indexable = [job for job in postings if job.source_url and job.source_url.strip()]
        skipped = len(postings) - len(indexable)
        if skipped:
            logger.debug("Skipping %d postings without source_url", skipped)

        async def build(job: JobPosting, _: int) -> VectorRecord:
            values = await embedder.embed(job_to_embedding_text(job))
            return VectorRecord(id=job_stable_id(job), values=values, metadata=job_metadata(job))

        records = await map_limit(indexable, concurrency, build)
        await self.upsert(records)
        logger.info("Indexed %d postings", len(records))
        return len(records)

    async def retrieve_relevant(
        self,
        postings: Sequence[JobPosting],
        user_context: str,
        embedder: Optional[Embedder] = None,
        top_k: int = 50,
        metadata_filter: Optional[Metadata] = None,
    ) -> List[RetrievedJob]:
        embedder = embedder or self.embedder
        k = min(max(top_k, 1), len(postings))
        if k == 0:
            return []
        by_id: Dict[str, JobPosting] = {}
        for job in postings:
            by_id.setdefault(job_stable_id(job), job)
        vector = await embedder.embed(user_context)
        matches = await self.query(vector, k, metadata_filter)
        retrieved = [RetrievedJob(by_id[m.id], m.score) for m in matches if m.id in by_id]
        if len(retrieved) != len(matches):
            logger.debug("Ignored %d matches outside the candidate set", len(matches) - len(retrieved))
        return retrieved
