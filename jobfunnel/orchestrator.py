"""
Funnel orchestrator.

One run walks a fixed sequence of states::

    idle -> searching_queries -> scoring -> shortlisting -> scraping
         -> canonicalizing -> indexing -> retrieving -> reranking
         -> persisting -> done

and may end in ``failed`` from any of them.  There is no backtracking.

Fatal problems (unknown profile, no credits) stop the run before any
external API is called.  Failures inside a stage (one search query, one
scrape, one job write) are logged and contribute nothing; the rest of
the run carries on.  All per-run state lives on the :class:`FunnelRun`
returned by :meth:`FunnelOrchestrator.run`, so one orchestrator can
serve concurrent runs.  Every write is an upsert, so a run that is
abandoned and started again reconciles rather than duplicates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from .collect.queries import QueryGenerator, SearchQuery
from .collect.scrape import MarkdownFetcher
from .collect.search import SearchClient, SearchResult
from .collect.shortlist import shortlist
from .collect.url_scorer import UrlScorer
from .concurrency import map_limit
from .config import FunnelSettings
from .errors import CreditDeniedError, ProfileNotFoundError
from .normalize.canonicalize import Canonicalizer, normalize_url
from .normalize.extract import ContentExtractor
from .normalize.schema import CandidateUrl, CanonicalizedJob, JobPosting, RankedJob, RetrievedJob, ScoredUrl
from .persist.profile import build_user_context
from .persist.stores import JOB_SCAN, BillingGate, FitScoreStore, JobInput, JobStore, ProfileStore
from .rank.rerank import Reranker
from .rank.vector_index import VectorIndex

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FunnelState(str, Enum):
    IDLE = "idle"
    SEARCHING_QUERIES = "searching_queries"
    SCORING = "scoring"
    SHORTLISTING = "shortlisting"
    SCRAPING = "scraping"
    CANONICALIZING = "canonicalizing"
    INDEXING = "indexing"
    RETRIEVING = "retrieving"
    RERANKING = "reranking"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FunnelStats:
    queries: int = 0
    candidate_urls: int = 0
    scored_urls: int = 0
    shortlisted: int = 0
    pages_extracted: int = 0
    postings_extracted: int = 0
    canonical_postings: int = 0
    indexed: int = 0
    retrieved: int = 0
    ranked: int = 0
    jobs_persisted: int = 0
    fit_scores_persisted: int = 0


@dataclass
class FunnelRun:
    """Everything one run produced, including how far it got."""

    profile_id: str
    state: FunnelState = FunnelState.IDLE
    history: List[FunnelState] = field(default_factory=lambda: [FunnelState.IDLE])
    stats: FunnelStats = field(default_factory=FunnelStats)
    queries: List[SearchQuery] = field(default_factory=list)
    candidates: List[CandidateUrl] = field(default_factory=list)
    scored: List[ScoredUrl] = field(default_factory=list)
    shortlist: List[ScoredUrl] = field(default_factory=list)
    postings: List[CanonicalizedJob] = field(default_factory=list)
    retrieved: List[RetrievedJob] = field(default_factory=list)
    ranked: List[RankedJob] = field(default_factory=list)
    error: Optional[BaseException] = None

    def advance(self, state: FunnelState) -> None:
        logger.debug("Run %s: %s -> %s", self.profile_id, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def fail(self, exc: BaseException) -> None:
        self.error = exc
        self.advance(FunnelState.FAILED)

    @property
    def ok(self) -> bool:
        return self.state is FunnelState.DONE

    def raise_for_state(self) -> None:
        if self.state is FunnelState.FAILED and self.error is not None:
            raise self.error


def is_banned_title(title: str, banned_terms: Sequence[str]) -> bool:
    """True when ``title`` contains any banned term as a whole word."""
    lowered = title.lower()
    return any(re.search(rf"\b{re.escape(term.lower())}\b", lowered) for term in banned_terms)


async def _attempt(fn: Callable[[], Awaitable[T]], attempts: int, label: str) -> Optional[T]:
    """Try ``fn`` up to ``attempts`` times; ``None`` when every attempt fails."""
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= attempts:
                logger.error("%s failed after %d attempts: %s", label, attempt, exc)
            else:
                logger.warning("%s attempt %d failed: %s; retrying", label, attempt, exc)
    return None


class FunnelOrchestrator:
    """Runs the job funnel for one candidate profile at a time.

    Every collaborator is injected; nothing is created here, so tests can
    pass fakes for any of them.
    """

    def __init__(
        self,
        *,
        query_generator: QueryGenerator,
        search_client: SearchClient,
        url_scorer: UrlScorer,
        fetcher: MarkdownFetcher,
        extractor: ContentExtractor,
        vector_index: VectorIndex,
        reranker: Reranker,
        job_store: JobStore,
        fit_score_store: FitScoreStore,
        profile_store: ProfileStore,
        billing: BillingGate,
        canonicalizer: Optional[Canonicalizer] = None,
        settings: Optional[FunnelSettings] = None,
    ) -> None:
        self.query_generator = query_generator
        self.search_client = search_client
        self.url_scorer = url_scorer
        self.fetcher = fetcher
        self.extractor = extractor
        self.vector_index = vector_index
        self.reranker = reranker
        self.job_store = job_store
        self.fit_score_store = fit_score_store
        self.profile_store = profile_store
        self.billing = billing
        self.canonicalizer = canonicalizer or Canonicalizer()
        self.settings = settings or FunnelSettings()

    async def run(self, profile_id: str) -> FunnelRun:
        run = FunnelRun(profile_id=profile_id)
        logger.info("Starting funnel run for profile %s", profile_id)
        try:
            await self._execute(run)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Funnel run for profile %s failed in state %s", profile_id, run.state.value)
            run.fail(exc)
        else:
            logger.info("Funnel run for profile %s finished: %s", profile_id, run.stats)
        return run

    async def _execute(self, run: FunnelRun) -> None:
        s = self.settings
        profile = await self.profile_store.get_profile(run.profile_id)
        if profile is None:
            raise ProfileNotFoundError(run.profile_id)
        if not await self.billing.can_user_action(profile.user_id, JOB_SCAN):
            raise CreditDeniedError(profile.user_id, JOB_SCAN)
        context = build_user_context(profile)

        run.advance(FunnelState.SEARCHING_QUERIES)
        run.queries = await self._generate_queries(context)
        run.candidates = await self._search(run.queries)
        run.stats.queries = len(run.queries)
        run.stats.candidate_urls = len(run.candidates)

        run.advance(FunnelState.SCORING)
        if run.candidates:
            run.scored = await self.url_scorer.score(
                [c.url for c in run.candidates],
                context,
                batch_size=s.url_batch_size,
                concurrency=s.score_concurrency,
            )
        run.stats.scored_urls = len(run.scored)

        run.advance(FunnelState.SHORTLISTING)
        run.shortlist = shortlist(
            run.scored,
            min_score=s.min_score_to_scrape,
            keep_careers=s.keep_careers,
            max_to_scrape=s.max_to_scrape,
        )
        run.stats.shortlisted = len(run.shortlist)

        run.advance(FunnelState.SCRAPING)
        scraped = await self._scrape_and_extract(run, context)

        run.advance(FunnelState.CANONICALIZING)
        known = await self._known_postings()
        run.postings = self._filter_candidates(self.canonicalizer.canonicalize(scraped + known))
        run.stats.canonical_postings = len(run.postings)
        candidates = [c.job for c in run.postings]

        run.advance(FunnelState.INDEXING)
        run.stats.indexed = await self._index(candidates)

        run.advance(FunnelState.RETRIEVING)
        run.retrieved = await self._retrieve(candidates, context)
        run.stats.retrieved = len(run.retrieved)

        run.advance(FunnelState.RERANKING)
        run.ranked = await self._rerank([r.job for r in run.retrieved], context)
        run.stats.ranked = len(run.ranked)

        run.advance(FunnelState.PERSISTING)
        await self._persist(run, candidates)
        await self.billing.consume_credits(profile.user_id, JOB_SCAN)
        run.advance(FunnelState.DONE)

    async def _generate_queries(self, context: str) -> List[SearchQuery]:
        try:
            return await self.query_generator.generate(context, self.settings.max_queries)
        except Exception as exc:  # noqa: BLE001
            logger.error("Search query generation failed: %s", exc)
            return []

    async def _search(self, queries: List[SearchQuery]) -> List[CandidateUrl]:
        s = self.settings

        async def run_query(query: SearchQuery, _: int) -> List[SearchResult]:
            results = await _attempt(
                lambda: self.search_client.search(query.query, s.search_results_per_query),
                s.search_attempts,
                f"Search {query.query!r}",
            )
            return results or []

        per_query = await map_limit(queries, s.search_concurrency, run_query)
        candidates: List[CandidateUrl] = []
        seen = set()
        for query, results in zip(queries, per_query):
            for result in results:
                key = normalize_url(result.url)
                if key and key not in seen:
                    seen.add(key)
                    candidates.append(CandidateUrl(url=result.url, query=query.query, source=result.type))
        return candidates

    async def _scrape_and_extract(self, run: FunnelRun, context: str) -> List[JobPosting]:
        s = self.settings

        async def process(item: ScoredUrl, _: int) -> List[JobPosting]:
            async def once():
                markdown = await self.fetcher.fetch_markdown(item.url)
                return await self.extractor.extract(
                    item.url, markdown, user_context=context, exhaustive=s.exhaustive_extraction
                )

            result = await _attempt(once, s.scrape_attempts, f"Scrape {item.url}")
            if result is None:
                return []
            run.stats.pages_extracted += 1
            return [job.with_changes(page_kind=result.page_kind) for job in result.jobs]

        per_page = await map_limit(run.shortlist, s.scrape_concurrency, process)
        postings = [job for jobs in per_page for job in jobs]
        run.stats.postings_extracted = len(postings)
        return postings

    async def _known_postings(self) -> List[JobPosting]:
        s = self.settings
        if not s.include_known_postings:
            return []
        try:
            recent = await self.job_store.list_recent(s.recent_days)
        except Exception as exc:  # noqa: BLE001
            logger.error("Could not load known postings: %s", exc)
            return []
        return [job.to_posting() for job in recent]

    def _filter_candidates(self, items: List[CanonicalizedJob]) -> List[CanonicalizedJob]:
        s = self.settings
        kept = [
            c
            for c in items
            if c.job.title.strip()
            and normalize_url(c.job.source_url)
            and not is_banned_title(c.job.title, s.banned_title_terms)
        ]
        if len(kept) > s.max_postings:
            logger.info("Capping %d postings at %d", len(kept), s.max_postings)
            kept = kept[: s.max_postings]
        return kept

    async def _index(self, postings: List[JobPosting]) -> int:
        """Best-effort: an indexing failure never fails the run."""
        try:
            return await self.vector_index.index_postings(postings, concurrency=self.settings.embed_concurrency)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Vector indexing failed; continuing without fresh vectors: %s",
                exc,
                extra={"event": "vector_index_failed", "postings": len(postings)},
            )
            return 0

    async def _retrieve(self, postings: List[JobPosting], context: str) -> List[RetrievedJob]:
        top_k = self.settings.retrieve_top_k
        if not postings:
            return []
        try:
            retrieved = await self.vector_index.retrieve_relevant(postings, context, top_k=top_k)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Vector retrieval failed: %s", exc, extra={"event": "vector_retrieve_failed"})
            retrieved = []
        if not retrieved:
            logger.info("No vector matches; falling back to the first %d candidates", top_k)
            retrieved = [RetrievedJob(job, 0.0) for job in postings[:top_k]]
        return retrieved

    async def _rerank(self, postings: List[JobPosting], context: str) -> List[RankedJob]:
        if not postings:
            return []
        try:
            return await self.reranker.rerank(postings, context, top_k=self.settings.final_top_k)
        except Exception as exc:  # noqa: BLE001
            logger.error("Rerank failed; no ranking this run: %s", exc)
            return []

    async def _persist(self, run: FunnelRun, postings: List[JobPosting]) -> None:
        s = self.settings

        async def save(job: JobPosting, _: int) -> Optional[str]:
            try:
                stored = await self.job_store.upsert_job(JobInput.from_posting(job))
                return stored.id
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to persist job %s: %s", job.source_url, exc)
                return None

        job_ids = await map_limit(postings, s.persist_concurrency, save)
        url_to_id: Dict[str, str] = {
            job.source_url: job_id for job, job_id in zip(postings, job_ids) if job_id is not None
        }
        run.stats.jobs_persisted = len(url_to_id)

        async def save_score(item: RankedJob, _: int) -> bool:
            job_id = url_to_id.get(item.job.source_url)
            if job_id is None:
                return False
            try:
                await self.fit_score_store.upsert_fit_score(run.profile_id, job_id, item.fit_score, item.rationale)
                return True
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to persist fit score for job %s: %s", job_id, exc)
                return False

        saved = await map_limit(run.ranked, s.persist_concurrency, save_score)
        run.stats.fit_scores_persisted = sum(1 for ok in saved if ok)
