"""
Shared fakes for the jobfunnel test suite.

Nothing here touches the network.  ``ScriptedProvider`` stands in for an
LLM: it recognises which stage is calling from the system prompt and
hands the decoded user payload to a per-stage handler.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import pytest  # type: ignore

from jobfunnel.collect.scrape import MarkdownFetcher
from jobfunnel.collect.search import SearchClient, SearchResult
from jobfunnel.llm import prompts
from jobfunnel.llm.client import JsonLLMClient
from jobfunnel.llm.providers import LLMProvider
from jobfunnel.persist.profile import CandidateProfile, Skill
from jobfunnel.rank.embed import Embedder, HashingEmbedder
from jobfunnel.retry import RetryPolicy

STAGE_PROMPTS = {
    "score": prompts.URL_SCORING,
    "extract": prompts.EXTRACT_JOBS,
    "rank": prompts.RANK_JOBS,
    "queries": prompts.SEARCH_QUERIES,
}

Handler = Callable[[Dict[str, Any]], Any]


class ScriptedProvider(LLMProvider):
    name = "scripted"

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None) -> None:
        self.handlers: Dict[str, Handler] = dict(handlers or {})
        self.calls: List[tuple] = []

    def stage_of(self, system: str) -> str:
        for stage, prompt in STAGE_PROMPTS.items():
            if system.startswith(prompt):
                return stage
        raise AssertionError("unrecognised system prompt")

    def count(self, stage: str) -> int:
        return sum(1 for s, _ in self.calls if s == stage)

    async def complete(self, system: str, user: str) -> str:
        stage = self.stage_of(system)
        payload = json.loads(user)
        self.calls.append((stage, payload))
        handler = self.handlers.get(stage)
        if handler is None:
            raise AssertionError(f"no handler for stage {stage}")
        reply = handler(payload)
        return reply if isinstance(reply, str) else json.dumps(reply)


def make_client(provider: LLMProvider) -> JsonLLMClient:
    return JsonLLMClient(provider, RetryPolicy(max_retries=1, base_delay=0))


class FakeSearch(SearchClient):
    def __init__(self, results: Dict[str, List[str]], failures: Optional[Dict[str, int]] = None) -> None:
        self.results = results
        self.failures = dict(failures or {})
        self.calls: List[str] = []

    async def search(self, query: str, limit: int = 10) -> List[SearchResult]:
        self.calls.append(query)
        if self.failures.get(query, 0) > 0:
            self.failures[query] -= 1
            raise RuntimeError("connection reset by peer")
        urls = self.results.get(query, [])
        return [SearchResult(url=u, title=f"Result {i}", position=i) for i, u in enumerate(urls, 1)][:limit]


class FakeFetcher(MarkdownFetcher):
    def __init__(self, pages: Dict[str, str], failures: Optional[Dict[str, int]] = None) -> None:
        self.pages = pages
        self.failures = dict(failures or {})
        self.calls: List[str] = []

    async def fetch_markdown(self, url: str) -> str:
        self.calls.append(url)
        if self.failures.get(url, 0) > 0:
            self.failures[url] -= 1
            raise RuntimeError("503 service unavailable")
        if url not in self.pages:
            raise RuntimeError(f"Empty markdown for {url}")
        return self.pages[url]


class FailingEmbedder(Embedder):
    async def embed(self, text: str) -> List[float]:
        raise RuntimeError("embedding backend down")


class CountingEmbedder(Embedder):
    def __init__(self, inner: Optional[Embedder] = None) -> None:
        self.inner = inner or HashingEmbedder(dim=32)
        self.texts: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.texts.append(text)
        return await self.inner.embed(text)


@pytest.fixture
def profile() -> CandidateProfile:
    return CandidateProfile(
        id="p1",
        user_id="u1",
        name="Ada",
        headline="Backend engineer",
        location="Remote",
        years_experience=6,
        target_roles=["Backend Engineer"],
        skills=[Skill("Python", "expert"), Skill("PostgreSQL")],
    )
