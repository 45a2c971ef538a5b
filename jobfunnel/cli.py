"""
Command line interface for jobfunnel.

Subcommands:

* ``scan`` runs the whole funnel for one profile from a profiles YAML
  file and writes the ranked matches (and optionally every candidate
  posting) to CSV.  Jobs are kept in a JSON snapshot between scans so
  later runs deduplicate against earlier ones.
* ``score-urls`` scores a file of URLs (one per line) and prints them.
* ``extract`` fetches one page and prints the extracted postings as JSON.
* ``report`` prints a matches CSV written by ``scan``.

Clients are built once here from the YAML config and environment and
handed to the orchestrator.
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import json
import logging
import sys
from typing import List, Optional

from .collect.queries import QueryGenerator
from .collect.scrape import BrightDataFetcher, Crawl4AIFetcher, MarkdownFetcher
from .collect.search import BrightDataClient, DuckDuckGoSearchClient, SearchClient
from .collect.url_scorer import UrlScorer
from .config import AppConfig, configure_logging, load_config
from .errors import FunnelError
from .llm.client import JsonLLMClient
from .llm.providers import get_default_provider
from .normalize.extract import ContentExtractor
from .normalize.write_csv import write_jobs_csv, write_matches_csv
from .orchestrator import FunnelOrchestrator, FunnelRun
from .persist.profile import build_user_context
from .persist.stores import (
    BillingGate,
    InMemoryProfileStore,
    LocalBilling,
    LocalFitScoreStore,
    LocalJobStore,
    UnlimitedBilling,
)
from .rank.embed import build_embedder
from .rank.rerank import Reranker
from .rank.vector_index import VectorIndex
from .rank.vector_store import build_vector_store

logger = logging.getLogger("jobfunnel.cli")


def _llm_client(config: AppConfig) -> JsonLLMClient:
    provider = get_default_provider(config.llm.provider, config.llm.model, config.llm.temperature)
    return JsonLLMClient(provider, config.retry)


def _search_client(config: AppConfig) -> SearchClient:
    if config.search.backend == "brightdata":
        return BrightDataClient()
    return DuckDuckGoSearchClient()


def _fetcher(config: AppConfig) -> MarkdownFetcher:
    if config.scrape.backend == "brightdata":
        client = BrightDataClient(timeout_seconds=config.scrape.timeout_seconds)
        return BrightDataFetcher(client, max_chars=config.scrape.max_chars)
    return Crawl4AIFetcher(timeout_seconds=config.scrape.timeout_seconds, max_chars=config.scrape.max_chars)


def build_orchestrator(
    config: AppConfig,
    *,
    profile_store: InMemoryProfileStore,
    job_store: LocalJobStore,
    fit_score_store: LocalFitScoreStore,
    billing: BillingGate,
    fetcher: MarkdownFetcher,
) -> FunnelOrchestrator:
    """Construct every client from ``config``.  Missing keys fail here."""
    llm = _llm_client(config)
    embedder = build_embedder(
        config.embedding.provider, config.embedding.model, config.embedding.dimensions, config.retry
    )
    store = build_vector_store(
        config.vector_store.backend, config.vector_store.index_name, config.vector_store.namespace
    )
    return FunnelOrchestrator(
        query_generator=QueryGenerator(llm, freshness_days=config.funnel.freshness_days),
        search_client=_search_client(config),
        url_scorer=UrlScorer(
            llm, batch_size=config.funnel.url_batch_size, concurrency=config.funnel.score_concurrency
        ),
        fetcher=fetcher,
        extractor=ContentExtractor(llm),
        vector_index=VectorIndex(store, embedder),
        reranker=Reranker(llm),
        job_store=job_store,
        fit_score_store=fit_score_store,
        profile_store=profile_store,
        billing=billing,
        settings=config.funnel,
    )


async def _scan(args: argparse.Namespace, config: AppConfig) -> FunnelRun:
    profiles = InMemoryProfileStore.from_yaml(args.profiles)
    job_store = LocalJobStore.load(args.store) if args.store else LocalJobStore()
    billing: BillingGate = UnlimitedBilling()
    if args.credits is not None:
        profile = await profiles.get_profile(args.profile_id)
        billing = LocalBilling({profile.user_id: args.credits} if profile else {})
    async with _fetcher(config) as fetcher:
        orchestrator = build_orchestrator(
            config,
            profile_store=profiles,
            job_store=job_store,
            fit_score_store=LocalFitScoreStore(),
            billing=billing,
            fetcher=fetcher,
        )
        run = await orchestrator.run(args.profile_id)
    if args.store:
        job_store.save(args.store)
    return run


def cmd_scan(args: argparse.Namespace, config: AppConfig) -> int:
    """Run the full funnel and write matches CSV."""
    run = asyncio.run(_scan(args, config))
    run.raise_for_state()
    count = write_matches_csv(run.ranked, args.out)
    logger.info("Wrote %d matches to %s", count, args.out)
    if args.jobs_out:
        write_jobs_csv([c.job for c in run.postings], args.jobs_out)
        logger.info("Wrote %d postings to %s", len(run.postings), args.jobs_out)
    return 0


def _read_lines(path: str) -> List[str]:
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]


def _context_from_args(args: argparse.Namespace) -> Optional[str]:
    if getattr(args, "profiles", None) and getattr(args, "profile_id", None):
        profiles = InMemoryProfileStore.from_yaml(args.profiles)
        profile = asyncio.run(profiles.get_profile(args.profile_id))
        return build_user_context(profile)
    return None


def cmd_score_urls(args: argparse.Namespace, config: AppConfig) -> int:
    urls = _read_lines(args.urls)
    scorer = UrlScorer(
        _llm_client(config),
        batch_size=config.funnel.url_batch_size,
        concurrency=config.funnel.score_concurrency,
    )
    scored = asyncio.run(scorer.score(urls, _context_from_args(args)))
    for item in scored:
        print(f"{item.score:5.1f}  {item.kind.value:<14} {item.url}  {item.reason}")
    return 0


async def _extract(url: str, config: AppConfig, context: Optional[str]):
    extractor = ContentExtractor(_llm_client(config))
    async with _fetcher(config) as fetcher:
        markdown = await fetcher.fetch_markdown(url)
    return await extractor.extract(url, markdown, user_context=context,
                                   exhaustive=config.funnel.exhaustive_extraction)


def cmd_extract(args: argparse.Namespace, config: AppConfig) -> int:
    result = asyncio.run(_extract(args.url, config, _context_from_args(args)))
    print(
        json.dumps(
            {
                "page_is_job_related": result.page_is_job_related,
                "page_kind": result.page_kind.value,
                "page_reason": result.page_reason,
                "jobs": [job.to_dict() for job in result.jobs],
            },
            indent=2,
            ensure_ascii=False,
        )
    )
    return 0


def cmd_report(args: argparse.Namespace, config: AppConfig) -> int:
    """Print a simple report from matches CSV."""
    with open(args.matches, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    limit = args.limit or len(rows)
    for i, row in enumerate(rows[:limit]):
        company = row["company"] or "Unknown"
        print(f"{i+1:02d}. {row['title']} at {company} - {float(row['fit_score']):.0f}/100")
        if row["reason"]:
            print(f"   Why: {row['reason']}")
        if row["match"]:
            print(f"   Matches: {row['match']}")
        if row["missing"]:
            print(f"   Missing: {row['missing']}")
        print(f"   {row['apply_url'] or row['source_url']}")
        print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobfunnel", description="Job discovery and ranking funnel")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--log-level", dest="log_level", help="Override logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_cmd = subparsers.add_parser("scan", help="Run the full funnel for a profile")
    scan_cmd.add_argument("--profiles", required=True, help="YAML file with a 'profiles' list")
    scan_cmd.add_argument("--profile-id", dest="profile_id", required=True, help="Profile to scan for")
    scan_cmd.add_argument("--store", default="jobs.json", help="Job store snapshot (read and written)")
    scan_cmd.add_argument("--credits", type=int, help="Credit balance for the profile's user (default: unlimited)")
    scan_cmd.add_argument("--out", default="matches.csv", help="Output matches CSV")
    scan_cmd.add_argument("--jobs-out", dest="jobs_out", help="Also write every candidate posting to this CSV")
    scan_cmd.set_defaults(func=cmd_scan)

    score_cmd = subparsers.add_parser("score-urls", help="Score a list of URLs for job relevance")
    score_cmd.add_argument("--urls", required=True, help="Text file with one URL per line")
    score_cmd.add_argument("--profiles", help="Profiles YAML to build context from")
    score_cmd.add_argument("--profile-id", dest="profile_id", help="Profile to use as context")
    score_cmd.set_defaults(func=cmd_score_urls)

    extract_cmd = subparsers.add_parser("extract", help="Fetch one page and extract postings")
    extract_cmd.add_argument("--url", required=True, help="Page URL")
    extract_cmd.add_argument("--profiles", help="Profiles YAML to build context from")
    extract_cmd.add_argument("--profile-id", dest="profile_id", help="Profile to use as context")
    extract_cmd.set_defaults(func=cmd_extract)

    report_cmd = subparsers.add_parser("report", help="Print a text report from a matches CSV")
    report_cmd.add_argument("--matches", required=True, help="Path to matches CSV")
    report_cmd.add_argument("--limit", type=int, default=20, help="Number of top matches to display")
    report_cmd.set_defaults(func=cmd_report)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        if args.log_level:
            config.logging.level = args.log_level
        configure_logging(config.logging)
        return args.func(args, config)
    except FunnelError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
