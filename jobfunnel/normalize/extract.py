"""
LLM-backed extraction of job postings from page markdown.

The model classifies the page and returns zero or more postings.  Two
rules are enforced here regardless of what the model says: every
posting's ``source_url`` is the URL we fetched, and enumerated fields are
mapped through :mod:`jobfunnel.normalize.mapping`, leaving them unset
when the model's value is unknown.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..llm import prompts
from ..llm.client import JsonLLMClient
from ..llm.schemas import ExtractedJob, ExtractJobsResponse
from .mapping import map_employment_type, map_seniority, map_url_kind, map_work_mode
from .schema import ExtractionResult, JobPosting

logger = logging.getLogger(__name__)


def _clean_list(values: List[str]) -> List[str]:
    return [v.strip() for v in values if isinstance(v, str) and v.strip()]


def _to_posting(item: ExtractedJob, url: str) -> Optional[JobPosting]:
    title = (item.title or "").strip()
    if not title:
        return None
    return JobPosting(
        title=title,
        source_url=url,
        company=(item.company or "").strip() or None,
        location=(item.location or "").strip() or None,
        remote=map_work_mode(item.remote),
        employment_type=map_employment_type(item.employment_type),
        seniority=map_seniority(item.seniority),
        team=(item.team or "").strip() or None,
        compensation=(item.compensation or "").strip() or None,
        responsibilities=_clean_list(item.responsibilities),
        requirements=_clean_list(item.requirements),
        nice_to_have=_clean_list(item.nice_to_have),
        skills=_clean_list(item.skills),
        apply_url=(item.apply_url or "").strip() or None,
        description_markdown=item.description_markdown or None,
    )


class ContentExtractor:
    """Turns one page of markdown into structured postings."""

    def __init__(self, llm: JsonLLMClient) -> None:
        self.llm = llm

    async def extract(
        self,
        url: str,
        markdown: str,
        *,
        user_context: Optional[str] = None,
        exhaustive: bool = True,
    ) -> ExtractionResult:
        system = prompts.with_user_context(
            prompts.EXTRACT_JOBS,
            user_context,
            extra=prompts.extraction_mode(exhaustive),
        )
        resp = await self.llm.call(
            system,
            {"source_url": url, "markdown": markdown},
            ExtractJobsResponse,
            label="extract_jobs",
        )
        page_kind = map_url_kind(resp.page_kind)
        jobs: List[JobPosting] = []
        for item in resp.jobs:
            posting = _to_posting(item, url)
            if posting is None:
                logger.debug("Dropping untitled posting extracted from %s", url)
                continue
            if item.source_url and item.source_url != url:
                logger.debug("Model relocated source_url to %s; forcing %s", item.source_url, url)
            jobs.append(posting)
        logger.info("Extracted %d postings from %s (%s)", len(jobs), url, page_kind.value)
        return ExtractionResult(
            page_is_job_related=resp.page_is_job_related,
            page_kind=page_kind,
            page_reason=resp.page_reason,
            jobs=jobs,
        )
