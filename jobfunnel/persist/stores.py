"""
Persistence collaborators used by the orchestrator.

The funnel depends only on the abstract contracts below.  The local
implementations keep everything in memory (optionally snapshotting jobs
to a JSON file) and are what the CLI and tests use; a deployment backed
by a relational database implements the same four classes.

Writes are upserts: jobs are matched by ``external_url`` first and then
by ``(title, company_name)``, fit scores by ``(profile_id, job_id)``.
Calling them again with the same logical record updates it in place.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import yaml  # type: ignore

from ..errors import CreditDeniedError
from ..normalize.mapping import map_employment_type, map_seniority, map_url_kind, map_work_mode
from ..normalize.schema import EmploymentType, JobPosting, Rationale, Seniority, WorkMode
from .profile import CandidateProfile

logger = logging.getLogger(__name__)

MAX_TAGS = 10
JOB_SCAN = "job_scan"
CREDIT_COSTS: Dict[str, int] = {JOB_SCAN: 1}

_WHITESPACE = re.compile(r"\s+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unique(values: List[str]) -> List[str]:
    seen = set()
    out = []
    for value in values:
        cleaned = _WHITESPACE.sub(" ", value).strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            out.append(cleaned)
    return out


@dataclass
class JobInput:
    """A posting shaped for the job store, with consumer-side defaults applied."""

    title: str
    company_name: str
    external_url: str
    location: Optional[str] = None
    apply_url: Optional[str] = None
    employment_type: str = EmploymentType.FULL_TIME.value
    work_mode: str = WorkMode.ON_SITE.value
    seniority: str = Seniority.UNKNOWN.value
    team: Optional[str] = None
    compensation: Optional[str] = None
    description: Optional[str] = None
    responsibilities: List[str] = field(default_factory=list)
    requirements: List[str] = field(default_factory=list)
    nice_to_have: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    page_kind: Optional[str] = None

    @classmethod
    def from_posting(cls, job: JobPosting) -> "JobInput":
        return cls(
            title=job.title.strip(),
            company_name=(job.company or "").strip() or "Unknown",
            external_url=job.source_url,
            location=job.location,
            apply_url=job.apply_url,
            employment_type=(job.employment_type or EmploymentType.FULL_TIME).value,
            work_mode=(job.remote or WorkMode.ON_SITE).value,
            seniority=(job.seniority or Seniority.UNKNOWN).value,
            team=job.team,
            compensation=job.compensation,
            description=job.description_markdown,
            responsibilities=list(job.responsibilities),
            requirements=list(job.requirements),
            nice_to_have=list(job.nice_to_have),
            tags=_unique(job.requirements + job.nice_to_have)[:MAX_TAGS],
            skills=_unique(job.skills),
            page_kind=job.page_kind.value if job.page_kind else None,
        )


@dataclass
class StoredJob(JobInput):
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_posting(self) -> JobPosting:
        return JobPosting(
            title=self.title,
            source_url=self.external_url,
            company=None if self.company_name == "Unknown" else self.company_name,
            location=self.location,
            remote=map_work_mode(self.work_mode),
            employment_type=map_employment_type(self.employment_type),
            seniority=map_seniority(self.seniority),
            team=self.team,
            compensation=self.compensation,
            responsibilities=list(self.responsibilities),
            requirements=list(self.requirements),
            nice_to_have=list(self.nice_to_have),
            skills=list(self.skills),
            apply_url=self.apply_url,
            description_markdown=self.description,
            page_kind=map_url_kind(self.page_kind) if self.page_kind else None,
        )


@dataclass
class FitScore:
    profile_id: str
    job_id: str
    score: float
    rationale: Rationale
    updated_at: str = ""


class JobStore(ABC):
    @abstractmethod
    async def upsert_job(self, job: JobInput) -> StoredJob:
        raise NotImplementedError

    @abstractmethod
    async def list_recent(self, days: int, limit: Optional[int] = None) -> List[StoredJob]:
        """Jobs first stored within the last ``days`` days, newest first."""
        raise NotImplementedError


class FitScoreStore(ABC):
    @abstractmethod
    async def upsert_fit_score(self, profile_id: str, job_id: str, score: float, rationale: Rationale) -> FitScore:
        raise NotImplementedError


class ProfileStore(ABC):
    @abstractmethod
    async def get_profile(self, profile_id: str) -> Optional[CandidateProfile]:
        raise NotImplementedError


class BillingGate(ABC):
    @abstractmethod
    async def can_user_action(self, user_id: str, action: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def consume_credits(self, user_id: str, action: str) -> None:
        raise NotImplementedError


class LocalJobStore(JobStore):
    """In-memory job store with an optional JSON snapshot.

    ``upsert_job`` builds the complete record, skills included, before
    touching any index, so a failure leaves the store unchanged.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, StoredJob] = {}
        self._by_url: Dict[str, str] = {}
        self._by_title_company: Dict[Tuple[str, str], str] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    @staticmethod
    def _title_company_key(title: str, company: str) -> Tuple[str, str]:
        return title.strip().lower(), company.strip().lower()

    def _find(self, job: JobInput) -> Optional[StoredJob]:
        job_id = None
        if job.external_url:
            job_id = self._by_url.get(job.external_url)
        if job_id is None:
            job_id = self._by_title_company.get(self._title_company_key(job.title, job.company_name))
        return self._jobs.get(job_id) if job_id else None

    def _index(self, record: StoredJob) -> None:
        if record.external_url:
            self._by_url[record.external_url] = record.id
        self._by_title_company[self._title_company_key(record.title, record.company_name)] = record.id

    async def upsert_job(self, job: JobInput) -> StoredJob:
        if not job.title.strip():
            raise ValueError("Job title is required")
        now = _utcnow().isoformat()
        existing = self._find(job)
        values = asdict(job)
        values["skills"] = _unique(job.skills)
        if existing is None:
            record = StoredJob(**values, id=uuid.uuid4().hex, created_at=now, updated_at=now)
        else:
            record = StoredJob(**values, id=existing.id, created_at=existing.created_at, updated_at=now)
            if existing.external_url and existing.external_url != record.external_url:
                self._by_url.pop(existing.external_url, None)
            old_key = self._title_company_key(existing.title, existing.company_name)
            if old_key != self._title_company_key(record.title, record.company_name):
                if self._by_title_company.get(old_key) == existing.id:
                    del self._by_title_company[old_key]
        self._jobs[record.id] = record
        self._index(record)
        return record

    async def list_recent(self, days: int, limit: Optional[int] = None) -> List[StoredJob]:
        cutoff = (_utcnow() - timedelta(days=days)).isoformat()
        recent = [j for j in self._jobs.values() if j.created_at >= cutoff]
        recent.sort(key=lambda j: j.created_at, reverse=True)
        return recent[:limit] if limit is not None else recent

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump([asdict(j) for j in self._jobs.values()], f, indent=2, ensure_ascii=False)
        logger.info("Saved %d jobs to %s", len(self._jobs), path)

    @classmethod
    def load(cls, path: str) -> "LocalJobStore":
        store = cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except FileNotFoundError:
            logger.info("No job store snapshot at %s; starting empty", path)
            return store
        for row in rows:
            record = StoredJob(**row)
            store._jobs[record.id] = record
            store._index(record)
        logger.info("Loaded %d jobs from %s", len(store._jobs), path)
        return store


class LocalFitScoreStore(FitScoreStore):
    def __init__(self) -> None:
        self._scores: Dict[Tuple[str, str], FitScore] = {}

    def __len__(self) -> int:
        return len(self._scores)

    def get(self, profile_id: str, job_id: str) -> Optional[FitScore]:
        return self._scores.get((profile_id, job_id))

    async def upsert_fit_score(self, profile_id: str, job_id: str, score: float, rationale: Rationale) -> FitScore:
        record = FitScore(profile_id, job_id, float(score), rationale, _utcnow().isoformat())
        self._scores[(profile_id, job_id)] = record
        return record


class InMemoryProfileStore(ProfileStore):
    def __init__(self, profiles: Optional[List[CandidateProfile]] = None) -> None:
        self._profiles = {p.id: p for p in profiles or []}

    async def get_profile(self, profile_id: str) -> Optional[CandidateProfile]:
        return self._profiles.get(profile_id)

    @classmethod
    def from_yaml(cls, path: str) -> "InMemoryProfileStore":
        """Load profiles from a YAML file with a top-level ``profiles`` list."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        rows = data.get("profiles", []) if isinstance(data, dict) else data
        return cls([CandidateProfile.from_dict(row) for row in rows or []])


class LocalBilling(BillingGate):
    """Per-user credit wallet."""

    def __init__(self, balances: Optional[Dict[str, int]] = None, costs: Optional[Dict[str, int]] = None) -> None:
        self.balances: Dict[str, int] = dict(balances or {})
        self.costs = dict(costs or CREDIT_COSTS)

    def _cost(self, action: str) -> int:
        return self.costs.get(action, 0)

    async def can_user_action(self, user_id: str, action: str) -> bool:
        return self.balances.get(user_id, 0) >= self._cost(action)

    async def consume_credits(self, user_id: str, action: str) -> None:
        cost = self._cost(action)
        balance = self.balances.get(user_id, 0)
        if balance < cost:
            raise CreditDeniedError(user_id, action)
        self.balances[user_id] = balance - cost
        logger.debug("Charged %d credit(s) to %s for %s", cost, user_id, action)


class UnlimitedBilling(BillingGate):
    async def can_user_action(self, user_id: str, action: str) -> bool:
        return True

    async def consume_credits(self, user_id: str, action: str) -> None:
        return None
