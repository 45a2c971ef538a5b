"""
Data model for the funnel.

``JobPosting`` is the unit of job information produced by extraction.
Everything else here is either an ephemeral per-run value (candidate and
scored URLs) or a wrapper that pairs a posting with a key or a score.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional


class UrlKind(str, Enum):
    JOB_LISTING = "job_listing"
    JOBS_INDEX = "jobs_index"
    CAREERS = "careers"
    LOGIN_OR_GATE = "login_or_gate"
    BLOG_OR_NEWS = "blog_or_news"
    COMPANY_ABOUT = "company_about"
    IRRELEVANT = "irrelevant"


class WorkMode(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ON_SITE = "on_site"
    UNKNOWN = "unknown"


class EmploymentType(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    TEMPORARY = "temporary"
    UNKNOWN = "unknown"


class Seniority(str, Enum):
    JUNIOR = "junior"
    MID = "mid"
    SENIOR = "senior"
    STAFF = "staff"
    LEAD = "lead"
    PRINCIPAL = "principal"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CandidateUrl:
    """A search hit waiting to be scored."""

    url: str
    query: str
    source: str = "search"


@dataclass(frozen=True)
class ScoredUrl:
    url: str
    score: float
    kind: UrlKind
    reason: str = ""


@dataclass
class JobPosting:
    """One job posting as extracted from a page.

    Enumerated fields stay ``None`` when the page did not state them;
    defaults are applied by consumers (see ``persist.stores.JobInput``).
    """

    title: str
    source_url: str
    company: Optional[str] = None
    location: Optional[str] = None
    remote: Optional[WorkMode] = None
    employment_type: Optional[EmploymentType] = None
    seniority: Optional[Seniority] = None
    team: Optional[str] = None
    compensation: Optional[str] = None
    responsibilities: List[str] = field(default_factory=list)
    requirements: List[str] = field(default_factory=list)
    nice_to_have: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    apply_url: Optional[str] = None
    description_markdown: Optional[str] = None
    page_kind: Optional[UrlKind] = None

    def with_changes(self, **changes: object) -> "JobPosting":
        """Return a copy with ``changes`` applied; the original is untouched."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        for key in ("remote", "employment_type", "seniority", "page_kind"):
            value = getattr(self, key)
            data[key] = value.value if value is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "JobPosting":
        def enum_or_none(enum_cls, value):
            return enum_cls(value) if value else None

        return cls(
            title=str(data.get("title") or ""),
            source_url=str(data.get("source_url") or ""),
            company=data.get("company") or None,  # type: ignore[arg-type]
            location=data.get("location") or None,  # type: ignore[arg-type]
            remote=enum_or_none(WorkMode, data.get("remote")),
            employment_type=enum_or_none(EmploymentType, data.get("employment_type")),
            seniority=enum_or_none(Seniority, data.get("seniority")),
            team=data.get("team") or None,  # type: ignore[arg-type]
            compensation=data.get("compensation") or None,  # type: ignore[arg-type]
            responsibilities=list(data.get("responsibilities") or []),  # type: ignore[arg-type]
            requirements=list(data.get("requirements") or []),  # type: ignore[arg-type]
            nice_to_have=list(data.get("nice_to_have") or []),  # type: ignore[arg-type]
            skills=list(data.get("skills") or []),  # type: ignore[arg-type]
            apply_url=data.get("apply_url") or None,  # type: ignore[arg-type]
            description_markdown=data.get("description_markdown") or None,  # type: ignore[arg-type]
            page_kind=enum_or_none(UrlKind, data.get("page_kind")),
        )


@dataclass(frozen=True)
class CanonicalizedJob:
    job: JobPosting
    canonical_key: str


@dataclass
class ExtractionResult:
    page_is_job_related: bool
    page_kind: UrlKind
    page_reason: str
    jobs: List[JobPosting] = field(default_factory=list)


@dataclass(frozen=True)
class RetrievedJob:
    job: JobPosting
    retrieval_score: float


@dataclass
class Rationale:
    match: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data: Dict[str, object] = {"match": list(self.match), "missing": list(self.missing)}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class RankedJob:
    job: JobPosting
    fit_score: float
    rationale: Rationale = field(default_factory=Rationale)
    rejected: bool = False


def clamp_score(value: object, low: float = 0.0, high: float = 100.0) -> float:
    """Coerce ``value`` to a float within ``[low, high]``; junk becomes ``low``."""
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return low
    if score != score:  # NaN
        return low
    return max(low, min(high, score))
