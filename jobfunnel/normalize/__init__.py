"""
Normalization: the posting data model, vocabulary mapping, LLM
extraction from markdown, canonical keys and deduplication, and CSV
export.
"""

from .canonicalize import Canonicalizer, canonical_key, normalize_text, normalize_url  # noqa: F401
from .schema import (  # noqa: F401
    CanonicalizedJob,
    EmploymentType,
    JobPosting,
    RankedJob,
    RetrievedJob,
    ScoredUrl,
    Seniority,
    UrlKind,
    WorkMode,
)
