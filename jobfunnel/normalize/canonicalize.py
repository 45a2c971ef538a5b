"""
Canonicalization and deduplication of extracted postings.

Every posting gets a canonical key: ``url:<normalized source url>`` when
it has a usable source URL, otherwise ``sig:<hash>`` over its normalized
company, title and location.  Deduplication keeps the first posting seen
for each key and never reorders the survivors.  Nothing in this module
touches the network.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlsplit, urlunsplit

from .schema import CanonicalizedJob, JobPosting

logger = logging.getLogger(__name__)

TRACKING_PARAMS = frozenset({"ref", "source", "gh_src"})
TRACKING_PREFIXES = ("utm_",)
SIGNATURE_LENGTH = 24

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\s\-/().:@]")
_CONTROL = re.compile(r"[\t\r\n]")


def _is_tracking_param(segment: str) -> bool:
    key = unquote(segment.split("=", 1)[0]).strip().lower()
    return key in TRACKING_PARAMS or key.startswith(TRACKING_PREFIXES)


def normalize_url(url: Optional[str]) -> str:
    """Return ``url`` without tracking parameters or fragment.

    Scheme and host are lowercased and an empty http(s) path becomes
    ``/``.  Strings that do not parse as absolute URLs are returned
    trimmed but otherwise unchanged.
    """
    if not url:
        return ""
    trimmed = _CONTROL.sub("", url.strip())
    try:
        parts = urlsplit(trimmed)
        if not parts.scheme or not parts.netloc:
            return trimmed
        scheme = parts.scheme.lower()
        netloc = parts.netloc.lower()
    except ValueError:
        return trimmed
    path = parts.path
    if not path and scheme in ("http", "https"):
        path = "/"
    kept = [seg for seg in parts.query.split("&") if seg and not _is_tracking_param(seg)]
    return urlunsplit((scheme, netloc, path, "&".join(kept), ""))


def normalize_text(value: Optional[str]) -> str:
    """Lowercase, strip punctuation outside ``-_/().:@`` and collapse whitespace."""
    if not value:
        return ""
    text = _DISALLOWED.sub("", value.strip().lower())
    return _WHITESPACE.sub(" ", text).strip()


def signature_key(company: Optional[str], title: Optional[str], location: Optional[str]) -> str:
    raw = "|".join(normalize_text(part) for part in (company, title, location))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:SIGNATURE_LENGTH]


def canonical_key(job: JobPosting) -> str:
    url = normalize_url(job.source_url)
    if url:
        return f"url:{url}"
    return f"sig:{signature_key(job.company, job.title, job.location)}"


def canonicalize_job(job: JobPosting) -> CanonicalizedJob:
    """Pair ``job`` with its key; the returned posting carries the normalized URL."""
    url = normalize_url(job.source_url)
    if url and url != job.source_url:
        job = job.with_changes(source_url=url)
    return CanonicalizedJob(job=job, canonical_key=canonical_key(job))


def dedupe_canonical(items: Iterable[CanonicalizedJob]) -> List[CanonicalizedJob]:
    """Keep the first item per canonical key, preserving order."""
    seen = set()
    out: List[CanonicalizedJob] = []
    for item in items:
        if item.canonical_key in seen:
            continue
        seen.add(item.canonical_key)
        out.append(item)
    return out


class Canonicalizer:
    """Normalizes and deduplicates batches of postings."""

    def canonicalize(self, postings: Iterable[JobPosting], *, dedupe: bool = True) -> List[CanonicalizedJob]:
        items = [canonicalize_job(job) for job in postings]
        if not dedupe:
            return items
        unique = dedupe_canonical(items)
        if len(unique) != len(items):
            logger.debug("Collapsed %d duplicate postings", len(items) - len(unique))
        return unique
