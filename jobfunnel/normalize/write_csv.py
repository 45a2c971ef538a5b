"""
CSV writers for postings and ranked matches.

List fields are joined with ``;`` so each posting stays on one row.
Existing files are overwritten and Unicode is written as UTF-8.
"""

from __future__ import annotations

import csv
from typing import Iterable, List

from .schema import JobPosting, RankedJob

JOB_FIELDS: List[str] = [
    "title",
    "company",
    "location",
    "remote",
    "employment_type",
    "seniority",
    "team",
    "compensation",
    "skills",
    "requirements",
    "nice_to_have",
    "responsibilities",
    "page_kind",
    "source_url",
    "apply_url",
]

MATCH_FIELDS: List[str] = [
    "rank",
    "fit_score",
    "title",
    "company",
    "location",
    "match",
    "missing",
    "reason",
    "source_url",
    "apply_url",
]


def _job_row(job: JobPosting) -> dict:
    data = job.to_dict()
    row = {name: data.get(name) or "" for name in JOB_FIELDS}
    for name in ("skills", "requirements", "nice_to_have", "responsibilities"):
        row[name] = ";".join(getattr(job, name))
    return row


def write_jobs_csv(jobs: Iterable[JobPosting], path: str) -> None:
    """Write postings to a CSV file.

    Args:
        jobs: Iterable of :class:`JobPosting`.
        path: Destination path for the CSV.
    """
    with open(path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=JOB_FIELDS)
        writer.writeheader()
        for job in jobs:
            writer.writerow(_job_row(job))


def write_matches_csv(ranked: Iterable[RankedJob], path: str) -> int:
    """Write ranked matches in rank order; returns the number of rows."""
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=MATCH_FIELDS)
        writer.writeheader()
        for i, item in enumerate(ranked, start=1):
            job = item.job
            writer.writerow(
                {
                    "rank": i,
                    "fit_score": f"{item.fit_score:.1f}",
                    "title": job.title,
                    "company": job.company or "",
                    "location": job.location or "",
                    "match": "; ".join(item.rationale.match),
                    "missing": "; ".join(item.rationale.missing),
                    "reason": item.rationale.reason or "",
                    "source_url": job.source_url,
                    "apply_url": job.apply_url or "",
                }
            )
            count += 1
    return count
