"""Tests for the local persistence collaborators."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest  # type: ignore

from jobfunnel.errors import CreditDeniedError
from jobfunnel.normalize.schema import EmploymentType, JobPosting, Rationale, Seniority, UrlKind, WorkMode
from jobfunnel.persist.stores import (
    JOB_SCAN,
    MAX_TAGS,
    InMemoryProfileStore,
    JobInput,
    LocalBilling,
    LocalFitScoreStore,
    LocalJobStore,
    UnlimitedBilling,
)


def _input(title="Backend Engineer", company="Acme", url="https://acme.io/jobs/1", **kwargs) -> JobInput:
    return JobInput(title=title, company_name=company, external_url=url, **kwargs)


def test_job_input_defaults() -> None:
    job = JobInput.from_posting(JobPosting(title="  Engineer ", source_url="https://x.io/1"))
    assert job.title == "Engineer"
    assert job.company_name == "Unknown"
    assert job.employment_type == "full_time"
    assert job.work_mode == "on_site"
    assert job.seniority == "unknown"
    assert job.page_kind is None


def test_job_input_tags_are_unique_and_capped() -> None:
    requirements = [f"Skill {i}" for i in range(12)]
    job = JobInput.from_posting(
        JobPosting(
            title="Eng",
            source_url="https://x.io/1",
            requirements=["Python", "python ", *requirements],
            nice_to_have=["Go"],
            skills=["SQL", "sql", "  Docker  "],
        )
    )
    assert len(job.tags) == MAX_TAGS
    assert job.tags[:2] == ["Python", "Skill 0"]
    assert job.skills == ["SQL", "Docker"]


def test_upsert_matches_by_url_then_title_company() -> None:
    store = LocalJobStore()
    first = asyncio.run(store.upsert_job(_input()))

    by_url = asyncio.run(store.upsert_job(_input(title="Senior Backend Engineer")))
    assert by_url.id == first.id
    assert by_url.title == "Senior Backend Engineer"
    assert by_url.created_at == first.created_at

    by_title = asyncio.run(store.upsert_job(_input(title="senior backend engineer ", company="ACME", url="")))
    assert by_title.id == first.id

    other = asyncio.run(store.upsert_job(_input(title="Chef", url="https://acme.io/jobs/2")))
    assert other.id != first.id
    assert len(store) == 2


def test_renamed_job_releases_its_old_title_key() -> None:
    store = LocalJobStore()
    first = asyncio.run(store.upsert_job(_input()))
    asyncio.run(store.upsert_job(_input(title="Staff Backend Engineer")))

    reposted = asyncio.run(store.upsert_job(_input(url="https://acme.io/jobs/9")))
    assert reposted.id != first.id
    assert len(store) == 2
    renamed = {j.id: j for j in asyncio.run(store.list_recent(30))}[first.id]
    assert renamed.title == "Staff Backend Engineer"
    assert renamed.external_url == "https://acme.io/jobs/1"


def test_upsert_rejects_blank_title() -> None:
    store = LocalJobStore()
    with pytest.raises(ValueError):
        asyncio.run(store.upsert_job(_input(title="  ")))
    assert len(store) == 0


def test_list_recent_uses_created_at() -> None:
    store = LocalJobStore()
    old = asyncio.run(store.upsert_job(_input(url="https://acme.io/old", title="Old")))
    asyncio.run(store.upsert_job(_input(url="https://acme.io/new", title="New")))
    old.created_at = (datetime.now(timezone.utc) - timedelta(days=45)).isoformat()

    recent = asyncio.run(store.list_recent(30))
    assert [j.title for j in recent] == ["New"]
    assert asyncio.run(store.list_recent(60, limit=1))[0].title == "New"


def test_stored_job_round_trips_to_posting() -> None:
    store = LocalJobStore()
    posting = JobPosting(
        title="Eng",
        source_url="https://x.io/1",
        remote=WorkMode.HYBRID,
        employment_type=EmploymentType.CONTRACT,
        seniority=Seniority.SENIOR,
        page_kind=UrlKind.JOB_LISTING,
    )
    stored = asyncio.run(store.upsert_job(JobInput.from_posting(posting)))
    back = stored.to_posting()
    assert back.company is None
    assert back.remote is WorkMode.HYBRID
    assert back.employment_type is EmploymentType.CONTRACT
    assert back.seniority is Seniority.SENIOR
    assert back.page_kind is UrlKind.JOB_LISTING


def test_save_and_load(tmp_path) -> None:
    path = str(tmp_path / "jobs.json")
    store = LocalJobStore()
    saved = asyncio.run(store.upsert_job(_input(requirements=["Python"])))
    store.save(path)

    loaded = LocalJobStore.load(path)
    assert len(loaded) == 1
    again = asyncio.run(loaded.upsert_job(_input(title="Renamed")))
    assert again.id == saved.id

    assert len(LocalJobStore.load(str(tmp_path / "missing.json"))) == 0


def test_fit_scores_are_unique_per_profile_and_job() -> None:
    scores = LocalFitScoreStore()
    asyncio.run(scores.upsert_fit_score("p1", "j1", 40, Rationale(reason="meh")))
    asyncio.run(scores.upsert_fit_score("p1", "j1", 80, Rationale(reason="better")))
    asyncio.run(scores.upsert_fit_score("p2", "j1", 10, Rationale()))
    assert len(scores) == 2
    assert scores.get("p1", "j1").score == 80.0
    assert scores.get("p1", "j1").rationale.reason == "better"


def test_billing_checks_and_consumes() -> None:
    billing = LocalBilling({"u1": 1})
    assert asyncio.run(billing.can_user_action("u1", JOB_SCAN))
    asyncio.run(billing.consume_credits("u1", JOB_SCAN))
    assert billing.balances["u1"] == 0
    assert not asyncio.run(billing.can_user_action("u1", JOB_SCAN))
    with pytest.raises(CreditDeniedError):
        asyncio.run(billing.consume_credits("u1", JOB_SCAN))
    assert not asyncio.run(billing.can_user_action("nobody", JOB_SCAN))
    assert asyncio.run(UnlimitedBilling().can_user_action("nobody", JOB_SCAN))


def test_profile_store_from_yaml(tmp_path) -> None:
    path = tmp_path / "profiles.yaml"
    path.write_text(
        "profiles:\n"
        "  - id: p1\n"
        "    user_id: u1\n"
        "    skills: [Python, {name: Go, level: advanced}]\n"
        "    experiences:\n"
        "      - title: Engineer\n"
        "        company: Acme\n"
        "        start_date: 2021-03-01\n",
        encoding="utf-8",
    )
    store = InMemoryProfileStore.from_yaml(str(path))
    profile = asyncio.run(store.get_profile("p1"))
    assert profile is not None
    assert profile.user_id == "u1"
    assert [s.name for s in profile.skills] == ["Python", "Go"]
    assert profile.experiences[0].start_date == "2021-03-01"
    assert asyncio.run(store.get_profile("p2")) is None
