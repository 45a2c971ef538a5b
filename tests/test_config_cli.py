"""Tests for configuration, search-result parsing, CSV output and the CLI."""

from __future__ import annotations

import csv
import json
import logging

import pytest  # type: ignore

from jobfunnel.cli import main
from jobfunnel.collect.search import BrightDataClient, DuckDuckGoSearchClient
from jobfunnel.config import AppConfig, load_config, require_env
from jobfunnel.errors import ConfigurationError
from jobfunnel.normalize.schema import JobPosting, RankedJob, Rationale
from jobfunnel.normalize.write_csv import JOB_FIELDS, write_jobs_csv, write_matches_csv
from jobfunnel.persist.profile import CandidateProfile, Education, Experience, Skill, build_user_context


def test_config_defaults() -> None:
    config = AppConfig.from_dict(None)
    assert config.funnel.max_to_scrape == 10
    assert config.funnel.min_score_to_scrape == 60
    assert config.funnel.score_concurrency == 4
    assert config.vector_store.backend == "memory"
    assert config.retry.max_retries == 3


def test_config_overrides_and_unknown_keys(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="jobfunnel.config"):
        config = AppConfig.from_dict(
            {"funnel": {"max_to_scrape": 4, "bogus": 1}, "llm": {"provider": "gemini"}, "retry": {"base_delay": 0}}
        )
    assert config.funnel.max_to_scrape == 4
    assert config.llm.provider == "gemini"
    assert config.retry.base_delay == 0
    assert "bogus" in caplog.text


@pytest.mark.parametrize(
    "data",
    [
        {"funnel": {"max_to_scrape": 0}},
        {"funnel": {"score_concurrency": 0}},
        {"funnel": {"min_score_to_scrape": 120}},
        {"llm": {"provider": "llama"}},
        {"vector_store": {"backend": "redis"}},
        {"retry": {"max_retries": -1}},
        {"funnel": "not a mapping"},
        ["not", "a", "mapping"],
    ],
)
def test_config_rejects_bad_values(data) -> None:
    with pytest.raises(ConfigurationError):
        AppConfig.from_dict(data)


def test_load_config(tmp_path) -> None:
    path = tmp_path / "funnel.yaml"
    path.write_text("funnel:\n  final_top_k: 5\nsearch:\n  backend: brightdata\n", encoding="utf-8")
    config = load_config(str(path))
    assert config.funnel.final_top_k == 5
    assert config.search.backend == "brightdata"

    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "missing.yaml"))


def test_require_env(monkeypatch) -> None:
    monkeypatch.setenv("JOBFUNNEL_TEST_KEY", "  secret ")
    assert require_env("JOBFUNNEL_TEST_KEY") == "secret"
    monkeypatch.setenv("JOBFUNNEL_TEST_KEY", "  ")
    with pytest.raises(ConfigurationError, match="JOBFUNNEL_TEST_KEY"):
        require_env("JOBFUNNEL_TEST_KEY")


def test_parse_brightdata_serp() -> None:
    raw = json.dumps(
        {
            "status_code": 200,
            "body": json.dumps(
                {
                    "organic": [
                        {"link": "https://jobs.lever.co/acme/1", "title": "Engineer", "rank": 1, "snippet": "Apply"},
                        {"link": "https://jobs.lever.co/acme/1", "title": "Engineer (dup)", "rank": 2},
                        {"link": "", "title": "No link"},
                        {"link": "https://acme.io/careers", "title": "Careers", "rank": "x"},
                        "junk",
                    ]
                }
            ),
        }
    )
    results = BrightDataClient.parse_serp(BrightDataClient._unwrap(raw))
    assert [r.url for r in results] == ["https://jobs.lever.co/acme/1", "https://acme.io/careers"]
    assert results[0].snippet == "Apply"
    assert results[1].position == 0
    assert BrightDataClient.parse_serp("not a dict") == []


def test_parse_duckduckgo_html() -> None:
    html = """
    <div class="result">
      <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fboards.greenhouse.io%2Facme%2Fjobs%2F1&rut=x">
        Backend Engineer - Acme
      </a>
      <a class="result__snippet">Join our platform team</a>
    </div>
    <div class="result">
      <a class="result__a" href="https://acme.io/careers">Careers at Acme</a>
    </div>
    <div class="result">
      <a class="result__a" href="/relative">Broken</a>
    </div>
    """
    results = DuckDuckGoSearchClient.parse_html(html)
    assert [r.url for r in results] == ["https://boards.greenhouse.io/acme/jobs/1", "https://acme.io/careers"]
    assert results[0].title == "Backend Engineer - Acme"
    assert results[0].snippet == "Join our platform team"
    assert results[1].position == 2


def test_build_user_context() -> None:
    profile = CandidateProfile(
        id="p1",
        user_id="u1",
        headline="Backend engineer",
        years_experience=6,
        target_roles=["Backend Engineer", "Platform Engineer"],
        skills=[Skill("Python", "expert"), Skill("SQL")],
        experiences=[
            Experience("Engineer", "Old Co", "2015-01-01", "2018-01-01"),
            Experience("Senior Engineer", "New Co", "2019-01-01", current=True, highlights=["Led migration"]),
        ],
        educations=[Education("State U", "BSc", "CS")],
        resume_text="line one\n\nline two",
    )
    context = build_user_context(profile)
    assert context.startswith("HEADLINE: Backend engineer\nSUMMARY: N/A\nLOCATION: N/A\nYEARS EXPERIENCE: 6")
    assert "TARGET ROLES: Backend Engineer, Platform Engineer" in context
    assert "SKILLS: Python (expert), SQL" in context
    assert context.index("New Co") < context.index("Old Co")
    assert "(2019-01-01 to Present)" in context
    assert "Highlights: Led migration" in context
    assert "- BSc in CS at State U" in context
    assert "RESUME EXCERPT: line one line two..." in context
    assert build_user_context(None) == "User has no profile data yet."


def _ranked() -> list:
    return [
        RankedJob(
            job=JobPosting(title="Backend Engineer", source_url="https://x.io/1", company="Acme", skills=["Python"]),
            fit_score=91.0,
            rationale=Rationale(match=["Python", "SQL"], missing=["Go"], reason="Strong backend overlap"),
        ),
        RankedJob(
            job=JobPosting(title="Data Engineer", source_url="https://x.io/2", apply_url="https://x.io/2/apply"),
            fit_score=64.5,
            rationale=Rationale(),
        ),
    ]


def test_write_csvs(tmp_path) -> None:
    matches = tmp_path / "matches.csv"
    assert write_matches_csv(_ranked(), str(matches)) == 2
    with open(matches, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["rank"] == "1"
    assert rows[0]["match"] == "Python; SQL"
    assert rows[1]["fit_score"] == "64.5"

    jobs = tmp_path / "jobs.csv"
    write_jobs_csv([r.job for r in _ranked()], str(jobs))
    with open(jobs, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        assert reader.fieldnames == JOB_FIELDS
        first = next(reader)
    assert first["skills"] == "Python"
    assert first["remote"] == ""


def test_report_command(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.setattr("jobfunnel.cli.configure_logging", lambda settings: None)
    matches = tmp_path / "matches.csv"
    write_matches_csv(_ranked(), str(matches))

    assert main(["report", "--matches", str(matches), "--limit", "1"]) == 0
    out = capsys.readouterr().out
    assert "01. Backend Engineer at Acme - 91/100" in out
    assert "Why: Strong backend overlap" in out
    assert "Data Engineer" not in out


def test_main_reports_configuration_errors(tmp_path) -> None:
    code = main(["--config", str(tmp_path / "missing.yaml"), "report", "--matches", "unused.csv"])
    assert code == 1


def test_user_context_for_sparse_profile(profile) -> None:
    context = build_user_context(profile)
    assert "LOCATION: Remote" in context
    assert "TARGET ROLES: Backend Engineer" in context
    assert "SKILLS: Python (expert), PostgreSQL" in context
    assert "\nEXPERIENCE:" not in context
    assert "RESUME EXCERPT" not in context
