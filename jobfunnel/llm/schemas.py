"""
Response shapes expected from the model.

Scores and enum-like fields are coerced per field: an unparseable score
becomes 0 and a non-string kind becomes ``irrelevant``.  Clamping and
vocabulary mapping happen in the stage that consumes the response, so
one bad value degrades a single item instead of failing validation for
the whole batch.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _as_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        value = [value]
    return [_as_text(v) for v in value if v is not None]


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UrlScoreItem(_Lenient):
    url: str
    score: float = 0.0
    kind: str = "irrelevant"
    reason: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def coerce_score(cls, value: Any) -> float:
        return _as_number(value)

    @field_validator("kind", mode="before")
    @classmethod
    def coerce_kind(cls, value: Any) -> str:
        return value if isinstance(value, str) else "irrelevant"

    @field_validator("reason", mode="before")
    @classmethod
    def coerce_reason(cls, value: Any) -> str:
        return _as_text(value)


class ScoreUrlsResponse(_Lenient):
    results: List[UrlScoreItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"results": data}
        return data


class ExtractedJob(_Lenient):
    title: str = ""
    company: Optional[str] = None
    location: Optional[str] = None
    remote: Optional[str] = None
    employment_type: Optional[str] = None
    seniority: Optional[str] = None
    team: Optional[str] = None
    compensation: Optional[str] = None
    responsibilities: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    nice_to_have: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    source_url: Optional[str] = None
    apply_url: Optional[str] = None
    description_markdown: Optional[str] = None


class ExtractJobsResponse(_Lenient):
    page_is_job_related: bool = False
    page_kind: str = "irrelevant"
    page_reason: str = ""
    jobs: List[ExtractedJob] = Field(default_factory=list)


class RankItem(_Lenient):
    id: str
    fit_score: float = 0.0
    match: List[str] = Field(default_factory=list)
    missing: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    reject: bool = False

    @field_validator("fit_score", mode="before")
    @classmethod
    def coerce_fit_score(cls, value: Any) -> float:
        return _as_number(value)

    @field_validator("match", "missing", mode="before")
    @classmethod
    def coerce_lists(cls, value: Any) -> List[str]:
        return _as_text_list(value)

    @field_validator("reason", mode="before")
    @classmethod
    def coerce_reason(cls, value: Any) -> Optional[str]:
        return None if value is None else _as_text(value)

    @field_validator("reject", mode="before")
    @classmethod
    def coerce_reject(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        return bool(value)


class RankJobsResponse(_Lenient):
    ranked: List[RankItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"ranked": data}
        return data


class SearchQueryItem(_Lenient):
    query: str
    site: Optional[str] = None
    location: Optional[str] = None


class SearchQueriesResponse(_Lenient):
    queries: List[SearchQueryItem] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"queries": data}
        return data
