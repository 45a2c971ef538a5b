"""
Candidate profiles and the user-context text built from them.

The same context string is used by every model-backed stage (query
generation, URL scoring, extraction, rerank) and as the retrieval query
for the vector index.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

RESUME_EXCERPT_CHARS = 1000
_NEWLINES = re.compile(r"\n+")


@dataclass
class Skill:
    name: str
    level: Optional[str] = None


@dataclass
class Experience:
    title: str
    company: str
    start_date: str
    end_date: Optional[str] = None
    current: bool = False
    summary: Optional[str] = None
    highlights: List[str] = field(default_factory=list)


@dataclass
class Education:
    school: str
    degree: Optional[str] = None
    field_of_study: Optional[str] = None


@dataclass
class CandidateProfile:
    id: str
    user_id: str
    name: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    years_experience: Optional[float] = None
    target_roles: List[str] = field(default_factory=list)
    skills: List[Skill] = field(default_factory=list)
    experiences: List[Experience] = field(default_factory=list)
    educations: List[Education] = field(default_factory=list)
    resume_text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateProfile":
        skills = []
        for s in data.get("skills") or []:
            skills.append(Skill(name=s) if isinstance(s, str) else Skill(**s))
        return cls(
            id=str(data["id"]),
            user_id=str(data.get("user_id") or data["id"]),
            name=data.get("name"),
            headline=data.get("headline"),
            summary=data.get("summary"),
            location=data.get("location"),
            years_experience=data.get("years_experience"),
            target_roles=list(data.get("target_roles") or []),
            skills=skills,
            experiences=[_experience(e) for e in data.get("experiences") or []],
            educations=[Education(**e) for e in data.get("educations") or []],
            resume_text=data.get("resume_text"),
        )


def _experience(data: Dict[str, Any]) -> Experience:
    # YAML parses bare dates into date objects
    values = dict(data)
    for key in ("start_date", "end_date"):
        if values.get(key) is not None:
            values[key] = str(values[key])
    return Experience(**values)


def build_user_context(profile: Optional[CandidateProfile]) -> str:
    """Render ``profile`` as the labelled text block fed to the model."""
    if profile is None:
        return "User has no profile data yet."
    parts: List[str] = [
        f"HEADLINE: {profile.headline or 'N/A'}",
        f"SUMMARY: {profile.summary or 'N/A'}",
        f"LOCATION: {profile.location or 'N/A'}",
        f"YEARS EXPERIENCE: {profile.years_experience or 0}",
    ]
    if profile.target_roles:
        parts.append(f"TARGET ROLES: {', '.join(profile.target_roles)}")
    if profile.skills:
        rendered = ", ".join(f"{s.name} ({s.level})" if s.level else s.name for s in profile.skills)
        parts.append(f"SKILLS: {rendered}")
    if profile.experiences:
        parts.append("\nEXPERIENCE:")
        # Most recent first
        for exp in sorted(profile.experiences, key=lambda e: e.start_date, reverse=True):
            end = "Present" if exp.current else (exp.end_date or "N/A")
            parts.append(f"- {exp.title} at {exp.company} ({exp.start_date} to {end})\n  {exp.summary or ''}")
            if exp.highlights:
                parts.append(f"  Highlights: {'; '.join(exp.highlights)}")
    if profile.educations:
        parts.append("\nEDUCATION:")
        for edu in profile.educations:
            parts.append(f"- {edu.degree or 'Degree'} in {edu.field_of_study or 'Field'} at {edu.school}")
    if profile.resume_text:
        excerpt = _NEWLINES.sub(" ", profile.resume_text[:RESUME_EXCERPT_CHARS])
        parts.append(f"\nRESUME EXCERPT: {excerpt}...")
    return "\n".join(parts)
