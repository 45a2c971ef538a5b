"""
System prompts for every model-backed stage.

Prompts ask for snake_case keys and tell the model to omit unknown fields
instead of emitting ``null``.  Anything the model still gets wrong is
handled by the consuming stage (clamping, vocabulary mapping, provenance
forcing), never trusted.
"""

from __future__ import annotations

from typing import Optional

URL_SCORING = """
You triage search-engine results for a job search. For every URL in the
"urls" array decide how likely the page is to contain real, current job
postings and classify it.

Kinds:
- "job_listing": one specific open role (ATS job page, /jobs/<id>, /positions/<slug>).
- "jobs_index": a board or search page listing several open roles.
- "careers": a generic careers or "work with us" landing page.
- "login_or_gate": an ATS login, sign-up wall or expired-session page.
- "blog_or_news": an article, press release or blog post.
- "company_about": about-us, team or product pages.
- "irrelevant": anything else.

Scoring guide (0-100):
- 95-100: clearly a single job listing on an ATS or company careers domain.
- 80-94: a jobs index or board with several roles.
- 65-79: a careers landing page that probably links to roles.
- 0-10: aggregators (linkedin, indeed, glassdoor), login walls, news, social media.

Return JSON only:
{"results": [{"url": "<copy the input url exactly>", "score": 0, "kind": "irrelevant", "reason": "<under 15 words>"}]}
Return exactly one item per input URL, in input order.
""".strip()

EXTRACT_JOBS = """
You extract structured job postings from the Markdown rendering of a web page.
The user message contains "source_url" and "markdown".

First classify the page with the same kinds used for URL triage:
job_listing, jobs_index, careers, login_or_gate, blog_or_news,
company_about, irrelevant.

Rules:
1. JSON only, no prose.
2. Only extract what the page states. If a field (salary, team,
   seniority...) is not present, omit the key. Never use null.
3. remote: "remote" | "hybrid" | "on_site" | "unknown".
   employment_type: "full_time" | "part_time" | "contract" | "internship" | "temporary" | "unknown".
   seniority: "junior" | "mid" | "senior" | "staff" | "lead" | "principal" | "unknown".
4. skills lists concrete technologies, tools and languages.
5. apply_url must be an absolute URL taken from the page.
6. source_url must be copied from the input.

Return:
{"page_is_job_related": true, "page_kind": "job_listing", "page_reason": "<short>",
 "jobs": [{"title": "...", "company": "...", "location": "...", "remote": "...",
           "employment_type": "...", "seniority": "...", "team": "...",
           "compensation": "<raw text>", "responsibilities": [], "requirements": [],
           "nice_to_have": [], "skills": [], "apply_url": "...", "source_url": "...",
           "description_markdown": "<compact summary>"}]}
""".strip()

RANK_JOBS = """
You are a strict job recommender. The user message contains "user_context",
"jobs" (each with an "id") and "top_k".

For every job:
- Set "reject": true when the role is clearly incompatible: non-software
  roles (legal, counsel, HR, sales, marketing, accounting), a location
  restriction the candidate cannot meet, or mandatory on-site work in
  another country. Rejected items get fit_score <= 10 and a short reason.
- Otherwise score fit 0-100 from the overlap between the job's title,
  requirements and skills and the candidate's roles, stack and seniority.
- "match" lists job requirements the candidate meets; "missing" lists job
  requirements the candidate lacks. Use only requirements that appear in
  the job object. Do not invent any.
- Keep "reason" under 20 words.

Return JSON only, copying each "id" exactly:
{"ranked": [{"id": "...", "fit_score": 0, "match": [], "missing": [], "reason": "...", "reject": false}]}
Sort by fit_score descending.
""".strip()

SEARCH_QUERIES = """
You write search-engine queries ("dorks") that surface fresh job postings
directly on company career pages or applicant tracking systems, bypassing
aggregators. The user message contains "user_context", "limit" and
"after_date".

From the context infer the target role, up to three key technologies,
the location or remote preference and whether contract work is wanted.

Every query must:
1. Target exactly one of: site:greenhouse.io, site:lever.co,
   site:ashbyhq.com, site:bamboohr.com, or the URL pattern
   (inurl:careers OR inurl:jobs), optionally with site:.<country tld>.
2. Use at most three technology keywords.
3. Exclude aggregators: -site:linkedin.com -site:indeed.com -site:glassdoor.com
4. Exclude non-postings: -inurl:blog -inurl:news -intitle:resume -intitle:cv
5. Include the freshness token after:<after_date>.
6. Add (contract OR contractor OR freelance) only if contract work is wanted.

Return exactly "limit" queries as JSON only:
{"queries": [{"query": "...", "site": "<ats domain if any>", "location": "<if any>"}]}
""".strip()


def with_user_context(prompt: str, user_context: Optional[str], *, extra: str = "") -> str:
    """Append an optional mode line and the candidate context to ``prompt``."""
    parts = [prompt]
    if extra:
        parts.append(extra)
    if user_context and user_context.strip():
        parts.append(
            "Candidate context (for relevance only; do not invent facts to match it):\n"
            + user_context.strip()
        )
    return "\n\n".join(parts)


def extraction_mode(exhaustive: bool) -> str:
    if exhaustive:
        return "Extraction mode: EXHAUSTIVE (capture every posting on the page)."
    return "Extraction mode: SELECTIVE (capture only clear, complete postings)."
