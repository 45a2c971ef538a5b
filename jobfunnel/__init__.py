"""
jobfunnel: discover job postings on the open web and rank them for a
candidate.

The high-level flow is:

1. **collect** – Generate search queries from the candidate's profile,
   run them through a search backend, score every result URL with a
   language model and shortlist the pages worth scraping.
2. **normalize** – Fetch shortlisted pages as markdown, extract
   structured postings with the model, then canonicalize and
   deduplicate them against each other and against postings already in
   the job store.
3. **rank** – Embed the postings into a vector index, retrieve the ones
   nearest the candidate context and rerank that shortlist with a
   single model call.
4. **persist** – Upsert jobs and per-profile fit scores.
5. **orchestrator** – Runs the above as one state machine with bounded
   concurrency, retries and graceful degradation.
6. **cli** – Command line entry point wiring clients together.
"""

from importlib import metadata

try:
    __version__ = metadata.version("jobfunnel")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0"
