"""
Collection: turning a candidate context into pages worth reading.

1. **queries** – generate search dorks from the candidate context.
2. **search** – run each query through a search backend.
3. **url_scorer** – classify and score every result URL in batches.
4. **shortlist** – keep the URLs whose score clears the floor for their
   page kind, best first.
5. **scrape** – fetch each shortlisted page as markdown.
"""

from .queries import QueryGenerator, SearchQuery  # noqa: F401
from .search import BrightDataClient, DuckDuckGoSearchClient, SearchClient, SearchResult  # noqa: F401
from .shortlist import shortlist  # noqa: F401
from .url_scorer import UrlScorer  # noqa: F401
