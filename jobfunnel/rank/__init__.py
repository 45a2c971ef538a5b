"""
Ranking: embed postings into a vector index, retrieve the nearest ones
to the candidate context, then rerank that shortlist with one LLM call.
"""

from .embed import Embedder, GeminiEmbedder, HashingEmbedder, OpenAIEmbedder  # noqa: F401
from .rerank import Reranker  # noqa: F401
from .vector_index import VectorIndex, job_stable_id, job_to_embedding_text  # noqa: F401
from .vector_store import InMemoryVectorStore, PineconeVectorStore, VectorStore  # noqa: F401
