"""
Text embedders.

Embeddings place postings and the candidate context in one vector space
so the index can shortlist postings before the (expensive) rerank.  An
embedder must be deterministic enough that the same text yields directly
comparable vectors on every call.

``OpenAIEmbedder`` and ``GeminiEmbedder`` call hosted models.
``HashingEmbedder`` hashes tokens into a fixed-size vector; it needs no
network and is used for offline runs and tests.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from abc import ABC, abstractmethod
from numbers import Real
from typing import List, Optional

import numpy as np

from ..config import require_env
from ..errors import ConfigurationError
from ..retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_EMBEDDING_MODEL = "text-embedding-3-large"
DEFAULT_GEMINI_EMBEDDING_MODEL = "models/gemini-embedding-001"


class Embedder(ABC):
    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        raise NotImplementedError


def _validate_vector(values, source: str) -> List[float]:
    if not isinstance(values, (list, tuple)) or not values:
        raise ValueError(f"{source}: missing embedding array")
    for x in values:
        if isinstance(x, bool) or not isinstance(x, Real):
            raise ValueError(f"{source}: non-number in embedding")
    return [float(x) for x in values]


class OpenAIEmbedder(Embedder):
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        dimensions: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        try:
            import openai  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "openai package is required for OpenAIEmbedder. Install it via pip."
            ) from exc
        self.api_key = api_key or require_env("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_EMBEDDING_MODEL") or DEFAULT_OPENAI_EMBEDDING_MODEL
        env_dims = os.getenv("OPENAI_EMBEDDING_DIMENSIONS")
        if dimensions is None and env_dims:
            try:
                dimensions = int(env_dims)
            except ValueError as exc:
                raise ConfigurationError(f"OPENAI_EMBEDDING_DIMENSIONS must be an integer, got {env_dims!r}") from exc
        self.dimensions = dimensions
        self.retry_policy = retry_policy or RetryPolicy()
        self.client = openai.AsyncOpenAI(api_key=self.api_key)

    async def _create(self, text: str) -> List[float]:
        kwargs = {"model": self.model, "input": text}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        res = await self.client.embeddings.create(**kwargs)
        item = res.data[0] if res.data else None
        return _validate_vector(getattr(item, "embedding", None), "OpenAI embeddings")

    async def embed(self, text: str) -> List[float]:
        return await with_retry(lambda: self._create(text), self.retry_policy, label="openai_embed")


class GeminiEmbedder(Embedder):
    """Embeddings via ``google.generativeai.embed_content``.

    The SDK call is synchronous, so it runs in the default executor to
    keep the event loop free.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        task_type: str = "retrieval_document",
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        try:
            import google.generativeai as genai  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "google-generativeai package is required for GeminiEmbedder. Install it via pip."
            ) from exc
        self.genai = genai
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ConfigurationError("Missing required env var: GEMINI_API_KEY (or GOOGLE_API_KEY)")
        self.model = model or DEFAULT_GEMINI_EMBEDDING_MODEL
        self.task_type = task_type
        self.retry_policy = retry_policy or RetryPolicy()
        self.genai.configure(api_key=self.api_key)

    def _embed_sync(self, text: str) -> List[float]:
        res = self.genai.embed_content(model=self.model, content=text, task_type=self.task_type)
        return _validate_vector(res.get("embedding"), "Gemini embeddings")

    async def embed(self, text: str) -> List[float]:
        loop = asyncio.get_running_loop()
        return await with_retry(
            lambda: loop.run_in_executor(None, self._embed_sync, text),
            self.retry_policy,
            label="gemini_embed",
        )


class HashingEmbedder(Embedder):
    """Deterministic bag-of-tokens embedding.

    Each token is hashed to a float in ``[0, 1)`` which is rotated across
    every dimension; the sum is normalised to unit length.  Texts that
    share vocabulary end up close together, which is all the offline
    path needs.
    """

    def __init__(self, dim: int = 64) -> None:
        if dim <= 0:
            raise ValueError("dim must be positive")
        self.dim = dim
        self._multipliers = np.arange(1, dim + 1, dtype=float)

    def embed_sync(self, text: str) -> List[float]:
        vector = np.zeros(self.dim, dtype=float)
        for token in text.lower().split():
            h = hashlib.md5(token.encode("utf-8")).hexdigest()
            base = int(h[:8], 16) / 0xFFFFFFFF
            vector += (base * self._multipliers) % 1.0
        norm = float(np.linalg.norm(vector)) or 1.0
        return (vector / norm).tolist()

    async def embed(self, text: str) -> List[float]:
        return self.embed_sync(text)


def build_embedder(provider: str, model: Optional[str] = None, dimensions: Optional[int] = None,
                   retry_policy: Optional[RetryPolicy] = None) -> Embedder:
    if provider == "openai":
        return OpenAIEmbedder(model=model, dimensions=dimensions, retry_policy=retry_policy)
    if provider == "gemini":
        return GeminiEmbedder(model=model, retry_policy=retry_policy)
    if provider == "hashing":
        return HashingEmbedder(dim=dimensions or 64)
    raise ConfigurationError(f"Unknown embedding provider '{provider}'")
