"""
Vector store backends.

A store holds ``{id, values, metadata}`` records in named namespaces and
answers nearest-neighbour queries.  Upserting an existing id overwrites
it.  Query results are returned raw; :class:`~jobfunnel.rank.vector_index.VectorIndex`
validates them.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from ..config import require_env
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "jobs-v1"

Metadata = Dict[str, Any]


@dataclass
class VectorRecord:
    id: str
    values: List[float]
    metadata: Metadata = field(default_factory=dict)


class VectorStore(ABC):
    namespace: str = DEFAULT_NAMESPACE

    @abstractmethod
    async def upsert(self, records: List[VectorRecord]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def query(
        self, vector: List[float], top_k: int, metadata_filter: Optional[Metadata] = None
    ) -> List[Dict[str, Any]]:
        """Return up to ``top_k`` raw matches shaped like ``{"id", "score", "metadata"}``."""
        raise NotImplementedError


def _matches_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict):
        for op, expected in condition.items():
            if op == "$eq" and value != expected:
                return False
            if op == "$ne" and value == expected:
                return False
            if op == "$in" and value not in expected:
                return False
            if op == "$nin" and value in expected:
                return False
        return True
    return value == condition


def matches_filter(metadata: Metadata, metadata_filter: Optional[Metadata]) -> bool:
    """Evaluate the subset of Pinecone's filter language used by the funnel."""
    if not metadata_filter:
        return True
    return all(_matches_condition(metadata.get(k), cond) for k, cond in metadata_filter.items())


class InMemoryVectorStore(VectorStore):
    """Process-local store ranked by cosine similarity."""

    def __init__(self, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.namespace = namespace
        self._data: Dict[str, Dict[str, VectorRecord]] = {}

    def _space(self) -> Dict[str, VectorRecord]:
        return self._data.setdefault(self.namespace, {})

    def __len__(self) -> int:
        return len(self._data.get(self.namespace, {}))

    async def upsert(self, records: List[VectorRecord]) -> None:
        space = self._space()
        for record in records:
            space[record.id] = VectorRecord(record.id, list(record.values), dict(record.metadata))

    async def query(
        self, vector: List[float], top_k: int, metadata_filter: Optional[Metadata] = None
    ) -> List[Dict[str, Any]]:
        candidates = [r for r in self._space().values() if matches_filter(r.metadata, metadata_filter)]
        if not candidates or top_k <= 0:
            return []
        # Records of a different dimension cannot be compared
        candidates = [r for r in candidates if len(r.values) == len(vector)]
        if not candidates:
            return []
        matrix = np.array([r.values for r in candidates], dtype=float)
        scores = cosine_similarity(np.array([vector], dtype=float), matrix)[0]
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            {"id": candidates[i].id, "score": float(scores[i]), "metadata": dict(candidates[i].metadata)}
            for i in order
        ]


class PineconeVectorStore(VectorStore):
    """Pinecone-backed store.

    The Pinecone SDK is synchronous; calls run in the default executor.
    Pinecone rejects ``None`` metadata values, so they are dropped on
    upsert.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        index_name: Optional[str] = None,
        namespace: Optional[str] = None,
    ) -> None:
        try:
            from pinecone import Pinecone  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "pinecone package is required for PineconeVectorStore. Install jobfunnel[pinecone]."
            ) from exc
        self.api_key = api_key or require_env("PINECONE_API_KEY")
        self.index_name = index_name or require_env("PINECONE_INDEX")
        self.namespace = namespace or os.getenv("PINECONE_NAMESPACE") or DEFAULT_NAMESPACE
        self.index = Pinecone(api_key=self.api_key).Index(self.index_name)

    async def upsert(self, records: List[VectorRecord]) -> None:
        if not records:
            return
        payload = [
            {
                "id": r.id,
                "values": r.values,
                "metadata": {k: v for k, v in r.metadata.items() if v is not None},
            }
            for r in records
        ]
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, lambda: self.index.upsert(vectors=payload, namespace=self.namespace)
        )
        logger.debug("Upserted %d vectors to %s/%s", len(payload), self.index_name, self.namespace)

    async def query(
        self, vector: List[float], top_k: int, metadata_filter: Optional[Metadata] = None
    ) -> List[Dict[str, Any]]:
        loop = asyncio.get_running_loop()
        res = await loop.run_in_executor(
            None,
            lambda: self.index.query(
                vector=vector,
                top_k=top_k,
                include_metadata=True,
                namespace=self.namespace,
                filter=metadata_filter or None,
            ),
        )
        matches = getattr(res, "matches", None)
        if matches is None and isinstance(res, dict):
            matches = res.get("matches")
        out: List[Dict[str, Any]] = []
        for m in matches or []:
            if isinstance(m, dict):
                out.append(m)
            else:
                out.append({"id": getattr(m, "id", None), "score": getattr(m, "score", None),
                            "metadata": getattr(m, "metadata", None)})
        return out


def build_vector_store(backend: str, index_name: Optional[str] = None, namespace: str = DEFAULT_NAMESPACE) -> VectorStore:
    if backend == "pinecone":
        return PineconeVectorStore(index_name=index_name, namespace=namespace)
    if backend == "memory":
        return InMemoryVectorStore(namespace=namespace)
    raise ConfigurationError(f"Unknown vector store backend '{backend}'")
