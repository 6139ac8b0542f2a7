"""
core/vectorstore.py - In-memory Vector Store with Metadata
===========================================================

This module holds the knowledge chunks and their embeddings:
- Chunk: a unit of knowledge-base text with source/type metadata
- VectorStore: append-only (vector, chunk) entries with top-K search

Key Concepts:
- Embeddings: Dense vector representations of text (from core.embeddings)
- Cosine similarity: relevance score used for filtering (see core.similarity)
- Ranking score: similarity plus a small bonus per domain keyword present in
  the chunk. It only affects ordering, never the min_score filter.

The store is rebuilt at every startup; there is no persistence and no
update/delete operation.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

from config import DOMAIN_KEYWORDS, KEYWORD_BONUS, MIN_SIMILARITY, TOP_K_RESULTS
from core.similarity import cosine_similarity

logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

class ChunkKind(str, Enum):
    """Structured FAQ pair or free-form prose."""
    QA = "qa"
    CONTENT = "content"


@dataclass(frozen=True)
class Chunk:
    """
    Represents a chunk of knowledge-base text with its metadata.

    Attributes:
        content: The text that gets embedded and shown as context
        source: Name of the originating file
        kind: ChunkKind.QA for FAQ pairs, ChunkKind.CONTENT otherwise
        question: The FAQ question (QA chunks only)
        answer: The FAQ answer (QA chunks only)
    """
    content: str
    source: str
    kind: ChunkKind = ChunkKind.CONTENT
    question: Optional[str] = None
    answer: Optional[str] = None

    @property
    def is_qa(self) -> bool:
        return self.kind is ChunkKind.QA

    def __repr__(self):
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"Chunk(source={self.source}, kind={self.kind.value}, content='{preview}')"


@dataclass(frozen=True)
class SearchHit:
    """
    One search result.

    Attributes:
        chunk: The matching chunk
        score: Raw cosine similarity (used for the min_score filter)
        rank_score: score plus keyword bonus (used for ordering)
    """
    chunk: Chunk
    score: float
    rank_score: float


# =============================================================================
# VECTOR STORE
# =============================================================================

class VectorStore:
    """
    Append-only store of (embedding, chunk) pairs.

    Usage:
        store = VectorStore()
        store.insert(vector, chunk)
        hits = store.search(query_vector, k=5, min_score=0.75)
    """

    def __init__(
        self,
        keywords: Optional[Iterable[str]] = None,
        keyword_bonus: float = KEYWORD_BONUS,
    ):
        self._vectors: list[Sequence[float]] = []
        self._chunks: list[Chunk] = []
        self.keywords = [kw.lower() for kw in (DOMAIN_KEYWORDS if keywords is None else keywords)]
        self.keyword_bonus = keyword_bonus

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return tuple(self._chunks)

    def insert(self, vector: Sequence[float], chunk: Chunk) -> int:
        """
        Append a vector and its chunk. Dimensions are not validated.

        Returns:
            The insertion index of the new entry
        """
        self._vectors.append(vector)
        self._chunks.append(chunk)
        return len(self._chunks) - 1

    def keyword_score(self, chunk: Chunk) -> float:
        """Bonus for each configured keyword found in the chunk's lowercase content."""
        if not self.keywords or not self.keyword_bonus:
            return 0.0
        text = chunk.content.lower()
        return self.keyword_bonus * sum(1 for kw in self.keywords if kw in text)

    def search(
        self,
        query_vector: Sequence[float],
        k: int = TOP_K_RESULTS,
        min_score: float = MIN_SIMILARITY,
    ) -> list[SearchHit]:
        """
        Find the most similar chunks to a query vector.

        Entries whose raw similarity is below min_score are dropped. The rest
        are sorted by ranking score, highest first; ties keep insertion order.

        Args:
            query_vector: Embedding of the query
            k: Maximum number of results
            min_score: Minimum raw cosine similarity

        Returns:
            Up to k SearchHit objects (empty list if nothing qualifies)
        """
        if k <= 0:
            return []

        hits = []
        for vector, chunk in zip(self._vectors, self._chunks):
            score = cosine_similarity(query_vector, vector)
            if score < min_score:
                continue
            hits.append(SearchHit(chunk=chunk, score=score, rank_score=score + self.keyword_score(chunk)))

        # sorted() is stable, so equal ranking scores keep insertion order
        hits = sorted(hits, key=lambda hit: hit.rank_score, reverse=True)[:k]
        logger.debug(f"Vector search: {len(hits)} hit(s) above {min_score}")
        return hits
