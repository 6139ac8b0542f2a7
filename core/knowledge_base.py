"""
core/knowledge_base.py - KnowledgeBase aggregate
================================================

Owns the vector store and the intent index for the lifetime of the process.

Startup pipeline:
1. Load chunks from the knowledge directory (fatal if the directory is unreadable)
2. Embed every chunk (bounded concurrency) and insert in loader order
3. Register QA chunks as FAQ intents, seed the banking intents
4. Mark the knowledge base ready

Request handlers must check `ready` before searching; both stores are only
read after that point.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence

from config import EMBED_CONCURRENCY, SEED_BANKING_INTENTS
from core.embeddings import EmbeddingGateway
from core.errors import EmbeddingError
from core.intents import IntentIndex, seed_banking_intents
from core.vectorstore import Chunk, VectorStore
from rag.ingestion import load_knowledge_base

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """
    Vector store + intent index + readiness flag.

    Usage:
        kb = KnowledgeBase(gateway)
        await kb.build(Path("knowledge"))
        if kb.ready:
            ...
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        vector_store: Optional[VectorStore] = None,
        intent_index: Optional[IntentIndex] = None,
    ):
        self.gateway = gateway
        self.vector_store = vector_store if vector_store is not None else VectorStore()
        self.intent_index = intent_index if intent_index is not None else IntentIndex(gateway)
        self.failed_chunks = 0
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        self._ready = True
        logger.info(
            f"Knowledge base ready: {len(self.vector_store)} chunk(s), "
            f"{len(self.intent_index)} intent(s)"
        )

    async def _embed_all(self, chunks: Sequence[Chunk], concurrency: int) -> list[Optional[list[float]]]:
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def embed_one(chunk: Chunk) -> Optional[list[float]]:
            async with semaphore:
                try:
                    return await self.gateway.embed(chunk.content)
                except EmbeddingError as e:
                    logger.error(f"Error embedding chunk from {chunk.source}: {e}")
                    return None

        # gather() keeps input order, so inserts follow loader order
        return await asyncio.gather(*(embed_one(chunk) for chunk in chunks))

    async def add_chunks(self, chunks: Sequence[Chunk], concurrency: int = EMBED_CONCURRENCY) -> int:
        """
        Embed and insert chunks; QA chunks are also registered as FAQ intents.

        Chunks that fail to embed are logged and skipped.

        Returns:
            Number of chunks inserted
        """
        vectors = await self._embed_all(chunks, concurrency)

        inserted = 0
        for chunk, vector in zip(chunks, vectors):
            if vector is None:
                self.failed_chunks += 1
                continue
            self.vector_store.insert(vector, chunk)
            inserted += 1

            if chunk.is_qa:
                try:
                    await self.intent_index.register_faq_intent(chunk.question, chunk.answer)
                except EmbeddingError as e:
                    logger.error(f"Error registering FAQ intent from {chunk.source}: {e}")

        return inserted

    async def build(
        self,
        directory: Path,
        seed_intents: bool = SEED_BANKING_INTENTS,
        concurrency: int = EMBED_CONCURRENCY,
        chunks: Optional[Sequence[Chunk]] = None,
    ) -> "KnowledgeBase":
        """
        Run the full startup pipeline and mark the knowledge base ready.

        Args:
            directory: Knowledge directory (ignored when `chunks` is given)
            seed_intents: Register the built-in banking intents
            concurrency: Max embedding calls in flight
            chunks: Pre-loaded chunks, to split file loading from embedding

        Raises:
            FileNotFoundError / NotADirectoryError: If the directory is unusable
        """
        if chunks is None:
            chunks = load_knowledge_base(directory)

        if seed_intents:
            seeded = await seed_banking_intents(self.intent_index)
            logger.info(f"Seeded {seeded} banking intent(s)")

        inserted = await self.add_chunks(chunks, concurrency=concurrency)
        if self.failed_chunks:
            logger.warning(f"{self.failed_chunks} chunk(s) could not be embedded and were skipped")
        logger.info(f"Vector store initialized with {inserted} document(s)")

        self.mark_ready()
        return self

    def stats(self) -> dict:
        """Counts for health checks."""
        chunks = self.vector_store.chunks
        return {
            "ready": self.ready,
            "total_chunks": len(chunks),
            "qa_chunks": sum(1 for c in chunks if c.is_qa),
            "content_chunks": sum(1 for c in chunks if not c.is_qa),
            "intents": len(self.intent_index),
            "sources": sorted({c.source for c in chunks}),
        }
