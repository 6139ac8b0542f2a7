"""
rag/chat_engine.py
==================

Request-time pipeline of the HelpDesk RAG engine. Any frontend (FastAPI,
CLI, tests) calls into this module.

The pipeline:
1. Refuse to answer until the knowledge base is ready
2. Embed the question once
3. Intent lookup: a hit answers from the intent's canned answer
4. Otherwise vector search: hits answer from the retrieved passages
5. Otherwise open-ended generation with a "no match" placeholder
6. Return the answer as a list of short messages

Usage:
    from rag.chat_engine import ChatEngine

    engine = ChatEngine(knowledge_base, assembler, persona)
    messages = await engine.ask("How do I change my password?")
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence, Union

from config import INTENT_THRESHOLD, INTENT_USE_GENERATION, MIN_SIMILARITY, TOP_K_RESULTS
from core.errors import EmbeddingError
from core.knowledge_base import KnowledgeBase
from rag.assembler import AnswerAssembler
from rag.persona import PersonaConfig
from rag.prompts import NO_MATCH_CONTEXT, ConversationTurn, intent_context, retrieval_context

logger = logging.getLogger(__name__)

INITIALIZING_MESSAGE = "System initializing..."
QUESTION_REQUIRED_MESSAGE = "Error: Question required"


@dataclass
class Answer:
    """
    Messages for one question plus how they were produced.

    Attributes:
        messages: Display messages, in order
        route: "intent", "retrieval", "fallback", "initializing" or "invalid"
        intent: Matched intent name (intent route only)
        sources: Source files of the retrieved passages (retrieval route only)
    """
    messages: list[str]
    route: str
    intent: Optional[str] = None
    sources: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "\n\n".join(self.messages)


TurnLike = Union[ConversationTurn, dict]


def _normalize_history(conversation: Optional[Sequence[TurnLike]]) -> list[ConversationTurn]:
    if not conversation:
        return []
    return [t if isinstance(t, ConversationTurn) else ConversationTurn.from_dict(t) for t in conversation]


class ChatEngine:
    """
    Routes a question through intents, retrieval and open generation.

    Thresholds are explicit so tests and deployments can pin them.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        assembler: AnswerAssembler,
        persona: Optional[PersonaConfig] = None,
        intent_threshold: float = INTENT_THRESHOLD,
        min_score: float = MIN_SIMILARITY,
        top_k: int = TOP_K_RESULTS,
        intent_use_generation: bool = INTENT_USE_GENERATION,
    ):
        self.knowledge_base = knowledge_base
        self.assembler = assembler
        self.persona = persona or PersonaConfig()
        self.intent_threshold = intent_threshold
        self.min_score = min_score
        self.top_k = top_k
        self.intent_use_generation = intent_use_generation

    @property
    def ready(self) -> bool:
        return self.knowledge_base.ready

    async def answer(self, question: str, conversation: Optional[Sequence[TurnLike]] = None) -> Answer:
        """
        Main entry point: answer a question with routing details.

        Args:
            question: The user's question
            conversation: Optional prior turns as ConversationTurn or
                          {"role": ..., "message": ...} dicts

        Returns:
            Answer (always holds at least one message)
        """
        if not self.ready:
            return Answer(messages=[INITIALIZING_MESSAGE], route="initializing")

        question = (question or "").strip()
        if not question:
            return Answer(messages=[QUESTION_REQUIRED_MESSAGE], route="invalid")

        history = _normalize_history(conversation)

        try:
            query_vector = await self.knowledge_base.gateway.embed(question)
        except EmbeddingError as e:
            logger.error(f"Could not embed question, answering without context: {e}")
            messages = await self.assembler.assemble(self.persona, question, history, NO_MATCH_CONTEXT)
            return Answer(messages=messages, route="fallback")

        # Step 1: Intent-based response
        match = await self.knowledge_base.intent_index.detect_intent(
            question, threshold=self.intent_threshold, query_vector=query_vector
        )
        if match is not None:
            intent = self.knowledge_base.intent_index.get(match.name)
            logger.info(f"Intent '{match.name}' matched (score {match.score:.3f})")
            if self.intent_use_generation:
                messages = await self.assembler.assemble(self.persona, question, history, intent_context(intent))
            else:
                messages = self.assembler.assemble_canned(intent.answer)
            return Answer(messages=messages, route="intent", intent=match.name)

        # Step 2: Knowledge-base response
        hits = self.knowledge_base.vector_store.search(query_vector, k=self.top_k, min_score=self.min_score)
        if hits:
            logger.info(f"Retrieved {len(hits)} passage(s) for: {question[:80]}")
            messages = await self.assembler.assemble(self.persona, question, history, retrieval_context(hits))
            sources = tuple(dict.fromkeys(hit.chunk.source for hit in hits))
            return Answer(messages=messages, route="retrieval", sources=sources)

        # Step 3: Fallback response
        logger.info(f"No intent or passage matched: {question[:80]}")
        messages = await self.assembler.assemble(self.persona, question, history, NO_MATCH_CONTEXT)
        return Answer(messages=messages, route="fallback")

    async def ask(self, question: str, conversation: Optional[Sequence[TurnLike]] = None) -> list[str]:
        """Ordered message strings for a question."""
        return (await self.answer(question, conversation)).messages

    async def stream(
        self, question: str, conversation: Optional[Sequence[TurnLike]] = None
    ) -> AsyncIterator[str]:
        """Yield the answer's messages one at a time, for incremental delivery."""
        for message in await self.ask(question, conversation):
            yield message
