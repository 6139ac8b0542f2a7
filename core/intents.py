"""
core/intents.py - Intent Index
==============================

Named intents, each represented by the centroid (element-wise mean) of the
embeddings of a few example phrases, mapped to a canned answer.

FAQ pairs from the knowledge base are registered as single-example intents,
and a small set of banking intents is seeded at startup.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from config import INTENT_THRESHOLD
from core.embeddings import EmbeddingGateway
from core.errors import EmbeddingError, InvalidIntentError
from core.similarity import centroid, cosine_similarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Intent:
    name: str
    embedding: list[float]
    answer: str


@dataclass(frozen=True)
class IntentMatch:
    name: str
    score: float


# name -> (example phrases, canned answer)
BANKING_INTENTS = {
    "password_change": (
        [
            "how do I change my password",
            "reset my password",
            "I forgot my password",
            "update my login password",
        ],
        "To change your password, open the app and go to Settings > Security > Change Password. "
        "Enter your current password, then choose a new one with at least 8 characters.",
    ),
    "balance_check": (
        [
            "what is my account balance",
            "check my balance",
            "how much money do I have",
            "show my available balance",
        ],
        "Your current balance is shown on the Accounts screen of the app. "
        "You can also check it at any ATM or by calling customer service.",
    ),
    "transfer": (
        [
            "how do I transfer money",
            "send money to another account",
            "make a bank transfer",
            "wire money to someone",
        ],
        "To make a transfer, go to Payments > Transfer, choose the source account, "
        "enter the recipient details and amount, then confirm with your PIN.",
    ),
    "card_services": (
        [
            "block my card",
            "my card was lost or stolen",
            "order a new debit card",
            "activate my credit card",
        ],
        "Manage your cards under Cards in the app. You can freeze a lost card instantly, "
        "order a replacement, or activate a new card there.",
    ),
}


def faq_intent_name(question: str) -> str:
    """
    Deterministic intent name for an FAQ question.

    Example:
        >>> faq_intent_name("What is X?")
        'faq_what_is_x'
    """
    slug = re.sub(r"\W+", "_", question.lower()).strip("_")
    return f"faq_{slug}"


class IntentIndex:
    """
    Map of intent name -> Intent with a "closest intent above threshold" lookup.

    Usage:
        index = IntentIndex(gateway)
        await index.register_intent("greeting", ["hi", "hello"], "Hello!")
        match = await index.detect_intent("hey there", threshold=0.8)
    """

    def __init__(self, gateway: EmbeddingGateway):
        self.gateway = gateway
        self._intents: dict[str, Intent] = {}

    def __len__(self) -> int:
        return len(self._intents)

    def __contains__(self, name: str) -> bool:
        return name in self._intents

    def get(self, name: str) -> Optional[Intent]:
        return self._intents.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._intents)

    async def register_intent(self, name: str, examples: Sequence[str], answer: str) -> Intent:
        """
        Embed the example phrases and store their centroid under `name`.

        Registering an existing name replaces it.

        Raises:
            InvalidIntentError: If no examples are given
            EmbeddingError: If any example cannot be embedded
        """
        if not examples:
            raise InvalidIntentError(f"Intent '{name}' needs at least one example phrase")

        embeddings = await asyncio.gather(*(self.gateway.embed(example) for example in examples))
        intent = Intent(name=name, embedding=centroid(embeddings), answer=answer)
        self._intents[name] = intent
        logger.debug(f"Registered intent '{name}' from {len(examples)} example(s)")
        return intent

    async def register_faq_intent(self, question: str, answer: str) -> Intent:
        """Register an FAQ pair as a single-example intent."""
        return await self.register_intent(faq_intent_name(question), [question], answer)

    def match_vector(self, query_vector: Sequence[float], threshold: float = INTENT_THRESHOLD) -> Optional[IntentMatch]:
        """Best intent for an already-embedded query, or None below threshold."""
        best: Optional[IntentMatch] = None
        for name, intent in self._intents.items():
            score = cosine_similarity(query_vector, intent.embedding)
            # Strict improvement only: the first registered intent wins ties
            if best is None or score > best.score:
                best = IntentMatch(name=name, score=score)

        if best is not None and best.score >= threshold:
            return best
        return None

    async def detect_intent(
        self,
        query: str,
        threshold: float = INTENT_THRESHOLD,
        query_vector: Optional[Sequence[float]] = None,
    ) -> Optional[IntentMatch]:
        """
        Find the registered intent closest to the query.

        Args:
            query: User question
            threshold: Minimum cosine similarity for a match
            query_vector: Precomputed embedding of `query` (skips the embedding call)

        Returns:
            IntentMatch with the highest score if it reaches the threshold, else None
        """
        if query_vector is None:
            query_vector = await self.gateway.embed(query)
        return self.match_vector(query_vector, threshold)


async def seed_banking_intents(index: IntentIndex) -> int:
    """
    Register the built-in banking intents.

    An intent whose examples cannot be embedded is logged and skipped.

    Returns:
        Number of intents registered
    """
    registered = 0
    for name, (examples, answer) in BANKING_INTENTS.items():
        try:
            await index.register_intent(name, examples, answer)
            registered += 1
        except EmbeddingError as e:
            logger.error(f"Could not seed intent '{name}': {e}")
    return registered
