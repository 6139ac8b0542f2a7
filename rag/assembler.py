"""
rag/assembler.py - Answer Assembler
===================================

Turns a question plus a context block into display-ready messages:

1. Build the prompt (persona, guidelines, context, transcript, question)
2. Run the generation call under a timeout, joining the streamed fragments
3. Clean the raw text (rag.postprocess pipeline)
4. Split it into messages of at most MESSAGE_MAX_LINES lines

Generation failures never reach the caller: an error becomes one apologetic
message, a timeout becomes the canned keyword answer for the question.
"""

import asyncio
import logging
from typing import Callable, Optional, Sequence

import httpx

from config import LLM_TIMEOUT_SECONDS, MESSAGE_MAX_LINES, RESPONSE_FORMAT
from core.errors import GenerationError
from rag.fallbacks import TIMEOUT_MESSAGE, keyword_fallback
from rag.generation import GenerationClient
from rag.persona import PersonaConfig
from rag.postprocess import POSTPROCESS_STEPS, clean_response, split_into_messages
from rag.prompts import NO_MATCH_CONTEXT, ConversationTurn, ResponseFormat, build_prompt

logger = logging.getLogger(__name__)

FALLBACK_TEMPLATE = "Let's try a different approach... ({detail})"


def fallback_message(detail: str) -> str:
    return FALLBACK_TEMPLATE.format(detail=detail)


class AnswerAssembler:
    """
    Drives the generation call and formats its output.

    Usage:
        assembler = AnswerAssembler(get_generation_client())
        messages = await assembler.assemble(persona, "How do I block my card?",
                                            context="System answer: ...")
    """

    def __init__(
        self,
        client: GenerationClient,
        response_format: ResponseFormat = ResponseFormat(RESPONSE_FORMAT),
        timeout: Optional[float] = LLM_TIMEOUT_SECONDS,
        max_lines: int = MESSAGE_MAX_LINES,
        steps: Sequence[Callable[[str], str]] = POSTPROCESS_STEPS,
    ):
        self.client = client
        self.response_format = ResponseFormat(response_format)
        self.timeout = timeout
        self.max_lines = max_lines
        self.steps = steps

    async def _collect(self, prompt: str) -> str:
        fragments = []
        async for fragment in self.client.generate(prompt):
            fragments.append(fragment)
        return "".join(fragments)

    async def generate_text(self, prompt: str) -> str:
        """
        Raw model output for a prompt.

        Raises:
            asyncio.TimeoutError: If the call exceeds the timeout (it is cancelled)
            GenerationError: If the service fails
        """
        if self.timeout is None:
            return await self._collect(prompt)
        return await asyncio.wait_for(self._collect(prompt), timeout=self.timeout)

    def finalize(self, raw_text: str) -> list[str]:
        """Clean raw text and split it into display messages."""
        return split_into_messages(clean_response(raw_text, self.steps), max_lines=self.max_lines)

    def assemble_canned(self, text: str) -> list[str]:
        """Format a canned answer without calling the generation service."""
        return self.finalize(text)

    def timeout_messages(self, query: str) -> list[str]:
        result = keyword_fallback(query)
        if result is None:
            return [fallback_message(TIMEOUT_MESSAGE)]
        logger.info(f"Using canned '{result.topic}' answer (matched '{result.matched_keyword}')")
        return split_into_messages(result.message, max_lines=self.max_lines)

    async def assemble(
        self,
        persona: PersonaConfig,
        query: str,
        history: Optional[Sequence[ConversationTurn]] = None,
        context: str = NO_MATCH_CONTEXT,
    ) -> list[str]:
        """
        Generate, clean and segment an answer.

        Args:
            persona: Assistant persona
            query: Current user question
            history: Prior conversation turns
            context: Canned intent answer, retrieved passages, or NO_MATCH_CONTEXT

        Returns:
            Ordered, non-empty list of message strings
        """
        prompt = build_prompt(persona, query, context, history=history, response_format=self.response_format)

        try:
            raw_text = await self.generate_text(prompt)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"Generation timed out after {self.timeout}s for query: {query[:80]}")
            return self.timeout_messages(query)
        except GenerationError as e:
            logger.error(f"Generation error: {e}")
            return [fallback_message(str(e))]
        except Exception as e:
            logger.exception("Unexpected generation failure")
            return [fallback_message(str(e) or type(e).__name__)]

        return self.finalize(raw_text)
