"""
rag/prompts.py
==============

Prompt construction for the answer assembler.

The response-format policy is chosen by configuration:
- structured-bullets: short paragraphs, "•" bullets and numbered steps
- terse-arrow: a single line of steps separated by "→"
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, TYPE_CHECKING

from config import MAX_HISTORY_TURNS

if TYPE_CHECKING:
    from core.intents import Intent
    from core.vectorstore import SearchHit
    from rag.persona import PersonaConfig


class ResponseFormat(str, Enum):
    TERSE_ARROW = "terse-arrow"
    STRUCTURED_BULLETS = "structured-bullets"


@dataclass(frozen=True)
class ConversationTurn:
    """One prior message of the conversation. Only used as prompt context."""
    role: str  # "user" or "assistant"
    message: str

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationTurn":
        # Accept the {role, content} shape as well as {role, message}
        message = data.get("message", data.get("content", ""))
        return cls(role=str(data.get("role", "user")).lower(), message=str(message))


# Placeholder context when neither an intent nor the vector store matched
NO_MATCH_CONTEXT = "I couldn't find a match, but here's what I think:"


# =============================================================================
# FORMAT RULES
# =============================================================================

STRUCTURED_BULLETS_RULES = """Create a helpful response that:
- STARTS DIRECTLY WITH THE ANSWER (no greetings)
- Uses ONLY these formatting elements:
  • Bullet points starting with "•"
  • Numbered lists when giving steps
  • Paragraph breaks with blank lines
- Keep paragraphs under 3 lines
- NEVER use markdown, emojis, or special formatting
- If using bullets/numbering:
  - Put each item on its own line
  - Leave a blank line after the list

Example GOOD format:
To resolve the issue:
• First do X
• Then perform Y
• Finally complete Z

For additional help:
1. Open settings
2. Navigate to section A
3. Enable option B"""

TERSE_ARROW_RULES = """Respond in ONE line only:
- STARTS DIRECTLY WITH THE ANSWER (no greetings, no explanations)
- At most 3 steps, each a short action of max 7 words
- Separate steps with " → "
- NEVER use markdown, emojis, bullets or line breaks

Example GOOD format:
Open Settings → Tap Security → Choose Change Password"""

FORMAT_RULES = {
    ResponseFormat.STRUCTURED_BULLETS: STRUCTURED_BULLETS_RULES,
    ResponseFormat.TERSE_ARROW: TERSE_ARROW_RULES,
}

PROMPT_TEMPLATE = """[INST] You are {name}, {style}.{profile}
Guidelines:
{guidelines}

Context Data:
{context}
{history}
User Question: {question}

{rules}
{context_hint}
[/INST]"""


# =============================================================================
# CONTEXT BUILDERS
# =============================================================================

def intent_context(intent: "Intent") -> str:
    """Context block for an intent hit: the canned answer."""
    return f"System answer: {intent.answer}"


def retrieval_context(hits: Sequence["SearchHit"]) -> str:
    """Context block for vector-store hits, each tagged with its source file."""
    return "\n\n".join(
        f"SOURCE {i} ({hit.chunk.source}):\n{hit.chunk.content}"
        for i, hit in enumerate(hits, 1)
    )


def format_profile(persona: "PersonaConfig") -> str:
    """Introduction and covered services, one line each (empty when unset)."""
    lines = []
    if persona.introduction:
        lines.append(persona.introduction)
    if persona.services:
        lines.append(f"Services you cover: {', '.join(persona.services)}")
    return "".join(f"\n{line}" for line in lines)


def format_guidelines(guidelines: Sequence[str]) -> str:
    lines = [f"{i}. {g}" for i, g in enumerate(guidelines, 1)]
    return "\n".join(lines) or "1. Provide the best possible answer"


def format_history(history: Optional[Sequence[ConversationTurn]], max_turns: int = MAX_HISTORY_TURNS) -> str:
    """Transcript of the most recent exchanges (user + assistant per turn)."""
    if not history:
        return ""
    recent = list(history)[-(max_turns * 2):]
    return "\n".join(f"{turn.role.upper()}: {turn.message}" for turn in recent)


def build_prompt(
    persona: "PersonaConfig",
    query: str,
    context: str,
    history: Optional[Sequence[ConversationTurn]] = None,
    response_format: ResponseFormat = ResponseFormat.STRUCTURED_BULLETS,
) -> str:
    """
    Wrap persona, context, transcript and question in the instruction template.

    Args:
        persona: Name, style, introduction, services and response guidelines
        query: Current user question
        context: Canned answer, retrieved passages or NO_MATCH_CONTEXT
        history: Prior conversation turns (optional)
        response_format: Output format policy

    Returns:
        The full prompt text
    """
    transcript = format_history(history)
    history_block = f"\nConversation so far:\n{transcript}\n" if transcript else ""

    return PROMPT_TEMPLATE.format(
        name=persona.name,
        style=persona.style,
        profile=format_profile(persona),
        guidelines=format_guidelines(persona.response_guidelines),
        context=context,
        history=history_block,
        question=query,
        rules=FORMAT_RULES[ResponseFormat(response_format)],
        context_hint="Use context where relevant" if context else "",
    )
