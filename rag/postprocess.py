"""
rag/postprocess.py
==================

Cleanup of raw model output, and segmentation into display messages.

Cleanup is an ordered pipeline of pure string transforms (POSTPROCESS_STEPS).
The order matters: bullets are normalized before list spacing is fixed, and
blank lines are collapsed before long lines are wrapped.
"""

import re
from functools import reduce
from typing import Callable, Sequence

from config import MESSAGE_MAX_LINES, WRAP_WIDTH

BULLET = "•"

EMPTY_RESPONSE_MESSAGE = "Sorry, I couldn't put together an answer for that. Could you rephrase the question?"


# =============================================================================
# PATTERNS
# =============================================================================

INSTRUCTION_WRAPPER = re.compile(r"\[INST\].*?\[/INST\]", re.DOTALL)
CHAT_MARKERS = re.compile(r"<\|im_(?:start|end)\|>(?:system|user|assistant)?|\[/?INST\]")

GREETING_LINE = re.compile(
    r"^[ \t]*(?:hello|hi|hey|greetings|good\s+(?:morning|afternoon|evening)"
    r"|it\s+seems\s+like|it\s+looks\s+like)\b[^\n]*(?:\n|\Z)",
    re.IGNORECASE | re.MULTILINE,
)

# Emoji blocks, misc symbols and dingbats. Arrow bullets (U+27A2..U+27A4) are kept
# for normalize_bullets.
PICTOGRAPHS = re.compile("[\U0001F000-\U0001FAFF\u2600-\u26FF\u2700-\u27A1\u27A5-\u27BF\uFE0F\u200D]")

MARKDOWN_EMPHASIS = re.compile(r"(\*\*|__)(.+?)\1")
MARKDOWN_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]+", re.MULTILINE)

# "-" and "*" only count as bullets when followed by a space
LINE_BULLET = re.compile(r"^[ \t]*(?:[*\-](?=[ \t])|[•➢➣➤▪●◦‣])[ \t]*", re.MULTILINE)
INLINE_BULLET = re.compile(r"(?<=\S)[ \t]+•[ \t]*")

LIST_ITEM = re.compile(r"^\s*(?:•|\d+[.)])\s")


# =============================================================================
# PIPELINE STEPS
# =============================================================================

def strip_instruction_wrapper(text: str) -> str:
    """Remove an echoed [INST] ... [/INST] block and stray chat-template markers."""
    text = INSTRUCTION_WRAPPER.sub("", text)
    return CHAT_MARKERS.sub("", text).strip()


def strip_greetings(text: str) -> str:
    """Delete lines opening with a greeting or a hedge ("It seems like ...")."""
    return GREETING_LINE.sub("", text)


def strip_pictographs(text: str) -> str:
    return PICTOGRAPHS.sub("", text)


def strip_markdown(text: str) -> str:
    """Drop bold/underline markers and heading hashes."""
    text = MARKDOWN_EMPHASIS.sub(r"\2", text)
    return MARKDOWN_HEADING.sub("", text)


def normalize_bullets(text: str) -> str:
    """Every bullet becomes "• " at the start of its own line."""
    text = LINE_BULLET.sub(f"{BULLET} ", text)
    return INLINE_BULLET.sub(f"\n{BULLET} ", text)


def normalize_list_spacing(text: str) -> str:
    """
    No blank lines between consecutive list items, and exactly one blank
    line between the end of a list and the text that follows it.
    """
    lines = text.split("\n")
    result: list[str] = []

    for i, line in enumerate(lines):
        after_item = bool(result) and LIST_ITEM.match(result[-1]) is not None

        if not line.strip():
            next_line = next((l for l in lines[i + 1:] if l.strip()), None)
            if after_item and next_line is not None and LIST_ITEM.match(next_line):
                continue
            result.append(line)
            continue

        if after_item and not LIST_ITEM.match(line):
            result.append("")
        result.append(line)

    return "\n".join(result)


def collapse_blank_lines(text: str) -> str:
    """Trailing spaces removed; 3+ newlines become one blank line."""
    text = re.sub(r"[ \t]+\n", "\n", text)
    return re.sub(r"\n{3,}", "\n\n", text)


def wrap_long_lines(text: str, width: int = WRAP_WIDTH) -> str:
    """Break a line at the first whitespace after `width` characters."""
    return re.sub(rf"([^\n]{{{width},}}?)[ \t]+", r"\1\n", text)


def trim(text: str) -> str:
    return text.strip()


POSTPROCESS_STEPS: tuple[Callable[[str], str], ...] = (
    strip_instruction_wrapper,
    strip_greetings,
    strip_pictographs,
    strip_markdown,
    normalize_bullets,
    normalize_list_spacing,
    collapse_blank_lines,
    wrap_long_lines,
    trim,
)


def clean_response(text: str, steps: Sequence[Callable[[str], str]] = POSTPROCESS_STEPS) -> str:
    """Run raw model output through the cleanup pipeline, in order."""
    return reduce(lambda acc, step: step(acc), steps, text or "")


# =============================================================================
# SEGMENTATION
# =============================================================================

def split_into_messages(
    text: str,
    max_lines: int = MESSAGE_MAX_LINES,
    fallback: str = EMPTY_RESPONSE_MESSAGE,
) -> list[str]:
    """
    Group cleaned text into messages of at most `max_lines` lines.

    Example:
        10 lines with max_lines=4 -> 3 messages of 4, 4 and 2 lines

    Returns:
        Messages in original line order; [fallback] if the text is empty
    """
    if max_lines < 1:
        raise ValueError("max_lines must be at least 1")

    if not text or not text.strip():
        return [fallback]

    lines = text.split("\n")
    messages = []
    for start in range(0, len(lines), max_lines):
        message = "\n".join(lines[start:start + max_lines]).strip("\n")
        if message.strip():
            messages.append(message)

    return messages or [fallback]
