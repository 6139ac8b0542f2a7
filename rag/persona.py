"""
rag/persona.py
==============

Persona definition for the assistant, read once at startup.

File format (unrecognized lines are ignored):

    name: Ava
    style: friendly banking support agent
    introduction: I help with your accounts and cards.
    services:
    - Account questions
    - Card services
    responseGuidelines:
    - Keep answers short
    - Give steps as a numbered list
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from config import PERSONA_FILE

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Default Assistant"
DEFAULT_STYLE = "Helpful technical support"
DEFAULT_GUIDELINES = ("Provide clear, concise answers",)

LIST_KEYS = {"services": "services", "responseguidelines": "response_guidelines"}
SCALAR_KEYS = {"name", "style", "introduction"}


@dataclass
class PersonaConfig:
    name: str = DEFAULT_NAME
    style: str = DEFAULT_STYLE
    introduction: str = ""
    services: list[str] = field(default_factory=list)
    response_guidelines: list[str] = field(default_factory=lambda: list(DEFAULT_GUIDELINES))

    def __post_init__(self):
        # Name, style and guidelines are never empty
        self.name = self.name or DEFAULT_NAME
        self.style = self.style or DEFAULT_STYLE
        self.response_guidelines = [g for g in self.response_guidelines if g] or list(DEFAULT_GUIDELINES)


def parse_persona(text: str) -> PersonaConfig:
    """Parse the key: value / list persona format."""
    values: dict = {}
    current_list: Optional[str] = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith("- "):
            if current_list:
                values[current_list].append(line[2:].strip())
            continue

        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()

        if key in LIST_KEYS:
            current_list = LIST_KEYS[key]
            values[current_list] = [value] if value else []
        elif key in SCALAR_KEYS:
            current_list = None
            values[key] = value

    return PersonaConfig(**values)


def load_persona(path: Path = PERSONA_FILE) -> PersonaConfig:
    """
    Load the persona file, falling back to built-in defaults when the file
    is missing or cannot be parsed.
    """
    try:
        persona = parse_persona(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Error loading persona config from {path}: {e}. Using defaults.")
        return PersonaConfig()

    logger.info(f"Loaded personality: {persona.name}")
    return persona
