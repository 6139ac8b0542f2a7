"""
config.py - Configuration settings for the HelpDesk RAG engine
===============================================================

This file centralizes all configuration values. Every value can be
overridden with an environment variable (or a .env file in the project root).
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

# =============================================================================
# PATH CONFIGURATION
# =============================================================================

# Base directory (where this file lives)
BASE_DIR = Path(__file__).parent

# Knowledge base directory (scanned once at startup, non-recursive)
KNOWLEDGE_DIR = Path(os.getenv("KNOWLEDGE_DIR", str(BASE_DIR / "knowledge")))

# File names with a special meaning inside KNOWLEDGE_DIR
FAQ_FILENAME = os.getenv("FAQ_FILENAME", "faq.txt")
PERSONA_FILENAME = os.getenv("PERSONA_FILENAME", "persona.txt")
PERSONA_FILE = Path(os.getenv("PERSONA_FILE", str(KNOWLEDGE_DIR / PERSONA_FILENAME)))

# =============================================================================
# EMBEDDING CONFIGURATION
# =============================================================================

# "ollama" (local HTTP service) or "openai"
EMBEDDING_PROVIDER = os.getenv("EMBEDDING_PROVIDER", "ollama")

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "nomic-embed-text")
EMBEDDING_TIMEOUT_SECONDS = float(os.getenv("EMBEDDING_TIMEOUT_SECONDS", "30"))

# Max number of chunks embedded at the same time during startup
EMBED_CONCURRENCY = int(os.getenv("EMBED_CONCURRENCY", "4"))

# =============================================================================
# CHUNKING CONFIGURATION
# =============================================================================

SUPPORTED_EXTENSIONS = (".txt", ".md", ".pdf")

# Sections shorter than this (after whitespace collapse) are dropped
MIN_SECTION_CHARS = 50

# =============================================================================
# RETRIEVAL CONFIGURATION
# =============================================================================

# Number of chunks to retrieve for each query
TOP_K_RESULTS = int(os.getenv("TOP_K_RESULTS", "5"))

# Raw cosine similarity a chunk needs to be considered at all
MIN_SIMILARITY = float(os.getenv("MIN_SIMILARITY", "0.75"))

# Ranking bonus per domain keyword found in a chunk (ranking only, never filtering)
KEYWORD_BONUS = float(os.getenv("KEYWORD_BONUS", "0.1"))

DOMAIN_KEYWORDS = [
    kw.strip().lower()
    for kw in os.getenv(
        "DOMAIN_KEYWORDS",
        "password,account,balance,transfer,card,login,payment,statement",
    ).split(",")
    if kw.strip()
]

# =============================================================================
# INTENT CONFIGURATION
# =============================================================================

# Minimum cosine similarity for an intent match
INTENT_THRESHOLD = float(os.getenv("INTENT_THRESHOLD", "0.85"))

# Seed the built-in banking intents at startup
SEED_BANKING_INTENTS = os.getenv("SEED_BANKING_INTENTS", "true").lower() == "true"

# When false, intent answers skip the LLM and are only cleaned and segmented
INTENT_USE_GENERATION = os.getenv("INTENT_USE_GENERATION", "true").lower() == "true"

# =============================================================================
# LLM CONFIGURATION
# =============================================================================

# "ollama" or "openai"
GENERATION_PROVIDER = os.getenv("GENERATION_PROVIDER", "ollama")

LLM_MODEL = os.getenv("LLM_MODEL", "mistral")

# OpenAI API key - only needed when a provider is set to "openai"
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
OPENAI_LLM_MODEL = os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini")

# Decoding options
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "300"))
LLM_REPEAT_PENALTY = float(os.getenv("LLM_REPEAT_PENALTY", "1.5"))
LLM_TOP_K = int(os.getenv("LLM_TOP_K", "50"))
LLM_TOP_P = float(os.getenv("LLM_TOP_P", "0.9"))

# Mirostat sampling (0 disables it)
LLM_MIROSTAT = int(os.getenv("LLM_MIROSTAT", "2"))
LLM_MIROSTAT_TAU = float(os.getenv("LLM_MIROSTAT_TAU", "5.0"))
LLM_MIROSTAT_ETA = float(os.getenv("LLM_MIROSTAT_ETA", "0.1"))

# Ask the service for incremental (token-chunk) output
LLM_STREAM = os.getenv("LLM_STREAM", "false").lower() == "true"

# Upper bound for one generation call, in seconds
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "8"))

# "structured-bullets" or "terse-arrow"
RESPONSE_FORMAT = os.getenv("RESPONSE_FORMAT", "structured-bullets")

# Maximum conversation history turns to include in the prompt
MAX_HISTORY_TURNS = 3

# =============================================================================
# RESPONSE FORMATTING
# =============================================================================

# Lines per streamed message
MESSAGE_MAX_LINES = int(os.getenv("MESSAGE_MAX_LINES", "4"))

# Lines longer than this are wrapped at the next whitespace
WRAP_WIDTH = int(os.getenv("WRAP_WIDTH", "120"))

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
