"""
rag/ingestion/knowledge_loader.py
=================================

Reads the knowledge base directory and turns every supported file into
retrievable chunks.

Features:
- .txt / .md read as UTF-8, .pdf extracted page by page with PyMuPDF (fitz)
- FAQ files (blank-line separated "Q: ... A: ..." paragraphs) become QA chunks
- Other files are segmented on inline Q/A patterns, or on headings and
  blank lines when there are none
- A file that fails to parse is logged and skipped; loading continues

Usage:
    from rag.ingestion import load_knowledge_base

    chunks = load_knowledge_base(Path("knowledge"))
"""

import logging
import re
from pathlib import Path
from typing import Iterable, Optional

import fitz  # PyMuPDF

from config import FAQ_FILENAME, MIN_SECTION_CHARS, PERSONA_FILENAME, SUPPORTED_EXTENSIONS
from core.errors import IngestionWarning
from core.vectorstore import Chunk, ChunkKind

logger = logging.getLogger(__name__)


# =============================================================================
# PATTERNS
# =============================================================================

# Blank line (possibly holding whitespace) between paragraphs
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

# Inline Q/A pair, running lazily up to the next line that starts with "Q:"
INLINE_QA_PATTERN = re.compile(r"\bQ:\s*.+?\s*\bA:\s*.+?(?=\nQ:|\Z)", re.IGNORECASE | re.DOTALL)

# Split before markdown headings or on blank lines
SECTION_SPLIT_PATTERN = re.compile(r"(?=\n#+ )|\n\s*\n")

FAQ_PAIR_PATTERN = re.compile(r"\bQ:\s*(?P<question>.*?)\s*\bA:\s*(?P<answer>.*)", re.DOTALL)
QUESTION_MARKER = re.compile(r"\bQ:")


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


# =============================================================================
# TEXT EXTRACTION
# =============================================================================

def extract_pdf_text(pdf_path: Path) -> str:
    """
    Extract text page-by-page using PyMuPDF, in page order.

    Pages are joined with a blank line so page breaks act as section breaks.
    """
    with fitz.open(str(pdf_path)) as doc:
        pages = [page.get_text("text") for page in doc]
    return "\n\n".join(pages)


def extract_text(path: Path) -> str:
    """Raw text of a supported file."""
    if path.suffix.lower() == ".pdf":
        return extract_pdf_text(path)
    return path.read_text(encoding="utf-8")


# =============================================================================
# SEGMENTATION
# =============================================================================

def _has_qa_markers(paragraph: str) -> bool:
    return FAQ_PAIR_PATTERN.search(paragraph) is not None


def _is_single_pair(paragraph: str) -> bool:
    return len(QUESTION_MARKER.findall(paragraph)) == 1 and _has_qa_markers(paragraph)


def is_faq_text(text: str) -> bool:
    """True when every non-empty paragraph holds exactly one Q:/A: pair."""
    paragraphs = [p for p in PARAGRAPH_BREAK.split(text) if p.strip()]
    return bool(paragraphs) and all(_is_single_pair(p) for p in paragraphs)


def parse_faq(text: str, source: str) -> list[Chunk]:
    """
    Parse an FAQ file into QA chunks, one per "Q: ... A: ..." paragraph.

    Paragraphs missing either marker are skipped.
    """
    chunks = []
    for paragraph in PARAGRAPH_BREAK.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue

        match = FAQ_PAIR_PATTERN.search(paragraph)
        if not match:
            logger.debug(f"{source}: skipping paragraph without Q:/A: markers")
            continue

        question = _collapse_whitespace(match.group("question"))
        answer = _collapse_whitespace(match.group("answer"))
        if not question or not answer:
            continue

        chunks.append(Chunk(
            content=f"Question: {question}\nAnswer: {answer}",
            source=source,
            kind=ChunkKind.QA,
            question=question,
            answer=answer,
        ))
    return chunks


def split_text(text: str, min_chars: int = MIN_SECTION_CHARS) -> list[str]:
    """
    Segment free-form text into passages.

    1. Inline "Q: ... A: ..." patterns, if any are found
    2. Otherwise headings / blank-line sections of at least min_chars
    """
    segments = [_collapse_whitespace(m.group(0)) for m in INLINE_QA_PATTERN.finditer(text)]
    if segments:
        return [s for s in segments if s]

    for section in SECTION_SPLIT_PATTERN.split(text):
        if not section:
            continue
        clean = _collapse_whitespace(section)
        if len(clean) >= min_chars:
            segments.append(clean)
    return segments


# =============================================================================
# FILE / DIRECTORY LOADING
# =============================================================================

def load_file(path: Path, faq_filename: str = FAQ_FILENAME) -> list[Chunk]:
    """
    Load one knowledge file into chunks.

    Returns an empty list for unsupported extensions.

    Raises:
        IngestionWarning: If the file cannot be read or parsed
    """
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        return []

    try:
        text = extract_text(path)
    except Exception as e:
        # PyMuPDF raises its own RuntimeError subclasses for broken documents
        raise IngestionWarning(path.name, str(e) or type(e).__name__) from e

    is_pdf = path.suffix.lower() == ".pdf"
    if not is_pdf and (path.name == faq_filename or is_faq_text(text)):
        return parse_faq(text, source=path.name)

    return [Chunk(content=segment, source=path.name) for segment in split_text(text)]


class KnowledgeLoader:
    """
    Scans a knowledge directory (non-recursive) and collects chunks.

    Files are visited in name order so the output is reproducible.
    Per-file failures are kept in `self.warnings`.
    """

    def __init__(
        self,
        faq_filename: str = FAQ_FILENAME,
        exclude: Optional[Iterable[str]] = None,
    ):
        self.faq_filename = faq_filename
        self.exclude = set(exclude if exclude is not None else [PERSONA_FILENAME])
        self.warnings: list[IngestionWarning] = []

    def iter_files(self, directory: Path) -> list[Path]:
        """
        Supported files in the directory, sorted by name.

        Raises:
            FileNotFoundError: If the directory does not exist
            NotADirectoryError: If the path is not a directory
        """
        directory = Path(directory)
        if not directory.exists():
            raise FileNotFoundError(f"Knowledge directory not found: {directory}")
        if not directory.is_dir():
            raise NotADirectoryError(f"Knowledge path is not a directory: {directory}")

        return [
            path for path in sorted(directory.iterdir(), key=lambda p: p.name)
            if path.is_file()
            and path.suffix.lower() in SUPPORTED_EXTENSIONS
            and path.name not in self.exclude
        ]

    def load(self, directory: Path) -> list[Chunk]:
        files = self.iter_files(directory)
        logger.info(f"Found {len(files)} knowledge file(s) in {directory}")

        all_chunks = []
        for path in files:
            try:
                chunks = load_file(path, faq_filename=self.faq_filename)
            except IngestionWarning as warning:
                self.warnings.append(warning)
                logger.warning(f"Skipping {warning.source}: {warning.reason}")
                continue

            logger.info(f"{path.name}: {len(chunks)} chunk(s)")
            all_chunks.extend(chunks)

        logger.info(f"Total chunks: {len(all_chunks)}")
        return all_chunks


def load_knowledge_base(directory: Path, exclude: Optional[Iterable[str]] = None) -> list[Chunk]:
    """
    Load every supported file in `directory` into chunks.

    Args:
        directory: Knowledge base directory
        exclude: File names to ignore (defaults to the persona file)

    Returns:
        Chunks in file order, then in-file order
    """
    return KnowledgeLoader(exclude=exclude).load(directory)
