import re
from typing import List

from .models import Chunk

CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
MIN_CHUNK_LENGTH = 50

_CARRIAGE_RETURNS = re.compile(r"\r\n?")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SPACE_RUNS = re.compile(r"[ \t]+")
_LINE_EDGES = re.compile(r" ?\n ?")
_NEWLINE_RUNS = re.compile(r"\n{3,}")
_WHITESPACE = re.compile(r"\s+")


def sanitize_text(text: str) -> str:
    """Strip control characters and collapse runs of spaces and blank lines."""
    text = _CONTROL_CHARS.sub("", _CARRIAGE_RETURNS.sub("\n", text))
    text = _SPACE_RUNS.sub(" ", text)
    text = _LINE_EDGES.sub("\n", text)
    text = _NEWLINE_RUNS.sub("\n\n", text)
    return text.strip()


def count_alpha(text: str) -> int:
    return sum(1 for ch in text if ch.isalpha())


def chunk_text(
    text: str,
    source_label: str = "",
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> List[Chunk]:
    """
    Sliding window chunker.

    Windows of ``chunk_size`` characters start every ``chunk_size - overlap``
    characters. Every window except the last is cut back to its last period
    or newline when that boundary lies past the window's midpoint. Chunks of
    ``MIN_CHUNK_LENGTH`` characters or fewer are dropped, and indices are
    assigned only to the chunks that survive.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")

    text = _WHITESPACE.sub(" ", text).strip()
    text_len = len(text)
    step = chunk_size - overlap

    chunks: List[Chunk] = []
    for start in range(0, text_len, step):
        piece = text[start:start + chunk_size].strip()

        if start + chunk_size < text_len:
            boundary = max(piece.rfind("."), piece.rfind("\n"))
            if boundary > chunk_size / 2:
                piece = piece[:boundary + 1].strip()

        piece = sanitize_text(piece)
        if len(piece) > MIN_CHUNK_LENGTH:
            chunks.append(Chunk(content=piece, index=len(chunks), source_label=source_label))
    return chunks
