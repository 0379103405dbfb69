from typing import List, Sequence

from .models import Chunk, ContextBundle, ScoredChunk, SourceRef

SUMMARY_MARKERS = ("summar", "overview", "what is this", "tell me about")

SUMMARY_POOL_LIMIT = 50
KEYWORD_POOL_LIMIT = 100
SUMMARY_TOP_K = 15
KEYWORD_TOP_K = 10
MAX_SOURCES = 5
EXCERPT_LENGTH = 200
MIN_KEYWORD_LENGTH = 3

CHUNK_SEPARATOR = "\n\n---\n\n"
NO_CONTEXT_MESSAGE = "No relevant content found in the documents."


def is_summary_request(query: str) -> bool:
    lowered = query.lower()
    return any(marker in lowered for marker in SUMMARY_MARKERS)


def pool_limit(query: str) -> int:
    """How many index-ordered candidate chunks to fetch for this query."""
    return SUMMARY_POOL_LIMIT if is_summary_request(query) else KEYWORD_POOL_LIMIT


def extract_keywords(query: str) -> List[str]:
    return [w for w in query.lower().split() if len(w) > MIN_KEYWORD_LENGTH]


def score_chunk(content: str, keywords: Sequence[str]) -> int:
    lowered = content.lower()
    return sum(lowered.count(keyword) for keyword in keywords)


def rank_chunks(query: str, chunks: Sequence[Chunk]) -> List[ScoredChunk]:
    """Score chunks against the query keywords, best first. Ties keep input order."""
    keywords = extract_keywords(query)
    scored = [ScoredChunk(chunk=c, score=score_chunk(c.content, keywords)) for c in chunks]
    # sorted() is stable, which keeps equal scores in pool order
    return sorted(scored, key=lambda s: s.score, reverse=True)


def select_chunks(query: str, chunks: Sequence[Chunk]) -> List[Chunk]:
    if is_summary_request(query):
        return list(chunks[:SUMMARY_TOP_K])

    ranked = rank_chunks(query, chunks[:KEYWORD_POOL_LIMIT])
    return [s.chunk for s in ranked[:KEYWORD_TOP_K]]


def build_context(chunks: Sequence[Chunk]) -> str:
    if not chunks:
        return NO_CONTEXT_MESSAGE
    return CHUNK_SEPARATOR.join(f"[From: {c.source_label}]\n{c.content}" for c in chunks)


def build_sources(chunks: Sequence[Chunk]) -> List[SourceRef]:
    return [
        SourceRef(
            document_name=c.source_label,
            chunk_index=c.index,
            content=c.content[:EXCERPT_LENGTH],
        )
        for c in chunks[:MAX_SOURCES]
    ]


def select(query: str, chunks: Sequence[Chunk]) -> ContextBundle:
    """
    Pick the chunks to hand to the LLM for one chat turn.

    Summary-style questions ("summarize", "overview", ...) take the first
    chunks in document order. Anything else is ranked by how often the
    query's longer words occur in each chunk. Never raises: an empty pool
    produces the placeholder context and no sources.
    """
    selected = select_chunks(query, list(chunks))
    return ContextBundle(
        chunks=selected,
        context=build_context(selected),
        sources=build_sources(selected),
    )
