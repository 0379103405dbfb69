from docchat.models import Chunk
from docchat.retrieval import (
    NO_CONTEXT_MESSAGE,
    build_context,
    extract_keywords,
    is_summary_request,
    pool_limit,
    rank_chunks,
    score_chunk,
    select,
)


def make_chunks(contents, label="report.pdf"):
    return [Chunk(content=c, index=i, source_label=label) for i, c in enumerate(contents)]


# ---------------------- Mode detection ---------------------- #

def test_summary_markers():
    assert is_summary_request("Summarize this document")
    assert is_summary_request("Give me an OVERVIEW")
    assert is_summary_request("what is this file?")
    assert is_summary_request("Tell me about the contract")
    assert not is_summary_request("What is the penalty clause")


def test_pool_limit_by_mode():
    assert pool_limit("Summarize") == 50
    assert pool_limit("Where is the invoice address") == 100


# ---------------------- Keyword scoring ---------------------- #

def test_keywords_drop_short_tokens():
    assert extract_keywords("What is the penalty clause") == ["what", "penalty", "clause"]
    assert extract_keywords("") == []


def test_score_counts_non_overlapping_occurrences():
    assert score_chunk("aaaa", ["aa"]) == 2
    assert score_chunk("Penalty, PENALTY and a clause", ["penalty", "clause"]) == 3
    assert score_chunk("nothing relevant", ["penalty"]) == 0


def test_penalty_chunk_outranks_unrelated_chunk():
    chunks = make_chunks([
        "Delivery happens on the first business day of each month.",
        "The penalty is due on late delivery; a second penalty applies under this clause.",
    ])
    ranked = rank_chunks("What is the penalty clause", chunks)
    assert ranked[0].chunk.index == 1
    assert ranked[0].score == 3
    assert ranked[1].score == 0


def test_ties_keep_pool_order():
    chunks = make_chunks([f"Unrelated paragraph number {i} without hits." for i in range(20)])
    bundle = select("penalty clause", chunks)
    assert [c.index for c in bundle.chunks] == list(range(10))


def test_keyword_selection_is_deterministic():
    contents = [f"Section {i} mentions invoice {'invoice ' * (i % 3)}terms." for i in range(30)]
    chunks = make_chunks(contents)
    first = select("invoice terms please", chunks)
    second = select("invoice terms please", chunks)
    assert [c.index for c in first.chunks] == [c.index for c in second.chunks]
    assert first.context == second.context


def test_keyword_mode_takes_top_ten_from_first_hundred():
    contents = ["filler text with no match at all"] * 100 + ["penalty penalty penalty"]
    chunks = make_chunks(contents)
    bundle = select("penalty", chunks)
    assert len(bundle.chunks) == 10
    # the only match sits past the candidate pool
    assert all(c.index < 100 for c in bundle.chunks)


# ---------------------- Summary mode ---------------------- #

def test_summary_takes_first_fifteen_in_order():
    contents = [f"Chunk {i} text" for i in range(40)]
    contents[30] = "summarize summarize summarize"
    bundle = select("Summarize this document", make_chunks(contents))
    assert [c.index for c in bundle.chunks] == list(range(15))


def test_summary_with_small_pool():
    bundle = select("overview please", make_chunks(["only one chunk here"]))
    assert len(bundle.chunks) == 1


# ---------------------- Context assembly ---------------------- #

def test_context_format():
    chunks = [
        Chunk(content="First part.", index=0, source_label="a.txt"),
        Chunk(content="Second part.", index=3, source_label="b.pdf"),
    ]
    assert build_context(chunks) == (
        "[From: a.txt]\nFirst part.\n\n---\n\n[From: b.pdf]\nSecond part."
    )


def test_empty_pool_gives_placeholder():
    bundle = select("anything at all", [])
    assert bundle.context == NO_CONTEXT_MESSAGE
    assert bundle.sources == []
    assert bundle.chunks == []


def test_empty_query():
    bundle = select("", make_chunks(["some content"] * 3))
    assert len(bundle.chunks) == 3


def test_sources_are_first_five_with_excerpts():
    chunks = make_chunks(["x" * 500 for _ in range(12)], label="long.txt")
    bundle = select("tell me about it", chunks)
    assert len(bundle.sources) == 5
    assert [s.chunk_index for s in bundle.sources] == [0, 1, 2, 3, 4]
    assert all(len(s.content) == 200 for s in bundle.sources)
    assert bundle.sources[0].to_dict() == {
        "documentName": "long.txt",
        "chunkIndex": 0,
        "content": "x" * 200,
    }
