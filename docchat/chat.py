import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import openai

from .models import SourceRef

log = logging.getLogger(__name__)

HISTORY_MESSAGES = 6
DONE_MARKER = "[DONE]"

SYSTEM_PROMPT = """You are a helpful AI assistant that answers questions based ONLY on the provided document context.

IMPORTANT RULES:
1. Only use information from the provided context to answer questions
2. If the answer is not in the context, clearly say "I couldn't find this information in the uploaded documents"
3. Be precise and cite which document the information comes from when possible
4. Format responses clearly with bullet points or numbered lists when appropriate

DOCUMENT CONTEXT:
{context}"""


def build_messages(
    context: str,
    message: str,
    history: Optional[Sequence[Dict[str, str]]] = None,
    history_limit: int = HISTORY_MESSAGES,
) -> List[Dict[str, str]]:
    """System prompt with the document context, the recent history, then the new question."""
    recent = list(history or [])[-history_limit:] if history_limit > 0 else []
    return [
        {"role": "system", "content": SYSTEM_PROMPT.format(context=context)},
        *recent,
        {"role": "user", "content": message},
    ]


def sse_event(payload: Any) -> str:
    if isinstance(payload, str):
        return f"data: {payload}\n\n"
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def stream_events(sources: Sequence[SourceRef], completion: Iterable[Any]) -> Iterator[str]:
    """
    Relay a streamed chat completion as server-sent events.

    The sources go out first as one event, then each content delta as
    ``{"choices": [{"delta": {"content": ...}}]}``, then ``[DONE]``.
    """
    yield sse_event({"sources": [s.to_dict() for s in sources]})

    try:
        for part in completion:
            if not part.choices:
                continue
            content = part.choices[0].delta.content
            if not content:
                continue
            yield sse_event({"choices": [{"delta": {"content": content}}]})
    except openai.APIError as e:
        log.error("AI stream interrupted: %s", e)
        yield sse_event({"error": f"AI stream interrupted: {e}"})

    yield sse_event(DONE_MARKER)
