"""Context-augmented answers over a room's documents and conversation."""

import logging
from typing import Any

from .enrichment.generator import Generator
from .enrichment.prompts import ANSWER_PROMPT, ANSWER_SYSTEM_PROMPT
from .query.retrieval import RetrievalEngine, format_context
from .storage.base import ConversationLogBase

logger = logging.getLogger(__name__)


def answer_question(
    question: str,
    room_id: str,
    engine: RetrievalEngine,
    generator: Generator,
    log: ConversationLogBase | None = None,
    limit: int = 10,
    threshold: float = 0.5,
    history_turns: int = 8,
) -> dict[str, Any]:
    """Answer a question using retrieved room context and recent history.

    Retrieval degrades to "no context"; a generation failure propagates as
    ``GenerationFailure``.

    Returns dict with 'answer', 'sources' (file names) and 'retrieval'.
    """
    retrieval = engine.retrieve(question, room_id, limit=limit, threshold=threshold)

    history = ""
    if log is not None:
        try:
            turns = log.history(room_id, history_turns)
            history = "\n".join(f"{t['role'].title()}: {t['content']}" for t in turns)
        except Exception as e:
            logger.warning(f"Could not load history for room {room_id}: {e}")
    if history:
        history = f"Conversation history:\n{history}"

    prompt = ANSWER_PROMPT.format(
        context=format_context(retrieval.contexts),
        history=history,
        question=question,
    )
    answer = generator.generate(prompt, system=ANSWER_SYSTEM_PROMPT)

    sources: dict[str, bool] = {}
    for ctx in retrieval.contexts:
        sources[ctx.metadata.get("file_name", "Unknown")] = True

    return {"answer": answer, "sources": list(sources.keys()), "retrieval": retrieval}
