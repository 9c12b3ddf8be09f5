"""Distill recent conversation into decisions, tasks, action points and questions."""

import json
import logging
import re
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from ..embeddings.embedder import Embedder
from ..errors import SummaryParseFailure
from ..models import (
    SUMMARY_CHUNK_INDEX,
    Chunk,
    ConversationSummary,
    ConversationTurn,
    KnowledgeItem,
    SummaryResult,
)
from ..storage.base import ChunkStoreBase, ConversationLogBase
from .generator import Generator
from .prompts import SUMMARY_EXTRACTION_PROMPT

logger = logging.getLogger(__name__)

# JSON key -> summary_type
CATEGORIES = {
    "decisions": "decision",
    "tasks": "task",
    "action_points": "action_point",
    "questions": "question",
}

LABELS = {
    "decision": "Decision",
    "task": "Task",
    "action_point": "Action Point",
    "question": "Question",
}

SPEAKERS = {"user": "User", "assistant": "Assistant", "system": "System"}


def parse_summary_json(text: str) -> dict[str, Any]:
    """Extract the JSON object from a model response.

    Tries the raw text, then a fenced code block, then the widest
    ``{ ... }`` span.

    Raises:
        SummaryParseFailure: If no candidate parses to a JSON object.
    """
    text = text.strip()
    candidates = [text]

    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if match:
        candidates.append(match.group(1).strip())

    match = re.search(r"\{.*\}", text, re.DOTALL)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise SummaryParseFailure(f"No JSON object in model response: {text[:100]!r}")


def _to_item(summary_type: str, raw: Any) -> KnowledgeItem | None:
    if isinstance(raw, str):
        raw = {"content": raw}
    if not isinstance(raw, dict):
        return None
    content = raw.get("content")
    if not isinstance(content, str) or not content.strip():
        return None
    reasoning = raw.get("reasoning")
    metadata = raw.get("metadata")
    return KnowledgeItem(
        type=summary_type,
        content=content.strip(),
        reasoning=reasoning.strip() if isinstance(reasoning, str) and reasoning.strip() else None,
        metadata=metadata if isinstance(metadata, dict) else None,
    )


def to_summary(parsed: dict[str, Any]) -> ConversationSummary:
    """Reshape parsed model JSON into typed knowledge items, dropping malformed entries."""
    summary = ConversationSummary()
    for key, summary_type in CATEGORIES.items():
        raw_items = parsed.get(key) or []
        if not isinstance(raw_items, list):
            continue
        items = [item for item in (_to_item(summary_type, r) for r in raw_items) if item]
        setattr(summary, key, items)
    return summary


def render_item(item: KnowledgeItem) -> str:
    """Human-readable message for a stored knowledge item."""
    message = f"{LABELS[item.type]}: {item.content}"
    if item.reasoning:
        message += f"\nReasoning: {item.reasoning}"
    return message


def render_transcript(turns: list[ConversationTurn]) -> str:
    return "\n\n".join(f"{SPEAKERS.get(t.role, t.role.title())}: {t.message}" for t in turns)


class Summarizer:
    """Extracts knowledge items from a room's recent turns and writes them back to the log."""

    def __init__(
        self,
        log: ConversationLogBase,
        generator: Generator,
        store: ChunkStoreBase | None = None,
        embedder: Embedder | None = None,
    ):
        self.log = log
        self.generator = generator
        self.store = store
        self.embedder = embedder

    def summarize(self, room_id: str, conversation_turns: int = 5, persist: bool = True) -> SummaryResult:
        """Summarize the last ``conversation_turns`` exchanges of a room.

        Never raises. Failures leave an empty summary and a diagnostic.
        """
        result = SummaryResult()

        try:
            recent = self.log.list_recent_dialogue(room_id, conversation_turns * 2)
        except Exception as e:
            logger.warning(f"Could not load conversation for room {room_id}: {e}")
            result.diagnostics.append(f"{type(e).__name__}: {e}")
            return result

        turns = list(reversed(recent))
        if not turns:
            return result

        prompt = SUMMARY_EXTRACTION_PROMPT.format(conversation=render_transcript(turns))
        try:
            response = self.generator.generate(prompt)
            result.summary = to_summary(parse_summary_json(response))
        except SummaryParseFailure as e:
            logger.warning(f"Error parsing summary JSON for room {room_id}: {e}")
            result.diagnostics.append(f"SummaryParseFailure: {e}")
            return result
        except Exception as e:
            logger.warning(f"Summarization for room {room_id} failed: {e}")
            result.diagnostics.append(f"{type(e).__name__}: {e}")
            return result

        if persist:
            result.stored = self.store_items(room_id, result.summary, result.diagnostics)
        return result

    def store_items(
        self,
        room_id: str,
        summary: ConversationSummary,
        diagnostics: list[str] | None = None,
    ) -> int:
        """Write one system turn per item. Returns how many were written."""
        stored = 0
        for item in summary.items():
            try:
                self.log.append_turn(room_id, "system", render_item(item), summary_type=item.type)
                stored += 1
            except Exception as e:
                logger.warning(f"Error storing {item.type} for room {room_id}: {e}")
                if diagnostics is not None:
                    diagnostics.append(f"store {item.type}: {e}")
        return stored

    def store_summary_chunk(
        self,
        room_id: str,
        summary_text: str,
        metadata: dict[str, Any] | None = None,
    ) -> Chunk | None:
        """Embed a summary and store it as a retrievable chunk of the room's first document.

        Returns the stored chunk, or None when the room has no document or
        anything fails.
        """
        if self.store is None or self.embedder is None:
            raise ValueError("store_summary_chunk needs a chunk store and an embedder")

        try:
            doc_ids = self.store.list_document_ids(room_id, limit=1)
            if not doc_ids:
                logger.debug(f"No document in room {room_id}; summary chunk skipped")
                return None
            chunk = Chunk(
                id=str(uuid.uuid4()),
                document_id=doc_ids[0],
                index=SUMMARY_CHUNK_INDEX,
                text=summary_text,
                embedding=self.embedder.embed(summary_text),
                metadata={"type": "conversation_summary", **(metadata or {})},
            )
            self.store.insert_chunks(room_id, [chunk])
            return chunk
        except Exception as e:
            logger.warning(f"Error storing conversation summary for room {room_id}: {e}")
            return None

    def room_context(self, room_id: str, limit: int = 10) -> str:
        """Recent decisions, tasks and action points as one text block."""
        try:
            items = self.log.list_summary_items(room_id, limit=limit)
        except Exception as e:
            logger.warning(f"Could not load summary items for room {room_id}: {e}")
            items = []
        if not items:
            return "No previous context available for this room."
        return "\n\n".join(t.message for t in items)


class SummaryTrigger:
    """Runs summarization every N turns on a bounded worker pool.

    ``on_turn`` never raises and never waits for the summary.
    """

    def __init__(
        self,
        summarizer: Summarizer,
        every_n_turns: int = 5,
        conversation_turns: int = 5,
        max_workers: int = 1,
    ):
        if every_n_turns <= 0:
            raise ValueError(f"every_n_turns must be positive, got {every_n_turns}")
        self.summarizer = summarizer
        self.every_n_turns = every_n_turns
        self.conversation_turns = conversation_turns
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="roomctx-summary")

    @classmethod
    def from_config(cls, config: dict[str, Any], summarizer: Summarizer) -> "SummaryTrigger":
        sum_cfg = config.get("summarization", {})
        return cls(
            summarizer,
            every_n_turns=sum_cfg.get("every_n_turns", 5),
            conversation_turns=sum_cfg.get("conversation_turns", 5),
            max_workers=sum_cfg.get("max_workers", 1),
        )

    def should_summarize(self, turn_count: int) -> bool:
        return turn_count > 0 and turn_count % self.every_n_turns == 0

    def on_turn(self, room_id: str, turn_count: int) -> Future | None:
        """Schedule summarization when ``turn_count`` hits the cadence."""
        if not self.should_summarize(turn_count):
            return None
        try:
            return self._executor.submit(self._run, room_id)
        except Exception as e:
            logger.warning(f"Could not schedule summarization for room {room_id}: {e}")
            return None

    def _run(self, room_id: str) -> SummaryResult:
        try:
            return self.summarizer.summarize(room_id, self.conversation_turns)
        except Exception as e:
            logger.warning(f"Summarization for room {room_id} failed: {e}")
            return SummaryResult(diagnostics=[f"{type(e).__name__}: {e}"])

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
