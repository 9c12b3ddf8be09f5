"""Data models used throughout roomctx."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SUMMARY_CHUNK_INDEX = -1

ROLES = ("user", "assistant", "system")
SUMMARY_TYPES = ("decision", "task", "action_point", "question")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Document:
    """An uploaded source document owned by a room."""
    id: str
    room_id: str
    file_name: str
    file_type: str
    file_size: int
    uploaded_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class Chunk:
    """A slice of a document's text with its embedding."""
    id: str
    document_id: str
    index: int  # SUMMARY_CHUNK_INDEX for conversation summaries
    text: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class StoredChunk:
    """A chunk row as read back for a brute-force scan.

    ``vector`` is whatever the backend stored: a list, a numpy array or a
    serialized string. It is parsed at scan time.
    """
    text: str
    vector: Any
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConversationTurn:
    """One entry of a room's append-only conversation log."""
    id: str
    room_id: str
    role: str  # user | assistant | system
    message: str
    created_at: datetime = field(default_factory=_now)
    summary_type: str | None = None


@dataclass
class KnowledgeItem:
    """A decision, task, action point or question extracted from conversation."""
    type: str
    content: str
    reasoning: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass
class ConversationSummary:
    """Knowledge items grouped by category."""
    decisions: list[KnowledgeItem] = field(default_factory=list)
    tasks: list[KnowledgeItem] = field(default_factory=list)
    action_points: list[KnowledgeItem] = field(default_factory=list)
    questions: list[KnowledgeItem] = field(default_factory=list)

    def items(self) -> list[KnowledgeItem]:
        """All items in persistence order."""
        return [*self.decisions, *self.action_points, *self.questions, *self.tasks]

    def is_empty(self) -> bool:
        return not self.items()


@dataclass
class RetrievedContext:
    """A chunk returned by retrieval with its cosine similarity."""
    chunk_text: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchHits:
    """Ranked rows from a store's server-side similarity query."""
    rows: list[RetrievedContext]


@dataclass
class SearchUnavailable:
    """The store has no indexed search, or it failed."""
    reason: str


SearchOutcome = SearchHits | SearchUnavailable


@dataclass
class RetrievalResult:
    """Retrieved contexts plus how they were obtained."""
    contexts: list[RetrievedContext] = field(default_factory=list)
    threshold: float | None = None  # effective threshold of the final attempt
    path: str = "none"  # indexed | scan | none
    relaxed: bool = False
    diagnostics: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.diagnostics)


@dataclass
class SummaryResult:
    """Summarization output plus persistence outcome."""
    summary: ConversationSummary = field(default_factory=ConversationSummary)
    stored: int = 0
    diagnostics: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.diagnostics)
