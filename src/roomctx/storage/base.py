"""Abstract base classes for chunk stores and conversation logs, plus factories."""

from abc import ABC, abstractmethod
from typing import Any

from ..models import (
    ROLES,
    SUMMARY_TYPES,
    Chunk,
    ConversationTurn,
    Document,
    SearchOutcome,
    SearchUnavailable,
    StoredChunk,
)


class ChunkStoreBase(ABC):
    """Common interface for document/chunk storage backends.

    Implementations wrap backend errors in ``StoreUnavailable``.
    """

    @abstractmethod
    def create_document(self, document: Document) -> Document:
        """Persist a new document record."""

    @abstractmethod
    def get_document(self, document_id: str) -> Document | None:
        """Fetch a document record by id."""

    @abstractmethod
    def list_document_ids(self, room_id: str, limit: int | None = None) -> list[str]:
        """Ids of documents owned by a room, oldest first."""

    @abstractmethod
    def has_chunks(self, document_ids: list[str]) -> bool:
        """Check whether any chunk belongs to the given documents."""

    @abstractmethod
    def insert_chunks(self, room_id: str, chunks: list[Chunk]) -> None:
        """Append chunks. ``room_id`` is the room owning their documents."""

    @abstractmethod
    def list_chunks_for_room(
        self, room_id: str, limit: int = 200, dimensions: int | None = None
    ) -> list[StoredChunk]:
        """Up to ``limit`` chunks of a room's documents, with raw stored vectors.

        When ``dimensions`` is given, chunks whose vectors have that length
        fill the working set first.
        """

    @abstractmethod
    def delete_document(self, document_id: str) -> int:
        """Delete a document and its chunks. Returns number of chunks removed."""

    def similarity_search(
        self,
        query_embedding: list[float],
        room_id: str,
        threshold: float,
        limit: int,
    ) -> SearchOutcome:
        """Server-side similarity query.

        Returns ``SearchHits`` ranked by descending similarity, filtered by
        ``threshold`` and capped at ``limit``. Backends without an index keep
        this default.
        """
        return SearchUnavailable(f"{type(self).__name__} has no indexed similarity search")


class ConversationLogBase(ABC):
    """Append-only per-room conversation log."""

    @staticmethod
    def validate_turn(role: str, summary_type: str | None) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if summary_type is not None and summary_type not in SUMMARY_TYPES:
            raise ValueError(f"Unknown summary_type: {summary_type}")

    @abstractmethod
    def append_turn(
        self,
        room_id: str,
        role: str,
        message: str,
        summary_type: str | None = None,
    ) -> ConversationTurn:
        """Append a turn and return it."""

    @abstractmethod
    def room_turns(self, room_id: str) -> list[ConversationTurn]:
        """Every turn of a room, most recent first."""

    def list_recent_turns(self, room_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent turns first, at most ``limit``."""
        return self.room_turns(room_id)[:limit]

    def list_recent_dialogue(self, room_id: str, limit: int) -> list[ConversationTurn]:
        """Most recent live turns first, skipping derived knowledge items."""
        return [t for t in self.room_turns(room_id) if t.summary_type is None][:limit]

    def history(self, room_id: str, limit: int = 10) -> list[dict[str, str]]:
        """Recent turns in chronological order as role/content pairs."""
        turns = self.list_recent_turns(room_id, limit)
        return [{"role": t.role, "content": t.message} for t in reversed(turns)]

    def list_summary_items(
        self,
        room_id: str,
        summary_types: tuple[str, ...] = ("decision", "task", "action_point"),
        limit: int = 10,
    ) -> list[ConversationTurn]:
        """Most recent knowledge-item turns of the given types, newest first."""
        return [t for t in self.room_turns(room_id) if t.summary_type in summary_types][:limit]


def get_chunk_store(config: dict[str, Any]) -> ChunkStoreBase:
    """Factory: return the right chunk store based on config."""
    backend = config.get("storage_backend", "chromadb")

    if backend == "chromadb":
        from .chromadb import ChromaChunkStore
        return ChromaChunkStore(config["chroma_path"])
    elif backend == "memory":
        from .memory import InMemoryChunkStore
        return InMemoryChunkStore()
    else:
        raise ValueError(f"Unknown storage_backend: {backend}")


def get_conversation_log(config: dict[str, Any]) -> ConversationLogBase:
    """Factory: return the conversation log matching the storage backend."""
    backend = config.get("storage_backend", "chromadb")

    if backend == "memory":
        from .memory import InMemoryConversationLog
        return InMemoryConversationLog()
    elif backend == "chromadb":
        from .conversations import JsonlConversationLog
        return JsonlConversationLog(config["conversations_path"])
    else:
        raise ValueError(f"Unknown storage_backend: {backend}")
