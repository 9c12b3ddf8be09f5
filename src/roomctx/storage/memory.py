"""In-process chunk store and conversation log."""

import threading
import uuid
from datetime import datetime, timezone

from ..errors import MalformedVector
from ..models import (
    Chunk,
    ConversationTurn,
    Document,
    RetrievedContext,
    SearchHits,
    SearchOutcome,
    StoredChunk,
)
from ..query.similarity import cosine_similarity, parse_vector
from .base import ChunkStoreBase, ConversationLogBase


def _has_dimensions(vector, dimensions: int) -> bool:
    if isinstance(vector, (str, bytes)) or not hasattr(vector, "__len__"):
        return False
    return len(vector) == dimensions


class InMemoryChunkStore(ChunkStoreBase):
    """Dict-backed chunk store.

    With ``indexed=True`` it also answers ``similarity_search`` by exact
    scoring, standing in for a server-side index.
    """

    def __init__(self, indexed: bool = False):
        self.indexed = indexed
        self._documents: dict[str, Document] = {}
        self._chunks: list[tuple[str, Chunk]] = []  # (room_id, chunk)
        self._lock = threading.Lock()

    def create_document(self, document: Document) -> Document:
        with self._lock:
            self._documents[document.id] = document
        return document

    def get_document(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)

    def list_document_ids(self, room_id: str, limit: int | None = None) -> list[str]:
        with self._lock:
            docs = sorted(
                (d for d in self._documents.values() if d.room_id == room_id),
                key=lambda d: d.uploaded_at,
            )
        ids = [d.id for d in docs]
        return ids[:limit] if limit is not None else ids

    def has_chunks(self, document_ids: list[str]) -> bool:
        wanted = set(document_ids)
        with self._lock:
            return any(c.document_id in wanted for _, c in self._chunks)

    def insert_chunks(self, room_id: str, chunks: list[Chunk]) -> None:
        with self._lock:
            self._chunks.extend((room_id, c) for c in chunks)

    def list_chunks_for_room(
        self, room_id: str, limit: int = 200, dimensions: int | None = None
    ) -> list[StoredChunk]:
        with self._lock:
            rows = [
                StoredChunk(text=c.text, vector=c.embedding, metadata=dict(c.metadata))
                for r, c in self._chunks
                if r == room_id and c.document_id in self._documents
            ]
        if dimensions is not None:
            rows.sort(key=lambda row: not _has_dimensions(row.vector, dimensions))
        return rows[:limit]

    def delete_document(self, document_id: str) -> int:
        with self._lock:
            self._documents.pop(document_id, None)
            before = len(self._chunks)
            self._chunks = [(r, c) for r, c in self._chunks if c.document_id != document_id]
            return before - len(self._chunks)

    def similarity_search(
        self,
        query_embedding: list[float],
        room_id: str,
        threshold: float,
        limit: int,
    ) -> SearchOutcome:
        if not self.indexed:
            return super().similarity_search(query_embedding, room_id, threshold, limit)

        rows = []
        for stored in self.list_chunks_for_room(room_id, limit=len(self._chunks)):
            try:
                vec = parse_vector(stored.vector, len(query_embedding))
            except MalformedVector:
                continue
            sim = cosine_similarity(query_embedding, vec)
            if sim is not None and sim >= threshold:
                rows.append(RetrievedContext(stored.text, sim, stored.metadata))
        rows.sort(key=lambda r: r.similarity, reverse=True)
        return SearchHits(rows[:limit])


class InMemoryConversationLog(ConversationLogBase):
    """List-backed conversation log."""

    def __init__(self):
        self._turns: list[ConversationTurn] = []
        self._lock = threading.Lock()

    def append_turn(
        self,
        room_id: str,
        role: str,
        message: str,
        summary_type: str | None = None,
    ) -> ConversationTurn:
        self.validate_turn(role, summary_type)
        turn = ConversationTurn(
            id=str(uuid.uuid4()),
            room_id=room_id,
            role=role,
            message=message,
            created_at=datetime.now(timezone.utc),
            summary_type=summary_type,
        )
        with self._lock:
            self._turns.append(turn)
        return turn

    def room_turns(self, room_id: str) -> list[ConversationTurn]:
        with self._lock:
            turns = [t for t in self._turns if t.room_id == room_id]
        # Append order breaks timestamp ties.
        return list(reversed(turns))
