"""ChromaDB chunk store backend.

Chunks live in one collection per embedding dimensionality (``chunks_<dim>``)
so that vectors from different embedding models never share an index.
Document records are kept in a YAML registry next to the Chroma files.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import chromadb
import yaml

from ..errors import StoreUnavailable
from ..models import (
    Chunk,
    Document,
    RetrievedContext,
    SearchHits,
    SearchOutcome,
    SearchUnavailable,
    StoredChunk,
)
from .base import ChunkStoreBase

logger = logging.getLogger(__name__)

CHUNK_COLLECTION_PREFIX = "chunks_"


def _collection_name(dimensions: int) -> str:
    return f"{CHUNK_COLLECTION_PREFIX}{dimensions}"


def _chunk_metadata(room_id: str, chunk: Chunk) -> dict[str, Any]:
    """Flatten chunk metadata; Chroma only stores scalar values."""
    return {
        "room_id": room_id,
        "document_id": chunk.document_id,
        "chunk_index": chunk.index,
        "metadata_json": json.dumps(chunk.metadata, default=str),
    }


def _user_metadata(meta: dict[str, Any] | None) -> dict[str, Any]:
    if not meta:
        return {}
    try:
        return json.loads(meta.get("metadata_json") or "{}")
    except (json.JSONDecodeError, TypeError):
        return {}


class ChromaChunkStore(ChunkStoreBase):
    """ChromaDB-backed persistent chunk store with indexed cosine search."""

    def __init__(self, chroma_path: str):
        self.chroma_path = Path(chroma_path)
        self.chroma_path.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(path=str(self.chroma_path))
        self.registry_path = self.chroma_path / "documents.yaml"
        self._lock = threading.Lock()

    def get_or_create_collection(self, name: str) -> chromadb.Collection:
        return self.client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": "cosine"},
        )

    def _chunk_collections(self) -> list[chromadb.Collection]:
        names = []
        for c in self.client.list_collections():
            # Older clients return names, newer ones Collection objects
            name = c if isinstance(c, str) else c.name
            if name.startswith(CHUNK_COLLECTION_PREFIX):
                names.append(name)
        return [self.get_or_create_collection(n) for n in sorted(names)]

    # Document registry

    def _read_registry(self) -> dict[str, dict[str, Any]]:
        if not self.registry_path.exists():
            return {}
        with open(self.registry_path) as f:
            return yaml.safe_load(f) or {}

    def _write_registry(self, registry: dict[str, dict[str, Any]]) -> None:
        tmp = self.registry_path.with_suffix(".yaml.tmp")
        tmp.write_text(yaml.safe_dump(registry, default_flow_style=False), encoding="utf-8")
        tmp.replace(self.registry_path)

    @staticmethod
    def _to_document(doc_id: str, row: dict[str, Any]) -> Document:
        uploaded = row.get("uploaded_at")
        if isinstance(uploaded, str):
            uploaded = datetime.fromisoformat(uploaded)
        return Document(
            id=doc_id,
            room_id=row["room_id"],
            file_name=row.get("file_name", ""),
            file_type=row.get("file_type", ""),
            file_size=int(row.get("file_size", 0)),
            uploaded_at=uploaded,
        )

    def create_document(self, document: Document) -> Document:
        try:
            with self._lock:
                registry = self._read_registry()
                registry[document.id] = {
                    "room_id": document.room_id,
                    "file_name": document.file_name,
                    "file_type": document.file_type,
                    "file_size": document.file_size,
                    "uploaded_at": document.uploaded_at.isoformat(),
                }
                self._write_registry(registry)
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailable(f"Could not write document registry: {e}") from e
        return document

    def get_document(self, document_id: str) -> Document | None:
        try:
            with self._lock:
                row = self._read_registry().get(document_id)
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailable(f"Could not read document registry: {e}") from e
        return self._to_document(document_id, row) if row else None

    def list_document_ids(self, room_id: str, limit: int | None = None) -> list[str]:
        try:
            with self._lock:
                registry = self._read_registry()
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailable(f"Could not read document registry: {e}") from e
        rows = sorted(
            ((doc_id, row) for doc_id, row in registry.items() if row.get("room_id") == room_id),
            key=lambda item: str(item[1].get("uploaded_at", "")),
        )
        ids = [doc_id for doc_id, _ in rows]
        return ids[:limit] if limit is not None else ids

    # Chunks

    def has_chunks(self, document_ids: list[str]) -> bool:
        if not document_ids:
            return False
        try:
            for collection in self._chunk_collections():
                found = collection.get(where={"document_id": {"$in": list(document_ids)}}, limit=1)
                if found["ids"]:
                    return True
        except Exception as e:
            raise StoreUnavailable(f"Chunk lookup failed: {e}") from e
        return False

    def insert_chunks(self, room_id: str, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        by_dim: dict[int, list[Chunk]] = {}
        for chunk in chunks:
            by_dim.setdefault(len(chunk.embedding), []).append(chunk)

        try:
            for dims, group in by_dim.items():
                collection = self.get_or_create_collection(_collection_name(dims))
                collection.add(
                    ids=[c.id for c in group],
                    embeddings=[c.embedding for c in group],
                    documents=[c.text for c in group],
                    metadatas=[_chunk_metadata(room_id, c) for c in group],
                )
        except Exception as e:
            raise StoreUnavailable(f"Chunk insert failed: {e}") from e

    def list_chunks_for_room(
        self, room_id: str, limit: int = 200, dimensions: int | None = None
    ) -> list[StoredChunk]:
        rows: list[StoredChunk] = []
        try:
            collections = self._chunk_collections()
            if dimensions is not None:
                preferred = _collection_name(dimensions)
                collections.sort(key=lambda c: c.name != preferred)
            for collection in collections:
                remaining = limit - len(rows)
                if remaining <= 0:
                    break
                data = collection.get(
                    where={"room_id": room_id},
                    limit=remaining,
                    include=["documents", "metadatas", "embeddings"],
                )
                embeddings = data.get("embeddings")
                if embeddings is None:
                    embeddings = [None] * len(data["ids"])
                for i in range(len(data["ids"])):
                    meta = data["metadatas"][i] if data.get("metadatas") else {}
                    rows.append(StoredChunk(
                        text=data["documents"][i] if data.get("documents") else "",
                        vector=embeddings[i],
                        metadata=_user_metadata(meta),
                    ))
        except Exception as e:
            raise StoreUnavailable(f"Chunk scan failed: {e}") from e
        return rows

    def delete_document(self, document_id: str) -> int:
        removed = 0
        try:
            for collection in self._chunk_collections():
                found = collection.get(where={"document_id": document_id})
                if found["ids"]:
                    collection.delete(ids=found["ids"])
                    removed += len(found["ids"])
            with self._lock:
                registry = self._read_registry()
                if registry.pop(document_id, None) is not None:
                    self._write_registry(registry)
        except Exception as e:
            raise StoreUnavailable(f"Document delete failed: {e}") from e
        return removed

    def similarity_search(
        self,
        query_embedding: list[float],
        room_id: str,
        threshold: float,
        limit: int,
    ) -> SearchOutcome:
        name = _collection_name(len(query_embedding))
        try:
            collection = self.get_or_create_collection(name)
            count = collection.count()
            if count == 0:
                return SearchHits([])
            results = collection.query(
                query_embeddings=[query_embedding],
                n_results=min(limit, count),
                where={"room_id": room_id},
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            logger.warning(f"Indexed search on {name} failed: {e}")
            return SearchUnavailable(str(e))

        rows = []
        if results and results["ids"] and results["ids"][0]:
            for i in range(len(results["ids"][0])):
                # cosine distance = 1 - cosine similarity
                similarity = 1.0 - float(results["distances"][0][i])
                similarity = max(-1.0, min(1.0, similarity))
                if similarity < threshold:
                    continue
                rows.append(RetrievedContext(
                    chunk_text=results["documents"][0][i] if results["documents"] else "",
                    similarity=similarity,
                    metadata=_user_metadata(results["metadatas"][0][i] if results["metadatas"] else {}),
                ))
        rows.sort(key=lambda r: r.similarity, reverse=True)
        return SearchHits(rows[:limit])
