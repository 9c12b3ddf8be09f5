"""Document ingestion: text extraction, chunking, embedding and storage."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from ..embeddings.embedder import Embedder
from ..errors import StoreUnavailable
from ..models import Chunk, Document
from ..storage.base import ChunkStoreBase
from .chunker import chunk_text
from .parsers import PARSERS

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""
    document: Document
    chunks: list[Chunk] = field(default_factory=list)
    failed_chunks: list[int] = field(default_factory=list)

    @property
    def chunks_processed(self) -> int:
        return len(self.chunks)


def extract_text(file_path: Path) -> tuple[str, str, dict[str, Any]]:
    """Return (text, file_type, metadata) for a supported upload.

    Raises:
        ValueError: If the extension has no parser.
    """
    parser_cls = PARSERS.get(file_path.suffix.lower())
    if parser_cls is None:
        raise ValueError(f"Unsupported file type: {file_path.suffix or file_path.name}")
    parser = parser_cls()
    result = parser.parse(file_path)
    return result["content"], parser.file_type, result.get("metadata", {})


def ingest_text(
    store: ChunkStoreBase,
    embedder: Embedder,
    room_id: str,
    text: str,
    file_name: str,
    file_type: str = "txt",
    file_size: int | None = None,
    chunk_size: int = 1000,
    overlap: int = 200,
    on_chunk: Callable[[int], None] | None = None,
    metadata: dict[str, Any] | None = None,
) -> IngestResult:
    """Create a document for ``text`` and store its embedded chunks.

    Chunks whose embedding fails are skipped; the document is kept.
    ``metadata`` (e.g. parser output) is copied onto every chunk.

    Raises:
        ValueError: If the text is empty after trimming.
        ChunkingPrecondition: If ``overlap >= chunk_size``.
        StoreUnavailable: If the chunks cannot be written. The document
            record is removed again before the error propagates.
    """
    if not text.strip():
        raise ValueError(f"{file_name} appears to be empty")

    pieces = chunk_text(text, chunk_size=chunk_size, overlap=overlap)

    document = store.create_document(Document(
        id=str(uuid.uuid4()),
        room_id=room_id,
        file_name=file_name,
        file_type=file_type,
        file_size=file_size if file_size is not None else len(text.encode("utf-8")),
        uploaded_at=datetime.now(timezone.utc),
    ))
    result = IngestResult(document=document)

    for i, piece in enumerate(pieces):
        try:
            embedding = embedder.embed(piece)
        except Exception as e:
            logger.error(f"Error embedding chunk {i} of {file_name}: {e}")
            result.failed_chunks.append(i)
            continue
        finally:
            if on_chunk:
                on_chunk(i)
        result.chunks.append(Chunk(
            id=str(uuid.uuid4()),
            document_id=document.id,
            index=i,
            text=piece,
            embedding=embedding,
            metadata={**(metadata or {}), "file_name": file_name, "chunk_length": len(piece)},
        ))

    if result.chunks:
        try:
            store.insert_chunks(room_id, result.chunks)
        except StoreUnavailable as e:
            logger.error(f"Error storing chunks of {file_name}: {e}")
            store.delete_document(document.id)
            raise

    logger.info(
        f"Ingested {file_name} into room {room_id}: "
        f"{result.chunks_processed}/{len(pieces)} chunk(s) embedded"
    )
    return result


def ingest_file(
    file_path: Path,
    room_id: str,
    store: ChunkStoreBase,
    embedder: Embedder,
    config: dict[str, Any],
    on_chunk: Callable[[int], None] | None = None,
) -> IngestResult:
    """Ingest a .txt, .md or .pdf file into a room using configured chunking."""
    text, file_type, metadata = extract_text(file_path)
    chunk_cfg = config.get("chunking", {})
    return ingest_text(
        store,
        embedder,
        room_id,
        text,
        file_name=file_path.name,
        file_type=file_type,
        file_size=file_path.stat().st_size,
        chunk_size=chunk_cfg.get("chunk_size", 1000),
        overlap=chunk_cfg.get("overlap", 200),
        on_chunk=on_chunk,
        metadata=metadata,
    )

