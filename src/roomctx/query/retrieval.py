"""Context retrieval for a room: indexed search with a brute-force fallback."""

import asyncio
import logging
from typing import Any

from ..embeddings.embedder import Embedder
from ..errors import MalformedVector, StoreUnavailable
from ..models import RetrievalResult, RetrievedContext, SearchUnavailable
from ..storage.base import ChunkStoreBase
from .similarity import cosine_similarity, parse_vector

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """Finds the chunks of a room most similar to a query.

    Retrieval is best effort: every failure ends in an empty
    :class:`RetrievalResult` whose ``diagnostics`` say what went wrong.
    """

    def __init__(
        self,
        store: ChunkStoreBase,
        embedder: Embedder,
        relaxed_threshold: float = 0.3,
        scan_limit: int = 200,
    ):
        self.store = store
        self.embedder = embedder
        self.relaxed_threshold = relaxed_threshold
        self.scan_limit = scan_limit

    @classmethod
    def from_config(cls, config: dict[str, Any], store: ChunkStoreBase, embedder: Embedder) -> "RetrievalEngine":
        ret_cfg = config.get("retrieval", {})
        return cls(
            store,
            embedder,
            relaxed_threshold=ret_cfg.get("relaxed_threshold", 0.3),
            scan_limit=ret_cfg.get("scan_limit", 200),
        )

    def thresholds(self, threshold: float) -> list[float]:
        """Thresholds to try in order: the requested one, then at most one relaxed step."""
        if threshold > self.relaxed_threshold:
            return [threshold, self.relaxed_threshold]
        return [threshold]

    def retrieve(self, query: str, room_id: str, limit: int = 5, threshold: float = 0.5) -> RetrievalResult:
        """Retrieve up to ``limit`` chunks with similarity at or above the effective threshold."""
        result = RetrievalResult(threshold=threshold)
        if limit <= 0:
            return result

        try:
            doc_ids = self.store.list_document_ids(room_id)
            if not doc_ids:
                logger.info(f"No documents found in room {room_id}")
                return result

            if not self.store.has_chunks(doc_ids):
                logger.info(f"No chunks found for documents in room {room_id}")
                return result

            query_embedding = self.embedder.embed_query(query)

            for attempt, effective in enumerate(self.thresholds(threshold)):
                result.threshold = effective
                result.relaxed = attempt > 0
                if result.relaxed:
                    logger.info(f"No results with threshold {threshold}, retrying with {effective}")

                rows = self._indexed_search(query_embedding, room_id, limit, effective, result)
                if rows:
                    result.path = "indexed"
                    result.contexts = rows
                    logger.info(f"Indexed search: {len(rows)} context chunk(s) for room {room_id}")
                    return result

                rows = self._scan(query_embedding, room_id, limit, effective, result)
                if rows:
                    result.path = "scan"
                    result.contexts = rows
                    logger.info(f"Scan: {len(rows)} context chunk(s) for room {room_id}")
                    return result

            logger.info(f"No context found for room {room_id} at threshold {result.threshold}")
        except Exception as e:
            logger.warning(f"Context retrieval for room {room_id} failed: {e}")
            result.diagnostics.append(f"{type(e).__name__}: {e}")
            result.contexts = []
            result.path = "none"
        return result

    def retrieve_context(
        self, query: str, room_id: str, limit: int = 5, threshold: float = 0.5
    ) -> list[RetrievedContext]:
        return self.retrieve(query, room_id, limit, threshold).contexts

    async def aretrieve(
        self, query: str, room_id: str, limit: int = 5, threshold: float = 0.5
    ) -> RetrievalResult:
        """Run :meth:`retrieve` on a worker thread."""
        return await asyncio.to_thread(self.retrieve, query, room_id, limit, threshold)

    def _indexed_search(
        self,
        query_embedding: list[float],
        room_id: str,
        limit: int,
        threshold: float,
        result: RetrievalResult,
    ) -> list[RetrievedContext]:
        try:
            outcome = self.store.similarity_search(query_embedding, room_id, threshold, limit)
        except Exception as e:
            outcome = SearchUnavailable(f"{type(e).__name__}: {e}")

        if isinstance(outcome, SearchUnavailable):
            logger.debug(f"Indexed search unavailable, using scan: {outcome.reason}")
            result.diagnostics.append(f"indexed search unavailable: {outcome.reason}")
            return []

        # Keep store order; only enforce the threshold and limit contract.
        return [r for r in outcome.rows if r.similarity >= threshold][:limit]

    def _scan(
        self,
        query_embedding: list[float],
        room_id: str,
        limit: int,
        threshold: float,
        result: RetrievalResult,
    ) -> list[RetrievedContext]:
        try:
            candidates = self.store.list_chunks_for_room(
                room_id, limit=self.scan_limit, dimensions=len(query_embedding)
            )
        except StoreUnavailable as e:
            logger.warning(f"Chunk scan for room {room_id} failed: {e}")
            result.diagnostics.append(f"scan failed: {e}")
            return []

        logger.debug(f"Scan: scoring {len(candidates)} chunk(s) for room {room_id}")
        dimensions = len(query_embedding)
        scored = []
        malformed = 0
        for stored in candidates:
            try:
                vec = parse_vector(stored.vector, dimensions)
            except MalformedVector as e:
                malformed += 1
                logger.warning(f"Skipping chunk with malformed vector: {e}")
                continue
            similarity = cosine_similarity(query_embedding, vec)
            if similarity is None or similarity < threshold:
                continue
            scored.append(RetrievedContext(stored.text, similarity, stored.metadata))

        if malformed:
            result.diagnostics.append(f"skipped {malformed} chunk(s) with malformed vectors")

        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[:limit]


def format_context(contexts: list[RetrievedContext]) -> str:
    """Render retrieved chunks as a prompt section with relevance percentages."""
    if not contexts:
        return "No relevant documents were found in this room."

    parts = []
    for i, ctx in enumerate(contexts, 1):
        parts.append(f"[Document Chunk {i} - Relevance: {ctx.similarity * 100:.1f}%]\n{ctx.chunk_text}")
    body = "\n\n---\n\n".join(parts)
    return f"Relevant context from uploaded documents ({len(contexts)} chunks found):\n\n{body}"
