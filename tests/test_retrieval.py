"""Tests for context retrieval."""

import asyncio
import math

from roomctx.errors import StoreUnavailable
from roomctx.models import RetrievedContext, SearchHits
from roomctx.query.retrieval import RetrievalEngine, format_context
from roomctx.storage.memory import InMemoryChunkStore

ROOM = "room-1"


def test_no_documents_skips_embedding(store, embedder, provider):
    result = RetrievalEngine(store, embedder).retrieve("anything", ROOM)
    assert result.contexts == []
    assert provider.calls == []


def test_no_chunks_returns_empty(store, embedder, provider, make_document):
    make_document(store, ROOM, [])
    result = RetrievalEngine(store, embedder).retrieve("anything", ROOM)
    assert result.contexts == []
    assert provider.calls == []


def test_scan_ranks_and_filters(store, embedder, make_document):
    make_document(store, ROOM, [[1, 0], [0, 1], [-1, 0], [1, 1]], texts=["same", "orthogonal", "opposite", "diagonal"])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, limit=5, threshold=0.5)

    assert result.path == "scan"
    assert [c.chunk_text for c in result.contexts] == ["same", "diagonal"]
    assert math.isclose(result.contexts[0].similarity, 1.0)
    assert all(c.similarity >= 0.5 for c in result.contexts)


def test_limit_respected(store, embedder, make_document):
    make_document(store, ROOM, [[1, 0]] * 10)
    contexts = RetrievalEngine(store, embedder).retrieve_context("q", ROOM, limit=3, threshold=0.5)
    assert len(contexts) == 3


def test_relaxes_threshold_once(store, embedder, make_document):
    make_document(store, ROOM, [[0.4, math.sqrt(0.84)]])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, limit=5, threshold=0.5)

    assert result.relaxed
    assert result.threshold == 0.3
    assert len(result.contexts) == 1
    assert math.isclose(result.contexts[0].similarity, 0.4)


def test_nothing_above_relaxed_threshold(store, embedder, make_document):
    make_document(store, ROOM, [[0, 1]])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, threshold=0.7)
    assert result.contexts == []
    assert result.threshold == 0.3


def test_no_relaxation_at_or_below_floor(store, embedder):
    engine = RetrievalEngine(store, embedder, relaxed_threshold=0.3)
    assert engine.thresholds(0.3) == [0.3]
    assert engine.thresholds(0.2) == [0.2]
    assert engine.thresholds(0.8) == [0.8, 0.3]


def test_relaxed_threshold_is_configurable(store, embedder, make_document):
    make_document(store, ROOM, [[0.4, math.sqrt(0.84)]])
    config = {"retrieval": {"relaxed_threshold": 0.45}}
    result = RetrievalEngine.from_config(config, store, embedder).retrieve("q", ROOM, threshold=0.5)
    assert result.contexts == []


def test_malformed_and_mismatched_vectors_skipped(store, embedder, make_document):
    make_document(store, ROOM, [[1, 0], "garbage", [1, 0, 0], "[0.9, 0.1]", [0, 0]])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, threshold=0.5)

    assert len(result.contexts) == 2
    assert any("malformed" in d for d in result.diagnostics)


def test_other_rooms_not_visible(store, embedder, make_document):
    make_document(store, "other-room", [[1, 0]])
    make_document(store, ROOM, [[0, 1]])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, threshold=0.5)
    assert result.contexts == []


def test_indexed_path_preferred(embedder, make_document):
    store = InMemoryChunkStore(indexed=True)
    make_document(store, ROOM, [[1, 0], [0.6, 0.8]], texts=["best", "ok"])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, threshold=0.5)

    assert result.path == "indexed"
    assert [c.chunk_text for c in result.contexts] == ["best", "ok"]
    assert not result.degraded


class _BrokenIndexStore(InMemoryChunkStore):
    def similarity_search(self, query_embedding, room_id, threshold, limit):
        raise StoreUnavailable("rpc failed")


def test_index_failure_falls_back_to_scan(embedder, make_document):
    store = _BrokenIndexStore()
    make_document(store, ROOM, [[1, 0]])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM)

    assert result.path == "scan"
    assert len(result.contexts) == 1
    assert result.degraded


class _SloppyIndexStore(InMemoryChunkStore):
    def similarity_search(self, query_embedding, room_id, threshold, limit):
        rows = [RetrievedContext(f"row {i}", 0.9 - i * 0.2, {}) for i in range(5)]
        return SearchHits(rows)


def test_indexed_rows_held_to_threshold_and_limit(embedder, make_document):
    store = _SloppyIndexStore()
    make_document(store, ROOM, [[1, 0]])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM, limit=2, threshold=0.6)
    assert [c.chunk_text for c in result.contexts] == ["row 0", "row 1"]


def test_embedding_failure_degrades_to_empty(store, fake_provider_cls, make_document):
    from roomctx.embeddings.embedder import Embedder

    provider = fake_provider_cls(failures={"primary": TimeoutError("timed out")})
    make_document(store, ROOM, [[1, 0]])
    result = RetrievalEngine(store, Embedder(provider, "primary", "fallback")).retrieve("q", ROOM)

    assert result.contexts == []
    assert result.diagnostics[0].startswith("EmbeddingFailure")


class _DownStore(InMemoryChunkStore):
    def list_document_ids(self, room_id, limit=None):
        raise StoreUnavailable("connection refused")


def test_store_outage_degrades_to_empty(embedder):
    result = RetrievalEngine(_DownStore(), embedder).retrieve("q", ROOM)
    assert result.contexts == []
    assert result.degraded


def test_scan_respects_working_set_bound(store, embedder, make_document):
    make_document(store, ROOM, [[0, 1]] * 5 + [[1, 0]])
    result = RetrievalEngine(store, embedder, scan_limit=5).retrieve("q", ROOM)
    assert result.contexts == []


def test_equal_scores_keep_scan_order(store, embedder, make_document):
    make_document(store, ROOM, [[1, 0]] * 3, texts=["a", "b", "c"])
    result = RetrievalEngine(store, embedder).retrieve("q", ROOM)
    assert [c.chunk_text for c in result.contexts] == ["a", "b", "c"]


def test_async_retrieve(store, embedder, make_document):
    make_document(store, ROOM, [[1, 0]])
    result = asyncio.run(RetrievalEngine(store, embedder).aretrieve("q", ROOM))
    assert len(result.contexts) == 1


def test_format_context():
    text = format_context([RetrievedContext("Budget approved.", 0.8734, {})])
    assert "Relevance: 87.3%" in text
    assert "Budget approved." in text
    assert "No relevant documents" in format_context([])


def test_scan_working_set_prefers_query_dimensions(store, embedder, make_document):
    make_document(store, ROOM, [[1, 0, 0]] * 5 + [[1, 0]], texts=["old"] * 5 + ["current"])
    result = RetrievalEngine(store, embedder, scan_limit=5).retrieve("q", ROOM)
    assert [c.chunk_text for c in result.contexts] == ["current"]
