"""Shared fakes for embedding, generation and storage."""

import uuid

import pytest

from roomctx.embeddings.embedder import Embedder
from roomctx.models import Chunk, Document
from roomctx.storage.memory import InMemoryChunkStore, InMemoryConversationLog


class FakeProvider:
    """Returns canned vectors per text; can fail per model."""

    def __init__(self, vectors=None, default=None, failures=None):
        self.vectors = vectors or {}
        self.default = default if default is not None else [1.0, 0.0]
        self.failures = failures or {}
        self.calls = []

    def embed(self, text, model):
        self.calls.append((text, model))
        if model in self.failures:
            raise self.failures[model]
        return self.vectors.get(text, self.default)


class FakeGenerator:
    """Returns a fixed response, or raises ``error``."""

    def __init__(self, response="{}", error=None):
        self.response = response
        self.error = error
        self.prompts = []

    def generate(self, prompt, system=None):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


def add_document(store, room_id, vectors, texts=None, file_name="notes.txt"):
    """Create a document in ``room_id`` with one chunk per vector."""
    doc = store.create_document(Document(
        id=str(uuid.uuid4()), room_id=room_id, file_name=file_name, file_type="txt", file_size=10,
    ))
    texts = texts or [f"chunk {i}" for i in range(len(vectors))]
    chunks = [
        Chunk(id=str(uuid.uuid4()), document_id=doc.id, index=i, text=t, embedding=v,
              metadata={"file_name": file_name})
        for i, (t, v) in enumerate(zip(texts, vectors))
    ]
    store.insert_chunks(room_id, chunks)
    return doc


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def embedder(provider):
    return Embedder(provider, primary_model="primary", fallback_model="fallback")


@pytest.fixture
def store():
    return InMemoryChunkStore()


@pytest.fixture
def log():
    return InMemoryConversationLog()


@pytest.fixture
def make_document():
    return add_document


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def fake_generator_cls():
    return FakeGenerator
