"""Tests for embedding with model fallback."""

import pytest

from roomctx.embeddings.embedder import Embedder, is_model_unavailable
from roomctx.errors import EmbeddingFailure


def test_primary_model_used(embedder, provider):
    assert embedder.embed("hello") == [1.0, 0.0]
    assert provider.calls == [("hello", "primary")]


def test_falls_back_when_model_not_found(fake_provider_cls):
    provider = fake_provider_cls(failures={"primary": OSError("primary is not found on the hub (404)")})
    embedder = Embedder(provider, primary_model="primary", fallback_model="fallback")
    assert embedder.embed("hello") == [1.0, 0.0]
    assert [m for _, m in provider.calls] == ["primary", "fallback"]


def test_other_errors_do_not_fall_back(fake_provider_cls):
    provider = fake_provider_cls(failures={"primary": TimeoutError("read timed out")})
    embedder = Embedder(provider, primary_model="primary", fallback_model="fallback")
    with pytest.raises(EmbeddingFailure):
        embedder.embed("hello")
    assert [m for _, m in provider.calls] == ["primary"]


def test_fallback_failure_raises(fake_provider_cls):
    provider = fake_provider_cls(failures={
        "primary": ValueError("Unknown model: primary"),
        "fallback": RuntimeError("quota exceeded"),
    })
    embedder = Embedder(provider, primary_model="primary", fallback_model="fallback")
    with pytest.raises(EmbeddingFailure) as exc:
        embedder.embed("hello")
    assert "fallback" in str(exc.value)


def test_no_fallback_configured(fake_provider_cls):
    provider = fake_provider_cls(failures={"primary": OSError("model does not exist")})
    embedder = Embedder(provider, primary_model="primary", fallback_model=None)
    with pytest.raises(EmbeddingFailure):
        embedder.embed("hello")


def test_empty_vector_is_a_failure(fake_provider_cls):
    embedder = Embedder(fake_provider_cls(default=[]), primary_model="primary", fallback_model=None)
    with pytest.raises(EmbeddingFailure):
        embedder.embed("hello")


def test_e5_prefixes(fake_provider_cls):
    provider = fake_provider_cls()
    embedder = Embedder(provider, primary_model="intfloat/e5-large-v2", fallback_model=None)
    embedder.embed_query("what was decided")
    embedder.embed("the budget was approved")
    assert provider.calls[0][0] == "query: what was decided"
    assert provider.calls[1][0] == "passage: the budget was approved"


def test_model_unavailable_classification():
    assert is_model_unavailable(Exception("404 Not Found"))
    assert is_model_unavailable(Exception("unknown model 'x'"))
    assert not is_model_unavailable(Exception("connection reset by peer"))


def test_from_config(fake_provider_cls):
    config = {"embedding": {"primary_model": "a", "fallback_model": "b"}}
    embedder = Embedder.from_config(config, provider=fake_provider_cls())
    assert embedder.primary_model == "a"
    assert embedder.fallback_model == "b"
