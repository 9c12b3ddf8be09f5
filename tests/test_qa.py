"""Tests for context-augmented answers and the CLI."""

import pytest
from click.testing import CliRunner

from roomctx.cli import cli
from roomctx.errors import GenerationFailure
from roomctx.models import RetrievalResult
from roomctx.qa import answer_question
from roomctx.query.retrieval import RetrievalEngine


def test_answer_uses_context_and_history(store, embedder, log, fake_generator_cls, make_document):
    make_document(store, "room-1", [[1, 0]], texts=["Launch is on Friday."], file_name="plan.md")
    log.append_turn("room-1", "user", "When do we launch?")
    generator = fake_generator_cls("Friday.")

    result = answer_question("When do we launch?", "room-1", RetrievalEngine(store, embedder), generator, log=log)

    assert result["answer"] == "Friday."
    assert result["sources"] == ["plan.md"]
    assert "Launch is on Friday." in generator.prompts[0]
    assert "User: When do we launch?" in generator.prompts[0]


def test_answer_without_context(store, embedder, fake_generator_cls):
    generator = fake_generator_cls("I don't know.")
    result = answer_question("Anything?", "room-1", RetrievalEngine(store, embedder), generator)
    assert result["sources"] == []
    assert "No relevant documents" in generator.prompts[0]


def test_generation_failure_propagates(store, embedder, fake_generator_cls):
    generator = fake_generator_cls(error=GenerationFailure("overloaded"))
    with pytest.raises(GenerationFailure):
        answer_question("Anything?", "room-1", RetrievalEngine(store, embedder), generator)


def test_cli_history_empty(monkeypatch):
    monkeypatch.setenv("ROOMCTX_STORAGE_BACKEND", "memory")
    result = CliRunner().invoke(cli, ["history", "--room", "room-1"])
    assert result.exit_code == 0
    assert "No conversation" in result.output


def test_cli_delete_unknown(monkeypatch):
    monkeypatch.setenv("ROOMCTX_STORAGE_BACKEND", "memory")
    result = CliRunner().invoke(cli, ["delete", "missing-id"])
    assert result.exit_code == 0
    assert "Document not found" in result.output


def test_cli_search_passes_zero_limit(monkeypatch):
    monkeypatch.setenv("ROOMCTX_STORAGE_BACKEND", "memory")
    limits = []

    def fake_retrieve(self, query, room_id, limit=5, threshold=0.5):
        limits.append(limit)
        return RetrievalResult(threshold=threshold)

    monkeypatch.setattr(RetrievalEngine, "retrieve", fake_retrieve)
    result = CliRunner().invoke(cli, ["search", "budget", "--room", "room-1", "-n", "0"])
    assert result.exit_code == 0
    assert limits == [0]
