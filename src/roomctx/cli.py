"""CLI entry point for roomctx."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import load_config

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Room context engine - ingest documents, retrieve context, distill conversations."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


def _store_and_embedder(config: dict):
    from .embeddings.embedder import Embedder
    from .storage import get_chunk_store

    return get_chunk_store(config), Embedder.from_config(config)


def _summarizer(config: dict, log=None):
    from .enrichment.generator import ClaudeGenerator
    from .enrichment.summarizer import Summarizer
    from .storage import get_conversation_log

    return Summarizer(log or get_conversation_log(config), ClaudeGenerator.from_config(config))


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--room", "-r", required=True, help="Room id")
@click.pass_context
def ingest(ctx, path, room):
    """Chunk, embed and store a .txt, .md or .pdf file in a room."""
    from rich.progress import Progress

    from .errors import StoreUnavailable
    from .ingest.chunker import chunk_text
    from .ingest.processor import extract_text, ingest_text

    config = _get_config(ctx)
    chunk_cfg = config.get("chunking", {})
    chunk_size = chunk_cfg.get("chunk_size", 1000)
    overlap = chunk_cfg.get("overlap", 200)

    try:
        text, file_type, metadata = extract_text(path)
        total = len(chunk_text(text, chunk_size, overlap))
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        return

    store, embedder = _store_and_embedder(config)
    with Progress(console=console) as progress:
        task = progress.add_task(f"Embedding {path.name}...", total=total)
        try:
            result = ingest_text(
                store, embedder, room, text,
                file_name=path.name,
                file_type=file_type,
                file_size=path.stat().st_size,
                chunk_size=chunk_size,
                overlap=overlap,
                on_chunk=lambda _: progress.advance(task),
                metadata=metadata,
            )
        except (ValueError, StoreUnavailable) as e:
            console.print(f"[red]{e}[/]")
            return

    console.print(f"[green]✓ Stored {result.chunks_processed} chunk(s) for document {result.document.id}[/]")
    if result.failed_chunks:
        console.print(f"  [yellow]{len(result.failed_chunks)} chunk(s) failed to embed[/]")


@cli.command()
@click.argument("query")
@click.option("--room", "-r", required=True, help="Room id")
@click.option("--n", "-n", default=None, type=int, help="Number of results")
@click.option("--threshold", "-t", default=None, type=float, help="Minimum cosine similarity")
@click.pass_context
def search(ctx, query, room, n, threshold):
    """Retrieve the chunks of a room most relevant to a query."""
    from .query.retrieval import RetrievalEngine

    config = _get_config(ctx)
    ret_cfg = config.get("retrieval", {})
    store, embedder = _store_and_embedder(config)
    engine = RetrievalEngine.from_config(config, store, embedder)

    result = engine.retrieve(
        query, room,
        limit=n if n is not None else ret_cfg.get("limit", 5),
        threshold=threshold if threshold is not None else ret_cfg.get("threshold", 0.5),
    )
    for diag in result.diagnostics:
        console.print(f"[dim]{diag}[/]")

    if not result.contexts:
        console.print("[yellow]No context found. Have you ingested documents into this room?[/]")
        return

    title = f"Results ({result.path}, threshold {result.threshold}{', relaxed' if result.relaxed else ''})"
    table = Table(title=title)
    table.add_column("#", style="dim", width=3)
    table.add_column("File", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Preview", max_width=60)

    for i, r in enumerate(result.contexts, 1):
        preview = r.chunk_text[:80].replace("\n", " ")
        table.add_row(str(i), str(r.metadata.get("file_name", "?")), f"{r.similarity:.3f}", preview)

    console.print(table)


@cli.command()
@click.argument("message")
@click.option("--room", "-r", required=True, help="Room id")
@click.option("--role", type=click.Choice(["user", "assistant"]), default="user")
@click.option("--turn", "turn_count", type=int, default=None, help="Turn number; summarizes on the configured cadence")
@click.pass_context
def say(ctx, message, room, role, turn_count):
    """Append a conversation turn, summarizing the room on cadence."""
    from .enrichment.summarizer import SummaryTrigger
    from .storage import get_conversation_log

    config = _get_config(ctx)
    log = get_conversation_log(config)
    log.append_turn(room, role, message)
    console.print(f"[green]✓ Recorded {role} turn[/]")

    if turn_count is None or not config.get("claude_api_key"):
        return
    with SummaryTrigger.from_config(config, _summarizer(config, log)) as trigger:
        future = trigger.on_turn(room, turn_count)
    if future is not None:
        result = future.result()
        console.print(f"  [dim]Summarized: {result.stored} item(s) stored[/]")


@cli.command()
@click.option("--room", "-r", required=True, help="Room id")
@click.option("--turns", default=None, type=int, help="Conversation exchanges to summarize")
@click.option("--dry-run", is_flag=True, help="Extract without storing items")
@click.pass_context
def summarize(ctx, room, turns, dry_run):
    """Extract decisions, tasks, action points and questions from recent conversation."""
    config = _get_config(ctx)
    try:
        summarizer = _summarizer(config)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        return

    if turns is None:
        turns = config.get("summarization", {}).get("conversation_turns", 5)
    result = summarizer.summarize(room, turns, persist=not dry_run)
    for diag in result.diagnostics:
        console.print(f"[red]{diag}[/]")

    summary = result.summary
    for label, items in (
        ("Decisions", summary.decisions),
        ("Tasks", summary.tasks),
        ("Action points", summary.action_points),
        ("Questions", summary.questions),
    ):
        console.print(f"\n[bold]{label}[/] ({len(items)})")
        for item in items:
            console.print(f"  • {item.content}")
            if item.reasoning:
                console.print(f"    [dim]{item.reasoning}[/]")

    if not dry_run:
        console.print(f"\n[green]✓ Stored {result.stored} item(s)[/]")


@cli.command()
@click.argument("question")
@click.option("--room", "-r", required=True, help="Room id")
@click.option("--n", "-n", default=10, help="Number of context chunks to retrieve")
@click.pass_context
def ask(ctx, question, room, n):
    """Ask a question answered from the room's documents and conversation."""
    from rich.markdown import Markdown
    from rich.panel import Panel

    from .enrichment.generator import ClaudeGenerator
    from .errors import GenerationFailure
    from .qa import answer_question
    from .query.retrieval import RetrievalEngine
    from .storage import get_conversation_log

    config = _get_config(ctx)
    try:
        generator = ClaudeGenerator.from_config(config)
    except ValueError as e:
        console.print(f"[red]{e}[/]")
        return

    store, embedder = _store_and_embedder(config)
    engine = RetrievalEngine.from_config(config, store, embedder)
    threshold = config.get("retrieval", {}).get("threshold", 0.5)

    try:
        result = answer_question(
            question, room, engine, generator,
            log=get_conversation_log(config), limit=n, threshold=threshold,
        )
    except GenerationFailure as e:
        console.print(f"[red]Failed to generate response: {e}[/]")
        return

    console.print(Panel(Markdown(result["answer"]), title="Answer", border_style="green"))
    if result["sources"]:
        console.print("\n[bold]Sources:[/]")
        for name in result["sources"]:
            console.print(f"  • {name}")


@cli.command()
@click.option("--room", "-r", required=True, help="Room id")
@click.option("--limit", default=10, help="Number of turns")
@click.pass_context
def history(ctx, room, limit):
    """Show recent conversation turns and stored knowledge items."""
    from .storage import get_conversation_log

    config = _get_config(ctx)
    turns = get_conversation_log(config).list_recent_turns(room, limit)
    if not turns:
        console.print("[yellow]No conversation in this room.[/]")
        return

    table = Table(title=f"Room {room}")
    table.add_column("Time", style="dim")
    table.add_column("Role", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Message", max_width=70)
    for t in reversed(turns):
        table.add_row(t.created_at.strftime("%Y-%m-%d %H:%M"), t.role, t.summary_type or "", t.message)
    console.print(table)


@cli.command()
@click.argument("document_id")
@click.pass_context
def delete(ctx, document_id):
    """Delete a document and all of its chunks."""
    from .storage import get_chunk_store

    config = _get_config(ctx)
    store = get_chunk_store(config)
    if store.get_document(document_id) is None:
        console.print(f"[red]Document not found: {document_id}[/]")
        return
    removed = store.delete_document(document_id)
    console.print(f"[green]✓ Deleted document {document_id} ({removed} chunk(s))[/]")


if __name__ == "__main__":
    cli()
