"""
EduRAG - CLI Entry Point
-------------------------
Exposes Typer commands over the RAG pipeline.

Usage:
    edurag query                        # Interactive Q&A loop
    edurag query -q "What is a variable?"  # Single-shot query
    edurag query -q "..." --json        # Single-shot query, JSON output
    edurag status                       # Build the index and show its state
    edurag quiz DOCUMENT_ID             # Generate a quiz for one document
"""
from __future__ import annotations

import json
from typing import Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from edurag.config import Settings, load_settings
from edurag.errors import QueryCancelledError, RepositoryError
from edurag.generation.generator import AnswerGenerator
from edurag.generation.quiz import QuizGenerator
from edurag.generation.services import build_service
from edurag.repository import JsonDocumentRepository
from edurag.serving.pipeline import QueryResult, RAGPipeline
from edurag.serving.session import QuerySession
from edurag.utils.helpers import truncate_text
from edurag.utils.logger import setup_logger

app = typer.Typer(
    name="edurag",
    help="EduRAG - retrieval-augmented study assistant",
    add_completion=False,
)
console = Console()


# --- Helpers ------------------------------------------------------------------

def _bootstrap(config_path: str) -> Settings:
    load_dotenv()
    settings = load_settings(config_path)
    setup_logger(settings.logging.level, settings.logging.file)
    return settings


def _build_generator(settings: Settings) -> AnswerGenerator:
    return AnswerGenerator(
        build_service(settings.generation),
        retry_policy=settings.generation.retry,
        timeout_seconds=settings.generation.timeout_seconds,
    )


def _build_pipeline(settings: Settings) -> RAGPipeline:
    return RAGPipeline(
        repository=JsonDocumentRepository(settings.repository.documents_dir),
        config=settings.pipeline,
        generator=_build_generator(settings),
    )


def _print_result(result: QueryResult) -> None:
    """Render a QueryResult to the terminal using Rich."""
    console.print()
    console.print(
        Panel(
            Markdown(result.response),
            title="[bold green]Answer[/bold green]",
            border_style="green",
            expand=True,
        )
    )

    if result.sources:
        table = Table(
            "No.", "Subject", "Title", "Similarity", "Rerank",
            box=box.SIMPLE,
            show_header=True,
            header_style="bold dim",
        )
        for i, source in enumerate(result.sources, start=1):
            table.add_row(
                str(i),
                source.subject,
                truncate_text(source.title, 55),
                f"{source.similarity_score:.3f}",
                f"{source.rerank_score:.3f}",
            )
        console.print(table)
    else:
        console.print("[yellow]No matching documents; answered without sources.[/yellow]")

    console.print(
        f"[dim]"
        f"retrieve={result.retrieval_ms:.0f}ms  "
        f"rerank={result.rerank_ms:.0f}ms  "
        f"generate={result.generation_ms:.0f}ms  "
        f"total={result.total_ms / 1000:.1f}s"
        f"[/dim]\n"
    )


# --- Commands -----------------------------------------------------------------

@app.command()
def query(
    question: Optional[str] = typer.Option(
        None, "--query", "-q", help="Single question (omit for interactive loop)"
    ),
    json_out: bool = typer.Option(
        False, "--json", help="Print result as JSON (single-question mode only)"
    ),
    config: str = typer.Option(
        "config/config.yaml", "--config", "-c", help="Path to config YAML"
    ),
) -> None:
    """
    Answer questions from the document corpus.

    \b
    Steps per question:
      1. Rebuild the index if the corpus changed or went stale
      2. Vector retrieval   (cosine over term-frequency vectors)
      3. Keyword reranking  (title / subject / keyword bonuses)
      4. Answer generation  (fallback study guidance if the service fails)
    """
    settings = _bootstrap(config)
    pipeline = _build_pipeline(settings)

    try:
        with console.status("[cyan]Building index...[/cyan]"):
            pipeline.initialize()
    except RepositoryError as exc:
        console.print(f"[red]Cannot load documents:[/red] {exc}")
        raise typer.Exit(1)

    state = pipeline.status()
    console.print(
        f"[green][OK] Index ready[/green] "
        f"| {state.document_count} documents "
        f"| {state.chunk_count} chunks "
        f"| provider={settings.generation.provider}"
    )

    # --- Single-shot mode -----------------------------------------------------
    if question:
        result = pipeline.query(question)
        if json_out:
            console.print_json(json.dumps(result.to_dict(), indent=2))
        else:
            _print_result(result)
        return

    # --- Interactive loop -----------------------------------------------------
    session = QuerySession(pipeline)
    console.print()
    console.print(f"[bold]Ask {settings.project_name} anything about your study materials.[/bold]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to quit.[/dim]\n")

    while True:
        try:
            raw = console.input("[bold cyan]You[/bold cyan] > ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye.[/dim]")
            break

        if not raw:
            continue
        if raw.lower() in {"exit", "quit", "q"}:
            console.print("[dim]Goodbye.[/dim]")
            break

        try:
            with console.status("[cyan]Thinking...[/cyan]"):
                result = session.ask(raw)
        except KeyboardInterrupt:
            session.cancel()
            console.print("[yellow]Question cancelled.[/yellow]")
            continue
        except QueryCancelledError:
            continue

        _print_result(result)

    pipeline.generator.close()


@app.command()
def status(
    config: str = typer.Option(
        "config/config.yaml", "--config", "-c", help="Path to config YAML"
    ),
) -> None:
    """Build the index from the configured corpus and show its state."""
    settings = _bootstrap(config)
    pipeline = _build_pipeline(settings)

    try:
        pipeline.initialize()
    except RepositoryError as exc:
        console.print(f"[red]Cannot load documents:[/red] {exc}")
        raise typer.Exit(1)

    state = pipeline.status()
    console.print()
    console.print("[bold]Pipeline Status[/bold]")
    console.print(f"  State       : [green]{state.state}[/green]")
    console.print(f"  Documents   : {state.document_count}")
    console.print(f"  Chunks      : {state.chunk_count}")
    console.print(f"  Fingerprint : [dim]{state.fingerprint}[/dim]")
    console.print(f"  Last build  : {state.last_build_time}")
    console.print()
    console.print("[dim]Configuration:[/dim]")
    for key, value in state.config.items():
        console.print(f"  {key:<26}: {value}")
    console.print()


@app.command()
def quiz(
    document_id: str = typer.Argument(..., help="Id of the document to quiz on"),
    config: str = typer.Option(
        "config/config.yaml", "--config", "-c", help="Path to config YAML"
    ),
) -> None:
    """Generate a multiple-choice quiz for one document."""
    settings = _bootstrap(config)
    repository = JsonDocumentRepository(settings.repository.documents_dir)

    try:
        document = repository.get(document_id)
    except RepositoryError as exc:
        console.print(f"[red]Cannot load documents:[/red] {exc}")
        raise typer.Exit(1)
    if document is None:
        console.print(f"[red]No document with id {document_id!r}[/red]")
        raise typer.Exit(1)

    generator = _build_generator(settings)
    with console.status(f"[cyan]Writing quiz for {document.title}...[/cyan]"):
        questions = QuizGenerator(generator).generate_quiz(document)
    generator.close()
    logger.debug(f"[CLI] {len(questions)} quiz questions for {document_id}")

    console.print()
    console.print(Panel(f"[bold cyan]{document.title}[/bold cyan] ({document.subject})", expand=False))
    for number, item in enumerate(questions, start=1):
        console.print(f"\n[bold]{number}. {item.question}[/bold]")
        for i, option in enumerate(item.options):
            marker = "[green]*[/green]" if i == item.correct_answer else " "
            console.print(f"   {marker} {'ABCD'[i]}) {option}")
    console.print()


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
