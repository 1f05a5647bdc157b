"""CLI interface for studybuddy diagram and study tools."""

import asyncio
import sys
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from studybuddy.config import load_config, merge_cli_overrides
from studybuddy.diagrams.classify import classify_diagram
from studybuddy.diagrams.extract import extract_diagram, extract_diagram_fallback
from studybuddy.diagrams.mmdc import MermaidCliRenderer, WorkDirArtifacts, save_svg, svg_filename
from studybuddy.diagrams.render import RenderStatus, render_diagram
from studybuddy.diagrams.sanitize import sanitize_aggressive, sanitize_conservative
from studybuddy.library import Library
from studybuddy.quiz import QuizSession, parse_quiz_response
from studybuddy.storage import ApiKeyStore, DocumentContextStore, JsonFileStore, ModelCache
from studybuddy.voice import parse_voice_block, text_to_speak

app = typer.Typer(
    name="studybuddy",
    help="Diagram repair and rendering, quizzes and a local library for study chats.",
)

console = Console()
_stderr_console = Console(stderr=True)

InputPath = Annotated[
    str,
    typer.Argument(help="File to read, or '-' for stdin."),
]


def _read_input(path: str) -> str:
    """Read a file argument, treating '-' as stdin."""
    if path == "-":
        return sys.stdin.read()
    source = Path(path)
    if not source.is_file():
        _stderr_console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    return source.read_text(encoding="utf-8")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from studybuddy import __version__

        console.print(f"studybuddy {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """StudyBuddy - diagram and study tools for study chats."""
    pass


@app.command()
def extract(
    path: InputPath,
    fallback: Annotated[
        bool,
        typer.Option(
            "--fallback",
            help="Use the aggressive sanitizer instead of the conservative one.",
        ),
    ] = False,
) -> None:
    """Print the latest Mermaid diagram in a chat message, sanitized."""
    text = _read_input(path)
    code = extract_diagram_fallback(text) if fallback else extract_diagram(text)
    if code is None:
        _stderr_console.print("[yellow]No diagram found.[/yellow]")
        raise typer.Exit(1)
    print(code)


@app.command()
def sanitize(
    path: InputPath,
    aggressive: Annotated[
        bool,
        typer.Option(
            "--aggressive",
            help="Collapse every shape and arrow to the minimal safe subset.",
        ),
    ] = False,
) -> None:
    """Sanitize raw Mermaid source."""
    code = _read_input(path).strip()
    print(sanitize_aggressive(code) if aggressive else sanitize_conservative(code))


@app.command()
def classify(path: InputPath) -> None:
    """Print the diagram kind of raw Mermaid source."""
    kind = classify_diagram(_read_input(path))
    print(f"{kind.value}\t{kind.label}")


@app.command()
def render(
    path: InputPath,
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Where to write the SVG. Defaults to a timestamped file name.",
        ),
    ] = None,
    command: Annotated[
        Optional[str],
        typer.Option("--command", help="Mermaid CLI executable."),
    ] = None,
    theme: Annotated[
        Optional[str],
        typer.Option("--theme", help="Mermaid theme (neutral, dark, ...)."),
    ] = None,
    no_fallback: Annotated[
        bool,
        typer.Option("--no-fallback", help="Do not retry with the aggressive sanitizer."),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to a .studybuddy.toml file."),
    ] = None,
) -> None:
    """Render the latest diagram in a chat message to SVG.

    Tries the conservatively sanitized diagram first and the aggressively
    sanitized one second. If both fail, the raw diagram code is printed.
    """
    config = merge_cli_overrides(
        load_config(config_path),
        command=command,
        theme=theme,
        fallback=False if no_fallback else None,
    )
    work_dir = config.render_work_dir
    renderer = MermaidCliRenderer(work_dir, command=config.render.command, theme=config.render.theme)
    artifacts = WorkDirArtifacts(work_dir)

    text = _read_input(path)
    outcome = asyncio.run(
        render_diagram(text, renderer, artifacts, fallback=config.diagrams.fallback)
    )

    if outcome.status is RenderStatus.EMPTY:
        _stderr_console.print("[yellow]No diagram found.[/yellow]")
        raise typer.Exit(1)

    if outcome.status is RenderStatus.FAILED:
        _stderr_console.print(
            f"[yellow]Diagram couldn't render ({outcome.error}). Raw code:[/yellow]"
        )
        print(outcome.display_code)
        raise typer.Exit(1)

    target = save_svg(outcome.svg or "", output or Path(svg_filename(outcome.kind)))
    note = " using the simplified fallback" if outcome.status is RenderStatus.FALLBACK else ""
    console.print(f"[green]{outcome.label} saved to {target}{note}[/green]")


@app.command()
def voice(path: InputPath) -> None:
    """Print the text a chat answer should speak aloud."""
    print(text_to_speak(_read_input(path)))


class ChatRole(StrEnum):
    USER = "user"
    MODEL = "model"


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", help="Path to a .studybuddy.toml file."),
]

DocumentOption = Annotated[
    Optional[str],
    typer.Option("--document", help="Document id. Defaults to the current document."),
]


def _open_store(config_path: Path | None) -> JsonFileStore:
    """Persistent store under the configured storage directory."""
    return JsonFileStore(load_config(config_path).storage.path)


def _current_document_id(store: JsonFileStore, document_id: str | None) -> str | None:
    if document_id:
        return document_id
    context = DocumentContextStore(store).get()
    return context.document_id if context else None


@app.command("add-document")
def add_document(
    path: InputPath,
    name: Annotated[
        Optional[str],
        typer.Option("--name", help="Display name. Defaults to the file name."),
    ] = None,
    config_path: ConfigOption = None,
) -> None:
    """Add a document's text to the library and make it the current document."""
    text = _read_input(path).strip()
    if not text:
        _stderr_console.print("[red]Error:[/red] Document is empty")
        raise typer.Exit(1)

    store = _open_store(config_path)
    display_name = name or (Path(path).name if path != "-" else "Document")
    record = Library(store).add_document(display_name, text)
    DocumentContextStore(store).set(text, display_name, record.id)
    console.print(f"[green]Added {display_name} ({record.id})[/green]")


@app.command()
def library(config_path: ConfigOption = None) -> None:
    """List stored documents and quiz results, newest first."""
    store = _open_store(config_path)
    records = Library(store)
    documents = records.documents()
    results = records.quiz_results()
    if not documents and not results:
        console.print("Library is empty.")
        return

    current = DocumentContextStore(store).get()
    current_id = current.document_id if current else None
    console.print(f"[bold]Documents ({len(documents)})[/bold]")
    for doc in documents:
        marker = "*" if doc.id == current_id else " "
        console.print(f"{marker} {doc.id}  {doc.name}  {doc.created_at:%Y-%m-%d %H:%M}")

    console.print(f"[bold]Quiz results ({len(results)})[/bold]")
    for result in results:
        total = len(result.questions)
        console.print(
            f"  {result.document_id}  {result.score}/{total}  {result.created_at:%Y-%m-%d %H:%M}"
        )


@app.command()
def quiz(
    path: InputPath,
    document: DocumentOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Take a quiz from a model's JSON quiz answer and save the result."""
    questions = parse_quiz_response(_read_input(path))
    if not questions:
        _stderr_console.print("[red]Error:[/red] No quiz questions found")
        raise typer.Exit(1)

    session = QuizSession(questions)
    while not session.completed:
        question = session.current
        console.print(f"\n[bold]{session.index + 1}. {question.question}[/bold]")
        for number, option in enumerate(question.options, start=1):
            console.print(f"  {number}) {option}")

        while True:
            choice = typer.prompt("Answer", type=int)
            try:
                correct = session.answer(choice - 1)
            except ValueError:
                console.print(f"Pick a number from 1 to {len(question.options)}.")
                continue
            break

        if correct:
            console.print("[green]Correct![/green]")
        else:
            right = question.options[question.correct_answer]
            console.print(f"[red]Incorrect.[/red] The answer is: {right}")
        if question.explanation:
            console.print(question.explanation)
        session.advance()

    console.print(f"\nScore: {session.score}/{len(questions)}. {session.verdict()}")

    store = _open_store(config_path)
    document_id = _current_document_id(store, document) or "general"
    Library(store).save_quiz_result(document_id, session.score, session.results())
    console.print(f"Saved quiz result for {document_id}.")


@app.command()
def record(
    role: Annotated[ChatRole, typer.Argument(help="Who wrote the message.")],
    path: InputPath,
    document: DocumentOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Save a chat message under the current document (or general chat)."""
    content = _read_input(path).strip()
    if not content:
        _stderr_console.print("[red]Error:[/red] Message is empty")
        raise typer.Exit(1)

    store = _open_store(config_path)
    document_id = _current_document_id(store, document)
    Library(store).add_chat(document_id, role.value, content)
    console.print(f"Saved {role.value} message to {document_id or 'general chat'}.")


@app.command()
def history(
    document: DocumentOption = None,
    config_path: ConfigOption = None,
) -> None:
    """Print the chat history of the current document, oldest first.

    Model answers are shown without their spoken-summary block.
    """
    store = _open_store(config_path)
    document_id = _current_document_id(store, document)
    chats = Library(store).chats_for(document_id)
    if not chats:
        console.print("No messages yet.")
        return
    for chat in chats:
        text = parse_voice_block(chat.content).display if chat.role == "model" else chat.content
        print(f"{chat.role}: {text}")


@app.command()
def settings(
    api_key: Annotated[
        Optional[str],
        typer.Option("--api-key", help="Store a Gemini API key."),
    ] = None,
    clear_key: Annotated[
        bool,
        typer.Option("--clear-key", help="Forget the stored API key."),
    ] = False,
    model: Annotated[
        Optional[str],
        typer.Option("--model", help="Remember a working model (needs --endpoint)."),
    ] = None,
    endpoint: Annotated[
        Optional[str],
        typer.Option("--endpoint", help="API endpoint version for --model."),
    ] = None,
    clear_model: Annotated[
        bool,
        typer.Option("--clear-model", help="Forget the cached working model."),
    ] = False,
    config_path: ConfigOption = None,
) -> None:
    """Show or change the stored API key, working model and current document."""
    if (model is None) != (endpoint is None):
        _stderr_console.print("[red]Error:[/red] --model and --endpoint go together")
        raise typer.Exit(1)

    store = _open_store(config_path)
    keys = ApiKeyStore(store)
    models = ModelCache(store)

    if clear_key:
        keys.clear()
    elif api_key is not None:
        keys.set(api_key)
    if clear_model:
        models.clear()
    elif model is not None and endpoint is not None:
        models.set(model, endpoint)

    working = models.get()
    document = DocumentContextStore(store).get()
    console.print(f"API key: {'set' if keys.has_key else 'not set'}")
    console.print(
        f"Working model: {f'{working.model} ({working.endpoint})' if working else 'none'}"
    )
    console.print(f"Current document: {document.name if document else 'none'}")
    console.print(f"Store: {store.path}")


if __name__ == "__main__":
    app()
