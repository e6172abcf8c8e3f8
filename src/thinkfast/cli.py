"""
Command-line interface for the ThinkFast AI opponent.

Lists the model catalog, downloads and deletes model artifacts, and plays a
round of questions against the local opponent.
"""

from __future__ import annotations

import asyncio
import json
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .logging_utils import configure_logging
from .opponent.artifacts import ArtifactStore
from .opponent.catalog import AVAILABLE_MODELS, ModelDefinition, get_definition
from .opponent.config import OpponentConfig
from .opponent.config_loader import load_opponent_config
from .opponent.controller import AIOpponentController, OpponentAnswer
from .opponent.errors import OpponentError
from .trivia.client import TriviaAPIError, TriviaClient
from .trivia.models import TriviaQuestion

app = typer.Typer(
    name="thinkfast",
    help="ThinkFast AI opponent - manage local models and play against them",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def _main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    configure_logging("thinkfast", level="DEBUG" if verbose else None, include_console=False)


def _load_config() -> OpponentConfig:
    return load_opponent_config()


def _build_controller(cfg: OpponentConfig) -> AIOpponentController:
    return AIOpponentController.from_config(cfg)


def _build_trivia_client(cfg: OpponentConfig) -> TriviaClient:
    return TriviaClient(base_url=cfg.trivia_base_url, timeout=cfg.trivia_timeout_s)


def _resolve(model_id: str) -> ModelDefinition:
    try:
        return get_definition(model_id)
    except KeyError as exc:
        console.print(f"[red]{escape(exc.args[0])}[/red]")
        known = ", ".join(model.id for model in AVAILABLE_MODELS)
        console.print(f"Available models: {known}")
        raise typer.Exit(1)


def _fail(exc: OpponentError) -> None:
    console.print(f"[red]{escape(exc.message)}[/red]")
    if exc.hint:
        console.print(f"[yellow]Hint:[/yellow] {escape(exc.hint)}")
    raise typer.Exit(1)


def _progress_bar() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    )


@app.command("models")
def cmd_models(
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of a table"),
) -> None:
    """List the model catalog with local download status."""
    store = ArtifactStore(_load_config().models_dir)
    rows = [
        {
            "id": model.id,
            "name": model.name,
            "downloaded": store.is_downloaded(model),
            "size": store.size_label(model),
            "description": model.description,
        }
        for model in AVAILABLE_MODELS
    ]
    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="ThinkFast models")
    table.add_column("ID", no_wrap=True)
    for column in ("Name", "Downloaded", "Size", "Description"):
        table.add_column(column)
    for row in rows:
        table.add_row(
            row["id"],
            row["name"],
            "yes" if row["downloaded"] else "no",
            row["size"],
            row["description"],
        )
    console.print(table)


@app.command("download")
def cmd_download(model_id: str = typer.Argument(..., help="Catalog model id")) -> None:
    """Download (or resume) a model artifact."""
    definition = _resolve(model_id)
    cfg = _load_config()
    controller = _build_controller(cfg)

    async def _run():
        with _progress_bar() as progress:
            task_id = progress.add_task(definition.name, total=None)

            def _on_progress(fraction: Optional[float]) -> None:
                if fraction is None:
                    progress.update(task_id, total=None)
                else:
                    progress.update(task_id, total=100, completed=fraction * 100)

            try:
                return await controller.coordinator.ensure_file(
                    definition.url, controller.store.path_for(definition), _on_progress
                )
            finally:
                await controller.aclose()

    try:
        path = asyncio.run(_run())
    except OpponentError as exc:
        _fail(exc)
    console.print(f"[green]Downloaded[/green] {definition.name} -> {escape(str(path))}")


@app.command("delete")
def cmd_delete(model_id: str = typer.Argument(..., help="Catalog model id")) -> None:
    """Delete a downloaded model (and any partial download)."""
    definition = _resolve(model_id)
    cfg = _load_config()
    controller = _build_controller(cfg)

    async def _run() -> bool:
        try:
            return await controller.delete_model(definition)
        finally:
            await controller.aclose()

    if asyncio.run(_run()):
        console.print(f"Deleted {definition.name}")
    else:
        console.print(f"{definition.name} is not downloaded")


def _answer_rows(
    questions: List[TriviaQuestion], answers: List[OpponentAnswer]
) -> Table:
    table = Table(title="Opponent answers")
    for column in ("#", "Difficulty", "Question", "Answer", "Correct", "Confidence", "Time"):
        table.add_column(column)
    for number, (question, answer) in enumerate(zip(questions, answers), start=1):
        table.add_row(
            str(number),
            question.difficulty,
            escape(question.decoded_question),
            escape(answer.answer),
            "yes" if answer.is_correct else "no",
            f"{answer.confidence:.0%}",
            f"{answer.thinking_time:.1f}s",
        )
    return table


@app.command("ask")
def cmd_ask(
    model_id: Optional[str] = typer.Argument(None, help="Catalog model id"),
    amount: int = typer.Option(5, "--amount", "-n", min=1, max=50),
    difficulty: Optional[str] = typer.Option(None, "--difficulty", help="easy|medium|hard"),
    category: Optional[str] = typer.Option(None, "--category", help="Open Trivia DB category id"),
) -> None:
    """Fetch trivia questions and let the opponent answer them."""
    cfg = _load_config()
    definition = _resolve(model_id or cfg.default_model_id)
    client = _build_trivia_client(cfg)
    try:
        questions = client.fetch_questions(amount, category=category, difficulty=difficulty)
    except TriviaAPIError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)
    finally:
        client.close()

    controller = _build_controller(cfg)

    async def _run() -> List[OpponentAnswer]:
        answers: List[OpponentAnswer] = []
        try:
            await controller.configure(definition)
            with _progress_bar() as progress:
                task_id = progress.add_task(f"Preparing {definition.name}", total=None)

                def _on_progress(fraction: Optional[float]) -> None:
                    if fraction is not None:
                        progress.update(task_id, total=100, completed=fraction * 100)

                await controller.prepare(_on_progress)
            for question in questions:
                answers.append(await controller.ensure_and_generate_answer(question))
        finally:
            await controller.aclose()
        return answers

    try:
        answers = asyncio.run(_run())
    except OpponentError as exc:
        _fail(exc)
    console.print(_answer_rows(questions, answers))
    correct = sum(1 for answer in answers if answer.is_correct)
    console.print(f"Opponent score: {correct}/{len(answers)}")


def main() -> None:  # pragma: no cover - console script entry
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
