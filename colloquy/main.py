"""Colloquy CLI entry point and dependency wiring."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click

from colloquy.capabilities.expressions import SimpleExpressionEvaluator
from colloquy.capabilities.templates import PathTemplateRenderer
from colloquy.config import ColloquySettings, build_storage, load_config
from colloquy.core.logging import setup_logging
from colloquy.core.turn_controller import TurnController
from colloquy.errors import ColloquyError, DialogDefinitionError
from colloquy.loader import LoadedDialogs, load_dialogs
from colloquy.models.messages import Activity
from colloquy.models.turns import TurnStatus

CONSOLE_CHANNEL = "console"
_QUIT_COMMANDS = {"/quit", "/exit"}


def _read_dialogs(path: Path) -> LoadedDialogs:
    try:
        return load_dialogs(path.read_text(encoding="utf-8"))
    except DialogDefinitionError as exc:
        raise click.ClickException(f"{path}: {exc}") from exc


async def build_controller(settings: ColloquySettings, loaded: LoadedDialogs) -> TurnController:
    storage = await build_storage(settings)
    return TurnController(
        loaded.registry,
        storage,
        renderer=PathTemplateRenderer(),
        recognizer=loaded.recognizer,
        expressions=SimpleExpressionEvaluator(),
        max_steps_per_turn=settings.engine.max_steps_per_turn,
        max_prompt_attempts=settings.engine.max_prompt_attempts,
    )


def _read_line(prompt: str) -> str | None:
    """Blocking readline, run inside an executor thread."""
    try:
        return input(prompt)
    except EOFError:
        return None


async def _chat(
    settings: ColloquySettings, loaded: LoadedDialogs, conversation_id: str, user_id: str
) -> None:
    controller = await build_controller(settings, loaded)
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, _read_line, "you> ")
        if line is None or line.strip().lower() in _QUIT_COMMANDS:
            break
        activity = Activity(
            channel_id=CONSOLE_CHANNEL,
            conversation_id=conversation_id,
            user_id=user_id,
            text=line,
        )
        try:
            result = await controller.process(activity)
        except ColloquyError as exc:
            click.echo(f"[error] {exc}", err=True)
            continue
        for text in result.texts:
            click.echo(f"bot> {text}")
        if result.status == TurnStatus.unrecognized:
            click.echo("[no rule matched]", err=True)


@click.group()
def cli() -> None:
    """Colloquy dialog engine CLI."""
    setup_logging(logging.WARNING)


@cli.command("chat")
@click.option(
    "--dialogs",
    "dialogs_path",
    required=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
)
@click.option("--conversation", "conversation_id", default="local", show_default=True)
@click.option("--user", "user_id", default="local-user", show_default=True)
def chat_command(
    dialogs_path: Path, config_path: Path | None, conversation_id: str, user_id: str
) -> None:
    """Talk to a dialog definition on the console."""
    settings = load_config(config_path)
    setup_logging(settings.logging.level, settings.logging.json_output)
    loaded = _read_dialogs(dialogs_path)
    try:
        asyncio.run(_chat(settings, loaded, conversation_id, user_id))
    except KeyboardInterrupt:
        click.echo("Bye.")


@cli.command("validate")
@click.argument("dialogs_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
def validate_command(dialogs_path: Path) -> None:
    """Load a dialog definition and check every dialog reference."""
    loaded = _read_dialogs(dialogs_path)
    registry = loaded.registry
    click.echo(f"{dialogs_path}: {len(registry)} dialog(s), root {registry.root_id}")


__all__ = ["build_controller", "cli"]


if __name__ == "__main__":
    cli()
