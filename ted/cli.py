"""Command line interface for ted.

This module defines the ``ted`` command using the ``click`` library.
It exposes several subcommands:

``ted agent <query>``
    Generate a single command from natural language, show it with an
    explanation and run it after confirmation.  ``--yes`` skips the
    confirmation for commands that pass the safety check.

``ted ask <question>``
    Show three alternative commands and run the one selected by number.

``ted history``
    Browse the last few interactions.  Enter a number for details,
    ``delete`` to drop the most recent entry or ``clear`` to drop all.

``ted settings``
    Set the Gemini API key, model and temperature.  Writes
    ``~/.ted/config.yaml``.

``ted version``
    Print the version.

``ted serve``
    Launch a FastAPI server exposing the resolvers and history as a
    JSON API.
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from . import __version__, colors, history, shell, ui
from .config import AVAILABLE_MODELS, DEFAULT_MODEL, ConfigError, load_config, save_config
from .providers import BaseProvider, ProviderError, get_provider
from .validator import validate_command

logger = logging.getLogger(__name__)


def _load_provider() -> BaseProvider:
    config = load_config()
    try:
        return get_provider(config)
    except (ValueError, ProviderError) as exc:
        raise click.ClickException(str(exc))


def _run(command: str) -> int:
    try:
        return shell.run(command)
    except shell.ShellError as exc:
        raise click.ClickException(str(exc))


def _record(kind: str, query: str, response: str, selected: Optional[str]) -> None:
    """Append an interaction to the history log.

    The command has already run by the time this is called, so a storage
    failure is only reported.
    """
    try:
        with history.load() as log:
            log.add_entry(kind, query, response, selected)
    except history.HistoryError as exc:
        logger.debug("History write failed", exc_info=True)
        click.echo(colors.settings_warning(f"Warning: Failed to save to history: {exc}"))


def _finish(status: int) -> None:
    if status != 0:
        raise click.ClickException(f"command failed with exit status {status}")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="ted", message="%(prog)s version v%(version)s")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Ted is the fastest way to get answers in the terminal.

    \b
    Examples:
      ted agent how to make a python virtual environment
      ted ask how to find large files
      ted history
      ted settings
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("query", nargs=-1, type=str)
@click.option("--yes", "auto_yes", is_flag=True, help="Run the command without asking if it passes the safety check.")
def agent(query: tuple[str, ...], auto_yes: bool) -> None:
    """Generate a command from natural language and optionally run it.

    \b
    Examples:
      ted agent how to make a python virtual environment
      ted agent list all files in current directory
      ted agent compress a folder into a zip file
    """
    query_text = " ".join(query).strip()
    if not query_text:
        raise click.UsageError("please provide a query. Example: ted agent how to make a python3 venv")
    provider = _load_provider()
    click.echo(colors.thinking("Thinking..."))
    try:
        response = provider.generate_agent_command(query_text)
    except ProviderError as exc:
        raise click.ClickException(f"error generating command: {exc}")
    finally:
        provider.close()

    valid, reason = validate_command(response.command)
    if auto_yes:
        if not valid:
            raise click.ClickException(
                f"refusing to run `{response.command}` without confirmation: {reason}"
            )
        click.echo(response.explanation)
    else:
        if not valid:
            click.echo(colors.settings_warning(f"Warning: {reason}"))
        if ui.confirm(response.command, response.explanation) is ui.Decision.CANCELLED:
            click.echo("Command execution cancelled.")
            return

    status = _run(response.command)
    _record("agent", query_text, response.explanation, response.command)
    _finish(status)


@cli.command()
@click.argument("question", nargs=-1, type=str)
def ask(question: tuple[str, ...]) -> None:
    """Get several command suggestions for a question.

    \b
    Examples:
      ted ask how to make a python virtual environment
      ted ask how to find large files
      ted ask how to check disk usage
    """
    question_text = " ".join(question).strip()
    if not question_text:
        raise click.UsageError("please provide a question. Example: ted ask how to make a python venv")
    provider = _load_provider()
    click.echo(colors.thinking("Thinking...") + "\n")
    try:
        response = provider.generate_ask_commands(question_text)
    except ProviderError as exc:
        raise click.ClickException(f"error generating commands: {exc}")
    finally:
        provider.close()

    for i, option in enumerate(response.commands, start=1):
        click.echo(f"{i}. {colors.command(f'`{option.command}`')} - {option.description}")

    count = len(response.commands)
    choice = click.prompt(
        f"\nSelect an option (1-{count}) or press Enter to exit",
        default="",
        show_default=False,
    ).strip()
    if not choice:
        return
    try:
        index = int(choice)
    except ValueError:
        index = 0
    if not 1 <= index <= count:
        raise click.ClickException("invalid selection")

    selected = response.commands[index - 1].command
    status = _run(selected)
    _record("ask", question_text, response.format(), selected)
    _finish(status)


def _echo_entry(number: int, entry: history.Entry) -> None:
    click.echo(colors.entry(f"{number}."))
    click.echo(colors.command(f"[{entry.command_kind}]"))
    click.echo(colors.query(entry.query))
    click.echo(colors.time(entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M")))
    shown = entry.selected if entry.selected is not None else entry.response
    click.echo(colors.selected_option(f"`{shown}`"))


def _echo_details(number: int, entry: history.Entry) -> None:
    click.echo()
    click.echo(colors.title(f"Entry {number} Details"))
    _echo_entry(number, entry)
    if entry.selected is not None and entry.response != entry.selected:
        # older records stored escaped newlines
        full = entry.response.replace("\\n", "\n").strip()
        click.echo()
        click.echo(f"{colors.full_response('Full Response')}:")
        click.echo(colors.detail(colors.highlight_commands(full)))


@cli.command(name="history")
def history_cmd() -> None:
    """View and manage recent command history."""
    try:
        log = history.load()
    except history.HistoryError as exc:
        raise click.ClickException(f"error loading history: {exc}")
    with log:
        try:
            entries = log.get_entries()
        except history.HistoryError as exc:
            raise click.ClickException(f"error retrieving history entries: {exc}")

        click.echo(colors.title("Ted Command History"))
        if not entries:
            click.echo(colors.error("No command history found."))
            click.echo(colors.query(
                "Try running 'ted ask [question]' or 'ted agent [query]' first to build up some history."
            ))
            return

        click.echo(colors.header(f"Total: {len(entries)} entries"))
        for number, entry in enumerate(entries, start=1):
            _echo_entry(number, entry)
            click.echo()

        click.echo()
        click.echo(colors.prompt("Actions:"))
        click.echo(f"• Enter a number (1-{len(entries)}) to view details")
        click.echo("• Type 'delete' to delete most recent entry")
        click.echo("• Type 'clear' to delete all history")
        click.echo("• Press Enter to exit")
        action = click.prompt(
            "\n" + colors.prompt("Choose an action"),
            default="",
            show_default=False,
        ).strip()

        if not action:
            click.echo(colors.success("Exited"))
        elif action == "delete":
            try:
                log.delete_most_recent()
            except history.HistoryError as exc:
                click.echo(colors.error(str(exc)))
                return
            click.echo(colors.success("Most recent entry deleted successfully!"))
        elif action == "clear":
            try:
                log.clear()
            except history.HistoryError as exc:
                click.echo(colors.error(f"Error clearing history: {exc}"))
                return
            click.echo(colors.success("All history cleared successfully!"))
        else:
            try:
                number = int(action)
            except ValueError:
                number = 0
            if not 1 <= number <= len(entries):
                click.echo(colors.error(
                    f"Invalid selection. Please enter a number between 1 and {len(entries)}."
                ))
                return
            _echo_details(number, entries[number - 1])


def _prompt_line(label: str, hide_input: bool = False) -> str:
    return click.prompt(
        colors.prompt(label), default="", show_default=False, hide_input=hide_input
    ).strip()


@cli.command()
def settings() -> None:
    """Configure the Gemini API key, model and temperature."""
    config = load_config(apply_env=False)

    click.echo(f"{colors.settings_label('Current Gemini API key:')} ", nl=False)
    click.echo(_key_status(config))
    api_key = _prompt_line("Enter new Gemini API key (or press Enter to keep current)", hide_input=True)
    if api_key:
        config["gemini_api_key"] = api_key
        click.echo(colors.success("✓ Gemini API key updated"))

    click.echo()
    click.echo(f"{colors.settings_label('Current model:')} {colors.settings_value(config['model'])}")
    click.echo(colors.header("Available models:"))
    for i, model in enumerate(AVAILABLE_MODELS, start=1):
        line = "  " + colors.settings_option(f"{i}. {model}")
        if model == DEFAULT_MODEL:
            line += " " + colors.settings_configured("(default)")
        click.echo(line)
    choice = _prompt_line(f"Enter number (1-{len(AVAILABLE_MODELS)}) or press Enter to keep current")
    if choice:
        if choice.isdigit() and 1 <= int(choice) <= len(AVAILABLE_MODELS):
            config["model"] = AVAILABLE_MODELS[int(choice) - 1]
            click.echo(colors.success("✓ Model updated"))
        else:
            click.echo(colors.settings_warning(
                f"⚠️  Invalid selection '{choice}'. Please enter a number between 1 and {len(AVAILABLE_MODELS)}."
            ))

    click.echo()
    click.echo(f"{colors.settings_label('Current temperature:')} {config['temperature']:.2f}")
    click.echo(colors.header("Temperature affects AI response determinism:"))
    click.echo("  " + colors.settings_info("• Lower values (0.0-0.3): More deterministic, consistent responses"))
    click.echo("  " + colors.settings_info("• Higher values (0.4-1.0): More creative, varied responses"))
    click.echo("  " + colors.settings_info("• Default: 0.3 (recommended for command generation)"))
    raw = _prompt_line("Enter temperature (0.0-1.0) or press Enter to keep current")
    if raw:
        try:
            temperature = float(raw)
        except ValueError:
            temperature = -1.0
        if 0.0 <= temperature <= 1.0:
            config["temperature"] = temperature
            click.echo(colors.success("✓ Temperature updated"))
        else:
            click.echo(colors.settings_warning(
                "⚠️  Invalid temperature. Please enter a value between 0.0 and 1.0."
            ))

    try:
        path = save_config(config)
    except ConfigError as exc:
        raise click.ClickException(f"error saving config: {exc}")

    click.echo()
    click.echo(colors.success("✓ Settings saved successfully!"))
    click.echo(f"{colors.settings_info('Config location:')} {colors.settings_value(str(path.parent))}")
    click.echo()
    click.echo(colors.header("Current configuration:"))
    click.echo(f"  {colors.settings_label('Gemini API Key:')} {_key_status(config)}")
    click.echo(f"  {colors.settings_label('Model:')} {colors.settings_value(config['model'])}")
    click.echo(f"  {colors.settings_label('Temperature:')} {config['temperature']:.2f}")
    if not config.get("gemini_api_key"):
        click.echo()
        click.echo(colors.settings_warning(
            "⚠️  Warning: Gemini API key is not set. You'll need to configure it to use ted."
        ))
        click.echo(colors.settings_info("Get your API key from: https://aistudio.google.com/app/apikey"))


def _key_status(config: dict) -> str:
    if config.get("gemini_api_key"):
        return colors.settings_configured("[CONFIGURED]")
    return colors.settings_not_set("[NOT SET]")


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"ted version v{__version__}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address for the API server")
@click.option("--port", default=5005, type=int, help="Port for the API server")
def serve(host: str, port: int) -> None:
    """Run a JSON API exposing command generation and history."""
    # imported here so the interactive commands start quickly
    import uvicorn

    from .server import create_app

    click.echo(f"ted API server running on http://{host}:{port}")
    uvicorn.run(create_app(), host=host, port=port)


def main() -> None:
    cli(prog_name="ted")


if __name__ == "__main__":
    main()
