"""Interactive confirmation prompt."""

import enum
import sys

import click

from . import colors

_CONFIRM_KEYS = {"y", "Y", "\r", "\n"}
_CANCEL_KEYS = {"n", "N", "q", "\x1b"}


class Decision(enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


def confirm(command: str, explanation: str) -> Decision:
    """Show ``command`` with its explanation and wait for a y/n key.

    ``y`` or Enter confirms; ``n``, ``q``, Escape or Ctrl-C cancel.  Other
    keys are ignored.  Outside a terminal a full line is read instead;
    ``y``, ``yes`` or an empty line confirm, anything else (including end
    of input) cancels.
    """
    click.echo(explanation)
    click.echo(f"Command: {colors.command(command)}")
    click.echo(colors.prompt("Execute this command? (Y/n): "), nl=False)
    stdin = sys.stdin
    if not stdin.isatty():
        line = stdin.readline()
        click.echo()
        # end of input without a newline is not an Enter press
        if line and line.strip().lower() in ("y", "yes", ""):
            return Decision.CONFIRMED
        click.echo("Cancelled.")
        return Decision.CANCELLED
    while True:
        try:
            key = click.getchar()
        except (KeyboardInterrupt, EOFError):
            key = "q"
        if key in _CONFIRM_KEYS:
            click.echo()
            return Decision.CONFIRMED
        if key in _CANCEL_KEYS:
            click.echo()
            click.echo("Cancelled.")
            return Decision.CANCELLED
