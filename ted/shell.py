"""Run a chosen command in the user's terminal."""

import logging
import subprocess

import click

from . import colors

logger = logging.getLogger(__name__)


class ShellError(Exception):
    """Raised when the shell itself could not be started."""


def run(command: str) -> int:
    """Execute ``command`` with ``sh -c`` and return its exit status.

    The child inherits stdin, stdout and stderr so interactive commands
    behave as if typed directly.
    """
    click.echo(colors.running(f"Running `{command}`"))
    logger.debug("Executing %r", command)
    try:
        proc = subprocess.run(["sh", "-c", command])
    except OSError as exc:
        raise ShellError(f"failed to start shell: {exc}") from exc
    logger.debug("Command exited with status %d", proc.returncode)
    return proc.returncode
