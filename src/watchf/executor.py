"""Running the configured commands for a matched event."""

import logging
import subprocess
from typing import IO, List, Optional, Sequence, Union

from .exceptions import CommandError
from .models import RawEvent

logger = logging.getLogger(__name__)

# Substitution tokens available in command templates.
VAR_FILENAME = "%f"
VAR_EVENT_TYPE = "%t"

_Stream = Optional[Union[int, IO]]


def evaluate_variables(command: str, event: RawEvent) -> str:
    """Replace the path and event-type tokens in a command template."""
    command = command.replace(VAR_FILENAME, event.path)
    command = command.replace(VAR_EVENT_TYPE, event.kind.value)
    return command


def split_command(command: str) -> List[str]:
    """
    Split a command line on whitespace.

    There is no quoting or escaping: a path containing spaces becomes
    several arguments.
    """
    return command.split()


class Executor:
    """
    Runs command templates synchronously.

    Output of the child processes goes to the given streams, which default
    to this process's own stdout and stderr.
    """

    def __init__(self, stdout: _Stream = None, stderr: _Stream = None):
        self.stdout = stdout
        self.stderr = stderr

    def execute(self, command: str, event: RawEvent) -> None:
        """
        Run a single command template for an event.

        Raises:
            CommandError: If the command cannot be launched or exits non-zero
        """
        argv = split_command(evaluate_variables(command, event))
        if not argv:
            raise CommandError(f"exec: {command!r} is empty", argv)

        logger.info(str(event))
        logger.info(f'exec: "{" ".join(argv)}"')
        try:
            result = subprocess.run(argv, stdout=self.stdout, stderr=self.stderr)
        except OSError as e:
            raise CommandError(f'exec: "{" ".join(argv)}" failed, err: {e}', argv) from e

        if result.returncode != 0:
            raise CommandError(
                f'exec: "{" ".join(argv)}" failed, err: exit status {result.returncode}',
                argv,
                result.returncode,
            )

    def run(self, commands: Sequence[str], event: RawEvent, continue_on_error: bool = False) -> bool:
        """
        Run every command in order for an event.

        A failing command is logged. Remaining commands are skipped unless
        continue_on_error is set.

        Returns:
            True if every command that ran succeeded
        """
        ok = True
        for command in commands:
            try:
                self.execute(command, event)
            except CommandError as e:
                logger.error(str(e))
                ok = False
                if not continue_on_error:
                    break
        return ok
