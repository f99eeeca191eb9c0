"""Variable and stream state for one lexical scope of the shell.

A top-level Context persists for the life of the shell and holds the global
variables. Child contexts are made with Context.copy() for subshells,
function calls, command substitutions and individual commands.
"""

import logging
import os
from collections.abc import Iterable
from typing import IO, TYPE_CHECKING

from shellscope.errors import ShellFailure
from shellscope.expansion import command_substitution, expand
from shellscope.redirection import Opener, Redirection, evaluate_redirections
from shellscope.streams import (
    StreamTable,
    close_stream_holders,
    copy_stream_holders,
    default_stream_holders,
)
from shellscope.variables import VariableStore
from shellscope.words import (
    CommandLine,
    Word,
    expand_tilde,
    expand_words,
    split_fields,
    split_words,
    unquote,
)

if TYPE_CHECKING:
    from shellscope.executor import Interpreter

logger = logging.getLogger(__name__)

NOCLOBBER = "NOCLOBBER"


class Context:
    """Shell variables, special parameters and the fd table of one scope."""

    def __init__(
        self,
        interpreter: "Interpreter | None" = None,
        holders: StreamTable | None = None,
    ) -> None:
        self.interpreter = interpreter
        self.holders: StreamTable = holders if holders is not None else default_stream_holders()
        self.variables = VariableStore()
        self.command: str = ""
        self.args: list[str] = []
        self.last_return_code: int = 0
        self.shell_pid: int = os.getpid()
        self.last_async_pid: int = 0
        self.options: str = ""
        self.tildes: bool = True
        self.globbing: bool = True

    def copy(self) -> "Context":
        """Make a child context.

        Variables are deep-copied and the stream table is aliased, so the
        child never closes a stream the parent owns.
        """
        child = Context(self.interpreter, copy_stream_holders(self.holders))
        child.variables = self.variables.copy()
        child.command = self.command
        child.args = list(self.args)
        child.last_return_code = self.last_return_code
        child.shell_pid = self.shell_pid
        child.last_async_pid = self.last_async_pid
        child.options = self.options
        child.tildes = self.tildes
        child.globbing = self.globbing
        return child

    def close(self) -> None:
        """Close the streams this scope owns."""
        close_stream_holders(self.holders)

    def __enter__(self) -> "Context":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Variables

    def set_variable(self, name: str, value: str) -> None:
        self.variables.set(name, value)

    def unset_variable(self, name: str) -> None:
        self.variables.unset(name)

    def set_exported(self, name: str, exported: bool = True) -> None:
        self.variables.set_exported(name, exported)

    def is_variable_set(self, name: str) -> bool:
        return self.variables.is_set(name)

    def variable(self, name: str) -> str | None:
        return self.variables.lookup(name)

    def exported_variables(self) -> dict[str, str]:
        return self.variables.exported()

    def set_positional(self, command: str, args: Iterable[str]) -> None:
        self.command = command
        self.args = list(args)

    def is_noclobber(self) -> bool:
        return self.variables.is_set(NOCLOBBER)

    def perform_assignments(self, assignments: Iterable[str]) -> None:
        """Apply NAME=VALUE assignment words; values are expanded first."""
        for assignment in assignments:
            pos = assignment.find("=")
            if pos <= 0:
                raise ShellFailure(f"misplaced '=' in assignment: {assignment!r}")
            name = assignment[:pos]
            self.set_variable(name, unquote(self.expand(assignment[pos + 1 :])))

    # Expansion

    def expand(self, text: str) -> str:
        return expand(text, self)

    def split(self, text: str) -> list[str]:
        return split_words(text)

    def expand_and_split(self, tokens: str | Iterable[str]) -> CommandLine:
        """Expand, split, tilde-expand and glob word tokens into a command line."""
        if isinstance(tokens, str):
            tokens = [tokens]
        fields: list[Word] = []
        for token in tokens:
            split_fields(self.expand(token), fields)
        words = expand_words(fields, tildes=self.tildes, globbing=self.globbing)
        return CommandLine.from_words(words)

    def run_backtick_command(self, command: str) -> str:
        return command_substitution(command, self)

    # Streams

    def get_stream(self, index: int) -> IO | None:
        if index < 0:
            raise ShellFailure("negative stream index")
        if index >= len(self.holders):
            return None
        holder = self.holders[index]
        return holder.stream if holder is not None else None

    def evaluate_redirections(
        self,
        redirects: Iterable[Redirection] | None,
        holders: StreamTable | None = None,
        opener: Opener = open,
    ) -> StreamTable:
        """Return the fd table a command runs with after its redirections.

        Works on a copy of this context's table unless holders is given.
        """
        if holders is None:
            holders = copy_stream_holders(self.holders)
        return evaluate_redirections(
            redirects,
            holders,
            noclobber=self.is_noclobber(),
            opener=opener,
            expand_target=self._expand_target,
        )

    def _expand_target(self, word: str) -> str:
        target = unquote(self.expand(word))
        return expand_tilde(target) if self.tildes and word.startswith("~") else target

    # Execution

    def execute(self, command: CommandLine, streams: StreamTable) -> int:
        if self.interpreter is None:
            raise ShellFailure("no interpreter to execute commands")
        self.last_return_code = self.interpreter.execute(command, self, streams)
        return self.last_return_code

    def fork(self, command: CommandLine, streams: StreamTable):
        if self.interpreter is None:
            raise ShellFailure("no interpreter to fork commands")
        process = self.interpreter.fork(command, self, streams)
        self.last_async_pid = process.pid
        logger.debug("forked %s as pid %d", command.command_name, process.pid)
        return process
