"""Run expanded command lines as child processes."""

import contextlib
import logging
import os
import subprocess
import sys
from typing import IO, Protocol

from shellscope.context import Context
from shellscope.errors import ShellError, ShellSyntaxError
from shellscope.streams import StreamHolder, StreamTable, copy_stream_holders, streams_of
from shellscope.words import CommandLine

logger = logging.getLogger(__name__)


class Interpreter(Protocol):
    """What a Context needs from whatever actually runs commands."""

    def interpret(
        self, script: str, capture: IO[str] | None = None, parent: Context | None = None
    ) -> int: ...

    def execute(self, command: CommandLine, ctx: Context, streams: StreamTable) -> int: ...

    def fork(self, command: CommandLine, ctx: Context, streams: StreamTable) -> subprocess.Popen: ...


class SubprocessInterpreter:
    """Interpret a line as a single simple command run with subprocess.

    There is no parser here: the whole script is expanded and split into one
    command line. Errors are reported on stderr and turned into an exit
    status, the way a shell's top level would.
    """

    def __init__(self, prog: str = "shellscope") -> None:
        self.prog = prog

    def interpret(
        self, script: str, capture: IO[str] | None = None, parent: Context | None = None
    ) -> int:
        ctx = parent.copy() if parent is not None else Context(self)
        with ctx:
            try:
                command = ctx.expand_and_split(script)
            except ShellSyntaxError as e:
                print(f"{self.prog}: {e}", file=sys.stderr)
                return 2
            except ShellError as e:
                print(f"{self.prog}: {e}", file=sys.stderr)
                return 1

            if command.is_empty():
                return 0

            streams = copy_stream_holders(ctx.holders)
            if capture is not None:
                if len(streams) < 2:
                    streams.extend([None] * (2 - len(streams)))
                streams[1] = StreamHolder(capture)
            return ctx.execute(command, streams)

    def execute(self, command: CommandLine, ctx: Context, streams: StreamTable) -> int:
        """Run command to completion with the given fd table."""
        stdin, stdout, stderr = _standard_streams(streams)
        kwargs: dict = {
            "stdout": _target(stdout),
            "stderr": _target(stderr),
        }
        stdin_target = _target(stdin)
        if stdin_target is subprocess.PIPE:
            try:
                kwargs["input"] = stdin.read()
            except (OSError, ValueError):
                logger.debug("stdin %r is not readable, using /dev/null", stdin)
                kwargs["stdin"] = subprocess.DEVNULL
        else:
            kwargs["stdin"] = stdin_target
        for stream in (stdout, stderr):
            _flush(stream)

        logger.debug("running %s", command.argv)
        try:
            result = subprocess.run(command.argv, text=True, env=_environment(ctx), **kwargs)
        except FileNotFoundError:
            print(f"{self.prog}: command not found: {command.command_name}", file=sys.stderr)
            return 127
        except PermissionError:
            print(f"{self.prog}: permission denied: {command.command_name}", file=sys.stderr)
            return 126

        if kwargs["stdout"] is subprocess.PIPE and result.stdout:
            stdout.write(result.stdout)
        if kwargs["stderr"] is subprocess.PIPE and result.stderr:
            stderr.write(result.stderr)
        return result.returncode

    def fork(self, command: CommandLine, ctx: Context, streams: StreamTable) -> subprocess.Popen:
        """Start command without waiting for it.

        Streams that are not backed by a file descriptor are left as pipes on
        the returned Popen for the caller to drain.
        """
        stdin, stdout, stderr = _standard_streams(streams)
        for stream in (stdout, stderr):
            _flush(stream)
        try:
            return subprocess.Popen(
                command.argv,
                stdin=_target(stdin),
                stdout=_target(stdout),
                stderr=_target(stderr),
                text=True,
                env=_environment(ctx),
            )
        except FileNotFoundError as e:
            raise ShellError(f"command not found: {command.command_name}") from e


def _standard_streams(streams: StreamTable) -> tuple[IO | None, IO | None, IO | None]:
    padded = streams_of(streams) + [None] * 3
    return padded[0], padded[1], padded[2]


def _target(stream: IO | None):
    """Map a stream to what subprocess accepts: the stream, DEVNULL or PIPE."""
    if stream is None:
        return subprocess.DEVNULL
    try:
        stream.fileno()
    except (AttributeError, OSError, ValueError):
        return subprocess.PIPE
    return stream


def _flush(stream: IO | None) -> None:
    if stream is not None:
        with contextlib.suppress(AttributeError, OSError, ValueError):
            stream.flush()


def _environment(ctx: Context) -> dict[str, str]:
    return {**os.environ, **ctx.exported_variables()}
