"""Evaluate I/O redirections against an fd table."""

import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

from shellscope.errors import (
    RedirectionError,
    ShellFailure,
    ShellSyntaxError,
    UnsupportedFeatureError,
)
from shellscope.streams import StreamHolder, StreamTable, close_stream_holders

logger = logging.getLogger(__name__)

# Highest fd number a redirection may name
MAX_FD = 1023


class RedirectionType(Enum):
    LESS = "<"
    LESSAND = "<&"
    LESSGREAT = "<>"
    DLESS = "<<"
    DLESSDASH = "<<-"
    GREAT = ">"
    CLOBBER = ">|"
    DGREAT = ">>"
    GREATAND = ">&"

    @property
    def default_fd(self) -> int:
        """Input-style operators default to fd 0, output-style to fd 1."""
        return 0 if self.value.startswith("<") else 1


@dataclass
class Redirection:
    """One redirection as delivered by the parser.

    io is the text of an explicit fd number ('2' in '2>err'), or None.
    arg is the file name, or the fd number for '<&' and '>&'.
    """

    kind: RedirectionType
    arg: str
    io: str | None = None

    @classmethod
    def of(cls, operator: str, arg: str, io: str | None = None) -> "Redirection":
        try:
            kind = RedirectionType(operator)
        except ValueError:
            raise ShellSyntaxError(f"syntax error near unexpected token `{operator}'") from None
        return cls(kind, arg, io)


Opener: TypeAlias = Callable[[str, str], object]


def evaluate_redirections(
    redirects: Iterable[Redirection] | None,
    holders: StreamTable,
    *,
    noclobber: bool = False,
    opener: Opener = open,
    expand_target: Callable[[str], str] | None = None,
) -> StreamTable:
    """Apply redirections, in order, to holders and return the result.

    holders is mutated, so callers pass a copy of their live table. If any
    redirection fails, every holder owned by the working table is closed
    before the error propagates.
    """
    if redirects is None:
        return holders

    ok = False
    try:
        for redir in redirects:
            fd = _target_fd(redir)
            if fd >= len(holders):
                holders.extend([None] * (fd + 1 - len(holders)))
            holder = _open_redirection(redir, holders, noclobber, opener, expand_target)
            _replace(holders, fd, holder)
        ok = True
    finally:
        if not ok:
            logger.debug("redirection failed, closing %d holders", len(holders))
            close_stream_holders(holders)
    return holders


def _replace(holders: StreamTable, fd: int, holder: StreamHolder | None) -> None:
    """Put holder in slot fd without losing track of the stream it displaces.

    A displaced owned stream that another slot still aliases passes its
    ownership to that slot; otherwise it is closed.
    """
    old = holders[fd]
    holders[fd] = holder
    if old is None or not old.owned:
        return
    for i, other in enumerate(holders):
        if other is not None and other.stream is old.stream:
            holders[i] = old.release()
            return
    old.close()


def _target_fd(redir: Redirection) -> int:
    if redir.io is None:
        return redir.kind.default_fd
    return parse_fd(redir.io, f"invalid fd number: {redir.io}")


def parse_fd(text: str, message: str) -> int:
    if not (text.isascii() and text.isdigit()):
        raise ShellSyntaxError(message)
    fd = int(text)
    if fd > MAX_FD:
        raise RedirectionError(f"{text}: bad file descriptor")
    return fd


def _open_redirection(
    redir: Redirection,
    holders: StreamTable,
    noclobber: bool,
    opener: Opener,
    expand_target: Callable[[str], str] | None,
) -> StreamHolder | None:
    match redir.kind:
        case RedirectionType.DLESS | RedirectionType.DLESSDASH:
            raise UnsupportedFeatureError(f"here-documents ({redir.kind.value}) are not supported")
        case RedirectionType.LESSGREAT:
            raise UnsupportedFeatureError("read-write redirection (<>) is not supported")
        case RedirectionType.LESSAND | RedirectionType.GREATAND:
            return _duplicate(redir, holders)
        case RedirectionType.GREAT:
            path = _target_path(redir, expand_target)
            if noclobber and os.path.exists(path):
                raise RedirectionError(f"{path}: cannot overwrite existing file")
            return _open(path, "w", opener)
        case RedirectionType.CLOBBER:
            return _open(_target_path(redir, expand_target), "w", opener)
        case RedirectionType.DGREAT:
            return _open(_target_path(redir, expand_target), "a", opener)
        case RedirectionType.LESS:
            return _open(_target_path(redir, expand_target), "r", opener)
        case _:
            raise ShellFailure(f"unknown redirection type: {redir.kind}")


def _duplicate(redir: Redirection, holders: StreamTable) -> StreamHolder | None:
    """Alias an fd of the table as it stands now. '-' closes the target fd."""
    if redir.arg == "-":
        return None
    from_fd = parse_fd(redir.arg, f"invalid fd after {redir.kind.value}: {redir.arg}")
    if from_fd >= len(holders) or holders[from_fd] is None:
        return None
    return holders[from_fd].alias()


def _target_path(redir: Redirection, expand_target: Callable[[str], str] | None) -> str:
    path = expand_target(redir.arg) if expand_target is not None else redir.arg
    if not path:
        raise RedirectionError("ambiguous redirect")
    return path


def _open(path: str, mode: str, opener: Opener) -> StreamHolder:
    try:
        stream = opener(path, mode)
    except OSError as e:
        raise RedirectionError(f"{path}: {e.strerror or e}") from e
    logger.debug("opened %s (mode %r)", path, mode)
    return StreamHolder(stream, owned=True)
