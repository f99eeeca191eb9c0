"""Stream holders: fd table entries tagged with ownership."""

import contextlib
import sys
from typing import IO, TypeAlias


class StreamHolder:
    """Binds a stream to an fd slot.

    An owned holder closes its stream; a borrowed one (an alias of a holder
    in this or an ancestor scope) never does.
    """

    def __init__(self, stream: IO, owned: bool = False) -> None:
        self.stream = stream
        self._owned = owned

    @property
    def owned(self) -> bool:
        return self._owned

    def alias(self) -> "StreamHolder":
        """Return a non-owning holder for the same stream."""
        return StreamHolder(self.stream, owned=False)

    def release(self) -> "StreamHolder":
        """Hand this holder's ownership over to a new holder for the stream."""
        holder = StreamHolder(self.stream, owned=self._owned)
        self._owned = False
        return holder

    def close(self) -> None:
        if not self._owned:
            return
        self._owned = False
        with contextlib.suppress(OSError, ValueError):
            self.stream.close()

    def __repr__(self) -> str:
        tag = "owned" if self._owned else "borrowed"
        return f"StreamHolder({self.stream!r}, {tag})"


StreamTable: TypeAlias = list[StreamHolder | None]


def default_stream_holders() -> StreamTable:
    """The process's stdin, stdout and stderr, none of them owned."""
    return [
        StreamHolder(sys.stdin),
        StreamHolder(sys.stdout),
        StreamHolder(sys.stderr),
    ]


def copy_stream_holders(holders: StreamTable) -> StreamTable:
    """Copy a table without passing on ownership."""
    return [holder.alias() if holder is not None else None for holder in holders]


def close_stream_holders(holders: StreamTable) -> None:
    """Close every owned holder in the table."""
    for holder in holders:
        if holder is not None:
            holder.close()


def streams_of(holders: StreamTable) -> list[IO | None]:
    return [holder.stream if holder is not None else None for holder in holders]
