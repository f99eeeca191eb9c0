"""A bounded, peekable character scanner."""


class CharCursor:
    """Scan a string one character at a time.

    next_ch() and peek_ch() return None once the limit is reached.
    """

    def __init__(self, text: str, start: int = 0, limit: int | None = None) -> None:
        self.text = text
        self.start = start
        self.pos = start
        self.limit = len(text) if limit is None else limit

    def next_ch(self) -> str | None:
        if self.pos >= self.limit:
            return None
        ch = self.text[self.pos]
        self.pos += 1
        return ch

    def peek_ch(self) -> str | None:
        if self.pos >= self.limit:
            return None
        return self.text[self.pos]

    def last_ch(self) -> str | None:
        if self.pos > self.start:
            return self.text[self.pos - 1]
        return None

    def at_end(self) -> bool:
        return self.pos >= self.limit
