"""Shell pathname patterns: globbing and pattern matching."""

import glob as globmod
import re

PATTERN_CHARS = frozenset("*?[")

# POSIX character classes usable inside brackets, as regex set members
CHARACTER_CLASSES = {
    "alnum": "a-zA-Z0-9",
    "alpha": "a-zA-Z",
    "blank": " \\t",
    "cntrl": "\\x00-\\x1f\\x7f",
    "digit": "0-9",
    "graph": "\\x21-\\x7e",
    "lower": "a-z",
    "print": "\\x20-\\x7e",
    "punct": "!-/:-@\\[-`{-~",
    "space": " \\t\\n\\r\\f\\v",
    "upper": "A-Z",
    "xdigit": "0-9A-Fa-f",
}
# Characters with a meaning of their own inside a regex set
_SET_SPECIALS = frozenset("\\[^&~|")


class PathnamePattern:
    """A compiled pathname pattern such as '*.py' or 'src/?/[ab]*'."""

    def __init__(self, source: str) -> None:
        self.source = source

    @staticmethod
    def is_pattern(word: str) -> bool:
        return any(ch in PATTERN_CHARS for ch in word)

    @classmethod
    def compile(cls, word: str) -> "PathnamePattern":
        return cls(word)

    def expand(self, base_dir: str = ".") -> list[str]:
        """Return the matching paths, sorted so the order is stable."""
        return sorted(globmod.glob(self.source, root_dir=base_dir))

    def __repr__(self) -> str:
        return f"PathnamePattern({self.source!r})"


def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a shell pattern into a regex.

    The pattern may still carry quote marks and backslashes from expansion;
    quoted or escaped characters match literally.
    """
    parts: list[str] = []
    quote: str | None = None
    i = 0
    n = len(pattern)

    while i < n:
        ch = pattern[i]

        if ch == "\\" and i + 1 < n:
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue

        if ch in ("'", '"'):
            if quote is None:
                quote = ch
                i += 1
                continue
            if quote == ch:
                quote = None
                i += 1
                continue

        if quote is not None:
            parts.append(re.escape(ch))
            i += 1
            continue

        match ch:
            case "*":
                parts.append(".*")
            case "?":
                parts.append(".")
            case "[":
                end = _bracket_end(pattern, i)
                if end == -1:
                    parts.append(re.escape(ch))
                else:
                    parts.append(_bracket_to_regex(pattern[i + 1 : end]))
                    i = end
            case _:
                parts.append(re.escape(ch))
        i += 1

    return re.compile("".join(parts), re.DOTALL)


def _bracket_end(pattern: str, start: int) -> int:
    """Index of the ']' closing the bracket expression at start, or -1."""
    i = start + 1
    if i < len(pattern) and pattern[i] in ("!", "^"):
        i += 1
    # A leading ']' is a member, not the terminator
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern):
        if pattern.startswith("[:", i):
            close = pattern.find(":]", i + 2)
            if close != -1:
                i = close + 2
                continue
        if pattern[i] == "]":
            return i
        i += 1
    return -1


def _bracket_to_regex(body: str) -> str:
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    members: list[str] = []
    i = 0
    while i < len(body):
        if body.startswith("[:", i):
            close = body.find(":]", i + 2)
            name = body[i + 2 : close] if close != -1 else None
            if name in CHARACTER_CLASSES:
                members.append(CHARACTER_CLASSES[name])
                i = close + 2
                continue
        ch = body[i]
        members.append(f"\\{ch}" if ch in _SET_SPECIALS else ch)
        i += 1
    return f"[{'^' if negate else ''}{''.join(members)}]"


def remove_prefix(value: str, pattern: str, longest: bool = False) -> str:
    """Implement ${name#pattern} and ${name##pattern}."""
    regex = pattern_to_regex(pattern)
    lengths = range(len(value), -1, -1) if longest else range(len(value) + 1)
    for k in lengths:
        if regex.fullmatch(value[:k]):
            return value[k:]
    return value


def remove_suffix(value: str, pattern: str, longest: bool = False) -> str:
    """Implement ${name%pattern} and ${name%%pattern}."""
    regex = pattern_to_regex(pattern)
    starts = range(len(value) + 1) if longest else range(len(value), -1, -1)
    for k in starts:
        if regex.fullmatch(value[k:]):
            return value[:k]
    return value
