"""Field splitting, tilde expansion, globbing and command line assembly."""

import os
from dataclasses import dataclass, field

from shellscope.pattern import PATTERN_CHARS, PathnamePattern

SEPARATORS = (" ", "\t")
# Characters a substituted value must not leak to the splitter as syntax
_SYNTAX_CHARS = frozenset("\\'\"")


@dataclass
class CommandLine:
    """A command name and its arguments after expansion."""

    command_name: str | None = None
    arguments: list[str] = field(default_factory=list)

    @property
    def argv(self) -> list[str]:
        if self.command_name is None:
            return []
        return [self.command_name, *self.arguments]

    def is_empty(self) -> bool:
        return self.command_name is None

    @classmethod
    def from_words(cls, words: list[str]) -> "CommandLine":
        if not words:
            return cls()
        return cls(command_name=words[0], arguments=list(words[1:]))


@dataclass
class Word:
    """A split word and what its quoting allows.

    pattern is text with every quoted pattern character bracketed, so
    globbing treats it literally. globbable is set when some unquoted
    pattern character occurs; tilde when the word opens with an unquoted
    '~' prefix.
    """

    text: str
    pattern: str
    globbable: bool = False
    tilde: bool = False

    @classmethod
    def bare(cls, text: str) -> "Word":
        """A word written without any quoting."""
        return cls(text, text, PathnamePattern.is_pattern(text), text.startswith("~"))


class _WordBuilder:
    def __init__(self) -> None:
        self.text: list[str] = []
        self.pattern: list[str] = []
        self.globbable = False
        self.tilde: bool | None = None

    def add(self, ch: str, quoted: bool) -> None:
        if self.tilde is None:
            self.tilde = ch == "~" and not quoted
        elif self.tilde and quoted and "/" not in self.text:
            self.tilde = False
        self.text.append(ch)
        if not quoted:
            self.pattern.append(ch)
            self.globbable = self.globbable or ch in PATTERN_CHARS
        elif ch in PATTERN_CHARS:
            self.pattern.append(f"[{ch}]")
        else:
            self.pattern.append(ch)

    def build(self) -> Word:
        return Word("".join(self.text), "".join(self.pattern), self.globbable, bool(self.tilde))


def split_fields(text: str, fields: list[Word] | None = None) -> list[Word]:
    """Split expanded text into Words, removing quotes and escapes.

    Unquoted spaces and tabs separate words. A quote pair always starts a
    word, so '""' on its own gives one empty word while '' (no quotes)
    gives none. A backslash makes the next character literal.
    If fields is given, the new words are appended to it.
    """
    if fields is None:
        fields = []
    current: _WordBuilder | None = None
    quote: str | None = None
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        match ch:
            case '"' | "'":
                if quote is None:
                    quote = ch
                    if current is None:
                        current = _WordBuilder()
                elif quote == ch:
                    quote = None
                else:
                    current.add(ch, quoted=True)
            case " " | "\t" if quote is None:
                if current is not None:
                    fields.append(current.build())
                    current = None
            case "\\":
                escaped = i + 1 < n
                if escaped:
                    i += 1
                    ch = text[i]
                if current is None:
                    current = _WordBuilder()
                current.add(ch, quoted=escaped or quote is not None)
            case _:
                if current is None:
                    current = _WordBuilder()
                current.add(ch, quoted=quote is not None)
        i += 1

    if current is not None:
        fields.append(current.build())
    return fields


def split_words(text: str, words: list[str] | None = None) -> list[str]:
    """Like split_fields, but return the plain text of each word."""
    if words is None:
        words = []
    words.extend(word.text for word in split_fields(text))
    return words


def unquote(text: str) -> str:
    """Remove quote marks and escapes without splitting."""
    result: list[str] = []
    quote: str | None = None
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in ("'", '"') and (quote is None or quote == ch):
            quote = None if quote else ch
        elif ch == "\\" and i + 1 < len(text):
            i += 1
            result.append(text[i])
        else:
            result.append(ch)
        i += 1
    return "".join(result)


def protect(value: str) -> str:
    """Escape the quote and backslash characters of a substituted value.

    The splitter then keeps them as text. Spaces and pattern characters
    are left alone, so unquoted substitutions are still split and globbed.
    """
    if not any(ch in _SYNTAX_CHARS for ch in value):
        return value
    return "".join(f"\\{ch}" if ch in _SYNTAX_CHARS else ch for ch in value)


def expand_tilde(word: str) -> str:
    """Expand a leading ~ or ~user to a home directory.

    The home directory for a bare ~ comes from $HOME. Unknown users leave
    the word unchanged.
    """
    if not word.startswith("~"):
        return word
    return os.path.expanduser(word)


def _expand_word_tilde(word: Word) -> Word:
    expanded = expand_tilde(word.text)
    if expanded == word.text:
        return word
    # The tilde prefix is unquoted, so text and pattern agree up to the '/'
    end = word.text.find("/")
    end = len(word.text) if end == -1 else end
    rest = len(word.text) - end
    home = expanded[: len(expanded) - rest]
    literal = "".join(f"[{ch}]" if ch in PATTERN_CHARS else ch for ch in home)
    return Word(expanded, literal + word.pattern[end:], word.globbable, tilde=False)


def expand_glob(word: str | Word, base_dir: str = ".") -> list[str]:
    """Expand a pathname pattern. A pattern matching nothing expands to itself.

    Quoted pattern characters of a Word match only themselves; a plain
    string is taken as unquoted.
    """
    if isinstance(word, str):
        word = Word.bare(word)
    if not word.globbable:
        return [word.text]
    paths = PathnamePattern.compile(word.pattern).expand(base_dir)
    return paths if paths else [word.text]


def expand_words(
    words: list[str | Word], tildes: bool = True, globbing: bool = True, base_dir: str = "."
) -> list[str]:
    """Apply tilde expansion then pathname expansion to each word."""
    expanded: list[str] = []
    for word in words:
        if isinstance(word, str):
            word = Word.bare(word)
        if tildes and word.tilde:
            word = _expand_word_tilde(word)
        if globbing:
            expanded.extend(expand_glob(word, base_dir))
        else:
            expanded.append(word.text)
    return expanded
