"""The $-expansion scan: parameters, special parameters and backticks.

expand() performs a single left-to-right pass over a word. Quote marks and
backslash escapes are copied into the result so that split_fields() can
still tell quoted from unquoted text afterwards. Substituted values have
their own quote marks and backslashes escaped, so they stay text.
"""

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from shellscope.cursor import CharCursor
from shellscope.errors import (
    ParameterError,
    ShellFailure,
    ShellSyntaxError,
    UnsupportedFeatureError,
)
from shellscope.pattern import remove_prefix, remove_suffix
from shellscope.words import SEPARATORS, protect, unquote

if TYPE_CHECKING:
    from shellscope.context import Context

logger = logging.getLogger(__name__)

SPECIAL_PARAMETERS = frozenset("$#@*?!-0123456789")
OPERATOR_CHARS = frozenset("#%:=?+-")
# Special parameters whose names are also operator characters
_OPERATOR_NAMED_PARAMETERS = frozenset("#?-")


class Operator(Enum):
    HASH = "#"
    DHASH = "##"
    PERCENT = "%"
    DPERCENT = "%%"
    HYPHEN = "-"
    COLON_HYPHEN = ":-"
    EQUALS = "="
    COLON_EQUALS = ":="
    PLUS = "+"
    COLON_PLUS = ":+"
    QUERY = "?"
    COLON_QUERY = ":?"

    @property
    def checks_null(self) -> bool:
        """Colon forms treat an empty value like an unset one."""
        return self.value.startswith(":")


@dataclass
class ParameterExpression:
    """The parsed body of a ${...} expansion."""

    name: str
    operator: Operator | None = None
    word: str | None = None
    length: bool = False


def is_name(text: str) -> bool:
    return bool(text) and _is_name_start(text[0]) and all(_is_name_char(c) for c in text)


def _is_name_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def _is_name_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


def expand(text: str, ctx: "Context") -> str:
    """Perform $ and backtick expansion on text, preserving quotes and escapes.

    Unquoted runs of spaces and tabs collapse to one space. Text with no '$'
    is returned unchanged.
    """
    if "$" not in text:
        return text

    cursor = CharCursor(text)
    out: list[str] = []
    quote: str | None = None
    backtick_start = -1

    while (ch := cursor.next_ch()) is not None:
        match ch:
            case '"' | "'":
                if quote is None:
                    quote = ch
                elif quote == ch:
                    quote = None
                out.append(ch)
            case "`":
                if backtick_start == -1:
                    backtick_start = len(out)
                else:
                    command = "".join(out[backtick_start:])
                    del out[backtick_start:]
                    out.append(protect(ctx.run_backtick_command(command)))
                    backtick_start = -1
            case " " | "\t" if quote is None:
                out.append(" ")
                while cursor.peek_ch() in SEPARATORS:
                    cursor.next_ch()
            case "\\":
                escaped = cursor.next_ch()
                if escaped == "$":
                    # '$' means nothing to the splitter, so the escape can go
                    out.append(escaped)
                else:
                    out.append(ch)
                    if escaped is not None:
                        out.append(escaped)
            case "$" if quote == "'":
                out.append(ch)
            case "$":
                out.append(dollar_expansion(cursor, ctx))
            case _:
                out.append(ch)

    if backtick_start != -1:
        raise ShellSyntaxError("unmatched '`'")
    return "".join(out)


def dollar_expansion(cursor: CharCursor, ctx: "Context") -> str:
    """Expand the parameter following a '$' that has just been consumed."""
    ch = cursor.peek_ch()
    if ch is None:
        return "$"

    match ch:
        case "{":
            cursor.next_ch()
            return brace_expansion(cursor, ctx)
        case "(":
            raise UnsupportedFeatureError("$(...) substitution is not supported")
        case c if c in SPECIAL_PARAMETERS:
            cursor.next_ch()
            value = special_parameter(c, ctx)
            return protect(value) if value is not None else ""
        case c if _is_name_start(c):
            name: list[str] = []
            while (c := cursor.peek_ch()) is not None and _is_name_char(c):
                name.append(c)
                cursor.next_ch()
            value = ctx.variables.lookup("".join(name))
            return protect(value) if value is not None else ""
        case _:
            return "$"


def brace_expansion(cursor: CharCursor, ctx: "Context") -> str:
    """Expand ${...}; the cursor is just past the '{'."""
    body = _scan_brace_body(cursor)
    if not body:
        return ""
    return evaluate_parameter(parse_parameter_expression(body), ctx)


def _scan_brace_body(cursor: CharCursor) -> str:
    body: list[str] = []
    depth = 1
    quote: str | None = None

    while True:
        ch = cursor.next_ch()
        if ch is None:
            raise ShellSyntaxError("bad substitution: missing '}'")
        if ch == "\\":
            body.append(ch)
            escaped = cursor.next_ch()
            if escaped is not None:
                body.append(escaped)
            continue
        if quote is None:
            if ch == "}":
                depth -= 1
                if depth == 0:
                    break
            elif ch == "{":
                depth += 1
            elif ch in ("'", '"'):
                quote = ch
        elif ch == quote:
            quote = None
        body.append(ch)

    return "".join(body)


def parse_parameter_expression(body: str) -> ParameterExpression:
    """Split a non-empty ${...} body into name, operator and word."""
    length = False
    i = 0
    if body[0] == "#" and len(body) > 1 and body[1] not in OPERATOR_CHARS:
        length = True
        i = 1

    start = i
    while i < len(body) and body[i] not in OPERATOR_CHARS:
        i += 1
    if i == start and body[i] in _OPERATOR_NAMED_PARAMETERS:
        i += 1
    name = body[start:i]

    if i == len(body):
        return ParameterExpression(name, length=length)
    if length:
        raise ShellSyntaxError(f"${{{body}}}: bad substitution")

    operator = _read_operator(body, i)
    word = body[i + len(operator.value) :]
    return ParameterExpression(name, operator, word)


def _read_operator(body: str, i: int) -> Operator:
    ch = body[i]
    following = body[i + 1 : i + 2]
    match ch:
        case "#" | "%":
            return Operator(ch * 2) if following == ch else Operator(ch)
        case ":":
            if following and following in "=+?-":
                return Operator(ch + following)
            raise ShellSyntaxError(f"${{{body}}}: bad substitution")
        case "=" | "?" | "+" | "-":
            return Operator(ch)
        case _:
            raise ShellFailure(f"bad operator state at {body!r}[{i}]")


def evaluate_parameter(expr: ParameterExpression, ctx: "Context") -> str:
    """Apply a parsed ${...} expression."""
    value = parameter_value(expr.name, ctx)

    if expr.length:
        return str(len(value)) if value is not None else "0"

    operator = expr.operator
    if operator is None:
        return protect(value) if value is not None else ""

    word = expr.word or ""
    missing = value is None or (operator.checks_null and value == "")

    match operator:
        case Operator.HYPHEN | Operator.COLON_HYPHEN:
            return expand(word, ctx) if missing else protect(value)
        case Operator.EQUALS | Operator.COLON_EQUALS:
            if not missing:
                return protect(value)
            if not is_name(expr.name):
                raise ShellSyntaxError(f"${expr.name}: cannot assign in this way")
            replacement = expand(word, ctx)
            ctx.set_variable(expr.name, unquote(replacement))
            return replacement
        case Operator.QUERY | Operator.COLON_QUERY:
            if missing:
                message = unquote(expand(word, ctx)) or "parameter null or not set"
                raise ParameterError(f"{expr.name}: {message}")
            return protect(value)
        case Operator.PLUS | Operator.COLON_PLUS:
            return "" if missing else expand(word, ctx)
        case Operator.HASH | Operator.DHASH:
            longest = operator is Operator.DHASH
            return protect(remove_prefix(value or "", expand(word, ctx), longest=longest))
        case Operator.PERCENT | Operator.DPERCENT:
            longest = operator is Operator.DPERCENT
            return protect(remove_suffix(value or "", expand(word, ctx), longest=longest))
        case _:
            raise ShellFailure(f"unhandled operator {operator}")


def parameter_value(name: str, ctx: "Context") -> str | None:
    """Resolve a parameter name; None means unset."""
    if len(name) == 1 and name in SPECIAL_PARAMETERS:
        return special_parameter(name, ctx)
    if is_name(name):
        return ctx.variables.lookup(name)
    if name.isdigit():
        return positional_parameter(int(name), ctx)
    raise ShellSyntaxError(f"${{{name}}}: bad substitution")


def special_parameter(ch: str, ctx: "Context") -> str | None:
    match ch:
        case "$":
            return str(ctx.shell_pid)
        case "#":
            return str(len(ctx.args))
        case "@" | "*":
            raise UnsupportedFeatureError(f"${ch} expansion is not supported")
        case "?":
            return str(ctx.last_return_code)
        case "!":
            return str(ctx.last_async_pid)
        case "-":
            return ctx.options
        case d if d.isdigit():
            return positional_parameter(int(d), ctx)
        case _:
            raise ShellFailure(f"not a special parameter: {ch!r}")


def positional_parameter(number: int, ctx: "Context") -> str | None:
    """$0 is the command name; $1.. index args. Past the end is unset."""
    if number == 0:
        return ctx.command
    if number <= len(ctx.args):
        return ctx.args[number - 1]
    return None


def command_substitution(command: str, ctx: "Context") -> str:
    """Run command in a nested interpretation and return its output.

    Trailing newlines are stripped. The command's status becomes $?.
    """
    if ctx.interpreter is None:
        raise ShellFailure("no interpreter available for command substitution")
    logger.debug("command substitution: %r", command)
    capture = io.StringIO()
    ctx.last_return_code = ctx.interpreter.interpret(command, capture, parent=ctx)
    return capture.getvalue().rstrip("\n")
