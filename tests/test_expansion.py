"""Tests for the expansion module."""

import pytest

from shellscope.context import Context
from shellscope.errors import (
    ParameterError,
    ShellFailure,
    ShellSyntaxError,
    UnsupportedFeatureError,
)
from shellscope.expansion import (
    Operator,
    ParameterExpression,
    expand,
    is_name,
    parse_parameter_expression,
)


class FakeInterpreter:
    """Records substituted commands and writes canned output."""

    def __init__(self, output: str = "", status: int = 0) -> None:
        self.output = output
        self.status = status
        self.scripts: list[str] = []

    def interpret(self, script, capture=None, parent=None):
        self.scripts.append(script)
        if capture is not None:
            capture.write(self.output)
        return self.status


@pytest.fixture
def ctx():
    return Context()


class TestExpandVariables:
    def test_simple_var(self, ctx):
        ctx.set_variable("FOO", "hello")
        assert expand("$FOO", ctx) == "hello"

    def test_braced_var(self, ctx):
        ctx.set_variable("FOO", "hello")
        assert expand("${FOO}", ctx) == "hello"

    def test_length(self, ctx):
        ctx.set_variable("FOO", "hello")
        assert expand("${#FOO}", ctx) == "5"

    def test_length_of_unset(self, ctx):
        assert expand("${#NOPE}", ctx) == "0"

    def test_undefined_var_expands_to_empty(self, ctx):
        assert expand("$BAR", ctx) == ""

    def test_undefined_braced_var(self, ctx):
        assert expand("${NOPE}end", ctx) == "end"

    def test_var_in_middle_of_word(self, ctx):
        ctx.set_variable("NAME", "test")
        assert expand("file_${NAME}.txt", ctx) == "file_test.txt"

    def test_name_stops_at_non_identifier(self, ctx):
        ctx.set_variable("NAME", "test")
        assert expand("$NAME.txt", ctx) == "test.txt"

    def test_name_with_digits_and_underscore(self, ctx):
        ctx.set_variable("MY_VAR_123", "value")
        assert expand("$MY_VAR_123", ctx) == "value"

    def test_adjacent_vars(self, ctx):
        ctx.set_variable("A", "hello")
        ctx.set_variable("B", "world")
        assert expand("$A$B", ctx) == "helloworld"

    def test_empty_braces(self, ctx):
        assert expand("a${}b", ctx) == "ab"

    def test_bare_dollar_at_end(self, ctx):
        assert expand("echo $", ctx) == "echo $"

    def test_dollar_before_non_name(self, ctx):
        assert expand("$%x", ctx) == "$%x"

    def test_unterminated_brace(self, ctx):
        with pytest.raises(ShellSyntaxError, match="bad substitution"):
            expand("${FOO", ctx)

    def test_exported_and_unexported_both_expand(self, ctx):
        ctx.set_variable("A", "1")
        ctx.set_variable("B", "2")
        ctx.set_exported("B")
        assert expand("$A$B", ctx) == "12"


class TestQuotingAndEscapes:
    def test_no_dollar_is_identity(self, ctx):
        text = "echo   'a  b'  `x`"
        assert expand(text, ctx) is text

    def test_empty_string(self, ctx):
        assert expand("", ctx) == ""

    def test_single_quotes_prevent_expansion(self, ctx):
        ctx.set_variable("FOO", "bar")
        assert expand("echo '$FOO'", ctx) == "echo '$FOO'"

    def test_double_quotes_allow_expansion(self, ctx):
        ctx.set_variable("FOO", "bar")
        assert expand('echo "$FOO"', ctx) == 'echo "bar"'

    def test_mixed_quotes(self, ctx):
        ctx.set_variable("X", "yes")
        assert expand("echo '$X' \"$X\"", ctx) == "echo '$X' \"yes\""

    def test_single_quote_inside_double_is_literal(self, ctx):
        ctx.set_variable("X", "yes")
        assert expand("\"it's $X\"", ctx) == "\"it's yes\""

    def test_escaped_dollar_not_expanded(self, ctx):
        ctx.set_variable("FOO", "hello")
        assert expand("\\$FOO", ctx) == "$FOO"

    def test_escape_kept_for_splitter(self, ctx):
        assert expand("a\\ b$X", ctx) == "a\\ b"

    def test_unquoted_whitespace_collapses(self, ctx):
        ctx.set_variable("X", "x")
        assert expand("a  \t b $X", ctx) == "a b x"

    def test_quoted_whitespace_preserved(self, ctx):
        ctx.set_variable("X", "x")
        assert expand("'a  b' $X", ctx) == "'a  b' x"

    def test_quotes_in_values_escaped(self, ctx):
        ctx.set_variable("X", "it's")
        assert expand("$X", ctx) == "it\\'s"
        assert expand('"${X}"', ctx) == "\"it\\'s\""
        assert expand("${X%s}", ctx) == "it\\'"

    def test_substitution_output_escaped(self, ctx):
        ctx.interpreter = FakeInterpreter('say "hi"')
        assert expand("`x`$Y", ctx) == 'say \\"hi\\"'

    def test_default_word_quotes_still_syntax(self, ctx):
        assert expand("${X:-'a b'}", ctx) == "'a b'"


class TestSpecialParameters:
    def test_positional(self, ctx):
        ctx.set_positional("script", ["x", "y"])
        assert expand("$#", ctx) == "2"
        assert expand("$1", ctx) == "x"
        assert expand("$2", ctx) == "y"

    def test_positional_out_of_range(self, ctx):
        ctx.set_positional("script", ["x", "y"])
        assert expand("$9", ctx) == ""

    def test_command_name(self, ctx):
        ctx.set_positional("myscript", [])
        assert expand("$0", ctx) == "myscript"

    def test_braced_positional_beyond_nine(self, ctx):
        ctx.set_positional("s", [str(n) for n in range(1, 12)])
        assert expand("${10}", ctx) == "10"
        assert expand("$10", ctx) == "10"

    def test_status_pid_options(self, ctx):
        ctx.last_return_code = 3
        ctx.shell_pid = 4242
        ctx.last_async_pid = 77
        ctx.options = "ex"
        assert expand("$? $$ $! $-", ctx) == "3 4242 77 ex"

    def test_braced_special(self, ctx):
        ctx.last_return_code = 5
        ctx.set_positional("s", ["a"])
        assert expand("${?}", ctx) == "5"
        assert expand("${#}", ctx) == "1"

    @pytest.mark.parametrize("text", ["$@", "$*", '"$@"', "${*}"])
    def test_multi_field_unsupported(self, ctx, text):
        with pytest.raises(UnsupportedFeatureError):
            expand(text, ctx)

    def test_dollar_paren_unsupported(self, ctx):
        with pytest.raises(UnsupportedFeatureError):
            expand("$(ls)", ctx)

    def test_arithmetic_unsupported(self, ctx):
        with pytest.raises(NotImplementedError):
            expand("$((1 + 2))", ctx)


class TestParseParameterExpression:
    def test_plain_name(self):
        assert parse_parameter_expression("FOO") == ParameterExpression("FOO")

    def test_length(self):
        assert parse_parameter_expression("#FOO") == ParameterExpression("FOO", length=True)

    def test_colon_operators(self):
        expr = parse_parameter_expression("FOO:-default")
        assert expr.operator is Operator.COLON_HYPHEN
        assert expr.word == "default"

    def test_doubled_operators(self):
        assert parse_parameter_expression("F##*/").operator is Operator.DHASH
        assert parse_parameter_expression("F%%.*").operator is Operator.DPERCENT

    def test_single_operators(self):
        assert parse_parameter_expression("F#a").operator is Operator.HASH
        assert parse_parameter_expression("F=x").operator is Operator.EQUALS
        assert parse_parameter_expression("F+x").word == "x"

    def test_empty_word(self):
        expr = parse_parameter_expression("F-")
        assert expr.operator is Operator.HYPHEN
        assert expr.word == ""

    def test_lone_colon_is_syntax_error(self):
        with pytest.raises(ShellSyntaxError, match="bad substitution"):
            parse_parameter_expression("FOO:x")

    def test_trailing_colon_is_syntax_error(self):
        with pytest.raises(ShellSyntaxError, match="bad substitution"):
            parse_parameter_expression("FOO:")

    def test_length_with_operator_is_syntax_error(self):
        with pytest.raises(ShellSyntaxError):
            parse_parameter_expression("#FOO:-x")

    def test_hash_alone_names_special(self):
        assert parse_parameter_expression("#") == ParameterExpression("#")


class TestParameterOperators:
    def test_default_when_unset(self, ctx):
        assert expand("${X-def}", ctx) == "def"
        assert expand("${X:-def}", ctx) == "def"

    def test_default_distinguishes_null(self, ctx):
        ctx.set_variable("X", "")
        assert expand("${X-def}", ctx) == ""
        assert expand("${X:-def}", ctx) == "def"

    def test_default_not_used_when_set(self, ctx):
        ctx.set_variable("X", "val")
        assert expand("${X:-def}", ctx) == "val"

    def test_default_word_is_expanded(self, ctx):
        ctx.set_variable("Y", "why")
        assert expand("${X:-$Y}", ctx) == "why"

    def test_assign_default(self, ctx):
        assert expand("${X:=new}", ctx) == "new"
        assert ctx.variable("X") == "new"

    def test_assign_keeps_existing(self, ctx):
        ctx.set_variable("X", "old")
        assert expand("${X=new}", ctx) == "old"
        assert ctx.variable("X") == "old"

    def test_assign_removes_quotes_from_value(self, ctx):
        assert expand("${X:='a b'}", ctx) == "'a b'"
        assert ctx.variable("X") == "a b"

    def test_assign_to_positional_fails(self, ctx):
        with pytest.raises(ShellSyntaxError, match="cannot assign"):
            expand("${1:=x}", ctx)

    def test_alternate(self, ctx):
        assert expand("${X+alt}", ctx) == ""
        ctx.set_variable("X", "")
        assert expand("${X+alt}", ctx) == "alt"
        assert expand("${X:+alt}", ctx) == ""
        ctx.set_variable("X", "v")
        assert expand("${X:+alt}", ctx) == "alt"

    def test_error_when_unset(self, ctx):
        with pytest.raises(ParameterError, match="X: must be set"):
            expand("${X?must be set}", ctx)

    def test_error_default_message(self, ctx):
        ctx.set_variable("X", "")
        with pytest.raises(ParameterError, match="parameter null or not set"):
            expand("${X:?}", ctx)

    def test_error_not_raised_when_set(self, ctx):
        ctx.set_variable("X", "ok")
        assert expand("${X:?boom}", ctx) == "ok"

    def test_prefix_removal(self, ctx):
        ctx.set_variable("P", "/usr/local/bin")
        assert expand("${P#*/}", ctx) == "usr/local/bin"
        assert expand("${P##*/}", ctx) == "bin"

    def test_suffix_removal(self, ctx):
        ctx.set_variable("F", "archive.tar.gz")
        assert expand("${F%.*}", ctx) == "archive.tar"
        assert expand("${F%%.*}", ctx) == "archive"

    def test_removal_without_match(self, ctx):
        ctx.set_variable("F", "name")
        assert expand("${F%.txt}", ctx) == "name"

    def test_quoted_pattern_is_literal(self, ctx):
        ctx.set_variable("F", "a*b")
        assert expand("${F#'a*'}", ctx) == "b"

    def test_closing_brace_inside_quotes(self, ctx):
        assert expand("${X:-'}'}", ctx) == "'}'"

    def test_nested_braces(self, ctx):
        ctx.set_variable("Y", "inner")
        assert expand("${X:-${Y}}", ctx) == "inner"

    def test_bad_parameter_name(self, ctx):
        with pytest.raises(ShellSyntaxError, match="bad substitution"):
            expand("${a.b}", ctx)


class TestBackticks:
    def test_command_substitution(self, ctx):
        interp = FakeInterpreter("hello\n\n")
        ctx.interpreter = interp
        assert expand("x=`echo hello`$Y", ctx) == "x=hello"
        assert interp.scripts == ["echo hello"]

    def test_substitution_sees_expanded_text(self, ctx):
        interp = FakeInterpreter("out")
        ctx.interpreter = interp
        ctx.set_variable("F", "file")
        expand("`cat $F`", ctx)
        assert interp.scripts == ["cat file"]

    def test_substitution_sets_status(self, ctx):
        ctx.interpreter = FakeInterpreter("", status=4)
        expand("`false`$X", ctx)
        assert ctx.last_return_code == 4

    def test_unmatched_backtick(self, ctx):
        with pytest.raises(ShellSyntaxError, match="unmatched"):
            expand("`echo $X", ctx)

    def test_no_interpreter_is_a_failure(self, ctx):
        with pytest.raises(ShellFailure):
            expand("`echo $X`", ctx)


class TestIsName:
    def test_names(self):
        assert is_name("FOO")
        assert is_name("_x1")
        assert not is_name("1x")
        assert not is_name("")
        assert not is_name("a-b")
