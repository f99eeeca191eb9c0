"""Exceptions raised by expansion and redirection evaluation."""


class ShellError(Exception):
    """A recoverable condition caused by the input being evaluated."""


class ShellSyntaxError(ShellError, ValueError):
    """Malformed input: bad substitution, unmatched backtick, bad fd number."""


class RedirectionError(ShellError):
    """A redirection could not be applied (open failure, no-clobber)."""


class ParameterError(ShellError):
    """Raised by ${name?word} when the parameter is unset or null."""


class UnsupportedFeatureError(ShellError, NotImplementedError):
    """A recognised construct that is not supported (here-documents, <>, $(...))."""


class ShellFailure(RuntimeError):
    """An internal invariant was violated. Not meant to be recovered from."""
