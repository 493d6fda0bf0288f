"""Lexer for .env file contents."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Mapping

from dotenv_cascade.resolver import (
    VARNAME_PATTERN,
    resolve_commands,
    resolve_variables,
)

UNEXPECTED_CHARACTER = "unexpected_character"
MISSING_ASSIGN = "missing_assign"
MISSING_ASSIGN_UNSET = "missing_assign_unset"
WHITESPACE_AFTER_NAME = "whitespace_after_name"
LEADING_WHITESPACE_IN_VALUE = "leading_whitespace_in_value"
UNTERMINATED_QUOTE = "unterminated_quote"
UNQUOTED_VALUE_HAS_SPACES = "unquoted_value_has_spaces"
MISSING_CLOSING_PARENTHESIS = "missing_closing_parenthesis"

_VARNAME_RE = re.compile(
    r"(?P<export>export[ \t]+)?(?P<name>" + VARNAME_PATTERN + ")"
)
_EMPTY_LINES_RE = re.compile(r"(?:\s|#[^\n]*)*", re.ASCII)
_EMPTY_VALUE_RE = re.compile(r"[ \t]*(?:#.*)?$", re.MULTILINE)
_WHITESPACE_RE = re.compile(r"\s+", re.ASCII)

_TRAILING_CHARS = " \t\n\r\x00\x0b"

_STATE_VARNAME = 0
_STATE_VALUE = 1


class DotenvError(Exception):
    """Base class for errors raised while loading .env files."""


class ParseError(DotenvError):
    """Raised when .env contents violate the file grammar.

    ``position`` is the UTF-8 byte offset into the newline-normalised text.
    """

    def __init__(
        self,
        kind: str,
        message: str,
        line: int,
        position: int,
        path: str = "",
    ) -> None:
        self.kind = kind
        self.message = message
        self.line = line
        self.position = position
        self.path = path
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"Line {self.line}: {self.message}"
        if self.path:
            return f"{self.path}: {text}"
        return text


@dataclass
class ParseState:
    text: str
    path: str = ""
    cursor: int = 0
    lineno: int = 1
    values: dict[str, str] = field(default_factory=dict)

    @property
    def end(self) -> int:
        return len(self.text)

    @property
    def at_end(self) -> bool:
        return self.cursor >= self.end

    @property
    def current(self) -> str:
        return self.text[self.cursor]

    def move_cursor(self, consumed: str) -> None:
        self.cursor += len(consumed)
        self.lineno += consumed.count("\n")

    def error(self, kind: str, message: str) -> ParseError:
        consumed = self.text[: self.cursor]
        position = len(consumed.encode("utf-8", "surrogatepass"))
        return ParseError(kind, message, self.lineno, position, self.path)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse(
    text: str,
    path: str = "",
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Parse .env contents into an ordered mapping of resolved values.

    Names not yet defined in *text* are looked up in *environ* (the process
    environment by default), which is only read, never written.
    """
    if environ is None:
        environ = os.environ
    state = ParseState(text=normalize_newlines(text), path=str(path))
    lexer_state = _STATE_VARNAME
    name = ""

    _skip_empty_lines(state)

    while not state.at_end:
        if lexer_state == _STATE_VARNAME:
            name = _lex_varname(state)
            lexer_state = _STATE_VALUE
        else:
            state.values[name] = _lex_value(state, environ)
            lexer_state = _STATE_VARNAME

    if lexer_state == _STATE_VALUE:
        state.values[name] = ""

    return state.values


def _skip_empty_lines(state: ParseState) -> None:
    match = _EMPTY_LINES_RE.match(state.text, state.cursor)
    if match:
        state.move_cursor(match.group(0))


def _lex_varname(state: ParseState) -> str:
    match = _VARNAME_RE.match(state.text, state.cursor)
    if match is None:
        raise state.error(
            UNEXPECTED_CHARACTER, "invalid character in variable name"
        )
    state.move_cursor(match.group(0))

    if state.at_end or state.current in ("\n", "#"):
        if match.group("export"):
            raise state.error(
                MISSING_ASSIGN_UNSET, "unable to unset an environment variable"
            )
        raise state.error(
            MISSING_ASSIGN, "missing = in the environment variable declaration"
        )

    if state.current in (" ", "\t"):
        raise state.error(
            WHITESPACE_AFTER_NAME,
            "whitespace characters are not supported after the variable name",
        )

    if state.current != "=":
        raise state.error(
            MISSING_ASSIGN, "missing = in the environment variable declaration"
        )

    state.cursor += 1
    return match.group("name")


def _lex_value(state: ParseState, environ: Mapping[str, str]) -> str:
    match = _EMPTY_VALUE_RE.match(state.text, state.cursor)
    if match:
        state.move_cursor(match.group(0))
        _skip_empty_lines(state)
        return ""

    if state.current in (" ", "\t"):
        raise state.error(
            LEADING_WHITESPACE_IN_VALUE,
            "whitespace characters are not supported before the value",
        )

    value = ""
    while True:
        char = state.current
        if char == "'":
            value += _lex_single_quoted(state)
        elif char == '"':
            value += _lex_double_quoted(state, environ)
        else:
            value += _lex_unquoted(state, environ)
            if not state.at_end and state.current == "#":
                break

        if state.at_end or state.current == "\n":
            break

    _skip_empty_lines(state)
    return value


def _lex_single_quoted(state: ParseState) -> str:
    closing = state.text.find("'", state.cursor + 1)
    if closing < 0:
        state.move_cursor(state.text[state.cursor :])
        raise state.error(UNTERMINATED_QUOTE, "missing quote to end the value")
    segment = state.text[state.cursor + 1 : closing]
    state.move_cursor(state.text[state.cursor : closing + 1])
    return segment


def _lex_double_quoted(state: ParseState, environ: Mapping[str, str]) -> str:
    text = state.text
    start = state.cursor
    position = start + 1
    if position >= state.end:
        state.cursor = position
        raise state.error(UNTERMINATED_QUOTE, "missing quote to end the value")

    while text[position] != '"' or _is_escaped_quote(text, position):
        position += 1
        if position >= state.end:
            state.move_cursor(text[start:position])
            raise state.error(
                UNTERMINATED_QUOTE, "missing quote to end the value"
            )

    raw = text[start + 1 : position]
    state.move_cursor(text[start : position + 1])

    raw = raw.replace('\\"', '"').replace("\\r", "\r").replace("\\n", "\n")
    resolved = resolve_variables(raw, state, environ)
    resolved = resolve_commands(resolved, state)
    return resolved.replace("\\\\", "\\")


def _is_escaped_quote(text: str, position: int) -> bool:
    if text[position - 1] != "\\":
        return False
    return position < 2 or text[position - 2] != "\\"


def _lex_unquoted(state: ParseState, environ: Mapping[str, str]) -> str:
    text = state.text
    chars: list[str] = []
    previous = text[state.cursor - 1] if state.cursor > 0 else ""
    while not state.at_end:
        char = state.current
        if char in ("\n", '"', "'"):
            break
        if char == "#" and previous in (" ", "\t"):
            break
        if (
            char == "\\"
            and state.cursor + 1 < state.end
            and text[state.cursor + 1] in ('"', "'")
        ):
            state.cursor += 1
            char = state.current
        chars.append(char)
        previous = char
        if (
            char == "$"
            and state.cursor + 1 < state.end
            and text[state.cursor + 1] == "("
        ):
            state.cursor += 1
            chars.append("(" + _lex_nested_expression(state) + ")")
        state.cursor += 1

    raw = "".join(chars).rstrip(_TRAILING_CHARS)
    resolved = resolve_variables(raw, state, environ)
    resolved = resolve_commands(resolved, state)
    resolved = resolved.replace("\\\\", "\\")

    if resolved == raw and _WHITESPACE_RE.search(raw):
        raise state.error(
            UNQUOTED_VALUE_HAS_SPACES,
            "a value containing spaces must be surrounded by quotes",
        )
    return resolved


def _lex_nested_expression(state: ParseState) -> str:
    """Capture the body of a balanced ``( ... )`` group.

    Entered with the cursor on the opening parenthesis; returns with the
    cursor on the matching closing one.
    """
    text = state.text
    state.cursor += 1
    chars: list[str] = []
    while not state.at_end and state.current not in ("\n", ")"):
        char = state.current
        chars.append(char)
        if char == "(":
            chars.append(_lex_nested_expression(state) + ")")
        state.cursor += 1
    if state.at_end or text[state.cursor] == "\n":
        raise state.error(
            MISSING_CLOSING_PARENTHESIS, "missing closing parenthesis"
        )
    return "".join(chars)
