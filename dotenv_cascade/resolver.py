"""Variable and command expansion inside .env values."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Mapping

if TYPE_CHECKING:  # pragma: no cover
    from dotenv_cascade.parser import ParseState

UNCLOSED_BRACE = "unclosed_brace"
UNSUPPORTED_DEFAULT_CHAR = "unsupported_default_char"

VARNAME_PATTERN = r"[A-Za-z][A-Za-z0-9_]*"

_UNSUPPORTED_DEFAULT_CHARS = "'\"{$"

_VARIABLE_RE = re.compile(
    r"""
    (?<!\\)
    (?P<backslashes>\\*)               # escaped with a backslash?
    \$
    (?!\()                             # no opening parenthesis
    (?P<opening_brace>\{)?             # optional brace
    (?P<name>"""
    + VARNAME_PATTERN
    + r""")?                           # var name
    (?P<default_value>:[-=][^\}]+)?    # optional default value
    (?P<closing_brace>\})?             # optional closing brace
    """,
    re.VERBOSE,
)


def resolve_variables(
    value: str, state: ParseState, environ: Mapping[str, str]
) -> str:
    """Expand ``$NAME``, ``${NAME}``, ``${NAME:-default}`` and ``${NAME:=default}``.

    Names are looked up in the values parsed so far, then in *environ*;
    unset names expand to an empty string. ``:=`` also stores the default
    in ``state.values`` so later declarations see it.
    """
    if "$" not in value:
        return value

    def replace(match: re.Match[str]) -> str:
        backslashes = match.group("backslashes")
        if len(backslashes) % 2 == 1:
            return match.group(0)[1:]

        name = match.group("name")
        if not name:
            return match.group(0)

        opening = match.group("opening_brace")
        closing = match.group("closing_brace")
        if opening and not closing:
            raise state.error(
                UNCLOSED_BRACE, "unclosed braces on variable expansion"
            )

        if name in state.values:
            resolved = state.values[name]
        else:
            resolved = environ.get(name, "")

        default_clause = match.group("default_value")
        if not resolved and default_clause:
            default = default_clause[2:]
            for char in default:
                if char in _UNSUPPORTED_DEFAULT_CHARS:
                    raise state.error(
                        UNSUPPORTED_DEFAULT_CHAR,
                        f'unsupported character "{char}" found in the default '
                        f'value of variable "${name}"',
                    )
            resolved = default
            if default_clause[1] == "=":
                state.values[name] = resolved

        if closing and not opening:
            resolved += "}"

        return backslashes + resolved

    return _VARIABLE_RE.sub(replace, value)


def resolve_commands(value: str, state: ParseState) -> str:
    """Return *value* unchanged; ``$(...)`` is kept verbatim, never executed."""
    return value
