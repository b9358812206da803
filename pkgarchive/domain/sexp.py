"""
Minimal s-expression reader and printer.

The reader understands just enough of the syntax to read package
descriptor forms such as

    (define-package "foo" "1.2" "Summary" '((bar "1.0")))

and the printer produces the archive-contents representation polled by
package clients.
"""
from __future__ import annotations

import re
from typing import Any, List, Tuple

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<comment>;[^\n]*)
  | (?P<open>[(\[])
  | (?P<close>[)\]])
  | (?P<quote>['`])
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<atom>[^\s()\[\]"';`]+)
    """,
    re.VERBOSE | re.DOTALL,
)

_INT_RE = re.compile(r"^[+-]?\d+$")


class Symbol(str):
    """A bare symbol, kept distinct from string literals."""

    def __repr__(self) -> str:
        return f"Symbol({str(self)!r})"


class SexpSyntaxError(ValueError):
    pass


def _tokenize(text: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise SexpSyntaxError(f"Unexpected character {text[pos]!r} at offset {pos}")
        kind = match.lastgroup
        if kind not in ("ws", "comment"):
            tokens.append((kind, match.group()))
        pos = match.end()
    return tokens


def _unescape(literal: str) -> str:
    body = literal[1:-1]
    return re.sub(r"\\(.)", lambda m: {"n": "\n", "t": "\t"}.get(m.group(1), m.group(1)), body, flags=re.DOTALL)


def _atom(token: str) -> Any:
    if _INT_RE.match(token):
        return int(token)
    if token == "nil":
        return []
    return Symbol(token)


def read_all(text: str) -> List[Any]:
    """
    Read every top-level form in text.

    Lists and vectors become Python lists, strings become str, bare words
    become Symbol and integers become int. Quote prefixes are dropped, so
    '((a "1")) reads the same as ((a "1")).
    """
    tokens = _tokenize(text)
    forms: List[Any] = []
    stack: List[List[Any]] = []
    closers: List[str] = []

    for kind, value in tokens:
        if kind == "open":
            stack.append([])
            closers.append(")" if value == "(" else "]")
            continue
        if kind == "quote":
            continue
        if kind == "close":
            if not stack:
                raise SexpSyntaxError(f"Unbalanced {value!r}")
            if closers.pop() != value:
                raise SexpSyntaxError(f"Mismatched {value!r}")
            item: Any = stack.pop()
        elif kind == "string":
            item = _unescape(value)
        else:
            item = _atom(value)

        if stack:
            stack[-1].append(item)
        else:
            forms.append(item)

    if stack:
        raise SexpSyntaxError("Unexpected end of input")
    return forms


def read(text: str) -> Any:
    """Read the first form in text."""
    forms = read_all(text)
    if not forms:
        raise SexpSyntaxError("No form found")
    return forms[0]


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------


def quote_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def int_list(values) -> str:
    return "(" + " ".join(str(v) for v in values) + ")"


def dump_archive_contents(entries) -> str:
    """
    Render snapshot entries in the archive-contents layout:

        (1
         (foo . [(2 0) ((bar (1 0))) "Summary" single]))

    The leading 1 is the protocol version expected by clients.
    """
    lines = ["(1"]
    for entry in entries:
        requirements = " ".join(
            f"({req.name} {int_list(req.version)})" for req in entry.requirements
        )
        requirements = f"({requirements})" if requirements else "nil"
        lines.append(
            f" ({entry.name} . [{int_list(entry.version)} {requirements} "
            f"{quote_string(entry.summary)} {entry.kind.value}])"
        )
    return "\n".join(lines) + ")\n"
