"""Token tree for generated Rust source and its pretty-printer.

The emitter never writes strings directly: it builds tokens and items,
and format_items renders them. Identifiers are validated on construction
so a bad registry name fails before anything reaches disk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from .errors import EmitError
from .names import NON_RAW_KEYWORDS, RUST_KEYWORDS

INDENT = "    "
MAX_WIDTH = 100

_IDENT_RE = re.compile(r"^(r#)?[A-Za-z_][A-Za-z0-9_]*$")


class TokenError(ValueError):
    pass


# ===--- Tokens ---=== #


@dataclass(frozen=True)
class Ident:
    text: str

    def __post_init__(self):
        match = _IDENT_RE.match(self.text)
        if not match or self.text == "_":
            raise TokenError(f"invalid identifier {self.text!r}")
        bare = self.text[2:] if match.group(1) else self.text
        if match.group(1) and bare in NON_RAW_KEYWORDS:
            raise TokenError(f"{bare!r} cannot be a raw identifier")
        if not match.group(1) and bare in RUST_KEYWORDS:
            raise TokenError(f"keyword {bare!r} used as identifier")


@dataclass(frozen=True)
class Keyword:
    text: str

    def __post_init__(self):
        if self.text not in RUST_KEYWORDS:
            raise TokenError(f"{self.text!r} is not a keyword")


@dataclass(frozen=True)
class Punct:
    """Punctuation; `generic` marks the angle brackets of a type argument list."""

    text: str
    generic: bool = False


@dataclass(frozen=True)
class Literal:
    text: str


@dataclass(frozen=True)
class Group:
    """Bracketed token run: `(...)` or `[...]`."""

    delimiter: str
    tokens: tuple = ()

    def __post_init__(self):
        if self.delimiter not in _CLOSERS:
            raise TokenError(f"unknown delimiter {self.delimiter!r}")


Token = Union[Ident, Keyword, Punct, Literal, Group]

_CLOSERS = {"(": ")", "[": "]"}


def ident(text: str) -> Ident:
    return Ident(text)


def kw(text: str) -> Keyword:
    return Keyword(text)


def p(text: str) -> Punct:
    return Punct(text)


def lit(value) -> Literal:
    return Literal(str(value))


def string(text: str) -> Literal:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return Literal(f'"{escaped}"')


def parens(tokens=()) -> Group:
    return Group("(", tuple(tokens))


def brackets(tokens=()) -> Group:
    return Group("[", tuple(tokens))


def generic(name: str, args) -> list:
    """`name<args>` with type-argument spacing."""
    return [Ident(name), Punct("<", generic=True), *_flatten(args), Punct(">", generic=True)]


def path(*segments: str) -> list:
    tokens: list = []
    for segment in segments:
        if tokens:
            tokens.append(Punct("::"))
        if segment in ("Self", "self", "super", "crate"):
            tokens.append(Keyword(segment))
        else:
            tokens.append(Ident(segment))
    return tokens


def comma_list(parts) -> list:
    """Join token lists with commas."""
    tokens: list = []
    for part in parts:
        if tokens:
            tokens.append(Punct(","))
        tokens.extend(part)
    return tokens


# ===--- Items ---=== #


@dataclass(frozen=True)
class Line:
    """One statement or field; rendered on a single line unless too wide."""

    tokens: tuple


@dataclass(frozen=True)
class Attr:
    tokens: tuple
    inner: bool = False


@dataclass(frozen=True)
class Comment:
    text: str
    doc: bool = False


@dataclass(frozen=True)
class Blank:
    pass


@dataclass(frozen=True)
class Block:
    """`header { items }` followed by an optional suffix such as `;`."""

    header: tuple
    items: tuple = ()
    suffix: str = ""


Item = Union[Line, Attr, Comment, Blank, Block]


def line(*tokens) -> Line:
    return Line(tuple(_flatten(tokens)))


def attr(*tokens, inner: bool = False) -> Attr:
    return Attr(tuple(_flatten(tokens)), inner)


def block(header, items=(), suffix: str = "") -> Block:
    return Block(tuple(_flatten(header)), tuple(items), suffix)


def _flatten(tokens):
    for token in tokens:
        if isinstance(token, (list, tuple)):
            yield from _flatten(token)
        else:
            yield token


# ===--- Rendering ---=== #

_NO_SPACE_BEFORE = {",", ";", ":", "::", ".", "?"}
_NO_SPACE_AFTER = {"&", "!", "#", "::", ".", "-"}


def _space_between(prev, cur) -> bool:
    if prev is None:
        return False
    if isinstance(cur, Punct) and cur.text in _NO_SPACE_BEFORE:
        return False
    if isinstance(prev, Punct) and prev.text in _NO_SPACE_AFTER:
        return False
    if isinstance(prev, Punct) and prev.generic and prev.text == "<":
        return False
    if isinstance(cur, Punct) and cur.generic:
        return cur.text == "<" and not isinstance(prev, (Ident, Keyword))
    if isinstance(cur, Group) and cur.delimiter == "(":
        return not isinstance(prev, (Ident, Keyword))
    return True


def render_tokens(tokens) -> str:
    """Render a token run on one line."""
    out: list[str] = []
    prev = None
    for token in tokens:
        if _space_between(prev, token):
            out.append(" ")
        out.append(_render_token(token))
        prev = token
    return "".join(out)


def _render_token(token) -> str:
    if isinstance(token, Group):
        return token.delimiter + render_tokens(token.tokens) + _CLOSERS[token.delimiter]
    if isinstance(token, (Ident, Keyword, Punct, Literal)):
        return token.text
    raise EmitError("FORMAT", f"not a token: {token!r}")


def _split_commas(tokens) -> list[list]:
    parts: list[list] = [[]]
    for token in tokens:
        if isinstance(token, Punct) and token.text == ",":
            parts.append([])
        else:
            parts[-1].append(token)
    return [part for part in parts if part]


def _render_line(tokens, indent: str) -> list[str]:
    text = render_tokens(tokens)
    if len(indent) + len(text) <= MAX_WIDTH:
        return [indent + text]
    # Break the first parenthesized list that has more than one entry.
    for index, token in enumerate(tokens):
        if isinstance(token, Group) and token.delimiter == "(":
            parts = _split_commas(token.tokens)
            if len(parts) < 2:
                continue
            head = render_tokens(tokens[:index])
            if index and _space_between(tokens[index - 1], token):
                head += " "
            rest = tokens[index + 1 :]
            tail = render_tokens(rest)
            if rest and _space_between(token, rest[0]):
                tail = " " + tail
            lines = [f"{indent}{head}("]
            for part in parts:
                lines.append(f"{indent}{INDENT}{render_tokens(part)},")
            lines.append(f"{indent}){tail}")
            return lines
    return [indent + text]


def _render_items(items, depth: int) -> list[str]:
    indent = INDENT * depth
    lines: list[str] = []
    for item in items:
        if isinstance(item, Line):
            if not item.tokens:
                raise EmitError("FORMAT", "empty line item")
            lines.extend(_render_line(item.tokens, indent))
        elif isinstance(item, Attr):
            if not item.tokens:
                raise EmitError("FORMAT", "empty attribute")
            opener = "#![" if item.inner else "#["
            lines.append(f"{indent}{opener}{render_tokens(item.tokens)}]")
        elif isinstance(item, Comment):
            marker = "///" if item.doc else "//"
            lines.append(f"{indent}{marker} {item.text}".rstrip())
        elif isinstance(item, Blank):
            lines.append("")
        elif isinstance(item, Block):
            header = render_tokens(item.header)
            if not item.items:
                lines.append(f"{indent}{header} {{}}{item.suffix}")
                continue
            lines.append(f"{indent}{header} {{")
            lines.extend(_render_items(item.items, depth + 1))
            lines.append(f"{indent}}}{item.suffix}")
        else:
            raise EmitError("FORMAT", f"not an item: {item!r}")
    return lines


def format_items(items) -> list[str]:
    """Render items to source lines.

    Raises:
        EmitError: FORMAT when the tree holds something that is not a token
            or an item.
    """
    return _render_items(items, 0)
