"""Boolean feature expressions from vk.xml `depends` attributes.

Grammar, lowest precedence first:

    expr    := and ( ',' and )*        comma is logical OR
    and     := primary ( '+' primary )*  plus is logical AND
    primary := '(' expr ')' | identifier

Chains flatten, so "A+B+C" is And([A, B, C]) rather than nested pairs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Feature:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class And:
    terms: tuple[Depends, ...]

    def __str__(self) -> str:
        return "+".join(_wrap(term) for term in self.terms)


@dataclass(frozen=True)
class Or:
    terms: tuple[Depends, ...]

    def __str__(self) -> str:
        return ",".join(str(term) for term in self.terms)


Depends = Union[Feature, And, Or]


def _wrap(term: Depends) -> str:
    if isinstance(term, Or):
        return f"({term})"
    return str(term)


def feature_names(depends: Depends) -> frozenset[str]:
    """Flatten an expression into the set of every referenced feature name."""
    if isinstance(depends, Feature):
        return frozenset({depends.name})
    names: set[str] = set()
    for term in depends.terms:
        names |= feature_names(term)
    return frozenset(names)


def evaluate(depends: Depends, enabled: frozenset[str] | set[str]) -> bool:
    if isinstance(depends, Feature):
        return depends.name in enabled
    if isinstance(depends, And):
        return all(evaluate(term, enabled) for term in depends.terms)
    return any(evaluate(term, enabled) for term in depends.terms)


class DependsSyntaxError(ValueError):
    """Raised for malformed expressions; the parser maps it to BAD_ATTRIB."""


_IDENT_CHARS = frozenset(
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_:"
)


class _Cursor:
    def __init__(self, text: str):
        self.text = text
        self.index = 0

    def skip_space(self) -> None:
        while self.index < len(self.text) and self.text[self.index].isspace():
            self.index += 1

    def peek(self) -> str | None:
        self.skip_space()
        if self.index < len(self.text):
            return self.text[self.index]
        return None

    def bump(self) -> str:
        ch = self.text[self.index]
        self.index += 1
        return ch


def parse_depends(text: str) -> Depends:
    """Parse a depends string such as "(A,B)+C" into an expression tree.

    Raises:
        DependsSyntaxError: On empty input, unbalanced parentheses, a missing
            operand, or trailing characters.
    """
    cursor = _Cursor(text)
    expr = _parse_or(cursor)
    if cursor.peek() is not None:
        raise DependsSyntaxError(
            f"unexpected '{cursor.peek()}' at offset {cursor.index} in {text!r}"
        )
    return expr


def _parse_or(cursor: _Cursor) -> Depends:
    terms = [_parse_and(cursor)]
    while cursor.peek() == ",":
        cursor.bump()
        terms.append(_parse_and(cursor))
    if len(terms) == 1:
        return terms[0]
    return Or(tuple(terms))


def _parse_and(cursor: _Cursor) -> Depends:
    terms = [_parse_primary(cursor)]
    while cursor.peek() == "+":
        cursor.bump()
        terms.append(_parse_primary(cursor))
    if len(terms) == 1:
        return terms[0]
    return And(tuple(terms))


def _parse_primary(cursor: _Cursor) -> Depends:
    ch = cursor.peek()
    if ch is None:
        raise DependsSyntaxError(f"expected a feature name in {cursor.text!r}")
    if ch == "(":
        cursor.bump()
        inner = _parse_or(cursor)
        if cursor.peek() != ")":
            raise DependsSyntaxError(f"unbalanced parentheses in {cursor.text!r}")
        cursor.bump()
        return inner
    start = cursor.index
    while cursor.index < len(cursor.text) and cursor.text[cursor.index] in _IDENT_CHARS:
        cursor.index += 1
    if cursor.index == start:
        raise DependsSyntaxError(
            f"unexpected '{ch}' at offset {start} in {cursor.text!r}"
        )
    return Feature(cursor.text[start : cursor.index])
