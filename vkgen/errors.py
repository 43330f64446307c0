"""Error taxonomy for the generator.

Every layer raises its own subclass of VkgenError and no layer recovers from
another layer's error. Codes are validated against the class-level CODES set
so a typo in a raise site fails loudly instead of producing an unknown code.
"""

from __future__ import annotations

from typing import NamedTuple


class Position(NamedTuple):
    """1-based source position of an XML event."""

    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class VkgenError(Exception):
    CODES: frozenset[str] = frozenset()

    def __init__(self, code: str, message: str):
        if code not in self.CODES:
            raise ValueError(f"Unknown {type(self).__name__} code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


# ===--- Command-line ---=== #


class ConfigError(VkgenError):
    CODES = frozenset({"BAD_CMD_ARG", "REQ_CMD_ARG"})

    def __init__(self, code: str, message: str, suggestion: str | None = None):
        super().__init__(code, message)
        self.suggestion = suggestion


# ===--- I/O and fetch ---=== #


class IoError(VkgenError):
    CODES = frozenset({"IO"})

    def __init__(self, cause: OSError):
        super().__init__("IO", str(cause))
        self.cause = cause


class FetchError(VkgenError):
    CODES = frozenset({"HTTP"})

    def __init__(self, cause: Exception):
        super().__init__("HTTP", str(cause))
        self.cause = cause


# ===--- Parse ---=== #


class ParseError(VkgenError):
    CODES = frozenset(
        {
            "BAD_START",
            "BAD_END",
            "BAD_CHILD",
            "BAD_CONTENT",
            "REQ_ATTRIB",
            "BAD_ATTRIB",
            "UNREAD_ATTRIB",
            "DOC_END",
            "EMPTY_REGISTRY",
            "XML_READ",
        }
    )

    def __init__(self, code: str, message: str, position: Position):
        super().__init__(code, message)
        self.position = position

    def __str__(self) -> str:
        return f"error at {self.position}: {self.message}"


def bad_start(name: str, position: Position) -> ParseError:
    return ParseError("BAD_START", f"unexpected element start <{name}>", position)


def bad_end(name: str, position: Position) -> ParseError:
    return ParseError("BAD_END", f"unexpected element end </{name}>", position)


def bad_child(parent: str, child: str, position: Position) -> ParseError:
    return ParseError(
        "BAD_CHILD", f"element <{parent}> cannot contain <{child}>", position
    )


def bad_content(element: str, text: str, position: Position) -> ParseError:
    return ParseError(
        "BAD_CONTENT",
        f"element <{element}> cannot contain text {text.strip()!r}",
        position,
    )


def req_attrib(element: str, attrib: str, position: Position) -> ParseError:
    return ParseError(
        "REQ_ATTRIB",
        f"element <{element}> is missing required attribute '{attrib}'",
        position,
    )


def bad_attrib(element: str, attrib: str, value: str, position: Position) -> ParseError:
    return ParseError(
        "BAD_ATTRIB",
        f"bad value '{value}' for attribute '{attrib}' on <{element}>",
        position,
    )


def unread_attrib(
    element: str, attrib: str, value: str, position: Position
) -> ParseError:
    return ParseError(
        "UNREAD_ATTRIB",
        f"unrecognized attribute '{attrib}=\"{value}\"' on <{element}>",
        position,
    )


def doc_end(element: str, position: Position) -> ParseError:
    return ParseError(
        "DOC_END", f"document ended before </{element}> was closed", position
    )


# ===--- Link ---=== #


class TransError(VkgenError):
    CODES = frozenset({"TYPE_NOT_FOUND", "BAD_TYPE", "DUPLICATE_NAME"})

    def __init__(self, code: str, message: str, position: Position | None = None):
        super().__init__(code, message)
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.message} (at {self.position})"


def type_not_found(name: str, position: Position | None = None) -> TransError:
    return TransError("TYPE_NOT_FOUND", f"type '{name}' not found", position)


def duplicate_name(name: str, position: Position | None = None) -> TransError:
    return TransError("DUPLICATE_NAME", f"duplicate name '{name}'", position)


# ===--- Emit ---=== #


class EmitError(VkgenError):
    CODES = frozenset({"BAD_STRUCT_MEMBER", "FORMAT"})


def bad_struct_member(struct: str, member: str) -> EmitError:
    return EmitError(
        "BAD_STRUCT_MEMBER", f"struct '{struct}' has malformed member '{member}'"
    )
