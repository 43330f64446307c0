"""Generic element-parsing protocol shared by every vk.xml element handler.

A handler is constructed per element occurrence and receives, in order:

    parse_attribs(attribs)      consume recognized attributes
    parse_child(reader, start)  each nested start tag
    parse_text(event)           each non-whitespace character run
    parse_misc(event)           whitespace, comments, processing instructions

and finally finish() builds the parsed node. parse_element() is the single
driver loop. Any attribute left in the map after parse_attribs is an
UNREAD_ATTRIB error, so a schema change never drops information silently.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from .depends import Depends, DependsSyntaxError, parse_depends
from .errors import (
    bad_attrib,
    bad_child,
    bad_content,
    bad_end,
    doc_end,
    req_attrib,
    unread_attrib,
)
from .registry import Deprecation, GenericItem, GenericKind
from .xmlevents import (
    Characters,
    EndDocument,
    EndElement,
    EventReader,
    StartElement,
    Whitespace,
    XmlEvent,
)

T = TypeVar("T")


class ElementParser:
    def __init__(self, start: StartElement):
        self.tag = start.name
        self.position = start.position

    # ===--- Protocol ---=== #

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        pass

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        raise bad_child(self.tag, start.name, start.position)

    def parse_text(self, event: Characters) -> None:
        raise bad_content(self.tag, event.text, event.position)

    def parse_misc(self, event: XmlEvent) -> None:
        pass

    def finish(self) -> Any:
        raise NotImplementedError(f"{type(self).__name__}.finish")

    # ===--- Attribute helpers ---=== #

    def take(self, attribs: dict[str, str], name: str) -> str | None:
        return attribs.pop(name, None)

    def take_required(self, attribs: dict[str, str], name: str) -> str:
        value = attribs.pop(name, None)
        if value is None:
            raise req_attrib(self.tag, name, self.position)
        return value

    def convert(
        self, name: str, value: str | None, converter: Callable[[str], T]
    ) -> T | None:
        if value is None:
            return None
        try:
            return converter(value)
        except ValueError as err:
            raise bad_attrib(self.tag, name, value, self.position) from err

    def take_bool(self, attribs: dict[str, str], name: str) -> bool | None:
        return self.convert(name, attribs.pop(name, None), parse_bool)

    def take_int(self, attribs: dict[str, str], name: str) -> int | None:
        return self.convert(name, attribs.pop(name, None), int)

    def take_list(self, attribs: dict[str, str], name: str) -> tuple[str, ...] | None:
        return self.convert(name, attribs.pop(name, None), parse_list)

    def take_bool_list(
        self, attribs: dict[str, str], name: str
    ) -> tuple[bool, ...] | None:
        return self.convert(
            name,
            attribs.pop(name, None),
            lambda raw: tuple(parse_bool(part) for part in parse_list(raw)),
        )

    def take_deprecated(
        self, attribs: dict[str, str], name: str = "deprecated"
    ) -> Deprecation | None:
        return self.convert(name, attribs.pop(name, None), Deprecation)

    def take_depends(self, attribs: dict[str, str], name: str = "depends") -> Depends | None:
        value = attribs.pop(name, None)
        if value is None:
            return None
        try:
            return parse_depends(value)
        except DependsSyntaxError as err:
            raise bad_attrib(self.tag, name, value, self.position) from err


def parse_bool(raw: str) -> bool:
    if raw == "true":
        return True
    if raw == "false":
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def parse_list(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def parse_element(
    reader: EventReader,
    start: StartElement,
    parser_type: Callable[..., ElementParser],
    *args: Any,
) -> Any:
    """Drive one element from its start tag to the matching end tag."""
    handler = parser_type(start, *args)
    attribs = dict(start.attribs)
    handler.parse_attribs(attribs)
    if attribs:
        name, value = next(iter(attribs.items()))
        raise unread_attrib(start.name, name, value, start.position)

    while True:
        event = reader.next()
        if isinstance(event, StartElement):
            handler.parse_child(reader, event)
        elif isinstance(event, EndElement):
            if event.name != start.name:
                raise bad_end(event.name, event.position)
            return handler.finish()
        elif isinstance(event, Characters):
            handler.parse_text(event)
        elif isinstance(event, EndDocument):
            raise doc_end(start.name, event.position)
        else:
            handler.parse_misc(event)


# ===--- Reusable handlers ---=== #


class TextParser(ElementParser):
    """Attribute-less element holding only text, e.g. <comment>."""

    def __init__(self, start: StartElement):
        super().__init__(start)
        self.parts: list[str] = []

    def parse_text(self, event: Characters) -> None:
        self.parts.append(event.text)

    def parse_misc(self, event: XmlEvent) -> None:
        if isinstance(event, Whitespace):
            self.parts.append(event.text)

    def finish(self) -> str:
        return "".join(self.parts)


def parse_text_element(reader: EventReader, start: StartElement) -> str:
    return parse_element(reader, start, TextParser)


class MixedContentParser(ElementParser):
    """Element whose body interleaves C text with <type>, <name>, ... children.

    Items are kept in source order; whitespace runs are kept as text because
    they separate C tokens.
    """

    CHILD_KINDS: dict[str, GenericKind] = {
        "type": GenericKind.TYPE,
        "name": GenericKind.NAME,
    }

    def __init__(self, start: StartElement):
        super().__init__(start)
        self.items: list[GenericItem] = []

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        kind = self.CHILD_KINDS.get(start.name)
        if kind is None:
            raise bad_child(self.tag, start.name, start.position)
        self.items.append(GenericItem(kind, parse_text_element(reader, start)))

    def parse_text(self, event: Characters) -> None:
        self.items.append(GenericItem(GenericKind.TEXT, event.text))

    def parse_misc(self, event: XmlEvent) -> None:
        if isinstance(event, Whitespace):
            self.items.append(GenericItem(GenericKind.TEXT, event.text))
