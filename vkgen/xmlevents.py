"""Pull-style XML event reader.

Wraps the push-based expat parser so that the recursive-descent parser can
ask for one event at a time. Input is consumed in chunks; only the events of
the chunk currently being parsed are buffered.
"""

from __future__ import annotations

import io
from collections import deque
from dataclasses import dataclass
from typing import BinaryIO, Union
from xml.parsers import expat

from .errors import ParseError, Position

READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StartElement:
    name: str
    attribs: dict[str, str]
    position: Position


@dataclass(frozen=True)
class EndElement:
    name: str
    position: Position


@dataclass(frozen=True)
class Characters:
    text: str
    position: Position


@dataclass(frozen=True)
class Whitespace:
    text: str
    position: Position


@dataclass(frozen=True)
class XmlComment:
    text: str
    position: Position


@dataclass(frozen=True)
class ProcessingInstruction:
    target: str
    data: str
    position: Position


@dataclass(frozen=True)
class EndDocument:
    position: Position


XmlEvent = Union[
    StartElement,
    EndElement,
    Characters,
    Whitespace,
    XmlComment,
    ProcessingInstruction,
    EndDocument,
]

_NO_ELEMENTS = expat.errors.codes[expat.errors.XML_ERROR_NO_ELEMENTS]


class EventReader:
    """Yield XML events from a byte stream, one per next() call.

    Consecutive character data is merged into a single Characters event.
    Character runs made only of whitespace are reported as Whitespace so that
    element handlers can ignore indentation between children.
    """

    def __init__(self, stream: BinaryIO, chunk_size: int = READ_CHUNK_SIZE):
        self._stream = stream
        self._chunk_size = chunk_size
        self._events: deque[XmlEvent] = deque()
        self._text: list[str] = []
        self._text_position: Position | None = None
        self._started = False
        self._finished = False
        self._position = Position(1, 1)

        parser = expat.ParserCreate()
        parser.buffer_text = True
        parser.StartElementHandler = self._on_start
        parser.EndElementHandler = self._on_end
        parser.CharacterDataHandler = self._on_text
        parser.CommentHandler = self._on_comment
        parser.ProcessingInstructionHandler = self._on_pi
        self._parser = parser

    @classmethod
    def from_text(cls, text: str) -> EventReader:
        return cls(io.BytesIO(text.encode("utf-8")))

    @property
    def position(self) -> Position:
        """Position of the most recently returned event."""
        return self._position

    def next(self) -> XmlEvent:
        while not self._events:
            if self._finished:
                event = EndDocument(self._current_position())
                self._position = event.position
                return event
            self._feed()
        event = self._events.popleft()
        self._position = event.position
        return event

    # ===--- expat plumbing ---=== #

    def _current_position(self) -> Position:
        return Position(
            self._parser.CurrentLineNumber, self._parser.CurrentColumnNumber + 1
        )

    def _feed(self) -> None:
        chunk = self._stream.read(self._chunk_size)
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        try:
            if chunk:
                self._parser.Parse(chunk, False)
            else:
                self._parser.Parse(b"", True)
                self._finished = True
        except expat.ExpatError as err:
            if err.code == _NO_ELEMENTS and not self._started:
                # Empty document: surface as EndDocument so callers can
                # report a registry-level error instead of a reader error.
                self._finished = True
                return
            raise ParseError(
                "XML_READ",
                expat.errors.messages[err.code],
                Position(err.lineno, err.offset + 1),
            ) from err
        if self._finished:
            self._flush_text()

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = "".join(self._text)
        position = self._text_position or self._current_position()
        self._text = []
        self._text_position = None
        if text.strip():
            self._events.append(Characters(text, position))
        else:
            self._events.append(Whitespace(text, position))

    def _on_start(self, name: str, attrs: dict[str, str]) -> None:
        self._flush_text()
        self._started = True
        self._events.append(StartElement(name, dict(attrs), self._current_position()))

    def _on_end(self, name: str) -> None:
        self._flush_text()
        self._events.append(EndElement(name, self._current_position()))

    def _on_text(self, data: str) -> None:
        if not self._text:
            self._text_position = self._current_position()
        self._text.append(data)

    def _on_comment(self, data: str) -> None:
        self._flush_text()
        self._events.append(XmlComment(data, self._current_position()))

    def _on_pi(self, target: str, data: str) -> None:
        self._flush_text()
        self._events.append(
            ProcessingInstruction(target, data, self._current_position())
        )
