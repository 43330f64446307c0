from __future__ import annotations

import io

import pytest

from vkgen.errors import ParseError, Position
from vkgen.xmlevents import (
    Characters,
    EndDocument,
    EndElement,
    EventReader,
    StartElement,
    Whitespace,
    XmlComment,
)


def _drain(reader: EventReader) -> list[object]:
    events = []
    while True:
        event = reader.next()
        events.append(event)
        if isinstance(event, EndDocument):
            return events


def test_start_event_carries_attributes_and_one_based_position() -> None:
    reader = EventReader.from_text('<a x="1">hi<b/></a>')

    first = reader.next()

    assert isinstance(first, StartElement)
    assert first.name == "a"
    assert first.attribs == {"x": "1"}
    assert first.position == Position(1, 1)
    assert reader.position == Position(1, 1)


def test_event_sequence_for_nested_elements() -> None:
    events = _drain(EventReader.from_text('<a x="1">hi<b/></a>'))

    kinds = [type(e).__name__ for e in events]
    assert kinds == [
        "StartElement",
        "Characters",
        "StartElement",
        "EndElement",
        "EndElement",
        "EndDocument",
    ]
    assert events[1].text == "hi"
    assert events[2].position == Position(1, 12)


def test_whitespace_between_children_is_not_characters() -> None:
    events = _drain(EventReader.from_text("<a>\n    <b/>\n</a>"))

    assert isinstance(events[1], Whitespace)
    assert not any(isinstance(e, Characters) for e in events)
    assert events[2].position == Position(2, 5)


def test_comments_are_reported_as_events() -> None:
    events = _drain(EventReader.from_text("<a><!-- note --></a>"))

    comments = [e for e in events if isinstance(e, XmlComment)]
    assert [c.text for c in comments] == [" note "]


def test_text_split_across_chunks_is_merged() -> None:
    reader = EventReader(io.BytesIO(b"<a>hello world</a>"), chunk_size=3)

    events = _drain(reader)

    texts = [e.text for e in events if isinstance(e, Characters)]
    assert texts == ["hello world"]
    assert isinstance(events[-2], EndElement)


def test_empty_document_reports_end_document() -> None:
    reader = EventReader.from_text("")

    assert isinstance(reader.next(), EndDocument)


def test_malformed_xml_raises_xml_read_with_position() -> None:
    reader = EventReader.from_text("<a>\n<b></a>")

    with pytest.raises(ParseError) as excinfo:
        _drain(reader)

    assert excinfo.value.code == "XML_READ"
    assert excinfo.value.position.line == 2
    assert str(excinfo.value).startswith("error at 2:")
