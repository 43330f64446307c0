"""Handlers for <types> and the category-dependent <type> grammars."""

from __future__ import annotations

import re

from .element import (
    ElementParser,
    MixedContentParser,
    parse_element,
    parse_text_element,
)
from .errors import bad_attrib, req_attrib
from .registry import (
    BaseType,
    BitmaskType,
    DefineType,
    EnumType,
    FnPtrType,
    GenericKind,
    HandleType,
    ImportedType,
    IncludeType,
    Member,
    Param,
    Proto,
    StructType,
    Type,
    TypeCommon,
    Types,
    UnionType,
    item_text,
    render_items,
)
from .xmlevents import EventReader, StartElement

_INCLUDE_RE = re.compile(r'#include\s*[<"]([^>"]+)[>"]')


class TypesParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.types = Types()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.types.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "type":
            self.types.items.append(parse_type(reader, start))
        elif start.name == "comment":
            self.types.comments.append(parse_text_element(reader, start))
        else:
            super().parse_child(reader, start)

    def finish(self) -> Types:
        return self.types


# ===--- <type> category dispatch ---=== #


class TypeParser(MixedContentParser):
    """Shared handling for the attributes every <type> category accepts."""

    def __init__(self, start: StartElement):
        super().__init__(start)
        self.common = TypeCommon(name="")

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        attribs.pop("category", None)
        self.common.name = self.take(attribs, "name") or ""
        self.common.requires = self.take(attribs, "requires")
        self.common.deprecated = self.take_deprecated(attribs)
        self.common.api = self.take_list(attribs, "api")
        self.common.alias = self.take(attribs, "alias")
        self.common.comment = self.take(attribs, "comment")

    def resolve_name(self) -> str:
        name = self.common.name or item_text(self.items, GenericKind.NAME)
        if not name:
            raise req_attrib(self.tag, "name", self.position)
        return name

    def details(self):
        raise NotImplementedError

    def finish(self) -> Type:
        details = self.details()
        self.common.name = self.resolve_name()
        return Type(common=self.common, details=details, position=self.position)


class IncludeParser(TypeParser):
    def details(self) -> IncludeType:
        text = render_items(self.items)
        match = _INCLUDE_RE.search(text)
        if match is not None:
            return IncludeType(header=match.group(1))
        if self.common.name:
            return IncludeType(header=self.common.name)
        raise req_attrib(self.tag, "name", self.position)

    def resolve_name(self) -> str:
        if self.common.name:
            return self.common.name
        return self.details().header


class DefineParser(TypeParser):
    def details(self) -> DefineType:
        return DefineType(items=self.items)


class BaseParser(TypeParser):
    def details(self) -> BaseType:
        return BaseType(items=self.items)


class HandleParser(TypeParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        super().parse_attribs(attribs)
        self.parent = self.take_list(attribs, "parent")
        self.objtypeenum = self.take(attribs, "objtypeenum")

    def details(self) -> HandleType:
        return HandleType(
            items=self.items, parent=self.parent, objtypeenum=self.objtypeenum
        )


class BitmaskParser(TypeParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        super().parse_attribs(attribs)
        self.bitvalues = self.take(attribs, "bitvalues")

    def details(self) -> BitmaskType:
        return BitmaskType(items=self.items, bitvalues=self.bitvalues)


class EmptyTypeParser(TypeParser):
    """Categories whose body holds only whitespace and, maybe, child elements."""

    CHILD_KINDS = {}

    def parse_text(self, event) -> None:
        ElementParser.parse_text(self, event)

    def parse_misc(self, event) -> None:
        pass


class EnumTypeParser(EmptyTypeParser):
    def details(self) -> EnumType:
        return EnumType()


class FnPtrParser(TypeParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.proto: Proto | None = None
        self.params: list[Param] = []

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "proto":
            self.proto = parse_element(reader, start, ProtoParser)
        elif start.name == "param":
            self.params.append(parse_element(reader, start, ParamParser))
        else:
            super().parse_child(reader, start)

    def resolve_name(self) -> str:
        if not self.common.name and self.proto is not None and self.proto.name:
            return self.proto.name
        return super().resolve_name()

    def details(self) -> FnPtrType:
        return FnPtrType(items=self.items, proto=self.proto, params=self.params)


class RecordParser(EmptyTypeParser):
    """<type category="struct"> and <type category="union">."""

    def __init__(self, start: StartElement):
        super().__init__(start)
        self.members: list[Member] = []
        self.comments: list[str] = []

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        super().parse_attribs(attribs)
        self.returned_only = self.take_bool(attribs, "returnedonly")
        self.allow_duplicate = self.take_bool(attribs, "allowduplicate")
        self.extends = self.take_list(attribs, "structextends")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "member":
            self.members.append(parse_element(reader, start, MemberParser))
        elif start.name == "comment":
            self.comments.append(parse_text_element(reader, start))
        else:
            super().parse_child(reader, start)


class StructParser(RecordParser):
    def details(self) -> StructType:
        return StructType(
            returned_only=self.returned_only,
            allow_duplicate=self.allow_duplicate,
            extends=self.extends,
            members=self.members,
            comments=self.comments,
        )


class UnionParser(RecordParser):
    def details(self) -> UnionType:
        return UnionType(
            returned_only=self.returned_only,
            allow_duplicate=self.allow_duplicate,
            extends=self.extends,
            members=self.members,
            comments=self.comments,
        )


class ImportedParser(EmptyTypeParser):
    def details(self) -> ImportedType:
        return ImportedType()


CATEGORY_PARSERS: dict[str | None, type[TypeParser]] = {
    "include": IncludeParser,
    "define": DefineParser,
    "basetype": BaseParser,
    "handle": HandleParser,
    "bitmask": BitmaskParser,
    "enum": EnumTypeParser,
    "funcpointer": FnPtrParser,
    "struct": StructParser,
    "union": UnionParser,
    None: ImportedParser,
}


def parse_type(reader: EventReader, start: StartElement) -> Type:
    category = start.attribs.get("category")
    parser_type = CATEGORY_PARSERS.get(category)
    if parser_type is None:
        raise bad_attrib(start.name, "category", category or "", start.position)
    return parse_element(reader, start, parser_type)


# ===--- Mixed-content bodies ---=== #


class MemberParser(MixedContentParser):
    CHILD_KINDS = {
        "type": GenericKind.TYPE,
        "name": GenericKind.NAME,
        "enum": GenericKind.ENUM,
        "comment": GenericKind.COMMENT,
    }

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.member = Member(position=self.position)
        m = self.member
        m.api = self.take_list(attribs, "api")
        m.values = self.take(attribs, "values")
        m.optional = self.take_bool_list(attribs, "optional")
        m.len = self.take(attribs, "len")
        m.altlen = self.take(attribs, "altlen")
        m.limittype = self.take(attribs, "limittype")
        m.objecttype = self.take(attribs, "objecttype")
        m.selector = self.take(attribs, "selector")
        m.selection = self.take_list(attribs, "selection")
        m.externsync = self.take(attribs, "externsync")
        m.noautovalidity = self.take_bool(attribs, "noautovalidity")
        m.deprecated = self.take_deprecated(attribs)
        m.featurelink = self.take(attribs, "featurelink")
        m.stride = self.take(attribs, "stride")
        m.comment = self.take(attribs, "comment")

    def finish(self) -> Member:
        if item_text(self.items, GenericKind.NAME) is None:
            raise req_attrib(self.tag, "name", self.position)
        self.member.items = self.items
        return self.member


class ProtoParser(MixedContentParser):
    def finish(self) -> Proto:
        if item_text(self.items, GenericKind.NAME) is None:
            raise req_attrib(self.tag, "name", self.position)
        return Proto(items=self.items, position=self.position)


class ParamParser(MixedContentParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.param = Param(position=self.position)
        p = self.param
        p.api = self.take_list(attribs, "api")
        p.len = self.take(attribs, "len")
        p.altlen = self.take(attribs, "altlen")
        p.optional = self.take_bool_list(attribs, "optional")
        p.externsync = self.take(attribs, "externsync")
        p.noautovalidity = self.take_bool(attribs, "noautovalidity")
        p.objecttype = self.take(attribs, "objecttype")
        p.validstructs = self.take_list(attribs, "validstructs")
        p.stride = self.take(attribs, "stride")
        p.selector = self.take(attribs, "selector")

    def finish(self) -> Param:
        if item_text(self.items, GenericKind.NAME) is None:
            raise req_attrib(self.tag, "name", self.position)
        self.param.items = self.items
        return self.param
