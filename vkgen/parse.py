"""Recursive-descent parser for the Khronos registry grammar.

parse_registry() is the entry point; every element below <registry> is
handled by an ElementParser subclass driven by element.parse_element().
"""

from __future__ import annotations

import io
from typing import BinaryIO

from .depends import And, Depends, Feature as FeatureName
from .element import (
    ElementParser,
    parse_element,
    parse_text_element,
)
from .errors import (
    ParseError,
    bad_attrib,
    bad_content,
    bad_end,
    bad_start,
    req_attrib,
)
from .parse_extra import (
    FormatsParser,
    SpirvCapabilitiesParser,
    SpirvExtensionsParser,
    SyncParser,
    VideoCodecsParser,
)
from .parse_types import ParamParser, ProtoParser, TypesParser
from .registry import (
    AliasValue,
    BitValue,
    Command,
    Commands,
    Comment,
    ConstantValue,
    Deprecate,
    EnumEntry,
    EnumReference,
    Enums,
    EnumsKind,
    Extension,
    Extensions,
    Feature,
    OffsetValue,
    PlainValue,
    Platform,
    Platforms,
    Registry,
    Remove,
    Require,
    RequireCommand,
    RequireEnum,
    RequireFeature,
    RequireType,
    Tag,
    Tags,
    Unused,
)
from .xmlevents import (
    Characters,
    EndDocument,
    EndElement,
    EventReader,
    StartElement,
)

REGISTRY_TAG = "registry"


def parse_registry(stream: BinaryIO) -> Registry:
    """Parse a vk.xml byte stream into a Registry tree.

    Raises:
        ParseError: EMPTY_REGISTRY when the document has no root element or
            the root holds neither a comment nor any item; BAD_START when the
            root is not <registry>; any element-level error from below.
    """
    reader = EventReader(stream)
    while True:
        event = reader.next()
        if isinstance(event, StartElement):
            if event.name != REGISTRY_TAG:
                raise bad_start(event.name, event.position)
            registry = parse_element(reader, event, RegistryParser)
            if registry.comment is None and not registry.items:
                raise ParseError("EMPTY_REGISTRY", "registry is empty", event.position)
            return registry
        if isinstance(event, EndDocument):
            raise ParseError(
                "EMPTY_REGISTRY", "document has no <registry> element", event.position
            )
        if isinstance(event, EndElement):
            raise bad_end(event.name, event.position)
        if isinstance(event, Characters):
            raise bad_content("document", event.text, event.position)


def parse_registry_text(text: str) -> Registry:
    return parse_registry(io.BytesIO(text.encode("utf-8")))


class RegistryParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.registry = Registry()

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "comment":
            text = parse_text_element(reader, start)
            if self.registry.comment is None and not self.registry.items:
                self.registry.comment = text
            else:
                self.registry.items.append(Comment(text))
            return
        parser_type = REGISTRY_CHILDREN.get(start.name)
        if parser_type is None:
            super().parse_child(reader, start)
        else:
            self.registry.items.append(parse_element(reader, start, parser_type))

    def finish(self) -> Registry:
        return self.registry


# ===--- <platforms> / <tags> ---=== #


class PlatformParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.platform = Platform(
            name=self.take_required(attribs, "name"),
            protect=self.take_required(attribs, "protect"),
            comment=self.take(attribs, "comment"),
        )

    def finish(self) -> Platform:
        return self.platform


class PlatformsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.platforms = Platforms()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.platforms.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "platform":
            self.platforms.platforms.append(parse_element(reader, start, PlatformParser))
        else:
            super().parse_child(reader, start)

    def finish(self) -> Platforms:
        return self.platforms


class TagParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.tag_node = Tag(
            name=self.take_required(attribs, "name"),
            author=self.take_required(attribs, "author"),
            contact=self.take_required(attribs, "contact"),
        )

    def finish(self) -> Tag:
        return self.tag_node


class TagsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.tags = Tags()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.tags.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "tag":
            self.tags.tags.append(parse_element(reader, start, TagParser))
        else:
            super().parse_child(reader, start)

    def finish(self) -> Tags:
        return self.tags


# ===--- <enums> ---=== #


class EnumEntryParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        name = self.take_required(attribs, "name")
        value = self.take(attribs, "value")
        bitpos = self.take_int(attribs, "bitpos")
        alias = self.take(attribs, "alias")
        ty = self.take(attribs, "type")
        if alias is not None:
            enum_value = AliasValue(alias)
        elif bitpos is not None:
            enum_value = BitValue(bitpos)
        elif value is not None and ty is not None:
            enum_value = ConstantValue(value, ty)
        elif value is not None:
            enum_value = PlainValue(value)
        else:
            raise req_attrib(self.tag, "value", self.position)
        self.entry = EnumEntry(
            name=name,
            value=enum_value,
            api=self.take_list(attribs, "api"),
            deprecated=self.take_deprecated(attribs),
            protect=self.take(attribs, "protect"),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )

    def finish(self) -> EnumEntry:
        return self.entry


class UnusedParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.unused = Unused(
            start=self.take_required(attribs, "start"),
            end=self.take(attribs, "end"),
            vendor=self.take(attribs, "vendor"),
            comment=self.take(attribs, "comment"),
        )

    def finish(self) -> Unused:
        return self.unused


class EnumsParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.enums = Enums(
            name=self.take_required(attribs, "name"),
            kind=self.convert("type", self.take(attribs, "type"), EnumsKind),
            bitwidth=self.take_int(attribs, "bitwidth"),
            start=self.take(attribs, "start"),
            end=self.take(attribs, "end"),
            vendor=self.take(attribs, "vendor"),
            comment=self.take(attribs, "comment"),
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "enum":
            self.enums.children.append(parse_element(reader, start, EnumEntryParser))
        elif start.name == "unused":
            self.enums.children.append(parse_element(reader, start, UnusedParser))
        elif start.name == "comment":
            self.enums.children.append(Comment(parse_text_element(reader, start)))
        else:
            super().parse_child(reader, start)

    def finish(self) -> Enums:
        return self.enums


# ===--- <commands> ---=== #


class ImplicitExternSyncParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.params: list[str] = []

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "param":
            self.params.append(parse_text_element(reader, start))
        else:
            super().parse_child(reader, start)

    def finish(self) -> list[str]:
        return self.params


class CommandParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.command = Command(
            name=self.take(attribs, "name") or "",
            alias=self.take(attribs, "alias"),
            api=self.take_list(attribs, "api"),
            queues=self.take_list(attribs, "queues"),
            successcodes=self.take_list(attribs, "successcodes"),
            errorcodes=self.take_list(attribs, "errorcodes"),
            renderpass=self.take(attribs, "renderpass"),
            videocoding=self.take(attribs, "videocoding"),
            cmdbufferlevel=self.take_list(attribs, "cmdbufferlevel"),
            tasks=self.take_list(attribs, "tasks"),
            allownoqueues=self.take_bool(attribs, "allownoqueues"),
            conditionalrendering=self.take_bool(attribs, "conditionalrendering"),
            export=self.take_list(attribs, "export"),
            description=self.take(attribs, "description"),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "proto":
            self.command.proto = parse_element(reader, start, ProtoParser)
        elif start.name == "param":
            self.command.params.append(parse_element(reader, start, ParamParser))
        elif start.name == "alias":
            self.command.alias = parse_element(reader, start, NameOnlyParser)
        elif start.name == "description":
            self.command.description = parse_text_element(reader, start)
        elif start.name == "implicitexternsyncparams":
            self.command.implicit_extern_sync = parse_element(
                reader, start, ImplicitExternSyncParser
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> Command:
        if not self.command.name and self.command.proto is not None:
            self.command.name = self.command.proto.name or ""
        if not self.command.name:
            raise req_attrib(self.tag, "name", self.position)
        return self.command


class NameOnlyParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.name = self.take_required(attribs, "name")

    def finish(self) -> str:
        return self.name


class CommandsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.commands = Commands()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.commands.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "command":
            self.commands.commands.append(parse_element(reader, start, CommandParser))
        else:
            super().parse_child(reader, start)

    def finish(self) -> Commands:
        return self.commands


# ===--- <require> / <deprecate> / <remove> ---=== #


class RequireTypeParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.item = RequireType(
            name=self.take_required(attribs, "name"),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )

    def finish(self) -> RequireType:
        return self.item


class RequireCommandParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.item = RequireCommand(
            name=self.take_required(attribs, "name"),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )

    def finish(self) -> RequireCommand:
        return self.item


class RequireEnumParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        name = self.take_required(attribs, "name")
        value = self.take(attribs, "value")
        bitpos = self.take_int(attribs, "bitpos")
        offset = self.take_int(attribs, "offset")
        extnumber = self.take_int(attribs, "extnumber")
        direction = self.take(attribs, "dir")
        alias = self.take(attribs, "alias")
        if direction not in (None, "-"):
            raise bad_attrib(self.tag, "dir", direction, self.position)

        if alias is not None:
            enum_value = AliasValue(alias)
        elif bitpos is not None:
            enum_value = BitValue(bitpos)
        elif offset is not None:
            enum_value = OffsetValue(offset, extnumber, direction == "-")
        elif value is not None:
            enum_value = PlainValue(value)
        else:
            enum_value = EnumReference()

        self.item = RequireEnum(
            name=name,
            value=enum_value,
            extends=self.take(attribs, "extends"),
            ty=self.take(attribs, "type"),
            api=self.take_list(attribs, "api"),
            protect=self.take(attribs, "protect"),
            deprecated=self.take_deprecated(attribs),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )

    def finish(self) -> RequireEnum:
        return self.item


class RequireFeatureParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.item = RequireFeature(
            name=self.take_required(attribs, "name"),
            struct=self.take_required(attribs, "struct"),
            comment=self.take(attribs, "comment"),
        )

    def finish(self) -> RequireFeature:
        return self.item


class RequireItemsParser(ElementParser):
    """Shared child grammar of <require>, <deprecate> and <remove>."""

    ITEM_PARSERS = {
        "type": RequireTypeParser,
        "command": RequireCommandParser,
        "enum": RequireEnumParser,
        "feature": RequireFeatureParser,
    }

    def __init__(self, start: StartElement):
        super().__init__(start)
        self.items: list = []

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "comment":
            self.items.append(Comment(parse_text_element(reader, start)))
            return
        parser_type = self.ITEM_PARSERS.get(start.name)
        if parser_type is None:
            super().parse_child(reader, start)
        else:
            self.items.append(parse_element(reader, start, parser_type))


class RequireParser(RequireItemsParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.require = Require(
            api=self.take_list(attribs, "api"),
            profile=self.take(attribs, "profile"),
            depends=self.take_depends(attribs),
            comment=self.take(attribs, "comment"),
        )
        # Registries before the `depends` attribute spelled the condition as
        # separate feature/extension attributes.
        legacy: list[Depends] = []
        for name in ("feature", "extension"):
            value = self.take(attribs, name)
            if value is not None:
                legacy.append(FeatureName(value))
        if legacy:
            if self.require.depends is not None:
                legacy.insert(0, self.require.depends)
            self.require.depends = legacy[0] if len(legacy) == 1 else And(tuple(legacy))

    def finish(self) -> Require:
        self.require.items = self.items
        return self.require


class DeprecateParser(RequireItemsParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.deprecate = Deprecate(
            explanationlink=self.take(attribs, "explanationlink"),
            comment=self.take(attribs, "comment"),
        )

    def finish(self) -> Deprecate:
        self.deprecate.items = self.items
        return self.deprecate


class RemoveParser(RequireItemsParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.remove = Remove(
            api=self.take_list(attribs, "api"),
            profile=self.take(attribs, "profile"),
            reasonlink=self.take(attribs, "reasonlink"),
            comment=self.take(attribs, "comment"),
        )

    def finish(self) -> Remove:
        self.remove.items = self.items
        return self.remove


class FeatureChildrenParser(ElementParser):
    CHILD_PARSERS = {
        "require": RequireParser,
        "deprecate": DeprecateParser,
        "remove": RemoveParser,
    }

    def __init__(self, start: StartElement):
        super().__init__(start)
        self.children: list = []

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        parser_type = self.CHILD_PARSERS.get(start.name)
        if parser_type is None:
            super().parse_child(reader, start)
        else:
            self.children.append(parse_element(reader, start, parser_type))


# ===--- <feature> / <extensions> ---=== #


class FeatureParser(FeatureChildrenParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.feature = Feature(
            name=self.take_required(attribs, "name"),
            api=self.convert("api", self.take_required(attribs, "api"), _api_list),
            number=self.take_required(attribs, "number"),
            sortorder=self.take_int(attribs, "sortorder"),
            protect=self.take(attribs, "protect"),
            depends=self.take_depends(attribs),
            apitype=self.take(attribs, "apitype"),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )

    def finish(self) -> Feature:
        self.feature.children = self.children
        return self.feature


class ExtensionParser(FeatureChildrenParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.extension = Extension(
            name=self.take_required(attribs, "name"),
            number=self.take_int(attribs, "number"),
            supported=self.take_list(attribs, "supported") or (),
            author=self.take(attribs, "author"),
            contact=self.take(attribs, "contact"),
            type=self.take(attribs, "type"),
            depends=self.take_depends(attribs),
            platform=self.take(attribs, "platform"),
            ratified=self.take_list(attribs, "ratified"),
            promotedto=self.take(attribs, "promotedto"),
            deprecatedby=self.take(attribs, "deprecatedby"),
            obsoletedby=self.take(attribs, "obsoletedby"),
            provisional=self.take_bool(attribs, "provisional"),
            specialuse=self.take_list(attribs, "specialuse"),
            sortorder=self.take_int(attribs, "sortorder"),
            nofeatures=self.take_bool(attribs, "nofeatures"),
            comment=self.take(attribs, "comment"),
            position=self.position,
        )
        # Older registries used requires= instead of depends=.
        requires = self.take_list(attribs, "requires")
        if requires and self.extension.depends is None:
            terms = tuple(FeatureName(name) for name in requires)
            self.extension.depends = terms[0] if len(terms) == 1 else And(terms)
        core = self.take(attribs, "requiresCore")
        if core is not None:
            core_term = FeatureName("VK_VERSION_" + core.replace(".", "_"))
            if self.extension.depends is None:
                self.extension.depends = core_term
            else:
                self.extension.depends = And((core_term, self.extension.depends))

    def finish(self) -> Extension:
        self.extension.children = self.children
        return self.extension


class ExtensionsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.extensions = Extensions()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.extensions.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "extension":
            self.extensions.extensions.append(
                parse_element(reader, start, ExtensionParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> Extensions:
        return self.extensions


def _api_list(raw: str) -> tuple[str, ...]:
    names = tuple(part.strip() for part in raw.split(",") if part.strip())
    if not names:
        raise ValueError("empty api list")
    return names


REGISTRY_CHILDREN: dict[str, type[ElementParser]] = {
    "platforms": PlatformsParser,
    "tags": TagsParser,
    "types": TypesParser,
    "enums": EnumsParser,
    "commands": CommandsParser,
    "feature": FeatureParser,
    "extensions": ExtensionsParser,
    "formats": FormatsParser,
    "spirvextensions": SpirvExtensionsParser,
    "spirvcapabilities": SpirvCapabilitiesParser,
    "sync": SyncParser,
    "videocodecs": VideoCodecsParser,
}
