"""Handlers for the registry sections the linker only records as warnings.

<formats>, <spirvextensions>, <spirvcapabilities>, <sync> and <videocodecs>
carry no type or command declarations, but they are still parsed strictly so
that a schema change surfaces as UNREAD_ATTRIB instead of being skipped.
"""

from __future__ import annotations

from .element import ElementParser, parse_element, parse_list, parse_text_element
from .registry import (
    Format,
    FormatComponent,
    FormatPlane,
    Formats,
    SpirvCapabilities,
    SpirvCapability,
    SpirvEnable,
    SpirvExtension,
    SpirvExtensions,
    Sync,
    SyncAccess,
    SyncEquivalent,
    SyncPipeline,
    SyncPipelineStage,
    SyncStage,
    SyncSupport,
    VideoCodec,
    VideoCodecs,
    VideoFormat,
    VideoProfile,
    VideoProfileMember,
    VideoProfiles,
    VideoRequireCapabilities,
)
from .xmlevents import EventReader, StartElement


class StructRefParser(ElementParser):
    """Empty element carrying only a `struct` attribute."""

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.struct = self.take_required(attribs, "struct")

    def finish(self) -> str:
        return self.struct


def _int_list(raw: str) -> tuple[int, ...]:
    return tuple(int(part) for part in parse_list(raw))


# ===--- <formats> ---=== #


class FormatComponentParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.component = FormatComponent(
            name=self.take_required(attribs, "name"),
            bits=self.take_required(attribs, "bits"),
            numeric_format=self.take_required(attribs, "numericFormat"),
            plane_index=self.take_int(attribs, "planeIndex"),
        )

    def finish(self) -> FormatComponent:
        return self.component


class FormatPlaneParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.plane = FormatPlane(
            index=self.convert("index", self.take_required(attribs, "index"), int),
            width_divisor=self.convert(
                "widthDivisor", self.take_required(attribs, "widthDivisor"), int
            ),
            height_divisor=self.convert(
                "heightDivisor", self.take_required(attribs, "heightDivisor"), int
            ),
            compatible=self.take_required(attribs, "compatible"),
        )

    def finish(self) -> FormatPlane:
        return self.plane


class SpirvImageFormatParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.name = self.take_required(attribs, "name")

    def finish(self) -> str:
        return self.name


class FormatParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.format = Format(
            name=self.take_required(attribs, "name"),
            format_class=self.take_required(attribs, "class"),
            block_size=self.convert(
                "blockSize", self.take_required(attribs, "blockSize"), int
            ),
            texels_per_block=self.convert(
                "texelsPerBlock", self.take_required(attribs, "texelsPerBlock"), int
            ),
            block_extent=self.convert(
                "blockExtent", self.take(attribs, "blockExtent"), _int_list
            ),
            packed=self.take_int(attribs, "packed"),
            compressed=self.take(attribs, "compressed"),
            chroma=self.take(attribs, "chroma"),
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "component":
            self.format.components.append(
                parse_element(reader, start, FormatComponentParser)
            )
        elif start.name == "plane":
            self.format.planes.append(parse_element(reader, start, FormatPlaneParser))
        elif start.name == "spirvimageformat":
            self.format.spirv_image_formats.append(
                parse_element(reader, start, SpirvImageFormatParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> Format:
        return self.format


class FormatsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.formats = Formats()

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "format":
            self.formats.formats.append(parse_element(reader, start, FormatParser))
        else:
            super().parse_child(reader, start)

    def finish(self) -> Formats:
        return self.formats


# ===--- <spirvextensions> / <spirvcapabilities> ---=== #


class SpirvEnableParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.enable = SpirvEnable(
            version=self.take(attribs, "version"),
            extension=self.take(attribs, "extension"),
            struct=self.take(attribs, "struct"),
            feature=self.take(attribs, "feature"),
            requires=self.take_list(attribs, "requires"),
            alias=self.take(attribs, "alias"),
            property=self.take(attribs, "property"),
            member=self.take(attribs, "member"),
            value=self.take(attribs, "value"),
        )

    def finish(self) -> SpirvEnable:
        return self.enable


class SpirvEntryParser(ElementParser):
    """<spirvextension> and <spirvcapability>: a name plus <enable> children."""

    def __init__(self, start: StartElement, node_type):
        super().__init__(start)
        self.node_type = node_type

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.node = self.node_type(name=self.take_required(attribs, "name"))

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "enable":
            self.node.enables.append(parse_element(reader, start, SpirvEnableParser))
        else:
            super().parse_child(reader, start)

    def finish(self):
        return self.node


class SpirvExtensionsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.section = SpirvExtensions()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.section.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "spirvextension":
            self.section.items.append(
                parse_element(reader, start, SpirvEntryParser, SpirvExtension)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> SpirvExtensions:
        return self.section


class SpirvCapabilitiesParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.section = SpirvCapabilities()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.section.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "spirvcapability":
            self.section.items.append(
                parse_element(reader, start, SpirvEntryParser, SpirvCapability)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> SpirvCapabilities:
        return self.section


# ===--- <sync> ---=== #


class SyncSupportParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.support = SyncSupport(
            queues=self.take_list(attribs, "queues"),
            stage=self.take_list(attribs, "stage"),
        )

    def finish(self) -> SyncSupport:
        return self.support


class SyncEquivalentParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.equivalent = SyncEquivalent(
            stage=self.take_list(attribs, "stage"),
            access=self.take_list(attribs, "access"),
        )

    def finish(self) -> SyncEquivalent:
        return self.equivalent


class SyncStageParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.stage = SyncStage(
            name=self.take_required(attribs, "name"),
            alias=self.take(attribs, "alias"),
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "syncsupport":
            self.stage.support = parse_element(reader, start, SyncSupportParser)
        elif start.name == "syncequivalent":
            self.stage.equivalent = parse_element(reader, start, SyncEquivalentParser)
        else:
            super().parse_child(reader, start)

    def finish(self) -> SyncStage:
        return self.stage


class SyncAccessParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.access = SyncAccess(
            name=self.take_required(attribs, "name"),
            alias=self.take(attribs, "alias"),
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "comment":
            self.access.comment = parse_text_element(reader, start)
        elif start.name == "syncsupport":
            self.access.support = parse_element(reader, start, SyncSupportParser)
        elif start.name == "syncequivalent":
            self.access.equivalent = parse_element(reader, start, SyncEquivalentParser)
        else:
            super().parse_child(reader, start)

    def finish(self) -> SyncAccess:
        return self.access


class SyncPipelineStageParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.parts: list[str] = []

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.order = self.take(attribs, "order")
        self.before = self.take(attribs, "before")
        self.after = self.take(attribs, "after")

    def parse_text(self, event) -> None:
        self.parts.append(event.text)

    def finish(self) -> SyncPipelineStage:
        return SyncPipelineStage(
            stage="".join(self.parts).strip(),
            order=self.order,
            before=self.before,
            after=self.after,
        )


class SyncPipelineParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.pipeline = SyncPipeline(
            name=self.take_required(attribs, "name"),
            depends=self.take_depends(attribs),
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "syncpipelinestage":
            self.pipeline.stages.append(
                parse_element(reader, start, SyncPipelineStageParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> SyncPipeline:
        return self.pipeline


class SyncParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.sync = Sync()

    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.sync.comment = self.take(attribs, "comment")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "syncstage":
            self.sync.stages.append(parse_element(reader, start, SyncStageParser))
        elif start.name == "syncaccess":
            self.sync.accesses.append(parse_element(reader, start, SyncAccessParser))
        elif start.name == "syncpipeline":
            self.sync.pipelines.append(
                parse_element(reader, start, SyncPipelineParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> Sync:
        return self.sync


# ===--- <videocodecs> ---=== #


class VideoProfileParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.profile = VideoProfile(
            value=self.take_required(attribs, "value"),
            name=self.take_required(attribs, "name"),
        )

    def finish(self) -> VideoProfile:
        return self.profile


class VideoProfileMemberParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.member = VideoProfileMember(name=self.take_required(attribs, "name"))

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "videoprofile":
            self.member.profiles.append(
                parse_element(reader, start, VideoProfileParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> VideoProfileMember:
        return self.member


class VideoProfilesParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.profiles = VideoProfiles(struct=self.take_required(attribs, "struct"))

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "videoprofilemember":
            self.profiles.members.append(
                parse_element(reader, start, VideoProfileMemberParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> VideoProfiles:
        return self.profiles


class VideoRequireCapabilitiesParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.requirement = VideoRequireCapabilities(
            struct=self.take_required(attribs, "struct"),
            member=self.take_required(attribs, "member"),
            value=self.take_required(attribs, "value"),
        )

    def finish(self) -> VideoRequireCapabilities:
        return self.requirement


class VideoFormatParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.format = VideoFormat(
            name=self.take(attribs, "name"),
            usage=self.convert("usage", self.take(attribs, "usage"), _plus_list),
            extend=self.take(attribs, "extend"),
        )
        if self.format.name is None and self.format.extend is None:
            self.take_required(attribs, "name")

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "videorequirecapabilities":
            self.format.require_capabilities.append(
                parse_element(reader, start, VideoRequireCapabilitiesParser)
            )
        elif start.name == "videoformatproperties":
            self.format.properties.append(
                parse_element(reader, start, StructRefParser)
            )
        else:
            super().parse_child(reader, start)

    def finish(self) -> VideoFormat:
        return self.format


class VideoCodecParser(ElementParser):
    def parse_attribs(self, attribs: dict[str, str]) -> None:
        self.codec = VideoCodec(
            name=self.take_required(attribs, "name"),
            extend=self.take(attribs, "extend"),
            value=self.take(attribs, "value"),
        )

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "videoprofiles":
            self.codec.profiles.append(
                parse_element(reader, start, VideoProfilesParser)
            )
        elif start.name == "videocapabilities":
            self.codec.capabilities.append(
                parse_element(reader, start, StructRefParser)
            )
        elif start.name == "videoformat":
            self.codec.formats.append(parse_element(reader, start, VideoFormatParser))
        else:
            super().parse_child(reader, start)

    def finish(self) -> VideoCodec:
        return self.codec


class VideoCodecsParser(ElementParser):
    def __init__(self, start: StartElement):
        super().__init__(start)
        self.codecs = VideoCodecs()

    def parse_child(self, reader: EventReader, start: StartElement) -> None:
        if start.name == "videocodec":
            self.codecs.codecs.append(parse_element(reader, start, VideoCodecParser))
        else:
            super().parse_child(reader, start)

    def finish(self) -> VideoCodecs:
        return self.codecs


def _plus_list(raw: str) -> tuple[str, ...]:
    # usage flags are joined with '+', e.g. "A+B"
    return tuple(part.strip() for part in raw.split("+") if part.strip())
