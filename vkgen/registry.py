"""Parsed registry: a faithful tree of the vk.xml document.

One dataclass per element grammar. Names and references are still plain
strings here; the linker in trans.py resolves them into handles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from .depends import Depends
from .errors import Position


# ===--- Shared pieces ---=== #


class Deprecation(Enum):
    FALSE = "false"
    TRUE = "true"
    ALIASED = "aliased"
    IGNORED = "ignored"


class GenericKind(Enum):
    TEXT = "text"
    NAME = "name"
    TYPE = "type"
    ENUM = "enum"
    COMMENT = "comment"


@dataclass(frozen=True)
class GenericItem:
    """One run of mixed content: literal text or the text of a child element."""

    kind: GenericKind
    text: str


def item_text(items: list[GenericItem], kind: GenericKind) -> str | None:
    for item in items:
        if item.kind is kind:
            return item.text
    return None


def render_items(items: list[GenericItem], *, comments: bool = False) -> str:
    """Rebuild the C source text of a mixed-content body."""
    return "".join(
        item.text for item in items if comments or item.kind is not GenericKind.COMMENT
    )


@dataclass
class Comment:
    text: str


# ===--- <platforms> / <tags> ---=== #


@dataclass
class Platform:
    name: str
    protect: str
    comment: str | None = None


@dataclass
class Platforms:
    comment: str | None = None
    platforms: list[Platform] = field(default_factory=list)


@dataclass
class Tag:
    name: str
    author: str
    contact: str


@dataclass
class Tags:
    comment: str | None = None
    tags: list[Tag] = field(default_factory=list)


# ===--- <types> ---=== #


@dataclass
class TypeCommon:
    name: str
    requires: str | None = None
    deprecated: Deprecation | None = None
    api: tuple[str, ...] | None = None
    alias: str | None = None
    comment: str | None = None


@dataclass
class IncludeType:
    header: str


@dataclass
class DefineType:
    items: list[GenericItem] = field(default_factory=list)


@dataclass
class BaseType:
    items: list[GenericItem] = field(default_factory=list)


@dataclass
class HandleType:
    items: list[GenericItem] = field(default_factory=list)
    parent: tuple[str, ...] | None = None
    objtypeenum: str | None = None


@dataclass
class BitmaskType:
    items: list[GenericItem] = field(default_factory=list)
    bitvalues: str | None = None


@dataclass
class EnumType:
    pass


@dataclass
class Proto:
    items: list[GenericItem] = field(default_factory=list)
    position: Position | None = field(default=None, compare=False)

    @property
    def name(self) -> str | None:
        return item_text(self.items, GenericKind.NAME)


@dataclass
class Param:
    items: list[GenericItem] = field(default_factory=list)
    api: tuple[str, ...] | None = None
    len: str | None = None
    altlen: str | None = None
    optional: tuple[bool, ...] | None = None
    externsync: str | None = None
    noautovalidity: bool | None = None
    objecttype: str | None = None
    validstructs: tuple[str, ...] | None = None
    stride: str | None = None
    selector: str | None = None
    position: Position | None = field(default=None, compare=False)

    @property
    def name(self) -> str | None:
        return item_text(self.items, GenericKind.NAME)


@dataclass
class FnPtrType:
    """Function pointer typedef.

    Older registries spell the whole typedef as mixed content (`items`);
    newer ones use a <proto> plus <param> children.
    """

    items: list[GenericItem] = field(default_factory=list)
    proto: Proto | None = None
    params: list[Param] = field(default_factory=list)


@dataclass
class Member:
    items: list[GenericItem] = field(default_factory=list)
    api: tuple[str, ...] | None = None
    values: str | None = None
    optional: tuple[bool, ...] | None = None
    len: str | None = None
    altlen: str | None = None
    limittype: str | None = None
    objecttype: str | None = None
    selector: str | None = None
    selection: tuple[str, ...] | None = None
    externsync: str | None = None
    noautovalidity: bool | None = None
    deprecated: Deprecation | None = None
    featurelink: str | None = None
    stride: str | None = None
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)

    @property
    def name(self) -> str | None:
        return item_text(self.items, GenericKind.NAME)


@dataclass
class StructType:
    returned_only: bool | None = None
    allow_duplicate: bool | None = None
    extends: tuple[str, ...] | None = None
    members: list[Member] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


@dataclass
class UnionType:
    returned_only: bool | None = None
    allow_duplicate: bool | None = None
    extends: tuple[str, ...] | None = None
    members: list[Member] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


@dataclass
class ImportedType:
    pass


TypeDetails = Union[
    IncludeType,
    DefineType,
    BaseType,
    HandleType,
    BitmaskType,
    EnumType,
    FnPtrType,
    StructType,
    UnionType,
    ImportedType,
]


@dataclass
class Type:
    common: TypeCommon
    details: TypeDetails
    position: Position | None = field(default=None, compare=False)


@dataclass
class Types:
    comment: str | None = None
    items: list[Type] = field(default_factory=list)
    comments: list[str] = field(default_factory=list)


# ===--- <enums> ---=== #


class EnumsKind(Enum):
    CONSTANTS = "constants"
    ENUM = "enum"
    BITMASK = "bitmask"


@dataclass(frozen=True)
class ConstantValue:
    value: str
    ty: str


@dataclass(frozen=True)
class PlainValue:
    value: str


@dataclass(frozen=True)
class BitValue:
    bitpos: int


@dataclass(frozen=True)
class AliasValue:
    alias: str


EnumValue = Union[ConstantValue, PlainValue, BitValue, AliasValue]


@dataclass
class EnumEntry:
    name: str
    value: EnumValue
    api: tuple[str, ...] | None = None
    deprecated: Deprecation | None = None
    protect: str | None = None
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class Unused:
    start: str
    end: str | None = None
    vendor: str | None = None
    comment: str | None = None


EnumsChild = Union[Comment, EnumEntry, Unused]


@dataclass
class Enums:
    name: str
    kind: EnumsKind | None = None
    bitwidth: int | None = None
    start: str | None = None
    end: str | None = None
    vendor: str | None = None
    comment: str | None = None
    children: list[EnumsChild] = field(default_factory=list)

    def enums(self) -> list[EnumEntry]:
        return [child for child in self.children if isinstance(child, EnumEntry)]


# ===--- <commands> ---=== #


@dataclass
class Command:
    name: str
    alias: str | None = None
    api: tuple[str, ...] | None = None
    proto: Proto | None = None
    params: list[Param] = field(default_factory=list)
    queues: tuple[str, ...] | None = None
    successcodes: tuple[str, ...] | None = None
    errorcodes: tuple[str, ...] | None = None
    renderpass: str | None = None
    videocoding: str | None = None
    cmdbufferlevel: tuple[str, ...] | None = None
    tasks: tuple[str, ...] | None = None
    allownoqueues: bool | None = None
    conditionalrendering: bool | None = None
    export: tuple[str, ...] | None = None
    description: str | None = None
    implicit_extern_sync: list[str] = field(default_factory=list)
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class Commands:
    comment: str | None = None
    commands: list[Command] = field(default_factory=list)


# ===--- <feature> / <extensions> ---=== #


@dataclass(frozen=True)
class EnumReference:
    """A require <enum> with no value: pulls in an existing enumerant."""


@dataclass(frozen=True)
class OffsetValue:
    offset: int
    extnumber: int | None = None
    negative: bool = False


RequireEnumValue = Union[
    EnumReference, PlainValue, BitValue, OffsetValue, AliasValue
]


@dataclass
class RequireType:
    name: str
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class RequireCommand:
    name: str
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class RequireEnum:
    name: str
    value: RequireEnumValue = field(default_factory=EnumReference)
    extends: str | None = None
    ty: str | None = None
    api: tuple[str, ...] | None = None
    protect: str | None = None
    deprecated: Deprecation | None = None
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class RequireFeature:
    name: str
    struct: str
    comment: str | None = None


RequireItem = Union[RequireType, RequireCommand, RequireEnum, RequireFeature, Comment]


@dataclass
class Require:
    api: tuple[str, ...] | None = None
    profile: str | None = None
    depends: Depends | None = None
    comment: str | None = None
    items: list[RequireItem] = field(default_factory=list)


@dataclass
class Deprecate:
    explanationlink: str | None = None
    comment: str | None = None
    items: list[RequireItem] = field(default_factory=list)


@dataclass
class Remove:
    api: tuple[str, ...] | None = None
    profile: str | None = None
    reasonlink: str | None = None
    comment: str | None = None
    items: list[RequireItem] = field(default_factory=list)


FeatureChild = Union[Require, Deprecate, Remove]


@dataclass
class Feature:
    name: str
    api: tuple[str, ...]
    number: str
    sortorder: int | None = None
    protect: str | None = None
    depends: Depends | None = None
    apitype: str | None = None
    comment: str | None = None
    children: list[FeatureChild] = field(default_factory=list)
    position: Position | None = field(default=None, compare=False)


@dataclass
class Extension:
    name: str
    number: int | None = None
    supported: tuple[str, ...] = ()
    author: str | None = None
    contact: str | None = None
    type: str | None = None
    depends: Depends | None = None
    platform: str | None = None
    ratified: tuple[str, ...] | None = None
    promotedto: str | None = None
    deprecatedby: str | None = None
    obsoletedby: str | None = None
    provisional: bool | None = None
    specialuse: tuple[str, ...] | None = None
    sortorder: int | None = None
    nofeatures: bool | None = None
    comment: str | None = None
    children: list[FeatureChild] = field(default_factory=list)
    position: Position | None = field(default=None, compare=False)


@dataclass
class Extensions:
    comment: str | None = None
    extensions: list[Extension] = field(default_factory=list)


# ===--- <formats> ---=== #


@dataclass
class FormatComponent:
    name: str
    bits: str
    numeric_format: str
    plane_index: int | None = None


@dataclass
class FormatPlane:
    index: int
    width_divisor: int
    height_divisor: int
    compatible: str


@dataclass
class Format:
    name: str
    format_class: str
    block_size: int
    texels_per_block: int
    block_extent: tuple[int, ...] | None = None
    packed: int | None = None
    compressed: str | None = None
    chroma: str | None = None
    components: list[FormatComponent] = field(default_factory=list)
    planes: list[FormatPlane] = field(default_factory=list)
    spirv_image_formats: list[str] = field(default_factory=list)


@dataclass
class Formats:
    formats: list[Format] = field(default_factory=list)


# ===--- <spirvextensions> / <spirvcapabilities> ---=== #


@dataclass
class SpirvEnable:
    version: str | None = None
    extension: str | None = None
    struct: str | None = None
    feature: str | None = None
    requires: tuple[str, ...] | None = None
    alias: str | None = None
    property: str | None = None
    member: str | None = None
    value: str | None = None


@dataclass
class SpirvExtension:
    name: str
    enables: list[SpirvEnable] = field(default_factory=list)


@dataclass
class SpirvExtensions:
    comment: str | None = None
    items: list[SpirvExtension] = field(default_factory=list)


@dataclass
class SpirvCapability:
    name: str
    enables: list[SpirvEnable] = field(default_factory=list)


@dataclass
class SpirvCapabilities:
    comment: str | None = None
    items: list[SpirvCapability] = field(default_factory=list)


# ===--- <sync> ---=== #


@dataclass
class SyncSupport:
    queues: tuple[str, ...] | None = None
    stage: tuple[str, ...] | None = None


@dataclass
class SyncEquivalent:
    stage: tuple[str, ...] | None = None
    access: tuple[str, ...] | None = None


@dataclass
class SyncStage:
    name: str
    alias: str | None = None
    support: SyncSupport | None = None
    equivalent: SyncEquivalent | None = None


@dataclass
class SyncAccess:
    name: str
    alias: str | None = None
    comment: str | None = None
    support: SyncSupport | None = None
    equivalent: SyncEquivalent | None = None


@dataclass
class SyncPipelineStage:
    stage: str
    order: str | None = None
    before: str | None = None
    after: str | None = None


@dataclass
class SyncPipeline:
    name: str
    depends: Depends | None = None
    stages: list[SyncPipelineStage] = field(default_factory=list)


@dataclass
class Sync:
    comment: str | None = None
    stages: list[SyncStage] = field(default_factory=list)
    accesses: list[SyncAccess] = field(default_factory=list)
    pipelines: list[SyncPipeline] = field(default_factory=list)


# ===--- <videocodecs> ---=== #


@dataclass
class VideoProfile:
    value: str
    name: str


@dataclass
class VideoProfileMember:
    name: str
    profiles: list[VideoProfile] = field(default_factory=list)


@dataclass
class VideoProfiles:
    struct: str
    members: list[VideoProfileMember] = field(default_factory=list)


@dataclass
class VideoRequireCapabilities:
    struct: str
    member: str
    value: str


@dataclass
class VideoFormat:
    name: str | None = None
    usage: tuple[str, ...] | None = None
    extend: str | None = None
    require_capabilities: list[VideoRequireCapabilities] = field(default_factory=list)
    properties: list[str] = field(default_factory=list)


@dataclass
class VideoCodec:
    name: str
    extend: str | None = None
    value: str | None = None
    profiles: list[VideoProfiles] = field(default_factory=list)
    capabilities: list[str] = field(default_factory=list)
    formats: list[VideoFormat] = field(default_factory=list)


@dataclass
class VideoCodecs:
    codecs: list[VideoCodec] = field(default_factory=list)


# ===--- <registry> ---=== #


RegistryItem = Union[
    Comment,
    Platforms,
    Tags,
    Types,
    Enums,
    Commands,
    Feature,
    Extensions,
    Formats,
    SpirvExtensions,
    SpirvCapabilities,
    Sync,
    VideoCodecs,
]


@dataclass
class Registry:
    comment: str | None = None
    items: list[RegistryItem] = field(default_factory=list)
