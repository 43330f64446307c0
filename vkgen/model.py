"""Indexed registry produced by the linker.

Cross-references are handles into the four tables, never raw names. A
handle is 1 + the table size at insertion time, so it is nonzero, stable
for the lifetime of the registry and never reissued.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Iterator, TypeVar, Union

from .depends import Depends
from .errors import Position
from .registry import Deprecation, EnumsKind

# ===--- Handles ---=== #


@dataclass(frozen=True, order=True)
class TypeHandle:
    index: int


@dataclass(frozen=True, order=True)
class CommandHandle:
    index: int


@dataclass(frozen=True, order=True)
class FeatureHandle:
    index: int


H = TypeVar("H", TypeHandle, CommandHandle, FeatureHandle)
T = TypeVar("T")


class Table(Generic[H, T]):
    """Append-only table addressed by handle and by standard name."""

    def __init__(self, handle_type: type[H]):
        self._handle_type = handle_type
        self._items: list[T] = []
        self._names: dict[str, H] = {}

    def insert(self, name: str, item: T) -> H:
        handle = self._handle_type(len(self._items) + 1)
        self._items.append(item)
        self._names[name] = handle
        return handle

    def get(self, handle: H) -> T | None:
        if not isinstance(handle, self._handle_type):
            return None
        if 1 <= handle.index <= len(self._items):
            return self._items[handle.index - 1]
        return None

    def __getitem__(self, handle: H) -> T:
        item = self.get(handle)
        if item is None:
            raise KeyError(handle)
        return item

    def lookup(self, name: str) -> H | None:
        return self._names.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[tuple[H, T]]:
        for index, item in enumerate(self._items, start=1):
            yield self._handle_type(index), item

    def __len__(self) -> int:
        return len(self._items)


# ===--- Declared types ---=== #


class Decor(Enum):
    CONST = "const"
    CONST_PTR = "*const"
    MUT_PTR = "*mut"


@dataclass(frozen=True)
class ArrayDecor:
    """Fixed-size array wrapper; size is a literal or an API constant name."""

    size: str


DecorItem = Union[Decor, ArrayDecor]


@dataclass(frozen=True)
class DecorType:
    """Base type plus C declarator modifiers.

    decors are kept in declaration order: the last entry is the outermost
    wrapper, so [CONST, CONST_PTR, MUT_PTR] over T reads `*mut *const T`.
    """

    handle: TypeHandle
    decors: tuple[DecorItem, ...] = ()

    @property
    def is_pointer(self) -> bool:
        return any(d in (Decor.CONST_PTR, Decor.MUT_PTR) for d in self.decors)

    @property
    def outermost(self) -> DecorItem | None:
        wrappers = [d for d in self.decors if d is not Decor.CONST]
        return wrappers[-1] if wrappers else None


@dataclass(frozen=True)
class Introduction:
    """One <require> block that pulls an item in, with its extra condition."""

    feature: FeatureHandle
    depends: Depends | None = None


@dataclass
class Field:
    """A struct/union member or a command/function-pointer parameter."""

    name: str
    output_name: str
    decor_type: DecorType
    bitwidth: int | None = None
    values: str | None = None
    len: str | None = None
    altlen: str | None = None
    optional: tuple[bool, ...] | None = None
    position: Position | None = field(default=None, compare=False)

    def length(self) -> str | None:
        """Canonical runtime length expression: altlen, else the first len term."""
        if self.altlen is not None:
            return self.altlen
        if self.len is None:
            return None
        first = self.len.split(",")[0].strip()
        if first == "null-terminated":
            return None
        return first


@dataclass
class TypeHead:
    name: str
    output_name: str
    deprecated: Deprecation | None = None
    requires: TypeHandle | None = None
    feature: FeatureHandle | None = None
    introductions: list[Introduction] = field(default_factory=list)
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class IncludeBody:
    header: str


@dataclass(frozen=True)
class IntDefine:
    value: int


@dataclass(frozen=True)
class ApiVersionDefine:
    """VK_MAKE_API_VERSION(variant, major, minor, patch); arguments may be names."""

    variant: str
    major: str
    minor: str
    patch: str


@dataclass
class DefineBody:
    value: IntDefine | ApiVersionDefine | None = None


@dataclass
class BaseBody:
    target: DecorType | None = None


@dataclass
class HandleBody:
    dispatchable: bool
    parents: tuple[TypeHandle, ...] = ()
    objtypeenum: str | None = None


@dataclass
class BitmaskBody:
    width: int
    bits: TypeHandle | None = None


@dataclass
class EnumBody:
    table: str


@dataclass
class FnPtrBody:
    ret: DecorType | None
    params: list[Field] = field(default_factory=list)


@dataclass
class StructBody:
    members: list[Field] = field(default_factory=list)
    returned_only: bool = False
    extends: tuple[TypeHandle, ...] = ()


@dataclass
class UnionBody:
    members: list[Field] = field(default_factory=list)
    returned_only: bool = False


@dataclass
class ImportedBody:
    mapped: str | None = None


@dataclass
class AliasBody:
    target: TypeHandle


TypeBody = Union[
    IncludeBody,
    DefineBody,
    BaseBody,
    HandleBody,
    BitmaskBody,
    EnumBody,
    FnPtrBody,
    StructBody,
    UnionBody,
    ImportedBody,
    AliasBody,
]


@dataclass
class Type:
    head: TypeHead
    body: TypeBody | None = None


class TypeTable(Table[TypeHandle, Type]):
    """Type table plus the categorization indices filled during resolution."""

    def __init__(self):
        super().__init__(TypeHandle)
        self.struct_types: list[TypeHandle] = []
        self.union_types: list[TypeHandle] = []
        self.enum_types: list[TypeHandle] = []
        self.bitmask_types: list[TypeHandle] = []
        self.handle_types: list[TypeHandle] = []
        self.base_types: list[TypeHandle] = []
        self.fnptr_types: list[TypeHandle] = []
        self.alias_types: list[TypeHandle] = []
        self.define_types: list[TypeHandle] = []
        self.opaque_types: list[TypeHandle] = []
        self.result_type: TypeHandle | None = None

    def resolve_alias(self, handle: TypeHandle) -> TypeHandle:
        seen = set()
        while isinstance(self[handle].body, AliasBody) and handle not in seen:
            seen.add(handle)
            handle = self[handle].body.target
        return handle


# ===--- Enumerants and constants ---=== #


@dataclass
class EnumValue:
    name: str
    output_name: str
    value: int | None = None
    alias: str | None = None
    feature: FeatureHandle | None = None
    introductions: list[Introduction] = field(default_factory=list)
    deprecated: Deprecation | None = None
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


@dataclass
class EnumTable:
    name: str
    kind: EnumsKind
    handle: TypeHandle | None = None
    bitwidth: int | None = None
    values: list[EnumValue] = field(default_factory=list)

    def find(self, name: str) -> EnumValue | None:
        for value in self.values:
            if value.name == name:
                return value
        return None


@dataclass
class Constant:
    """API constant or extension constant; exactly one of value/alias is set."""

    name: str
    output_name: str
    value: str | None = None
    ty: str | None = None
    alias: str | None = None
    feature: FeatureHandle | None = None
    introductions: list[Introduction] = field(default_factory=list)
    comment: str | None = None
    position: Position | None = field(default=None, compare=False)


# ===--- Commands ---=== #


@dataclass
class CommandHead:
    name: str
    output_name: str
    feature: FeatureHandle | None = None
    introductions: list[Introduction] = field(default_factory=list)
    position: Position | None = field(default=None, compare=False)


@dataclass
class Command:
    head: CommandHead
    ret: DecorType | None = None
    params: list[Field] = field(default_factory=list)
    alias: CommandHandle | None = None
    successcodes: tuple[str, ...] = ()
    errorcodes: tuple[str, ...] = ()


# ===--- Features ---=== #


class FeatureKind(Enum):
    CORE = "core"
    EXTENSION = "extension"
    PLATFORM = "platform"


@dataclass
class FeatureHeader:
    name: str
    output_name: str


@dataclass
class Feature:
    header: FeatureHeader
    kind: FeatureKind
    number: str | None = None
    depends: Depends | None = None
    platform: str | None = None
    types: list[TypeHandle] = field(default_factory=list)
    commands: list[CommandHandle] = field(default_factory=list)
    enums: list[str] = field(default_factory=list)
    feature_structs: list[str] = field(default_factory=list)
    position: Position | None = field(default=None, compare=False)


# ===--- Registry ---=== #


@dataclass(frozen=True)
class Metadata:
    has_structs: bool
    has_unions: bool
    has_enum_types: bool
    has_bitmask_types: bool
    has_commands: bool
    has_result_type: bool
    has_constants: bool
    has_handles: bool
    has_base_types: bool


@dataclass
class Vulkan:
    types: TypeTable = field(default_factory=TypeTable)
    enums: list[EnumTable] = field(default_factory=list)
    constants: list[Constant] = field(default_factory=list)
    commands: Table[CommandHandle, Command] = field(
        default_factory=lambda: Table(CommandHandle)
    )
    features: Table[FeatureHandle, Feature] = field(
        default_factory=lambda: Table(FeatureHandle)
    )
    tags: tuple[str, ...] = ()
    header_version: int | None = None
    warnings: list[str] = field(default_factory=list)

    def enum_table(self, name: str) -> EnumTable | None:
        for table in self.enums:
            if table.name == name:
                return table
        return None

    def metadata(self) -> Metadata:
        types = self.types
        return Metadata(
            has_structs=bool(types.struct_types),
            has_unions=bool(types.union_types),
            has_enum_types=bool(types.enum_types),
            has_bitmask_types=bool(types.bitmask_types),
            has_commands=len(self.commands) > 0,
            has_result_type=types.result_type is not None,
            has_constants=bool(self.constants) or bool(types.define_types),
            has_handles=bool(types.handle_types),
            has_base_types=bool(
                types.base_types
                or types.fnptr_types
                or types.alias_types
                or types.opaque_types
            ),
        )
