"""Linker: flatten the parsed registry into the indexed Vulkan model.

Runs in a fixed order so that enum values and feature gates are
deterministic:

    1. declare types, enums, commands and features in source order
       (extensions in ascending number)
    2. attach features: walk every <require> and record introductions,
       applying enum patches as they appear
    3. resolve type bodies and command signatures into handles
    4. check structural invariants (by-value cycles, structextends) and
       warn about imported types of unknown size embedded by value
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import TransError, duplicate_name, type_not_found
from .model import (
    AliasBody,
    ApiVersionDefine,
    ArrayDecor,
    BaseBody,
    BitmaskBody,
    Command,
    CommandHandle,
    CommandHead,
    Constant,
    Decor,
    DecorType,
    DefineBody,
    EnumBody,
    EnumTable,
    EnumValue,
    Feature,
    FeatureHandle,
    FeatureHeader,
    FeatureKind,
    Field,
    FnPtrBody,
    HandleBody,
    ImportedBody,
    IncludeBody,
    IntDefine,
    Introduction,
    StructBody,
    Type,
    TypeHandle,
    TypeHead,
    UnionBody,
    Vulkan,
)
from .names import (
    command_output_name,
    constant_output_name,
    enumerant_name,
    feature_output_name,
    field_name,
    mapped_type,
    type_output_name,
)
from . import registry as parsed
from .registry import GenericItem, GenericKind

ENUM_BASE_VALUE = 1000000000
ENUM_RANGE_SIZE = 1000

API = "vulkan"
RESULT_TYPE = "VkResult"
STRUCTURE_TYPE = "VkStructureType"

# Registry sections that carry nothing the emitter consumes.
_UNLINKED_SECTIONS = {
    parsed.Formats: ("formats", lambda item: len(item.formats)),
    parsed.SpirvExtensions: ("spirvextensions", lambda item: len(item.items)),
    parsed.SpirvCapabilities: ("spirvcapabilities", lambda item: len(item.items)),
    parsed.Sync: (
        "sync",
        lambda item: len(item.stages) + len(item.accesses) + len(item.pipelines),
    ),
    parsed.VideoCodecs: ("videocodecs", lambda item: len(item.codecs)),
}


def link(registry: parsed.Registry) -> Vulkan:
    """Build the indexed registry.

    Args:
        registry: Parsed vk.xml, items in document order.

    Returns:
        The linked Vulkan model. Items the linker does not link, such as
        formats or unparseable defines, are listed in its warnings.

    Raises:
        TransError: TYPE_NOT_FOUND for unresolved references, DUPLICATE_NAME
            for clashing standard or output names, BAD_TYPE for malformed
            declarations and by-value type cycles.
    """
    return Linker(registry).link()


def supports_api(api: tuple[str, ...] | None) -> bool:
    return api is None or API in api


# ===--- C declarations ---=== #

_C_TOKEN_RE = re.compile(r"[A-Za-z_]\w*|\d+|\S")
_SKIPPED_WORDS = frozenset({"typedef", "struct"})


@dataclass
class Declaration:
    type_name: str | None
    name: str | None
    decors: tuple
    bitwidth: int | None = None


def tokenize_items(items: list[GenericItem]) -> list[tuple[str, str]]:
    """Flatten mixed content into (kind, text) tokens; text runs are split."""
    tokens: list[tuple[str, str]] = []
    for item in items:
        if item.kind is GenericKind.TEXT:
            for text in _C_TOKEN_RE.findall(item.text):
                if text.isdigit():
                    kind = "num"
                elif text[0].isalpha() or text[0] == "_":
                    kind = "word"
                else:
                    kind = "punct"
                tokens.append((kind, text))
        elif item.kind is not GenericKind.COMMENT:
            tokens.append((item.kind.value, item.text))
    return tokens


def parse_declaration(tokens: list[tuple[str, str]]) -> Declaration:
    """Collapse one C declaration into base type, decorators and name.

    `const` before the base type marks the next pointer as pointing to const;
    a `const` between pointers does the same for the following `*`. Array
    suffixes become ArrayDecor entries outside the pointers; multi-dimensional
    arrays put the leftmost dimension outermost.

    Raises:
        ValueError: On tokens that do not fit a declaration.
    """
    type_name = None
    name = None
    decors: list = []
    arrays: list[str] = []
    bitwidth = None
    pending_const = False
    index = 0
    while index < len(tokens):
        kind, text = tokens[index]
        index += 1
        if kind == "type":
            if type_name is not None:
                raise ValueError(f"second base type {text!r}")
            type_name = text
        elif kind == "name":
            name = text
        elif text == "const":
            if type_name is None:
                decors.append(Decor.CONST)
            pending_const = True
        elif text in _SKIPPED_WORDS or text == ";":
            continue
        elif text == "*":
            if type_name is None or name is not None:
                raise ValueError("pointer outside the declarator")
            decors.append(Decor.CONST_PTR if pending_const else Decor.MUT_PTR)
            pending_const = False
        elif text == "[":
            if index + 1 >= len(tokens) or tokens[index + 1][1] != "]":
                raise ValueError("unterminated array suffix")
            size_kind, size = tokens[index]
            if size_kind not in ("num", "enum", "word"):
                raise ValueError(f"bad array size {size!r}")
            arrays.append(size)
            index += 2
        elif text == ":":
            if index >= len(tokens) or tokens[index][0] != "num":
                raise ValueError("bitfield without a width")
            bitwidth = int(tokens[index][1])
            index += 1
        elif kind == "word":
            if type_name is None:
                type_name = text
            elif name is None:
                name = text
            else:
                raise ValueError(f"unexpected word {text!r}")
        else:
            raise ValueError(f"unexpected token {text!r}")
    for size in reversed(arrays):
        decors.append(ArrayDecor(size))
    return Declaration(type_name, name, tuple(decors), bitwidth)


def lower_define(
    items: list[GenericItem],
) -> tuple[str | None, IntDefine | ApiVersionDefine | None]:
    """Recognize `#define NAME <int>` and `#define NAME VK_MAKE_API_VERSION(...)`."""
    prefix: list[str] = []
    rest: list[str] = []
    name = None
    for item in items:
        if item.kind is GenericKind.NAME and name is None:
            name = item.text
        elif item.kind is GenericKind.COMMENT:
            continue
        elif name is None:
            prefix.append(item.text)
        else:
            rest.append(item.text)
    if name is None:
        return None, None
    lines = "".join(prefix).splitlines() or [""]
    last_line = lines[-1]
    if not last_line.strip().startswith("#define"):
        return name, None
    body = "".join(rest).split("//")[0].strip()
    if re.fullmatch(r"\d+", body):
        return name, IntDefine(int(body))
    match = re.fullmatch(
        r"VK_MAKE_API_VERSION\s*\(\s*(\w+)\s*,\s*(\w+)\s*,\s*(\w+)\s*,\s*(\w+)\s*\)",
        body,
    )
    if match:
        return name, ApiVersionDefine(*match.groups())
    return name, None


def parse_c_int(text: str) -> int:
    text = text.strip()
    if text.startswith("(") and text.endswith(")"):
        text = text[1:-1].strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]
    value = int(text, 16) if text.lower().startswith("0x") else int(text)
    return -value if negative else value


def offset_value(extnumber: int, offset: int, negative: bool) -> int:
    value = ENUM_BASE_VALUE + (extnumber - 1) * ENUM_RANGE_SIZE + offset
    return -value if negative else value


# ===--- Linker ---=== #


class Linker:
    def __init__(self, registry: parsed.Registry):
        self.registry = registry
        self.vk = Vulkan()
        self.parsed_types: dict[TypeHandle, parsed.Type] = {}
        self.parsed_commands: list[tuple[CommandHandle, parsed.Command]] = []
        self.feature_nodes: dict[FeatureHandle, parsed.Feature | parsed.Extension] = {}
        self.output_names: dict[str, str] = {}
        self.constant_names: dict[str, str] = {}

    def link(self) -> Vulkan:
        """Run every pass over the registry and return the linked model.

        Returns:
            The populated Vulkan model; calling link twice is not supported.

        Raises:
            TransError: The first reference, name or structure violation found.
        """
        tags: list[str] = []
        for item in self.registry.items:
            if isinstance(item, parsed.Tags):
                tags.extend(tag.name for tag in item.tags)
        self.vk.tags = tuple(tags)

        self.declare()
        self.attach_features()
        self.resolve_types()
        self.resolve_commands()
        self.check_cycles()
        self.check_aliases()
        self.check_opaque_members()
        return self.vk

    # ===--- Pass 1: declaration ---=== #

    def declare(self) -> None:
        features: list[parsed.Feature] = []
        extensions: list[parsed.Extension] = []
        for item in self.registry.items:
            if isinstance(item, parsed.Types):
                for ty in item.items:
                    if supports_api(ty.common.api):
                        self.declare_type(ty)
            elif isinstance(item, parsed.Enums):
                self.declare_enums(item)
            elif isinstance(item, parsed.Commands):
                for command in item.commands:
                    if supports_api(command.api):
                        self.declare_command(command)
            elif isinstance(item, parsed.Feature):
                if supports_api(item.api):
                    features.append(item)
            elif isinstance(item, parsed.Extensions):
                extensions.extend(
                    ext for ext in item.extensions if API in ext.supported
                )
            elif type(item) in _UNLINKED_SECTIONS:
                tag, count = _UNLINKED_SECTIONS[type(item)]
                self.vk.warnings.append(f"skipped <{tag}>: {count(item)} entries not linked")

        for feature in features:
            self.declare_feature(feature, FeatureKind.CORE, feature.number)
        extensions.sort(key=lambda ext: (ext.number is None, ext.number or 0))
        for ext in extensions:
            kind = FeatureKind.PLATFORM if ext.platform else FeatureKind.EXTENSION
            number = str(ext.number) if ext.number is not None else None
            self.declare_feature(ext, kind, number)

        # Every enum type gets a table, even when the registry lists no values.
        for handle in list(self.parsed_types):
            ty = self.parsed_types[handle]
            if (
                isinstance(ty.details, parsed.EnumType)
                and ty.common.alias is None
                and self.vk.enum_table(ty.common.name) is None
            ):
                self.vk.enums.append(
                    EnumTable(ty.common.name, parsed.EnumsKind.ENUM, handle=handle)
                )

    def declare_type(self, ty: parsed.Type) -> None:
        name = ty.common.name
        if name in self.vk.types:
            raise duplicate_name(name, ty.position)
        if isinstance(ty.details, parsed.DefineType):
            output = constant_output_name(name)
            self.claim(self.constant_names, output, name, ty.position)
        elif isinstance(ty.details, parsed.IncludeType):
            output = name
        else:
            output = type_output_name(name)
            if mapped_type(name) is None:
                self.claim(self.output_names, output, name, ty.position)
        head = TypeHead(
            name=name,
            output_name=output,
            deprecated=ty.common.deprecated,
            comment=ty.common.comment,
            position=ty.position,
        )
        handle = self.vk.types.insert(name, Type(head))
        self.parsed_types[handle] = ty

    def claim(self, space: dict[str, str], output: str, name: str, position) -> None:
        owner = space.get(output)
        if owner is not None and owner != name:
            raise duplicate_name(output, position)
        space[output] = name

    def declare_enums(self, enums: parsed.Enums) -> None:
        if enums.kind in (None, parsed.EnumsKind.CONSTANTS):
            for entry in enums.enums():
                if supports_api(entry.api):
                    self.declare_constant(entry)
            return
        handle = self.vk.types.lookup(enums.name)
        if handle is None:
            raise type_not_found(enums.name)
        table = self.vk.enum_table(enums.name)
        if table is not None:
            raise duplicate_name(enums.name)
        table = EnumTable(enums.name, enums.kind, handle=handle, bitwidth=enums.bitwidth)
        self.vk.enums.append(table)
        for entry in enums.enums():
            if not supports_api(entry.api):
                continue
            value = EnumValue(
                name=entry.name,
                output_name=enumerant_name(table.name, entry.name, self.vk.tags),
                deprecated=entry.deprecated,
                comment=entry.comment,
                position=entry.position,
            )
            if isinstance(entry.value, parsed.AliasValue):
                value.alias = entry.value.alias
            elif isinstance(entry.value, parsed.BitValue):
                value.value = 1 << entry.value.bitpos
            else:
                value.value = self.evaluate(entry.value.value, entry.name, entry.position)
            self.add_enum_value(table, value)

    def declare_constant(self, entry: parsed.EnumEntry) -> None:
        constant = Constant(
            name=entry.name,
            output_name=constant_output_name(entry.name),
            comment=entry.comment,
            position=entry.position,
        )
        if isinstance(entry.value, parsed.AliasValue):
            constant.alias = entry.value.alias
        elif isinstance(entry.value, parsed.ConstantValue):
            constant.value = entry.value.value
            constant.ty = entry.value.ty
        elif isinstance(entry.value, parsed.PlainValue):
            constant.value = entry.value.value
        else:
            raise TransError(
                "BAD_TYPE", f"constant '{entry.name}' cannot use bitpos", entry.position
            )
        self.add_constant(constant)

    def add_constant(self, constant: Constant) -> Constant:
        for existing in self.vk.constants:
            if existing.name == constant.name:
                if (existing.value, existing.alias) != (constant.value, constant.alias):
                    raise duplicate_name(constant.name, constant.position)
                return existing
        self.claim(self.constant_names, constant.output_name, constant.name, constant.position)
        self.vk.constants.append(constant)
        return constant

    def add_enum_value(self, table: EnumTable, value: EnumValue) -> EnumValue:
        existing = table.find(value.name)
        if existing is not None:
            if (existing.value, existing.alias) != (value.value, value.alias):
                raise duplicate_name(value.name, value.position)
            return existing
        for other in table.values:
            if other.output_name == value.output_name:
                raise duplicate_name(value.output_name, value.position)
        table.values.append(value)
        return value

    def evaluate(self, text: str, name: str, position) -> int:
        try:
            return parse_c_int(text)
        except ValueError as err:
            raise TransError(
                "BAD_TYPE", f"cannot evaluate value '{text}' of '{name}'", position
            ) from err

    def declare_command(self, command: parsed.Command) -> None:
        if command.name in self.vk.commands:
            raise duplicate_name(command.name, command.position)
        head = CommandHead(
            name=command.name,
            output_name=command_output_name(command.name),
            position=command.position,
        )
        handle = self.vk.commands.insert(
            command.name,
            Command(
                head=head,
                successcodes=command.successcodes or (),
                errorcodes=command.errorcodes or (),
            ),
        )
        self.parsed_commands.append((handle, command))

    def declare_feature(self, node, kind: FeatureKind, number: str | None) -> None:
        if node.name in self.vk.features:
            raise duplicate_name(node.name, node.position)
        feature = Feature(
            header=FeatureHeader(node.name, feature_output_name(node.name)),
            kind=kind,
            number=number,
            depends=node.depends,
            platform=getattr(node, "platform", None),
            position=node.position,
        )
        handle = self.vk.features.insert(node.name, feature)
        self.feature_nodes[handle] = node

    # ===--- Feature attachment ---=== #

    def attach_features(self) -> None:
        for handle, feature in self.vk.features:
            for child in self.feature_nodes[handle].children:
                if isinstance(child, parsed.Require) and supports_api(child.api):
                    self.attach_require(handle, feature, child)

    def attach_require(
        self, handle: FeatureHandle, feature: Feature, require: parsed.Require
    ) -> None:
        intro = Introduction(handle, require.depends)
        for item in require.items:
            if isinstance(item, parsed.RequireType):
                type_handle = self.vk.types.lookup(item.name)
                if type_handle is None:
                    raise type_not_found(item.name, item.position)
                introduce(self.vk.types[type_handle].head, intro)
                if type_handle not in feature.types:
                    feature.types.append(type_handle)
            elif isinstance(item, parsed.RequireCommand):
                command_handle = self.vk.commands.lookup(item.name)
                if command_handle is None:
                    raise TransError(
                        "TYPE_NOT_FOUND", f"command '{item.name}' not found", item.position
                    )
                introduce(self.vk.commands[command_handle].head, intro)
                if command_handle not in feature.commands:
                    feature.commands.append(command_handle)
            elif isinstance(item, parsed.RequireEnum):
                if supports_api(item.api):
                    self.attach_enum(feature, intro, item)
            elif isinstance(item, parsed.RequireFeature):
                feature.feature_structs.append(f"{item.struct}.{item.name}")

    def attach_enum(
        self, feature: Feature, intro: Introduction, item: parsed.RequireEnum
    ) -> None:
        value = item.value
        if item.extends is None:
            if isinstance(value, parsed.EnumReference):
                target = self.find_enumerant(item.name)
                if target is None:
                    self.vk.warnings.append(
                        f"unresolved enum reference {item.name} in {feature.header.name}"
                    )
                    return
                introduce(target, intro)
                return
            if isinstance(value, (parsed.PlainValue, parsed.AliasValue)):
                constant = Constant(
                    name=item.name,
                    output_name=constant_output_name(item.name),
                    ty=item.ty,
                    comment=item.comment,
                    position=item.position,
                )
                if isinstance(value, parsed.PlainValue):
                    constant.value = value.value
                else:
                    constant.alias = value.alias
                introduce(self.add_constant(constant), intro)
                feature.enums.append(item.name)
                return
            raise TransError(
                "BAD_TYPE",
                f"enum '{item.name}' has a bitpos or offset but extends nothing",
                item.position,
            )

        table = self.vk.enum_table(item.extends)
        if table is None:
            raise type_not_found(item.extends, item.position)
        if isinstance(value, parsed.EnumReference):
            existing = table.find(item.name)
            if existing is None:
                self.vk.warnings.append(
                    f"unresolved enum reference {item.name} in {feature.header.name}"
                )
                return
            introduce(existing, intro)
            return

        entry = EnumValue(
            name=item.name,
            output_name=enumerant_name(table.name, item.name, self.vk.tags),
            deprecated=item.deprecated,
            comment=item.comment,
            position=item.position,
        )
        if isinstance(value, parsed.AliasValue):
            entry.alias = value.alias
        elif isinstance(value, parsed.BitValue):
            entry.value = 1 << value.bitpos
        elif isinstance(value, parsed.OffsetValue):
            extnumber = value.extnumber
            if extnumber is None and feature.kind is not FeatureKind.CORE:
                extnumber = int(feature.number) if feature.number else None
            if extnumber is None:
                raise TransError(
                    "BAD_TYPE",
                    f"enum '{item.name}' has an offset but no extension number",
                    item.position,
                )
            entry.value = offset_value(extnumber, value.offset, value.negative)
        else:
            entry.value = self.evaluate(value.value, item.name, item.position)
        introduce(self.add_enum_value(table, entry), intro)
        feature.enums.append(item.name)

    def find_enumerant(self, name: str):
        for constant in self.vk.constants:
            if constant.name == name:
                return constant
        for table in self.vk.enums:
            value = table.find(name)
            if value is not None:
                return value
        return None

    # ===--- Pass 2: resolution ---=== #

    def lookup_type(self, name: str, position) -> TypeHandle:
        handle = self.vk.types.lookup(name)
        if handle is not None:
            return handle
        mapped = mapped_type(name)
        if mapped is None:
            raise type_not_found(name, position)
        # Built-in C and platform names are synthesized on first use.
        head = TypeHead(name=name, output_name=mapped)
        return self.vk.types.insert(name, Type(head, ImportedBody(mapped)))

    def resolve_types(self) -> None:
        types = self.vk.types
        for handle, parsed_type in self.parsed_types.items():
            ty = types[handle]
            common = parsed_type.common
            if common.requires is not None:
                ty.head.requires = self.lookup_type(common.requires, parsed_type.position)
            ty.body = self.resolve_body(ty, parsed_type)
            self.categorize(handle, ty)
        for handle, ty in types:
            if ty.head.name == "VK_HEADER_VERSION" and isinstance(ty.body, DefineBody):
                if isinstance(ty.body.value, IntDefine):
                    self.vk.header_version = ty.body.value.value

    def resolve_body(self, ty: Type, parsed_type: parsed.Type):
        details = parsed_type.details
        position = parsed_type.position
        if parsed_type.common.alias is not None:
            return AliasBody(self.lookup_type(parsed_type.common.alias, position))
        if isinstance(details, parsed.IncludeType):
            return IncludeBody(details.header)
        if isinstance(details, parsed.DefineType):
            _, value = lower_define(details.items)
            if value is None:
                self.vk.warnings.append(f"skipped define {ty.head.name}")
            elif isinstance(value, ApiVersionDefine):
                for arg in (value.variant, value.major, value.minor, value.patch):
                    if not arg.isdigit() and arg not in self.vk.types:
                        raise type_not_found(arg, position)
            return DefineBody(value)
        if isinstance(details, parsed.BaseType):
            return self.resolve_base(ty, details, position)
        if isinstance(details, parsed.HandleType):
            kind = next(
                (i.text for i in details.items if i.kind is GenericKind.TYPE), ""
            )
            parents = tuple(
                self.lookup_type(name, position) for name in details.parent or ()
            )
            return HandleBody(
                dispatchable=kind == "VK_DEFINE_HANDLE",
                parents=parents,
                objtypeenum=details.objtypeenum,
            )
        if isinstance(details, parsed.BitmaskType):
            flags = next(
                (i.text for i in details.items if i.kind is GenericKind.TYPE), "VkFlags"
            )
            bits_name = details.bitvalues or parsed_type.common.requires
            bits = self.lookup_type(bits_name, position) if bits_name else None
            return BitmaskBody(width=64 if flags == "VkFlags64" else 32, bits=bits)
        if isinstance(details, parsed.EnumType):
            return EnumBody(ty.head.name)
        if isinstance(details, parsed.FnPtrType):
            return self.resolve_fnptr(ty, details, position)
        if isinstance(details, (parsed.StructType, parsed.UnionType)):
            members = self.resolve_members(ty.head.name, details.members)
            if isinstance(details, parsed.UnionType):
                return UnionBody(members, bool(details.returned_only))
            extends = tuple(
                self.lookup_type(name, position) for name in details.extends or ()
            )
            return StructBody(members, bool(details.returned_only), extends)
        return ImportedBody(mapped_type(ty.head.name))

    def resolve_base(self, ty: Type, details: parsed.BaseType, position) -> BaseBody:
        if mapped_type(ty.head.name) is not None:
            return BaseBody()
        try:
            decl = parse_declaration(tokenize_items(details.items))
        except ValueError:
            self.vk.warnings.append(f"base type {ty.head.name} kept opaque")
            return BaseBody()
        if decl.type_name is None or decl.type_name == ty.head.name:
            return BaseBody()
        return BaseBody(DecorType(self.lookup_type(decl.type_name, position), decl.decors))

    def resolve_members(self, owner: str, members: list[parsed.Member]) -> list[Field]:
        fields = []
        for member in members:
            if not supports_api(member.api):
                continue
            field = self.resolve_field(owner, member.items, member.position)
            field.values = member.values
            field.len = member.len
            field.altlen = member.altlen
            field.optional = member.optional
            fields.append(field)
        return fields

    def resolve_field(self, owner: str, items, position, param: bool = False) -> Field:
        try:
            decl = parse_declaration(tokenize_items(items))
        except ValueError as err:
            raise TransError(
                "BAD_TYPE", f"malformed declaration in '{owner}': {err}", position
            ) from err
        if decl.type_name is None or decl.name is None:
            raise TransError(
                "BAD_TYPE", f"declaration in '{owner}' lacks a type or name", position
            )
        decors = decl.decors
        if param and decors and isinstance(decors[-1], ArrayDecor):
            # Array parameters decay to a pointer to the array.
            ptr = Decor.CONST_PTR if Decor.CONST in decors else Decor.MUT_PTR
            decors = decors + (ptr,)
        for decor in decors:
            if isinstance(decor, ArrayDecor) and not decor.size.isdigit():
                if self.find_constant(decor.size) is None:
                    raise type_not_found(decor.size, position)
        return Field(
            name=decl.name,
            output_name=field_name(decl.name),
            decor_type=DecorType(self.lookup_type(decl.type_name, position), decors),
            bitwidth=decl.bitwidth,
            position=position,
        )

    def find_constant(self, name: str) -> Constant | None:
        for constant in self.vk.constants:
            if constant.name == name:
                return constant
        return None

    def resolve_params(self, owner: str, params: list[parsed.Param]) -> list[Field]:
        fields = []
        for param in params:
            if not supports_api(param.api):
                continue
            field = self.resolve_field(owner, param.items, param.position, param=True)
            field.len = param.len
            field.altlen = param.altlen
            field.optional = param.optional
            fields.append(field)
        return fields

    def resolve_return(self, owner: str, items, position) -> DecorType | None:
        try:
            decl = parse_declaration(tokenize_items(items))
        except ValueError as err:
            raise TransError(
                "BAD_TYPE", f"malformed return type of '{owner}': {err}", position
            ) from err
        if decl.type_name is None:
            raise TransError("BAD_TYPE", f"'{owner}' has no return type", position)
        if decl.type_name == "void" and not decl.decors:
            return None
        return DecorType(self.lookup_type(decl.type_name, position), decl.decors)

    def resolve_fnptr(self, ty: Type, details: parsed.FnPtrType, position) -> FnPtrBody:
        name = ty.head.name
        if details.proto is not None:
            return FnPtrBody(
                ret=self.resolve_return(name, details.proto.items, position),
                params=self.resolve_params(name, details.params),
            )
        # typedef RET (VKAPI_PTR *NAME)(PARAM, ...);
        tokens = tokenize_items(details.items)
        names = [i for i, tok in enumerate(tokens) if tok[0] == "name"]
        if not names:
            raise TransError("BAD_TYPE", f"function pointer '{name}' has no name", position)
        at = names[0]
        head = tokens[:at]
        try:
            paren = head.index(("punct", "("))
        except ValueError:
            raise TransError(
                "BAD_TYPE", f"function pointer '{name}' is malformed", position
            ) from None
        ret_tokens = [tok for tok in head[:paren] if tok[1] != "typedef"]
        ret = self.resolve_return(name, _as_items(ret_tokens + [("name", name)]), position)

        tail = tokens[at + 1 :]
        if tail[:2] != [("punct", ")"), ("punct", "(")]:
            raise TransError("BAD_TYPE", f"function pointer '{name}' is malformed", position)
        body = tail[2:]
        while body and body[-1][1] in (";", ")"):
            body.pop()
        params = []
        if body and body != [("word", "void")]:
            group: list[tuple[str, str]] = []
            for tok in body + [("punct", ",")]:
                if tok == ("punct", ","):
                    params.append(self.resolve_field(name, _as_items(group), position, True))
                    group = []
                else:
                    group.append(tok)
        return FnPtrBody(ret=ret, params=params)

    def categorize(self, handle: TypeHandle, ty: Type) -> None:
        types = self.vk.types
        body = ty.body
        if isinstance(body, StructBody):
            types.struct_types.append(handle)
        elif isinstance(body, UnionBody):
            types.union_types.append(handle)
        elif isinstance(body, EnumBody):
            types.enum_types.append(handle)
        elif isinstance(body, BitmaskBody):
            types.bitmask_types.append(handle)
        elif isinstance(body, HandleBody):
            types.handle_types.append(handle)
        elif isinstance(body, BaseBody):
            if mapped_type(ty.head.name) is None:
                types.base_types.append(handle)
        elif isinstance(body, FnPtrBody):
            types.fnptr_types.append(handle)
        elif isinstance(body, AliasBody):
            types.alias_types.append(handle)
        elif isinstance(body, DefineBody):
            if body.value is not None:
                types.define_types.append(handle)
        elif isinstance(body, ImportedBody):
            if body.mapped is None:
                types.opaque_types.append(handle)
        if ty.head.name == RESULT_TYPE:
            types.result_type = handle

    def resolve_commands(self) -> None:
        for handle, parsed_command in self.parsed_commands:
            command = self.vk.commands[handle]
            position = parsed_command.position
            if parsed_command.proto is None:
                if parsed_command.alias is None:
                    raise TransError(
                        "BAD_TYPE", f"command '{command.head.name}' has no prototype", position
                    )
                target = self.vk.commands.lookup(parsed_command.alias)
                if target is None:
                    raise TransError(
                        "TYPE_NOT_FOUND",
                        f"command '{parsed_command.alias}' not found",
                        position,
                    )
                command.alias = target
                continue
            command.ret = self.resolve_return(
                command.head.name, parsed_command.proto.items, position
            )
            command.params = self.resolve_params(command.head.name, parsed_command.params)

    # ===--- Invariants ---=== #

    def check_cycles(self) -> None:
        types = self.vk.types
        records = set(types.struct_types) | set(types.union_types)
        edges: dict[TypeHandle, list[TypeHandle]] = {}
        for handle in records:
            body = types[handle].body
            targets = []
            for member in body.members:
                if member.decor_type.is_pointer:
                    continue
                target = types.resolve_alias(member.decor_type.handle)
                if target in records:
                    targets.append(target)
            edges[handle] = targets
            if isinstance(body, StructBody):
                for extended in body.extends:
                    if types.resolve_alias(extended) not in types.struct_types:
                        raise TransError(
                            "BAD_TYPE",
                            f"'{types[handle].head.name}' extends "
                            f"non-struct '{types[extended].head.name}'",
                            types[handle].head.position,
                        )

        done: set[TypeHandle] = set()
        for root in sorted(records):
            if root in done:
                continue
            path: list[TypeHandle] = []
            on_path: set[TypeHandle] = set()
            stack = [(root, iter(edges[root]))]
            path.append(root)
            on_path.add(root)
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    path.pop()
                    on_path.discard(node)
                    done.add(node)
                elif child in on_path:
                    cycle = path[path.index(child) :] + [child]
                    names = " -> ".join(types[h].head.name for h in cycle)
                    raise TransError(
                        "BAD_TYPE",
                        f"by-value type cycle: {names}",
                        types[child].head.position,
                    )
                elif child not in done:
                    stack.append((child, iter(edges[child])))
                    path.append(child)
                    on_path.add(child)

    def check_aliases(self) -> None:
        for table in self.vk.enums:
            for value in table.values:
                if value.alias is not None and table.find(value.alias) is None:
                    raise TransError(
                        "TYPE_NOT_FOUND",
                        f"enumerant '{value.alias}' not found in {table.name}",
                        value.position,
                    )
        for constant in self.vk.constants:
            if constant.alias is not None and self.find_constant(constant.alias) is None:
                raise TransError(
                    "TYPE_NOT_FOUND",
                    f"constant '{constant.alias}' not found",
                    constant.position,
                )

    def check_opaque_members(self) -> None:
        # Imported types with no Rust mapping (StdVideo*) are emitted as
        # zero-sized structs, so embedding one by value has the wrong size.
        types = self.vk.types
        opaque = set(types.opaque_types)
        owners: dict[TypeHandle, list[str]] = {}
        for handle in sorted(set(types.struct_types) | set(types.union_types)):
            owner = types[handle].head.name
            for member in types[handle].body.members:
                if member.decor_type.is_pointer:
                    continue
                target = types.resolve_alias(member.decor_type.handle)
                if target not in opaque:
                    continue
                names = owners.setdefault(target, [])
                if owner not in names:
                    names.append(owner)
        for target, names in sorted(owners.items()):
            self.vk.warnings.append(
                f"imported type {types[target].head.name} has no known layout "
                f"but is embedded by value in {', '.join(names)}"
            )


def introduce(target, intro: Introduction) -> None:
    """Record an introduction on a head; the first one becomes the gate owner."""
    if target.feature is None:
        target.feature = intro.feature
    if intro not in target.introductions:
        target.introductions.append(intro)


def _as_items(tokens: list[tuple[str, str]]) -> list[GenericItem]:
    kinds = {"type": GenericKind.TYPE, "name": GenericKind.NAME, "enum": GenericKind.ENUM}
    items = []
    for kind, text in tokens:
        if kind in kinds:
            items.append(GenericItem(kinds[kind], text))
        else:
            items.append(GenericItem(GenericKind.TEXT, text + " "))
    return items
