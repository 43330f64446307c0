"""Emitter: render the indexed registry as Rust FFI modules and write them.

One file per submodule plus a root `mod.rs` that declares and re-exports
them. A submodule is produced only when the registry holds something for
it, so a registry with nothing to emit writes no files at all.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .depends import And, Feature, Or
from .errors import EmitError, IoError, bad_struct_member
from .model import (
    AliasBody,
    ArrayDecor,
    BaseBody,
    BitmaskBody,
    Constant,
    Decor,
    DecorType,
    EnumBody,
    EnumTable,
    Field,
    FnPtrBody,
    ImportedBody,
    IntDefine,
    StructBody,
    Type,
    TypeHandle,
    UnionBody,
    Vulkan,
)
from .names import (
    FLOAT_TYPES,
    INTEGER_TYPES,
    constant_output_name,
    enumerant_name,
    fn_name,
    mapped_type,
    screaming_case,
)
from .registry import EnumsKind
from .tokens import (
    Blank,
    Comment,
    Ident,
    Literal,
    TokenError,
    attr,
    block,
    brackets,
    comma_list,
    format_items,
    generic,
    ident,
    kw,
    lit,
    line,
    p,
    parens,
    path,
    string,
)

MODULE_ORDER = (
    "commands",
    "consts",
    "enums",
    "handles",
    "result",
    "structs",
    "types",
    "unions",
)
ROOT_FILENAME = "mod.rs"

STRUCTURE_TYPE = "VkStructureType"

_HEADER_BORDER = "// x-------------------------------------------x //"
_LINTS = (
    "non_camel_case_types",
    "non_snake_case",
    "non_upper_case_globals",
    "dead_code",
    "unused_imports",
)
_STORAGE_BITS = {"u8": 8, "i8": 8, "u16": 16, "i16": 16, "u64": 64, "i64": 64}
_INT_LITERAL_RE = re.compile(r"(-?(?:0[xX][0-9a-fA-F]+|\d+))[uUlL]*")


@dataclass(frozen=True)
class EmitSettings:
    output_dir: Path
    rustfmt: bool = False


@dataclass(frozen=True)
class ModuleSpec:
    """Token items for one generated file, without header or preamble."""

    name: str
    items: tuple

    @property
    def filename(self) -> str:
        if self.name == "mod":
            return ROOT_FILENAME
        return f"{self.name}.rs"


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "structs.rs" or "mod.rs".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class PackageWriteResult:
    """Every file written for one run; submodules first, mod.rs last."""

    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        return sum(f.line_count for f in self.files)


# ===--- Gates ---=== #


def _feature_predicate(output_name: str) -> list:
    return [ident("feature"), p("="), string(output_name)]


class Emitter:
    """Builds the token items of every submodule from one linked registry."""

    def __init__(self, vk: Vulkan):
        self.vk = vk
        self.types = vk.types

    def depends_predicate(self, depends) -> list:
        """cfg predicate tokens for a depends expression; unknown names are kept as features."""
        if isinstance(depends, Feature):
            feature = self.vk.features.lookup(depends.name)
            if feature is not None:
                return _feature_predicate(self.vk.features[feature].header.output_name)
            return _feature_predicate(depends.name)
        terms = [self.depends_predicate(term) for term in depends.terms]
        if isinstance(depends, And):
            return [ident("all"), parens(comma_list(terms))]
        if isinstance(depends, Or):
            return [ident("any"), parens(comma_list(terms))]
        raise EmitError("FORMAT", f"unknown depends node {depends!r}")

    def gate(self, feature, introductions) -> list:
        """One cfg attribute covering every introduction, or nothing."""
        predicates: list[list] = []
        seen: set[tuple] = set()
        for intro in introductions:
            own = _feature_predicate(self.vk.features[intro.feature].header.output_name)
            if intro.depends is not None:
                extra = self.depends_predicate(intro.depends)
                own = [ident("all"), parens(comma_list([own, extra]))]
            key = tuple(own)
            if key not in seen:
                seen.add(key)
                predicates.append(own)
        if not predicates and feature is not None:
            predicates.append(_feature_predicate(self.vk.features[feature].header.output_name))
        if not predicates:
            return []
        if len(predicates) == 1:
            return [attr(ident("cfg"), parens(predicates[0]))]
        return [attr(ident("cfg"), parens([ident("any"), parens(comma_list(predicates))]))]

    def type_gate(self, ty: Type) -> list:
        return self.gate(ty.head.feature, ty.head.introductions)

    # ===--- Type references ---=== #

    def type_name(self, handle: TypeHandle) -> list:
        ty = self.types[handle]
        if isinstance(ty.body, ImportedBody) and ty.body.mapped:
            return _mapped_tokens(ty.body.mapped)
        return [ident(ty.head.output_name)]

    def array_size(self, size: str) -> list:
        if size.isdigit():
            return [lit(size)]
        return [ident(constant_output_name(size)), kw("as"), ident("usize")]

    def type_tokens(self, decor_type: DecorType) -> list:
        """Wrap the base type in its decorators, innermost first."""
        tokens = self.type_name(decor_type.handle)
        for decor in decor_type.decors:
            if decor is Decor.CONST:
                continue
            if isinstance(decor, ArrayDecor):
                tokens = [brackets(tokens + [p(";")] + self.array_size(decor.size))]
            else:
                tokens = [p(decor.value)] + tokens
        return tokens

    def default_tokens(self, owner: str, field: Field, decor_type: DecorType) -> list:
        """Value used for field in the generated Default impl."""
        outer = decor_type.outermost
        if outer is Decor.CONST_PTR:
            return path("core", "ptr", "null") + [parens()]
        if outer is Decor.MUT_PTR:
            return path("core", "ptr", "null_mut") + [parens()]
        if isinstance(outer, ArrayDecor):
            inner = DecorType(decor_type.handle, decor_type.decors[:-1])
            element = self.default_tokens(owner, field, inner)
            return [brackets(element + [p(";")] + self.array_size(outer.size))]

        handle = self.types.resolve_alias(decor_type.handle)
        ty = self.types[handle]
        if ty.head.name == STRUCTURE_TYPE and field.name == "sType":
            if field.values:
                first = field.values.split(",")[0]
                value = enumerant_name(STRUCTURE_TYPE, first, self.vk.tags)
            else:
                value = screaming_case(owner, self.vk.tags)
            return [ident(ty.head.output_name), p("::"), ident(value)]
        if isinstance(ty.body, ImportedBody) and ty.body.mapped:
            mapped = ty.body.mapped
            if mapped in INTEGER_TYPES:
                return [lit(0)]
            if mapped in FLOAT_TYPES:
                return [lit("0.0")]
            if mapped.startswith("*const"):
                return path("core", "ptr", "null") + [parens()]
            if mapped.startswith("*mut"):
                return path("core", "ptr", "null_mut") + [parens()]
        if isinstance(ty.body, FnPtrBody):
            return [ident("None")]
        return path("Default", "default") + [parens()]

    def params(self, owner: str, params: list[Field]) -> list:
        parts = []
        for param in params:
            try:
                name = ident(param.output_name)
            except TokenError as err:
                raise bad_struct_member(owner, param.name) from err
            parts.append([name, p(":")] + self.type_tokens(param.decor_type))
        return [parens(comma_list(parts))]

    def returns(self, ret: DecorType | None) -> list:
        if ret is None:
            return []
        return [p("->")] + self.type_tokens(ret)

    def fn_type(self, owner: str, params: list[Field], ret: DecorType | None) -> list:
        """`unsafe extern "system" fn(...) -> ret` tokens for a command or PFN."""
        return (
            [kw("unsafe"), kw("extern"), string("system"), kw("fn")]
            + self.params(owner, params)
            + self.returns(ret)
        )

    # ===--- structs / unions ---=== #

    def packed_members(self, ty: Type) -> list[tuple]:
        """(name, field) pairs with runs of C bitfields merged into one field."""
        members = ty.body.members
        packed = []
        index = 0
        while index < len(members):
            member = members[index]
            if member.bitwidth is None:
                packed.append((self.member_ident(ty, member, member.output_name), member))
                index += 1
                continue
            storage = self.storage_bits(member.decor_type)
            used = 0
            names = []
            while (
                index < len(members)
                and members[index].bitwidth is not None
                and used + members[index].bitwidth <= storage
            ):
                used += members[index].bitwidth
                names.append(members[index].output_name.removeprefix("r#"))
                index += 1
            if not names:
                raise bad_struct_member(ty.head.name, member.name)
            packed.append((self.member_ident(ty, member, "_and_".join(names)), member))
        return packed

    def member_ident(self, ty: Type, member: Field, name: str) -> Ident:
        try:
            return ident(name)
        except TokenError as err:
            raise bad_struct_member(ty.head.name, member.name) from err

    def storage_bits(self, decor_type: DecorType) -> int:
        ty = self.types[self.types.resolve_alias(decor_type.handle)]
        if isinstance(ty.body, ImportedBody) and ty.body.mapped:
            return _STORAGE_BITS.get(ty.body.mapped, 32)
        if isinstance(ty.body, BaseBody) and ty.body.target is not None:
            return self.storage_bits(ty.body.target)
        return 32

    def record(self, handle: TypeHandle) -> list:
        """Items for one struct or union, including its Default impl."""
        ty = self.types[handle]
        name = ident(ty.head.output_name)
        union = isinstance(ty.body, UnionBody)
        gate = self.type_gate(ty)
        fields = []
        values = []
        for member_name, member in self.packed_members(ty):
            length = member.length()
            if length is not None and member.decor_type.is_pointer:
                fields.append(Comment(f"Length: `{length}`", doc=True))
            declared = self.type_tokens(member.decor_type)
            fields.append(line(kw("pub"), member_name, p(":"), declared, p(",")))
            if member.bitwidth is not None:
                values.append(line(member_name, p(":"), lit(0), p(",")))
            else:
                default = self.default_tokens(ty.head.output_name, member, member.decor_type)
                values.append(line(member_name, p(":"), default, p(",")))

        items = list(gate)
        if ty.head.comment:
            items.append(Comment(ty.head.comment, doc=True))
        if isinstance(ty.body, StructBody) and ty.body.extends:
            extended = ", ".join(self.types[h].head.output_name for h in ty.body.extends)
            items.append(Comment(f"Extends: {extended}", doc=True))
        items.append(_repr("C"))
        items.append(_derive("Clone", "Copy"))
        keyword = ident("union") if union else kw("struct")
        items.append(block([kw("pub"), keyword, name], fields))
        items.append(Blank())
        items.extend(gate)
        if union:
            body = [block([kw("unsafe")], [line(path("core", "mem", "zeroed"), parens())])]
        else:
            body = [block([kw("Self")], values)]
        items.append(
            block(
                [kw("impl"), ident("Default"), kw("for"), name],
                [_fn("default", [], [kw("Self")], body)],
            )
        )
        items.append(Blank())
        return items

    def structs_module(self) -> list:
        items = []
        for handle in self.types.struct_types:
            items.extend(self.record(handle))
        return items

    def unions_module(self) -> list:
        items = []
        for handle in self.types.union_types:
            items.extend(self.record(handle))
        return items

    # ===--- enums / bitmasks ---=== #

    def enum_consts(self, table: EnumTable | None, bitmask: bool) -> list:
        consts = []
        if table is None:
            return consts
        for value in table.values:
            consts.extend(self.gate(value.feature, value.introductions))
            if value.comment:
                consts.append(Comment(value.comment, doc=True))
            if value.alias is not None:
                rhs = [kw("Self"), p("::"), ident(table.find(value.alias).output_name)]
            elif bitmask and value.value >= 0:
                rhs = _self_of([lit(f"0x{value.value:08x}")])
            else:
                rhs = _self_of([lit(value.value)])
            consts.append(_pub_const(ident(value.output_name), [kw("Self")], rhs))
        return consts

    def zero_value(self, table: EnumTable | None) -> list:
        if table is not None:
            for value in table.values:
                if value.value == 0 and value.alias is None and not value.introductions:
                    return [kw("Self"), p("::"), ident(value.output_name)]
        return _self_of([lit(0)])

    def wrapper(
        self, ty: Type, table: EnumTable | None, width: str, bitmask: bool, extra=()
    ) -> list:
        """Transparent integer newtype with one associated const per enumerant."""
        name = ident(ty.head.output_name)
        gate = self.type_gate(ty)
        items = list(gate)
        if ty.head.comment:
            items.append(Comment(ty.head.comment, doc=True))
        items.append(_repr("transparent"))
        items.append(
            _derive("Clone", "Copy", "PartialEq", "Eq", "PartialOrd", "Ord", "Hash", "Debug")
        )
        items.append(line(kw("pub"), kw("struct"), name, parens([kw("pub"), ident(width)]), p(";")))
        consts = self.enum_consts(table, bitmask) + list(extra)
        items.extend(gate)
        items.append(block([kw("impl"), name], consts))
        default = _self_of([lit(0)]) if bitmask else self.zero_value(table)
        items.extend(gate)
        items.append(_default_impl(name, default))
        if bitmask:
            rhs = [ident("rhs"), p("."), lit(0)]
            items.extend(gate)
            items.append(
                block(
                    [kw("impl"), path("core", "ops", "BitOr"), kw("for"), name],
                    [
                        line(kw("type"), ident("Output"), p("="), kw("Self"), p(";")),
                        _fn(
                            "bitor",
                            [kw("self"), p(","), ident("rhs"), p(":"), kw("Self")],
                            [kw("Self")],
                            [line(_self_of([kw("self"), p("."), lit(0), p("|")] + rhs))],
                        ),
                    ],
                )
            )
        items.append(Blank())
        return items

    def enums_module(self) -> list:
        types = self.types
        flag_bits: dict[TypeHandle, TypeHandle] = {}
        for handle in types.bitmask_types:
            bits = types[handle].body.bits
            if bits is not None:
                flag_bits[types.resolve_alias(bits)] = handle

        items = []
        handles = [h for h in types.enum_types if h != types.result_type]
        for handle in sorted(handles + types.bitmask_types):
            ty = types[handle]
            if isinstance(ty.body, BitmaskBody):
                table = None
                if ty.body.bits is not None:
                    bits = types[types.resolve_alias(ty.body.bits)]
                    if isinstance(bits.body, EnumBody):
                        table = self.vk.enum_table(bits.body.table)
                width = "u64" if ty.body.width == 64 else "u32"
                empty = _fn("empty", [], [kw("Self")], [line(_self_of([lit(0)]))], public=True)
                items.extend(self.wrapper(ty, table, width, True, [empty]))
            elif handle in flag_bits:
                target = types[flag_bits[handle]]
                items.extend(self.type_gate(ty))
                alias = _type_alias(ident(ty.head.output_name), [ident(target.head.output_name)])
                items.append(alias)
                items.append(Blank())
            else:
                table = self.vk.enum_table(ty.body.table)
                bitmask = table is not None and table.kind is EnumsKind.BITMASK
                if table is not None and table.bitwidth == 64:
                    width = "u64"
                else:
                    width = "u32" if bitmask else "i32"
                items.extend(self.wrapper(ty, table, width, bitmask))
        return items

    # ===--- result ---=== #

    def result_module(self) -> list:
        ty = self.types[self.types.result_type]
        table = self.vk.enum_table(ty.head.name)
        checks = []
        for check, op in (("is_success", ">="), ("is_error", "<")):
            body = [line(kw("self"), p("."), lit(0), p(op), lit(0))]
            checks.append(_fn(check, [kw("self")], [ident("bool")], body, public=True))
        return self.wrapper(ty, table, "i32", False, checks)

    # ===--- handles ---=== #

    def handles_module(self) -> list:
        items = []
        for handle in self.types.handle_types:
            ty = self.types[handle]
            name = ident(ty.head.output_name)
            gate = self.type_gate(ty)
            if ty.body.dispatchable:
                inner = [p("*mut"), ident("c_void")]
                null = _self_of(path("core", "ptr", "null_mut") + [parens()])
            else:
                inner = [ident("u64")]
                null = _self_of([lit(0)])
            items.extend(gate)
            items.append(_repr("transparent"))
            items.append(_derive("Clone", "Copy", "PartialEq", "Eq", "Hash", "Debug"))
            items.append(line(kw("pub"), kw("struct"), name, parens([kw("pub")] + inner), p(";")))
            items.extend(gate)
            null_fn = _fn("null", [], [kw("Self")], [line(null)], public=True)
            items.append(block([kw("impl"), name], [null_fn]))
            items.extend(gate)
            items.append(_default_impl(name, [kw("Self"), p("::"), ident("null"), parens()]))
            items.append(Blank())
        return items

    # ===--- commands ---=== #

    def commands_module(self) -> list:
        commands = self.vk.commands
        items = []
        externs = []
        for _, command in commands:
            target = command
            seen = set()
            while target.alias is not None and target.alias not in seen:
                seen.add(target.alias)
                target = commands[target.alias]
            name = command.head.name
            gate = self.gate(command.head.feature, command.head.introductions)
            signature = self.params(name, target.params) + self.returns(target.ret)
            items.extend(gate)
            pfn = self.fn_type(name, target.params, target.ret)
            items.append(_type_alias(ident(f"PFN_{name}"), pfn))
            externs.extend(gate)
            externs.append(attr(ident("link_name"), p("="), string(name)))
            externs.append(line(kw("pub"), kw("fn"), ident(fn_name(name)), signature, p(";")))
        if items:
            items.append(Blank())
        items.append(block([kw("unsafe"), kw("extern"), string("system")], externs))
        return items

    # ===--- consts ---=== #

    def constant_value(self, constant: Constant) -> tuple[list, list]:
        """(type tokens, value tokens) for a literal API constant."""
        raw = constant.value.strip()
        while raw.startswith("(") and raw.endswith(")"):
            raw = raw[1:-1].strip()
        if raw.startswith('"'):
            return [p("&"), ident("CStr")], [Literal("c" + raw)]
        ty = mapped_type(constant.ty) if constant.ty else None
        if ty is None:
            if raw[-1:] in ("F", "f") and "." in raw and not raw.lower().startswith("0x"):
                ty = "f32"
            elif raw.upper().endswith("ULL"):
                ty = "u64"
            elif raw.startswith("-"):
                ty = "i32"
            else:
                ty = "u32"
        if raw.startswith("~"):
            match = _INT_LITERAL_RE.fullmatch(raw[1:])
            if match is None:
                raise EmitError("FORMAT", f"cannot lower constant {constant.name} = {raw}")
            if int(match.group(1), 0) == 0:
                return [ident(ty)], [ident(ty), p("::"), ident("MAX")]
            return [ident(ty)], [p("!"), lit(match.group(1))]
        if ty in FLOAT_TYPES:
            value = raw.rstrip("Ff")
            if "." not in value:
                value += ".0"
            return [ident(ty)], [lit(value)]
        match = _INT_LITERAL_RE.fullmatch(raw)
        if match is not None:
            return [ident(ty)], [lit(match.group(1))]
        return [ident(ty)], [ident(constant_output_name(raw))]

    def find_constant(self, name: str) -> Constant | None:
        for constant in self.vk.constants:
            if constant.name == name:
                return constant
        return None

    def consts_module(self) -> list:
        items = []
        for constant in self.vk.constants:
            target = constant
            seen = set()
            while target.alias is not None and target.name not in seen:
                seen.add(target.name)
                target = self.find_constant(target.alias)
            ty, _ = self.constant_value(target)
            if constant.alias is not None:
                value = [ident(constant_output_name(constant.alias))]
            else:
                _, value = self.constant_value(constant)
            items.extend(self.gate(constant.feature, constant.introductions))
            if constant.comment:
                items.append(Comment(constant.comment, doc=True))
            items.append(_pub_const(ident(constant.output_name), ty, value))

        needs_version_fn = False
        for handle in self.types.define_types:
            ty = self.types[handle]
            define = ty.body.value
            if isinstance(define, IntDefine):
                value = [lit(define.value)]
            else:
                needs_version_fn = True
                args = [
                    [lit(arg)] if arg.isdigit() else [ident(constant_output_name(arg))]
                    for arg in (define.variant, define.major, define.minor, define.patch)
                ]
                value = [ident("make_api_version"), parens(comma_list(args))]
            items.extend(self.type_gate(ty))
            items.append(_pub_const(ident(ty.head.output_name), [ident("u32")], value))

        if needs_version_fn:
            names = ("variant", "major", "minor", "patch")
            params = comma_list([[ident(n), p(":"), ident("u32")] for n in names])
            shifted = [
                parens([ident("variant"), p("<<"), lit(29)]), p("|"),
                parens([ident("major"), p("<<"), lit(22)]), p("|"),
                parens([ident("minor"), p("<<"), lit(12)]), p("|"),
                ident("patch"),
            ]
            items.append(Blank())
            items.append(
                _fn("make_api_version", params, [ident("u32")], [line(shifted)], public=True)
            )
        return items

    # ===--- types ---=== #

    def types_module(self) -> list:
        types = self.types
        items = []
        handles = types.base_types + types.fnptr_types + types.alias_types + types.opaque_types
        for handle in sorted(handles):
            ty = types[handle]
            name = ident(ty.head.output_name)
            body = ty.body
            items.extend(self.type_gate(ty))
            if isinstance(body, BaseBody) and body.target is not None:
                items.append(_type_alias(name, self.type_tokens(body.target)))
            elif isinstance(body, FnPtrBody):
                fn = self.fn_type(ty.head.name, body.params, body.ret)
                items.append(_type_alias(name, generic("Option", fn)))
            elif isinstance(body, AliasBody):
                items.append(_type_alias(name, self.type_name(body.target)))
            else:
                items.append(_repr("C"))
                items.append(_derive("Clone", "Copy", "Default"))
                opaque = brackets([ident("u8"), p(";"), lit(0)])
                field = line(ident("_opaque"), p(":"), opaque, p(","))
                items.append(block([kw("pub"), kw("struct"), name], [field]))
        return items


# ===--- Token shorthands ---=== #


def _repr(kind: str):
    return attr(ident("repr"), parens([ident(kind)]))


def _derive(*names: str):
    return attr(ident("derive"), parens(comma_list([[ident(name)] for name in names])))


def _type_alias(name: Ident, target: list):
    return line(kw("pub"), kw("type"), name, p("="), target, p(";"))


def _pub_const(name: Ident, ty: list, value: list):
    return line(kw("pub"), kw("const"), name, p(":"), ty, p("="), value, p(";"))


def _self_of(value: list) -> list:
    return [kw("Self"), parens(value)]


def _fn(name: str, params: list, ret: list, body: list, *, public: bool = False):
    header = [kw("pub"), kw("const")] if public else []
    header += [kw("fn"), ident(name), parens(params), p("->")] + ret
    return block(header, body)


def _default_impl(name: Ident, value: list):
    return block(
        [kw("impl"), ident("Default"), kw("for"), name],
        [_fn("default", [], [kw("Self")], [line(value)])],
    )


def _mapped_tokens(mapped: str) -> list:
    tokens = []
    for part in mapped.split():
        if part.startswith("*"):
            tokens.append(p(part))
        else:
            tokens.append(ident(part))
    return tokens


# ===--- Module assembly ---=== #


def present_modules(vk: Vulkan) -> tuple[str, ...]:
    meta = vk.metadata()
    types = vk.types
    has_enums = meta.has_bitmask_types or any(h != types.result_type for h in types.enum_types)
    flags = {
        "commands": meta.has_commands,
        "consts": meta.has_constants,
        "enums": has_enums,
        "handles": meta.has_handles,
        "result": meta.has_result_type,
        "structs": meta.has_structs,
        "types": meta.has_base_types,
        "unions": meta.has_unions,
    }
    return tuple(name for name in MODULE_ORDER if flags[name])


def build_module_specs(vk: Vulkan) -> tuple[ModuleSpec, ...]:
    """Token items for every present submodule, followed by the root module.

    Args:
        vk: The linked registry.

    Returns:
        One ModuleSpec per non-empty module in MODULE_ORDER, then mod.rs.
        Empty when the registry holds nothing to emit.

    Raises:
        EmitError: BAD_STRUCT_MEMBER for an unusable member name, FORMAT for
            any other name that cannot become a Rust identifier.
    """
    modules = present_modules(vk)
    if not modules:
        return ()
    emitter = Emitter(vk)
    builders = {
        "commands": emitter.commands_module,
        "consts": emitter.consts_module,
        "enums": emitter.enums_module,
        "handles": emitter.handles_module,
        "result": emitter.result_module,
        "structs": emitter.structs_module,
        "types": emitter.types_module,
        "unions": emitter.unions_module,
    }
    specs = []
    try:
        lints = [[ident(lint)] for lint in _LINTS]
        for name in modules:
            preamble = [
                attr(ident("allow"), parens(comma_list(lints)), inner=True),
                line(kw("use"), path("core", "ffi"), p("::"), p("*"), p(";")),
                line(kw("use"), kw("super"), p("::"), p("*"), p(";")),
                Blank(),
            ]
            items = preamble + builders[name]()
            while items and isinstance(items[-1], Blank):
                items.pop()
            specs.append(ModuleSpec(name, tuple(items)))
        root = []
        for name in modules:
            root.append(line(kw("mod"), ident(name), p(";")))
            root.append(line(kw("pub"), kw("use"), ident(name), p("::"), p("*"), p(";")))
        specs.append(ModuleSpec("mod", tuple(root)))
    except TokenError as err:
        raise EmitError("FORMAT", str(err)) from err
    return tuple(specs)


def format_file_header(vk: Vulkan, module: str) -> list[str]:
    """Boxed comment at the top of every generated file.

    Output format:
        // x-------------------------------------------x //
        // | Vulkan bindings for Rust
        // | Generated by vkgen
        // | Source: vk.xml (header version 283)
        // | Module: structs
        // x-------------------------------------------x //
    """
    source = "vk.xml"
    if vk.header_version is not None:
        source += f" (header version {vk.header_version})"
    return [
        _HEADER_BORDER,
        "// | Vulkan bindings for Rust",
        "// | Generated by vkgen",
        f"// | Source: {source}",
        f"// | Module: {module}",
        _HEADER_BORDER,
    ]


def assemble_module_source(vk: Vulkan, spec: ModuleSpec) -> str:
    parts = format_file_header(vk, spec.name)
    if spec.items:
        parts.append("")
        parts.extend(format_items(spec.items))
    return "\n".join(parts) + "\n"


# ===--- Writer I/O functions ---=== #


def _measure(filename: str, file_path: Path) -> FileWriteResult:
    resolved = file_path.resolve()
    data = resolved.read_bytes()
    return FileWriteResult(
        filename=filename,
        path=resolved,
        line_count=data.count(b"\n"),
        byte_count=len(data),
    )


def write_module(output_dir: Path, filename: str, content: str) -> FileWriteResult:
    """Write one generated file, creating output_dir if absent.

    Raises:
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / filename
    with open(file_path, "w", encoding="utf-8", newline="\n") as out:
        out.write(content)
    return _measure(filename, file_path)


def write_package(
    output_dir: Path, vk: Vulkan, specs: tuple[ModuleSpec, ...]
) -> PackageWriteResult:
    """Write every module in order. Partial writes are not rolled back."""
    files = [
        write_module(output_dir, spec.filename, assemble_module_source(vk, spec))
        for spec in specs
    ]
    return PackageWriteResult(output_dir=Path(output_dir), files=tuple(files))


def run_rustfmt(result: PackageWriteResult) -> PackageWriteResult:
    """Format the written files in place and re-measure them.

    Raises:
        EmitError: FORMAT when rustfmt is missing or rejects a file.
    """
    command = ["rustfmt", "--edition", "2021", *(str(f.path) for f in result.files)]
    try:
        subprocess.run(command, check=True, capture_output=True, text=True)
    except FileNotFoundError as err:
        raise EmitError("FORMAT", "rustfmt not found on PATH") from err
    except subprocess.CalledProcessError as err:
        detail = (err.stderr or "").strip() or str(err)
        raise EmitError("FORMAT", f"rustfmt failed: {detail}") from err
    files = tuple(_measure(f.filename, f.path) for f in result.files)
    return PackageWriteResult(output_dir=result.output_dir, files=files)


def emit(vk: Vulkan, settings: EmitSettings) -> PackageWriteResult:
    """Generate and write all modules for a linked registry.

    Args:
        vk: The linked registry.
        settings: Output directory and whether to run rustfmt afterwards.

    Returns:
        The written files with their line counts. An empty registry writes
        nothing and returns no files.

    Raises:
        EmitError: Malformed names or a rustfmt failure.
        IoError: Any filesystem failure while writing.
    """
    specs = build_module_specs(vk)
    if not specs:
        return PackageWriteResult(output_dir=Path(settings.output_dir), files=())
    try:
        result = write_package(settings.output_dir, vk, specs)
    except OSError as err:
        raise IoError(err) from err
    if settings.rustfmt:
        result = run_rustfmt(result)
    return result
