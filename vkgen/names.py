"""Name transformation between registry (C) names and Rust output names."""

from __future__ import annotations

import re
from collections.abc import Iterable

# ===--- Type maps ---=== #

C_TO_RUST = {
    "void": "c_void",
    "char": "c_char",
    "float": "f32",
    "double": "f64",
    "int": "c_int",
    "int8_t": "i8",
    "int16_t": "i16",
    "int32_t": "i32",
    "int64_t": "i64",
    "uint8_t": "u8",
    "uint16_t": "u16",
    "uint32_t": "u32",
    "uint64_t": "u64",
    "size_t": "usize",
}

# Platform-specific types mapped to ABI-compatible Rust types. Types only ever
# used behind a pointer map to c_void.
PLATFORM_TYPES = {
    "DWORD": "u32",
    "HANDLE": "*mut c_void",
    "HINSTANCE": "*mut c_void",
    "HWND": "*mut c_void",
    "HMONITOR": "*mut c_void",
    "LPCWSTR": "*const u16",
    "SECURITY_ATTRIBUTES": "c_void",
    "MTLDevice_id": "*mut c_void",
    "MTLBuffer_id": "*mut c_void",
    "MTLCommandQueue_id": "*mut c_void",
    "MTLSharedEvent_id": "*mut c_void",
    "MTLTexture_id": "*mut c_void",
    "IOSurfaceRef": "*mut c_void",
    "CAMetalLayer": "c_void",
    "Display": "c_void",
    "Window": "c_ulong",
    "VisualID": "c_ulong",
    "RROutput": "c_ulong",
    "xcb_connection_t": "c_void",
    "xcb_window_t": "u32",
    "xcb_visualid_t": "u32",
    "wl_display": "c_void",
    "wl_surface": "c_void",
    "ANativeWindow": "c_void",
    "AHardwareBuffer": "c_void",
    "zx_handle_t": "u32",
    "GgpFrameToken": "u32",
    "GgpStreamDescriptor": "u32",
    "NvSciBufAttrList": "*mut c_void",
    "NvSciBufObj": "*mut c_void",
    "NvSciSyncAttrList": "*mut c_void",
    "NvSciSyncFence": "u64",
    "NvSciSyncObj": "*mut c_void",
    "_screen_buffer": "c_void",
    "_screen_context": "c_void",
    "_screen_window": "c_void",
    "IDirectFB": "c_void",
    "IDirectFBSurface": "c_void",
    "ubm_device": "c_void",
    "ubm_surface": "c_void",
    "OHBufferHandle": "*mut c_void",
    "OHNativeWindow": "c_void",
    "OH_NativeBuffer": "c_void",
}

# Names that default to 0 / 0.0 rather than Default::default().
INTEGER_TYPES = frozenset(
    {"i8", "i16", "i32", "i64", "u8", "u16", "u32", "u64", "usize", "c_int",
     "c_char", "c_ulong"}
)
FLOAT_TYPES = frozenset({"f32", "f64"})

RUST_KEYWORDS = frozenset(
    {
        "as", "async", "await", "box", "break", "const", "continue", "crate",
        "dyn", "else", "enum", "extern", "false", "fn", "for", "if", "impl",
        "in", "let", "loop", "match", "mod", "move", "mut", "pub", "ref",
        "return", "self", "Self", "static", "struct", "super", "trait", "true",
        "type", "unsafe", "use", "where", "while", "abstract", "become", "do",
        "final", "macro", "override", "priv", "try", "typeof", "unsized",
        "virtual", "yield",
    }
)
# Keywords that cannot be written as raw identifiers.
NON_RAW_KEYWORDS = frozenset({"crate", "self", "Self", "super"})

_VK_VERSION_RE = re.compile(r"^VK_VERSION_(\d+)_(\d+)$")


def mapped_type(name: str) -> str | None:
    """Rust spelling of a built-in C or platform type, if there is one."""
    return C_TO_RUST.get(name) or PLATFORM_TYPES.get(name)


# ===--- Prefix stripping ---=== #


def type_output_name(name: str) -> str:
    mapped = mapped_type(name)
    if mapped is not None:
        return mapped
    if name.startswith("Vk") and len(name) > 2:
        return name[2:]
    return name


def command_output_name(name: str) -> str:
    if name.startswith("vk") and len(name) > 2:
        return name[2:]
    return name


def constant_output_name(name: str) -> str:
    if name.startswith("VK_") and len(name) > 3:
        stripped = name[3:]
        if stripped[0].isdigit():
            return "TYPE_" + stripped
        return stripped
    return name


def feature_output_name(name: str) -> str:
    """VK_VERSION_1_2 -> vk12; extension names are kept as they are."""
    match = _VK_VERSION_RE.match(name)
    if match:
        return f"vk{match.group(1)}{match.group(2)}"
    return name


# ===--- Casing ---=== #


def split_tag(name: str, tags: Iterable[str]) -> tuple[str, str]:
    """Split a trailing vendor tag off a name: FooBarEXT -> (FooBar, EXT)."""
    for tag in sorted(tags, key=len, reverse=True):
        if name.endswith(tag) and len(name) > len(tag):
            return name[: -len(tag)], tag
    return name, ""


def screaming_case(name: str, tags: Iterable[str] = ()) -> str:
    """FooBarEXT -> FOO_BAR_EXT, Vulkan11Features -> VULKAN_1_1_FEATURES."""
    base, tag = split_tag(name, tags)
    underscore = "".join(c if c.islower() else "_" + c for c in base)
    result = underscore.lstrip("_").upper()
    if tag:
        result += "_" + tag
    return result


def snake_case(name: str) -> str:
    name = re.sub(r"(\d)D\b", r"_\1d", name)
    return re.sub(
        r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name
    ).lower()


def rust_ident(name: str) -> str:
    """Escape a snake_case name that collides with a Rust keyword."""
    if name in NON_RAW_KEYWORDS:
        return name + "_"
    if name in RUST_KEYWORDS:
        return "r#" + name
    return name


def field_name(name: str) -> str:
    return rust_ident(snake_case(name))


def fn_name(command: str) -> str:
    return rust_ident(snake_case(command_output_name(command)))


# ===--- Enumerants ---=== #


def enum_prefix(enum_name: str, tags: Iterable[str]) -> str:
    """Common C prefix of an enum's values, e.g. VkImageUsageFlagBits -> VK_IMAGE_USAGE_."""
    base, _ = split_tag(enum_name, tags)
    if base.endswith("FlagBits2"):
        base = base[: -len("FlagBits2")] + "2"
    elif base.endswith("FlagBits"):
        base = base[: -len("FlagBits")]
    return "VK_" + screaming_case(type_output_name(base)) + "_"


def enumerant_name(enum_name: str, value_name: str, tags: Iterable[str]) -> str:
    prefix = enum_prefix(enum_name, tags)
    if value_name.startswith(prefix) and len(value_name) > len(prefix):
        stripped = value_name[len(prefix) :]
    elif value_name.startswith("VK_"):
        stripped = value_name[3:]
    else:
        stripped = value_name
    if stripped[0].isdigit():
        return "TYPE_" + stripped
    return stripped
