from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from vkgen.depends import And, Feature as FeatureName
from vkgen.errors import ParseError, Position
from vkgen.parse import parse_registry, parse_registry_text
from vkgen.registry import (
    AliasValue,
    BitValue,
    Commands,
    ConstantValue,
    Enums,
    EnumsKind,
    Extensions,
    Feature,
    FnPtrType,
    Formats,
    GenericKind,
    HandleType,
    IncludeType,
    OffsetValue,
    PlainValue,
    Registry,
    Require,
    RequireEnum,
    StructType,
    Tags,
    Types,
    UnionType,
    render_items,
)


def _only(registry: Registry, kind: type) -> object:
    matches = [item for item in registry.items if isinstance(item, kind)]
    assert len(matches) == 1
    return matches[0]


# ===--- Registry level ---=== #


def test_fixture_registry_parses_every_section(minimal_xml_path: Path) -> None:
    with open(minimal_xml_path, "rb") as stream:
        registry = parse_registry(stream)

    assert registry.comment == "Minimal registry for generator tests."
    assert len(registry.items) == 10
    assert len(_only(registry, Commands).commands) == 3
    extensions = _only(registry, Extensions).extensions
    assert [e.name for e in extensions] == [
        "VK_KHR_surface",
        "VK_KHR_win32_surface",
        "VK_KHR_disabled_example",
    ]


def test_comment_only_registry_is_not_empty() -> None:
    registry = parse_registry_text("<registry><comment>only</comment></registry>")

    assert registry.comment == "only"
    assert registry.items == []


@pytest.mark.parametrize("text", ["", "<registry></registry>", "<registry>\n  \n</registry>"])
def test_empty_registry_is_rejected(text: str) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_registry_text(text)

    assert excinfo.value.code == "EMPTY_REGISTRY"


def test_wrong_root_element_is_bad_start() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_registry_text("<notregistry/>")

    assert excinfo.value.code == "BAD_START"
    assert excinfo.value.position == Position(1, 1)


def test_unclosed_document_is_a_read_error() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_registry_text("<registry><types>")

    assert excinfo.value.code == "XML_READ"


# ===--- Strictness ---=== #


def test_unknown_attribute_is_reported_with_its_position(
    parse_xml: Callable[[str], Registry],
) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml('<types><type category="struct" name="VkFoo" bogus="1"/></types>')

    err = excinfo.value
    assert err.code == "UNREAD_ATTRIB"
    assert err.position == Position(1, 18)
    assert "bogus" in str(err)
    assert str(err).startswith("error at 1:18: ")


def test_missing_required_attribute(parse_xml: Callable[[str], Registry]) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml('<tags><tag name="KHR"/></tags>')

    assert excinfo.value.code == "REQ_ATTRIB"
    assert "author" in excinfo.value.message


def test_unexpected_child(parse_xml: Callable[[str], Registry]) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml("<types><bogus/></types>")

    assert excinfo.value.code == "BAD_CHILD"


def test_unexpected_text(parse_xml: Callable[[str], Registry]) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml("<tags>stray</tags>")

    assert excinfo.value.code == "BAD_CONTENT"


@pytest.mark.parametrize(
    "inner",
    [
        '<types><type category="weird" name="X"/></types>',
        '<types><type category="struct" name="X" returnedonly="yes"/></types>',
        '<extensions><extension name="VK_A_b" depends="A+" supported="vulkan"/></extensions>',
        '<feature api="vulkan" name="F" number="1.0"><require>'
        '<enum name="E" extends="X" offset="1" dir="+"/></require></feature>',
    ],
)
def test_bad_attribute_values(parse_xml: Callable[[str], Registry], inner: str) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml(inner)

    assert excinfo.value.code == "BAD_ATTRIB"


def test_mismatched_end_tag_is_a_read_error(parse_xml: Callable[[str], Registry]) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml("<types></tags>")

    assert excinfo.value.code == "XML_READ"


# ===--- <types> ---=== #


def test_struct_members_keep_mixed_content_and_attributes(
    parse_xml: Callable[[str], Registry],
) -> None:
    registry = parse_xml(
        '<types><type category="struct" name="VkFoo" structextends="VkBar,VkBaz">'
        '<member values="VK_STRUCTURE_TYPE_FOO"><type>VkStructureType</type> <name>sType</name></member>'
        '<member len="count" altlen="2*count" optional="true,false">'
        "const <type>char</type>* <name>pNames</name></member>"
        "</type></types>"
    )

    ty = _only(registry, Types).items[0]
    assert ty.common.name == "VkFoo"
    assert isinstance(ty.details, StructType)
    assert ty.details.extends == ("VkBar", "VkBaz")
    first, second = ty.details.members
    assert first.values == "VK_STRUCTURE_TYPE_FOO"
    assert first.name == "sType"
    assert second.len == "count"
    assert second.altlen == "2*count"
    assert second.optional == (True, False)
    assert render_items(second.items) == "const char* pNames"
    assert [i.kind for i in second.items] == [
        GenericKind.TEXT,
        GenericKind.TYPE,
        GenericKind.TEXT,
        GenericKind.NAME,
    ]
    assert second.position is not None


def test_type_categories_dispatch_to_their_own_details(
    parse_xml: Callable[[str], Registry],
) -> None:
    registry = parse_xml(
        "<types>"
        '<type category="include" name="vk_platform">#include "vk_platform.h"</type>'
        '<type category="handle" parent="VkInstance" objtypeenum="VK_OBJECT_TYPE_DEVICE">'
        "<type>VK_DEFINE_HANDLE</type>(<name>VkDevice</name>)</type>"
        '<type category="union" name="VkU"><member><type>float</type> <name>f</name></member></type>'
        '<type category="funcpointer">typedef void (VKAPI_PTR *<name>PFN_vkVoidFunction</name>)(void);</type>'
        "</types>"
    )

    include, handle, union, fnptr = _only(registry, Types).items
    assert include.details == IncludeType(header="vk_platform.h")
    assert isinstance(handle.details, HandleType)
    assert handle.common.name == "VkDevice"
    assert handle.details.parent == ("VkInstance",)
    assert isinstance(union.details, UnionType)
    assert isinstance(fnptr.details, FnPtrType)
    assert fnptr.common.name == "PFN_vkVoidFunction"


def test_enum_type_rejects_body_text(parse_xml: Callable[[str], Registry]) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml('<types><type category="enum" name="VkE">text</type></types>')

    assert excinfo.value.code == "BAD_CONTENT"


# ===--- <enums> / <commands> ---=== #


def test_enum_entry_value_kinds(parse_xml: Callable[[str], Registry]) -> None:
    registry = parse_xml(
        '<enums name="VkE" type="bitmask" bitwidth="64">'
        '<enum bitpos="3" name="VK_E_A_BIT"/>'
        '<enum value="0x10" name="VK_E_B"/>'
        '<enum alias="VK_E_A_BIT" name="VK_E_A_BIT_KHR"/>'
        '<unused start="5"/>'
        "</enums>"
        '<enums name="API Constants" type="constants">'
        '<enum type="uint32_t" value="(~0U)" name="VK_ATTACHMENT_UNUSED"/>'
        "</enums>"
    )

    enums, constants = [i for i in registry.items if isinstance(i, Enums)]
    assert enums.kind is EnumsKind.BITMASK
    assert enums.bitwidth == 64
    assert [e.value for e in enums.enums()] == [
        BitValue(3),
        PlainValue("0x10"),
        AliasValue("VK_E_A_BIT"),
    ]
    assert constants.enums()[0].value == ConstantValue("(~0U)", "uint32_t")


def test_enum_entry_without_value_is_rejected(parse_xml: Callable[[str], Registry]) -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_xml('<enums name="VkE" type="enum"><enum name="VK_E_A"/></enums>')

    assert excinfo.value.code == "REQ_ATTRIB"


def test_command_proto_params_and_codes(parse_xml: Callable[[str], Registry]) -> None:
    registry = parse_xml(
        '<commands><command successcodes="VK_SUCCESS,VK_INCOMPLETE" errorcodes="VK_ERROR_X">'
        "<proto><type>VkResult</type> <name>vkEnumerate</name></proto>"
        '<param optional="false,true"><type>uint32_t</type>* <name>pCount</name></param>'
        "</command>"
        '<command name="vkEnumerateKHR" alias="vkEnumerate"/>'
        "</commands>"
    )

    first, alias = _only(registry, Commands).commands
    assert first.name == "vkEnumerate"
    assert first.successcodes == ("VK_SUCCESS", "VK_INCOMPLETE")
    assert first.params[0].name == "pCount"
    assert first.params[0].optional == (False, True)
    assert alias.alias == "vkEnumerate"
    assert alias.proto is None


# ===--- <feature> / <extensions> ---=== #


def test_require_enum_value_forms(parse_xml: Callable[[str], Registry]) -> None:
    registry = parse_xml(
        '<feature api="vulkan" name="VK_VERSION_1_1" number="1.1">'
        '<require depends="VK_KHR_a+VK_KHR_b">'
        '<enum extends="VkE" extnumber="3" offset="2" dir="-" name="VK_E_X"/>'
        '<enum name="VK_E_REF"/>'
        "</require></feature>"
    )

    feature = _only(registry, Feature)
    assert feature.api == ("vulkan",)
    require = feature.children[0]
    assert isinstance(require, Require)
    assert require.depends == And((FeatureName("VK_KHR_a"), FeatureName("VK_KHR_b")))
    offset, reference = require.items
    assert isinstance(offset, RequireEnum)
    assert offset.value == OffsetValue(2, 3, True)
    assert offset.extends == "VkE"
    assert reference.extends is None


def test_extension_legacy_requires_attributes_become_depends(
    parse_xml: Callable[[str], Registry],
) -> None:
    registry = parse_xml(
        "<extensions>"
        '<extension name="VK_KHR_old" number="7" requires="VK_KHR_a,VK_KHR_b" '
        'requiresCore="1.1" supported="vulkan,vulkansc"/>'
        "</extensions>"
    )

    ext = _only(registry, Extensions).extensions[0]
    assert ext.number == 7
    assert ext.supported == ("vulkan", "vulkansc")
    assert ext.depends == And(
        (
            FeatureName("VK_VERSION_1_1"),
            And((FeatureName("VK_KHR_a"), FeatureName("VK_KHR_b"))),
        )
    )


# ===--- Sections linked only as warnings ---=== #


def test_formats_section_is_parsed_strictly(parse_xml: Callable[[str], Registry]) -> None:
    registry = parse_xml(
        '<formats><format name="VK_FORMAT_R8_UNORM" class="8-bit" blockSize="1" '
        'texelsPerBlock="1"><component name="R" bits="8" numericFormat="UNORM"/>'
        '<spirvimageformat name="R8"/></format></formats>'
    )

    formats = _only(registry, Formats).formats
    assert formats[0].name == "VK_FORMAT_R8_UNORM"
    assert formats[0].block_size == 1
    assert formats[0].components[0].bits == "8"
    assert formats[0].spirv_image_formats == ["R8"]

    with pytest.raises(ParseError) as excinfo:
        parse_xml('<formats><format name="F" class="c" blockSize="x" texelsPerBlock="1"/></formats>')
    assert excinfo.value.code == "BAD_ATTRIB"


def test_tags_section(parse_xml: Callable[[str], Registry]) -> None:
    registry = parse_xml(
        '<tags><tag name="KHR" author="Khronos" contact="someone"/></tags>'
    )

    assert [t.name for t in _only(registry, Tags).tags] == ["KHR"]
