import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from vkgen.emit import (
    MODULE_ORDER,
    EmitSettings,
    build_module_specs,
    emit,
    format_file_header,
    present_modules,
)
from vkgen.errors import EmitError, IoError
from vkgen.model import Vulkan

STRUCT_FOO = (
    '<types><type category="struct" name="VkFoo">'
    "<member><type>uint32_t</type> <name>x</name></member>"
    "</type></types>"
)


# ===--- Snippets ---=== #


def test_single_struct(emit_xml: Callable[[str], dict[str, str]]) -> None:
    files = emit_xml(STRUCT_FOO)

    assert list(files) == ["structs.rs", "mod.rs"]
    structs = files["structs.rs"]
    assert "#[repr(C)]\n#[derive(Clone, Copy)]\npub struct Foo {\n    pub x: u32,\n}" in structs
    assert "impl Default for Foo {" in structs
    assert "            x: 0," in structs
    assert files["mod.rs"].endswith("mod structs;\npub use structs::*;\n")


def test_const_char_pointer_member(emit_xml: Callable[[str], dict[str, str]]) -> None:
    files = emit_xml(
        '<types><type category="struct" name="VkFoo">'
        "<member>const <type>char</type>* <name>name</name></member>"
        "</type></types>"
    )

    structs = files["structs.rs"]
    assert "    pub name: *const c_char," in structs
    assert "            name: core::ptr::null()," in structs


def test_bitfields_share_one_storage_field(emit_xml: Callable[[str], dict[str, str]]) -> None:
    files = emit_xml(
        '<types><type category="struct" name="VkPacked">'
        "<member><type>uint32_t</type> <name>instanceCustomIndex</name>:24</member>"
        "<member><type>uint32_t</type> <name>mask</name>:8</member>"
        "<member><type>uint64_t</type> <name>reference</name></member>"
        "</type></types>"
    )

    structs = files["structs.rs"]
    assert "    pub instance_custom_index_and_mask: u32," in structs
    assert "            instance_custom_index_and_mask: 0," in structs
    assert "    pub reference: u64," in structs


def test_extension_item_is_feature_gated(emit_xml: Callable[[str], dict[str, str]]) -> None:
    files = emit_xml(
        STRUCT_FOO + "<extensions>"
        '<extension name="VK_KHR_portability_enumeration" number="395" supported="vulkan">'
        '<require><type name="VkFoo"/></require>'
        "</extension></extensions>"
    )

    structs = files["structs.rs"]
    gate = '#[cfg(feature = "VK_KHR_portability_enumeration")]'
    assert structs.count(gate) == 2
    assert f"{gate}\n#[repr(C)]" in structs
    assert f"{gate}\nimpl Default for Foo {{" in structs


def test_require_depends_adds_a_combined_gate(emit_xml: Callable[[str], dict[str, str]]) -> None:
    files = emit_xml(
        STRUCT_FOO + "<extensions>"
        '<extension name="VK_KHR_a" number="1" supported="vulkan"/>'
        '<extension name="VK_KHR_b" number="2" supported="vulkan">'
        '<require depends="VK_KHR_a"><type name="VkFoo"/></require>'
        "</extension></extensions>"
    )

    assert (
        '#[cfg(all(feature = "VK_KHR_b", feature = "VK_KHR_a"))]' in files["structs.rs"]
    )


def test_comment_only_registry_writes_nothing(
    emit_xml: Callable[[str], dict[str, str]], tmp_path: Path
) -> None:
    files = emit_xml("<comment>nothing to see</comment>")

    assert files == {}
    assert not (tmp_path / "out").exists()


def test_unusable_member_name_is_reported(emit_xml: Callable[[str], dict[str, str]]) -> None:
    with pytest.raises(EmitError) as excinfo:
        emit_xml(
            '<types><type category="struct" name="VkFoo">'
            "<member><type>uint32_t</type> <name>bad-name</name></member>"
            "</type></types>"
        )

    assert excinfo.value.code == "BAD_STRUCT_MEMBER"
    assert "VkFoo" in excinfo.value.message


def test_empty_enum_gets_zero_default(emit_xml: Callable[[str], dict[str, str]]) -> None:
    files = emit_xml('<types><type name="VkEmpty" category="enum"/></types>')

    enums = files["enums.rs"]
    assert "pub struct Empty(pub i32);" in enums
    assert "impl Empty {}" in enums
    assert "        Self(0)" in enums


# ===--- The fixture registry ---=== #


@pytest.fixture
def fixture_files(minimal_vk: Vulkan, tmp_path: Path) -> dict[str, str]:
    result = emit(minimal_vk, EmitSettings(output_dir=tmp_path / "vk"))
    return {f.filename: f.path.read_text(encoding="utf-8") for f in result.files}


def test_fixture_writes_every_module_and_root_last(minimal_vk: Vulkan, tmp_path: Path) -> None:
    result = emit(minimal_vk, EmitSettings(output_dir=tmp_path / "vk"))

    assert present_modules(minimal_vk) == MODULE_ORDER
    assert [f.filename for f in result.files] == [f"{m}.rs" for m in MODULE_ORDER] + ["mod.rs"]
    for written in result.files:
        data = written.path.read_bytes()
        assert written.line_count == data.count(b"\n")
        assert written.byte_count == len(data)
    assert result.total_lines == sum(f.line_count for f in result.files)


def test_every_file_starts_with_the_header(fixture_files: dict[str, str]) -> None:
    for filename, source in fixture_files.items():
        lines = source.splitlines()
        module = filename.removesuffix(".rs")
        assert lines[0] == "// x-------------------------------------------x //"
        assert lines[3] == "// | Source: vk.xml (header version 283)"
        assert lines[4] == f"// | Module: {module}"
        assert lines[5] == lines[0]
        assert source.endswith("\n") and not source.endswith("\n\n")


def test_submodules_share_the_preamble(fixture_files: dict[str, str]) -> None:
    for filename, source in fixture_files.items():
        if filename == "mod.rs":
            continue
        lines = source.splitlines()
        assert lines[7].startswith("#![allow(non_camel_case_types, non_snake_case")
        assert lines[8:10] == ["use core::ffi::*;", "use super::*;"]


def test_structure_type_defaults(fixture_files: dict[str, str]) -> None:
    structs = fixture_files["structs.rs"]

    assert "            s_type: StructureType::APPLICATION_INFO," in structs
    assert "            s_type: StructureType::WIN32_SURFACE_CREATE_INFO_KHR," in structs
    assert "    pub pp_enabled_layer_names: *const *const c_char," in structs
    assert "    /// Length: `enabledLayerCount`" in structs
    assert "    pub device_name: [c_char; MAX_PHYSICAL_DEVICE_NAME_SIZE as usize]," in structs
    assert "    pub min_image_transfer_granularity: Extent2D," in structs
    assert "            min_image_transfer_granularity: Default::default()," in structs


def test_platform_types_are_mapped_not_declared(fixture_files: dict[str, str]) -> None:
    structs = fixture_files["structs.rs"]

    assert "    pub hwnd: *mut c_void," in structs
    assert "            hwnd: core::ptr::null_mut()," in structs
    assert '#[cfg(feature = "VK_KHR_win32_surface")]' in structs
    assert all("HWND" not in source for source in fixture_files.values())


def test_union_default_is_zeroed(fixture_files: dict[str, str]) -> None:
    unions = fixture_files["unions.rs"]

    assert "pub union ClearColorValue {" in unions
    assert "    pub float32: [f32; 4]," in unions
    assert "/// Union allowing specification of floating point" in unions
    assert "            core::mem::zeroed()" in unions


def test_result_module(fixture_files: dict[str, str]) -> None:
    result = fixture_files["result.rs"]

    assert "pub struct Result(pub i32);" in result
    assert "    pub const SUCCESS: Self = Self(0);" in result
    assert "    pub const ERROR_OUT_OF_HOST_MEMORY: Self = Self(-1);" in result
    assert (
        '    #[cfg(feature = "VK_KHR_surface")]\n'
        "    pub const ERROR_SURFACE_LOST_KHR: Self = Self(-1000000000);"
    ) in result
    assert "        Self::SUCCESS" in result
    assert "    pub const fn is_success(self) -> bool {" in result
    assert "        self.0 < 0" in result


def test_enums_module(fixture_files: dict[str, str]) -> None:
    enums = fixture_files["enums.rs"]

    assert "pub struct QueueFlags(pub u32);" in enums
    assert "    pub const GRAPHICS_BIT: Self = Self(0x00000001);" in enums
    assert "    pub const COMPUTE_BIT: Self = Self(0x00000002);" in enums
    assert "pub type QueueFlagBits = QueueFlags;" in enums
    assert "impl core::ops::BitOr for QueueFlags {" in enums
    assert "        Self(self.0 | rhs.0)" in enums
    assert "pub struct StructureType(pub i32);" in enums
    assert "Result" not in enums


def test_handles_module(fixture_files: dict[str, str]) -> None:
    handles = fixture_files["handles.rs"]

    assert "pub struct Instance(pub *mut c_void);" in handles
    assert "pub struct SurfaceKHR(pub u64);" in handles
    assert "        Self(core::ptr::null_mut())" in handles
    assert "        Self::null()" in handles


def test_consts_module(fixture_files: dict[str, str]) -> None:
    consts = fixture_files["consts.rs"]

    assert "pub const MAX_PHYSICAL_DEVICE_NAME_SIZE: u32 = 256;" in consts
    assert "pub const LOD_CLAMP_NONE: f32 = 1000.0;" in consts
    assert "pub const ATTACHMENT_UNUSED: u32 = u32::MAX;" in consts
    assert "pub const WHOLE_SIZE: u64 = u64::MAX;" in consts
    assert "pub const KHR_SURFACE_EXTENSION_NAME: &CStr = c\"VK_KHR_surface\";" in consts
    assert "pub const HEADER_VERSION: u32 = 283;" in consts
    assert "pub const API_VERSION_1_0: u32 = make_api_version(0, 1, 0, 0);" in consts
    assert "pub const fn make_api_version(" in consts


def test_commands_module(fixture_files: dict[str, str]) -> None:
    commands = fixture_files["commands.rs"]

    assert "pub type PFN_vkDestroyInstance = unsafe extern \"system\" fn(instance: Instance);" in commands
    assert 'unsafe extern "system" {' in commands
    assert '    #[link_name = "vkCreateInstance"]' in commands
    assert "    pub fn create_instance(" in commands
    assert "        p_create_info: *const InstanceCreateInfo," in commands
    assert "-> PFN_vkVoidFunction;" in commands


def test_types_module(fixture_files: dict[str, str]) -> None:
    types = fixture_files["types.rs"]

    assert "pub type Bool32 = u32;" in types
    assert "pub type DeviceSize = u64;" in types
    assert 'pub type PFN_vkVoidFunction = Option<unsafe extern "system" fn()>;' in types


def test_generated_lines_fit_the_width(fixture_files: dict[str, str]) -> None:
    for source in fixture_files.values():
        for text in source.splitlines():
            if text.startswith("#![allow("):
                continue
            assert len(text) <= 100, text


def test_output_is_deterministic(minimal_vk: Vulkan, tmp_path: Path) -> None:
    first = emit(minimal_vk, EmitSettings(output_dir=tmp_path / "a"))
    second = emit(minimal_vk, EmitSettings(output_dir=tmp_path / "b"))

    assert [f.path.read_bytes() for f in first.files] == [
        f.path.read_bytes() for f in second.files
    ]


def test_module_specs_end_with_root(minimal_vk: Vulkan) -> None:
    specs = build_module_specs(minimal_vk)

    assert [s.name for s in specs] == list(MODULE_ORDER) + ["mod"]
    assert specs[-1].filename == "mod.rs"


def test_header_without_header_version() -> None:
    header = format_file_header(Vulkan(), "consts")

    assert header[3] == "// | Source: vk.xml"
    assert len(header) == 6


# ===--- Failures ---=== #


def test_unwritable_output_dir_is_an_io_error(minimal_vk: Vulkan, tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(IoError) as excinfo:
        emit(minimal_vk, EmitSettings(output_dir=blocker / "vk"))

    assert excinfo.value.code == "IO"


def test_missing_rustfmt_is_a_format_error(
    minimal_vk: Vulkan, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def fake_run(*args, **kwargs):
        raise FileNotFoundError("rustfmt")

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(EmitError) as excinfo:
        emit(minimal_vk, EmitSettings(output_dir=tmp_path / "vk", rustfmt=True))

    assert excinfo.value.code == "FORMAT"
    assert "rustfmt not found" in excinfo.value.message


def test_rustfmt_output_is_remeasured(
    minimal_vk: Vulkan, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = []

    def fake_run(command, **kwargs):
        calls.append(command)
        for filename in command[3:]:
            Path(filename).write_text("// formatted\n", encoding="utf-8")
        return subprocess.CompletedProcess(command, 0, "", "")

    monkeypatch.setattr(subprocess, "run", fake_run)

    result = emit(minimal_vk, EmitSettings(output_dir=tmp_path / "vk", rustfmt=True))

    assert calls[0][:3] == ["rustfmt", "--edition", "2021"]
    assert all(f.line_count == 1 for f in result.files)
