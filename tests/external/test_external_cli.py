from __future__ import annotations

from pathlib import Path
import shutil
import subprocess
import sys


EXPECTED_FILES = {
    "commands.rs",
    "consts.rs",
    "enums.rs",
    "handles.rs",
    "result.rs",
    "structs.rs",
    "types.rs",
    "unions.rs",
    "mod.rs",
}


def _tool_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _fixture_vk_xml() -> Path:
    return _tool_root() / "tests" / "fixtures" / "vk_minimal.xml"


def _registry_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "registry"
    directory.mkdir()
    shutil.copy2(_fixture_vk_xml(), directory / "vk.xml")
    return directory


def _run(args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    run_cwd = _tool_root() if cwd is None else cwd
    return subprocess.run(
        [sys.executable, "gen.py", *args],
        cwd=run_cwd,
        capture_output=True,
        text=True,
        check=False,
    )


def test_t_01_generate_from_local_registry_writes_every_module(tmp_path: Path) -> None:
    output_dir = tmp_path / "generated"

    result = _run(
        ["--path", str(_registry_dir(tmp_path)), "--out", str(output_dir.resolve())]
    )

    assert result.returncode == 0, result.stderr
    assert "Vulkan bindings generated:" in result.stdout
    assert "Total:" in result.stdout
    assert {p.name for p in output_dir.glob("*.rs")} == EXPECTED_FILES


def test_t_02_path_may_name_the_xml_file(tmp_path: Path) -> None:
    output_dir = tmp_path / "generated"

    result = _run(
        ["--path", str(_fixture_vk_xml().resolve()), "--out", str(output_dir.resolve())]
    )

    assert result.returncode == 0, result.stderr
    assert (output_dir / "mod.rs").is_file()


def test_t_03_list_features_is_read_only(tmp_path: Path) -> None:
    registry = _registry_dir(tmp_path)

    result = _run(["--list-features", "--path", str(registry)])

    assert result.returncode == 0
    assert "3 features in vk.xml (header version 283):" in result.stdout
    assert "VK_KHR_win32_surface" in result.stdout
    assert sorted(p.name for p in registry.iterdir()) == ["vk.xml"]


def test_t_04_unknown_flag_is_a_config_error() -> None:
    result = _run(["--not-a-flag"])

    assert result.returncode == 1
    assert "Config error [BAD_CMD_ARG]" in result.stderr
    assert "Traceback (most recent call last)" not in result.stderr


def test_t_05_generate_mode_requires_out(tmp_path: Path) -> None:
    result = _run(["--path", str(_registry_dir(tmp_path))])

    assert result.returncode == 1
    assert "Config error [REQ_CMD_ARG]" in result.stderr


def test_t_06_malformed_registry_degrades_without_traceback(tmp_path: Path) -> None:
    broken = tmp_path / "vk.xml"
    broken.write_text("<registry>\n  <types>\n", encoding="utf-8")

    result = _run(["--path", str(tmp_path), "--out", str(tmp_path / "out")])

    assert result.returncode == 1
    assert "error at" in result.stderr
    assert "Traceback (most recent call last)" not in result.stderr
    assert not (tmp_path / "out").exists()


def test_t_07_help_lists_public_flags() -> None:
    result = _run(["--help"])

    assert result.returncode == 0
    for flag in (
        "--path",
        "--url",
        "--update",
        "--out",
        "--rustfmt",
        "--list-features",
        "--filter",
    ):
        assert flag in result.stdout
