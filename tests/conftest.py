import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

from vkgen.emit import EmitSettings, emit  # noqa: E402
from vkgen.model import Vulkan  # noqa: E402
from vkgen.parse import parse_registry_text  # noqa: E402
from vkgen.registry import Registry  # noqa: E402
from vkgen.trans import link  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def minimal_xml_path() -> Path:
    return FIXTURES_DIR / "vk_minimal.xml"


@pytest.fixture
def registry_dir(tmp_path: Path, minimal_xml_path: Path) -> Path:
    """A --path directory already holding a local vk.xml copy."""
    directory = tmp_path / "registry"
    directory.mkdir()
    (directory / "vk.xml").write_bytes(minimal_xml_path.read_bytes())
    return directory


@pytest.fixture
def make_registry_xml() -> Callable[[str], str]:
    def _make_registry_xml(inner_xml: str) -> str:
        return f"<registry>{inner_xml}</registry>"

    return _make_registry_xml


@pytest.fixture
def parse_xml(make_registry_xml: Callable[[str], str]) -> Callable[[str], Registry]:
    def _parse_xml(inner_xml: str) -> Registry:
        return parse_registry_text(make_registry_xml(inner_xml))

    return _parse_xml


@pytest.fixture
def link_xml(parse_xml: Callable[[str], Registry]) -> Callable[[str], Vulkan]:
    def _link_xml(inner_xml: str) -> Vulkan:
        return link(parse_xml(inner_xml))

    return _link_xml


@pytest.fixture
def emit_xml(
    link_xml: Callable[[str], Vulkan], tmp_path: Path
) -> Callable[[str], dict[str, str]]:
    """Run the whole pipeline on a registry body; returns filename -> content."""

    def _emit_xml(inner_xml: str) -> dict[str, str]:
        output_dir = tmp_path / "out"
        result = emit(link_xml(inner_xml), EmitSettings(output_dir=output_dir))
        return {f.filename: f.path.read_text(encoding="utf-8") for f in result.files}

    return _emit_xml


@pytest.fixture
def minimal_vk(minimal_xml_path: Path) -> Vulkan:
    return link(parse_registry_text(minimal_xml_path.read_text(encoding="utf-8")))
