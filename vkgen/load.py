"""Locate the local vk.xml copy, fetching it from the registry URL when needed."""

from __future__ import annotations

import os
from pathlib import Path

import requests

from .errors import FetchError, IoError
from .parse import parse_registry
from .registry import Registry

DEFAULT_PATH = Path("temp") / "registry" / "vulkan"
DEFAULT_URL = (
    "https://raw.githubusercontent.com/KhronosGroup/Vulkan-Docs/main/xml/vk.xml"
)
REGISTRY_FILENAME = "vk.xml"
FETCH_TIMEOUT = 60
CHUNK_SIZE = 64 * 1024


def registry_file(path: Path) -> Path:
    """vk.xml inside a registry directory; a path to an .xml file is used as is."""
    path = Path(path)
    if path.suffix == ".xml":
        return path
    return path / REGISTRY_FILENAME


def needs_fetch(target: Path, update: bool) -> bool:
    return update or not Path(target).is_file()


def fetch_registry(url: str, target: Path) -> int:
    """Download url to target through `<target>.part` in the same directory.

    The part file is renamed over target only once the whole body has been
    written, and removed on every failure path, so an interrupted download
    never leaves a partial vk.xml behind.

    Args:
        url: Registry URL to GET.
        target: Final path of the downloaded file.

    Returns:
        Number of bytes written.

    Raises:
        FetchError: The request failed or returned an error status.
        IoError: The target directory or file could not be written.
    """
    target = Path(target)
    part = target.with_name(target.name + ".part")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with requests.get(url, stream=True, timeout=FETCH_TIMEOUT) as response:
            response.raise_for_status()
            size = 0
            with open(part, "wb") as part_file:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    part_file.write(chunk)
                    size += len(chunk)
        os.replace(part, target)
    except requests.RequestException as err:
        raise FetchError(err) from err
    except OSError as err:
        raise IoError(err) from err
    finally:
        if part.exists():
            part.unlink()
    return size


def read_registry(target: Path) -> Registry:
    """Parse a local vk.xml.

    Raises:
        IoError: The file cannot be opened or read.
        ParseError: The document does not match the registry grammar.
    """
    try:
        with open(target, "rb") as stream:
            return parse_registry(stream)
    except OSError as err:
        raise IoError(err) from err
