from __future__ import annotations

from pathlib import Path

import pytest
import requests

from vkgen import load
from vkgen.errors import FetchError, IoError, ParseError
from vkgen.load import fetch_registry, needs_fetch, read_registry, registry_file


class FakeResponse:
    def __init__(self, chunks: list[bytes], status: int = 200, error: Exception | None = None):
        self.chunks = chunks
        self.status = status
        self.error = error

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Client Error")

    def iter_content(self, chunk_size: int):
        yield from self.chunks
        if self.error is not None:
            raise self.error


# ===--- Locating vk.xml ---=== #


def test_registry_file_in_directory(tmp_path: Path) -> None:
    assert registry_file(tmp_path) == tmp_path / "vk.xml"


def test_registry_file_accepts_xml_path(tmp_path: Path) -> None:
    target = tmp_path / "custom.xml"

    assert registry_file(target) == target


def test_needs_fetch(registry_dir: Path) -> None:
    present = registry_dir / "vk.xml"

    assert not needs_fetch(present, update=False)
    assert needs_fetch(present, update=True)
    assert needs_fetch(registry_dir / "missing.xml", update=False)


# ===--- Fetching ---=== #


def test_fetch_writes_target(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_get(url, stream, timeout):
        seen.update(url=url, stream=stream, timeout=timeout)
        return FakeResponse([b"<registry>", b"</registry>"])

    monkeypatch.setattr(load.requests, "get", fake_get)
    target = tmp_path / "nested" / "vk.xml"

    size = fetch_registry("https://example.invalid/vk.xml", target)

    assert size == len(b"<registry></registry>")
    assert target.read_bytes() == b"<registry></registry>"
    assert seen == {
        "url": "https://example.invalid/vk.xml",
        "stream": True,
        "timeout": load.FETCH_TIMEOUT,
    }
    assert list(target.parent.iterdir()) == [target]


def test_fetch_http_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(load.requests, "get", lambda *a, **k: FakeResponse([], status=404))
    target = tmp_path / "vk.xml"

    with pytest.raises(FetchError) as excinfo:
        fetch_registry("https://example.invalid/vk.xml", target)

    assert excinfo.value.code == "HTTP"
    assert "404" in excinfo.value.message
    assert not target.exists()


def test_fetch_interrupted_mid_stream_removes_part_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    broken = requests.ConnectionError("connection reset")
    monkeypatch.setattr(
        load.requests, "get", lambda *a, **k: FakeResponse([b"<registry>"], error=broken)
    )
    target = tmp_path / "vk.xml"

    with pytest.raises(FetchError) as excinfo:
        fetch_registry("https://example.invalid/vk.xml", target)

    assert "connection reset" in str(excinfo.value)
    assert list(tmp_path.iterdir()) == []


def test_fetch_failure_keeps_existing_registry(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    broken = requests.ConnectionError("connection reset")
    monkeypatch.setattr(
        load.requests, "get", lambda *a, **k: FakeResponse([b"partial"], error=broken)
    )
    target = tmp_path / "vk.xml"
    target.write_bytes(b"<registry/>")

    with pytest.raises(FetchError):
        fetch_registry("https://example.invalid/vk.xml", target)

    assert target.read_bytes() == b"<registry/>"
    assert list(tmp_path.iterdir()) == [target]


def test_fetch_connection_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_get(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(load.requests, "get", fake_get)

    with pytest.raises(FetchError) as excinfo:
        fetch_registry("https://example.invalid/vk.xml", tmp_path / "vk.xml")

    assert "connection refused" in str(excinfo.value)


def test_fetch_into_unwritable_location(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(load.requests, "get", lambda *a, **k: FakeResponse([b"x"]))
    blocker = tmp_path / "file"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(IoError) as excinfo:
        fetch_registry("https://example.invalid/vk.xml", blocker / "vk.xml")

    assert excinfo.value.code == "IO"


# ===--- Reading ---=== #


def test_read_registry(registry_dir: Path) -> None:
    registry = read_registry(registry_dir / "vk.xml")

    assert len(registry.items) == 10


def test_read_missing_registry(tmp_path: Path) -> None:
    with pytest.raises(IoError):
        read_registry(tmp_path / "vk.xml")


def test_read_malformed_registry(tmp_path: Path) -> None:
    target = tmp_path / "vk.xml"
    target.write_text("<registry><types>", encoding="utf-8")

    with pytest.raises(ParseError):
        read_registry(target)
