"""Tests for the zip archive extractor."""
import asyncio
import io
import os
import stat
import threading
import zipfile
import pytest
from acquisition.domain.cancellation import CancellationToken
from acquisition.domain.errors import (
    AcquisitionCancelledError,
    ExtractionError,
    ExtractionReason,
)
from acquisition.domain.models import TemporaryArtifact
from acquisition.domain.resolver import resolve_archive_url
from acquisition.infrastructure.zip_extractor import (
    ZipArchiveExtractor,
    inspect_content_root,
    list_content_root,
)


def make_artifact(tmp_path, data: bytes) -> TemporaryArtifact:
    path = tmp_path / "download.zip"
    path.write_bytes(data)
    location = resolve_archive_url("https://github.com/acme/demo")
    return TemporaryArtifact(path=path, size_bytes=len(data), location=location)


def extract(extractor, artifact, destination, cancel_token=None):
    return asyncio.run(extractor.extract(artifact, destination, cancel_token))


def test_extract_strips_wrapper_folder(tmp_path, temp_area, demo_zip):
    """Test that the wrapper's children land directly in destination."""
    destination = tmp_path / "dest"
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    root = extract(extractor, make_artifact(tmp_path, demo_zip), destination)

    assert root == destination
    assert list_content_root(destination) == ["README.md", "docs"]
    assert (destination / "docs" / "index.adoc").read_bytes() == b"= Index\n"
    assert list(temp_area.iterdir()) == []


def test_extract_replaces_existing_children(tmp_path, temp_area, demo_zip):
    """Test that pre-existing content is cleared but the folder itself is kept."""
    destination = tmp_path / "dest"
    (destination / "stale-dir").mkdir(parents=True)
    (destination / "stale-dir" / "old.txt").write_text("old")
    (destination / "notes.txt").write_text("unrelated")
    marker = destination.stat().st_ino
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    extract(extractor, make_artifact(tmp_path, demo_zip), destination)

    assert list_content_root(destination) == ["README.md", "docs"]
    assert destination.stat().st_ino == marker


def test_extract_twice_is_idempotent(tmp_path, temp_area, demo_zip):
    """Test repeated extraction produces the same child set."""
    destination = tmp_path / "dest"
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))
    artifact = make_artifact(tmp_path, demo_zip)

    extract(extractor, artifact, destination)
    first = list_content_root(destination)
    extract(extractor, artifact, destination)

    assert list_content_root(destination) == first


def test_extract_rejects_two_top_level_folders(tmp_path, temp_area, zip_bytes):
    """Test that an ambiguous layout fails without touching destination."""
    data = zip_bytes({"a-main/x.txt": b"x", "b-main/y.txt": b"y"})
    destination = tmp_path / "dest"
    destination.mkdir()
    (destination / "keep.txt").write_text("keep")
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(ExtractionError) as excinfo:
        extract(extractor, make_artifact(tmp_path, data), destination)

    assert excinfo.value.reason is ExtractionReason.UNEXPECTED_LAYOUT
    assert list_content_root(destination) == ["keep.txt"]
    assert list(temp_area.iterdir()) == []


def test_extract_rejects_archive_without_folder(tmp_path, temp_area, zip_bytes):
    """Test that a flat archive has no top-level folder."""
    data = zip_bytes({"README.md": b"flat"})
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(ExtractionError) as excinfo:
        extract(extractor, make_artifact(tmp_path, data), tmp_path / "dest")

    assert excinfo.value.reason is ExtractionReason.UNEXPECTED_LAYOUT
    assert "no top-level folder" in str(excinfo.value)
    assert not (tmp_path / "dest").exists()


def test_extract_rejects_folder_with_sibling_file(tmp_path, temp_area, zip_bytes):
    """Test that a stray top-level file is not silently dropped."""
    data = zip_bytes({"demo-main/README.md": b"x", "stray.txt": b"y"})
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(ExtractionError) as excinfo:
        extract(extractor, make_artifact(tmp_path, data), tmp_path / "dest")

    assert excinfo.value.reason is ExtractionReason.UNEXPECTED_LAYOUT


def test_extract_ignores_macosx_metadata(tmp_path, temp_area, zip_bytes):
    """Test that __MACOSX folders do not count as a second top-level folder."""
    data = zip_bytes({"demo-main/README.md": b"x", "__MACOSX/demo-main/._README.md": b"y"})
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    extract(extractor, make_artifact(tmp_path, data), tmp_path / "dest")

    assert list_content_root(tmp_path / "dest") == ["README.md"]


def test_extract_corrupt_archive(tmp_path, temp_area):
    """Test that non-zip bytes are reported as corrupt."""
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(ExtractionError) as excinfo:
        extract(extractor, make_artifact(tmp_path, b"<html>not a zip</html>"), tmp_path / "dest")

    assert excinfo.value.reason is ExtractionReason.CORRUPT_ARCHIVE
    assert list(temp_area.iterdir()) == []


def test_extract_rejects_traversal_members(tmp_path, temp_area, zip_bytes):
    """Test that members escaping the archive root are refused."""
    data = zip_bytes({"demo-main/ok.txt": b"ok", "demo-main/../../evil.txt": b"evil"})
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(ExtractionError) as excinfo:
        extract(extractor, make_artifact(tmp_path, data), tmp_path / "dest")

    assert excinfo.value.reason is ExtractionReason.CORRUPT_ARCHIVE
    assert not (tmp_path / "evil.txt").exists()


def test_extract_destination_is_a_file(tmp_path, temp_area, demo_zip):
    """Test that a file at the destination is a filesystem error."""
    destination = tmp_path / "dest"
    destination.write_text("in the way")
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(ExtractionError) as excinfo:
        extract(extractor, make_artifact(tmp_path, demo_zip), destination)

    assert excinfo.value.reason is ExtractionReason.FILESYSTEM
    assert list(temp_area.iterdir()) == []


def test_extract_cancelled_before_start(tmp_path, temp_area, demo_zip):
    """Test that a cancelled token leaves destination untouched."""
    token = CancellationToken()
    token.cancel()
    extractor = ZipArchiveExtractor(temp_dir=str(temp_area))

    with pytest.raises(AcquisitionCancelledError):
        extract(extractor, make_artifact(tmp_path, demo_zip), tmp_path / "dest", token)

    assert not (tmp_path / "dest").exists()
    assert list(temp_area.iterdir()) == []


def zip_with_modes(entries) -> bytes:
    """Build zip bytes from (name, unix_mode, content) triples, as unix zip tools store them."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, mode, content in entries:
            info = zipfile.ZipInfo(name)
            info.create_system = 3
            info.external_attr = mode << 16
            archive.writestr(info, content)
    return buffer.getvalue()


@pytest.mark.skipif(os.name != "posix", reason="needs POSIX modes and symlinks")
def test_extract_keeps_symlinks_and_exec_bits(tmp_path, temp_area):
    """Test that symlinks stay links and executables stay executable."""
    data = zip_with_modes([
        ("demo-main/", 0o040755, b""),
        ("demo-main/run.sh", 0o100755, b"#!/bin/sh\necho hi\n"),
        ("demo-main/notes.txt", 0o100644, b"notes"),
        ("demo-main/link", 0o120777, b"run.sh"),
    ])
    destination = tmp_path / "dest"

    extract(ZipArchiveExtractor(temp_dir=str(temp_area)), make_artifact(tmp_path, data), destination)

    assert (destination / "link").is_symlink()
    assert os.readlink(destination / "link") == "run.sh"
    assert (destination / "link").read_bytes() == b"#!/bin/sh\necho hi\n"
    assert stat.S_IMODE((destination / "run.sh").stat().st_mode) == 0o755
    assert stat.S_IMODE((destination / "notes.txt").stat().st_mode) == 0o644
    assert list(temp_area.iterdir()) == []


@pytest.mark.skipif(os.name != "posix", reason="needs POSIX symlinks")
def test_extract_does_not_create_links_leaving_the_repository(tmp_path, temp_area):
    """Test that links pointing outside the snapshot are kept as plain files."""
    data = zip_with_modes([
        ("demo-main/", 0o040755, b""),
        ("demo-main/passwd", 0o120777, b"/etc/passwd"),
        ("demo-main/up", 0o120777, b"../../outside"),
    ])
    destination = tmp_path / "dest"

    extract(ZipArchiveExtractor(temp_dir=str(temp_area)), make_artifact(tmp_path, data), destination)

    assert not (destination / "passwd").is_symlink()
    assert (destination / "passwd").read_text() == "/etc/passwd"
    assert not (destination / "up").is_symlink()
    assert (destination / "up").read_text() == "../../outside"


def test_extract_task_cancellation_waits_for_worker_cleanup(tmp_path, temp_area, demo_zip):
    """Test a cancelled extraction returns only after scratch is gone, leaving destination alone."""
    unpacked = threading.Event()
    release = threading.Event()

    class PausingExtractor(ZipArchiveExtractor):
        def _find_wrapper(self, scratch):
            unpacked.set()
            release.wait(5)
            return super()._find_wrapper(scratch)

    extractor = PausingExtractor(temp_dir=str(temp_area))
    artifact = make_artifact(tmp_path, demo_zip)
    destination = tmp_path / "dest"

    async def run():
        task = asyncio.create_task(extractor.extract(artifact, destination))
        while not unpacked.is_set() and not task.done():
            await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.sleep(0.1)
        pending = not task.done()
        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        return pending

    assert asyncio.run(run())
    assert list(temp_area.iterdir()) == []
    assert not destination.exists()
    assert artifact.path.exists()


def test_inspect_content_root(tmp_path):
    """Test counting and rejecting content roots."""
    (tmp_path / "root").mkdir()
    with pytest.raises(ExtractionError):
        inspect_content_root(tmp_path / "root")
    with pytest.raises(ExtractionError):
        inspect_content_root(tmp_path / "missing")

    (tmp_path / "root" / "a.txt").write_text("a")
    (tmp_path / "root" / "b").mkdir()

    assert inspect_content_root(tmp_path / "root") == 2
