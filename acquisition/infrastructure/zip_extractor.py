"""Zip archive extractor that strips the host's wrapper folder."""
import asyncio
import logging
import os
import shutil
import stat
import tempfile
import threading
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Optional
from acquisition.domain.cancellation import CancellationToken, check_cancelled
from acquisition.domain.errors import (
    AcquisitionCancelledError,
    ExtractionError,
    ExtractionReason,
)
from acquisition.domain.extractor_interface import IArchiveExtractor
from acquisition.domain.models import TemporaryArtifact


logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "acquisition-extract-"
IGNORED_TOP_LEVEL = frozenset({"__MACOSX"})


class ZipArchiveExtractor(IArchiveExtractor):
    """Unpacks zip snapshots into a destination directory.

    Snapshots from code hosts wrap the repository root in a single folder
    named {repo}-{ref}. The extractor requires exactly that layout and moves
    the folder's children into the destination, replacing whatever the
    destination held before.
    """

    def __init__(self, temp_dir: Optional[str] = None):
        """Initialize extractor.

        Args:
            temp_dir: Parent for scratch directories (system default if None)
        """
        self._temp_dir = temp_dir

    async def extract(
        self,
        artifact: TemporaryArtifact,
        destination: Path,
        cancel_token: Optional[CancellationToken] = None
    ) -> Path:
        """Extract artifact into destination without blocking the event loop.

        If the calling task is cancelled while the worker thread runs, the
        thread is told to stop before it touches destination and this
        coroutine waits for it to finish cleaning up before re-raising.
        """
        check_cancelled(cancel_token, "extraction")
        abandoned = threading.Event()
        worker = asyncio.ensure_future(asyncio.to_thread(
            self._extract_sync, Path(artifact.path), Path(destination), cancel_token, abandoned
        ))
        try:
            return await asyncio.shield(worker)
        except asyncio.CancelledError:
            abandoned.set()
            await self._wait_for_worker(worker)
            raise

    @staticmethod
    async def _wait_for_worker(worker: "asyncio.Future[Path]") -> None:
        """Wait until a cancelled extraction's thread has stopped."""
        while not worker.done():
            try:
                await asyncio.shield(worker)
            except asyncio.CancelledError:
                continue
            except Exception:
                break
        if not worker.cancelled() and worker.exception() is not None:
            logger.debug(f"Abandoned extraction stopped with: {worker.exception()}")

    def _extract_sync(
        self,
        archive_path: Path,
        destination: Path,
        cancel_token: Optional[CancellationToken],
        abandoned: Optional[threading.Event] = None
    ) -> Path:
        try:
            scratch = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=self._temp_dir))
        except OSError as e:
            raise ExtractionError(
                ExtractionReason.FILESYSTEM, f"could not create scratch directory: {e}"
            ) from e

        try:
            self._unpack(archive_path, scratch)
            wrapper = self._find_wrapper(scratch)
            check_cancelled(cancel_token, "extraction")
            if abandoned is not None and abandoned.is_set():
                raise AcquisitionCancelledError("extraction")
            self._replace_contents(wrapper, destination)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)
            if scratch.exists():
                logger.error(f"Scratch directory {scratch} could not be removed")

        logger.info(f"Extracted {archive_path.name} into {destination}")
        return destination

    def _unpack(self, archive_path: Path, scratch: Path) -> None:
        """Fully unpack the archive into scratch, keeping modes and symlinks."""
        try:
            with zipfile.ZipFile(archive_path) as archive:
                members = archive.infolist()
                for info in members:
                    _check_member_name(info.filename)

                links = []
                for info in members:
                    mode = info.external_attr >> 16
                    if stat.S_ISLNK(mode):
                        links.append(info)
                        continue
                    extracted = archive.extract(info, scratch)
                    permissions = stat.S_IMODE(mode) & 0o777
                    if permissions and not info.is_dir():
                        os.chmod(extracted, permissions)

                # Links last so no member is written through one
                for info in links:
                    self._unpack_symlink(archive, info, scratch)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as e:
            raise ExtractionError(ExtractionReason.CORRUPT_ARCHIVE, str(e)) from e
        except (NotImplementedError, RuntimeError) as e:
            # Unsupported compression method or encrypted members
            raise ExtractionError(ExtractionReason.CORRUPT_ARCHIVE, str(e)) from e
        except OSError as e:
            raise ExtractionError(
                ExtractionReason.FILESYSTEM, f"could not unpack archive: {e}"
            ) from e

    def _unpack_symlink(
        self,
        archive: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        scratch: Path
    ) -> None:
        """Recreate a symlink member whose target stays inside its top-level folder.

        Links pointing elsewhere are written as plain files holding the
        target text, which is what unzip tools without link support do.
        """
        target = archive.read(info).decode("utf-8", errors="surrogateescape")
        member = PurePosixPath(info.filename.replace("\\", "/"))
        link = scratch.joinpath(*member.parts)
        top = os.path.normpath(scratch / member.parts[0])
        resolved = os.path.normpath(os.path.join(os.path.dirname(link), target))

        link.parent.mkdir(parents=True, exist_ok=True)
        if link.exists() or link.is_symlink():
            _remove_entry(link)

        if os.path.isabs(target) or os.path.commonpath([top, resolved]) != top:
            logger.warning(f"Symlink {info.filename} points outside the archive; kept as a file")
            link.write_text(target, encoding="utf-8", errors="surrogateescape")
            return
        os.symlink(target, link)

    def _find_wrapper(self, scratch: Path) -> Path:
        """Return the single top-level folder, refusing to guess otherwise."""
        entries = sorted(
            (entry for entry in scratch.iterdir() if entry.name not in IGNORED_TOP_LEVEL),
            key=lambda entry: entry.name
        )
        folders = [entry for entry in entries if entry.is_dir()]

        if not folders:
            raise ExtractionError(
                ExtractionReason.UNEXPECTED_LAYOUT, "archive had no top-level folder"
            )
        if len(entries) > 1:
            names = ", ".join(entry.name for entry in entries)
            raise ExtractionError(
                ExtractionReason.UNEXPECTED_LAYOUT,
                f"expected a single top-level folder but found {len(entries)} entries ({names})"
            )
        return folders[0]

    def _replace_contents(self, wrapper: Path, destination: Path) -> None:
        """Clear destination's children and move the wrapper's children in."""
        try:
            if destination.exists() or destination.is_symlink():
                if not destination.is_dir():
                    raise ExtractionError(
                        ExtractionReason.FILESYSTEM,
                        f"destination {destination} exists and is not a directory"
                    )
                for child in list(destination.iterdir()):
                    _remove_entry(child)
            else:
                destination.mkdir(parents=True)

            for item in sorted(wrapper.iterdir(), key=lambda entry: entry.name):
                shutil.move(str(item), str(destination / item.name))
        except OSError as e:
            raise ExtractionError(ExtractionReason.FILESYSTEM, str(e)) from e


def _check_member_name(name: str) -> None:
    """Reject archive members that would escape the scratch directory."""
    normalized = name.replace("\\", "/")
    path = PurePosixPath(normalized)
    if normalized.startswith("/") or path.is_absolute():
        raise ExtractionError(
            ExtractionReason.CORRUPT_ARCHIVE, f"absolute member path {name!r}"
        )
    if ".." in path.parts:
        raise ExtractionError(
            ExtractionReason.CORRUPT_ARCHIVE, f"member path escapes archive root {name!r}"
        )


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def list_content_root(path: Path) -> List[str]:
    """Sorted names of the direct children of an extracted content root."""
    return sorted(child.name for child in Path(path).iterdir())


def inspect_content_root(path: Path) -> int:
    """Check that a content root exists and holds something.

    Returns:
        Number of direct children

    Raises:
        ExtractionError: When the root is missing, not a directory or empty
    """
    path = Path(path)
    if not path.exists():
        raise ExtractionError(ExtractionReason.FILESYSTEM, f"{path} does not exist")
    if not path.is_dir():
        raise ExtractionError(ExtractionReason.FILESYSTEM, f"{path} is not a directory")
    try:
        count = len(list_content_root(path))
    except OSError as e:
        raise ExtractionError(
            ExtractionReason.FILESYSTEM, f"failed to read {path}: {e}"
        ) from e
    if count == 0:
        raise ExtractionError(ExtractionReason.FILESYSTEM, f"{path} is empty")
    return count
