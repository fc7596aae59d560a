"""Acquisition service orchestrating resolve, download and extract."""
import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Set, Union
from acquisition.domain.access_guard import IScopedAccessGuard
from acquisition.domain.cancellation import CancellationToken, check_cancelled
from acquisition.domain.downloader_interface import IArchiveDownloader
from acquisition.domain.errors import (
    AccessDeniedError,
    AccessReason,
    AcquisitionBusyError,
    AcquisitionError,
)
from acquisition.domain.extractor_interface import IArchiveExtractor
from acquisition.domain.models import AcquisitionAttempt, AcquisitionResult
from acquisition.domain.resolver import ArchiveURLResolver


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_FOLDER = "githubcontent"

StatusListener = Callable[[AcquisitionAttempt], None]


def content_root_for(
    destination_root: Union[str, Path],
    folder_name: str = DEFAULT_CONTENT_FOLDER
) -> Path:
    """Conventional content root under a user-selected folder."""
    return Path(destination_root) / folder_name


class AcquisitionStatusTracker:
    """Application service for acquiring repository archives.

    Runs one attempt per acquire() call through
    not_started -> in_progress -> completed | failed and hands back the
    terminal attempt. Attempts are never kept between calls; the only state
    held here is the set of destinations with an acquisition in flight.
    """

    def __init__(
        self,
        resolver: ArchiveURLResolver,
        downloader: IArchiveDownloader,
        extractor: IArchiveExtractor,
        status_listener: Optional[StatusListener] = None
    ):
        """Initialize tracker.

        Args:
            resolver: Reference to archive URL resolver
            downloader: Archive downloader implementation
            extractor: Archive extractor implementation
            status_listener: Called with the attempt after every transition
        """
        self._resolver = resolver
        self._downloader = downloader
        self._extractor = extractor
        self._status_listener = status_listener
        self._in_flight: Set[str] = set()

    @staticmethod
    def _destination_key(destination: Union[str, Path]) -> str:
        return os.path.normcase(os.path.abspath(os.fspath(destination)))

    def is_busy(self, destination: Union[str, Path]) -> bool:
        """Whether an acquisition into destination is in progress."""
        return self._destination_key(destination) in self._in_flight

    async def acquire(
        self,
        reference: str,
        destination: Union[str, Path],
        access_guard: IScopedAccessGuard,
        cancel_token: Optional[CancellationToken] = None,
        ref: Optional[str] = None
    ) -> AcquisitionResult:
        """Acquire a repository snapshot into destination.

        Args:
            reference: Repository URL
            destination: Directory that becomes the content root
            access_guard: Guard protecting the destination's root folder
            cancel_token: Optional cooperative cancellation signal
            ref: Branch to fetch instead of the resolver's default

        Returns:
            AcquisitionResult holding a completed or failed attempt

        Raises:
            AcquisitionBusyError: When destination already has an acquisition
                in progress; no attempt is created
        """
        destination = Path(destination)
        key = self._destination_key(destination)

        if key in self._in_flight:
            logger.warning(f"Rejected acquisition into {destination}: already in progress")
            raise AcquisitionBusyError(str(destination))

        self._in_flight.add(key)
        try:
            return await self._run_attempt(
                reference, destination, access_guard, cancel_token, ref
            )
        finally:
            self._in_flight.discard(key)

    async def _run_attempt(
        self,
        reference: str,
        destination: Path,
        access_guard: IScopedAccessGuard,
        cancel_token: Optional[CancellationToken],
        ref: Optional[str]
    ) -> AcquisitionResult:
        attempt = AcquisitionAttempt(destination_path=str(destination))
        attempt = self._publish(attempt.start())

        logger.info(f"Starting acquisition of {reference!r} into {destination}")

        try:
            content_root = await self._execute_phases(
                reference, destination, access_guard, cancel_token, ref
            )
        except AcquisitionError as e:
            logger.error(f"Acquisition of {reference!r} failed ({e.kind.value}): {e}")
            attempt = self._publish(attempt.fail(e))
            return AcquisitionResult(attempt=attempt)
        except asyncio.CancelledError:
            logger.warning(f"Acquisition task for {reference!r} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Unexpected error acquiring {reference!r}: {e}", exc_info=True)
            raise

        attempt = self._publish(attempt.complete())
        logger.info(f"Acquisition of {reference!r} completed into {content_root}")
        return AcquisitionResult(attempt=attempt, content_root=content_root)

    async def _execute_phases(
        self,
        reference: str,
        destination: Path,
        access_guard: IScopedAccessGuard,
        cancel_token: Optional[CancellationToken],
        ref: Optional[str]
    ) -> Path:
        """Resolve, then download and extract under guarded access."""
        location = self._resolver.resolve(reference, ref)
        logger.info(f"Resolved {reference!r} to {location.url}")
        check_cancelled(cancel_token, "resolution")

        self._begin_access(access_guard)
        artifact = None
        try:
            artifact = await self._downloader.download(location, access_guard, cancel_token)
            check_cancelled(cancel_token, "download")
            return await self._extractor.extract(artifact, destination, cancel_token)
        finally:
            if artifact is not None:
                artifact.discard()
            self._end_access(access_guard)

    @staticmethod
    def _begin_access(access_guard: IScopedAccessGuard) -> None:
        try:
            access_guard.begin_access()
        except AcquisitionError:
            raise
        except Exception as e:
            raise AccessDeniedError(AccessReason.DENIED, f"security access error: {e}") from e

    @staticmethod
    def _end_access(access_guard: IScopedAccessGuard) -> None:
        # Never replaces the outcome of the phases it closes
        try:
            access_guard.end_access()
        except Exception as e:
            logger.error(f"Failed to end folder access: {e}", exc_info=True)

    def _publish(self, attempt: AcquisitionAttempt) -> AcquisitionAttempt:
        logger.debug(f"Attempt for {attempt.destination_path} is now {attempt.status.value}")
        if self._status_listener is not None:
            self._status_listener(attempt)
        return attempt
