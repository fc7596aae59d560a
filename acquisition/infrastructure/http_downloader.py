"""HTTP archive downloader streaming repository snapshots to temporary files."""
import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional
import aiohttp
from acquisition.domain.access_guard import IScopedAccessGuard
from acquisition.domain.cancellation import CancellationToken, check_cancelled
from acquisition.domain.downloader_interface import IArchiveDownloader
from acquisition.domain.errors import (
    AccessDeniedError,
    AccessReason,
    DownloadError,
    DownloadReason,
)
from acquisition.domain.models import ArchiveLocation, TemporaryArtifact


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
TEMP_PREFIX = "acquisition-"


class AiohttpArchiveDownloader(IArchiveDownloader):
    """Downloads archives with a single GET over aiohttp.

    Implements the IArchiveDownloader port. There is no retry logic here:
    a failed request is reported once and the caller decides what to do.
    """

    def __init__(
        self,
        temp_dir: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """Initialize downloader.

        Args:
            temp_dir: Directory for temporary artifacts (system default if None)
            headers: Extra request headers, e.g. an Authorization header
            chunk_size: Bytes read per streamed chunk
            session: Externally managed session; not closed by close()
        """
        self._temp_dir = temp_dir
        self._headers = dict(headers or {})
        self._chunk_size = chunk_size
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Create the client session on first use."""
        if self._session is None:
            # No core-imposed timeout; callers bound time via cancellation
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None)
            )
        return self._session

    async def download(
        self,
        location: ArchiveLocation,
        access_guard: IScopedAccessGuard,
        cancel_token: Optional[CancellationToken] = None
    ) -> TemporaryArtifact:
        """Stream the archive at location into a temporary file.

        Args:
            location: Resolved archive location
            access_guard: Guard that must already be active
            cancel_token: Checked before the request and once per chunk

        Returns:
            TemporaryArtifact pointing at the downloaded file
        """
        if not access_guard.is_active:
            raise AccessDeniedError(
                AccessReason.DENIED,
                "folder access was not granted before the download started"
            )
        check_cancelled(cancel_token, "download")

        try:
            if self._temp_dir:
                os.makedirs(self._temp_dir, exist_ok=True)
            fd, raw_path = tempfile.mkstemp(
                prefix=TEMP_PREFIX, suffix=".zip", dir=self._temp_dir
            )
        except OSError as e:
            raise DownloadError(
                DownloadReason.TRANSPORT,
                location.url,
                detail=f"could not create temporary file: {e}"
            ) from e
        path = Path(raw_path)
        size = 0
        finished = False

        logger.info(f"Downloading archive {location.url}")

        try:
            with os.fdopen(fd, "wb") as handle:
                session = await self._get_session()
                async with session.get(location.url, headers=self._headers) as response:
                    if not 200 <= response.status < 300:
                        raise DownloadError.from_status(response.status, location.url)

                    async for chunk in response.content.iter_chunked(self._chunk_size):
                        check_cancelled(cancel_token, "download")
                        handle.write(chunk)
                        size += len(chunk)
            finished = True
        except asyncio.TimeoutError as e:
            raise DownloadError(
                DownloadReason.TIMEOUT, location.url, detail=str(e) or None
            ) from e
        except aiohttp.ClientError as e:
            raise DownloadError(
                DownloadReason.TRANSPORT, location.url, detail=str(e) or type(e).__name__
            ) from e
        except OSError as e:
            raise DownloadError(
                DownloadReason.TRANSPORT,
                location.url,
                detail=f"could not write temporary file: {e}"
            ) from e
        finally:
            if not finished:
                self._remove_partial(path)

        logger.info(f"Downloaded {size} bytes from {location.url} to {path}")
        return TemporaryArtifact(path=path, size_bytes=size, location=location)

    @staticmethod
    def _remove_partial(path: Path) -> None:
        try:
            path.unlink()
            logger.debug(f"Removed partial download {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove partial download {path}: {e}")

    async def close(self) -> None:
        """Close the client session if this downloader opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
