"""Archive downloader interface (port) for fetching repository snapshots.

Shields the application layer from the HTTP library in use.
"""
from abc import ABC, abstractmethod
from typing import Optional
from acquisition.domain.access_guard import IScopedAccessGuard
from acquisition.domain.cancellation import CancellationToken
from acquisition.domain.models import ArchiveLocation, TemporaryArtifact


class IArchiveDownloader(ABC):
    """Abstract interface for archive downloads."""

    @abstractmethod
    async def download(
        self,
        location: ArchiveLocation,
        access_guard: IScopedAccessGuard,
        cancel_token: Optional[CancellationToken] = None
    ) -> TemporaryArtifact:
        """Fetch the archive into a uniquely named temporary file.

        Args:
            location: Resolved archive location
            access_guard: Guard that must already be active
            cancel_token: Optional cooperative cancellation signal

        Returns:
            TemporaryArtifact owned by the caller

        Raises:
            DownloadError: On HTTP or transport failure
            AccessDeniedError: When the guard is not active
            AcquisitionCancelledError: When cancelled mid-transfer
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        pass
