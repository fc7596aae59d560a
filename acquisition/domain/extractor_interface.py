"""Archive extractor interface (port) for materializing snapshots on disk."""
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from acquisition.domain.cancellation import CancellationToken
from acquisition.domain.models import TemporaryArtifact


class IArchiveExtractor(ABC):
    """Abstract interface for archive extraction."""

    @abstractmethod
    async def extract(
        self,
        artifact: TemporaryArtifact,
        destination: Path,
        cancel_token: Optional[CancellationToken] = None
    ) -> Path:
        """Unpack the artifact so destination mirrors the repository root.

        Existing direct children of destination are removed first, making
        repeated extraction into the same place idempotent.

        Args:
            artifact: Downloaded archive
            destination: Directory that becomes the content root
            cancel_token: Optional cooperative cancellation signal

        Returns:
            Path of the extracted content root

        Raises:
            ExtractionError: On corrupt archive, unexpected layout or I/O failure
            AcquisitionCancelledError: When cancelled before destination is touched
        """
        pass
