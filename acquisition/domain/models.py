"""Domain models representing the acquisition of a repository archive."""
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from acquisition.domain.errors import (
    AcquisitionError,
    ErrorKind,
    InvalidTransitionError,
    ResolutionError,
    RETRYABLE_KINDS,
)


logger = logging.getLogger(__name__)

GIT_SUFFIX = ".git"


@dataclass(frozen=True)
class RepositoryReference:
    """Immutable, validated reference to a hosted repository.

    Use parse() to build one; it rejects anything that does not carry the
    supported host's marker.
    """
    url: str
    host: str
    owner: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def parse(cls, raw: Optional[str], host: str = "github.com") -> 'RepositoryReference':
        """Validate and normalize a raw repository string.

        Args:
            raw: Repository URL as typed by the user
            host: Host marker that must be present in the URL

        Raises:
            ResolutionError: When the reference is empty or not on the host
        """
        if raw is None or not raw.strip():
            raise ResolutionError(raw or "", "reference is empty")

        clean = raw.strip().rstrip("/")
        if clean.endswith(GIT_SUFFIX):
            clean = clean[:-len(GIT_SUFFIX)].rstrip("/")

        if host not in clean:
            raise ResolutionError(raw, f"only {host} repositories are supported")

        tail = clean.split(host, 1)[1].strip("/")
        segments = [segment for segment in tail.split("/") if segment]
        owner = segments[-2] if len(segments) >= 2 else None
        name = segments[-1] if segments else None

        return cls(url=clean, host=host, owner=owner, name=name)

    @property
    def full_name(self) -> str:
        """Returns owner/name when both are known, else the URL."""
        if self.owner and self.name:
            return f"{self.owner}/{self.name}"
        return self.url


@dataclass(frozen=True)
class ArchiveLocation:
    """Fetchable archive URL derived from a reference and a ref."""
    url: str
    reference: RepositoryReference
    ref: str

    @property
    def wrapper_folder_name(self) -> Optional[str]:
        """Name of the folder the host wraps archive content in."""
        if not self.reference.name:
            return None
        return f"{self.reference.name}-{self.ref}"


@dataclass(frozen=True)
class TemporaryArtifact:
    """Downloaded archive sitting in temporary storage."""
    path: Path
    size_bytes: int
    location: ArchiveLocation

    def discard(self) -> None:
        """Delete the file. Safe to call more than once."""
        try:
            os.remove(self.path)
            logger.debug(f"Removed temporary artifact {self.path}")
        except FileNotFoundError:
            pass


class AcquisitionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AcquisitionStatus.COMPLETED, AcquisitionStatus.FAILED)


@dataclass(frozen=True)
class AcquisitionAttempt:
    """One run of the resolve/download/extract pipeline.

    Transitions return new instances; an attempt handed to a caller never
    changes afterwards.
    """
    destination_path: str
    status: AcquisitionStatus = AcquisitionStatus.NOT_STARTED
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def start(self, at: Optional[datetime] = None) -> 'AcquisitionAttempt':
        """NotStarted -> InProgress."""
        self._require(AcquisitionStatus.NOT_STARTED, AcquisitionStatus.IN_PROGRESS)
        return replace(
            self,
            status=AcquisitionStatus.IN_PROGRESS,
            started_at=at or datetime.now(timezone.utc)
        )

    def complete(self, at: Optional[datetime] = None) -> 'AcquisitionAttempt':
        """InProgress -> Completed; clears any error."""
        self._require(AcquisitionStatus.IN_PROGRESS, AcquisitionStatus.COMPLETED)
        return replace(
            self,
            status=AcquisitionStatus.COMPLETED,
            completed_at=at or datetime.now(timezone.utc),
            error_message=None,
            error_kind=None
        )

    def fail(self, error: AcquisitionError) -> 'AcquisitionAttempt':
        """InProgress -> Failed, keeping the error's own message."""
        self._require(AcquisitionStatus.IN_PROGRESS, AcquisitionStatus.FAILED)
        return replace(
            self,
            status=AcquisitionStatus.FAILED,
            error_message=str(error),
            error_kind=error.kind,
            completed_at=None
        )

    def _require(self, expected: AcquisitionStatus, target: AcquisitionStatus) -> None:
        if self.status is not expected:
            raise InvalidTransitionError(
                f"Cannot move attempt from {self.status.value} to {target.value}"
            )


@dataclass(frozen=True)
class AcquisitionResult:
    """Terminal attempt plus the extracted content root on success."""
    attempt: AcquisitionAttempt
    content_root: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return self.attempt.status is AcquisitionStatus.COMPLETED

    @property
    def retryable(self) -> bool:
        return (
            self.attempt.status is AcquisitionStatus.FAILED
            and self.attempt.error_kind in RETRYABLE_KINDS
        )
