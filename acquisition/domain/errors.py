"""Error taxonomy for repository archive acquisition.

Every failure the core can report is an AcquisitionError carrying an ErrorKind.
The string form of each error is a complete sentence naming the phase that
failed, so callers can show it to the user unchanged.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Coarse classification used by callers to decide on retries."""
    REFERENCE_INVALID = "reference_invalid"
    NETWORK = "network"
    EXTRACTION = "extraction"
    ACCESS_DENIED = "access_denied"
    BUSY = "busy"
    CANCELLED = "cancelled"


RETRYABLE_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.BUSY})


class AcquisitionError(Exception):
    """Base class for all classified acquisition failures."""

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def retryable(self) -> bool:
        """Whether retrying without user intervention can succeed."""
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        return self.message


class ResolutionError(AcquisitionError):
    """Repository reference is empty, malformed or not on the supported host."""

    kind = ErrorKind.REFERENCE_INVALID

    def __init__(self, reference: str, detail: str):
        super().__init__(
            f"Invalid repository reference {reference!r}: {detail}. "
            f"Please check the URL format."
        )
        self.reference = reference
        self.detail = detail


class DownloadReason(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"


class DownloadError(AcquisitionError):
    """Archive could not be fetched from the remote host."""

    kind = ErrorKind.NETWORK

    def __init__(
        self,
        reason: DownloadReason,
        url: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None
    ):
        self.reason = reason
        self.url = url
        self.status_code = status_code
        self.detail = detail
        super().__init__(self._render())

    @classmethod
    def from_status(cls, status_code: int, url: str) -> 'DownloadError':
        """Classify a non-2xx HTTP status."""
        if status_code == 404:
            reason = DownloadReason.NOT_FOUND
        elif status_code in (401, 403):
            reason = DownloadReason.FORBIDDEN
        elif 400 <= status_code < 500:
            reason = DownloadReason.CLIENT_ERROR
        else:
            reason = DownloadReason.SERVER_ERROR
        return cls(reason, url, status_code=status_code)

    def _render(self) -> str:
        if self.reason is DownloadReason.NOT_FOUND:
            what = f"repository not found (HTTP {self.status_code})"
        elif self.reason is DownloadReason.FORBIDDEN:
            what = (
                f"access denied by the server (HTTP {self.status_code}); "
                f"the repository may be private and require a token"
            )
        elif self.reason is DownloadReason.CLIENT_ERROR:
            what = f"request rejected by the server (HTTP {self.status_code})"
        elif self.reason is DownloadReason.SERVER_ERROR:
            what = f"server error (HTTP {self.status_code})"
        elif self.reason is DownloadReason.TIMEOUT:
            what = "network timeout"
        else:
            what = "network error"
        message = f"Download failed: {what} at {self.url}"
        if self.detail:
            message += f" ({self.detail})"
        return message


class ExtractionReason(str, Enum):
    CORRUPT_ARCHIVE = "corrupt_archive"
    UNEXPECTED_LAYOUT = "unexpected_layout"
    FILESYSTEM = "filesystem"


class ExtractionError(AcquisitionError):
    """Archive could not be unpacked into the destination."""

    kind = ErrorKind.EXTRACTION

    def __init__(self, reason: ExtractionReason, detail: str):
        prefixes = {
            ExtractionReason.CORRUPT_ARCHIVE: "archive is corrupt or unreadable",
            ExtractionReason.UNEXPECTED_LAYOUT: "archive layout is unexpected",
            ExtractionReason.FILESYSTEM: "file system error",
        }
        super().__init__(f"Extraction failed: {prefixes[reason]}: {detail}")
        self.reason = reason
        self.detail = detail


class AccessReason(str, Enum):
    MISSING = "missing"
    STALE = "stale"
    DENIED = "denied"


class AccessDeniedError(AcquisitionError):
    """Scoped access to the destination could not be established."""

    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, reason: AccessReason, detail: str):
        super().__init__(f"Folder access failed: {detail}")
        self.reason = reason
        self.detail = detail


class AcquisitionBusyError(AcquisitionError):
    """Another acquisition already targets the same destination."""

    kind = ErrorKind.BUSY

    def __init__(self, destination: str):
        super().__init__(
            f"Acquisition rejected: another download into {destination} "
            f"is already in progress"
        )
        self.destination = destination


class AcquisitionCancelledError(AcquisitionError):
    """Caller requested cancellation."""

    kind = ErrorKind.CANCELLED

    def __init__(self, phase: str):
        super().__init__(f"Acquisition cancelled during {phase}")
        self.phase = phase


class InvalidTransitionError(Exception):
    """Raised on an illegal AcquisitionAttempt state transition."""
    pass
