"""Attempt storage interface (port) for persisting acquisition outcomes.

The acquisition core never stores attempts itself; callers that keep project
records use an implementation of this port.
"""
from abc import ABC, abstractmethod
from typing import Optional
from acquisition.domain.models import AcquisitionAttempt


class IAttemptStorage(ABC):
    """Abstract interface for acquisition attempt storage."""

    @abstractmethod
    def save_attempt(self, project_key: str, attempt: AcquisitionAttempt) -> None:
        """Record the latest attempt for a project, replacing the previous one.

        Args:
            project_key: Caller-chosen identifier of the project record
            attempt: Terminal attempt returned by the tracker
        """
        pass

    @abstractmethod
    def get_latest_attempt(self, project_key: str) -> Optional[AcquisitionAttempt]:
        """Get the most recently saved attempt, or None."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close any open connections."""
        pass
