"""Scoped-access guard interface (port).

A guard represents permission to write under a filesystem root. Callers create
it; the acquisition pipeline only begins and ends access around its writes.
"""
import logging
from abc import ABC, abstractmethod


logger = logging.getLogger(__name__)


class IScopedAccessGuard(ABC):
    """Abstract permission token with an explicit begin/end discipline."""

    @abstractmethod
    def begin_access(self) -> None:
        """Start accessing the guarded root.

        Raises:
            AccessDeniedError: When the guard is missing, stale or refused
        """
        pass

    @abstractmethod
    def end_access(self) -> None:
        """Stop accessing the guarded root."""
        pass

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True between a successful begin_access() and end_access()."""
        pass


class NoOpAccessGuard(IScopedAccessGuard):
    """Guard for environments without OS-level scoped permissions."""

    def __init__(self):
        self._depth = 0

    def begin_access(self) -> None:
        self._depth += 1

    def end_access(self) -> None:
        if self._depth == 0:
            logger.warning("end_access() called without matching begin_access()")
            return
        self._depth -= 1

    @property
    def is_active(self) -> bool:
        return self._depth > 0
