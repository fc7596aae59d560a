"""Cooperative cancellation signal shared between a caller and one acquisition."""
import asyncio

from acquisition.domain.errors import AcquisitionCancelledError


class CancellationToken:
    """Flag the caller sets and the pipeline polls between units of work."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        """Block until cancel() is called."""
        await self._event.wait()

    def raise_if_cancelled(self, phase: str) -> None:
        """Raise AcquisitionCancelledError when cancellation was requested.

        Args:
            phase: Pipeline phase named in the error message
        """
        if self._event.is_set():
            raise AcquisitionCancelledError(phase)


def check_cancelled(token, phase: str) -> None:
    """raise_if_cancelled() that tolerates a missing token."""
    if token is not None:
        token.raise_if_cancelled(phase)
