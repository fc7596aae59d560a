"""Filesystem-backed scoped-access guard."""
import logging
import os
from pathlib import Path
from typing import Optional
from acquisition.domain.access_guard import IScopedAccessGuard
from acquisition.domain.errors import AccessDeniedError, AccessReason


logger = logging.getLogger(__name__)


class DirectoryAccessGuard(IScopedAccessGuard):
    """Grants access to a user-selected root folder while it stays usable.

    A root that was never configured is reported as missing, one that has
    disappeared since it was chosen as stale, and one the process cannot
    write to as denied. Each case asks the user to reconfigure the folder.
    """

    def __init__(self, root: Optional[str]):
        """Initialize guard.

        Args:
            root: Folder the user selected, or None if never configured
        """
        self._root = Path(root) if root else None
        self._active = False

    @property
    def root(self) -> Optional[Path]:
        return self._root

    def begin_access(self) -> None:
        if self._root is None:
            raise AccessDeniedError(
                AccessReason.MISSING,
                "no folder has been selected. Please reconfigure the local folder."
            )
        if not self._root.is_dir():
            raise AccessDeniedError(
                AccessReason.STALE,
                f"folder access for {self._root} has expired. "
                f"Please reconfigure the local folder."
            )
        if not os.access(self._root, os.W_OK | os.X_OK):
            raise AccessDeniedError(
                AccessReason.DENIED,
                f"failed to access {self._root}. Please reconfigure the local folder."
            )
        self._active = True
        logger.debug(f"Began access to {self._root}")

    def end_access(self) -> None:
        if not self._active:
            logger.warning(f"end_access() on inactive guard for {self._root}")
            return
        self._active = False
        logger.debug(f"Ended access to {self._root}")

    @property
    def is_active(self) -> bool:
        return self._active
