"""Resolution of repository references into downloadable archive URLs.

Pure functions only: nothing here touches the network or the file system.
"""
from typing import Optional

from yarl import URL

from acquisition.domain.errors import ResolutionError
from acquisition.domain.models import ArchiveLocation, RepositoryReference


DEFAULT_HOST = "github.com"
DEFAULT_REF = "main"
ARCHIVE_PATH_TEMPLATE = "/archive/refs/heads/{ref}.zip"


class ArchiveURLResolver:
    """Turns a repository URL into the URL of its zip snapshot.

    Only the configured default ref is ever tried. Repositories whose primary
    branch has another name must be resolved with an explicit ref.
    """

    def __init__(self, host: str = DEFAULT_HOST, default_ref: str = DEFAULT_REF):
        """Initialize resolver.

        Args:
            host: Host marker a reference must contain
            default_ref: Branch used when no ref is given
        """
        self._host = host
        self._default_ref = default_ref

    @property
    def host(self) -> str:
        return self._host

    def resolve(self, reference: str, ref: Optional[str] = None) -> ArchiveLocation:
        """Resolve a reference to its archive location.

        Args:
            reference: Repository URL (a trailing .git is ignored)
            ref: Branch name, defaults to the resolver's default ref

        Returns:
            ArchiveLocation for the snapshot

        Raises:
            ResolutionError: When the reference or ref is not usable
        """
        repository = RepositoryReference.parse(reference, host=self._host)

        ref = self._default_ref if ref is None else ref
        if not ref or any(ch.isspace() for ch in ref) or ".." in ref:
            raise ResolutionError(reference, f"branch name {ref!r} is not valid")

        archive_url = repository.url + ARCHIVE_PATH_TEMPLATE.format(ref=ref)
        try:
            parsed = URL(archive_url)
        except (ValueError, TypeError) as e:
            raise ResolutionError(reference, f"not a well-formed URL ({e})")

        if not parsed.is_absolute() or parsed.scheme not in ("http", "https") or not parsed.host:
            raise ResolutionError(reference, "not a well-formed http(s) URL")

        return ArchiveLocation(url=str(parsed), reference=repository, ref=ref)


def resolve_archive_url(
    reference: str,
    ref: Optional[str] = None,
    host: str = DEFAULT_HOST
) -> ArchiveLocation:
    """Module-level shortcut for ArchiveURLResolver(host).resolve()."""
    return ArchiveURLResolver(host=host).resolve(reference, ref)
