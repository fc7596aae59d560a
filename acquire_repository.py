"""Main entry point for acquiring a repository snapshot.

Downloads the repository's archive and extracts it into
{dest}/githubcontent using the acquisition service.
"""
import argparse
import asyncio
import sys
import logging
from dotenv import load_dotenv
from acquisition.application.acquisition_service import (
    AcquisitionStatusTracker,
    content_root_for,
)
from acquisition.application.retry import acquire_with_retry
from acquisition.config import AcquisitionSettings, get_connection_string
from acquisition.domain.models import AcquisitionAttempt
from acquisition.domain.resolver import ArchiveURLResolver
from acquisition.infrastructure.directory_guard import DirectoryAccessGuard
from acquisition.infrastructure.http_downloader import AiohttpArchiveDownloader
from acquisition.infrastructure.postgres_attempt_storage import PostgresAttemptStorage
from acquisition.infrastructure.zip_extractor import ZipArchiveExtractor, inspect_content_root

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download a repository archive and extract it locally.")
    parser.add_argument("repository", help="Repository URL, e.g. https://github.com/owner/name")
    parser.add_argument("--dest", default=".", help="Folder under which the content folder is created")
    parser.add_argument("--ref", default=None, help="Branch to download (default: DEFAULT_BRANCH or main)")
    parser.add_argument("--attempts", type=int, default=None,
                        help="Total attempts, counting the first one (default: ACQUIRE_ATTEMPTS or 1)")
    parser.add_argument("--project", default=None, help="Project key used when recording attempts")
    return parser.parse_args(argv)


def log_status(attempt: AcquisitionAttempt) -> None:
    logger.info(f"Status: {attempt.status.value}")


async def main(argv=None) -> int:
    """Execute the acquisition."""
    args = parse_args(argv)
    settings = AcquisitionSettings.from_env()
    attempts = args.attempts if args.attempts is not None else settings.attempts

    destination = content_root_for(args.dest, settings.content_folder_name)

    # Initialize infrastructure components
    resolver = ArchiveURLResolver(host=settings.github_host, default_ref=settings.default_branch)
    downloader = AiohttpArchiveDownloader(
        temp_dir=settings.temp_dir,
        headers=settings.request_headers(),
        chunk_size=settings.chunk_size
    )
    extractor = ZipArchiveExtractor(temp_dir=settings.temp_dir)
    guard = DirectoryAccessGuard(args.dest)

    # Initialize application service
    tracker = AcquisitionStatusTracker(
        resolver=resolver,
        downloader=downloader,
        extractor=extractor,
        status_listener=log_status
    )

    try:
        result = await acquire_with_retry(
            tracker,
            args.repository,
            destination,
            guard,
            attempts=max(attempts, 1),
            ref=args.ref
        )
    finally:
        await downloader.close()

    if settings.record_attempts:
        record_attempt(args.project or args.repository, result.attempt)

    if not result.succeeded:
        logger.error(result.attempt.error_message)
        return 1

    item_count = inspect_content_root(result.content_root)
    logger.info("=" * 50)
    logger.info(f"Repository downloaded successfully to {result.content_root}")
    logger.info(f"  Top-level entries: {item_count}")
    logger.info(f"  Completed at: {result.attempt.completed_at.isoformat()}")
    logger.info("=" * 50)
    return 0


def record_attempt(project_key: str, attempt: AcquisitionAttempt) -> None:
    """Persist the attempt; requires the schema from setup_postgres.py."""
    storage = PostgresAttemptStorage(get_connection_string())
    try:
        storage.save_attempt(project_key, attempt)
    finally:
        storage.close()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except Exception as e:
        logger.error(f"Acquisition failed: {e}", exc_info=True)
        sys.exit(1)
