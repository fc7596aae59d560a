"""PostgreSQL implementation of acquisition attempt persistence."""
import logging
from typing import Optional
import psycopg2
from acquisition.domain.attempt_storage_interface import IAttemptStorage
from acquisition.domain.errors import ErrorKind
from acquisition.domain.models import AcquisitionAttempt, AcquisitionStatus


logger = logging.getLogger(__name__)


class PostgresAttemptStorage(IAttemptStorage):
    """PostgreSQL implementation of attempt storage.

    Keeps one row per project holding its latest attempt, the same shape as
    the clone status fields of a project record.
    """

    UPSERT_QUERY = """
        INSERT INTO acquisition_attempts (
            project_key, destination_path, status, error_kind,
            error_message, started_at, completed_at, updated_at
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP)
        ON CONFLICT (project_key)
        DO UPDATE SET
            destination_path = EXCLUDED.destination_path,
            status = EXCLUDED.status,
            error_kind = EXCLUDED.error_kind,
            error_message = EXCLUDED.error_message,
            started_at = EXCLUDED.started_at,
            completed_at = EXCLUDED.completed_at,
            updated_at = CURRENT_TIMESTAMP
    """

    SELECT_QUERY = """
        SELECT destination_path, status, error_kind, error_message,
               started_at, completed_at
        FROM acquisition_attempts
        WHERE project_key = %s
    """

    def __init__(self, connection_string: str, connection=None):
        """Initialize PostgreSQL connection.

        Args:
            connection_string: PostgreSQL connection string
            connection: Already open DB-API connection to use instead
        """
        self._connection_string = connection_string
        self._conn = connection or psycopg2.connect(connection_string)
        self._conn.autocommit = False
        logger.info("Connected to PostgreSQL database")

    def save_attempt(self, project_key: str, attempt: AcquisitionAttempt) -> None:
        """Upsert the latest attempt for a project.

        Args:
            project_key: Project identifier
            attempt: Attempt to record
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                self.UPSERT_QUERY,
                (
                    project_key,
                    attempt.destination_path,
                    attempt.status.value,
                    attempt.error_kind.value if attempt.error_kind else None,
                    attempt.error_message,
                    attempt.started_at,
                    attempt.completed_at
                )
            )
            self._conn.commit()
            logger.info(f"Saved {attempt.status.value} attempt for project {project_key}")

        except Exception as e:
            self._conn.rollback()
            logger.error(f"Error saving attempt for project {project_key}: {e}")
            raise
        finally:
            cursor.close()

    def get_latest_attempt(self, project_key: str) -> Optional[AcquisitionAttempt]:
        """Get the stored attempt for a project.

        Returns:
            AcquisitionAttempt, or None when the project has none
        """
        cursor = self._conn.cursor()
        try:
            cursor.execute(self.SELECT_QUERY, (project_key,))
            row = cursor.fetchone()
            if row is None:
                return None
            destination_path, status, error_kind, error_message, started_at, completed_at = row
            return AcquisitionAttempt(
                destination_path=destination_path,
                status=AcquisitionStatus(status),
                error_message=error_message,
                error_kind=ErrorKind(error_kind) if error_kind else None,
                started_at=started_at,
                completed_at=completed_at
            )
        finally:
            cursor.close()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            logger.info("Closed PostgreSQL connection")
