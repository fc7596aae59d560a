"""Database initialization script.

Creates the table callers use to record the latest acquisition attempt of
each project.
"""
import sys
import psycopg2
import logging
from dotenv import load_dotenv
from acquisition.config import get_connection_string

# Load environment variables from .env or env file
load_dotenv('.env') or load_dotenv('env')


logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def create_schema(conn) -> None:
    """Create database schema.

    Schema design considerations:
    - one row per project, keyed on project_key, holding its latest attempt
    - status mirrors AcquisitionStatus values
    - error_kind and error_message are only set for failed attempts
    - completed_at is only set for completed attempts
    """
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS acquisition_attempts (
                id SERIAL PRIMARY KEY,
                project_key VARCHAR(1024) NOT NULL,
                destination_path TEXT NOT NULL,
                status VARCHAR(32) NOT NULL,
                error_kind VARCHAR(32),
                error_message TEXT,
                started_at TIMESTAMPTZ,
                completed_at TIMESTAMPTZ,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                CONSTRAINT acquisition_attempts_project_unique UNIQUE (project_key),
                CONSTRAINT acquisition_attempts_status_check
                    CHECK (status IN ('not_started', 'in_progress', 'completed', 'failed'))
            )
        """)

        # Index for listing projects by state
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_acquisition_attempts_status
            ON acquisition_attempts(status)
        """)

        conn.commit()
        logger.info("Database schema created successfully")

    except Exception as e:
        conn.rollback()
        logger.error(f"Error creating schema: {e}")
        raise
    finally:
        cursor.close()


def main():
    """Initialize the database."""
    try:
        conn_string = get_connection_string()
        logger.info("Connecting to database...")

        conn = psycopg2.connect(conn_string)
        conn.autocommit = False

        create_schema(conn)

        conn.close()
        logger.info("Database initialization completed successfully")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
