# ==============================================================================
# Database Utilities
# ==============================================================================
"""
Schema bootstrap for the kaunta event store.

Renders schema/init.sql (a Jinja2 template parameterized by schema name) and
applies it. Includes retry logic with exponential backoff for network
resilience.
"""

import logging
from pathlib import Path

import psycopg2
from jinja2 import Template

from kaunta.utils.config import Settings, get_settings
from kaunta.utils.paths import get_init_sql_path
from kaunta.utils.retry import POSTGRES_RETRY_EXCEPTIONS, retry_standard

logger = logging.getLogger(__name__)


def get_schema_file() -> Path | None:
    """Get the schema init.sql path, or None if not found."""
    path = get_init_sql_path()
    if path.exists():
        return path
    # Fallback to current directory
    cwd_path = Path.cwd() / "schema" / "init.sql"
    if cwd_path.exists():
        return cwd_path
    return None


def render_schema_sql(schema_name: str) -> str:
    """Render the schema SQL template with the given schema name."""
    schema_file = get_schema_file()
    if not schema_file:
        raise RuntimeError(
            "Schema file (schema/init.sql) not found. "
            "Make sure you're running from the project root."
        )

    template = Template(schema_file.read_text())
    return template.render(schema_name=schema_name)


@retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
def check_schema_exists(settings: Settings | None = None) -> bool:
    """
    Check if the event store tables exist.

    Retries on connection errors with exponential backoff (10 attempts, ~60 seconds).
    """
    settings = settings or get_settings()
    schema_name = settings.postgres.schema_name
    with psycopg2.connect(settings.postgres.connection_string, connect_timeout=5) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = %s
                    AND table_name = 'website_event'
                )
                """,
                (schema_name,),
            )
            result = cur.fetchone()
    conn.close()
    return result[0] if result else False


@retry_standard(POSTGRES_RETRY_EXCEPTIONS, logger)
def ensure_schema(settings: Settings | None = None) -> bool:
    """
    Ensure the database schema exists, initializing it if needed.

    This function is idempotent and safe to call multiple times.

    Retries on connection errors with exponential backoff (10 attempts, ~60 seconds).

    Returns:
        True if the schema was created, False if it already existed

    Raises:
        RuntimeError: If schema file not found or initialization fails
    """
    settings = settings or get_settings()
    if check_schema_exists(settings):
        return False

    schema_name = settings.postgres.schema_name
    logger.info("Initializing database schema '%s'...", schema_name)

    schema_sql = render_schema_sql(schema_name)
    try:
        conn = psycopg2.connect(settings.postgres.connection_string)
        try:
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()
        finally:
            conn.close()
    except POSTGRES_RETRY_EXCEPTIONS:
        raise
    except psycopg2.Error as e:
        raise RuntimeError(f"Failed to initialize schema: {e}") from e

    logger.info("Database schema '%s' initialized.", schema_name)
    return True


def reset_schema(settings: Settings | None = None) -> None:
    """
    Drop and recreate the database schema.

    WARNING: This deletes all data in the schema!
    """
    settings = settings or get_settings()
    schema_name = settings.postgres.schema_name

    schema_sql = render_schema_sql(schema_name)
    try:
        conn = psycopg2.connect(settings.postgres.connection_string)
        try:
            with conn.cursor() as cur:
                # Drop schema with all objects
                cur.execute(f"DROP SCHEMA IF EXISTS {schema_name} CASCADE")
                # Run the full init (which creates the schema)
                cur.execute(schema_sql)
            conn.commit()
        finally:
            conn.close()
    except psycopg2.Error as e:
        raise RuntimeError(f"Failed to reset schema: {e}") from e

    logger.info("Database schema '%s' reset.", schema_name)
