# ==============================================================================
# Database Commands
# ==============================================================================
"""
Schema management commands for the kaunta CLI.
"""

from typing import Annotated

import typer

from kaunta.cli.shared import C, check_db_connection, print_error, print_success
from kaunta.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def db_init() -> None:
    """Create the kaunta schema and tables if they do not exist.

    Safe to run repeatedly; an existing schema is left untouched.

    Examples:
        kaunta db init
    """
    from kaunta.utils.db import ensure_schema

    settings = get_settings()
    schema = settings.postgres.schema_name

    print()
    if not check_db_connection():
        print_error("Cannot connect to PostgreSQL")
        raise typer.Exit(1)

    try:
        created = ensure_schema(settings)
    except Exception as e:
        print_error(f"Failed to initialize schema: {e}")
        raise typer.Exit(1)

    if created:
        print_success(f"Schema '{C.WHITE}{schema}{C.BRIGHT_GREEN}' created")
    else:
        print_success(f"Schema '{C.WHITE}{schema}{C.BRIGHT_GREEN}' already exists")
    print()


def db_reset(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Drop and recreate the kaunta schema.

    WARNING: deletes every website, session and event.

    Examples:
        kaunta db reset       # With confirmation prompt
        kaunta db reset -y    # Skip confirmation
    """
    from kaunta.utils.db import reset_schema

    settings = get_settings()
    schema = settings.postgres.schema_name

    print()
    if not confirm:
        typer.confirm(
            f"This will DELETE all analytics data in schema '{schema}'. Are you sure?",
            abort=True,
        )
        print()

    print(f"  Resetting PostgreSQL schema '{C.WHITE}{schema}{C.RESET}'...")
    if not check_db_connection():
        print_error("Cannot connect to PostgreSQL")
        raise typer.Exit(1)

    try:
        reset_schema(settings)
    except Exception as e:
        print_error(f"Failed to reset PostgreSQL: {e}")
        raise typer.Exit(1)

    print_success("PostgreSQL reset")
    print()
