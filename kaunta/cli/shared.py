# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared utilities, constants, and helper functions used across CLI command modules.

This module provides:
- ANSI color codes and box-drawing characters
- Box drawing helpers for formatted output
- Store and service construction
- Mapping of domain errors to exit codes
"""

import json
import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from pydantic import BaseModel

from kaunta.base.repositories import EventStore
from kaunta.core.errors import NotFoundError, StorageError, ValidationError
from kaunta.core.ingest import Ingestor
from kaunta.infrastructure.repositories import PostgreSQLEventStore, check_postgresql_connection
from kaunta.services.analytics import AnalyticsService
from kaunta.services.ingestion import create_ingestor
from kaunta.utils.config import Settings, get_settings

# ==============================================================================
# Constants
# ==============================================================================

# Box drawing width (unified for all commands)
BOX_WIDTH = 68

# Exit codes
EXIT_FAILURE = 1
EXIT_USAGE = 2


# ==============================================================================
# ANSI Colors and Box Drawing
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Colors
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Bright colors
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


class Box:
    """Unicode box-drawing characters."""

    H = "─"  # horizontal
    V = "│"  # vertical
    TL = "┌"  # top-left
    TR = "┐"  # top-right
    BL = "└"  # bottom-left
    BR = "┘"  # bottom-right
    LT = "├"  # left-tee
    RT = "┤"  # right-tee


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"
    WARN = "!"
    CIRCLE = "●"
    BULLET = "•"
    ARROW = "→"


# Module-level aliases for convenience
C, B, I = Colors, Box, Icons


# ==============================================================================
# Box Drawing Helpers
# ==============================================================================

# Regex pattern for stripping ANSI escape codes
_ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def _visible_len(s: str) -> int:
    """Calculate visible length of string, ignoring ANSI escape codes."""
    return len(_ANSI_ESCAPE_PATTERN.sub("", s))


def _box_header(title: str, width: int = BOX_WIDTH) -> str:
    """Create a single-line box header."""
    inner_width = width - 2
    title_padded = f" {title} "
    left_bar = (inner_width - len(title_padded)) // 2
    right_bar = inner_width - left_bar - len(title_padded)
    return (
        f"{C.CYAN}{B.TL}{B.H * left_bar}{C.BOLD}{C.WHITE}{title_padded}"
        f"{C.RESET}{C.CYAN}{B.H * right_bar}{B.TR}{C.RESET}"
    )


def _section_header(title: str, width: int = BOX_WIDTH) -> str:
    """Create a section header."""
    inner_width = width - 2
    title_padded = f" {title} "
    bar_len = inner_width - len(title_padded) - 1  # -1 for the first H after LT
    return (
        f"{C.CYAN}{B.LT}{B.H}{C.BOLD}{title_padded}{C.RESET}{C.CYAN}{B.H * bar_len}{B.RT}{C.RESET}"
    )


def _box_line(content: str, width: int = BOX_WIDTH) -> str:
    """Create a line inside the box with proper padding to right border."""
    inner_width = width - 2
    padding = max(inner_width - _visible_len(content), 0)
    return f"{C.CYAN}{B.V}{C.RESET}{content}{' ' * padding}{C.CYAN}{B.V}{C.RESET}"


def _empty_line(width: int = BOX_WIDTH) -> str:
    """Create an empty line inside the box."""
    return f"{C.CYAN}{B.V}{' ' * (width - 2)}{B.V}{C.RESET}"


def _box_bottom(width: int = BOX_WIDTH) -> str:
    """Create a box bottom border."""
    return f"{C.CYAN}{B.BL}{B.H * (width - 2)}{B.BR}{C.RESET}"


def _kv_line(label: str, value: str, width: int = BOX_WIDTH) -> str:
    """Create a ``label: value`` line inside the box."""
    return _box_line(f"  {C.BOLD}{label:<22}{C.RESET}{value}", width)


# ==============================================================================
# Output Helpers
# ==============================================================================


def print_json(data: BaseModel | list | dict) -> None:
    """Print a result model (or list of models) as indented JSON."""
    if isinstance(data, BaseModel):
        payload = data.model_dump(mode="json")
    elif isinstance(data, list):
        payload = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
    else:
        payload = data
    print(json.dumps(payload, indent=2))


def print_error(message: str) -> None:
    print(f"{C.BRIGHT_RED}{I.CROSS} {message}{C.RESET}")


def print_success(message: str) -> None:
    print(f"{C.BRIGHT_GREEN}{I.CHECK} {message}{C.RESET}")


@contextmanager
def handle_errors() -> Iterator[None]:
    """
    Translate domain errors into CLI exits.

    ValidationError exits with 2 (usage error). NotFoundError and
    StorageError exit with 1.
    """
    try:
        yield
    except ValidationError as e:
        print_error(f"Invalid {e.field}: {e.message}")
        raise typer.Exit(EXIT_USAGE) from e
    except NotFoundError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_FAILURE) from e
    except StorageError as e:
        print_error(f"Database error: {e}")
        raise typer.Exit(EXIT_FAILURE) from e


# ==============================================================================
# Logging
# ==============================================================================


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings (DEBUG when debug is on)."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.debug:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# ==============================================================================
# Store and Service Construction
# ==============================================================================


def get_store(settings: Settings | None = None) -> EventStore:
    """Build the event store used by CLI commands."""
    return PostgreSQLEventStore(settings or get_settings())


@contextmanager
def open_service(settings: Settings | None = None) -> Iterator[AnalyticsService]:
    """Connect a store, yield an AnalyticsService over it, then close the store."""
    store = get_store(settings)
    with handle_errors():
        store.connect()
    try:
        yield AnalyticsService(store)
    finally:
        store.close()


@contextmanager
def open_ingestor(settings: Settings | None = None) -> Iterator[Ingestor]:
    """Connect a store, yield an Ingestor wired from settings, then close both."""
    settings = settings or get_settings()
    store = get_store(settings)
    with handle_errors():
        store.connect()
    ingestor = create_ingestor(store, settings)
    try:
        yield ingestor
    finally:
        ingestor.geoip.close()
        store.close()


def check_db_connection() -> bool:
    """Check if PostgreSQL is reachable."""
    return check_postgresql_connection(get_settings())
