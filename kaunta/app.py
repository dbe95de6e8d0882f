# ==============================================================================
# Kaunta CLI
# ==============================================================================
"""
Command-line interface for kaunta analytics.

Usage:
    kaunta --help
    kaunta --version
    kaunta stats overview example.com
    kaunta stats pages example.com --top 20
    kaunta stats breakdown example.com --by browser
    kaunta stats map example.com
    kaunta stats bounces example.com
    kaunta stats engagement example.com
    kaunta stats today example.com
    kaunta stats timeseries example.com --days 1
    kaunta stats live example.com --interval 10
    kaunta track '{"website": "example.com", "url": "/"}' --ip 203.0.113.7
    kaunta db init
    kaunta db reset -y
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os
from typing import Annotated

import typer

from kaunta.cli.shared import configure_logging
from kaunta.utils.versions import get_kaunta_version

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="kaunta",
    help="Privacy-preserving web analytics",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        print(f"kaunta {get_kaunta_version()}")
        raise typer.Exit()


@app.callback()
def _main(
    version: Annotated[
        bool,
        typer.Option(
            "--version", "-V", help="Show version and exit", callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    configure_logging()


stats_app = typer.Typer(
    help="Analytics reports",
    no_args_is_help=True,
)
app.add_typer(stats_app, name="stats")

# Register stats commands from cli.stats module
from kaunta.cli.stats import (
    stats_breakdown,
    stats_bounces,
    stats_engagement,
    stats_live,
    stats_map,
    stats_overview,
    stats_pages,
    stats_timeseries,
    stats_today,
)

stats_app.command("overview")(stats_overview)
stats_app.command("pages")(stats_pages)
stats_app.command("breakdown")(stats_breakdown)
stats_app.command("map")(stats_map)
stats_app.command("bounces")(stats_bounces)
stats_app.command("engagement")(stats_engagement)
stats_app.command("today")(stats_today)
stats_app.command("timeseries")(stats_timeseries)
stats_app.command("live")(stats_live)

db_app = typer.Typer(
    help="Database schema operations",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")

# Register db commands from cli.db module
from kaunta.cli.db import db_init, db_reset

db_app.command("init")(db_init)
db_app.command("reset")(db_reset)

# Register track command from cli.track module
from kaunta.cli.track import track

app.command("track")(track)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
