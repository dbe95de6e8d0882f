# ==============================================================================
# Tests for CLI Help Commands
# ==============================================================================
"""
Tests that all CLI help commands generate the expected output.

Verifies that every command and subcommand in the kaunta CLI:
- Exits with code 0 when invoked with --help
- Contains the expected description text
- Lists the expected subcommands or options

These tests use the real app from kaunta.app (not minimal Typer apps)
to ensure the full command tree is wired up correctly and that Typer can
introspect all command function signatures without errors.
"""

import pytest
from typer.testing import CliRunner

from kaunta.app import app

runner = CliRunner()


# ==============================================================================
# Root App
# ==============================================================================


class TestRootHelp:
    """Tests for the root `kaunta --help` output."""

    def test_exit_code(self):
        """Root --help exits successfully."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0

    def test_description(self):
        """Root --help shows the app description."""
        result = runner.invoke(app, ["--help"])
        assert "Privacy-preserving web analytics" in result.output

    def test_lists_all_subcommands(self):
        """Root --help lists every top-level command."""
        result = runner.invoke(app, ["--help"])
        for cmd in ["stats", "db", "track"]:
            assert cmd in result.output, f"Missing command: {cmd}"

    def test_version(self):
        """--version prints the package version and exits."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("kaunta ")


# ==============================================================================
# Stats
# ==============================================================================


class TestStatsHelp:
    """Tests for `kaunta stats` help output."""

    def test_description(self):
        """Stats --help shows its description."""
        result = runner.invoke(app, ["stats", "--help"])
        assert result.exit_code == 0
        assert "Analytics reports" in result.output

    def test_lists_subcommands(self):
        """Stats --help lists all reports."""
        result = runner.invoke(app, ["stats", "--help"])
        for cmd in [
            "overview", "pages", "breakdown", "map", "bounces", "engagement",
            "today", "timeseries", "live",
        ]:
            assert cmd in result.output, f"Missing subcommand: {cmd}"


class TestStatsCommandHelp:
    """Tests for each `kaunta stats <report> --help` output."""

    @pytest.mark.parametrize(
        "command, options",
        [
            ("overview", ["--days", "--country", "--page", "--json"]),
            ("pages", ["--days", "--top", "--json"]),
            ("breakdown", ["--by", "--limit", "--days", "--json"]),
            ("map", ["--days", "--json"]),
            ("bounces", ["--days", "--device", "--json"]),
            ("engagement", ["--limit", "--page", "--json"]),
            ("today", ["--country", "--page", "--json"]),
            ("timeseries", ["--days", "--device", "--json"]),
            ("live", ["--interval", "--json"]),
        ],
    )
    def test_lists_options(self, command, options):
        """Each report --help exits successfully and lists its options."""
        result = runner.invoke(app, ["stats", command, "--help"])
        assert result.exit_code == 0
        for opt in options:
            assert opt in result.output, f"Missing option for {command}: {opt}"


# ==============================================================================
# Database
# ==============================================================================


class TestDbHelp:
    """Tests for `kaunta db` help output."""

    def test_description(self):
        """Db --help shows its description."""
        result = runner.invoke(app, ["db", "--help"])
        assert result.exit_code == 0
        assert "Database schema operations" in result.output

    def test_lists_subcommands(self):
        """Db --help lists init and reset."""
        result = runner.invoke(app, ["db", "--help"])
        for cmd in ["init", "reset"]:
            assert cmd in result.output, f"Missing subcommand: {cmd}"

    def test_reset_lists_yes(self):
        """Db reset --help lists the confirmation bypass."""
        result = runner.invoke(app, ["db", "reset", "--help"])
        assert result.exit_code == 0
        assert "--yes" in result.output


# ==============================================================================
# Track
# ==============================================================================


class TestTrackHelp:
    """Tests for `kaunta track --help` output."""

    def test_lists_options(self):
        """Track --help lists its options."""
        result = runner.invoke(app, ["track", "--help"])
        assert result.exit_code == 0
        assert "Record one pageview or custom event" in result.output
        for opt in ["--ip", "--user-agent", "--json"]:
            assert opt in result.output, f"Missing option: {opt}"
