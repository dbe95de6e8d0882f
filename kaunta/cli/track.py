# ==============================================================================
# Track Command
# ==============================================================================
"""
Ingest a single tracker beacon from the command line.

Accepts the tracker envelope ``{"type": "event", "payload": {...}}`` or a
bare payload object, either inline or on stdin with ``-``. Useful for
backfills and for checking a deployment end to end.
"""

import json
import sys
from typing import Annotated, Optional

import pydantic
import typer

from kaunta.cli.shared import (
    EXIT_USAGE,
    handle_errors,
    open_ingestor,
    print_error,
    print_json,
    print_success,
)
from kaunta.core.models import Beacon


def _parse_beacon(raw: str) -> Beacon:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("beacon must be a JSON object")
    if "payload" in data:
        return Beacon.from_envelope(data)
    return Beacon.model_validate(data)


def track(
    payload: Annotated[str, typer.Argument(help="Beacon JSON, or '-' to read stdin")],
    ip: Annotated[Optional[str], typer.Option("--ip", help="Client IP address")] = None,
    user_agent: Annotated[
        Optional[str], typer.Option("--user-agent", "-u", help="Client User-Agent header")
    ] = None,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output as JSON for scripting")
    ] = False,
) -> None:
    """Record one pageview or custom event."""
    raw = sys.stdin.read() if payload == "-" else payload
    try:
        beacon = _parse_beacon(raw)
    except (ValueError, pydantic.ValidationError) as e:
        print_error(f"Invalid beacon: {e}")
        raise typer.Exit(EXIT_USAGE) from e

    with open_ingestor() as ingestor, handle_errors():
        result = ingestor.track(beacon, ip, user_agent)

    if json_output:
        print_json(result.model_dump(mode="json") if result else {"dropped": True})
        return
    if result is None:
        print_success("Beacon dropped (spam referrer)")
        return
    session = "new session" if result.new_session else "existing session"
    print_success(f"Tracked event {result.event_id} ({session} {result.session_id})")
