# ==============================================================================
# Live Polling Loop
# ==============================================================================
"""
Sequential polling loop behind ``kaunta stats live``.

One snapshot is fetched and rendered immediately, then one per interval.
The next wait only starts after the current render returns, so fetches
never overlap. The loop ends when the wait reports cancellation or the
session deadline passes, whichever comes first.

A StorageError on a tick is logged and reported through ``on_error``; the
loop carries on and tries again on the next tick.
"""

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import timedelta

from kaunta.core.errors import StorageError
from kaunta.core.models import LiveSnapshot

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5
MIN_INTERVAL = 2
MAX_INTERVAL = 60
DEFAULT_MAX_DURATION = timedelta(hours=24)


def normalize_interval(interval: int | None) -> int:
    """Clamp a polling interval into [2, 60] seconds; None means 5."""
    if interval is None:
        return DEFAULT_INTERVAL
    clamped = max(MIN_INTERVAL, min(MAX_INTERVAL, interval))
    if clamped != interval:
        logger.warning(
            "Live interval %ss outside %s-%ss, using %ss",
            interval,
            MIN_INTERVAL,
            MAX_INTERVAL,
            clamped,
        )
    return clamped


@contextmanager
def handle_shutdown_signals(stop: threading.Event) -> Iterator[threading.Event]:
    """
    Route SIGINT and SIGTERM to ``stop`` while the block runs.

    The previous handlers are restored on exit. Must be entered from the
    main thread.
    """

    def _handle_signal(signum, frame) -> None:
        logger.info("Received signal %d, stopping live view...", signum)
        stop.set()

    previous = {
        sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        yield stop
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def run_live_loop(
    fetch: Callable[[], LiveSnapshot],
    render: Callable[[LiveSnapshot], None],
    interval: int | None = None,
    *,
    wait: Callable[[float], bool] | None = None,
    on_error: Callable[[StorageError], None] | None = None,
    max_duration: timedelta = DEFAULT_MAX_DURATION,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """
    Poll ``fetch`` and pass each snapshot to ``render``.

    Args:
        fetch: Produces one snapshot, typically AnalyticsService.live
        render: Displays a snapshot
        interval: Seconds between ticks, normalized by normalize_interval
        wait: Sleeps up to the given timeout and returns True when the loop
            should stop. Defaults to waiting on a private threading.Event.
        on_error: Receives StorageErrors raised by ``fetch``
        max_duration: Upper bound on the whole session
        clock: Monotonic seconds, used for the deadline

    Returns:
        Number of snapshots rendered
    """
    seconds = normalize_interval(interval)
    if wait is None:
        wait = threading.Event().wait

    deadline = clock() + max_duration.total_seconds()
    rendered = 0

    def _tick() -> None:
        nonlocal rendered
        try:
            snapshot = fetch()
        except StorageError as e:
            logger.warning("Live snapshot failed, retrying next tick: %s", e)
            if on_error is not None:
                on_error(e)
            return
        render(snapshot)
        rendered += 1

    _tick()
    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            logger.info("Live session reached its %s deadline", max_duration)
            break
        if wait(min(seconds, remaining)):
            logger.info("Live session cancelled after %d snapshots", rendered)
            break
        if clock() >= deadline:
            logger.info("Live session reached its %s deadline", max_duration)
            break
        _tick()

    return rendered
