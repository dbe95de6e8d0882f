# ==============================================================================
# Tests for the Live Polling Loop
# ==============================================================================
"""
Unit tests for kaunta.services.live.

Tests cover:
- Interval normalization (default, clamping, warning on clamp)
- Initial render plus one render per tick
- Storage errors on a tick do not end the loop
- Cancellation and session deadline
- Signal handler installation and restoration

The wait function and the monotonic clock are fakes, so nothing sleeps.
"""

import logging
import signal
import threading
from datetime import timedelta
from unittest.mock import MagicMock

from kaunta.core.errors import StorageError
from kaunta.services.live import (
    DEFAULT_INTERVAL,
    handle_shutdown_signals,
    normalize_interval,
    run_live_loop,
)


# ==============================================================================
# Helpers
# ==============================================================================


class FakeClock:
    """Monotonic clock advanced by FakeWait."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeWait:
    """Advances the clock by the timeout and cancels after ``ticks`` waits."""

    def __init__(self, clock: FakeClock, ticks: int | None = None):
        self.clock = clock
        self.ticks = ticks
        self.timeouts: list[float] = []

    def __call__(self, timeout: float) -> bool:
        self.timeouts.append(timeout)
        self.clock.now += timeout
        return self.ticks is not None and len(self.timeouts) > self.ticks


# ==============================================================================
# normalize_interval
# ==============================================================================


class TestNormalizeInterval:
    """Tests for interval clamping."""

    def test_default(self):
        assert normalize_interval(None) == DEFAULT_INTERVAL == 5

    def test_in_range_unchanged(self):
        assert normalize_interval(2) == 2
        assert normalize_interval(60) == 60
        assert normalize_interval(10) == 10

    def test_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="kaunta.services.live"):
            assert normalize_interval(1) == 2
            assert normalize_interval(600) == 60
        assert len(caplog.records) == 2


# ==============================================================================
# run_live_loop
# ==============================================================================


class TestRunLiveLoop:
    """Tests for the polling loop."""

    def test_initial_render_then_one_per_tick(self):
        clock = FakeClock()
        wait = FakeWait(clock, ticks=3)
        fetch = MagicMock(side_effect=lambda: f"snapshot-{fetch.call_count}")
        render = MagicMock()

        rendered = run_live_loop(fetch, render, 10, wait=wait, clock=clock)

        assert rendered == 4
        assert fetch.call_count == 4
        assert render.call_args_list[0].args == ("snapshot-1",)
        assert wait.timeouts == [10, 10, 10, 10]

    def test_fetch_never_overlaps_render(self):
        """Each fetch starts only after the previous render returned."""
        clock = FakeClock()
        calls: list[str] = []

        def fetch():
            calls.append("fetch")
            return object()

        run_live_loop(
            fetch,
            lambda _: calls.append("render"),
            wait=FakeWait(clock, ticks=2),
            clock=clock,
        )

        assert calls == ["fetch", "render"] * 3

    def test_storage_error_does_not_stop_loop(self):
        clock = FakeClock()
        fetch = MagicMock(side_effect=[StorageError("down"), "ok", StorageError("down"), "ok"])
        render = MagicMock()
        on_error = MagicMock()

        rendered = run_live_loop(
            fetch, render, wait=FakeWait(clock, ticks=3), on_error=on_error, clock=clock
        )

        assert rendered == 2
        assert on_error.call_count == 2
        assert isinstance(on_error.call_args.args[0], StorageError)

    def test_cancel_before_first_tick(self):
        clock = FakeClock()
        render = MagicMock()

        rendered = run_live_loop(
            MagicMock(return_value="s"), render, wait=lambda _: True, clock=clock
        )

        assert rendered == 1
        render.assert_called_once_with("s")

    def test_deadline_ends_session(self):
        clock = FakeClock()
        wait = FakeWait(clock)

        rendered = run_live_loop(
            MagicMock(return_value="s"),
            MagicMock(),
            5,
            wait=wait,
            max_duration=timedelta(seconds=12),
            clock=clock,
        )

        # Ticks at 0, 5, 10; the last wait is cut to the 2s left before the deadline
        assert rendered == 3
        assert wait.timeouts == [5, 5, 2]

    def test_interval_clamped(self):
        clock = FakeClock()
        wait = FakeWait(clock, ticks=1)

        run_live_loop(MagicMock(), MagicMock(), 0, wait=wait, clock=clock)

        assert wait.timeouts[0] == 2

    def test_event_wait_cancels(self):
        """A set threading.Event stops the loop without sleeping."""
        stop = threading.Event()
        stop.set()
        render = MagicMock()

        assert run_live_loop(MagicMock(), render, wait=stop.wait) == 1


# ==============================================================================
# handle_shutdown_signals
# ==============================================================================


class TestHandleShutdownSignals:
    """Tests for SIGINT/SIGTERM routing."""

    def test_signal_sets_event_and_handlers_restored(self):
        before = signal.getsignal(signal.SIGTERM)
        stop = threading.Event()

        with handle_shutdown_signals(stop):
            handler = signal.getsignal(signal.SIGTERM)
            assert handler is not before
            handler(signal.SIGTERM, None)
            assert stop.is_set()

        assert signal.getsignal(signal.SIGTERM) is before
