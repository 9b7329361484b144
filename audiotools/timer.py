"""
Countdown timer for audio recording sessions.

Shows a live MM:SS countdown that updates in place on ANSI terminals,
beeps once at 30 seconds remaining and turns red for the last 30 seconds.
Ticks run on the asyncio event loop; no threads are involved.

Usage:
    timer = CountdownTimer(duration_seconds=90, on_complete=stop_recording)
    await timer.start()
"""

import asyncio
import os
import signal
import sys
import warnings
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional

from . import hooks
from .logger import get_logger


# Constants
TICK_INTERVAL = 1.0  # seconds between ticks
WARNING_SECONDS = 30  # beep and switch to warning colors here
BELL = "\x07"
LABEL = "⏱️  Recording time remaining: "
WARNING_MARKER = " ⚠️ "


class Ansi:
    """ANSI escape codes for terminal control."""

    # Cursor movement
    CURSOR_UP = "\x1b[1A"
    CURSOR_TO_START = "\x1b[0G"
    CLEAR_LINE = "\x1b[2K"

    # Colors
    RED = "\x1b[31m"
    CYAN = "\x1b[36m"
    RESET = "\x1b[0m"

    # Text styles
    BOLD = "\x1b[1m"


@dataclass
class CountdownOptions:
    """Timer configuration. Only duration_seconds is required."""
    duration_seconds: int
    beep_at_30_seconds: bool = True
    red_at_30_seconds: bool = True
    on_tick: Optional[Callable[[int], None]] = None     # called with remaining seconds
    on_complete: Optional[Callable[[], None]] = None    # called once at zero
    clear_on_complete: bool = False


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS. Minutes are not capped at 59."""
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining:02d}"


def beep() -> None:
    """Ring the terminal bell."""
    sys.stdout.write(BELL)
    sys.stdout.flush()


def supports_ansi() -> bool:
    """Check if stdout is a terminal that accepts colors and cursor movement."""
    isatty = getattr(sys.stdout, "isatty", None)
    return (
        bool(isatty and isatty())
        and os.environ.get("TERM") != "dumb"
        and not os.environ.get("NO_COLOR")
    )


def _running_under_test_harness() -> bool:
    return "PYTEST_CURRENT_TEST" in os.environ or os.environ.get("AUDIOTOOLS_ENV") == "test"


def _noop(*args) -> None:
    pass


class CountdownTimer:
    """
    Live countdown display with callbacks and guaranteed cleanup.

    Lifecycle: created -> running (start) -> stopped (stop, or reaching
    zero) -> destroyed (destroy). A destroyed timer never schedules,
    renders or calls back again.

    on_tick receives the remaining seconds after each decrement, so a
    3 second timer delivers 2, 1, 0. on_complete fires exactly once when
    zero is reached; stopping early does not fire it.

    Unless running under pytest, the timer also destroys itself on
    interpreter exit, SIGINT, SIGTERM, an uncaught exception or an
    unhandled event loop error, so the terminal is never left mid-line.
    """

    def __init__(self, options: Optional[CountdownOptions] = None, **kwargs):
        if options is None:
            options = CountdownOptions(**kwargs)
        elif kwargs:
            options = replace(options, **kwargs)

        duration = options.duration_seconds
        if isinstance(duration, bool) or not isinstance(duration, int):
            raise TypeError(f"duration_seconds must be an integer, got {type(duration).__name__}")
        if duration < 0:
            raise ValueError(f"duration_seconds must not be negative, got {duration}")

        self.options = options
        self.duration_seconds: int = duration
        self.current_seconds: int = duration
        self._on_tick: Callable[[int], None] = options.on_tick or _noop
        self._on_complete: Callable[[], None] = options.on_complete or _noop

        # State
        self.has_beeped_at_30: bool = False
        self.is_first_display: bool = True
        self.is_destroyed: bool = False
        self.ansi_supported: bool = supports_ansi()

        # Scheduling
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._done: Optional[asyncio.Future] = None
        self._next_deadline: float = 0.0
        self._stopped: bool = False
        self._error: Optional[BaseException] = None

        # Detach functions for every process hook this instance added
        self._cleanup_handlers: List[Callable[[], None]] = []
        self._hooks_enabled = not _running_under_test_harness()
        self._loop_hooked = False

        self._setup_cleanup_handlers()

    async def start(self) -> None:
        """
        Run the countdown until it reaches zero or is stopped.

        Returns immediately if the timer is already running, was stopped
        or was destroyed. An exception raised by a callback stops the
        timer and is re-raised here.
        """
        if self.is_destroyed or self._stopped or self._done is not None:
            return

        # Zero seconds: complete without displaying anything
        if self.current_seconds <= 0:
            self._stopped = True
            self._on_complete()
            return

        self._loop = asyncio.get_running_loop()
        self._hook_loop_errors(self._loop)
        self._done = self._loop.create_future()

        self._display_countdown()
        self._next_deadline = self._loop.time()
        self._schedule_next()

        try:
            await self._done
        except asyncio.CancelledError:
            self.stop()
            raise

        if self._error is not None:
            raise self._error

    def stop(self) -> None:
        """Stop ticking and leave the terminal on a clean line. No-op once destroyed."""
        if self.is_destroyed:
            return
        self._teardown()

    def destroy(self) -> None:
        """Stop the timer for good and detach every process hook it added."""
        if self.is_destroyed:
            return

        # Set first so a tick that is already queued sees it
        self.is_destroyed = True
        self._teardown()

        for detach in self._cleanup_handlers:
            try:
                detach()
            except Exception as e:
                get_logger().debug(f"Ignoring error while detaching countdown hook: {e}")
        self._cleanup_handlers = []

    def get_remaining_seconds(self) -> int:
        return self.current_seconds

    def is_timer_destroyed(self) -> bool:
        return self.is_destroyed

    def _schedule_next(self) -> None:
        # Deadlines advance by a fixed step so ticks don't drift
        self._next_deadline += TICK_INTERVAL
        self._handle = self._loop.call_at(self._next_deadline, self._tick)

    def _tick(self) -> None:
        """
        One elapsed second.

        The destroyed check must stay first: a tick may already be queued
        when destroy() runs.
        """
        self._handle = None
        if self.is_destroyed:
            self._resolve()
            return

        try:
            self.current_seconds -= 1

            if (
                self.options.beep_at_30_seconds
                and self.current_seconds == WARNING_SECONDS
                and not self.has_beeped_at_30
            ):
                beep()
                self.has_beeped_at_30 = True

            self._on_tick(self.current_seconds)

            # destroy() from on_tick has already resolved start()
            if self.is_destroyed:
                return

            if self.current_seconds <= 0:
                self.stop()
                self._on_complete()
                self._resolve()
                return

            # stop() from on_tick
            if self._stopped:
                return

            self._display_countdown()
        except Exception as e:
            self._fail(e)
            return

        self._schedule_next()

    def _teardown(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        if not self._stopped:
            self._stopped = True
            if self.options.clear_on_complete and self.ansi_supported:
                # The display ends with a newline, so the countdown is one line up
                prefix = "" if self.is_first_display else Ansi.CURSOR_UP
                self._write(prefix + Ansi.CURSOR_TO_START + Ansi.CLEAR_LINE)
            elif not self.is_first_display:
                self._write("\n")

        self._resolve()

    def _resolve(self) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(None)

    def _fail(self, error: Exception) -> None:
        if self._error is None:
            self._error = error
        self.stop()
        self._resolve()

    def _display_countdown(self) -> None:
        time_string = format_time(self.current_seconds)
        is_warning_time = self.current_seconds <= WARNING_SECONDS

        if self.ansi_supported:
            if not self.is_first_display:
                # Overwrite the previous countdown line
                self._write(Ansi.CURSOR_UP + Ansi.CURSOR_TO_START + Ansi.CLEAR_LINE)

            color = Ansi.RED if is_warning_time and self.options.red_at_30_seconds else Ansi.CYAN
            style = Ansi.BOLD if is_warning_time else ""
            output = f"{color}{style}{LABEL}{time_string}{Ansi.RESET}"
        else:
            warning = WARNING_MARKER if is_warning_time else ""
            output = f"{LABEL}{time_string}{warning}"

        # Trailing newline is what the next CURSOR_UP lands on
        self._write(output + "\n")
        self.is_first_display = False

    @staticmethod
    def _write(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def _setup_cleanup_handlers(self) -> None:
        """Register process hooks that destroy this timer."""
        # Repeated construction in tests would pile up process-wide listeners
        if not self._hooks_enabled:
            return

        self._cleanup_handlers.append(hooks.add_exit_listener(self.destroy))
        for signum in (signal.SIGINT, signal.SIGTERM):
            detach = hooks.add_signal_listener(signum, self.destroy)
            if detach is not None:
                self._cleanup_handlers.append(detach)
        self._cleanup_handlers.append(hooks.add_uncaught_exception_listener(self.destroy))

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; start() hooks the one it runs on
            return
        self._hook_loop_errors(loop)

    def _hook_loop_errors(self, loop: asyncio.AbstractEventLoop) -> None:
        if not self._hooks_enabled or self._loop_hooked or self.is_destroyed:
            return
        self._cleanup_handlers.append(hooks.add_loop_error_listener(self.destroy, loop))
        self._loop_hooked = True


async def start_countdown(options: Optional[CountdownOptions] = None, **kwargs) -> None:
    """Create a timer, run it to the end and release its hooks."""
    timer = CountdownTimer(options, **kwargs)
    try:
        await timer.start()
    finally:
        timer.destroy()


def create_audio_recording_countdown(duration_seconds: int) -> CountdownTimer:
    """Timer preset for recordings: beep and red at 30 seconds, line cleared at the end."""
    return CountdownTimer(
        duration_seconds=duration_seconds,
        beep_at_30_seconds=True,
        red_at_30_seconds=True,
        clear_on_complete=True,
    )


def countdown(seconds: int, on_tick: Optional[Callable[[int], None]] = None) -> Awaitable[None]:
    """
    Plain countdown without beep or colors. Returns the coroutine to await.

    Deprecated: use CountdownTimer or start_countdown(). on_tick gets the
    same post-decrement values as CountdownTimer (seconds - 1 down to 0).
    """
    # Warns when called, before the returned coroutine is awaited
    warnings.warn(
        "countdown() is deprecated; use CountdownTimer or start_countdown()",
        DeprecationWarning,
        stacklevel=2,
    )
    return start_countdown(
        duration_seconds=seconds,
        beep_at_30_seconds=False,
        red_at_30_seconds=False,
        on_tick=on_tick,
        clear_on_complete=False,
    )
