"""
Process-wide cleanup hooks that many owners can share.

Python has a single slot for each of these: a signal's handler,
sys.excepthook, an event loop's exception handler. Listeners are
multiplexed here instead. The first listener on a hook installs a
dispatcher into the slot and the last one to detach restores whatever
was there before, so one timer's cleanup never clobbers another's.

Every add_* function returns a detach callable that removes exactly the
listener it added. Calling it twice raises ValueError.

After the listeners run, the dispatcher hands over to the previous
occupant of the slot:
- signals: the previous handler is called (SIGINT raises
  KeyboardInterrupt); a default disposition becomes SystemExit(128 + signum)
- uncaught exceptions: the previous sys.excepthook reports the error
- event loop errors: the previous handler, or the loop's default one
"""

import asyncio
import atexit
import signal
import sys
import threading
from typing import Callable, Dict, Hashable, List, Optional

from .logger import get_logger


EXIT = "exit"
UNCAUGHT_EXCEPTION = "uncaught_exception"

Listener = Callable[[], None]
Detach = Callable[[], None]


class _Hook:
    """A listener list bound to one process-wide slot."""

    def __init__(self, key: Hashable):
        self.key = key
        self.listeners: List[Listener] = []

    def install(self) -> None:
        raise NotImplementedError

    def uninstall(self) -> None:
        raise NotImplementedError

    def add(self, listener: Listener) -> Detach:
        if not self.listeners:
            self.install()
        self.listeners.append(listener)

        def detach() -> None:
            self.remove(listener)

        return detach

    def remove(self, listener: Listener) -> None:
        with _lock:
            for i, existing in enumerate(self.listeners):
                if existing is listener:
                    del self.listeners[i]
                    break
            else:
                raise ValueError(f"listener not registered on {self.key!r}")

            if not self.listeners:
                self.uninstall()
                _hooks.pop(self.key, None)

    def emit(self) -> None:
        """Run every listener; one failing does not stop the rest."""
        for listener in list(self.listeners):
            try:
                listener()
            except Exception as e:
                get_logger().warning(f"Cleanup listener on {self.key!r} failed: {e}")


class _ExitHook(_Hook):
    def install(self) -> None:
        atexit.register(self.emit)

    def uninstall(self) -> None:
        atexit.unregister(self.emit)


class _SignalHook(_Hook):
    def __init__(self, key: signal.Signals):
        super().__init__(key)
        self.previous = None

    def install(self) -> None:
        current = signal.getsignal(self.key)
        if current == self._handle:
            return
        self.previous = current
        signal.signal(self.key, self._handle)

    def uninstall(self) -> None:
        # Someone else took the slot after us; leave theirs in place
        if signal.getsignal(self.key) != self._handle:
            return
        previous = self.previous if self.previous is not None else signal.SIG_DFL
        signal.signal(self.key, previous)

    def _handle(self, signum, frame) -> None:
        previous = self.previous
        self.emit()

        if callable(previous):
            previous(signum, frame)
        elif previous == signal.SIG_IGN:
            return
        else:
            raise SystemExit(128 + signum)


class _ExceptHook(_Hook):
    def __init__(self, key: Hashable):
        super().__init__(key)
        self.previous = sys.__excepthook__

    def install(self) -> None:
        if sys.excepthook == self._handle:
            return
        self.previous = sys.excepthook
        sys.excepthook = self._handle

    def uninstall(self) -> None:
        if sys.excepthook == self._handle:
            sys.excepthook = self.previous

    def _handle(self, exc_type, exc, tb) -> None:
        previous = self.previous
        try:
            self.emit()
        finally:
            # Cleanup must not swallow the failure that caused it
            previous(exc_type, exc, tb)


class _LoopErrorHook(_Hook):
    def __init__(self, key: asyncio.AbstractEventLoop):
        super().__init__(key)
        self.previous = None

    def install(self) -> None:
        current = self.key.get_exception_handler()
        if current == self._handle:
            return
        self.previous = current
        self.key.set_exception_handler(self._handle)

    def uninstall(self) -> None:
        if self.key.get_exception_handler() == self._handle:
            self.key.set_exception_handler(self.previous)

    def _handle(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        previous = self.previous
        self.emit()

        if previous is not None:
            previous(loop, context)
        else:
            loop.default_exception_handler(context)


_hooks: Dict[Hashable, _Hook] = {}
# Re-entrant: a signal can land while the main thread holds the lock
_lock = threading.RLock()


def _add(key: Hashable, factory, listener: Listener) -> Detach:
    with _lock:
        hook = _hooks.get(key)
        if hook is not None:
            return hook.add(listener)

        # Only keep the hook once its slot is actually installed
        hook = factory(key)
        detach = hook.add(listener)
        _hooks[key] = hook
        return detach


def add_exit_listener(listener: Listener) -> Detach:
    """Call *listener* at normal interpreter exit."""
    return _add(EXIT, _ExitHook, listener)


def add_signal_listener(signum: int, listener: Listener) -> Optional[Detach]:
    """
    Call *listener* when the process receives *signum*.

    Signal handlers can only be installed from the main thread; elsewhere
    nothing is registered and None is returned.
    """
    if threading.current_thread() is not threading.main_thread():
        return None
    return _add(signal.Signals(signum), _SignalHook, listener)


def add_uncaught_exception_listener(listener: Listener) -> Detach:
    """Call *listener* before an uncaught exception is reported."""
    return _add(UNCAUGHT_EXCEPTION, _ExceptHook, listener)


def add_loop_error_listener(
    listener: Listener,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Detach:
    """
    Call *listener* when *loop* reports an unhandled error, such as a
    task whose exception was never retrieved.

    Defaults to the running loop; raises RuntimeError if there is none.
    """
    if loop is None:
        loop = asyncio.get_running_loop()
    return _add(loop, _LoopErrorHook, listener)


def listener_count(key: Hashable) -> int:
    """Number of listeners on a hook (EXIT, a signal, a loop, ...)."""
    if isinstance(key, int) and not isinstance(key, signal.Signals):
        key = signal.Signals(key)
    with _lock:
        hook = _hooks.get(key)
        return len(hook.listeners) if hook else 0
