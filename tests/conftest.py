"""
Shared fixtures for audiotools tests.
"""

import pytest


@pytest.fixture
def fast_ticks(monkeypatch):
    """Run countdown ticks every 10 ms instead of every second."""
    import audiotools.timer as timer_module
    monkeypatch.setattr(timer_module, "TICK_INTERVAL", 0.01)


@pytest.fixture
def ansi_terminal(monkeypatch):
    """Make new timers believe stdout is an ANSI terminal."""
    import audiotools.timer as timer_module
    monkeypatch.setattr(timer_module, "supports_ansi", lambda: True)


@pytest.fixture
def process_hooks(monkeypatch):
    """Let timers register process hooks even though pytest is running."""
    import audiotools.timer as timer_module
    from audiotools import hooks

    assert hooks._hooks == {}, "a previous test leaked process hooks"
    monkeypatch.setattr(timer_module, "_running_under_test_harness", lambda: False)
    yield hooks
    assert hooks._hooks == {}, "test left process hooks installed"
