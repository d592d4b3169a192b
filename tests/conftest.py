"""Shared fixtures: fake evdev, fake clock, mock adapters."""

from __future__ import annotations

import sys
import types
from unittest.mock import MagicMock

import pytest

# ---------------------------------------------------------------------------
# Fake evdev module so no test ever opens /dev/input or /dev/uinput
# ---------------------------------------------------------------------------

_fake_evdev = types.ModuleType("evdev")
_fake_ecodes = types.ModuleType("evdev.ecodes")
_fake_ecodes.EV_SYN = 0
_fake_ecodes.EV_KEY = 1
_fake_ecodes.EV_MSC = 4
_fake_ecodes.KEY_A = 30
_fake_ecodes.BTN_LEFT = 0x110
_fake_ecodes.BTN_RIGHT = 0x111
_fake_evdev.ecodes = _fake_ecodes
_fake_evdev.InputDevice = MagicMock
_fake_evdev.UInput = MagicMock
_fake_evdev.list_devices = MagicMock(return_value=[])

sys.modules.setdefault("evdev", _fake_evdev)
sys.modules.setdefault("evdev.ecodes", _fake_ecodes)


@pytest.fixture(autouse=True)
def mock_uinput(monkeypatch):
    """Replace evdev.UInput with a recorder so tests never create a device."""

    class DummyUInput:
        def __init__(self, *args, **kwargs):
            self.written: list[tuple[int, int, int]] = []
            self.syn_count = 0
            self.closed = False

        def write(self, etype, code, value):
            self.written.append((etype, code, value))

        def syn(self):
            self.syn_count += 1

        def close(self):
            self.closed = True

    monkeypatch.setattr(sys.modules["evdev"], "UInput", DummyUInput)
    yield DummyUInput


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock under test control (seconds)."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now

    def advance_ms(self, ms: float) -> float:
        return self.advance(ms / 1000.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Mock platform adapters
# ---------------------------------------------------------------------------


class MockSystemAdapter:
    def __init__(self):
        self.sent = []
        self.commands: list[list[str]] = []

    @property
    def notifications(self) -> list[tuple[str, str]]:
        return [(n.summary, n.body) for n in self.sent]

    def run_command(self, args, timeout=1.0):
        from keyhabit.platform.system_adapter import CommandResult
        self.commands.append(list(args))
        return CommandResult(stdout="", stderr="", returncode=0)

    def notify(self, notification):
        self.sent.append(notification)
        return True


class MockWindowContext:
    def __init__(self, wm_class: str = ""):
        self.wm_class = wm_class
        self.closed = False
        self.lookups = 0

    def active_wm_class(self) -> str:
        self.lookups += 1
        return self.wm_class

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def config_path(tmp_path):
    """Path to a not-yet-existing config file in a temp dir."""
    return str(tmp_path / "keyhabit" / "config.json")


@pytest.fixture
def system() -> MockSystemAdapter:
    return MockSystemAdapter()


@pytest.fixture
def window() -> MockWindowContext:
    return MockWindowContext()
