"""Tests for keyhabit.core.engine — HabitEngine facade."""

from __future__ import annotations

import pytest

from keyhabit.core.actions import Binding
from keyhabit.core.classifier import KeyClassTable
from keyhabit.core.engine import EngineSettings, HabitEngine
from keyhabit.core.events import KeyStroke
from keyhabit.core.hints import HintPattern
from keyhabit.core.restriction import RestrictionPolicy
from keyhabit.core.scheduler import TaskQueue
from keyhabit.core.states import MODE_CMDLINE, MODE_INSERT, MODE_NORMAL, MODE_REPLACE, ResetSignal


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

class Host:
    """Collaborators the engine talks to, with recorders."""

    def __init__(self, clock):
        self.clock = clock
        self.tasks = TaskQueue(clock=clock)
        self.messages: list[str] = []
        self.context_disabled = False
        self.mode = MODE_NORMAL
        self.bindings: dict[str, dict[str, Binding]] = {}
        self.stopped_insert = 0
        self.reset_signal = ResetSignal()

    def notify(self, message: str) -> None:
        self.messages.append(message)

    def stop_insert(self) -> None:
        self.stopped_insert += 1

    def drain(self) -> list[str]:
        self.tasks.run_pending()
        return self.messages


TABLES = KeyClassTable.build(
    disabled={"<Up>": [""]},
    resetting={"d": ["n"]},
    restricted={"j": ["n"], "k": ["n"], "<Up>": ["n"]},
)

HINTS = [
    HintPattern.create("xi", "Use s instead of {keys}", 2),
    HintPattern.create("dd", "two d", 2),
    HintPattern.create("ddd", "three d", 3),
]


def _engine(host, enabled=True, policy=None, **settings) -> HabitEngine:
    engine = HabitEngine(
        TABLES,
        HINTS,
        notify=host.notify,
        policy=policy or RestrictionPolicy(max_count=2, max_time=1.0),
        settings=EngineSettings(**settings),
        tasks=host.tasks,
        clock=host.clock,
        is_context_disabled=lambda: host.context_disabled,
        bindings=lambda mode: host.bindings.get(mode, {}),
        mode=lambda: host.mode,
        stop_insert=host.stop_insert,
        reset_signal=host.reset_signal,
    )
    if enabled:
        engine.enable()
    return engine


@pytest.fixture
def host(clock) -> Host:
    return Host(clock)


def _press(engine, host, key, gap=0.1):
    host.clock.advance(gap)
    return engine.handle(key)


def _type(engine, host, keys, mode=MODE_NORMAL, gap=0.1):
    for k in keys:
        host.clock.advance(gap)
        engine.on_every_key(KeyStroke(raw=k, key=k, mode=mode))


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------

class TestLifecycle:
    def test_starts_disabled(self, host):
        engine = _engine(host, enabled=False)
        assert engine.is_enabled is False

    def test_enable_disable_idempotent(self, host):
        engine = _engine(host)
        engine.enable()
        assert engine.is_enabled
        engine.disable()
        engine.disable()
        assert not engine.is_enabled

    def test_toggle_returns_new_state(self, host):
        engine = _engine(host)
        assert engine.toggle() is False
        assert engine.toggle() is True

    def test_disable_forgets_partial_sequence(self, host):
        engine = _engine(host)
        _type(engine, host, "x")
        engine.disable()
        engine.enable()
        _type(engine, host, "i")
        assert host.drain() == []

    def test_bound_keys(self, host):
        assert _engine(host).bound_keys == frozenset({"<Up>", "d", "j", "k"})

    def test_from_config(self, host):
        engine = HabitEngine.from_config(
            {"max_count": 5, "max_time": 500, "restriction_mode": "hint", "hints": {"xi": None}},
            notify=host.notify,
        )
        assert engine.policy.max_count == 5
        assert engine.policy.max_time == pytest.approx(0.5)
        assert engine.policy.advisory
        assert "xi" not in {h.pattern for h in engine.matcher.hints}
        assert "j" in engine.bound_keys


# ------------------------------------------------------------------
# handle()
# ------------------------------------------------------------------

class TestHandleBlock:
    def test_allowed_presses_pass_through(self, host):
        engine = _engine(host)
        assert [_press(engine, host, "j") for _ in range(2)] == ["j", "j"]
        assert host.drain() == []

    def test_over_limit_is_swallowed_and_notified_once(self, host):
        engine = _engine(host)
        _press(engine, host, "j")
        _press(engine, host, "j")
        assert _press(engine, host, "j") == ""
        assert _press(engine, host, "j") == ""
        assert host.drain() == ["You pressed the j key too soon! Use [count]j or CTRL-D to scroll down."]

    def test_notification_is_deferred(self, host):
        engine = _engine(host)
        for _ in range(3):
            _press(engine, host, "j")
        assert host.messages == []
        assert host.tasks.pending == 1

    def test_notification_setting_off(self, host):
        engine = _engine(host, notification=False)
        for _ in range(3):
            _press(engine, host, "j")
        assert host.drain() == []

    def test_new_streak_notifies_again(self, host):
        engine = _engine(host)
        for _ in range(3):
            _press(engine, host, "j")
        _press(engine, host, "k")
        for _ in range(2):
            _press(engine, host, "k")
        assert len(host.drain()) == 2

    def test_reset_signal_reopens_gate(self, host):
        engine = _engine(host)
        for _ in range(3):
            _press(engine, host, "j")
        host.reset_signal.set()
        assert _press(engine, host, "j") == ""
        assert len(host.drain()) == 2

    def test_timeout_allows_again(self, host):
        engine = _engine(host)
        for _ in range(3):
            _press(engine, host, "j")
        assert _press(engine, host, "j", gap=1.5) == "j"

    def test_resetting_key(self, host):
        engine = _engine(host)
        _press(engine, host, "j")
        _press(engine, host, "j")
        assert _press(engine, host, "d") == "d"
        assert _press(engine, host, "j") == "j"


class TestHandleHintMode:
    def test_over_limit_passes_but_notifies(self, host):
        engine = _engine(host, policy=RestrictionPolicy(max_count=2, max_time=1.0, restriction_mode="hint"))
        assert [_press(engine, host, "j") for _ in range(4)] == ["j"] * 4
        assert len(host.drain()) == 1

    def test_count_not_advanced_when_over_limit(self, host):
        engine = _engine(host, policy=RestrictionPolicy(max_count=2, max_time=1.0, restriction_mode="hint"))
        for _ in range(4):
            _press(engine, host, "j")
        assert engine.machine.state.key_count == 2


class TestHandleDisabledKeys:
    def test_disabled_key_swallowed(self, host):
        engine = _engine(host)
        assert _press(engine, host, "<Up>") == ""
        assert _press(engine, host, "<Up>") == ""
        assert host.drain() == ["The <Up> key is disabled!"]

    def test_disabled_beats_restricted(self, host):
        engine = _engine(host)
        _press(engine, host, "<Up>")
        assert engine.machine.state.key_count == 0


class TestHandleBypass:
    def test_context_disabled_passes_everything(self, host):
        engine = _engine(host)
        host.context_disabled = True
        assert [_press(engine, host, "j") for _ in range(5)] == ["j"] * 5
        assert _press(engine, host, "<Up>") == "<Up>"
        assert engine.machine.state.key_count == 0
        assert host.drain() == []

    def test_engine_disabled_passes_everything(self, host):
        engine = _engine(host, enabled=False)
        assert [_press(engine, host, "j") for _ in range(5)] == ["j"] * 5
        assert engine.machine.state.key_count == 0


class TestResolve:
    def test_binding_rhs_used(self, host):
        host.bindings = {MODE_NORMAL: {"j": Binding(lhs="j", rhs="gj")}}
        engine = _engine(host)
        assert _press(engine, host, "j") == "gj"

    def test_bindings_looked_up_by_mode(self, host):
        host.bindings = {"x": {"j": Binding(lhs="j", rhs="gj")}}
        engine = _engine(host)
        assert _press(engine, host, "j") == "j"
        host.mode = "x"
        assert _press(engine, host, "j") == "gj"

    def test_failed_callback_falls_back_and_retries_once(self, host):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("not yet")
            return "j"

        host.bindings = {MODE_NORMAL: {"j": Binding(lhs="j", callback=flaky)}}
        engine = _engine(host)
        assert _press(engine, host, "j") == "j"
        assert len(calls) == 1
        host.tasks.run_pending()
        assert len(calls) == 2
        host.tasks.run_pending()
        assert len(calls) == 2

    def test_retry_failure_is_contained(self, host):
        def broken():
            raise RuntimeError("never")

        host.bindings = {MODE_NORMAL: {"j": Binding(lhs="j", callback=broken)}}
        engine = _engine(host)
        assert _press(engine, host, "j") == "j"
        host.tasks.run_pending()
        assert host.tasks.pending == 0


# ------------------------------------------------------------------
# on_every_key()
# ------------------------------------------------------------------

class TestHints:
    def test_hint_notified(self, host):
        engine = _engine(host)
        _type(engine, host, "xi")
        assert host.drain() == ["Use s instead of xi"]

    def test_longest_hint_wins(self, host):
        engine = _engine(host)
        _type(engine, host, "ddd")
        assert host.drain() == ["two d", "three d"]

    def test_hints_not_gated_by_restriction(self, host):
        engine = _engine(host)
        for _ in range(3):
            _press(engine, host, "j")
        _type(engine, host, "xi")
        assert "Use s instead of xi" in host.drain()

    def test_broken_user_hint_does_not_escape(self, host):
        engine = HabitEngine.from_config(
            {"hints": {"zz": {"message": "Use {x} instead", "length": 2}}},
            notify=host.notify,
            tasks=host.tasks,
            clock=host.clock,
        )
        engine.enable()
        _type(engine, host, "zzxi")
        assert host.drain() == ["Use s instead of xi"]

    def test_hint_setting_off(self, host):
        engine = _engine(host, hint=False)
        _type(engine, host, "xi")
        assert host.drain() == []
        assert engine.matcher.buffer.content == ""

    def test_disabled_engine_ignores_keys(self, host):
        engine = _engine(host, enabled=False)
        _type(engine, host, "xi")
        assert engine.matcher.buffer.content == ""

    def test_context_disabled_ignores_keys(self, host):
        engine = _engine(host)
        host.context_disabled = True
        _type(engine, host, "xi")
        assert engine.matcher.buffer.content == ""

    @pytest.mark.parametrize("mode", [MODE_CMDLINE, MODE_REPLACE])
    def test_excluded_modes(self, host, mode):
        engine = _engine(host, force_exit_insert_mode=True)
        _type(engine, host, "xi", mode=mode)
        assert engine.matcher.buffer.content == ""
        assert not engine.idle_timer.active

    def test_insert_mode_adds_nothing_to_buffer(self, host):
        engine = _engine(host)
        _type(engine, host, "xi", mode=MODE_INSERT)
        assert engine.matcher.buffer.content == ""
        assert host.drain() == []

    def test_refeed_discarded(self, host):
        engine = _engine(host)
        _type(engine, host, "x")
        _type(engine, host, "i", gap=0.002)
        assert host.drain() == []
        assert engine.matcher.buffer.content == "x"

    def test_empty_key_ignored(self, host):
        engine = _engine(host)
        engine.on_every_key(KeyStroke(raw="", key=""))
        assert engine.matcher.buffer.last_event_time == float("-inf")


# ------------------------------------------------------------------
# Insert-mode idle timer
# ------------------------------------------------------------------

class TestIdleTimer:
    def test_not_armed_without_policy(self, host):
        engine = _engine(host)
        engine.on_insert_enter()
        assert not engine.idle_timer.active

    def test_fires_after_idle(self, host):
        engine = _engine(host, force_exit_insert_mode=True, max_insert_idle=5.0)
        engine.on_insert_enter()
        host.clock.advance(5.1)
        host.tasks.run_pending()
        assert host.stopped_insert == 1

    def test_insert_keys_rearm(self, host):
        engine = _engine(host, force_exit_insert_mode=True, max_insert_idle=5.0)
        engine.on_insert_enter()
        host.clock.advance(4.0)
        _type(engine, host, "a", mode=MODE_INSERT, gap=0.0)
        host.clock.advance(4.0)
        host.tasks.run_pending()
        assert host.stopped_insert == 0
        host.clock.advance(1.5)
        host.tasks.run_pending()
        assert host.stopped_insert == 1

    def test_insert_keys_rearm_even_with_hints_off(self, host):
        engine = _engine(host, hint=False, force_exit_insert_mode=True)
        _type(engine, host, "a", mode=MODE_INSERT)
        assert engine.idle_timer.active

    def test_not_armed_in_disabled_context(self, host):
        engine = _engine(host, force_exit_insert_mode=True)
        host.context_disabled = True
        engine.on_insert_enter()
        assert not engine.idle_timer.active

    def test_disable_cancels_timer(self, host):
        engine = _engine(host, force_exit_insert_mode=True)
        engine.on_insert_enter()
        engine.disable()
        host.clock.advance(10.0)
        host.tasks.run_pending()
        assert host.stopped_insert == 0

    def test_only_one_live_timer(self, host):
        engine = _engine(host, force_exit_insert_mode=True)
        for _ in range(3):
            engine.on_insert_enter()
        assert host.tasks.pending == 1
