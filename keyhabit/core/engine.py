"""HabitEngine — the facade hosts talk to.

Routes each key through the restriction state machine (``handle``) and,
independently, through the hint matcher (``on_every_key``). All
notifications and handler retries go through the task queue, which the
host drains after each event.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Optional

import keyhabit.log  # registers TRACE level and logger.trace()
from keyhabit.core.actions import Binding, resolve_action
from keyhabit.core.classifier import KeyClassTable
from keyhabit.core.events import KeyStroke
from keyhabit.core.hints import DEFAULT_REFEED_THRESHOLD, HintMatcher, HintPattern, hints_from_config
from keyhabit.core.restriction import (
    RestrictionPolicy,
    RestrictionStateMachine,
    Verdict,
    disabled_message,
    too_soon_message,
)
from keyhabit.core.scheduler import IdleTimer, TaskQueue
from keyhabit.core.states import MODE_CMDLINE, MODE_INSERT, MODE_NORMAL, MODE_REPLACE, NotificationGate

logger = logging.getLogger(__name__)

# Modes the hint observer ignores entirely
HINT_EXCLUDED_MODES = frozenset({MODE_CMDLINE, MODE_REPLACE})


@dataclass(frozen=True)
class EngineSettings:
    notification: bool = True
    hint: bool = True
    force_exit_insert_mode: bool = False
    max_insert_idle: float = 5.0            # seconds
    refeed_threshold: float = DEFAULT_REFEED_THRESHOLD

    @classmethod
    def from_config(cls, conf: Mapping[str, object]) -> "EngineSettings":
        return cls(
            notification=bool(conf.get("notification", True)),
            hint=bool(conf.get("hint", True)),
            force_exit_insert_mode=bool(conf.get("force_exit_insert_mode", False)),
            max_insert_idle=float(conf.get("max_insert_idle_ms", 5000)) / 1000.0,
            refeed_threshold=float(conf.get("refeed_threshold_ms", 10)) / 1000.0,
        )


def _never() -> bool:
    return False


def _normal_mode() -> str:
    return MODE_NORMAL


def _no_bindings(mode: str) -> Mapping[str, Binding]:
    return {}


class HabitEngine:
    """Repetition restriction plus sequence hints over one key stream.

    Collaborators:
        notify:              delivers a message to the user
        is_context_disabled: True when the current context bypasses all policy
        bindings:            mode -> {key: Binding}, the host's normal bindings
        mode:                current editor-style mode name
        stop_insert:         forces the host out of insert mode
        reset_signal:        True when the notification gate should reopen
        clock:               monotonic seconds
    """

    def __init__(
        self,
        tables: KeyClassTable,
        hints: Iterable[HintPattern] = (),
        *,
        notify: Callable[[str], None],
        policy: Optional[RestrictionPolicy] = None,
        settings: Optional[EngineSettings] = None,
        tasks: Optional[TaskQueue] = None,
        clock: Callable[[], float] = time.monotonic,
        is_context_disabled: Callable[[], bool] = _never,
        bindings: Callable[[str], Mapping[str, Binding]] = _no_bindings,
        mode: Callable[[], str] = _normal_mode,
        stop_insert: Optional[Callable[[], None]] = None,
        reset_signal: Optional[Callable[[], bool]] = None,
    ):
        self.tables = tables
        self.policy = policy or RestrictionPolicy()
        self.settings = settings or EngineSettings()
        self.clock = clock
        self.tasks = tasks or TaskQueue(clock=clock)
        self.notify = notify
        self.is_context_disabled = is_context_disabled
        self.bindings = bindings
        self.mode = mode
        self.stop_insert = stop_insert
        self.reset_signal = reset_signal

        self.gate = NotificationGate()
        self.machine = RestrictionStateMachine(self.policy, tables, self.gate, start_time=clock())
        self.matcher = HintMatcher(hints, refeed_threshold=self.settings.refeed_threshold)
        self.idle_timer = IdleTimer(self.tasks, self._on_idle)
        self.is_enabled = False

    @classmethod
    def from_config(cls, conf: Mapping[str, object], **collaborators) -> "HabitEngine":
        """Build an engine from a validated config dict."""
        return cls(
            KeyClassTable.from_config(conf),
            hints_from_config(conf.get("hints")),
            policy=RestrictionPolicy.from_config(conf),
            settings=EngineSettings.from_config(conf),
            **collaborators,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def enable(self) -> None:
        if self.is_enabled:
            return
        self.is_enabled = True
        logger.info("Engine enabled (%d bound keys)", len(self.bound_keys))

    def disable(self) -> None:
        if not self.is_enabled:
            return
        self.is_enabled = False
        self.idle_timer.cancel()
        # keys typed while disabled must not complete a sequence later
        self.matcher.reset()
        logger.info("Engine disabled")

    def toggle(self) -> bool:
        """Flip enabled state; return the new state."""
        (self.disable if self.is_enabled else self.enable)()
        return self.is_enabled

    @property
    def bound_keys(self) -> frozenset:
        """Keys the host should route through :meth:`handle`."""
        return self.tables.bound_keys

    # ------------------------------------------------------------------
    # Restriction path
    # ------------------------------------------------------------------

    def handle(self, key: str) -> str:
        """Return the action for *key*; ``""`` swallows the keystroke."""
        if not self.is_enabled or self.is_context_disabled():
            return self._resolve(key)

        now = self.clock()
        if self.reset_signal is not None and self.reset_signal():
            self.gate.reset()

        verdict = self.machine.press(key, now)

        if verdict is Verdict.DISABLED:
            if self.settings.notification and self.gate.try_acquire():
                self._notify(disabled_message(key))
            return ""

        if verdict is Verdict.DENIED:
            if self.settings.notification and self.gate.try_acquire():
                self._notify(too_soon_message(key))
            if self.policy.advisory:
                return self._resolve(key)
            return ""

        return self._resolve(key)

    def _resolve(self, key: str) -> str:
        result = resolve_action(key, self.bindings(self.mode()))
        if result.retry is not None:
            self.tasks.schedule(result.retry)
        return result.keys

    # ------------------------------------------------------------------
    # Hint path
    # ------------------------------------------------------------------

    def on_every_key(self, stroke: KeyStroke) -> None:
        """Observe one key for hint detection. Never alters the key."""
        if not stroke.key or not self.is_enabled or self.is_context_disabled():
            return

        if stroke.mode in HINT_EXCLUDED_MODES:
            return

        if stroke.mode == MODE_INSERT:
            self._reset_idle_timer()
            return

        if not self.settings.hint:
            return

        message = self.matcher.feed(stroke.raw, stroke.key, self.clock())
        if message:
            self._notify(message)

    # ------------------------------------------------------------------
    # Insert-mode idle timer
    # ------------------------------------------------------------------

    def on_insert_enter(self) -> None:
        self._reset_idle_timer()

    def _reset_idle_timer(self) -> None:
        self.idle_timer.cancel()
        if (
            self.is_enabled
            and self.settings.force_exit_insert_mode
            and not self.is_context_disabled()
        ):
            self.idle_timer.arm(self.settings.max_insert_idle)

    def _on_idle(self) -> None:
        if self.stop_insert is not None:
            logger.debug("Insert mode idle, leaving it")
            self.stop_insert()

    # ------------------------------------------------------------------

    def _notify(self, message: str) -> None:
        logger.info("%s", message)
        self.tasks.schedule(lambda: self.notify(message))
