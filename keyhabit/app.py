"""KeyHabitApp — desktop daemon around the habit engine."""

from __future__ import annotations

import logging
from typing import Any, Optional

import keyhabit.log  # registers TRACE level and logger.trace()
from keyhabit.config import ConfigManager
from keyhabit.core.engine import HabitEngine
from keyhabit.core.event_bus import EventBus
from keyhabit.core.events import Event, EventType, KeyEventData, KeyStroke, NotificationData
from keyhabit.core.scheduler import TaskQueue
from keyhabit.core.states import MODE_NORMAL, ResetSignal
from keyhabit.input.device_filter import KEYBOARD, POINTER_BUTTONS
from keyhabit.input.key_mapper import KeyMapper
from keyhabit.platform.system_adapter import Notification
from keyhabit.platform.window_context import match_app

logger = logging.getLogger(__name__)

# evdev constant (avoid hard dependency on evdev at import time)
EV_KEY = 1

# NotificationData.source of the daemon's own on/off notices
SOURCE_APP = "app"

# Upper bound on how long the loop sleeps when no timer is pending
POLL_INTERVAL = 0.5


class KeyHabitApp:
    """Grabs keyboards, routes keys through the engine, re-emits the rest.

    ``_init_platform()`` is separated from ``__init__`` so that tests
    can inject mocks without touching real X11 / evdev resources.
    """

    def __init__(
        self,
        debug: bool = False,
        config_path: str | None = None,
        start_disabled: bool = False,
        config: ConfigManager | None = None,
    ):
        self.debug = debug
        self.start_disabled = start_disabled
        self._running = False

        # Configuration
        if config is None:
            config = ConfigManager(config_path=config_path)
        self.config = config
        self.toggle_key = self.config.get('toggle_key')

        # Core components
        self.event_bus = EventBus()
        self.tasks = TaskQueue()
        self.gate_reset = ResetSignal()
        self.key_mapper = KeyMapper()
        self.engine = HabitEngine.from_config(
            self.config.get_all(),
            notify=self._publish_notification,
            tasks=self.tasks,
            is_context_disabled=self.is_context_disabled,
            reset_signal=self.gate_reset,
        )

        # Platform adapters, created by _init_platform()
        self.system = None
        self.window_context = None
        self.virtual_kb = None
        self.device_manager = None

        # keycodes whose press was withheld; their release is withheld too
        self._suppressed: set[int] = set()
        # keycodes currently held down on the virtual keyboard
        self._forwarded: set[int] = set()
        # disabled-app answer for the key being processed; None outside a key
        self._context_disabled: Optional[bool] = None

        self.event_bus.subscribe(EventType.MOUSE_CLICK, self._on_mouse_click)
        self.event_bus.subscribe(EventType.NOTIFICATION, self._on_notification)

    # ------------------------------------------------------------------
    # Platform initialisation (lazy, for testability)
    # ------------------------------------------------------------------

    def _init_platform(self) -> None:
        """Initialise platform components.

        Separated from ``__init__`` so that tests can substitute mocks
        without requiring real X11 / evdev.
        """
        from keyhabit.platform.subprocess_impl import SubprocessSystemAdapter
        from keyhabit.platform.window_context import X11WindowContext
        from keyhabit.input.virtual_keyboard import VirtualKeyboard
        from keyhabit.input.device_manager import DeviceManager

        self.system = SubprocessSystemAdapter()
        self.window_context = X11WindowContext()

        self.virtual_kb = VirtualKeyboard()
        if not self.virtual_kb.is_open:
            raise RuntimeError("uinput unavailable: cannot forward keys from grabbed keyboards")

        self.device_manager = DeviceManager(grab_keyboards=True)
        self.device_manager.set_virtual_kb_name(VirtualKeyboard.DEVICE_NAME)

    # ------------------------------------------------------------------
    # Collaborators handed to the engine
    # ------------------------------------------------------------------

    def is_context_disabled(self) -> bool:
        """True when the focused window is in ``disabled_apps``.

        While a key is being processed the X11 lookup is done once and
        reused by both engine paths.
        """
        if self._context_disabled is None:
            return self._lookup_context_disabled()
        return self._context_disabled

    def _lookup_context_disabled(self) -> bool:
        if self.window_context is None:
            return False
        wm_class = self.window_context.active_wm_class()
        return match_app(wm_class, self.config.get('disabled_apps', []))

    def _publish_notification(self, message: str, source: str = "engine") -> None:
        self.event_bus.emit(EventType.NOTIFICATION, NotificationData(message=message, source=source))

    def _on_notification(self, event: Event) -> None:
        if self.system is None:
            return
        data = event.data
        urgency = "normal" if data.source == SOURCE_APP else "low"
        self.system.notify(Notification(data.message, urgency=urgency))

    def _on_mouse_click(self, event: Event) -> None:
        self.gate_reset.set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def toggle(self) -> bool:
        enabled = self.engine.toggle()
        self.event_bus.emit(EventType.ENGINE_TOGGLED, enabled)
        self._publish_notification("enabled" if enabled else "disabled", source=SOURCE_APP)
        return enabled

    def stop(self) -> None:
        self._running = False

    def run(self) -> None:
        """Main loop: read devices, route keys, drain deferred tasks."""
        self._init_platform()
        if self.config.get('enabled', True) and not self.start_disabled:
            self.engine.enable()

        self.device_manager.scan_devices()
        if self.device_manager.count(KEYBOARD) == 0:
            logger.warning("No keyboard grabbed, check permissions on /dev/input")

        self._running = True
        try:
            while self._running:
                deadline = self.tasks.next_deadline()
                timeout = POLL_INTERVAL if deadline is None else min(deadline, POLL_INTERVAL)
                for device, event in self.device_manager.get_events(timeout=timeout):
                    self.handle_raw_event(event, self.device_manager.is_keyboard(device))
                self.tasks.run_pending()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Release held keys and free devices."""
        self._running = False
        self.engine.disable()
        self.tasks.clear()
        if self.virtual_kb is not None:
            for code in sorted(self._forwarded):
                self.virtual_kb.release(code)
            self._forwarded.clear()
        self.key_mapper.reset()
        if self.device_manager is not None:
            self.device_manager.close()
        if self.virtual_kb is not None:
            self.virtual_kb.close()
        if self.window_context is not None:
            self.window_context.close()
        self.event_bus.emit(EventType.APP_QUIT)
        logger.info("keyhabit stopped")

    # ------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------

    def handle_raw_event(self, event: Any, from_keyboard: bool) -> None:
        """Route one evdev event from a monitored device."""
        if not from_keyboard:
            if event.type == EV_KEY and event.code in POINTER_BUTTONS and event.value == 1:
                self.event_bus.emit(EventType.MOUSE_CLICK, KeyEventData(code=event.code, value=event.value))
            return

        if event.type != EV_KEY:
            self._forward(event)
            return

        try:
            self.process_key(event)
        finally:
            self._context_disabled = None
        self.tasks.run_pending()

    def process_key(self, event: Any) -> bool:
        """Decide the fate of one keyboard EV_KEY event. Returns True if forwarded."""
        code, value = event.code, event.value

        if self.key_mapper.update_modifiers(code, value):
            self._forward(event)
            return True

        if value == 0:
            if code in self._suppressed:
                self._suppressed.discard(code)
                return False
            self._forward(event)
            return True

        raw, key = self.key_mapper.translate(code)
        logger.trace("key %d (%s) -> %r", code, "press" if value == 1 else "repeat", key)  # type: ignore[attr-defined]

        if self.toggle_key and key == self.toggle_key:
            if value == 1:
                self.toggle()
            self._suppressed.add(code)
            return False

        if self.engine.is_enabled:
            self._context_disabled = self._lookup_context_disabled()
        self.engine.on_every_key(KeyStroke(raw=raw, key=key, mode=MODE_NORMAL))

        # "<" is bound under its literal name, not "<lt>"
        bound = raw if raw == "<" else key
        action = key
        if bound and self.engine.is_enabled and bound in self.engine.bound_keys:
            action = self.engine.handle(bound)

        if action == "":
            if code not in self._forwarded:
                self._suppressed.add(code)
            return False

        if code in self._suppressed:
            # The press was withheld; this repeat is the first the desktop sees
            self._suppressed.discard(code)
            self._write_key(code, 1)
            return True

        self._forward(event)
        return True

    def _forward(self, event: Any) -> None:
        if event.type == EV_KEY:
            if event.value == 0:
                self._forwarded.discard(event.code)
            else:
                self._forwarded.add(event.code)
        if self.virtual_kb is not None:
            self.virtual_kb.forward(event)

    def _write_key(self, code: int, value: int) -> None:
        if value == 0:
            self._forwarded.discard(code)
        else:
            self._forwarded.add(code)
        if self.virtual_kb is not None:
            self.virtual_kb.write_key(code, value)
