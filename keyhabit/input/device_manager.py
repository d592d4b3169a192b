"""DeviceManager — opens, grabs and reads evdev input devices.

Keyboards are grabbed so that keys can be withheld from the desktop;
everything read from them must be forwarded through the virtual keyboard.
Mice are only listened to (their clicks reopen the notification gate).

Devices are scanned once at startup and read from the daemon's own loop,
so nothing here is shared between threads.
"""

from __future__ import annotations

import logging
import selectors
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

try:
    import evdev

    EVDEV_AVAILABLE = True
except ImportError:  # pragma: no cover
    evdev = None  # type: ignore[assignment]
    EVDEV_AVAILABLE = False

import keyhabit.log  # registers TRACE level and logger.trace()
from keyhabit.input.device_filter import KEYBOARD, device_role

logger = logging.getLogger(__name__)


@dataclass
class TrackedDevice:
    device: Any
    role: str
    grabbed: bool = False


class DeviceManager:
    """Physical keyboards and mice the daemon reads from."""

    def __init__(self, grab_keyboards: bool = True):
        self.grab_keyboards = grab_keyboards
        self.devices: Dict[str, TrackedDevice] = {}
        self.selector = selectors.DefaultSelector()
        self._virtual_kb_name: Optional[str] = None

    def set_virtual_kb_name(self, name: str) -> None:
        """Never pick up our own uinput device; its keys would loop back."""
        self._virtual_kb_name = name

    @property
    def device_count(self) -> int:
        return len(self.devices)

    def count(self, role: str) -> int:
        return sum(1 for tracked in self.devices.values() if tracked.role == role)

    def is_keyboard(self, device: Any) -> bool:
        tracked = self.devices.get(getattr(device, "path", None))
        return tracked is not None and tracked.role == KEYBOARD

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def scan_devices(self) -> int:
        """Open every suitable ``/dev/input`` device; return how many were added."""
        if not EVDEV_AVAILABLE:  # pragma: no cover
            logger.warning("evdev not available, cannot scan devices")
            return 0
        return sum(1 for path in evdev.list_devices() if self._add(path))

    def _add(self, path: str) -> bool:
        if path in self.devices:
            return False
        try:
            device = evdev.InputDevice(path)
        except OSError as exc:
            logger.warning("Cannot open %s: %s", path, exc)
            return False

        role = device_role(device.name, device.capabilities(), self._virtual_kb_name)
        if role is None:
            logger.trace("Skipping %s (%s)", device.name, path)  # type: ignore[attr-defined]
            device.close()
            return False

        tracked = TrackedDevice(device, role)
        if role == KEYBOARD and self.grab_keyboards:
            try:
                device.grab()
            except OSError as exc:
                # Without the grab its keys reach the desktop twice
                logger.warning("Cannot grab %s (%s): %s; skipping it", device.name, path, exc)
                device.close()
                return False
            tracked.grabbed = True

        self.devices[path] = tracked
        self.selector.register(device, selectors.EVENT_READ)
        logger.info("Device added: %s (%s, %s%s)", device.name, path, role,
                    ", grabbed" if tracked.grabbed else "")
        return True

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_device(self, path: str) -> bool:
        tracked = self.devices.pop(path, None)
        if tracked is None:
            return False
        self._release(tracked)
        logger.info("Device removed: %s (%s)", getattr(tracked.device, "name", "unknown"), path)
        return True

    def _release(self, tracked: TrackedDevice) -> None:
        device = tracked.device
        try:
            self.selector.unregister(device)
        except (KeyError, ValueError):
            pass
        if tracked.grabbed:
            try:
                device.ungrab()
            except OSError:
                pass
            tracked.grabbed = False
        try:
            device.close()
        except OSError:
            pass

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_events(self, timeout: Optional[float] = 0.1) -> Iterator[tuple]:
        """Yield ``(device, event)`` from every ready device.

        A device that fails to read (unplugged, usually) is dropped.
        """
        for key, _mask in self.selector.select(timeout=timeout):
            device = key.fileobj
            try:
                for event in device.read():
                    yield device, event
            except OSError as exc:
                logger.warning("Read error on %s: %s", device.name, exc)
                self.remove_device(device.path)

    def close(self) -> None:
        """Ungrab and close everything."""
        for path in list(self.devices):
            self._release(self.devices.pop(path))
        self.selector.close()
