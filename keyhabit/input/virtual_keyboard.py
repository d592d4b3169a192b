"""VirtualKeyboard — uinput device that re-emits the keys we let through."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class VirtualKeyboard:
    """Creates and manages a UInput virtual keyboard device."""

    DEVICE_NAME = "keyhabit virtual keyboard"

    def __init__(self) -> None:
        self._uinput: Any = None
        self._open()

    def _open(self) -> None:
        try:
            import evdev
            self._uinput = evdev.UInput(name=self.DEVICE_NAME)
        except Exception as e:
            logger.warning("Cannot create UInput device: %s", e)

    @property
    def is_open(self) -> bool:
        return self._uinput is not None

    def forward(self, event: Any) -> None:
        """Re-emit an event read from a grabbed device, unchanged.

        SYN events from the source device arrive in the stream too, so
        no extra syn() is issued here.
        """
        self._write(event.type, event.code, event.value)

    def release(self, code: int) -> None:
        """Emit a key release followed by a sync."""
        self.write_key(code, 0)

    def write_key(self, code: int, value: int) -> None:
        """Emit one EV_KEY event followed by a sync."""
        self._write(1, code, value)  # EV_KEY
        if self._uinput is not None:
            try:
                self._uinput.syn()
            except OSError as e:
                logger.debug("VirtualKeyboard syn error: %s", e)

    def _write(self, etype: int, code: int, value: int) -> None:
        if self._uinput is None:
            return
        try:
            self._uinput.write(etype, code, value)
        except OSError as e:
            logger.debug("VirtualKeyboard write error: %s", e)

    def close(self) -> None:
        if self._uinput is not None:
            try:
                self._uinput.close()
            except OSError:
                pass
            self._uinput = None
