"""Active window lookup (python-xlib) and the disabled-app matcher."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable

import keyhabit.log  # registers TRACE level and logger.trace()

logger = logging.getLogger(__name__)


def match_app(wm_class: str, patterns: Iterable[str]) -> bool:
    """True if *wm_class* matches any pattern.

    A pattern ending in ``*`` matches by prefix, any other pattern must
    match exactly.
    """
    if not wm_class:
        return False
    for pattern in patterns:
        if pattern.endswith("*"):
            if wm_class.startswith(pattern[:-1]):
                return True
        elif wm_class == pattern:
            return True
    return False


class IWindowContext(ABC):
    @abstractmethod
    def active_wm_class(self) -> str:
        """WM_CLASS class name of the focused window, or ``""``."""

    def close(self) -> None:
        pass


class X11WindowContext(IWindowContext):
    """Reads ``_NET_ACTIVE_WINDOW`` from the root window."""

    def __init__(self) -> None:
        self._display: Any = None
        self._root: Any = None
        self._active_atom: Any = None
        self._open()

    def _open(self) -> None:
        try:
            from Xlib import display as xdisplay

            self._display = xdisplay.Display()
            self._root = self._display.screen().root
            self._active_atom = self._display.intern_atom("_NET_ACTIVE_WINDOW")
        except Exception as exc:
            logger.warning("X11 display unavailable, app matching disabled: %s", exc)
            self._display = None

    def active_wm_class(self) -> str:
        if self._display is None:
            return ""
        try:
            from Xlib import X

            prop = self._root.get_full_property(self._active_atom, X.AnyPropertyType)
            if not prop or not prop.value:
                return ""
            window = self._display.create_resource_object("window", prop.value[0])
            wm_class = window.get_wm_class()
        except Exception as exc:
            logger.trace("WM_CLASS lookup failed: %s", exc)  # type: ignore[attr-defined]
            return ""
        if not wm_class:
            return ""
        # (instance, class)
        return wm_class[1] or wm_class[0] or ""

    def close(self) -> None:
        if self._display is not None:
            try:
                self._display.close()
            except Exception:
                pass
            self._display = None
