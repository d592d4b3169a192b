"""Typed event definitions (dataclasses)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any


class EventType(Enum):
    # Input events
    KEY_PRESS = auto()
    MOUSE_CLICK = auto()
    # Engine output
    NOTIFICATION = auto()
    ENGINE_TOGGLED = auto()
    # App lifecycle
    APP_QUIT = auto()


@dataclass
class Event:
    type: EventType
    data: Any
    timestamp: float


@dataclass
class KeyEventData:
    code: int
    value: int          # 0=release, 1=press, 2=repeat
    device_name: str = ""


@dataclass(frozen=True)
class KeyStroke:
    """One key as seen by the hint observer.

    ``raw`` is the untransformed text the key produced, ``key`` its
    symbolic name (``"<Esc>"``, ``"<lt>"``, ``"j"``).
    """
    raw: str
    key: str
    mode: str = "n"


@dataclass
class NotificationData:
    message: str
    source: str = "engine"
