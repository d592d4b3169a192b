"""Engine state records and the notification gate."""

from __future__ import annotations

from dataclasses import dataclass

# Editor-style mode names reported by the host
MODE_NORMAL = "n"
MODE_INSERT = "i"
MODE_CMDLINE = "c"
MODE_REPLACE = "R"


@dataclass
class RestrictionState:
    key_count: int = 0
    last_time: float = 0.0
    last_key: str = ""


@dataclass
class HintBuffer:
    content: str = ""
    last_key: str = ""
    # -inf so the very first key is never mistaken for a re-feed
    last_event_time: float = float("-inf")


class NotificationGate:
    """Lets one notification through, then stays shut until reset."""

    def __init__(self) -> None:
        self.suppressed = False

    def try_acquire(self) -> bool:
        """Return True (and close the gate) if a notification may be sent."""
        if self.suppressed:
            return False
        self.suppressed = True
        return True

    def reset(self) -> None:
        self.suppressed = False


class ResetSignal:
    """One-shot flag raised by the host (cursor moved, mouse clicked)."""

    def __init__(self) -> None:
        self._pending = False

    def set(self) -> None:
        self._pending = True

    def consume(self) -> bool:
        """Return True once per ``set()``."""
        pending = self._pending
        self._pending = False
        return pending

    def __call__(self) -> bool:
        return self.consume()
