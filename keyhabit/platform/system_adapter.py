"""Desktop side of notifications: the message record and the adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

APP_NAME = "keyhabit"


@dataclass(frozen=True)
class Notification:
    """One popup. Habit warnings are low urgency and short-lived."""
    body: str
    summary: str = APP_NAME
    urgency: str = "low"
    expire_ms: int = 3000

    def notify_send_args(self) -> list[str]:
        return [
            "notify-send",
            f"--app-name={APP_NAME}",
            f"--urgency={self.urgency}",
            f"--expire-time={self.expire_ms}",
            self.summary,
            self.body,
        ]


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ISystemAdapter(ABC):
    @abstractmethod
    def run_command(self, args: list[str], timeout: float = 1.0) -> CommandResult: ...

    @abstractmethod
    def notify(self, notification: Notification) -> bool:
        """Show *notification*; return False if the desktop refused it."""
