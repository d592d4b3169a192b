"""SubprocessSystemAdapter — notifications through ``notify-send``."""

from __future__ import annotations

import logging
import subprocess

from keyhabit.platform.system_adapter import CommandResult, ISystemAdapter, Notification

logger = logging.getLogger(__name__)


class SubprocessSystemAdapter(ISystemAdapter):
    """Executes real subprocess calls."""

    def __init__(self) -> None:
        # Set once notify-send turns out to be missing; no point retrying per key
        self.notify_unavailable = False

    def run_command(self, args: list[str], timeout: float = 1.0) -> CommandResult:
        try:
            r = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
            return CommandResult(stdout=r.stdout, stderr=r.stderr, returncode=r.returncode)
        except subprocess.TimeoutExpired:
            return CommandResult(stdout="", stderr="timeout", returncode=-1)
        except FileNotFoundError as e:
            return CommandResult(stdout="", stderr=str(e), returncode=127)
        except OSError as e:
            return CommandResult(stdout="", stderr=str(e), returncode=-1)

    def notify(self, notification: Notification) -> bool:
        if self.notify_unavailable:
            return False
        result = self.run_command(notification.notify_send_args(), timeout=1.0)
        if result.returncode == 127:
            self.notify_unavailable = True
            logger.warning("notify-send not found, desktop notifications disabled")
            return False
        if not result.ok:
            logger.debug("notify-send failed (%d): %s", result.returncode, result.stderr.strip())
        return result.ok
