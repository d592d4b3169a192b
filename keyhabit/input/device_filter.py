"""Which input devices keyhabit listens to, and in what role.

Keyboards are grabbed and their keys re-emitted; pointers are only
watched for button presses. Virtual devices are skipped, our own
virtual keyboard above all, or re-emitted keys would be read back.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

KEYBOARD = "keyboard"
POINTER = "mouse"

# evdev codes, kept local so this module imports without evdev
EV_KEY = 1
KEY_A = 30
BTN_LEFT, BTN_RIGHT, BTN_MIDDLE = 0x110, 0x111, 0x112
POINTER_BUTTONS = frozenset({BTN_LEFT, BTN_RIGHT, BTN_MIDDLE})

# Name fragments that identify devices to exclude
EXCLUDE_NAME_FRAGMENTS = ("virtual", "uinput")


def should_include_device(device_name: str, own_name: Optional[str] = None) -> bool:
    """Return True if the device is a physical one worth monitoring."""
    if own_name and own_name in device_name:
        return False
    lower = device_name.lower()
    return not any(fragment in lower for fragment in EXCLUDE_NAME_FRAGMENTS)


def device_role(
    device_name: str,
    capabilities: Mapping[int, Iterable[int]],
    own_name: Optional[str] = None,
) -> Optional[str]:
    """Return ``KEYBOARD``, ``POINTER`` or None for devices to skip.

    A device with letter keys is a keyboard even if it also reports
    buttons (combined receivers do).
    """
    if not should_include_device(device_name, own_name):
        return None
    keys = set(capabilities.get(EV_KEY, ()))
    if KEY_A in keys:
        return KEYBOARD
    if keys & POINTER_BUTTONS:
        return POINTER
    return None
