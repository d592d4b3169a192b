"""keycode -> symbolic key name mapping (evdev keycodes, US layout)."""

from __future__ import annotations

from typing import Tuple

# Basic QWERTY keycode → char map (evdev keycodes)
KEYCODE_TO_CHAR_EN: dict[int, str] = {
    2: "1", 3: "2", 4: "3", 5: "4", 6: "5", 7: "6", 8: "7", 9: "8", 10: "9", 11: "0",
    12: "-", 13: "=",
    16: "q", 17: "w", 18: "e", 19: "r", 20: "t", 21: "y", 22: "u", 23: "i", 24: "o",
    25: "p", 26: "[", 27: "]",
    30: "a", 31: "s", 32: "d", 33: "f", 34: "g", 35: "h", 36: "j", 37: "k", 38: "l",
    39: ";", 40: "'", 41: "`", 43: "\\",
    44: "z", 45: "x", 46: "c", 47: "v", 48: "b", 49: "n", 50: "m", 51: ",", 52: ".", 53: "/",
    57: " ",
}

SHIFTED_CHARS: dict[str, str] = {
    "1": "!", "2": "@", "3": "#", "4": "$", "5": "%", "6": "^", "7": "&", "8": "*",
    "9": "(", "0": ")", "-": "_", "=": "+", "[": "{", "]": "}", ";": ":", "'": '"',
    "`": "~", "\\": "|", ",": "<", ".": ">", "/": "?",
}

# Keys without a printable character, by their symbolic name body
SPECIAL_KEYS: dict[int, str] = {
    1: "Esc", 14: "BS", 15: "Tab", 28: "CR",
    103: "Up", 108: "Down", 105: "Left", 106: "Right",
    102: "Home", 107: "End", 104: "PageUp", 109: "PageDown",
    110: "Insert", 111: "Del", 119: "Pause",
    59: "F1", 60: "F2", 61: "F3", 62: "F4", 63: "F5", 64: "F6",
    65: "F7", 66: "F8", 67: "F9", 68: "F10", 87: "F11", 88: "F12",
}

# Printable characters that have a symbolic name of their own
NAMED_CHARS: dict[str, str] = {
    " ": "Space",
    "<": "lt",
    "|": "Bar",
    "\\": "Bslash",
}

KEY_LEFTSHIFT, KEY_RIGHTSHIFT = 42, 54
KEY_LEFTCTRL, KEY_RIGHTCTRL = 29, 97
KEY_LEFTALT, KEY_RIGHTALT = 56, 100
KEY_LEFTMETA, KEY_RIGHTMETA = 125, 126

SHIFT_KEYS = {KEY_LEFTSHIFT, KEY_RIGHTSHIFT}
CTRL_KEYS = {KEY_LEFTCTRL, KEY_RIGHTCTRL}
ALT_KEYS = {KEY_LEFTALT, KEY_RIGHTALT}
META_KEYS = {KEY_LEFTMETA, KEY_RIGHTMETA}
MODIFIER_KEYS = SHIFT_KEYS | CTRL_KEYS | ALT_KEYS | META_KEYS


def keytrans(raw: str) -> str:
    """Symbolic name of a typed character: ``" "`` → ``"<Space>"``."""
    name = NAMED_CHARS.get(raw)
    return f"<{name}>" if name else raw


class KeyMapper:
    """Tracks held modifiers and names keys the way an editor would."""

    def __init__(self) -> None:
        self.held: set[int] = set()

    @property
    def shift(self) -> bool:
        return bool(self.held & SHIFT_KEYS)

    @property
    def ctrl(self) -> bool:
        return bool(self.held & CTRL_KEYS)

    @property
    def alt(self) -> bool:
        return bool(self.held & (ALT_KEYS | META_KEYS))

    def update_modifiers(self, code: int, value: int) -> bool:
        """Record a modifier press/release. Returns True if *code* is a modifier."""
        if code not in MODIFIER_KEYS:
            return False
        if value == 0:
            self.held.discard(code)
        else:
            self.held.add(code)
        return True

    def reset(self) -> None:
        self.held.clear()

    def translate(self, code: int) -> Tuple[str, str]:
        """Return ``(raw, key)`` for *code* under the current modifiers.

        ``raw`` is the character typed, or ``""`` for keys that type
        nothing. ``key`` is the symbolic name, or ``""`` if unknown.
        """
        ch = KEYCODE_TO_CHAR_EN.get(code)
        if ch is not None:
            if self.shift:
                ch = SHIFTED_CHARS.get(ch, ch.upper())
            if self.ctrl or self.alt:
                body = NAMED_CHARS.get(ch, ch)
                if self.ctrl and ch.isalpha():
                    body = body.upper()
                return "", f"<{self._prefix(shift=False)}{body}>"
            return ch, keytrans(ch)

        name = SPECIAL_KEYS.get(code)
        if name is None:
            return "", ""
        prefix = self._prefix(shift=self.shift)
        return "", f"<{prefix}{name}>"

    def _prefix(self, shift: bool) -> str:
        parts = []
        if shift:
            parts.append("S-")
        if self.ctrl:
            parts.append("C-")
        if self.alt:
            parts.append("M-")
        return "".join(parts)
