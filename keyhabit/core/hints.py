"""Hint engine — spots inefficient key sequences in recent input.

A bounded trailing buffer holds the symbolic names of recent keys. After
each key the hint table, ordered longest pattern first, is searched for a
pattern that ends exactly at the end of the buffer; the first hit wins.

Some upstream components (key-hint popups, for instance) consume a key
sequence and then feed it again. Two guards keep those re-feeds out of
the buffer:

* a key arriving less than ``refeed_threshold`` seconds after the
  previous one is dropped outright;
* a multi-character key whose prefix repeats the end of the buffer has
  that prefix stripped before it is appended.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional, Union

import keyhabit.log  # registers TRACE level and logger.trace()
from keyhabit.core.states import HintBuffer

logger = logging.getLogger(__name__)

MOUSE_MOVE = "<MouseMove>"
DEFAULT_REFEED_THRESHOLD = 0.010  # seconds

MessageSource = Union[str, Callable[[str], str]]


@dataclass(frozen=True)
class HintPattern:
    pattern: str
    length: int
    message: Callable[[str], str]
    _regex: "re.Pattern[str]" = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.length <= 0:
            raise ValueError(f"Hint {self.pattern!r}: length must be positive")
        object.__setattr__(self, "_regex", re.compile(f"(?:{self.pattern})\\Z"))

    @classmethod
    def create(cls, pattern: str, message: MessageSource, length: Optional[int] = None) -> "HintPattern":
        """Build a hint; *message* may be a ``{keys}`` template or a callable."""
        if isinstance(message, str):
            template = message
            message = lambda keys: template.format(keys=keys)  # noqa: E731
        return cls(pattern=pattern, length=length or len(pattern), message=message)

    def match(self, content: str) -> Optional[str]:
        """Return the matched suffix of *content*, or None.

        Only the last ``length`` characters are searched. An empty match
        counts as no match.
        """
        m = self._regex.search(content[-self.length:])
        # a pattern like "q*" matches nothing at every position
        return m.group(0) if m and m.group(0) else None


def _vertical_alternative(keys: str) -> str:
    return f"Use {'-' if keys[0] == 'k' else '+'} instead of {keys}"


# pattern: (message, length); length is required when the pattern is not literal
DEFAULT_HINTS: dict[str, tuple[MessageSource, Optional[int]]] = {
    r"[kj][\^_]": (_vertical_alternative, 2),
    r"\^i": ("Use I instead of ^i", 2),
    r"\$a": ("Use A instead of $a", 2),
    r"d\$": ("Use D instead of d$", 2),
    r"c\$": ("Use C instead of c$", 2),
    r"y\$": ("Use Y instead of y$", 2),
    r"xi": ("Use s instead of xi", 2),
    r"[^fFtT]li": ("Use a instead of li", 3),
    r"\D[j+]O": (lambda keys: f"Use o instead of {keys[1:]}", 3),
    r"\D[k\-]o": (lambda keys: f"Use O instead of {keys[1:]}", 3),
    r"[dcyvV][ia][()]": (lambda keys: f"Use {keys[:2]}b instead of {keys}", 3),
    r"[dcyvV][ia][{}]": (lambda keys: f"Use {keys[:2]}B instead of {keys}", 3),
    r"d[tTfF].i": (lambda keys: f"Use c{keys[1:3]} instead of {keys}", 4),
}


def by_priority(hints: Iterable[HintPattern]) -> list[HintPattern]:
    """Longest pattern first; equal lengths keep their given order."""
    return sorted(hints, key=lambda h: h.length, reverse=True)


def hints_from_config(user_hints: Optional[Mapping[str, object]] = None) -> list[HintPattern]:
    """Merge user hints over the built-ins and build the priority list.

    A user entry of ``None`` removes the built-in hint with that pattern.
    """
    merged: dict[str, tuple[MessageSource, Optional[int]]] = dict(DEFAULT_HINTS)
    for pattern, entry in (user_hints or {}).items():
        if entry is None:
            merged.pop(pattern, None)
            continue
        merged[pattern] = (entry["message"], entry.get("length"))
    return by_priority(
        HintPattern.create(pattern, message, length)
        for pattern, (message, length) in merged.items()
    )


def strip_refed_prefix(content: str, incoming: str) -> str:
    """Drop the longest prefix of *incoming* that already ends *content*."""
    overlap = 0
    for i in range(1, len(incoming) + 1):
        if content.endswith(incoming[:i]):
            overlap = i
    return incoming[overlap:]


class HintMatcher:
    """Owns the trailing key buffer and the priority-ordered hint list."""

    def __init__(
        self,
        hints: Iterable[HintPattern],
        refeed_threshold: float = DEFAULT_REFEED_THRESHOLD,
    ):
        self.hints = by_priority(hints)
        self.max_length = max((h.length for h in self.hints), default=0)
        self.refeed_threshold = refeed_threshold
        self.buffer = HintBuffer()

    def feed(self, raw: str, key: str, now: Optional[float] = None) -> Optional[str]:
        """Add one key; return the hint message if a pattern now matches."""
        if not key or key == MOUSE_MOVE:
            return None

        # "<" and "<lt>" both come out of the transform; keep the literal
        if raw == "<":
            key = "<"

        if now is None:
            now = time.monotonic()
        time_diff = now - self.buffer.last_event_time
        self.buffer.last_event_time = now
        if time_diff < self.refeed_threshold:
            logger.trace("Re-feed dropped: %r after %.4fs", key, time_diff)  # type: ignore[attr-defined]
            return None

        if len(key) > 1:
            key = strip_refed_prefix(self.buffer.content, key)
            if not key:
                logger.trace("Re-feed fully overlapped buffer")  # type: ignore[attr-defined]
                return None

        self.append(key)
        return self.match()

    def append(self, key: str) -> None:
        content = self.buffer.content + key
        if self.max_length <= 0:
            content = ""
        elif len(content) > self.max_length:
            content = content[-self.max_length:]
        self.buffer.content = content
        self.buffer.last_key = key

    def match(self) -> Optional[str]:
        """Return the message of the first matching hint, or None."""
        content = self.buffer.content
        for hint in self.hints:
            keys = hint.match(content)
            if keys is not None:
                logger.debug("Hint %r matched %r", hint.pattern, keys)
                try:
                    return hint.message(keys)
                except Exception:
                    logger.exception("Hint %r: cannot build message", hint.pattern)
                    return None
        return None

    def reset(self) -> None:
        self.buffer = HintBuffer()
