"""Restriction state machine — throttles repeated presses of a key."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Mapping, Optional

import keyhabit.log  # registers TRACE level and logger.trace()
from keyhabit.core.classifier import KeyClassTable, classify
from keyhabit.core.states import NotificationGate, RestrictionState

logger = logging.getLogger(__name__)

RESTRICTION_BLOCK = "block"
RESTRICTION_HINT = "hint"
RESTRICTION_MODES = (RESTRICTION_BLOCK, RESTRICTION_HINT)

# Extra advice for the vertical movement keys
SCROLL_ADVICE: dict[str, str] = {
    "k": "Use [count]k or CTRL-U to scroll up.",
    "j": "Use [count]j or CTRL-D to scroll down.",
}


class Verdict(Enum):
    DISABLED = auto()       # swallow, maybe explain once
    PASSTHROUGH = auto()    # not restricted, no state change beyond resets
    ALLOWED = auto()        # restricted and counted
    DENIED = auto()         # restricted and over the limit


@dataclass(frozen=True)
class RestrictionPolicy:
    max_count: int = 3
    max_time: float = 1.0           # seconds
    allow_different_key: bool = True
    restriction_mode: str = RESTRICTION_BLOCK

    @classmethod
    def from_config(cls, conf: Mapping[str, object]) -> "RestrictionPolicy":
        return cls(
            max_count=int(conf.get("max_count", 3)),
            max_time=float(conf.get("max_time", 1000)) / 1000.0,
            allow_different_key=bool(conf.get("allow_different_key", True)),
            restriction_mode=str(conf.get("restriction_mode", RESTRICTION_BLOCK)),
        )

    @property
    def advisory(self) -> bool:
        return self.restriction_mode == RESTRICTION_HINT


def too_soon_message(key: str) -> str:
    message = f"You pressed the {key} key too soon!"
    advice = SCROLL_ADVICE.get(key)
    if advice:
        message = f"{message} {advice}"
    return message


def disabled_message(key: str) -> str:
    return f"The {key} key is disabled!"


class RestrictionStateMachine:
    """Owns the repeat counter for restricted keys.

    The state is implicit in ``(key_count, last_time, last_key)``; every
    call to :meth:`press` takes exactly one of the branches below.
    """

    def __init__(
        self,
        policy: RestrictionPolicy,
        tables: KeyClassTable,
        gate: Optional[NotificationGate] = None,
        start_time: float = 0.0,
    ):
        self.policy = policy
        self.tables = tables
        self.gate = gate or NotificationGate()
        self.state = RestrictionState(last_time=start_time)

    def press(self, key: str, now: float) -> Verdict:
        cls = classify(key, self.tables)
        logger.trace("press %r: %s", key, cls)  # type: ignore[attr-defined]

        # Disabled wins even if the key also sits in another table
        if cls.disabled:
            return Verdict.DISABLED

        # No early return: a resetting key may also be restricted
        if cls.resetting:
            if self.state.key_count:
                logger.debug("Count reset by %r", key)
            self.state.key_count = 0

        if not cls.restricted:
            return Verdict.PASSTHROUGH

        st = self.state
        reset_due = now - st.last_time > self.policy.max_time
        different = self.policy.allow_different_key and key != st.last_key

        if st.key_count < self.policy.max_count or reset_due or different:
            if reset_due or different:
                st.key_count = 1
                self.gate.reset()
            else:
                st.key_count += 1
            st.last_time = now
            st.last_key = key
            return Verdict.ALLOWED

        logger.debug("Denied %r (count=%d)", key, st.key_count)
        return Verdict.DENIED
