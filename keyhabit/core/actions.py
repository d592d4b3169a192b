"""Resolving a key to the host's normal binding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    """A host binding: either a replacement key string or a callback."""
    lhs: str
    rhs: str = ""
    callback: Optional[Callable[[], Optional[str]]] = None


@dataclass(frozen=True)
class ActionResult:
    """Keys to emit now, plus a task to run later if the handler failed."""
    keys: str
    retry: Optional[Callable[[], object]] = None

    @property
    def failed(self) -> bool:
        return self.retry is not None


def resolve_action(key: str, bindings: Mapping[str, Binding]) -> ActionResult:
    """Return the action *key* normally performs.

    Unbound keys map to themselves. A callback's return value becomes the
    action; ``None`` means it did its work itself and nothing is emitted.
    A callback that raises falls back to the raw key and hands the
    callback back as ``retry`` so the caller can run it once, deferred.
    """
    binding = bindings.get(key)
    if binding is None:
        return ActionResult(keys=key)

    if binding.callback is not None:
        try:
            result = binding.callback()
        except Exception as exc:
            logger.debug("Binding for %r failed (%s); retrying deferred", key, exc)
            return ActionResult(keys=key, retry=binding.callback)
        return ActionResult(keys=result if isinstance(result, str) else "")

    return ActionResult(keys=binding.rhs or key)
