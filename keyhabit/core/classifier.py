"""Key classification tables and lookup."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

# Built-in tables: {key: modes}
DEFAULT_RESTRICTED_KEYS: dict[str, list[str]] = {
    "h": ["n", "x"],
    "j": ["n", "x"],
    "k": ["n", "x"],
    "l": ["n", "x"],
    "-": ["n", "x"],
    "+": ["n", "x"],
    "gj": ["n", "x"],
    "gk": ["n", "x"],
    "<CR>": ["n", "x"],
    "<C-M>": ["n", "x"],
    "<C-N>": ["n", "x"],
    "<C-P>": ["n", "x"],
}

DEFAULT_RESETTING_KEYS: dict[str, list[str]] = {
    **{str(digit): ["n", "x"] for digit in range(1, 10)},
    "c": ["n"],
    "C": ["n"],
    "d": ["n"],
    "x": ["n"],
    "X": ["n"],
    "y": ["n"],
    "Y": ["n"],
    "p": ["n"],
    "P": ["n"],
    ".": ["n"],
    "=": ["n"],
    "<": ["n"],
    ">": ["n"],
    "J": ["n"],
    "gJ": ["n"],
    "gq": ["n"],
    "gw": ["n"],
    "~": ["n"],
}

DEFAULT_DISABLED_KEYS: dict[str, list[str]] = {
    "<Up>": ["", "i"],
    "<Down>": ["", "i"],
    "<Left>": ["", "i"],
    "<Right>": ["", "i"],
}


@dataclass(frozen=True)
class Classification:
    """Every table a key was found in.

    A key can be resetting and restricted at the same time, so callers
    check the flags independently.
    """
    key: str
    disabled: bool = False
    resetting: bool = False
    restricted_modes: Optional[Tuple[str, ...]] = None

    @property
    def restricted(self) -> bool:
        return self.restricted_modes is not None


def _freeze(table: Mapping[str, object]) -> Mapping[str, Tuple[str, ...]]:
    frozen = {}
    for key, modes in table.items():
        if isinstance(modes, str):
            modes = [modes]
        frozen[key] = tuple(modes)
    return MappingProxyType(frozen)


def merge_table(defaults: Mapping[str, list], overrides: Optional[Mapping[str, object]]) -> dict:
    """Overlay user entries on a built-in table.

    A ``False``/``None`` value removes the built-in entry.
    """
    merged = dict(defaults)
    for key, modes in (overrides or {}).items():
        if modes is None or modes is False:
            merged.pop(key, None)
        else:
            merged[key] = modes
    return merged


@dataclass(frozen=True)
class KeyClassTable:
    """The three classification tables, immutable after construction."""
    disabled: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    resetting: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))
    restricted: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(
        cls,
        disabled: Optional[Mapping[str, object]] = None,
        resetting: Optional[Mapping[str, object]] = None,
        restricted: Optional[Mapping[str, object]] = None,
    ) -> "KeyClassTable":
        return cls(
            disabled=_freeze(disabled or {}),
            resetting=_freeze(resetting or {}),
            restricted=_freeze(restricted or {}),
        )

    @classmethod
    def from_config(cls, conf: Mapping[str, object]) -> "KeyClassTable":
        """Build tables from a validated config, on top of the built-ins."""
        return cls.build(
            disabled=merge_table(DEFAULT_DISABLED_KEYS, conf.get("disabled_keys")),
            resetting=merge_table(DEFAULT_RESETTING_KEYS, conf.get("resetting_keys")),
            restricted=merge_table(DEFAULT_RESTRICTED_KEYS, conf.get("restricted_keys")),
        )

    @property
    def bound_keys(self) -> frozenset:
        """Keys the host must route through ``handle()``."""
        return frozenset(self.disabled) | frozenset(self.resetting) | frozenset(self.restricted)


def classify(key: str, tables: KeyClassTable) -> Classification:
    """Pure lookup of *key* in all three tables."""
    return Classification(
        key=key,
        disabled=key in tables.disabled,
        resetting=key in tables.resetting,
        restricted_modes=tables.restricted.get(key),
    )
