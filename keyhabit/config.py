"""Configuration loader and validator for keyhabit.

``ConfigManager`` reads a JSON config (with a comment and trailing-comma
tolerant sanitizer) from ``~/.config/keyhabit/config.json`` and merges
it over ``DEFAULT_CONFIG``.

Also provides ``validate_config(conf)`` which normalizes and
validates config keys, raising ``ValueError`` on invalid values.

Key tables and hints in the config are *overrides*: they are merged
over the built-in tables by ``KeyClassTable.from_config`` and
``hints_from_config``.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile

from keyhabit.core.restriction import RESTRICTION_MODES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.expanduser('~/.config/keyhabit/config.json')

# Single source of truth for default configuration
DEFAULT_CONFIG: dict = {
    'enabled': True,
    'debug': False,
    'max_time': 1000,
    'max_count': 3,
    'allow_different_key': True,
    'restriction_mode': 'block',
    'notification': True,
    'hint': True,
    'force_exit_insert_mode': False,
    'max_insert_idle_ms': 5000,
    'refeed_threshold_ms': 10,
    'disabled_apps': ['qemu', 'VirtualBox Machine', 'steam_app_*'],
    'toggle_key': '<Pause>',
    'restricted_keys': {},
    'resetting_keys': {},
    'disabled_keys': {},
    'hints': {},
}

_TABLE_KEYS = ('restricted_keys', 'resetting_keys', 'disabled_keys')
_BOOL_KEYS = (
    'enabled',
    'debug',
    'allow_different_key',
    'notification',
    'hint',
    'force_exit_insert_mode',
)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _sanitize_json_text(s: str) -> str:
    """Remove ``#``/``//`` comments and trailing commas from JSON-like text."""
    # Hash-style line comments
    s = re.sub(r"^[ \t]*#.*$", "", s, flags=re.MULTILINE)
    # C++-style line comments
    s = re.sub(r"^[ \t]*//.*$", "", s, flags=re.MULTILINE)
    # Trailing commas before } or ]
    s = re.sub(r",[ \t\r\n]+(\}|\])", r"\1", s)
    return s


def _positive_int(conf: dict, key: str, minimum: int) -> int:
    raw = conf.get(key, DEFAULT_CONFIG[key])
    if isinstance(raw, bool):
        raise ValueError(f"Invalid '{key}': {raw}")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid '{key}': {raw}")
    if value < minimum:
        raise ValueError(f"Invalid '{key}': must be >= {minimum}")
    return value


def _validate_table(key: str, table) -> dict:
    if not isinstance(table, dict):
        raise ValueError(f"Invalid '{key}': must be an object of key -> modes")
    out = {}
    for name, modes in table.items():
        if not isinstance(name, str) or not name:
            raise ValueError(f"Invalid '{key}': key names must be non-empty strings")
        if modes is None or modes is False:
            out[name] = None
        elif isinstance(modes, str):
            out[name] = [modes]
        elif isinstance(modes, list) and all(isinstance(m, str) for m in modes):
            out[name] = list(modes)
        else:
            raise ValueError(f"Invalid '{key}' entry {name!r}: modes must be a string list or false")
    return out


def _validate_hints(hints) -> dict:
    if not isinstance(hints, dict):
        raise ValueError("Invalid 'hints': must be an object of pattern -> hint")
    out = {}
    for pattern, entry in hints.items():
        try:
            re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"Invalid 'hints' pattern {pattern!r}: {exc}")
        if entry is None:
            out[pattern] = None
            continue
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid 'hints' entry {pattern!r}: must be an object or null")
        message = entry.get('message')
        if not isinstance(message, str) or not message:
            raise ValueError(f"Invalid 'hints' entry {pattern!r}: 'message' must be a non-empty string")
        try:
            message.format(keys="")
        except (AttributeError, KeyError, IndexError, ValueError) as exc:
            raise ValueError(
                f"Invalid 'hints' entry {pattern!r}: 'message' may only use the {{keys}} field ({exc!r})"
            )
        length = entry.get('length')
        if length is not None and (isinstance(length, bool) or not isinstance(length, int) or length <= 0):
            raise ValueError(f"Invalid 'hints' entry {pattern!r}: 'length' must be a positive integer")
        out[pattern] = {'message': message, 'length': length}
    return out


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------

def validate_config(conf: dict | None) -> dict:
    """Validate and normalize configuration dictionary.

    Returns a normalized dict with all expected keys.
    Raises ``ValueError`` on invalid values.
    """
    if conf is None:
        conf = {}

    defaults = dict(DEFAULT_CONFIG)
    out = dict(defaults)

    # Plain booleans
    for key in _BOOL_KEYS:
        val = conf.get(key, defaults[key])
        if not isinstance(val, bool):
            raise ValueError(f"Invalid '{key}': must be boolean")
        out[key] = val

    # max_time / max_insert_idle_ms — milliseconds, positive
    out['max_time'] = _positive_int(conf, 'max_time', 1)
    out['max_insert_idle_ms'] = _positive_int(conf, 'max_insert_idle_ms', 1)

    # max_count — at least one press allowed
    out['max_count'] = _positive_int(conf, 'max_count', 1)

    # refeed_threshold_ms — non-negative number
    rt = conf.get('refeed_threshold_ms', defaults['refeed_threshold_ms'])
    if isinstance(rt, bool):
        raise ValueError(f"Invalid 'refeed_threshold_ms': {rt}")
    try:
        rt_val = float(rt)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid 'refeed_threshold_ms': {rt}")
    if rt_val < 0:
        raise ValueError("Invalid 'refeed_threshold_ms': must be >= 0")
    out['refeed_threshold_ms'] = rt_val

    # restriction_mode — "block" | "hint"
    rm = conf.get('restriction_mode', defaults['restriction_mode'])
    if rm not in RESTRICTION_MODES:
        raise ValueError(f"Invalid 'restriction_mode': {rm!r} (must be one of {', '.join(RESTRICTION_MODES)})")
    out['restriction_mode'] = rm

    # disabled_apps — list of window classes
    apps = conf.get('disabled_apps', defaults['disabled_apps'])
    if not isinstance(apps, list) or not all(isinstance(a, str) and a for a in apps):
        raise ValueError("Invalid 'disabled_apps': must be a list of non-empty strings")
    out['disabled_apps'] = list(apps)

    # toggle_key — symbolic key name or null
    tk = conf.get('toggle_key', defaults['toggle_key'])
    if tk is not None and (not isinstance(tk, str) or not tk):
        raise ValueError("Invalid 'toggle_key': must be a non-empty string or null")
    out['toggle_key'] = tk

    for key in _TABLE_KEYS:
        out[key] = _validate_table(key, conf.get(key, defaults[key]))

    out['hints'] = _validate_hints(conf.get('hints', defaults['hints']))

    return out


def _read_and_merge(path: str, target_config: dict) -> bool:
    """Read a JSON file, validate, and merge into *target_config*.

    Returns True on success, False on any error.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = f.read()
    except OSError as exc:
        logger.warning("Cannot read config %s: %s", path, exc)
        return False

    try:
        cfg = json.loads(raw)
    except json.JSONDecodeError:
        try:
            sanitized = _sanitize_json_text(raw)
            cfg = json.loads(sanitized)
        except json.JSONDecodeError as exc:
            logger.warning("JSON parse error in %s: %s", path, exc)
            return False

    if not isinstance(cfg, dict):
        logger.warning("Invalid config %s: top level must be an object", path)
        return False

    try:
        validated = validate_config(cfg)
        # Only override keys explicitly present in source
        for k in cfg:
            if k in validated:
                target_config[k] = validated[k]
        return True
    except ValueError as verr:
        logger.warning("Invalid config %s: %s", path, verr)
        return False


def _write_config_file(path: str, conf: dict) -> None:
    """Write *conf* as sorted, indented JSON; the old file survives a failure.

    The text goes to a temp file in the same directory first and is then
    renamed over *path*.
    """
    dir_path = os.path.dirname(os.path.abspath(path))
    os.makedirs(dir_path, exist_ok=True)
    text = json.dumps(conf, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
    fd, tmp_path = tempfile.mkstemp(dir=dir_path, prefix=".config-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except OSError:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


# ------------------------------------------------------------------
# ConfigManager
# ------------------------------------------------------------------

class ConfigManager:
    """Effective configuration: defaults overlaid with the user's file."""

    def __init__(self, config_path: str | None = None):
        self._config_path = config_path or DEFAULT_CONFIG_PATH
        self._config: dict = dict(DEFAULT_CONFIG)
        self._load_config()

    # -- internal -------------------------------------------------------

    def _load_config(self) -> None:
        """Reset to defaults, then overlay from file (if exists)."""
        self._config = dict(DEFAULT_CONFIG)
        if os.path.exists(self._config_path):
            _read_and_merge(self._config_path, self._config)
        logger.debug("Effective config from %s: %s", self._config_path, self._config)

    # -- public ---------------------------------------------------------

    def save(self, target_path: str | None = None) -> bool:
        """Write the configuration to file. Returns True on success.

        An invalid configuration is not written.
        """
        save_path = target_path or self._config_path
        try:
            conf = validate_config(self._config)
        except ValueError as exc:
            logger.error("Not saving invalid config: %s", exc)
            return False
        try:
            _write_config_file(save_path, conf)
            return True
        except OSError as exc:
            logger.error("Cannot save config to %s: %s", save_path, exc)
            return False

    def get(self, key: str, default=None):
        """Get a single configuration value."""
        return self._config.get(key, default)

    def set(self, key: str, value) -> None:
        """Set a single configuration value."""
        self._config[key] = value

    def get_all(self) -> dict:
        """Return a copy of the effective configuration."""
        return dict(self._config)

    @property
    def config_path(self) -> str:
        """Current config file path."""
        return self._config_path
