"""Configuration manager for nixsize using a TOML file."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict

import toml

from . import config
from .attribution import get_policy
from .report import SortKey, SortOrder

logger = logging.getLogger(__name__)


def _defaults() -> Dict[str, Dict[str, Any]]:
    return copy.deepcopy(config.DEFAULT_CONFIG)


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections), without defaults."""
    if not config.CONFIG_FILE.exists():
        return {}
    try:
        with open(config.CONFIG_FILE, "r") as f:
            return toml.load(f)
    except toml.TomlDecodeError as exc:
        logger.warning("Ignoring unreadable config file %s: %s", config.CONFIG_FILE, exc)
        return {}


def load_config() -> Dict[str, Dict[str, Any]]:
    """Load configuration merged over the defaults.

    Returns:
        A dict with ``report`` and ``analysis`` sections. Keys missing from
        the file keep their default values; unknown keys are ignored, and
        values that fail validation are logged and replaced by the default.
    """
    merged = _defaults()
    stored = load_full_config()
    for section, values in merged.items():
        overrides = stored.get(section) or {}
        if not isinstance(overrides, dict):
            logger.warning("Ignoring [%s] in %s: not a table", section, config.CONFIG_FILE)
            continue
        for key in values:
            if key not in overrides:
                continue
            try:
                values[key] = _checked(section, key, overrides[key])
            except ValueError as exc:
                logger.warning("Ignoring %s in %s: %s", f"{section}.{key}", config.CONFIG_FILE, exc)
    return merged


# Raise ValueError for values the analysis would reject at run time.
_VALIDATORS = {
    "report.sort_by": SortKey.parse,
    "report.order": SortOrder.parse,
    "analysis.policy": get_policy,
}


def _coerce(section: str, key: str, raw: Any) -> Any:
    default = config.DEFAULT_CONFIG[section][key]
    if isinstance(default, int):
        if isinstance(raw, bool) or not isinstance(raw, (int, str)):
            raise ValueError(f"{section}.{key} expects an integer, got {raw!r}")
        try:
            value = int(raw)
        except ValueError:
            raise ValueError(f"{section}.{key} expects an integer, got '{raw}'")
        if value < 0:
            raise ValueError(f"{section}.{key} must not be negative")
        return value
    if not isinstance(raw, str):
        raise ValueError(f"{section}.{key} expects a string, got {raw!r}")
    return raw


def _checked(section: str, key: str, raw: Any) -> Any:
    value = _coerce(section, key, raw)
    validator = _VALIDATORS.get(f"{section}.{key}")
    if validator is not None:
        validator(value)
    return value


def set_value(dotted_key: str, raw: str) -> Any:
    """Persist a single ``section.key`` setting.

    Args:
        dotted_key: Setting name such as ``report.sort_by``
        raw: Value as typed on the command line

    Returns:
        The stored (type-coerced) value.
    """
    section, _, key = dotted_key.partition(".")
    if section not in config.DEFAULT_CONFIG or key not in config.DEFAULT_CONFIG[section]:
        raise KeyError(dotted_key)

    value = _checked(section, key, raw)
    full = load_full_config()
    full.setdefault(section, {})[key] = value

    config.ensure_base_dirs()
    with open(config.CONFIG_FILE, "w") as f:
        toml.dump(full, f)
    logger.debug("Saved %s = %r to %s", dotted_key, value, config.CONFIG_FILE)
    return value
