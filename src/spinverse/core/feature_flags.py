"""Lightweight feature flag helpers.

A couple of engine behaviours depend on authoring conventions that differ
between sequence sources, so they are switched through flags rather than
hard-coded:

* ``overrides.redistribute`` - branch weight overrides split the remaining
  100-point budget between the segments they do not name.
* ``selector.rarity_defaults`` - segments loaded without an explicit weight
  take their weight from their rarity.

Usage::

    from spinverse.core import feature_flags

    if feature_flags.is_enabled("overrides.redistribute"):
        ...

The environment variable ``SPINVERSE_FEATURES`` accepts a comma-separated
list of flag names.  Flag names are case-insensitive.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from contextlib import contextmanager
from typing import Final

REDISTRIBUTE_OVERRIDES: Final = "overrides.redistribute"
RARITY_DEFAULTS: Final = "selector.rarity_defaults"
KNOWN_FLAGS: Final = (REDISTRIBUTE_OVERRIDES, RARITY_DEFAULTS)

_ENV_VAR: Final = "SPINVERSE_FEATURES"


def _normalise(flag: str) -> str:
    return flag.strip().lower()


def _parse_env(raw: str | None) -> set[str]:
    if not raw:
        return set()
    return {_normalise(entry) for entry in raw.split(",") if entry.strip()}


_OVERRIDE_STACK: list[tuple[set[str], set[str]]] = []


def is_enabled(flag: str) -> bool:
    """Return True when *flag* is enabled via env var or overrides.

    The innermost override that mentions the flag wins over outer ones and
    over the environment.
    """

    key = _normalise(flag)
    for enabled, disabled in reversed(_OVERRIDE_STACK):
        if key in disabled:
            return False
        if key in enabled:
            return True
    return key in _parse_env(os.getenv(_ENV_VAR))


def active_flags() -> list[str]:
    candidates = set(KNOWN_FLAGS) | _parse_env(os.getenv(_ENV_VAR))
    for enabled, _ in _OVERRIDE_STACK:
        candidates.update(enabled)
    return sorted(flag for flag in candidates if is_enabled(flag))


@contextmanager
def override(*, enable: Iterable[str] | None = None, disable: Iterable[str] | None = None):
    """Temporarily override flag state within the context.

    Overrides are stacked, so nested contexts behave predictably.
    """

    enabled = {_normalise(flag) for flag in (enable or ())}
    disabled = {_normalise(flag) for flag in (disable or ())}
    _OVERRIDE_STACK.append((enabled, disabled))
    try:
        yield
    finally:
        _OVERRIDE_STACK.pop()


def set_env_flags(flags: Iterable[str]) -> None:
    os.environ[_ENV_VAR] = ",".join(sorted({_normalise(flag) for flag in flags}))
