from __future__ import annotations

import os

from spinverse.core import feature_flags


def test_env_and_override_stack() -> None:
    env_var = "SPINVERSE_FEATURES"
    original = os.environ.get(env_var)
    try:
        if env_var in os.environ:
            del os.environ[env_var]

        assert feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES) is False

        feature_flags.set_env_flags([" Overrides.Redistribute "])
        assert feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES) is True

        with feature_flags.override(disable={feature_flags.REDISTRIBUTE_OVERRIDES}):
            assert feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES) is False
            with feature_flags.override(enable={feature_flags.RARITY_DEFAULTS}):
                assert feature_flags.is_enabled(feature_flags.RARITY_DEFAULTS) is True
                assert feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES) is False
            assert feature_flags.is_enabled(feature_flags.RARITY_DEFAULTS) is False

        assert feature_flags.is_enabled(feature_flags.REDISTRIBUTE_OVERRIDES) is True

    finally:
        if original is None:
            os.environ.pop(env_var, None)
        else:
            os.environ[env_var] = original


def test_innermost_override_wins_and_active_flags_lists_enabled() -> None:
    assert feature_flags.active_flags() == []
    with feature_flags.override(disable={feature_flags.RARITY_DEFAULTS}):
        with feature_flags.override(enable={feature_flags.RARITY_DEFAULTS, "Experimental.Thing"}):
            assert feature_flags.is_enabled(feature_flags.RARITY_DEFAULTS) is True
            assert feature_flags.active_flags() == ["experimental.thing", feature_flags.RARITY_DEFAULTS]
        assert feature_flags.is_enabled(feature_flags.RARITY_DEFAULTS) is False
