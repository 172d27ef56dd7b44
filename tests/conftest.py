from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure "src" is on sys.path for imports in tests
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


@pytest.fixture(autouse=True)
def _no_feature_flags_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Flags set in the developer's shell must not change engine behaviour under test.
    monkeypatch.delenv("SPINVERSE_FEATURES", raising=False)
