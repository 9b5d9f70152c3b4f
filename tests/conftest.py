from __future__ import annotations

import os
import sys
from pathlib import Path

# Add project src/ to sys.path for imports like `llm_orchestra.*`
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest

ENV_PREFIX = "ORCHESTRA_"
PROVIDER_KEYS = ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GOOGLE_API_KEY")


@pytest.fixture(autouse=True)
def hermetic_orchestra_env(monkeypatch):
    """Keep ORCHESTRA_* settings and provider keys from the developer's shell out of tests."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX) or key in PROVIDER_KEYS:
            monkeypatch.delenv(key)
