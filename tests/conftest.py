from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Must be set before importing modules that read settings.
os.environ.setdefault("ELEVENLABS_API_KEY", "xi-test-key")
os.environ.setdefault("ELEVENLABS_AGENT_ID", "agent-test")
os.environ.setdefault("TWILIO_ACCOUNT_SID", "AC00000000000000000000000000000000")
os.environ.setdefault("TWILIO_AUTH_TOKEN", "test-token")
os.environ.setdefault("TWILIO_FROM_NUMBER", "+15005550006")
os.environ.setdefault("PUBLIC_BASE_URL", "https://bridge.example.com")
os.environ.setdefault("TRANSFER_FALLBACK_NUMBER", "+15550009999")
os.environ.setdefault("LLM_PROVIDER", "none")


@pytest.fixture(scope="session")
def app():
    import importlib

    from config.settings import get_settings

    get_settings.cache_clear()
    main = importlib.import_module("main")
    return main.app


@pytest.fixture(autouse=True)
def _clear_overrides(request):
    yield
    if "app" in request.fixturenames:
        request.getfixturevalue("app").dependency_overrides.clear()
