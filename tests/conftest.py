import asyncio
import sys
from pathlib import Path

# Ensure project root is on sys.path so `import speech_practice` works during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from speech_practice.core.config import Settings
from speech_practice.services.storage import (
    CREDENTIAL_KEY, CredentialStore, InMemoryKeyValueStore
)

GOOD_RESPONSE = (
    '{"toneFeedback": "Confident", "overallScore": 8, "corrections": [], '
    '"feedback": "Good pace", "strengths": ["Clear"], "improvements": ["Fewer fillers"]}'
)


class FakeGenerator:
    """Генератор текста с заранее заданными ответами"""

    def __init__(self, responses=None, delay=0.0, error=None):
        self.responses = list(responses or [GOOD_RESPONSE])
        self.delay = delay
        self.error = error
        self.calls = []

    async def generate(self, prompt, history=(), generation_config=None):
        self.calls.append({
            "prompt": prompt,
            "history": list(history),
            "config": generation_config,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FakeClock:
    """Часы в миллисекундах, сдвигаемые вручную"""

    def __init__(self, start_ms=1_700_000_000_000.0):
        self.now = start_ms

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds * 1000


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        gemini_api_key=None,
        storage_path=str(tmp_path / "storage.json"),
        analysis_timeout_sec=2.0,
    )


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore({CREDENTIAL_KEY: "test-key"})


@pytest.fixture
def credentials(kv_store):
    return CredentialStore(kv_store)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def clock():
    return FakeClock()
