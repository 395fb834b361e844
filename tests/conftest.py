# ──────────────────────────────────────────────────────────────────────────
# tests/conftest.py
# --------------------------------------------------------------------------
"""
Shared fixtures for the tokenflow unit tests.

    pytest -v tests/
"""
import pytest

from fakes import FakeChain, RecordingStore, TREASURY_TOPIC, make_registry
from tokenflow.sinks import MemorySink
from tokenflow.scanner import BlockScanner


@pytest.fixture
def registry():
    return make_registry()


@pytest.fixture
def chain():
    return FakeChain(head=1_000)


@pytest.fixture
def scanner(chain, registry):
    return BlockScanner(chain, registry, treasury_topic=TREASURY_TOPIC, fetch_timeout=1.0)


@pytest.fixture
def sleeps():
    """Recorded backoff / idle delays; pass `sleeps.sleep` to the scheduler."""

    class _Sleeps(list):
        async def sleep(self, seconds: float) -> None:
            self.append(seconds)

    return _Sleeps()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def sink():
    return MemorySink()
