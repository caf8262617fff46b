"""
Shared fixtures for the bridge eligibility test suite
"""

import httpx
import pytest

from infrastructure.api_metrics import APIMetricsTracker
from infrastructure.ttl_store import InMemoryTTLStore

ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
OTHER_ADDRESS = "0x8ba1f109551bD432803012645Ac136ddd64DBA72"

NOW_S = 1_700_000_000.0
NOW_MS = int(NOW_S * 1000)
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    """Manually advanced clock usable as time.time / time.monotonic"""

    def __init__(self, now: float = NOW_S):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records requested delays"""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def store(clock):
    return InMemoryTTLStore(clock=clock)


@pytest.fixture
def metrics():
    return APIMetricsTracker()


class Upstream:
    """Scripted upstream: pops one response (or exception) per request, repeating the last"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, httpx.Response):
            return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)
        return httpx.Response(200, json=outcome)

    @property
    def calls(self) -> int:
        return len(self.requests)
