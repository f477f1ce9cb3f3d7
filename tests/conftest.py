"""Shared test doubles"""

import asyncio
from collections import deque
from typing import Optional

import pytest

from hybrid_ai.infrastructure.adapters.ai.base_adapter import BackendReply, BaseBackendAdapter
from hybrid_ai.infrastructure.adapters.ai.models import (
    AdapterConfig,
    AIRequest,
    BackendIdentity,
    BackoffConfig,
    BreakerConfig,
    QualityProfile,
    RequestKind
)


class ManualClock:
    """Monotonic clock moved by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Outcome:
    """One scripted answer for FakeAdapter"""

    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0, text: str = None):
        self.error = error
        self.delay = delay
        self.text = text


class FakeAdapter(BaseBackendAdapter):
    """Adapter whose transport is scripted in memory"""

    def __init__(
            self,
            identity: BackendIdentity,
            breaker: Optional[BreakerConfig] = None,
            clock=None,
            available: bool = True,
            healthy: bool = True,
            quality: Optional[QualityProfile] = None
    ):
        config = AdapterConfig(
            identity=identity,
            request_timeout=1.0,
            probe_timeout=1.0,
            default_confidence=80.0,
            breaker=breaker or BreakerConfig(enabled=False),
            backoff=BackoffConfig(
                base_interval_ms=1000,
                max_interval_ms=8000,
                multiplier=2.0,
                probe_on_start=False
            ),
            quality=quality or QualityProfile()
        )
        super().__init__(config, clock=clock or ManualClock(), initially_available=available)
        self.calls = []
        self.probe_calls = 0
        self.healthy = healthy
        self.error: Optional[Exception] = None
        self.outcomes = deque()

    def fail_with(self, error: Exception) -> "FakeAdapter":
        self.error = error
        return self

    async def _send(self, request: AIRequest) -> BackendReply:
        self.calls.append(request.request_id)
        outcome = self.outcomes.popleft() if self.outcomes else Outcome(error=self.error)
        if outcome.delay:
            await asyncio.sleep(outcome.delay)
        if outcome.error is not None:
            raise outcome.error
        return BackendReply(text=outcome.text or f"answer from {self.identity.value}", confidence=0.9)

    async def _probe(self) -> bool:
        self.probe_calls += 1
        return self.healthy


def make_request(request_id: str = "req-1", kind: RequestKind = RequestKind.GENERAL_ADVICE) -> AIRequest:
    return AIRequest(
        request_id=request_id,
        kind=kind,
        query_text="Who should I start at flex?",
        context_payload={'scoringSystem': 'ppr'}
    )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def request_factory():
    return make_request
