"""Tests for chain dispatch, offline synthesis and advisory selection"""
import asyncio

import pytest

from hybrid_ai.core.exceptions import BackendTimeoutError, ConfigurationError, TransportError
from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter
from hybrid_ai.infrastructure.adapters.ai.fallback_orchestrator import FallbackOrchestrator
from hybrid_ai.infrastructure.adapters.ai.functionality.health_monitor import HealthMonitor
from hybrid_ai.infrastructure.adapters.ai.models import (
    BackendIdentity,
    BreakerConfig,
    CircuitState,
    CLOSED_SNAPSHOT,
    HealthStatus,
    RequestKind
)

from conftest import FakeAdapter, ManualClock, Outcome, make_request

CHAIN = [
    BackendIdentity.PRIMARY,
    BackendIdentity.LOCAL_BRIDGE,
    BackendIdentity.CLOUD_FUNCTION,
    BackendIdentity.SPECIALIST,
]


def make_adapters(clock):
    return {
        BackendIdentity.PRIMARY: FakeAdapter(BackendIdentity.PRIMARY, clock=clock),
        BackendIdentity.LOCAL_BRIDGE: FakeAdapter(
            BackendIdentity.LOCAL_BRIDGE,
            breaker=BreakerConfig(failure_threshold=5, timeout_ms=60000, half_open_max_calls=3),
            clock=clock
        ),
        BackendIdentity.CLOUD_FUNCTION: FakeAdapter(
            BackendIdentity.CLOUD_FUNCTION,
            breaker=BreakerConfig(failure_threshold=8, timeout_ms=120000, half_open_max_calls=2),
            clock=clock
        ),
        BackendIdentity.SPECIALIST: FakeAdapter(
            BackendIdentity.SPECIALIST,
            breaker=BreakerConfig(failure_threshold=3, timeout_ms=90000, half_open_max_calls=2),
            clock=clock
        ),
    }


@pytest.fixture
def adapters():
    return make_adapters(ManualClock())


@pytest.fixture
def orchestrator(adapters):
    return FallbackOrchestrator(adapters, CHAIN)


class ExplodingAdapter(IBackendAdapter):
    """Raises something outside the backend error hierarchy"""

    identity = BackendIdentity.PRIMARY

    async def query(self, request):
        raise RuntimeError("adapter bug")

    def status(self):
        return HealthStatus(backend=self.identity, available=True)

    async def probe(self):
        return True

    def circuit_snapshot(self):
        return CLOSED_SNAPSHOT

    def is_dispatchable(self):
        return True


async def test_first_backend_answers_and_echoes_request_id(orchestrator, adapters):
    response = await orchestrator.query(make_request("abc-123"))

    assert response.request_id == "abc-123"
    assert response.backend_used == BackendIdentity.PRIMARY
    assert response.confidence == pytest.approx(90.0)
    assert adapters[BackendIdentity.LOCAL_BRIDGE].calls == []


async def test_falls_through_to_local_bridge(orchestrator, adapters):
    adapters[BackendIdentity.PRIMARY].fail_with(TransportError("down", backend="Primary"))

    response = await orchestrator.query(make_request())

    assert response.backend_used == BackendIdentity.LOCAL_BRIDGE
    assert adapters[BackendIdentity.SPECIALIST].calls == []
    assert adapters[BackendIdentity.PRIMARY].status().available is False

    # Primary is now skipped without a network call
    await orchestrator.query(make_request("second"))
    assert adapters[BackendIdentity.PRIMARY].calls == ["req-1"]


async def test_all_backends_down_returns_offline_answer(orchestrator, adapters):
    for adapter in adapters.values():
        adapter.fail_with(BackendTimeoutError("slow", backend=adapter.identity.value))

    response = await orchestrator.query(make_request("doomed", kind=RequestKind.DRAFT_ANALYSIS))

    assert response.request_id == "doomed"
    assert response.backend_used == BackendIdentity.OFFLINE
    assert response.is_offline
    assert response.confidence == 30.0
    assert "ppr scoring" in response.text
    assert len(response.analysis_payload['strategyPoints']) == 3
    for adapter in adapters.values():
        assert len(adapter.calls) == 1


async def test_unavailable_backends_give_offline_without_calls(orchestrator, adapters):
    for adapter in adapters.values():
        adapter._status.available = False

    response = await orchestrator.query(make_request(kind=RequestKind.PLAYER_ANALYSIS))

    assert response.is_offline
    assert "Player Analysis" in response.text
    assert all(adapter.calls == [] for adapter in adapters.values())


async def test_open_local_bridge_is_skipped_with_zero_calls(orchestrator, adapters):
    local = adapters[BackendIdentity.LOCAL_BRIDGE]
    local.healthy = False
    monitor = HealthMonitor(local, local.config.backoff)
    for _ in range(5):
        await monitor.tick()
    assert local.breaker.get_state() == CircuitState.OPEN

    # Force the answer to come from further down the chain
    adapters[BackendIdentity.PRIMARY]._status.available = False
    local._status.available = True

    response = await orchestrator.query(make_request())

    assert response.backend_used == BackendIdentity.CLOUD_FUNCTION
    assert local.calls == []
    assert local.queries_sent == 0


async def test_unexpected_adapter_exception_is_contained(adapters):
    adapters[BackendIdentity.PRIMARY] = ExplodingAdapter()
    orchestrator = FallbackOrchestrator(adapters, CHAIN)

    response = await orchestrator.query(make_request())

    assert response.backend_used == BackendIdentity.LOCAL_BRIDGE
    assert orchestrator.stats.failures == {'Primary': 1}


async def test_concurrent_success_and_failure_leave_one_error():
    adapter = FakeAdapter(
        BackendIdentity.CLOUD_FUNCTION,
        breaker=BreakerConfig(failure_threshold=8, timeout_ms=120000, half_open_max_calls=2)
    )
    adapter.outcomes.extend([
        Outcome(delay=0.02),
        Outcome(error=TransportError("boom", backend="CloudFunction"), delay=0.01),
    ])

    results = await asyncio.gather(
        adapter.query(make_request("ok")),
        adapter.query(make_request("bad")),
        return_exceptions=True
    )

    assert results[0].request_id == "ok"
    assert isinstance(results[1], TransportError)
    assert adapter.status().error_count == 1


async def test_custom_chain_order(adapters):
    orchestrator = FallbackOrchestrator(adapters, [BackendIdentity.SPECIALIST, BackendIdentity.PRIMARY])

    response = await orchestrator.query(make_request())

    assert response.backend_used == BackendIdentity.SPECIALIST


def test_chain_must_reference_known_adapters(adapters):
    del adapters[BackendIdentity.SPECIALIST]

    with pytest.raises(ConfigurationError):
        FallbackOrchestrator(adapters, CHAIN)


async def test_best_backend_respects_quality_thresholds(orchestrator, adapters):
    assert orchestrator.best_backend() == BackendIdentity.PRIMARY

    adapters[BackendIdentity.PRIMARY]._status.available = False
    # 500 ms on the local bridge profile -> quality 50, below its threshold of 70
    await adapters[BackendIdentity.LOCAL_BRIDGE].record_probe(True, 500.0)

    assert orchestrator.best_backend() == BackendIdentity.CLOUD_FUNCTION


async def test_advisory_and_dispatch_diverge(orchestrator, adapters):
    for identity in CHAIN:
        await adapters[identity].record_probe(True, 10000.0)

    assert orchestrator.best_backend() == BackendIdentity.OFFLINE

    response = await orchestrator.query(make_request())
    assert response.backend_used == BackendIdentity.PRIMARY


async def test_health_summary(orchestrator, adapters):
    for adapter in adapters.values():
        adapter._status.available = False

    summary = orchestrator.health_summary()

    assert summary['selected_backend'] == "offline"
    assert summary['graceful_degradation'] is True
    assert set(summary['services']) == {"Primary", "LocalBridge", "CloudFunction", "Specialist"}
    assert summary['services']['Primary']['available'] is False


async def test_statistics(orchestrator, adapters):
    await orchestrator.query(make_request("one"))
    adapters[BackendIdentity.PRIMARY].fail_with(TransportError("down", backend="Primary"))
    await orchestrator.query(make_request("two"))
    for adapter in adapters.values():
        adapter._status.available = False
    await orchestrator.query(make_request("three"))

    stats = orchestrator.get_statistics()

    assert stats['total_requests'] == 3
    assert stats['fallbacks'] == 1
    assert stats['offline_responses'] == 1
    assert stats['successes'] == {'Primary': 1, 'LocalBridge': 1}
    assert stats['failures'] == {'Primary': 1}
    assert stats['latency']['Primary']['count'] == 1
