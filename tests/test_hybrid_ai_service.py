"""Tests for the caller-facing service"""
from hybrid_ai.application.services.hybrid_ai_service import HybridAIService
from hybrid_ai.application.services.status_publisher import StatusPublisher
from hybrid_ai.core.exceptions import TransportError
from hybrid_ai.infrastructure.adapters.ai.disabled_adapter import DisabledAdapter
from hybrid_ai.infrastructure.adapters.ai.fallback_orchestrator import FallbackOrchestrator
from hybrid_ai.infrastructure.adapters.ai.functionality.health_monitor import HealthMonitor
from hybrid_ai.infrastructure.adapters.ai.models import BackendIdentity, BreakerConfig, CircuitState

from conftest import FakeAdapter, make_request


def make_service():
    adapters = {
        BackendIdentity.PRIMARY: FakeAdapter(BackendIdentity.PRIMARY),
        BackendIdentity.LOCAL_BRIDGE: DisabledAdapter(BackendIdentity.LOCAL_BRIDGE),
        BackendIdentity.CLOUD_FUNCTION: FakeAdapter(
            BackendIdentity.CLOUD_FUNCTION,
            breaker=BreakerConfig(failure_threshold=8, timeout_ms=120000, half_open_max_calls=2)
        ),
    }
    chain = [BackendIdentity.PRIMARY, BackendIdentity.LOCAL_BRIDGE, BackendIdentity.CLOUD_FUNCTION]
    monitors = [
        HealthMonitor(adapter, adapter.config.backoff)
        for adapter in adapters.values()
        if isinstance(adapter, FakeAdapter)
    ]
    return HybridAIService(
        orchestrator=FallbackOrchestrator(adapters, chain),
        status_publisher=StatusPublisher(adapters),
        monitors=monitors,
        adapters=adapters
    ), adapters


async def test_lifecycle_starts_and_stops_background_tasks():
    service, _ = make_service()

    async with service:
        assert service.started
        assert all(monitor.task.running for monitor in service.monitors)
        assert service.status_publisher.task.running

    assert not service.started
    assert not any(monitor.task.running for monitor in service.monitors)
    assert not service.status_publisher.task.running


async def test_submit_skips_disabled_bridge():
    service, adapters = make_service()
    adapters[BackendIdentity.PRIMARY].fail_with(TransportError("down", backend="Primary"))

    response = await service.submit(make_request())

    assert response.backend_used == BackendIdentity.CLOUD_FUNCTION


async def test_submit_never_raises(monkeypatch):
    service, _ = make_service()

    async def broken_query(request):
        raise RuntimeError("orchestrator bug")

    monkeypatch.setattr(service.orchestrator, "query", broken_query)

    response = await service.submit(make_request("r-9"))

    assert response.request_id == "r-9"
    assert response.is_offline
    assert response.confidence == 30.0


def test_circuit_breaker_snapshot():
    service, _ = make_service()

    snapshot = service.circuit_breaker_snapshot()

    assert snapshot[BackendIdentity.PRIMARY].state == CircuitState.CLOSED
    assert snapshot[BackendIdentity.LOCAL_BRIDGE].state == CircuitState.OPEN
    assert snapshot[BackendIdentity.LOCAL_BRIDGE].disabled is True
    assert snapshot[BackendIdentity.CLOUD_FUNCTION].seconds_until_retry == 0


async def test_subscribe_and_current_status():
    service, _ = make_service()
    received = []
    unsubscribe = service.subscribe(received.append)

    await service.status_publisher.publish()
    unsubscribe()
    await service.status_publisher.publish()

    assert len(received) == 1
    assert received[0][BackendIdentity.LOCAL_BRIDGE].available is False
    assert service.current_status()[BackendIdentity.OFFLINE].available is True


async def test_summary_and_statistics():
    service, _ = make_service()
    await service.submit(make_request())

    assert service.health_summary()['selected_backend'] == "Primary"
    assert service.get_statistics()['total_requests'] == 1
