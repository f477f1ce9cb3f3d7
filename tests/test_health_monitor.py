"""Tests for the health monitor"""
import asyncio

import pytest
from structlog.testing import capture_logs

from hybrid_ai.core.exceptions import TransportError
from hybrid_ai.infrastructure.adapters.ai.functionality.health_monitor import HealthMonitor
from hybrid_ai.infrastructure.adapters.ai.models import BackendIdentity, BreakerConfig, CircuitState

from conftest import FakeAdapter, ManualClock, Outcome, make_request


def make_monitor(clock, threshold=3, timeout_ms=10000, half_open=1, healthy=False):
    adapter = FakeAdapter(
        BackendIdentity.LOCAL_BRIDGE,
        breaker=BreakerConfig(failure_threshold=threshold, timeout_ms=timeout_ms, half_open_max_calls=half_open),
        clock=clock,
        healthy=healthy
    )
    return adapter, HealthMonitor(adapter, adapter.config.backoff)


async def test_failed_probes_open_breaker_and_stretch_interval():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock)

    for _ in range(2):
        assert await monitor.tick() is False
    assert monitor.current_interval_ms == 1000
    assert monitor.task.interval == 1.0

    await monitor.tick()

    assert adapter.breaker.get_state() == CircuitState.OPEN
    assert monitor.current_interval_ms == 2000
    assert monitor.task.interval == 2.0
    assert adapter.status().available is False


async def test_open_breaker_skips_probe_until_deadline():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=1, timeout_ms=10000)
    await monitor.tick()
    probes = adapter.probe_calls

    for _ in range(5):
        clock.advance(1)
        assert await monitor.tick() is None

    assert adapter.probe_calls == probes
    assert adapter.breaker.get_state() == CircuitState.OPEN
    assert monitor.skipped == 5


async def test_recovery_resets_interval():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=1, timeout_ms=10000, half_open=1)
    await monitor.tick()
    assert monitor.current_interval_ms == 2000

    clock.advance(10)
    adapter.healthy = True
    assert await monitor.tick() is True

    assert adapter.breaker.get_state() == CircuitState.CLOSED
    assert monitor.current_interval_ms == 1000
    assert adapter.status().available is True


async def test_failed_recovery_probe_grows_interval_again():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=1, timeout_ms=10000)

    intervals = []
    for _ in range(5):
        await monitor.tick()
        intervals.append(monitor.current_interval_ms)
        clock.advance(10)

    assert intervals == [2000, 4000, 8000, 8000, 8000]


async def test_interval_only_changes_on_transitions():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=5, healthy=True)

    for healthy in (True, False, True, False, False, True):
        adapter.healthy = healthy
        await monitor.tick()
        assert monitor.current_interval_ms == 1000


async def test_query_failures_drive_backoff():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=2)
    adapter.fail_with(TransportError("refused", backend="LocalBridge"))

    for i in range(2):
        try:
            await adapter.query(make_request(f"q{i}"))
        except TransportError:
            pass

    assert adapter.breaker.get_state() == CircuitState.OPEN
    assert monitor.current_interval_ms == 2000


async def test_running_task_is_restarted_on_transition():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=1)
    monitor.start()
    adapter.fail_with(TransportError("refused", backend="LocalBridge"))

    try:
        await adapter.query(make_request())
    except TransportError:
        pass

    assert monitor.task.restarts == 1
    assert monitor.task.running
    assert monitor.task.interval == 2.0
    await monitor.stop()
    assert not monitor.task.running


async def test_probe_error_count_bookkeeping():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=10)

    await monitor.tick()
    await monitor.tick()
    assert adapter.status().error_count == 2

    adapter.healthy = True
    for _ in range(3):
        await monitor.tick()
    assert adapter.status().error_count == 0


async def test_adapter_without_breaker_toggles_available():
    adapter = FakeAdapter(BackendIdentity.PRIMARY, healthy=False)
    monitor = HealthMonitor(adapter, adapter.config.backoff)

    assert await monitor.tick() is False
    assert adapter.status().available is False
    assert adapter.is_dispatchable() is False

    adapter.healthy = True
    assert await monitor.tick() is True
    assert adapter.status().available is True
    assert monitor.current_interval_ms == 1000


async def test_probe_on_start_ticks_immediately():
    adapter = FakeAdapter(BackendIdentity.SPECIALIST)
    adapter.config.backoff.probe_on_start = True
    monitor = HealthMonitor(adapter, adapter.config.backoff)

    monitor.start()
    await asyncio.sleep(0.01)

    assert adapter.probe_calls == 1
    await monitor.stop()


def failure_events(logs):
    return [entry['event'] for entry in logs
            if entry['event'] in ('health_check_failed', 'health_check_still_failing')]


async def test_failure_logging_is_sampled_without_breaker():
    adapter = FakeAdapter(BackendIdentity.PRIMARY, healthy=False)
    monitor = HealthMonitor(adapter, adapter.config.backoff)

    with capture_logs() as logs:
        for _ in range(50):
            await monitor.tick()

    events = failure_events(logs)
    assert events.count('health_check_failed') == 3
    # 47 suppressed failures, every 10th is logged
    assert events.count('health_check_still_failing') == 4

    adapter.healthy = True
    await monitor.tick()
    adapter.healthy = False
    with capture_logs() as logs:
        await monitor.tick()
    assert failure_events(logs) == ['health_check_failed']


async def test_failure_logging_is_sampled_while_circuit_not_closed():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=3, timeout_ms=10000)

    with capture_logs() as logs:
        for _ in range(3):
            await monitor.tick()
        assert adapter.breaker.get_state() == CircuitState.OPEN

        for _ in range(20):
            clock.advance(10)
            assert await monitor.tick() is False

    events = failure_events(logs)
    assert events.count('health_check_failed') == 3
    assert events.count('health_check_still_failing') == 2


class SlowProbeAdapter(FakeAdapter):
    async def _probe(self) -> bool:
        self.probe_calls += 1
        await asyncio.sleep(10)
        return True


async def test_cancelled_half_open_probe_frees_its_slot():
    clock = ManualClock()
    adapter = SlowProbeAdapter(
        BackendIdentity.LOCAL_BRIDGE,
        breaker=BreakerConfig(failure_threshold=1, timeout_ms=10000, half_open_max_calls=1),
        clock=clock
    )
    monitor = HealthMonitor(adapter, adapter.config.backoff)
    await adapter.record_probe(False, 0.0)
    clock.advance(10)

    tick = asyncio.create_task(monitor.tick())
    await asyncio.sleep(0.01)
    assert adapter.breaker.get_state() == CircuitState.HALF_OPEN
    tick.cancel()
    with pytest.raises(asyncio.CancelledError):
        await tick

    assert adapter.breaker.metrics.half_open_calls == 0
    assert await adapter.admit_probe() is True
    await adapter.record_probe(True, 5.0)
    assert adapter.breaker.get_state() == CircuitState.CLOSED


async def test_cancelled_half_open_query_frees_its_slot():
    clock = ManualClock()
    adapter, monitor = make_monitor(clock, threshold=1, timeout_ms=10000, half_open=1)
    adapter.outcomes.append(Outcome(error=TransportError("refused", backend="LocalBridge")))
    adapter.outcomes.append(Outcome(delay=10))

    with pytest.raises(TransportError):
        await adapter.query(make_request("q1"))
    clock.advance(10)

    query = asyncio.create_task(adapter.query(make_request("q2")))
    await asyncio.sleep(0.01)
    assert adapter.breaker.metrics.half_open_calls == 1
    query.cancel()
    with pytest.raises(asyncio.CancelledError):
        await query

    assert adapter.breaker.get_state() == CircuitState.HALF_OPEN
    assert adapter.breaker.metrics.half_open_calls == 0

    adapter.healthy = True
    assert await monitor.tick() is True
    assert adapter.breaker.get_state() == CircuitState.CLOSED
