# hybrid_ai/infrastructure/adapters/ai/functionality/health_monitor.py

"""Per-adapter health prober with exponential backoff"""

import asyncio
import time
from typing import Optional
import structlog

from ..models import BackoffConfig, CircuitState, HealthCheckBackoff
from .recurring_task import RecurringTask

logger = structlog.get_logger()

# Failures logged individually before switching to sampled logging
VERBOSE_FAILURES = 3


class HealthMonitor:
    """
    Polls one adapter's probe() on a RecurringTask.

    Probe results feed the adapter's circuit breaker. A transition into OPEN
    stretches the polling interval (capped); a transition into CLOSED resets
    it to the base interval. Either way the task is restarted. Nothing else
    changes the interval.
    """

    def __init__(self, adapter, config: BackoffConfig):
        """
        Args:
            adapter: BaseBackendAdapter to probe
            config: Polling interval settings
        """
        self.adapter = adapter
        self.config = config
        self.backoff = HealthCheckBackoff(
            base_interval_ms=config.base_interval_ms,
            max_interval_ms=config.max_interval_ms,
            multiplier=config.multiplier
        )
        self.task = RecurringTask(
            name=f"health_monitor:{adapter.identity.value}",
            callback=self.tick,
            interval=self.backoff.current_interval,
            run_immediately=config.probe_on_start
        )
        self.probes = 0
        self.skipped = 0
        self._suppressed_failures = 0
        self._consecutive_failures = 0

        if adapter.breaker is not None:
            adapter.breaker.add_listener(self._on_transition)

    def start(self) -> None:
        if self.adapter.breaker is not None:
            self.adapter.breaker.add_listener(self._on_transition)
        self.task.start()

    async def stop(self) -> None:
        await self.task.stop_and_wait()
        if self.adapter.breaker is not None:
            self.adapter.breaker.remove_listener(self._on_transition)

    async def tick(self) -> Optional[bool]:
        """
        One health check.

        Returns:
            Probe result, or None when the open circuit short-circuited it
        """
        if not await self.adapter.admit_probe():
            self.skipped += 1
            return None

        self.probes += 1
        start = time.perf_counter()
        try:
            healthy = await self.adapter.probe()
            elapsed_ms = (time.perf_counter() - start) * 1000

            if healthy:
                self._consecutive_failures = 0
                if self.adapter.breaker is None:
                    self._suppressed_failures = 0
            else:
                self._log_failure()

            await self.adapter.record_probe(healthy, elapsed_ms)
        except asyncio.CancelledError:
            # Stopped mid-probe: the half-open slot must not stay taken
            self.adapter.abandon_probe()
            raise
        return healthy

    def _log_failure(self) -> None:
        """
        Log while closed or for the first few failures, then sample.

        Without a breaker there is no state to go by, so the monitor's own
        count of consecutive failures decides.
        """
        breaker = self.adapter.breaker
        self._consecutive_failures += 1

        if breaker is None:
            verbose = self._consecutive_failures <= VERBOSE_FAILURES
        else:
            verbose = breaker.get_state() == CircuitState.CLOSED \
                or breaker.metrics.failure_count < VERBOSE_FAILURES

        if verbose:
            logger.warning(
                "health_check_failed",
                backend=self.adapter.identity.value,
                failure_count=breaker.metrics.failure_count + 1 if breaker else self._consecutive_failures,
                threshold=breaker.metrics.failure_threshold if breaker else None
            )
            return

        self._suppressed_failures += 1
        if self._suppressed_failures % max(1, self.config.log_sample_every) == 0:
            logger.warning(
                "health_check_still_failing",
                backend=self.adapter.identity.value,
                suppressed=self._suppressed_failures
            )

    def _on_transition(self, old: CircuitState, new: CircuitState) -> None:
        if new == CircuitState.OPEN:
            interval_ms = self.backoff.increase()
            logger.info(
                "health_check_interval_increased",
                backend=self.adapter.identity.value,
                interval_s=interval_ms / 1000
            )
            self.task.restart(self.backoff.current_interval)

        elif new == CircuitState.CLOSED:
            self.backoff.reset()
            self._suppressed_failures = 0
            logger.info(
                "backend_recovered",
                backend=self.adapter.identity.value,
                interval_s=self.backoff.current_interval
            )
            self.task.restart(self.backoff.current_interval)

    @property
    def current_interval_ms(self) -> float:
        return self.backoff.current_interval_ms
