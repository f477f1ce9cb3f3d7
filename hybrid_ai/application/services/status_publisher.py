# hybrid_ai/application/services/status_publisher.py

"""Periodic backend status broadcast"""

import inspect
import itertools
from typing import Awaitable, Callable, Dict, Mapping, Union
import structlog

from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter
from hybrid_ai.infrastructure.adapters.ai.functionality.recurring_task import RecurringTask
from hybrid_ai.infrastructure.adapters.ai.models import BackendIdentity, HealthStatus, offline_status

logger = structlog.get_logger()

StatusMap = Dict[BackendIdentity, HealthStatus]
StatusCallback = Callable[[StatusMap], Union[None, Awaitable[None]]]


class StatusPublisher:
    """
    Broadcasts ``{identity: HealthStatus}`` to subscribers every interval.

    The registry entry is the only reference kept to a subscriber, so
    unsubscribing drops it completely.
    """

    def __init__(self, adapters: Mapping[BackendIdentity, IBackendAdapter], interval_ms: int = 5000):
        """
        Args:
            adapters: Adapters whose status is published
            interval_ms: Broadcast period
        """
        self.adapters = dict(adapters)
        self._subscribers: Dict[int, StatusCallback] = {}
        self._tokens = itertools.count(1)
        self.broadcasts = 0
        self.task = RecurringTask("status_publisher", self.publish, interval_ms / 1000.0)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """
        Register a callback (sync or async).

        Returns:
            Idempotent unsubscribe function
        """
        token = next(self._tokens)
        self._subscribers[token] = callback
        logger.debug("status_subscriber_added", subscribers=len(self._subscribers))

        def unsubscribe() -> None:
            if self._subscribers.pop(token, None) is not None:
                logger.debug("status_subscriber_removed", subscribers=len(self._subscribers))

        return unsubscribe

    def current_status(self) -> StatusMap:
        """Snapshot of every adapter plus the offline pseudo-status"""
        snapshot = {identity: adapter.status() for identity, adapter in self.adapters.items()}
        snapshot[BackendIdentity.OFFLINE] = offline_status()
        return snapshot

    async def publish(self) -> int:
        """
        Deliver one snapshot to every subscriber.

        Returns:
            Number of callbacks that completed without error
        """
        snapshot = self.current_status()
        self.broadcasts += 1
        delivered = 0

        for token, callback in list(self._subscribers.items()):
            # Unsubscribed by an earlier callback in this round
            if token not in self._subscribers:
                continue
            try:
                result = callback(dict(snapshot))
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error("status_subscriber_failed", error=str(e), exc_info=True)

        return delivered

    def start(self) -> None:
        self.task.start()

    async def stop(self) -> None:
        await self.task.stop_and_wait()
        self._subscribers.clear()
