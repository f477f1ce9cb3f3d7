# hybrid_ai/application/services/hybrid_ai_service.py

"""Caller-facing facade over the orchestrator and its background tasks"""

import asyncio
from typing import Callable, Dict, List, Mapping
import structlog

from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter
from hybrid_ai.infrastructure.adapters.ai.fallback_orchestrator import FallbackOrchestrator
from hybrid_ai.infrastructure.adapters.ai.functionality.health_monitor import HealthMonitor
from hybrid_ai.infrastructure.adapters.ai.models import (
    AIRequest,
    AIResponse,
    BackendIdentity,
    CircuitSnapshot,
    HealthStatus
)
from hybrid_ai.infrastructure.adapters.ai.offline_responses import build_offline_response
from .status_publisher import StatusCallback, StatusPublisher

logger = structlog.get_logger()


class HybridAIService:
    """
    Owns the adapters, health monitors and status publisher.

    Usage:
        async with container.service as service:
            response = await service.submit(request)
    """

    def __init__(
            self,
            orchestrator: FallbackOrchestrator,
            status_publisher: StatusPublisher,
            monitors: List[HealthMonitor],
            adapters: Mapping[BackendIdentity, IBackendAdapter]
    ):
        """
        Args:
            orchestrator: Dispatch chain
            status_publisher: Status broadcaster
            monitors: One health monitor per monitored adapter
            adapters: All adapters (closed on shutdown)
        """
        self.orchestrator = orchestrator
        self.status_publisher = status_publisher
        self.monitors = list(monitors)
        self.adapters = dict(adapters)
        self.started = False

    async def __aenter__(self) -> "HybridAIService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def start(self) -> None:
        """Start health monitoring and status broadcasts"""
        if self.started:
            return

        for monitor in self.monitors:
            monitor.start()
        self.status_publisher.start()
        self.started = True

        logger.info(
            "hybrid_ai_service_started",
            monitors=len(self.monitors),
            chain=[backend.value for backend in self.orchestrator.chain]
        )

    async def shutdown(self) -> None:
        """Stop background tasks and release transports"""
        await self.status_publisher.stop()
        for monitor in self.monitors:
            await monitor.stop()

        results = await asyncio.gather(
            *(adapter.close() for adapter in self.adapters.values()),
            return_exceptions=True
        )
        for identity, result in zip(self.adapters, results):
            if isinstance(result, Exception):
                logger.error("adapter_close_failed", backend=identity.value, error=str(result))

        self.started = False
        logger.info("hybrid_ai_service_stopped")

    async def submit(self, request: AIRequest) -> AIResponse:
        """Always resolves with exactly one response for the request"""
        try:
            return await self.orchestrator.query(request)
        except Exception as e:
            logger.error("submit_failed", request_id=request.request_id, error=str(e), exc_info=True)
            return build_offline_response(request, confidence=self.orchestrator.offline_confidence)

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        return self.status_publisher.subscribe(callback)

    def current_status(self) -> Dict[BackendIdentity, HealthStatus]:
        return self.status_publisher.current_status()

    def circuit_breaker_snapshot(self) -> Dict[BackendIdentity, CircuitSnapshot]:
        return {identity: adapter.circuit_snapshot() for identity, adapter in self.adapters.items()}

    def health_summary(self) -> dict:
        return self.orchestrator.health_summary()

    def get_statistics(self) -> dict:
        return self.orchestrator.get_statistics()
