# hybrid_ai/infrastructure/adapters/ai/fallback_orchestrator.py

"""
Fallback Orchestrator

Walks the backend chain for each request and guarantees an answer:
- Skips backends whose breaker is cooling down or that are unavailable
- Tries the rest strictly one at a time, in chain order
- Synthesizes an offline answer when the chain is exhausted
"""

import time
from typing import Dict, Mapping, Optional, Sequence
import structlog

from hybrid_ai.core.exceptions import (
    AllBackendsExhaustedError,
    BackendError,
    CircuitOpenError,
    ConfigurationError
)
from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter
from .functionality.latency_tracker import LatencyTracker
from .models import (
    AIRequest,
    AIRequestMetrics,
    AIResponse,
    AIStatistics,
    BackendIdentity,
    CircuitState,
    DEFAULT_QUALITY_THRESHOLDS
)
from .offline_responses import OFFLINE_CONFIDENCE, build_offline_response

logger = structlog.get_logger()


class FallbackOrchestrator:
    """Ordered fallback across backend adapters"""

    def __init__(
            self,
            adapters: Mapping[BackendIdentity, IBackendAdapter],
            chain: Sequence[BackendIdentity],
            quality_thresholds: Optional[Mapping[BackendIdentity, float]] = None,
            offline_confidence: float = OFFLINE_CONFIDENCE,
            latency_window: int = 50
    ):
        """
        Args:
            adapters: Adapter per backend identity
            chain: Dispatch order
            quality_thresholds: Minimum quality for advisory selection
            offline_confidence: Confidence reported by synthesized answers
            latency_window: Samples kept per backend latency tracker

        Raises:
            ConfigurationError: Chain references an unknown backend
        """
        missing = [backend.value for backend in chain if backend not in adapters]
        if missing:
            raise ConfigurationError(f"No adapter for chain entries: {missing}")

        self.adapters = dict(adapters)
        self.chain = list(chain)
        self.quality_thresholds = dict(DEFAULT_QUALITY_THRESHOLDS)
        if quality_thresholds:
            self.quality_thresholds.update(quality_thresholds)
        self.offline_confidence = offline_confidence

        self.stats = AIStatistics()
        self.latency: Dict[BackendIdentity, LatencyTracker] = {
            backend: LatencyTracker(window_size=latency_window) for backend in self.chain
        }

        logger.info(
            "fallback_orchestrator_initialized",
            chain=[backend.value for backend in self.chain]
        )

    # ========================================
    # Live dispatch
    # ========================================

    async def query(self, request: AIRequest) -> AIResponse:
        """
        Answer a request from the first backend that succeeds.

        Never raises for backend problems; the offline answer is returned
        instead.
        """
        start = time.perf_counter()
        metrics = AIRequestMetrics(request_id=request.request_id)

        try:
            with structlog.contextvars.bound_contextvars(request_id=request.request_id):
                response = await self._dispatch(request, metrics)
        except AllBackendsExhaustedError as e:
            logger.warning(
                "all_backends_exhausted",
                request_id=request.request_id,
                attempts=metrics.attempts,
                skipped=metrics.skipped,
                errors=e.errors
            )
            metrics.offline = True
            response = build_offline_response(
                request,
                confidence=self.offline_confidence,
                latency_ms=(time.perf_counter() - start) * 1000
            )

        metrics.success = not metrics.offline
        metrics.latency_ms = (time.perf_counter() - start) * 1000
        self.stats.record(metrics)

        return response

    async def _dispatch(self, request: AIRequest, metrics: AIRequestMetrics) -> AIResponse:
        """
        Raises:
            AllBackendsExhaustedError: Every chain entry was skipped or failed
        """
        for position, backend in enumerate(self.chain):
            adapter = self.adapters[backend]

            if not adapter.is_dispatchable():
                metrics.skipped += 1
                logger.debug("backend_skipped", backend=backend.value, request_id=request.request_id)
                continue

            metrics.attempts += 1
            try:
                response = await adapter.query(request)

            except CircuitOpenError:
                # Half-open slots taken by concurrent calls
                metrics.skipped += 1
                logger.debug("backend_circuit_refused", backend=backend.value, request_id=request.request_id)
                continue

            except BackendError as e:
                metrics.errors[backend.value] = str(e)
                logger.warning(
                    "backend_failed",
                    backend=backend.value,
                    request_id=request.request_id,
                    error_type=type(e).__name__,
                    error=str(e)
                )
                continue

            except Exception as e:
                metrics.errors[backend.value] = str(e)
                logger.error(
                    "backend_unexpected_error",
                    backend=backend.value,
                    request_id=request.request_id,
                    error=str(e),
                    exc_info=True
                )
                continue

            metrics.backend = backend.value
            metrics.fallback_used = position > 0
            self.latency[backend].record(response.latency_ms)

            logger.info(
                "backend_answered",
                backend=backend.value,
                request_id=request.request_id,
                latency_ms=round(response.latency_ms, 2),
                fallback=metrics.fallback_used
            )
            return response

        raise AllBackendsExhaustedError(
            f"No backend could answer {request.request_id}",
            errors=dict(metrics.errors)
        )

    # ========================================
    # Advisory selection
    # ========================================

    def best_backend(self) -> BackendIdentity:
        """
        Highest-ranked backend that looks healthy enough to use.

        Unlike dispatch, this also requires the quality score to meet the
        backend's threshold. It is informational only.
        """
        for backend in self.chain:
            adapter = self.adapters[backend]
            status = adapter.status()

            if not status.available:
                continue
            if adapter.circuit_snapshot().state == CircuitState.OPEN:
                continue
            if status.quality_score >= self.quality_thresholds.get(backend, 70.0):
                return backend

        return BackendIdentity.OFFLINE

    def health_summary(self) -> dict:
        """Advisory selection plus per-backend health"""
        selected = self.best_backend()

        return {
            'selected_backend': selected.value,
            'services': {
                backend.value: {
                    'available': status.available,
                    'quality_score': round(status.quality_score, 1),
                    'error_count': status.error_count,
                    'last_check': status.last_health_check.isoformat()
                }
                for backend, status in (
                    (backend, adapter.status()) for backend, adapter in self.adapters.items()
                )
            },
            'graceful_degradation': selected == BackendIdentity.OFFLINE
        }

    def get_statistics(self) -> dict:
        """Aggregate counters and per-backend latency"""
        return {
            **self.stats.to_dict(),
            'latency': {
                backend.value: tracker.get_stats() for backend, tracker in self.latency.items()
            }
        }
