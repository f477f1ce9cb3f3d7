# hybrid_ai/infrastructure/adapters/ai/base_adapter.py

"""
Shared adapter machinery: breaker gating, deadline enforcement and
health bookkeeping. Subclasses only implement the transport.
"""

import asyncio
import time
from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional
import httpx
import structlog

from hybrid_ai.core.exceptions import (
    BackendError,
    BackendTimeoutError,
    DuplicateRequestError,
    TransportError
)
from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter
from .functionality.circuit_breaker import CircuitBreaker
from .functionality.quality_scorer import quality_score
from .functionality.timeout_wrapper import with_timeout
from .models import (
    AIRequest,
    AIResponse,
    AdapterConfig,
    CircuitSnapshot,
    CircuitState,
    ConnectionKind,
    HealthStatus,
    CLOSED_SNAPSHOT,
    normalize_confidence
)

logger = structlog.get_logger()


@dataclass
class BackendReply:
    """Raw answer extracted from a backend payload"""
    text: str
    confidence: Any = None
    analysis: Optional[dict] = None


class BaseBackendAdapter(IBackendAdapter):
    """
    Template for concrete adapters.

    The per-adapter lock guards the breaker and the health record. It is
    never held across network I/O.
    """

    connection_kind = ConnectionKind.REQUEST_RESPONSE

    def __init__(
            self,
            config: AdapterConfig,
            clock: Callable[[], float] = time.monotonic,
            initially_available: bool = True
    ):
        """
        Args:
            config: Adapter settings
            clock: Monotonic clock in seconds, shared with the breaker
            initially_available: Availability before the first probe
        """
        self.config = config
        self.identity = config.identity
        self.breaker: Optional[CircuitBreaker] = CircuitBreaker.from_config(
            config.identity.value, config.breaker, clock
        )
        self._lock = asyncio.Lock()
        self._status = HealthStatus(
            backend=config.identity,
            available=initially_available,
            connection_kind=self.connection_kind if initially_available else ConnectionKind.NONE,
            quality_score=quality_score(0.0, 0, config.quality)
        )
        self.queries_sent = 0
        self._probe_slot: Optional[int] = None

    # ========================================
    # Transport hooks
    # ========================================

    @abstractmethod
    async def _send(self, request: AIRequest) -> BackendReply:
        """Perform the backend call; raise BackendError subclasses on failure"""
        pass

    @abstractmethod
    async def _probe(self) -> bool:
        """Transport-level health check; may raise"""
        pass

    def _current_connection_kind(self) -> ConnectionKind:
        return self.connection_kind if self._status.available else ConnectionKind.NONE

    def _query_deadline(self) -> float:
        return self.config.request_timeout

    # ========================================
    # IBackendAdapter
    # ========================================

    async def query(self, request: AIRequest) -> AIResponse:
        """
        Run one request through the breaker and the transport.

        Raises:
            CircuitOpenError: Breaker refused the call (no network I/O)
            BackendTimeoutError: Deadline exceeded
            TransportError: Any other transport failure (DuplicateRequestError
                is passed through without touching the health record)
        """
        slot = None
        async with self._lock:
            if self.breaker is not None:
                self.breaker.guard()
                slot = self.breaker.current_slot()

        self.queries_sent += 1
        start = time.perf_counter()

        try:
            reply = await with_timeout(
                self._send(request),
                timeout=self._query_deadline(),
                name=self.identity.value
            )
        except asyncio.CancelledError:
            self.release_slot(slot)
            raise
        except DuplicateRequestError:
            # Caller misuse, says nothing about backend health
            self.release_slot(slot)
            raise
        except BackendError as e:
            await self._record_query_failure(e)
            raise
        except Exception as e:
            error = TransportError(
                f"{self.identity.value} query failed: {e}",
                backend=self.identity.value
            )
            await self._record_query_failure(error)
            raise error from e

        latency_ms = (time.perf_counter() - start) * 1000
        await self._record_query_success(latency_ms)

        return AIResponse(
            request_id=request.request_id,
            backend_used=self.identity,
            text=reply.text,
            confidence=normalize_confidence(reply.confidence, self.config.default_confidence),
            latency_ms=latency_ms,
            analysis_payload=reply.analysis
        )

    async def probe(self) -> bool:
        """Never raises for transport problems; those count as unhealthy"""
        try:
            return bool(await with_timeout(
                self._probe(),
                timeout=self.config.probe_timeout,
                name=self.identity.value
            ))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("probe_error", backend=self.identity.value, error=str(e))
            return False

    def status(self) -> HealthStatus:
        return self._status.copy()

    def circuit_snapshot(self) -> CircuitSnapshot:
        if self.breaker is None:
            return CLOSED_SNAPSHOT
        return self.breaker.snapshot()

    def is_dispatchable(self) -> bool:
        if self.breaker is not None and self.breaker.is_cooling_down():
            return False
        return self._status.available

    # ========================================
    # Bookkeeping
    # ========================================

    async def admit_probe(self) -> bool:
        """Ask the breaker whether a health probe may touch the network"""
        async with self._lock:
            if self.breaker is None:
                return True
            allowed = self.breaker.allow_request()
            self._probe_slot = self.breaker.current_slot() if allowed else None
            return allowed

    def release_slot(self, slot: Optional[int]) -> None:
        """Hand an unused half-open slot back to the breaker"""
        if self.breaker is not None:
            self.breaker.release(slot)

    def abandon_probe(self) -> None:
        """The admitted probe was cancelled before its result was recorded"""
        slot, self._probe_slot = self._probe_slot, None
        self.release_slot(slot)

    async def record_probe(self, healthy: bool, elapsed_ms: float) -> Optional[CircuitState]:
        """
        Apply a probe result to the breaker and the health record.

        Returns:
            New breaker state if the result caused a transition
        """
        async with self._lock:
            self._probe_slot = None
            transition = None
            if self.breaker is not None:
                transition = self.breaker.record_success() if healthy else self.breaker.record_failure()

            status = self._status
            status.available = healthy
            status.last_health_check = datetime.now()
            if healthy:
                status.response_time_ms = elapsed_ms
                status.error_count = max(0, status.error_count - 1)
            else:
                status.error_count += 1
            self._refresh_status()
            return transition

    async def _record_query_success(self, latency_ms: float) -> None:
        async with self._lock:
            if self.breaker is not None:
                self.breaker.record_success()
            self._status.available = True
            self._status.response_time_ms = latency_ms
            self._refresh_status()

    async def _record_query_failure(self, error: BackendError) -> None:
        async with self._lock:
            if self.breaker is not None:
                self.breaker.record_failure()
            else:
                self._status.available = False
            self._status.error_count += 1
            self._refresh_status()

        logger.debug(
            "backend_query_failed",
            backend=self.identity.value,
            error_type=type(error).__name__,
            error=str(error)
        )

    def _refresh_status(self) -> None:
        self._status.quality_score = quality_score(
            self._status.response_time_ms,
            self._status.error_count,
            self.config.quality
        )
        self._status.connection_kind = self._current_connection_kind()


class HttpBackendAdapter(BaseBackendAdapter):
    """Request-response adapter over httpx"""

    def __init__(
            self,
            config: AdapterConfig,
            client: Optional[httpx.AsyncClient] = None,
            clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            config: Adapter settings
            client: Shared httpx client (created lazily when omitted)
            clock: Monotonic clock in seconds
        """
        super().__init__(config, clock=clock)
        self._client = client
        self._owns_client = client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.config.base_url)
        return self._client

    async def _request(
            self,
            method: str,
            path: str,
            timeout: float,
            json: Optional[dict] = None
    ) -> httpx.Response:
        """
        Raises:
            BackendTimeoutError: httpx timed out
            TransportError: Connection failed
        """
        try:
            return await self._http().request(method, path, json=json, timeout=timeout)
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(
                f"{self.identity.value} timeout after {timeout}s",
                backend=self.identity.value
            ) from e
        except httpx.RequestError as e:
            raise TransportError(
                f"Cannot connect to {self.identity.value}: {e}",
                backend=self.identity.value
            ) from e

    async def _post_json(self, path: str, payload: dict) -> dict:
        """POST and decode a JSON object; non-2xx is a TransportError"""
        response = await self._request("POST", path, timeout=self.config.request_timeout, json=payload)

        if not response.is_success:
            raise TransportError(
                f"{self.identity.value} API error: {response.status_code}",
                backend=self.identity.value,
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"{self.identity.value} returned invalid JSON",
                backend=self.identity.value,
                status_code=response.status_code
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                f"{self.identity.value} returned unexpected payload",
                backend=self.identity.value
            )
        return data

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
