"""Backend adapter port"""

from abc import ABC, abstractmethod

from hybrid_ai.infrastructure.adapters.ai.models import (
    AIRequest,
    AIResponse,
    BackendIdentity,
    CircuitSnapshot,
    HealthStatus
)


class IBackendAdapter(ABC):
    """Uniform contract every backend integration implements"""

    identity: BackendIdentity

    @abstractmethod
    async def query(self, request: AIRequest) -> AIResponse:
        """
        Answer a request using this backend

        Raises:
            BackendError: Transport-specific failure, timeout or open circuit
        """
        pass

    @abstractmethod
    def status(self) -> HealthStatus:
        """Last known health snapshot (non-blocking)"""
        pass

    @abstractmethod
    async def probe(self) -> bool:
        """Lightweight connectivity check used by the health monitor"""
        pass

    @abstractmethod
    def circuit_snapshot(self) -> CircuitSnapshot:
        """Breaker diagnostics"""
        pass

    @abstractmethod
    def is_dispatchable(self) -> bool:
        """False when live dispatch must skip this backend"""
        pass

    async def close(self) -> None:
        """Release transport resources"""
        return None
