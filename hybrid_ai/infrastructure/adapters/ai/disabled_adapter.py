# hybrid_ai/infrastructure/adapters/ai/disabled_adapter.py

"""Placeholder for backends turned off by configuration"""

from hybrid_ai.core.exceptions import BackendDisabledError
from hybrid_ai.core.ports.i_backend_adapter import IBackendAdapter
from .models import (
    AIRequest,
    AIResponse,
    BackendIdentity,
    CircuitSnapshot,
    ConnectionKind,
    HealthStatus,
    DISABLED_SNAPSHOT
)


class DisabledAdapter(IBackendAdapter):
    """Permanently unavailable; never touches the network"""

    breaker = None

    def __init__(self, identity: BackendIdentity):
        self.identity = identity
        self._status = HealthStatus(
            backend=identity,
            available=False,
            connection_kind=ConnectionKind.NONE
        )

    async def query(self, request: AIRequest) -> AIResponse:
        raise BackendDisabledError(f"{self.identity.value} is disabled", backend=self.identity.value)

    def status(self) -> HealthStatus:
        return self._status.copy()

    async def probe(self) -> bool:
        return False

    def circuit_snapshot(self) -> CircuitSnapshot:
        return DISABLED_SNAPSHOT

    def is_dispatchable(self) -> bool:
        return False
