# hybrid_ai/infrastructure/adapters/ai/models/health_status.py

"""Backend identity and health records"""

from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime


class BackendIdentity(str, Enum):
    """Backend kinds; OFFLINE tags synthesized answers and the offline pseudo-status"""
    PRIMARY = "Primary"
    LOCAL_BRIDGE = "LocalBridge"
    CLOUD_FUNCTION = "CloudFunction"
    SPECIALIST = "Specialist"
    OFFLINE = "offline"

    @classmethod
    def parse(cls, value: str) -> "BackendIdentity":
        """Accept enum values, member names or snake_case config keys"""
        key = value.strip().replace('-', '').replace('_', '').replace(' ', '').lower()
        for member in cls:
            if key in (member.name.replace('_', '').lower(), member.value.lower()):
                return member
        raise ValueError(f"Unknown backend: {value}")


class ConnectionKind(str, Enum):
    """How an adapter currently reaches its backend"""
    PERSISTENT_SOCKET = "persistent-socket"
    REQUEST_RESPONSE = "request-response"
    NONE = "none"


@dataclass
class HealthStatus:
    """Per-backend health record"""
    backend: BackendIdentity
    available: bool = False
    response_time_ms: float = 0.0
    last_health_check: datetime = field(default_factory=datetime.now)
    error_count: int = 0
    quality_score: float = 0.0
    connection_kind: ConnectionKind = ConnectionKind.NONE

    def copy(self) -> "HealthStatus":
        return replace(self)

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'backend': self.backend.value,
            'available': self.available,
            'response_time_ms': round(self.response_time_ms, 2),
            'last_health_check': self.last_health_check.isoformat(),
            'error_count': self.error_count,
            'quality_score': round(self.quality_score, 1),
            'connection_kind': self.connection_kind.value
        }


OFFLINE_QUALITY_SCORE = 30.0


def offline_status() -> HealthStatus:
    """Constant pseudo-status reported for the offline fallback"""
    return HealthStatus(
        backend=BackendIdentity.OFFLINE,
        available=True,
        response_time_ms=0.0,
        error_count=0,
        quality_score=OFFLINE_QUALITY_SCORE,
        connection_kind=ConnectionKind.NONE
    )


@dataclass
class HealthCheckBackoff:
    """Polling interval state, mutated only by the HealthMonitor"""
    base_interval_ms: float
    max_interval_ms: float
    multiplier: float
    current_interval_ms: float = 0.0

    def __post_init__(self):
        if not self.current_interval_ms:
            self.current_interval_ms = self.base_interval_ms

    def increase(self) -> float:
        self.current_interval_ms = min(self.current_interval_ms * self.multiplier, self.max_interval_ms)
        return self.current_interval_ms

    def reset(self) -> float:
        self.current_interval_ms = self.base_interval_ms
        return self.current_interval_ms

    @property
    def current_interval(self) -> float:
        """Current interval in seconds"""
        return self.current_interval_ms / 1000.0
