# hybrid_ai/infrastructure/adapters/ai/models/ai_config.py

"""Orchestrator Configuration"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .health_status import BackendIdentity


@dataclass
class BreakerConfig:
    """Circuit breaker thresholds for one adapter"""
    enabled: bool = True
    failure_threshold: int = 5
    timeout_ms: int = 60000  # open -> half-open cooldown
    half_open_max_calls: int = 3

    def to_dict(self) -> dict:
        return {
            'enabled': self.enabled,
            'failure_threshold': self.failure_threshold,
            'timeout_ms': self.timeout_ms,
            'half_open_max_calls': self.half_open_max_calls
        }


@dataclass
class BackoffConfig:
    """Health check polling"""
    base_interval_ms: int = 30000
    max_interval_ms: int = 300000
    multiplier: float = 1.5
    probe_on_start: bool = True
    log_sample_every: int = 10  # log every Nth suppressed probe failure

    def to_dict(self) -> dict:
        return {
            'base_interval_ms': self.base_interval_ms,
            'max_interval_ms': self.max_interval_ms,
            'multiplier': self.multiplier,
            'probe_on_start': self.probe_on_start,
            'log_sample_every': self.log_sample_every
        }


@dataclass
class QualityProfile:
    """qualityScore = clamp(0, 100, timeScore - errorPenalty)"""
    ms_per_point: float = 10.0  # timeScore loses one point per N ms
    penalty_per_error: float = 10.0
    penalty_cap: float = 50.0

    def to_dict(self) -> dict:
        return {
            'ms_per_point': self.ms_per_point,
            'penalty_per_error': self.penalty_per_error,
            'penalty_cap': self.penalty_cap
        }


@dataclass
class AdapterConfig:
    """Everything one backend adapter needs"""
    identity: BackendIdentity
    enabled: bool = True
    base_url: str = ""
    request_timeout: float = 30.0  # seconds
    probe_timeout: float = 10.0
    default_confidence: float = 80.0
    breaker: BreakerConfig = field(default_factory=BreakerConfig)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    quality: QualityProfile = field(default_factory=QualityProfile)

    # Primary (OpenAI-compatible chat API)
    model: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 600

    # LocalBridge (persistent socket)
    socket_path: str = "/ws"
    pending_timeout: float = 30.0
    max_reconnect_attempts: int = 5
    reconnect_base_delay: float = 2.0

    def to_dict(self) -> dict:
        """Export as dict (secrets omitted)"""
        return {
            'identity': self.identity.value,
            'enabled': self.enabled,
            'base_url': self.base_url,
            'request_timeout': self.request_timeout,
            'probe_timeout': self.probe_timeout,
            'breaker': self.breaker.to_dict(),
            'backoff': self.backoff.to_dict(),
            'quality': self.quality.to_dict()
        }


DEFAULT_CHAIN: List[BackendIdentity] = [
    BackendIdentity.PRIMARY,
    BackendIdentity.LOCAL_BRIDGE,
    BackendIdentity.CLOUD_FUNCTION,
    BackendIdentity.SPECIALIST
]

DEFAULT_QUALITY_THRESHOLDS: Dict[BackendIdentity, float] = {
    BackendIdentity.PRIMARY: 80.0,
    BackendIdentity.LOCAL_BRIDGE: 70.0,
    BackendIdentity.CLOUD_FUNCTION: 60.0,
    BackendIdentity.SPECIALIST: 50.0,
    BackendIdentity.OFFLINE: 0.0
}


def default_adapter_configs() -> Dict[BackendIdentity, AdapterConfig]:
    """Per-backend defaults; the local bridge is stricter than the cloud function"""
    return {
        BackendIdentity.PRIMARY: AdapterConfig(
            identity=BackendIdentity.PRIMARY,
            base_url="https://api.openai.com/v1",
            model="gpt-4o-mini",
            request_timeout=20.0,
            probe_timeout=5.0,
            default_confidence=95.0,
            breaker=BreakerConfig(enabled=False, failure_threshold=5, timeout_ms=60000, half_open_max_calls=2),
            backoff=BackoffConfig(base_interval_ms=60000, max_interval_ms=600000, multiplier=1.5),
            quality=QualityProfile(ms_per_point=40.0, penalty_per_error=5.0, penalty_cap=25.0)
        ),
        BackendIdentity.LOCAL_BRIDGE: AdapterConfig(
            identity=BackendIdentity.LOCAL_BRIDGE,
            base_url="http://localhost:3001",
            request_timeout=30.0,
            probe_timeout=10.0,
            default_confidence=85.0,
            breaker=BreakerConfig(failure_threshold=5, timeout_ms=60000, half_open_max_calls=3),
            backoff=BackoffConfig(base_interval_ms=30000, max_interval_ms=300000, multiplier=1.5),
            quality=QualityProfile(ms_per_point=10.0, penalty_per_error=10.0, penalty_cap=50.0)
        ),
        BackendIdentity.CLOUD_FUNCTION: AdapterConfig(
            identity=BackendIdentity.CLOUD_FUNCTION,
            base_url="http://localhost:8888/.netlify/functions",
            request_timeout=30.0,
            probe_timeout=15.0,
            default_confidence=80.0,
            breaker=BreakerConfig(failure_threshold=8, timeout_ms=120000, half_open_max_calls=2),
            backoff=BackoffConfig(base_interval_ms=60000, max_interval_ms=600000, multiplier=1.3),
            quality=QualityProfile(ms_per_point=20.0, penalty_per_error=5.0, penalty_cap=30.0)
        ),
        BackendIdentity.SPECIALIST: AdapterConfig(
            identity=BackendIdentity.SPECIALIST,
            base_url="http://localhost:8080",
            request_timeout=30.0,
            probe_timeout=5.0,
            default_confidence=80.0,
            breaker=BreakerConfig(failure_threshold=3, timeout_ms=90000, half_open_max_calls=2),
            backoff=BackoffConfig(base_interval_ms=60000, max_interval_ms=600000, multiplier=1.5),
            quality=QualityProfile(ms_per_point=30.0, penalty_per_error=5.0, penalty_cap=30.0)
        )
    }


@dataclass
class OrchestratorConfig:
    """Top level configuration"""
    chain: List[BackendIdentity] = field(default_factory=lambda: list(DEFAULT_CHAIN))
    quality_thresholds: Dict[BackendIdentity, float] = field(
        default_factory=lambda: dict(DEFAULT_QUALITY_THRESHOLDS)
    )
    adapters: Dict[BackendIdentity, AdapterConfig] = field(default_factory=default_adapter_configs)
    status_interval_ms: int = 5000
    offline_confidence: float = 30.0
    latency_window: int = 50

    def __post_init__(self):
        """Validate"""
        if len(set(self.chain)) != len(self.chain):
            raise ValueError("chain must not list a backend twice")
        if BackendIdentity.OFFLINE in self.chain:
            raise ValueError("offline is implicit and must not be part of the chain")

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'chain': [backend.value for backend in self.chain],
            'quality_thresholds': {b.value: t for b, t in self.quality_thresholds.items()},
            'adapters': {b.value: c.to_dict() for b, c in self.adapters.items()},
            'status_interval_ms': self.status_interval_ms,
            'offline_confidence': self.offline_confidence
        }
